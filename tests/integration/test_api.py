"""HTTP surface tests through the ASGI app."""

import json
from unittest.mock import AsyncMock

import httpx
import pytest

from plugin_publisher.integrations.mock_clients import make_log_archive
from plugin_publisher.main import INTERNAL_ERROR, create_app
from plugin_publisher.observability import get_metrics
from plugin_publisher.publishing import messages
from plugin_publisher.publishing.signature import sign

WEBHOOK_SECRET = "webhook-secret"
REVIEWER_ROLE = "424242424242"
LOGS_URL = "https://api.github.test/runs/1/logs"
TIMESTAMP = "1700000000"


def workflow_run_body(conclusion: str = "success", action: str = "completed") -> bytes:
    return json.dumps(
        {
            "action": action,
            "workflow_run": {
                "id": 1,
                "status": "completed",
                "conclusion": conclusion,
                "html_url": "https://github.test/runs/1",
                "logs_url": LOGS_URL,
            },
        }
    ).encode()


def github_headers(body: bytes, event: str = "workflow_run", algorithm: str = "sha256") -> dict[str, str]:
    header = "X-Hub-Signature-256" if algorithm == "sha256" else "X-Hub-Signature"
    return {
        header: sign(body, WEBHOOK_SECRET, algorithm),
        "X-GitHub-Event": event,
        "X-GitHub-Delivery": "delivery-1",
        "Content-Type": "application/json",
    }


@pytest.fixture
def app(settings, service):
    return create_app(settings, service)


@pytest.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app, raise_app_exceptions=False)
    async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def signed(signing_key):
    """Build Discord-signed interaction request kwargs."""

    def _signed(payload: dict) -> dict:
        body = json.dumps(payload).encode()
        return {
            "content": body,
            "headers": {
                "X-Signature-Ed25519": signing_key.sign(TIMESTAMP.encode() + body).hex(),
                "X-Signature-Timestamp": TIMESTAMP,
                "Content-Type": "application/json",
            },
        }

    return _signed


def button_press(request_id: int, action: str, roles: list[str] | None = None) -> dict:
    return {
        "type": 3,
        "data": {"custom_id": messages.button_id(request_id, action), "component_type": 2},
        "member": {"roles": [REVIEWER_ROLE] if roles is None else roles, "user": {"id": "31337"}},
    }


# =============================================================================
# Status endpoints
# =============================================================================

class TestStatus:
    async def test_health(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy", "service": "plugin-publisher"}

    async def test_metrics(self, client):
        response = await client.get("/metrics")
        assert response.status_code == 200
        assert response.json()["requests_submitted"] == 0

    async def test_current_build_empty(self, client):
        response = await client.get("/build/current")
        assert response.json() == {"data": None}


# =============================================================================
# Publish submission
# =============================================================================

class TestPublish:
    async def test_submit(self, client, discord):
        response = await client.post("/publish/alice/plugins", json={"plugin": "Foo", "targetCommit": "c1"})

        assert response.status_code == 200
        [message_id] = list(discord.messages)
        assert response.json() == {"message": f"Success! https://discord.com/channels/100/200/{message_id}"}

    async def test_banned(self, client):
        response = await client.post(
            "/publish/alice/plugins", json={"plugin": "HelloWorld", "targetCommit": "c1"}
        )

        assert response.status_code == 400
        assert response.json() == {"error": "The HelloWorld plugin is banned from being published!"}

    async def test_invalid_body(self, client):
        response = await client.post("/publish/alice/plugins", json={"plugin": "Foo"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid request body"}

    async def test_internal_error_hides_detail(self, client, service):
        service.submit = AsyncMock(side_effect=RuntimeError("redis password is hunter2"))

        response = await client.post("/publish/alice/plugins", json={"plugin": "Foo", "targetCommit": "c1"})

        assert response.status_code == 500
        assert response.json() == {"error": INTERNAL_ERROR}
        assert "hunter2" not in response.text


# =============================================================================
# GitHub webhook
# =============================================================================

class TestGitHubWebhook:
    async def test_bad_signature(self, client):
        body = workflow_run_body()
        headers = github_headers(body)
        headers["X-Hub-Signature-256"] = "sha256=" + "0" * 64

        response = await client.post("/webhook/github", content=body, headers=headers)

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid webhook signature"}
        assert get_metrics().webhooks_rejected == 1

    async def test_missing_signature(self, client):
        body = workflow_run_body()
        response = await client.post(
            "/webhook/github", content=body, headers={"X-GitHub-Event": "workflow_run"}
        )
        assert response.status_code == 401

    async def test_invalid_json(self, client):
        body = b"{not json"
        response = await client.post("/webhook/github", content=body, headers=github_headers(body))

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid JSON payload"}

    async def test_other_event_ignored(self, client):
        body = b'{"zen": "Keep it logically awesome."}'
        response = await client.post("/webhook/github", content=body, headers=github_headers(body, event="ping"))

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    async def test_malformed_workflow_run(self, client):
        body = b'{"action": "completed"}'
        response = await client.post("/webhook/github", content=body, headers=github_headers(body))
        assert response.status_code == 400

    async def test_completed_build(self, client, service, github):
        github.force_push("alice", "plugins", ["c1"])
        await service.submit("alice", "plugins", "Foo", "c1")
        github.logs[LOGS_URL] = make_log_archive(
            {"owner": "alice", "repository": "plugins", "plugin": "Foo", "commit": "c1"}
        )
        body = workflow_run_body("success")

        response = await client.post("/webhook/github", content=body, headers=github_headers(body))

        assert response.status_code == 200
        assert response.json()["status"] == "processed"
        assert response.json()["delivery_id"] == "delivery-1"
        assert await service.ledger.get("alice", "plugins") == ["c1"]

    async def test_unknown_conclusion_is_500(self, client, service, github):
        await service.submit("alice", "plugins", "Foo", "c1")
        github.logs[LOGS_URL] = make_log_archive(
            {"owner": "alice", "repository": "plugins", "plugin": "Foo", "commit": "c1"}
        )
        body = workflow_run_body("cancelled")

        response = await client.post("/webhook/github", content=body, headers=github_headers(body))

        assert response.status_code == 500
        assert "error" in response.json()

    async def test_sha1_algorithm(self, settings, service):
        settings = settings.model_copy(update={"github_webhook_algorithm": "sha1"})
        service.settings = settings
        app = create_app(settings, service)
        body = workflow_run_body(action="requested")

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post(
                "/webhook/github", content=body, headers=github_headers(body, algorithm="sha1")
            )

        assert response.status_code == 200
        assert response.json()["status"] == "ignored"

    async def test_not_mounted_without_secret(self, settings, service):
        settings = settings.model_copy(update={"github_webhook_secret": None})
        app = create_app(settings, service)
        body = workflow_run_body()

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/webhook/github", content=body, headers=github_headers(body))

        assert response.status_code == 404


# =============================================================================
# Discord interactions
# =============================================================================

class TestDiscordInteractions:
    async def test_ping(self, client, signed):
        response = await client.post("/discord/interactions", **signed({"type": 1}))

        assert response.status_code == 200
        assert response.json() == {"type": 1}

    async def test_bad_signature(self, client, signed):
        kwargs = signed({"type": 1})
        kwargs["headers"]["X-Signature-Timestamp"] = "1700000001"

        response = await client.post("/discord/interactions", **kwargs)

        assert response.status_code == 401
        assert response.json() == {"error": "Invalid request signature"}

    async def test_unsupported_type(self, client, signed):
        response = await client.post("/discord/interactions", **signed({"type": 2}))
        assert response.status_code == 400

    async def test_approve_button(self, client, service, github, signed):
        github.force_push("alice", "plugins", ["c1"])
        await service.submit("alice", "plugins", "Foo", "c1")
        request = await service.store.get("alice", "plugins", "Foo")

        response = await client.post(
            "/discord/interactions", **signed(button_press(request.id, "approve"))
        )

        assert response.status_code == 200
        assert response.json()["type"] == 7
        assert len(github.dispatches) == 1

        current = await client.get("/build/current")
        assert current.json()["data"]["plugin"] == "Foo"

    async def test_button_without_role(self, client, service, signed):
        await service.submit("alice", "plugins", "Foo", "c1")
        request = await service.store.get("alice", "plugins", "Foo")

        response = await client.post(
            "/discord/interactions", **signed(button_press(request.id, "deny", roles=["1"]))
        )

        assert response.json()["type"] == 4
        assert response.json()["data"]["flags"] == 64
        assert await service.store.get("alice", "plugins", "Foo") is not None

    async def test_not_mounted_without_public_key(self, settings, service, signed):
        settings = settings.model_copy(update={"discord_public_key": None})
        app = create_app(settings, service)

        transport = httpx.ASGITransport(app=app)
        async with httpx.AsyncClient(transport=transport, base_url="http://test") as client:
            response = await client.post("/discord/interactions", **signed({"type": 1}))

        assert response.status_code == 404
