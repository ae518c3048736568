"""Pytest configuration for plugin_publisher tests."""

import sys
from pathlib import Path

import pytest
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.serialization import Encoding, PublicFormat
from fakeredis import FakeServer
from fakeredis.aioredis import FakeRedis

# Add src directory to Python path - the package lives under src/plugin_publisher
_src_path = Path(__file__).parent.parent / "src"
if str(_src_path) not in sys.path:
    sys.path.insert(0, str(_src_path))

from plugin_publisher.config import Settings  # noqa: E402
from plugin_publisher.integrations.mock_clients import MockDiscordClient, MockGitHubClient  # noqa: E402
from plugin_publisher.observability import reset_metrics  # noqa: E402
from plugin_publisher.publishing.service import create_service  # noqa: E402

REVIEWER_ROLE = "424242424242"
WEBHOOK_SECRET = "webhook-secret"


@pytest.fixture(autouse=True)
def fresh_metrics():
    """Zero the global counters around every test."""
    reset_metrics()
    yield
    reset_metrics()


@pytest.fixture
def signing_key() -> Ed25519PrivateKey:
    """Stand-in for Discord's interaction signing key."""
    return Ed25519PrivateKey.generate()


@pytest.fixture
def public_key_hex(signing_key) -> str:
    return signing_key.public_key().public_bytes(Encoding.Raw, PublicFormat.Raw).hex()


@pytest.fixture
def settings(public_key_hex) -> Settings:
    return Settings(
        discord_token="bot-token",
        discord_public_key=public_key_hex,
        discord_channel_id="200",
        discord_server_id="100",
        allowed_roles=[REVIEWER_ROLE],
        github_token="gh-token",
        github_webhook_secret=WEBHOOK_SECRET,
        build_repo="publisher/plugins",
    )


@pytest.fixture
async def redis_client():
    client = FakeRedis(server=FakeServer(), decode_responses=True)
    yield client
    await client.aclose()


@pytest.fixture
def discord() -> MockDiscordClient:
    return MockDiscordClient(channel_id="200")


@pytest.fixture
def github() -> MockGitHubClient:
    return MockGitHubClient()


@pytest.fixture
def service(settings, redis_client, discord, github):
    """PublishingService wired to fakeredis and the mock clients."""
    return create_service(settings, redis_client=redis_client, github=github, discord=discord)
