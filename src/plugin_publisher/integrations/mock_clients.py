"""Mock clients for third-party integrations (Discord, GitHub).

These mocks replicate the interface of the real clients but keep all state
in memory. Use them for testing without external API calls.

Usage:
    from plugin_publisher.integrations.mock_clients import MockDiscordClient, MockGitHubClient

    discord = MockDiscordClient()
    message_id = await discord.create_message("Awaiting approval...")

    # Swap for real clients in production
    from plugin_publisher.integrations.discord import DiscordClient
    discord = DiscordClient(token=..., channel_id=...)
"""

import io
import logging
import zipfile
from dataclasses import dataclass, field
from typing import Any

import httpx

logger = logging.getLogger(__name__)


def _failure(message: str) -> httpx.HTTPError:
    return httpx.ConnectError(message)


# =============================================================================
# Mock Discord Client
# =============================================================================

@dataclass
class MockDiscordMessage:
    """Mock channel message."""
    id: str
    content: str
    embeds: list[dict[str, Any]] = field(default_factory=list)
    components: list[dict[str, Any]] = field(default_factory=list)
    edits: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "content": self.content,
            "embeds": self.embeds,
            "components": self.components,
        }


class MockDiscordClient:
    """Mock Discord API client replicating DiscordClient interface.

    Attributes:
        messages: Posted messages by id
        fail_edits: Make edit_message raise a transport error
        fail_lookups: Make get_message raise a transport error
    """

    def __init__(self, channel_id: str = "200") -> None:
        self.channel_id = channel_id
        self.messages: dict[str, MockDiscordMessage] = {}
        self.fail_edits = False
        self.fail_lookups = False
        self._next_id = 1000

    async def create_message(
        self,
        content: str,
        embeds: list[dict[str, Any]] | None = None,
        components: list[dict[str, Any]] | None = None,
    ) -> str:
        """Mock: Post a message to the channel."""
        self._next_id += 1
        message = MockDiscordMessage(
            id=str(self._next_id),
            content=content,
            embeds=embeds or [],
            components=components or [],
        )
        self.messages[message.id] = message
        logger.info(f"Mock: Posted message {message.id}: {content[:50]}")
        return message.id

    async def edit_message(
        self,
        message_id: str,
        *,
        content: str | None = None,
        embeds: list[dict[str, Any]] | None = None,
        components: list[dict[str, Any]] | None = None,
    ) -> dict[str, Any]:
        """Mock: Edit a message; raises like the real client on 404."""
        if self.fail_edits:
            raise _failure(f"Mock: edit of {message_id} failed")

        message = self.messages.get(message_id)
        if message is None:
            request = httpx.Request("PATCH", f"https://discord.test/messages/{message_id}")
            raise httpx.HTTPStatusError(
                "Unknown Message",
                request=request,
                response=httpx.Response(404, request=request),
            )

        if content is not None:
            message.content = content
        if embeds is not None:
            message.embeds = embeds
        if components is not None:
            message.components = components
        message.edits += 1
        return message.to_dict()

    async def get_message(self, message_id: str) -> dict[str, Any] | None:
        if self.fail_lookups:
            raise _failure(f"Mock: fetch of {message_id} timed out")
        message = self.messages.get(message_id)
        return message.to_dict() if message else None

    def delete_message(self, message_id: str) -> None:
        """Simulate a moderator deleting a review message."""
        self.messages.pop(message_id, None)

    def reset(self) -> None:
        """Reset mock state for fresh test."""
        self.messages.clear()
        self.fail_edits = False
        self.fail_lookups = False
        logger.info("MockDiscordClient reset")


# =============================================================================
# Mock GitHub Client
# =============================================================================

def make_log_archive(
    inputs: dict[str, str] | None,
    step: str = "build/2_Echo_Inputs.txt",
) -> bytes:
    """Build a workflow run log archive holding the echoed inputs.

    Args:
        inputs: owner/repository/plugin/commit, or None for a step without them
        step: Archive entry name of the echo step
    """
    if inputs is None:
        line = "nothing to see here\n"
    else:
        line = (
            "2024-01-01T00:00:00.0000000Z "
            f"owner:{inputs['owner']};repository:{inputs['repository']};"
            f"plugin:{inputs['plugin']};commit:{inputs['commit']};\n"
        )

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as bundle:
        bundle.writestr("build/1_Set up job.txt", "Starting job\n")
        bundle.writestr(step, line)
    return buffer.getvalue()


class MockGitHubClient:
    """Mock GitHub API client replicating GitHubClient interface.

    Attributes:
        commits: Commit window per (owner, repo), most recent first
        diffs: Diff text per (owner, repo, base, head)
        logs: Log archives per logs_url
        dispatches: Recorded workflow dispatches
        fail_dispatch: Make dispatch_workflow raise a transport error
    """

    def __init__(self) -> None:
        self.commits: dict[tuple[str, str], list[str]] = {}
        self.diffs: dict[tuple[str, str, str, str], str] = {}
        self.logs: dict[str, bytes] = {}
        self.dispatches: list[dict[str, Any]] = []
        self.fail_dispatch = False

    async def list_commits(self, owner: str, repo: str, count: int = 100) -> list[str]:
        return list(self.commits.get((owner, repo), []))[:count]

    async def get_compare_diff(self, owner: str, repo: str, base: str, head: str) -> str:
        diff = self.diffs.get((owner, repo, base, head))
        if diff is None:
            raise _failure(f"Mock: no diff for {owner}/{repo} {base}...{head}")
        return diff

    async def dispatch_workflow(
        self,
        owner: str,
        repo: str,
        workflow: str,
        ref: str,
        inputs: dict[str, str],
    ) -> None:
        if self.fail_dispatch:
            raise _failure("Mock: workflow dispatch failed")
        self.dispatches.append(
            {"owner": owner, "repo": repo, "workflow": workflow, "ref": ref, "inputs": inputs}
        )
        logger.info(f"Mock: Dispatched {workflow} with {inputs}")

    async def download_run_logs(self, logs_url: str) -> bytes:
        archive = self.logs.get(logs_url)
        if archive is None:
            raise _failure(f"Mock: no logs at {logs_url}")
        return archive

    def push(self, owner: str, repo: str, *commits: str) -> None:
        """Prepend commits to a repository's history (newest last in args)."""
        history = self.commits.setdefault((owner, repo), [])
        for commit in commits:
            history.insert(0, commit)

    def force_push(self, owner: str, repo: str, commits: list[str]) -> None:
        """Replace a repository's history."""
        self.commits[(owner, repo)] = list(commits)

    def reset(self) -> None:
        """Reset mock state for fresh test."""
        self.commits.clear()
        self.diffs.clear()
        self.logs.clear()
        self.dispatches.clear()
        self.fail_dispatch = False
        logger.info("MockGitHubClient reset")
