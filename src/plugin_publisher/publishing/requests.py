"""Submission and cleanup of publish requests.

Wraps the raw store with the behaviour around review messages: a request
whose message has disappeared from the channel is stale and gets evicted,
which lets the next submission for the same key start over with a fresh
request and message. A request that has no message id yet belongs to a
submission still posting its message, and is joined rather than evicted.
"""

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import httpx

from ..infrastructure.store import PublishRequest, PublishRequestStore
from ..observability import record

logger = logging.getLogger(__name__)

MESSAGE_POLL_INTERVAL = 0.05


class MessageLookup(Protocol):
    async def get_message(self, message_id: str) -> dict | None:
        ...


@dataclass
class SubmitResult:
    """Outcome of a submission.

    ``message_id`` is None both for a new request and for one joined while
    its first submission is still posting the review message.
    """

    request: PublishRequest
    message_id: str | None
    updates: int
    created: bool = False

    @property
    def in_flight(self) -> bool:
        return not self.created and self.message_id is None


class PublishRequests:
    """Publish request operations shared by the submit and webhook paths."""

    def __init__(self, store: PublishRequestStore, messages: MessageLookup) -> None:
        self.store = store
        self.messages = messages

    async def message_exists(self, request: PublishRequest) -> bool:
        if request.message_id is None:
            return False
        try:
            return await self.messages.get_message(request.message_id) is not None
        except httpx.HTTPError as e:
            logger.warning(f"Could not verify message {request.message_id}, treating as gone: {e}")
            return False

    async def evict(self, request: PublishRequest) -> bool:
        """Delete a stale request unless it was already replaced."""
        if await self.store.delete(request.owner, request.repo, request.plugin, expected_id=request.id):
            record("requests_evicted")
            return True
        return False

    async def verify_or_evict(self, request: PublishRequest) -> bool:
        """Check the request's review message still exists.

        Deletes the request when the message is missing, was never posted,
        or cannot be fetched. Safe to call repeatedly.

        Returns:
            True if the request is still live
        """
        if await self.message_exists(request):
            return True

        logger.info(f"Review message for request {request.id} is gone, evicting request")
        await self.evict(request)
        return False

    async def submit(self, owner: str, repo: str, plugin: str, target_commit: str) -> SubmitResult:
        """Create a request or update the open one for the same key.

        Returns:
            The updated request with its message id and revision, or the new
            request with ``created`` set
        """
        existing = await self.store.get(owner, repo, plugin)
        if existing is not None and (existing.message_id is None or await self.verify_or_evict(existing)):
            updated = await self.store.bump(owner, repo, plugin, target_commit, expected_id=existing.id)
            if updated is not None:
                return SubmitResult(updated, updated.message_id, updated.updates)

        created = await self.store.create(owner, repo, plugin, target_commit)
        if created is not None:
            return SubmitResult(created, None, 0, created=True)

        # Lost a race against a concurrent submission; join the winner.
        winner = await self.store.bump(owner, repo, plugin, target_commit)
        if winner is None:
            raise RuntimeError(f"Publish request for {owner}/{repo} -> {plugin} vanished during submit")
        return SubmitResult(winner, winner.message_id, winner.updates)

    async def await_message(self, request: PublishRequest, timeout: float) -> str | None:
        """Wait for a concurrent submission to attach its review message.

        Returns:
            The message id, or None if the request was replaced, deleted or
            still has no message when ``timeout`` elapses
        """
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while True:
            current = await self.store.get(request.owner, request.repo, request.plugin)
            if current is None or current.id != request.id:
                return None
            if current.message_id is not None:
                return current.message_id
            if loop.time() >= deadline:
                logger.warning(f"Request {request.id} still has no review message after {timeout}s")
                return None
            await asyncio.sleep(MESSAGE_POLL_INTERVAL)

    async def finalize(self, request: PublishRequest) -> bool:
        """Delete a request that reached a terminal outcome."""
        return await self.store.delete(request.owner, request.repo, request.plugin, expected_id=request.id)
