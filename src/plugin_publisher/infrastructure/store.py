"""Redis persistence for publish requests and the approved-commit ledger.

Usage:
    from plugin_publisher.infrastructure.store import create_redis, PublishRequestStore

    client = create_redis("redis://localhost:6379/0")
    store = PublishRequestStore(client)
    request = await store.create("owner", "repo", "Plugin", "abc123")

Every read-modify-write on a request runs as an optimistic transaction
(WATCH/MULTI/EXEC, retried on conflict), so concurrent submissions and
completions for the same key never lose an update or leave two rows.
The client must be created with ``decode_responses=True``.
"""

import logging
from dataclasses import dataclass

import redis.asyncio as redis
from redis.exceptions import WatchError

logger = logging.getLogger(__name__)

NEXT_ID_KEY = "publish_request:next_id"


def create_redis(url: str) -> redis.Redis:
    """Create the Redis client used by the stores."""
    return redis.from_url(url, decode_responses=True)


def request_key(owner: str, repo: str, plugin: str) -> str:
    return f"publish_request:{owner}/{repo}/{plugin}"


def request_id_key(request_id: int) -> str:
    return f"publish_request_id:{request_id}"


def ledger_key(owner: str, repo: str) -> str:
    return f"plugin_repo:{owner}/{repo}"


@dataclass
class PublishRequest:
    """An open publish request."""

    id: int
    owner: str
    repo: str
    plugin: str
    target_commit: str
    updates: int = 0
    message_id: str | None = None
    status: str = "pending"

    @property
    def key(self) -> str:
        return request_key(self.owner, self.repo, self.plugin)

    def to_hash(self) -> dict[str, str]:
        """Convert to a Redis hash mapping (None fields are left out)."""
        data = {
            "id": str(self.id),
            "owner": self.owner,
            "repo": self.repo,
            "plugin": self.plugin,
            "target_commit": self.target_commit,
            "updates": str(self.updates),
            "status": self.status,
        }
        if self.message_id is not None:
            data["message_id"] = self.message_id
        return data

    @classmethod
    def from_hash(cls, data: dict[str, str]) -> "PublishRequest":
        """Create from a Redis hash."""
        return cls(
            id=int(data["id"]),
            owner=data["owner"],
            repo=data["repo"],
            plugin=data["plugin"],
            target_commit=data["target_commit"],
            updates=int(data.get("updates", 0)),
            message_id=data.get("message_id") or None,
            status=data.get("status", "pending"),
        )


class PublishRequestStore:
    """CRUD access to publish requests keyed by (owner, repo, plugin)."""

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    async def get(self, owner: str, repo: str, plugin: str) -> PublishRequest | None:
        data = await self._redis.hgetall(request_key(owner, repo, plugin))
        return PublishRequest.from_hash(data) if data else None

    async def get_by_id(self, request_id: int) -> PublishRequest | None:
        """Resolve a request from the id encoded in its buttons."""
        key = await self._redis.get(request_id_key(request_id))
        if key is None:
            return None

        data = await self._redis.hgetall(key)
        if not data or int(data["id"]) != request_id:
            return None
        return PublishRequest.from_hash(data)

    async def create(
        self,
        owner: str,
        repo: str,
        plugin: str,
        target_commit: str,
    ) -> PublishRequest | None:
        """Insert a new request with revision 0.

        Returns:
            The new request, or None if one already exists for the key
        """
        key = request_key(owner, repo, plugin)
        request_id = await self._redis.incr(NEXT_ID_KEY)
        request = PublishRequest(
            id=request_id,
            owner=owner,
            repo=repo,
            plugin=plugin,
            target_commit=target_commit,
        )

        async with self._redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    if await pipe.exists(key):
                        return None
                    pipe.multi()
                    pipe.hset(key, mapping=request.to_hash())
                    pipe.set(request_id_key(request_id), key)
                    await pipe.execute()
                    break
                except WatchError:
                    logger.debug(f"Conflict creating {key}, retrying")

        logger.info(f"Created publish request {request_id} for {owner}/{repo} -> {plugin}")
        return request

    async def _update(
        self,
        key: str,
        expected_id: int | None,
        fields: dict[str, str] | None = None,
        increment: str | None = None,
    ) -> PublishRequest | None:
        async with self._redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    current = await pipe.hgetall(key)
                    if not current:
                        return None
                    if expected_id is not None and int(current["id"]) != expected_id:
                        return None
                    pipe.multi()
                    if fields:
                        pipe.hset(key, mapping=fields)
                    if increment:
                        pipe.hincrby(key, increment, 1)
                    await pipe.execute()
                    break
                except WatchError:
                    logger.debug(f"Conflict updating {key}, retrying")

        updated = PublishRequest.from_hash({**current, **(fields or {})})
        if increment:
            setattr(updated, increment, getattr(updated, increment) + 1)
        return updated

    async def bump(
        self,
        owner: str,
        repo: str,
        plugin: str,
        target_commit: str,
        expected_id: int | None = None,
    ) -> PublishRequest | None:
        """Set a new target commit and increment the revision counter.

        Returns:
            The updated request, or None if it vanished or was replaced
        """
        return await self._update(
            request_key(owner, repo, plugin),
            expected_id,
            fields={"target_commit": target_commit},
            increment="updates",
        )

    async def set_message_id(self, request: PublishRequest, message_id: str) -> PublishRequest | None:
        return await self._update(request.key, request.id, fields={"message_id": message_id})

    async def set_status(self, request: PublishRequest, status: str) -> PublishRequest | None:
        return await self._update(request.key, request.id, fields={"status": status})

    async def delete(
        self,
        owner: str,
        repo: str,
        plugin: str,
        expected_id: int | None = None,
    ) -> bool:
        """Delete the open request for a key.

        Args:
            expected_id: Only delete if the stored request still has this id

        Returns:
            True if a row was deleted
        """
        key = request_key(owner, repo, plugin)
        async with self._redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(key)
                    current_id = await pipe.hget(key, "id")
                    if current_id is None:
                        return False
                    if expected_id is not None and int(current_id) != expected_id:
                        return False
                    pipe.multi()
                    pipe.delete(key)
                    pipe.delete(request_id_key(int(current_id)))
                    await pipe.execute()
                    break
                except WatchError:
                    logger.debug(f"Conflict deleting {key}, retrying")

        logger.info(f"Deleted publish request {current_id} for {owner}/{repo} -> {plugin}")
        return True


class PluginRepoLedger:
    """Approved commit history per repository, most recent first."""

    SEPARATOR = ","

    def __init__(self, client: redis.Redis) -> None:
        self._redis = client

    async def get(self, owner: str, repo: str) -> list[str] | None:
        """Return the approved commits, or None if the repo was never approved."""
        value = await self._redis.get(ledger_key(owner, repo))
        if not value:
            return None
        return value.split(self.SEPARATOR)

    async def replace(self, owner: str, repo: str, commits: list[str]) -> None:
        """Overwrite the ledger with a fresh commit window."""
        await self._redis.set(ledger_key(owner, repo), self.SEPARATOR.join(commits))
        logger.info(f"Ledger for {owner}/{repo} now holds {len(commits)} commits")
