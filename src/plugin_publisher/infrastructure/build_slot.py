"""Global single-build admission slot.

Only one approved plugin build may run at a time across the whole service.
The slot is a single Redis key set with NX and a TTL, so a lost completion
webhook cannot block approvals forever. Release is compare-and-delete on
the plugin identity, which keeps a late completion for one plugin from
freeing a slot another plugin has since acquired.
"""

import json
import logging
from dataclasses import asdict, dataclass

import redis.asyncio as redis
from redis.exceptions import WatchError

logger = logging.getLogger(__name__)

SLOT_KEY = "build_slot"


@dataclass(frozen=True)
class BuildHolder:
    """The plugin build currently occupying the slot."""

    request_id: int
    owner: str
    repo: str
    plugin: str
    commit: str

    def matches(self, owner: str, repo: str, plugin: str) -> bool:
        return (self.owner, self.repo, self.plugin) == (owner, repo, plugin)

    def to_dict(self) -> dict:
        return asdict(self)


class BuildSlot:
    """Explicit acquire/release access to the build slot."""

    def __init__(self, client: redis.Redis, ttl: int = 3600) -> None:
        self._redis = client
        self.ttl = ttl

    async def current(self) -> BuildHolder | None:
        value = await self._redis.get(SLOT_KEY)
        if value is None:
            return None
        return BuildHolder(**json.loads(value))

    async def is_free(self) -> bool:
        return not await self._redis.exists(SLOT_KEY)

    async def acquire(self, holder: BuildHolder) -> bool:
        """Take the slot if it is free.

        Returns:
            True if the slot now belongs to ``holder``
        """
        acquired = await self._redis.set(
            SLOT_KEY,
            json.dumps(holder.to_dict()),
            nx=True,
            ex=self.ttl,
        )
        if acquired:
            logger.info(f"Build slot acquired by {holder.owner}/{holder.repo} -> {holder.plugin}")
        return bool(acquired)

    async def release(self, owner: str, repo: str, plugin: str) -> bool:
        """Free the slot if it is held by this plugin.

        Returns:
            True if the slot was released
        """
        async with self._redis.pipeline(transaction=True) as pipe:
            while True:
                try:
                    await pipe.watch(SLOT_KEY)
                    value = await pipe.get(SLOT_KEY)
                    if value is None:
                        return False
                    if not BuildHolder(**json.loads(value)).matches(owner, repo, plugin):
                        return False
                    pipe.multi()
                    pipe.delete(SLOT_KEY)
                    await pipe.execute()
                    break
                except WatchError:
                    logger.debug("Conflict releasing build slot, retrying")

        logger.info(f"Build slot released by {owner}/{repo} -> {plugin}")
        return True
