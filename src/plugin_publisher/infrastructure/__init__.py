"""Infrastructure layer for the plugin publisher.

Provides the Redis-backed components:
- Publish request store and approved-commit ledger
- Global build slot
"""

from .build_slot import BuildHolder, BuildSlot
from .store import (
    PluginRepoLedger,
    PublishRequest,
    PublishRequestStore,
    create_redis,
)

__all__ = [
    "BuildHolder",
    "BuildSlot",
    "PluginRepoLedger",
    "PublishRequest",
    "PublishRequestStore",
    "create_redis",
]
