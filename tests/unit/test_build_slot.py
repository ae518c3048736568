"""Tests for the global build slot."""

import pytest

from plugin_publisher.infrastructure.build_slot import SLOT_KEY, BuildHolder, BuildSlot

FOO = BuildHolder(1, "alice", "plugins", "Foo", "abc")
BAR = BuildHolder(2, "bob", "things", "Bar", "def")


@pytest.fixture
def slot(redis_client) -> BuildSlot:
    return BuildSlot(redis_client, ttl=60)


class TestBuildSlot:
    async def test_starts_free(self, slot):
        assert await slot.is_free()
        assert await slot.current() is None

    async def test_acquire(self, slot, redis_client):
        assert await slot.acquire(FOO) is True

        assert not await slot.is_free()
        assert await slot.current() == FOO
        assert 0 < await redis_client.ttl(SLOT_KEY) <= 60

    async def test_only_one_holder(self, slot):
        assert await slot.acquire(FOO) is True
        assert await slot.acquire(BAR) is False
        assert await slot.current() == FOO

    async def test_release_by_holder(self, slot):
        await slot.acquire(FOO)

        assert await slot.release("alice", "plugins", "Foo") is True
        assert await slot.is_free()

    async def test_release_by_other_plugin_keeps_slot(self, slot):
        await slot.acquire(FOO)

        assert await slot.release("bob", "things", "Bar") is False
        assert await slot.current() == FOO

    async def test_release_when_free(self, slot):
        assert await slot.release("alice", "plugins", "Foo") is False

    async def test_holder_to_dict(self):
        assert FOO.to_dict() == {
            "request_id": 1,
            "owner": "alice",
            "repo": "plugins",
            "plugin": "Foo",
            "commit": "abc",
        }
