"""Tests for the Redis publish request store and ledger."""

import asyncio

import pytest

from plugin_publisher.infrastructure.store import (
    PluginRepoLedger,
    PublishRequest,
    PublishRequestStore,
    ledger_key,
    request_id_key,
    request_key,
)


@pytest.fixture
def store(redis_client) -> PublishRequestStore:
    return PublishRequestStore(redis_client)


@pytest.fixture
def ledger(redis_client) -> PluginRepoLedger:
    return PluginRepoLedger(redis_client)


class TestPublishRequest:
    def test_hash_round_trip(self):
        request = PublishRequest(7, "alice", "plugins", "Foo", "abc", updates=2, message_id="99", status="approved")
        assert PublishRequest.from_hash(request.to_hash()) == request

    def test_missing_message_id_is_left_out(self):
        request = PublishRequest(7, "alice", "plugins", "Foo", "abc")
        assert "message_id" not in request.to_hash()
        assert PublishRequest.from_hash(request.to_hash()).message_id is None


class TestPublishRequestStore:
    async def test_create_and_get(self, store, redis_client):
        created = await store.create("alice", "plugins", "Foo", "abc")

        assert created is not None
        assert created.updates == 0
        assert created.status == "pending"
        assert await store.get("alice", "plugins", "Foo") == created
        assert await redis_client.get(request_id_key(created.id)) == request_key("alice", "plugins", "Foo")

    async def test_ids_increase(self, store):
        first = await store.create("alice", "plugins", "Foo", "abc")
        second = await store.create("alice", "plugins", "Bar", "abc")
        assert second.id > first.id

    async def test_create_existing_key_returns_none(self, store):
        await store.create("alice", "plugins", "Foo", "abc")
        assert await store.create("alice", "plugins", "Foo", "def") is None

    async def test_same_plugin_different_repos_are_separate(self, store):
        assert await store.create("alice", "one", "Foo", "abc") is not None
        assert await store.create("alice", "two", "Foo", "abc") is not None

    async def test_get_by_id(self, store):
        created = await store.create("alice", "plugins", "Foo", "abc")
        assert await store.get_by_id(created.id) == created
        assert await store.get_by_id(created.id + 100) is None

    async def test_bump(self, store):
        created = await store.create("alice", "plugins", "Foo", "abc")

        bumped = await store.bump("alice", "plugins", "Foo", "def", expected_id=created.id)

        assert bumped.target_commit == "def"
        assert bumped.updates == 1
        assert await store.get("alice", "plugins", "Foo") == bumped

    async def test_bump_guarded_by_id(self, store):
        created = await store.create("alice", "plugins", "Foo", "abc")
        assert await store.bump("alice", "plugins", "Foo", "def", expected_id=created.id + 1) is None
        assert (await store.get("alice", "plugins", "Foo")).updates == 0

    async def test_bump_missing(self, store):
        assert await store.bump("alice", "plugins", "Foo", "def") is None

    async def test_concurrent_bumps_lose_nothing(self, store):
        created = await store.create("alice", "plugins", "Foo", "c0")

        await asyncio.gather(
            *(store.bump("alice", "plugins", "Foo", f"c{i}", expected_id=created.id) for i in range(1, 11))
        )

        assert (await store.get("alice", "plugins", "Foo")).updates == 10

    async def test_set_message_id_and_status(self, store):
        created = await store.create("alice", "plugins", "Foo", "abc")

        await store.set_message_id(created, "555")
        updated = await store.set_status(created, "approved")

        assert updated.message_id == "555"
        assert updated.status == "approved"

    async def test_delete(self, store, redis_client):
        created = await store.create("alice", "plugins", "Foo", "abc")

        assert await store.delete("alice", "plugins", "Foo") is True

        assert await store.get("alice", "plugins", "Foo") is None
        assert await store.get_by_id(created.id) is None
        assert await redis_client.exists(request_id_key(created.id)) == 0

    async def test_delete_guarded_by_id(self, store):
        created = await store.create("alice", "plugins", "Foo", "abc")
        assert await store.delete("alice", "plugins", "Foo", expected_id=created.id + 1) is False
        assert await store.get("alice", "plugins", "Foo") is not None

    async def test_delete_missing(self, store):
        assert await store.delete("alice", "plugins", "Foo") is False


class TestPluginRepoLedger:
    async def test_unknown_repository(self, ledger):
        assert await ledger.get("alice", "plugins") is None

    async def test_replace_and_get(self, ledger, redis_client):
        await ledger.replace("alice", "plugins", ["c3", "c2", "c1"])

        assert await ledger.get("alice", "plugins") == ["c3", "c2", "c1"]
        assert await redis_client.get(ledger_key("alice", "plugins")) == "c3,c2,c1"

    async def test_replace_overwrites(self, ledger):
        await ledger.replace("alice", "plugins", ["c1"])
        await ledger.replace("alice", "plugins", ["c2", "c1"])
        assert await ledger.get("alice", "plugins") == ["c2", "c1"]
