"""Tests for the key layout and the Redis store error mapping."""
from unittest.mock import AsyncMock

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError
from redis.exceptions import TimeoutError as RedisTimeoutError

from voting_service.exceptions import StorageError
from voting_service.redis_client import RedisStore
from voting_service.store import (
    CredentialStore,
    claim_key,
    credential_key,
    parse_counter,
    password_digest,
)

ALICE = "alice@example.com"


def test_key_namespaces():
    assert credential_key(ALICE) == "alice@example.com.cred"
    assert claim_key(ALICE) == "alice@example.com.claim"


def test_password_digest():
    assert password_digest("pw") == password_digest("pw")
    assert password_digest("pw") != password_digest("pw2")
    assert len(password_digest("pw")) == 64


@pytest.mark.parametrize("value, expected", [(None, 0), ("0", 0), ("1", 1), ("42", 42)])
def test_parse_counter(value, expected):
    assert parse_counter("k", value) == expected


@pytest.mark.parametrize("value", ["", "x", "-3", "2.0"])
def test_parse_counter_rejects(value):
    with pytest.raises(StorageError):
        parse_counter("k", value)


@pytest.mark.asyncio
class TestCredentialStore:
    """Tests for CredentialStore over the in-memory store."""

    async def test_credentials(self, store):
        credentials = CredentialStore(store)
        assert not await credentials.has_credential(ALICE)
        await credentials.save_credential(ALICE, "pw")
        assert await credentials.has_credential(ALICE)
        # The counter key is separate from the credential key.
        assert await credentials.voter_count(ALICE) == 0

    async def test_counters(self, store):
        credentials = CredentialStore(store)
        assert await credentials.increment_candidate("JoeBiden") == 1
        assert await credentials.increment_candidate("JoeBiden") == 2
        assert await credentials.mark_voted(ALICE) == 1
        assert await credentials.voter_count(ALICE) == 1
        assert await credentials.candidate_counts(["JoeBiden", "DonaldTrump"]) == ["2", None]

    async def test_claim_is_one_shot(self, store):
        credentials = CredentialStore(store)
        assert await credentials.claim_voter(ALICE) is True
        assert await credentials.claim_voter(ALICE) is False

    async def test_released_claim_can_be_taken_again(self, store):
        credentials = CredentialStore(store)
        assert await credentials.claim_voter(ALICE) is True
        await credentials.release_claim(ALICE)
        assert claim_key(ALICE) not in store.data
        assert await credentials.claim_voter(ALICE) is True

    async def test_short_batched_read_is_storage_error(self, store):
        store.mget = AsyncMock(return_value=["1"])
        with pytest.raises(StorageError):
            await CredentialStore(store).candidate_counts(["A", "B"])


@pytest.mark.asyncio
class TestRedisStore:
    """RedisStore behaviour with the client mocked out."""

    @pytest.fixture
    def redis_store(self, settings):
        return RedisStore(settings)

    async def test_get_and_incr(self, redis_store):
        redis_store.client = AsyncMock()
        redis_store.client.get.return_value = "3"
        redis_store.client.incr.return_value = 4

        assert await redis_store.get("JoeBiden") == "3"
        assert await redis_store.incr("JoeBiden") == 4

    async def test_set_if_absent_uses_nx(self, redis_store):
        redis_store.client = AsyncMock()
        redis_store.client.set.return_value = None

        assert await redis_store.set_if_absent("k", "1") is False
        redis_store.client.set.assert_awaited_once_with("k", "1", nx=True)

    async def test_delete(self, redis_store):
        redis_store.client = AsyncMock()

        await redis_store.delete("alice@example.com.claim")
        redis_store.client.delete.assert_awaited_once_with("alice@example.com.claim")

    async def test_mget_passes_list(self, redis_store):
        redis_store.client = AsyncMock()
        redis_store.client.mget.return_value = ["1", None]

        assert await redis_store.mget(("A", "B")) == ["1", None]
        redis_store.client.mget.assert_awaited_once_with(["A", "B"])

    @pytest.mark.parametrize(
        "method, args",
        [
            ("get", ("k",)),
            ("set", ("k", "v")),
            ("set_if_absent", ("k", "v")),
            ("delete", ("k",)),
            ("incr", ("k",)),
            ("mget", (["a", "b"],)),
            ("ping", ()),
        ],
    )
    @pytest.mark.parametrize("error", [RedisConnectionError("down"), RedisTimeoutError("slow")])
    async def test_redis_errors_become_storage_errors(self, redis_store, method, args, error):
        redis_store.client = AsyncMock()
        client_method = "set" if method == "set_if_absent" else method
        getattr(redis_store.client, client_method).side_effect = error

        with pytest.raises(StorageError):
            await getattr(redis_store, method)(*args)
