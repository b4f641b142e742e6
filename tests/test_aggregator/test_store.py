"""Tests for the in-memory token store and event emitter."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.aggregator.store import TOKEN_UPDATE, EventEmitter, TokenStore
from src.models.token import Chain
from tests.factories import make_token


class TestTokenStore:
    def test_put_and_get_by_chain(self) -> None:
        store = TokenStore()
        sol = make_token(id="A")
        bsc = make_token(id="0xB", chain=Chain.BSC, source="forr.meme")
        store.put(sol)
        store.put(bsc)

        assert store.get(Chain.SOLANA, "A") is sol
        assert store.get(Chain.BSC, "A") is None
        assert store.find("0xB") is bsc
        assert store.all_tokens() == [sol, bsc]
        assert len(store) == 2
        assert store.count(Chain.BSC) == 1

    def test_put_replaces_snapshot(self) -> None:
        store = TokenStore()
        store.put(make_token(id="A", volume=1.0))
        store.put(make_token(id="A", volume=2.0))
        assert store.get(Chain.SOLANA, "A").volume == 2.0
        assert len(store) == 1

    def test_migrated_map_stays_in_sync(self) -> None:
        store = TokenStore()
        store.mark_migrated(make_token(id="A", volume=1.0))
        assert store.is_migrated("A")

        updated = make_token(id="A", volume=5.0, migrated=True)
        store.put(updated)

        assert store.migrated_tokens() == [updated]
        assert store.solana_tokens() == [updated]

    def test_mark_migrated_sets_flag(self) -> None:
        store = TokenStore()
        token = store.mark_migrated(make_token(id="A"))
        assert token.migrated is True
        assert store.get(Chain.SOLANA, "A") is token

    def test_clear(self) -> None:
        store = TokenStore()
        store.mark_migrated(make_token(id="A"))
        store.clear()
        assert len(store) == 0
        assert store.migrated_tokens() == []


    def test_chain_capped_after_many_puts(self) -> None:
        store = TokenStore()
        for i in range(50_000):
            store.put(make_token(id=f"T{i}", created_at=i))
        assert store.count(Chain.SOLANA) <= store.max_per_chain
        assert store.get(Chain.SOLANA, "T49999") is not None
        assert store.get(Chain.SOLANA, "T0") is None

    def test_evicts_oldest_created_at(self) -> None:
        store = TokenStore(max_per_chain=10)
        for i in range(10):
            store.put(make_token(id=f"T{i}", created_at=100 + i))
        store.put(make_token(id="NEW", created_at=500))

        assert store.count(Chain.SOLANA) == 10
        assert store.get(Chain.SOLANA, "T0") is None
        assert store.get(Chain.SOLANA, "T1") is not None
        assert store.get(Chain.SOLANA, "NEW") is not None

    def test_just_put_token_survives_eviction(self) -> None:
        store = TokenStore(max_per_chain=3)
        for i in range(3):
            store.put(make_token(id=f"T{i}", created_at=1_000 + i))
        store.put(make_token(id="BACKFILLED", created_at=0))
        assert store.get(Chain.SOLANA, "BACKFILLED") is not None
        assert store.count(Chain.SOLANA) == 3

    def test_chains_capped_independently(self) -> None:
        store = TokenStore(max_per_chain=2)
        for i in range(5):
            store.put(make_token(id=f"S{i}", created_at=i))
        store.put(make_token(id="0xB", chain=Chain.BSC, source="forr.meme"))
        assert store.count(Chain.SOLANA) == 2
        assert store.count(Chain.BSC) == 1

    def test_migrated_map_capped(self) -> None:
        store = TokenStore(max_per_chain=3)
        for i in range(6):
            store.mark_migrated(make_token(id=f"M{i}", created_at=i))
        assert len(store.migrated_tokens()) == 3
        assert not store.is_migrated("M0")
        assert store.is_migrated("M5")

class TestEventEmitter:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self) -> None:
        emitter = EventEmitter()
        sync_cb = MagicMock(return_value=None)
        async_cb = AsyncMock()
        emitter.on(TOKEN_UPDATE, sync_cb)
        emitter.on(TOKEN_UPDATE, async_cb)

        await emitter.emit(TOKEN_UPDATE, "payload")

        sync_cb.assert_called_once_with("payload")
        async_cb.assert_awaited_once_with("payload")

    @pytest.mark.asyncio
    async def test_failing_listener_isolated(self) -> None:
        emitter = EventEmitter()
        bad = MagicMock(side_effect=RuntimeError("boom"))
        good = MagicMock(return_value=None)
        emitter.on(TOKEN_UPDATE, bad)
        emitter.on(TOKEN_UPDATE, good)

        await emitter.emit(TOKEN_UPDATE, 1)

        good.assert_called_once_with(1)

    @pytest.mark.asyncio
    async def test_off(self) -> None:
        emitter = EventEmitter()
        cb = MagicMock(return_value=None)
        emitter.on(TOKEN_UPDATE, cb)
        emitter.off(TOKEN_UPDATE, cb)
        emitter.off(TOKEN_UPDATE, cb)  # unknown listener is a no-op

        await emitter.emit(TOKEN_UPDATE, 1)

        cb.assert_not_called()
        assert emitter.listener_count(TOKEN_UPDATE) == 0
