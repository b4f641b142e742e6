"""Tests for MultiChainTokenService feed handling and backfills."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import httpx
import pytest

from src.aggregator.service import (
    MultiChainTokenService,
    SolanaRpcError,
    token_from_bsc,
    token_from_pumpfun,
    token_from_pumpportal,
)
from src.aggregator.store import MIGRATION_UPDATE, TOKEN_UPDATE
from src.models.token import Chain, TokenEnrichment
from src.parsers.pumpfun.models import PumpfunTokenInfo
from src.parsers.pumpportal.models import PumpPortalEvent
from src.parsers.router import EventKind
from tests.factories import SOL_MINT

NOW = 1_700_000_000_000

CREATE_FRAME = {
    "signature": "5sig",
    "mint": SOL_MINT,
    "traderPublicKey": "DevWallet",
    "txType": "create",
    "initialBuy": 1000,
    "solAmount": 1.5,
    "marketCapSol": 30.5,
    "name": "Popcat",
    "symbol": "POPCAT",
    "uri": "https://ipfs.io/meta.json",
    "pool": "pump",
}


class TestConverters:
    def test_pumpportal_fallbacks(self) -> None:
        event = PumpPortalEvent.model_validate({"mint": "M", "image": "https://img"})
        token = token_from_pumpportal(event, NOW)
        assert token.name == "Token"
        assert token.symbol == "TKN"
        assert token.image == "https://img"
        assert token.time == "0s"
        assert token.transactions == 1
        assert token.activity.trades == 1
        assert token.percentages == [0.0] * 5
        assert token.source == "pumpportal"
        assert token.created_at == NOW

    def test_pumpportal_uses_uri_and_sol_values(self) -> None:
        token = token_from_pumpportal(PumpPortalEvent.model_validate(CREATE_FRAME), NOW)
        assert token.name == "Popcat"
        assert token.image == "https://ipfs.io/meta.json"
        assert token.market_cap == 30.5
        assert token.volume == 1.5

    def test_pumpportal_seconds_timestamp(self) -> None:
        event = PumpPortalEvent.model_validate({"mint": "M", "symbol": "X", "timestamp": (NOW - 120_000) / 1000})
        token = token_from_pumpportal(event, NOW)
        assert token.time == "2m"
        assert token.created_at == NOW - 120_000

    def test_bsc_aliases(self) -> None:
        token = token_from_bsc(
            {
                "contract": "0xabc",
                "ticker": "BNBCAT",
                "imageUrl": "https://img/bnbcat.png",
                "mc": "15000",
                "vol": 250,
                "txCount": 12,
                "pct": 0.5,
                "bnbPrice": "0.0001",
                "holders": 40,
                "timestamp": NOW - 5_000,
            },
            NOW,
        )
        assert token.id == "0xabc"
        assert token.name == "BNBCAT"
        assert token.symbol == "BNBCAT"
        assert token.image == "https://img/bnbcat.png"
        assert token.market_cap == 15000.0
        assert token.volume == 250.0
        assert token.transactions == 12
        assert token.percentages == [20, 40, 50, 0, 0]
        assert token.price == 0.0001
        assert token.activity.holders == 40
        assert token.time == "5s"
        assert token.chain == Chain.BSC
        assert token.source == "forr.meme"

    def test_bsc_missing_id_gets_uuid(self) -> None:
        token = token_from_bsc({"symbol": "X"}, NOW)
        assert len(token.id) == 36

    def test_pumpfun(self) -> None:
        info = PumpfunTokenInfo(mint="M", name="Frog", symbol="FROG", logo="https://l", price_usd=0.2, is_migrated=True)
        token = token_from_pumpfun(info, NOW)
        assert token.migrated is True
        assert token.source == "pumpfun"
        assert token.price == 0.2
        assert token.enrichment is not None and token.enrichment.logo == "https://l"


class TestSolanaEvents:
    @pytest.mark.asyncio
    async def test_new_token_stored_and_emitted(self, service: MultiChainTokenService) -> None:
        listener = MagicMock(return_value=None)
        service.on(TOKEN_UPDATE, listener)

        kind = await service.handle_solana_event(CREATE_FRAME)

        assert kind == EventKind.NEW_TOKEN
        token = service.store.get(Chain.SOLANA, SOL_MINT)
        assert token is not None and token.symbol == "POPCAT"
        listener.assert_called_once_with(token)

    @pytest.mark.asyncio
    async def test_trade_updates_known_token(self, service: MultiChainTokenService) -> None:
        await service.handle_solana_event(CREATE_FRAME)

        kind = await service.handle_solana_event(
            {"mint": SOL_MINT, "traderPublicKey": "W", "solAmount": 2.0, "marketCapSol": 45.0, "txType": "buy"}
        )

        assert kind == EventKind.TRADE
        token = service.store.get(Chain.SOLANA, SOL_MINT)
        assert token.volume == 3.5
        assert token.market_cap == 45.0
        assert token.transactions == 2
        assert token.activity.trades == 2

    @pytest.mark.asyncio
    async def test_trade_for_unknown_mint_ignored(self, service: MultiChainTokenService) -> None:
        listener = MagicMock(return_value=None)
        service.on(TOKEN_UPDATE, listener)

        await service.handle_solana_event({"mint": "Unknown", "traderPublicKey": "W", "solAmount": 1.0})

        assert len(service.store) == 0
        listener.assert_not_called()

    @pytest.mark.asyncio
    async def test_migration_of_known_token(self, service: MultiChainTokenService) -> None:
        await service.handle_solana_event(CREATE_FRAME)
        token_events = MagicMock(return_value=None)
        migration_events = MagicMock(return_value=None)
        service.on(TOKEN_UPDATE, token_events)
        service.on(MIGRATION_UPDATE, migration_events)

        kind = await service.handle_solana_event({"mint": SOL_MINT, "pool": "pump-amm", "solAmount": 0.5})

        assert kind == EventKind.MIGRATION
        token = service.store.get(Chain.SOLANA, SOL_MINT)
        assert token.migrated is True
        assert token.transactions == 2
        assert token.volume == 2.0
        assert service.migrated_tokens() == [token]
        token_events.assert_called_once_with(token)
        migration_events.assert_called_once_with(token)

    @pytest.mark.asyncio
    async def test_migration_of_unknown_token_creates_it(self, service: MultiChainTokenService) -> None:
        await service.handle_solana_event({"mint": "NewMint", "txType": "migration"})

        token = service.store.get(Chain.SOLANA, "NewMint")
        assert token is not None
        assert token.migrated is True
        assert token.symbol == "TKN"

    @pytest.mark.asyncio
    async def test_ack_frames_ignored(self, service: MultiChainTokenService) -> None:
        kind = await service.handle_solana_event({"message": "Successfully subscribed to keys."})
        assert kind == EventKind.IGNORED
        assert len(service.store) == 0

    @pytest.mark.asyncio
    async def test_enrichment_scheduled_when_enabled(
        self, make_settings, pumpfun_mock: AsyncMock, dexscreener_mock: AsyncMock
    ) -> None:
        cfg = make_settings(enable_pumpportal=False, enable_enrichment=True)
        service = MultiChainTokenService(cfg, pumpfun=pumpfun_mock, dexscreener=dexscreener_mock)
        dexscreener_mock.fetch_token_info.return_value = TokenEnrichment(price_usd=1.25)

        await service.handle_solana_event(CREATE_FRAME)
        assert service.pending_enrichments == 1
        await asyncio.gather(*service._pending_tasks)

        pumpfun_mock.fetch_token_info.assert_awaited_once_with(SOL_MINT)
        assert service.store.get(Chain.SOLANA, SOL_MINT).price == 1.25
        assert service.pending_enrichments == 0
        await service.stop()


class TestBscEvents:
    @pytest.mark.asyncio
    async def test_handle_bsc_event(self, service: MultiChainTokenService) -> None:
        await service.handle_bsc_event({"address": "0xabc", "symbol": "BNBCAT"})
        assert [t.id for t in service.bsc_tokens()] == ["0xabc"]
        assert service.all_tokens()[0].chain == Chain.BSC


class TestBackfills:
    @pytest.mark.asyncio
    async def test_fetch_migrated_from_feed(self, service: MultiChainTokenService, pumpfun_mock: AsyncMock) -> None:
        pumpfun_mock.fetch_migrated_tokens.return_value = [
            PumpfunTokenInfo(mint="M1", symbol="A", is_migrated=True),
            PumpfunTokenInfo(mint="", symbol="B", is_migrated=True),
        ]

        tokens = await service.fetch_migrated_tokens()

        assert [t.id for t in tokens] == ["M1"]
        pumpfun_mock.fetch_migrated_tokens.assert_awaited_once_with(100)
        assert service.store.get(Chain.SOLANA, "M1") is not None

    @pytest.mark.asyncio
    async def test_fetch_migrated_by_mints_keeps_graduated(
        self, service: MultiChainTokenService, pumpfun_mock: AsyncMock
    ) -> None:
        infos = {
            "M1": PumpfunTokenInfo(mint="M1", is_migrated=True),
            "M2": PumpfunTokenInfo(mint="M2", is_migrated=False),
        }
        pumpfun_mock.fetch_token_info.side_effect = lambda mint: infos.get(mint)

        tokens = await service.fetch_migrated_tokens(["M1", "M2", "M3"])

        assert [t.id for t in tokens] == ["M1"]

    @pytest.mark.asyncio
    async def test_fetch_migrated_error_is_empty(self, service: MultiChainTokenService, pumpfun_mock: AsyncMock) -> None:
        pumpfun_mock.fetch_migrated_tokens.side_effect = RuntimeError("down")
        assert await service.fetch_migrated_tokens() == []

    @pytest.mark.asyncio
    async def test_fetch_solana_tokens_is_socket_only(self, service: MultiChainTokenService) -> None:
        assert await service.fetch_solana_tokens() == []

    @pytest.mark.asyncio
    async def test_fetch_bsc_disabled_without_url(self, service: MultiChainTokenService) -> None:
        assert await service.fetch_bsc_tokens() == []

    @pytest.mark.asyncio
    async def test_fetch_bsc_tokens(self, make_settings, pumpfun_mock, dexscreener_mock) -> None:
        cfg = make_settings(enable_pumpportal=False, bsc_api_url="https://bsc.example/")
        service = MultiChainTokenService(cfg, pumpfun=pumpfun_mock, dexscreener=dexscreener_mock)
        service._http = AsyncMock()
        service._http.get = AsyncMock(
            return_value=httpx.Response(
                200,
                json={"tokens": [{"address": "0x1", "symbol": "A"}, "junk"]},
                request=httpx.Request("GET", "https://bsc.example/api/tokens"),
            )
        )

        tokens = await service.fetch_bsc_tokens()

        service._http.get.assert_awaited_once_with("https://bsc.example/api/tokens")
        assert [t.id for t in tokens] == ["0x1"]
        assert service.store.get(Chain.BSC, "0x1") is tokens[0]
        await service.stop()

    @pytest.mark.asyncio
    async def test_fetch_bsc_tokens_http_error(self, make_settings, pumpfun_mock, dexscreener_mock) -> None:
        cfg = make_settings(enable_pumpportal=False, bsc_api_url="https://bsc.example")
        service = MultiChainTokenService(cfg, pumpfun=pumpfun_mock, dexscreener=dexscreener_mock)
        service._http = AsyncMock()
        service._http.get = AsyncMock(side_effect=httpx.ConnectError("refused"))

        assert await service.fetch_bsc_tokens() == []
        await service.stop()


class TestLookupAndStatus:
    @pytest.mark.asyncio
    async def test_lookup_prefers_store(self, service: MultiChainTokenService, pumpfun_mock: AsyncMock) -> None:
        await service.handle_solana_event(CREATE_FRAME)
        token = await service.lookup_token(Chain.SOLANA, SOL_MINT)
        assert token is not None and token.symbol == "POPCAT"
        pumpfun_mock.fetch_token_info.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_lookup_falls_back_to_dexscreener(
        self, service: MultiChainTokenService, dexscreener_mock: AsyncMock
    ) -> None:
        dexscreener_mock.fetch_token_info.return_value = TokenEnrichment(price_usd=2.0, price_change_24h=5.0)

        token = await service.lookup_token(Chain.BSC, "0xabc")

        assert token is not None
        assert token.price == 2.0
        assert token.percentages == [0.0, 0.0, 0.0, 5.0, 5.0]

    @pytest.mark.asyncio
    async def test_lookup_rejects_pumpfun_info_for_other_mint(
        self, service: MultiChainTokenService, pumpfun_mock: AsyncMock, dexscreener_mock: AsyncMock
    ) -> None:
        pumpfun_mock.fetch_token_info.return_value = PumpfunTokenInfo(mint="OtherMint999", name="Wrong")

        assert await service.lookup_token(Chain.SOLANA, "MintAAA111") is None
        dexscreener_mock.fetch_token_info.assert_awaited_once_with("solana", "MintAAA111")

    @pytest.mark.asyncio
    async def test_lookup_matches_mint_case_insensitively(
        self, service: MultiChainTokenService, pumpfun_mock: AsyncMock
    ) -> None:
        pumpfun_mock.fetch_token_info.return_value = PumpfunTokenInfo(mint="mintaaa111", name="Right")

        token = await service.lookup_token(Chain.SOLANA, "MintAAA111")

        assert token is not None and token.name == "Right"

    @pytest.mark.asyncio
    async def test_lookup_not_found(self, service: MultiChainTokenService) -> None:
        assert await service.lookup_token(Chain.SOLANA, "nope") is None

    @pytest.mark.asyncio
    async def test_connection_status(self, service: MultiChainTokenService) -> None:
        status = service.connection_status()
        assert set(status) == {"solana", "bsc"}
        assert status["solana"]["connected"] is False

    @pytest.mark.asyncio
    async def test_subscription_passthrough(self, service: MultiChainTokenService) -> None:
        assert await service.subscribe_to_token_trades(["A"]) is False
        assert service.pumpportal.tracked_tokens == {"A"}
        await service.unsubscribe_from_token_trades(["A"])
        assert service.pumpportal.tracked_tokens == set()


RPC_URL = "https://rpc.example"


def _rpc_response(status: int = 200, **body) -> httpx.Response:
    return httpx.Response(status, json=body, request=httpx.Request("POST", RPC_URL))


class TestProgramSignatures:
    @pytest.fixture
    def rpc_service(self, make_settings, pumpfun_mock, dexscreener_mock) -> MultiChainTokenService:
        cfg = make_settings(enable_pumpportal=False, solana_rpc_url=RPC_URL)
        service = MultiChainTokenService(cfg, pumpfun=pumpfun_mock, dexscreener=dexscreener_mock)
        service._http = AsyncMock()
        return service

    @pytest.mark.asyncio
    async def test_posts_get_signatures_for_program(self, rpc_service: MultiChainTokenService) -> None:
        rpc_service._http.post = AsyncMock(
            return_value=_rpc_response(
                jsonrpc="2.0",
                id=1,
                result=[
                    {"signature": "ok1", "slot": 10, "err": None, "blockTime": 1_700_000_000},
                    {"signature": "bad", "slot": 11, "err": {"InstructionError": [0, "Custom"]}},
                    {"signature": "ok2", "slot": 12, "err": None},
                ],
            )
        )

        signatures = await rpc_service.fetch_program_signatures(limit=25)

        assert [s["signature"] for s in signatures] == ["ok1", "ok2"]
        url = rpc_service._http.post.await_args.args[0]
        payload = rpc_service._http.post.await_args.kwargs["json"]
        assert url == RPC_URL
        assert payload["method"] == "getSignaturesForAddress"
        assert payload["params"] == [
            "6EF8rrecthR5Dkzon8Nwu78hRvfCKubJ14M5uBEwF6P",
            {"limit": 25, "commitment": "confirmed"},
        ]
        await rpc_service.stop()

    @pytest.mark.asyncio
    async def test_rpc_error_object_raises(self, rpc_service: MultiChainTokenService) -> None:
        rpc_service._http.post = AsyncMock(
            return_value=_rpc_response(jsonrpc="2.0", id=1, error={"code": -32005, "message": "Node is behind"})
        )
        with pytest.raises(SolanaRpcError, match="Node is behind"):
            await rpc_service.fetch_program_signatures()
        await rpc_service.stop()

    @pytest.mark.asyncio
    async def test_http_status_raises(self, rpc_service: MultiChainTokenService) -> None:
        rpc_service._http.post = AsyncMock(return_value=_rpc_response(503))
        with pytest.raises(SolanaRpcError, match="503"):
            await rpc_service.fetch_program_signatures()
        await rpc_service.stop()

    @pytest.mark.asyncio
    async def test_transport_error_raises(self, rpc_service: MultiChainTokenService) -> None:
        rpc_service._http.post = AsyncMock(side_effect=httpx.ConnectError("refused"))
        with pytest.raises(SolanaRpcError):
            await rpc_service.fetch_program_signatures()
        await rpc_service.stop()


class TestFeedTasks:
    @pytest.mark.asyncio
    async def test_crashed_feed_task_is_logged(self, make_settings, pumpfun_mock, dexscreener_mock) -> None:
        from loguru import logger

        cfg = make_settings(enable_pumpportal=True, enable_enrichment=False)
        service = MultiChainTokenService(cfg, pumpfun=pumpfun_mock, dexscreener=dexscreener_mock)
        service.pumpportal.connect = AsyncMock(side_effect=RuntimeError("socket exploded"))
        service.pumpportal.stop = AsyncMock()
        captured: list[str] = []
        sink_id = logger.add(lambda msg: captured.append(msg.record["message"]), level="ERROR")
        try:
            service.start()
            await asyncio.gather(*service._feed_tasks, return_exceptions=True)
            await asyncio.sleep(0)
        finally:
            logger.remove(sink_id)
            await service.stop()

        assert any("pumpportal-feed" in m and "socket exploded" in m for m in captured)
