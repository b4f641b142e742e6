"""Multi-chain token aggregation: feeds in, snapshots and events out.

Solana tokens come from the PumpPortal socket (new tokens, trades,
migrations) and the pump.fun graduated feed; BSC tokens from the optional
forr.meme socket/API. Each stored token is enriched in the background.
"""

from __future__ import annotations

import asyncio
import uuid
from typing import Any

import httpx
from loguru import logger
from pydantic import ValidationError

from config.settings import Settings, settings as default_settings
from src.aggregator.enrichment import TokenEnricher
from src.aggregator.store import MIGRATION_UPDATE, TOKEN_UPDATE, EventEmitter, Listener, TokenStore
from src.models.token import Chain, TokenActivity, TokenData, TokenEnrichment
from src.parsers.bsc.ws_client import BscFeedClient
from src.parsers.dexscreener.client import DexScreenerClient
from src.parsers.pumpfun.client import PumpfunClient
from src.parsers.pumpfun.models import PumpfunTokenInfo
from src.parsers.pumpportal.models import PumpPortalEvent
from src.parsers.pumpportal.ws_client import PumpPortalClient
from src.parsers.router import EventKind, classify_event
from src.utils.format import format_age, now_ms, price_change_bars, to_ms, token_icon
from src.utils.tasks import create_logged_task

SOURCE_PUMPPORTAL = "pumpportal"
SOURCE_PUMPFUN = "pumpfun"
SOURCE_FORRMEME = "forr.meme"


class SolanaRpcError(Exception):
    """Solana JSON-RPC call failed (transport, HTTP status or RPC error object)."""


def _pick(data: dict[str, Any], *keys: str, default: Any = None) -> Any:
    for key in keys:
        value = data.get(key)
        if value:
            return value
    return default


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def token_from_pumpportal(event: PumpPortalEvent, received_ms: int) -> TokenData:
    """Fresh snapshot for a creation (or first-seen migration) frame."""
    created = event.event_time_ms(received_ms)
    return TokenData(
        id=event.address or "",
        name=event.name or event.symbol or "Token",
        symbol=event.symbol or "TKN",
        icon=token_icon(event.symbol),
        image=event.image or event.uri,
        time=format_age(created, received_ms),
        market_cap=event.market_cap_value,
        volume=event.volume_value,
        transactions=1,
        price=event.price or 0.0,
        activity=TokenActivity(trades=1),
        chain=Chain.SOLANA,
        source=SOURCE_PUMPPORTAL,
        created_at=int(to_ms(created)),
    )


def apply_trade(token: TokenData, event: PumpPortalEvent, received_ms: int) -> TokenData:
    """Fold a trade-like frame into an existing snapshot."""
    activity = TokenActivity(
        quality=token.activity.quality,
        views=token.activity.views,
        holders=token.activity.holders,
        trades=token.activity.trades + 1,
    )
    return token.copy(
        market_cap=event.market_cap_value or token.market_cap,
        volume=token.volume + event.volume_value,
        price=event.price or token.price,
        transactions=token.transactions + 1,
        activity=activity,
        time=format_age(event.timestamp or received_ms, received_ms),
    )


def token_from_bsc(data: dict[str, Any], received_ms: int) -> TokenData:
    symbol = _pick(data, "symbol", "ticker", default="TKN")
    timestamp = _pick(data, "timestamp", "ts", default=received_ms)
    return TokenData(
        id=str(_pick(data, "address", "contract", "id") or uuid.uuid4()),
        name=_pick(data, "name", "symbol", "ticker", default="Token"),
        symbol=symbol,
        icon=token_icon(symbol),
        image=_pick(data, "image", "imageUrl", "logo"),
        time=format_age(_num(timestamp), received_ms),
        market_cap=_num(_pick(data, "marketCap", "mc")),
        volume=_num(_pick(data, "volume", "vol")),
        fee=_num(data.get("fee")),
        transactions=int(_num(_pick(data, "transactions", "txCount", "trades"))),
        percentages=price_change_bars(_num(_pick(data, "priceChange", "pct"))),
        price=_num(_pick(data, "price", "bnbPrice")),
        activity=TokenActivity(
            quality=int(_num(data.get("quality"))),
            views=int(_num(data.get("views"))),
            holders=int(_num(data.get("holders"))),
            trades=int(_num(_pick(data, "trades", "txCount"))),
        ),
        chain=Chain.BSC,
        source=SOURCE_FORRMEME,
        created_at=int(to_ms(_num(timestamp))),
    )


def token_from_pumpfun(info: PumpfunTokenInfo, received_ms: int) -> TokenData:
    return TokenData(
        id=info.mint,
        name=info.name,
        symbol=info.symbol,
        icon=token_icon(info.symbol),
        image=info.logo,
        time=format_age(info.migration_timestamp, received_ms) if info.migration_timestamp else "0s",
        market_cap=info.market_cap,
        volume=info.volume,
        percentages=price_change_bars(info.price_change_24h) if info.price_change_24h else None,
        price=info.price_usd or info.price,
        chain=Chain.SOLANA,
        source=SOURCE_PUMPFUN,
        enrichment=TokenEnrichment(
            logo=info.logo,
            price_usd=info.price_usd or None,
            socials=info.socials.links(),
        ),
        created_at=info.created_timestamp or 0,
        migrated=info.is_migrated,
    )


class MultiChainTokenService:
    def __init__(
        self,
        cfg: Settings | None = None,
        pumpportal: PumpPortalClient | None = None,
        bsc: BscFeedClient | None = None,
        pumpfun: PumpfunClient | None = None,
        dexscreener: DexScreenerClient | None = None,
    ) -> None:
        self._cfg = cfg or default_settings
        self.pumpportal = pumpportal or PumpPortalClient(
            ws_url=self._cfg.pumpportal_ws_url,
            api_key=self._cfg.pumpportal_api_key,
            base_delay=self._cfg.ws_reconnect_base_delay_sec,
            max_delay=self._cfg.ws_reconnect_max_delay_sec,
            max_attempts=self._cfg.ws_max_reconnect_attempts,
        )
        self.bsc = bsc or BscFeedClient(
            ws_url=self._cfg.bsc_ws_url,
            reconnect_delay=self._cfg.bsc_reconnect_delay_sec,
        )
        self.pumpfun = pumpfun or PumpfunClient(
            max_rps=self._cfg.pumpfun_max_rps,
            cache_ttl_sec=self._cfg.pumpfun_cache_ttl_sec,
        )
        self.dexscreener = dexscreener or DexScreenerClient(
            max_rps=self._cfg.dexscreener_max_rps,
            cache_ttl_sec=self._cfg.dexscreener_cache_ttl_sec,
        )
        self.store = TokenStore(self._cfg.store_max_tokens_per_chain)
        self.events = EventEmitter()
        self.enricher = TokenEnricher(self.store, self.events, self.pumpfun, self.dexscreener)
        self._http = httpx.AsyncClient(timeout=10.0, headers={"Content-Type": "application/json"})
        self._feed_tasks: list[asyncio.Task] = []
        self._pending_tasks: set[asyncio.Task] = set()

        self.pumpportal.on_event = self.handle_solana_event
        self.bsc.on_event = self.handle_bsc_event

    # ── listeners ──────────────────────────────────────────────────────

    def on(self, event: str, callback: Listener) -> None:
        self.events.on(event, callback)

    def off(self, event: str, callback: Listener) -> None:
        self.events.off(event, callback)

    # ── lifecycle ──────────────────────────────────────────────────────

    def start(self) -> None:
        """Launch feed connectors as background tasks on the running loop."""
        if self._feed_tasks:
            return
        if self._cfg.enable_pumpportal:
            self._feed_tasks.append(create_logged_task(self.pumpportal.connect(), "pumpportal-feed"))
        if self.bsc.enabled:
            self._feed_tasks.append(create_logged_task(self.bsc.connect(), "bsc-feed"))
        logger.info(f"[AGGREGATOR] Started {len(self._feed_tasks)} feed(s)")

    async def stop(self) -> None:
        await self.pumpportal.stop()
        await self.bsc.stop()
        tasks = [*self._feed_tasks, *self._pending_tasks]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        self._feed_tasks.clear()
        self._pending_tasks.clear()
        await self.pumpfun.close()
        await self.dexscreener.close()
        await self._http.aclose()
        logger.info("[AGGREGATOR] Stopped")

    def _schedule_enrichment(self, token: TokenData) -> None:
        if not self._cfg.enable_enrichment:
            return
        task = asyncio.create_task(self.enricher.enrich(token))
        self._pending_tasks.add(task)
        task.add_done_callback(self._pending_tasks.discard)

    @property
    def pending_enrichments(self) -> int:
        return len(self._pending_tasks)

    # ── feed handlers ──────────────────────────────────────────────────

    async def _publish(self, token: TokenData, *, migration: bool = False) -> None:
        if migration:
            self.store.mark_migrated(token)
        else:
            self.store.put(token)
        await self.events.emit(TOKEN_UPDATE, token)
        if migration:
            await self.events.emit(MIGRATION_UPDATE, token)

    async def handle_solana_event(self, payload: dict[str, Any]) -> EventKind:
        kind = classify_event(payload)
        if kind == EventKind.IGNORED:
            return kind
        try:
            event = PumpPortalEvent.model_validate(payload)
        except ValidationError as e:
            logger.debug(f"[AGGREGATOR] Invalid {kind.value} frame: {e}")
            return EventKind.IGNORED

        received = now_ms()
        mint = event.address or ""
        existing = self.store.get(Chain.SOLANA, mint)

        if kind == EventKind.NEW_TOKEN:
            token = token_from_pumpportal(event, received)
            await self._publish(token)
            self._schedule_enrichment(token)
        elif kind == EventKind.MIGRATION:
            if existing is not None:
                token = apply_trade(existing, event, received)
            else:
                token = token_from_pumpportal(event, received)
            await self._publish(token, migration=True)
            logger.debug(f"[AGGREGATOR] Migrated {token.symbol} ({mint[:12]}) pool={event.pool}")
        elif kind == EventKind.TRADE:
            if existing is None:
                return kind
            await self._publish(apply_trade(existing, event, received))
        return kind

    async def handle_bsc_event(self, payload: dict[str, Any]) -> None:
        token = token_from_bsc(payload, now_ms())
        await self._publish(token)
        self._schedule_enrichment(token)

    # ── HTTP backfills ─────────────────────────────────────────────────

    async def fetch_solana_tokens(self) -> list[TokenData]:
        """PumpPortal is socket-only; there is no HTTP backfill."""
        return []

    async def fetch_migrated_tokens(self, mints: list[str] | None = None) -> list[TokenData]:
        """Graduated pump.fun coins, either the given mints or the latest feed."""
        received = now_ms()
        try:
            if mints:
                infos = []
                for mint in mints:
                    info = await self.pumpfun.fetch_token_info(mint)
                    if info is not None and info.is_migrated:
                        infos.append(info)
            else:
                infos = await self.pumpfun.fetch_migrated_tokens(self._cfg.migrated_fetch_limit)
        except Exception as e:
            logger.warning(f"[AGGREGATOR] Failed to fetch migrated tokens from pump.fun: {e}")
            return []

        tokens = [token_from_pumpfun(info, received) for info in infos if info.mint]
        for token in tokens:
            self.store.put(token)
        return tokens

    async def fetch_bsc_tokens(self) -> list[TokenData]:
        if not self._cfg.bsc_api_url:
            return []
        try:
            resp = await self._http.get(f"{self._cfg.bsc_api_url.rstrip('/')}/api/tokens")
            if resp.status_code != 200:
                logger.warning(f"[AGGREGATOR] BSC token API HTTP {resp.status_code}")
                return []
            data = resp.json()
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"[AGGREGATOR] Failed to fetch BSC tokens: {e}")
            return []

        items = data if isinstance(data, list) else (data.get("tokens") or data.get("data") or [])
        received = now_ms()
        tokens = [token_from_bsc(item, received) for item in items if isinstance(item, dict)]
        for token in tokens:
            self.store.put(token)
        return tokens

    async def fetch_program_signatures(self, limit: int = 100) -> list[dict[str, Any]]:
        """Recent successful transaction signatures of the pump.fun program.

        Raises SolanaRpcError when the RPC node cannot be reached or answers
        with an error.
        """
        payload = {
            "jsonrpc": "2.0",
            "id": 1,
            "method": "getSignaturesForAddress",
            "params": [
                self._cfg.pump_fun_program_id,
                {"limit": limit, "commitment": "confirmed"},
            ],
        }
        try:
            resp = await self._http.post(self._cfg.solana_rpc_url, json=payload)
        except httpx.HTTPError as e:
            raise SolanaRpcError(f"RPC request failed: {e}") from e
        if resp.status_code != 200:
            raise SolanaRpcError(f"RPC HTTP {resp.status_code}")
        try:
            data = resp.json()
        except ValueError as e:
            raise SolanaRpcError("RPC returned invalid JSON") from e
        if not isinstance(data, dict):
            raise SolanaRpcError("RPC returned unexpected payload")
        if data.get("error"):
            error = data["error"]
            message = error.get("message") if isinstance(error, dict) else error
            raise SolanaRpcError(f"RPC error: {message}")

        signatures = [s for s in data.get("result") or [] if isinstance(s, dict) and not s.get("err")]
        logger.info(f"[SOLANA] {len(signatures)} pump.fun program signatures")
        return signatures

    async def lookup_token(self, chain: Chain, address: str) -> TokenData | None:
        """Stored snapshot, or a one-off vendor lookup for tokens we never saw."""
        stored = self.store.get(chain, address)
        if stored is not None:
            return stored
        received = now_ms()
        if chain == Chain.SOLANA:
            info = await self.pumpfun.fetch_token_info(address)
            if info is not None and info.matches(address):
                return token_from_pumpfun(info, received)
        enrichment = await self.dexscreener.fetch_token_info(chain.value, address)
        if enrichment is None:
            return None
        return TokenData(
            id=address,
            name="Token",
            symbol="TKN",
            icon=token_icon(None),
            image=enrichment.logo,
            price=enrichment.price_usd or 0.0,
            volume=enrichment.volume_24h or 0.0,
            market_cap=enrichment.fdv or 0.0,
            percentages=(
                [
                    enrichment.price_change_5m or 0.0,
                    enrichment.price_change_1h or 0.0,
                    enrichment.price_change_1h or 0.0,
                    enrichment.price_change_24h or 0.0,
                    enrichment.price_change_24h or 0.0,
                ]
                if enrichment.has_price_changes
                else None
            ),
            chain=chain,
            source="dexscreener",
            enrichment=enrichment,
        )

    # ── subscriptions ──────────────────────────────────────────────────

    async def subscribe_to_token_trades(self, mints: list[str]) -> bool:
        return await self.pumpportal.subscribe_token_trades(mints)

    async def unsubscribe_from_token_trades(self, mints: list[str]) -> bool:
        return await self.pumpportal.unsubscribe_token_trades(mints)

    async def subscribe_to_account_trades(self, accounts: list[str]) -> bool:
        return await self.pumpportal.subscribe_account_trades(accounts)

    async def unsubscribe_from_account_trades(self, accounts: list[str]) -> bool:
        return await self.pumpportal.unsubscribe_account_trades(accounts)

    def reset_reconnect_attempts(self) -> None:
        self.pumpportal.reset_reconnect_attempts()

    # ── accessors ──────────────────────────────────────────────────────

    def solana_tokens(self) -> list[TokenData]:
        return self.store.solana_tokens()

    def bsc_tokens(self) -> list[TokenData]:
        return self.store.bsc_tokens()

    def migrated_tokens(self) -> list[TokenData]:
        return self.store.migrated_tokens()

    def all_tokens(self) -> list[TokenData]:
        return self.store.all_tokens()

    def connection_status(self) -> dict[str, dict[str, Any]]:
        return {
            "solana": self.pumpportal.status().to_dict(),
            "bsc": self.bsc.status().to_dict(),
        }
