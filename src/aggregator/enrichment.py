"""Best-effort enrichment of stored tokens from pump.fun and DexScreener.

Vendor calls can take seconds while trade frames keep arriving, so every
merge re-reads the current snapshot from the store instead of patching the
copy the lookup started from. Trade counters survive a late enrichment, and
volume only ever grows: the vendor figure replaces the accumulated one only
when it is larger. Vendor data for a different mint is never merged.
"""

from __future__ import annotations

from dataclasses import replace

from loguru import logger

from src.aggregator.store import TOKEN_UPDATE, EventEmitter, TokenStore
from src.models.token import Chain, TokenData, TokenEnrichment
from src.parsers.dexscreener.client import DexScreenerClient
from src.parsers.pumpfun.client import PumpfunClient
from src.parsers.pumpfun.models import PumpfunTokenInfo


def dexscreener_percentages(info: TokenEnrichment) -> list[float]:
    """5m, 1h, 1h, 24h, 24h: DexScreener has no 4h window, so 1h stands in."""
    m5 = info.price_change_5m or 0.0
    h1 = info.price_change_1h or 0.0
    h24 = info.price_change_24h or 0.0
    return [m5, h1, h1, h24, h24]


def merge_pumpfun(token: TokenData, info: PumpfunTokenInfo) -> TokenData:
    base = token.enrichment or TokenEnrichment()
    enrichment = replace(
        base,
        logo=info.logo or base.logo,
        price_usd=info.price_usd or base.price_usd,
        socials=info.socials.links(),
    )
    return token.copy(
        image=info.logo or token.image,
        name=info.name or token.name,
        symbol=info.symbol or token.symbol,
        price=info.price_usd or info.price or token.price,
        market_cap=info.market_cap or token.market_cap,
        volume=max(token.volume, info.volume or 0.0),
        enrichment=enrichment,
    )


def merge_dexscreener(token: TokenData, info: TokenEnrichment) -> TokenData:
    changes: dict = {
        "image": info.logo or token.image,
        "price": info.price_usd or token.price,
        "volume": max(token.volume, info.volume_24h or 0.0),
        "enrichment": info,
    }
    if info.has_price_changes:
        changes["percentages"] = dexscreener_percentages(info)
    return token.copy(**changes)


class TokenEnricher:
    def __init__(
        self,
        store: TokenStore,
        emitter: EventEmitter,
        pumpfun: PumpfunClient,
        dexscreener: DexScreenerClient,
    ) -> None:
        self._store = store
        self._emitter = emitter
        self._pumpfun = pumpfun
        self._dexscreener = dexscreener

    def _current(self, token: TokenData) -> TokenData:
        return self._store.get(token.chain, token.id) or token

    async def _publish(self, token: TokenData) -> TokenData:
        self._store.put(token)
        await self._emitter.emit(TOKEN_UPDATE, token)
        return token

    async def enrich(self, token: TokenData) -> None:
        """Solana: pump.fun first (plus DexScreener once graduated). Others: DexScreener."""
        if not token.id:
            return
        try:
            if token.chain == Chain.SOLANA:
                info = await self._pumpfun.fetch_token_info(token.id)
                if info is not None and not info.matches(token.id):
                    logger.warning(f"[ENRICH] pump.fun returned {info.mint[:12]} for {token.id[:12]}, skipped")
                    info = None
                if info is not None:
                    await self._publish(merge_pumpfun(self._current(token), info))
                    if info.is_migrated:
                        await self.enrich_with_dexscreener(token)
                    return
            await self.enrich_with_dexscreener(token)
        except Exception as e:
            logger.warning(f"[ENRICH] Failed for {token.chain.value}:{token.id[:12]}: {e}")

    async def enrich_with_dexscreener(self, token: TokenData) -> None:
        try:
            info = await self._dexscreener.fetch_token_info(token.chain.value, token.id)
        except Exception as e:
            logger.warning(f"[ENRICH] DexScreener failed for {token.id[:12]}: {e}")
            return
        if info is None:
            return
        await self._publish(merge_dexscreener(self._current(token), info))
