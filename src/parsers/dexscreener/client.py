import asyncio

import httpx
from loguru import logger
from pydantic import ValidationError

from src.models.token import SocialLink, TokenEnrichment, WebsiteLink
from src.parsers.cache import TTLCache
from src.parsers.dexscreener.models import DexScreenerPair, DexScreenerSearchResponse
from src.parsers.rate_limiter import RateLimiter

BASE_URL = "https://api.dexscreener.com"
SEARCH_PATH = "/latest/dex/search"
SUPPORTED_CHAINS = frozenset({"solana", "bsc", "ethereum", "base"})
MAX_RETRIES = 3
RETRY_DELAYS = [1.0, 2.0, 4.0]


def _to_float(value: str | None) -> float | None:
    if not value:
        return None
    try:
        return float(value)
    except ValueError:
        return None


def pick_best_pair(pairs: list[DexScreenerPair], chain: str, address: str) -> DexScreenerPair | None:
    """Most liquid pair on ``chain`` that trades ``address``."""
    matching = [p for p in pairs if p.involves(chain, address)]
    if not matching:
        return None
    return max(matching, key=lambda p: p.liquidity_usd)


def pair_to_enrichment(pair: DexScreenerPair) -> TokenEnrichment:
    info = pair.info
    change = pair.priceChange
    return TokenEnrichment(
        logo=info.imageUrl if info else None,
        price_usd=_to_float(pair.priceUsd),
        price_native=_to_float(pair.priceNative),
        price_change_5m=change.m5 if change else None,
        price_change_1h=change.h1 if change else None,
        price_change_24h=change.h24 if change else None,
        volume_24h=pair.volume.h24 if pair.volume else None,
        liquidity_usd=pair.liquidity.usd if pair.liquidity else None,
        fdv=pair.fdv,
        socials=(
            [SocialLink(type=s.type or "", url=s.url) for s in info.socials]
            if info and info.socials is not None
            else None
        ),
        websites=(
            [WebsiteLink(label=w.label or "", url=w.url) for w in info.websites]
            if info and info.websites is not None
            else None
        ),
        dex_url=pair.url,
        is_paid=False,
    )


class DexScreenerClient:
    """Async REST client for DexScreener public API (no auth required)."""

    def __init__(
        self,
        rate_limiter: RateLimiter | None = None,
        max_rps: float = 4.0,
        cache_ttl_sec: float = 60.0,
    ) -> None:
        self._client = httpx.AsyncClient(
            base_url=BASE_URL,
            timeout=10.0,
            headers={"Accept": "application/json"},
        )
        self._rate_limiter = rate_limiter or RateLimiter(max_rps)
        self._cache: TTLCache[TokenEnrichment] = TTLCache(cache_ttl_sec)

    async def _get(self, path: str, params: dict | None = None) -> httpx.Response:
        """GET with retry on 429/timeout. Other statuses are returned as-is."""
        for attempt in range(MAX_RETRIES):
            await self._rate_limiter.acquire()
            delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
            try:
                response = await self._client.get(path, params=params)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt == MAX_RETRIES - 1:
                    raise
                logger.debug(f"[DEXSCREENER] {type(e).__name__}, retrying in {delay}s")
                await asyncio.sleep(delay)
                continue
            if response.status_code != 429 or attempt == MAX_RETRIES - 1:
                return response
            retry_after = response.headers.get("Retry-After")
            if retry_after:
                try:
                    delay = max(float(retry_after), delay)
                except ValueError:
                    pass
            logger.debug(f"[DEXSCREENER] 429 rate limited, retrying in {delay}s")
            await asyncio.sleep(delay)
        raise RuntimeError("unreachable")  # loop always returns or raises

    async def _search_pairs(self, query: str) -> list[DexScreenerPair] | None:
        """Run a search. None for 404, raises for other failures."""
        response = await self._get(SEARCH_PATH, params={"q": query})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        data = DexScreenerSearchResponse.model_validate(response.json())
        return data.pairs or []

    async def fetch_token_info(self, chain: str, address: str) -> TokenEnrichment | None:
        """Logo, price, % change and socials for a token, from its most liquid pair.

        The ``/pairs`` endpoint wants a pair address, so the token address is
        searched and pairs are filtered by chain and base/quote address.
        """
        if chain not in SUPPORTED_CHAINS:
            return None
        cache_key = f"{chain}:{address}"
        cached = self._cache.get(cache_key)
        if cached is not None:
            return cached

        try:
            pairs = await self._search_pairs(address)
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.warning(f"[DEXSCREENER] Lookup failed for {chain}:{address[:12]}: {e}")
            return None
        if not pairs:
            return None

        pair = pick_best_pair(pairs, chain, address)
        if pair is None:
            return None

        info = pair_to_enrichment(pair)
        self._cache.set(cache_key, info)
        return info

    async def search_tokens(self, query: str) -> list[DexScreenerPair]:
        """Search pairs by name, symbol or address."""
        try:
            return await self._search_pairs(query) or []
        except (httpx.HTTPError, ValidationError, ValueError) as e:
            logger.warning(f"[DEXSCREENER] Search failed for {query!r}: {e}")
            return []

    def clear_cache(self) -> None:
        self._cache.clear()

    async def close(self) -> None:
        await self._client.aclose()
