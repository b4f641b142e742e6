"""Pump.fun frontend API client: coin lookup and discovery feeds.

These are the unofficial endpoints pump.fun's own frontend calls. Field
names drift between API generations, so parsing is alias-tolerant and every
feed has fallback URLs.
"""

import asyncio
import json
from datetime import datetime
from typing import Any

import httpx
from loguru import logger

from src.parsers.cache import TTLCache
from src.parsers.pumpfun.models import (
    PumpfunFeed,
    PumpfunReserves,
    PumpfunSocials,
    PumpfunTokenInfo,
)
from src.parsers.rate_limiter import RateLimiter

LEGACY_URL = "https://frontend-api.pump.fun"
ADVANCED_URL = "https://advanced-api-v2.pump.fun"
FRONTEND_V3_URL = "https://frontend-api-v3.pump.fun"
MAX_RETRIES = 2
RETRY_DELAYS = [1.0, 3.0]

HEADERS = {
    "Accept": "application/json",
    "User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36",
}

FEED_URLS: dict[PumpfunFeed, str] = {
    PumpfunFeed.GRADUATED_BY_TIME: f"{ADVANCED_URL}/coins/graduated?sortBy=creationTime",
    PumpfunFeed.LIST_BY_MARKET_CAP: f"{ADVANCED_URL}/coins/list?sortBy=marketCap",
    PumpfunFeed.LIST_BY_CREATION: f"{ADVANCED_URL}/coins/list?sortBy=creationTime",
    PumpfunFeed.MARKET_CAP_DESC: (
        f"{FRONTEND_V3_URL}/coins?offset=0&limit=48&sort=market_cap&includeNsfw=false&order=DESC"
    ),
    PumpfunFeed.CREATED_DESC: (
        f"{FRONTEND_V3_URL}/coins?offset=0&limit=48&sort=created_timestamp&includeNsfw=false&order=DESC"
    ),
    PumpfunFeed.LATEST: f"{FRONTEND_V3_URL}/coins/latest",
    PumpfunFeed.FEATURED: f"{ADVANCED_URL}/coins/featured?keywordSearchActive=false",
    PumpfunFeed.RUNNERS: "https://pump.fun/api/runners",
}

FEED_FALLBACKS: dict[PumpfunFeed, list[str]] = {
    PumpfunFeed.LATEST: [
        f"{FRONTEND_V3_URL}/coins?sort=created_timestamp&order=DESC&limit=100",
        f"{FRONTEND_V3_URL}/coins?offset=0&limit=100&sort=created_timestamp&includeNsfw=false&order=DESC",
        f"{LEGACY_URL}/coins/latest",
    ],
    PumpfunFeed.FEATURED: [
        f"{FRONTEND_V3_URL}/coins/featured",
        f"{LEGACY_URL}/coins/featured",
    ],
    PumpfunFeed.GRADUATED_BY_TIME: [
        f"{FRONTEND_V3_URL}/coins?complete=true&sort=complete_timestamp&order=DESC",
        f"{ADVANCED_URL}/coins/graduated",
    ],
    PumpfunFeed.LIST_BY_MARKET_CAP: [
        f"{FRONTEND_V3_URL}/coins?sort=market_cap&order=DESC&limit=100",
        f"{ADVANCED_URL}/coins/list?sortBy=marketCap&limit=100",
    ],
}

MINT_KEYS = ("mint", "coinMint", "token", "address", "id")


def feed_urls(feed: PumpfunFeed, limit: int | None = None) -> list[str]:
    """Primary URL then de-duplicated fallbacks, with ``limit`` added when absent."""
    urls: list[str] = []
    for url in [FEED_URLS[feed], *FEED_FALLBACKS.get(feed, [])]:
        if limit and "limit=" not in url:
            url += f"{'&' if '?' in url else '?'}limit={limit}"
        if url not in urls:
            urls.append(url)
    return urls


def _first(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value:
            return value
    return None


def _num(value: Any) -> float:
    try:
        return float(value or 0)
    except (TypeError, ValueError):
        return 0.0


def _timestamp_ms(value: Any) -> int | None:
    if value is None or value == "":
        return None
    if isinstance(value, int | float):
        return int(value)
    try:
        return int(datetime.fromisoformat(str(value).replace("Z", "+00:00")).timestamp() * 1000)
    except ValueError:
        return None


def _match_mint(items: list[Any], mint: str) -> dict[str, Any] | None:
    wanted = mint.lower()
    for item in items:
        if isinstance(item, dict) and str(_first(item, *MINT_KEYS) or "").lower() == wanted:
            return item
    return None


def parse_token_data(data: Any, mint: str) -> PumpfunTokenInfo | None:
    """Normalize a coin object (or a list / ``coins`` wrapper containing it)."""
    if isinstance(data, list):
        item = _match_mint(data, mint)
    elif isinstance(data, dict) and isinstance(data.get("coins"), list):
        item = _match_mint(data["coins"], mint)
    else:
        item = data
    if not isinstance(item, dict):
        return None

    address = _first(item, *MINT_KEYS)
    if not address:
        logger.debug(f"[PUMPFUN] Coin without mint address, keys={list(item)[:10]}")
        return None

    price = _num(_first(item, "price", "currentMarketPrice", "priceUsd"))
    graduation = item.get("graduationDate")
    migrated = (
        item.get("complete") is True
        or item.get("isComplete") is True
        or item.get("migrated") is True
        or bool(graduation)
    )
    change_24h = _first(item, "price_change_24h", "priceChange24h")

    return PumpfunTokenInfo(
        mint=str(address),
        name=_first(item, "name", "tokenName") or "",
        symbol=_first(item, "symbol", "ticker", "tokenSymbol") or "",
        logo=_first(item, "image_uri", "imageUrl", "image", "logo"),
        description=_first(item, "description", "desc"),
        price=price,
        price_usd=price,
        market_cap=_num(_first(item, "usd_market_cap", "market_cap", "marketCap")),
        volume=_num(_first(item, "volume", "vol")),
        is_migrated=migrated,
        migration_timestamp=_timestamp_ms(
            _first(item, "complete_timestamp", "migrationTimestamp", "completeTimestamp")
            or graduation
        ),
        raydium_pool=_first(item, "raydium_pool", "raydiumPool", "poolAddress"),
        socials=PumpfunSocials(
            website=_first(item, "website", "websiteUrl"),
            twitter=_first(item, "twitter", "twitterUrl"),
            telegram=_first(item, "telegram", "telegramUrl"),
        ),
        reserves=PumpfunReserves(
            sol=_first(item, "sol_reserves", "real_sol_reserves", "solReserves"),
            token=_first(item, "token_reserves", "real_token_reserves", "tokenReserves"),
        ),
        price_change_24h=float(change_24h) if change_24h else None,
        created_timestamp=_timestamp_ms(
            _first(item, "created_timestamp", "createdTimestamp", "creationTimestamp", "creationTime")
        ),
    )


def _unwrap_list(data: Any) -> list[Any] | None:
    if isinstance(data, list):
        return data
    if isinstance(data, dict):
        for key in ("coins", "tokens", "data"):
            if isinstance(data.get(key), list):
                return data[key]
    return None


class PumpfunClient:
    """Async HTTP client for Pump.fun frontend API (free, no key)."""

    def __init__(self, max_rps: float = 2.0, cache_ttl_sec: float = 30.0) -> None:
        self._rate_limiter = RateLimiter(max_rps)
        self._client = httpx.AsyncClient(timeout=10.0, headers=HEADERS)
        self._token_cache: TTLCache[PumpfunTokenInfo] = TTLCache(cache_ttl_sec)
        self._feed_cache: TTLCache[list[PumpfunTokenInfo]] = TTLCache(cache_ttl_sec)

    async def close(self) -> None:
        await self._client.aclose()

    def clear_cache(self) -> None:
        self._token_cache.clear()
        self._feed_cache.clear()

    async def _get_json(self, url: str) -> Any | None:
        """GET and decode. None for non-200, empty bodies and bad JSON."""
        for attempt in range(MAX_RETRIES + 1):
            delay = RETRY_DELAYS[min(attempt, len(RETRY_DELAYS) - 1)]
            try:
                await self._rate_limiter.acquire()
                resp = await self._client.get(url)
            except (httpx.TimeoutException, httpx.ConnectError) as e:
                if attempt < MAX_RETRIES:
                    logger.debug(f"[PUMPFUN] {type(e).__name__}, retry in {delay}s")
                    await asyncio.sleep(delay)
                    continue
                logger.warning(f"[PUMPFUN] Failed {url}: {e}")
                return None
            except httpx.HTTPError as e:
                logger.warning(f"[PUMPFUN] Request error {url}: {e}")
                return None

            if resp.status_code == 429 and attempt < MAX_RETRIES:
                logger.debug(f"[PUMPFUN] Rate limited, waiting {delay}s")
                await asyncio.sleep(delay)
                continue
            if resp.status_code != 200:
                logger.debug(f"[PUMPFUN] HTTP {resp.status_code} for {url}: {resp.text[:200]}")
                return None
            body = resp.text
            if not body or not body.strip():
                logger.debug(f"[PUMPFUN] Empty body from {url}")
                return None
            try:
                return json.loads(body)
            except json.JSONDecodeError:
                logger.debug(f"[PUMPFUN] Bad JSON from {url}: {body[:200]}")
                return None
        return None

    async def fetch_token_info(self, mint: str) -> PumpfunTokenInfo | None:
        """Look up one coin by mint, falling back to the search endpoints."""
        cached = self._token_cache.get(mint)
        if cached is not None:
            return cached

        for url in (f"{FRONTEND_V3_URL}/coins/{mint}", f"{FRONTEND_V3_URL}/coins?mint={mint}"):
            data = await self._get_json(url)
            if data is None:
                continue
            info = parse_token_data(data, mint)
            if info is not None and info.matches(mint):
                self._token_cache.set(mint, info)
                return info

        return await self._search_token(mint)

    async def _search_token(self, mint: str) -> PumpfunTokenInfo | None:
        for url in (f"{FRONTEND_V3_URL}/coins?search={mint}", f"{FRONTEND_V3_URL}/coins?mint={mint}"):
            data = await self._get_json(url)
            if isinstance(data, list):
                match = _match_mint(data, mint)
                if match is not None:
                    return parse_token_data(match, mint)
            elif isinstance(data, dict):
                coins = data.get("coins") if isinstance(data.get("coins"), list) else [data]
                match = _match_mint(coins, mint)
                if match is not None:
                    return parse_token_data(match, mint)
        return None

    async def fetch_from_endpoint(
        self, feed: PumpfunFeed, limit: int | None = None
    ) -> list[PumpfunTokenInfo]:
        """Fetch a discovery feed, trying each fallback URL until one yields coins."""
        cache_key = f"{feed.value}:{limit or ''}"
        cached = self._feed_cache.get(cache_key)
        if cached is not None:
            return cached

        urls = feed_urls(feed, limit)
        for i, url in enumerate(urls, start=1):
            data = await self._get_json(url)
            coins = _unwrap_list(data)
            if coins is None:
                logger.debug(f"[PUMPFUN] {feed.value} endpoint {i}/{len(urls)} unusable")
                continue

            parsed = []
            for coin in coins:
                if not isinstance(coin, dict):
                    continue
                mint = _first(coin, *MINT_KEYS)
                info = parse_token_data(coin, str(mint)) if mint else None
                if info is not None:
                    parsed.append(info)

            if parsed:
                logger.debug(f"[PUMPFUN] {feed.value}: {len(parsed)}/{len(coins)} coins from endpoint {i}")
                self._feed_cache.set(cache_key, parsed)
                return parsed
            logger.debug(f"[PUMPFUN] {feed.value} endpoint {i} returned 0 coins after parsing")

        logger.warning(f"[PUMPFUN] All {len(urls)} endpoints failed for {feed.value}")
        return []

    async def fetch_latest(self, limit: int = 48) -> list[PumpfunTokenInfo]:
        return await self.fetch_from_endpoint(PumpfunFeed.LATEST, limit)

    async def fetch_featured(self, limit: int | None = None) -> list[PumpfunTokenInfo]:
        return await self.fetch_from_endpoint(PumpfunFeed.FEATURED, limit)

    async def fetch_graduated(self, limit: int | None = None) -> list[PumpfunTokenInfo]:
        return await self.fetch_from_endpoint(PumpfunFeed.GRADUATED_BY_TIME, limit)

    async def fetch_by_market_cap(self, limit: int | None = None) -> list[PumpfunTokenInfo]:
        return await self.fetch_from_endpoint(PumpfunFeed.LIST_BY_MARKET_CAP, limit)

    async def fetch_by_creation(self, limit: int | None = None) -> list[PumpfunTokenInfo]:
        return await self.fetch_from_endpoint(PumpfunFeed.LIST_BY_CREATION, limit)

    async def fetch_runners(self, limit: int | None = None) -> list[PumpfunTokenInfo]:
        return await self.fetch_from_endpoint(PumpfunFeed.RUNNERS, limit)

    async def fetch_migrated_tokens(self, limit: int = 50) -> list[PumpfunTokenInfo]:
        """Coins that completed their bonding curve."""
        return await self.fetch_graduated(limit)
