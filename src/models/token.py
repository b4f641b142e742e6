"""In-memory token snapshot shared by feeds, enrichment and the HTTP layer."""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

PERCENTAGE_SLOTS = 5


class Chain(str, Enum):
    SOLANA = "solana"
    BSC = "bsc"


@dataclass
class TokenActivity:
    quality: int = 0
    views: int = 0
    holders: int = 0
    trades: int = 0

    def to_dict(self) -> dict[str, int]:
        return {
            "Q": self.quality,
            "views": self.views,
            "holders": self.holders,
            "trades": self.trades,
        }


@dataclass
class SocialLink:
    type: str
    url: str


@dataclass
class WebsiteLink:
    label: str
    url: str


@dataclass
class TokenEnrichment:
    """Supplementary market data (DexScreener / pump.fun)."""

    logo: str | None = None
    price_usd: float | None = None
    price_native: float | None = None
    price_change_5m: float | None = None
    price_change_1h: float | None = None
    price_change_24h: float | None = None
    volume_24h: float | None = None
    liquidity_usd: float | None = None
    fdv: float | None = None
    socials: list[SocialLink] | None = None
    websites: list[WebsiteLink] | None = None
    dex_url: str | None = None
    is_paid: bool = False  # DexScreener exposes no paid-listing flag

    @property
    def has_price_changes(self) -> bool:
        return any(
            v is not None
            for v in (self.price_change_5m, self.price_change_1h, self.price_change_24h)
        )

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "logo": self.logo,
            "priceUsd": self.price_usd,
            "priceNative": self.price_native,
            "priceChange5m": self.price_change_5m,
            "priceChange1h": self.price_change_1h,
            "priceChange24h": self.price_change_24h,
            "volume24h": self.volume_24h,
            "liquidity": self.liquidity_usd,
            "fdv": self.fdv,
            "dexUrl": self.dex_url,
            "isPaid": self.is_paid,
        }
        if self.socials is not None:
            data["socials"] = [{"type": s.type, "url": s.url} for s in self.socials]
        if self.websites is not None:
            data["websites"] = [{"label": w.label, "url": w.url} for w in self.websites]
        return {k: v for k, v in data.items() if v is not None}


def normalize_percentages(values: list[float] | None) -> list[float]:
    """Pad or truncate to exactly PERCENTAGE_SLOTS entries."""
    values = list(values or [])[:PERCENTAGE_SLOTS]
    return values + [0.0] * (PERCENTAGE_SLOTS - len(values))


@dataclass
class TokenData:
    id: str
    name: str
    symbol: str
    icon: str
    chain: Chain
    source: str
    time: str = "0s"
    image: str | None = None
    market_cap: float = 0.0
    volume: float = 0.0
    fee: float = 0.0
    transactions: int = 0
    percentages: list[float] = field(default_factory=lambda: [0.0] * PERCENTAGE_SLOTS)
    price: float = 0.0
    activity: TokenActivity = field(default_factory=TokenActivity)
    enrichment: TokenEnrichment | None = None
    created_at: int = 0  # epoch ms of the source event
    migrated: bool = False

    def __post_init__(self) -> None:
        self.percentages = normalize_percentages(self.percentages)

    def copy(self, **changes: Any) -> TokenData:
        """Return an updated copy; the activity block is never shared."""
        changes.setdefault("activity", replace(self.activity))
        return replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "symbol": self.symbol,
            "icon": self.icon,
            "image": self.image,
            "time": self.time,
            "marketCap": self.market_cap,
            "volume": self.volume,
            "fee": self.fee,
            "transactions": self.transactions,
            "percentages": list(self.percentages),
            "price": self.price,
            "activity": self.activity.to_dict(),
            "chain": self.chain.value,
            "source": self.source,
            "migrated": self.migrated,
        }
        if self.enrichment is not None:
            data["dexscreener"] = self.enrichment.to_dict()
        return data
