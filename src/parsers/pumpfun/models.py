"""Data models for Pump.fun frontend API responses."""

from dataclasses import dataclass, field
from enum import Enum

from src.models.token import SocialLink


class PumpfunFeed(str, Enum):
    """Token lists exposed by the pump.fun frontends."""

    GRADUATED_BY_TIME = "graduated_by_time"
    LIST_BY_MARKET_CAP = "list_by_market_cap"
    LIST_BY_CREATION = "list_by_creation"
    MARKET_CAP_DESC = "market_cap_desc"
    CREATED_DESC = "created_desc"
    LATEST = "latest"
    FEATURED = "featured"
    RUNNERS = "runners"


@dataclass
class PumpfunSocials:
    website: str | None = None
    twitter: str | None = None
    telegram: str | None = None

    def links(self) -> list[SocialLink]:
        pairs = (("website", self.website), ("twitter", self.twitter), ("telegram", self.telegram))
        return [SocialLink(type=kind, url=url) for kind, url in pairs if url]


@dataclass
class PumpfunReserves:
    sol: float | None = None
    token: float | None = None


@dataclass
class PumpfunTokenInfo:
    """A pump.fun coin normalized across the v3 / advanced / legacy APIs."""

    mint: str
    name: str = ""
    symbol: str = ""
    logo: str | None = None
    description: str | None = None
    price: float = 0.0
    price_usd: float = 0.0
    market_cap: float = 0.0
    volume: float = 0.0
    is_migrated: bool = False  # bonding curve complete, pool on an AMM
    migration_timestamp: int | None = None
    raydium_pool: str | None = None
    socials: PumpfunSocials = field(default_factory=PumpfunSocials)
    reserves: PumpfunReserves = field(default_factory=PumpfunReserves)
    price_change_24h: float | None = None
    created_timestamp: int | None = None

    def matches(self, mint: str) -> bool:
        """Mint addresses compare case-insensitively across pump.fun APIs."""
        return self.mint.lower() == mint.lower()
