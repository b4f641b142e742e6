from pydantic import BaseModel


class PumpPortalEvent(BaseModel):
    """Any message from the PumpPortal data socket.

    New-token, trade and migration payloads share one lenient shape; the
    router decides which kind it is from the fields that are present.
    """

    mint: str | None = None
    token: str | None = None  # Alternative field name for the mint
    signature: str | None = None
    name: str | None = None
    symbol: str | None = None
    image: str | None = None
    uri: str | None = None
    price: float | None = None
    marketCap: float | None = None
    marketCapSol: float | None = None
    solAmount: float | None = None
    tokenAmount: float | None = None
    volume: float | None = None
    timestamp: float | None = None
    createdAt: float | None = None
    trader: str | None = None
    traderPublicKey: str | None = None
    pool: str | None = None
    type: str | None = None
    txType: str | None = None

    model_config = {"extra": "ignore"}

    @property
    def address(self) -> str | None:
        return self.mint or self.token

    @property
    def market_cap_value(self) -> float:
        return self.marketCap or self.marketCapSol or 0.0

    @property
    def volume_value(self) -> float:
        return self.volume or self.solAmount or 0.0

    def event_time_ms(self, fallback_ms: int) -> float:
        return self.timestamp or self.createdAt or fallback_ms


class PumpPortalSubscription(BaseModel):
    """Outgoing subscribe/unsubscribe frame."""

    method: str
    keys: list[str] | None = None

    def to_frame(self) -> str:
        return self.model_dump_json(exclude_none=True)
