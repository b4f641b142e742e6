from pydantic import BaseModel


class DexScreenerToken(BaseModel):
    address: str = ""
    name: str | None = None
    symbol: str | None = None

    model_config = {"extra": "ignore"}


class DexScreenerWindow(BaseModel):
    """Per-window numbers (volume or price change) keyed m5/h1/h6/h24."""

    m5: float | None = None
    h1: float | None = None
    h6: float | None = None
    h24: float | None = None

    model_config = {"extra": "ignore"}


class DexScreenerLiquidity(BaseModel):
    usd: float | None = None
    base: float | None = None
    quote: float | None = None

    model_config = {"extra": "ignore"}


class DexScreenerTxns(BaseModel):
    buys: int | None = None
    sells: int | None = None

    model_config = {"extra": "ignore"}


class DexScreenerTxnsByPeriod(BaseModel):
    m5: DexScreenerTxns | None = None
    h1: DexScreenerTxns | None = None
    h6: DexScreenerTxns | None = None
    h24: DexScreenerTxns | None = None

    model_config = {"extra": "ignore"}


class DexScreenerLink(BaseModel):
    type: str | None = None
    label: str | None = None
    url: str = ""

    model_config = {"extra": "ignore"}


class DexScreenerInfo(BaseModel):
    imageUrl: str | None = None
    websites: list[DexScreenerLink] | None = None
    socials: list[DexScreenerLink] | None = None

    model_config = {"extra": "ignore"}


class DexScreenerPair(BaseModel):
    chainId: str = ""
    dexId: str = ""
    url: str | None = None
    pairAddress: str = ""
    baseToken: DexScreenerToken | None = None
    quoteToken: DexScreenerToken | None = None
    priceNative: str | None = None
    priceUsd: str | None = None
    txns: DexScreenerTxnsByPeriod | None = None
    volume: DexScreenerWindow | None = None
    priceChange: DexScreenerWindow | None = None
    liquidity: DexScreenerLiquidity | None = None
    fdv: float | None = None
    pairCreatedAt: int | None = None
    info: DexScreenerInfo | None = None

    model_config = {"extra": "ignore"}

    @property
    def liquidity_usd(self) -> float:
        return (self.liquidity.usd or 0.0) if self.liquidity else 0.0

    def involves(self, chain: str, address: str) -> bool:
        """True if the pair is on ``chain`` with ``address`` as base or quote token."""
        if self.chainId != chain:
            return False
        wanted = address.lower()
        return any(
            tok is not None and tok.address.lower() == wanted
            for tok in (self.baseToken, self.quoteToken)
        )


class DexScreenerSearchResponse(BaseModel):
    schemaVersion: str | None = None
    pairs: list[DexScreenerPair] | None = None
    pair: DexScreenerPair | None = None

    model_config = {"extra": "ignore"}
