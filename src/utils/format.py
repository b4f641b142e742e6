"""Display helpers for token snapshots: ages, change bars, icons, currency."""

from __future__ import annotations

import time
from decimal import ROUND_DOWN, Decimal

BAR_COUNT = 5
BAR_STEP = 20

DEFAULT_ICON = "\U0001fa99"  # coin
ICON_MAP = {
    "MOG": "\U0001f415",
    "TIGER": "\U0001f405",
    "GAME": "\U0001f3ae",
    "CAT": "\U0001f431",
    "DOGE": "\U0001f415",
    "PEPE": "\U0001f438",
    "SHIB": "\U0001f415",
    "BONK": "\U0001f415",
}


def now_ms() -> int:
    return int(time.time() * 1000)


def to_ms(timestamp: float) -> float:
    """Feeds mix seconds and milliseconds; anything above 1e12 is already ms."""
    return timestamp if timestamp > 1e12 else timestamp * 1000


def format_age(timestamp: float, now: int | None = None) -> str:
    """Human age like ``42s``, ``7m`` or ``3h``. Future timestamps read as ``0s``."""
    current = now if now is not None else now_ms()
    diff = max(0.0, current - to_ms(timestamp))
    if diff < 60_000:
        return f"{int(diff // 1000)}s"
    if diff < 3_600_000:
        return f"{int(diff // 60_000)}m"
    return f"{int(diff // 3_600_000)}h"


def price_change_bars(price_change: float) -> list[float]:
    """Split a fractional price change into five 20-point bars.

    0.5 (=50%) -> [20, 40, 50, 0, 0]: each bar is filled up to its own ceiling.
    """
    percentage = round(price_change * 100)
    bars: list[float] = []
    for i in range(BAR_COUNT):
        if percentage > i * BAR_STEP:
            bars.append(min(percentage, (i + 1) * BAR_STEP))
        else:
            bars.append(0)
    return bars


def token_icon(symbol: str | None) -> str:
    return ICON_MAP.get((symbol or "").upper(), DEFAULT_ICON)


def _strip_zeros(text: str) -> str:
    if "." not in text:
        return text
    text = text.rstrip("0")
    return text[:-1] if text.endswith(".") else text


def format_small_number(value: float) -> str:
    """Keep the first significant digit plus two more, truncated (max 10 decimals).

    0.0053 -> "0.0053", 0.0000027 -> "0.0000027", 0.00012345 -> "0.000123".
    """
    if value == 0:
        return "0"
    abs_value = abs(value)
    sign = "-" if value < 0 else ""
    if abs_value >= 1:
        return f"{value:.2f}"

    dec = Decimal(repr(abs_value))
    if abs_value < 0.000001:
        text = _strip_zeros(format(dec.quantize(Decimal(1).scaleb(-10)), "f"))
        return "0" if text == "0" else f"{sign}{text}"

    zeros_before = -dec.adjusted() - 1
    places = min(zeros_before + 3, 10)
    truncated = dec.quantize(Decimal(1).scaleb(-places), rounding=ROUND_DOWN)
    text = _strip_zeros(format(truncated, "f"))
    if text == "0":
        return "0"
    return f"{sign}{text}"


def format_currency(value: float) -> str:
    if value >= 1_000_000_000:
        return f"${value / 1_000_000_000:.2f}B"
    if value >= 1_000_000:
        return f"${value / 1_000_000:.2f}M"
    if value >= 1_000:
        return f"${value / 1_000:.2f}K"
    if value >= 1:
        return f"${value:.2f}"
    return f"${format_small_number(value)}"


def format_number(value: float) -> str:
    if value >= 1_000_000:
        return f"{value / 1_000_000:.2f}M"
    if value >= 1_000:
        return f"{value / 1_000:.2f}K"
    return f"{value:.2f}"
