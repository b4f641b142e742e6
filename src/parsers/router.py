"""Classify untyped feed payloads into new-token / trade / migration events.

PumpPortal does not tag every frame consistently, so the kind is inferred
from which fields are present. Order matters: metadata wins over trade
fields because creation frames also carry ``traderPublicKey``/``solAmount``.
"""

from enum import Enum
from typing import Any


class EventKind(Enum):
    NEW_TOKEN = "new_token"
    MIGRATION = "migration"
    TRADE = "trade"
    IGNORED = "ignored"


MIGRATION_POOL = "pump-amm"


def event_address(payload: dict[str, Any]) -> str | None:
    address = payload.get("mint") or payload.get("token")
    return address if isinstance(address, str) and address else None


def classify_event(payload: Any) -> EventKind:
    if not isinstance(payload, dict) or event_address(payload) is None:
        return EventKind.IGNORED

    if payload.get("name") or payload.get("symbol") or payload.get("image"):
        return EventKind.NEW_TOKEN

    if (
        payload.get("pool") == MIGRATION_POOL
        or payload.get("type") == "migration"
        or payload.get("txType") == "migration"
    ):
        return EventKind.MIGRATION

    if payload.get("trader") or payload.get("traderPublicKey") or payload.get("solAmount"):
        return EventKind.TRADE

    return EventKind.IGNORED
