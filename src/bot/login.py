"""HMAC signing and verification of Telegram login payloads.

The secret key is HMAC-SHA256 of the bot token keyed with ``WebAppData``;
the hash is the hex HMAC-SHA256 of the sorted ``key=value`` lines.
"""

from __future__ import annotations

import hashlib
import hmac
import time
from collections.abc import Mapping
from enum import Enum
from typing import Any

SECRET_KEY_SALT = b"WebAppData"
DEFAULT_MAX_AGE_SEC = 86400


class LoginCheck(str, Enum):
    OK = "ok"
    INVALID_HASH = "invalid_hash"
    EXPIRED = "expired"


def build_data_check_string(fields: Mapping[str, Any]) -> str:
    lines = [
        f"{key}={value}"
        for key, value in fields.items()
        if key != "hash" and value is not None and value != ""
    ]
    return "\n".join(sorted(lines))


def compute_login_hash(bot_token: str, fields: Mapping[str, Any]) -> str:
    secret = hmac.new(SECRET_KEY_SALT, bot_token.encode(), hashlib.sha256).digest()
    data = build_data_check_string(fields).encode()
    return hmac.new(secret, data, hashlib.sha256).hexdigest()


def verify_login(
    bot_token: str,
    fields: Mapping[str, Any],
    received_hash: str,
    now: float | None = None,
    max_age: int = DEFAULT_MAX_AGE_SEC,
) -> LoginCheck:
    expected = compute_login_hash(bot_token, fields)
    received_hash = received_hash or ""
    if not received_hash.isascii() or not hmac.compare_digest(expected, received_hash):
        return LoginCheck.INVALID_HASH
    try:
        auth_date = int(fields.get("auth_date") or 0)
    except (TypeError, ValueError):
        return LoginCheck.INVALID_HASH
    current = now if now is not None else time.time()
    if current - auth_date > max_age:
        return LoginCheck.EXPIRED
    return LoginCheck.OK
