"""One-time tokens linking a website session to a Telegram /start deep link."""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from loguru import logger

from config.settings import settings


@dataclass
class AuthToken:
    token: str
    created_at: float
    expires_at: float
    used: bool = False


class AuthTokenStore:
    """In-process store; tokens do not survive a restart."""

    def __init__(self, expiry_sec: float = 600, clock: Callable[[], float] = time.time) -> None:
        self._expiry_sec = expiry_sec
        self._clock = clock
        self._tokens: dict[str, AuthToken] = {}

    def generate(self) -> str:
        now = self._clock()
        token = str(uuid.uuid4())
        self._tokens[token] = AuthToken(token=token, created_at=now, expires_at=now + self._expiry_sec)
        self.purge_expired()
        return token

    def verify_and_consume(self, token: str) -> bool:
        entry = self._tokens.get(token)
        if entry is None:
            logger.debug(f"[AUTH] Unknown token {token[:8]}... (store size {len(self._tokens)})")
            return False
        if entry.used:
            logger.debug(f"[AUTH] Token already used {token[:8]}...")
            return False
        if self._clock() > entry.expires_at:
            del self._tokens[token]
            return False
        entry.used = True
        return True

    def purge_expired(self) -> int:
        now = self._clock()
        expired = [t for t, entry in self._tokens.items() if now > entry.expires_at]
        for token in expired:
            del self._tokens[token]
        return len(expired)

    def __len__(self) -> int:
        return len(self._tokens)


def bot_link(token: str, bot_username: str | None = None) -> str:
    username = bot_username or settings.telegram_bot_username
    return f"https://t.me/{username}?start={token}"
