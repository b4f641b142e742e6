"""In-memory token snapshots plus a small listener registry.

Everything runs on one event loop, so the maps need no locking.
"""

from __future__ import annotations

import heapq
import inspect
from collections.abc import Callable
from typing import Any

from loguru import logger

from src.models.token import Chain, TokenData

TOKEN_UPDATE = "token_update"
MIGRATION_UPDATE = "migration_update"

Listener = Callable[[Any], Any]


class EventEmitter:
    """Named-event fan-out. Listeners may be plain callables or coroutines."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def on(self, event: str, callback: Listener) -> None:
        self._listeners.setdefault(event, []).append(callback)

    def off(self, event: str, callback: Listener) -> None:
        callbacks = self._listeners.get(event)
        if callbacks and callback in callbacks:
            callbacks.remove(callback)

    def listener_count(self, event: str) -> int:
        return len(self._listeners.get(event, []))

    async def emit(self, event: str, payload: Any) -> None:
        # Copy: a listener may unsubscribe itself while we iterate
        for callback in list(self._listeners.get(event, [])):
            try:
                result = callback(payload)
                if inspect.isawaitable(result):
                    await result
            except Exception as e:
                logger.error(f"[EMITTER] Listener for {event} failed: {e}")


class TokenStore:
    """Last-known snapshot per token id, split by chain, plus migrated tokens.

    Each map holds at most ``max_per_chain`` tokens; past that the oldest by
    ``created_at`` are evicted in batches of ``EVICT_FRACTION``.
    """

    EVICT_FRACTION = 0.1

    def __init__(self, max_per_chain: int = 5000) -> None:
        self.max_per_chain = max_per_chain
        self._tokens: dict[Chain, dict[str, TokenData]] = {chain: {} for chain in Chain}
        self._migrated: dict[str, TokenData] = {}

    def _trim(self, tokens: dict[str, TokenData], keep: str) -> None:
        if len(tokens) <= self.max_per_chain:
            return
        excess = len(tokens) - self.max_per_chain
        batch = min(len(tokens) - 1, max(excess, int(self.max_per_chain * self.EVICT_FRACTION)))
        candidates = (t for t in tokens.values() if t.id != keep)
        for token in heapq.nsmallest(batch, candidates, key=lambda t: t.created_at):
            del tokens[token.id]
        logger.debug(f"[STORE] Evicted {batch} oldest tokens, {len(tokens)} kept")

    def get(self, chain: Chain, token_id: str) -> TokenData | None:
        return self._tokens[chain].get(token_id)

    def find(self, token_id: str) -> TokenData | None:
        for tokens in self._tokens.values():
            if token_id in tokens:
                return tokens[token_id]
        return None

    def put(self, token: TokenData) -> TokenData:
        """Store ``token``; a token already tracked as migrated stays in sync."""
        self._tokens[token.chain][token.id] = token
        if token.id in self._migrated:
            self._migrated[token.id] = token
        self._trim(self._tokens[token.chain], token.id)
        return token

    def mark_migrated(self, token: TokenData) -> TokenData:
        token.migrated = True
        self._tokens[token.chain][token.id] = token
        self._migrated[token.id] = token
        self._trim(self._tokens[token.chain], token.id)
        self._trim(self._migrated, token.id)
        return token

    def is_migrated(self, token_id: str) -> bool:
        return token_id in self._migrated

    def solana_tokens(self) -> list[TokenData]:
        return list(self._tokens[Chain.SOLANA].values())

    def bsc_tokens(self) -> list[TokenData]:
        return list(self._tokens[Chain.BSC].values())

    def migrated_tokens(self) -> list[TokenData]:
        return list(self._migrated.values())

    def all_tokens(self) -> list[TokenData]:
        return self.solana_tokens() + self.bsc_tokens()

    def count(self, chain: Chain) -> int:
        return len(self._tokens[chain])

    def clear(self) -> None:
        for tokens in self._tokens.values():
            tokens.clear()
        self._migrated.clear()

    def __len__(self) -> int:
        return sum(len(tokens) for tokens in self._tokens.values())
