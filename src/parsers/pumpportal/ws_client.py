import asyncio
import json
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

import websockets
from loguru import logger
from websockets.asyncio.client import ClientConnection, connect

from src.parsers.pumpportal.models import PumpPortalSubscription

PUMPPORTAL_WS_URL = "wss://pumpportal.fun/api/data"

EventCallback = Callable[[dict[str, Any]], Awaitable[None]]


class ConnectionState(Enum):
    DISCONNECTED = "disconnected"
    CONNECTING = "connecting"
    CONNECTED = "connected"
    ACTIVE = "active"


@dataclass
class FeedStatus:
    connected: bool
    connecting: bool
    reconnect_attempts: int
    messages: int

    def to_dict(self) -> dict[str, Any]:
        return {
            "connected": self.connected,
            "connecting": self.connecting,
            "reconnectAttempts": self.reconnect_attempts,
            "messages": self.messages,
        }


def reconnect_delay(attempt: int, base_delay: float, max_delay: float) -> float:
    """Linear-then-capped backoff: base * attempt, never above max_delay."""
    return min(base_delay * attempt, max_delay)


class PumpPortalClient:
    """WebSocket client for PumpPortal real-time pump.fun events.

    One connection carries every subscription (PumpPortal caps connections
    per IP). Raw decoded frames are handed to ``on_event``; classification
    happens downstream in the event router.
    """

    def __init__(
        self,
        ws_url: str = PUMPPORTAL_WS_URL,
        api_key: str = "",
        base_delay: float = 3.0,
        max_delay: float = 30.0,
        max_attempts: int = 10,
    ) -> None:
        self._ws_url = ws_url
        self._api_key = api_key
        self._ws: ClientConnection | None = None
        self._state = ConnectionState.DISCONNECTED
        self._running = False
        self._tracked_tokens: set[str] = set()
        self._tracked_accounts: set[str] = set()
        self._base_delay = base_delay
        self._max_delay = max_delay
        self._max_attempts = max_attempts
        self._reconnect_attempts = 0
        self._message_count = 0

        self.on_event: EventCallback | None = None

    @property
    def state(self) -> ConnectionState:
        return self._state

    @property
    def url(self) -> str:
        # PumpSwap data needs a key; plain pump.fun data is free
        if self._api_key:
            return f"{self._ws_url}?api-key={self._api_key}"
        return self._ws_url

    @property
    def reconnect_attempts(self) -> int:
        return self._reconnect_attempts

    @property
    def message_count(self) -> int:
        return self._message_count

    def status(self) -> FeedStatus:
        return FeedStatus(
            connected=self._state in (ConnectionState.CONNECTED, ConnectionState.ACTIVE),
            connecting=self._state == ConnectionState.CONNECTING,
            reconnect_attempts=self._reconnect_attempts,
            messages=self._message_count,
        )

    async def connect(self) -> None:
        """Connect and listen until stopped or the reconnect budget is spent."""
        self._running = True
        while self._running:
            if self._reconnect_attempts >= self._max_attempts:
                logger.error(
                    f"[PUMPPORTAL] Max reconnection attempts ({self._max_attempts}) reached, "
                    "giving up on the socket; HTTP feeds remain available"
                )
                break
            try:
                self._state = ConnectionState.CONNECTING
                async with connect(
                    self.url,
                    ping_interval=30,
                    ping_timeout=10,
                    close_timeout=5,
                ) as ws:
                    self._ws = ws
                    self._state = ConnectionState.CONNECTED
                    self._reconnect_attempts = 0
                    await self._subscribe_all()
                    self._state = ConnectionState.ACTIVE
                    logger.info(
                        "[PUMPPORTAL] WS connected and subscribed "
                        f"({'PumpSwap enabled' if self._api_key else 'pump.fun only'})"
                    )
                    await self._listen()
                # Iteration ends without error on a clean close (code 1000)
                self._mark_disconnected()
                if self._running:
                    logger.info(f"[PUMPPORTAL] Closed cleanly by server, reconnecting in {self._base_delay:.0f}s")
                    await asyncio.sleep(self._base_delay)
            except (
                websockets.ConnectionClosed,
                websockets.InvalidHandshake,
                ConnectionError,
                OSError,
                TimeoutError,
            ) as e:
                self._mark_disconnected()
                self._reconnect_attempts += 1
                logger.warning(
                    f"[PUMPPORTAL] WS disconnected: {e} "
                    f"(attempt {self._reconnect_attempts}/{self._max_attempts})"
                )
                if self._running and self._reconnect_attempts < self._max_attempts:
                    delay = reconnect_delay(
                        self._reconnect_attempts, self._base_delay, self._max_delay
                    )
                    logger.info(f"[PUMPPORTAL] Reconnecting in {delay:.0f}s...")
                    await asyncio.sleep(delay)
        self._mark_disconnected()

    def _mark_disconnected(self) -> None:
        self._state = ConnectionState.DISCONNECTED
        self._ws = None

    async def _send(self, frame: PumpPortalSubscription) -> None:
        if self._ws is None:
            return
        await self._ws.send(frame.to_frame())

    async def _subscribe_all(self) -> None:
        await self._send(PumpPortalSubscription(method="subscribeNewToken"))
        await self._send(PumpPortalSubscription(method="subscribeMigration"))
        if self._tracked_accounts:
            await self._send(
                PumpPortalSubscription(
                    method="subscribeAccountTrade", keys=sorted(self._tracked_accounts)
                )
            )
        if self._tracked_tokens:
            await self._send(
                PumpPortalSubscription(
                    method="subscribeTokenTrade", keys=sorted(self._tracked_tokens)
                )
            )

    async def _listen(self) -> None:
        if self._ws is None:
            return
        async for message in self._ws:
            await self.dispatch(message)

    async def dispatch(self, message: str | bytes) -> None:
        """Decode one frame and hand it to ``on_event``; errors never escape."""
        self._message_count += 1
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("[PUMPPORTAL] Dropping non-JSON frame")
            return
        if not isinstance(data, dict) or self.on_event is None:
            return
        try:
            await self.on_event(data)
        except Exception as e:
            logger.error(f"[PUMPPORTAL] Error handling event: {e}")

    def _is_active(self) -> bool:
        return self._ws is not None and self._state == ConnectionState.ACTIVE

    async def subscribe_token_trades(self, mints: list[str]) -> bool:
        """Watch buys/sells for the given mints. Returns False when not connected."""
        self._tracked_tokens.update(mints)
        if not self._is_active():
            logger.warning("[PUMPPORTAL] Not connected, token trades queued for next connect")
            return False
        await self._send(PumpPortalSubscription(method="subscribeTokenTrade", keys=mints))
        return True

    async def unsubscribe_token_trades(self, mints: list[str]) -> bool:
        self._tracked_tokens.difference_update(mints)
        if not self._is_active():
            return False
        await self._send(PumpPortalSubscription(method="unsubscribeTokenTrade", keys=mints))
        return True

    async def subscribe_account_trades(self, accounts: list[str]) -> bool:
        self._tracked_accounts.update(accounts)
        if not self._api_key:
            logger.warning(
                "[PUMPPORTAL] Account trades on PumpSwap require an API key, "
                "subscribing anyway (pump.fun data only)"
            )
        if not self._is_active():
            logger.warning("[PUMPPORTAL] Not connected, account trades queued for next connect")
            return False
        await self._send(PumpPortalSubscription(method="subscribeAccountTrade", keys=accounts))
        return True

    async def unsubscribe_account_trades(self, accounts: list[str]) -> bool:
        self._tracked_accounts.difference_update(accounts)
        if not self._is_active():
            return False
        await self._send(
            PumpPortalSubscription(method="unsubscribeAccountTrade", keys=accounts)
        )
        return True

    @property
    def tracked_tokens(self) -> set[str]:
        return set(self._tracked_tokens)

    @property
    def tracked_accounts(self) -> set[str]:
        return set(self._tracked_accounts)

    def reset_reconnect_attempts(self) -> None:
        self._reconnect_attempts = 0

    async def stop(self) -> None:
        self._running = False
        if self._ws is not None:
            await self._ws.close(code=1000, reason="Client disconnecting")
        self._mark_disconnected()
        self._reconnect_attempts = 0
