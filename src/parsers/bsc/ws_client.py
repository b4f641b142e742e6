"""WebSocket client for the BSC new-token feed (forr.meme).

Mirrors the PumpPortalClient pattern with a fixed reconnect delay. The
upstream has no documented public socket yet, so the client stays idle
unless ``bsc_ws_url`` is configured.
"""

import asyncio
import json

import websockets
from loguru import logger
from websockets.asyncio.client import ClientConnection, connect

from src.parsers.pumpportal.ws_client import ConnectionState, EventCallback, FeedStatus

SUBSCRIBE_FRAME = {"method": "subscribe", "type": "new_tokens", "chain": "bsc"}


class BscFeedClient:
    def __init__(self, ws_url: str = "", reconnect_delay: float = 3.0) -> None:
        self._ws_url = ws_url
        self._ws: ClientConnection | None = None
        self._state = ConnectionState.DISCONNECTED
        self._running = False
        self._reconnect_delay = reconnect_delay
        self._reconnect_attempts = 0
        self._message_count = 0

        self.on_event: EventCallback | None = None

    @property
    def enabled(self) -> bool:
        return bool(self._ws_url)

    @property
    def state(self) -> ConnectionState:
        return self._state

    def status(self) -> FeedStatus:
        return FeedStatus(
            connected=self._state in (ConnectionState.CONNECTED, ConnectionState.ACTIVE),
            connecting=self._state == ConnectionState.CONNECTING,
            reconnect_attempts=self._reconnect_attempts,
            messages=self._message_count,
        )

    async def connect(self) -> None:
        if not self.enabled:
            logger.info("[BSC] WebSocket URL not configured, skipping BSC feed")
            return

        self._running = True
        while self._running:
            try:
                self._state = ConnectionState.CONNECTING
                async with connect(self._ws_url, ping_interval=30, close_timeout=5) as ws:
                    self._ws = ws
                    self._state = ConnectionState.CONNECTED
                    self._reconnect_attempts = 0
                    await ws.send(json.dumps(SUBSCRIBE_FRAME))
                    self._state = ConnectionState.ACTIVE
                    logger.info("[BSC] Connected to BSC token feed")
                    async for message in ws:
                        await self.dispatch(message)
            except (
                websockets.ConnectionClosed,
                websockets.InvalidHandshake,
                ConnectionError,
                OSError,
                TimeoutError,
            ) as e:
                self._reconnect_attempts += 1
                logger.warning(f"[BSC] WebSocket error: {e}")
            self._state = ConnectionState.DISCONNECTED
            self._ws = None
            if self._running:
                logger.info(f"[BSC] Disconnected, reconnecting in {self._reconnect_delay:.0f}s")
                await asyncio.sleep(self._reconnect_delay)

    async def dispatch(self, message: str | bytes) -> None:
        self._message_count += 1
        try:
            data = json.loads(message)
        except (json.JSONDecodeError, UnicodeDecodeError):
            logger.debug("[BSC] Dropping non-JSON frame")
            return
        if not isinstance(data, dict) or self.on_event is None:
            return
        try:
            await self.on_event(data)
        except Exception as e:
            logger.error(f"[BSC] Error handling token event: {e}")

    async def stop(self) -> None:
        self._running = False
        if self._ws is not None:
            await self._ws.close(code=1000, reason="Client disconnecting")
        self._ws = None
        self._state = ConnectionState.DISCONNECTED
        self._reconnect_attempts = 0
