"""Tests for the BSC token feed client."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from src.parsers.bsc.ws_client import SUBSCRIBE_FRAME, BscFeedClient


class TestBscFeedClient:
    def test_disabled_without_url(self) -> None:
        assert BscFeedClient().enabled is False
        assert BscFeedClient(ws_url="wss://bsc.example/ws").enabled is True

    @pytest.mark.asyncio
    async def test_connect_noop_when_disabled(self) -> None:
        client = BscFeedClient()
        connect = MagicMock()
        with patch("src.parsers.bsc.ws_client.connect", connect):
            await client.connect()
        connect.assert_not_called()

    @pytest.mark.asyncio
    async def test_fixed_delay_reconnect(self) -> None:
        client = BscFeedClient(ws_url="wss://bsc.example/ws", reconnect_delay=3.0)
        calls = 0

        async def sleep(delay: float) -> None:
            nonlocal calls
            calls += 1
            if calls == 3:
                client._running = False

        sleep_mock = AsyncMock(side_effect=sleep)
        with (
            patch("src.parsers.bsc.ws_client.connect", MagicMock(side_effect=OSError("refused"))),
            patch("src.parsers.bsc.ws_client.asyncio.sleep", sleep_mock),
        ):
            await client.connect()

        assert [c.args[0] for c in sleep_mock.await_args_list] == [3.0, 3.0, 3.0]
        assert client.status().reconnect_attempts == 3

    @pytest.mark.asyncio
    async def test_dispatch(self) -> None:
        client = BscFeedClient(ws_url="wss://bsc.example/ws")
        client.on_event = AsyncMock()

        await client.dispatch(json.dumps({"address": "0xabc", "symbol": "BNBCAT"}))
        await client.dispatch("garbage")

        client.on_event.assert_awaited_once_with({"address": "0xabc", "symbol": "BNBCAT"})
        assert client.status().messages == 2

    def test_subscribe_frame(self) -> None:
        assert SUBSCRIBE_FRAME == {"method": "subscribe", "type": "new_tokens", "chain": "bsc"}
