"""Shared test fixtures."""

from collections.abc import AsyncGenerator, Callable
from typing import Any
from unittest.mock import AsyncMock

import pytest
import pytest_asyncio

from config.settings import Settings
from src.aggregator.service import MultiChainTokenService
from src.parsers.dexscreener.client import DexScreenerClient
from src.parsers.pumpfun.client import PumpfunClient
from tests.factories import BOT_TOKEN


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    """Settings isolated from any local .env file."""

    def _make(**overrides: Any) -> Settings:
        return Settings(_env_file=None, **overrides)

    return _make


@pytest.fixture
def pumpfun_mock() -> AsyncMock:
    mock = AsyncMock(spec=PumpfunClient)
    mock.fetch_token_info.return_value = None
    mock.fetch_migrated_tokens.return_value = []
    mock.fetch_from_endpoint.return_value = []
    return mock


@pytest.fixture
def dexscreener_mock() -> AsyncMock:
    mock = AsyncMock(spec=DexScreenerClient)
    mock.fetch_token_info.return_value = None
    return mock


@pytest_asyncio.fixture
async def service(
    make_settings: Callable[..., Settings],
    pumpfun_mock: AsyncMock,
    dexscreener_mock: AsyncMock,
) -> AsyncGenerator[MultiChainTokenService, None]:
    """Token service with real (never connected) feed clients and mocked vendors."""
    cfg = make_settings(enable_pumpportal=False, enable_enrichment=False)
    svc = MultiChainTokenService(cfg, pumpfun=pumpfun_mock, dexscreener=dexscreener_mock)
    yield svc
    await svc.stop()


@pytest.fixture
def telegram_env(monkeypatch: pytest.MonkeyPatch) -> Settings:
    """Global settings pinned to development with a single bot and no secrets."""
    from config.settings import settings

    values = {
        "app_env": "development",
        "vercel_env": "",
        "vercel_url": "",
        "base_url": "",
        "telegram_bot_token": BOT_TOKEN,
        "telegram_bot_token_dev": "",
        "telegram_bot_token_preview": "",
        "telegram_bot_username": "pulse_bot",
        "telegram_webhook_secret": "",
        "telegram_webhook_secret_dev": "",
        "telegram_webhook_secret_preview": "",
    }
    for name, value in values.items():
        monkeypatch.setattr(settings, name, value)
    return settings
