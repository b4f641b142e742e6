"""Singleton registry for runtime objects shared between the service and the API.

Populated once during startup in ``src.main``. FastAPI endpoints read these
references directly; everything runs in a single asyncio event loop.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from config.settings import settings
from src.bot.auth_tokens import AuthTokenStore

if TYPE_CHECKING:
    from src.aggregator.service import MultiChainTokenService
    from src.bot.telegram_api import TelegramApi


class ServiceRegistry:
    """Holds references to runtime objects for API access."""

    def __init__(self) -> None:
        self.service: MultiChainTokenService | None = None
        self.auth_tokens = AuthTokenStore(expiry_sec=settings.telegram_auth_token_ttl_sec)
        self._telegram: dict[str, TelegramApi] = {}

    def telegram_api(self, bot_token: str) -> TelegramApi:
        """One aiogram Bot per token; preview/dev bots can differ from prod."""
        from src.bot.telegram_api import TelegramApi

        api = self._telegram.get(bot_token)
        if api is None:
            api = TelegramApi(bot_token)
            self._telegram[bot_token] = api
        return api

    async def close(self) -> None:
        for api in self._telegram.values():
            await api.close()
        self._telegram.clear()


registry = ServiceRegistry()
