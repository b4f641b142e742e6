"""FastAPI dependency injection: registry, token service, Telegram API."""

from __future__ import annotations

from fastapi import HTTPException, status

from config.environment import get_bot_token
from src.aggregator.service import MultiChainTokenService
from src.api.registry import ServiceRegistry, registry
from src.bot.auth_tokens import AuthTokenStore
from src.bot.telegram_api import TelegramApi


def get_registry() -> ServiceRegistry:
    """Return the global service registry."""
    return registry


def get_service() -> MultiChainTokenService:
    if registry.service is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Token service not started",
        )
    return registry.service


def get_auth_tokens() -> AuthTokenStore:
    return registry.auth_tokens


def get_telegram_api() -> TelegramApi | None:
    """Bot API for the current environment, or None when no token is set."""
    bot_token = get_bot_token()
    if not bot_token:
        return None
    return registry.telegram_api(bot_token)
