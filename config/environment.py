"""Environment-aware lookups for URLs, bot tokens and webhook secrets.

Separate bots/secrets per environment are supported: ``*_dev`` and
``*_preview`` settings override the plain value in their environment.
"""

from __future__ import annotations

from enum import Enum

from config.settings import Settings, settings

LOCAL_BASE_URL = "http://localhost:3000"
WEBHOOK_PATH = "/api/telegram/webhook"


class Environment(str, Enum):
    DEVELOPMENT = "development"
    PREVIEW = "preview"
    PRODUCTION = "production"


def get_environment(cfg: Settings = settings) -> Environment:
    if cfg.vercel_env == "preview":
        return Environment.PREVIEW
    if cfg.vercel_env == "production" or cfg.app_env == "production":
        return Environment.PRODUCTION
    return Environment.DEVELOPMENT


def get_base_url(cfg: Settings = settings) -> str:
    env = get_environment(cfg)
    if env in (Environment.PRODUCTION, Environment.PREVIEW):
        if cfg.vercel_url:
            return f"https://{cfg.vercel_url}"
        if cfg.base_url:
            return cfg.base_url.rstrip("/")
        return "https://yourdomain.com"
    return (cfg.base_url or LOCAL_BASE_URL).rstrip("/")


def get_bot_token(cfg: Settings = settings) -> str:
    env = get_environment(cfg)
    if env == Environment.DEVELOPMENT and cfg.telegram_bot_token_dev:
        return cfg.telegram_bot_token_dev
    if env == Environment.PREVIEW and cfg.telegram_bot_token_preview:
        return cfg.telegram_bot_token_preview
    return cfg.telegram_bot_token


def get_webhook_secret(cfg: Settings = settings) -> str:
    env = get_environment(cfg)
    if env == Environment.DEVELOPMENT and cfg.telegram_webhook_secret_dev:
        return cfg.telegram_webhook_secret_dev
    if env == Environment.PREVIEW and cfg.telegram_webhook_secret_preview:
        return cfg.telegram_webhook_secret_preview
    return cfg.telegram_webhook_secret


def get_webhook_url(cfg: Settings = settings) -> str:
    return f"{get_base_url(cfg)}{WEBHOOK_PATH}"


def can_set_webhook(cfg: Settings = settings) -> tuple[bool, str | None]:
    """Return (allowed, reason). HTTPS is mandatory outside development."""
    if get_environment(cfg) == Environment.DEVELOPMENT:
        return True, None
    if not get_base_url(cfg).startswith("https://"):
        return False, "HTTPS is required for webhooks in production/preview environments"
    return True, None
