"""Telegram webhook receiver and webhook management endpoints."""

from __future__ import annotations

import hmac
from typing import Any
from urllib.parse import urlparse

from aiogram.exceptions import TelegramAPIError
from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from loguru import logger

from config.environment import (
    Environment,
    can_set_webhook,
    get_environment,
    get_webhook_secret,
    get_webhook_url,
)
from src.api.app import limiter
from src.api.dependencies import get_telegram_api
from src.bot.telegram_api import ALLOWED_UPDATES, TelegramApi
from src.bot.webhook import handle_update

router = APIRouter(prefix="/api/telegram", tags=["telegram"])

LOCAL_HOSTS = ("localhost", "127.0.0.1")
PRIVATE_PREFIXES = ("192.168.", "10.")
NGROK_STEPS = [
    "1. Install ngrok: https://ngrok.com/",
    "2. Run: ngrok http 3000",
    "3. Use the HTTPS URL from ngrok in the webhook setup",
    "4. Or POST {\"url\": \"https://<your-ngrok-host>/api/telegram/webhook\"} to /api/telegram/webhook/setup",
]


def _error(status_code: int, error: str, details: Any = None, **extra: Any) -> JSONResponse:
    body: dict[str, Any] = {"error": error}
    if details is not None:
        body["details"] = details
    body.update(extra)
    return JSONResponse(body, status_code=status_code)


def _missing_token() -> JSONResponse:
    env = get_environment().value.upper()
    return _error(
        400,
        "Telegram bot token is not configured",
        f"Set TELEGRAM_BOT_TOKEN or TELEGRAM_BOT_TOKEN_{env}",
    )


def is_local_host(hostname: str) -> bool:
    return hostname in LOCAL_HOSTS or hostname.startswith(PRIVATE_PREFIXES)


@router.post("/webhook")
async def telegram_webhook(
    request: Request,
    api: TelegramApi | None = Depends(get_telegram_api),
) -> JSONResponse:
    expected = get_webhook_secret()
    if expected:
        received = request.headers.get("x-telegram-bot-api-secret-token", "")
        if not hmac.compare_digest(received.encode(), expected.encode()):
            logger.warning("[TELEGRAM] Invalid webhook secret")
            return _error(401, "Unauthorized")

    # Always 200 from here on, otherwise Telegram keeps redelivering
    try:
        update = await request.json()
        if api is None:
            logger.error("[TELEGRAM] Bot token not configured, dropping update")
        elif isinstance(update, dict):
            await handle_update(update, api)
    except Exception as e:
        logger.error(f"[TELEGRAM] Webhook error: {e}")
    return JSONResponse({"ok": True})


@router.post("/webhook/setup")
@limiter.limit("30/minute")
async def setup_webhook(
    request: Request,
    api: TelegramApi | None = Depends(get_telegram_api),
) -> JSONResponse:
    if api is None:
        return _missing_token()
    try:
        try:
            body = await request.json()
        except ValueError:
            body = {}
        if not isinstance(body, dict):
            body = {}
        webhook_url = body.get("url") or get_webhook_url()
        secret_token = body.get("secret_token") or get_webhook_secret()

        parsed = urlparse(webhook_url)
        if parsed.scheme not in ("http", "https") or not parsed.hostname:
            return _error(400, "Invalid webhook URL format")

        local = is_local_host(parsed.hostname)
        if parsed.scheme == "http" and local:
            return _error(
                400,
                "HTTPS required for Telegram webhooks",
                "Telegram requires HTTPS even for local development. Use a tunnel service like ngrok:",
                solution=NGROK_STEPS,
            )

        allowed, reason = can_set_webhook()
        if not allowed and not local:
            return _error(400, "Cannot set webhook", reason)

        env = get_environment()
        if env in (Environment.PRODUCTION, Environment.PREVIEW) and not secret_token:
            logger.warning(f"[TELEGRAM] {env.value} webhook setup without secret token")

        try:
            await api.set_webhook(webhook_url, secret_token=secret_token, allowed_updates=ALLOWED_UPDATES)
        except TelegramAPIError as e:
            logger.error(f"[TELEGRAM] Failed to set webhook: {e.message}")
            return _error(400, "Failed to set webhook", e.message or "Unknown error")

        logger.info(f"[TELEGRAM] Webhook set to {webhook_url} (env={env.value}, secret={bool(secret_token)})")
        return JSONResponse({
            "success": True,
            "message": "Webhook configured successfully",
            "webhookUrl": webhook_url,
            "environment": env.value,
            "hasSecret": bool(secret_token),
        })
    except Exception as e:
        logger.error(f"[TELEGRAM] Error setting up webhook: {e}")
        return _error(500, "Internal server error", str(e))


@router.get("/webhook/setup")
async def get_webhook(api: TelegramApi | None = Depends(get_telegram_api)) -> JSONResponse:
    if api is None:
        return _missing_token()
    try:
        info = await api.get_webhook_info()
    except TelegramAPIError as e:
        return _error(400, "Failed to get webhook info", e.message or "Unknown error")
    except Exception as e:
        logger.error(f"[TELEGRAM] Error getting webhook info: {e}")
        return _error(500, "Internal server error", str(e))
    return JSONResponse({
        "success": True,
        "environment": get_environment().value,
        "webhookInfo": info,
    })


@router.delete("/webhook/setup")
async def delete_webhook(api: TelegramApi | None = Depends(get_telegram_api)) -> JSONResponse:
    if api is None:
        return _missing_token()
    try:
        await api.delete_webhook()
    except TelegramAPIError as e:
        return _error(400, "Failed to delete webhook", e.message or "Unknown error")
    except Exception as e:
        logger.error(f"[TELEGRAM] Error deleting webhook: {e}")
        return _error(500, "Internal server error", str(e))
    logger.info("[TELEGRAM] Webhook deleted")
    return JSONResponse({"success": True, "message": "Webhook deleted successfully"})
