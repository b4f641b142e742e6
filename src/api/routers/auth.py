"""Telegram login: bot deep-link handshake and Login Widget verification."""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote, urlencode

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse, RedirectResponse
from loguru import logger

from config.environment import get_base_url, get_bot_token
from config.settings import settings
from src.api.app import limiter
from src.api.dependencies import get_auth_tokens
from src.bot.auth_tokens import AuthTokenStore, bot_link
from src.bot.login import LoginCheck, verify_login
from src.bot.webhook import CALLBACK_PATH

router = APIRouter(prefix="/api/auth/telegram", tags=["auth"])

CALLBACK_FIELDS = ("id", "first_name", "last_name", "username", "photo_url", "auth_date")


def _error_redirect(request: Request, error: str) -> RedirectResponse:
    origin = str(request.base_url).rstrip("/")
    return RedirectResponse(f"{origin}/?error={error}", status_code=307)


@router.get("/init")
@limiter.limit("30/minute")
async def init_telegram_auth(
    request: Request,
    tokens: AuthTokenStore = Depends(get_auth_tokens),
) -> JSONResponse:
    token = tokens.generate()
    link = bot_link(token)
    logger.info(f"[AUTH] Telegram auth initiated, token {token[:8]}...")
    return JSONResponse({
        "success": True,
        "botLink": link,
        "token": token,
        "callbackUrl": f"{get_base_url()}{CALLBACK_PATH}?token={token}",
    })


@router.get("/callback")
async def telegram_callback(
    request: Request,
    tokens: AuthTokenStore = Depends(get_auth_tokens),
) -> RedirectResponse:
    params = request.query_params
    token = params.get("token")
    received_hash = params.get("hash")
    if not (token and params.get("id") and params.get("first_name") and received_hash and params.get("auth_date")):
        logger.warning("[AUTH] Missing required Telegram callback parameters")
        return _error_redirect(request, "missing_params")

    if not tokens.verify_and_consume(token):
        logger.warning(f"[AUTH] Invalid or expired auth token {token[:8]}...")
        return _error_redirect(request, "invalid_token")

    bot_token = get_bot_token()
    if not bot_token:
        logger.error("[AUTH] Telegram bot token not configured")
        return _error_redirect(request, "server_error")

    fields = {key: params.get(key) for key in CALLBACK_FIELDS}
    check = verify_login(bot_token, fields, received_hash, max_age=settings.telegram_auth_max_age_sec)
    if check == LoginCheck.INVALID_HASH:
        logger.warning(f"[AUTH] Invalid Telegram callback hash for user {fields['id']}")
        return _error_redirect(request, "invalid_hash")
    if check == LoginCheck.EXPIRED:
        logger.warning(f"[AUTH] Telegram auth expired for user {fields['id']}")
        return _error_redirect(request, "expired")

    user: dict[str, Any] = {k: v for k, v in fields.items() if v}
    user["auth_date"] = int(fields["auth_date"])
    query = urlencode({"telegram_auth": "success", "data": quote(json.dumps(user))})
    logger.info(f"[AUTH] Telegram auth successful for user {fields['id']}")
    return RedirectResponse(f"{get_base_url()}/?{query}", status_code=307)


@router.post("")
async def verify_telegram_widget(request: Request) -> JSONResponse:
    try:
        body = await request.json()
    except ValueError:
        body = None
    if not isinstance(body, dict) or not (body.get("id") and body.get("auth_date") and body.get("hash")):
        return JSONResponse({"error": "Missing required Telegram auth data"}, status_code=400)

    bot_token = get_bot_token()
    if not bot_token:
        logger.error("[AUTH] Telegram bot token not configured")
        return JSONResponse({"error": "Telegram authentication not configured"}, status_code=500)

    check = verify_login(bot_token, body, str(body["hash"]), max_age=settings.telegram_auth_max_age_sec)
    if check == LoginCheck.INVALID_HASH:
        logger.warning(f"[AUTH] Invalid Telegram widget hash for user {body['id']}")
        return JSONResponse({"error": "Invalid authentication hash"}, status_code=401)
    if check == LoginCheck.EXPIRED:
        return JSONResponse({"error": "Authentication expired"}, status_code=401)

    name = f"{body.get('first_name', '')} {body.get('last_name') or ''}".strip()
    return JSONResponse({
        "success": True,
        "user": {
            "id": str(body["id"]),
            "name": name,
            "telegramId": str(body["id"]),
            "username": body.get("username"),
            "avatar": body.get("photo_url"),
        },
    })
