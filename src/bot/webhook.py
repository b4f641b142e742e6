"""Webhook-mode update handling: the /start deep-link login handshake.

The website hands the user a ``t.me/<bot>?start=<token>`` link. When the bot
receives ``/start <token>`` it signs the sender's profile and replies with a
button pointing at the website's callback route.
"""

from __future__ import annotations

from typing import Any
from urllib.parse import urlencode

from aiogram import Dispatcher, Router
from aiogram.exceptions import TelegramAPIError
from aiogram.filters import CommandObject, CommandStart
from aiogram.types import CallbackQuery, Message
from loguru import logger

from config.environment import (
    LOCAL_BASE_URL,
    WEBHOOK_PATH,
    Environment,
    get_base_url,
    get_environment,
)
from config.settings import Settings, settings
from src.bot.login import compute_login_hash
from src.bot.telegram_api import TelegramApi, url_button
from src.utils.format import now_ms

CALLBACK_PATH = "/api/auth/telegram/callback"
AUTH_PROMPT = "\U0001f510 Click the button below to authenticate with the website:"
AUTH_BUTTON = "✅ Authenticate"
WELCOME = (
    "\U0001f44b Welcome! To authenticate with the website, "
    "please use the login button on the website first."
)

router = Router()
_dp_instance: Dispatcher | None = None


def get_dispatcher() -> Dispatcher:
    """Get or create the Dispatcher singleton with handlers registered."""
    global _dp_instance
    if _dp_instance is None:
        _dp_instance = Dispatcher()
        _dp_instance.include_router(router)
    return _dp_instance


async def resolve_callback_base_url(api: TelegramApi, cfg: Settings = settings) -> str:
    """HTTPS origin for the login button.

    Outside development the configured base URL is used. In development the
    registered webhook (typically an ngrok tunnel) is the only HTTPS origin
    Telegram can open, so it wins when present.
    """
    if get_environment(cfg) != Environment.DEVELOPMENT:
        return get_base_url(cfg)

    try:
        info = await api.get_webhook_info()
        webhook_url = info.get("url") or ""
        base = webhook_url.replace(WEBHOOK_PATH, "")
        if base.startswith("https://"):
            return base
    except TelegramAPIError as e:
        logger.warning(f"[TELEGRAM] Could not get webhook URL: {e}")

    fallback = (cfg.base_url or LOCAL_BASE_URL).rstrip("/")
    if not fallback.startswith("https://"):
        logger.warning(
            f"[TELEGRAM] Callback base {fallback} is not HTTPS; Telegram buttons need HTTPS (use ngrok)"
        )
    return fallback


def build_callback_url(base_url: str, token: str, bot_token: str, user: dict[str, Any]) -> str:
    fields = {
        "auth_date": int(now_ms() // 1000),
        "first_name": user.get("first_name"),
        "id": user.get("id"),
        "last_name": user.get("last_name"),
        "username": user.get("username"),
    }
    params = {"token": token}
    params.update({k: v for k, v in fields.items() if v is not None and v != ""})
    params["hash"] = compute_login_hash(bot_token, fields)
    return f"{base_url}{CALLBACK_PATH}?{urlencode(params)}"


@router.message(CommandStart(deep_link=True))
async def cmd_start_with_token(message: Message, command: CommandObject, api: TelegramApi) -> None:
    if message.from_user is None:
        return
    base_url = await resolve_callback_base_url(api)
    user = {
        "id": message.from_user.id,
        "first_name": message.from_user.first_name,
        "last_name": message.from_user.last_name,
        "username": message.from_user.username,
    }
    url = build_callback_url(base_url, command.args or "", api.bot_token, user)
    await api.send_message(message.chat.id, AUTH_PROMPT, reply_markup=url_button(AUTH_BUTTON, url))
    logger.info(f"[TELEGRAM] Sent login button to user {user['id']}")


@router.message(CommandStart())
async def cmd_start(message: Message, api: TelegramApi) -> None:
    await api.send_message(message.chat.id, WELCOME)


@router.callback_query()
async def on_callback_query(callback: CallbackQuery) -> None:
    logger.info(f"[TELEGRAM] Callback query received: {callback.data}")


async def handle_update(update: dict[str, Any], api: TelegramApi) -> None:
    """Dispatch one raw webhook update through the bot's router."""
    await get_dispatcher().feed_raw_update(api.bot, update, api=api)
