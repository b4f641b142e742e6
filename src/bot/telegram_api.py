"""Bot API calls used by the login flow and webhook management (aiogram 3.x)."""

from __future__ import annotations

from typing import Any

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError
from aiogram.types import InlineKeyboardButton, InlineKeyboardMarkup
from loguru import logger

ALLOWED_UPDATES = ["message", "callback_query"]

__all__ = ["ALLOWED_UPDATES", "TelegramAPIError", "TelegramApi", "url_button"]


def url_button(text: str, url: str) -> InlineKeyboardMarkup:
    """Single-row keyboard with one URL button."""
    return InlineKeyboardMarkup(inline_keyboard=[[InlineKeyboardButton(text=text, url=url)]])


class TelegramApi:
    def __init__(self, bot_token: str) -> None:
        self.bot_token = bot_token
        self.bot = Bot(token=bot_token, default=DefaultBotProperties(parse_mode=ParseMode.HTML))

    async def send_message(
        self,
        chat_id: int,
        text: str,
        reply_markup: InlineKeyboardMarkup | None = None,
    ) -> None:
        try:
            await self.bot.send_message(chat_id=chat_id, text=text, reply_markup=reply_markup)
        except TelegramAPIError as e:
            logger.error(f"[TELEGRAM] Failed to send message to {chat_id}: {e.message}")
            raise

    async def set_webhook(
        self,
        url: str,
        secret_token: str | None = None,
        allowed_updates: list[str] | None = None,
        drop_pending_updates: bool = False,
    ) -> bool:
        return await self.bot.set_webhook(
            url=url,
            secret_token=secret_token or None,
            allowed_updates=allowed_updates or ALLOWED_UPDATES,
            drop_pending_updates=drop_pending_updates or None,
        )

    async def get_webhook_info(self) -> dict[str, Any]:
        info = await self.bot.get_webhook_info()
        return info.model_dump(exclude_none=True, mode="json")

    async def delete_webhook(self, drop_pending_updates: bool = False) -> bool:
        return await self.bot.delete_webhook(drop_pending_updates=drop_pending_updates or None)

    async def close(self) -> None:
        await self.bot.session.close()
