"""Telegram notification adapter — implements AlertPort.

Wraps a telegram.Bot instance and a chat id to satisfy the AlertPort protocol.
A "Take Now" action becomes an inline button with callback data "take:<id>".
"""

from __future__ import annotations

import logging

from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup
from telegram.helpers import escape_markdown

from src.data.models import TransientAlert

logger = logging.getLogger(__name__)

_LEVEL_ICONS = {
    "info": "📅",
    "success": "✅",
    "warning": "⚠️",
    "error": "🚨",
}


def format_alert(alert: TransientAlert) -> str:
    """Markdown text for an alert. Title and message carry user-entered names."""
    icon = _LEVEL_ICONS.get(alert.level, "🔔")
    title = escape_markdown(alert.title)
    return f"{icon} *{title}*\n{escape_markdown(alert.message)}"


def alert_keyboard(alert: TransientAlert) -> InlineKeyboardMarkup | None:
    if alert.action is None:
        return None
    return InlineKeyboardMarkup([[
        InlineKeyboardButton(
            alert.action.label, callback_data=f"take:{alert.action.medicine_id}",
        ),
    ]])


class TelegramAlertNotifier:
    """Telegram implementation of AlertPort for one chat."""

    def __init__(self, bot: Bot, chat_id: int) -> None:
        self._bot = bot
        self._chat_id = chat_id

    async def send_alert(self, alert: TransientAlert) -> None:
        await self._bot.send_message(
            chat_id=self._chat_id,
            text=format_alert(alert),
            parse_mode="Markdown",
            reply_markup=alert_keyboard(alert),
        )
        logger.debug("Alert '%s' sent to %d", alert.title, self._chat_id)
