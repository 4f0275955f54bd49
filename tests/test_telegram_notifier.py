"""Tests for src.adapters.telegram_notifier — alerts as Telegram messages."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from src.adapters.telegram_notifier import TelegramAlertNotifier, alert_keyboard, format_alert
from src.core.alert_monitor import low_stock_alert, missed_dose_alert
from src.data.models import Medicine

MEDICINE = Medicine(id="m1", name="Aspirin", dosage="75mg", schedule_slot="morning",
                    pills_remaining=3)


class TestFormatting:
    def test_format_alert(self):
        text = format_alert(low_stock_alert(MEDICINE))
        assert text == "🚨 *Low Stock Alert*\nAspirin has only 3 pills left. Time to refill!"

    def test_take_now_button(self):
        keyboard = alert_keyboard(missed_dose_alert(MEDICINE))
        button = keyboard.inline_keyboard[0][0]
        assert button.text == "Take Now"
        assert button.callback_data == "take:m1"

    def test_no_button_without_action(self):
        assert alert_keyboard(low_stock_alert(MEDICINE)) is None

    def test_user_text_is_escaped(self):
        medicine = Medicine(id="m2", name="Vitamin_D", dosage="1000*IU",
                            schedule_slot="morning", pills_remaining=30)
        text = format_alert(missed_dose_alert(medicine))
        assert text == (
            "⚠️ *Morning (morning) Medication Missed*\n"
            "You haven't taken your Vitamin\\_D (1000\\*IU) yet"
        )


class TestTelegramAlertNotifier:
    @pytest.mark.asyncio
    async def test_send_alert(self):
        bot = MagicMock()
        bot.send_message = AsyncMock()
        notifier = TelegramAlertNotifier(bot, chat_id=12345)

        await notifier.send_alert(missed_dose_alert(MEDICINE))

        kwargs = bot.send_message.await_args.kwargs
        assert kwargs["chat_id"] == 12345
        assert kwargs["parse_mode"] == "Markdown"
        assert kwargs["text"].startswith("⚠️ *Morning (morning) Medication Missed*")
        assert kwargs["reply_markup"] is not None

    @pytest.mark.asyncio
    async def test_send_errors_propagate(self):
        bot = MagicMock()
        bot.send_message = AsyncMock(side_effect=RuntimeError("network down"))
        notifier = TelegramAlertNotifier(bot, chat_id=12345)
        with pytest.raises(RuntimeError):
            await notifier.send_alert(low_stock_alert(MEDICINE))
