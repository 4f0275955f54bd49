"""
CareMinder — Telegram Bot.

Telegram is the presentation shell around the reminder core: inventory and
appointment commands, the /alerts notification panel, and the per-minute
transient alerts with their "Take Now" button.

Security-first: unauthorized users are silently ignored.
"""

from __future__ import annotations

import logging
import sys
from datetime import datetime
from functools import wraps
from typing import Any, Callable, Coroutine

from telegram import Update
from telegram.ext import (
    Application,
    ApplicationBuilder,
    CallbackQueryHandler,
    CommandHandler,
    ContextTypes,
)
from telegram.helpers import escape_markdown

from src.config import settings
from src.core import adherence
from src.core.appointments import upcoming_appointments
from src.core.care_state import CareState
from src.core.scheduler import AlertScheduler, CareSession
from src.core.time_utils import (
    SLOT_HOURS,
    current_time_display,
    format_date,
    format_time,
    greeting,
    now,
    parse_time_of_day,
    to_local,
)
from src.data.models import Medicine

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Security: silent-ignore decorator
# ---------------------------------------------------------------------------


def authorized_only(
    func: Callable[..., Coroutine[Any, Any, None]],
) -> Callable[..., Coroutine[Any, Any, None]]:
    """Decorator that silently ignores messages from unauthorized users.

    Does NOT send any response to strangers — the bot must not reveal
    its existence to unauthorized users.
    """

    @wraps(func)
    async def wrapper(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
        user = update.effective_user
        if user is None or user.id not in settings.ALLOWED_USER_IDS:
            uid = user.id if user else "unknown"
            logger.warning("Unauthorized access attempt from user_id=%s", uid)
            return  # Silent ignore
        return await func(update, context)

    return wrapper


# ---------------------------------------------------------------------------
# Sessions
# ---------------------------------------------------------------------------


def create_session(user_id: int, bot: Any) -> CareSession:
    """Wire a CareSession for one user: SQLite store + Telegram alerts."""
    from src.adapters.sqlite_care_store import SQLiteCareStore
    from src.adapters.telegram_notifier import TelegramAlertNotifier

    state = CareState()
    store = SQLiteCareStore(state, user_id=user_id)
    store.sync()
    return CareSession.create(
        user_id=user_id,
        state=state,
        store=store,
        notifier=TelegramAlertNotifier(bot, chat_id=user_id),
    )


def _get_session(context: ContextTypes.DEFAULT_TYPE, user_id: int) -> CareSession:
    sessions: dict[int, CareSession] = context.bot_data.setdefault("sessions", {})
    if user_id not in sessions:
        sessions[user_id] = create_session(user_id, context.bot)
    return sessions[user_id]


# ---------------------------------------------------------------------------
# Argument parsing
# ---------------------------------------------------------------------------


def _split_args(text: str) -> list[str]:
    """Strip the leading /command and split the rest on "|"."""
    parts = text.split(maxsplit=1)
    if len(parts) < 2:
        return []
    return [p.strip() for p in parts[1].split("|")]


def _parse_when(text: str) -> datetime | None:
    try:
        return to_local(datetime.strptime(text.strip(), "%Y-%m-%d %H:%M"))
    except ValueError:
        return None


def _record_id(text: str) -> str:
    """Canonical form of a typed record id: "07" → "7". Non-numbers pass through."""
    text = text.strip()
    try:
        return str(int(text))
    except ValueError:
        return text


def _parse_medicine_args(text: str) -> dict | None:
    """Parse "/addmed name | dosage | slot | pills [| threshold]"."""
    fields = _split_args(text)
    if len(fields) < 4 or not fields[0]:
        return None
    try:
        pills = int(fields[3])
        threshold = int(fields[4]) if len(fields) > 4 and fields[4] else None
    except ValueError:
        return None
    if pills < 0 or (threshold is not None and threshold < 0):
        return None
    return {
        "name": fields[0],
        "dosage": fields[1],
        "schedule_slot": fields[2] or None,
        "pills_remaining": pills,
        "refill_threshold": threshold,
    }


def _parse_appointment_args(text: str) -> dict | None:
    """Parse "/addappt title | YYYY-MM-DD HH:MM [| location]"."""
    fields = _split_args(text)
    if len(fields) < 2 or not fields[0]:
        return None
    when = _parse_when(fields[1])
    if when is None:
        return None
    return {
        "title": fields[0],
        "date": when,
        "location": fields[2] if len(fields) > 2 and fields[2] else None,
    }


# ---------------------------------------------------------------------------
# Formatting
# ---------------------------------------------------------------------------


def _md(text: str | None) -> str:
    """Escape user-entered text for Markdown replies."""
    return escape_markdown(text or "")


def _medicine_status(medicine: Medicine, at: datetime) -> str:
    if adherence.was_taken_today(medicine, at):
        return "✅ taken"
    if adherence.is_missed(medicine, at):
        return "⏰ missed"
    return "🕒 pending"


def _medicine_line(medicine: Medicine, at: datetime, show_slot: bool = False) -> str:
    stock = f"{medicine.pills_remaining} pills"
    if adherence.is_low_stock(medicine):
        stock += " ⚠️"
    slot = f" ({_md(medicine.schedule_slot or 'unscheduled')})" if show_slot else ""
    return (
        f"`{medicine.id}` — {_md(medicine.name)} {_md(medicine.dosage)}{slot}, "
        f"{stock}, {_medicine_status(medicine, at)}"
    )


def _group_by_slot(medicines: list[Medicine]) -> list[tuple[str, list[Medicine]]]:
    """Medicines under their daily slot, then everything else under "Other times"."""
    groups = []
    grouped_ids: set[str] = set()
    for slot in SLOT_HOURS:
        in_slot = adherence.medicines_for_slot(medicines, slot)
        if in_slot:
            groups.append((slot.capitalize(), in_slot))
            grouped_ids.update(m.id for m in in_slot)
    others = [m for m in medicines if m.id not in grouped_ids]
    if others:
        groups.append(("Other times", others))
    return groups


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


@authorized_only
async def cmd_start(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /start — greet and explain."""
    user = update.effective_user
    _get_session(context, user.id)
    await update.message.reply_text(
        f"{greeting()}, {user.first_name}! 💊\n\n"
        "I'll remind you about missed doses, low stock and upcoming appointments.\n"
        "Use /help to see all commands."
    )


@authorized_only
async def cmd_help(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /help — list available commands."""
    await update.message.reply_text(
        "*Available commands:*\n"
        "/addmed name | dosage | slot | pills [| threshold] — Add a medicine\n"
        "/meds — Medicines by time of day, with today's status\n"
        "/take <id> — Record a dose\n"
        "/refill <id> <amount> — Add pills\n"
        "/threshold <id> <pills|default> — Set when to warn about low stock\n"
        "/lowstock — Medicines that need a refill\n"
        "/deletemed <id> — Remove a medicine\n"
        "/addappt title | YYYY-MM-DD HH:MM [| location] — Add an appointment\n"
        "/appts — Appointments in the next 7 days\n"
        "/today — All of today's appointments\n"
        "/moveappt <id> YYYY-MM-DD HH:MM — Reschedule an appointment\n"
        "/deleteappt <id> — Remove an appointment\n"
        "/alerts — All current notifications\n"
        "/help — Show this message",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_addmed(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addmed — add a medicine to the inventory."""
    fields = _parse_medicine_args(update.message.text or "")
    if fields is None:
        await update.message.reply_text(
            "Usage: /addmed name | dosage | slot | pills [| threshold]\n"
            "Example: /addmed Metformin | 500mg | morning | 30"
        )
        return

    session = _get_session(context, update.effective_user.id)
    medicine = await session.store.add_medicine(**fields)
    if medicine is None:
        await update.message.reply_text("Couldn't save the medicine. Please try again.")
        return

    msg = (
        f"✅ Added *{_md(medicine.name)}* (`{medicine.id}`), "
        f"{medicine.pills_remaining} pills."
    )
    if parse_time_of_day(medicine.schedule_slot) is None:
        logger.warning(
            "Medicine #%s has unparseable schedule %r", medicine.id, medicine.schedule_slot,
        )
        msg += (
            f"\n⚠️ I can't read the time '{_md(medicine.schedule_slot)}', "
            "so it won't trigger missed-dose alerts."
        )
    await update.message.reply_text(msg, parse_mode="Markdown")


@authorized_only
async def cmd_meds(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /meds — medicines grouped by time of day, with today's status."""
    session = _get_session(context, update.effective_user.id)
    medicines = session.state.medicines
    if not medicines:
        await update.message.reply_text("No medicines yet. Add one with /addmed.")
        return

    at = now()
    lines = ["*Your medicines:*"]
    for label, group in _group_by_slot(medicines):
        lines.append(f"\n*{label}*")
        show_slot = label == "Other times"
        lines.extend(_medicine_line(m, at, show_slot=show_slot) for m in group)
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


async def _take_dose(
    context: ContextTypes.DEFAULT_TYPE, user_id: int, medicine_id: str,
) -> str:
    session = _get_session(context, user_id)
    medicine_id = _record_id(medicine_id)
    medicine = session.state.find_medicine(medicine_id)
    if medicine is None:
        return f"Medicine {medicine_id} not found. Use /meds to see IDs."
    if not await session.monitor.take_now(medicine_id):
        return f"Couldn't record the dose for {medicine.name}. Please try again."
    updated = session.state.find_medicine(medicine_id) or medicine
    return f"💊 {medicine.name} taken. {updated.pills_remaining} pills left."


@authorized_only
async def cmd_take(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /take <id> — record a dose."""
    if not context.args:
        await update.message.reply_text("Usage: /take <medicine_id>\nUse /meds to see IDs.")
        return
    reply = await _take_dose(context, update.effective_user.id, context.args[0])
    await update.message.reply_text(reply)


async def _handle_take_callback(
    update: Update, context: ContextTypes.DEFAULT_TYPE,
) -> None:
    """Handle the "Take Now" button on a missed-dose alert."""
    query = update.callback_query
    await query.answer()

    # Verify the user is authorized
    user = query.from_user
    if user is None or user.id not in settings.ALLOWED_USER_IDS:
        return

    medicine_id = query.data.split(":", 1)[1]
    reply = await _take_dose(context, user.id, medicine_id)
    await query.edit_message_text(reply)


@authorized_only
async def cmd_refill(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /refill <id> <amount>."""
    args = context.args or []
    try:
        medicine_id, amount = _record_id(args[0]), int(args[1])
    except (IndexError, ValueError):
        await update.message.reply_text("Usage: /refill <medicine_id> <amount>")
        return
    if amount <= 0:
        await update.message.reply_text("Refill amount must be a positive number.")
        return

    session = _get_session(context, update.effective_user.id)
    medicine = await session.store.refill(medicine_id, amount)
    if medicine is None:
        await update.message.reply_text(
            f"Couldn't refill medicine {medicine_id}. Please check the ID."
        )
        return
    await update.message.reply_text(
        f"✅ {medicine.name} refilled: {medicine.pills_remaining} pills."
    )


@authorized_only
async def cmd_threshold(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /threshold <id> <pills|default>."""
    args = context.args or []
    try:
        medicine_id = _record_id(args[0])
        threshold = None if args[1].lower() == "default" else int(args[1])
    except (IndexError, ValueError):
        await update.message.reply_text("Usage: /threshold <medicine_id> <pills|default>")
        return
    if threshold is not None and threshold < 0:
        await update.message.reply_text("Threshold can't be negative.")
        return

    session = _get_session(context, update.effective_user.id)
    medicine = await session.store.set_refill_threshold(medicine_id, threshold)
    if medicine is None:
        await update.message.reply_text("Medicine not found. Use /meds to see IDs.")
        return
    await update.message.reply_text(
        f"✅ {medicine.name}: low-stock warning at "
        f"{adherence.refill_threshold(medicine)} pills."
    )


@authorized_only
async def cmd_lowstock(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /lowstock — medicines at or below their refill threshold."""
    session = _get_session(context, update.effective_user.id)
    medicines = session.store.low_stock()
    if not medicines:
        await update.message.reply_text("All medicines are well stocked. 👍")
        return

    lines = ["*Time to refill:*\n"]
    lines.extend(
        f"`{m.id}` — {_md(m.name)}: {m.pills_remaining} pills left "
        f"(warns at {adherence.refill_threshold(m)})"
        for m in medicines
    )
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_deletemed(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deletemed <id>."""
    if not context.args:
        await update.message.reply_text("Usage: /deletemed <medicine_id>")
        return
    session = _get_session(context, update.effective_user.id)
    if await session.store.delete_medicine(_record_id(context.args[0])):
        await update.message.reply_text("Medicine deleted.")
    else:
        await update.message.reply_text("Medicine not found. Use /meds to see IDs.")


@authorized_only
async def cmd_addappt(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /addappt — add an appointment."""
    fields = _parse_appointment_args(update.message.text or "")
    if fields is None:
        await update.message.reply_text(
            "Usage: /addappt title | YYYY-MM-DD HH:MM [| location]\n"
            "Example: /addappt Dr. Rao | 2026-03-10 16:00 | City Clinic"
        )
        return

    session = _get_session(context, update.effective_user.id)
    appointment = await session.store.add_appointment(**fields)
    if appointment is None:
        await update.message.reply_text("Couldn't save the appointment. Please try again.")
        return
    await update.message.reply_text(
        f"📅 *{_md(appointment.display_name)}* on {format_date(appointment.date)} "
        f"at {format_time(appointment.date)} (`{appointment.id}`)",
        parse_mode="Markdown",
    )


def _appointment_lines(appointments, with_date: bool = True) -> list[str]:
    lines = []
    for a in appointments:
        where = f" @ {_md(a.location)}" if a.location else ""
        when = f"{format_date(a.date)} {format_time(a.date)}" if with_date else format_time(a.date)
        lines.append(f"`{a.id}` — {when}  {_md(a.display_name)}{where}")
    return lines


@authorized_only
async def cmd_appts(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /appts — appointments in the next 7 days."""
    session = _get_session(context, update.effective_user.id)
    upcoming = upcoming_appointments(session.state.appointments, now())
    if not upcoming:
        await update.message.reply_text("No appointments in the next 7 days.")
        return

    lines = ["*Upcoming appointments:*\n", *_appointment_lines(upcoming)]
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_today(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /today — every appointment on today's date, including past ones."""
    session = _get_session(context, update.effective_user.id)
    at = now()
    todays = session.store.appointments_on(at)
    if not todays:
        await update.message.reply_text("No appointments today.")
        return

    lines = [f"*Today, {format_date(at)}:*\n", *_appointment_lines(todays, with_date=False)]
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


@authorized_only
async def cmd_moveappt(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /moveappt <id> YYYY-MM-DD HH:MM."""
    args = context.args or []
    when = _parse_when(" ".join(args[1:])) if len(args) >= 3 else None
    if when is None:
        await update.message.reply_text(
            "Usage: /moveappt <appointment_id> YYYY-MM-DD HH:MM"
        )
        return

    session = _get_session(context, update.effective_user.id)
    appointment = await session.store.reschedule_appointment(_record_id(args[0]), when)
    if appointment is None:
        await update.message.reply_text("Appointment not found. Use /appts to see IDs.")
        return
    await update.message.reply_text(
        f"📅 *{_md(appointment.display_name)}* moved to {format_date(appointment.date)} "
        f"at {format_time(appointment.date)}",
        parse_mode="Markdown",
    )


@authorized_only
async def cmd_deleteappt(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /deleteappt <id>."""
    if not context.args:
        await update.message.reply_text("Usage: /deleteappt <appointment_id>")
        return
    session = _get_session(context, update.effective_user.id)
    if await session.store.delete_appointment(_record_id(context.args[0])):
        await update.message.reply_text("Appointment deleted.")
    else:
        await update.message.reply_text("Appointment not found. Use /appts to see IDs.")


@authorized_only
async def cmd_alerts(update: Update, context: ContextTypes.DEFAULT_TYPE) -> None:
    """Handle /alerts — the full notification panel (never de-duplicated)."""
    session = _get_session(context, update.effective_user.id)
    at = now()
    notifications = session.notifications.get_all_notifications(at)

    header = f"{greeting(at)} · {current_time_display(at)}"
    if not notifications:
        await update.message.reply_text(f"{header}\n\nAll caught up — no notifications. 🎉")
        return

    lines = [header, f"\n*{len(notifications)} notifications:*"]
    lines.extend(f"• {_md(n.message)}" for n in notifications)
    await update.message.reply_text("\n".join(lines), parse_mode="Markdown")


# ---------------------------------------------------------------------------
# App builder
# ---------------------------------------------------------------------------


async def _stop_alert_scheduler(app: Application) -> None:
    scheduler: AlertScheduler | None = app.bot_data.get("alert_scheduler")
    if scheduler is not None:
        scheduler.stop()


def build_app() -> Application:
    """Build and configure the Telegram Application with all handlers."""
    from src.adapters.job_queue_ticker import JobQueueTicker

    app = (
        ApplicationBuilder()
        .token(settings.TELEGRAM_BOT_TOKEN)
        .post_shutdown(_stop_alert_scheduler)
        .build()
    )

    sessions: dict[int, CareSession] = {
        uid: create_session(uid, app.bot) for uid in settings.ALLOWED_USER_IDS
    }
    app.bot_data["sessions"] = sessions

    # Commands
    app.add_handler(CommandHandler("start", cmd_start))
    app.add_handler(CommandHandler("help", cmd_help))
    app.add_handler(CommandHandler("addmed", cmd_addmed))
    app.add_handler(CommandHandler("meds", cmd_meds))
    app.add_handler(CommandHandler("take", cmd_take))
    app.add_handler(CommandHandler("refill", cmd_refill))
    app.add_handler(CommandHandler("threshold", cmd_threshold))
    app.add_handler(CommandHandler("lowstock", cmd_lowstock))
    app.add_handler(CommandHandler("deletemed", cmd_deletemed))
    app.add_handler(CommandHandler("addappt", cmd_addappt))
    app.add_handler(CommandHandler("appts", cmd_appts))
    app.add_handler(CommandHandler("today", cmd_today))
    app.add_handler(CommandHandler("moveappt", cmd_moveappt))
    app.add_handler(CommandHandler("deleteappt", cmd_deleteappt))
    app.add_handler(CommandHandler("alerts", cmd_alerts))
    app.add_handler(CallbackQueryHandler(_handle_take_callback, pattern=r"^take:"))

    # Per-minute alert check on the bot's JobQueue
    scheduler = AlertScheduler(JobQueueTicker(app.job_queue), lambda: sessions.values())
    scheduler.start()
    app.bot_data["alert_scheduler"] = scheduler

    logger.info(
        "Telegram bot application built with %d handlers, %d care sessions",
        len(app.handlers[0]), len(sessions),
    )
    return app


def main() -> None:
    """Entry point: build the app and start polling."""
    if not settings.TELEGRAM_BOT_TOKEN or settings.TELEGRAM_BOT_TOKEN.startswith("your-"):
        print("ERROR: TELEGRAM_BOT_TOKEN is missing or not set in .env", file=sys.stderr)
        sys.exit(1)

    logger.info("Starting CareMinder bot...")
    app = build_app()
    app.run_polling()


if __name__ == "__main__":
    main()
