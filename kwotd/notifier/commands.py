"""KWOTD Notifier — Telegram Command Handlers.

Interactive commands via Telegram bot:
  /start  — help; `/start entry_<id>` shows a dictionary entry
  /status — run history and scheduler state
  /kwotd  — fetch and post the word of the day now (forced run)
  /mute   — post future notifications silently
  /unmute — post future notifications with sound

Uses python-telegram-bot v22+ Application with polling.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from telegram import Update
from telegram.constants import ParseMode
from telegram.ext import Application, CommandHandler as TgCmdHandler, ContextTypes

from kwotd.database import queries
from kwotd.errors import StoreQueryError
from kwotd.notifier.builder import ENTRY_START_PREFIX, NOTIFICATION_CHANNEL_ID
from kwotd.notifier.formatters import format_entry_message, format_status
from kwotd.notifier.styled_text import escape_html
from kwotd.pipeline.runner import RunState
from kwotd.utils.logger import get_logger

if TYPE_CHECKING:
    from kwotd.main import KwotdAgent

logger = get_logger(__name__)

_HELP_TEXT = (
    "<b>📖 Klingon Word of the Day</b>\n"
    "\n"
    "A new Klingon word is posted here every day.\n"
    "\n"
    "<b>Commands:</b>\n"
    "/status — notifier status\n"
    "/kwotd — post today's word now\n"
    "/mute — post silently\n"
    "/unmute — post with sound\n"
)

_OUTCOME_REPLIES = {
    RunState.SUCCESS: "✅ <b>Word of the day posted</b>",
    RunState.DUPLICATE: "🔁 No new word yet",
    RunState.FAILED: "❌ <b>Run failed</b>, a retry is scheduled",
}


class CommandHandler:
    """Telegram bot command handlers.

    Attributes:
        agent: Running KwotdAgent instance.
    """

    def __init__(self, agent: "KwotdAgent") -> None:
        self.agent = agent
        self._tasks: set[asyncio.Task] = set()

    def register(self, tg_app: Application) -> None:
        """Register all command handlers with the Telegram Application."""
        tg_app.add_handler(TgCmdHandler("start", self._cmd_start))
        tg_app.add_handler(TgCmdHandler("status", self._cmd_status))
        tg_app.add_handler(TgCmdHandler("kwotd", self._cmd_kwotd))
        tg_app.add_handler(TgCmdHandler("mute", self._cmd_mute))
        tg_app.add_handler(TgCmdHandler("unmute", self._cmd_unmute))
        logger.info("Registered 5 Telegram commands")

    async def _cmd_start(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Handle /start, including `entry_<id>` deep links."""
        args = context.args or []
        if args and args[0].startswith(ENTRY_START_PREFIX):
            await self._show_entry(update, args[0][len(ENTRY_START_PREFIX):])
            return
        await update.message.reply_text(_HELP_TEXT, parse_mode=ParseMode.HTML)

    async def _show_entry(self, update: Update, raw_id: str) -> None:
        try:
            entry_id = int(raw_id)
        except ValueError:
            await update.message.reply_text("⚠️ Invalid entry link")
            return

        try:
            entry = await self.agent.reference_store.fetch_by_id(entry_id)
        except StoreQueryError as e:
            logger.warning("Deep link to entry %d failed: %s", entry_id, e)
            await update.message.reply_text("⚠️ Entry not found")
            return

        await update.message.reply_text(
            format_entry_message(entry), parse_mode=ParseMode.HTML,
        )

    async def _cmd_status(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Handle /status — run counts, last outcome, next runs."""
        agent = self.agent
        text = format_status(
            agent.history.get_status(),
            agent.notifier.circuit_breaker.to_dict(),
            next_run=agent.host.next_daily_run,
            pending_retry=agent.host.pending_retry,
        )
        await update.message.reply_text(text, parse_mode=ParseMode.HTML)

    async def _cmd_kwotd(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Handle /kwotd — forced one-off run in the background."""
        await update.message.reply_text(
            "🔄 <b>Fetching the word of the day...</b>", parse_mode=ParseMode.HTML,
        )
        # Run in background so the command responds immediately
        task = asyncio.create_task(self._forced_run_bg(update))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _forced_run_bg(self, update: Update) -> None:
        result = await self.agent.trigger_run(force=True)
        if result is None:
            await update.message.reply_text("⏳ A run is already in progress")
            return

        reply = _OUTCOME_REPLIES.get(result.outcome, escape_html(result.outcome.value))
        if result.error:
            reply += f"\n{escape_html(result.error[:200])}"
        await update.message.reply_text(reply, parse_mode=ParseMode.HTML)

    async def _cmd_mute(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        await self._set_silent(update, True)

    async def _cmd_unmute(
        self, update: Update, context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        await self._set_silent(update, False)

    async def _set_silent(self, update: Update, silent: bool) -> None:
        changed = await queries.set_channel_silent(
            self.agent.db, NOTIFICATION_CHANNEL_ID, silent,
        )
        if not changed:
            await update.message.reply_text(
                "⚠️ No notification posted yet; try again after the first one"
            )
            return
        await update.message.reply_text(
            "🔕 Notifications will be silent" if silent else "🔔 Notifications will make a sound"
        )
