"""KWOTD Notifier — Telegram Notification Surface.

Posts notification payloads to a Telegram chat using
python-telegram-bot v22+:
  - Channels are registered once in SQLite; LOW importance posts silently
  - Each fixed slot holds one message; a successful post replaces it
  - The tap target becomes an inline-keyboard link button; entries link
    to the bot's own `/start entry_<id>` deep link
  - Transient network errors are retried, repeated failures trip a
    circuit breaker, and anything left over surfaces as NotifyError
"""

from __future__ import annotations

from typing import Optional

import aiosqlite
from telegram import Bot, InlineKeyboardButton, InlineKeyboardMarkup, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import BadRequest, TelegramError
from telegram.error import NetworkError as TelegramNetworkError

from kwotd.config import NotificationConfig, TelegramConfig
from kwotd.database import queries
from kwotd.database.db import Database
from kwotd.errors import NotifyError
from kwotd.notifier.builder import (
    ChannelDescriptor,
    Importance,
    NotificationPayload,
    tap_target_url,
)
from kwotd.pipeline.resolver import TapAction
from kwotd.utils.logger import get_logger
from kwotd.utils.resilience import CircuitBreaker, CircuitOpenError, retry_async

logger = get_logger(__name__)

_BUTTON_LABELS = {
    TapAction.OPEN_ENTRY: "📖 Open entry",
    TapAction.SEARCH: "🔍 Search",
}


def render_message(payload: NotificationPayload) -> str:
    """Render title and long body as one Telegram HTML message."""
    return f"{payload.title.to_html()}\n\n{payload.long_body.to_html()}"


class TelegramNotifier:
    """Telegram-backed notification surface.

    Attributes:
        config: TelegramConfig with bot_token and chat_id.
        notification_config: Link templates for tap targets.
        db: Database holding channel and slot bookkeeping.
        circuit_breaker: Guards the Telegram API.
    """

    def __init__(
        self,
        config: TelegramConfig,
        notification_config: NotificationConfig,
        db: Database,
        bot: Optional[Bot] = None,
    ) -> None:
        """Initialize the notifier.

        Args:
            config: TelegramConfig from the app configuration.
            notification_config: NotificationConfig for link templates.
            db: Active database instance.
            bot: Optional pre-built Bot, mainly for tests.
        """
        self.config = config
        self.notification_config = notification_config
        self.db = db
        self._bot = bot if bot is not None else Bot(token=config.bot_token)
        self.bot_username: Optional[str] = None

        # A rejected message is not an outage.
        self.circuit_breaker = CircuitBreaker(
            name="telegram",
            failure_threshold=3,
            cooldown_seconds=600,
            excluded=(BadRequest,),
        )

    async def initialize(self) -> bool:
        """Verify the bot token with getMe.

        Returns:
            True if connected successfully, False otherwise.
        """
        try:
            me = await self._bot.get_me()
            self.bot_username = me.username
            logger.info("Telegram bot connected: @%s", me.username)
            return True
        except TelegramError as e:
            logger.error("Telegram bot connection failed: %s", e)
            return False

    async def ensure_channel(self, channel: ChannelDescriptor) -> bool:
        """Register the channel if it does not exist yet.

        An existing registration is left untouched, so settings the user
        changed afterwards (such as muting) survive.

        Returns:
            True if the channel was newly created.

        Raises:
            NotifyError: If the registration cannot be stored.
        """
        try:
            created = await queries.register_channel(
                self.db,
                channel_id=channel.id,
                display_name=channel.display_name,
                importance=channel.importance.value,
                lights_enabled=channel.lights_enabled,
                light_color=channel.light_color.value,
                silent=channel.importance == Importance.LOW,
            )
        except aiosqlite.Error as e:
            raise NotifyError(f"Failed to register channel {channel.id}: {e}") from e
        if created:
            logger.info("Registered notification channel '%s'", channel.display_name)
        return created

    async def post(self, slot_id: int, payload: NotificationPayload) -> str:
        """Post a notification into a slot, replacing its previous message.

        Args:
            slot_id: Fixed notification slot.
            payload: The notification to post.

        Returns:
            The Telegram message id as a string.

        Raises:
            NotifyError: If the message could not be sent.
        """
        try:
            channel = await queries.get_channel(self.db, payload.channel.id)
            previous = await queries.get_slot_message(self.db, slot_id)
        except aiosqlite.Error as e:
            raise NotifyError(f"Failed to read notification state: {e}") from e

        silent = bool(channel["silent"]) if channel else payload.channel.importance == Importance.LOW

        username = (
            await self._username() if payload.target.action == TapAction.OPEN_ENTRY else ""
        )
        url = tap_target_url(payload.target, self.notification_config, username)
        markup = InlineKeyboardMarkup(
            [[InlineKeyboardButton(_BUTTON_LABELS[payload.target.action], url=url)]]
        )

        try:
            message_id = await self.circuit_breaker.call(
                self._send, render_message(payload), markup, silent,
            )
        except CircuitOpenError as e:
            raise NotifyError(str(e)) from e
        except TelegramError as e:
            raise NotifyError(f"Telegram send failed: {e}") from e

        # Only now that the new message is out does the old one go.
        if previous is not None and previous != message_id:
            await self._delete_previous(previous)

        try:
            await queries.set_slot_message(self.db, slot_id, message_id)
        except aiosqlite.Error as e:
            # The message is out; only the replace-on-next-post link is lost.
            logger.warning("Could not record slot %d message: %s", slot_id, e)

        logger.info("Posted notification in slot %d (msg=%s)", slot_id, message_id)
        return message_id

    async def _username(self) -> str:
        """Bot username for deep links, fetched once if initialize() failed."""
        if self.bot_username is None:
            try:
                me = await self.circuit_breaker.call(self._bot.get_me)
            except CircuitOpenError as e:
                raise NotifyError(str(e)) from e
            except TelegramError as e:
                raise NotifyError(f"Telegram getMe failed: {e}") from e
            self.bot_username = me.username
        return self.bot_username

    # BadRequest subclasses NetworkError but resending cannot fix it.
    @retry_async(
        max_attempts=3, base_delay=2.0,
        exceptions=(TelegramNetworkError,), no_retry=(BadRequest,),
    )
    async def _send(
        self, text: str, markup: InlineKeyboardMarkup, silent: bool,
    ) -> str:
        msg = await self._bot.send_message(
            chat_id=self.config.chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            reply_markup=markup,
            disable_notification=silent,
            link_preview_options=LinkPreviewOptions(is_disabled=True),
        )
        return str(msg.message_id)

    async def _delete_previous(self, message_id: str) -> None:
        """Remove the slot's previous message; a failure here is not fatal."""
        try:
            await self._bot.delete_message(
                chat_id=self.config.chat_id, message_id=int(message_id),
            )
            logger.debug("Deleted previous notification %s", message_id)
        except BadRequest as e:
            # Already deleted by the user, or too old to delete.
            logger.debug("Previous notification %s not deleted: %s", message_id, e)
        except TelegramError as e:
            logger.warning("Failed to delete previous notification %s: %s", message_id, e)
