"""KWOTD Notifier — Notifier Package.

Turns a resolved dictionary entry into a posted Telegram message.
Components:
  - styled_text: plain text plus style spans, rendered to Telegram HTML
  - formatters: title / short body / long body and command replies
  - builder: surface-independent notification payload and channel
  - telegram_bot: Telegram surface (channel registry, slot replacement)
  - commands: interactive bot commands
"""

from kwotd.notifier.builder import (
    NOTIFICATION_CHANNEL_ID,
    NOTIFICATION_ID,
    NotificationBuilder,
    NotificationPayload,
)
from kwotd.notifier.formatters import format_notification_text
from kwotd.notifier.styled_text import Style, StyledText
from kwotd.notifier.telegram_bot import TelegramNotifier

__all__ = [
    "NOTIFICATION_CHANNEL_ID",
    "NOTIFICATION_ID",
    "NotificationBuilder",
    "NotificationPayload",
    "format_notification_text",
    "Style",
    "StyledText",
    "TelegramNotifier",
]
