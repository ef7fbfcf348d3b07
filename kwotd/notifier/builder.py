"""KWOTD Notifier — Notification Builder.

Assembles the surface-independent notification descriptor: texts,
icons, tap target, visibility and the channel it is posted on.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from urllib.parse import quote

from kwotd.config import NotificationConfig
from kwotd.database.models import ReferenceEntry
from kwotd.notifier.formatters import format_notification_text
from kwotd.notifier.styled_text import StyledText
from kwotd.pipeline.resolver import TapAction, TapTarget

# A fixed slot, so a new notification replaces an unread older one.
NOTIFICATION_ID = 0

NOTIFICATION_CHANNEL_ID = "kwotd_channel_id"

# `/start entry_<id>` opens a dictionary entry inside the bot chat.
ENTRY_START_PREFIX = "entry_"


class Importance(str, Enum):
    LOW = "low"
    DEFAULT = "default"
    HIGH = "high"


class LightColor(str, Enum):
    RED = "red"
    GREEN = "green"
    BLUE = "blue"


class Visibility(str, Enum):
    PUBLIC = "public"
    PRIVATE = "private"
    SECRET = "secret"


@dataclass(frozen=True)
class ChannelDescriptor:
    id: str
    display_name: str
    importance: Importance
    lights_enabled: bool
    light_color: LightColor


@dataclass(frozen=True)
class NotificationPayload:
    """Everything the notification surface needs to post one message.

    Attributes:
        title: Styled entry name.
        short_body: Styled definition, for the collapsed view.
        long_body: Styled definition plus footer, for the expanded view.
        target: What tapping the notification does.
        channel: Channel the notification belongs to.
        small_icon: Status-bar icon identifier.
        large_icon: Large icon identifier.
        visibility: Lock-screen visibility.
        auto_cancel: Whether tapping dismisses the notification.
    """

    title: StyledText
    short_body: StyledText
    long_body: StyledText
    target: TapTarget
    channel: ChannelDescriptor
    small_icon: str
    large_icon: str
    visibility: Visibility = Visibility.PUBLIC
    auto_cancel: bool = True


def entry_deep_link(bot_username: str, entry_id: int) -> str:
    """t.me link that starts the bot chat on the given entry."""
    return f"https://t.me/{bot_username}?start={ENTRY_START_PREFIX}{entry_id}"


def tap_target_url(target: TapTarget, config: NotificationConfig, bot_username: str) -> str:
    """Turn a tap target into a link.

    Entries open through the bot's deep link; searches use the configured
    search URL template.
    """
    if target.action == TapAction.OPEN_ENTRY:
        return entry_deep_link(bot_username, target.entry_id)
    return config.search_url_template.format(query=quote(target.query or "", safe=""))


class NotificationBuilder:
    """Builds NotificationPayload instances from resolved entries."""

    def __init__(self, config: NotificationConfig) -> None:
        self.config = config

    def channel(self) -> ChannelDescriptor:
        return ChannelDescriptor(
            id=NOTIFICATION_CHANNEL_ID,
            display_name=self.config.channel_name,
            importance=Importance.LOW,
            lights_enabled=True,
            light_color=LightColor.RED,
        )

    def build(self, entry: ReferenceEntry, target: TapTarget) -> NotificationPayload:
        """Assemble the payload for an entry and its tap target."""
        text = format_notification_text(
            entry, self.config.footer, self.config.organization_name,
        )
        return NotificationPayload(
            title=text.title,
            short_body=text.short_body,
            long_body=text.long_body,
            target=target,
            channel=self.channel(),
            small_icon=self.config.small_icon,
            large_icon=self.config.large_icon,
        )
