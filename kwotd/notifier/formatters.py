"""KWOTD Notifier — Notification Text Formatter.

Turns a dictionary entry's pre-rendered markup into the three texts a
notification shows:
  - title: the entry name, bold and in the secondary typeface
  - short body: the definition as-is
  - long body: the definition followed by the footer, with the
    organization name set in the secondary typeface

Also formats the replies of the bot commands.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from kwotd.database.models import ReferenceEntry
from kwotd.notifier.styled_text import Style, StyledText, escape_html
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

# Separates the definition from the footer in the long body.
_FOOTER_SEPARATOR = "<br/><br/>"


@dataclass(frozen=True)
class NotificationText:
    title: StyledText
    short_body: StyledText
    long_body: StyledText


def format_title(entry: ReferenceEntry) -> StyledText:
    """Entry name, bold and secondary typeface across its full length."""
    title = StyledText.from_markup(entry.formatted_name)
    title.style_all(Style.BOLD)
    title.style_all(Style.SERIF)
    return title


def format_short_body(entry: ReferenceEntry) -> StyledText:
    return StyledText.from_markup(entry.formatted_definition)


def format_long_body(
    entry: ReferenceEntry, footer: str, organization_name: str
) -> StyledText:
    """Definition plus footer, highlighting the organization name.

    Only the first occurrence of `organization_name` in the rendered
    text receives the secondary typeface. The footer markup is expected
    to make it bold already.

    Args:
        entry: The selected or synthesized entry.
        footer: Footer markup appended after a blank line.
        organization_name: Literal name to highlight.

    Returns:
        The long body.
    """
    body = StyledText.from_markup(entry.formatted_definition + _FOOTER_SEPARATOR + footer)
    if organization_name:
        loc = body.text.find(organization_name)
        if loc != -1:
            body.add_span(loc, loc + len(organization_name), Style.SERIF)
        else:
            logger.debug("Organization name not found in long body")
    return body


def format_notification_text(
    entry: ReferenceEntry, footer: str, organization_name: str
) -> NotificationText:
    """Build title, short body and long body for an entry."""
    return NotificationText(
        title=format_title(entry),
        short_body=format_short_body(entry),
        long_body=format_long_body(entry, footer, organization_name),
    )


# ═══════════════════════════════════════════════════════════
# Command Replies
# ═══════════════════════════════════════════════════════════


def format_entry_message(entry: ReferenceEntry) -> str:
    """Telegram HTML for a single dictionary entry (deep-link replies)."""
    title = format_title(entry).to_html()
    body = format_short_body(entry).to_html()
    return f"{title}\n\n{body}"


def format_status(
    status: dict[str, Any],
    circuit: dict[str, Any],
    next_run: Optional[datetime] = None,
    pending_retry: Optional[datetime] = None,
) -> str:
    """Format the /status reply.

    Args:
        status: RunHistory.get_status() output.
        circuit: CircuitBreaker.to_dict() of the Telegram circuit.
        next_run: Next scheduled daily run.
        pending_retry: Fire time of a pending retry, if any.

    Returns:
        HTML formatted status message.
    """
    lines = [
        "<b>📖 KWOTD Notifier</b>",
        "",
        f"⏱ Uptime: {escape_html(status['uptime'])}",
        f"🔄 Runs: <b>{status['total_runs']}</b> "
        f"(✅ {status['success']} · 🔁 {status['duplicate']} · ❌ {status['failed']})",
    ]

    last_outcome = status.get("last_outcome")
    if last_outcome:
        lines.append(
            f"🕐 Last run: {escape_html(status['last_run_at'])} ({escape_html(last_outcome)})"
        )
    else:
        lines.append("🕐 Last run: not yet")

    if status.get("last_word"):
        lines.append(f"🗣 Last word: <b>{escape_html(status['last_word'])}</b>")
    if status.get("last_error"):
        lines.append(f"⚠️ Last error: {escape_html(status['last_error'][:200])}")

    if next_run:
        lines.append(f"📅 Next daily run: {next_run:%Y-%m-%d %H:%M %Z}")
    if pending_retry:
        lines.append(f"⏳ Retry at: {pending_retry:%Y-%m-%d %H:%M %Z}")

    if circuit.get("state") != "CLOSED":
        lines.append(
            f"🔌 Telegram circuit {circuit['state']} "
            f"({circuit['remaining_cooldown']:.0f}s left)"
        )

    return "\n".join(lines)
