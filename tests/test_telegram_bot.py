"""TelegramNotifier with a mocked Bot: channels, slots, errors."""

from __future__ import annotations

from types import SimpleNamespace

import pytest
from telegram import InlineKeyboardMarkup
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden

from kwotd.database import queries
from kwotd.database.models import ReferenceEntry
from kwotd.errors import NotifyError
from kwotd.notifier.builder import NOTIFICATION_CHANNEL_ID, NOTIFICATION_ID, NotificationBuilder
from kwotd.notifier.telegram_bot import TelegramNotifier, render_message
from kwotd.pipeline.resolver import TapTarget


@pytest.fixture
def notifier(telegram_config, notification_config, db, bot) -> TelegramNotifier:
    return TelegramNotifier(telegram_config, notification_config, db, bot=bot)


@pytest.fixture
def payload(notification_config):
    entry = ReferenceEntry.build(12, "Qapla'", "excl", "success!")
    return NotificationBuilder(notification_config).build(entry, TapTarget.open_entry(12))


async def test_initialize_checks_token(notifier, bot) -> None:
    assert await notifier.initialize() is True
    bot.get_me.side_effect = Forbidden("invalid token")
    assert await notifier.initialize() is False


async def test_ensure_channel_is_idempotent(notifier, db, payload) -> None:
    assert await notifier.ensure_channel(payload.channel) is True
    await queries.set_channel_silent(db, NOTIFICATION_CHANNEL_ID, False)

    assert await notifier.ensure_channel(payload.channel) is False

    row = await queries.get_channel(db, NOTIFICATION_CHANNEL_ID)
    assert row["importance"] == "low"
    assert row["light_color"] == "red"
    assert row["lights_enabled"] == 1
    # The user's change survives re-registration.
    assert row["silent"] == 0


async def test_post_sends_html_with_link_button(notifier, bot, db, payload) -> None:
    await notifier.ensure_channel(payload.channel)

    message_id = await notifier.post(NOTIFICATION_ID, payload)

    assert message_id == "100"
    kwargs = bot.send_message.call_args.kwargs
    assert kwargs["chat_id"] == "42"
    assert kwargs["parse_mode"] == ParseMode.HTML
    assert kwargs["disable_notification"] is True
    assert kwargs["text"] == render_message(payload)
    assert kwargs["text"].startswith("<b>Qapla'</b>\n\n<i>excl.</i> success!")

    markup = kwargs["reply_markup"]
    assert isinstance(markup, InlineKeyboardMarkup)
    assert markup.inline_keyboard[0][0].url == "https://t.me/kwotd_test_bot?start=entry_12"

    assert await queries.get_slot_message(db, NOTIFICATION_ID) == "100"
    bot.delete_message.assert_not_awaited()


async def test_search_target_button(notifier, bot, notification_config) -> None:
    entry = ReferenceEntry.synthesize("bIjatlh:v", "speak")
    search_payload = NotificationBuilder(notification_config).build(
        entry, TapTarget.search("bIjatlh"),
    )

    await notifier.post(NOTIFICATION_ID, search_payload)

    markup = bot.send_message.call_args.kwargs["reply_markup"]
    assert markup.inline_keyboard[0][0].url == "https://hol.test/search?q=bIjatlh"


async def test_new_post_replaces_previous_message(notifier, bot, db, payload) -> None:
    await notifier.post(NOTIFICATION_ID, payload)
    await notifier.post(NOTIFICATION_ID, payload)

    bot.delete_message.assert_awaited_once_with(chat_id="42", message_id=100)
    assert await queries.get_slot_message(db, NOTIFICATION_ID) == "101"


async def test_previous_message_already_gone(notifier, bot, db, payload) -> None:
    await notifier.post(NOTIFICATION_ID, payload)
    bot.delete_message.side_effect = BadRequest("Message to delete not found")

    assert await notifier.post(NOTIFICATION_ID, payload) == "101"


async def test_muted_channel_posts_silently_and_unmuted_with_sound(
    notifier, bot, db, payload
) -> None:
    await notifier.ensure_channel(payload.channel)
    await queries.set_channel_silent(db, NOTIFICATION_CHANNEL_ID, False)

    await notifier.post(NOTIFICATION_ID, payload)

    assert bot.send_message.call_args.kwargs["disable_notification"] is False


async def test_send_failure_becomes_notify_error(notifier, bot, db, payload) -> None:
    bot.send_message.side_effect = BadRequest("Can't parse entities")

    with pytest.raises(NotifyError):
        await notifier.post(NOTIFICATION_ID, payload)

    # Bad requests are not retried.
    assert bot.send_message.await_count == 1
    assert await queries.get_slot_message(db, NOTIFICATION_ID) is None


async def test_open_circuit_blocks_sends(notifier, bot, payload) -> None:
    bot.send_message.side_effect = Forbidden("bot was blocked by the user")

    for _ in range(notifier.circuit_breaker.failure_threshold):
        with pytest.raises(NotifyError):
            await notifier.post(NOTIFICATION_ID, payload)

    bot.send_message.side_effect = lambda **kwargs: SimpleNamespace(message_id=1)
    with pytest.raises(NotifyError, match="OPEN"):
        await notifier.post(NOTIFICATION_ID, payload)

    assert bot.send_message.await_count == notifier.circuit_breaker.failure_threshold


async def test_failed_send_keeps_previous_message(notifier, bot, db, payload) -> None:
    await notifier.post(NOTIFICATION_ID, payload)
    bot.send_message.side_effect = Forbidden("bot was kicked from the group chat")

    with pytest.raises(NotifyError):
        await notifier.post(NOTIFICATION_ID, payload)

    bot.delete_message.assert_not_awaited()
    assert await queries.get_slot_message(db, NOTIFICATION_ID) == "100"


async def test_rejected_messages_do_not_trip_circuit(notifier, bot, payload) -> None:
    bot.send_message.side_effect = BadRequest("Can't parse entities")

    for _ in range(notifier.circuit_breaker.failure_threshold + 1):
        with pytest.raises(NotifyError, match="send failed"):
            await notifier.post(NOTIFICATION_ID, payload)

    assert notifier.circuit_breaker.to_dict()["state"] == "CLOSED"


async def test_bot_username_is_fetched_once_without_initialize(notifier, bot, payload) -> None:
    await notifier.post(NOTIFICATION_ID, payload)
    await notifier.post(NOTIFICATION_ID, payload)

    bot.get_me.assert_awaited_once()


async def test_bot_username_from_initialize_is_reused(notifier, bot, payload) -> None:
    await notifier.initialize()
    await notifier.post(NOTIFICATION_ID, payload)

    assert notifier.bot_username == "kwotd_test_bot"
    bot.get_me.assert_awaited_once()


async def test_search_target_does_not_need_bot_username(notifier, bot, notification_config) -> None:
    entry = ReferenceEntry.synthesize("bIjatlh:v", "speak")
    search_payload = NotificationBuilder(notification_config).build(
        entry, TapTarget.search("bIjatlh"),
    )

    await notifier.post(NOTIFICATION_ID, search_payload)

    bot.get_me.assert_not_awaited()
