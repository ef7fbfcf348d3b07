"""Shared fixtures: configs, a temporary database, and in-memory fakes."""

from __future__ import annotations

import json
from pathlib import Path
from types import SimpleNamespace
from typing import Callable, Optional
from unittest.mock import AsyncMock

import httpx
import pytest

from kwotd.config import FeedConfig, NotificationConfig, ScheduleConfig, TelegramConfig
from kwotd.database.db import Database
from kwotd.database.models import ReferenceEntry
from kwotd.fetcher.client import FeedClient

JSON_URL = "https://feed.test/alexa.php?KWOTD=1"
RSS_URL = "https://feed.test/kwotd.rss"


def kwotd_json(headword: str, part_of_speech: str, translation: str) -> str:
    return json.dumps({"kword": headword, "type": part_of_speech, "eword": translation})


def kwotd_rss(headword: str, part_of_speech: str, translation: str) -> str:
    return (
        "<rss><channel><item><description>\n"
        f"Klingon word: {headword}\n"
        f"Part of speech: {part_of_speech}\n"
        f"Definition: {translation}\n"
        "</description></item></channel></rss>\n"
    )


# ── Configs ──────────────────────────────────────────────


@pytest.fixture
def feed_config() -> FeedConfig:
    return FeedConfig(format="json", json_url=JSON_URL, rss_url=RSS_URL)


@pytest.fixture
def notification_config() -> NotificationConfig:
    return NotificationConfig(
        channel_name="Klingon Word of the Day",
        footer="Klingon Word of the Day is brought to you by the <b>Hol 'ampaS</b>.",
        organization_name="Hol 'ampaS",
        search_url_template="https://hol.test/search?q={query}",
    )


@pytest.fixture
def telegram_config() -> TelegramConfig:
    return TelegramConfig(bot_token="123:test-token", chat_id="42")


@pytest.fixture
def schedule_config() -> ScheduleConfig:
    return ScheduleConfig(daily_hour=9, daily_minute=0, retry_delay_minutes=60)


# ── Database ─────────────────────────────────────────────


@pytest.fixture
async def db(tmp_path: Path):
    database = Database(str(tmp_path / "kwotd-test.db"))
    await database.initialize()
    yield database
    await database.close()


# ── Feed ─────────────────────────────────────────────────


@pytest.fixture
def make_feed_client(feed_config: FeedConfig):
    """Build a FeedClient whose network is a function of the request."""

    def _make(
        handler: Callable[[httpx.Request], httpx.Response],
        config: Optional[FeedConfig] = None,
    ) -> FeedClient:
        return FeedClient(config or feed_config, transport=httpx.MockTransport(handler))

    return _make


# ── Fakes ────────────────────────────────────────────────


class FakeStateStore:
    """In-memory state store that counts reads and writes."""

    def __init__(self, value: Optional[str] = None) -> None:
        self.value = value
        self.reads = 0
        self.writes = 0

    async def get_canonical_payload(self) -> Optional[str]:
        self.reads += 1
        return self.value

    async def set_canonical_payload(self, value: str) -> None:
        self.writes += 1
        self.value = value


class FakeReferenceStore:
    """Reference store answering from a key → entries mapping."""

    def __init__(self, results: Optional[dict[str, list[ReferenceEntry]]] = None) -> None:
        self.results = results or {}
        self.queries: list[str] = []

    async def lookup(self, key: str) -> list[ReferenceEntry]:
        self.queries.append(key)
        return list(self.results.get(key, []))

    async def fetch_by_id(self, entry_id: int) -> ReferenceEntry:
        for entries in self.results.values():
            for entry in entries:
                if entry.id == entry_id:
                    return entry
        raise KeyError(entry_id)


class FakeFetcher:
    """Returns a fixed payload, or raises a fixed error."""

    def __init__(self, payload: str = "", error: Optional[Exception] = None) -> None:
        self.payload = payload
        self.error = error
        self.calls = 0

    async def fetch(self, url: Optional[str] = None) -> str:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.payload


class FakeNotifier:
    """Records channel registrations and posts."""

    def __init__(self, error: Optional[Exception] = None) -> None:
        self.channels = []
        self.posts = []
        self.error = error

    async def ensure_channel(self, channel) -> bool:
        self.channels.append(channel)
        return len(self.channels) == 1

    async def post(self, slot_id: int, payload) -> str:
        if self.error is not None:
            raise self.error
        self.posts.append((slot_id, payload))
        return str(len(self.posts))


class CompletionRecorder:
    """Stands in for the scheduler's complete(run_id, reschedule)."""

    def __init__(self) -> None:
        self.calls: list[tuple[str, bool]] = []

    async def __call__(self, run_id: str, reschedule: bool) -> None:
        self.calls.append((run_id, reschedule))


@pytest.fixture
def completion() -> CompletionRecorder:
    return CompletionRecorder()


@pytest.fixture
def bot() -> AsyncMock:
    """Telegram Bot double; send_message returns increasing message ids."""
    mock = AsyncMock()
    counter = iter(range(100, 1000))
    mock.send_message.side_effect = lambda **kwargs: SimpleNamespace(message_id=next(counter))
    mock.get_me.return_value = SimpleNamespace(username="kwotd_test_bot")
    return mock
