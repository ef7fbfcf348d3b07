"""Pipeline runner: outcomes, reschedule decision and completion."""

from __future__ import annotations

import asyncio

import pytest

from conftest import (
    CompletionRecorder,
    FakeFetcher,
    FakeNotifier,
    FakeReferenceStore,
    FakeStateStore,
    kwotd_json,
)
from kwotd.config import NotificationConfig
from kwotd.database.models import ReferenceEntry
from kwotd.errors import NetworkError, NotifyError, StoreQueryError
from kwotd.notifier.builder import NOTIFICATION_ID, NotificationBuilder
from kwotd.pipeline.dedupe import Deduplicator, canonicalize
from kwotd.pipeline.parser import StructuredQuoteParser
from kwotd.pipeline.resolver import Resolver, TapAction
from kwotd.pipeline.runner import (
    KwotdPipeline,
    RunState,
    RunTrigger,
    should_reschedule,
)

PAYLOAD = kwotd_json("Qapla'", "excl", "success!") + "\n"
QAPLA = ReferenceEntry.build(1, "Qapla'", "excl", "success!")


def make_pipeline(
    notification_config: NotificationConfig,
    completion: CompletionRecorder,
    fetcher=None,
    state=None,
    references=None,
    notifier=None,
) -> KwotdPipeline:
    return KwotdPipeline(
        fetcher=fetcher or FakeFetcher(PAYLOAD),
        deduplicator=Deduplicator(state or FakeStateStore()),
        parser=StructuredQuoteParser(),
        resolver=Resolver(references or FakeReferenceStore({"Qapla':excl": [QAPLA]})),
        builder=NotificationBuilder(notification_config),
        notifier=notifier or FakeNotifier(),
        on_complete=completion,
    )


class TestScheduleDecision:
    def test_table(self) -> None:
        assert should_reschedule(RunState.DUPLICATE) is True
        assert should_reschedule(RunState.FAILED) is True
        assert should_reschedule(RunState.SUCCESS) is False

    @pytest.mark.parametrize("state", [RunState.IDLE, RunState.RUNNING, RunState.ABANDONED])
    def test_non_terminal_states_have_no_decision(self, state: RunState) -> None:
        with pytest.raises(ValueError):
            should_reschedule(state)


async def test_success_posts_once_and_does_not_reschedule(
    notification_config, completion
) -> None:
    notifier = FakeNotifier()
    pipeline = make_pipeline(notification_config, completion, notifier=notifier)

    result = await pipeline.run(RunTrigger("run-1"))

    assert result.outcome == RunState.SUCCESS
    assert result.reschedule is False
    assert result.headword == "Qapla'"
    assert completion.calls == [("run-1", False)]
    assert pipeline.state == RunState.SUCCESS

    assert len(notifier.posts) == 1
    slot_id, payload = notifier.posts[0]
    assert slot_id == NOTIFICATION_ID
    assert payload.target.action == TapAction.OPEN_ENTRY
    assert payload.target.entry_id == 1
    assert notifier.channels == [payload.channel]


async def test_duplicate_short_circuits_and_reschedules(notification_config, completion) -> None:
    fetcher = FakeFetcher(PAYLOAD)
    references = FakeReferenceStore()
    notifier = FakeNotifier()
    pipeline = make_pipeline(
        notification_config, completion,
        fetcher=fetcher,
        state=FakeStateStore(canonicalize(PAYLOAD)),
        references=references,
        notifier=notifier,
    )

    result = await pipeline.run(RunTrigger("run-2"))

    assert result.outcome == RunState.DUPLICATE
    assert completion.calls == [("run-2", True)]
    assert references.queries == []
    assert notifier.posts == []


async def test_forced_run_reposts_unchanged_word(notification_config, completion) -> None:
    notifier = FakeNotifier()
    pipeline = make_pipeline(
        notification_config, completion,
        state=FakeStateStore(canonicalize(PAYLOAD)),
        notifier=notifier,
    )

    result = await pipeline.run(RunTrigger("run-3", force=True))

    assert result.outcome == RunState.SUCCESS
    assert result.forced is True
    assert len(notifier.posts) == 1
    assert completion.calls == [("run-3", False)]


@pytest.mark.parametrize(
    "overrides",
    [
        {"fetcher": FakeFetcher(error=NetworkError("https://feed.test", "refused"))},
        {"fetcher": FakeFetcher("garbage\n")},
        {"fetcher": FakeFetcher('{"kword": "ghoS"}\n')},
        {"notifier": FakeNotifier(error=NotifyError("chat not found"))},
        {"notifier": FakeNotifier(error=RuntimeError("unexpected"))},
    ],
    ids=["network", "malformed", "missing-field", "notify", "unexpected"],
)
async def test_failures_reschedule_exactly_once(
    notification_config, completion, overrides
) -> None:
    pipeline = make_pipeline(notification_config, completion, **overrides)

    result = await pipeline.run(RunTrigger("run-4"))

    assert result.outcome == RunState.FAILED
    assert result.reschedule is True
    assert result.error
    assert completion.calls == [("run-4", True)]


async def test_store_failure_reschedules(notification_config, completion) -> None:
    class BrokenStore(FakeReferenceStore):
        async def lookup(self, key):
            raise StoreQueryError("database is locked")

    pipeline = make_pipeline(notification_config, completion, references=BrokenStore())
    result = await pipeline.run(RunTrigger("run-5"))

    assert result.outcome == RunState.FAILED
    assert completion.calls == [("run-5", True)]


async def test_network_failure_leaves_state_untouched(notification_config, completion) -> None:
    state = FakeStateStore("previous")
    pipeline = make_pipeline(
        notification_config, completion,
        fetcher=FakeFetcher(error=NetworkError("https://feed.test", "refused")),
        state=state,
    )

    await pipeline.run(RunTrigger("run-6"))

    assert state.value == "previous"
    assert state.writes == 0


async def test_cancelled_run_is_abandoned_without_completion(
    notification_config, completion
) -> None:
    started = asyncio.Event()

    class HangingFetcher:
        async def fetch(self, url=None) -> str:
            started.set()
            await asyncio.Event().wait()
            return ""

    pipeline = make_pipeline(notification_config, completion, fetcher=HangingFetcher())
    task = asyncio.create_task(pipeline.run(RunTrigger("run-7")))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task

    assert pipeline.state == RunState.ABANDONED
    assert completion.calls == []


async def test_consecutive_runs_each_complete_once(notification_config, completion) -> None:
    pipeline = make_pipeline(notification_config, completion)

    first = await pipeline.run(RunTrigger("a"))
    second = await pipeline.run(RunTrigger("b"))

    assert (first.outcome, second.outcome) == (RunState.SUCCESS, RunState.DUPLICATE)
    assert completion.calls == [("a", False), ("b", True)]
