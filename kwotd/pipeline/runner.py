"""KWOTD Notifier — Pipeline Runner.

One run of the agent, end to end:
  fetch → dedupe → parse → query key → resolve → build → notify

Every exit path (success, duplicate, any failure) reports back to the
scheduler exactly once with a reschedule flag. A cancelled run is
abandoned instead and reports nothing.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Awaitable, Callable, Optional, Protocol

from kwotd.errors import KwotdError
from kwotd.notifier.builder import (
    NOTIFICATION_ID,
    ChannelDescriptor,
    NotificationBuilder,
    NotificationPayload,
)
from kwotd.pipeline.dedupe import DedupeOutcome, Deduplicator
from kwotd.pipeline.parser import QuoteParser
from kwotd.pipeline.query_key import build_query_key
from kwotd.pipeline.resolver import Resolver
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)

# complete(run_id, reschedule)
CompletionCallback = Callable[[str, bool], Awaitable[None]]


class RunState(str, Enum):
    IDLE = "idle"
    RUNNING = "running"
    SUCCESS = "success"
    DUPLICATE = "duplicate"
    FAILED = "failed"
    ABANDONED = "abandoned"


_RESCHEDULE = {
    RunState.SUCCESS: False,
    RunState.DUPLICATE: True,
    RunState.FAILED: True,
}


def should_reschedule(outcome: RunState) -> bool:
    """Reschedule flag for a finished run.

    Raises:
        ValueError: For states that never report to the scheduler.
    """
    try:
        return _RESCHEDULE[outcome]
    except KeyError:
        raise ValueError(f"Run state {outcome.value} has no reschedule decision") from None


class Fetcher(Protocol):
    async def fetch(self, url: Optional[str] = None) -> str: ...


class Notifier(Protocol):
    async def ensure_channel(self, channel: ChannelDescriptor) -> bool: ...

    async def post(self, slot_id: int, payload: NotificationPayload) -> str: ...


@dataclass(frozen=True)
class RunTrigger:
    """Input of one run.

    Attributes:
        run_id: Identifier echoed back in the completion call.
        force: User-initiated run that bypasses deduplication.
    """

    run_id: str
    force: bool = False


@dataclass
class RunResult:
    run_id: str
    outcome: RunState
    reschedule: bool
    error: Optional[str] = None
    headword: Optional[str] = None
    forced: bool = False
    duration: float = 0.0
    finished_at: datetime = field(default_factory=datetime.now)


class KwotdPipeline:
    """Runs the word-of-the-day pipeline for one trigger at a time.

    The scheduler guarantees at most one active run, so no locking is
    done here.

    Attributes:
        state: State of the current or most recent run.
    """

    def __init__(
        self,
        fetcher: Fetcher,
        deduplicator: Deduplicator,
        parser: QuoteParser,
        resolver: Resolver,
        builder: NotificationBuilder,
        notifier: Notifier,
        on_complete: CompletionCallback,
    ) -> None:
        self.fetcher = fetcher
        self.deduplicator = deduplicator
        self.parser = parser
        self.resolver = resolver
        self.builder = builder
        self.notifier = notifier
        self.on_complete = on_complete

        self.state = RunState.IDLE
        self._stage = "idle"
        self._headword: Optional[str] = None

    async def run(self, trigger: RunTrigger) -> RunResult:
        """Execute one run and report its reschedule flag.

        Errors never escape: they are logged and the run is FAILED. The
        only exception is cancellation, which marks the run ABANDONED,
        skips the completion callback and propagates.

        Args:
            trigger: Run id and force flag.

        Returns:
            The outcome of the run.
        """
        self.state = RunState.RUNNING
        self._stage = "start"
        self._headword = None
        start = time.monotonic()
        outcome = RunState.FAILED
        error: Optional[str] = None
        cancelled = False

        logger.info(
            "Run %s started%s", trigger.run_id, " (forced)" if trigger.force else "",
        )

        try:
            outcome = await self._execute(trigger)
        except asyncio.CancelledError:
            cancelled = True
            outcome = RunState.ABANDONED
            logger.warning("Run %s cancelled during %s; abandoned", trigger.run_id, self._stage)
            raise
        except KwotdError as e:
            error = str(e)
            logger.error(
                "Run %s failed during %s: %s: %s",
                trigger.run_id, self._stage, type(e).__name__, e,
            )
        except Exception as e:
            error = f"{type(e).__name__}: {e}"
            logger.exception(
                "Run %s crashed during %s: %s", trigger.run_id, self._stage, e,
            )
        finally:
            self.state = outcome
            if not cancelled:
                reschedule = should_reschedule(outcome)
                await self.on_complete(trigger.run_id, reschedule)

        duration = time.monotonic() - start
        logger.info(
            "Run %s finished: %s (reschedule=%s, %.1fs)",
            trigger.run_id, outcome.value, reschedule, duration,
        )
        return RunResult(
            run_id=trigger.run_id,
            outcome=outcome,
            reschedule=reschedule,
            error=error,
            headword=self._headword,
            forced=trigger.force,
            duration=duration,
        )

    async def _execute(self, trigger: RunTrigger) -> RunState:
        self._stage = "fetch"
        raw = await self.fetcher.fetch()

        self._stage = "dedupe"
        if await self.deduplicator.check(raw, force=trigger.force) == DedupeOutcome.DUPLICATE:
            return RunState.DUPLICATE

        self._stage = "parse"
        quote = self.parser.parse(raw)
        self._headword = quote.headword

        self._stage = "resolve"
        query_key = build_query_key(quote.headword, quote.part_of_speech)
        logger.debug("Query key: %s", query_key)
        resolution = await self.resolver.resolve(query_key, quote.headword, quote.translation)

        self._stage = "build"
        payload = self.builder.build(resolution.entry, resolution.tap_target)

        self._stage = "notify"
        await self.notifier.ensure_channel(payload.channel)
        await self.notifier.post(NOTIFICATION_ID, payload)
        return RunState.SUCCESS
