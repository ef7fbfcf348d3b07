"""KWOTD Notifier — Run History.

Keeps a bounded, in-memory record of recent run outcomes for the
/status command. Nothing here touches the database.

Usage:
    history = RunHistory()
    history.record(result)
    status = history.get_status()
"""

from __future__ import annotations

import time
from collections import Counter, deque
from datetime import datetime
from typing import Any, Optional

from kwotd.pipeline.runner import RunResult, RunState
from kwotd.utils.logger import get_logger

logger = get_logger(__name__)


class RunHistory:
    """Bounded history of run results plus lifetime counters.

    Attributes:
        start_time: Monotonic time the agent started.
        totals: Lifetime count of runs per outcome.
    """

    def __init__(self, max_history: int = 50) -> None:
        self.start_time = time.monotonic()
        self._start_datetime = datetime.now()
        self._runs: deque[RunResult] = deque(maxlen=max_history)
        self.totals: Counter[RunState] = Counter()

    def record(self, result: RunResult) -> None:
        self._runs.append(result)
        self.totals[result.outcome] += 1
        logger.debug(
            "History: run %s → %s (%d runs total)",
            result.run_id, result.outcome.value, self.total_runs,
        )

    @property
    def total_runs(self) -> int:
        return sum(self.totals.values())

    @property
    def last(self) -> Optional[RunResult]:
        return self._runs[-1] if self._runs else None

    @property
    def last_success(self) -> Optional[RunResult]:
        for result in reversed(self._runs):
            if result.outcome == RunState.SUCCESS:
                return result
        return None

    def recent(self, limit: int = 5) -> list[RunResult]:
        """Most recent results, newest first."""
        return list(reversed(self._runs))[:limit]

    def get_status(self) -> dict[str, Any]:
        """Summary for status reporting.

        Returns:
            Dict with uptime, per-outcome totals, and details of the last
            run and the last successful run.
        """
        last = self.last
        last_success = self.last_success
        return {
            "uptime": self._format_uptime(time.monotonic() - self.start_time),
            "started_at": self._start_datetime.strftime("%Y-%m-%d %H:%M"),
            "total_runs": self.total_runs,
            "success": self.totals[RunState.SUCCESS],
            "duplicate": self.totals[RunState.DUPLICATE],
            "failed": self.totals[RunState.FAILED],
            "abandoned": self.totals[RunState.ABANDONED],
            "last_outcome": last.outcome.value if last else None,
            "last_run_at": last.finished_at.strftime("%Y-%m-%d %H:%M") if last else None,
            "last_error": last.error if last else None,
            "last_word": last_success.headword if last_success else None,
        }

    @staticmethod
    def _format_uptime(seconds: float) -> str:
        """Format seconds into human-readable uptime."""
        hours = int(seconds // 3600)
        mins = int((seconds % 3600) // 60)
        if hours >= 24:
            days = hours // 24
            hours = hours % 24
            return f"{days}d {hours}h {mins}m"
        if hours:
            return f"{hours}h {mins}m"
        return f"{mins}m"
