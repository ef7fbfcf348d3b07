"""KWOTD Notifier — Main Orchestrator.

Ties all components together: config, database, feed client, pipeline,
Telegram notifier, bot commands, run history and the host scheduler.

Runs on a schedule with APScheduler:
  - Daily run (cron)
  - One-off retry after a duplicate or failed run

Usage:
    python -m kwotd.main            # run as a service
    python -m kwotd.main --once     # single run, exit code reflects outcome
    python -m kwotd.main --once --force
    python -m kwotd.main --import-dictionary config/dictionary.yaml
    python scripts/run.py
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys
from pathlib import Path
from typing import Optional

from telegram.ext import Application

from kwotd.config import AppConfig, load_config
from kwotd.database.db import Database
from kwotd.database.dictionary import import_dictionary, seed_if_empty
from kwotd.database.stores import SqliteReferenceStore, SqliteStateStore
from kwotd.fetcher.client import FeedClient
from kwotd.notifier.builder import NotificationBuilder
from kwotd.notifier.commands import CommandHandler
from kwotd.notifier.telegram_bot import TelegramNotifier
from kwotd.pipeline.dedupe import Deduplicator
from kwotd.pipeline.parser import build_parser
from kwotd.pipeline.resolver import Resolver
from kwotd.pipeline.runner import KwotdPipeline, RunResult, RunState, RunTrigger
from kwotd.scheduler import HostScheduler
from kwotd.utils.health import RunHistory
from kwotd.utils.logger import configure_logging, get_logger

logger = get_logger(__name__)


class KwotdAgent:
    """Main application orchestrator.

    Owns every long-lived component and wires the pipeline's completion
    callback to the host scheduler.

    Attributes:
        config: Full application configuration.
        db: Active database instance.
        history: RunHistory for /status.
        host: HostScheduler driving the runs.
    """

    def __init__(self, config: Optional[AppConfig] = None) -> None:
        """Initialize with default state. Call setup() before running."""
        self.config = config
        self.db: Optional[Database] = None
        self.fetcher: Optional[FeedClient] = None
        self.notifier: Optional[TelegramNotifier] = None
        self.reference_store: Optional[SqliteReferenceStore] = None
        self.pipeline: Optional[KwotdPipeline] = None
        self.host: Optional[HostScheduler] = None
        self._tg_app: Optional[Application] = None

        self.history = RunHistory()
        self._running = False

    async def setup(self) -> None:
        """Load config and build every component."""
        if self.config is None:
            logger.info("═══ Loading configuration ═══")
            self.config = load_config()
        configure_logging(self.config.log_level)

        logger.info("═══ Initializing database ═══")
        self.db = Database(self.config.database_path)
        await self.db.initialize()
        logger.info("Database ready: %s", self.config.database_path)
        dictionary_path = self.config.dictionary_path
        await seed_if_empty(self.db, Path(dictionary_path) if dictionary_path else None)

        logger.info("═══ Initializing components ═══")
        self.fetcher = FeedClient(self.config.feed)
        self.notifier = TelegramNotifier(
            self.config.telegram, self.config.notification, self.db,
        )
        if not await self.notifier.initialize():
            logger.error("Telegram bot connection failed! Continuing anyway...")

        self.reference_store = SqliteReferenceStore(self.db)
        self.host = HostScheduler(self.config.schedule, self._execute_run)
        self.pipeline = KwotdPipeline(
            fetcher=self.fetcher,
            deduplicator=Deduplicator(SqliteStateStore(self.db)),
            parser=build_parser(self.config.feed),
            resolver=Resolver(self.reference_store),
            builder=NotificationBuilder(self.config.notification),
            notifier=self.notifier,
            on_complete=self.host.complete,
        )

    async def _execute_run(self, trigger: RunTrigger) -> RunResult:
        """Run the pipeline for a trigger and record the outcome."""
        try:
            result = await self.pipeline.run(trigger)
        except asyncio.CancelledError:
            self.history.record(
                RunResult(trigger.run_id, RunState.ABANDONED, False, forced=trigger.force)
            )
            raise
        self.history.record(result)
        return result

    async def trigger_run(self, force: bool = False) -> Optional[RunResult]:
        """Start a run now, unless one is already active."""
        return await self.host.trigger(force=force)

    async def run_once(self, force: bool = False) -> RunResult:
        """Single run without the scheduler service (CLI --once).

        Returns:
            The run result.
        """
        await self.setup()
        try:
            return await self.trigger_run(force=force)
        finally:
            await self.shutdown()

    async def start(self, force_first_run: bool = False) -> None:
        """Full service startup sequence.

        1. Build components
        2. Start bot command polling (optional)
        3. Start the scheduler
        4. Run once immediately (optional, or forced by `force_first_run`)
        5. Enter keep-alive loop
        """
        self._running = True

        try:
            await self.setup()

            if self.config.telegram.enable_commands:
                await self._start_commands()

            logger.info("═══ Setting up scheduler ═══")
            self.host.start()

            if self.config.schedule.run_on_startup or force_first_run:
                logger.info("═══ Running first KWOTD run ═══")
                await self.trigger_run(force=force_first_run)

            logger.info("═══ Entering main loop ═══")
            while self._running:
                await asyncio.sleep(1)

        except Exception as e:
            logger.exception("Fatal error: %s", e)
        finally:
            await self.shutdown()

    async def _start_commands(self) -> None:
        self._tg_app = Application.builder().token(self.config.telegram.bot_token).build()
        CommandHandler(self).register(self._tg_app)
        await self._tg_app.initialize()
        await self._tg_app.start()
        await self._tg_app.updater.start_polling(drop_pending_updates=True)
        logger.info("Telegram command polling started")

    def stop(self) -> None:
        """Ask the keep-alive loop to exit."""
        self._running = False

    async def shutdown(self) -> None:
        """Graceful shutdown: stop scheduler and polling, close connections."""
        logger.info("═══ Shutting down ═══")
        self._running = False

        if self.host:
            self.host.shutdown()

        if self._tg_app:
            if self._tg_app.updater and self._tg_app.updater.running:
                await self._tg_app.updater.stop()
            if self._tg_app.running:
                await self._tg_app.stop()
            await self._tg_app.shutdown()
            self._tg_app = None

        if self.fetcher:
            await self.fetcher.close()

        if self.db:
            await self.db.close()

        logger.info("Shutdown complete")


def parse_args(argv: Optional[list[str]] = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(
        prog="kwotd",
        description="Post the Klingon Word of the Day to Telegram.",
    )
    parser.add_argument(
        "--once", action="store_true",
        help="perform a single run and exit (status 0 on success)",
    )
    parser.add_argument(
        "--force", action="store_true",
        help="bypass deduplication and post even if the word is unchanged",
    )
    parser.add_argument(
        "--import-dictionary", metavar="FILE",
        help="replace the dictionary with the entries in FILE and exit",
    )
    return parser.parse_args(argv)


async def import_dictionary_file(path: Path, config: Optional[AppConfig] = None) -> int:
    """Replace the stored dictionary with `path` (CLI --import-dictionary).

    Returns:
        Process exit status.
    """
    if config is None:
        config = load_config()
    configure_logging(config.log_level)

    db = Database(config.database_path)
    await db.initialize()
    try:
        count = await import_dictionary(db, path, replace=True)
    except (FileNotFoundError, ValueError) as e:
        logger.error("Dictionary import failed: %s", e)
        return 1
    finally:
        await db.close()
    logger.info("Dictionary now holds %d entries", count)
    return 0


def main(argv: Optional[list[str]] = None) -> int:
    """Application entry point."""
    args = parse_args(argv)

    # Ensure directories exist
    Path("data").mkdir(exist_ok=True)
    Path("logs").mkdir(exist_ok=True)

    if args.import_dictionary:
        return asyncio.run(import_dictionary_file(Path(args.import_dictionary)))

    agent = KwotdAgent()

    if args.once:
        result = asyncio.run(agent.run_once(force=args.force))
        return 0 if result is not None and result.outcome == RunState.SUCCESS else 1

    loop = asyncio.new_event_loop()
    asyncio.set_event_loop(loop)

    def _signal_handler(sig, frame):
        logger.info("Signal %s received, shutting down...", sig)
        agent.stop()

    signal.signal(signal.SIGINT, _signal_handler)
    signal.signal(signal.SIGTERM, _signal_handler)

    try:
        loop.run_until_complete(agent.start(force_first_run=args.force))
    except KeyboardInterrupt:
        pass
    finally:
        loop.close()
    return 0


if __name__ == "__main__":
    sys.exit(main())
