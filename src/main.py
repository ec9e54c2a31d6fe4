"""Saeop tracker scheduler entry point."""

from __future__ import annotations

import argparse
import asyncio
import logging
import signal
import sys

from config import settings
from scheduler.handle import SchedulerHandle
from scheduler.sweeps import SweepRunner
from services.database import get_session_factory, run_migrations_sync
from services.discord import DiscordNotifier
from tracker.guild_settings import GuildSettingsRepository
from tracker.notifications import NotificationDispatcher

logger = logging.getLogger(__name__)


def configure_logging() -> None:
    """Configure root logging from settings."""
    log_level_numeric = getattr(logging, settings.log_level.upper(), logging.INFO)
    logging.basicConfig(
        level=log_level_numeric,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
        force=True,
    )


def build_runner() -> SweepRunner:
    """Wire the sweep runner to the database and Discord."""
    session_factory = get_session_factory()
    dispatcher = NotificationDispatcher(
        DiscordNotifier(),
        GuildSettingsRepository(session_factory),
    )
    return SweepRunner(session_factory, dispatcher)


def run_once(runner: SweepRunner, kind: str) -> None:
    """Run a single sweep immediately and log its outcome."""
    jobs = {
        "deadline": runner.run_deadline_sweep,
        "issues": runner.run_issue_watch,
        "weekly": runner.run_weekly_report,
    }
    result = jobs[kind]()
    logger.info(
        "Sweep %s finished: status=%s scanned=%s delivered=%s failed=%s changed=%s",
        kind,
        result.status,
        result.scanned,
        result.delivered,
        result.failed,
        result.changed,
    )


async def serve(runner: SweepRunner) -> None:
    """Run the scheduler until SIGINT or SIGTERM."""
    handle = SchedulerHandle.from_settings(runner)
    stop_event = asyncio.Event()
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, stop_event.set)
        except NotImplementedError:
            logger.debug("Signal handlers unsupported for %s", sig)

    handle.start()
    try:
        await stop_event.wait()
    finally:
        logger.info("Shutting down...")
        await handle.stop()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Saeop project tracker scheduler")
    parser.add_argument(
        "--run-once",
        choices=("deadline", "issues", "weekly"),
        help="Run a single sweep and exit",
    )
    parser.add_argument(
        "--skip-migrations",
        action="store_true",
        help="Do not apply database migrations on startup",
    )
    args = parser.parse_args()

    configure_logging()
    logger.info("Saeop scheduler starting...")
    logger.info(f"Timezone: {settings.scheduler.timezone}")
    logger.info(f"Discord API URL: {settings.discord.api_url}")
    if not settings.discord.token:
        logger.warning("Discord token not configured; notifications will fail")

    if not args.skip_migrations:
        run_migrations_sync()

    runner = build_runner()
    if args.run_once:
        run_once(runner, args.run_once)
        return

    asyncio.run(serve(runner))


if __name__ == "__main__":
    main()
