"""In-process scheduler that drives the sweeps from calendar triggers."""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Awaitable, Callable

from scheduler.sweeps import SweepResult, SweepRunner
from scheduler.triggers import Trigger, triggers_from_settings

logger = logging.getLogger(__name__)


class SchedulerHandle:
    """Owns one asyncio task per trigger; explicit start and stop.

    Each task sleeps until its trigger's next fire time and then runs the
    matching sweep in a worker thread. A sweep failure is logged and the
    loop keeps going. Overlap within a kind is prevented by the runner.
    """

    def __init__(
        self,
        runner: SweepRunner,
        *,
        deadline_trigger: Trigger,
        issue_trigger: Trigger,
        weekly_trigger: Trigger,
        now_provider: Callable[[], datetime] | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ) -> None:
        self._runner = runner
        self._jobs: list[tuple[str, Trigger, Callable[[], SweepResult]]] = [
            ("deadline", deadline_trigger, runner.run_deadline_sweep),
            ("issue_watch", issue_trigger, runner.run_issue_watch),
            ("weekly_report", weekly_trigger, runner.run_weekly_report),
        ]
        self._now_provider = now_provider or (lambda: datetime.now(timezone.utc))
        self._sleep = sleep
        self._tasks: list[asyncio.Task] = []

    @classmethod
    def from_settings(cls, runner: SweepRunner) -> "SchedulerHandle":
        """Build a handle using the configured times and timezone."""
        deadline_trigger, issue_trigger, weekly_trigger = triggers_from_settings()
        return cls(
            runner,
            deadline_trigger=deadline_trigger,
            issue_trigger=issue_trigger,
            weekly_trigger=weekly_trigger,
        )

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        """Schedule the trigger loops on the running event loop."""
        if self.running:
            raise RuntimeError("Scheduler is already running.")
        self._tasks = [
            asyncio.create_task(self._loop(kind, trigger, job), name=f"sweep-{kind}")
            for kind, trigger, job in self._jobs
        ]
        logger.info("scheduler_started jobs=%s", [kind for kind, _, _ in self._jobs])

    async def stop(self) -> None:
        """Cancel the trigger loops and wait for them to finish."""
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("scheduler_stopped")

    async def _loop(
        self,
        kind: str,
        trigger: Trigger,
        job: Callable[[], SweepResult],
    ) -> None:
        last_fire: datetime | None = None
        while True:
            now = self._now_provider()
            after = now if last_fire is None else max(now, last_fire)
            fire_at = trigger.next_fire(after)
            delay = max((fire_at - now).total_seconds(), 0.0)
            logger.debug("sweep_sleeping kind=%s fire_at=%s", kind, fire_at.isoformat())
            await self._sleep(delay)
            last_fire = fire_at
            try:
                await asyncio.to_thread(job)
            except Exception:
                logger.exception("Scheduled sweep failed: kind=%s", kind)


__all__ = ["SchedulerHandle"]
