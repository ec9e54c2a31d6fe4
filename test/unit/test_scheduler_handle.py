"""Unit tests for the asyncio scheduler handle."""

from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from scheduler.handle import SchedulerHandle

NOW = datetime(2024, 1, 11, 0, 0, tzinfo=timezone.utc)


class _EveryHalfHour:
    """Trigger firing every thirty minutes after the given instant."""

    def next_fire(self, after: datetime) -> datetime:
        return after + timedelta(minutes=30)


class _StubRunner:
    """Runner recording which sweeps ran."""

    def __init__(self, failing: set[str] | None = None) -> None:
        self.calls: list[str] = []
        self._failing = failing or set()

    def _run(self, kind: str) -> None:
        self.calls.append(kind)
        if kind in self._failing:
            raise RuntimeError(f"{kind} exploded")

    def run_deadline_sweep(self) -> None:
        self._run("deadline")

    def run_issue_watch(self) -> None:
        self._run("issue_watch")

    def run_weekly_report(self) -> None:
        self._run("weekly_report")


class _BudgetSleep:
    """Fake sleep that lets each loop pass ``budget`` times, then blocks."""

    def __init__(self, budget: int) -> None:
        self.budget = budget
        self.delays: dict[str, list[float]] = {}

    async def __call__(self, delay: float) -> None:
        name = asyncio.current_task().get_name()
        delays = self.delays.setdefault(name, [])
        delays.append(delay)
        if len(delays) > self.budget:
            await asyncio.Event().wait()


def _handle(runner: _StubRunner, sleep: _BudgetSleep) -> SchedulerHandle:
    trigger = _EveryHalfHour()
    return SchedulerHandle(
        runner,
        deadline_trigger=trigger,
        issue_trigger=trigger,
        weekly_trigger=trigger,
        now_provider=lambda: NOW,
        sleep=sleep,
    )


async def _wait_for_calls(runner: _StubRunner, expected: int) -> None:
    for _ in range(200):
        if len(runner.calls) >= expected:
            return
        await asyncio.sleep(0.01)
    raise AssertionError(f"expected {expected} sweep calls, saw {runner.calls}")


@pytest.mark.asyncio
async def test_handle_runs_each_sweep_on_its_trigger() -> None:
    """Every job fires after sleeping until its trigger's next time."""
    runner = _StubRunner()
    sleep = _BudgetSleep(budget=2)
    handle = _handle(runner, sleep)

    handle.start()
    await _wait_for_calls(runner, 6)
    await handle.stop()

    assert sorted(runner.calls) == sorted(["deadline", "issue_watch", "weekly_report"] * 2)
    # The clock is frozen, so the second wait is measured from the previous fire time.
    assert sleep.delays["sweep-deadline"][:2] == [1800.0, 3600.0]
    assert handle.running is False


@pytest.mark.asyncio
async def test_handle_survives_failing_sweep() -> None:
    """A sweep raising does not stop its loop or the others."""
    runner = _StubRunner(failing={"deadline"})
    handle = _handle(runner, _BudgetSleep(budget=2))

    handle.start()
    await _wait_for_calls(runner, 6)
    assert handle.running is True
    await handle.stop()

    assert runner.calls.count("deadline") == 2
    assert runner.calls.count("weekly_report") == 2


@pytest.mark.asyncio
async def test_handle_start_twice_raises() -> None:
    """Starting a running handle is rejected until it is stopped."""
    handle = _handle(_StubRunner(), _BudgetSleep(budget=0))

    handle.start()
    with pytest.raises(RuntimeError):
        handle.start()
    await handle.stop()

    handle.start()
    assert handle.running is True
    await handle.stop()
    assert handle.running is False
