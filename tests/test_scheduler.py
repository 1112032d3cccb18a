"""Tests for ReclamationScheduler."""

import threading
import time

import pytest
from conftest import FakeExecutor, FakeProvider, make_snapshot, wait_until

from procreaper.models import KillOutcome, ReclamationConfig
from procreaper.scheduler import ReclamationScheduler


@pytest.fixture
def provider(eligible_snapshots):
    return FakeProvider(eligible_snapshots)


@pytest.fixture
def executor():
    return FakeExecutor()


@pytest.fixture
def scheduler(provider, executor):
    scheduler = ReclamationScheduler(provider, executor, cpu_count=4)
    yield scheduler
    scheduler.disable()


def _config(interval: int = 30, raw: str = "") -> ReclamationConfig:
    return ReclamationConfig.from_raw(interval, raw)


class TestStateMachine:
    """Enable/disable transitions."""

    def test_initially_disabled(self, scheduler):
        assert not scheduler.is_enabled
        assert scheduler.config is None

    def test_enable_disable(self, scheduler):
        config = _config()
        scheduler.enable(config)
        assert scheduler.is_enabled
        assert scheduler.config == config

        scheduler.disable()
        assert not scheduler.is_enabled
        assert scheduler.config is None

    def test_disable_idempotent(self, scheduler):
        scheduler.disable()
        scheduler.enable(_config())
        scheduler.disable()
        scheduler.disable()
        assert not scheduler.is_enabled

    def test_enable_with_empty_exclusions(self, scheduler):
        scheduler.enable(_config(raw=" ; "))
        assert scheduler.is_enabled
        assert scheduler.config.exclusion_names == frozenset()

    def test_enable_replaces_config(self, scheduler):
        scheduler.enable(_config(raw="a"))
        first_thread = scheduler._thread
        scheduler.enable(_config(raw="b"))

        assert scheduler.config.exclusion_names == frozenset({"b"})
        assert scheduler._thread is not first_thread
        assert not first_thread.is_alive()

    def test_timer_thread_is_daemon(self, scheduler):
        scheduler.enable(_config())
        assert scheduler._thread.daemon is True
        assert scheduler._thread.name == "ReclamationScheduler"


class TestTick:
    """One reclamation cycle."""

    def test_tick_while_disabled_does_nothing(self, scheduler, provider, executor):
        assert scheduler.tick() is None
        assert provider.calls == 0
        assert executor.calls == []

    def test_tick_kills_best_victim_and_refreshes(self, scheduler, provider, executor):
        results = []
        refreshed = []
        scheduler.on_result = results.append
        scheduler.on_refresh = refreshed.append
        scheduler.enable(_config())

        result = scheduler.tick()

        assert executor.calls == [("bloated", 11)]
        assert result is not None
        assert result.outcome is KillOutcome.KILLED
        assert results == [result]
        # One snapshot to choose, one after the kill
        assert provider.calls == 2
        assert len(refreshed) == 1

    def test_tick_respects_exclusions(self, scheduler, executor):
        scheduler.enable(_config(raw="bloated"))
        scheduler.tick()
        assert executor.calls == [("editor", 10)]

    def test_tick_without_victim_is_silent(self, provider, executor):
        provider.snapshots = [make_snapshot(name="fresh", cpu_ms=0.0)]
        scheduler = ReclamationScheduler(provider, executor, cpu_count=4)
        results = []
        scheduler.on_result = results.append
        scheduler.enable(_config())
        try:
            assert scheduler.tick() is None
        finally:
            scheduler.disable()

        assert executor.calls == []
        assert results == []
        assert provider.calls == 1

    def test_failed_kill_still_refreshes(self, provider):
        executor = FakeExecutor(outcome=KillOutcome.FAILED)
        scheduler = ReclamationScheduler(provider, executor, cpu_count=4)
        scheduler.enable(_config())
        try:
            result = scheduler.tick()
        finally:
            scheduler.disable()

        assert result.outcome is KillOutcome.FAILED
        assert provider.calls == 2

    def test_direct_tick_propagates_enumeration_failure(self, scheduler, provider):
        def broken():
            raise OSError("no process table")

        provider.list_processes = broken
        scheduler.enable(_config())

        with pytest.raises(OSError):
            scheduler.tick()


class TestTimer:
    """Behaviour of the background timer."""

    def test_ticks_on_interval(self, scheduler, executor):
        scheduler.enable(_config(interval=1))
        assert wait_until(lambda: len(executor.calls) >= 1, timeout=3.0)

    def test_no_terminate_after_disable(self, scheduler, executor):
        scheduler.enable(_config(interval=1))
        assert wait_until(lambda: len(executor.calls) >= 1, timeout=3.0)

        scheduler.disable()
        count = len(executor.calls)
        time.sleep(1.5)

        assert len(executor.calls) == count

    def test_disable_before_first_tick(self, scheduler, executor):
        scheduler.enable(_config(interval=1))
        scheduler.disable()
        time.sleep(1.5)

        assert executor.calls == []

    def test_loop_survives_failing_tick(self, scheduler, provider, executor):
        original = provider.list_processes
        failures = []

        def flaky():
            if not failures:
                failures.append(True)
                raise RuntimeError("transient")
            return original()

        provider.list_processes = flaky
        scheduler.enable(_config(interval=1))

        assert wait_until(lambda: len(executor.calls) >= 1, timeout=4.0)
        assert failures == [True]

    def test_disable_from_result_callback(self, scheduler, executor):
        disabled = threading.Event()

        def on_result(result):
            scheduler.disable()
            disabled.set()

        scheduler.on_result = on_result
        scheduler.enable(_config(interval=1))

        assert disabled.wait(timeout=3.0)
        assert not scheduler.is_enabled
        time.sleep(1.5)
        assert len(executor.calls) == 1
