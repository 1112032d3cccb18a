"""Shared test fixtures for procreaper."""

import logging
import logging.handlers
import time
from types import SimpleNamespace
from unittest.mock import MagicMock

import psutil
import pytest
import structlog

from procreaper.models import KillOutcome, KillResult, PriorityClass, ProcessSnapshot


def make_snapshot(
    name: str = "proc",
    pid: int = 100,
    memory_kb: int = 1024,
    cpu_ms: float = 100.0,
    priority_class: PriorityClass = PriorityClass.NORMAL,
) -> ProcessSnapshot:
    """Create a ProcessSnapshot for testing. CPU time is split 3:1 user/kernel."""
    total = cpu_ms / 1000.0
    return ProcessSnapshot(
        name=name,
        pid=pid,
        physical_memory=memory_kb * 1024,
        base_priority=priority_class.base_priority,
        priority_class=priority_class,
        user_cpu_time=total * 0.75,
        privileged_cpu_time=total * 0.25,
        total_cpu_time=total,
        paged_system_memory=0,
        paged_memory=memory_kb * 2048,
        private_memory=memory_kb * 512,
    )


def make_fake_process(
    pid: int = 4242,
    name: str = "fake",
    rss: int = 4 * 1024 * 1024,
    nice: int = 0,
    user: float = 1.5,
    system: float = 0.5,
) -> MagicMock:
    """Create a stand-in for psutil.Process with the calls the provider makes."""
    proc = MagicMock(spec=psutil.Process)
    proc.pid = pid
    proc.name.return_value = name
    proc.memory_info.return_value = SimpleNamespace(rss=rss, vms=rss * 4, shared=rss // 4)
    proc.nice.return_value = nice
    proc.cpu_times.return_value = SimpleNamespace(user=user, system=system)
    return proc


class FakeProvider:
    """ProcessProvider returning a fixed collection and counting calls."""

    def __init__(self, snapshots: list[ProcessSnapshot] | None = None) -> None:
        self.snapshots = list(snapshots or [])
        self.calls = 0
        self.on_warning = None

    def list_processes(self) -> list[ProcessSnapshot]:
        self.calls += 1
        return list(self.snapshots)


class FakeExecutor:
    """TerminationExecutor recording every request."""

    def __init__(self, outcome: KillOutcome = KillOutcome.KILLED) -> None:
        self.outcome = outcome
        self.calls: list[tuple[str, int]] = []

    def terminate(self, name: str, pid: int) -> KillResult:
        self.calls.append((name, pid))
        reason = "Access denied" if self.outcome is KillOutcome.FAILED else None
        return KillResult(self.outcome, name, pid, reason=reason)


def wait_until(condition, timeout: float = 5.0, interval: float = 0.02) -> bool:
    """Poll condition() until it is true or the timeout expires."""
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(interval)
    return condition()


def sleeping_worker(duration: float = 60.0) -> None:
    """A dummy worker process that sleeps for a given duration."""
    try:
        time.sleep(duration)
    except (KeyboardInterrupt, SystemExit):
        pass


@pytest.fixture
def home(tmp_path, monkeypatch):
    """Point Path.home() at a temporary directory."""
    monkeypatch.setenv("HOME", str(tmp_path))
    return tmp_path


@pytest.fixture
def restore_logging():
    """Undo procreaper.logging.configure() after the test."""
    root = logging.getLogger()
    level = root.level
    yield
    for handler in list(root.handlers):
        if isinstance(handler, logging.handlers.RotatingFileHandler):
            handler.close()
            root.removeHandler(handler)
    root.setLevel(level)
    structlog.reset_defaults()


@pytest.fixture
def fast_cpu_percent(monkeypatch):
    """Make psutil.cpu_percent return 42.0 almost immediately."""

    def cpu_percent(interval=None, percpu=False):
        time.sleep(0.01)
        return 42.0

    monkeypatch.setattr(psutil, "cpu_percent", cpu_percent)


@pytest.fixture
def eligible_snapshots() -> list[ProcessSnapshot]:
    """Three eligible processes; 'bloated' has the highest score."""
    return [
        make_snapshot(name="editor", pid=10, memory_kb=2048, cpu_ms=400.0),
        make_snapshot(name="bloated", pid=11, memory_kb=8192, cpu_ms=100.0),
        make_snapshot(name="busy", pid=12, memory_kb=4096, cpu_ms=50000.0),
    ]
