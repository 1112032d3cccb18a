"""Tests for procreaper data models."""

import psutil
import pytest

from procreaper.models import (
    KillOutcome,
    KillResult,
    PriorityClass,
    ProcessSnapshot,
    ReclamationConfig,
    SpawnResult,
    UsageReading,
)


def _snapshot() -> ProcessSnapshot:
    return ProcessSnapshot(
        name="test_process",
        pid=123,
        physical_memory=1024000,
        base_priority=8,
        priority_class=PriorityClass.NORMAL,
        user_cpu_time=1.5,
        privileged_cpu_time=0.5,
        total_cpu_time=2.0,
        paged_system_memory=0,
        paged_memory=4096000,
        private_memory=512000,
    )


def test_process_snapshot_creation():
    """Test ProcessSnapshot dataclass creation."""
    snapshot = _snapshot()

    assert snapshot.name == "test_process"
    assert snapshot.pid == 123
    assert snapshot.physical_memory == 1024000
    assert snapshot.priority_class is PriorityClass.NORMAL
    assert snapshot.total_cpu_time == 2.0
    assert snapshot.total_cpu_ms == 2000.0


def test_process_snapshot_is_frozen():
    """Test that ProcessSnapshot is immutable (frozen)."""
    snapshot = _snapshot()

    try:
        snapshot.pid = 999
        raise AssertionError("Should have raised FrozenInstanceError")
    except AttributeError:
        pass  # Expected behavior for frozen dataclass


def test_process_snapshot_uses_slots():
    """Test that ProcessSnapshot uses __slots__ for memory efficiency."""
    assert not hasattr(_snapshot(), "__dict__")


class TestPriorityClass:
    """Tests for PriorityClass mapping."""

    def test_base_priorities(self):
        assert PriorityClass.IDLE.base_priority == 4
        assert PriorityClass.NORMAL.base_priority == 8
        assert PriorityClass.HIGH.base_priority == 13
        assert PriorityClass.REALTIME.base_priority == 24

    @pytest.mark.skipif(psutil.WINDOWS, reason="POSIX nice values")
    @pytest.mark.parametrize(
        ("nice", "expected"),
        [
            (19, PriorityClass.IDLE),
            (15, PriorityClass.IDLE),
            (5, PriorityClass.BELOW_NORMAL),
            (0, PriorityClass.NORMAL),
            (-5, PriorityClass.ABOVE_NORMAL),
            (-10, PriorityClass.HIGH),
            (-20, PriorityClass.REALTIME),
        ],
    )
    def test_from_nice_posix(self, nice, expected):
        assert PriorityClass.from_nice(nice) is expected


class TestReclamationConfig:
    """Tests for ReclamationConfig."""

    def test_from_raw_trims_and_drops_blanks(self):
        config = ReclamationConfig.from_raw(30, " a ; ;b;c ")
        assert config.interval_seconds == 30
        assert config.exclusion_names == frozenset({"a", "b", "c"})

    def test_from_raw_empty_input(self):
        assert ReclamationConfig.from_raw(5, "").exclusion_names == frozenset()
        assert ReclamationConfig.from_raw(5, None).exclusion_names == frozenset()
        assert ReclamationConfig.from_raw(5, " ; ;").exclusion_names == frozenset()

    @pytest.mark.parametrize("interval", [0, -1])
    def test_interval_must_be_positive(self, interval):
        with pytest.raises(ValueError):
            ReclamationConfig(interval_seconds=interval)


class TestResults:
    """Tests for result types."""

    def test_kill_result_messages(self):
        killed = KillResult(KillOutcome.KILLED, "chrome", 10)
        missing = KillResult(KillOutcome.NOT_FOUND, "chrome", 10)
        failed = KillResult(KillOutcome.FAILED, "chrome", 10, reason="Access denied")

        assert killed.ok
        assert not missing.ok
        assert not failed.ok
        assert killed.message == "Process chrome was killed"
        assert "10" in missing.message
        assert failed.message == "Failed to kill process chrome. Access denied"

    def test_spawn_result_messages(self):
        assert "4321" in SpawnResult(path="/bin/true", ok=True, pid=4321).message
        failed = SpawnResult(path="/nope", ok=False, error="No such file")
        assert failed.message == "Failed to start process /nope. No such file"

    def test_usage_reading_one_decimal(self):
        assert UsageReading("procreaper", 12.34).text == "procreaper CPU: 12.3 %"
        assert UsageReading("procreaper", 7.0).text == "procreaper CPU: 7.0 %"
