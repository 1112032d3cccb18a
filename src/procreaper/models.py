"""Data models for procreaper."""

from dataclasses import dataclass
from enum import Enum

import psutil


class PriorityClass(Enum):
    """Scheduling priority class of a process."""

    IDLE = "idle"
    BELOW_NORMAL = "below_normal"
    NORMAL = "normal"
    ABOVE_NORMAL = "above_normal"
    HIGH = "high"
    REALTIME = "realtime"

    @property
    def base_priority(self) -> int:
        """Base priority derived from the class (Windows numbering)."""
        return _BASE_PRIORITIES[self]

    @classmethod
    def from_nice(cls, value: int) -> "PriorityClass":
        """
        Map a psutil ``Process.nice()`` reading to a priority class.

        On Windows psutil returns one of the ``*_PRIORITY_CLASS`` constants;
        elsewhere it returns the POSIX nice value (-20 .. 19).
        """
        if psutil.WINDOWS:
            return _WINDOWS_CLASSES.get(value, cls.NORMAL)

        if value >= 15:
            return cls.IDLE
        if value > 0:
            return cls.BELOW_NORMAL
        if value == 0:
            return cls.NORMAL
        if value > -10:
            return cls.ABOVE_NORMAL
        if value > -20:
            return cls.HIGH
        return cls.REALTIME


_BASE_PRIORITIES = {
    PriorityClass.IDLE: 4,
    PriorityClass.BELOW_NORMAL: 6,
    PriorityClass.NORMAL: 8,
    PriorityClass.ABOVE_NORMAL: 10,
    PriorityClass.HIGH: 13,
    PriorityClass.REALTIME: 24,
}

# Populated only on Windows, where psutil exposes the priority class constants
_WINDOWS_CLASSES = {
    getattr(psutil, f"{member.name}_PRIORITY_CLASS"): member
    for member in PriorityClass
    if hasattr(psutil, f"{member.name}_PRIORITY_CLASS")
}


@dataclass(slots=True, frozen=True)
class ProcessSnapshot:
    """Immutable snapshot of a process state."""

    name: str
    pid: int
    physical_memory: int  # Bytes
    base_priority: int
    priority_class: PriorityClass
    user_cpu_time: float  # Seconds
    privileged_cpu_time: float  # Seconds
    total_cpu_time: float  # Seconds
    paged_system_memory: int  # Bytes
    paged_memory: int  # Bytes
    private_memory: int  # Bytes

    @property
    def total_cpu_ms(self) -> float:
        """Total CPU time in milliseconds."""
        return self.total_cpu_time * 1000.0


@dataclass(slots=True, frozen=True)
class ReclamationConfig:
    """Settings for one enabled period of the reclamation scheduler."""

    interval_seconds: int
    exclusion_names: frozenset[str] = frozenset()

    def __post_init__(self) -> None:
        if self.interval_seconds <= 0:
            raise ValueError(f"interval_seconds must be positive, got {self.interval_seconds}")

    @classmethod
    def from_raw(cls, interval_seconds: int, exclusion_names_raw: str | None) -> "ReclamationConfig":
        """Build a config from a semicolon-separated exclusion string."""
        from procreaper.policy import parse_exclusions

        return cls(
            interval_seconds=interval_seconds,
            exclusion_names=parse_exclusions(exclusion_names_raw),
        )


class KillOutcome(Enum):
    """Outcome of a termination request."""

    KILLED = "killed"
    NOT_FOUND = "not_found"
    FAILED = "failed"


@dataclass(slots=True, frozen=True)
class KillResult:
    """Result of terminating one process."""

    outcome: KillOutcome
    name: str
    pid: int
    reason: str | None = None

    @property
    def ok(self) -> bool:
        """True when the process was killed."""
        return self.outcome is KillOutcome.KILLED

    @property
    def message(self) -> str:
        """Human-readable description for display."""
        if self.outcome is KillOutcome.KILLED:
            return f"Process {self.name} was killed"
        if self.outcome is KillOutcome.NOT_FOUND:
            return f"Process {self.name} ({self.pid}) is no longer running"
        return f"Failed to kill process {self.name}. {self.reason}"


@dataclass(slots=True, frozen=True)
class SpawnResult:
    """Result of launching an executable."""

    path: str
    ok: bool
    error: str | None = None
    pid: int | None = None

    @property
    def message(self) -> str:
        """Human-readable description for display."""
        if self.ok:
            return f"Started {self.path} (pid {self.pid})"
        return f"Failed to start process {self.path}. {self.error}"


@dataclass(slots=True, frozen=True)
class UsageReading:
    """System-wide CPU utilization sample."""

    label: str
    percent: float

    @property
    def text(self) -> str:
        """Reading formatted with one decimal place."""
        return f"{self.label} CPU: {self.percent:.1f} %"
