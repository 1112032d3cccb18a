"""Process enumeration and CPU usage sampling for procreaper."""

import threading
from collections.abc import Callable
from typing import Any

import psutil

from procreaper.logging import get_logger
from procreaper.models import PriorityClass, ProcessSnapshot, UsageReading

log = get_logger(__name__)

WarningCallback = Callable[[str], None]
UsageCallback = Callable[[str, float], None]


class ProcessProvider:
    """
    Builds immutable snapshots of every live process using psutil.

    Priority and CPU times are unreadable for processes owned by other users
    or protected by the OS; those fall back to NORMAL priority and zero CPU
    time without complaint. Any other per-process read failure is reported
    through ``on_warning`` and the process is still included.
    """

    def __init__(self, on_warning: WarningCallback | None = None) -> None:
        """
        Initialize the ProcessProvider.

        Args:
            on_warning: Called with a message for each per-process read failure.
        """
        self.on_warning = on_warning

    def list_processes(self) -> list[ProcessSnapshot]:
        """Return a fresh snapshot of all running processes."""
        return [self._snapshot(proc) for proc in psutil.process_iter()]

    def _snapshot(self, proc: psutil.Process) -> ProcessSnapshot:
        """Read one process, defaulting whatever cannot be read."""
        fields: dict[str, Any] = {"pid": proc.pid}

        with proc.oneshot():
            try:
                fields["name"] = proc.name()
                fields.update(self._read_memory(proc))
            except psutil.Error as e:
                self._warn(fields.get("name") or str(proc.pid), e)

            fields.update(self._read_extended(proc))

        priority_class = fields["priority_class"]
        return ProcessSnapshot(
            name=fields.get("name", ""),
            pid=fields["pid"],
            physical_memory=fields.get("physical_memory", 0),
            base_priority=priority_class.base_priority,
            priority_class=priority_class,
            user_cpu_time=fields["user_cpu_time"],
            privileged_cpu_time=fields["privileged_cpu_time"],
            total_cpu_time=fields["total_cpu_time"],
            paged_system_memory=fields.get("paged_system_memory", 0),
            paged_memory=fields.get("paged_memory", 0),
            private_memory=fields.get("private_memory", 0),
        )

    @staticmethod
    def _read_memory(proc: psutil.Process) -> dict[str, int]:
        """Map psutil memory counters onto the snapshot memory fields."""
        mem = proc.memory_info()
        if hasattr(mem, "private"):
            private = mem.private
        elif hasattr(mem, "shared"):
            private = max(mem.rss - mem.shared, 0)
        else:
            private = mem.rss
        return {
            "physical_memory": mem.rss,
            "paged_memory": getattr(mem, "pagefile", getattr(mem, "vms", 0)),
            "paged_system_memory": getattr(mem, "paged_pool", 0),
            "private_memory": private,
        }

    @staticmethod
    def _read_extended(proc: psutil.Process) -> dict[str, Any]:
        """Read priority and CPU times, defaulting silently when denied."""
        try:
            priority_class = PriorityClass.from_nice(proc.nice())
            times = proc.cpu_times()
        except psutil.Error:
            return {
                "priority_class": PriorityClass.NORMAL,
                "user_cpu_time": 0.0,
                "privileged_cpu_time": 0.0,
                "total_cpu_time": 0.0,
            }
        return {
            "priority_class": priority_class,
            "user_cpu_time": times.user,
            "privileged_cpu_time": times.system,
            "total_cpu_time": times.user + times.system,
        }

    def _warn(self, name: str, error: psutil.Error) -> None:
        message = f"Failed to get info about {name}. {error}"
        log.warning("process_read_failed", process=name, error=str(error))
        if self.on_warning is not None:
            self.on_warning(message)


class LatestValue:
    """Single-slot, thread-safe holder; a new value replaces an unconsumed one."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._value: UsageReading | None = None

    def put(self, value: UsageReading) -> None:
        with self._lock:
            self._value = value

    def peek(self) -> UsageReading | None:
        with self._lock:
            return self._value

    def take(self) -> UsageReading | None:
        """Return the current value and clear the slot."""
        with self._lock:
            value, self._value = self._value, None
            return value


class UsageReporter:
    """
    Samples system-wide CPU utilization in a daemon thread.

    Each sample blocks for ``sample_seconds`` inside ``psutil.cpu_percent`` to
    get a valid delta, so the loop never runs on the UI thread. The latest
    reading is kept in a single slot and pushed to one subscriber.
    """

    def __init__(self, sample_seconds: float = 1.0, label: str | None = None) -> None:
        """
        Initialize the UsageReporter.

        Args:
            sample_seconds: Measurement window for each reading (seconds).
            label: Label published with each reading. Defaults to the name
                of the current process.
        """
        self._sample_seconds = max(0.1, sample_seconds)
        self._label = label if label is not None else psutil.Process().name()
        self._slot = LatestValue()
        self._subscriber: UsageCallback | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None

    @property
    def sample_seconds(self) -> float:
        """Get the measurement window."""
        return self._sample_seconds

    @property
    def label(self) -> str:
        """Label published with each reading."""
        return self._label

    @property
    def is_running(self) -> bool:
        """Check if the sampling thread is running."""
        return self._thread is not None and self._thread.is_alive()

    def subscribe(self, callback: UsageCallback | None) -> None:
        """Set the single subscriber, replacing any previous one."""
        self._subscriber = callback

    def latest(self) -> UsageReading | None:
        """Most recent reading without consuming it."""
        return self._slot.peek()

    def take(self) -> UsageReading | None:
        """Consume the most recent reading."""
        return self._slot.take()

    def start(self) -> None:
        """Start the sampling thread."""
        if self.is_running:
            return

        self._stop_event.clear()
        self._thread = threading.Thread(
            target=self._sample_loop,
            daemon=True,
            name="UsageReporter",
        )
        self._thread.start()

    def stop(self, timeout: float | None = 5.0) -> None:
        """
        Stop the sampling thread.

        Args:
            timeout: How long to wait for thread to stop (seconds).
        """
        self._stop_event.set()
        if self._thread is not None:
            self._thread.join(timeout=timeout)
            self._thread = None

    def sample(self) -> UsageReading:
        """Take one blocking reading and publish it."""
        percent = psutil.cpu_percent(interval=self._sample_seconds)
        reading = UsageReading(label=self._label, percent=percent)
        self._slot.put(reading)
        subscriber = self._subscriber
        if subscriber is not None:
            subscriber(reading.label, reading.percent)
        return reading

    def _sample_loop(self) -> None:
        """Main sampling loop running in the background thread."""
        while not self._stop_event.is_set():
            try:
                self.sample()
            except Exception:
                log.exception("usage_sample_failed")
                # Avoid a hot loop if sampling fails immediately
                self._stop_event.wait(timeout=self._sample_seconds)
