"""Periodic reclamation of the most wasteful process."""

import threading
from collections.abc import Callable

from procreaper.killer import TerminationExecutor
from procreaper.logging import get_logger
from procreaper.models import KillResult, ProcessSnapshot, ReclamationConfig
from procreaper.monitor import ProcessProvider
from procreaper.policy import logical_cpu_count, select_victim

log = get_logger(__name__)


class ReclamationScheduler:
    """
    Kills at most one process per tick while enabled.

    Each tick takes a fresh snapshot, selects a victim with the garbage
    score, terminates it and publishes a refreshed snapshot. Ticks run on a
    daemon timer thread and are serialized; ``disable()`` waits for an
    in-flight tick, so nothing is terminated after it returns.
    """

    def __init__(
        self,
        provider: ProcessProvider,
        executor: TerminationExecutor,
        on_result: Callable[[KillResult], None] | None = None,
        on_refresh: Callable[[list[ProcessSnapshot]], None] | None = None,
        cpu_count: int | None = None,
    ) -> None:
        """
        Initialize the ReclamationScheduler.

        Args:
            provider: Source of process snapshots.
            executor: Kills the selected victim.
            on_result: Called with the outcome of every kill attempt.
            on_refresh: Called with the snapshot taken after a kill attempt.
            cpu_count: Logical processor count for scoring. Detected if None.
        """
        self._provider = provider
        self._executor = executor
        self.on_result = on_result
        self.on_refresh = on_refresh
        self._cpu_count = cpu_count if cpu_count is not None else logical_cpu_count()
        self._config: ReclamationConfig | None = None
        self._stop_event = threading.Event()
        self._thread: threading.Thread | None = None
        self._tick_lock = threading.RLock()

    @property
    def is_enabled(self) -> bool:
        """True between enable() and disable()."""
        return self._config is not None

    @property
    def config(self) -> ReclamationConfig | None:
        """Config of the current enabled period, None while disabled."""
        return self._config

    def enable(self, config: ReclamationConfig) -> None:
        """Start ticking every ``config.interval_seconds``, replacing any previous config."""
        self.disable()

        stop_event = threading.Event()
        self._stop_event = stop_event
        self._config = config
        self._thread = threading.Thread(
            target=self._run,
            args=(stop_event, config),
            daemon=True,
            name="ReclamationScheduler",
        )
        self._thread.start()
        log.info(
            "reclamation_enabled",
            interval_seconds=config.interval_seconds,
            exclusions=sorted(config.exclusion_names),
        )

    def disable(self, timeout: float | None = 5.0) -> None:
        """
        Stop ticking. Safe to call repeatedly and from a tick callback.

        Args:
            timeout: How long to wait for the timer thread to exit (seconds).
        """
        if self._config is None:
            return

        self._stop_event.set()
        self._config = None
        # Wait out a tick that is already running
        with self._tick_lock:
            pass

        thread = self._thread
        self._thread = None
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        log.info("reclamation_disabled")

    def tick(self) -> KillResult | None:
        """Run one reclamation cycle with the current config."""
        return self._tick(self._stop_event, self._config)

    def _run(self, stop_event: threading.Event, config: ReclamationConfig) -> None:
        """Timer loop running in the background thread."""
        while not stop_event.wait(timeout=config.interval_seconds):
            try:
                self._tick(stop_event, config)
            except Exception:
                # A failed tick never stops reclamation
                log.exception("reclamation_tick_failed")

    def _tick(
        self, stop_event: threading.Event, config: ReclamationConfig | None
    ) -> KillResult | None:
        with self._tick_lock:
            if config is None or stop_event.is_set():
                return None

            snapshots = self._provider.list_processes()
            victim = select_victim(snapshots, config, self._cpu_count)
            if victim is None:
                return None

            # Disabled while scoring
            if stop_event.is_set():
                return None

            log.info("reclamation_victim_selected", process=victim.name, pid=victim.pid)
            result = self._executor.terminate(victim.name, victim.pid)
            refreshed = self._provider.list_processes()

            if self.on_refresh is not None:
                self.on_refresh(refreshed)
            if self.on_result is not None:
                self.on_result(result)
            return result
