"""Collaborator-facing facade over the reclamation engine."""

from collections.abc import Callable

from procreaper.config import Config
from procreaper.killer import TerminationExecutor, spawn
from procreaper.models import KillResult, ProcessSnapshot, ReclamationConfig, SpawnResult
from procreaper.monitor import ProcessProvider, UsageCallback, UsageReporter
from procreaper.scheduler import ReclamationScheduler


class TaskReaper:
    """
    Single entry point for a UI or CLI.

    Owns the provider, executor, scheduler and usage reporter. Results from
    background threads are delivered through the ``subscribe_*`` callbacks;
    collaborators that own a UI thread should hand them over with a queue.
    """

    def __init__(
        self,
        config: Config | None = None,
        provider: ProcessProvider | None = None,
        executor: TerminationExecutor | None = None,
        usage_reporter: UsageReporter | None = None,
        cpu_count: int | None = None,
    ) -> None:
        self.config = config or Config()
        self.provider = provider or ProcessProvider()
        self.executor = executor or TerminationExecutor()
        self.usage = usage_reporter or UsageReporter(
            sample_seconds=self.config.usage.sample_seconds
        )
        self.scheduler = ReclamationScheduler(
            self.provider,
            self.executor,
            on_refresh=self._store_snapshots,
            cpu_count=cpu_count,
        )
        self._snapshots: list[ProcessSnapshot] = []
        self._snapshot_callback: Callable[[list[ProcessSnapshot]], None] | None = None

    @property
    def snapshots(self) -> list[ProcessSnapshot]:
        """Collection from the most recent refresh."""
        return self._snapshots

    @property
    def reclamation_enabled(self) -> bool:
        """Whether periodic reclamation is running."""
        return self.scheduler.is_enabled

    def start(self) -> None:
        """Start background sampling, and reclamation if configured to."""
        self.usage.start()
        settings = self.config.reclamation
        if settings.enabled_on_start:
            self.scheduler.enable(settings.to_reclamation_config())

    def close(self) -> None:
        """Stop all background activity."""
        self.scheduler.disable()
        self.usage.stop()

    def refresh(self) -> list[ProcessSnapshot]:
        """Rebuild the snapshot collection from the live process table."""
        snapshots = self.provider.list_processes()
        self._store_snapshots(snapshots)
        return snapshots

    def kill_selected(self, name: str, pid: int) -> KillResult:
        """Terminate one process on user request, then refresh."""
        result = self.executor.terminate(name, pid)
        self.refresh()
        return result

    def spawn(self, path: str) -> SpawnResult:
        """Launch an executable, then refresh."""
        result = spawn(path)
        self.refresh()
        return result

    def set_reclamation(
        self,
        enabled: bool,
        interval_seconds: int | None = None,
        exclusion_names_raw: str | None = None,
    ) -> ReclamationConfig | None:
        """
        Enable or disable periodic reclamation.

        ``exclusion_names_raw`` is a semicolon-separated list of process
        names. Returns the active config, or None when disabled.
        """
        if not enabled:
            self.scheduler.disable()
            return None

        if interval_seconds is None:
            interval_seconds = self.config.reclamation.interval_seconds
        config = ReclamationConfig.from_raw(interval_seconds, exclusion_names_raw)
        self.scheduler.enable(config)
        return config

    def subscribe_usage(self, callback: UsageCallback | None) -> None:
        """Receive ``(label, percent)`` for every CPU usage reading."""
        self.usage.subscribe(callback)

    def subscribe_results(self, callback: Callable[[KillResult], None] | None) -> None:
        """Receive the outcome of every scheduled kill."""
        self.scheduler.on_result = callback

    def subscribe_snapshots(
        self, callback: Callable[[list[ProcessSnapshot]], None] | None
    ) -> None:
        """Receive every rebuilt snapshot collection."""
        self._snapshot_callback = callback

    def subscribe_warnings(self, callback: Callable[[str], None] | None) -> None:
        """Receive per-process read warnings."""
        self.provider.on_warning = callback

    def _store_snapshots(self, snapshots: list[ProcessSnapshot]) -> None:
        # Replace, never mutate: other threads may still hold the old list
        self._snapshots = snapshots
        if self._snapshot_callback is not None:
            self._snapshot_callback(snapshots)
