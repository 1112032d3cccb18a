"""Process termination and launching for procreaper."""

import threading

import psutil

from procreaper.logging import get_logger
from procreaper.models import KillOutcome, KillResult, SpawnResult

log = get_logger(__name__)


class TerminationExecutor:
    """
    Kills a process identified by name and pid.

    The live process table is consulted on every call and both name and pid
    must match, so a recycled pid is never killed by mistake.
    """

    def terminate(self, name: str, pid: int) -> KillResult:
        """Terminate the process, reporting the outcome instead of raising."""
        try:
            proc = psutil.Process(pid)
            live_name = proc.name()
        except (psutil.NoSuchProcess, ValueError):
            # psutil rejects negative pids with ValueError
            return self._not_found(name, pid)
        except psutil.Error as e:
            return self._failed(name, pid, e)

        if live_name != name:
            return self._not_found(name, pid)

        try:
            proc.kill()
        except psutil.NoSuchProcess:
            return self._not_found(name, pid)
        except (psutil.Error, OSError) as e:
            return self._failed(name, pid, e)

        log.info("process_killed", process=name, pid=pid)
        return KillResult(KillOutcome.KILLED, name, pid)

    @staticmethod
    def _not_found(name: str, pid: int) -> KillResult:
        log.info("process_not_found", process=name, pid=pid)
        return KillResult(KillOutcome.NOT_FOUND, name, pid)

    @staticmethod
    def _failed(name: str, pid: int, error: Exception) -> KillResult:
        reason = str(error) or type(error).__name__
        log.warning("process_kill_failed", process=name, pid=pid, error=reason)
        return KillResult(KillOutcome.FAILED, name, pid, reason=reason)


def spawn(path: str) -> SpawnResult:
    """Launch an executable without waiting for it."""
    path = path.strip()
    if not path:
        return SpawnResult(path=path, ok=False, error="No executable path given")

    try:
        proc = psutil.Popen([path])
    except OSError as e:
        log.warning("process_spawn_failed", path=path, error=str(e))
        return SpawnResult(path=path, ok=False, error=str(e))

    # Reap the child when it exits so it never lingers as a zombie
    threading.Thread(target=proc.wait, daemon=True, name=f"spawn-wait-{proc.pid}").start()
    log.info("process_spawned", path=path, pid=proc.pid)
    return SpawnResult(path=path, ok=True, pid=proc.pid)
