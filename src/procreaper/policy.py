"""Exclusion policy and garbage scoring for process reclamation."""

from collections.abc import Iterable

import psutil

from procreaper.models import PriorityClass, ProcessSnapshot, ReclamationConfig


def logical_cpu_count() -> int:
    """Number of logical processors, never less than 1."""
    return psutil.cpu_count(logical=True) or 1


def parse_exclusions(raw: str | None) -> frozenset[str]:
    """
    Parse a semicolon-separated list of process names.

    Surrounding whitespace is trimmed and blank entries are dropped, so
    ``" a ; ;b;c "`` yields ``{"a", "b", "c"}``. Empty input is not an error.
    """
    if not raw:
        return frozenset()
    return frozenset(token.strip() for token in raw.split(";") if token.strip())


def is_excluded(snapshot: ProcessSnapshot, config: ReclamationConfig) -> bool:
    """Return True if the process must never be selected for reclamation."""
    # Never scheduled, or extended metrics were unreadable
    if snapshot.total_cpu_time == 0:
        return True
    if (
        snapshot.priority_class == PriorityClass.ABOVE_NORMAL
        or snapshot.priority_class == PriorityClass.HIGH
        or snapshot.priority_class == PriorityClass.REALTIME
    ):
        return True
    return snapshot.name in config.exclusion_names


def garbage_score(snapshot: ProcessSnapshot, cpu_count: int) -> float:
    """
    Score a process for reclamation; higher means more wasteful.

    Kilobytes of resident memory minus CPU milliseconds amortized over the
    logical processors. Memory-heavy, CPU-idle processes score highest.
    """
    if cpu_count <= 0:
        raise ValueError(f"cpu_count must be positive, got {cpu_count}")
    return snapshot.physical_memory / 1024 - snapshot.total_cpu_ms / cpu_count


def select_victim(
    snapshots: Iterable[ProcessSnapshot],
    config: ReclamationConfig,
    cpu_count: int | None = None,
) -> ProcessSnapshot | None:
    """
    Select the eligible process with the highest garbage score.

    Ties keep the earliest process in ``snapshots``. Returns None when no
    process is eligible.
    """
    if cpu_count is None:
        cpu_count = logical_cpu_count()

    victim: ProcessSnapshot | None = None
    best = float("-inf")
    for snapshot in snapshots:
        if is_excluded(snapshot, config):
            continue
        score = garbage_score(snapshot, cpu_count)
        if victim is None or score > best:
            best = score
            victim = snapshot
    return victim


def rank_candidates(
    snapshots: Iterable[ProcessSnapshot],
    config: ReclamationConfig,
    cpu_count: int | None = None,
) -> list[tuple[ProcessSnapshot, float]]:
    """Eligible processes with their scores, highest score first."""
    if cpu_count is None:
        cpu_count = logical_cpu_count()
    scored = [
        (snapshot, garbage_score(snapshot, cpu_count))
        for snapshot in snapshots
        if not is_excluded(snapshot, config)
    ]
    # sorted() is stable, so ties keep input order
    return sorted(scored, key=lambda pair: pair[1], reverse=True)
