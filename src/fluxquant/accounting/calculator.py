"""
Progress arithmetic for pools and allocations.

All functions here are pure and integer-based, so they can be called from
any number of threads without coordination. Percentages are never stored;
callers recompute them from the durable counters on every read.

    progress(valid, excluded, quota)
        0 when quota <= excluded (degenerate denominator), otherwise
        round-half-up(100 * valid / (quota - excluded)). The value is NOT
        clamped: 200 means twice the effective quota was delivered.
"""

from dataclasses import dataclass, asdict
from typing import Dict


DEFAULT_LAGGING_THRESHOLD = 50


def progress(valid: int, excluded: int, quota: int) -> int:
    """
    Unclamped integer progress percentage.

    Examples:
        >>> progress(50, 0, 100)
        50
        >>> progress(100, 0, 50)
        200
        >>> progress(10, 20, 15)
        0
    """
    denominator = quota - excluded
    if denominator <= 0:
        return 0
    return (200 * valid + denominator) // (2 * denominator)


def display_percent(percent: int) -> int:
    """Clamp a progress value to 0..100 for presentation only."""
    return max(0, min(100, percent))


def is_completed(valid: int, excluded: int, quota: int) -> bool:
    return valid + excluded >= quota


def is_lagging(valid: int, excluded: int, quota: int,
               lagging_threshold: int = DEFAULT_LAGGING_THRESHOLD) -> bool:
    if is_completed(valid, excluded, quota):
        return False
    return progress(valid, excluded, quota) < lagging_threshold


@dataclass(frozen=True)
class ProgressSnapshot:
    percent: int
    display_percent: int
    is_completed: bool
    is_lagging: bool

    def as_dict(self) -> Dict:
        return asdict(self)


class ProgressCalculator:
    """Progress policy with its lagging threshold fixed at construction."""

    def __init__(self, lagging_threshold: int = DEFAULT_LAGGING_THRESHOLD):
        self.lagging_threshold = lagging_threshold

    def evaluate(self, valid: int, excluded: int, quota: int) -> ProgressSnapshot:
        percent = progress(valid, excluded, quota)
        completed = is_completed(valid, excluded, quota)
        return ProgressSnapshot(
            percent=percent,
            display_percent=display_percent(percent),
            is_completed=completed,
            is_lagging=not completed and percent < self.lagging_threshold,
        )

    def __repr__(self):
        return f"<ProgressCalculator(lagging_threshold={self.lagging_threshold})>"
