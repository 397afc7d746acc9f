"""
Result objects returned by the quota engine writers.

Writers hand back live ORM objects plus the derived values a caller needs
to render a response (progress snapshots, warnings). The API layer turns
them into plain dicts through marshmallow schemas.
"""

from dataclasses import dataclass, field
from typing import List, Optional

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.calculator import ProgressSnapshot
from fluxquant.accounting.reports import ReportLog
from fluxquant.pools.task_pools import QuotaAdjustment, TaskPool


OVER_ALLOCATED = 'over_allocated'
OVER_DELIVERED = 'over_delivered'


@dataclass(frozen=True)
class QuotaWarning:
    """Non-blocking condition surfaced to the caller (the UI decides whether to block)."""
    code: str
    message: str


@dataclass
class ReportResult:
    report_log: ReportLog
    allocation: Allocation
    progress: ProgressSnapshot
    warnings: List[QuotaWarning] = field(default_factory=list)

    @property
    def current_valid(self) -> int:
        return self.allocation.current_valid

    @property
    def current_excluded(self) -> int:
        return self.allocation.current_excluded


@dataclass
class QuotaAdjustmentResult:
    adjustment: QuotaAdjustment
    task_pool: TaskPool
    previous: ProgressSnapshot
    preview: ProgressSnapshot
    warnings: List[QuotaWarning] = field(default_factory=list)

    @property
    def delta(self) -> int:
        return self.adjustment.delta


@dataclass
class AllocationResult:
    allocation: Allocation
    progress: ProgressSnapshot
    warnings: List[QuotaWarning] = field(default_factory=list)
    previous_target: Optional[int] = None
