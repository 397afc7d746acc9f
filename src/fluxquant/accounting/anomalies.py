"""
Exclusion-rate and overrun anomaly detection for pools and allocations.

The detector is advisory: it reads current aggregates and report logs and
never participates in a write. Evaluation on corrupt data degrades to an
'unknown' report instead of raising, so dashboards keep rendering.
"""

import logging
from collections import Counter
from dataclasses import dataclass, asdict
from typing import Dict, Iterable, Optional

from fluxquant.accounting.reports import ExclusionReason, ReportStatus


logger = logging.getLogger(__name__)

STATUS_OK = 'ok'
STATUS_ANOMALOUS = 'anomalous'
STATUS_UNKNOWN = 'unknown'


@dataclass(frozen=True)
class AnomalyReport:
    status: str
    processed: Optional[int] = None
    exclusion_rate: Optional[float] = None
    is_anomalous: Optional[bool] = None
    is_overrun: Optional[bool] = None
    top_reason: Optional[ExclusionReason] = None

    def as_dict(self) -> Dict:
        return asdict(self)


UNKNOWN_REPORT = AnomalyReport(status=STATUS_UNKNOWN)


def exclusion_rate(valid: int, excluded: int) -> float:
    return excluded / max(valid + excluded, 1)


def top_exclusion_reason(logs: Iterable) -> Optional[ExclusionReason]:
    """
    Most frequent exclusion reason across active report logs.

    Ties go to the reason whose latest occurrence is most recent.
    """
    counts = Counter()
    latest = {}
    for log in logs:
        if log.status != ReportStatus.ACTIVE or log.exclusion_reason is None:
            continue
        reason = ExclusionReason(log.exclusion_reason)
        counts[reason] += 1
        seen = (log.creation_time, log.report_log_id or 0)
        if reason not in latest or seen > latest[reason]:
            latest[reason] = seen

    if not counts:
        return None
    return max(counts, key=lambda reason: (counts[reason], latest[reason]))


class AnomalyDetector:
    """
    Derives anomaly flags from counters.

    Args:
        anomaly_threshold: Exclusion-rate ratio above which an entity is anomalous
        overrun_factor: processed > quota * overrun_factor flags over-delivery
        min_sample: Minimum processed units before the exclusion rate counts
    """

    def __init__(self, anomaly_threshold: float = 0.15, overrun_factor: float = 1.1,
                 min_sample: int = 0):
        self.anomaly_threshold = anomaly_threshold
        self.overrun_factor = overrun_factor
        self.min_sample = min_sample

    def evaluate(self, valid: int, excluded: int, quota: int, logs: Iterable = ()) -> AnomalyReport:
        try:
            for name, value in (('valid', valid), ('excluded', excluded), ('quota', quota)):
                if not isinstance(value, int) or isinstance(value, bool) or value < 0:
                    raise ValueError(f"{name} must be a non-negative integer, got {value!r}")

            processed = valid + excluded
            rate = exclusion_rate(valid, excluded)
            rate_flag = processed >= self.min_sample and rate > self.anomaly_threshold
            overrun = quota > 0 and processed > quota * self.overrun_factor
            anomalous = rate_flag or overrun

            return AnomalyReport(
                status=STATUS_ANOMALOUS if anomalous else STATUS_OK,
                processed=processed,
                exclusion_rate=round(rate, 4),
                is_anomalous=anomalous,
                is_overrun=overrun,
                top_reason=top_exclusion_reason(logs),
            )
        except (TypeError, ValueError, ArithmeticError) as e:
            logger.warning(f"Anomaly evaluation degraded to unknown: {e}")
            return UNKNOWN_REPORT

    def for_pool(self, pool) -> AnomalyReport:
        logs = [log for allocation in pool.allocations for log in allocation.reports]
        return self.evaluate(pool.total_valid, pool.total_excluded, pool.total_quota, logs)

    def for_allocation(self, allocation) -> AnomalyReport:
        return self.evaluate(allocation.current_valid, allocation.current_excluded,
                             allocation.target_quota, allocation.reports)

    def __repr__(self):
        return (f"<AnomalyDetector(threshold={self.anomaly_threshold}, "
                f"overrun_factor={self.overrun_factor}, min_sample={self.min_sample})>")
