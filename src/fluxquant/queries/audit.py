"""
Quota audit and consistency queries.

Functions:
    get_quota_history: Quota adjustments of a pool, newest first
    check_pool_consistency: Recompute a pool's counters from its history
"""

from typing import Dict, List

from sqlalchemy import func
from sqlalchemy.orm import Session

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.reports import ReportLog
from fluxquant.pools.task_pools import QuotaAdjustment
from fluxquant.queries.lookups import get_task_pool


def get_quota_history(session: Session, task_pool_id: int) -> List[Dict]:
    """
    Get every quota change of a pool, newest first.

    Returns:
        List of dicts with keys: quota_adjustment_id, previous_quota,
        new_quota, delta, reason, actor_id, actor_name, creation_time

    Raises:
        NotFoundError: pool does not exist
    """
    get_task_pool(session, task_pool_id)

    adjustments = session.query(QuotaAdjustment)\
        .filter(QuotaAdjustment.task_pool_id == task_pool_id)\
        .order_by(QuotaAdjustment.creation_time.desc(),
                  QuotaAdjustment.quota_adjustment_id.desc())\
        .all()

    return [
        {
            'quota_adjustment_id': adj.quota_adjustment_id,
            'previous_quota': adj.previous_quota,
            'new_quota': adj.new_quota,
            'delta': adj.delta,
            'reason': adj.reason,
            'actor_id': adj.actor_id,
            'actor_name': adj.actor_name,
            'creation_time': adj.creation_time,
        }
        for adj in adjustments
    ]


def check_pool_consistency(session: Session, task_pool_id: int) -> Dict:
    """
    Compare a pool's stored counters with what its history implies.

    Expected values:
        total_valid / total_excluded  = sum of all allocation counters
        allocation counters           = sum of that allocation's active logs
        total_quota                   = newest adjustment's new_quota (0 if none)

    Returns:
        {
            'task_pool_id': int,
            'consistent': bool,
            'stored': {total_quota, total_valid, total_excluded},
            'expected': {total_quota, total_valid, total_excluded},
            'drift': [field names that differ],
            'allocation_drift': [ {allocation_id, stored_valid, expected_valid,
                                   stored_excluded, expected_excluded} ]
        }

    Raises:
        NotFoundError: pool does not exist
    """
    pool = get_task_pool(session, task_pool_id)

    alloc_valid, alloc_excluded = session.query(
        func.coalesce(func.sum(Allocation.current_valid), 0),
        func.coalesce(func.sum(Allocation.current_excluded), 0),
    ).filter(Allocation.task_pool_id == task_pool_id).one()

    latest = session.query(QuotaAdjustment)\
        .filter(QuotaAdjustment.task_pool_id == task_pool_id)\
        .order_by(QuotaAdjustment.quota_adjustment_id.desc())\
        .first()

    stored = {
        'total_quota': pool.total_quota,
        'total_valid': pool.total_valid,
        'total_excluded': pool.total_excluded,
    }
    expected = {
        'total_quota': latest.new_quota if latest else 0,
        'total_valid': int(alloc_valid),
        'total_excluded': int(alloc_excluded),
    }
    drift = [key for key in stored if stored[key] != expected[key]]

    log_sums = session.query(
        ReportLog.allocation_id,
        func.coalesce(func.sum(ReportLog.valid_qty), 0).label('valid'),
        func.coalesce(func.sum(ReportLog.excluded_qty), 0).label('excluded'),
    )\
        .join(Allocation, ReportLog.allocation_id == Allocation.allocation_id)\
        .filter(Allocation.task_pool_id == task_pool_id, ReportLog.is_active)\
        .group_by(ReportLog.allocation_id)\
        .all()
    sums = {row.allocation_id: (int(row.valid), int(row.excluded)) for row in log_sums}

    allocation_drift = []
    for allocation in pool.allocations:
        expected_valid, expected_excluded = sums.get(allocation.allocation_id, (0, 0))
        if (allocation.current_valid, allocation.current_excluded) != (expected_valid, expected_excluded):
            allocation_drift.append({
                'allocation_id': allocation.allocation_id,
                'stored_valid': allocation.current_valid,
                'expected_valid': expected_valid,
                'stored_excluded': allocation.current_excluded,
                'expected_excluded': expected_excluded,
            })

    return {
        'task_pool_id': task_pool_id,
        'consistent': not drift and not allocation_drift,
        'stored': stored,
        'expected': expected,
        'drift': drift,
        'allocation_drift': allocation_drift,
    }
