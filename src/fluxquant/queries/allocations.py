"""
Allocation query functions for the quota engine.

Functions:
    get_my_allocations: A user's active allocations with progress
    get_allocation_history: Report logs of one allocation, newest first
"""

from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.calculator import ProgressCalculator
from fluxquant.accounting.reports import ReportLog
from fluxquant.config import get_config
from fluxquant.core.users import User
from fluxquant.exceptions import NotFoundError
from fluxquant.pools.task_pools import TaskPool
from fluxquant.projects.projects import Stage
from fluxquant.security.roles import Principal


def _report_row(log: ReportLog) -> Dict:
    return {
        'report_log_id': log.report_log_id,
        'log_date': log.log_date,
        'valid_qty': log.valid_qty,
        'excluded_qty': log.excluded_qty,
        'exclusion_reason': log.exclusion_reason,
        'comment': log.comment,
        'is_backfill': log.is_backfill,
        'status': log.status,
        'creation_time': log.creation_time,
        'reverted_at': log.reverted_at,
    }


def _last_report(allocation: Allocation) -> Optional[Dict]:
    """Most recently created active report, or None."""
    active = [log for log in allocation.reports if log.is_active]
    if not active:
        return None
    latest = max(active, key=lambda log: (log.creation_time, log.report_log_id))
    return _report_row(latest)


def get_my_allocations(
    session: Session,
    user_id: int,
    calculator: Optional[ProgressCalculator] = None,
) -> List[Dict]:
    """
    Get a user's active allocations, newest first.

    Args:
        session: SQLAlchemy session
        user_id: User whose allocations to list
        calculator: Progress policy (defaults to the configured one)

    Returns:
        List of dicts with keys: allocation_id, task_pool_id, task_pool_name,
        stage_name, project_id, project_code, project_name, target_quota,
        current_valid, current_excluded, progress, last_report, creation_time

    Raises:
        NotFoundError: user does not exist
    """
    calculator = calculator or get_config().build_calculator()

    if session.get(User, user_id) is None:
        raise NotFoundError(f"User {user_id} not found")

    allocations = session.query(Allocation)\
        .options(
            joinedload(Allocation.task_pool).joinedload(TaskPool.stage).joinedload(Stage.project),
            selectinload(Allocation.reports),
        )\
        .filter(
            Allocation.user_id == user_id,
            Allocation.active == True,
        )\
        .order_by(Allocation.creation_time.desc(), Allocation.allocation_id.desc())\
        .all()

    results = []
    for allocation in allocations:
        pool = allocation.task_pool
        stage = pool.stage
        results.append({
            'allocation_id': allocation.allocation_id,
            'task_pool_id': pool.task_pool_id,
            'task_pool_name': pool.name,
            'stage_name': stage.name,
            'project_id': stage.project.project_id,
            'project_code': stage.project.code,
            'project_name': stage.project.name,
            'target_quota': allocation.target_quota,
            'current_valid': allocation.current_valid,
            'current_excluded': allocation.current_excluded,
            'progress': allocation.progress(calculator).as_dict(),
            'last_report': _last_report(allocation),
            'creation_time': allocation.creation_time,
        })

    return results


def get_allocation_history(
    session: Session,
    allocation_id: int,
    actor: Optional[Principal] = None,
    include_reverted: bool = True,
) -> Dict:
    """
    Report history of one allocation, newest log date first.

    Employees may only read their own allocations; other ids are reported
    as not found.

    Returns:
        {
            'allocation_id', 'user_id', 'username', 'task_pool_id',
            'task_pool_name', 'target_quota', 'current_valid',
            'current_excluded', 'active',
            'reports': [ {report_log_id, log_date, valid_qty, excluded_qty,
                          exclusion_reason, comment, is_backfill, status,
                          creation_time, reverted_at} ]
        }

    Raises:
        NotFoundError: allocation does not exist (or is not the employee's own)
    """
    allocation = session.query(Allocation)\
        .options(joinedload(Allocation.user), joinedload(Allocation.task_pool))\
        .filter(Allocation.allocation_id == allocation_id)\
        .first()
    if allocation is None:
        raise NotFoundError(f"Allocation {allocation_id} not found")
    if actor is not None and not actor.is_privileged and allocation.user_id != actor.user_id:
        raise NotFoundError(f"Allocation {allocation_id} not found")

    query = session.query(ReportLog).filter(ReportLog.allocation_id == allocation_id)
    if not include_reverted:
        query = query.filter(ReportLog.is_active)
    logs = query.order_by(ReportLog.log_date.desc(), ReportLog.report_log_id.desc()).all()

    return {
        'allocation_id': allocation.allocation_id,
        'user_id': allocation.user_id,
        'username': allocation.user.username,
        'task_pool_id': allocation.task_pool_id,
        'task_pool_name': allocation.task_pool.name,
        'target_quota': allocation.target_quota,
        'current_valid': allocation.current_valid,
        'current_excluded': allocation.current_excluded,
        'active': allocation.active,
        'reports': [_report_row(log) for log in logs],
    }
