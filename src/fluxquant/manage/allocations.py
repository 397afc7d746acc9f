"""
Allocation management functions.

Creating, toggling and deleting a user's share of a task pool. Targets are
personal denominators only: the sum of active targets may exceed the pool
quota, which is reported as a warning and never rejected here.

NOTE: These functions do NOT commit the session. The caller is responsible
for calling session.commit() or using quota_transaction.
"""

import logging
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.calculator import ProgressCalculator
from fluxquant.accounting.reports import ReportLog
from fluxquant.config import get_config
from fluxquant.core.users import User
from fluxquant.exceptions import ConflictError, InvalidStateError, NotFoundError
from fluxquant.manage.results import AllocationResult, OVER_ALLOCATED, QuotaWarning
from fluxquant.manage.validation import require_non_negative_int
from fluxquant.pools.task_pools import TaskPool
from fluxquant.security.roles import Permission, Principal, require_permission


logger = logging.getLogger(__name__)

__all__ = [
    'get_assigned_total',
    'get_over_allocation',
    'over_allocation_warnings',
    'create_allocation',
    'toggle_allocation',
    'delete_allocation',
]


def get_assigned_total(session: Session, task_pool_id: int) -> int:
    """Sum of active allocation targets in a pool, computed in SQL."""
    total = session.query(func.coalesce(func.sum(Allocation.target_quota), 0)).filter(
        Allocation.task_pool_id == task_pool_id,
        Allocation.active == True,
    ).scalar()
    return int(total)


def get_over_allocation(session: Session, task_pool_id: int) -> int:
    """
    Amount by which active targets exceed the pool quota (0 when within).

    Raises:
        NotFoundError: task pool does not exist
    """
    pool = session.get(TaskPool, task_pool_id)
    if pool is None:
        raise NotFoundError(f"Task pool {task_pool_id} not found")
    return max(0, get_assigned_total(session, task_pool_id) - pool.total_quota)


def over_allocation_warnings(session: Session, pool: TaskPool) -> List[QuotaWarning]:
    assigned = get_assigned_total(session, pool.task_pool_id)
    if assigned <= pool.total_quota:
        return []

    logger.warning(f"Task pool {pool.task_pool_id} over-allocated: "
                   f"{assigned} assigned against quota {pool.total_quota}")
    return [QuotaWarning(
        OVER_ALLOCATED,
        f"Active targets ({assigned}) exceed the pool quota ({pool.total_quota}) "
        f"by {assigned - pool.total_quota}",
    )]


def _find_active_allocation(session: Session, task_pool_id: int, user_id: int,
                            exclude_id: Optional[int] = None) -> Optional[Allocation]:
    query = session.query(Allocation).filter(
        Allocation.task_pool_id == task_pool_id,
        Allocation.user_id == user_id,
        Allocation.active == True,
    )
    if exclude_id is not None:
        query = query.filter(Allocation.allocation_id != exclude_id)
    return query.first()


def create_allocation(
    session: Session,
    task_pool_id: int,
    user_id: int,
    target_quota: int,
    actor: Optional[Principal] = None,
    calculator: Optional[ProgressCalculator] = None,
) -> AllocationResult:
    """
    Assign a user a target within a task pool.

    NOTE: This function does NOT commit the session.

    Args:
        session: SQLAlchemy session
        task_pool_id: Pool to allocate from
        user_id: User receiving the allocation
        target_quota: Personal target (>= 0)
        actor: Acting principal (None = trusted internal caller)
        calculator: Progress policy (defaults to the configured one)

    Returns:
        AllocationResult with the new allocation (counters at zero) and an
        over-allocation warning when active targets exceed the pool quota

    Raises:
        InvalidArgumentError: target_quota negative or not an integer
        NotFoundError: pool or user does not exist
        InvalidStateError: pool or user is deactivated
        ConflictError: user already holds an active allocation in the pool
    """
    calculator = calculator or get_config().build_calculator()
    target_quota = require_non_negative_int('target_quota', target_quota)
    require_permission(actor, Permission.CREATE_ALLOCATIONS)

    pool = session.get(TaskPool, task_pool_id)
    if pool is None:
        raise NotFoundError(f"Task pool {task_pool_id} not found")
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")
    if not pool.active:
        raise InvalidStateError(f"Task pool {task_pool_id} is disabled")
    if not user.active:
        raise InvalidStateError(f"User {user.username} is deactivated")

    existing = _find_active_allocation(session, task_pool_id, user_id)
    if existing is not None:
        raise ConflictError(
            f"User {user.username} already has active allocation "
            f"{existing.allocation_id} in task pool {task_pool_id}",
            allocation_id=existing.allocation_id,
        )

    allocation = Allocation(
        task_pool_id=task_pool_id,
        user_id=user_id,
        target_quota=target_quota,
        current_valid=0,
        current_excluded=0,
        active=True,
    )
    session.add(allocation)
    try:
        # Unique partial index catches a concurrent duplicate
        session.flush()
    except IntegrityError as e:
        raise ConflictError(
            f"User {user.username} already has an active allocation in task pool {task_pool_id}"
        ) from e

    logger.info(f"Created allocation {allocation.allocation_id}: user {user_id}, "
                f"pool {task_pool_id}, target {target_quota}")

    return AllocationResult(
        allocation=allocation,
        progress=allocation.progress(calculator),
        warnings=over_allocation_warnings(session, pool),
    )


def toggle_allocation(
    session: Session,
    allocation_id: int,
    actor: Optional[Principal] = None,
    calculator: Optional[ProgressCalculator] = None,
) -> AllocationResult:
    """
    Flip an allocation between active and disabled.

    A disabled allocation accepts no new reports; its historical counters
    remain part of the pool aggregates.

    Raises:
        NotFoundError: allocation does not exist
        ConflictError: re-activating while another active allocation exists
            for the same (user, pool)
    """
    calculator = calculator or get_config().build_calculator()
    require_permission(actor, Permission.EDIT_ALLOCATIONS)

    allocation = session.get(Allocation, allocation_id)
    if allocation is None:
        raise NotFoundError(f"Allocation {allocation_id} not found")

    new_state = not allocation.active
    if new_state:
        other = _find_active_allocation(session, allocation.task_pool_id, allocation.user_id,
                                        exclude_id=allocation_id)
        if other is not None:
            raise ConflictError(
                f"Allocation {other.allocation_id} is already active for this user and pool",
                allocation_id=other.allocation_id,
            )

    # Single-column conditional update; counters are untouched
    try:
        rows = session.query(Allocation).filter(
            Allocation.allocation_id == allocation_id,
            Allocation.active == allocation.active,
        ).update({Allocation.active: new_state}, synchronize_session=False)
    except IntegrityError as e:
        raise ConflictError(f"Allocation {allocation_id} cannot be re-activated") from e
    if rows == 0:
        raise ConflictError(f"Allocation {allocation_id} was toggled concurrently")

    session.refresh(allocation)

    logger.info(f"Allocation {allocation_id} {'activated' if new_state else 'disabled'}")

    warnings = over_allocation_warnings(session, allocation.task_pool) if new_state else []
    return AllocationResult(
        allocation=allocation,
        progress=allocation.progress(calculator),
        warnings=warnings,
    )


def delete_allocation(session: Session, allocation_id: int,
                      actor: Optional[Principal] = None) -> None:
    """
    Hard-delete an allocation that never received a report.

    Allocations with history must be disabled instead.

    Raises:
        NotFoundError: allocation does not exist
        InvalidStateError: allocation has report logs
    """
    require_permission(actor, Permission.DELETE_ALLOCATIONS)

    allocation = session.get(Allocation, allocation_id)
    if allocation is None:
        raise NotFoundError(f"Allocation {allocation_id} not found")

    report_count = session.query(func.count(ReportLog.report_log_id)).filter(
        ReportLog.allocation_id == allocation_id
    ).scalar()
    if report_count:
        raise InvalidStateError(
            f"Allocation {allocation_id} has {report_count} report(s); disable it instead"
        )

    session.delete(allocation)
    session.flush()
    logger.info(f"Deleted allocation {allocation_id}")
