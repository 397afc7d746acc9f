"""
Quota adjustment functions.

Pool quota changes are compare-and-set updates written together with a
QuotaAdjustment audit row; allocation targets are single-column updates
that never touch the report counters.

NOTE: These functions do NOT commit the session. The caller is responsible
for calling session.commit() or using quota_transaction.
"""

import logging
from typing import Optional

from sqlalchemy.orm import Session

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.calculator import ProgressCalculator
from fluxquant.config import EngineConfig, get_config
from fluxquant.exceptions import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    UnavailableError,
)
from fluxquant.manage.allocations import over_allocation_warnings
from fluxquant.manage.results import (
    AllocationResult,
    OVER_DELIVERED,
    QuotaAdjustmentResult,
    QuotaWarning,
)
from fluxquant.manage.validation import require_non_negative_int, require_reason
from fluxquant.pools.task_pools import QuotaAdjustment, TaskPool
from fluxquant.security.roles import Permission, Principal, require_permission


logger = logging.getLogger(__name__)

__all__ = [
    'adjust_pool_quota',
    'update_allocation_target',
]


def adjust_pool_quota(
    session: Session,
    task_pool_id: int,
    new_quota: int,
    reason: str,
    actor: Principal,
    calculator: Optional[ProgressCalculator] = None,
    config: Optional[EngineConfig] = None,
) -> QuotaAdjustmentResult:
    """
    Change a task pool's total quota and record who did it and why.

    The update is a compare-and-set on the quota read at the start of the
    attempt; a concurrent adjustment makes it match no row, in which case
    the pool is re-read and the attempt repeated. Allocation targets are
    never rescaled.

    NOTE: This function does NOT commit the session.

    Args:
        session: SQLAlchemy session
        task_pool_id: Pool to adjust
        new_quota: New total quota (>= 0)
        reason: Non-empty justification (bounded length)
        actor: Acting manager or admin
        calculator: Progress policy (defaults to the configured one)
        config: Engine configuration (defaults to get_config())

    Returns:
        QuotaAdjustmentResult with the audit row, the pool progress before
        the change and the preview at the new quota

    Raises:
        InvalidArgumentError: bad quota or reason
        ForbiddenError: no actor, or actor is not a manager/admin
        NotFoundError: pool does not exist
        ConflictError: new_quota equals the current quota
        UnavailableError: lost the compare-and-set race on every attempt

    Example:
        with quota_transaction(session):
            result = adjust_pool_quota(session, 3, 150, 'client added batch', actor)
            print(result.preview.percent)
    """
    config = config or get_config()
    calculator = calculator or config.build_calculator()

    new_quota = require_non_negative_int('new_quota', new_quota)
    reason = require_reason(reason, config.max_reason_length)
    if actor is None:
        raise ForbiddenError("Quota adjustments require an acting principal")
    require_permission(actor, Permission.ADJUST_QUOTA)

    pool = session.get(TaskPool, task_pool_id)
    if pool is None:
        raise NotFoundError(f"Task pool {task_pool_id} not found")

    previous_quota = None
    for attempt in range(1, config.quota_retry_attempts + 1):
        if attempt > 1:
            session.refresh(pool)
        previous_quota = pool.total_quota
        if new_quota == previous_quota:
            raise ConflictError(f"Task pool {task_pool_id} quota is already {new_quota}")

        rows = session.query(TaskPool).filter(
            TaskPool.task_pool_id == task_pool_id,
            TaskPool.total_quota == previous_quota,
        ).update({TaskPool.total_quota: new_quota}, synchronize_session=False)
        if rows == 1:
            break
        logger.debug(f"Quota compare-and-set lost on pool {task_pool_id} (attempt {attempt})")
    else:
        raise UnavailableError(
            f"Task pool {task_pool_id} quota changed concurrently; "
            f"gave up after {config.quota_retry_attempts} attempts"
        )

    adjustment = QuotaAdjustment(
        task_pool_id=task_pool_id,
        previous_quota=previous_quota,
        new_quota=new_quota,
        reason=reason,
        actor_id=actor.user_id,
        actor_name=actor.username or str(actor),
    )
    session.add(adjustment)
    session.flush()
    session.refresh(pool)

    previous = calculator.evaluate(pool.total_valid, pool.total_excluded, previous_quota)
    preview = calculator.evaluate(pool.total_valid, pool.total_excluded, new_quota)

    logger.info(f"Task pool {task_pool_id} quota {previous_quota} -> {new_quota} "
                f"by {actor}: {reason}")

    return QuotaAdjustmentResult(
        adjustment=adjustment,
        task_pool=pool,
        previous=previous,
        preview=preview,
        warnings=over_allocation_warnings(session, pool),
    )


def update_allocation_target(
    session: Session,
    allocation_id: int,
    new_target_quota: int,
    actor: Optional[Principal] = None,
    calculator: Optional[ProgressCalculator] = None,
) -> AllocationResult:
    """
    Change one allocation's personal target.

    Only target_quota is written, so a report racing with this update lands
    on the counters independently and both outcomes survive. A target below
    what was already processed is flagged as over-delivery, never capped.

    NOTE: This function does NOT commit the session.

    Raises:
        InvalidArgumentError: target negative or not an integer
        NotFoundError: allocation does not exist
        ForbiddenError: actor may not edit allocations
    """
    calculator = calculator or get_config().build_calculator()
    new_target_quota = require_non_negative_int('new_target_quota', new_target_quota)
    require_permission(actor, Permission.EDIT_ALLOCATIONS)

    allocation = session.get(Allocation, allocation_id)
    if allocation is None:
        raise NotFoundError(f"Allocation {allocation_id} not found")
    previous_target = allocation.target_quota

    session.query(Allocation).filter(
        Allocation.allocation_id == allocation_id
    ).update({Allocation.target_quota: new_target_quota}, synchronize_session=False)
    session.flush()
    session.refresh(allocation)

    warnings = over_allocation_warnings(session, allocation.task_pool)
    if allocation.is_over_delivered:
        warnings.append(QuotaWarning(
            OVER_DELIVERED,
            f"Allocation {allocation_id} has already processed {allocation.processed}, "
            f"above the new target {new_target_quota}",
        ))

    logger.info(f"Allocation {allocation_id} target {previous_target} -> {new_target_quota}")

    return AllocationResult(
        allocation=allocation,
        progress=allocation.progress(calculator),
        warnings=warnings,
        previous_target=previous_target,
    )
