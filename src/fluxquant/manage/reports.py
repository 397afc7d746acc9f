"""
Report ingestion: production report submission and revert.

Reports are deltas. Each one is appended as a ReportLog and its quantities
are added to the owning allocation's counters and to the task pool's
aggregate counters with SQL-side increments (``col = col + :delta``), so
concurrent reports never lose an update and the allocation and pool move
together inside one transaction.

NOTE: These functions do NOT commit the session. Wrap them in
fluxquant.manage.transaction.quota_transaction (or commit yourself).
"""

import logging
from datetime import date, datetime, timedelta
from typing import Optional, Union

from sqlalchemy.orm import Session

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.calculator import ProgressCalculator
from fluxquant.accounting.reports import ExclusionReason, ReportLog, ReportStatus
from fluxquant.config import EngineConfig, get_config
from fluxquant.exceptions import InvalidArgumentError, InvalidStateError, NotFoundError
from fluxquant.manage.results import OVER_DELIVERED, QuotaWarning, ReportResult
from fluxquant.manage.validation import (
    check_text_length,
    parse_exclusion_reason,
    parse_log_date,
    require_non_negative_int,
)
from fluxquant.pools.task_pools import TaskPool
from fluxquant.security.roles import Permission, Principal, require_permission


logger = logging.getLogger(__name__)

__all__ = [
    'submit_report',
    'revert_report',
]


def _get_owned_allocation(session: Session, allocation_id: int,
                          actor: Optional[Principal]) -> Allocation:
    """
    Load an allocation the actor may report against.

    Employees only see their own allocations; anything else is reported as
    not found so allocation ids of other users are not disclosed.
    """
    allocation = session.get(Allocation, allocation_id)
    if allocation is None:
        raise NotFoundError(f"Allocation {allocation_id} not found")
    if actor is not None and not actor.is_privileged and allocation.user_id != actor.user_id:
        raise NotFoundError(f"Allocation {allocation_id} not found")
    return allocation


def _apply_deltas(session: Session, allocation: Allocation, valid: int, excluded: int,
                  require_active: bool) -> int:
    """Increment allocation and pool counters in SQL; returns allocation rows matched."""
    query = session.query(Allocation).filter(Allocation.allocation_id == allocation.allocation_id)
    if require_active:
        query = query.filter(Allocation.active == True)

    rows = query.update(
        {
            Allocation.current_valid: Allocation.current_valid + valid,
            Allocation.current_excluded: Allocation.current_excluded + excluded,
        },
        synchronize_session=False,
    )
    if rows == 0:
        return rows

    session.query(TaskPool).filter(
        TaskPool.task_pool_id == allocation.task_pool_id
    ).update(
        {
            TaskPool.total_valid: TaskPool.total_valid + valid,
            TaskPool.total_excluded: TaskPool.total_excluded + excluded,
        },
        synchronize_session=False,
    )
    return rows


def _delivery_warnings(allocation: Allocation):
    if allocation.is_over_delivered:
        return [QuotaWarning(
            OVER_DELIVERED,
            f"Allocation {allocation.allocation_id} has processed {allocation.processed} "
            f"of a {allocation.target_quota} target",
        )]
    return []


def submit_report(
    session: Session,
    allocation_id: int,
    log_date: Union[date, str],
    valid_qty: int,
    excluded_qty: int = 0,
    exclusion_reason: Optional[Union[ExclusionReason, str]] = None,
    comment: Optional[str] = None,
    is_backfill: bool = False,
    actor: Optional[Principal] = None,
    calculator: Optional[ProgressCalculator] = None,
    config: Optional[EngineConfig] = None,
) -> ReportResult:
    """
    Submit one production report against an allocation.

    NOTE: This function does NOT commit the session.

    Args:
        session: SQLAlchemy session
        allocation_id: Allocation being reported against
        log_date: Calendar date the work was done (date or 'YYYY-MM-DD')
        valid_qty: Units counted toward progress
        excluded_qty: Units removed from the progress denominator
        exclusion_reason: Required when excluded_qty > 0
        comment: Optional free text (bounded length)
        is_backfill: Report entered after the fact
        actor: Acting principal (None = trusted internal caller)
        calculator: Progress policy (defaults to the configured one)
        config: Engine configuration (defaults to get_config())

    Returns:
        ReportResult with the new log, updated allocation and its progress

    Raises:
        InvalidArgumentError: bad quantities, date, reason or comment
        NotFoundError: allocation does not exist (or is not the employee's own)
        InvalidStateError: allocation or its task pool is disabled
        ForbiddenError: actor may not submit reports

    Example:
        with quota_transaction(session):
            result = submit_report(session, 12, '2026-03-02', valid_qty=40,
                                   excluded_qty=3, exclusion_reason='illegible')
    """
    config = config or get_config()
    calculator = calculator or config.build_calculator()

    # Validate everything before touching the database
    valid_qty = require_non_negative_int('valid_qty', valid_qty)
    excluded_qty = require_non_negative_int('excluded_qty', excluded_qty)
    if valid_qty == 0 and excluded_qty == 0:
        raise InvalidArgumentError("valid_qty and excluded_qty cannot both be zero")

    log_date = parse_log_date(log_date)
    reason = parse_exclusion_reason(exclusion_reason)
    if excluded_qty > 0 and reason is None:
        raise InvalidArgumentError("exclusion_reason is required when excluded_qty > 0",
                                   field='exclusion_reason')
    if excluded_qty == 0 and reason is not None:
        raise InvalidArgumentError("exclusion_reason given but excluded_qty is 0",
                                   field='exclusion_reason')
    comment = check_text_length('comment', comment, config.max_comment_length)

    require_permission(actor, Permission.SUBMIT_REPORTS)
    allocation = _get_owned_allocation(session, allocation_id, actor)

    if not allocation.active:
        raise InvalidStateError(f"Allocation {allocation_id} is disabled")
    if not allocation.task_pool.active:
        raise InvalidStateError(f"Task pool {allocation.task_pool_id} is disabled")

    # Guarded on active so a concurrent disable cannot slip a report through
    if _apply_deltas(session, allocation, valid_qty, excluded_qty, require_active=True) == 0:
        raise InvalidStateError(f"Allocation {allocation_id} is disabled")

    log = ReportLog(
        allocation_id=allocation.allocation_id,
        log_date=log_date,
        valid_qty=valid_qty,
        excluded_qty=excluded_qty,
        exclusion_reason=reason,
        comment=comment,
        is_backfill=bool(is_backfill),
        status=ReportStatus.ACTIVE,
        reported_by_id=actor.user_id if actor else None,
    )
    session.add(log)
    session.flush()

    session.refresh(allocation)
    session.refresh(allocation.task_pool)

    logger.info(f"Report {log.report_log_id} on allocation {allocation_id}: "
                f"+{valid_qty} valid, +{excluded_qty} excluded "
                f"(now {allocation.current_valid}/{allocation.current_excluded})")

    return ReportResult(
        report_log=log,
        allocation=allocation,
        progress=allocation.progress(calculator),
        warnings=_delivery_warnings(allocation),
    )


def revert_report(
    session: Session,
    report_log_id: int,
    actor: Optional[Principal] = None,
    now: Optional[datetime] = None,
    calculator: Optional[ProgressCalculator] = None,
    config: Optional[EngineConfig] = None,
) -> ReportResult:
    """
    Revert a report, applying the exact negative of its deltas.

    The log row stays in place with status 'reverted'. Reverting is allowed
    on a disabled allocation, since it only removes history.

    NOTE: This function does NOT commit the session.

    Args:
        session: SQLAlchemy session
        report_log_id: Log to revert
        actor: Acting principal (None = trusted internal caller)
        now: Current time, for the revert window (defaults to datetime.now())
        calculator: Progress policy (defaults to the configured one)
        config: Engine configuration (defaults to get_config())

    Returns:
        ReportResult with the reverted log and restored allocation counters

    Raises:
        NotFoundError: log does not exist (or belongs to another employee)
        InvalidStateError: log already reverted, or outside the revert window
        ForbiddenError: actor may not revert reports
    """
    config = config or get_config()
    calculator = calculator or config.build_calculator()
    now = now or datetime.now()

    require_permission(actor, Permission.REVERT_REPORTS)

    log = session.get(ReportLog, report_log_id)
    if log is None:
        raise NotFoundError(f"Report log {report_log_id} not found")
    allocation = _get_owned_allocation(session, log.allocation_id, actor)

    if log.status == ReportStatus.REVERTED:
        raise InvalidStateError(f"Report log {report_log_id} is already reverted")

    if config.revert_window_hours is not None:
        window = timedelta(hours=config.revert_window_hours)
        if now - log.creation_time > window:
            raise InvalidStateError(
                f"Report log {report_log_id} is older than the "
                f"{config.revert_window_hours:g}h revert window"
            )

    # Conditional flip; a concurrent revert of the same log matches no row
    rows = session.query(ReportLog).filter(
        ReportLog.report_log_id == report_log_id,
        ReportLog.status == ReportStatus.ACTIVE,
    ).update(
        {
            ReportLog.status: ReportStatus.REVERTED,
            ReportLog.reverted_at: now,
            ReportLog.reverted_by_id: actor.user_id if actor else None,
        },
        synchronize_session=False,
    )
    if rows == 0:
        raise InvalidStateError(f"Report log {report_log_id} is already reverted")

    _apply_deltas(session, allocation, -log.valid_qty, -log.excluded_qty, require_active=False)
    session.flush()

    session.refresh(log)
    session.refresh(allocation)
    session.refresh(allocation.task_pool)

    logger.info(f"Reverted report {report_log_id} on allocation {allocation.allocation_id}: "
                f"-{log.valid_qty} valid, -{log.excluded_qty} excluded")

    return ReportResult(
        report_log=log,
        allocation=allocation,
        progress=allocation.progress(calculator),
        warnings=_delivery_warnings(allocation),
    )
