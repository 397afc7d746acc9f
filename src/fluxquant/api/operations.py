"""
Typed operation facade for the quota engine.

One function per external operation. Each loads its request through a
marshmallow schema, runs the writer inside quota_transaction with the
principal recorded for the audit trail (queries run readonly), and
returns the response dict produced by the matching response schema.
Failures raise QuotaEngineError subclasses; handle() turns them into error
envelopes.

Usage:
    from fluxquant.api import handle

    response = handle('submit_report', session, {
        'allocation_id': 12, 'log_date': '2026-03-02', 'valid_qty': 40,
    }, actor)
    if response['ok']:
        print(response['data']['progress']['percent'])
    else:
        print(response['error']['code'])
"""

import logging
from typing import Any, Callable, Dict, Optional

from sqlalchemy.orm import Session

from fluxquant import manage, queries
from fluxquant.audit import acting_as
from fluxquant.exceptions import InvalidArgumentError, NotFoundError
from fluxquant.manage import quota_transaction
from fluxquant.schemas import (
    AdjustPoolQuotaRequestSchema,
    AllocationResultSchema,
    CreateAllocationRequestSchema,
    MatrixViewRequestSchema,
    MatrixViewSchema,
    MyAllocationSchema,
    MyAllocationsRequestSchema,
    QuotaAdjustmentResultSchema,
    ReportResultSchema,
    RevertReportRequestSchema,
    SubmitReportRequestSchema,
    ToggleAllocationRequestSchema,
    UpdateAllocationTargetRequestSchema,
)
from fluxquant.security.roles import Permission, Principal, has_permission, require_permission
from .helpers import error_response, load_request, require_actor, success_response


logger = logging.getLogger(__name__)


# ============================================================================
# Report Ingestion
# ============================================================================

def submit_report(session: Session, payload: Dict, actor: Principal) -> Dict:
    request = load_request(SubmitReportRequestSchema, payload)
    require_actor(actor)
    with acting_as(actor), quota_transaction(session):
        result = manage.submit_report(session, actor=actor, **request)
        return ReportResultSchema().dump(result)


def revert_report(session: Session, payload: Dict, actor: Principal) -> Dict:
    request = load_request(RevertReportRequestSchema, payload)
    require_actor(actor)
    with acting_as(actor), quota_transaction(session):
        result = manage.revert_report(session, request['report_log_id'], actor=actor)
        return ReportResultSchema().dump(result)


# ============================================================================
# Quota Adjustment
# ============================================================================

def adjust_pool_quota(session: Session, payload: Dict, actor: Principal) -> Dict:
    request = load_request(AdjustPoolQuotaRequestSchema, payload)
    require_actor(actor)
    with acting_as(actor), quota_transaction(session):
        result = manage.adjust_pool_quota(
            session, request['task_pool_id'], request['new_quota'], request['reason'], actor,
        )
        return QuotaAdjustmentResultSchema().dump(result)


def update_allocation_target(session: Session, payload: Dict, actor: Principal) -> Dict:
    request = load_request(UpdateAllocationTargetRequestSchema, payload)
    require_actor(actor)
    with acting_as(actor), quota_transaction(session):
        result = manage.update_allocation_target(
            session, request['allocation_id'], request['new_target_quota'], actor=actor,
        )
        return AllocationResultSchema().dump(result)


# ============================================================================
# Allocation Manager
# ============================================================================

def create_allocation(session: Session, payload: Dict, actor: Principal) -> Dict:
    request = load_request(CreateAllocationRequestSchema, payload)
    require_actor(actor)
    with acting_as(actor), quota_transaction(session):
        result = manage.create_allocation(session, actor=actor, **request)
        return AllocationResultSchema().dump(result)


def toggle_allocation(session: Session, payload: Dict, actor: Principal) -> Dict:
    request = load_request(ToggleAllocationRequestSchema, payload)
    require_actor(actor)
    with acting_as(actor), quota_transaction(session):
        result = manage.toggle_allocation(session, request['allocation_id'], actor=actor)
        return AllocationResultSchema().dump(result)


# ============================================================================
# Read Models
# ============================================================================

def get_matrix_view(session: Session, payload: Dict, actor: Principal) -> Dict:
    request = load_request(MatrixViewRequestSchema, payload)
    require_permission(require_actor(actor), Permission.VIEW_MATRIX)
    with quota_transaction(session, readonly=True):
        view = queries.get_matrix_view(session, request['project_id'],
                                       include_inactive=request['include_inactive'])
        return MatrixViewSchema().dump(view)


def get_my_allocations(session: Session, payload: Dict, actor: Principal) -> Dict:
    """
    List a user's active allocations.

    user_id defaults to the actor. Asking for another user's list needs
    VIEW_ALL_ALLOCATIONS; employees get NotFound so ids stay undisclosed.
    """
    request = load_request(MyAllocationsRequestSchema, payload)
    require_actor(actor)
    user_id = request['user_id'] if request['user_id'] is not None else actor.user_id
    if user_id is None:
        raise InvalidArgumentError("user_id is required for principals without a user")
    if user_id != actor.user_id and not has_permission(actor, Permission.VIEW_ALL_ALLOCATIONS):
        raise NotFoundError(f"User {user_id} not found")

    with quota_transaction(session, readonly=True):
        allocations = queries.get_my_allocations(session, user_id)
        return {
            'user_id': user_id,
            'allocations': MyAllocationSchema(many=True).dump(allocations),
        }


# ============================================================================
# Dispatch
# ============================================================================

OPERATIONS: Dict[str, Callable[[Session, Dict, Principal], Dict]] = {
    'submit_report': submit_report,
    'revert_report': revert_report,
    'adjust_pool_quota': adjust_pool_quota,
    'update_allocation_target': update_allocation_target,
    'create_allocation': create_allocation,
    'toggle_allocation': toggle_allocation,
    'get_matrix_view': get_matrix_view,
    'get_my_allocations': get_my_allocations,
}


def handle(name: str, session: Session, payload: Optional[Dict[str, Any]],
           actor: Optional[Principal]) -> Dict[str, Any]:
    """
    Run an operation by name and wrap the outcome in an envelope.

    Returns:
        {'ok': True, 'data': {...}} on success,
        {'ok': False, 'error': {'code', 'message', 'retryable'}} on failure
    """
    operation = OPERATIONS.get(name)
    try:
        if operation is None:
            raise InvalidArgumentError(f"Unknown operation '{name}'")
        return success_response(operation(session, payload if payload is not None else {}, actor))
    except Exception as e:
        if session.in_transaction():
            session.rollback()
        logger.debug(f"Operation {name} failed: {e}")
        return error_response(e)
