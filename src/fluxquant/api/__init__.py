"""
Typed request/response facade over the quota engine.

Usage:
    from fluxquant.api import handle, submit_report

    data = submit_report(session, payload, actor)       # raises on failure
    envelope = handle('submit_report', session, payload, actor)
"""

from .helpers import call_with_retry, error_response, load_request, success_response
from .operations import (
    OPERATIONS,
    adjust_pool_quota,
    create_allocation,
    get_matrix_view,
    get_my_allocations,
    handle,
    revert_report,
    submit_report,
    toggle_allocation,
    update_allocation_target,
)

__all__ = [
    'OPERATIONS',
    'handle',
    'submit_report',
    'revert_report',
    'adjust_pool_quota',
    'update_allocation_target',
    'create_allocation',
    'toggle_allocation',
    'get_matrix_view',
    'get_my_allocations',
    'load_request',
    'error_response',
    'success_response',
    'call_with_retry',
]
