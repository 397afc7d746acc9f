"""
Quota engine write operations.

These are the functions that modify the database, as opposed to the
read-only query functions in fluxquant.queries. None of them commits;
wrap calls in quota_transaction:

    from fluxquant.manage import quota_transaction, submit_report

    with quota_transaction(session):
        submit_report(session, allocation_id, '2026-03-02', valid_qty=40)
"""

from .transaction import quota_transaction

from .results import (
    AllocationResult,
    QuotaAdjustmentResult,
    QuotaWarning,
    ReportResult,
)

from .reports import revert_report, submit_report

from .quotas import adjust_pool_quota, update_allocation_target

from .allocations import (
    create_allocation,
    delete_allocation,
    get_assigned_total,
    get_over_allocation,
    toggle_allocation,
)

from .projects import (
    create_project,
    create_stage,
    create_task_pool,
    create_user,
    delete_project,
    delete_stage,
    delete_task_pool,
    set_project_active,
    set_task_pool_active,
    set_user_active,
    update_project,
    update_stage,
    update_task_pool,
    update_user,
)

__all__ = [
    'quota_transaction',
    'AllocationResult',
    'QuotaAdjustmentResult',
    'QuotaWarning',
    'ReportResult',
    'submit_report',
    'revert_report',
    'adjust_pool_quota',
    'update_allocation_target',
    'create_allocation',
    'toggle_allocation',
    'delete_allocation',
    'get_assigned_total',
    'get_over_allocation',
    'create_user',
    'set_user_active',
    'create_project',
    'set_project_active',
    'create_stage',
    'create_task_pool',
    'set_task_pool_active',
    'delete_task_pool',
    'update_user',
    'update_project',
    'update_stage',
    'update_task_pool',
    'delete_stage',
    'delete_project',
]
