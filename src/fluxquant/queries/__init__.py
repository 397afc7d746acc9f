"""
Quota engine query helpers

Read-only query functions organized by domain. All functions are
re-exported from submodules.

Usage:
    from fluxquant.queries import get_matrix_view, get_my_allocations

Or use direct imports for explicit dependencies:
    from fluxquant.queries.matrix import get_matrix_view

Modules:
    lookups: Simple find/get operations for users, projects, pools, allocations
    matrix: Project matrix view and project list
    allocations: Per-user allocation lists and allocation report history
    dashboard: Dashboard data aggregation
    audit: Quota history and counter consistency checks
"""

# Lookups
from .lookups import (
    find_user_by_username,
    find_project_by_code,
    get_active_users,
    get_task_pool,
    get_allocation,
)

# Matrix
from .matrix import (
    get_matrix_view,
    get_project_list,
)

# Allocations
from .allocations import (
    get_my_allocations,
    get_allocation_history,
)

# Dashboard
from .dashboard import (
    get_dashboard_stats,
)

# Audit
from .audit import (
    get_quota_history,
    check_pool_consistency,
)

__all__ = [
    'find_user_by_username',
    'find_project_by_code',
    'get_active_users',
    'get_task_pool',
    'get_allocation',
    'get_matrix_view',
    'get_project_list',
    'get_my_allocations',
    'get_allocation_history',
    'get_dashboard_stats',
    'get_quota_history',
    'check_pool_consistency',
]
