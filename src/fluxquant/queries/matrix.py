"""
Matrix view and project list queries.

The matrix is the manager's grid: Project -> Stages -> TaskPools ->
Allocations, with progress and anomaly flags computed at read time from
the stored counters. Nothing here writes; run these outside
quota_transaction (or with readonly=True) so the read never takes the
write lock.

Functions:
    get_matrix_view: Nested snapshot of one project
    get_project_list: Active projects with counts and overall progress
"""

from typing import Dict, List, Optional

from sqlalchemy.orm import Session, joinedload, selectinload

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.anomalies import AnomalyDetector
from fluxquant.accounting.calculator import ProgressCalculator
from fluxquant.config import get_config
from fluxquant.exceptions import NotFoundError
from fluxquant.pools.task_pools import TaskPool
from fluxquant.projects.projects import Project, Stage


# ============================================================================
# Row Builders
# ============================================================================

def _allocation_row(allocation: Allocation, calculator: ProgressCalculator,
                    detector: AnomalyDetector) -> Dict:
    user = allocation.user
    return {
        'allocation_id': allocation.allocation_id,
        'user_id': allocation.user_id,
        'username': user.username,
        'display_name': user.name,
        'target_quota': allocation.target_quota,
        'current_valid': allocation.current_valid,
        'current_excluded': allocation.current_excluded,
        'active': allocation.active,
        'progress': allocation.progress(calculator).as_dict(),
        'anomaly': detector.for_allocation(allocation).as_dict(),
    }


def _pool_row(pool: TaskPool, calculator: ProgressCalculator, detector: AnomalyDetector,
              include_inactive: bool) -> Dict:
    allocations = pool.allocations if include_inactive else pool.active_allocations
    return {
        'task_pool_id': pool.task_pool_id,
        'name': pool.name,
        'active': pool.active,
        'total_quota': pool.total_quota,
        'assigned_total': pool.assigned_total,
        'unassigned': pool.unassigned,
        'is_over_allocated': pool.is_over_allocated,
        'total_valid': pool.total_valid,
        'total_excluded': pool.total_excluded,
        'progress': pool.progress(calculator).as_dict(),
        'anomaly': detector.for_pool(pool).as_dict(),
        'allocations': [_allocation_row(a, calculator, detector) for a in allocations],
    }


def _resolve_policies(calculator, detector):
    config = get_config()
    return (calculator or config.build_calculator(),
            detector or config.build_detector())


# ============================================================================
# Matrix Queries
# ============================================================================

def get_matrix_view(
    session: Session,
    project_id: int,
    calculator: Optional[ProgressCalculator] = None,
    detector: Optional[AnomalyDetector] = None,
    include_inactive: bool = False,
) -> Dict:
    """
    Build the nested progress matrix for a project.

    Args:
        session: SQLAlchemy session
        project_id: Project to render
        calculator: Progress policy (defaults to the configured one)
        detector: Anomaly policy (defaults to the configured one)
        include_inactive: Also list disabled stages, pools and allocations

    Returns:
        Dictionary with structure:
        {
            'project': {project_id, code, name, description, active},
            'stages': [
                {stage_id, name, order, active,
                 'task_pools': [
                     {task_pool_id, name, total_quota, assigned_total, unassigned,
                      is_over_allocated, total_valid, total_excluded,
                      progress, anomaly, 'allocations': [...]}
                 ]}
            ],
            'users': [{user_id, username, display_name}],  # matrix columns
            'totals': {total_quota, total_valid, total_excluded, progress}
        }

    Raises:
        NotFoundError: project does not exist
    """
    calculator, detector = _resolve_policies(calculator, detector)

    project = session.query(Project)\
        .options(
            selectinload(Project.stages)
            .selectinload(Stage.task_pools)
            .selectinload(TaskPool.allocations)
            .options(joinedload(Allocation.user), selectinload(Allocation.reports))
        )\
        .filter(Project.project_id == project_id)\
        .first()

    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    stages = []
    users = {}
    total_quota = total_valid = total_excluded = 0

    for stage in project.stages:
        if not (stage.active or include_inactive):
            continue
        pools = []
        for pool in stage.task_pools:
            if not (pool.active or include_inactive):
                continue
            row = _pool_row(pool, calculator, detector, include_inactive)
            pools.append(row)

            total_quota += pool.total_quota
            total_valid += pool.total_valid
            total_excluded += pool.total_excluded
            for alloc in row['allocations']:
                users.setdefault(alloc['user_id'], {
                    'user_id': alloc['user_id'],
                    'username': alloc['username'],
                    'display_name': alloc['display_name'],
                })

        stages.append({
            'stage_id': stage.stage_id,
            'name': stage.name,
            'order': stage.order,
            'active': stage.active,
            'task_pools': pools,
        })

    return {
        'project': {
            'project_id': project.project_id,
            'code': project.code,
            'name': project.name,
            'description': project.description,
            'active': project.active,
        },
        'stages': stages,
        'users': sorted(users.values(), key=lambda u: u['username']),
        'totals': {
            'total_quota': total_quota,
            'total_valid': total_valid,
            'total_excluded': total_excluded,
            'progress': calculator.evaluate(total_valid, total_excluded, total_quota).as_dict(),
        },
    }


def get_project_list(
    session: Session,
    calculator: Optional[ProgressCalculator] = None,
    include_inactive: bool = False,
) -> List[Dict]:
    """
    List projects with stage/pool counts and overall progress.

    Returns:
        List of dicts with keys: project_id, code, name, active, stage_count,
        pool_count, total_quota, total_valid, total_excluded, progress
    """
    calculator = calculator or get_config().build_calculator()

    query = session.query(Project)\
        .options(selectinload(Project.stages).selectinload(Stage.task_pools))
    if not include_inactive:
        query = query.filter(Project.active == True)

    results = []
    for project in query.order_by(Project.code).all():
        stages = [s for s in project.stages if s.active or include_inactive]
        pools = [p for s in stages for p in s.task_pools if p.active or include_inactive]

        total_quota = sum(p.total_quota for p in pools)
        total_valid = sum(p.total_valid for p in pools)
        total_excluded = sum(p.total_excluded for p in pools)

        results.append({
            'project_id': project.project_id,
            'code': project.code,
            'name': project.name,
            'active': project.active,
            'stage_count': len(stages),
            'pool_count': len(pools),
            'total_quota': total_quota,
            'total_valid': total_valid,
            'total_excluded': total_excluded,
            'progress': calculator.evaluate(total_valid, total_excluded, total_quota).as_dict(),
        })

    return results
