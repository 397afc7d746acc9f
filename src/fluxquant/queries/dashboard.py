"""
Dashboard data aggregation queries.

Functions:
    get_dashboard_stats: Headline counts, today's reporting, overall progress,
        anomaly counts, recent activity, daily trend and anomaly hotspots
"""

from datetime import date, timedelta
from typing import Dict, List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload, selectinload

from fluxquant.accounting.allocations import Allocation
from fluxquant.accounting.anomalies import AnomalyDetector, STATUS_ANOMALOUS
from fluxquant.accounting.calculator import ProgressCalculator
from fluxquant.accounting.reports import ReportLog
from fluxquant.config import get_config
from fluxquant.core.users import User
from fluxquant.pools.task_pools import TaskPool
from fluxquant.projects.projects import Project, Stage


# ============================================================================
# Dashboard Query Helpers
# ============================================================================

def _daily_trend(session: Session, today: date, days: int) -> List[Dict]:
    """Per-day valid/excluded totals of active reports, oldest first, gaps as zero."""
    start = today - timedelta(days=days - 1)
    rows = session.query(
        ReportLog.log_date,
        func.count(ReportLog.report_log_id).label('reports'),
        func.coalesce(func.sum(ReportLog.valid_qty), 0).label('valid'),
        func.coalesce(func.sum(ReportLog.excluded_qty), 0).label('excluded'),
    )\
        .filter(ReportLog.is_active, ReportLog.log_date >= start, ReportLog.log_date <= today)\
        .group_by(ReportLog.log_date)\
        .all()

    by_date = {r.log_date: r for r in rows}
    trend = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        row = by_date.get(day)
        trend.append({
            'date': day,
            'reports': int(row.reports) if row else 0,
            'valid': int(row.valid) if row else 0,
            'excluded': int(row.excluded) if row else 0,
        })
    return trend


def _recent_activity(session: Session, limit: int) -> List[Dict]:
    logs = session.query(ReportLog)\
        .options(
            joinedload(ReportLog.allocation).joinedload(Allocation.user),
            joinedload(ReportLog.allocation).joinedload(Allocation.task_pool),
        )\
        .order_by(ReportLog.creation_time.desc(), ReportLog.report_log_id.desc())\
        .limit(limit)\
        .all()

    return [
        {
            'report_log_id': log.report_log_id,
            'allocation_id': log.allocation_id,
            'username': log.allocation.user.username,
            'task_pool_name': log.allocation.task_pool.name,
            'log_date': log.log_date,
            'valid_qty': log.valid_qty,
            'excluded_qty': log.excluded_qty,
            'status': log.status,
            'creation_time': log.creation_time,
        }
        for log in logs
    ]


# ============================================================================
# Dashboard Queries
# ============================================================================

def get_dashboard_stats(
    session: Session,
    calculator: Optional[ProgressCalculator] = None,
    detector: Optional[AnomalyDetector] = None,
    today: Optional[date] = None,
    days: int = 7,
    recent_limit: int = 10,
    hotspot_limit: int = 5,
) -> Dict:
    """
    Aggregate the operations dashboard in one pass over active pools.

    Args:
        session: SQLAlchemy session
        calculator: Progress policy (defaults to the configured one)
        detector: Anomaly policy (defaults to the configured one)
        today: Reference date for "today" and the trend window
        days: Length of the daily trend window
        recent_limit: Number of recent report logs to include
        hotspot_limit: Number of anomalous pools to include

    Returns:
        Dictionary with keys: active_projects, task_pools, active_users,
        today {reports, valid, excluded}, progress, anomalous_pools,
        anomalous_allocations, recent_activity, daily_trend, hotspots
    """
    config = get_config()
    calculator = calculator or config.build_calculator()
    detector = detector or config.build_detector()
    today = today or date.today()

    active_projects = session.query(func.count(Project.project_id))\
        .filter(Project.active == True).scalar()
    active_users = session.query(func.count(User.user_id))\
        .filter(User.active == True).scalar()

    pools = session.query(TaskPool)\
        .join(TaskPool.stage)\
        .join(Stage.project)\
        .options(
            joinedload(TaskPool.stage).joinedload(Stage.project),
            selectinload(TaskPool.allocations).selectinload(Allocation.reports),
        )\
        .filter(TaskPool.active == True, Stage.active == True, Project.active == True)\
        .order_by(TaskPool.task_pool_id)\
        .all()

    total_quota = total_valid = total_excluded = 0
    anomalous_pools = 0
    anomalous_allocations = 0
    hotspots = []

    for pool in pools:
        total_quota += pool.total_quota
        total_valid += pool.total_valid
        total_excluded += pool.total_excluded

        report = detector.for_pool(pool)
        if report.status == STATUS_ANOMALOUS:
            anomalous_pools += 1
            hotspots.append({
                'task_pool_id': pool.task_pool_id,
                'name': pool.name,
                'project_code': pool.stage.project.code,
                'exclusion_rate': report.exclusion_rate,
                'is_overrun': report.is_overrun,
                'top_reason': report.top_reason,
            })

        for allocation in pool.active_allocations:
            if detector.for_allocation(allocation).status == STATUS_ANOMALOUS:
                anomalous_allocations += 1

    hotspots.sort(key=lambda h: (h['exclusion_rate'], h['task_pool_id']), reverse=True)

    today_row = session.query(
        func.count(ReportLog.report_log_id),
        func.coalesce(func.sum(ReportLog.valid_qty), 0),
        func.coalesce(func.sum(ReportLog.excluded_qty), 0),
    ).filter(ReportLog.is_active, ReportLog.log_date == today).one()

    return {
        'active_projects': int(active_projects),
        'task_pools': len(pools),
        'active_users': int(active_users),
        'today': {
            'date': today,
            'reports': int(today_row[0]),
            'valid': int(today_row[1]),
            'excluded': int(today_row[2]),
        },
        'progress': calculator.evaluate(total_valid, total_excluded, total_quota).as_dict(),
        'anomalous_pools': anomalous_pools,
        'anomalous_allocations': anomalous_allocations,
        'recent_activity': _recent_activity(session, recent_limit),
        'daily_trend': _daily_trend(session, today, days),
        'hotspots': hotspots[:hotspot_limit],
    }
