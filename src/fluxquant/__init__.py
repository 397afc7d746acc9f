"""
FluxQuant quota engine models package

Import order matters! Follow dependency chain:
1. Base classes (no dependencies)
2. Core models (users)
3. Projects and stages (no dependencies beyond base)
4. Task pools and quota adjustments (depend on stages and users)
5. Accounting (allocations and report logs, depend on pools and users)
"""

# 1. Base classes first
from .base import (
    ActiveFlagMixin,
    Base,
    StringEnum,
    TimestampMixin,
)

# 2. Core models
from .core.users import User, UserRole

# 3. Projects
from .projects.projects import Project, Stage

# 4. Task pools
from .pools.task_pools import QuotaAdjustment, TaskPool

# 5. Accounting
from .accounting.allocations import Allocation
from .accounting.reports import ExclusionReason, ReportLog, ReportStatus

# Policy objects (pure, no database access)
from .accounting.anomalies import AnomalyDetector, AnomalyReport
from .accounting.calculator import ProgressCalculator, ProgressSnapshot, progress

__version__ = '0.4.0'

__all__ = [
    # Base
    'Base',
    'TimestampMixin',
    'ActiveFlagMixin',
    'StringEnum',

    # Core
    'User',
    'UserRole',

    # Projects
    'Project',
    'Stage',

    # Pools
    'TaskPool',
    'QuotaAdjustment',

    # Accounting
    'Allocation',
    'ReportLog',
    'ReportStatus',
    'ExclusionReason',

    # Policy
    'ProgressCalculator',
    'ProgressSnapshot',
    'progress',
    'AnomalyDetector',
    'AnomalyReport',
]
