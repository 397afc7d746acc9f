"""
Simple lookup query functions for the quota engine.

Functions:
    find_user_by_username: Find a user by username
    find_project_by_code: Find a project by its code
    get_active_users: All active users
    get_task_pool: Task pool by id, raising NotFoundError
    get_allocation: Allocation by id, raising NotFoundError
"""

from typing import List, Optional

from sqlalchemy.orm import Session

from fluxquant.accounting.allocations import Allocation
from fluxquant.core.users import User
from fluxquant.exceptions import NotFoundError
from fluxquant.pools.task_pools import TaskPool
from fluxquant.projects.projects import Project


# ============================================================================
# User Queries
# ============================================================================

def find_user_by_username(session: Session, username: str) -> Optional[User]:
    """
    Find a user by exact username match.

    Returns:
        User object if found, None otherwise
    """
    return User.get_by_username(session, username)


def get_active_users(session: Session) -> List[User]:
    return User.get_active_users(session)


# ============================================================================
# Project Hierarchy Queries
# ============================================================================

def find_project_by_code(session: Session, code: str) -> Optional[Project]:
    """
    Find a project by its code.

    Returns:
        Project object if found, None otherwise
    """
    return Project.get_by_code(session, code)


def get_task_pool(session: Session, task_pool_id: int) -> TaskPool:
    pool = session.get(TaskPool, task_pool_id)
    if pool is None:
        raise NotFoundError(f"Task pool {task_pool_id} not found")
    return pool


def get_allocation(session: Session, allocation_id: int) -> Allocation:
    allocation = session.get(Allocation, allocation_id)
    if allocation is None:
        raise NotFoundError(f"Allocation {allocation_id} not found")
    return allocation
