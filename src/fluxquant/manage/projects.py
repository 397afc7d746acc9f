"""
Project hierarchy and user management functions.

Administrative operations for the entity tree the engine works on: users,
projects, stages and task pools. Entities with history are deactivated,
not deleted.

NOTE: These functions do NOT commit the session. The caller is responsible
for calling session.commit() or using quota_transaction.
"""

import logging
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from fluxquant.accounting.allocations import Allocation
from fluxquant.core.users import User, UserRole
from fluxquant.exceptions import (
    ConflictError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from fluxquant.manage.validation import check_text_length, require_non_negative_int
from fluxquant.pools.task_pools import QuotaAdjustment, TaskPool
from fluxquant.projects.projects import Project, Stage
from fluxquant.security.roles import Permission, Principal, require_permission


logger = logging.getLogger(__name__)

__all__ = [
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

INITIAL_QUOTA_REASON = 'initial quota'


def _require_name(field: str, value, max_length: int = 200) -> str:
    if not isinstance(value, str) or not value.strip():
        raise InvalidArgumentError(f"{field} is required", field=field)
    return check_text_length(field, value.strip(), max_length)


def create_user(
    session: Session,
    username: str,
    display_name: Optional[str] = None,
    role: UserRole = UserRole.EMPLOYEE,
    actor: Optional[Principal] = None,
) -> User:
    """
    Register a user that allocations can be bound to.

    Raises:
        InvalidArgumentError: empty username or unknown role
        ConflictError: username already taken
    """
    require_permission(actor, Permission.MANAGE_USERS)
    username = _require_name('username', username, max_length=50)
    try:
        role = UserRole(role)
    except ValueError:
        raise InvalidArgumentError(f"Unknown role {role!r}", field='role') from None

    if User.get_by_username(session, username) is not None:
        raise ConflictError(f"Username '{username}' already exists")

    user = User(username=username, display_name=display_name, role=role, active=True)
    session.add(user)
    session.flush()

    logger.info(f"Created user {user.user_id} ({username}, {role.value})")
    return user


def set_user_active(session: Session, user_id: int, active: bool,
                    actor: Optional[Principal] = None) -> User:
    require_permission(actor, Permission.MANAGE_USERS)
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    user.active = bool(active)
    session.flush()
    logger.info(f"User {user.username} {'activated' if active else 'deactivated'}")
    return user


def create_project(
    session: Session,
    code: str,
    name: str,
    description: Optional[str] = None,
    actor: Optional[Principal] = None,
) -> Project:
    """
    Create a project.

    Raises:
        InvalidArgumentError: empty code or name
        ConflictError: project code already exists
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    code = _require_name('code', code, max_length=50)
    name = _require_name('name', name)

    if Project.get_by_code(session, code) is not None:
        raise ConflictError(f"Project code '{code}' already exists")

    project = Project(code=code, name=name, description=description, active=True)
    session.add(project)
    session.flush()

    logger.info(f"Created project {project.project_id} ({code})")
    return project


def set_project_active(session: Session, project_id: int, active: bool,
                       actor: Optional[Principal] = None) -> Project:
    require_permission(actor, Permission.MANAGE_PROJECTS)
    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    project.active = bool(active)
    session.flush()
    logger.info(f"Project {project.code} {'activated' if active else 'deactivated'}")
    return project


def create_stage(
    session: Session,
    project_id: int,
    name: str,
    order: Optional[int] = None,
    description: Optional[str] = None,
    actor: Optional[Principal] = None,
) -> Stage:
    """
    Add a stage to a project.

    Args:
        order: Display position; appended after the last stage when omitted

    Raises:
        NotFoundError: project does not exist
        ConflictError: another stage already uses this order
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    name = _require_name('name', name)

    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    if order is None:
        last = session.query(func.max(Stage.order)).filter(Stage.project_id == project_id).scalar()
        order = (last or 0) + 1
    order = require_non_negative_int('order', order)

    clash = session.query(Stage).filter(Stage.project_id == project_id,
                                        Stage.order == order).first()
    if clash is not None:
        raise ConflictError(f"Project {project.code} already has stage '{clash.name}' at order {order}")

    stage = Stage(project_id=project_id, name=name, order=order,
                  description=description, active=True)
    session.add(stage)
    session.flush()

    logger.info(f"Created stage {stage.stage_id} '{name}' in project {project.code}")
    return stage


def create_task_pool(
    session: Session,
    stage_id: int,
    name: str,
    total_quota: int = 0,
    description: Optional[str] = None,
    actor: Optional[Principal] = None,
) -> TaskPool:
    """
    Add a task pool to a stage.

    A positive initial quota is recorded as a QuotaAdjustment (0 -> quota) so
    that every quota value has a matching audit row.

    Raises:
        InvalidArgumentError: empty name or bad quota
        NotFoundError: stage does not exist
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    name = _require_name('name', name)
    total_quota = require_non_negative_int('total_quota', total_quota)

    stage = session.get(Stage, stage_id)
    if stage is None:
        raise NotFoundError(f"Stage {stage_id} not found")

    pool = TaskPool(stage_id=stage_id, name=name, description=description,
                    total_quota=total_quota, total_valid=0, total_excluded=0, active=True)
    session.add(pool)
    session.flush()

    if total_quota > 0:
        session.add(QuotaAdjustment(
            task_pool_id=pool.task_pool_id,
            previous_quota=0,
            new_quota=total_quota,
            reason=INITIAL_QUOTA_REASON,
            actor_id=actor.user_id if actor else None,
            actor_name=(actor.username or str(actor)) if actor else 'system',
        ))
        session.flush()

    logger.info(f"Created task pool {pool.task_pool_id} '{name}' (quota {total_quota})")
    return pool


def set_task_pool_active(session: Session, task_pool_id: int, active: bool,
                         actor: Optional[Principal] = None) -> TaskPool:
    require_permission(actor, Permission.MANAGE_PROJECTS)
    pool = session.get(TaskPool, task_pool_id)
    if pool is None:
        raise NotFoundError(f"Task pool {task_pool_id} not found")

    pool.active = bool(active)
    session.flush()
    logger.info(f"Task pool {task_pool_id} {'activated' if active else 'deactivated'}")
    return pool


def delete_task_pool(session: Session, task_pool_id: int,
                     actor: Optional[Principal] = None) -> None:
    """
    Hard-delete a pool with no history.

    Raises:
        NotFoundError: pool does not exist
        InvalidStateError: pool has allocations or quota adjustments
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    pool = session.get(TaskPool, task_pool_id)
    if pool is None:
        raise NotFoundError(f"Task pool {task_pool_id} not found")

    allocations = session.query(func.count(Allocation.allocation_id)).filter(
        Allocation.task_pool_id == task_pool_id).scalar()
    adjustments = session.query(func.count(QuotaAdjustment.quota_adjustment_id)).filter(
        QuotaAdjustment.task_pool_id == task_pool_id).scalar()
    if allocations or adjustments:
        raise InvalidStateError(
            f"Task pool {task_pool_id} has {allocations} allocation(s) and "
            f"{adjustments} quota adjustment(s); deactivate it instead"
        )

    session.delete(pool)
    session.flush()
    logger.info(f"Deleted task pool {task_pool_id}")


# ============================================================================
# Edits
# ============================================================================

def _optional_description(value: Optional[str]) -> Optional[str]:
    """'' clears a description; None means unchanged (handled by callers)."""
    value = check_text_length('description', value, 1000)
    return value.strip() or None


def update_user(
    session: Session,
    user_id: int,
    display_name: Optional[str] = None,
    role: Optional[UserRole] = None,
    actor: Optional[Principal] = None,
) -> User:
    """
    Change a user's display name or role. Arguments left as None are unchanged.

    Raises:
        NotFoundError: user does not exist
        InvalidArgumentError: unknown role
    """
    require_permission(actor, Permission.MANAGE_USERS)
    user = session.get(User, user_id)
    if user is None:
        raise NotFoundError(f"User {user_id} not found")

    if display_name is not None:
        display_name = check_text_length('display_name', display_name, 100)
        user.display_name = display_name.strip() or None
    if role is not None:
        try:
            user.role = UserRole(role)
        except ValueError:
            raise InvalidArgumentError(f"Unknown role {role!r}", field='role') from None

    session.flush()
    logger.info(f"Updated user {user.username}")
    return user


def update_project(
    session: Session,
    project_id: int,
    name: Optional[str] = None,
    code: Optional[str] = None,
    description: Optional[str] = None,
    actor: Optional[Principal] = None,
) -> Project:
    """
    Rename a project or change its code/description.

    Raises:
        NotFoundError: project does not exist
        InvalidArgumentError: blank name or code
        ConflictError: code already used by another project
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    if code is not None:
        code = _require_name('code', code, max_length=50)
        other = Project.get_by_code(session, code)
        if other is not None and other.project_id != project_id:
            raise ConflictError(f"Project code '{code}' already exists")
        project.code = code
    if name is not None:
        project.name = _require_name('name', name)
    if description is not None:
        project.description = _optional_description(description)

    session.flush()
    logger.info(f"Updated project {project_id} ({project.code})")
    return project


def update_stage(
    session: Session,
    stage_id: int,
    name: Optional[str] = None,
    order: Optional[int] = None,
    description: Optional[str] = None,
    actor: Optional[Principal] = None,
) -> Stage:
    """
    Rename or reorder a stage.

    Raises:
        NotFoundError: stage does not exist
        InvalidArgumentError: blank name or bad order
        ConflictError: another stage of the project already uses this order
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    stage = session.get(Stage, stage_id)
    if stage is None:
        raise NotFoundError(f"Stage {stage_id} not found")

    if order is not None:
        order = require_non_negative_int('order', order)
        clash = session.query(Stage).filter(Stage.project_id == stage.project_id,
                                            Stage.order == order,
                                            Stage.stage_id != stage_id).first()
        if clash is not None:
            raise ConflictError(f"Stage '{clash.name}' already uses order {order}")
        stage.order = order
    if name is not None:
        stage.name = _require_name('name', name)
    if description is not None:
        stage.description = _optional_description(description)

    session.flush()
    logger.info(f"Updated stage {stage_id} '{stage.name}' (order {stage.order})")
    return stage


def update_task_pool(
    session: Session,
    task_pool_id: int,
    name: Optional[str] = None,
    description: Optional[str] = None,
    actor: Optional[Principal] = None,
) -> TaskPool:
    """
    Rename a task pool or change its description.

    The quota is not editable here; it only changes through
    adjust_pool_quota so that every value has an adjustment record.

    Raises:
        NotFoundError: pool does not exist
        InvalidArgumentError: blank name
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    pool = session.get(TaskPool, task_pool_id)
    if pool is None:
        raise NotFoundError(f"Task pool {task_pool_id} not found")

    if name is not None:
        pool.name = _require_name('name', name)
    if description is not None:
        pool.description = _optional_description(description)

    session.flush()
    logger.info(f"Updated task pool {task_pool_id} '{pool.name}'")
    return pool


# ============================================================================
# Deletes
# ============================================================================

def delete_stage(session: Session, stage_id: int,
                 actor: Optional[Principal] = None) -> None:
    """
    Hard-delete a stage that has no task pools.

    Raises:
        NotFoundError: stage does not exist
        InvalidStateError: stage still has task pools
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    stage = session.get(Stage, stage_id)
    if stage is None:
        raise NotFoundError(f"Stage {stage_id} not found")

    pools = session.query(func.count(TaskPool.task_pool_id)).filter(
        TaskPool.stage_id == stage_id).scalar()
    if pools:
        raise InvalidStateError(
            f"Stage {stage_id} has {pools} task pool(s); delete or deactivate them first"
        )

    session.delete(stage)
    session.flush()
    logger.info(f"Deleted stage {stage_id}")


def delete_project(session: Session, project_id: int,
                   actor: Optional[Principal] = None) -> None:
    """
    Hard-delete a project that has no stages.

    Raises:
        NotFoundError: project does not exist
        InvalidStateError: project still has stages
    """
    require_permission(actor, Permission.MANAGE_PROJECTS)
    project = session.get(Project, project_id)
    if project is None:
        raise NotFoundError(f"Project {project_id} not found")

    stages = session.query(func.count(Stage.stage_id)).filter(
        Stage.project_id == project_id).scalar()
    if stages:
        raise InvalidStateError(
            f"Project {project.code} has {stages} stage(s); deactivate it instead"
        )

    session.delete(project)
    session.flush()
    logger.info(f"Deleted project {project_id} ({project.code})")
