"""
Unit tests for the hierarchy management functions (users, projects, stages,
task pools).
"""

import pytest

from fluxquant.core.users import User, UserRole
from fluxquant.exceptions import (
    ConflictError,
    ForbiddenError,
    InvalidArgumentError,
    InvalidStateError,
    NotFoundError,
)
from fluxquant.manage import (
    create_project,
    create_stage,
    create_task_pool,
    create_user,
    delete_project,
    delete_stage,
    delete_task_pool,
    quota_transaction,
    set_project_active,
    update_project,
    update_stage,
    update_task_pool,
    update_user,
)
from fluxquant.pools.task_pools import QuotaAdjustment, TaskPool
from fluxquant.projects.projects import Project, Stage


class TestUsers:

    def test_create_user(self, session):
        with quota_transaction(session):
            user = create_user(session, '  carol  ', 'Carol C', role='manager')

        stored = User.get_by_username(session, 'carol')
        assert stored.user_id == user.user_id
        assert stored.role == UserRole.MANAGER
        assert stored.name == 'Carol C'

    def test_display_name_falls_back_to_username(self, session):
        with quota_transaction(session):
            user = create_user(session, 'dave')
        assert user.name == 'dave'

    def test_duplicate_username(self, session, seed):
        with pytest.raises(ConflictError):
            create_user(session, 'alice')

    def test_unknown_role(self, session):
        with pytest.raises(InvalidArgumentError):
            create_user(session, 'eve', role='overlord')

    def test_blank_username(self, session):
        with pytest.raises(InvalidArgumentError):
            create_user(session, '   ')

    def test_manager_cannot_manage_users(self, session, seed, manager):
        with pytest.raises(ForbiddenError):
            create_user(session, 'frank', actor=manager)


class TestProjectsAndStages:

    def test_create_project(self, session, admin):
        with quota_transaction(session):
            project = create_project(session, 'OCR-7', 'Ledger OCR', actor=admin)
        assert Project.get_by_code(session, 'OCR-7').project_id == project.project_id

    def test_duplicate_project_code(self, session, seed):
        with pytest.raises(ConflictError):
            create_project(session, 'DIGI-01', 'Again')

    def test_stage_order_appends(self, session, seed):
        with quota_transaction(session):
            stage = create_stage(session, seed.project_id, 'Cleaning')
        assert stage.order == 2

        project = session.get(Project, seed.project_id)
        assert [s.name for s in project.stages] == ['Scanning', 'Cleaning']

    def test_stage_order_clash(self, session, seed):
        with pytest.raises(ConflictError):
            create_stage(session, seed.project_id, 'Duplicate', order=1)

    def test_stage_unknown_project(self, session):
        with pytest.raises(NotFoundError):
            create_stage(session, 9999, 'Nowhere')

    def test_deactivate_project(self, session, seed):
        with quota_transaction(session):
            set_project_active(session, seed.project_id, False)
        assert session.get(Project, seed.project_id).active is False

    def test_employee_cannot_manage_projects(self, session, seed, alice):
        with pytest.raises(ForbiddenError):
            create_project(session, 'X-1', 'Nope', actor=alice)


class TestTaskPools:

    def test_initial_quota_is_audited(self, session, seed):
        pool = session.get(TaskPool, seed.task_pool_id)
        assert pool.total_quota == 100
        assert len(pool.adjustments) == 1
        initial = pool.adjustments[0]
        assert (initial.previous_quota, initial.new_quota) == (0, 100)
        assert initial.reason == 'initial quota'
        assert initial.actor_name == 'system'

    def test_zero_quota_pool_has_no_adjustment(self, session, seed, manager):
        with quota_transaction(session):
            pool = create_task_pool(session, seed.stage_id, 'Batch B', actor=manager)
        assert pool.total_quota == 0
        assert pool.adjustments == []

    def test_unknown_stage(self, session):
        with pytest.raises(NotFoundError):
            create_task_pool(session, 9999, 'Orphan', total_quota=10)

    def test_negative_quota(self, session, seed):
        with pytest.raises(InvalidArgumentError):
            create_task_pool(session, seed.stage_id, 'Bad', total_quota=-10)

    def test_delete_empty_pool(self, session, seed):
        with quota_transaction(session):
            pool = create_task_pool(session, seed.stage_id, 'Scratch')
            pool_id = pool.task_pool_id
        with quota_transaction(session):
            delete_task_pool(session, pool_id)
        assert session.get(TaskPool, pool_id) is None

    def test_pool_with_history_cannot_be_deleted(self, session, seed):
        with pytest.raises(InvalidStateError):
            delete_task_pool(session, seed.task_pool_id)

    def test_stage_lists_pools(self, session, seed):
        stage = session.get(Stage, seed.stage_id)
        assert [p.name for p in stage.task_pools] == ['Batch A']
        assert session.query(QuotaAdjustment).count() == 1


class TestEdits:

    def test_update_user(self, session, seed, admin):
        with quota_transaction(session):
            update_user(session, seed.bob_id, display_name=' Bob Builder ', role='manager', actor=admin)

        bob = session.get(User, seed.bob_id)
        assert bob.name == 'Bob Builder'
        assert bob.role == UserRole.MANAGER

    def test_update_user_unknown_role(self, session, seed):
        with pytest.raises(InvalidArgumentError):
            update_user(session, seed.bob_id, role='overlord')

    def test_rename_project_and_code(self, session, seed):
        with quota_transaction(session):
            update_project(session, seed.project_id, name='Archive Scan', code='DIGI-02',
                           description='phase two')

        project = session.get(Project, seed.project_id)
        assert (project.code, project.name, project.description) == ('DIGI-02', 'Archive Scan', 'phase two')

    def test_project_code_taken(self, session, seed):
        with quota_transaction(session):
            create_project(session, 'OCR-7', 'Ledger OCR')
        with pytest.raises(ConflictError):
            update_project(session, seed.project_id, code='OCR-7')

    def test_keeping_own_code_is_not_a_conflict(self, session, seed):
        with quota_transaction(session):
            update_project(session, seed.project_id, code='DIGI-01', description='')
        assert session.get(Project, seed.project_id).description is None

    def test_reorder_stage(self, session, seed):
        with quota_transaction(session):
            create_stage(session, seed.project_id, 'Cleaning')
            update_stage(session, seed.stage_id, name='Scan', order=3)

        project = session.get(Project, seed.project_id)
        assert [s.name for s in project.stages] == ['Cleaning', 'Scan']

    def test_stage_order_taken(self, session, seed):
        with quota_transaction(session):
            create_stage(session, seed.project_id, 'Cleaning')
        with pytest.raises(ConflictError):
            update_stage(session, seed.stage_id, order=2)

    def test_rename_pool_keeps_quota(self, session, seed, manager):
        with quota_transaction(session):
            update_task_pool(session, seed.task_pool_id, name='Batch A1', actor=manager)

        pool = session.get(TaskPool, seed.task_pool_id)
        assert pool.name == 'Batch A1'
        assert pool.total_quota == 100

    def test_blank_pool_name(self, session, seed):
        with pytest.raises(InvalidArgumentError):
            update_task_pool(session, seed.task_pool_id, name='  ')

    def test_employee_cannot_edit(self, session, seed, alice):
        with pytest.raises(ForbiddenError):
            update_stage(session, seed.stage_id, name='Mine', actor=alice)


class TestDeletes:

    def test_delete_empty_stage_and_project(self, session, admin):
        with quota_transaction(session):
            project = create_project(session, 'TMP-1', 'Scratch project')
            stage = create_stage(session, project.project_id, 'Only stage')
            project_id, stage_id = project.project_id, stage.stage_id

        with quota_transaction(session):
            delete_stage(session, stage_id, actor=admin)
        assert session.get(Stage, stage_id) is None

        with quota_transaction(session):
            delete_project(session, project_id, actor=admin)
        assert session.get(Project, project_id) is None

    def test_stage_with_pools_cannot_be_deleted(self, session, seed):
        with pytest.raises(InvalidStateError):
            delete_stage(session, seed.stage_id)
        assert session.get(Stage, seed.stage_id) is not None

    def test_project_with_stages_cannot_be_deleted(self, session, seed):
        with pytest.raises(InvalidStateError):
            delete_project(session, seed.project_id)

    def test_delete_unknown(self, session):
        with pytest.raises(NotFoundError):
            delete_stage(session, 9999)
        with pytest.raises(NotFoundError):
            delete_project(session, 9999)
