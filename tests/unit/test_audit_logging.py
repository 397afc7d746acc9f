"""
Unit tests for audit logging functionality.

Tests INSERT/UPDATE tracking through the unit of work, SQL-side counter and
quota updates, and attribution to the principal set with acting_as().
"""
import logging

import pytest

from fluxquant.audit import (
    acting_as,
    get_audit_logger,
    init_audit,
    reset_audit_events,
    reset_audit_logger,
    responsible_user,
)
from fluxquant.audit.logger import AUDIT_LOGGER_NAME, ensure_log_directory
from fluxquant.manage import adjust_pool_quota, create_user, quota_transaction, submit_report


@pytest.fixture
def audit_log_file(tmp_path):
    """Initialize audit logging into a fresh file and tear it down afterwards."""
    reset_audit_logger()
    reset_audit_events()

    log_path = tmp_path / 'audit' / 'test_audit.log'
    init_audit(str(log_path))

    yield log_path

    reset_audit_logger()
    reset_audit_events()


def read_audit_log(log_path):
    """Flush handlers and return audit log lines."""
    for handler in logging.getLogger(AUDIT_LOGGER_NAME).handlers:
        handler.flush()
    if not log_path.exists():
        return []
    return log_path.read_text(encoding='utf-8').splitlines()


def test_audit_logger_creation(tmp_path):
    """Audit logger can be created and writes to file."""
    reset_audit_logger()
    log_path = tmp_path / 'logger.log'

    logger = get_audit_logger(str(log_path))
    logger.info("first entry")
    assert get_audit_logger(str(tmp_path / 'ignored.log')) is logger
    assert len(logger.handlers) == 1

    for handler in logger.handlers:
        handler.flush()
    assert 'first entry' in log_path.read_text(encoding='utf-8')
    reset_audit_logger()


def test_init_audit_uses_configured_rotation(tmp_path, engine_config):
    from dataclasses import replace

    reset_audit_logger()
    reset_audit_events()
    config = replace(engine_config, audit_log_max_bytes=4096, audit_log_backups=2)

    init_audit(config=config)
    handler, = logging.getLogger(AUDIT_LOGGER_NAME).handlers
    assert handler.maxBytes == 4096
    assert handler.backupCount == 2
    assert handler.baseFilename == config.audit_log_path
    assert logging.getLogger(AUDIT_LOGGER_NAME).propagate is False


def test_ensure_log_directory_creates_parent(tmp_path):
    target = tmp_path / 'nested' / 'dir' / 'audit.log'
    assert ensure_log_directory(str(target)) == str(target)
    assert target.parent.is_dir()


def test_responsible_user_defaults_to_anonymous():
    assert responsible_user() == "anonymous"


def test_acting_as_sets_and_restores(admin):
    with acting_as(admin):
        assert responsible_user() == 'ada'
    assert responsible_user() == "anonymous"


def test_insert_is_logged_with_actor(session, admin, audit_log_file):
    with acting_as(admin), quota_transaction(session):
        create_user(session, 'carol', actor=admin)

    lines = read_audit_log(audit_log_file)
    inserts = [l for l in lines if 'action=INSERT' in l and 'model=User' in l]
    assert len(inserts) == 1
    assert 'user=ada' in inserts[0]
    assert "carol" in inserts[0]


def test_sql_side_counter_update_is_logged(session, seed, alice, audit_log_file):
    with acting_as(alice), quota_transaction(session):
        submit_report(session, seed.allocation_id, '2026-03-02', valid_qty=11, actor=alice)

    lines = read_audit_log(audit_log_file)
    updates = [l for l in lines if 'action=SQL_UPDATE' in l]
    tables = {l.split('table=')[1].split()[0] for l in updates}
    assert {'allocation', 'task_pool'} <= tables
    assert all('user=alice' in l for l in updates)
    assert any('action=INSERT model=ReportLog' in l for l in lines)


def test_quota_adjustment_is_logged(session, seed, manager, audit_log_file):
    with acting_as(manager), quota_transaction(session):
        adjust_pool_quota(session, seed.task_pool_id, 150, 'client added batch', manager)

    lines = read_audit_log(audit_log_file)
    assert any('action=INSERT model=QuotaAdjustment' in l and 'user=mona' in l for l in lines)
    assert any('action=SQL_UPDATE table=task_pool' in l for l in lines)


def test_orm_update_records_changes(session, seed, audit_log_file):
    from fluxquant.core.users import User

    with quota_transaction(session):
        user = session.get(User, seed.bob_id)
        user.display_name = 'Bob Builder'

    lines = read_audit_log(audit_log_file)
    updates = [l for l in lines if 'action=UPDATE model=User' in l]
    assert len(updates) == 1
    assert 'Bob Builder' in updates[0]
    assert 'user=anonymous' in updates[0]


def test_reset_detaches_listeners(session, seed, audit_log_file):
    reset_audit_events()
    with quota_transaction(session):
        create_user(session, 'ghost')

    assert not any('ghost' in l for l in read_audit_log(audit_log_file))
