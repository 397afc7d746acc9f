"""
SQLAlchemy event handlers for audit logging.

Registers a before_flush listener to track INSERT, UPDATE, DELETE of engine
models, and a do_orm_execute listener for the SQL-side counter and quota
updates that never pass through the unit of work.
"""
from contextlib import contextmanager
from contextvars import ContextVar
from datetime import date, datetime
from enum import Enum

from sqlalchemy import event, inspect
from sqlalchemy.orm import Session

from fluxquant.base import Base
from .logger import get_audit_logger


# Principal currently acting on the engine (set by the API layer and CLI)
_current_actor = ContextVar('fluxquant_actor', default=None)

# Global flag to prevent double-registration in parallel testing
_AUDIT_EVENTS_REGISTERED = False
_LISTENERS = []


@contextmanager
def acting_as(principal):
    """
    Attribute every change made inside the block to ``principal``.

    Usage:
        with acting_as(actor), quota_transaction(session):
            submit_report(session, ..., actor=actor)
    """
    token = _current_actor.set(principal)
    try:
        yield principal
    finally:
        _current_actor.reset(token)


def responsible_user():
    """
    Get username of the acting principal.

    Returns:
        str: Principal's username, or "anonymous" outside acting_as()
    """
    principal = _current_actor.get()
    if principal is None:
        return "anonymous"
    return str(principal)


def _plain(value):
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value


def should_track(obj):
    """Only mapped engine models are audited."""
    return isinstance(obj, Base)


def get_primary_key(obj):
    identity = inspect(obj).identity
    return identity if identity is not None else None


def diff_for_object(obj):
    """
    Extract changed attributes and their old/new values.

    Returns:
        dict: Dictionary of {attribute: {'old': value, 'new': value}}
    """
    changes = {}
    for attr in inspect(obj).attrs:
        hist = attr.history
        if hist.has_changes():
            old_value = hist.deleted[0] if hist.deleted else None
            new_value = hist.added[0] if hist.added else None
            changes[attr.key] = {"old": _plain(old_value), "new": _plain(new_value)}
    return changes


def init_audit_events(logfile_path, **logger_options):
    """
    Initialize SQLAlchemy event handlers for audit logging.

    Listeners are attached to every Session; registration is idempotent.

    Args:
        logfile_path: Path to audit log file
        **logger_options: max_bytes / backup_count for the rotating handler
    """
    global _AUDIT_EVENTS_REGISTERED

    if _AUDIT_EVENTS_REGISTERED:
        return

    logger = get_audit_logger(logfile_path, **logger_options)

    def before_flush(session, flush_context, instances):
        """Log INSERT, UPDATE and DELETE of tracked objects."""
        user = responsible_user()

        for obj in session.new:
            if should_track(obj):
                logger.info(
                    f"user={user} action=INSERT model={obj.__class__.__name__} obj={obj!r}"
                )

        for obj in session.dirty:
            if should_track(obj) and session.is_modified(obj, include_collections=False):
                changes = diff_for_object(obj)
                if changes:
                    logger.info(
                        f"user={user} action=UPDATE model={obj.__class__.__name__} "
                        f"pk={get_primary_key(obj)} changes={changes}"
                    )

        for obj in session.deleted:
            if should_track(obj):
                logger.info(
                    f"user={user} action=DELETE model={obj.__class__.__name__} "
                    f"pk={get_primary_key(obj)} obj={obj!r}"
                )

    def do_orm_execute(orm_execute_state):
        """Log SQL-side UPDATE/DELETE statements (counter increments, quota compare-and-set)."""
        if not (orm_execute_state.is_update or orm_execute_state.is_delete):
            return

        action = 'SQL_UPDATE' if orm_execute_state.is_update else 'SQL_DELETE'
        statement = orm_execute_state.statement
        params = {key: _plain(value) for key, value in statement.compile().params.items()}
        logger.info(
            f"user={responsible_user()} action={action} table={statement.table.name} params={params}"
        )

    event.listen(Session, "before_flush", before_flush)
    event.listen(Session, "do_orm_execute", do_orm_execute)
    _LISTENERS.extend([("before_flush", before_flush), ("do_orm_execute", do_orm_execute)])

    _AUDIT_EVENTS_REGISTERED = True


def reset_audit_events():
    """
    Remove the audit listeners and reset the registration flag.

    Primarily for tests that reinitialize audit events with another log file.
    """
    global _AUDIT_EVENTS_REGISTERED

    for name, listener in _LISTENERS:
        if event.contains(Session, name, listener):
            event.remove(Session, name, listener)
    _LISTENERS.clear()
    _AUDIT_EVENTS_REGISTERED = False
