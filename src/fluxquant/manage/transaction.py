"""
Transaction management for quota engine writers.

Writers in fluxquant.manage only flush; this context manager owns the
commit/rollback and maps storage failures onto the engine's error types.
"""
import logging
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from fluxquant.exceptions import InternalError, QuotaEngineError, UnavailableError
from fluxquant.session import WRITE_INTENT


logger = logging.getLogger(__name__)


def _declare_write_intent(session: Session) -> None:
    """
    Open the session's transaction as a write transaction.

    On SQLite this makes the transaction start with BEGIN IMMEDIATE. A
    transaction the session already has in progress keeps its mode.
    """
    if not session.in_transaction():
        session.connection(execution_options={WRITE_INTENT: True})


@contextmanager
def quota_transaction(session: Session, readonly: bool = False):
    """
    Context manager ensuring commit/rollback for quota engine writers.

    Usage:
        with quota_transaction(session):
            submit_report(session, allocation_id, '2026-03-01', valid_qty=40)
            adjust_pool_quota(session, pool_id, 500, 'scope change', actor)
        # Auto-commits on success, rolls back on exception

        with quota_transaction(session, readonly=True):
            view = get_matrix_view(session, project_id)
        # Plain snapshot read; ended with a rollback, takes no write lock

    Args:
        session: SQLAlchemy session
        readonly: Read models only; the block never takes the write lock

    Yields:
        Session: The same session (for convenience)

    Raises:
        QuotaEngineError: domain errors propagate unchanged (after rollback)
        UnavailableError: database locked/busy or connection lost
        InternalError: any other storage failure
    """
    try:
        if not readonly:
            _declare_write_intent(session)
        yield session
        if readonly:
            session.rollback()
        else:
            session.commit()
    except QuotaEngineError:
        session.rollback()
        raise
    except OperationalError as e:
        session.rollback()
        logger.warning(f"Storage unavailable, transaction rolled back: {e.orig}")
        raise UnavailableError(f"Storage temporarily unavailable: {e.orig}") from e
    except SQLAlchemyError as e:
        session.rollback()
        logger.error(f"Storage failure, transaction rolled back: {e}")
        raise InternalError(f"Durable write failed: {e.__class__.__name__}") from e
    except Exception:
        session.rollback()
        raise
