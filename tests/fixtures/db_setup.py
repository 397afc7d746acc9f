"""
Test Configuration for throwaway SQLite databases

Each test gets its own database file under pytest's tmp_path, so tests
(and pytest-xdist workers) never share state. The engine is built with the
same factory production code uses, so SQLite pragmas and transaction
handling are exercised as-is.
"""

from pathlib import Path

from fluxquant.config import EngineConfig
from fluxquant.session import create_quota_engine, init_db


def sqlite_url(directory) -> str:
    return f"sqlite:///{Path(directory) / 'fluxquant_test.db'}"


def create_test_engine(directory, echo=False):
    """
    Create an engine for a fresh database file in ``directory`` and build the schema.

    Returns:
        (engine, SessionLocal)
    """
    engine, SessionLocal = create_quota_engine(sqlite_url(directory), echo=echo)
    init_db(engine)
    return engine, SessionLocal


def create_test_config(directory, **overrides) -> EngineConfig:
    """Engine configuration pointing at the test database and a local audit log."""
    values = {
        'database_url': sqlite_url(directory),
        'audit_log_path': str(Path(directory) / 'audit' / 'quota_audit.log'),
    }
    values.update(overrides)
    return EngineConfig(**values)

