#-------------------------------------------------------------------------bh-
# pytest configuration and fixtures for FluxQuant tests
#-------------------------------------------------------------------------eh-

import pytest
import sys
from pathlib import Path

# Add project root and src to path for imports
PROJ_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJ_ROOT / 'src'))
sys.path.insert(0, str(PROJ_ROOT / 'tests'))

from fixtures.db_setup import (
    create_test_config,
    create_test_engine,
)
from fixtures.seed_data import seed_hierarchy


@pytest.fixture(autouse=True)
def engine_config(tmp_path):
    """
    Install a per-test engine configuration and restore process state afterwards.

    Points the configured database and audit log into tmp_path and tears
    down any audit listeners a test (or the CLI) registered.
    """
    from fluxquant.audit import reset_audit_events, reset_audit_logger
    from fluxquant.config import reset_config, set_config

    config = create_test_config(tmp_path)
    set_config(config)
    yield config
    reset_audit_events()
    reset_audit_logger()
    reset_config()


@pytest.fixture
def engine_and_factory(tmp_path):
    engine, SessionLocal = create_test_engine(tmp_path)
    yield engine, SessionLocal
    engine.dispose()


@pytest.fixture
def engine(engine_and_factory):
    """SQLAlchemy engine bound to this test's database file."""
    return engine_and_factory[0]


@pytest.fixture
def SessionFactory(engine_and_factory):
    """Create a session factory for this test's database."""
    return engine_and_factory[1]


@pytest.fixture
def session(SessionFactory):
    """
    Provide a test session.

    Rolls back whatever is still pending after the test completes; data
    committed through quota_transaction stays in this test's database only.
    """
    session = SessionFactory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


@pytest.fixture
def seed(session):
    """Standard hierarchy (see fixtures.seed_data), committed."""
    return seed_hierarchy(session)


@pytest.fixture
def calculator(engine_config):
    return engine_config.build_calculator()


@pytest.fixture
def detector(engine_config):
    return engine_config.build_detector()


# Common principal fixtures
@pytest.fixture
def admin(seed):
    return seed.admin


@pytest.fixture
def manager(seed):
    return seed.manager


@pytest.fixture
def alice(seed):
    return seed.alice


@pytest.fixture
def bob(seed):
    return seed.bob

