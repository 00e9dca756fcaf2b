"""
Pytest fixtures for the inventory test suite.

Provides:
- Database sessions isolated per test by an outer transaction
- Clock, actor and service fixtures
- Captured structured logs

Environment Variables:
- DATABASE_URL: database connection URL.  Defaults to in-memory SQLite;
  set it to a PostgreSQL URL to run the ``postgres`` marked concurrency
  tests as well.
"""

import json
import logging
import os
import threading
from io import StringIO
from typing import Generator
from uuid import UUID, uuid4

import pytest
from sqlalchemy import text
from sqlalchemy.orm import Session

from inventory_config import InventoryConfig, reset_active_config, set_active_config
from inventory_kernel.db.base import Base
from inventory_kernel.db.engine import (
    create_tables,
    drop_tables,
    get_session_factory,
    init_engine_from_url,
    is_postgres,
    reset_engine,
)
from inventory_kernel.db.immutability import (
    register_immutability_listeners,
    unregister_immutability_listeners,
)
from inventory_kernel.domain.clock import DeterministicClock
from inventory_kernel.logging_config import (
    LogContext,
    StructuredFormatter,
    configure_logging,
    reset_logging,
)
from inventory_kernel.services.stock_adjustment_service import StockAdjustmentService
from inventory_services.cost_accounting_service import CostAccountingService
from inventory_services.inventory_service import InventoryService
from inventory_services.transfer_orchestrator import TransferOrchestrator

# Test actor ID for all test operations
TEST_ACTOR_ID = uuid4()

DEFAULT_DATABASE_URL = "sqlite://"


def get_database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line(
        "markers", "postgres: mark test as requiring PostgreSQL"
    )


# =============================================================================
# Logging fixtures
# =============================================================================


@pytest.fixture(autouse=True, scope="session")
def _configure_test_logging():
    """Configure structured logging for the test suite."""
    reset_logging()
    configure_logging(level=logging.DEBUG)
    yield
    reset_logging()


@pytest.fixture(autouse=True)
def _clear_log_context():
    """Clear LogContext between tests to prevent cross-test contamination."""
    LogContext.clear()
    yield
    LogContext.clear()


@pytest.fixture(autouse=True)
def _default_config():
    """Every test starts from the default configuration."""
    set_active_config(InventoryConfig())
    yield
    reset_active_config()


@pytest.fixture
def captured_logs():
    """
    Capture inventory_kernel logs as parsed JSON dicts.

    Usage::

        def test_something(captured_logs, inventory):
            inventory.adjust_stock(...)
            logs = captured_logs()
            assert any(r["message"] == "stock_credited" for r in logs)
    """
    stream = StringIO()
    handler = logging.StreamHandler(stream)
    handler.setFormatter(StructuredFormatter())
    root = logging.getLogger("inventory_kernel")
    root.addHandler(handler)

    def _get_records() -> list[dict]:
        lines = stream.getvalue().strip().split("\n")
        return [json.loads(line) for line in lines if line]

    yield _get_records

    root.removeHandler(handler)


# =============================================================================
# Session-scoped DB infrastructure (create engine + tables ONCE per suite)
# =============================================================================


@pytest.fixture(scope="session")
def db_engine():
    """Single engine for the entire test session."""
    eng = init_engine_from_url(get_database_url(), echo=False)
    yield eng
    reset_engine()


@pytest.fixture(scope="session")
def db_tables(db_engine):
    """Create all tables once per session, drop once at end.

    Immutability listeners are registered once and remain active.
    """
    drop_tables()
    create_tables()
    register_immutability_listeners()
    yield
    unregister_immutability_listeners()
    drop_tables()


def _delete_all_rows(engine):
    """Raw DELETE of every table (bypasses ORM immutability listeners).

    Used by concurrency tests that need real commits and therefore cannot
    rely on the rollback isolation pattern.
    """
    with engine.connect() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(text(f"DELETE FROM {table.name}"))
        conn.commit()


# =============================================================================
# Per-test session with automatic rollback
# =============================================================================


@pytest.fixture(scope="function")
def session(db_tables, db_engine) -> Generator[Session, None, None]:
    """Provide a database session for testing.

    - Opens a dedicated connection with an outer transaction
    - Creates a session that *joins* the outer transaction
    - Any ``session.commit()`` inside the test releases a savepoint; it
      does NOT actually commit to the database
    - At teardown the outer transaction is rolled back, undoing ALL data
      changes made during the test
    """
    conn = db_engine.connect()
    trans = conn.begin()
    sess = Session(bind=conn, join_transaction_mode="create_savepoint", expire_on_commit=False)
    yield sess
    try:
        sess.close()
    finally:
        try:
            trans.rollback()
        finally:
            conn.close()


# =============================================================================
# Concurrency testing fixtures (real commits + DELETE cleanup)
# =============================================================================


@pytest.fixture(scope="function")
def pg_session_factory(db_engine, db_tables):
    """Tracked session factory for sessions in concurrent threads.

    Skips unless the suite runs against PostgreSQL.  On teardown every
    session is rolled back and closed, then all rows are deleted.
    """
    if not is_postgres():
        pytest.skip("requires PostgreSQL (set DATABASE_URL)")

    factory = get_session_factory()
    created_sessions = []
    lock = threading.Lock()

    def tracked_factory():
        with lock:
            s = factory()
            created_sessions.append(s)
            return s

    yield tracked_factory

    for s in created_sessions:
        if s.is_active:
            s.rollback()
        s.close()
    _delete_all_rows(db_engine)


# =============================================================================
# Actors, ids, clock
# =============================================================================


@pytest.fixture
def test_actor_id() -> UUID:
    """Provide a consistent test actor ID."""
    return TEST_ACTOR_ID


@pytest.fixture
def deterministic_clock():
    """Provide a deterministic clock for testing."""
    return DeterministicClock()


@pytest.fixture
def variant_id() -> UUID:
    return uuid4()


@pytest.fixture
def warehouse_id() -> UUID:
    return uuid4()


@pytest.fixture
def store_id() -> UUID:
    return uuid4()


# =============================================================================
# Service fixtures
# =============================================================================


@pytest.fixture
def stock_adjustments(session: Session, deterministic_clock) -> StockAdjustmentService:
    return StockAdjustmentService(session, deterministic_clock)


@pytest.fixture
def transfer_orchestrator(session, deterministic_clock, stock_adjustments) -> TransferOrchestrator:
    return TransferOrchestrator(session, stock_adjustments, deterministic_clock)


@pytest.fixture
def cost_accounting(session, stock_adjustments) -> CostAccountingService:
    return CostAccountingService(session, stock_adjustments)


@pytest.fixture
def inventory(session, deterministic_clock) -> InventoryService:
    """The public facade over the per-test session."""
    return InventoryService(session, clock=deterministic_clock)


@pytest.fixture
def stocked(inventory, variant_id, warehouse_id, test_actor_id):
    """Put ``quantity`` units of the test variant in the warehouse."""

    def _stock(quantity: int = 10, location_id: UUID | None = None):
        return inventory.adjust_stock(
            variant_id,
            location_id or warehouse_id,
            "add",
            quantity,
            test_actor_id,
            note="opening stock",
        )

    return _stock
