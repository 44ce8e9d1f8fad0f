"""Pytest configuration and shared fixtures for DebtLedger tests.

Every test gets its own temporary SQLite file behind an async engine, so
repositories and services run against a real store without touching the
application database.
"""

from __future__ import annotations

import logging
from datetime import date
from decimal import Decimal

import pytest
import pytest_asyncio

from debtledger.clock import FixedClock
from debtledger.config import TestConfig
from debtledger.infra.database import create_db_engine, create_session_factory, init_database
from debtledger.infra.repositories import SQLModelDebtRepository
from debtledger.logging_config import ROOT_LOGGER_NAME
from debtledger.models import DebtType
from debtledger.services.debts import DebtService
from debtledger.services.validation import DebtInput

HOUSEHOLD_ID = "household-1"
OTHER_HOUSEHOLD_ID = "household-2"
USER_ID = "user-1"
TODAY = date(2024, 6, 15)


# =============================================================================
# Configuration & Database Fixtures
# =============================================================================


@pytest.fixture
def test_config(tmp_path, monkeypatch) -> TestConfig:
    """Configuration pointing data dir and database at a temp directory."""

    monkeypatch.setenv("DEBTLEDGER_DATA_DIR", str(tmp_path))
    return TestConfig(database_path=tmp_path / "debtledger-test.db")


@pytest_asyncio.fixture
async def db_engine(test_config):
    """Create an isolated SQLite database file with all tables.

    Yields:
        AsyncEngine connected to the test database
    """
    engine = create_db_engine(test_config)
    await init_database(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return create_session_factory(db_engine)


@pytest.fixture
def clock() -> FixedClock:
    """Clock frozen mid-2024 so date bounds are deterministic."""

    return FixedClock(TODAY)


@pytest.fixture
def debt_repository(session_factory, test_config) -> SQLModelDebtRepository:
    return SQLModelDebtRepository(
        session_factory,
        lock_timeout=test_config.LOCK_TIMEOUT_SECONDS,
        transaction_timeout=test_config.TX_TIMEOUT_SECONDS,
    )


@pytest.fixture
def debt_service(debt_repository, clock) -> DebtService:
    return DebtService(debt_repository, clock)


# =============================================================================
# Test Data Factories
# =============================================================================

_DEFAULTS = {
    DebtType.PERSONAL: {
        "name": "Loan from family",
        "creditor": "Uncle Budi",
        "principal_amount": 1000,
    },
    DebtType.CONVENTIONAL: {
        "name": "Car loan",
        "creditor": "Bank Central",
        "principal_amount": 5000,
        "interest_rate": Decimal("0.18"),
        "maturity_date": date(2026, 1, 1),
    },
    DebtType.ISLAMIC: {
        "name": "Home financing",
        "creditor": "Bank Syariah",
        "principal_amount": 100000,
        "margin_rate": Decimal("0.06"),
        "maturity_date": date(2034, 1, 1),
    },
}


@pytest.fixture
def debt_input():
    """Build a valid ``DebtInput`` for a type, overriding any field."""

    def _build(debt_type: DebtType = DebtType.PERSONAL, **overrides) -> DebtInput:
        values = {"type": debt_type, "start_date": date(2024, 1, 1), **_DEFAULTS[debt_type], **overrides}
        return DebtInput(**values)

    return _build


@pytest.fixture
def debt_factory(debt_service, debt_input):
    """Factory for creating persisted debts through the service.

    Returns:
        Async callable returning the created ``Debt``
    """

    async def _create(
        debt_type: DebtType = DebtType.PERSONAL,
        household_id: str = HOUSEHOLD_ID,
        **overrides,
    ):
        return await debt_service.create_debt(
            household_id, debt_input(debt_type, **overrides), USER_ID
        )

    return _create


@pytest.fixture(autouse=True)
def reset_logging():
    """Close handlers installed by ``setup_logging`` during a test."""

    yield
    root_logger = logging.getLogger(ROOT_LOGGER_NAME)
    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)
        handler.close()
