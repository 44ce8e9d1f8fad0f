"""Application context for dependency injection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from sqlalchemy.ext.asyncio import AsyncEngine

from .clock import Clock, SystemClock
from .config import BaseConfig
from .infra.database import SessionFactory, bootstrap_database
from .infra.repositories import SQLModelDebtRepository
from .services.debts import DebtService


@dataclass
class AppContext:
    """Centralized application context with services and state."""

    # Configuration
    config: BaseConfig
    clock: Clock

    # Database
    engine: AsyncEngine
    session_factory: SessionFactory

    # Repositories
    debt_repo: SQLModelDebtRepository

    # Services
    debt_service: DebtService

    async def dispose(self) -> None:
        """Release pooled database connections."""

        await self.engine.dispose()


async def create_app_context(
    config: Optional[BaseConfig] = None, clock: Optional[Clock] = None
) -> AppContext:
    """Create and initialize the application context."""

    if config is None:
        config = BaseConfig()
    if clock is None:
        clock = SystemClock()

    # Create database engine and initialize schema
    engine, session_factory = await bootstrap_database(config)

    debt_repo = SQLModelDebtRepository(
        session_factory,
        lock_timeout=config.LOCK_TIMEOUT_SECONDS,
        transaction_timeout=config.TX_TIMEOUT_SECONDS,
    )
    debt_service = DebtService(
        debt_repo, clock, interest_cap_multiplier=config.INTEREST_CAP_MULTIPLIER
    )

    return AppContext(
        config=config,
        clock=clock,
        engine=engine,
        session_factory=session_factory,
        debt_repo=debt_repo,
        debt_service=debt_service,
    )
