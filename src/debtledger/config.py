"""Application configuration objects and helpers."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

load_dotenv()


def _env_bool(name: str, default: bool = False) -> bool:
    """Interpret environment variable values as booleans."""

    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _env_float(name: str, default: float) -> float:
    """Read a positive float from the environment, falling back to *default*."""

    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        parsed = float(value)
    except ValueError as exc:
        raise ValueError(f"{name} must be a number, got {value!r}") from exc
    if parsed <= 0:
        raise ValueError(f"{name} must be positive, got {value!r}")
    return parsed


class BaseConfig:
    """Base configuration shared across environments."""

    APP_NAME = "DebtLedger"
    DB_FILENAME = "debtledger.db"
    SQLITE_PRAGMAS = {"foreign_keys": "on"}

    def __init__(self) -> None:
        self.DATA_DIR = self._resolve_data_dir()
        self.DEV_MODE = _env_bool("DEBTLEDGER_DEV_MODE", default=True)
        self.ECHO_SQL = _env_bool("DEBTLEDGER_ECHO_SQL", default=False)
        self.DATABASE_URL = os.getenv("DEBTLEDGER_DATABASE_URL", self._build_sqlite_url())
        # Payment transactions: bounded lock wait and bounded total duration.
        self.LOCK_TIMEOUT_SECONDS = _env_float("DEBTLEDGER_LOCK_TIMEOUT_SECONDS", 5.0)
        self.TX_TIMEOUT_SECONDS = _env_float("DEBTLEDGER_TX_TIMEOUT_SECONDS", 10.0)
        self.INTEREST_CAP_MULTIPLIER = _env_float("DEBTLEDGER_INTEREST_CAP_MULTIPLIER", 2.0)

    def _resolve_data_dir(self) -> Path:
        """Return the directory where the SQLite file and logs live."""

        data_root = os.getenv("DEBTLEDGER_DATA_DIR", "instance")
        path = Path(data_root).expanduser().resolve()
        path.mkdir(parents=True, exist_ok=True)
        return path

    def _build_sqlite_url(self) -> str:
        """Construct the default async SQLite URL."""

        db_path = self.DATA_DIR / self.DB_FILENAME
        return f"sqlite+aiosqlite:///{db_path}"

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    def sqlalchemy_engine_options(self) -> dict[str, Any]:
        """Expose engine kwargs for the async engine to consume."""

        engine_options: dict[str, Any] = {"echo": self.ECHO_SQL}
        if self.is_sqlite:
            # sqlite3's busy timeout doubles as the lock-wait bound.
            engine_options["connect_args"] = {
                "check_same_thread": False,
                "timeout": self.LOCK_TIMEOUT_SECONDS,
            }
        return engine_options


class DevConfig(BaseConfig):
    """Development configuration using local SQLite."""

    DEBUG = True
    TESTING = False


class TestConfig(BaseConfig):
    """Configuration pointing at a throwaway database file."""

    __test__ = False
    DEBUG = False
    TESTING = True

    def __init__(self, database_path: Path | None = None) -> None:
        super().__init__()
        self.DEV_MODE = True
        if database_path is not None:
            self.DATABASE_URL = f"sqlite+aiosqlite:///{database_path}"
