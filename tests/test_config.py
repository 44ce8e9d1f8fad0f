"""Configuration loading from the environment."""

from __future__ import annotations

import pytest

from debtledger.config import BaseConfig, TestConfig


def test_defaults(tmp_path, monkeypatch):
    monkeypatch.setenv("DEBTLEDGER_DATA_DIR", str(tmp_path / "data"))
    for name in (
        "DEBTLEDGER_DATABASE_URL",
        "DEBTLEDGER_DEV_MODE",
        "DEBTLEDGER_ECHO_SQL",
        "DEBTLEDGER_LOCK_TIMEOUT_SECONDS",
        "DEBTLEDGER_TX_TIMEOUT_SECONDS",
        "DEBTLEDGER_INTEREST_CAP_MULTIPLIER",
    ):
        monkeypatch.delenv(name, raising=False)

    config = BaseConfig()

    assert config.DATA_DIR == (tmp_path / "data").resolve()
    assert config.DATA_DIR.is_dir()
    assert config.DATABASE_URL == f"sqlite+aiosqlite:///{config.DATA_DIR / 'debtledger.db'}"
    assert config.DEV_MODE is True
    assert config.ECHO_SQL is False
    assert config.LOCK_TIMEOUT_SECONDS == 5.0
    assert config.TX_TIMEOUT_SECONDS == 10.0
    assert config.INTEREST_CAP_MULTIPLIER == 2.0


def test_environment_overrides(tmp_path, monkeypatch):
    monkeypatch.setenv("DEBTLEDGER_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DEBTLEDGER_DATABASE_URL", "postgresql+asyncpg://ledger@localhost/ledger")
    monkeypatch.setenv("DEBTLEDGER_DEV_MODE", "off")
    monkeypatch.setenv("DEBTLEDGER_LOCK_TIMEOUT_SECONDS", "2.5")
    monkeypatch.setenv("DEBTLEDGER_INTEREST_CAP_MULTIPLIER", "3")

    config = BaseConfig()

    assert config.DEV_MODE is False
    assert config.LOCK_TIMEOUT_SECONDS == 2.5
    assert config.INTEREST_CAP_MULTIPLIER == 3.0
    assert config.is_sqlite is False
    assert config.sqlalchemy_engine_options() == {"echo": False}


@pytest.mark.parametrize("value", ["0", "-1", "soon"])
def test_invalid_timeouts_raise(tmp_path, monkeypatch, value):
    monkeypatch.setenv("DEBTLEDGER_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("DEBTLEDGER_TX_TIMEOUT_SECONDS", value)

    with pytest.raises(ValueError):
        BaseConfig()


def test_sqlite_engine_options_bound_lock_wait(test_config):
    options = test_config.sqlalchemy_engine_options()

    assert options["connect_args"] == {
        "check_same_thread": False,
        "timeout": test_config.LOCK_TIMEOUT_SECONDS,
    }


def test_test_config_uses_given_database(tmp_path, monkeypatch):
    monkeypatch.setenv("DEBTLEDGER_DATA_DIR", str(tmp_path))

    config = TestConfig(database_path=tmp_path / "x.db")

    assert config.DATABASE_URL == f"sqlite+aiosqlite:///{tmp_path / 'x.db'}"
    assert config.TESTING is True
