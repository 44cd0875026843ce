"""Tests for process settings and logging setup."""

import logging

import pytest

from core.config import Settings, sanitize_database_url
from core.log import configure_logging


def test_from_env_requires_database_url(monkeypatch):
    monkeypatch.delenv("DATABASE_URL", raising=False)

    with pytest.raises(RuntimeError):
        Settings.from_env()


def test_from_env_defaults(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://anime@db/anime")
    for name in ("DB_POOL_MAX_SIZE", "DB_READ_TIMEOUT", "DB_WRITE_TIMEOUT", "DB_LIST_TIMEOUT", "LOG_LEVEL"):
        monkeypatch.delenv(name, raising=False)

    settings = Settings.from_env()

    assert settings.pool_max_size == 25
    assert settings.read_timeout == 3.0
    assert settings.write_timeout == 5.0
    assert settings.list_timeout == 6.0
    assert settings.log_level == "INFO"


def test_from_env_overrides_and_ignores_garbage(monkeypatch):
    monkeypatch.setenv("DATABASE_URL", "postgresql://anime@db/anime?sslmode=disable")
    monkeypatch.setenv("DB_POOL_MAX_SIZE", "10")
    monkeypatch.setenv("DB_WRITE_TIMEOUT", "2.5")
    monkeypatch.setenv("DB_READ_TIMEOUT", "soon")
    monkeypatch.setenv("LOG_LEVEL", "debug")

    settings = Settings.from_env()

    assert settings.database_url == "postgresql://anime@db/anime"
    assert settings.pool_max_size == 10
    assert settings.write_timeout == 2.5
    assert settings.read_timeout == 3.0
    assert settings.log_level == "DEBUG"


@pytest.mark.parametrize(
    ("url", "expected"),
    [
        ("postgresql://u:p@h/db", "postgresql://u:p@h/db"),
        ("postgresql://u:p@h/db?sslmode=require", "postgresql://u:p@h/db"),
        (
            "postgresql://u:p@h/db?sslmode=require&application_name=anime",
            "postgresql://u:p@h/db?application_name=anime",
        ),
    ],
)
def test_sanitize_database_url(url, expected):
    assert sanitize_database_url(url) == expected


def test_configure_logging_is_idempotent():
    root = logging.getLogger()
    before = list(root.handlers)
    level = root.level
    try:
        configure_logging("warning")
        configure_logging("warning")

        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1
        assert root.level == logging.WARNING

        configure_logging("nonsense")
        assert root.level == logging.INFO
    finally:
        for handler in root.handlers[:]:
            if handler not in before:
                root.removeHandler(handler)
        root.setLevel(level)
