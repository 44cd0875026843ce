"""
Process configuration.

Built once at startup with `Settings.from_env()` and passed explicitly to the
pool and repositories. Nothing here is cached at module level.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlencode, urlsplit, urlunsplit


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def sanitize_database_url(url: str) -> str:
    # asyncpg rejects libpq's `sslmode` query parameter.
    parts = urlsplit(url)
    if not parts.query:
        return url

    params = [(k, v) for (k, v) in parse_qsl(parts.query, keep_blank_values=True) if k != "sslmode"]
    query = urlencode(params)
    return urlunsplit((parts.scheme, parts.netloc, parts.path, query, parts.fragment))


@dataclass(frozen=True)
class Settings:
    database_url: str
    pool_min_size: int = 1
    pool_max_size: int = 25
    command_timeout: float = 30.0
    read_timeout: float = 3.0
    write_timeout: float = 5.0
    list_timeout: float = 6.0
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> Settings:
        url = os.environ.get("DATABASE_URL", "").strip()
        if not url:
            raise RuntimeError("DATABASE_URL is not set.")
        return cls(
            database_url=sanitize_database_url(url),
            pool_min_size=_env_int("DB_POOL_MIN_SIZE", 1),
            pool_max_size=_env_int("DB_POOL_MAX_SIZE", 25),
            command_timeout=_env_float("DB_COMMAND_TIMEOUT", 30.0),
            read_timeout=_env_float("DB_READ_TIMEOUT", 3.0),
            write_timeout=_env_float("DB_WRITE_TIMEOUT", 5.0),
            list_timeout=_env_float("DB_LIST_TIMEOUT", 6.0),
            log_level=os.environ.get("LOG_LEVEL", "INFO").strip().upper() or "INFO",
        )
