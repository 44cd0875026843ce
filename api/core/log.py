"""
Logging setup for the API process.
"""

from __future__ import annotations

import logging

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s trace=%(filename)s:%(lineno)d"

_HANDLER_NAME = "anime-api"


def configure_logging(level: str = "INFO") -> None:
    """
    Install one stream handler on the root logger. Safe to call twice.
    """
    root = logging.getLogger()
    if not any(h.get_name() == _HANDLER_NAME for h in root.handlers):
        handler = logging.StreamHandler()
        handler.set_name(_HANDLER_NAME)
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        root.addHandler(handler)

    resolved = logging.getLevelName((level or "").upper())
    root.setLevel(resolved if isinstance(resolved, int) else logging.INFO)
