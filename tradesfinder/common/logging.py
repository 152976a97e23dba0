"""Application-wide logging setup.

All modules obtain loggers through :func:`get_logger` so that output is
namespaced under ``tradesfinder`` and configured once at startup.
"""

from __future__ import annotations

import logging
import sys

from tradesfinder.config import settings

ROOT_LOGGER = "tradesfinder"
LOG_FORMAT = "%(asctime)s %(levelname)-7s [%(name)s] %(message)s"

_configured = False


def setup_logging(level: str | None = None) -> None:
    global _configured

    root = logging.getLogger(ROOT_LOGGER)
    root.setLevel((level or settings.LOG_LEVEL).upper())

    if _configured:
        return

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.propagate = False
    _configured = True


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(f"{ROOT_LOGGER}.{name}")
