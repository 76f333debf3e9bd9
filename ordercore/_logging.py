"""
Logging setup.

Modules log through logging.getLogger(__name__). Money movements and
order transitions additionally go to the "ordercore.money" logger so they
can be routed to their own file.
"""

from __future__ import annotations

import logging
import os
from logging.handlers import TimedRotatingFileHandler

from ordercore._config import Settings

MONEY_LOGGER = "ordercore.money"

money_log = logging.getLogger(MONEY_LOGGER)

_FORMAT = "%(asctime)s [%(levelname)s] in %(module)s: %(message)s"
_configured = False


def _rotating(path: str, level: int, backups: int, fmt: logging.Formatter) -> TimedRotatingFileHandler:
    handler = TimedRotatingFileHandler(
        path, when="midnight", interval=1, backupCount=backups,
        encoding="utf-8", delay=True,
    )
    handler.suffix = "%Y-%m-%d"
    handler.setFormatter(fmt)
    handler.setLevel(level)
    return handler


def setup_logging(settings: Settings) -> None:
    """Install console (and optional rotating file) handlers once per process."""
    global _configured
    if _configured:
        return
    _configured = True

    level = logging.getLevelName(settings.log_level)
    if not isinstance(level, int):
        level = logging.INFO
    formatter = logging.Formatter(_FORMAT)

    root = logging.getLogger("ordercore")
    root.setLevel(level)

    console = logging.StreamHandler()
    console.setFormatter(formatter)
    console.setLevel(level)
    root.addHandler(console)

    if settings.log_dir is None:
        return

    os.makedirs(settings.log_dir, exist_ok=True)
    root.addHandler(_rotating(os.path.join(settings.log_dir, "app.log"), logging.INFO, 14, formatter))
    root.addHandler(_rotating(os.path.join(settings.log_dir, "error.log"), logging.ERROR, 30, formatter))
    money_log.addHandler(
        _rotating(
            os.path.join(settings.log_dir, "money.log"),
            logging.INFO,
            90,
            logging.Formatter("%(asctime)s - %(message)s"),
        )
    )


__all__ = ("setup_logging", "money_log", "MONEY_LOGGER")
