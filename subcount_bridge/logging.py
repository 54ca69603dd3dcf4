"""Process-wide logging for the bridge.

Every record goes to stderr, and optionally to a log file, as
``time | level | logger | message``. Per-request chatter from aiohttp's
access, client and websocket loggers is held at WARNING unless network
logging is switched on.
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Optional

LOG_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


def configure_logging(
    level: str = "INFO", *, log_path: Optional[Path] = None, log_network: bool = False
) -> None:
    """Replace the root handlers with a console handler and an optional file handler.

    ``level`` is a level name such as ``"DEBUG"``; unknown names fall back to
    INFO. The parent directory of ``log_path`` is created when missing.
    ``log_network`` leaves the aiohttp loggers at ``level``.
    """

    logging.captureWarnings(True)

    for handler in list(logging.getLogger().handlers):
        logging.getLogger().removeHandler(handler)

    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=LOG_FORMAT,
    )

    if log_path:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_path)
        file_handler.setFormatter(logging.Formatter(LOG_FORMAT))
        logging.getLogger().addHandler(file_handler)

    if not log_network:
        logging.getLogger("aiohttp.access").setLevel(logging.WARNING)
        logging.getLogger("aiohttp.client").setLevel(logging.WARNING)
        logging.getLogger("aiohttp.websocket").setLevel(logging.WARNING)
