"""
Logging setup for the API process.
"""

import logging
import sys

import config

_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def setup_logging(level_name: str | None = None) -> None:
    """Configure the root logger once.

    Args:
        level_name (str|None): Level name such as "DEBUG"; defaults to LOG_LEVEL.
    """
    level = getattr(logging, (level_name or config.LOG_LEVEL), logging.INFO)
    root = logging.getLogger()
    root.setLevel(level)
    if not any(getattr(h, "_surveyhub", False) for h in root.handlers):
        handler = logging.StreamHandler(sys.stderr)
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler._surveyhub = True
        root.addHandler(handler)

    # Reduce verbosity of some libraries
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    logging.getLogger("PIL").setLevel(logging.WARNING)
