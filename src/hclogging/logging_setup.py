"""Diagnostics log for the CLI: one rotating file, ~1 MB on disk at most."""

import logging
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import Optional

from hclogging.config import config_dir

LOG_FORMAT = "%(asctime)s %(levelname)s %(threadName)s %(message)s"
MAX_BYTES = 512 * 1024


def log_path() -> Path:
    return config_dir() / "hclogging.log"


def setup_logging(verbose: bool = False, path: Optional[Path] = None) -> logging.Logger:
    """Send the ``hclogging`` logger to a rotating file and return it.

    The logger stops propagating, so ping failures never reach a root logger
    that carries a :class:`~hclogging.handler.HealthchecksHandler`.  A second
    call only adjusts the level.
    """
    logger = logging.getLogger("hclogging")
    logger.setLevel(logging.DEBUG if verbose else logging.INFO)
    logger.propagate = False
    if any(isinstance(h, RotatingFileHandler) for h in logger.handlers):
        return logger

    log_file = path or log_path()
    log_file.parent.mkdir(parents=True, exist_ok=True)
    handler = RotatingFileHandler(str(log_file), maxBytes=MAX_BYTES, backupCount=1)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt="%Y-%m-%d %H:%M:%S"))
    logger.addHandler(handler)
    return logger
