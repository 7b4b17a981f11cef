"""Logging setup.

The TUI owns the terminal, so log records go to a file.  Modules log through
``logging.getLogger(__name__)`` and never pass a sensitive value to a logger.
"""

import logging
import os
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(log_path: Path, level: str = "INFO") -> None:
    """Send ``quocli.*`` records to *log_path*.

    ``QUOCLI_LOG_LEVEL`` overrides *level*.  Falls back to stderr when the
    log file cannot be opened.
    """
    level_name = os.environ.get("QUOCLI_LOG_LEVEL", level).upper()
    root = logging.getLogger("quocli")
    root.setLevel(getattr(logging, level_name, logging.INFO))

    handler: logging.Handler
    try:
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handler = logging.FileHandler(log_path)
    except OSError:
        handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(LOG_FORMAT))

    for existing in list(root.handlers):
        root.removeHandler(existing)
    root.addHandler(handler)
    root.propagate = False
