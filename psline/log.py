"""
Logging setup for psline.

Standard output carries the prompt itself, so every handler writes to
standard error or to a file.
"""
import logging
import os
import sys
from typing import Optional

from .constants import LOG_ENV_VAR

DEFAULT_FORMAT = "%(asctime)s - %(threadName)s - %(name)s - %(levelname)s - %(message)s"
CONSOLE_FORMAT = "psline: %(levelname)s: %(message)s"
DEFAULT_LEVEL = "WARNING"


def resolve_level(level: Optional[str] = None) -> int:
    """Map a level name from the CLI or ``$PSLINE_LOG`` to a logging level."""
    name = level or os.environ.get(LOG_ENV_VAR) or DEFAULT_LEVEL
    value = getattr(logging, name.upper(), None)
    return value if isinstance(value, int) else logging.WARNING


def setup_logging(level: Optional[str] = None, log_file: Optional[str] = None) -> logging.Logger:
    """Configure the ``psline`` logger.

    Console handler: short format on stderr. File handler (if ``log_file``
    is given) uses the full format with thread names, which is what you
    want when looking at probes that timed out.

    Returns:
        The configured ``psline`` logger.
    """
    log_level = resolve_level(level)
    logger = logging.getLogger("psline")
    logger.setLevel(log_level)
    logger.propagate = False

    # Remove existing handlers to avoid duplication on re-init
    for handler in logger.handlers[:]:
        logger.removeHandler(handler)
        handler.close()

    console = logging.StreamHandler(sys.stderr)
    console.setLevel(log_level)
    console.setFormatter(logging.Formatter(CONSOLE_FORMAT))
    logger.addHandler(console)

    if log_file:
        try:
            file_handler = logging.FileHandler(log_file, encoding="utf-8")
        except OSError as e:
            logger.warning(f"Cannot open log file {log_file}: {e}")
        else:
            file_handler.setLevel(log_level)
            file_handler.setFormatter(logging.Formatter(DEFAULT_FORMAT))
            logger.addHandler(file_handler)

    return logger
