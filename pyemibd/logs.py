from __future__ import annotations

import logging
from typing import Optional

import coloredlogs

PACKAGE_LOGGER = "pyemibd"
LOG_FORMAT = "%(asctime)s %(levelname)s (%(name)s %(lineno)s): %(message)s"

# Verbosity follows the dartR convention:
#   0 silent / fatal errors, 1 begin and end, 2 progress, 3 progress and
#   results summary, 5 full report.
# Begin/end messages go out at INFO, progress at PROGRESS, summaries at DEBUG.
DEFAULT_VERBOSITY = 2
MAX_VERBOSITY = 5

PROGRESS = 15
logging.addLevelName(PROGRESS, "PROGRESS")


def verbosity_to_level(verbosity: Optional[int]) -> int:
    """Map a 0-5 verbosity onto a logging level."""
    if verbosity is None:
        verbosity = DEFAULT_VERBOSITY
    if verbosity <= 0:
        return logging.ERROR
    if verbosity == 1:
        return logging.INFO
    if verbosity == 2:
        return PROGRESS
    return logging.DEBUG


def set_verbosity(verbosity: Optional[int]) -> None:
    """Set the level of the package logger without touching handlers."""
    logging.getLogger(PACKAGE_LOGGER).setLevel(verbosity_to_level(verbosity))


def configure_logging(verbosity: Optional[int] = None) -> None:
    """Install a coloured console handler; intended for the CLI only."""
    level = verbosity_to_level(verbosity)
    coloredlogs.install(level=level, fmt=LOG_FORMAT)
    set_verbosity(verbosity)
