"""
Logger hierarchy for schemagen.

Every module asks for its logger with ``get_logger(__name__)`` and never
configures handlers itself. Only the CLI calls ``configure_gen_logging``;
library callers keep the standard propagation to the root logger.
"""

from __future__ import annotations

import logging
import sys

_LOGGER_NAME = "schemagen"


def get_logger(name: str | None = None) -> logging.Logger:
    """Logger named ``schemagen.<last component of name>`` (or ``schemagen`` itself)"""
    if name is None or name == _LOGGER_NAME:
        return logging.getLogger(_LOGGER_NAME)
    short = name.rsplit(".", 1)[-1]
    return logging.getLogger(f"{_LOGGER_NAME}.{short}")


def _level_for(verbose: bool, quiet: bool) -> int:
    if verbose:
        return logging.DEBUG
    if quiet:
        return logging.WARNING
    return logging.INFO


def configure_gen_logging(verbose: bool = False, quiet: bool = False) -> None:
    """Attach a stderr handler to the ``schemagen`` logger.

    ``verbose`` wins over ``quiet``. INFO carries one line per target outcome,
    DEBUG adds loader cache hits, hook counts and command stdout.
    Calling it again only adjusts the level of the existing handler.
    """
    level = _level_for(verbose, quiet)
    schemagen_logger = logging.getLogger(_LOGGER_NAME)
    schemagen_logger.setLevel(level)

    for handler in schemagen_logger.handlers:
        handler.setLevel(level)
    if schemagen_logger.handlers:
        return

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(level)
    handler.setFormatter(_LevelPrefixFormatter())
    schemagen_logger.addHandler(handler)
    schemagen_logger.propagate = False


class _LevelPrefixFormatter(logging.Formatter):
    """``warning: ...`` / ``error: ...`` for problems, bare message otherwise"""

    def format(self, record: logging.LogRecord) -> str:
        message = record.getMessage()
        if record.levelno < logging.WARNING:
            return message
        return f"{record.levelname.lower()}: {message}"
