"""
Logging for Gavel.

Every module logs through ``get_logger(subsystem)``, which returns a child of
the ``gavel`` logger. The first call installs a colored console handler at
INFO; ``configure_logging`` replaces it, e.g. from the CLI's ``--debug`` and
``--log-file`` options.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

import colorlog

NAMESPACE = "gavel"

LOG_COLORS = {
    "DEBUG": "cyan",
    "INFO": "green",
    "WARNING": "yellow",
    "ERROR": "red",
    "CRITICAL": "red,bg_white",
}

_configured = False


def _console_handler() -> logging.Handler:
    handler = colorlog.StreamHandler(sys.stdout)
    handler.setFormatter(
        colorlog.ColoredFormatter(
            "%(log_color)s%(levelname)-8s%(reset)s %(name)s: %(message)s",
            log_colors=LOG_COLORS,
        )
    )
    return handler


def configure_logging(
    level: Union[int, str] = logging.INFO,
    log_file: Optional[Union[str, Path]] = None,
) -> logging.Logger:
    """
    (Re)configure the ``gavel`` logger tree.

    Handlers installed by an earlier call are closed and replaced, so the
    last call wins.

    Args:
        level: Logging level, as an int or a name such as "debug"
        log_file: Also append plain-text records to this file

    Returns:
        The ``gavel`` logger
    """
    global _configured

    if isinstance(level, str):
        level = logging.getLevelName(level.upper())

    root = logging.getLogger(NAMESPACE)
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()

    root.setLevel(level)
    root.addHandler(_console_handler())

    if log_file is not None:
        log_file = Path(log_file)
        log_file.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(
            logging.Formatter("%(asctime)s %(levelname)s %(name)s: %(message)s")
        )
        root.addHandler(file_handler)

    _configured = True
    return root


def get_logger(name: str) -> logging.Logger:
    """Logger for one subsystem, e.g. ``get_logger("ledger")`` -> ``gavel.ledger``"""
    if not _configured:
        configure_logging()
    return logging.getLogger(f"{NAMESPACE}.{name}")
