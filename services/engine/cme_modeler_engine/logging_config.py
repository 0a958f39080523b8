"""
Logging configuration for the engine.

Every module obtains its own logger with ``logging.getLogger(__name__)``;
this sets up the handler on the package namespace once per process.
"""
from __future__ import annotations

import logging
import sys

PACKAGE_LOGGER = "cme_modeler_engine"


def setup_logging(level: int | str = logging.INFO, log_file: str | None = None) -> logging.Logger:
    logger = logging.getLogger(PACKAGE_LOGGER)
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.INFO
    logger.setLevel(level)

    # Re-running create_app in the same process must not duplicate output.
    for handler in list(logger.handlers):
        handler.close()
        logger.removeHandler(handler)

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        datefmt="%H:%M:%S",
    )

    console_handler = logging.StreamHandler(sys.stdout)
    console_handler.setLevel(level)
    console_handler.setFormatter(formatter)
    logger.addHandler(console_handler)

    if log_file:
        file_handler = logging.FileHandler(log_file, mode="w", encoding="utf-8")
        file_handler.setLevel(level)
        file_handler.setFormatter(formatter)
        logger.addHandler(file_handler)

    logger.debug("Logging initialized.")
    return logger
