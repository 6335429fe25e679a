"""Logging setup for the sketchflow CLI."""

from __future__ import annotations

import logging

LOGGER_NAME = "sketchflow"


def setup_logging(verbose: bool = False) -> logging.Logger:
    """Attach a stderr handler to the package logger.

    Warnings and errors are always shown; --verbose adds debug output such
    as spawned command lines and port negotiation steps.
    """
    logger = logging.getLogger(LOGGER_NAME)
    logger.setLevel(logging.DEBUG if verbose else logging.WARNING)
    logger.handlers.clear()

    handler = logging.StreamHandler()
    handler.setFormatter(logging.Formatter(
        fmt="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    ))
    logger.addHandler(handler)
    logger.propagate = False
    return logger
