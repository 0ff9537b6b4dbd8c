"""Logging utilities for the gitops_deploy step."""

from __future__ import annotations

import logging

_LOGGER_NAME = "gitops_deploy"


def get_logger(name: str | None = None) -> logging.Logger:
    """Return a module-scoped logger under the gitops_deploy hierarchy."""
    if name and name.startswith(f"{_LOGGER_NAME}."):
        name = name[len(_LOGGER_NAME) + 1 :]
    full_name = f"{_LOGGER_NAME}.{name}" if name else _LOGGER_NAME
    return logging.getLogger(full_name)


class _StepFormatter(logging.Formatter):
    """Plain lines, with `warning:` / `error:` prefixes for problems."""

    def format(self, record: logging.LogRecord) -> str:
        message = super().format(record)
        if record.levelno >= logging.WARNING:
            return f"{record.levelname.lower()}: {message}"
        return message


def configure_logging(*, verbose: bool = False) -> logging.Logger:
    """Configure the step logger to write plain lines to stderr."""
    level = logging.DEBUG if verbose else logging.INFO
    logger = logging.getLogger(_LOGGER_NAME)
    logger.setLevel(level)
    logger.propagate = False

    # Reset handlers to avoid duplicate output when main() runs more than once.
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    stream_handler = logging.StreamHandler()
    stream_handler.setLevel(level)
    stream_handler.setFormatter(_StepFormatter("%(message)s"))
    logger.addHandler(stream_handler)

    return logger


__all__ = ["configure_logging", "get_logger"]
