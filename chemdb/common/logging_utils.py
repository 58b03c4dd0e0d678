"""Logging configuration and error reporting helpers."""

from __future__ import annotations

import logging

from chemdb.common.errors import ChemDBError

DEFAULT_LOGGER_NAME = "chemdb"
DEFAULT_LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def level_for_print_level(print_level: int) -> int:
    if print_level <= 0:
        return logging.WARNING
    if print_level == 1:
        return logging.INFO
    return logging.DEBUG


def configure_logging(
    print_level: int = 1,
    *,
    logger_name: str = DEFAULT_LOGGER_NAME,
    fmt: str = DEFAULT_LOG_FORMAT,
    force: bool = False,
) -> logging.Logger:
    level = level_for_print_level(print_level)
    logging.basicConfig(level=level, format=fmt, force=force)
    logger = logging.getLogger(logger_name)
    logger.setLevel(level)
    return logger


def get_user_message(exc: BaseException) -> str:
    if isinstance(exc, ChemDBError):
        return f"[{exc.code}] {exc.message}"
    return f"Unexpected error: {exc}"


def log_exception(
    logger: logging.Logger,
    exc: BaseException,
    *,
    show_traceback: bool = False,
) -> str:
    user_message = get_user_message(exc)
    logger.error(user_message)
    if show_traceback:
        logger.error("Detailed traceback:", exc_info=exc)
    else:
        logger.debug("Detailed traceback:", exc_info=exc)
    return user_message
