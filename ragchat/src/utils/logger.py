"""
RagChat - Logging
==================
One stdout handler is installed on the ``ragchat`` package logger; every
module logger (``ragchat.src.core.rag_engine`` …) is a child of it and
inherits that handler, so each record is written exactly once.

Level resolution:
  • ``settings.LOG_LEVEL`` when set
  • otherwise ``settings.ENV``: ``"dev"`` → DEBUG, ``"prod"`` → WARNING

Messages carry the component that emitted them (``[EMBED]``, ``[INDEX]``,
``[CACHE]``, ``[RAG]``, ``[STORE]``, ``[LLM]``, ``[API]``), so a request
can be followed through the pipeline by grepping its user/session ids.

Usage:
    from ragchat.src.utils.logger import get_logger
    logger = get_logger(__name__)
    logger.info("[RAG] Something happened")
"""

import logging
import sys

from ragchat.config.settings import settings

ROOT_LOGGER_NAME = "ragchat"

_LOG_FORMAT = "%(asctime)s | %(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"


def _resolve_level() -> int:
    if settings.LOG_LEVEL is not None:
        return logging.getLevelName(settings.LOG_LEVEL)
    return logging.DEBUG if settings.ENV == "dev" else logging.WARNING


def _attach_handler(logger: logging.Logger, level: int) -> None:
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter(fmt=_LOG_FORMAT, datefmt=_DATE_FORMAT))
    logger.addHandler(handler)
    logger.setLevel(level)
    logger.propagate = False


def get_logger(name: str, level: int | None = None) -> logging.Logger:
    """
    Return a logger that writes through the shared ``ragchat`` handler.

    Args:
        name:  Typically ``__name__`` of the calling module.
        level: Explicit level for this logger only; the package default
               comes from settings.

    Returns:
        A ``logging.Logger``.  Names outside the ``ragchat`` package
        (e.g. ``__main__``) get their own handler.
    """
    root = logging.getLogger(ROOT_LOGGER_NAME)
    if not root.handlers:
        _attach_handler(root, _resolve_level())

    logger = logging.getLogger(name)
    in_package = name == ROOT_LOGGER_NAME or name.startswith(ROOT_LOGGER_NAME + ".")
    if not in_package and not logger.handlers:
        _attach_handler(logger, root.level)

    if level is not None:
        logger.setLevel(level)
    return logger
