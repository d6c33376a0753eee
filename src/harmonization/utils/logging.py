"""loguru setup shared by the pipeline, orchestration and CLI.

Every log record carries ``run_id`` and ``step`` extras. Orchestration binds
the run id for a whole run and the pipeline binds the step name per stage via
:func:`logging_context`.
"""

from __future__ import annotations

import sys
from contextlib import contextmanager
from time import perf_counter
from typing import Any, Iterator

from loguru import logger

from ..config.settings import Settings, get_settings

_DEFAULT_EXTRA = {"run_id": "-", "step": "-"}

_CONSOLE_FORMAT = (
    "<green>{time:HH:mm:ss.SSS}</green> | "
    "<level>{level: <8}</level> | "
    "<magenta>{extra[step]}</magenta> | "
    "{message}"
)
_FILE_FORMAT = (
    "{time:YYYY-MM-DD HH:mm:ss.SSS} | {level: <8} | {extra[run_id]} | "
    "{extra[step]} | {name}:{line} | {message} | {extra}"
)

logger.configure(extra=_DEFAULT_EXTRA)


def configure_logging(settings: Settings | None = None, level: str = "INFO") -> None:
    """Send logs to stderr and, when directories may be created, to the run log.

    The file sink rotates under ``paths.logs_dir`` and keeps the structured
    extras of every record.
    """

    cfg = settings or get_settings()
    logger.remove()
    logger.add(
        sys.stderr,
        level=level,
        format=_CONSOLE_FORMAT,
        backtrace=False,
        diagnose=False,
    )
    if cfg.create_dirs:
        log_path = cfg.log_file
        log_path.parent.mkdir(parents=True, exist_ok=True)
        logger.add(
            log_path,
            level=level,
            format=_FILE_FORMAT,
            rotation="10 MB",
            retention="14 days",
            enqueue=True,
        )
    logger.configure(extra=_DEFAULT_EXTRA)


def get_logger(**context: Any):
    """Return a logger bound to *context* (typically ``module=__name__``)."""

    return logger.bind(**context)


@contextmanager
def logging_context(**context: Any):
    with logger.contextualize(**context):
        yield logger


@contextmanager
def log_timing(step: str, *, logger_=logger) -> Iterator[None]:
    """Log the wall time of the wrapped block at debug level."""

    start = perf_counter()
    try:
        yield
    finally:
        logger_.debug("Step timing", step=step, seconds=round(perf_counter() - start, 6))


__all__ = ["configure_logging", "get_logger", "logging_context", "log_timing"]
