"""
Core logging module.

Application logs go through Loguru; standard library loggers used by
services and repositories are intercepted and forwarded to it.
"""

import logging
import os
import sys

from loguru import logger

from shorty.core.config import settings


class InterceptHandler(logging.Handler):
    """Forward standard logging records to loguru."""

    def emit(self, record: logging.LogRecord) -> None:
        try:
            level = logger.level(record.levelname).name
        except ValueError:
            level = record.levelno

        # Find caller from where the logged message originated
        frame, depth = logging.currentframe(), 2
        while frame and frame.f_code.co_filename == logging.__file__:
            frame = frame.f_back
            depth += 1

        logger.opt(depth=depth, exception=record.exc_info).log(
            level, record.getMessage()
        )


def setup_logging():
    """
    Configure application logging using Loguru.

    Sets up a stderr sink in debug mode and a rotating file sink, JSON
    serialized unless LOG_JSON is off, then routes the standard library
    root logger through :class:`InterceptHandler`.
    """
    os.makedirs(settings.LOG_DIR, exist_ok=True)

    logger.remove()

    if settings.DEBUG:
        logger.add(
            sys.stderr,
            level=settings.LOG_LEVEL.upper(),
            format=settings.LOG_FORMAT,
            backtrace=True,
            diagnose=True,
        )

    log_file_path = os.path.join(settings.LOG_DIR, settings.LOG_FILENAME)
    file_sink_options = dict(
        level=settings.LOG_LEVEL.upper(),
        rotation=settings.LOG_ROTATION,
        retention=settings.LOG_RETENTION,
        compression="gz",
        # Redirect access lines have their own sink
        filter=lambda record: record["extra"].get("event_type") != "link_access",
    )
    if settings.LOG_JSON:
        logger.add(log_file_path, serialize=True, **file_sink_options)
    else:
        logger.add(log_file_path, format=settings.LOG_FORMAT, **file_sink_options)

    logging.basicConfig(handlers=[InterceptHandler()], level=0, force=True)

    for name in logging.root.manager.loggerDict.keys():
        logging.getLogger(name).handlers = []
        logging.getLogger(name).propagate = True

    for log_name in ["uvicorn", "uvicorn.access", "uvicorn.error", "fastapi"]:
        logging.getLogger(log_name).handlers = [InterceptHandler()]

    # SQL echo is noisy; keep it behind DB_ECHO
    if not settings.DB_ECHO:
        logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)

    return logger
