"""Redirect access log sink using Loguru's queued file handlers."""

import os
from datetime import datetime, timezone
from typing import Optional

from loguru import logger

from shorty.core.config import settings

_access_logger = None
_sink_ids = []


def _is_access_record(record) -> bool:
    return record["extra"].get("event_type") == "link_access"


def setup_access_logging():
    """Attach the text and JSON access sinks once and return the bound logger."""
    global _access_logger

    if _access_logger is not None:
        return _access_logger

    os.makedirs(settings.LOG_DIR, exist_ok=True)

    _sink_ids.append(logger.add(
        os.path.join(settings.LOG_DIR, "url_access.log"),
        format="{time:YYYY-MM-DD HH:mm:ss.SSS} | {level} | IP:{extra[ip]} | Code:{extra[short_code]} | {extra[outcome]} | {message}",
        rotation=settings.LOG_ROTATION,
        retention=settings.LOG_RETENTION,
        enqueue=True,
        level="INFO",
        backtrace=False,
        diagnose=False,
        filter=_is_access_record,
    ))
    _sink_ids.append(logger.add(
        os.path.join(settings.LOG_DIR, "url_access.json"),
        serialize=True,
        enqueue=True,
        level="INFO",
        filter=_is_access_record,
    ))

    _access_logger = logger.bind(event_type="link_access")
    return _access_logger


def shutdown_access_logging() -> None:
    """Detach the access sinks, flushing their queues."""
    global _access_logger

    while _sink_ids:
        logger.remove(_sink_ids.pop())
    _access_logger = None


def log_link_access(
    short_code: str,
    ip_address: str,
    user_agent: str = "",
    outcome: Optional[str] = None,
) -> None:
    """
    Write one redirect access line.

    Args:
        short_code: The requested code
        ip_address: Client IP
        user_agent: Raw user agent
        outcome: Resolution state, when known
    """
    if not settings.ACCESS_LOG_ENABLED:
        return

    access_logger = _access_logger or setup_access_logging()
    access_logger.bind(
        ip=ip_address,
        short_code=short_code,
        user_agent=user_agent,
        outcome=outcome or "-",
        timestamp=datetime.now(timezone.utc).isoformat(),
    ).info(f"Link accessed: {short_code}")
