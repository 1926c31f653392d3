"""
Structured logging for the listing data-access core.

Every module logs through structlog with keyword event fields. A request
ID bound with ``set_request_id`` is added to each event emitted in the
same task and forwarded to the data gateway as ``X-Request-ID``.
"""

import logging
import sys
from contextvars import ContextVar
from typing import Optional
from uuid import uuid4

import structlog

from .config import settings

_request_id: ContextVar[Optional[str]] = ContextVar("listing_request_id", default=None)

# Client libraries that log every HTTP exchange at INFO
_QUIET_LOGGERS = ("httpx", "httpcore", "hpack", "postgrest", "storage3")


def setup_logging(
    log_level: Optional[str] = None,
    service_name: Optional[str] = None,
    use_json: Optional[bool] = None,
) -> structlog.stdlib.BoundLogger:
    """
    Configure stdlib logging and structlog for the listing core.

    Arguments left as None fall back to ``LOG_LEVEL``, ``SERVICE_NAME`` and
    ``LOG_JSON`` from settings.

    Args:
        log_level: Logging level name
        service_name: Logger name returned to the caller
        use_json: Render events as JSON lines instead of console output

    Returns:
        Logger bound to the service name
    """
    level = getattr(logging, (log_level or settings.LOG_LEVEL).upper(), logging.INFO)
    as_json = settings.LOG_JSON if use_json is None else use_json

    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    logging.basicConfig(level=level, handlers=[handler], force=True)

    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _with_request_id,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer()
            if as_json
            else structlog.dev.ConsoleRenderer(colors=False),
        ],
        context_class=dict,
        wrapper_class=structlog.stdlib.BoundLogger,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    return structlog.get_logger(service_name or settings.SERVICE_NAME)


def _with_request_id(logger, method_name, event_dict):
    request_id = _request_id.get()
    if request_id:
        event_dict.setdefault("request_id", request_id)
    return event_dict


def get_logger(name: Optional[str] = None) -> structlog.stdlib.BoundLogger:
    """Module logger; pass ``__name__``."""
    return structlog.get_logger(name or settings.SERVICE_NAME)


def set_request_id(request_id: Optional[str] = None) -> str:
    """
    Bind a request ID to the current task.

    Args:
        request_id: ID to bind; a new UUID4 when omitted

    Returns:
        The bound request ID
    """
    request_id = request_id or uuid4().hex
    _request_id.set(request_id)
    return request_id


def get_request_id() -> Optional[str]:
    return _request_id.get()


def clear_request_id() -> None:
    _request_id.set(None)
