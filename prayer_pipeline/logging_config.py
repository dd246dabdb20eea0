"""
Structured logging for the meetings service.

Everything goes through structlog on top of stdlib logging. Production output
is one JSON object per line (python-json-logger for stdlib records, structlog's
JSONRenderer for ours); debug mode switches to structlog's console renderer.
"""
import logging
import sys
from typing import Any, Optional

import structlog
from pythonjsonlogger import jsonlogger

# Libraries that are chatty at INFO
_NOISY_LOGGERS = ("sqlalchemy.engine", "uvicorn.access", "aiosqlite", "asyncio")


def _add_service_name(service: str):
    def processor(logger, method_name, event_dict):
        event_dict.setdefault("service", service)
        return event_dict
    return processor


def setup_logging(debug: bool = False, service: str = "prayer-pipeline-meetings",
                  json_logs: Optional[bool] = None) -> None:
    """
    Configure logging once at process start (web app, init_db.py, reminder_job.py).

    Args:
        debug: DEBUG level and, unless json_logs says otherwise, console output
        service: Value of the "service" field on every event
        json_logs: Force JSON (True) or console (False) rendering
    """
    if json_logs is None:
        json_logs = not debug

    handler = logging.StreamHandler(sys.stdout)
    if json_logs:
        handler.setFormatter(jsonlogger.JsonFormatter(
            "%(asctime)s %(name)s %(levelname)s %(message)s",
            rename_fields={"asctime": "timestamp", "levelname": "level", "name": "logger"}
        ))

    root_logger = logging.getLogger()
    root_logger.setLevel(logging.DEBUG if debug else logging.INFO)
    root_logger.handlers = [handler]

    for name in _NOISY_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    renderer = structlog.processors.JSONRenderer() if json_logs else structlog.dev.ConsoleRenderer()
    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            _add_service_name(service),
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            renderer,
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(name: str) -> Any:
    """Structured logger for a module; call with __name__."""
    return structlog.get_logger(name)


def log_context(**fields):
    """
    Bind fields (group_id, meeting_id, ...) to every event logged inside the block.

    Usage:
        with log_context(meeting_id=meeting.id):
            logger.info("meeting_updated")
    """
    return structlog.contextvars.bound_contextvars(**fields)
