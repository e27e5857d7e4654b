"""Logging configuration."""
import datetime
import json
import logging
import sys
from typing import Any, List

import structlog
from structlog.types import Processor, EventDict

STDERR_LOG_LEVEL = "INFO"
IGNORED_LOGGERS = [
    "mcp.server.session",
    "mcp.server.stdio",
    "aiohttp",
    "asyncio"
]

def add_timestamp(_, __, event_dict: EventDict) -> EventDict:
    """Add ISO timestamp to the event dict."""
    if 'timestamp' not in event_dict:
        event_dict['timestamp'] = datetime.datetime.now(datetime.timezone.utc).isoformat()
    return event_dict

def level_filter(logger: Any, name: str, event_dict: EventDict) -> EventDict:
    """Filter log records based on level."""
    try:
        if not any(ignored in logger.name for ignored in IGNORED_LOGGERS):
            level_no = getattr(logging, event_dict.get('level', 'NOTSET').upper())
            min_level = getattr(logging, STDERR_LOG_LEVEL)
            if level_no >= min_level:
                return event_dict
        raise structlog.DropEvent
    except AttributeError:
        return event_dict

def flatten_event(_, __, event_dict: EventDict) -> EventDict:
    """Unpack dict-shaped events (``logger.info({"event": ...})``) into the event dict."""
    event = event_dict.get("event")
    if isinstance(event, dict):
        payload = dict(event)
        event_dict["event"] = payload.pop("event", "")
        for key, value in payload.items():
            event_dict.setdefault(key, value)
    return event_dict

class CompactJSONRenderer:
    """Single-line JSON renderer with minimal output."""
    def __call__(self, _: Any, __: str, event_dict: EventDict) -> str:
        items = {
            "ts": event_dict.pop("timestamp", None),
            "lvl": event_dict.pop("level", "???"),
            "msg": event_dict.pop("event", ""),
        }
        if other := dict(event_dict):
            items["data"] = other
        return json.dumps(items, separators=(',', ':'), default=str)

def configure_logging(level: str = "INFO") -> None:
    """Configure structured logging for the application.

    Everything goes to STDERR; STDOUT belongs to the MCP transport and to
    streamed workload output.
    """
    global STDERR_LOG_LEVEL
    STDERR_LOG_LEVEL = level.upper()

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stderr,
        level=getattr(logging, STDERR_LOG_LEVEL)
    )

    json_processors: List[Processor] = [
        structlog.stdlib.add_log_level,
        level_filter,
        flatten_event,
        add_timestamp,
        CompactJSONRenderer()
    ]

    console_processors: List[Processor] = [
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        flatten_event,
        structlog.processors.TimeStamper(fmt="%Y-%m-%d %H:%M:%S"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.dev.ConsoleRenderer(colors=True)
    ]

    structlog.configure(
        processors=console_processors if sys.stderr.isatty() else json_processors,
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """Get a structured logger instance."""
    return structlog.get_logger(name)
