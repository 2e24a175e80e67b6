"""
Structured logging configuration.

Configures the standard library root logger with a JSON formatter that
stamps every line with the current request context, so log lines written
by detached notifier work can still be traced back to the submission that
triggered them.
"""

import logging
import json
import sys
import traceback
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from typing import Dict, Any, Optional

from .request_context import get_request_context


@dataclass
class LogEntry:
    """Structured log entry"""
    timestamp: str
    level: str
    logger_name: str
    message: str
    request_id: Optional[str] = None
    client_ip: Optional[str] = None
    path: Optional[str] = None
    component: Optional[str] = None
    operation: Optional[str] = None
    duration_ms: Optional[float] = None
    status_code: Optional[int] = None
    extra: Optional[Dict[str, Any]] = None

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization"""
        result = asdict(self)
        # Remove None values to reduce log size
        return {k: v for k, v in result.items() if v is not None}


_RESERVED_ATTRS = {
    'name', 'msg', 'args', 'levelname', 'levelno', 'pathname',
    'filename', 'module', 'lineno', 'funcName', 'created',
    'msecs', 'relativeCreated', 'thread', 'threadName',
    'processName', 'process', 'getMessage', 'exc_info',
    'exc_text', 'stack_info', 'message', 'taskName'
}


class StructuredFormatter(logging.Formatter):
    """JSON formatter for structured logging"""

    def __init__(self, include_extra: bool = True):
        super().__init__()
        self.include_extra = include_extra

    def format(self, record: logging.LogRecord) -> str:
        """Format log record as JSON"""
        context = get_request_context()

        extra = {}
        if self.include_extra:
            extra = {
                key: value for key, value in record.__dict__.items()
                if key not in _RESERVED_ATTRS
            }

        if record.exc_info:
            extra['exception'] = {
                'type': record.exc_info[0].__name__,
                'message': str(record.exc_info[1]),
                'traceback': traceback.format_exception(*record.exc_info)
            }

        # explicit extra={"request_id": ...} wins over the ambient context
        request_id = extra.pop('request_id', None) or context.get('request_id')

        log_entry = LogEntry(
            timestamp=datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            level=record.levelname,
            logger_name=record.name,
            message=record.getMessage(),
            request_id=request_id,
            client_ip=context.get('client_ip'),
            path=extra.pop('path', None) or context.get('path'),
            component=extra.pop('component', None),
            operation=extra.pop('operation', None),
            duration_ms=extra.pop('duration_ms', None),
            status_code=extra.pop('status_code', None),
            extra=extra if extra else None
        )

        return json.dumps(log_entry.to_dict(), ensure_ascii=False, default=str)


def setup_logging(log_level: str = "INFO", json_output: bool = True) -> None:
    """Install a single stdout handler on the root logger."""
    root_logger = logging.getLogger()
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for handler in list(root_logger.handlers):
        root_logger.removeHandler(handler)

    handler = logging.StreamHandler(sys.stdout)
    if json_output:
        handler.setFormatter(StructuredFormatter())
    else:
        handler.setFormatter(logging.Formatter("%(asctime)s - %(name)s - %(levelname)s - %(message)s"))
    root_logger.addHandler(handler)

    # Reduce noise from chatty libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("pymongo").setLevel(logging.WARNING)
    logging.getLogger("google").setLevel(logging.WARNING)


def mask_token(token: Optional[str], visible: int = 20) -> str:
    """Truncate a device token for log output."""
    if not token:
        return "<none>"
    return token[:visible] + "..." if len(token) > visible else token
