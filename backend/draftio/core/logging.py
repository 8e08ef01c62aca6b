"""
Structured logging for the chat service and the chat client.

Every record carries the request id of the HTTP request being served and
the chat user the work is done for, when either is known. A relay
connection binds its url once with bind() instead of repeating it on
every call.

Production (APP_ENV=production) emits one JSON object per line; anything
else gets a compact human-readable line.
"""
import json
import logging
import time
import uuid
from contextvars import ContextVar
from functools import wraps
from typing import Any, Dict, Optional

from draftio.core.config import settings

request_id_var: ContextVar[Optional[str]] = ContextVar('request_id', default=None)
request_start_var: ContextVar[Optional[float]] = ContextVar('request_start', default=None)
# Chat user of the current HTTP request, socket event or client session
user_id_var: ContextVar[Optional[str]] = ContextVar('user_id', default=None)


def get_request_id() -> Optional[str]:
    return request_id_var.get()


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


def set_log_user(user_id: Optional[str]) -> None:
    """Tag records emitted from the current context with a chat user id."""
    user_id_var.set(user_id)


class StructuredLogger:
    def __init__(self, name: str, **bound: Any):
        self.logger = logging.getLogger(name)
        self.name = name
        self.bound = bound

    def bind(self, **fields: Any) -> "StructuredLogger":
        """Child logger that adds `fields` to the context of every record."""
        return StructuredLogger(self.name, **{**self.bound, **fields})

    def record(
        self,
        level: str,
        message: str,
        extra: Optional[Dict[str, Any]] = None,
        error: Optional[BaseException] = None,
    ) -> Dict[str, Any]:
        record: Dict[str, Any] = {
            'timestamp': time.strftime('%Y-%m-%dT%H:%M:%S%z'),
            'level': level,
            'logger': self.name,
            'message': message,
            'env': settings.APP_ENV,
        }
        request_id = get_request_id()
        if request_id:
            record['request_id'] = request_id
        user_id = user_id_var.get()
        if user_id:
            record['user_id'] = user_id

        context = {**self.bound, **(extra or {})}
        if context:
            record['context'] = context
        if error is not None:
            record['error'] = {'type': type(error).__name__, 'message': str(error)}
        return record

    def render(self, record: Dict[str, Any]) -> str:
        if settings.APP_ENV == 'production':
            return json.dumps(record, default=str)

        line = f"[{record.get('request_id', '-')}] [{record.get('user_id', '-')}] {record['message']}"
        if 'context' in record:
            fields = ' '.join(f"{k}={v}" for k, v in record['context'].items())
            line = f"{line} | {fields}"
        if 'error' in record:
            line = f"{line} | error={record['error']['type']}: {record['error']['message']}"
        return line

    def _log(self, level: int, message: str, extra: Dict[str, Any], error=None, exc_info: bool = False):
        if not self.logger.isEnabledFor(level):
            return
        record = self.record(logging.getLevelName(level), message, extra, error)
        self.logger.log(level, self.render(record), exc_info=exc_info)

    def debug(self, message: str, **extra):
        self._log(logging.DEBUG, message, extra)

    def info(self, message: str, **extra):
        self._log(logging.INFO, message, extra)

    def warning(self, message: str, **extra):
        self._log(logging.WARNING, message, extra)

    def error(self, message: str, error: Optional[BaseException] = None, **extra):
        self._log(logging.ERROR, message, extra, error=error)

    def exception(self, message: str, error: Optional[BaseException] = None, **extra):
        """Like error(), with the active traceback attached."""
        self._log(logging.ERROR, message, extra, error=error, exc_info=True)


def get_logger(name: str = 'draftio') -> StructuredLogger:
    return StructuredLogger(name)


api_logger = get_logger('draftio.api')
relay_logger = get_logger('draftio.relay')
chat_logger = get_logger('draftio.chat')
notifications_logger = get_logger('draftio.notifications')


def log_operation(operation: str, logger: Optional[StructuredLogger] = None):
    """
    Time a coroutine function, logging completion or failure.

        @log_operation("send_message", chat_logger)
        async def send_message(...):
            ...
    """
    log = logger or api_logger

    def decorator(func):
        @wraps(func)
        async def wrapper(*args, **kwargs):
            start = time.monotonic()
            log.debug(f"{operation} started")
            try:
                result = await func(*args, **kwargs)
            except Exception as e:
                log.error(f"{operation} failed", error=e, duration_ms=_elapsed_ms(start))
                raise
            log.info(f"{operation} completed", duration_ms=_elapsed_ms(start))
            return result

        return wrapper

    return decorator


def _elapsed_ms(start: float) -> float:
    return round((time.monotonic() - start) * 1000, 2)
