"""
Logging setup.

`setup_logging(settings)` applies a dictConfig built from settings and, when
LOG_USE_QUEUE is on, moves the real handlers behind a QueueListener thread so
request handlers only pay for an enqueue.

Queue knobs:
 - LOG_QUEUE_MAX_SIZE: > 0 bounds the queue, 0 leaves it unbounded
 - LOG_QUEUE_BLOCKING: with a bounded queue, block producers (True) or drop records (False)
 - LOG_QUEUE_DROP_WARNING_THRESHOLD: warn every N dropped records

Call `stop_queue_logging()` on shutdown to flush the listener.
"""

import logging
import logging.config
import queue as _queue
import threading
from logging.handlers import QueueHandler, QueueListener
from pathlib import Path

from ...config.settings import Settings
from ...utils.logging import get_project_name
from .filters import RedactFilter, RequestIdFilter
from .formatters import ColorFormatter, JsonFormatter
from .handlers import (
    get_console_handler,
    get_error_console_handler,
    get_error_file_handler,
    get_file_handler,
)

logger = logging.getLogger(__name__)

_QUEUE_LISTENER: QueueListener | None = None
_QUEUE: _queue.Queue | None = None

_DROPPED_LOGS_COUNT = 0
_DROPPED_LOGS_LOCK = threading.Lock()
_DROP_WARNING_THRESHOLD = 100


class NonBlockingQueueHandler(QueueHandler):
    """
    QueueHandler that drops records instead of blocking when a bounded queue is full.

    Drops are counted (see get_queue_stats()) and a warning is enqueued every
    LOG_QUEUE_DROP_WARNING_THRESHOLD drops, once the queue has room again.
    """

    def emit(self, record: logging.LogRecord) -> None:
        global _DROPPED_LOGS_COUNT
        try:
            self.queue.put_nowait(self.prepare(record))
        except _queue.Full:
            with _DROPPED_LOGS_LOCK:
                _DROPPED_LOGS_COUNT += 1
                dropped = _DROPPED_LOGS_COUNT
            if _DROP_WARNING_THRESHOLD and dropped % _DROP_WARNING_THRESHOLD == 0:
                self._warn_dropped(dropped)

    def _warn_dropped(self, dropped: int) -> None:
        warning = logging.LogRecord(
            __name__, logging.WARNING, __file__, 0,
            "logging.queue.dropped %d records because the queue was full", (dropped,), None,
        )
        try:
            self.queue.put_nowait(self.prepare(warning))
        except _queue.Full:
            pass  # still full; the counter keeps the total


def get_queue_stats() -> dict:
    with _DROPPED_LOGS_LOCK:
        return {"dropped_logs": _DROPPED_LOGS_COUNT, "queue_present": _QUEUE is not None}


def make_dict_config(settings: Settings) -> dict:
    """
    Build the dictConfig mapping:
      - formatters: "standard" (ColorFormatter for LOG_FORMAT=text) and "json"
      - filters: "request_id", "redact"
      - handlers: console + (file, error_file) or error_console
      - loggers: root, uvicorn.error, uvicorn.access, sqlalchemy.engine, httpx
    """
    formatters = {
        "standard": {
            "()": ColorFormatter if settings.LOG_FORMAT == "text" else logging.Formatter,
            "format": "%(asctime)s | %(levelname)s | %(name)s | %(request_id)s | %(message)s",
        },
        "json": {
            "()": JsonFormatter,
            "env": settings.ENV,
            "service": get_project_name(),
        },
    }

    filters = {
        "request_id": {"()": RequestIdFilter},
        "redact": {"()": RedactFilter},
    }

    handlers: dict[str, dict] = {"console": get_console_handler(settings)}
    if (not settings.LOG_TO_STDOUT) and settings.LOG_DIR:
        handlers["file"] = get_file_handler(settings)
        handlers["error_file"] = get_error_file_handler(settings)
    else:
        handlers["error_console"] = get_error_console_handler(settings)

    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": formatters,
        "filters": filters,
        "handlers": handlers,
        "loggers": {
            "": {
                "handlers": list(handlers.keys()),
                "level": settings.LOG_LEVEL,
                "propagate": True,
            },
            "uvicorn.error": {
                "level": settings.LOG_LEVEL,
                "handlers": list(handlers.keys()),
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
                "handlers": ["console"],
                "propagate": False,
            },
            # SQL statements may contain document bodies; keep them off by default
            "sqlalchemy.engine": {
                "level": "DEBUG" if settings.ENABLE_SQL_LOGGING else "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
            # httpx logs every request URL at INFO
            "httpx": {
                "level": "WARNING",
                "handlers": ["console"],
                "propagate": False,
            },
        },
    }


def setup_logging(settings: Settings) -> None:
    """
    Install logging from `settings`.

    With LOG_USE_QUEUE the handlers created by dictConfig are detached from all
    loggers and handed to a QueueListener; the root logger gets a QueueHandler
    carrying the request-id and redaction filters so both run in the producing
    task (where the request contextvar is set).
    """
    global _QUEUE_LISTENER, _QUEUE, _DROP_WARNING_THRESHOLD

    stop_queue_logging()

    if (not settings.LOG_TO_STDOUT) and settings.LOG_DIR:
        Path(settings.LOG_DIR).mkdir(parents=True, exist_ok=True)

    logging.config.dictConfig(make_dict_config(settings))
    root_logger = logging.getLogger()
    root_logger.addFilter(RequestIdFilter())

    if not getattr(settings, "LOG_USE_QUEUE", False):
        return

    max_size = getattr(settings, "LOG_QUEUE_MAX_SIZE", 0) or 0
    blocking = bool(getattr(settings, "LOG_QUEUE_BLOCKING", False))
    _DROP_WARNING_THRESHOLD = int(getattr(settings, "LOG_QUEUE_DROP_WARNING_THRESHOLD", 100))

    real_handlers = list(root_logger.handlers)
    if not real_handlers:
        return

    to_move = set(real_handlers)
    for logger_obj in list(logging.Logger.manager.loggerDict.values()):
        if isinstance(logger_obj, logging.Logger):
            for h in list(logger_obj.handlers):
                if h in to_move:
                    logger_obj.removeHandler(h)
    for h in real_handlers:
        root_logger.removeHandler(h)

    log_queue: _queue.Queue = _queue.Queue(max_size) if max_size > 0 else _queue.Queue()
    handler_cls = NonBlockingQueueHandler if (max_size > 0 and not blocking) else QueueHandler

    listener = QueueListener(log_queue, *real_handlers, respect_handler_level=True)
    listener.start()

    queue_handler = handler_cls(log_queue)
    queue_handler.addFilter(RequestIdFilter())
    queue_handler.addFilter(RedactFilter())
    root_logger.addHandler(queue_handler)

    _QUEUE_LISTENER = listener
    _QUEUE = log_queue
    logger.debug("logging.queue.started", extra={"max_size": max_size, "blocking": blocking})


def stop_queue_logging() -> None:
    """Stop the QueueListener (flushing pending records) and clear module state."""
    global _QUEUE_LISTENER, _QUEUE
    listener = _QUEUE_LISTENER
    if listener is None:
        return
    try:
        listener.stop()
    finally:
        _QUEUE_LISTENER = None
        _QUEUE = None
