"""
Handler configuration factories for logging.dictConfig.

Each function returns a plain handler dict; builder.py decides which of them
are wired in (console always; files only when LOG_TO_STDOUT is off and
LOG_DIR is set, otherwise an error-only console stream).
"""

from pathlib import Path

from ...config.settings import Settings

_FILTERS = ["request_id", "redact"]


def _formatter_name(settings: Settings) -> str:
    return "json" if settings.LOG_FORMAT == "json" else "standard"


def _stream(formatter: str, level: str) -> dict:
    return {"class": "logging.StreamHandler", "formatter": formatter, "level": level, "filters": list(_FILTERS)}


def _rotating(settings: Settings, filename: str, formatter: str, level: str) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "filename": str(Path(settings.LOG_DIR) / filename),
        "maxBytes": settings.LOG_MAX_BYTES,
        "backupCount": settings.LOG_BACKUP_COUNT,
        "encoding": "utf-8",
        "formatter": formatter,
        "level": level,
        "filters": list(_FILTERS),
    }


def get_console_handler(settings: Settings) -> dict:
    return _stream(_formatter_name(settings), settings.LOG_LEVEL)


def get_file_handler(settings: Settings) -> dict:
    return _rotating(settings, "app.log", _formatter_name(settings), settings.LOG_LEVEL)


def get_error_file_handler(settings: Settings) -> dict:
    """ERROR and above, always JSON, in a separate rotating file for alerting."""
    return _rotating(settings, "errors.log", "json", "ERROR")


def get_error_console_handler(settings: Settings) -> dict:
    return _stream("json", "ERROR")
