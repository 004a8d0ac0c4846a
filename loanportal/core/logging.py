import json
import logging
import logging.config
from datetime import datetime, timezone
from typing import Any, Optional

from loanportal.core.context import get_request_id, get_user_id
from loanportal.core.settings import settings

# Every stream writes JSON lines to stdout; "stream" tells them apart downstream.
STREAM_LOGGERS = {
    "audit": "loanportal.audit",
    "activity": "loanportal.activity",
    "system": "loanportal.system",
}

_RECORD_ATTRS = set(vars(logging.makeLogRecord({}))) | {"message", "asctime", "stream"}


class RequestContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = get_request_id()
        record.user_id = get_user_id()
        return True


class JsonFormatter(logging.Formatter):
    """One JSON object per record; ``extra=`` fields become top-level keys."""

    def __init__(self, stream_label: str = "app") -> None:
        super().__init__()
        self.stream_label = stream_label

    def format(self, record: logging.LogRecord) -> str:
        payload: dict[str, Any] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "stream": self.stream_label,
            "logger": record.name,
            "message": record.getMessage(),
            "request_id": getattr(record, "request_id", "-"),
            "user_id": getattr(record, "user_id", "-"),
        }
        payload.update(
            (key, value) for key, value in record.__dict__.items() if key not in _RECORD_ATTRS and key not in payload
        )
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(payload, default=str)


def _handler(stream: str, level: str) -> dict:
    return {
        "class": "logging.StreamHandler",
        "level": level,
        "formatter": stream,
        "filters": ["request_context"],
        "stream": "ext://sys.stdout",
    }


def configure_logging(level: Optional[str] = None) -> None:
    log_level = (level or settings.log_level).upper()
    streams = ["app", *STREAM_LOGGERS]
    loggers: dict[str, dict] = {
        name: {"handlers": [stream], "level": log_level, "propagate": False}
        for stream, name in STREAM_LOGGERS.items()
    }
    loggers[""] = {"handlers": ["app"], "level": log_level, "propagate": False}
    for name in ("uvicorn", "uvicorn.error", "uvicorn.access"):
        loggers[name] = {"handlers": ["app"], "level": log_level, "propagate": False}
    loggers["sqlalchemy.engine"] = {"handlers": ["app"], "level": "WARNING", "propagate": False}

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "filters": {"request_context": {"()": RequestContextFilter}},
            "formatters": {stream: {"()": JsonFormatter, "stream_label": stream} for stream in streams},
            "handlers": {stream: _handler(stream, log_level) for stream in streams},
            "loggers": loggers,
        }
    )
    logging.getLogger(__name__).info("Logging configured for environment=%s", settings.environment)


def get_stream_logger(stream: str) -> logging.Logger:
    return logging.getLogger(STREAM_LOGGERS[stream])
