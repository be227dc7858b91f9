import json
import logging
import sys

from courtbook.config import get_settings

LOCAL_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"

# Chatty on every request or statement
QUIET_LOGGERS = ("uvicorn.access", "sqlalchemy.engine")


class JsonFormatter(logging.Formatter):
    """One JSON object per line, used outside local development."""

    def format(self, record: logging.LogRecord) -> str:
        payload = {
            "timestamp": self.formatTime(record),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exception"] = self.formatException(record.exc_info)
        return json.dumps(payload)


def configure_logging() -> None:
    settings = get_settings()
    level = logging.getLevelName(settings.LOG_LEVEL.upper())
    if not isinstance(level, int):
        level = logging.INFO

    handler = logging.StreamHandler(sys.stdout)
    if settings.ENVIRONMENT == "local":
        handler.setFormatter(logging.Formatter(LOCAL_FORMAT))
    else:
        handler.setFormatter(JsonFormatter())

    root = logging.getLogger()
    root.handlers[:] = [handler]
    root.setLevel(level)

    for name in QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)


def get_logger(name: str) -> logging.Logger:
    return logging.getLogger(name)
