"""Logging configuration for the ``pawnledger`` logger tree."""
import json
import logging
import logging.config

from pawnledger.config import DEFAULT_LOG_LEVEL

PACKAGE_LOGGER = "pawnledger"
CONSOLE_FORMAT = "%(asctime)s | %(levelname)s | %(name)s | %(message)s"


class JsonFormatter(logging.Formatter):
    """One JSON object per record; a dict passed as ``extra={"extra": ...}`` is merged in."""

    def format(self, record):
        payload = {
            "time": self.formatTime(record, "%Y-%m-%dT%H:%M:%S"),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        if record.exc_info:
            payload["exc_info"] = self.formatException(record.exc_info)
        if isinstance(getattr(record, "extra", None), dict):
            payload.update(record.extra)
        return json.dumps(payload, default=str)


def _logging_config(level, formatter_name):
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {"format": CONSOLE_FORMAT, "datefmt": "%Y-%m-%d %H:%M:%S"},
            "json": {"()": JsonFormatter},
        },
        "handlers": {
            "default": {
                "class": "logging.StreamHandler",
                "formatter": formatter_name,
                "level": level,
            }
        },
        "loggers": {
            PACKAGE_LOGGER: {"handlers": ["default"], "level": level, "propagate": False},
        },
    }


def configure_logging(level=DEFAULT_LOG_LEVEL, json_logs=False):
    """Attach a single stream handler to the package logger, console or JSON."""
    formatter_name = "json" if json_logs else "console"
    logging.config.dictConfig(_logging_config(level.upper(), formatter_name))


def get_logger(name=None):
    return logging.getLogger(name or PACKAGE_LOGGER)


__all__ = ["configure_logging", "get_logger", "JsonFormatter"]
