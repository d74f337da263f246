import logging
import logging.config
from typing import Any

from pythonjsonlogger.json import JsonFormatter

from selfecho.environment import EnvironmentName
from settings import settings

JSON_FORMAT = (
    "%(module)s %(asctime)s %(levelname)s %(process)d %(taskName)s %(name)s "
    "%(funcName)s %(filename)s %(lineno)d %(message)s"
)
SERVICE_NAME = "selfecho"
QUIET_LOGGERS = ["aioimaplib", "asyncio", "sqlalchemy.engine", "uvicorn.access"]

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "jsonFormat": {
            "format": JSON_FORMAT,
            "class": "logging_config.CustomJsonFormatter",
        },
    },
    "handlers": {
        "jsonStreamHandler": {
            "formatter": "jsonFormat",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",  # Default is stderr
        },
    },
    "loggers": {
        "": {"handlers": ["jsonStreamHandler"], "level": settings.logging.level, "propagate": False},
        **{
            name: {"handlers": ["jsonStreamHandler"], "level": logging.WARNING, "propagate": False}
            for name in QUIET_LOGGERS
        },
    },
}
LOCAL_LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {"format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s"},
    },
    "handlers": {
        "default": {
            "formatter": "standard",
            "class": "logging.StreamHandler",
            "stream": "ext://sys.stdout",  # Default is stderr
        },
    },
    "loggers": {
        "": {"handlers": ["default"], "level": settings.logging.level, "propagate": False},
        **{name: {"handlers": ["default"], "level": logging.WARNING, "propagate": False} for name in QUIET_LOGGERS},
    },
}


# Stamps every record with the service and environment; account_id and uid arrive via ``extra``.
class CustomJsonFormatter(JsonFormatter):
    def __init__(self, *args: Any, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self._app_env = settings.environment
        self._indent = self._app_env == EnvironmentName.DEVELOPMENT and settings.logging.use_pretty_json
        if self._indent:
            self.json_indent = 2

    def add_fields(self, log_record: dict[str, Any], record: logging.LogRecord, message_dict: dict[str, Any]) -> None:
        super().add_fields(log_record, record, message_dict)
        log_record["service"] = SERVICE_NAME
        log_record["environment"] = self._app_env.value

    def format(self, record: logging.LogRecord) -> str:
        result = super().format(record)
        if self._indent:
            result = result.replace("\\n", "\n\t\t")
        return result


def setup_logging() -> None:
    """Setup root logger using our logging config."""
    if settings.logging.use_json is True:
        logging.config.dictConfig(LOGGING_CONFIG)
    else:
        logging.config.dictConfig(LOCAL_LOGGING_CONFIG)
    logging.captureWarnings(True)
    logging.disable(logging.NOTSET)
