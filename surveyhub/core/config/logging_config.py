import logging
import logging.config
import os

from surveyhub.core.config.settings import get_settings

APP_LOGGER = "surveyhub"


def _rotating(path: str, settings, level: str = "NOTSET") -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "formatter": "json",
        "filename": path,
        "maxBytes": settings.LOG_MAX_BYTES,
        "backupCount": settings.LOG_BACKUP_COUNT,
        "level": level,
    }


def build_logging_config(settings) -> dict:
    """
    dictConfig for the service.

    ``surveyhub.*`` records go to stdout, to ``surveyhub.log`` as JSON lines
    and, from ERROR up, to ``surveyhub-errors.log``. They do not propagate,
    so third-party records reaching the root logger are written once to
    stdout and ``surveyhub.log`` without being duplicated by ours.
    """
    log_dir = settings.LOG_DIR
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "console": {
                "format": "%(asctime)s %(levelname)-8s %(name)s: %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "json": {
                "()": "pythonjsonlogger.jsonlogger.JsonFormatter",
                "format": "%(asctime)s %(name)s %(levelname)s %(message)s",
            },
        },
        "handlers": {
            "stdout": {
                "class": "logging.StreamHandler",
                "formatter": "console",
                "stream": "ext://sys.stdout",
            },
            "app_file": _rotating(os.path.join(log_dir, "surveyhub.log"), settings),
            "error_file": _rotating(os.path.join(log_dir, "surveyhub-errors.log"), settings, "ERROR"),
        },
        "root": {
            "handlers": ["stdout", "app_file"],
            "level": "WARNING",
        },
        "loggers": {
            APP_LOGGER: {
                "handlers": ["stdout", "app_file", "error_file"],
                "level": settings.LOG_LEVEL,
                "propagate": False,
            },
            "uvicorn.access": {
                "level": "INFO",
            },
        },
    }


def setup_logging() -> logging.Logger:
    settings = get_settings()
    os.makedirs(settings.LOG_DIR, exist_ok=True)
    logging.config.dictConfig(build_logging_config(settings))
    return logging.getLogger(APP_LOGGER)
