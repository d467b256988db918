"""
Centralized logging configuration.

Sets up:
- Console handler (LOG_LEVEL_CONSOLE, INFO by default)
- Rotating file handler for app.log (INFO level)
- Separate file handler for errors.log (ERROR level)
- Rotating transcriber.log holding the tool's stdout/stderr (DEBUG level)
"""

import logging
import logging.config
import os

from configs.config import get_config

cfg = get_config()

RUNNER_LOGGER = "anyscribe.transcription.runner"


def _rotating(filename: str, level: str) -> dict:
    return {
        "class": "logging.handlers.RotatingFileHandler",
        "level": level,
        "formatter": "default",
        "filename": os.path.join(cfg.LOG_DIR, filename),
        "maxBytes": cfg.LOG_MAX_BYTES,
        "backupCount": cfg.LOG_BACKUP_COUNT,
        "encoding": "utf8",
    }


def setup_logging() -> None:
    """Configure logging once at application startup."""
    os.makedirs(cfg.LOG_DIR, exist_ok=True)

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": cfg.LOG_LEVEL_CONSOLE,
                "formatter": "default",
            },
            "app_log_handler": _rotating(cfg.LOG_FILE_APP, "INFO"),
            "transcriber_log_handler": _rotating(cfg.LOG_FILE_TRANSCRIBER, "DEBUG"),
            "error_log_handler": {
                "class": "logging.FileHandler",
                "level": "ERROR",
                "formatter": "default",
                "filename": os.path.join(cfg.LOG_DIR, cfg.LOG_FILE_ERRORS),
                "encoding": "utf8",
            },
        },
        "loggers": {
            # Tool output lines are logged at DEBUG and land only here
            RUNNER_LOGGER: {
                "level": "DEBUG",
                "handlers": ["transcriber_log_handler"],
                "propagate": True,
            },
            "anyscribe": {"level": "DEBUG"},
            # Form parser logs every chunk at DEBUG
            "multipart": {"level": "INFO"},
            "python_multipart": {"level": "INFO"},
        },
        "root": {
            "level": "INFO",
            "handlers": ["console", "app_log_handler", "error_log_handler"],
        },
    }

    logging.config.dictConfig(logging_config)
    logging.info("Logging configured successfully.")
