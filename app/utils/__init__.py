"""
Logging helpers shared across the application.

Usage:
    from app.utils import get_logger

    log = get_logger(__name__)
"""
import logging
import logging.config

from app.core import config

_configured = False

# Third-party loggers that are too chatty at INFO
QUIET_LOGGERS = [
    "aiosqlite",
    "sqlalchemy.engine",
    "httpx",
    "httpcore",
]


def configure_logging(level: str | None = None) -> None:
    """Configure root logging once, using LOG_LEVEL from config by default."""
    global _configured
    effective_level = (level or config.LOG_LEVEL).upper()

    logging_config = {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {
                "format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "level": effective_level,
                "formatter": "default",
                "stream": "ext://sys.stdout",
            },
        },
        "root": {
            "level": effective_level,
            "handlers": ["console"],
        },
        "loggers": {
            name: {"level": "WARNING", "handlers": ["console"], "propagate": False}
            for name in QUIET_LOGGERS
        },
    }
    logging.config.dictConfig(logging_config)
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Get a logger, configuring logging on first use."""
    if not _configured:
        configure_logging()
    return logging.getLogger(name)
