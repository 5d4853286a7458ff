from __future__ import annotations

import logging.config

from .config import settings

_CONFIGURED = False


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "formatters": {
            "default": {"format": "%(asctime)s %(name)s %(levelname)s %(message)s"},
        },
        "handlers": {
            "console": {
                "class": "logging.StreamHandler",
                "formatter": "default",
            },
        },
        "loggers": {
            "receivables": {
                "handlers": ["console"],
                "level": level.upper(),
                "propagate": False,
            },
        },
    }


def configure_logging(level: str | None = None) -> None:
    """Attach the console handler to the ``receivables`` logger once per process."""
    global _CONFIGURED
    if _CONFIGURED:
        return
    logging.config.dictConfig(build_logging_config(level or settings.log_level))
    _CONFIGURED = True
