from __future__ import annotations

import logging.config
import os


def configure_logging() -> None:
    """Configure process logging.

    STOREFRONT_LOG_LEVEL (default INFO) and STOREFRONT_LOG_FORMAT (text or json).
    """

    level = os.getenv("STOREFRONT_LOG_LEVEL", "INFO").strip().upper()
    log_format = os.getenv("STOREFRONT_LOG_FORMAT", "text").strip().lower()
    formatter = "json" if log_format == "json" else "verbose"

    logging.config.dictConfig(
        {
            "version": 1,
            "disable_existing_loggers": False,
            "formatters": {
                "verbose": {
                    "format": "{levelname} {asctime} {name} {message}",
                    "style": "{",
                },
                "json": {
                    "()": "pythonjsonlogger.json.JsonFormatter",
                    "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
                },
            },
            "handlers": {
                "console": {
                    "class": "logging.StreamHandler",
                    "formatter": formatter,
                },
            },
            "root": {
                "handlers": ["console"],
                "level": "WARNING",
            },
            "loggers": {
                "services": {"level": level},
            },
        }
    )
