"""
Logging setup for command-line use.

Library modules only create loggers with ``logging.getLogger(__name__)``;
nothing is configured on import.
"""

import logging
import logging.config
from typing import Any

LOGGING_CONFIG: dict[str, Any] = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "standard": {
            "format": "%(asctime)s [%(levelname)s] %(name)s: %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
        "detailed": {
            "format": "%(asctime)s [%(levelname)s] %(name)s:%(lineno)d - %(funcName)s(): %(message)s",
            "datefmt": "%Y-%m-%d %H:%M:%S",
        },
    },
    "handlers": {
        "console": {
            "level": "INFO",
            "class": "logging.StreamHandler",
            "formatter": "standard",
            "stream": "ext://sys.stderr",
        },
    },
    "loggers": {
        "shopledger": {
            "handlers": ["console"],
            "level": "INFO",
            "propagate": False,
        },
    },
}


def setup_logging(level: str = "INFO", debug: bool = False) -> None:
    """Apply LOGGING_CONFIG with the requested level."""
    config = {
        **LOGGING_CONFIG,
        "handlers": {
            "console": {
                **LOGGING_CONFIG["handlers"]["console"],
                "level": "DEBUG" if debug else level.upper(),
                "formatter": "detailed" if debug else "standard",
            }
        },
        "loggers": {
            "shopledger": {
                **LOGGING_CONFIG["loggers"]["shopledger"],
                "level": "DEBUG" if debug else level.upper(),
            }
        },
    }
    logging.config.dictConfig(config)
