"""
Logging configuration for the auth service.

Service and uvicorn records share one stdout handler; access lines for the
health probe are dropped.
"""

import logging
import logging.config
from typing import Any, Dict


class HealthCheckFilter(logging.Filter):
    """Drop uvicorn access records for GET /health."""

    def filter(self, record: logging.LogRecord) -> bool:
        return "GET /health" not in record.getMessage()


def get_logging_config(level: str = "INFO") -> Dict[str, Any]:
    """
    Build the dictConfig for the service.

    Args:
        level: Level for the tgauth loggers (uvicorn stays at INFO)
    """
    stdout = {"class": "logging.StreamHandler", "stream": "ext://sys.stdout"}
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {"health_check": {"()": HealthCheckFilter}},
        "formatters": {
            "default": {"format": "%(asctime)s - %(name)s - %(levelname)s - %(message)s"},
        },
        "handlers": {
            "default": {**stdout, "formatter": "default"},
            "access": {**stdout, "formatter": "default", "filters": ["health_check"]},
        },
        "loggers": {
            "uvicorn": {"handlers": ["default"], "level": "INFO", "propagate": False},
            "uvicorn.access": {"handlers": ["access"], "level": "INFO", "propagate": False},
            "tgauth": {"handlers": ["default"], "level": level, "propagate": False},
        },
    }


def configure_logging(level: str = "INFO") -> None:
    """Apply the service logging configuration."""
    logging.config.dictConfig(get_logging_config(level))
