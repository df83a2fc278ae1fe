from __future__ import annotations

import logging
from logging.config import dictConfig


class AssignmentContextFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        if not hasattr(record, "assignment_id"):
            record.assignment_id = "-"
        return True


def build_logging_config(level: str) -> dict:
    return {
        "version": 1,
        "disable_existing_loggers": False,
        "filters": {
            "assignment_context": {"()": AssignmentContextFilter},
        },
        "formatters": {
            "default": {
                "format": "%(levelname)s %(asctime)s [%(name)s] [assignment=%(assignment_id)s] %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
            "detailed": {
                "format": "%(levelname)s %(asctime)s [%(name)s] [%(module)s:%(lineno)d] - %(message)s",
                "datefmt": "%Y-%m-%d %H:%M:%S",
            },
        },
        "handlers": {
            "default": {
                "formatter": "default",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stdout",
                "filters": ["assignment_context"],
            },
            "error": {
                "formatter": "detailed",
                "class": "logging.StreamHandler",
                "stream": "ext://sys.stderr",
                "level": "ERROR",
            },
        },
        "loggers": {
            "app": {
                "handlers": ["default", "error"],
                "level": level.upper(),
                "propagate": False,
            },
        },
    }


def configure_logging(level: str = "INFO") -> None:
    dictConfig(build_logging_config(level))
