"""
Structured deployment events.

Every component logs through structlog with a dotted event name
(e.g. ``deploy.confirmed``, ``init.step_failed``) plus key/value context,
so any logging backend can consume the run as data.
"""

import logging
import os

import structlog

LOG_LEVEL_ENVVAR = "DEPLOYMENT_LOG_LEVEL"
LOG_FORMAT_ENVVAR = "DEPLOYMENT_LOG_FORMAT"

DEFAULT_LOG_LEVEL = "INFO"
JSON_FORMAT = "json"


def configure_logging(level: str = None, log_format: str = None) -> None:
    """Configures structlog for a CLI run; level and format default to the environment."""
    level = (level or os.environ.get(LOG_LEVEL_ENVVAR, DEFAULT_LOG_LEVEL)).upper()
    log_format = log_format or os.environ.get(LOG_FORMAT_ENVVAR, "console")

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.processors.add_log_level,
            structlog.processors.StackInfoRenderer(),
            structlog.dev.set_exc_info,
            structlog.processors.TimeStamper(fmt="iso"),
            (
                structlog.processors.JSONRenderer()
                if log_format == JSON_FORMAT
                else structlog.dev.ConsoleRenderer()
            ),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(logging.getLevelName(level)),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_logger(**bindings):
    return structlog.get_logger(**bindings)
