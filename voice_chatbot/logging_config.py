#!/usr/bin/env python3
"""
Structured Logging Configuration

Configures structlog on top of the standard logging module: ISO timestamps,
log level, logger name, and either JSON or colorized console rendering.
"""

import logging
import os
import sys

import structlog
from structlog import dev as structlog_dev


def add_service_context(logger, method_name, event_dict):
    """Tag every record with the service and the emitting component."""
    event_dict['service'] = 'voice-chatbot'
    component = event_dict.get('logger')
    if not component:
        component = getattr(getattr(logger, 'logger', None), 'name', None) or getattr(logger, 'name', 'unknown')
    event_dict['component'] = component
    return event_dict


def configure_logging(log_level="INFO", log_format="console", log_color=True):
    """
    Set up structured logging.

    Environment overrides (optional):
      - LOG_LEVEL: debug|info|warning|error|critical
      - LOG_FORMAT: json|console
      - LOG_COLOR:  0|1 (console only)
    """
    log_level = os.getenv("LOG_LEVEL", log_level)
    log_format = os.getenv("LOG_FORMAT", log_format).strip().lower()
    if os.getenv("LOG_COLOR") is not None:
        log_color = os.getenv("LOG_COLOR", "1").strip() not in ("0", "false", "False")

    level_value = logging.getLevelName(str(log_level).upper())
    if not isinstance(level_value, int):
        level_value = logging.INFO

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            add_service_context,
            structlog.processors.format_exc_info,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=False,
    )

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer()
    else:
        renderer = structlog_dev.ConsoleRenderer(colors=log_color)

    processor_formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=[
            structlog.stdlib.add_logger_name,
            structlog.processors.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
        ],
    )

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.setLevel(level_value)

    console_handler = logging.StreamHandler(sys.stderr)
    console_handler.setFormatter(processor_formatter)
    root_logger.addHandler(console_handler)

    # Keep HTTP client chatter out of the conversation log
    for noisy in ("httpx", "httpcore"):
        logging.getLogger(noisy).setLevel(max(level_value, logging.WARNING))

    return root_logger
