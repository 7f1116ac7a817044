# infrastructure/logger.py
"""
📝 LOGGING

Structured logging for the API, the services and both bots.
structlog renders every event as one JSON line on stdout.
"""

import logging
import sys

import structlog

from config.settings import config


# ==========================================
# STRUCTLOG SETUP
# ==========================================

def setup_logging():
    """
    Configure logging.

    Called once when the process starts.
    """

    structlog.configure(
        processors=[
            structlog.contextvars.merge_contextvars,
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer()
        ],
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )

    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=logging.DEBUG if config.debug else logging.INFO,
    )


# ==========================================
# LOGGER
# ==========================================

logger = structlog.get_logger()
