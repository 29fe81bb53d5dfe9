"""
Logging Utilities
=================
Console logger setup for the request handler.
"""

import logging
import os
import sys

from ..config.constants import LOG_LEVEL_ENV_VAR

LOG_FORMAT = '%(asctime)s [%(levelname)s] [%(name)s:%(lineno)d] %(message)s'
LOG_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


def setup_logger(name: str = "notesync", level: str = None) -> logging.Logger:
    """
    Configure a stdout logger.

    Level comes from the argument, then NOTESYNC_LOG_LEVEL, then INFO.
    Calling it twice does not add duplicate handlers.
    """
    level_name = (level or os.getenv(LOG_LEVEL_ENV_VAR) or "INFO").upper()

    logger = logging.getLogger(name)
    logger.setLevel(getattr(logging, level_name, logging.INFO))

    if not logger.handlers:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setFormatter(logging.Formatter(LOG_FORMAT, LOG_DATE_FORMAT))
        logger.addHandler(console_handler)

    return logger
