"""
# Centralized logging configuration for the Namespaces Generator Plugin.

This module provides a setup function to configure the root logger. The
default `json` format emits structured records for the cluster's log
pipeline; the `text` format prints plain lines without timestamps, which is
handier when running the plugin locally.

Methods:
    setup_logging: Configures the root logger for the chosen format.

"""

import logging
import sys
from pythonjsonlogger import jsonlogger

from .errors import ConfigLoadError


def level_for(verbosity):
    """
    Maps the verbosity flag onto a logging level.

    Each step lowers the threshold by a quarter of the INFO to DEBUG gap:
    0 keeps INFO, 1 to 3 are levels in between, 4 and above enable DEBUG.
    """
    verbosity = max(int(verbosity), 0)
    step = (logging.INFO - logging.DEBUG) * verbosity // 4
    return max(logging.INFO - step, logging.DEBUG)


def setup_logging(log_format="json", verbosity=0):
    """
    Configures the root logger to output JSON logs to stderr, or text logs
    to stdout.
    """
    logger = logging.getLogger()
    # Prevent duplicate logs if already configured
    for handler in list(logger.handlers):
        logger.removeHandler(handler)

    if log_format == "json":
        handler = logging.StreamHandler(sys.stderr)
        formatter = jsonlogger.JsonFormatter(
            '%(asctime)s %(name)s %(levelname)s %(message)s'
        )
    elif log_format == "text":
        handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter('%(levelname)s %(name)s %(message)s')
    else:
        raise ConfigLoadError(f"Unknown log format: {log_format}")

    handler.setFormatter(formatter)
    logger.addHandler(handler)
    logger.setLevel(level_for(verbosity))

    # Redirect standard library warnings to the logger
    logging.captureWarnings(True)
