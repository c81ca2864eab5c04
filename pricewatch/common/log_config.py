"""
Logging Configuration

Every module logs through logging.getLogger(__name__), so configuring the
"pricewatch" logger covers the pipeline, fetch clients, breakers and batch
checker at once. Output goes to stderr to keep stdout clean for the price
reports printed by check_price.py and scripts/check_prices.py.

HTTP client libraries (urllib3, httpx, openai) log every request at DEBUG;
they stay at WARNING unless verbose output is asked for.
"""

import logging
import sys

PACKAGE_LOGGER = "pricewatch"
LIBRARY_LOGGERS = ("urllib3", "httpx", "openai")

LOG_FORMAT = "%(levelname)-8s %(name)s: %(message)s"
# Batch checks run on worker threads; show which one logged
VERBOSE_LOG_FORMAT = "%(levelname)-8s [%(threadName)s] %(name)s: %(message)s"


def setup_logging(verbose: bool = False, quiet: bool = False) -> None:
    """
    Configure logging for the price engine.

    Args:
        verbose: If True, set level to DEBUG (library loggers included)
        quiet: If True, set level to WARNING
    """
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    else:
        level = logging.INFO

    handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(VERBOSE_LOG_FORMAT if verbose else LOG_FORMAT))

    logger = logging.getLogger(PACKAGE_LOGGER)
    logger.setLevel(level)

    # Avoid duplicate handlers if called multiple times
    logger.handlers.clear()
    logger.addHandler(handler)

    for name in LIBRARY_LOGGERS:
        logging.getLogger(name).setLevel(logging.DEBUG if verbose else logging.WARNING)
