"""Centralized lazy-loading logger lookup for Crescendo."""
import logging
from typing import Dict

# Module-level cache for loggers
_logger_cache: Dict[str, logging.Logger] = {}


def get_logger(name: str) -> logging.Logger:
    """
    Get a lazily initialized logger with the given name.

    Args:
        name: The full module name (e.g., 'crescendo.judgment.engine')

    Returns:
        A logger instance; levels and handlers are applied by setup_logging()
    """
    if name not in _logger_cache:
        logger = logging.getLogger(name)
        _logger_cache[name] = logger
    return _logger_cache[name]
