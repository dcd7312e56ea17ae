"""Centralized logging configuration for Crescendo.

This module provides a consistent way to configure logging across the application.
"""

import logging
import sys
from typing import Optional

# Log levels for different modules
MODULE_LOG_LEVELS = {
    # Core modules
    "crescendo": logging.INFO,
    "crescendo.core": logging.INFO,
    "crescendo.audio": logging.INFO,
    # Per-tick modules, set to DEBUG to see every candidate and vote
    "crescendo.detection": logging.INFO,
    "crescendo.judgment": logging.INFO,
    "crescendo.services": logging.INFO,
    "crescendo.stats": logging.INFO,
    "crescendo.cli": logging.INFO,
    "crescendo.logger": logging.WARNING,  # Logger module itself should be quiet
    # Libraries/third-party
    "librosa": logging.ERROR,
    "numba": logging.ERROR,
    # Root logger
    "": logging.ERROR,
}

# Shared console handler
_console_handler: Optional[logging.Handler] = None


def setup_logging(level: Optional[str] = None) -> None:
    """Set up logging configuration for the application.

    Args:
        level: If provided, override all 'crescendo' log levels with this level (e.g., "DEBUG").
    """
    global _console_handler

    # Create a single, shared console handler if it doesn't exist
    if _console_handler is None:
        _console_handler = logging.StreamHandler(sys.stdout)
        formatter = logging.Formatter(
            "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
        )
        _console_handler.setFormatter(formatter)
    else:
        # stdout may have been replaced since the handler was created
        _console_handler.setStream(sys.stdout)

    # Determine log levels
    log_levels = MODULE_LOG_LEVELS.copy()
    if level:
        numeric_level = logging.getLevelName(level.upper())
        if isinstance(numeric_level, int):
            for module_name in log_levels:
                if module_name.startswith("crescendo"):
                    log_levels[module_name] = numeric_level
        else:
            logging.getLogger(__name__).error(f"Invalid log level: {level}")

    # Apply module-specific levels; children of these names inherit the handler
    for module_name, module_level in log_levels.items():
        logger = logging.getLogger(module_name if module_name else "")
        logger.setLevel(module_level)

        for handler in logger.handlers[:]:
            logger.removeHandler(handler)
        if module_name in ("", "crescendo") or not module_name.startswith("crescendo"):
            logger.addHandler(_console_handler)
            logger.propagate = False

    logging.getLogger("crescendo").info("Logging configuration complete")
