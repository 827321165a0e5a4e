"""Structured logging setup for reconciler."""

import logging
import sys
from typing import Optional, Union


def setup_logging(level: Union[int, str] = logging.WARNING, format_string: Optional[str] = None) -> logging.Logger:
    """
    Set up structured logging for reconciler.
    
    Args:
        level: Logging level, as int or name (default: WARNING)
        format_string: Custom format string (optional)
    
    Returns:
        Configured logger instance
    """
    if format_string is None:
        format_string = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    
    if isinstance(level, str):
        level = logging.getLevelName(level.upper())
        if not isinstance(level, int):
            level = logging.WARNING
    
    logging.basicConfig(
        level=level,
        format=format_string,
        stream=sys.stderr,
        datefmt="%Y-%m-%d %H:%M:%S"
    )
    
    logger = logging.getLogger("reconciler")
    logger.setLevel(level)
    logging.getLogger("filelock").setLevel(logging.WARNING)
    return logger


def get_logger(name: str) -> logging.Logger:
    """Get a logger instance for a specific module."""
    return logging.getLogger(f"reconciler.{name}")
