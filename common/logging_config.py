import logging
import os
import sys
from typing import Optional


LOG_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'


class CidListTruncationFilter(logging.Filter):
    """Shorten long identifier lists passed as log arguments."""

    MAX_ITEMS = 8

    def filter(self, record: logging.LogRecord) -> bool:
        """Replace oversized list/tuple/set arguments with a short preview."""
        if hasattr(record, 'args') and record.args:
            if isinstance(record.args, dict):
                record.args = {k: self._truncate(v) for k, v in record.args.items()}
            elif isinstance(record.args, tuple):
                record.args = tuple(self._truncate(arg) for arg in record.args)

        return True

    def _truncate(self, value):
        """Truncate a collection argument to MAX_ITEMS entries."""
        if isinstance(value, (list, tuple, set, frozenset)) and len(value) > self.MAX_ITEMS:
            items = list(value)[:self.MAX_ITEMS]
            return f"{items} ... (+{len(value) - self.MAX_ITEMS} more)"
        return value


def setup_logging(
    component_name: str,
    log_level: Optional[str] = None
) -> logging.Logger:
    """
    Set up logging configuration for a component.

    Args:
        component_name: Name of the component (e.g., 'service', 'cli', 'validator')
        log_level: Log level (DEBUG, INFO, WARNING, ERROR). Defaults to LOG_LEVEL env var or INFO

    Returns:
        Configured logger instance
    """
    if log_level is None:
        log_level = os.getenv('LOG_LEVEL', 'INFO')

    level = getattr(logging, log_level.upper(), logging.INFO)

    logger = logging.getLogger(component_name)
    logger.setLevel(level)

    if logger.handlers:
        for handler in logger.handlers:
            handler.setLevel(level)
        return logger

    handler = logging.StreamHandler(sys.stdout)
    handler.setLevel(level)
    handler.setFormatter(logging.Formatter(LOG_FORMAT, datefmt=DATE_FORMAT))
    handler.addFilter(CidListTruncationFilter())

    logger.addHandler(handler)
    logger.propagate = False

    return logger


def get_logger(name: str) -> logging.Logger:
    """
    Get a logger with the given name.

    Args:
        name: Logger name (typically __name__)

    Returns:
        Logger instance
    """
    return logging.getLogger(name)
