"""
Logging configuration for Rider Ops Console components.

Provides consistent logging setup across the console core, the mock API
and the command-line scripts.
"""

import logging
import sys
from pathlib import Path
from typing import Optional, Union

LOG_FORMAT = '[%(asctime)s] [{component}] %(levelname)s - %(message)s'
DATE_FORMAT = '%Y-%m-%d %H:%M:%S'

# Chatty at INFO; only their warnings reach the console log.
NOISY_LOGGERS = ("urllib3", "httpx", "uvicorn.access")


def resolve_level(level: Union[int, str]) -> int:
    """Accept a numeric level or a level name such as ``"debug"``."""
    if isinstance(level, int):
        return level
    resolved = logging.getLevelName(str(level).strip().upper())
    return resolved if isinstance(resolved, int) else logging.INFO


def setup_logging(
    component_name: str,
    level: Union[int, str] = logging.INFO,
    log_file: Optional[str] = None,
    format_string: Optional[str] = None
):
    """
    Configure logging for a console component.

    Args:
        component_name: Component identifier (e.g., 'console', 'mockapi')
        level: Logging level, numeric or by name (DEBUG, INFO, WARNING, ...)
        log_file: Optional file path for log output
        format_string: Custom format string (default provided)
    """
    level = resolve_level(level)
    if format_string is None:
        format_string = LOG_FORMAT.format(component=component_name.upper())

    logging.basicConfig(
        level=level,
        format=format_string,
        datefmt=DATE_FORMAT,
        handlers=[
            logging.StreamHandler(sys.stdout)
        ],
        force=True,
    )

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(level, logging.WARNING))

    if log_file:
        log_path = Path(log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = logging.FileHandler(log_file)
        file_handler.setFormatter(logging.Formatter(format_string, datefmt=DATE_FORMAT))
        logging.getLogger().addHandler(file_handler)

    logger = logging.getLogger(component_name)
    logger.info(f"{component_name.upper()} logging initialized (level={logging.getLevelName(level)})")

    return logger
