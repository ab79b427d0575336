"""
Logger access for floorlink modules.

Modules call get_logger(__name__) and get a child of the "floorlink" logger.
Handlers are attached once, to the package logger, by configure_logging();
until then records propagate to whatever the host application configured.
"""

import logging
from typing import Optional

from floorlink.config.settings import LoggingSettings
from floorlink.utils.logging_utils import setup_logger

PACKAGE_LOGGER = "floorlink"


def get_logger(name: str) -> logging.Logger:
    """Return the logger for a floorlink module."""
    if name != PACKAGE_LOGGER and not name.startswith(PACKAGE_LOGGER + "."):
        name = f"{PACKAGE_LOGGER}.{name}"
    return logging.getLogger(name)


def configure_logging(
    logging_settings: LoggingSettings,
    run_id: Optional[str] = None,
    level: Optional[str] = None
) -> logging.Logger:
    """Attach handlers to the package logger according to settings.

    Args:
        logging_settings: Logging section of the application settings
        run_id: Optional run id used to name the log directory
        level: Optional level overriding the configured one

    Returns:
        logging.Logger: The configured package logger
    """
    return setup_logger(
        PACKAGE_LOGGER,
        level=level or logging_settings.level,
        run_id=run_id,
        log_dir=logging_settings.log_dir,
        file_enabled=logging_settings.file_enabled,
        console_enabled=logging_settings.console_enabled,
        fmt=logging_settings.format
    )
