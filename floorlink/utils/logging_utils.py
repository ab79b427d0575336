# floorlink/utils/logging_utils.py
import logging
import sys
import uuid
from logging.handlers import RotatingFileHandler
from datetime import datetime
from pathlib import Path
from typing import Optional

DETAILED_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - [%(filename)s:%(lineno)d] - %(message)s'
SIMPLE_FORMAT = '%(asctime)s - %(name)s - %(levelname)s - %(message)s'


def new_run_id() -> str:
    """Create an id for one CLI run, used to name its log directory."""
    return f"{datetime.now().strftime('%Y%m%d_%H%M%S')}_{uuid.uuid4().hex[:8]}"


def setup_logger(
    name: str,
    level: Optional[str] = None,
    run_id: Optional[str] = None,
    log_dir: Optional[Path] = None,
    file_enabled: bool = True,
    console_enabled: bool = True,
    fmt: str = SIMPLE_FORMAT
) -> logging.Logger:
    """
    Set up and configure a logger with per-run log files

    Args:
        name: Logger name
        level: Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)
        run_id: Optional run ID; a new one is generated if omitted
        log_dir: Base directory for log files
        file_enabled: Whether to write rotating log files
        console_enabled: Whether to log to stderr
        fmt: Format for console output

    Returns:
        Configured logger
    """
    logger = logging.getLogger(name)

    # If logger is already configured, return it
    if logger.handlers:
        return logger

    if level:
        log_level = getattr(logging, level.upper(), logging.INFO)
    else:
        log_level = logging.INFO

    logger.setLevel(log_level)

    if not run_id:
        run_id = new_run_id()

    detailed_formatter = logging.Formatter(DETAILED_FORMAT)
    simple_formatter = logging.Formatter(fmt)

    if console_enabled:
        # stdout is reserved for command output
        console_handler = logging.StreamHandler(sys.stderr)
        console_handler.setFormatter(simple_formatter)
        console_handler.setLevel(log_level)
        logger.addHandler(console_handler)

    if file_enabled:
        run_dir = Path(log_dir or "logs") / run_id
        run_dir.mkdir(parents=True, exist_ok=True)

        run_handler = RotatingFileHandler(
            run_dir / f"{name}.log",
            maxBytes=10485760,  # 10MB
            backupCount=5
        )
        run_handler.setFormatter(detailed_formatter)
        run_handler.setLevel(log_level)
        logger.addHandler(run_handler)

    if not logger.handlers:
        logger.addHandler(logging.NullHandler())

    return logger
