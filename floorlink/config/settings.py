"""
Application settings and configuration.

This module provides a centralized configuration management system using Pydantic.
It loads settings from environment variables, .env files, or falls back to defaults.
"""

import os
import logging
from pathlib import Path
from typing import Any

from pydantic import BaseModel, Field, validator
from dotenv import load_dotenv

# Load environment variables from .env file if present
load_dotenv()

# Base directories
ROOT_DIR = Path(__file__).parent.parent.parent
LOG_DIR = ROOT_DIR / "logs"
DATA_DIR = ROOT_DIR / "data"

STORAGE_BACKENDS = ("memory", "json")


class StorageSettings(BaseModel):
    """Document storage configuration settings."""

    backend: str = Field(
        default="json",
        description="Storage backend for maps and stores (memory or json)"
    )

    data_dir: Path = Field(
        default=DATA_DIR,
        description="Directory holding the JSON document files"
    )

    maps_file: str = Field(
        default="maps.json",
        description="File name of the map collection inside data_dir"
    )

    stores_file: str = Field(
        default="stores.json",
        description="File name of the store collection inside data_dir"
    )

    @validator("backend")
    def validate_backend(cls, v):
        """Validate that the backend is known."""
        if v.lower() not in STORAGE_BACKENDS:
            raise ValueError(f"Storage backend must be one of {list(STORAGE_BACKENDS)}")
        return v.lower()


class LoggingSettings(BaseModel):
    """Logging configuration settings."""

    level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    format: str = Field(
        default="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        description="Log message format"
    )

    file_enabled: bool = Field(
        default=False,
        description="Whether to write logs to a file"
    )

    console_enabled: bool = Field(
        default=True,
        description="Whether to write logs to console"
    )

    log_dir: Path = Field(
        default=LOG_DIR,
        description="Base directory for log files"
    )

    @validator("level")
    def validate_log_level(cls, v):
        """Validate that log level is valid."""
        valid_levels = ["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of {valid_levels}")
        return v.upper()


class ReconcilerSettings(BaseModel):
    """Link reconciliation settings."""

    clear_orphans: bool = Field(
        default=True,
        description="Whether repair clears feature storeIds that no store references back"
    )


class Settings(BaseModel):
    """Main application settings."""

    # Sub-configurations
    storage: StorageSettings = Field(default_factory=lambda: StorageSettings(
        backend=os.environ.get("FLOORLINK_STORAGE_BACKEND", "json"),
        data_dir=Path(os.environ.get("FLOORLINK_DATA_DIR", str(DATA_DIR)))
    ))

    logging: LoggingSettings = Field(default_factory=lambda: LoggingSettings(
        level=os.environ.get("LOG_LEVEL", "INFO"),
        format=os.environ.get("LOG_FORMAT", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"),
        file_enabled=_parse_bool(os.environ.get("LOG_FILE_ENABLED", "False")),
        console_enabled=_parse_bool(os.environ.get("LOG_CONSOLE_ENABLED", "True")),
        log_dir=Path(os.environ.get("FLOORLINK_LOG_DIR", str(LOG_DIR)))
    ))

    reconciler: ReconcilerSettings = Field(default_factory=lambda: ReconcilerSettings(
        clear_orphans=_parse_bool(os.environ.get("RECONCILE_CLEAR_ORPHANS", "True"))
    ))

    # Runtime configs
    debug_mode: bool = Field(
        default=False,
        description="Enable debug mode"
    )

    def __init__(self, **data: Any):
        """Initialize settings, allowing debug mode override from environment."""
        super().__init__(**data)
        self.debug_mode = _parse_bool(os.environ.get("DEBUG_MODE", str(self.debug_mode)))

    def ensure_directories(self) -> None:
        """Create the data and log directories used by the JSON backend and file logging."""
        directories = []
        if self.storage.backend == "json":
            directories.append(self.storage.data_dir)
        if self.logging.file_enabled:
            directories.append(self.logging.log_dir)

        for directory in directories:
            directory.mkdir(parents=True, exist_ok=True)
            if not os.access(directory, os.W_OK):
                logging.warning(f"Directory {directory} is not writable")

    @property
    def maps_path(self) -> Path:
        """Path of the JSON map collection."""
        return self.storage.data_dir / self.storage.maps_file

    @property
    def stores_path(self) -> Path:
        """Path of the JSON store collection."""
        return self.storage.data_dir / self.storage.stores_file


def _parse_bool(value: str) -> bool:
    """Parse string to boolean."""
    return value.lower() in ("true", "1", "t", "yes", "y")
