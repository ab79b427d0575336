"""
Base service for operations spanning the map and store repositories.
"""
import logging
from typing import Any, Dict, Optional

from floorlink.data.map_repository import MapRepository
from floorlink.data.store_repository import StoreRepository
from floorlink.utils.error_handling import AppError, ErrorSeverity

logger = logging.getLogger(__name__)


class BaseService:
    """Base class for services working on both aggregates.

    Holds the two repositories and provides common error reporting.
    Services never share state between calls; every operation receives
    the acting owner explicitly.
    """

    def __init__(self, map_repository: MapRepository, store_repository: StoreRepository):
        """Initialize the service with its repositories.

        Args:
            map_repository: Repository of Map documents
            store_repository: Repository of Store documents
        """
        self.maps = map_repository
        self.stores = store_repository

    def handle_error(
        self,
        error: Exception,
        operation: str,
        additional_info: Optional[Dict[str, Any]] = None
    ) -> Dict[str, Any]:
        """Log an error in a consistent, structured way.

        Args:
            error: The exception that occurred
            operation: Name of the operation that failed
            additional_info: Any additional context information

        Returns:
            Dict[str, Any]: Error information in a structured format
        """
        error_info = {
            "service": self.__class__.__name__,
            "operation": operation,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }

        if additional_info:
            error_info["additional_info"] = additional_info

        severity = error.severity if isinstance(error, AppError) else ErrorSeverity.ERROR
        if severity in (ErrorSeverity.INFO, ErrorSeverity.WARNING):
            logger.warning(f"Service error: {error_info}")
        else:
            logger.error(f"Service error: {error_info}")
        return error_info
