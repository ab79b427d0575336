"""
Base repository interface for document storage.
"""
from abc import ABC, abstractmethod
import logging
from typing import Any, Dict, Generic, List, Optional, TypeVar

from floorlink.utils.error_handling import StorageError

T = TypeVar('T')
logger = logging.getLogger(__name__)


class BaseRepository(Generic[T], ABC):
    """Base class for all document repository implementations.

    A repository holds one collection of documents keyed by their ``id``.
    Each call reads or writes a single document atomically; there are no
    multi-document transactions.

    Generic type T represents the entity model being managed. Entities
    must expose ``id``, ``to_dict()`` and a ``from_dict()`` classmethod.
    """

    def __init__(self, model_cls: type, connection_config: Optional[Dict[str, Any]] = None):
        """Initialize the repository with the managed model and connection configuration.

        Args:
            model_cls: Dataclass model stored in this repository
            connection_config: Backend connection parameters
        """
        self.model_cls = model_cls
        self.connection_config = connection_config or {}
        self._is_connected = False

    @property
    def collection(self) -> str:
        """Name of the managed collection, used in log lines."""
        return self.model_cls.__name__

    @abstractmethod
    async def connect(self) -> bool:
        """Establish connection to the backend.

        Returns:
            bool: True if connection successful, False otherwise
        """
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Disconnect from the backend."""
        pass

    @abstractmethod
    async def get_by_id(self, id: str) -> Optional[T]:
        """Retrieve an entity by its ID.

        Args:
            id: Entity identifier

        Returns:
            Optional[T]: Entity if found, None otherwise
        """
        pass

    @abstractmethod
    async def get_all(self, filter_params: Optional[Dict[str, Any]] = None) -> List[T]:
        """Retrieve all entities whose attributes equal the filter values.

        Args:
            filter_params: Attribute name -> required value

        Returns:
            List[T]: List of matching entities
        """
        pass

    @abstractmethod
    async def create(self, entity: T) -> T:
        """Insert a new entity.

        Args:
            entity: Entity to create

        Returns:
            T: The stored entity
        """
        pass

    @abstractmethod
    async def update(self, id: str, entity: T) -> Optional[T]:
        """Replace an existing entity.

        Args:
            id: Entity identifier
            entity: Updated entity data

        Returns:
            Optional[T]: Updated entity, None if not found
        """
        pass

    @abstractmethod
    async def delete(self, id: str) -> bool:
        """Delete an entity by its ID.

        Args:
            id: Entity identifier

        Returns:
            bool: True if deleted, False if not found
        """
        pass

    def _copy(self, entity: T) -> T:
        """Detach an entity from the stored document."""
        return self.model_cls.from_dict(entity.to_dict())

    @staticmethod
    def _matches(entity: T, filter_params: Optional[Dict[str, Any]]) -> bool:
        if not filter_params:
            return True
        for key, value in filter_params.items():
            if getattr(entity, key, None) != value:
                return False
        return True

    def _check_connection(self) -> None:
        """Check if the repository is connected.

        Raises:
            StorageError: If not connected
        """
        if not self._is_connected:
            raise StorageError(f"{self.collection}.access", RuntimeError("Repository is not connected"))

    def handle_db_error(self, error: Exception, operation: str, entity_id: Optional[str] = None) -> StorageError:
        """Log a backend error and wrap it for the caller to raise.

        Args:
            error: The exception that occurred
            operation: Name of the operation that failed
            entity_id: Document involved, if any

        Returns:
            StorageError: Error to raise
        """
        error_info = {
            "repository": self.__class__.__name__,
            "collection": self.collection,
            "operation": operation,
            "error_type": type(error).__name__,
            "error_message": str(error)
        }

        logger.error(f"Storage error: {error_info}")
        return StorageError(f"{self.collection}.{operation}", cause=error, entity_id=entity_id)
