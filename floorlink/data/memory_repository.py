"""
In-memory repository implementation for tests and development.
"""
import logging
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .base_repository import BaseRepository

T = TypeVar('T')
logger = logging.getLogger(__name__)


class InMemoryRepository(BaseRepository[T], Generic[T]):
    """In-memory repository implementation.

    Documents are stored as detached copies, so mutating an entity returned
    by a read never changes the stored document until it is written back.
    No call awaits between its read and its write, which makes each call
    atomic with respect to other coroutines.
    """

    def __init__(self, model_cls: type, connection_config: Optional[Dict[str, Any]] = None):
        """Initialize the repository with an empty store.

        Args:
            model_cls: Dataclass model stored in this repository
            connection_config: Not used for in-memory repository
        """
        super().__init__(model_cls, connection_config)
        self._store: Dict[str, T] = {}

    async def connect(self) -> bool:
        """Mark the repository as connected.

        Returns:
            bool: Always returns True
        """
        self._is_connected = True
        logger.debug(f"Connected to in-memory {self.collection} repository")
        return True

    async def disconnect(self) -> None:
        """Mark the repository as disconnected."""
        self._is_connected = False
        logger.debug(f"Disconnected from in-memory {self.collection} repository")

    async def get_by_id(self, id: str) -> Optional[T]:
        self._check_connection()
        entity = self._store.get(id)
        return self._copy(entity) if entity is not None else None

    async def get_all(self, filter_params: Optional[Dict[str, Any]] = None) -> List[T]:
        self._check_connection()
        return [
            self._copy(entity)
            for entity in self._store.values()
            if self._matches(entity, filter_params)
        ]

    async def create(self, entity: T) -> T:
        self._check_connection()
        entity_id = getattr(entity, 'id')
        self._store[entity_id] = self._copy(entity)
        return self._copy(entity)

    async def update(self, id: str, entity: T) -> Optional[T]:
        self._check_connection()

        if id not in self._store:
            logger.warning(f"{self.collection} with ID {id} not found")
            return None

        self._store[id] = self._copy(entity)
        return self._copy(entity)

    async def delete(self, id: str) -> bool:
        self._check_connection()

        if id not in self._store:
            logger.warning(f"{self.collection} with ID {id} not found")
            return False

        del self._store[id]
        return True
