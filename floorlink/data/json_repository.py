"""
JSON file repository implementation.

Each collection is one JSON file holding ``{id: document}``. The file is
read once on connect and rewritten through a temporary file on every write,
so a crash mid-write leaves the previous version intact.
"""
import asyncio
import json
import logging
import os
from pathlib import Path
from typing import Any, Dict, Generic, List, Optional, TypeVar

from .base_repository import BaseRepository

T = TypeVar('T')
logger = logging.getLogger(__name__)


class JsonFileRepository(BaseRepository[T], Generic[T]):
    """Repository persisting one collection to a JSON file."""

    def __init__(self, model_cls: type, path: Path, connection_config: Optional[Dict[str, Any]] = None):
        """
        Initialize the repository.

        Args:
            model_cls: Dataclass model stored in this repository
            path: JSON file holding the collection
            connection_config: Extra options (``indent`` for pretty printing)
        """
        super().__init__(model_cls, connection_config)
        self.path = Path(path)
        self._documents: Dict[str, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def connect(self) -> bool:
        """Load the collection file, creating it if missing.

        Returns:
            bool: True if the file was loaded
        """
        try:
            if self.path.exists():
                with open(self.path, "r", encoding="utf-8") as f:
                    self._documents = json.load(f)
            else:
                self.path.parent.mkdir(parents=True, exist_ok=True)
                self._documents = {}
                self._flush()
        except (OSError, json.JSONDecodeError) as e:
            raise self.handle_db_error(e, "connect")

        self._is_connected = True
        logger.info(f"Loaded {len(self._documents)} {self.collection} documents from {self.path}")
        return True

    async def disconnect(self) -> None:
        self._is_connected = False
        logger.debug(f"Closed {self.path}")

    async def get_by_id(self, id: str) -> Optional[T]:
        self._check_connection()
        data = self._documents.get(id)
        return self.model_cls.from_dict(data) if data is not None else None

    async def get_all(self, filter_params: Optional[Dict[str, Any]] = None) -> List[T]:
        self._check_connection()
        entities = [self.model_cls.from_dict(data) for data in self._documents.values()]
        return [e for e in entities if self._matches(e, filter_params)]

    async def create(self, entity: T) -> T:
        self._check_connection()
        async with self._lock:
            previous = self._documents.get(entity.id)
            self._documents[entity.id] = entity.to_dict()
            self._write(entity.id, previous, "create")
        return self._copy(entity)

    async def update(self, id: str, entity: T) -> Optional[T]:
        self._check_connection()
        async with self._lock:
            previous = self._documents.get(id)
            if previous is None:
                logger.warning(f"{self.collection} with ID {id} not found")
                return None
            self._documents[id] = entity.to_dict()
            self._write(id, previous, "update")
        return self._copy(entity)

    async def delete(self, id: str) -> bool:
        self._check_connection()
        async with self._lock:
            previous = self._documents.pop(id, None)
            if previous is None:
                logger.warning(f"{self.collection} with ID {id} not found")
                return False
            self._write(id, previous, "delete")
        return True

    def _write(self, entity_id: str, previous: Optional[Dict[str, Any]], operation: str) -> None:
        """Flush the collection, restoring ``previous`` in memory if the flush fails."""
        try:
            self._flush()
        except (OSError, TypeError, ValueError) as e:
            if previous is None:
                self._documents.pop(entity_id, None)
            else:
                self._documents[entity_id] = previous
            raise self.handle_db_error(e, operation, entity_id)

    def _flush(self) -> None:
        # Serialize first so an unencodable document never reaches the disk
        payload = json.dumps(self._documents, indent=self.connection_config.get("indent", 2))
        tmp_path = self.path.with_suffix(self.path.suffix + ".tmp")
        try:
            with open(tmp_path, "w", encoding="utf-8") as f:
                f.write(payload)
            os.replace(tmp_path, self.path)
        except OSError:
            tmp_path.unlink(missing_ok=True)
            raise
