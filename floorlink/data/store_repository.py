"""
Store aggregate repository.

Stores are addressed by id and, for link lookups, by (map_id, feature_id).
Reads are not filtered by owner; ownership is checked by the caller.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

from floorlink.data.base_repository import BaseRepository
from floorlink.data.models import Location, Store, StoreCategory
from floorlink.utils.error_handling import NotFoundError, ValidationFailure

logger = logging.getLogger(__name__)

# Fields update_store_fields may change; id, owner_id and timestamps are managed here
UPDATABLE_FIELDS = frozenset({
    "name",
    "floor",
    "category",
    "opening_hours",
    "description",
    "logo",
    "phone",
    "email",
    "website",
    "location",
    "map_id",
    "feature_id",
})


class StoreRepository:
    """Durable store of Store documents."""

    def __init__(self, backend: BaseRepository[Store]):
        self.backend = backend

    async def get_store(self, store_id: str) -> Store:
        """Load a store by id.

        Raises:
            NotFoundError: If the store does not exist
        """
        store = await self.backend.get_by_id(store_id)
        if store is None:
            raise NotFoundError("Store", store_id)
        return store

    async def find_store(self, store_id: str) -> Optional[Store]:
        """Load a store by id, returning None when it does not exist."""
        return await self.backend.get_by_id(store_id)

    async def list_stores(self, filter_params: Optional[Dict[str, Any]] = None) -> List[Store]:
        return await self.backend.get_all(filter_params)

    async def find_by_feature(self, map_id: str, feature_id: str) -> List[Store]:
        """All stores whose link points at (map_id, feature_id)."""
        return await self.backend.get_all({"map_id": map_id, "feature_id": feature_id})

    async def save_store(self, store: Store) -> Store:
        saved = await self.backend.create(store)
        logger.info(f"Saved store {saved.id} ({saved.name}) for map {saved.map_id} feature {saved.feature_id}")
        return saved

    async def update_store_fields(self, store_id: str, partial: Dict[str, Any]) -> Store:
        """Set the given fields on a store document.

        Args:
            store_id: Store identifier
            partial: Field name -> new value; unknown field names are rejected

        Returns:
            Store: The updated store

        Raises:
            NotFoundError: If the store does not exist
            ValidationFailure: If ``partial`` names a field that cannot be updated
        """
        unknown = set(partial) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationFailure(
                f"Store {store_id}: cannot update fields {sorted(unknown)}",
                errors=sorted(unknown)
            )

        store = await self.get_store(store_id)
        for key, value in partial.items():
            if key == "category" and not isinstance(value, StoreCategory):
                value = StoreCategory(value)
            elif key == "location" and isinstance(value, dict):
                value = Location.from_dict(value)
            setattr(store, key, value)
        store.updated_at = datetime.now()

        updated = await self.backend.update(store_id, store)
        if updated is None:
            raise NotFoundError("Store", store_id)
        return updated

    async def delete_store(self, store_id: str) -> None:
        """Delete a store document.

        Raises:
            NotFoundError: If the store does not exist
        """
        if not await self.backend.delete(store_id):
            raise NotFoundError("Store", store_id)
        logger.info(f"Deleted store {store_id}")
