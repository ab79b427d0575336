"""
Map aggregate repository.

Reads and writes whole Map documents on top of a generic document backend.
Reads may be filtered by owner; a map owned by someone else is reported
exactly like a missing one.
"""
import logging
from datetime import datetime
from typing import List, Optional, Sequence

from floorlink.data.base_repository import BaseRepository
from floorlink.data.models import Feature, Map
from floorlink.utils.error_handling import NotFoundError

logger = logging.getLogger(__name__)


class MapRepository:
    """Durable store of Map documents addressed by map id."""

    def __init__(self, backend: BaseRepository[Map]):
        self.backend = backend

    async def get_map(self, map_id: str, owner_id: Optional[str] = None) -> Map:
        """Load a map, optionally filtered by owner.

        Args:
            map_id: Map identifier
            owner_id: When given, only a map owned by this user matches

        Returns:
            Map: The stored map

        Raises:
            NotFoundError: If no map matches
        """
        map_ = await self.backend.get_by_id(map_id)
        if map_ is None or (owner_id is not None and map_.owner_id != owner_id):
            raise NotFoundError("Map", map_id)
        return map_

    async def list_maps(self, owner_id: Optional[str] = None) -> List[Map]:
        filter_params = {"owner_id": owner_id} if owner_id is not None else None
        return await self.backend.get_all(filter_params)

    async def create_map(self, map_: Map) -> Map:
        created = await self.backend.create(map_)
        logger.info(f"Created map {created.id} with {len(created.features)} features")
        return created

    async def save_map(self, map_: Map, owner_id: Optional[str] = None) -> Map:
        """Replace a whole map document.

        Raises:
            NotFoundError: If the map no longer exists or no longer matches the owner filter
        """
        await self.get_map(map_.id, owner_id)
        map_.updated_at = datetime.now()
        saved = await self.backend.update(map_.id, map_)
        if saved is None:
            raise NotFoundError("Map", map_.id)
        return saved

    async def replace_features(
        self,
        map_id: str,
        owner_id: Optional[str],
        features: Sequence[Feature]
    ) -> Map:
        """Atomically set the whole ``features`` field of one map.

        Fails closed: if the document no longer matches the owner filter,
        nothing is written.

        Args:
            map_id: Map identifier
            owner_id: Owner filter, or None for an unfiltered write
            features: The complete new feature list

        Returns:
            Map: The updated map

        Raises:
            NotFoundError: If no map matches
        """
        map_ = await self.get_map(map_id, owner_id)
        map_.features = list(features)
        map_.updated_at = datetime.now()
        updated = await self.backend.update(map_id, map_)
        if updated is None:
            raise NotFoundError("Map", map_id)
        logger.debug(f"Replaced features of map {map_id} ({len(updated.features)} features)")
        return updated

    async def delete_map(self, map_id: str, owner_id: Optional[str] = None) -> Map:
        map_ = await self.get_map(map_id, owner_id)
        if not await self.backend.delete(map_id):
            raise NotFoundError("Map", map_id)
        logger.info(f"Deleted map {map_id}")
        return map_
