"""
Map CRUD and direct feature edits.

Feature edits go through the pure functions in
``floorlink.domain.feature_editor`` and are persisted as a whole-features
replace. Store links are off limits here: ``storeId`` can only be written
by the link manager, and a linked feature cannot be removed.
"""

from typing import Any, Dict, List, Optional, Union

from floorlink.config.logging_config import get_logger
from floorlink.data.models import Feature, Geometry, FeatureProperties, Map
from floorlink.data.schemas import (
    FeatureCreate,
    FeatureUpdate,
    MapCreate,
    MapUpdate,
    parse_input,
    properties_to_dict,
)
from floorlink.domain import feature_editor
from floorlink.services.base_service import BaseService
from floorlink.utils.error_handling import ConflictError, NotFoundError, ValidationFailure

logger = get_logger(__name__)

STORE_LINK_KEY = "storeId"


def _feature_from_input(data: FeatureCreate) -> Feature:
    properties = properties_to_dict(data.properties)
    if STORE_LINK_KEY in properties:
        raise ValidationFailure(
            f"Feature {data.id}: {STORE_LINK_KEY} is managed by store operations",
            errors=[{"field": f"properties.{STORE_LINK_KEY}", "message": "not allowed"}]
        )
    return Feature(
        id=data.id,
        type=data.type,
        geometry=Geometry(type=data.geometry.type, coordinates=data.geometry.coordinates),
        properties=FeatureProperties.from_dict(properties),
    )


class MapService(BaseService):
    """Owner-scoped map operations."""

    async def create_map(self, map_input: Union[Dict[str, Any], MapCreate], owner_id: str) -> Map:
        """Create a map owned by ``owner_id``; ``metadata.author`` is set to the owner."""
        data = parse_input(MapCreate, map_input)
        metadata = data.metadata.model_dump(exclude_none=True)
        metadata["author"] = owner_id

        map_ = Map(
            owner_id=owner_id,
            name=data.name,
            type=data.type,
            tags=list(dict.fromkeys(data.tags)),
            metadata=metadata,
            features=[_feature_from_input(f) for f in data.features],
        )
        return await self.maps.create_map(map_)

    async def get_map(self, map_id: str, owner_id: str) -> Map:
        return await self.maps.get_map(map_id, owner_id)

    async def list_maps(self, owner_id: str, query: Optional[str] = None) -> List[Map]:
        """List an owner's maps by name, optionally filtered by a name substring."""
        maps = await self.maps.list_maps(owner_id)
        if query:
            needle = query.lower()
            maps = [m for m in maps if needle in m.name.lower()]
        return sorted(maps, key=lambda m: m.name.lower())

    async def update_map(self, map_id: str, update: Union[Dict[str, Any], MapUpdate], owner_id: str) -> Map:
        """
        Update map fields.

        ``name``, ``type`` and ``tags`` are replaced when given; ``metadata``
        is merged key by key into the existing metadata. Features are edited
        with the element operations only.
        """
        data = parse_input(MapUpdate, update)
        map_ = await self.maps.get_map(map_id, owner_id)

        if data.name is not None:
            map_.name = data.name
        if data.type is not None:
            map_.type = data.type
        if data.tags is not None:
            map_.tags = list(dict.fromkeys(data.tags))
        if data.metadata is not None:
            map_.metadata = {**map_.metadata, **data.metadata.model_dump(exclude_unset=True)}

        return await self.maps.save_map(map_, owner_id)

    async def delete_map(self, map_id: str, owner_id: str) -> Map:
        """
        Delete a map.

        Stores linked into the map are not touched; the reconciler reports
        them as ``map_not_found`` until they are relinked or deleted.
        """
        map_ = await self.maps.delete_map(map_id, owner_id)
        linked = [f.store_id for f in map_.features if f.store_id]
        if linked:
            logger.warning(f"Deleted map {map_id} still had {len(linked)} linked stores: {linked}")
        return map_

    async def add_element(
        self,
        map_id: str,
        owner_id: str,
        element: Union[Dict[str, Any], FeatureCreate]
    ) -> Map:
        """Append a feature to a map."""
        feature = _feature_from_input(parse_input(FeatureCreate, element))
        map_ = await self.maps.get_map(map_id, owner_id)
        features = feature_editor.insert_feature(map_.features, feature)
        return await self.maps.replace_features(map_id, owner_id, features)

    async def update_element(
        self,
        map_id: str,
        owner_id: str,
        element_id: str,
        updates: Union[Dict[str, Any], FeatureUpdate]
    ) -> Map:
        """Merge a partial update into one feature; properties are merged key by key."""
        data = parse_input(FeatureUpdate, updates)
        partial: Dict[str, Any] = {}
        if data.type is not None:
            partial["type"] = data.type
        if data.geometry is not None:
            partial["geometry"] = data.geometry.model_dump()
        if data.properties is not None:
            partial["properties"] = data.properties

        if STORE_LINK_KEY in (data.properties or {}):
            raise ValidationFailure(
                f"Feature {element_id}: {STORE_LINK_KEY} is managed by store operations",
                errors=[{"field": f"properties.{STORE_LINK_KEY}", "message": "not allowed"}]
            )

        map_ = await self.maps.get_map(map_id, owner_id)
        try:
            features = feature_editor.merge_update_feature(map_.features, element_id, partial)
        except NotFoundError:
            raise NotFoundError("Feature", element_id, parent=f"map {map_id}") from None
        return await self.maps.replace_features(map_id, owner_id, features)

    async def remove_element(self, map_id: str, owner_id: str, element_id: str) -> Map:
        """
        Remove a feature from a map.

        Raises:
            ConflictError: If a store is linked to the feature
        """
        map_ = await self.maps.get_map(map_id, owner_id)

        feature = feature_editor.find_feature(map_.features, element_id)
        if feature is not None and feature.store_id:
            raise ConflictError(element_id, map_id, claimed_by=feature.store_id)

        try:
            features = feature_editor.remove_feature(map_.features, element_id)
        except NotFoundError:
            raise NotFoundError("Feature", element_id, parent=f"map {map_id}") from None
        return await self.maps.replace_features(map_id, owner_id, features)

    async def search_elements(self, map_id: str, owner_id: str, query: Optional[str] = None) -> List[Feature]:
        """Features of a map whose name or id contains ``query``, ignoring case."""
        map_ = await self.maps.get_map(map_id, owner_id)
        return list(feature_editor.search_features(map_.features, query))
