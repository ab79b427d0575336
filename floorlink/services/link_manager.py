"""
Store lifecycle and the Store <-> Feature link.

Maps and stores are separate documents with no transaction spanning both,
so every operation here is a short sequence of single-document writes in a
fixed order. Each intermediate state is legal and repairable by the
reconciler:

- create: store saved, feature not yet linked (store unlinked)
- relink: old feature unlinked, new feature not yet linked (store unlinked)
- delete: map unreachable, store deleted (feature keeps an orphan storeId)

Concurrent claims on one feature are resolved by re-reading the feature
right before the link write and rejecting with ConflictError if another
store got there first.
"""

from typing import Any, Dict, List, Optional, Union

from floorlink.config.logging_config import get_logger
from floorlink.data.models import Location, Map, Store, StoreCategory
from floorlink.data.schemas import StoreCreate, StoreUpdate, parse_input
from floorlink.domain.feature_editor import find_feature, is_unchanged, with_store_link, without_store_link
from floorlink.services.base_service import BaseService
from floorlink.utils.error_handling import (
    AppError,
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationFailure,
    safe_execute,
)

logger = get_logger(__name__)

# Missing or unreachable maps are absorbed on the unlink side only
UNLINK_ABSORBED_ERRORS = (NotFoundError, StorageError)

# Store fields that may be cleared with an explicit None
NULLABLE_FIELDS = frozenset({"logo", "phone", "email", "website"})


class LinkManager(BaseService):
    """
    The only component that creates, relinks or deletes stores.

    It is also the only component that writes ``properties.storeId`` on a
    feature on behalf of a store (the reconciler aside). Every operation
    takes the acting ``owner_id`` explicitly.
    """

    async def create_store_with_link(
        self,
        store_input: Union[Dict[str, Any], StoreCreate],
        owner_id: str
    ) -> Store:
        """
        Create a store and link it to its feature.

        The map is loaded with the owner filter, the feature must exist and be
        unclaimed. The store is saved first, then the feature's ``storeId``
        is written. If that second write fails the store stays saved but
        unlinked and the reconciler will link it; the error still surfaces.

        The one exception is losing the feature to another store between the
        check and the link write: the new store is then deleted again and
        ConflictError is raised.

        Args:
            store_input: Store payload, including ``map_id`` and ``feature_id``
            owner_id: Acting user

        Returns:
            Store: The created store

        Raises:
            ValidationFailure: If the payload is malformed
            NotFoundError: If the map (for this owner) or the feature does not exist
            ConflictError: If the feature is already linked to a store
        """
        data = parse_input(StoreCreate, store_input)

        # Validate before writing anything so a rejected create leaves no trace
        await self._claimable_map(data.map_id, data.feature_id, None, owner_id)

        store = Store(
            name=data.name,
            floor=data.floor,
            category=data.category,
            opening_hours=data.opening_hours,
            description=data.description,
            logo=data.logo,
            phone=data.phone,
            email=data.email,
            website=data.website,
            location=Location(**data.location.model_dump()),
            map_id=data.map_id,
            feature_id=data.feature_id,
            owner_id=owner_id,
        )
        saved = await self.stores.save_store(store)

        try:
            await self._link_feature(data.map_id, data.feature_id, saved.id, owner_id)
        except ConflictError:
            # Another store claimed the feature between validation and link;
            # nothing references the new store yet, so take it back out.
            logger.warning(
                f"Feature {data.feature_id} in map {data.map_id} was claimed concurrently; "
                f"removing new store {saved.id}"
            )
            await safe_execute(
                self.stores.delete_store,
                saved.id,
                error_message=f"Could not remove store {saved.id} after losing the feature claim",
                absorb=(AppError,)
            )
            raise
        except AppError as e:
            self.handle_error(e, "create_store_with_link", {
                "store_id": saved.id,
                "map_id": data.map_id,
                "feature_id": data.feature_id,
                "state": "store saved but unlinked; repair will link it",
            })
            raise

        logger.info(f"Created store {saved.id} linked to feature {data.feature_id} in map {data.map_id}")
        return saved

    async def relink_store(
        self,
        store_id: str,
        update: Union[Dict[str, Any], StoreUpdate],
        owner_id: str
    ) -> Store:
        """
        Update a store, moving its feature link when ``map_id``/``feature_id`` change.

        A link move runs in this order:

        1. Unlink old: clear ``storeId`` on the old feature if it still names
           this store. A missing old map is logged and ignored.
        2. Validate new: the new map (owner filtered) and feature must exist,
           and the feature must not be linked to a different store.
        3. Link new: write ``storeId`` on the new feature.
        4. Save the store's own fields.

        If step 2 or 3 fails, the old link is put back when the old feature is
        still unclaimed, and the error is re-raised.

        Args:
            store_id: Store to update
            update: Partial store payload
            owner_id: Acting user

        Returns:
            Store: The updated store

        Raises:
            NotFoundError: If the store, the new map or the new feature does not exist
            ForbiddenError: If the store belongs to another owner
            ConflictError: If the new feature is linked to a different store
            ValidationFailure: If the payload is malformed
        """
        data = parse_input(StoreUpdate, update)
        changes = data.model_dump(exclude_unset=True)
        store = await self._owned_store(store_id, owner_id, action="update")

        fields = {
            key: value for key, value in changes.items()
            if value is not None or key in NULLABLE_FIELDS
        }

        new_map_id = fields.get("map_id") or store.map_id
        new_feature_id = fields.get("feature_id") or store.feature_id

        if (new_map_id, new_feature_id) != (store.map_id, store.feature_id):
            await self._move_link(store, new_map_id, new_feature_id, owner_id)
            fields["map_id"] = new_map_id
            fields["feature_id"] = new_feature_id
        else:
            fields.pop("map_id", None)
            fields.pop("feature_id", None)

        if not fields:
            return store

        updated = await self.stores.update_store_fields(store_id, fields)
        logger.info(f"Updated store {store_id} ({', '.join(sorted(fields))})")
        return updated

    async def delete_store(self, store_id: str, owner_id: str) -> None:
        """
        Unlink and delete a store.

        The unlink is best effort: if the map is gone or unreachable the
        error is logged and the store is deleted anyway. A storeId left on an
        unreachable map is cleared later by the reconciler.

        Raises:
            NotFoundError: If the store does not exist
            ForbiddenError: If the store belongs to another owner
        """
        store = await self._owned_store(store_id, owner_id, action="delete")

        await safe_execute(
            self._unlink_feature,
            store.map_id,
            store.feature_id,
            store.id,
            owner_id,
            error_message=f"Could not unlink store {store.id} from map {store.map_id}; deleting anyway",
            default=False,
            absorb=UNLINK_ABSORBED_ERRORS
        )

        await self.stores.delete_store(store_id)
        logger.info(f"Deleted store {store_id}")

    async def get_store(self, store_id: str, owner_id: Optional[str] = None) -> Store:
        """Load a store, checking ownership when ``owner_id`` is given."""
        if owner_id is None:
            return await self.stores.get_store(store_id)
        return await self._owned_store(store_id, owner_id, action="access")

    async def list_stores(
        self,
        owner_id: Optional[str] = None,
        map_id: Optional[str] = None,
        category: Optional[Union[StoreCategory, str]] = None,
        query: Optional[str] = None
    ) -> List[Store]:
        """
        List stores, newest first.

        Args:
            owner_id: Only stores of this owner
            map_id: Only stores linked into this map
            category: Only stores of this category
            query: Case-insensitive substring of the name or description

        Raises:
            ValidationFailure: If ``category`` is not a store category
        """
        filter_params: Dict[str, Any] = {}
        if owner_id is not None:
            filter_params["owner_id"] = owner_id
        if map_id is not None:
            filter_params["map_id"] = map_id
        if category is not None:
            try:
                filter_params["category"] = StoreCategory(category)
            except ValueError:
                raise ValidationFailure(
                    f"Unknown store category {category!r}",
                    errors=[{"field": "category", "message": "not a valid store category"}]
                ) from None

        stores = await self.stores.list_stores(filter_params)

        if query:
            needle = query.lower()
            stores = [
                s for s in stores
                if needle in s.name.lower() or needle in s.description.lower()
            ]

        return sorted(stores, key=lambda s: s.created_at, reverse=True)

    async def _owned_store(self, store_id: str, owner_id: str, action: str) -> Store:
        store = await self.stores.get_store(store_id)
        if store.owner_id != owner_id:
            raise ForbiddenError("Store", store_id, action=action)
        return store

    async def _claimable_map(
        self,
        map_id: str,
        feature_id: str,
        store_id: Optional[str],
        owner_id: Optional[str]
    ) -> Map:
        """Load a map and check that the feature exists and is free for ``store_id``."""
        map_ = await self.maps.get_map(map_id, owner_id)
        feature = find_feature(map_.features, feature_id)
        if feature is None:
            raise NotFoundError("Feature", feature_id, parent=f"map {map_id}")
        if feature.store_id and feature.store_id != store_id:
            raise ConflictError(feature_id, map_id, claimed_by=feature.store_id)
        return map_

    async def _link_feature(self, map_id: str, feature_id: str, store_id: str, owner_id: Optional[str]) -> Map:
        # Fresh read right before the write: the detect-and-reject point for races
        map_ = await self._claimable_map(map_id, feature_id, store_id, owner_id)
        if find_feature(map_.features, feature_id).store_id == store_id:
            return map_
        return await self.maps.replace_features(
            map_id, owner_id, with_store_link(map_.features, feature_id, store_id)
        )

    async def _unlink_feature(self, map_id: str, feature_id: str, store_id: str, owner_id: Optional[str]) -> bool:
        """Clear the feature's storeId if it still names ``store_id``. Returns True if a write happened."""
        map_ = await self.maps.get_map(map_id, owner_id)
        features = without_store_link(map_.features, feature_id, store_id)
        if is_unchanged(map_.features, features):
            return False
        await self.maps.replace_features(map_id, owner_id, features)
        logger.debug(f"Unlinked store {store_id} from feature {feature_id} in map {map_id}")
        return True

    async def _move_link(self, store: Store, new_map_id: str, new_feature_id: str, owner_id: str) -> None:
        old_unlinked = await safe_execute(
            self._unlink_feature,
            store.map_id,
            store.feature_id,
            store.id,
            owner_id,
            error_message=f"Could not unlink store {store.id} from old map {store.map_id}",
            default=False,
            absorb=UNLINK_ABSORBED_ERRORS
        )

        try:
            await self._link_feature(new_map_id, new_feature_id, store.id, owner_id)
        except AppError:
            if old_unlinked:
                await safe_execute(
                    self._restore_link,
                    store,
                    owner_id,
                    error_message=f"Could not restore link of store {store.id} to feature {store.feature_id}",
                    absorb=(AppError,)
                )
            raise

        logger.info(
            f"Moved store {store.id} from {store.map_id}/{store.feature_id} "
            f"to {new_map_id}/{new_feature_id}"
        )

    async def _restore_link(self, store: Store, owner_id: str) -> None:
        map_ = await self.maps.get_map(store.map_id, owner_id)
        feature = find_feature(map_.features, store.feature_id)
        if feature is None or feature.store_id:
            return
        await self.maps.replace_features(
            store.map_id, owner_id, with_store_link(map_.features, store.feature_id, store.id)
        )
        logger.info(f"Restored link of store {store.id} to feature {store.feature_id} in map {store.map_id}")
