# tests/test_link_manager.py
from unittest.mock import AsyncMock, patch

import pytest
import pytest_asyncio

from floorlink.data.models import Map
from floorlink.domain.feature_editor import find_feature
from floorlink.utils.error_handling import (
    ConflictError,
    ForbiddenError,
    NotFoundError,
    StorageError,
    ValidationFailure,
)

OWNER = "user-1"
OTHER_OWNER = "user-2"


async def feature_link(map_repository, map_id, feature_id):
    map_ = await map_repository.get_map(map_id)
    return find_feature(map_.features, feature_id).store_id


@pytest_asyncio.fixture
async def second_map(map_repository, make_feature):
    return await map_repository.create_map(
        Map(owner_id=OWNER, name="Hall B", features=[make_feature("F1"), make_feature("F2")])
    )


@pytest.mark.asyncio
async def test_create_store_links_feature(link_manager, map_repository, floor_map, store_payload):
    """Test that a created store and its feature point at each other"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    assert store.owner_id == OWNER
    assert (store.map_id, store.feature_id) == (floor_map.id, "F1")
    assert await feature_link(map_repository, floor_map.id, "F1") == store.id


@pytest.mark.asyncio
async def test_create_store_on_claimed_feature(link_manager, map_repository, store_repository, floor_map, store_payload):
    """Test that a second claim is rejected without touching the map"""
    first = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)
    before = (await map_repository.get_map(floor_map.id)).to_dict()

    with pytest.raises(ConflictError) as exc_info:
        await link_manager.create_store_with_link(store_payload(floor_map.id, "F1", name="Tea Corner"), OWNER)

    assert exc_info.value.claimed_by == first.id
    assert (await map_repository.get_map(floor_map.id)).to_dict() == before
    assert [s.id for s in await store_repository.list_stores()] == [first.id]


@pytest.mark.asyncio
async def test_create_store_missing_map_or_feature(link_manager, store_repository, floor_map, store_payload):
    """Test NotFound for a missing feature, a missing map and a foreign map"""
    with pytest.raises(NotFoundError) as exc_info:
        await link_manager.create_store_with_link(store_payload(floor_map.id, "F9"), OWNER)
    assert "F9" in str(exc_info.value)

    with pytest.raises(NotFoundError):
        await link_manager.create_store_with_link(store_payload("no-such-map", "F1"), OWNER)

    with pytest.raises(NotFoundError):
        await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OTHER_OWNER)

    assert await store_repository.list_stores() == []


@pytest.mark.asyncio
async def test_create_store_invalid_payload(link_manager, floor_map, store_payload):
    """Test schema validation of store payloads"""
    with pytest.raises(ValidationFailure) as exc_info:
        await link_manager.create_store_with_link(store_payload(floor_map.id, "F1", category="spaceship"), OWNER)
    assert any(e["field"] == "category" for e in exc_info.value.errors)


@pytest.mark.asyncio
async def test_create_store_link_write_failure_leaves_store_unlinked(
    link_manager, map_repository, store_repository, floor_map, store_payload
):
    """Test that a failed map write surfaces but keeps the saved store"""
    failing = AsyncMock(side_effect=StorageError("Map.update", OSError("disk full"), floor_map.id))

    with patch.object(map_repository, "replace_features", failing):
        with pytest.raises(StorageError):
            await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    stores = await store_repository.list_stores()
    assert len(stores) == 1
    assert await feature_link(map_repository, floor_map.id, "F1") is None


@pytest.mark.asyncio
async def test_create_store_losing_claim_race_removes_store(
    link_manager, map_repository, store_repository, floor_map, store_payload
):
    """Test that a store whose feature is claimed between check and link is taken back out"""
    original_get_map = map_repository.get_map
    calls = []

    async def get_map_with_rival(map_id, owner_id=None):
        calls.append(map_id)
        if len(calls) == 2:
            # A rival store links the feature between validation and link
            map_ = await original_get_map(map_id, owner_id)
            find_feature(map_.features, "F1").properties.store_id = "rival"
            return map_
        return await original_get_map(map_id, owner_id)

    with patch.object(map_repository, "get_map", side_effect=get_map_with_rival):
        with pytest.raises(ConflictError):
            await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    assert await store_repository.list_stores() == []


@pytest.mark.asyncio
async def test_relink_store_moves_link(link_manager, map_repository, floor_map, second_map, store_payload):
    """Test moving a store from (M1, F1) to (M2, F2)"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    updated = await link_manager.relink_store(store.id, {"map_id": second_map.id, "feature_id": "F2"}, OWNER)

    assert (updated.map_id, updated.feature_id) == (second_map.id, "F2")
    assert await feature_link(map_repository, floor_map.id, "F1") is None
    assert await feature_link(map_repository, second_map.id, "F2") == store.id


@pytest.mark.asyncio
async def test_relink_store_feature_only(link_manager, map_repository, floor_map, store_payload):
    """Test that a feature change within the same map keeps the map id"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    updated = await link_manager.relink_store(store.id, {"feature_id": "F3"}, OWNER)

    assert (updated.map_id, updated.feature_id) == (floor_map.id, "F3")
    assert await feature_link(map_repository, floor_map.id, "F1") is None
    assert await feature_link(map_repository, floor_map.id, "F3") == store.id


@pytest.mark.asyncio
async def test_relink_store_conflict_restores_old_link(link_manager, map_repository, floor_map, store_payload):
    """Test that a rejected move leaves the store where it was"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)
    other = await link_manager.create_store_with_link(store_payload(floor_map.id, "F2", name="Tea Corner"), OWNER)

    with pytest.raises(ConflictError):
        await link_manager.relink_store(store.id, {"feature_id": "F2", "name": "Renamed"}, OWNER)

    current = await link_manager.get_store(store.id)
    assert (current.feature_id, current.name) == ("F1", "Coffee Corner")
    assert await feature_link(map_repository, floor_map.id, "F1") == store.id
    assert await feature_link(map_repository, floor_map.id, "F2") == other.id


@pytest.mark.asyncio
async def test_relink_store_to_missing_feature(link_manager, map_repository, floor_map, store_payload):
    """Test NotFound for the new feature, with the old link restored"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    with pytest.raises(NotFoundError):
        await link_manager.relink_store(store.id, {"feature_id": "F9"}, OWNER)

    assert await feature_link(map_repository, floor_map.id, "F1") == store.id


@pytest.mark.asyncio
async def test_relink_store_when_old_map_is_gone(
    link_manager, map_repository, floor_map, second_map, store_payload
):
    """Test that a deleted old map does not block the move"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)
    await map_repository.delete_map(floor_map.id)

    updated = await link_manager.relink_store(store.id, {"map_id": second_map.id, "feature_id": "F1"}, OWNER)

    assert updated.map_id == second_map.id
    assert await feature_link(map_repository, second_map.id, "F1") == store.id


@pytest.mark.asyncio
async def test_relink_store_plain_fields(link_manager, map_repository, floor_map, store_payload):
    """Test field updates that do not touch the link"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1", phone="555-0100"), OWNER)

    with patch.object(map_repository, "replace_features", AsyncMock()) as replace_features:
        updated = await link_manager.relink_store(
            store.id, {"name": "Coffee Corner II", "category": "services", "phone": None}, OWNER
        )
        replace_features.assert_not_called()

    assert updated.name == "Coffee Corner II"
    assert updated.category.value == "services"
    assert updated.phone is None
    assert updated.feature_id == "F1"

    # An empty update is a no-op
    assert (await link_manager.relink_store(store.id, {}, OWNER)).name == "Coffee Corner II"


@pytest.mark.asyncio
async def test_relink_store_ownership(link_manager, floor_map, store_payload):
    """Test Forbidden for another owner and NotFound for a missing store"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    with pytest.raises(ForbiddenError):
        await link_manager.relink_store(store.id, {"name": "Mine now"}, OTHER_OWNER)
    with pytest.raises(NotFoundError):
        await link_manager.relink_store("no-such-store", {"name": "Ghost"}, OWNER)


@pytest.mark.asyncio
async def test_delete_store_clears_link(link_manager, map_repository, store_repository, floor_map, store_payload):
    """Test that delete clears the feature's storeId"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    await link_manager.delete_store(store.id, OWNER)

    assert await store_repository.find_store(store.id) is None
    assert await feature_link(map_repository, floor_map.id, "F1") is None


@pytest.mark.asyncio
@pytest.mark.parametrize("error", [
    NotFoundError("Map", "M1"),
    StorageError("Map.get_by_id", ConnectionError("unreachable")),
])
async def test_delete_store_when_map_unavailable(
    link_manager, map_repository, store_repository, floor_map, store_payload, error
):
    """Test that an unreachable or missing map does not block deletion"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    with patch.object(map_repository, "get_map", AsyncMock(side_effect=error)):
        await link_manager.delete_store(store.id, OWNER)

    assert await store_repository.find_store(store.id) is None
    # The orphan storeId is left for the reconciler
    assert await feature_link(map_repository, floor_map.id, "F1") == store.id


@pytest.mark.asyncio
async def test_delete_store_ownership(link_manager, store_repository, floor_map, store_payload):
    """Test Forbidden and NotFound on delete"""
    store = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)

    with pytest.raises(ForbiddenError):
        await link_manager.delete_store(store.id, OTHER_OWNER)
    with pytest.raises(NotFoundError):
        await link_manager.delete_store("no-such-store", OWNER)

    assert await store_repository.find_store(store.id) is not None


@pytest.mark.asyncio
async def test_get_and_list_stores(link_manager, floor_map, store_payload):
    """Test ownership on get and filtering on list"""
    coffee = await link_manager.create_store_with_link(store_payload(floor_map.id, "F1"), OWNER)
    books = await link_manager.create_store_with_link(
        store_payload(floor_map.id, "F2", name="Page Turner", category="books", description="Second-hand books"),
        OWNER
    )

    assert (await link_manager.get_store(coffee.id, OWNER)).name == "Coffee Corner"
    assert (await link_manager.get_store(coffee.id)).name == "Coffee Corner"
    with pytest.raises(ForbiddenError):
        await link_manager.get_store(coffee.id, OTHER_OWNER)

    assert {s.id for s in await link_manager.list_stores(owner_id=OWNER)} == {coffee.id, books.id}
    assert [s.id for s in await link_manager.list_stores(category="books")] == [books.id]
    assert [s.id for s in await link_manager.list_stores(query="ESPRESSO")] == [coffee.id]
    assert [s.id for s in await link_manager.list_stores(query="kiosk")] == []
    assert await link_manager.list_stores(owner_id=OTHER_OWNER) == []
    assert await link_manager.list_stores(map_id="no-such-map") == []


@pytest.mark.asyncio
async def test_list_stores_unknown_category(link_manager):
    """Test that a bad category filter is a validation error"""
    with pytest.raises(ValidationFailure) as exc_info:
        await link_manager.list_stores(category="spaceship")
    assert exc_info.value.errors[0]["field"] == "category"
