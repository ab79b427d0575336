# tests/conftest.py
import pytest
import pytest_asyncio

from floorlink.data.map_repository import MapRepository
from floorlink.data.memory_repository import InMemoryRepository
from floorlink.data.models import Feature, FeatureProperties, Geometry, Map, Store
from floorlink.data.store_repository import StoreRepository
from floorlink.services.link_manager import LinkManager
from floorlink.services.map_service import MapService
from floorlink.services.reconciler import Reconciler

OWNER = "user-1"


def _make_feature(feature_id, name=None, store_id=None, **extra):
    return Feature(
        id=feature_id,
        geometry=Geometry(type="Polygon", coordinates=[[[0, 0], [0, 4], [4, 4], [4, 0], [0, 0]]]),
        properties=FeatureProperties(
            type="local",
            name=name or f"Booth {feature_id}",
            store_id=store_id,
            extra=extra
        )
    )


def _store_payload(map_id, feature_id, **overrides):
    data = {
        "name": "Coffee Corner",
        "floor": "1",
        "category": "food",
        "opening_hours": "08:00-18:00",
        "description": "Espresso and pastries",
        "location": {"x": 10, "y": 20, "width": 4, "height": 4},
        "map_id": map_id,
        "feature_id": feature_id,
    }
    data.update(overrides)
    return data


@pytest.fixture
def make_feature():
    """Factory for polygon features"""
    return _make_feature


@pytest.fixture
def store_payload():
    """Factory for valid store creation payloads"""
    return _store_payload


@pytest_asyncio.fixture
async def map_repository():
    """Connected in-memory map repository"""
    backend = InMemoryRepository(Map)
    await backend.connect()
    return MapRepository(backend)


@pytest_asyncio.fixture
async def store_repository():
    """Connected in-memory store repository"""
    backend = InMemoryRepository(Store)
    await backend.connect()
    return StoreRepository(backend)


@pytest.fixture
def link_manager(map_repository, store_repository):
    return LinkManager(map_repository, store_repository)


@pytest.fixture
def reconciler(map_repository, store_repository):
    return Reconciler(map_repository, store_repository)


@pytest.fixture
def map_service(map_repository, store_repository):
    return MapService(map_repository, store_repository)


@pytest_asyncio.fixture
async def floor_map(map_repository):
    """Map owned by OWNER with three unlinked booths F1, F2, F3"""
    map_ = Map(
        owner_id=OWNER,
        name="Hall A",
        features=[_make_feature("F1"), _make_feature("F2"), _make_feature("F3")]
    )
    return await map_repository.create_map(map_)
