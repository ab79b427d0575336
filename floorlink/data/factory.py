"""
Repository construction from settings.
"""
import logging
from typing import Tuple

from floorlink.config.settings import Settings
from floorlink.data.json_repository import JsonFileRepository
from floorlink.data.map_repository import MapRepository
from floorlink.data.memory_repository import InMemoryRepository
from floorlink.data.models import Map, Store
from floorlink.data.store_repository import StoreRepository

logger = logging.getLogger(__name__)


def build_repositories(settings: Settings) -> Tuple[MapRepository, StoreRepository]:
    """Create the map and store repositories for the configured backend.

    The repositories are returned unconnected; call connect_repositories().
    """
    if settings.storage.backend == "json":
        map_backend = JsonFileRepository(Map, settings.maps_path)
        store_backend = JsonFileRepository(Store, settings.stores_path)
    else:
        map_backend = InMemoryRepository(Map)
        store_backend = InMemoryRepository(Store)

    logger.debug(f"Using {settings.storage.backend} storage backend")
    return MapRepository(map_backend), StoreRepository(store_backend)


async def connect_repositories(map_repository: MapRepository, store_repository: StoreRepository) -> None:
    await map_repository.backend.connect()
    await store_repository.backend.connect()


async def disconnect_repositories(map_repository: MapRepository, store_repository: StoreRepository) -> None:
    await map_repository.backend.disconnect()
    await store_repository.backend.disconnect()
