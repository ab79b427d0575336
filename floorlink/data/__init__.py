"""
Data layer: document models, repositories and input schemas.
"""

from floorlink.data.map_repository import MapRepository
from floorlink.data.models import Feature, FeatureProperties, Geometry, Location, Map, Store
from floorlink.data.store_repository import StoreRepository

__all__ = [
    "Feature",
    "FeatureProperties",
    "Geometry",
    "Location",
    "Map",
    "MapRepository",
    "Store",
    "StoreRepository",
]
