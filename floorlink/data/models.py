"""
Data models for maps, features and stores.

Maps and stores are separate documents. A feature lives only inside its
map's ``features`` list; the link between a store and its feature is the
pair (Store.map_id, Store.feature_id) on one side and
``Feature.properties.store_id`` (serialized as ``storeId``) on the other.
"""
import copy
import logging
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


def new_id() -> str:
    """Generate a document identifier."""
    return str(uuid.uuid4())


def _parse_datetime(value: Any) -> datetime:
    """Parse a stored timestamp; missing or malformed values read as now."""
    if isinstance(value, str):
        try:
            return datetime.fromisoformat(value)
        except ValueError:
            logger.warning(f"Unreadable timestamp {value!r}, using current time")
            return datetime.now()
    if isinstance(value, datetime):
        return value
    return datetime.now()


class ElementType(Enum):
    """Kinds of map element carried in ``properties.type``."""

    BACKGROUND = "background"
    SUBMAP = "submap"
    LOCAL = "local"
    PATH = "path"
    AMENITY = "amenity"


class LocalCategory(Enum):
    """Categories of a ``local`` map element."""

    BOOTH = "booth"
    STORE = "store"
    RESTAURANT = "restaurant"
    RESTROOM = "restroom"
    EXIT = "exit"
    STAGE = "stage"
    INFO = "info"
    OTHER = "other"


class StoreCategory(Enum):
    """Business categories of a store."""

    FOOD = "food"
    CLOTHING = "clothing"
    ELECTRONICS = "electronics"
    JEWELRY = "jewelry"
    BOOKS = "books"
    SPORTS = "sports"
    HOME = "home"
    BEAUTY = "beauty"
    TOYS = "toys"
    SERVICES = "services"
    OTHER = "other"

    @classmethod
    def parse(cls, value: Any, store_id: Optional[str] = None) -> 'StoreCategory':
        """Read a stored category; values outside the enum (legacy data) become OTHER."""
        if value is None:
            return cls.OTHER
        try:
            return cls(value)
        except ValueError:
            logger.warning(f"Store {store_id} has unknown category {value!r}, reading it as '{cls.OTHER.value}'")
            return cls.OTHER


@dataclass
class Geometry:
    """GeoJSON-like geometry. Coordinates nest as point, line or polygon."""

    type: str = "Point"
    coordinates: List[Any] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"type": self.type, "coordinates": copy.deepcopy(self.coordinates)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Geometry':
        return cls(
            type=data.get("type", "Point"),
            coordinates=copy.deepcopy(data.get("coordinates", []))
        )


@dataclass
class FeatureProperties:
    """Open properties bag of a feature.

    Recognized keys are typed attributes; every other key is kept in
    ``extra`` and written back unchanged by ``to_dict``.

    A recognized key set to null is the same as an absent one: it is not
    written, so merging ``{"parentId": None}`` clears the parent. Null values
    of unrecognized keys are kept as they are.
    """

    # Maps attribute name -> serialized key
    KNOWN_KEYS = {
        "type": "type",
        "name": "name",
        "parent_id": "parentId",
        "category": "category",
        "color": "color",
        "exhibitor": "exhibitor",
        "selected": "selected",
        "store_id": "storeId",
    }

    type: Optional[str] = None
    name: Optional[str] = None
    parent_id: Optional[str] = None
    category: Optional[str] = None
    color: Optional[str] = None
    exhibitor: Optional[str] = None
    selected: Optional[bool] = None
    store_id: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize, omitting null known keys and re-emitting extra keys."""
        result = copy.deepcopy(self.extra)
        for attr, key in self.KNOWN_KEYS.items():
            value = getattr(self, attr)
            if value is not None:
                result[key] = value
        return result

    @classmethod
    def from_dict(cls, data: Optional[Dict[str, Any]]) -> 'FeatureProperties':
        data = data or {}
        known = {}
        extra = {}
        by_key = {key: attr for attr, key in cls.KNOWN_KEYS.items()}
        for key, value in data.items():
            if key in by_key:
                known[by_key[key]] = value
            else:
                extra[key] = copy.deepcopy(value)
        return cls(extra=extra, **known)

    def merged(self, partial: Dict[str, Any]) -> 'FeatureProperties':
        """Return a copy with ``partial`` (serialized keys) merged over these properties.

        A known key mapped to None in ``partial`` is cleared.
        """
        data = self.to_dict()
        data.update(copy.deepcopy(partial))
        return FeatureProperties.from_dict(data)


@dataclass
class Feature:
    """One element of a map's feature collection."""

    id: Optional[str] = None
    type: str = "Feature"
    geometry: Geometry = field(default_factory=Geometry)
    properties: FeatureProperties = field(default_factory=FeatureProperties)

    @property
    def store_id(self) -> Optional[str]:
        return self.properties.store_id

    def to_dict(self) -> Dict[str, Any]:
        result = {
            "type": self.type,
            "geometry": self.geometry.to_dict(),
            "properties": self.properties.to_dict()
        }
        if self.id is not None:
            result["id"] = self.id
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Feature':
        feature_id = data.get("id")
        return cls(
            id=str(feature_id) if feature_id is not None else None,
            type=data.get("type", "Feature"),
            geometry=Geometry.from_dict(data.get("geometry") or {}),
            properties=FeatureProperties.from_dict(data.get("properties"))
        )


@dataclass
class Map:
    """Model representing a floor-plan map and its feature collection."""

    id: str = field(default_factory=new_id)
    owner_id: str = ""
    name: str = ""
    type: str = "FeatureCollection"
    tags: List[str] = field(default_factory=list)
    metadata: Dict[str, Any] = field(default_factory=dict)
    features: List[Feature] = field(default_factory=list)
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the model to a dictionary."""
        return {
            "id": self.id,
            "owner_id": self.owner_id,
            "name": self.name,
            "type": self.type,
            "tags": list(self.tags),
            "metadata": copy.deepcopy(self.metadata),
            "features": [f.to_dict() for f in self.features],
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Map':
        """Create a model from a dictionary."""
        return cls(
            id=data["id"],
            owner_id=data.get("owner_id", ""),
            name=data.get("name", ""),
            type=data.get("type", "FeatureCollection"),
            tags=list(data.get("tags", [])),
            metadata=copy.deepcopy(data.get("metadata", {})),
            features=[Feature.from_dict(f) for f in data.get("features", [])],
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at"))
        )


@dataclass
class Location:
    """Layout position of a store, independent of the feature geometry."""

    x: float = 0.0
    y: float = 0.0
    width: Optional[float] = None
    height: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        result = {"x": self.x, "y": self.y}
        if self.width is not None:
            result["width"] = self.width
        if self.height is not None:
            result["height"] = self.height
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Location':
        return cls(
            x=data.get("x", 0.0),
            y=data.get("y", 0.0),
            width=data.get("width"),
            height=data.get("height")
        )


@dataclass
class Store:
    """Model representing a business occupying one feature of one map."""

    id: str = field(default_factory=new_id)
    name: str = ""
    floor: str = ""
    category: StoreCategory = StoreCategory.OTHER
    opening_hours: str = ""
    description: str = ""
    logo: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    location: Location = field(default_factory=Location)
    map_id: str = ""
    feature_id: str = ""
    owner_id: str = ""
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        """Convert the model to a dictionary."""
        return {
            "id": self.id,
            "name": self.name,
            "floor": self.floor,
            "category": self.category.value,
            "opening_hours": self.opening_hours,
            "description": self.description,
            "logo": self.logo,
            "phone": self.phone,
            "email": self.email,
            "website": self.website,
            "location": self.location.to_dict(),
            "map_id": self.map_id,
            "feature_id": self.feature_id,
            "owner_id": self.owner_id,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat()
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'Store':
        """Create a model from a dictionary."""
        return cls(
            id=data["id"],
            name=data.get("name", ""),
            floor=data.get("floor", ""),
            category=StoreCategory.parse(data.get("category"), store_id=data["id"]),
            opening_hours=data.get("opening_hours", ""),
            description=data.get("description", ""),
            logo=data.get("logo"),
            phone=data.get("phone"),
            email=data.get("email"),
            website=data.get("website"),
            location=Location.from_dict(data.get("location") or {}),
            map_id=data.get("map_id", ""),
            feature_id=data.get("feature_id", ""),
            owner_id=data.get("owner_id", ""),
            created_at=_parse_datetime(data.get("created_at")),
            updated_at=_parse_datetime(data.get("updated_at"))
        )
