"""
Input schemas for maps, features and stores.

Payloads arriving from callers are validated with these pydantic models
before they reach the services. Unlike the dataclass models in
``floorlink.data.models``, these describe what a caller may send, not what
is stored.
"""
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel, Field, ValidationError

from floorlink.data.models import ElementType, LocalCategory, StoreCategory
from floorlink.utils.error_handling import ValidationFailure

SchemaT = TypeVar("SchemaT", bound=BaseModel)


class GeometryIn(BaseModel):
    type: str
    coordinates: List[Any]


class PropertiesIn(BaseModel):
    """Feature properties. Unknown keys are allowed and kept."""

    model_config = {"extra": "allow", "populate_by_name": True}

    type: ElementType
    name: str
    parent_id: Optional[str] = Field(default=None, alias="parentId")
    category: Optional[LocalCategory] = None
    color: Optional[str] = None
    exhibitor: Optional[str] = None
    selected: Optional[bool] = None


class FeatureCreate(BaseModel):
    type: str = "Feature"
    id: Optional[str] = None
    geometry: GeometryIn
    properties: PropertiesIn


class FeatureUpdate(BaseModel):
    """Partial feature update; properties are merged key by key."""

    type: Optional[str] = None
    geometry: Optional[GeometryIn] = None
    properties: Optional[Dict[str, Any]] = None


class Dimensions(BaseModel):
    width: float
    height: float
    unit: str


class MapMetadataIn(BaseModel):
    model_config = {"extra": "allow"}

    description: Optional[str] = None
    version: Optional[str] = None
    dimensions: Optional[Dimensions] = None


class MapCreate(BaseModel):
    name: str = Field(..., min_length=1)
    type: str = "FeatureCollection"
    tags: List[str] = Field(default_factory=list)
    metadata: MapMetadataIn = Field(default_factory=MapMetadataIn)
    features: List[FeatureCreate] = Field(default_factory=list)


class MapUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    type: Optional[str] = None
    tags: Optional[List[str]] = None
    metadata: Optional[MapMetadataIn] = None


class LocationIn(BaseModel):
    x: float
    y: float
    width: Optional[float] = None
    height: Optional[float] = None


class StoreCreate(BaseModel):
    name: str = Field(..., min_length=1)
    floor: str
    category: StoreCategory
    opening_hours: str
    description: str
    logo: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    location: LocationIn
    map_id: str = Field(..., min_length=1)
    feature_id: str = Field(..., min_length=1)


class StoreUpdate(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1)
    floor: Optional[str] = None
    category: Optional[StoreCategory] = None
    opening_hours: Optional[str] = None
    description: Optional[str] = None
    logo: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None
    website: Optional[str] = None
    location: Optional[LocationIn] = None
    map_id: Optional[str] = None
    feature_id: Optional[str] = None


def parse_input(schema: Type[SchemaT], data: Any) -> SchemaT:
    """Validate a payload against a schema.

    Args:
        schema: pydantic model to validate against
        data: Raw payload (dict) or an already-built schema instance

    Returns:
        The validated model instance

    Raises:
        ValidationFailure: If the payload does not match the schema
    """
    if isinstance(data, schema):
        return data
    try:
        return schema.model_validate(data)
    except ValidationError as e:
        errors = [
            {"field": ".".join(str(p) for p in err["loc"]), "message": err["msg"]}
            for err in e.errors()
        ]
        raise ValidationFailure(f"Invalid {schema.__name__} payload", errors=errors) from e


def properties_to_dict(properties: PropertiesIn) -> Dict[str, Any]:
    """Serialize validated properties back to their client key names."""
    return properties.model_dump(by_alias=True, exclude_unset=True, mode="json")
