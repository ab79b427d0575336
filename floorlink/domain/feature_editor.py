"""
Pure operations on a map's feature collection.

Nothing here touches storage: every function takes a feature sequence and
returns a new list (or a lookup result), leaving its input and the Feature
objects in it unchanged. The caller persists the result.
"""

import dataclasses
from typing import Any, Dict, Iterator, List, Optional, Sequence

from floorlink.data.models import Feature, Geometry
from floorlink.utils.error_handling import NotFoundError


def find_feature(features: Sequence[Feature], feature_id: Optional[str]) -> Optional[Feature]:
    """Return the first feature with the given id, or None."""
    if feature_id is None:
        return None
    for feature in features:
        if feature.id == feature_id:
            return feature
    return None


def _index_of(features: Sequence[Feature], feature_id: Optional[str]) -> int:
    if feature_id is not None:
        for index, feature in enumerate(features):
            if feature.id == feature_id:
                return index
    return -1


def insert_feature(features: Sequence[Feature], new_feature: Feature) -> List[Feature]:
    """Append a feature. Id collisions are the caller's concern."""
    return list(features) + [new_feature]


def merge_update_feature(
    features: Sequence[Feature],
    feature_id: str,
    partial: Dict[str, Any]
) -> List[Feature]:
    """
    Apply a partial update to one feature.

    ``type`` and ``geometry`` are replaced only when present in ``partial``.
    ``properties`` are merged key by key: keys in the partial overwrite,
    every other key (including unrecognized ones) is preserved.

    Args:
        features: Current feature collection
        feature_id: Id of the feature to update
        partial: Serialized partial feature (``type``, ``geometry``, ``properties``)

    Returns:
        List[Feature]: The updated collection

    Raises:
        NotFoundError: If no feature has this id
    """
    index = _index_of(features, feature_id)
    if index == -1:
        raise NotFoundError("Feature", feature_id)

    current = features[index]
    updated = dataclasses.replace(current)

    if partial.get("type") is not None:
        updated.type = partial["type"]

    geometry = partial.get("geometry")
    if geometry is not None:
        updated.geometry = geometry if isinstance(geometry, Geometry) else Geometry.from_dict(geometry)
    else:
        updated.geometry = Geometry.from_dict(current.geometry.to_dict())

    updated.properties = current.properties.merged(partial.get("properties") or {})

    result = list(features)
    result[index] = updated
    return result


def remove_feature(features: Sequence[Feature], feature_id: str) -> List[Feature]:
    """
    Remove the first feature with the given id.

    Raises:
        NotFoundError: If no feature was removed
    """
    index = _index_of(features, feature_id)
    result = list(features)
    if index != -1:
        del result[index]
    if len(result) == len(features):
        raise NotFoundError("Feature", feature_id)
    return result


def search_features(features: Sequence[Feature], query: Optional[str] = None) -> Iterator[Feature]:
    """
    Lazily yield features whose name or id contains ``query``, ignoring case.

    An empty or missing query yields every feature unchanged.
    """
    if not query:
        yield from features
        return

    needle = query.lower()
    for feature in features:
        name = feature.properties.name
        if (isinstance(name, str) and needle in name.lower()) or (
            feature.id is not None and needle in feature.id.lower()
        ):
            yield feature


# Link helpers. Only the link manager and the reconciler call these.

def with_store_link(features: Sequence[Feature], feature_id: str, store_id: str) -> List[Feature]:
    """Return the collection with ``storeId`` set on the given feature.

    Raises:
        NotFoundError: If no feature has this id
    """
    return merge_update_feature(features, feature_id, {"properties": {"storeId": store_id}})


def without_store_link(features: Sequence[Feature], feature_id: str, store_id: str) -> List[Feature]:
    """Return the collection with ``storeId`` cleared on the given feature.

    The link is cleared only while it still names ``store_id``; a feature
    that was already reassigned to another store is left alone. Missing
    features are ignored.
    """
    index = _index_of(features, feature_id)
    if index == -1 or features[index].store_id != store_id:
        return list(features)

    current = features[index]
    properties = dataclasses.replace(current.properties, store_id=None, extra=dict(current.properties.extra))
    cleared = dataclasses.replace(current, properties=properties)

    result = list(features)
    result[index] = cleared
    return result


def is_unchanged(before: Sequence[Feature], after: Sequence[Feature]) -> bool:
    """True when two collections serialize identically."""
    return [f.to_dict() for f in before] == [f.to_dict() for f in after]
