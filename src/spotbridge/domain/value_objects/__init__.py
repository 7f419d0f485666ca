"""Domain value objects."""

from spotbridge.domain.value_objects.catalog_object import (
    CatalogObjectId,
    ObjectKind,
    is_track_reference,
)

__all__ = ["CatalogObjectId", "ObjectKind", "is_track_reference"]
