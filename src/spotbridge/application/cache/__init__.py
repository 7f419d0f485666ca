"""Caching layer - keeps already fetched objects and images out of the network path."""

from spotbridge.application.cache.image_cache import ImageCache
from spotbridge.application.cache.object_cache import ObjectCache, SingleObjectCache

__all__ = ["ImageCache", "ObjectCache", "SingleObjectCache"]
