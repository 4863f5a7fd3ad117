"""Cache subsystem: content-addressed keys and the persistent render index."""

from firecomp.cache.index import RenderIndex
from firecomp.cache.keys import fingerprint, hash_image
from firecomp.cache.stats import CacheEntry, IndexStats

__all__ = [
    "RenderIndex",
    "CacheEntry",
    "IndexStats",
    "fingerprint",
    "hash_image",
]
