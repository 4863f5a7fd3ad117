"""Cache key generation, content-addressed by image bytes and quality tier."""

from __future__ import annotations

import hashlib

LOW_QUALITY_SUFFIX = "_lq"


def fingerprint(image_bytes: bytes, low_quality: bool) -> str:
    """Derive the cache key for an image at a given quality tier.

    The key is the SHA256 hex digest of the raw bytes, with a fixed suffix
    for the low-quality tier so the two tiers never share an entry.
    """
    suffix = LOW_QUALITY_SUFFIX if low_quality else ""
    return f"{hash_image(image_bytes)}{suffix}"


def hash_image(image_bytes: bytes) -> str:
    """Hash image bytes for cache key use."""
    return hashlib.sha256(image_bytes).hexdigest()
