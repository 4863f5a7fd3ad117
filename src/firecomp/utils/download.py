"""Fetch source images over HTTP."""

from __future__ import annotations

import logging

import httpx

from firecomp.errors.exceptions import SourceError
from firecomp.utils.image import check_size

logger = logging.getLogger(__name__)


async def fetch_image(
    url: str,
    timeout: float = 30.0,
    max_bytes: int = 20 * 1024 * 1024,
    client: httpx.AsyncClient | None = None,
) -> bytes:
    """Download an image and return its bytes.

    Pass ``client`` to reuse a connection pool (or a mock transport in tests).
    """
    owns_client = client is None
    http = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
    try:
        response = await http.get(url)
        response.raise_for_status()
    except httpx.HTTPStatusError as e:
        raise SourceError(
            f"Download failed with HTTP {e.response.status_code}: {url}", source=url
        ) from e
    except httpx.HTTPError as e:
        raise SourceError(f"Download failed: {e}", source=url) from e
    finally:
        if owns_client:
            await http.aclose()

    logger.info("Downloaded %d bytes from %s", len(response.content), url)
    return check_size(response.content, url, max_bytes)
