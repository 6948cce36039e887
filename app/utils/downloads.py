"""Fetching remote files that a backend cannot pull by URL on its own."""

from __future__ import annotations

import logging
from typing import Optional

import httpx

from app.config import get_settings

logger = logging.getLogger(__name__)


async def download_file(url: str) -> Optional[bytes]:
    """Download ``url`` and return its bytes, or None when the fetch fails."""
    timeout = get_settings().http_timeout_seconds
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content
    except httpx.HTTPError as e:
        logger.warning("File download failed for %s: %s", url, e)
        return None
