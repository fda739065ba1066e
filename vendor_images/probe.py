from __future__ import annotations

import re
from typing import Optional

import httpx
from loguru import logger

from .config import HARD_BLOCK_IMAGE_HINTS, IMAGE_HEADERS, ResolverSettings
from .pipeline_types import ProbeResult

_CONTENT_RANGE_TOTAL_RE = re.compile(r"/\s*(\d+)\s*$")


def is_hard_blocked(url: str) -> bool:
    """Icon-like URLs that are never probed, whatever their score."""
    lower = (url or "").lower()
    return any(hint in lower for hint in HARD_BLOCK_IMAGE_HINTS)


def _int_header(value: Optional[str]) -> int:
    try:
        n = int(str(value).strip())
    except (TypeError, ValueError):
        return 0
    return n if n > 0 else 0


def _image_result(response: httpx.Response) -> Optional[ProbeResult]:
    content_type = response.headers.get("content-type", "").strip().lower()
    if not content_type.startswith("image/"):
        return None
    length = 0
    if response.status_code == 206:
        m = _CONTENT_RANGE_TOTAL_RE.search(response.headers.get("content-range", ""))
        if m:
            length = int(m.group(1))
    else:
        length = _int_header(response.headers.get("content-length"))
    return ProbeResult(content_type=content_type, content_length=length)


def _probe_head(client: httpx.Client, url: str, timeout: float) -> Optional[ProbeResult]:
    r = client.head(url, headers=IMAGE_HEADERS, timeout=timeout)
    if not r.is_success:
        return None
    return _image_result(r)


def _probe_range(client: httpx.Client, url: str, timeout: float) -> Optional[ProbeResult]:
    headers = dict(IMAGE_HEADERS)
    headers["Range"] = "bytes=0-1"
    # Streamed and closed without reading, in case the server ignores Range.
    with client.stream("GET", url, headers=headers, timeout=timeout) as r:
        if not r.is_success:
            return None
        return _image_result(r)


def probe_image(client: httpx.Client, url: str, timeout: float = 12.0) -> Optional[ProbeResult]:
    """
    Confirm ``url`` serves an image. HEAD first; if that does not yield an
    image content type (or fails), a ranged GET for the first two bytes.
    Returns None for anything that is not a verifiable image; never raises
    on network trouble.
    """
    try:
        head = _probe_head(client, url, timeout)
        if head is not None:
            return head
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug("HEAD probe failed for {}: {}", url, e)

    try:
        return _probe_range(client, url, timeout)
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        logger.debug("Range probe failed for {}: {}", url, e)
        return None


def size_bonus(content_length: int, settings: Optional[ResolverSettings] = None) -> int:
    s = settings or ResolverSettings()
    if content_length >= s.size_bonus_large_bytes:
        return s.size_bonus_large
    if content_length >= s.size_bonus_medium_bytes:
        return s.size_bonus_medium
    if content_length >= s.size_bonus_small_bytes:
        return s.size_bonus_small
    return 0


def is_undersized(probe: ProbeResult, settings: Optional[ResolverSettings] = None) -> bool:
    """A declared, positive length under the minimum marks a placeholder or icon."""
    s = settings or ResolverSettings()
    return 0 < probe.content_length < s.min_content_length
