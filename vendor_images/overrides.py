"""Curated image overrides, consulted before any network activity for an entry."""

from __future__ import annotations

from types import MappingProxyType
from typing import Dict, Mapping, Optional

from loguru import logger

from .normalize import safe_http_url, sanitize

# entry id -> absolute image URL. Hand-maintained; an override always wins.
CURATED_IMAGE_OVERRIDES: Dict[str, str] = {}


def load_overrides(extra: Optional[Mapping[str, str]] = None) -> Mapping[str, str]:
    """
    Read-only view of the curated table, optionally merged with ``extra``
    (later keys win). Ids are sanitised; entries whose URL is not an
    absolute http(s) URL are dropped with a warning.
    """
    merged: Dict[str, str] = {}
    sources = [CURATED_IMAGE_OVERRIDES]
    if extra:
        sources.append(dict(extra))
    for source in sources:
        for raw_id, raw_url in source.items():
            entry_id = sanitize(raw_id)
            url = safe_http_url(raw_url)
            if not entry_id or not url:
                logger.warning("Ignoring invalid image override {!r} -> {!r}", raw_id, raw_url)
                continue
            merged[entry_id] = url
    return MappingProxyType(merged)
