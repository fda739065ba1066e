# vendor_images/utils/urls.py
from __future__ import annotations

from typing import Iterable
from urllib.parse import urljoin, urlsplit

from ..config import SECOND_LEVEL_TLDS
from ..normalize import safe_http_url, sanitize

__all__ = [
    "to_absolute_url",
    "root_domain",
    "has_host_hint",
    "host_matches_any",
    "origin_root",
    "url_host",
    "url_path_and_query",
]

_PSEUDO_SCHEMES = ("data:", "javascript:", "blob:", "about:", "mailto:", "tel:")


def to_absolute_url(candidate: str, base_url: str) -> str:
    """
    Resolve a URL found in a document against the document's own URL.

    Returns "" for pseudo-URLs (data:, javascript:, ...), for anything
    that does not end up as http/https, and for unparsable input.
    """
    text = sanitize(candidate)
    if not text or text.lower().startswith(_PSEUDO_SCHEMES):
        return ""
    try:
        joined = urljoin(base_url, text)
    except ValueError:
        return ""
    return safe_http_url(joined)


def root_domain(hostname: str) -> str:
    """
    Registrable domain, aware of a small set of two-part public suffixes:
    shop.vendor.co.uk -> vendor.co.uk, cdn.vendor.com -> vendor.com.
    """
    parts = [p for p in str(hostname or "").lower().split(".") if p]
    if len(parts) <= 2:
        return ".".join(parts)
    last_two = ".".join(parts[-2:])
    if last_two in SECOND_LEVEL_TLDS:
        return ".".join(parts[-3:])
    return last_two


def has_host_hint(hostname: str, hint: str) -> bool:
    host = (hostname or "").lower()
    return host == hint or host.endswith("." + hint)


def host_matches_any(hostname: str, hints: Iterable[str]) -> bool:
    return any(has_host_hint(hostname, h) for h in hints)


def url_host(url: str) -> str:
    """Lower-case hostname, "" when the URL has none or does not parse."""
    try:
        return (urlsplit(url).hostname or "").lower()
    except ValueError:
        return ""


def origin_root(url: str) -> str:
    """https://vendor.example/a/b?c -> https://vendor.example/"""
    try:
        parts = urlsplit(url)
    except ValueError:
        return ""
    if not parts.scheme or not parts.netloc:
        return ""
    return f"{parts.scheme}://{parts.netloc}/"


def url_path_and_query(url: str) -> str:
    """Lower-cased path plus query, the part of a URL the path heuristics look at."""
    parts = urlsplit(url)
    path = parts.path or "/"
    if parts.query:
        path = f"{path}?{parts.query}"
    return path.lower()
