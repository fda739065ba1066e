from __future__ import annotations

"""
Text and URL sanitisation shared by the loader, the scorer and the writer.

Public helpers:

* sanitize(value) -> str
    Control characters become spaces, whitespace collapses, ends trimmed.

* safe_http_url(value) -> str
    Sanitised absolute http(s) URL, or "" for anything else.

* entry_tokens(name, short_name) -> List[str]
    Distinct lower-case tokens used for path relevance scoring.

* manufacturer_key(manufacturer) -> str
    Grouping key for the manufacturer fallback pass.
"""

import re
from typing import List
from urllib.parse import urlsplit, urlunsplit

from .config import MIN_TOKEN_LENGTH

_CONTROL_CHARS_RE = re.compile(r"[\x00-\x1f\x7f]+")
_WHITESPACE_RE = re.compile(r"\s+")
_TOKEN_SPLIT_RE = re.compile(r"[^a-z0-9]+")


def sanitize(value) -> str:
    if value is None:
        return ""
    # pandas hands us NaN for blank cells when dtype inference slips through
    if isinstance(value, float) and value != value:
        return ""
    text = _CONTROL_CHARS_RE.sub(" ", str(value))
    return _WHITESPACE_RE.sub(" ", text).strip()


def safe_http_url(value) -> str:
    """
    Parse ``value`` as an absolute URL and keep it only if the scheme is
    http/https and a host is present. Never raises.
    """
    text = sanitize(value)
    if not text:
        return ""
    try:
        parts = urlsplit(text)
        host = parts.hostname
        parts.port  # raises on a malformed port
    except ValueError:
        return ""
    scheme = parts.scheme.lower()
    if scheme not in ("http", "https") or not host:
        return ""
    if " " in parts.netloc:
        return ""
    path = parts.path or "/"
    return urlunsplit((scheme, parts.netloc.lower(), path, parts.query, parts.fragment))


def _tokens(text: str) -> List[str]:
    return [t for t in _TOKEN_SPLIT_RE.split(sanitize(text).lower()) if len(t) >= MIN_TOKEN_LENGTH]


def entry_tokens(name: str, short_name: str = "") -> List[str]:
    """Name tokens first, then short-name tokens, de-duplicated in order."""
    seen = set()
    out: List[str] = []
    for tok in _tokens(name) + _tokens(short_name):
        if tok not in seen:
            seen.add(tok)
            out.append(tok)
    return out


def manufacturer_key(manufacturer: str) -> str:
    text = sanitize(manufacturer).casefold()
    return re.sub(r"[\W_]+", " ", text).strip()
