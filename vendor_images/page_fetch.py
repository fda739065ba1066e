from __future__ import annotations

import time
from typing import Optional

import httpx
from loguru import logger

from .config import HTTP_MAX_REDIRECTS, PAGE_HEADERS, ResolverSettings


class FetchError(RuntimeError):
    """A vendor document could not be fetched; carries a short cause."""


def make_client(
    settings: Optional[ResolverSettings] = None,
    transport: Optional[httpx.BaseTransport] = None,
) -> httpx.Client:
    """
    One client shared by every worker thread. Header profiles are chosen
    per request (documents vs. image probes), not on the client.
    """
    settings = settings or ResolverSettings()
    pool = max(settings.concurrency * 2, 10)
    return httpx.Client(
        follow_redirects=True,
        max_redirects=HTTP_MAX_REDIRECTS,
        timeout=httpx.Timeout(settings.request_timeout),
        limits=httpx.Limits(max_connections=pool, max_keepalive_connections=pool),
        transport=transport,
    )


def fetch_document(
    client: httpx.Client,
    url: str,
    timeout: float = 12.0,
    max_bytes: int = 2_000_000,
) -> str:
    """
    GET a vendor page and return its text.

    ``timeout`` is a deadline for the whole exchange, body included: the
    body is streamed and the connection dropped as soon as the deadline
    passes or ``max_bytes`` is exceeded.
    """
    deadline = time.monotonic() + timeout
    try:
        with client.stream("GET", url, headers=PAGE_HEADERS, timeout=timeout) as r:
            if not r.is_success:
                raise FetchError(f"HTTP {r.status_code}")
            chunks = []
            size = 0
            # No chunk size: the checks run after every network read.
            for chunk in r.iter_bytes():
                size += len(chunk)
                if size > max_bytes:
                    raise FetchError(f"document larger than {max_bytes} bytes")
                if time.monotonic() > deadline:
                    raise FetchError(f"deadline of {timeout:g}s exceeded")
                chunks.append(chunk)
            encoding = r.encoding or "utf-8"
    except httpx.TimeoutException as e:
        raise FetchError(f"timeout ({type(e).__name__})") from e
    except (httpx.HTTPError, httpx.InvalidURL) as e:
        raise FetchError(f"{type(e).__name__}: {e}") from e

    body = b"".join(chunks)
    try:
        text = body.decode(encoding, errors="replace")
    except LookupError:
        text = body.decode("utf-8", errors="replace")
    logger.debug("Fetched {} ({} bytes)", url, size)
    return text
