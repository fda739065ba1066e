from __future__ import annotations

"""
Per-entry resolution: override -> fetch -> extract -> score -> probe.

States: an entry ends Overridden (curated table hit, no network), Resolved
(first ranked candidate whose probe succeeds and whose effective score
clears the acceptance threshold), or unresolved with an Outcome saying why.
"""

from dataclasses import dataclass, field
from typing import List, Mapping, Optional

import httpx
from loguru import logger

from .config import DISALLOWED_SOURCE_HOST_HINTS, ResolverSettings
from .extract import RegexTagScanner, TagScanner, extract_candidates
from .normalize import entry_tokens
from .page_fetch import FetchError, fetch_document
from .pipeline_types import Candidate, CatalogEntry, Outcome, Resolution
from .probe import is_hard_blocked, is_undersized, probe_image, size_bonus
from .score import rank_candidates
from .utils.urls import host_matches_any, origin_root, url_host


@dataclass
class ResolverContext:
    """Collaborators shared, read-only, by every worker."""

    client: httpx.Client
    settings: ResolverSettings = field(default_factory=ResolverSettings)
    overrides: Mapping[str, str] = field(default_factory=dict)
    scanner: TagScanner = field(default_factory=RegexTagScanner)


def source_pages(official_url: str) -> List[str]:
    """The official page, then its origin root when that is a different page."""
    pages = [official_url]
    root = origin_root(official_url)
    if root and root != official_url:
        pages.append(root)
    return pages


def _collect_candidates(entry: CatalogEntry, ctx: ResolverContext) -> Optional[List[Candidate]]:
    """Candidates from every page that could be fetched; None when none could."""
    s = ctx.settings
    candidates: List[Candidate] = []
    fetched = 0
    for page in source_pages(entry.official_url):
        try:
            markup = fetch_document(ctx.client, page, timeout=s.request_timeout, max_bytes=s.max_document_bytes)
        except FetchError as e:
            logger.debug("[image] {} page {} skipped ({})", entry.label, page, e)
            continue
        fetched += 1
        candidates.extend(
            extract_candidates(
                markup,
                page,
                scanner=ctx.scanner,
                max_img_elements=s.max_img_elements,
                max_script_matches=s.max_script_matches,
            )
        )
    if not fetched:
        return None
    # Both pages can expose the same URL; keep the first sighting.
    seen = set()
    unique: List[Candidate] = []
    for c in candidates:
        if c.url not in seen:
            seen.add(c.url)
            unique.append(c)
    return unique


def resolve_entry(entry: CatalogEntry, ctx: ResolverContext) -> Resolution:
    override = ctx.overrides.get(entry.id) if entry.id else None
    if override:
        return Resolution(entry.key, Outcome.OVERRIDDEN, override, "curated override")

    if not entry.official_url:
        return Resolution(entry.key, Outcome.SKIPPED, detail="no official_url")

    official_host = url_host(entry.official_url)
    if not official_host:
        return Resolution(entry.key, Outcome.SKIPPED, detail="unparsable official_url")
    if host_matches_any(official_host, DISALLOWED_SOURCE_HOST_HINTS):
        return Resolution(entry.key, Outcome.SKIPPED, detail=f"not a vendor host ({official_host})")

    candidates = _collect_candidates(entry, ctx)
    if candidates is None:
        return Resolution(entry.key, Outcome.FETCH_FAILED, detail="fetch failed")
    if not candidates:
        return Resolution(entry.key, Outcome.NO_CANDIDATE, detail="no image candidates")

    s = ctx.settings
    tokens = entry_tokens(entry.name, entry.short_name)
    ranked = rank_candidates(candidates, official_host, tokens, limit=s.max_candidates_to_probe)

    for scored in ranked:
        if is_hard_blocked(scored.url):
            continue
        probe = probe_image(ctx.client, scored.url, timeout=s.request_timeout)
        if probe is None:
            continue
        if is_undersized(probe, s):
            logger.debug("[image] {} {} too small ({} bytes)", entry.label, scored.url, probe.content_length)
            continue
        effective = scored.score + size_bonus(probe.content_length, s)
        if effective >= s.acceptance_threshold:
            return Resolution(entry.key, Outcome.RESOLVED, scored.url, f"score {effective}")

    return Resolution(entry.key, Outcome.NO_CANDIDATE, detail="no suitable candidate")


def resolve_entry_safely(entry: CatalogEntry, ctx: ResolverContext, label: str = "") -> Resolution:
    """
    Orchestrator boundary used by the pool: logs the outcome and turns any
    unexpected exception into an ERROR resolution for this entry only.
    """
    label = label or entry.label
    try:
        result = resolve_entry(entry, ctx)
    except Exception as e:
        logger.warning("[image] {} -> failed ({})", label, e)
        return Resolution(entry.key, Outcome.ERROR, detail=str(e) or type(e).__name__)

    if result.resolved:
        logger.info("[image] {} -> OK ({})", label, result.detail)
    else:
        logger.info("[image] {} -> {}", label, result.detail)
    return result
