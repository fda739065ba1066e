from __future__ import annotations

import re
from typing import Iterable, List, Optional, Sequence
from urllib.parse import urlsplit

from .config import (
    ASSET_PATH_SEGMENTS,
    ASSET_SEGMENT_BONUS,
    BAD_HINT_PENALTY,
    BAD_IMAGE_HINTS,
    DIMENSION_BONUS,
    DIMENSION_MIN_HEIGHT,
    DIMENSION_MIN_WIDTH,
    DOMAIN_EXACT_BONUS,
    DOMAIN_SUBDOMAIN_BONUS,
    IMAGE_EXTENSION_BONUS,
    IMAGE_EXTENSIONS,
    SOCIAL_HOST_HINTS,
    SOCIAL_HOST_PENALTY,
    SVG_PENALTY,
    TOKEN_BONUS_CAP,
    TOKEN_HIT_BONUS,
    UNPARSABLE_SCORE,
)
from .pipeline_types import KIND_WEIGHTS, Candidate, ScoredCandidate
from .utils.urls import host_matches_any, root_domain, url_path_and_query

_IMAGE_EXT_RE = re.compile(r"\.(?:" + "|".join(IMAGE_EXTENSIONS) + r")(?:\?|$)")
_SVG_RE = re.compile(r"\.svg(?:\?|$)")
_ASSET_SEGMENT_RE = re.compile(r"/(?:" + "|".join(ASSET_PATH_SEGMENTS) + r")/")
_DIMENSIONS_RE = re.compile(r"(\d{3,4})x(\d{3,4})")


def domain_affinity(candidate_host: str, official_host: str) -> int:
    """
    +60 when both hosts share a registrable domain, +35 when one host is a
    subdomain of the other's registrable domain, else 0.
    """
    candidate_host = (candidate_host or "").lower()
    official_host = (official_host or "").lower()
    candidate = root_domain(candidate_host)
    official = root_domain(official_host)
    if not candidate or not official:
        return 0
    if candidate == official:
        return DOMAIN_EXACT_BONUS
    if candidate_host.endswith("." + official) or official_host.endswith("." + candidate):
        return DOMAIN_SUBDOMAIN_BONUS
    return 0


def _path_signal(path: str) -> int:
    score = 0
    if _IMAGE_EXT_RE.search(path):
        score += IMAGE_EXTENSION_BONUS
    if _ASSET_SEGMENT_RE.search(path):
        score += ASSET_SEGMENT_BONUS
    if _SVG_RE.search(path):
        score += SVG_PENALTY
    if any(hint in path for hint in BAD_IMAGE_HINTS):
        score += BAD_HINT_PENALTY
    return score


def _token_signal(path: str, tokens: Iterable[str]) -> int:
    hits = sum(1 for token in set(tokens) if token and token in path)
    return min(hits * TOKEN_HIT_BONUS, TOKEN_BONUS_CAP)


def _dimension_signal(path: str) -> int:
    m = _DIMENSIONS_RE.search(path)
    if not m:
        return 0
    width, height = int(m.group(1)), int(m.group(2))
    if width >= DIMENSION_MIN_WIDTH and height >= DIMENSION_MIN_HEIGHT:
        return DIMENSION_BONUS
    return 0


def score_candidate(candidate: Candidate, official_host: str, tokens: Sequence[str]) -> int:
    """Static relevance of one candidate. Pure; performs no I/O."""
    score = KIND_WEIGHTS.get(candidate.kind, 0)
    try:
        parts = urlsplit(candidate.url)
        host = (parts.hostname or "").lower()
        parts.port  # raises on a malformed port
        path = url_path_and_query(candidate.url)
    except ValueError:
        return UNPARSABLE_SCORE

    score += domain_affinity(host, official_host)
    if host_matches_any(host, SOCIAL_HOST_HINTS):
        score += SOCIAL_HOST_PENALTY
    score += _path_signal(path)
    score += _token_signal(path, tokens)
    score += _dimension_signal(path)
    return score


def rank_candidates(
    candidates: Iterable[Candidate],
    official_host: str,
    tokens: Sequence[str],
    limit: Optional[int] = None,
) -> List[ScoredCandidate]:
    """Descending by score; equal scores keep discovery order."""
    scored = [ScoredCandidate(c, score_candidate(c, official_host, tokens)) for c in candidates]
    ranked = sorted(scored, key=lambda s: -s.score)
    return ranked[:limit] if limit is not None else ranked
