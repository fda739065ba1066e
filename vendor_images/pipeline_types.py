"""Typed containers shared across pipeline modules."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict


class CandidateKind(str, Enum):
    """Where in a document a candidate URL was found, highest trust first."""

    STRUCTURED_METADATA = "structured-metadata"
    SOCIAL_CARD_METADATA = "social-card-metadata"
    SEMANTIC_PROPERTY = "semantic-property"
    LINK_HINT = "link-hint"
    EMBEDDED_RESOURCE = "embedded-resource"
    INLINE_MARKUP = "inline-markup"
    SCRIPT_PAYLOAD = "script-payload"
    UNSTRUCTURED_TEXT_MATCH = "unstructured-text-match"


KIND_WEIGHTS = {
    CandidateKind.STRUCTURED_METADATA: 70,
    CandidateKind.SOCIAL_CARD_METADATA: 62,
    CandidateKind.SEMANTIC_PROPERTY: 56,
    CandidateKind.LINK_HINT: 44,
    CandidateKind.EMBEDDED_RESOURCE: 24,
    CandidateKind.INLINE_MARKUP: 16,
    CandidateKind.SCRIPT_PAYLOAD: 12,
    CandidateKind.UNSTRUCTURED_TEXT_MATCH: 6,
}


@dataclass(frozen=True)
class Candidate:
    """An absolute http(s) image URL plus the place it was discovered."""

    url: str
    kind: CandidateKind


@dataclass(frozen=True)
class ScoredCandidate:
    candidate: Candidate
    score: int

    @property
    def url(self) -> str:
        return self.candidate.url


@dataclass(frozen=True)
class ProbeResult:
    content_type: str
    content_length: int = 0


class Outcome(str, Enum):
    OVERRIDDEN = "overridden"
    RESOLVED = "resolved"
    NO_CANDIDATE = "no_candidate"
    FETCH_FAILED = "fetch_failed"
    SKIPPED = "skipped"
    ERROR = "error"


class CatalogEntry(BaseModel):
    """
    One catalog row as the pipeline sees it.

    Entries are frozen; every pass returns a new value via ``with_image``.
    ``key`` is the identity used when merging results back into the catalog.
    """

    model_config = ConfigDict(frozen=True)

    key: str
    id: str
    short_name: str = ""
    name: str = ""
    manufacturer: str = ""
    official_url: str = ""
    image_url: str = ""

    @property
    def label(self) -> str:
        return self.name or self.short_name or self.id or self.key

    def with_image(self, image_url: str) -> "CatalogEntry":
        return self.model_copy(update={"image_url": image_url})


@dataclass(frozen=True)
class Resolution:
    """Result of one entry's direct resolution, keyed by ``CatalogEntry.key``."""

    key: str
    outcome: Outcome
    image_url: str = ""
    detail: Optional[str] = None

    @property
    def resolved(self) -> bool:
        return bool(self.image_url) and self.outcome in (Outcome.OVERRIDDEN, Outcome.RESOLVED)


@dataclass
class RunStats:
    total: int = 0
    attempted: int = 0
    direct: int = 0
    curated: int = 0
    fallback: int = 0
    failed: int = 0

    @property
    def updated(self) -> int:
        return self.direct + self.curated + self.fallback
