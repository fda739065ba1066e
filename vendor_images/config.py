from __future__ import annotations

import os
from pathlib import Path
from typing import Dict, List

from pydantic import BaseModel, Field


# ---------------------------
# Paths
# ---------------------------

PROJECT_ROOT = Path(__file__).resolve().parents[1]

DATA_DIR = PROJECT_ROOT / "data"
CATALOG_PATH = DATA_DIR / "catalog.csv"
METADATA_PATH = DATA_DIR / "catalog.metadata.json"


# ---------------------------
# Catalog schema
# ---------------------------

REQUIRED_COLUMNS: List[str] = [
    "id",
    "short_name",
    "name",
    "manufacturer",
    "official_url",
    "image_url",
]

METADATA_NOTE = "Image links derived from official manufacturer pages."


# ---------------------------
# HTTP surface
# ---------------------------

BROWSER_USER_AGENT = (
    "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/126.0 Safari/537.36"
)

PAGE_HEADERS: Dict[str, str] = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
}

IMAGE_HEADERS: Dict[str, str] = {
    "User-Agent": BROWSER_USER_AGENT,
    "Accept": "image/avif,image/webp,image/apng,image/*,*/*;q=0.8",
}

HTTP_MAX_REDIRECTS = 5


# ---------------------------
# Hint vocabularies
# ---------------------------

# Any of these in a candidate path sinks the candidate score.
BAD_IMAGE_HINTS: List[str] = [
    "logo",
    "icon",
    "favicon",
    "sprite",
    "avatar",
    "badge",
    "placeholder",
    "loader",
    "apple-touch",
    "maskable",
    "site-icon",
    "manifest",
    "new-tab",
    "pwa",
]

# Never probed, whatever the score.
HARD_BLOCK_IMAGE_HINTS: List[str] = [
    "favicon",
    "apple-touch",
    "maskable",
    "/icons/",
    "/icon/",
]

SOCIAL_HOST_HINTS: List[str] = [
    "facebook.com",
    "fbcdn.net",
    "twitter.com",
    "twimg.com",
    "x.com",
    "linkedin.com",
    "licdn.com",
]

# Official pages on these hosts are not vendor sites; skip scraping them.
DISALLOWED_SOURCE_HOST_HINTS: List[str] = [
    "wikipedia.org",
    "wikimedia.org",
    "kickstarter.com",
    "indiegogo.com",
]

SECOND_LEVEL_TLDS = frozenset(
    {
        "co.uk",
        "org.uk",
        "com.au",
        "co.jp",
        "com.br",
        "com.mx",
        "com.tr",
        "co.kr",
        "com.cn",
        "com.tw",
        "com.sg",
        "com.hk",
        "co.in",
    }
)

IMAGE_EXTENSIONS = ("jpg", "jpeg", "png", "webp", "avif")
ASSET_PATH_SEGMENTS = ("images", "image", "img", "media", "assets")

MIN_TOKEN_LENGTH = 3


# ---------------------------
# Scoring weights
# ---------------------------

DOMAIN_EXACT_BONUS = 60
DOMAIN_SUBDOMAIN_BONUS = 35
SOCIAL_HOST_PENALTY = -120
IMAGE_EXTENSION_BONUS = 14
ASSET_SEGMENT_BONUS = 4
SVG_PENALTY = -24
BAD_HINT_PENALTY = -160
TOKEN_HIT_BONUS = 9
TOKEN_BONUS_CAP = 36
DIMENSION_BONUS = 10
DIMENSION_MIN_WIDTH = 500
DIMENSION_MIN_HEIGHT = 300
UNPARSABLE_SCORE = -999

# Density descriptors outrank any realistic width descriptor.
SRCSET_DENSITY_SCALE = 10_000


# ---------------------------
# Tunables
# ---------------------------

ENV_PREFIX = "VENDOR_IMAGES_"


class ResolverSettings(BaseModel):
    """
    Knobs of the resolution pipeline.

    The acceptance threshold and the size tiers were picked by eye on the
    AR glasses catalog; validate them against a labelled sample before
    trusting them elsewhere.
    """

    concurrency: int = Field(default=4, ge=1, le=64)
    request_timeout: float = Field(default=12.0, gt=0)
    max_candidates_to_probe: int = Field(default=16, ge=1)
    max_img_elements: int = Field(default=80, ge=1)
    max_script_matches: int = Field(default=40, ge=1)
    max_document_bytes: int = Field(default=2_000_000, ge=1024)

    acceptance_threshold: int = 20
    min_content_length: int = Field(default=8_000, ge=0)
    size_bonus_large_bytes: int = 250_000
    size_bonus_medium_bytes: int = 80_000
    size_bonus_small_bytes: int = 12_000
    size_bonus_large: int = 12
    size_bonus_medium: int = 8
    size_bonus_small: int = 4


def _env_overrides() -> Dict[str, str]:
    out: Dict[str, str] = {}
    for name in ResolverSettings.model_fields:
        raw = os.getenv(ENV_PREFIX + name.upper())
        if raw is not None and raw.strip():
            out[name] = raw.strip()
    return out


def load_settings(**overrides) -> ResolverSettings:
    """Defaults, then VENDOR_IMAGES_* environment, then explicit keyword overrides."""
    values: Dict[str, object] = dict(_env_overrides())
    values.update({k: v for k, v in overrides.items() if v is not None})
    return ResolverSettings(**values)


# ---------------------------
# Logging / observability
# ---------------------------

LOG_DIR = PROJECT_ROOT / "logs"
LOG_FILE = LOG_DIR / "vendor_images.log"
