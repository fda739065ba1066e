from __future__ import annotations

"""
Image candidate extraction from vendor pages.

Documents are untrusted and often malformed, so extraction never relies on
a conforming DOM. A scanner turns the raw markup into a flat
``ScannedDocument`` (attributes of the few tags we care about plus script
bodies); the rules below only ever see that structure, which keeps the
scanner swappable:

* RegexTagScanner  - tolerant pattern scanner, the default.
* SoupTagScanner   - BeautifulSoup's ``html.parser`` tree, same output shape.

extract_candidates(html, base_url) -> List[Candidate]
    Union of every rule, resolved against ``base_url``, de-duplicated by
    exact URL in first-seen order.
"""

import html as html_lib
import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Protocol, Tuple

from bs4 import BeautifulSoup

from .config import ASSET_PATH_SEGMENTS, IMAGE_EXTENSIONS, SRCSET_DENSITY_SCALE
from .pipeline_types import Candidate, CandidateKind
from .utils.urls import to_absolute_url

SCANNED_TAGS = ("meta", "link", "source", "img")

LAZY_SRC_ATTRS = ("src", "data-src", "data-original", "data-lazy-src")
SRCSET_ATTRS = ("srcset", "data-srcset")

STRUCTURED_META = {"og:image", "og:image:url", "og:image:secure_url"}
SOCIAL_CARD_META = {"twitter:image", "twitter:image:src"}
SEMANTIC_META = {"image"}

_EXT_ALT = "|".join(IMAGE_EXTENSIONS)
_IMAGE_EXT_RE = re.compile(rf"\.(?:{_EXT_ALT})(?:$|[?#])", re.IGNORECASE)
_ASSET_SEGMENT_RE = re.compile(
    r"/(?:" + "|".join(ASSET_PATH_SEGMENTS) + r")/", re.IGNORECASE
)

# Absolute URLs, or quoted root-relative paths, inside script text.
_SCRIPT_URL_RE = re.compile(
    r"""https?://[^\s"'<>\\`]+|(?<=["'])/[^\s"'<>\\`]+""",
    re.IGNORECASE,
)
_CSS_URL_RE = re.compile(r"""url\(\s*(["']?)([^"')]+?)\1\s*\)""", re.IGNORECASE)

_COMMENT_RE = re.compile(r"<!--.*?(?:-->|$)", re.DOTALL)
_ATTR_RE = re.compile(r"""([a-zA-Z_:.-]+)\s*=\s*("([^"]*)"|'([^']*)'|([^\s>]+))""")
_SCRIPT_RE = re.compile(
    r"<script\b((?:\"[^\"]*\"|'[^']*'|[^'\">])*)>(.*?)(?:</script\s*>|$)",
    re.IGNORECASE | re.DOTALL,
)
_TAG_RES = {
    name: re.compile(
        rf"<{name}\b((?:\"[^\"]*\"|'[^']*'|[^'\">])*)>?", re.IGNORECASE
    )
    for name in SCANNED_TAGS
}
_SRCSET_SPLIT_RE = re.compile(r"(?<=[0-9][wx]),|,\s+", re.IGNORECASE)


# ---------------------------
# Scanners
# ---------------------------

Attrs = Dict[str, str]


@dataclass
class ScannedDocument:
    tags: Dict[str, List[Attrs]] = field(default_factory=dict)
    scripts: List[Tuple[Attrs, str]] = field(default_factory=list)

    def of(self, name: str) -> List[Attrs]:
        return self.tags.get(name, [])


class TagScanner(Protocol):
    name: str

    def scan(self, markup: str) -> ScannedDocument:
        ...


def parse_attributes(tag_text: str) -> Attrs:
    """Attribute map of one raw tag. Keys are lower-cased, entities decoded."""
    attrs: Attrs = {}
    for m in _ATTR_RE.finditer(tag_text or ""):
        key = m.group(1).lower()
        value = m.group(3)
        if value is None:
            value = m.group(4)
        if value is None:
            value = m.group(5) or ""
        attrs.setdefault(key, html_lib.unescape(value))
    return attrs


class RegexTagScanner:
    """
    Pattern-based scanner. Never fails: unterminated tags are read up to
    the end of the document, unclosed scripts run to the end of the text,
    commented-out markup is ignored.
    """

    name = "regex"

    def scan(self, markup: str) -> ScannedDocument:
        markup = markup or ""
        visible = _COMMENT_RE.sub(" ", markup)
        doc = ScannedDocument()
        for tag_name, pattern in _TAG_RES.items():
            doc.tags[tag_name] = [parse_attributes(m.group(1)) for m in pattern.finditer(visible)]
        for m in _SCRIPT_RE.finditer(visible):
            doc.scripts.append((parse_attributes(m.group(1)), m.group(2)))
        return doc


class SoupTagScanner:
    """Tree-based scanner on BeautifulSoup's lenient ``html.parser``."""

    name = "soup"

    @staticmethod
    def _attrs(tag) -> Attrs:
        out: Attrs = {}
        for key, value in tag.attrs.items():
            if isinstance(value, (list, tuple)):
                value = " ".join(value)
            out[str(key).lower()] = str(value)
        return out

    def scan(self, markup: str) -> ScannedDocument:
        soup = BeautifulSoup(markup or "", "html.parser")
        doc = ScannedDocument()
        for tag_name in SCANNED_TAGS:
            doc.tags[tag_name] = [self._attrs(t) for t in soup.find_all(tag_name)]
        for script in soup.find_all("script"):
            doc.scripts.append((self._attrs(script), script.string or script.get_text()))
        return doc


SCANNERS = {
    RegexTagScanner.name: RegexTagScanner,
    SoupTagScanner.name: SoupTagScanner,
}


def get_scanner(name: str = "regex") -> TagScanner:
    try:
        return SCANNERS[name]()
    except KeyError:
        raise ValueError(f"Unknown scanner {name!r}; expected one of {sorted(SCANNERS)}") from None


# ---------------------------
# Responsive candidate lists
# ---------------------------

def _descriptor_weight(descriptor: str) -> float:
    d = descriptor.strip().lower()
    if not d:
        return float(SRCSET_DENSITY_SCALE)
    try:
        if d.endswith("w"):
            return float(int(d[:-1]))
        if d.endswith("x"):
            return float(d[:-1]) * SRCSET_DENSITY_SCALE
    except ValueError:
        return 0.0
    return 0.0


def pick_srcset_url(srcset: str) -> str:
    """
    Highest-weighted URL of a srcset-style list. ``800w`` weighs 800,
    ``2x`` weighs 2 * SRCSET_DENSITY_SCALE, no descriptor counts as 1x.
    Ties keep the earlier entry.
    """
    best_url = ""
    best_weight = -1.0
    for part in _SRCSET_SPLIT_RE.split(srcset or ""):
        tokens = part.strip().split()
        if not tokens:
            continue
        weight = _descriptor_weight(tokens[1] if len(tokens) > 1 else "")
        if weight > best_weight:
            best_url, best_weight = tokens[0], weight
    return best_url


# ---------------------------
# Rules
# ---------------------------

def _looks_like_image(url: str) -> bool:
    return bool(_IMAGE_EXT_RE.search(url))


def _looks_like_asset(url: str) -> bool:
    return _looks_like_image(url) or bool(_ASSET_SEGMENT_RE.search(url))


def _meta_rule(doc: ScannedDocument) -> Iterable[Tuple[str, CandidateKind]]:
    for attrs in doc.of("meta"):
        prop = (attrs.get("property") or attrs.get("name") or attrs.get("itemprop") or "").strip().lower()
        content = attrs.get("content", "")
        if not content:
            continue
        if prop in STRUCTURED_META:
            yield content, CandidateKind.STRUCTURED_METADATA
        elif prop in SOCIAL_CARD_META:
            yield content, CandidateKind.SOCIAL_CARD_METADATA
        elif prop in SEMANTIC_META:
            yield content, CandidateKind.SEMANTIC_PROPERTY


def _link_rule(doc: ScannedDocument) -> Iterable[Tuple[str, CandidateKind]]:
    for attrs in doc.of("link"):
        rel = attrs.get("rel", "").lower().split()
        as_type = attrs.get("as", "").strip().lower()
        if "image_src" in rel:
            if attrs.get("href"):
                yield attrs["href"], CandidateKind.LINK_HINT
        elif "preload" in rel and as_type == "image":
            if attrs.get("href"):
                yield attrs["href"], CandidateKind.LINK_HINT
            best = pick_srcset_url(attrs.get("imagesrcset", ""))
            if best:
                yield best, CandidateKind.LINK_HINT


def _srcset_urls(attrs: Attrs) -> Iterable[str]:
    for key in SRCSET_ATTRS:
        best = pick_srcset_url(attrs.get(key, ""))
        if best:
            yield best


def _source_rule(doc: ScannedDocument) -> Iterable[Tuple[str, CandidateKind]]:
    for attrs in doc.of("source"):
        media_type = attrs.get("type", "").lower()
        if media_type.startswith(("video/", "audio/")):
            continue
        for url in _srcset_urls(attrs):
            yield url, CandidateKind.EMBEDDED_RESOURCE
        if attrs.get("src"):
            yield attrs["src"], CandidateKind.EMBEDDED_RESOURCE


def _img_rule(doc: ScannedDocument, max_img_elements: int) -> Iterable[Tuple[str, CandidateKind]]:
    for attrs in doc.of("img")[:max_img_elements]:
        for key in LAZY_SRC_ATTRS:
            if attrs.get(key):
                yield attrs[key], CandidateKind.EMBEDDED_RESOURCE
        for url in _srcset_urls(attrs):
            yield url, CandidateKind.EMBEDDED_RESOURCE


def _is_json_script(attrs: Attrs) -> bool:
    return "json" in attrs.get("type", "").lower()


def _script_rule(doc: ScannedDocument, max_matches: int) -> Iterable[Tuple[str, CandidateKind]]:
    for attrs, body in doc.scripts:
        if not body or not body.strip():
            continue
        text = body.replace("\\/", "/").replace("\\u002F", "/").replace("\\u002f", "/")
        if _is_json_script(attrs):
            kind, accept = CandidateKind.SCRIPT_PAYLOAD, _looks_like_image
        else:
            kind, accept = CandidateKind.INLINE_MARKUP, _looks_like_asset
        found = 0
        for m in _SCRIPT_URL_RE.finditer(text):
            url = m.group(0).rstrip(".,;")
            if not accept(url):
                continue
            yield url, kind
            found += 1
            if found >= max_matches:
                break


def _css_rule(markup: str, max_matches: int) -> Iterable[Tuple[str, CandidateKind]]:
    found = 0
    for m in _CSS_URL_RE.finditer(markup or ""):
        url = html_lib.unescape(m.group(2).strip())
        if not _looks_like_image(url):
            continue
        yield url, CandidateKind.UNSTRUCTURED_TEXT_MATCH
        found += 1
        if found >= max_matches:
            break


def extract_candidates(
    markup: str,
    base_url: str,
    scanner: Optional[TagScanner] = None,
    max_img_elements: int = 80,
    max_script_matches: int = 40,
) -> List[Candidate]:
    """
    Every image candidate found in one document, in rule order
    (metadata, link hints, <source>, <img>, scripts, CSS text) and
    document order within a rule.
    """
    scanner = scanner or RegexTagScanner()
    doc = scanner.scan(markup)

    raw: List[Tuple[str, CandidateKind]] = []
    raw.extend(_meta_rule(doc))
    raw.extend(_link_rule(doc))
    raw.extend(_source_rule(doc))
    raw.extend(_img_rule(doc, max_img_elements))
    raw.extend(_script_rule(doc, max_script_matches))
    raw.extend(_css_rule(markup, max_script_matches))

    seen = set()
    out: List[Candidate] = []
    for value, kind in raw:
        url = to_absolute_url(value, base_url)
        if not url or url in seen:
            continue
        seen.add(url)
        out.append(Candidate(url=url, kind=kind))
    return out
