from __future__ import annotations

from typing import Dict, List, Mapping, Sequence, Tuple

from loguru import logger

from .normalize import manufacturer_key
from .pipeline_types import CatalogEntry, Outcome, Resolution, RunStats


def apply_resolutions(
    entries: Sequence[CatalogEntry],
    resolutions: Mapping[str, Resolution],
) -> List[CatalogEntry]:
    """New entries carrying the direct-pass image, matched by identity."""
    out: List[CatalogEntry] = []
    for entry in entries:
        res = resolutions.get(entry.key)
        out.append(entry.with_image(res.image_url) if res is not None and res.resolved else entry)
    return out


def build_fallback_index(entries: Sequence[CatalogEntry]) -> Dict[str, str]:
    """
    Manufacturer key -> first image seen for that manufacturer, in catalog
    order. Built once, after the direct pass; read-only afterwards.
    """
    index: Dict[str, str] = {}
    for entry in entries:
        key = manufacturer_key(entry.manufacturer)
        if key and entry.image_url and key not in index:
            index[key] = entry.image_url
    return index


def apply_fallback(
    entries: Sequence[CatalogEntry],
    index: Mapping[str, str],
) -> Tuple[List[CatalogEntry], List[str]]:
    """
    Backfill unresolved entries from the manufacturer index. Returns the
    new entries and the keys of those that were backfilled.
    """
    out: List[CatalogEntry] = []
    filled: List[str] = []
    for entry in entries:
        if entry.image_url:
            out.append(entry)
            continue
        image = index.get(manufacturer_key(entry.manufacturer), "")
        if image:
            out.append(entry.with_image(image))
            filled.append(entry.key)
            logger.info("[image] {} -> manufacturer fallback", entry.label)
        else:
            out.append(entry)
    return out, filled


def collect_stats(
    entries: Sequence[CatalogEntry],
    resolutions: Mapping[str, Resolution],
    fallback_keys: Sequence[str],
) -> RunStats:
    stats = RunStats(total=len(entries), attempted=len(resolutions), fallback=len(fallback_keys))
    for res in resolutions.values():
        if res.outcome is Outcome.OVERRIDDEN:
            stats.curated += 1
        elif res.outcome is Outcome.RESOLVED:
            stats.direct += 1
        elif res.outcome in (Outcome.FETCH_FAILED, Outcome.ERROR):
            stats.failed += 1
    return stats
