from __future__ import annotations

import json
import os
import tempfile
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, List, Mapping

import pandas as pd
from loguru import logger

from .config import METADATA_NOTE, REQUIRED_COLUMNS
from .normalize import safe_http_url, sanitize
from .pipeline_types import CatalogEntry, RunStats


class CatalogFormatError(ValueError):
    """The input table cannot be used at all; the run must stop."""


@dataclass
class Catalog:
    """Header order, sanitised rows and the matching working entries."""

    fields: List[str]
    rows: List[Dict[str, str]] = field(default_factory=list)
    entries: List[CatalogEntry] = field(default_factory=list)


# ---------------------------
# Loading
# ---------------------------

def _read_table(path: Path) -> pd.DataFrame:
    if not path.exists():
        raise CatalogFormatError(f"Catalog not found: {path}")
    try:
        return pd.read_csv(
            path,
            dtype=str,
            keep_default_na=False,
            skip_blank_lines=True,
            encoding="utf-8",
        )
    except pd.errors.EmptyDataError as e:
        raise CatalogFormatError(f"Catalog is empty: {path}") from e
    except (pd.errors.ParserError, UnicodeDecodeError) as e:
        raise CatalogFormatError(f"Catalog could not be parsed ({path}): {e}") from e


def entry_from_row(row: Mapping[str, str], index: int) -> CatalogEntry:
    """
    Build the working entry for one sanitised row.

    URL-typed fields are validated; anything that is not an absolute
    http(s) URL becomes "". An empty id gets the positional key ``#<index>``.
    """
    entry_id = sanitize(row.get("id"))
    return CatalogEntry(
        key=entry_id or f"#{index}",
        id=entry_id,
        short_name=sanitize(row.get("short_name")),
        name=sanitize(row.get("name")),
        manufacturer=sanitize(row.get("manufacturer")),
        official_url=safe_http_url(row.get("official_url")),
        image_url=safe_http_url(row.get("image_url")),
    )


def catalog_from_frame(df: pd.DataFrame) -> Catalog:
    fields = [str(c) for c in df.columns]
    missing = [c for c in REQUIRED_COLUMNS if c not in fields]
    if missing:
        raise CatalogFormatError(f"Catalog is missing required columns: {missing}")

    rows: List[Dict[str, str]] = []
    entries: List[CatalogEntry] = []
    for index, raw in enumerate(df.to_dict("records")):
        row = {f: sanitize(raw.get(f)) for f in fields}
        # The pipeline is the only writer of image_url within a run.
        row["image_url"] = ""
        rows.append(row)
        entries.append(entry_from_row(row, index))

    # Rows sharing an id share one merge key; the last resolution wins for all of them.
    counts = Counter(e.id for e in entries if e.id)
    duplicates = sorted(k for k, n in counts.items() if n > 1)
    if duplicates:
        logger.warning("Catalog has {} duplicated ids: {}", len(duplicates), ", ".join(duplicates))

    logger.info(
        "Loaded {} catalog rows ({} with a usable official_url)",
        len(rows),
        sum(1 for e in entries if e.official_url),
    )
    return Catalog(fields=fields, rows=rows, entries=entries)


def load_catalog(path: Path) -> Catalog:
    return catalog_from_frame(_read_table(Path(path)))


# ---------------------------
# Writing
# ---------------------------

def _atomic_write_text(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{path.name}.", suffix=".tmp", dir=path.parent)
    tmp = Path(tmp_name)
    try:
        with os.fdopen(fd, "w", encoding="utf-8", newline="") as fh:
            fh.write(text)
        tmp.replace(path)
    except BaseException:
        tmp.unlink(missing_ok=True)
        raise


def render_csv(fields: List[str], rows: List[Mapping[str, str]]) -> str:
    out_rows = [{f: sanitize(row.get(f)) for f in fields} for row in rows]
    df = pd.DataFrame(out_rows, columns=fields)
    text = df.to_csv(index=False, lineterminator="\n")
    return text if text.endswith("\n") else text + "\n"


def write_catalog(path: Path, fields: List[str], rows: List[Mapping[str, str]]) -> None:
    """Write rows in the original column order, replacing ``path`` in one step."""
    _atomic_write_text(Path(path), render_csv(fields, rows))
    logger.info("Catalog written to {} ({} rows)", path, len(rows))


def _read_metadata(path: Path) -> Dict:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        logger.warning("Ignoring unreadable metadata file {}: {}", path, e)
        return {}
    return data if isinstance(data, dict) else {}


def update_metadata(path: Path, stats: RunStats, image_links: int) -> Dict:
    """
    Read-modify-write of the metadata summary. Unrelated keys survive.
    ``image_links`` is the number of rows that ended up with an image_url.
    """
    path = Path(path)
    metadata = _read_metadata(path)
    metadata.update(
        {
            "manufacturer_image_enriched_at": datetime.now(timezone.utc).isoformat(),
            "manufacturer_image_links": image_links,
            "manufacturer_image_direct": stats.direct,
            "manufacturer_image_curated": stats.curated,
            "manufacturer_image_fallback": stats.fallback,
            "manufacturer_image_failed": stats.failed,
            "manufacturer_image_note": METADATA_NOTE,
        }
    )
    _atomic_write_text(path, json.dumps(metadata, indent=2, ensure_ascii=False) + "\n")
    logger.info("Metadata updated at {}", path)
    return metadata
