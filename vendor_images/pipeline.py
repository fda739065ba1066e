from __future__ import annotations

"""
End-to-end manufacturer image enrichment.

    python -m vendor_images.pipeline
    python -m vendor_images.pipeline --input data/catalog.csv --concurrency 8
    python -m vendor_images.pipeline --dry-run --parser soup

Load catalog -> direct resolution on a worker pool -> manufacturer fallback
-> rewrite the catalog and update its metadata summary.
"""

import argparse
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import List, Mapping, Optional, Sequence

import httpx
from loguru import logger
from pydantic import ValidationError

from .catalog_io import CatalogFormatError, load_catalog, update_metadata, write_catalog
from .config import CATALOG_PATH, LOG_DIR, LOG_FILE, METADATA_PATH, ResolverSettings, load_settings
from .extract import SCANNERS, get_scanner
from .fallback import apply_fallback, apply_resolutions, build_fallback_index, collect_stats
from .overrides import load_overrides
from .page_fetch import make_client
from .pipeline_types import CatalogEntry, RunStats
from .pool import resolve_all
from .resolve import ResolverContext


@dataclass
class EnrichmentResult:
    stats: RunStats
    entries: List[CatalogEntry]
    rows: List[dict]


def enrich_catalog(
    input_path: Path = CATALOG_PATH,
    output_path: Optional[Path] = None,
    metadata_path: Optional[Path] = METADATA_PATH,
    settings: Optional[ResolverSettings] = None,
    overrides: Optional[Mapping[str, str]] = None,
    scanner: str = "regex",
    dry_run: bool = False,
    transport: Optional[httpx.BaseTransport] = None,
) -> EnrichmentResult:
    """
    Run the whole pipeline. Raises CatalogFormatError on unusable input,
    before anything is written. Per-entry failures never abort the run.
    """
    settings = settings or load_settings()
    output_path = Path(output_path or input_path)
    catalog = load_catalog(Path(input_path))
    table = load_overrides(overrides)

    with make_client(settings, transport=transport) as client:
        ctx = ResolverContext(client=client, settings=settings, overrides=table, scanner=get_scanner(scanner))
        resolutions = resolve_all(catalog.entries, ctx)

    # Barrier: the fallback index only sees completed direct results.
    entries = apply_resolutions(catalog.entries, resolutions)
    index = build_fallback_index(entries)
    entries, filled = apply_fallback(entries, index)
    stats = collect_stats(entries, resolutions, filled)

    image_by_key = {e.key: e.image_url for e in entries}
    rows = [
        {**row, "image_url": image_by_key.get(entry.key, "")}
        for row, entry in zip(catalog.rows, catalog.entries)
    ]
    image_links = sum(1 for r in rows if r["image_url"])

    if dry_run:
        logger.info("Dry run: nothing written")
    else:
        write_catalog(output_path, catalog.fields, rows)
        if metadata_path is not None:
            update_metadata(Path(metadata_path), stats, image_links)

    logger.info(
        "Done. Updated image_url for {}/{} rows ({} direct, {} curated, {} manufacturer fallback, {} failed requests).",
        image_links,
        stats.total,
        stats.direct,
        stats.curated,
        stats.fallback,
        stats.failed,
    )
    return EnrichmentResult(stats=stats, entries=entries, rows=rows)


# ---------- CLI ----------

def _configure_logging(verbose: bool) -> None:
    logger.remove()
    logger.add(sys.stderr, level="DEBUG" if verbose else "INFO")
    LOG_DIR.mkdir(parents=True, exist_ok=True)
    logger.add(LOG_FILE, level="DEBUG", rotation="5 MB", retention=5, encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="Resolve manufacturer product images for catalog entries",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    ap.add_argument("--input", type=Path, default=CATALOG_PATH, help="Catalog CSV to read")
    ap.add_argument("--output", type=Path, default=None, help="Catalog CSV to write (defaults to --input)")
    ap.add_argument("--metadata", type=Path, default=METADATA_PATH, help="Metadata JSON to update")
    ap.add_argument("--concurrency", type=int, default=None, help="Worker threads (default 4)")
    ap.add_argument("--timeout", type=float, default=None, help="Per-request timeout in seconds (default 12)")
    ap.add_argument("--parser", choices=sorted(SCANNERS), default="regex", help="Markup scanner")
    ap.add_argument("--dry-run", action="store_true", help="Resolve and log, but write nothing")
    ap.add_argument("--verbose", action="store_true", help="Debug logging on stderr")
    return ap


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    _configure_logging(args.verbose)
    try:
        settings = load_settings(concurrency=args.concurrency, request_timeout=args.timeout)
        enrich_catalog(
            input_path=args.input,
            output_path=args.output,
            metadata_path=args.metadata,
            settings=settings,
            scanner=args.parser,
            dry_run=args.dry_run,
        )
    except (CatalogFormatError, ValidationError) as e:
        logger.error("Aborting: {}", e)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
