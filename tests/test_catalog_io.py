import json

import pytest
from loguru import logger

from vendor_images.catalog_io import (
    CatalogFormatError,
    load_catalog,
    render_csv,
    update_metadata,
    write_catalog,
)
from vendor_images.pipeline_types import RunStats

HEADER = "id,short_name,name,manufacturer,official_url,image_url,notes\n"


def _write(tmp_path, body, header=HEADER):
    path = tmp_path / "catalog.csv"
    path.write_text(header + body, encoding="utf-8")
    return path


def test_load_catalog_sanitises_and_clears_images(tmp_path):
    path = _write(
        tmp_path,
        'x1,XR1,"Vendor\tVisor  One",Vendor,https://Vendor.example/p,https://old.example/a.jpg,keep me\n'
        "x2,,Bare,Other,not a url,,\n",
    )
    catalog = load_catalog(path)
    assert catalog.fields == HEADER.strip().split(",")
    first, second = catalog.entries
    assert first.name == "Vendor Visor One"
    assert first.official_url == "https://vendor.example/p"
    assert first.image_url == ""
    assert catalog.rows[0]["image_url"] == ""
    assert catalog.rows[0]["notes"] == "keep me"
    assert second.official_url == ""


def test_blank_id_gets_positional_key(tmp_path):
    catalog = load_catalog(_write(tmp_path, ",,Nameless,V,https://v.example/,,\n"))
    entry = catalog.entries[0]
    assert entry.id == ""
    assert entry.key == "#0"


def test_missing_columns_is_fatal(tmp_path):
    path = _write(tmp_path, "x1,Visor\n", header="id,name\n")
    with pytest.raises(CatalogFormatError, match="missing required columns"):
        load_catalog(path)


def test_missing_or_empty_file_is_fatal(tmp_path):
    with pytest.raises(CatalogFormatError):
        load_catalog(tmp_path / "nope.csv")
    empty = tmp_path / "empty.csv"
    empty.write_text("", encoding="utf-8")
    with pytest.raises(CatalogFormatError):
        load_catalog(empty)


def test_render_csv_keeps_column_order_and_quotes():
    fields = ["id", "name", "image_url"]
    rows = [{"image_url": "https://v.example/a.jpg", "name": "Visor, Pro", "id": "x1"}]
    text = render_csv(fields, rows)
    assert text == 'id,name,image_url\nx1,"Visor, Pro",https://v.example/a.jpg\n'


def test_write_catalog_replaces_file_without_leftovers(tmp_path):
    out = tmp_path / "out" / "catalog.csv"
    write_catalog(out, ["id", "image_url"], [{"id": "x1", "image_url": ""}])
    write_catalog(out, ["id", "image_url"], [{"id": "x1", "image_url": "https://v.example/a.jpg"}])
    assert out.read_text(encoding="utf-8") == "id,image_url\nx1,https://v.example/a.jpg\n"
    assert [p.name for p in out.parent.iterdir()] == ["catalog.csv"]


def test_update_metadata_preserves_unrelated_keys(tmp_path):
    path = tmp_path / "catalog.metadata.json"
    path.write_text(json.dumps({"source": "manual", "manufacturer_image_links": 99}), encoding="utf-8")
    stats = RunStats(total=5, attempted=4, direct=2, curated=1, fallback=1, failed=1)

    update_metadata(path, stats, image_links=4)

    data = json.loads(path.read_text(encoding="utf-8"))
    assert data["source"] == "manual"
    assert data["manufacturer_image_links"] == 4
    assert data["manufacturer_image_direct"] == 2
    assert data["manufacturer_image_curated"] == 1
    assert data["manufacturer_image_fallback"] == 1
    assert data["manufacturer_image_failed"] == 1
    assert data["manufacturer_image_enriched_at"]
    assert data["manufacturer_image_note"]


def test_update_metadata_starts_fresh_from_garbage(tmp_path):
    path = tmp_path / "meta.json"
    path.write_text("{not json", encoding="utf-8")
    data = update_metadata(path, RunStats(), image_links=0)
    assert data["manufacturer_image_links"] == 0
    assert json.loads(path.read_text(encoding="utf-8")) == data


def test_duplicated_ids_are_reported(tmp_path):
    path = _write(
        tmp_path,
        "x1,,One,V,https://v.example/1,,\n"
        "x1,,One again,V,https://v.example/2,,\n"
        "x2,,Two,V,,,\n",
    )
    messages = []
    sink = logger.add(messages.append, level="WARNING", format="{message}")
    try:
        catalog = load_catalog(path)
    finally:
        logger.remove(sink)
    assert [e.key for e in catalog.entries] == ["x1", "x1", "x2"]
    assert any("duplicated ids: x1" in str(m) for m in messages)
