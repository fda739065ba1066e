import pytest

from vendor_images import overrides
from vendor_images.overrides import load_overrides


def test_extra_overrides_are_validated_and_merged(monkeypatch):
    monkeypatch.setattr(overrides, "CURATED_IMAGE_OVERRIDES", {"x1": "https://curated.example/x1.jpg"})
    table = load_overrides(
        {
            " x2 ": "https://curated.example/x2.png",
            "x1": "https://curated.example/x1-new.jpg",
            "bad": "ftp://curated.example/x.jpg",
            "": "https://curated.example/blank.jpg",
        }
    )
    assert dict(table) == {
        "x1": "https://curated.example/x1-new.jpg",
        "x2": "https://curated.example/x2.png",
    }


def test_override_table_is_read_only():
    table = load_overrides({"x1": "https://curated.example/x1.jpg"})
    with pytest.raises(TypeError):
        table["x2"] = "https://curated.example/x2.jpg"
