import httpx

from vendor_images.config import ResolverSettings
from vendor_images.pipeline_types import ProbeResult
from vendor_images.probe import is_hard_blocked, is_undersized, probe_image, size_bonus

IMG = "https://vendor.example/img/hero.jpg"


def test_head_probe_reports_type_and_length(web):
    web.image(IMG, 300_000)
    with web.client() as client:
        result = probe_image(client, IMG)
    assert result == ProbeResult(content_type="image/jpeg", content_length=300_000)
    assert web.methods_for(IMG) == ["HEAD"]


def test_probe_falls_back_to_ranged_get_and_reads_content_range(web):
    web.image(IMG, 95_000, head=False)
    with web.client() as client:
        result = probe_image(client, IMG)
    assert result is not None
    assert result.content_length == 95_000
    assert web.methods_for(IMG) == ["HEAD", "GET"]
    get_headers = [h for m, u, h in web.requests if m == "GET"][0]
    assert get_headers["range"] == "bytes=0-1"
    assert get_headers["accept"].startswith("image/")


def test_probe_falls_back_when_head_raises(web):
    web.routes[("HEAD", IMG)] = httpx.ReadTimeout("slow")
    web.routes[("GET", IMG)] = httpx.Response(
        200, headers={"content-type": "image/png", "content-length": "50000"}, content=b"x"
    )
    with web.client() as client:
        result = probe_image(client, IMG)
    assert result is not None
    assert result.content_type == "image/png"


def test_probe_returns_none_for_non_images_and_errors(web):
    web.routes[("*", IMG)] = httpx.Response(200, html="<html></html>")
    down = "https://down.example/a.jpg"
    web.down(down)
    missing = "https://vendor.example/missing.jpg"
    with web.client() as client:
        assert probe_image(client, IMG) is None
        assert probe_image(client, down) is None
        assert probe_image(client, missing) is None


def test_size_bonus_tiers():
    assert size_bonus(300_000) == 12
    assert size_bonus(80_000) == 8
    assert size_bonus(12_000) == 4
    assert size_bonus(11_999) == 0
    assert size_bonus(0) == 0


def test_small_declared_length_is_undersized():
    assert is_undersized(ProbeResult("image/jpeg", 1_500))
    assert not is_undersized(ProbeResult("image/jpeg", 0))
    assert not is_undersized(ProbeResult("image/jpeg", 20_000))
    assert not is_undersized(ProbeResult("image/jpeg", 1_500), ResolverSettings(min_content_length=1_000))


def test_hard_block_hints():
    assert is_hard_blocked("https://vendor.example/favicon-32.png")
    assert is_hard_blocked("https://vendor.example/icons/maskable-512.png")
    assert is_hard_blocked("https://vendor.example/apple-touch-icon.png")
    assert not is_hard_blocked("https://vendor.example/img/hero.jpg")
