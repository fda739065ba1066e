import random
import threading
import time

from vendor_images import resolve
from vendor_images.pipeline_types import CatalogEntry, Outcome
from vendor_images.pool import needs_resolution, resolve_all, run_pool
from vendor_images.resolve import ResolverContext


def test_run_pool_keeps_input_order_whatever_the_completion_order():
    items = list(range(25))

    def slow_square(item, index):
        time.sleep(random.random() / 200)
        return (index, item * item)

    results = run_pool(items, slow_square, concurrency=6)
    assert results == [(i, i * i) for i in items]


def test_run_pool_never_exceeds_concurrency():
    active = 0
    peak = 0
    lock = threading.Lock()

    def work(item, index):
        nonlocal active, peak
        with lock:
            active += 1
            peak = max(peak, active)
        time.sleep(0.005)
        with lock:
            active -= 1
        return item

    run_pool(list(range(20)), work, concurrency=3)
    assert 1 <= peak <= 3


def test_run_pool_empty_input():
    assert run_pool([], lambda item, index: item) == []


def test_needs_resolution():
    plain = CatalogEntry(key="a", id="a")
    assert not needs_resolution(plain, {})
    assert needs_resolution(plain, {"a": "https://curated.example/a.jpg"})
    assert needs_resolution(plain.model_copy(update={"official_url": "https://v.example/"}), {})


def _entries(n):
    return [
        CatalogEntry(key=f"e{i}", id=f"e{i}", name=f"Item {i}", official_url=f"https://v{i}.example/p")
        for i in range(n)
    ]


def _fake_resolver(monkeypatch, fail_on=None):
    def fake(entry, ctx):
        if entry.id == fail_on:
            raise RuntimeError("boom")
        return resolve.Resolution(entry.key, Outcome.RESOLVED, f"https://img.example/{entry.id}.jpg", "fake")

    monkeypatch.setattr(resolve, "resolve_entry", fake)


def test_resolve_all_is_deterministic_across_concurrency(web, monkeypatch):
    _fake_resolver(monkeypatch)
    entries = _entries(12)
    ctx = ResolverContext(client=web.client())
    serial = resolve_all(entries, ctx, concurrency=1)
    parallel = resolve_all(entries, ctx, concurrency=8)
    assert serial == parallel
    assert serial["e7"].image_url == "https://img.example/e7.jpg"


def test_one_failing_entry_does_not_affect_siblings(web, monkeypatch):
    _fake_resolver(monkeypatch, fail_on="e2")
    results = resolve_all(_entries(5), ResolverContext(client=web.client()), concurrency=3)
    assert results["e2"].outcome is Outcome.ERROR
    assert results["e2"].image_url == ""
    assert all(results[f"e{i}"].outcome is Outcome.RESOLVED for i in (0, 1, 3, 4))


def test_entries_without_url_or_override_are_not_attempted(web, monkeypatch):
    _fake_resolver(monkeypatch)
    entries = _entries(2) + [CatalogEntry(key="bare", id="bare")]
    results = resolve_all(entries, ResolverContext(client=web.client()), concurrency=2)
    assert set(results) == {"e0", "e1"}
