import threading

from taxonomia.pictures import refresh_picture_cache

def test_refresh_skips_failed_fetches(loaded_registry):
    calls = []
    lock = threading.Lock()

    def fake_fetch(url, timeout):
        with lock:
            calls.append((url, timeout))
        if url.endswith("red2.jpg"):
            raise OSError("connection refused")
        return url.encode()

    report = refresh_picture_cache(loaded_registry, fetch=fake_fetch, workers=2, timeout=5.0)

    assert sorted(u for u, _ in calls) == loaded_registry.picture_urls()
    assert all(t == 5.0 for _, t in calls)
    assert report.fetched == [
        "http://pics.test/flower.jpg", "http://pics.test/hairy.jpg", "http://pics.test/red.jpg",
        "http://pics.test/rosa.jpg", "http://pics.test/rosa2.jpg",
    ]
    assert list(report.failed) == ["http://pics.test/red2.jpg"]
    assert "connection refused" in report.failed["http://pics.test/red2.jpg"]
    assert loaded_registry.get_cached_image("http://pics.test/red.jpg") == b"http://pics.test/red.jpg"
    assert loaded_registry.get_cached_image("http://pics.test/red2.jpg") is None

def test_refresh_without_pictures(registry):
    report = refresh_picture_cache(registry, fetch=lambda url, timeout: b"")
    assert report.fetched == [] and report.failed == {}
