"""
Picture cache refresh.

One fetch task per distinct picture URL, results collected at a single join
point, then all cache writes in one transaction. A failed fetch is logged and
skipped. Fetches have no timeout unless one is configured, so one unresponsive
source holds up the whole refresh.
"""
from __future__ import annotations
import urllib.request
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config import DEFAULT_FETCH_WORKERS
from .logging import log
from .registry import DatasetRegistry

Fetch = Callable[[str, Optional[float]], bytes]

def fetch_url(url: str, timeout: Optional[float] = None) -> bytes:
    if timeout is None:
        resp = urllib.request.urlopen(url)
    else:
        resp = urllib.request.urlopen(url, timeout=timeout)
    with resp:
        return resp.read()

@dataclass
class CacheReport:
    fetched: List[str] = field(default_factory=list)
    failed: Dict[str, str] = field(default_factory=dict)

def refresh_picture_cache(registry: DatasetRegistry, fetch: Fetch = fetch_url,
                          workers: int = DEFAULT_FETCH_WORKERS,
                          timeout: Optional[float] = None) -> CacheReport:
    urls = registry.picture_urls()
    report = CacheReport()
    blobs: Dict[str, bytes] = {}
    if not urls:
        return report

    log().info(f"fetching {len(urls)} pictures with {workers} workers")
    with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="picture") as executor:
        futures = {executor.submit(fetch, url, timeout): url for url in urls}
        for future in as_completed(futures):
            url = futures[future]
            try:
                blobs[url] = future.result()
            except Exception as e:
                log().warning(f"could not fetch {url}: {e}")
                report.failed[url] = str(e)

    registry.store_cached_images(blobs)
    report.fetched = sorted(blobs)
    log().info(f"cached {len(report.fetched)} pictures, {len(report.failed)} failed")
    return report
