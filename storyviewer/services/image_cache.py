import logging
import threading
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Set
from urllib.parse import unquote, urlparse

import requests

from storyviewer.domain.story import MediaKind, StoryItem

from .scheduler import run_in_background

logger = logging.getLogger(__name__)


class ImageCache:
    """
    Raw image bytes keyed by URL, fetched ahead of display.

    A failed download is only remembered until the next ``warm`` of the same
    URL. Images that downloaded but could not be decoded (``mark_failed``)
    stay failed until ``retain`` drops them.
    """

    def __init__(
        self,
        session: Optional[requests.Session] = None,
        timeout: float = 15.0,
        runner: Callable[[Callable[[], None], str], None] = run_in_background,
    ):
        self._session = session or requests.Session()
        self._timeout = timeout
        self._runner = runner
        self._lock = threading.Lock()
        self._images: Dict[str, bytes] = {}
        self._failed: Set[str] = set()
        self._broken: Set[str] = set()
        self._in_flight: Set[str] = set()

    def warm(self, items: Iterable[StoryItem]) -> None:
        for item in items:
            if item.kind != MediaKind.IMAGE or not item.url:
                continue
            url = item.url
            with self._lock:
                if url in self._images or url in self._broken or url in self._in_flight:
                    continue
                if url in self._failed:
                    logger.debug("Retrying image %s", url)
                    self._failed.discard(url)
                self._in_flight.add(url)
            self._runner(lambda url=url: self._load(url), "ImageCache.warm")

    def get(self, url: str) -> Optional[bytes]:
        with self._lock:
            return self._images.get(url)

    def failed(self, url: str) -> bool:
        with self._lock:
            return url in self._failed or url in self._broken

    def mark_failed(self, url: str) -> None:
        with self._lock:
            self._images.pop(url, None)
            self._broken.add(url)

    def retain(self, urls: Iterable[str]) -> int:
        """Forget every URL not in ``urls``; returns how many cached images were dropped."""
        keep = set(urls)
        with self._lock:
            dropped = [url for url in self._images if url not in keep]
            for url in dropped:
                del self._images[url]
            self._failed &= keep
            self._broken &= keep
        if dropped:
            logger.debug("Dropped %d cached images", len(dropped))
        return len(dropped)

    def _load(self, url: str) -> None:
        try:
            data = self._fetch(url)
        except (requests.RequestException, OSError) as exc:
            logger.warning("Image load failed for %s: %s", url, exc)
            data = None

        with self._lock:
            self._in_flight.discard(url)
            if data:
                self._images[url] = data
            else:
                self._failed.add(url)

    def _fetch(self, url: str) -> bytes:
        parsed = urlparse(url)
        if parsed.scheme in ("http", "https"):
            response = self._session.get(url, timeout=self._timeout)
            response.raise_for_status()
            return response.content
        if parsed.scheme == "file":
            return Path(unquote(parsed.path)).read_bytes()
        return Path(url).expanduser().read_bytes()
