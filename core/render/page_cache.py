"""Regenerable cache of rendered public pages."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable
from dataclasses import dataclass

from core.utils.errors import InvalidationError


@dataclass(frozen=True)
class CachedPage:
    html: str
    generated_at: float


class PageCache:
    """Serve rendered pages until they are explicitly regenerated.

    ``revalidate`` renders the new page before swapping it in, so a failed
    regeneration keeps serving the previous page.
    """

    def __init__(self, render: Callable[[str], str]) -> None:
        self._render = render
        self._pages: dict[str, CachedPage] = {}
        self._lock = threading.Lock()

    def get(self, path: str) -> str:
        with self._lock:
            cached = self._pages.get(path)
            if cached is None:
                cached = CachedPage(html=self._render(path), generated_at=time.time())
                self._pages[path] = cached
            return cached.html

    def revalidate(self, path: str) -> CachedPage:
        try:
            html = self._render(path)
        except Exception as exc:
            raise InvalidationError(f"Failed to regenerate {path}: {exc}") from exc

        page = CachedPage(html=html, generated_at=time.time())
        with self._lock:
            self._pages[path] = page
        return page

    def clear(self) -> None:
        with self._lock:
            self._pages.clear()
