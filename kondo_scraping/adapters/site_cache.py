"""
Per-domain site cache used by the "skip unchanged site" heuristic.

The cache is an optimisation only: entries are read, then overwritten,
with no locking between concurrent scrapes of the same domain.
"""
import json
import os
import re
from typing import Any, Dict, Optional

from kondo_scraping.config import config
from kondo_scraping.utils.logger import LayerLogger


class SiteCache:
    """Key/value interface: one JSON-able entry per domain."""

    def get(self, domain: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError

    def put(self, domain: str, entry: Dict[str, Any]) -> None:
        raise NotImplementedError


class InMemorySiteCache(SiteCache):
    def __init__(self):
        self._entries: Dict[str, Dict[str, Any]] = {}

    def get(self, domain: str) -> Optional[Dict[str, Any]]:
        entry = self._entries.get(domain)
        return dict(entry) if entry is not None else None

    def put(self, domain: str, entry: Dict[str, Any]) -> None:
        self._entries[domain] = dict(entry)


class FileSiteCache(SiteCache):
    """One `<domain>.json` file per domain under SCRAPING_CACHE_DIR."""

    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or config.SCRAPING_CACHE_DIR
        self.logger = LayerLogger("site_cache")

    def _path(self, domain: str) -> str:
        safe = re.sub(r"[^a-zA-Z0-9._-]", "_", domain)
        return os.path.join(self.directory, f"{safe}.json")

    def get(self, domain: str) -> Optional[Dict[str, Any]]:
        path = self._path(domain)
        if not os.path.exists(path):
            return None
        try:
            with open(path, "r", encoding="utf-8") as f:
                return json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            self.logger.log_error(str(e), error_type="cache_read_failed", domain=domain)
            return None

    def put(self, domain: str, entry: Dict[str, Any]) -> None:
        os.makedirs(self.directory, exist_ok=True)
        with open(self._path(domain), "w", encoding="utf-8") as f:
            json.dump(entry, f, ensure_ascii=False, indent=2)
