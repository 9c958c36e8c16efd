"""
Structured Media Extraction Layer.
Pulls image URLs out of embedded JSON payloads found by the manual extractor.
"""
import re
from typing import Any, Dict, Iterable, List, Optional, Set

from kondo_scraping.utils.logger import LayerLogger
from kondo_scraping.utils.urls import normalize_url


IMAGE_URL = re.compile(r"\.(jpg|jpeg|png|gif|webp|avif|svg|bmp|ico|tiff)(\?.*)?$", re.IGNORECASE)

# Keys whose string values are likely to be media URLs
IMAGE_KEYS = {
    "url", "src", "image", "photo", "href", "imageurl", "imgsrc",
    "thumbnail", "picture", "img", "media", "file",
}

GALLERY_KEYS = ("images", "gallery", "photos", "media", "fotos", "galeria")

MAX_DEPTH = 10


def is_image_url(value: Any) -> bool:
    if not isinstance(value, str) or len(value) < 10:
        return False
    if not value.lower().startswith(("http://", "https://", "//")):
        return False
    return bool(IMAGE_URL.search(value))


class StructuredMediaExtractor:
    """
    Media URLs from a structured-data object.

    Known payload shapes are read by path first; anything else goes through
    a bounded deep search with an identity-keyed visited set.
    """

    def __init__(self, max_depth: int = MAX_DEPTH):
        self.max_depth = max_depth
        self.logger = LayerLogger("structured_media")

    def extract(self, data: Any, source: Optional[str] = None, base_url: Optional[str] = None) -> List[str]:
        """
        Args:
            data: Decoded JSON payload
            source: Name of the payload (e.g. "aldeaData", "__NEXT_DATA__")
            base_url: Page URL used to resolve relative paths

        Returns:
            Unique absolute URLs in discovery order
        """
        if data is None:
            return []

        urls: List[str] = []
        specific = {
            "aldeaData": self._from_aldea,
            "__NEXT_DATA__": self._from_next_data,
            "__NUXT__": self._from_nuxt,
        }.get(source or "")

        if specific is not None:
            urls = specific(data)
            self.logger.log_action(
                "source_specific_extraction",
                "completed",
                source=source,
                urls_found=len(urls),
            )

        if not urls:
            urls = self.deep_search(data)
            self.logger.log_action(
                "deep_search",
                "completed",
                source=source,
                urls_found=len(urls),
            )

        return _unique(normalize_url(url, base_url) for url in urls)

    def deep_search(self, data: Any) -> List[str]:
        found: List[str] = []
        visited: Set[int] = set()
        self._walk(data, 0, visited, found)
        return found

    def _walk(self, node: Any, depth: int, visited: Set[int], found: List[str]) -> None:
        if depth > self.max_depth:
            return
        if isinstance(node, (dict, list)):
            if id(node) in visited:
                return
            visited.add(id(node))

        if isinstance(node, dict):
            for key, value in node.items():
                if isinstance(value, str):
                    if key.lower() in IMAGE_KEYS and is_image_url(value):
                        found.append(value)
                else:
                    self._walk(value, depth + 1, visited, found)
        elif isinstance(node, list):
            for item in node:
                if isinstance(item, str):
                    if is_image_url(item):
                        found.append(item)
                else:
                    self._walk(item, depth + 1, visited, found)

    # ========================================================================
    # Known payload shapes
    # ========================================================================

    def _from_aldea(self, data: Dict[str, Any]) -> List[str]:
        urls: List[str] = []
        if not isinstance(data, dict):
            return urls
        gallery = (data.get("galeria_fotos") or {}).get("galeria") or []
        for section in gallery if isinstance(gallery, list) else []:
            for image in (section or {}).get("area_images") or []:
                if isinstance(image, dict) and is_image_url(image.get("url")):
                    urls.append(image["url"])
        urls.extend(self._from_list(data.get("images")))
        return urls

    def _from_next_data(self, data: Dict[str, Any]) -> List[str]:
        if not isinstance(data, dict):
            return []
        page_props = (data.get("props") or {}).get("pageProps") or {}
        urls: List[str] = []
        for key in ("images", "gallery"):
            urls.extend(self._from_list(page_props.get(key)))
        return urls

    def _from_nuxt(self, data: Dict[str, Any]) -> List[str]:
        if not isinstance(data, dict):
            return []
        urls: List[str] = []
        roots = [data]
        for key in ("data", "state"):
            value = data.get(key)
            roots.extend(value if isinstance(value, list) else [value])
        for root in roots:
            if not isinstance(root, dict):
                continue
            for key in GALLERY_KEYS:
                urls.extend(self._from_list(root.get(key)))
        return urls

    def _from_list(self, items: Any) -> List[str]:
        urls: List[str] = []
        if not isinstance(items, list):
            return urls
        for item in items:
            if isinstance(item, str) and is_image_url(item):
                urls.append(item)
            elif isinstance(item, dict):
                for key, value in item.items():
                    if key.lower() in IMAGE_KEYS and is_image_url(value):
                        urls.append(value)
                        break
        return urls


def _unique(urls: Iterable[Optional[str]]) -> List[str]:
    seen: Set[str] = set()
    result: List[str] = []
    for url in urls:
        if url and url not in seen:
            seen.add(url)
            result.append(url)
    return result
