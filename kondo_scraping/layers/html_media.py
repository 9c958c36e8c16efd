"""
HTML Media Extraction Layer.
Selector-driven discovery of <img>, <video> and embed URLs in page markup.
"""
import re
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

from kondo_scraping.config import config
from kondo_scraping.models.scraping import ImageDimensions, MediaCandidate
from kondo_scraping.utils.logger import LayerLogger
from kondo_scraping.utils.urls import normalize_url


LAZY_ATTRIBUTES = ["src", "data-src", "data-lazy-src", "data-lazy", "data-original"]

DEFAULT_IMAGE_SELECTORS = [
    ".gallery img",
    ".galeria img",
    ".slider img",
    ".carousel img",
    ".swiper-slide img",
    "picture img",
    "img[data-src]",
    "img[data-lazy-src]",
    "img[srcset]",
]

DEFAULT_VIDEO_SELECTORS = [
    'iframe[src*="youtube"]',
    'iframe[src*="vimeo"]',
    "video[src]",
    "video source[src]",
    "[data-video]",
]

SRCSET_DESCRIPTOR = re.compile(r"^(\d+(?:\.\d+)?)([wx])$")


def largest_srcset_candidate(srcset: str) -> Optional[str]:
    """Pick the widest (or highest density) URL of a srcset attribute."""
    best_url = None
    best_size = -1.0
    for entry in srcset.split(","):
        parts = entry.strip().split()
        if not parts:
            continue
        size = 0.0
        if len(parts) > 1:
            match = SRCSET_DESCRIPTOR.match(parts[1])
            if match:
                size = float(match.group(1))
        if size > best_size:
            best_url, best_size = parts[0], size
    return best_url


@dataclass
class HtmlMediaConfig:
    image_selectors: List[str] = field(default_factory=lambda: list(DEFAULT_IMAGE_SELECTORS))
    video_selectors: List[str] = field(default_factory=lambda: list(DEFAULT_VIDEO_SELECTORS))
    lazy_attributes: List[str] = field(default_factory=lambda: list(LAZY_ATTRIBUTES))
    catch_all_images: bool = True
    use_srcset: bool = True
    max_urls: Optional[int] = None


class HtmlMediaExtractor:
    """
    Two-pass markup scan.

    Pass 1 runs the configured selectors, reading src and the lazy-load
    attributes in order. Pass 2 catches every remaining <img>. Videos and
    embeds are collected last. Engines pass their own HtmlMediaConfig plus
    optional url_filter / url_rewriter hooks.
    """

    def __init__(
        self,
        media_config: Optional[HtmlMediaConfig] = None,
        url_filter: Optional[Callable[[str], bool]] = None,
        url_rewriter: Optional[Callable[[str], str]] = None,
        name: str = "html_media",
    ):
        self.config = media_config or HtmlMediaConfig()
        self.url_filter = url_filter
        self.url_rewriter = url_rewriter
        self.logger = LayerLogger(name)

    def extract(self, html: str, base_url: Optional[str] = None) -> List[str]:
        return [candidate.url for candidate in self.extract_candidates(html, base_url)]

    def extract_candidates(self, html: str, base_url: Optional[str] = None) -> List[MediaCandidate]:
        soup = BeautifulSoup(html, "lxml")
        found: Dict[str, MediaCandidate] = {}
        max_urls = self.config.max_urls or config.MEDIA_MAX_URLS_PER_PAGE

        for selector in self.config.image_selectors:
            matched = 0
            for element in self._select(soup, selector):
                matched += self._collect_image(element, base_url, found)
            self.logger.log_action("image_selector", "completed", selector=selector, matched=matched)

        selector_count = len(found)

        if self.config.catch_all_images:
            for element in soup.find_all("img"):
                self._collect_image(element, base_url, found)

        image_count = len(found)

        for selector in self.config.video_selectors:
            for element in self._select(soup, selector):
                raw = element.get("src") or element.get("data-video")
                self._add(raw, base_url, found, alt=None, dimensions=None)

        self.logger.log_action(
            "html_media_extraction",
            "completed",
            from_selectors=selector_count,
            from_catch_all=image_count - selector_count,
            videos=len(found) - image_count,
        )
        return list(found.values())[:max_urls]

    def _select(self, soup: BeautifulSoup, selector: str) -> Sequence[Tag]:
        try:
            return soup.select(selector)
        except SelectorSyntaxError as e:
            self.logger.log_error(str(e), error_type="invalid_selector", selector=selector)
            return []

    def _collect_image(self, element: Tag, base_url: Optional[str], found: Dict[str, MediaCandidate]) -> int:
        if element.name == "source":
            raw = element.get("srcset") or element.get("src")
            raw = largest_srcset_candidate(raw) if raw else None
            return self._add(raw, base_url, found, alt=None, dimensions=None)

        alt = element.get("alt")
        dimensions = _attribute_dimensions(element)
        added = 0

        # src often holds a data: URI placeholder while the real URL sits in data-src
        raw = next(
            (
                element.get(attr)
                for attr in self.config.lazy_attributes
                if normalize_url(element.get(attr), base_url)
            ),
            None,
        )
        added += self._add(raw, base_url, found, alt=alt, dimensions=dimensions)

        if self.config.use_srcset:
            for attr in ("srcset", "data-srcset"):
                srcset = element.get(attr)
                if srcset:
                    added += self._add(largest_srcset_candidate(srcset), base_url, found, alt=alt, dimensions=None)
        return added

    def _add(
        self,
        raw: Optional[str],
        base_url: Optional[str],
        found: Dict[str, MediaCandidate],
        alt: Optional[str],
        dimensions: Optional[ImageDimensions],
    ) -> int:
        url = normalize_url(raw, base_url)
        if not url:
            return 0
        if self.url_rewriter:
            url = self.url_rewriter(url)
        if self.url_filter and not self.url_filter(url):
            return 0
        if url in found:
            return 0
        found[url] = MediaCandidate(url=url, dimensions=dimensions, alt_text=alt)
        return 1


def _attribute_dimensions(element: Tag) -> Optional[ImageDimensions]:
    try:
        width = int(element.get("width", ""))
        height = int(element.get("height", ""))
    except ValueError:
        return None
    return ImageDimensions(width=width, height=height, format="attribute")
