"""
Media Heuristics Layer.
Post-processing of raw media candidates before any download happens:
CDN upgrade, placeholder filter, de-duplication, relevance sort and
pagination detection.
"""
import hashlib
import re
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Union
from urllib.parse import parse_qs, urlparse

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from kondo_scraping.adapters.site_cache import SiteCache
from kondo_scraping.config import config
from kondo_scraping.layers.cdn_transformers import CdnTransformer, default_transformers
from kondo_scraping.layers.media_scoring import MediaRelevanceScorer
from kondo_scraping.models.scraping import MediaCandidate, PaginationInfo
from kondo_scraping.utils.logger import LayerLogger
from kondo_scraping.utils.urls import get_domain


PLACEHOLDER_FILENAMES = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (r"placeholder", r"default", r"icon", r"1x1", r"spacer", r"blank", r"dummy", r"generic")
]
PLACEHOLDER_ALT_TEXTS = ["placeholder", "logo", "icon", "default"]
PLACEHOLDER_MIN_WIDTH = 100
PLACEHOLDER_MIN_HEIGHT = 100

PAGINATION_SELECTORS = [
    "a.next",
    'a[rel="next"]',
    "button[data-page-next]",
    "[data-pagination-next]",
    ".pagination a:last-child",
    'a[aria-label*="next" i]',
]
PAGINATION_PARAMS = ("page", "offset", "start")


@dataclass
class MediaHeuristicsResult:
    candidates: List[MediaCandidate] = field(default_factory=list)
    placeholders: List[str] = field(default_factory=list)
    duplicates: List[str] = field(default_factory=list)
    transformed: int = 0
    pagination: PaginationInfo = field(default_factory=PaginationInfo)

    @property
    def urls(self) -> List[str]:
        return [candidate.url for candidate in self.candidates]


class MediaHeuristics:
    """
    Candidate pipeline, always in this order:
    transform → placeholder filter → de-duplicate → relevance sort → pagination.
    """

    def __init__(
        self,
        scorer: Optional[MediaRelevanceScorer] = None,
        transformers: Optional[Sequence[CdnTransformer]] = None,
        site_cache: Optional[SiteCache] = None,
    ):
        self.scorer = scorer or MediaRelevanceScorer()
        self.transformers = list(transformers) if transformers is not None else default_transformers()
        self.site_cache = site_cache
        self.logger = LayerLogger("media_heuristics")

    def process(
        self,
        media: Sequence[Union[str, MediaCandidate]],
        page_url: Optional[str] = None,
        html: Optional[str] = None,
        seen_hashes: Optional[Set[str]] = None,
    ) -> MediaHeuristicsResult:
        """
        Args:
            media: Raw URLs or candidates from the extractors
            page_url: Page the media came from (domain reputation, pagination)
            html: Page HTML, only needed for pagination detection
            seen_hashes: Fingerprints already seen earlier in this run

        Returns:
            MediaHeuristicsResult with kept candidates sorted by relevance
        """
        result = MediaHeuristicsResult()
        seen = seen_hashes if seen_hashes is not None else set()
        property_domain = get_domain(page_url) if page_url else None

        kept: List[MediaCandidate] = []
        for item in media:
            candidate = item if isinstance(item, MediaCandidate) else MediaCandidate(url=item)

            transformed_url = self.transform_cdn_url(candidate.url)
            if transformed_url != candidate.url:
                result.transformed += 1
                candidate = MediaCandidate(
                    url=transformed_url,
                    dimensions=None,
                    alt_text=candidate.alt_text,
                )

            placeholder_reason = self.placeholder_reason(candidate)
            if placeholder_reason:
                candidate.is_placeholder = True
                result.placeholders.append(candidate.url)
                self.logger.log_rejection(candidate.url, placeholder_reason)
                continue

            fingerprint = self.fingerprint(candidate.url)
            if fingerprint in seen:
                candidate.is_duplicate = True
                result.duplicates.append(candidate.url)
                continue
            seen.add(fingerprint)

            candidate.relevance_score = self.scorer.score(candidate.url, property_domain)
            kept.append(candidate)

        # sorted() is stable, so equal scores keep discovery order
        result.candidates = sorted(kept, key=lambda c: c.relevance_score, reverse=True)

        if html:
            result.pagination = self.detect_pagination(html, page_url)

        self.logger.log_action(
            "media_heuristics",
            "completed",
            input_count=len(media),
            kept=len(result.candidates),
            transformed=result.transformed,
            placeholders=len(result.placeholders),
            duplicates=len(result.duplicates),
            has_pagination=result.pagination.has_pagination,
        )
        return result

    # ========================================================================
    # Pipeline steps
    # ========================================================================

    def transform_cdn_url(self, url: str) -> str:
        if url.startswith("//"):
            url = f"https:{url}"
        for transformer in self.transformers:
            if transformer.matches(url):
                transformed = transformer.transform(url)
                if transformed != url:
                    self.logger.log_action(
                        "cdn_transform",
                        "completed",
                        transformer=transformer.name,
                        original=url,
                        transformed=transformed,
                    )
                return transformed
        return url

    def placeholder_reason(self, candidate: MediaCandidate) -> Optional[str]:
        dims = candidate.dimensions
        if dims and (dims.width < PLACEHOLDER_MIN_WIDTH or dims.height < PLACEHOLDER_MIN_HEIGHT):
            return f"too small ({dims.width}x{dims.height})"

        filename = urlparse(candidate.url).path.rsplit("/", 1)[-1]
        for pattern in PLACEHOLDER_FILENAMES:
            if pattern.search(filename):
                return f"placeholder filename ({pattern.pattern})"

        alt = (candidate.alt_text or "").strip().lower()
        if alt and any(word == alt or alt.startswith(word + " ") for word in PLACEHOLDER_ALT_TEXTS):
            return f"placeholder alt text ({alt})"
        return None

    def fingerprint(self, url: str) -> str:
        parsed = urlparse(url)
        normalized = f"{(parsed.hostname or '').lower()}{parsed.path}?{parsed.query}"
        return hashlib.md5(normalized.encode("utf-8")).hexdigest()

    def detect_pagination(self, html: str, page_url: Optional[str] = None) -> PaginationInfo:
        soup = BeautifulSoup(html, "lxml")
        for selector in PAGINATION_SELECTORS:
            try:
                element = soup.select_one(selector)
            except SelectorSyntaxError:
                continue
            if element is not None:
                href = element.get("href")
                return PaginationInfo(has_pagination=True, next_url=href, pagination_type="link")

        if page_url:
            params = parse_qs(urlparse(page_url).query)
            if any(param in params for param in PAGINATION_PARAMS):
                return PaginationInfo(has_pagination=True, pagination_type="query-param")

        return PaginationInfo()

    # ========================================================================
    # Skip-unchanged-site cache
    # ========================================================================

    def should_skip_unchanged_site(self, url: str, headers: Dict[str, str], html: str) -> bool:
        """
        True when the domain's cached ETag or content checksum matches and
        the entry is younger than the cache TTL.
        """
        if self.site_cache is None:
            return False

        domain = get_domain(url)
        entry = self.site_cache.get(domain)
        if not entry or entry.get("url") != url:
            return False
        if time.time() - entry.get("cached_at", 0) > config.SCRAPING_CACHE_TTL_SECONDS:
            return False

        etag = headers.get("etag")
        if etag and entry.get("etag") == etag:
            self.logger.log_decision(decision="skip_unchanged", reason="etag_match", url=url)
            return True
        if entry.get("checksum") == _checksum(html):
            self.logger.log_decision(decision="skip_unchanged", reason="checksum_match", url=url)
            return True
        return False

    def update_cache(self, url: str, headers: Dict[str, str], html: str, media_urls: List[str]) -> None:
        if self.site_cache is None:
            return
        entry: Dict[str, Any] = {
            "url": url,
            "etag": headers.get("etag"),
            "last_modified": headers.get("last-modified"),
            "checksum": _checksum(html),
            "media_hashes": [self.fingerprint(u) for u in media_urls],
            "cached_at": time.time(),
        }
        self.site_cache.put(get_domain(url), entry)


def _checksum(html: str) -> str:
    return hashlib.md5(html.encode("utf-8")).hexdigest()
