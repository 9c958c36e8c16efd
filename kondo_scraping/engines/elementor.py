"""
Elementor engine.

WordPress sites built with the Elementor page builder have no stable URL
shape, so this engine is picked from the page markup. Content lives in
heading widgets; galleries are Swiper carousels.
"""
import re
from typing import List

from bs4 import BeautifulSoup

from kondo_scraping.engines.base import BaseEngine, EngineConfig, detect_amenities
from kondo_scraping.layers.html_media import HtmlMediaConfig, HtmlMediaExtractor
from kondo_scraping.models.listing import ScrapedFields
from kondo_scraping.utils.urls import slugify


ELEMENTOR_MARKERS = [
    "elementor-element",
    "elementor-heading-title",
    "e-con",
    "elementor-container",
    "elementor-widget",
    "elementor-section",
]
MIN_MARKER_MATCHES = 3

HEADING_SELECTOR = "h2.elementor-heading-title, h1.elementor-heading-title"

ADDRESS_PATTERN = re.compile(r"\b((?:RUA|AVENIDA|AV\.?|STREET|AVENUE)\s+[^,|\d]+?),?\s*(\d+)", re.IGNORECASE)
BEDROOM_PATTERN = re.compile(r"(\d+)\s*(?:quarto|quart|room|br|bedroom)s?\b", re.IGNORECASE)
MIN_DESCRIPTION_LENGTH = 20

CAROUSEL_SELECTORS = [
    ".elementor-swiper .swiper-slide img",
    ".elementor-image-carousel-wrapper img",
    '[class*="elementor-"] img',
    ".swiper-slide img",
    '[class*="carousel"] img',
    '[class*="gallery"] img',
]
VIDEO_SELECTORS = [
    ".elementor-video-wrapper iframe",
    'iframe[src*="youtube"]',
    'iframe[src*="vimeo"]',
    "video[src]",
    "video source[src]",
]


def is_elementor_site(html: str) -> bool:
    """At least three distinct Elementor markers in the markup."""
    if not html:
        return False
    lowered = html.lower()
    return sum(1 for marker in ELEMENTOR_MARKERS if marker in lowered) >= MIN_MARKER_MATCHES


def _not_ui_image(url: str) -> bool:
    return "icon" not in url and "logo" not in url


class ElementorEngine(BaseEngine):
    engine_config = EngineConfig(name="elementor", render_js=True, country="br")

    @property
    def media_extractor(self) -> HtmlMediaExtractor:
        return HtmlMediaExtractor(
            HtmlMediaConfig(
                image_selectors=list(CAROUSEL_SELECTORS),
                video_selectors=list(VIDEO_SELECTORS),
                lazy_attributes=["src", "data-src"],
                catch_all_images=False,
            ),
            name="elementor_media",
        )

    def extract_media(self, html: str, url: str) -> List[str]:
        candidates = self.media_extractor.extract_candidates(html, url)
        if not candidates:
            self.logger.log_fallback(
                from_source="carousel_selectors",
                to_source="all_images",
                reason="no carousel images found",
                url=url,
            )
            fallback = HtmlMediaExtractor(
                HtmlMediaConfig(image_selectors=["img"], video_selectors=[], catch_all_images=False),
                url_filter=_not_ui_image,
                name="elementor_media",
            )
            candidates = fallback.extract_candidates(html, url)
        return self.heuristics.process(candidates, page_url=url, html=html).urls

    def parse(self, html: str, url: str) -> ScrapedFields:
        soup = BeautifulSoup(html, "lxml")
        headings = [
            " ".join(element.get_text(" ").split())
            for element in soup.select(HEADING_SELECTOR)
        ]
        headings = [heading for heading in headings if heading]

        if not headings:
            self.logger.log_decision(decision="empty_result", reason="no_heading_widgets", url=url)
            return ScrapedFields()

        all_text = " | ".join(headings)
        fields = ScrapedFields(
            name=headings[0],
            slug=slugify(headings[0]),
            description=next((h for h in headings[1:3] if len(h) > MIN_DESCRIPTION_LENGTH), None),
            **detect_amenities(all_text),
        )

        address = ADDRESS_PATTERN.search(all_text)
        if address:
            fields.address = f"{address.group(1).strip()}, {address.group(2)}"

        # Bedroom counts have no listing column; kept as provenance only
        bedrooms = BEDROOM_PATTERN.search(all_text)
        if bedrooms:
            fields.platform_metadata["bedrooms"] = int(bedrooms.group(1))

        return fields
