"""
Canopus engine (canopus.com.br/<development>).

The site is a Next.js app built with styled-components: class names carry
generated suffixes (Wrapper-sc-xyz), so selectors match on substrings, and
images go through the /_next/image optimizer.
"""
import re
from typing import List, Optional, Tuple
from urllib.parse import parse_qs, urljoin, urlparse

from bs4 import BeautifulSoup

from kondo_scraping.engines.base import (
    BaseEngine,
    EngineConfig,
    body_text,
    detect_amenities,
    detect_type,
    first_text,
    meta_content,
    meta_location,
    parse_price,
)
from kondo_scraping.layers.html_media import HtmlMediaConfig, HtmlMediaExtractor
from kondo_scraping.models.listing import ScrapedFields
from kondo_scraping.utils.urls import slugify


CANOPUS_BASE_URL = "https://canopus.com.br"
CANOPUS_NEIGHBORHOODS = ["savassi", "lourdes", "carmo", "funcionarios", "cidade jardim", "buritis", "sion"]
CANOPUS_MEDIA = re.compile(r"\.(jpe?g|png|webp|gif|avif|mp4|webm|mov)(\?|$)", re.IGNORECASE)
MIN_META_DESCRIPTION_LENGTH = 20
MIN_TEXT_DESCRIPTION_LENGTH = 100
MAX_AMENITY_LENGTH = 100


def decode_next_image_url(url: str) -> str:
    """
    /_next/image?url=https%3A%2F%2Fcdn...%2Fa.jpg&w=1920&q=50 → https://cdn.../a.jpg
    Anything else is returned unchanged.
    """
    if "/_next/image" not in url:
        return url
    original = parse_qs(urlparse(urljoin(CANOPUS_BASE_URL, url)).query).get("url")
    return original[0] if original else url


def is_canopus_media(url: str) -> bool:
    lowered = url.lower()
    if lowered.endswith(".svg"):
        return False
    if any(word in lowered for word in ("icon", "logo", "placeholder")):
        return False
    return bool(CANOPUS_MEDIA.search(url)) or "/_next/image" in url or "cloudfront" in url


def split_address(text: str) -> Optional[Tuple[str, str]]:
    """'Lourdes - Rua X, 123' → ('Lourdes', 'Rua X, 123')"""
    if " - " not in text or not re.search(r"\d+", text):
        return None
    parts = text.split(" - ")
    if len(parts) != 2:
        return None
    return parts[0].strip(), parts[1].strip()


class CanopusEngine(BaseEngine):
    engine_config = EngineConfig(
        name="canopus",
        url_pattern=re.compile(r"^https?://canopus\.com\.br/(?!wp-).*[^\s]+$", re.IGNORECASE),
        render_js=True,
        country="br",
    )

    @property
    def media_extractor(self) -> HtmlMediaExtractor:
        return HtmlMediaExtractor(
            HtmlMediaConfig(
                image_selectors=["img[srcset]", "img[src]", "img[data-src]"],
                video_selectors=["video source[src]", 'iframe[src*="youtube"]', 'iframe[src*="vimeo"]'],
                lazy_attributes=["src", "data-src"],
                catch_all_images=False,
                use_srcset=True,
            ),
            url_filter=is_canopus_media,
            url_rewriter=decode_next_image_url,
            name="canopus_media",
        )

    def parse(self, html: str, url: str) -> ScrapedFields:
        soup = BeautifulSoup(html, "lxml")
        text = body_text(soup)
        location = meta_location(soup, CANOPUS_NEIGHBORHOODS)
        address = self._address(soup)
        infra_description = self._infra_description(soup)

        name = first_text(soup, ["h1"]) or meta_content(soup, "og:title")
        if not name and soup.title and soup.title.string:
            name = soup.title.string.strip() or None

        return ScrapedFields(
            name=name,
            slug=slugify(name) if name else None,
            description=self._description(soup),
            type=detect_type(text, default="predios"),
            neighborhood=address[0] if address else location.get("neighborhood"),
            address_street_and_numbers=address[1] if address else None,
            city=location.get("city"),
            state=location.get("state"),
            lot_avg_price=parse_price(first_text(soup, ['[class*="price"]', ".valor", ".preco"])),
            infra_description=infra_description,
            **detect_amenities(f"{infra_description or ''} {text}"),
        )

    def _description(self, soup: BeautifulSoup) -> Optional[str]:
        for name in ("og:description", "description"):
            content = meta_content(soup, name)
            if content and len(content) > MIN_META_DESCRIPTION_LENGTH:
                return content
        for element in soup.select('[class*="Typography__Text"]'):
            content = " ".join(element.get_text(" ").split())
            if len(content) > MIN_TEXT_DESCRIPTION_LENGTH:
                return content
        return None

    def _address(self, soup: BeautifulSoup) -> Optional[Tuple[str, str]]:
        for element in soup.select('[class*="Wrapper-sc"]'):
            parts = split_address(" ".join(element.get_text(" ").split()))
            if parts:
                return parts
        return None

    def _infra_description(self, soup: BeautifulSoup) -> Optional[str]:
        container = soup.select_one('[class*="DifferentialsContainer"], [class*="Amenities"], [class*="Items"]')
        if container is None:
            return None
        items: List[str] = []
        for element in container.select('[class*="Differential"], [class*="Item"]'):
            content = " ".join(element.get_text(" ").split())
            if 0 < len(content) < MAX_AMENITY_LENGTH:
                items.append(content)
        return ", ".join(items) or None
