"""
Somattos engine (somattos.com.br/empreendimentos/...).
Pages load galleries client-side, so every fetch is rendered.
"""
import re

from bs4 import BeautifulSoup

from kondo_scraping.engines.base import (
    BaseEngine,
    EngineConfig,
    body_text,
    detect_amenities,
    detect_financing,
    detect_type,
    first_text,
    meta_content,
    parse_price,
)
from kondo_scraping.layers.html_media import HtmlMediaConfig, HtmlMediaExtractor
from kondo_scraping.models.listing import ScrapedFields
from kondo_scraping.utils.urls import is_video_url, slugify


UI_IMAGE_PATTERNS = [
    re.compile(pattern, re.IGNORECASE)
    for pattern in (
        r"logo", r"icon", r"favicon", r"button", r"sprite", r"ui-",
        r"header", r"footer", r"menu", r"avatar", r"profile", r"\.svg$",
    )
]
PHOTO_EXTENSION = re.compile(r"\.(jpg|jpeg|png|webp|gif)(\?.*)?$", re.IGNORECASE)


def is_property_media(url: str) -> bool:
    """Photos and videos of the development, not site chrome."""
    if is_video_url(url):
        return True
    if any(pattern.search(url) for pattern in UI_IMAGE_PATTERNS):
        return False
    return bool(PHOTO_EXTENSION.search(url)) or "image" in url or "foto" in url


class SomattosEngine(BaseEngine):
    engine_config = EngineConfig(
        name="somattos",
        url_pattern=re.compile(r"^https?://somattos\.com\.br/empreendimentos/.+$"),
        render_js=True,
        country="br",
    )

    @property
    def media_extractor(self) -> HtmlMediaExtractor:
        return HtmlMediaExtractor(
            HtmlMediaConfig(
                image_selectors=["img"],
                video_selectors=["video source[src]", 'iframe[src*="youtube"]', 'iframe[src*="vimeo"]'],
                lazy_attributes=["src", "data-src", "data-lazy-src"],
                catch_all_images=False,
                use_srcset=False,
            ),
            url_filter=is_property_media,
            name="somattos_media",
        )

    def parse(self, html: str, url: str) -> ScrapedFields:
        soup = BeautifulSoup(html, "lxml")
        text = body_text(soup)

        name = first_text(soup, ["h1"]) or meta_content(soup, "og:title")
        if not name and soup.title and soup.title.string:
            name = soup.title.string.split("-")[0].strip() or None

        return ScrapedFields(
            name=name,
            slug=slugify(name) if name else None,
            description=(
                meta_content(soup, "og:description", "description")
                or first_text(soup, [".description", ".sobre", ".about"])
            ),
            type=detect_type(text),
            address_street_and_numbers=first_text(
                soup, [".address", ".endereco", '[itemprop="address"]', ".location", ".localizacao"]
            ),
            city=first_text(soup, [".city", ".cidade", '[itemprop="addressLocality"]']),
            lot_avg_price=parse_price(first_text(soup, [".price", ".preco", ".valor", '[itemprop="price"]'])),
            finance=True if detect_financing(text) else None,
            infra_description=first_text(
                soup, [".infrastructure", ".infraestrutura", ".amenities", ".comodidades"]
            ),
            **detect_amenities(text),
        )
