"""
Conartes engine (www.conartes.com.br/empreendimento/...).
Server-rendered WordPress pages; no rendering needed.
"""
import re

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


CONARTES_NEIGHBORHOODS = ["savassi", "lourdes", "carmo", "funcionarios", "cidade jardim"]
CONARTES_MEDIA = re.compile(r"(\.(jpe?g|png|webp|gif|mp4|webm)|youtube|vimeo)", re.IGNORECASE)


def is_conartes_media(url: str) -> bool:
    return bool(CONARTES_MEDIA.search(url))


class ConartesEngine(BaseEngine):
    engine_config = EngineConfig(
        name="conartes",
        url_pattern=re.compile(r"^https?://www\.conartes\.com\.br/empreendimento/.+", re.IGNORECASE),
        render_js=False,
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
            url_filter=is_conartes_media,
            name="conartes_media",
        )

    def parse(self, html: str, url: str) -> ScrapedFields:
        soup = BeautifulSoup(html, "lxml")
        text = body_text(soup)
        location = meta_location(soup, CONARTES_NEIGHBORHOODS)

        name = first_text(soup, ["h1"]) or meta_content(soup, "og:title")
        if not name and soup.title and soup.title.string:
            name = soup.title.string.strip() or None

        return ScrapedFields(
            name=name,
            slug=slugify(name) if name else None,
            description=(
                meta_content(soup, "og:description", "description")
                or first_text(soup, [".description", ".sobre", ".about", ".text"])
            ),
            type=detect_type(text, default="predios"),
            address_street_and_numbers=first_text(
                soup, [".address", ".endereco", ".localizacao", '[itemprop="streetAddress"]']
            ),
            neighborhood=location.get("neighborhood"),
            city=location.get("city"),
            state=location.get("state"),
            lot_avg_price=parse_price(first_text(soup, ['[class*="price"]', ".valor", ".preco"])),
            infra_description=first_text(soup, [".diferenciais", ".amenities", ".items", ".caracteristicas"]),
            **detect_amenities(text),
        )
