"""
Engine base class and the shared parsing helpers used by every engine.
"""
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Dict, List, Optional, Pattern

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from kondo_scraping.adapters.platform import FetchOptions, FetchProvider, FetchResponse
from kondo_scraping.config import config
from kondo_scraping.layers.html_media import HtmlMediaExtractor
from kondo_scraping.layers.media_heuristics import MediaHeuristics
from kondo_scraping.models.listing import ScrapedFields
from kondo_scraping.models.scraping import ExtractionAttempt, ExtractionMethod, ExtractionPhase
from kondo_scraping.utils.logger import LayerLogger


# Keyword → amenity flag; first matching keyword sets the flag
AMENITY_KEYWORDS: Dict[str, List[str]] = {
    "infra_lobby_24h": ["portaria 24h", "portaria"],
    "infra_security_team": ["segurança", "seguranca", "vigilância"],
    "infra_wall": ["muro", "cercamento"],
    "infra_sports_court": ["quadra", "poliesportiva"],
    "infra_barbecue_zone": ["churrasqueira", "churrasco", "grill", "bbq"],
    "infra_pool": ["piscina", "swimming pool"],
    "infra_living_space": ["espaço de convivência", "espaco de convivencia"],
    "infra_pet_area": ["pet place", "pet care", "espaço pet", "pet"],
    "infra_kids_area": ["brinquedoteca", "playground", "parquinho", "kids"],
    "infra_gourmet_area": ["espaço gourmet", "gourmet"],
    "infra_parking_lot": ["estacionamento", "garagem"],
    "infra_party_saloon": ["salão de festas", "salao de festas"],
    "infra_lounge_bar": ["lounge"],
    "infra_home_office": ["coworking", "home office"],
    "infra_lagoon": ["lagoa", "lago"],
    "infra_woods": ["mata nativa", "bosque"],
    "infra_vegetable_garden": ["horta"],
    "infra_nature_trail": ["trilha"],
    "infra_gardens": ["jardim", "paisagismo"],
    "infra_heliport": ["heliponto", "heliporto"],
    "infra_gym": ["academia", "fitness"],
}

TYPE_KEYWORDS: Dict[str, List[str]] = {
    "predios": ["apartamento", "apto", "flat", "prédio", "edifício"],
    "casas": ["casa", "sobrado", "residencial", "chalets"],
    "chacaras": ["chácara", "chacara", "sítio", "fazenda"],
    "comercial": ["comercial", "loja", "corporativo"],
}

FINANCE_KEYWORDS = ["financiamento", "financiável", "financiavel", "financia", "crédito"]

PRICE_PATTERN = re.compile(r"R\$\s*([\d.,]+)", re.IGNORECASE)

DEFAULT_CITY = "Belo Horizonte"
DEFAULT_STATE = "MG"


def parse_price(text: Optional[str]) -> Optional[float]:
    """
    Brazilian currency text to a number: "R$ 1.250.000,89" → 1250000.89.
    A comma is the decimal separator; dots are thousands separators.
    """
    if not text:
        return None
    match = re.search(r"\d[\d.,]*", re.sub(r"R\$\s*", "", text, flags=re.IGNORECASE))
    if not match:
        return None
    cleaned = match.group(0).rstrip(".,")
    if "," in cleaned:
        cleaned = cleaned.replace(".", "").replace(",", ".")
    else:
        cleaned = cleaned.replace(".", "")
    try:
        return float(cleaned)
    except ValueError:
        return None


def detect_amenities(text: str) -> Dict[str, bool]:
    lowered = text.lower()
    return {
        field_name: True
        for field_name, keywords in AMENITY_KEYWORDS.items()
        if any(keyword in lowered for keyword in keywords)
    }


def detect_type(text: str, default: str = "casas") -> str:
    lowered = text.lower()
    for kondo_type, keywords in TYPE_KEYWORDS.items():
        if any(keyword in lowered for keyword in keywords):
            return kondo_type
    return default


def detect_financing(text: str) -> bool:
    lowered = text.lower()
    return any(keyword in lowered for keyword in FINANCE_KEYWORDS)


def first_text(soup: BeautifulSoup, selectors: List[str]) -> Optional[str]:
    """Text of the first selector that matches a non-blank element."""
    for selector in selectors:
        try:
            element = soup.select_one(selector)
        except SelectorSyntaxError:
            continue
        if element is None:
            continue
        text = " ".join(element.get_text(" ").split())
        if text:
            return text
    return None


def meta_content(soup: BeautifulSoup, *names: str) -> Optional[str]:
    """Content of the first <meta property=...> or <meta name=...> found."""
    for name in names:
        element = soup.find("meta", attrs={"property": name}) or soup.find("meta", attrs={"name": name})
        if element and element.get("content", "").strip():
            return element["content"].strip()
    return None


def body_text(soup: BeautifulSoup) -> str:
    root = soup.body or soup
    return " ".join(root.get_text(" ").split())


@dataclass
class EngineConfig:
    name: str
    url_pattern: Optional[Pattern[str]] = None
    render_js: bool = False
    use_proxy: bool = False
    country: Optional[str] = None
    default_city: Optional[str] = DEFAULT_CITY
    default_state: Optional[str] = DEFAULT_STATE
    extra_params: Dict[str, str] = field(default_factory=dict)


class BaseEngine:
    """
    One extraction strategy for one family of sites.

    Subclasses provide `engine_config`, `parse(html, url)` and a
    `media_extractor`. The default scrape is a single fetch with the
    engine's own rendering option, then parse and media extraction.
    """

    engine_config = EngineConfig(name="base")

    def __init__(
        self,
        fetch_provider: FetchProvider,
        heuristics: Optional[MediaHeuristics] = None,
    ):
        self.fetch_provider = fetch_provider
        self.heuristics = heuristics or MediaHeuristics()
        self.logger = LayerLogger(f"{self.name}_engine")

    @property
    def name(self) -> str:
        return self.engine_config.name

    @classmethod
    def matches_url(cls, url: str) -> bool:
        pattern = cls.engine_config.url_pattern
        return bool(pattern and pattern.match(url))

    @property
    def media_extractor(self) -> HtmlMediaExtractor:
        return HtmlMediaExtractor(name=f"{self.name}_media")

    def fetch_options(self, render_js: Optional[bool] = None) -> FetchOptions:
        render = self.engine_config.render_js if render_js is None else render_js
        return FetchOptions(
            render_js=render,
            use_proxy=self.engine_config.use_proxy,
            country=self.engine_config.country or config.SCRAPING_COUNTRY,
            wait_ms=config.SPA_RENDER_WAIT_MS if render else None,
            extra_params=dict(self.engine_config.extra_params),
        )

    async def fetch(self, url: str, render_js: Optional[bool] = None) -> FetchResponse:
        return await self.fetch_provider.fetch_html(url, self.fetch_options(render_js))

    def parse(self, html: str, url: str) -> ScrapedFields:
        raise NotImplementedError

    def extract_media(self, html: str, url: str) -> List[str]:
        candidates = self.media_extractor.extract_candidates(html, url)
        return self.heuristics.process(candidates, page_url=url, html=html).urls

    async def scrape(self, url: str) -> ExtractionAttempt:
        """
        Fetch, parse and collect media.

        Returns:
            Terminal ExtractionAttempt (phase DONE) carrying the fields
        """
        self.logger.log_action("scrape", "started", url=url, engine=self.name)

        response = await self.fetch(url)
        fields = self.parse(response.html, url)
        fields = self.finalize_fields(fields, url, response)
        fields.medias = self.extract_media(response.html, url)

        method = ExtractionMethod.JS_RENDERED if response.metadata.rendered_js else ExtractionMethod.MANUAL
        attempt = ExtractionAttempt(
            url=url,
            phase=ExtractionPhase.DONE,
            method=method,
            source=self.name,
            confidence_score=1.0,
            html_size_bytes=len(response.html.encode("utf-8")),
            fields=fields,
            html=response.html,
            response_headers=dict(response.metadata.headers),
        )
        self.log_fields(attempt)
        return attempt

    def finalize_fields(self, fields: ScrapedFields, url: str, response: FetchResponse) -> ScrapedFields:
        """Stamp pipeline metadata and apply location defaults."""
        if fields.city is None and self.engine_config.default_city:
            fields.city = self.engine_config.default_city
        if fields.state is None and self.engine_config.default_state:
            fields.state = self.engine_config.default_state
        fields.source_url = url
        fields.scraped_at = datetime.now(timezone.utc).isoformat()
        fields.platform_metadata = {
            **fields.platform_metadata,
            "platform": self.fetch_provider.name,
            "engine": self.name,
            **response.metadata.to_dict(),
        }
        return fields

    def log_fields(self, attempt: ExtractionAttempt) -> None:
        values = attempt.fields.field_values()
        self.logger.log_extraction(
            source=attempt.source or self.name,
            fields_present=sorted(values),
            fields_missing=sorted(
                name for name in ("name", "description", "city", "lot_avg_price") if name not in values
            ),
            confidence=attempt.confidence_score,
            method=attempt.method.value,
            media_count=len(attempt.fields.medias),
        )


CITY_HINT = re.compile(r"belo horizonte|\bbh\b")
STATE_HINT = re.compile(r"\bmg\b|minas gerais")


def meta_location(soup: BeautifulSoup, neighborhoods: List[str]) -> Dict[str, str]:
    """
    City, state and neighborhood hinted by breadcrumbs and the meta
    description. Only keys that were actually found are returned.
    """
    breadcrumb = " ".join(element.get_text(" ") for element in soup.select(".breadcrumb, .breadcrumbs"))
    description = meta_content(soup, "og:description", "description") or ""
    combined = f"{breadcrumb} {description}".lower()

    location: Dict[str, str] = {}
    if CITY_HINT.search(combined):
        location["city"] = "Belo Horizonte"
    if STATE_HINT.search(combined):
        location["state"] = "MG"
    for neighborhood in neighborhoods:
        if neighborhood in combined:
            location["neighborhood"] = neighborhood.title()
            break
    return location
