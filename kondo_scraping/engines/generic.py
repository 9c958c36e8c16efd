"""
Generic engine: best-effort extraction for sites without a dedicated parser.

Extraction runs as a two-phase state machine so the expensive rendered
fetch is only paid when static parsing cannot work:

    START → MANUAL_ATTEMPTED → SUCCESS
                             → ESCALATED → RENDERED_ATTEMPTED → DONE
                             → DONE
"""
import dataclasses
from typing import Any, Dict, List, Optional

from bs4 import BeautifulSoup
from pydantic import ValidationError
from soupsieve import SelectorSyntaxError

from kondo_scraping.adapters.platform import FetchProvider
from kondo_scraping.config import config
from kondo_scraping.engines.base import (
    PRICE_PATTERN,
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
from kondo_scraping.layers.html_media import HtmlMediaExtractor
from kondo_scraping.layers.manual_extraction import ManualExtractor
from kondo_scraping.layers.media_heuristics import MediaHeuristics
from kondo_scraping.layers.structure_detection import StructureDetector
from kondo_scraping.layers.structured_media import StructuredMediaExtractor
from kondo_scraping.models.listing import ScrapedFields
from kondo_scraping.models.scraping import (
    ExtractionAttempt,
    ExtractionMethod,
    ExtractionPhase,
    ManualExtractionResult,
)
from kondo_scraping.utils.urls import slugify


GENERIC_SELECTORS: Dict[str, List[str]] = {
    "name": [
        "h1", "h2.property-name", ".titulo", ".title", ".nome", ".property-name",
        "[data-property-name]", ".imovel-name",
    ],
    "description": [
        ".description", ".descricao", ".about", ".sobre", ".detail", ".conteudo",
        '[itemprop="description"]', ".text-content",
    ],
    "street": [
        ".street", ".rua", ".address-street", '[itemprop="streetAddress"]', ".endereco-rua",
        ".address", ".endereco",
    ],
    "neighborhood": [".neighborhood", ".bairro", ".neighborhood-name"],
    "city": [".city", ".cidade", '[itemprop="addressLocality"]', ".city-name"],
    "state": [".state", ".estado", '[itemprop="addressRegion"]'],
    "price": [
        '[itemprop="price"]', ".preco", ".valor", ".price", ".cost", ".preco-total", ".price-amount",
    ],
    "infra": [".infrastructure", ".infraestrutura", ".amenities", ".comodidades", ".facilities", ".lazer"],
}

RICH_DESCRIPTION_SELECTORS = [
    "main p", "article p", '[class*="description"] p', '[class*="about"] p',
    '[id*="description"]', '[id*="about"]', ".text-content", ".content p",
]
RICH_PARAGRAPH_MIN_LENGTH = 50
RICH_PARAGRAPH_LIMIT = 3
SHORT_DESCRIPTION_LENGTH = 100


class GenericParser:
    """Selector tables with OpenGraph and free-text fallbacks."""

    def parse(self, html: str, url: Optional[str] = None) -> ScrapedFields:
        soup = BeautifulSoup(html, "lxml")
        text = body_text(soup)

        name = self._parse_name(soup)
        price_text = first_text(soup, GENERIC_SELECTORS["price"])
        price = parse_price(price_text)
        if price is None:
            match = PRICE_PATTERN.search(text)
            price = parse_price(match.group(0)) if match else None

        fields = ScrapedFields(
            name=name,
            slug=slugify(name) if name else None,
            description=self._parse_description(soup),
            type=detect_type(text),
            address_street_and_numbers=first_text(soup, GENERIC_SELECTORS["street"]),
            neighborhood=first_text(soup, GENERIC_SELECTORS["neighborhood"]),
            city=first_text(soup, GENERIC_SELECTORS["city"]) or meta_content(soup, "og:locality"),
            state=first_text(soup, GENERIC_SELECTORS["state"]) or meta_content(soup, "og:region"),
            lot_avg_price=price or None,
            finance=True if detect_financing(text) else None,
            infra_description=first_text(soup, GENERIC_SELECTORS["infra"]),
            **detect_amenities(text),
        )
        return fields

    def _parse_name(self, soup: BeautifulSoup) -> Optional[str]:
        name = first_text(soup, GENERIC_SELECTORS["name"]) or meta_content(soup, "og:title", "og:name")
        if not name and soup.title and soup.title.string:
            name = soup.title.string.split("-")[0].strip()
        return name or None

    def _parse_description(self, soup: BeautifulSoup) -> Optional[str]:
        description = (
            first_text(soup, GENERIC_SELECTORS["description"])
            or meta_content(soup, "og:description", "description")
            or ""
        )
        if len(description) < SHORT_DESCRIPTION_LENGTH:
            rich = self._rich_description(soup)
            if len(rich) > len(description):
                description = rich
        return description or None

    def _rich_description(self, soup: BeautifulSoup) -> str:
        paragraphs: List[str] = []
        for selector in RICH_DESCRIPTION_SELECTORS:
            try:
                elements = soup.select(selector)
            except SelectorSyntaxError:
                continue
            for element in elements:
                text = " ".join(element.get_text(" ").split())
                if len(text) > RICH_PARAGRAPH_MIN_LENGTH and text not in paragraphs:
                    paragraphs.append(text)
            if len(paragraphs) >= RICH_PARAGRAPH_LIMIT:
                break
        return "\n\n".join(paragraphs[:RICH_PARAGRAPH_LIMIT])


# schema.org types describing the development itself
LISTING_TYPES = {
    "residence", "apartmentcomplex", "gatedresidencecommunity", "apartment", "house",
    "singlefamilyresidence", "accommodation", "realestatelisting", "product", "place",
}
# Site-level nodes: their name and address belong to the site or the builder
SITE_TYPES = {
    "website", "webpage", "organization", "corporation", "localbusiness",
    "realestateagent", "breadcrumblist", "imageobject", "person",
}
JSONLD_ADDRESS_FIELDS = {
    "address_street_and_numbers": "streetAddress",
    "city": "addressLocality",
    "state": "addressRegion",
    "cep": "postalCode",
}


def node_types(node: Dict[str, Any]) -> List[str]:
    types = node.get("@type")
    if isinstance(types, str):
        types = [types]
    if not isinstance(types, list):
        return []
    return [t.lower() for t in types if isinstance(t, str)]


def scalar_text(value: Any) -> Optional[str]:
    """schema.org scalar as text (postal codes often arrive as numbers); objects are dropped."""
    if isinstance(value, bool):
        return None
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, str):
        return value.strip() or None
    return None


def fields_from_jsonld(data: Any) -> Dict[str, Any]:
    """
    Listing fields from a schema.org payload (Residence, Product, Place...).
    Handles @graph wrappers and top-level lists. Listing-typed nodes are
    read first and site-level nodes (WebSite, Organization...) are ignored.
    """
    nodes: List[Dict[str, Any]] = []
    stack = [data]
    while stack:
        node = stack.pop(0)
        if isinstance(node, list):
            stack.extend(node)
        elif isinstance(node, dict):
            nodes.append(node)
            if isinstance(node.get("@graph"), list):
                stack.extend(node["@graph"])

    listing_nodes: List[Dict[str, Any]] = []
    other_nodes: List[Dict[str, Any]] = []
    for node in nodes:
        types = set(node_types(node))
        if types & LISTING_TYPES:
            listing_nodes.append(node)
        elif not types & SITE_TYPES:
            other_nodes.append(node)

    values: Dict[str, Any] = {}
    for node in listing_nodes + other_nodes:
        name = scalar_text(node.get("name"))
        if name and "name" not in values:
            values["name"] = name
        description = scalar_text(node.get("description"))
        if description and "description" not in values:
            values["description"] = description

        address = node.get("address")
        if isinstance(address, dict):
            for field, key in JSONLD_ADDRESS_FIELDS.items():
                text = scalar_text(address.get(key))
                if text and field not in values:
                    values[field] = text
        elif isinstance(address, str) and address.strip() and "address" not in values:
            values["address"] = address.strip()

        offers = node.get("offers")
        if isinstance(offers, list) and offers:
            offers = offers[0]
        if isinstance(offers, dict) and "lot_avg_price" not in values:
            price = offers.get("price") or offers.get("lowPrice")
            try:
                values["lot_avg_price"] = float(price) if price is not None else None
            except (TypeError, ValueError):
                pass

    return {key: value for key, value in values.items() if value not in (None, "")}


class GenericEngine(BaseEngine):
    """Two-phase generic engine (manual, then rendered on evidence)."""

    engine_config = EngineConfig(name="generic", render_js=False, default_city=None, default_state=None)

    def __init__(
        self,
        fetch_provider: FetchProvider,
        heuristics: Optional[MediaHeuristics] = None,
        structure_detector: Optional[StructureDetector] = None,
        manual_extractor: Optional[ManualExtractor] = None,
        structured_media: Optional[StructuredMediaExtractor] = None,
        manual_extraction_threshold: Optional[float] = None,
    ):
        super().__init__(fetch_provider, heuristics)
        self.structure_detector = structure_detector or StructureDetector()
        self.manual_extractor = manual_extractor or ManualExtractor()
        self.structured_media = structured_media or StructuredMediaExtractor()
        self.parser = GenericParser()
        self.threshold = (
            manual_extraction_threshold if manual_extraction_threshold is not None
            else config.MANUAL_EXTRACTION_THRESHOLD
        )

    @property
    def media_extractor(self) -> HtmlMediaExtractor:
        return HtmlMediaExtractor(name=f"{self.name}_media")

    def parse(self, html: str, url: str) -> ScrapedFields:
        return self.parser.parse(html, url)

    def structured_fields(self, manual: ManualExtractionResult) -> Dict[str, Any]:
        """Listing fields carried by the embedded payload itself."""
        if manual.success and manual.source == "ld+json":
            return fields_from_jsonld(manual.data)
        return {}

    async def scrape(self, url: str) -> ExtractionAttempt:
        self.logger.log_action("scrape", "started", url=url, engine=self.name)

        attempt = await self.run_manual_phase(ExtractionAttempt(url=url))
        if attempt.phase == ExtractionPhase.ESCALATED:
            attempt = await self.run_rendered_phase(attempt)

        self.log_fields(attempt)
        return attempt

    # ========================================================================
    # Phase 1: static fetch + embedded data
    # ========================================================================

    async def run_manual_phase(self, attempt: ExtractionAttempt) -> ExtractionAttempt:
        if attempt.phase != ExtractionPhase.START:
            raise ValueError(f"manual phase cannot start from {attempt.phase.value}")

        url = attempt.url
        response = await self.fetch(url, render_js=False)
        html = response.html

        structure = self.structure_detector.detect(html, url)
        manual = self.manual_extractor.extract(html, url)

        fields = self._combine(self.parse(html, url), self.structured_fields(manual))
        fields = self.finalize_fields(fields, url, response)
        fields.medias = self._collect_media(html, url, manual, structured_first=True)

        attempt = dataclasses.replace(
            attempt,
            phase=ExtractionPhase.MANUAL_ATTEMPTED,
            method=ExtractionMethod.MANUAL,
            source=manual.source,
            confidence_score=manual.confidence if manual.success else 0.0,
            raw_structured_data=manual.data,
            html_size_bytes=len(html.encode("utf-8")),
            needs_js_rendering=structure.needs_js_rendering,
            structure=structure,
            fields=fields,
            html=html,
            response_headers=dict(response.metadata.headers),
        )
        return self.next_after_manual(attempt)

    def next_after_manual(self, attempt: ExtractionAttempt) -> ExtractionAttempt:
        """Pure transition out of MANUAL_ATTEMPTED."""
        if attempt.confidence_score >= self.threshold:
            phase, reason = ExtractionPhase.SUCCESS, "confidence_meets_threshold"
        elif attempt.needs_js_rendering:
            phase, reason = ExtractionPhase.ESCALATED, "low_confidence_and_js_required"
        else:
            phase, reason = ExtractionPhase.DONE, "low_confidence_but_rendering_not_indicated"

        self.logger.log_phase(
            attempt.url,
            from_phase=attempt.phase.value,
            to_phase=phase.value,
            confidence=attempt.confidence_score,
            reason=reason,
            threshold=self.threshold,
            needs_js_rendering=attempt.needs_js_rendering,
        )
        return dataclasses.replace(attempt, phase=phase)

    # ========================================================================
    # Phase 2: rendered fetch
    # ========================================================================

    async def run_rendered_phase(self, attempt: ExtractionAttempt) -> ExtractionAttempt:
        if attempt.phase != ExtractionPhase.ESCALATED:
            raise ValueError(f"rendered phase cannot start from {attempt.phase.value}")

        url = attempt.url
        attempt = dataclasses.replace(attempt, phase=ExtractionPhase.RENDERED_ATTEMPTED)
        self.logger.log_fallback(
            from_source="manual_extraction",
            to_source="js_rendering",
            reason=f"confidence {attempt.confidence_score:.2f} below {self.threshold}",
            url=url,
        )

        response = await self.fetch(url, render_js=True)
        html = response.html
        manual = self.manual_extractor.extract(html, url)

        rendered = self._combine(self.parse(html, url), self.structured_fields(manual))
        rendered = self.finalize_fields(rendered, url, response)
        rendered.medias = self._collect_media(html, url, manual, structured_first=False)

        self.logger.log_phase(
            url,
            from_phase=attempt.phase.value,
            to_phase=ExtractionPhase.DONE.value,
            confidence=1.0,
            media_count=len(rendered.medias),
        )
        return dataclasses.replace(
            attempt,
            phase=ExtractionPhase.DONE,
            method=ExtractionMethod.JS_RENDERED,
            source=manual.source or attempt.source or "js-rendered",
            confidence_score=1.0,
            raw_structured_data=manual.data if manual.success else attempt.raw_structured_data,
            html_size_bytes=len(html.encode("utf-8")),
            fields=attempt.fields.merged_with(rendered),
            html=html,
            response_headers=dict(response.metadata.headers),
        )

    # ========================================================================
    # Helpers
    # ========================================================================

    def _combine(self, parsed: ScrapedFields, structured: Dict[str, Any]) -> ScrapedFields:
        if not structured:
            return parsed
        structured = dict(structured)
        try:
            return self._overlay(parsed, structured)
        except ValidationError as e:
            invalid = {error["loc"][0] for error in e.errors() if error["loc"]} & set(structured)
            if not invalid:
                raise
            for field in sorted(invalid):
                self.logger.log_rejection(field, "invalid structured value", value=repr(structured.pop(field)))
        return self._overlay(parsed, structured)

    @staticmethod
    def _overlay(parsed: ScrapedFields, structured: Dict[str, Any]) -> ScrapedFields:
        data = parsed.model_dump(exclude_none=True)
        data.update(structured)
        if isinstance(structured.get("name"), str):
            data["slug"] = slugify(structured["name"])
        return ScrapedFields(**data)

    def _collect_media(
        self,
        html: str,
        url: str,
        manual: ManualExtractionResult,
        structured_first: bool,
    ) -> List[str]:
        """
        Phase 1 only falls back to markup when the payload had no media;
        phase 2 always scans the rendered markup as well.
        """
        structured_urls: List[str] = []
        if manual.success:
            structured_urls = self.structured_media.extract(manual.data, manual.source, url)

        media: List[Any] = list(structured_urls)
        if not structured_first or not structured_urls:
            if structured_urls:
                self.logger.log_decision(decision="scan_markup", reason="rendered_page", url=url)
            else:
                self.logger.log_fallback(
                    from_source="structured_media",
                    to_source="html_media",
                    reason="no media in embedded data",
                    url=url,
                )
            media.extend(self.media_extractor.extract_candidates(html, url))

        return self.heuristics.process(media, page_url=url, html=html).urls
