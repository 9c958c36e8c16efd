"""
Engine Selection Layer.
Decides which extraction engine handles a URL.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Optional, Type

from kondo_scraping.adapters.platform import FetchOptions, FetchProvider
from kondo_scraping.engines import ENGINES, URL_ENGINES, is_elementor_site, is_nextjs_site
from kondo_scraping.engines.base import BaseEngine
from kondo_scraping.errors import EngineNotFoundError, FetchError
from kondo_scraping.layers.media_heuristics import MediaHeuristics
from kondo_scraping.utils.logger import LayerLogger


class EngineType(str, Enum):
    """How the engine family was recognised."""
    SITE_SPECIFIC = "site_specific"
    FRAMEWORK = "framework"
    GENERIC = "generic"


class MatchedBy(str, Enum):
    FORCED = "forced"
    URL_PATTERN = "url_pattern"
    HTML_SIGNATURE = "html_signature"
    FALLBACK = "fallback"


ENGINE_TYPES: Dict[str, EngineType] = {
    "somattos": EngineType.SITE_SPECIFIC,
    "conartes": EngineType.SITE_SPECIFIC,
    "canopus": EngineType.SITE_SPECIFIC,
    "elementor": EngineType.FRAMEWORK,
    "nextjs": EngineType.FRAMEWORK,
    "generic": EngineType.GENERIC,
}


@dataclass
class EngineSelectionResult:
    """Result of engine selection."""
    engine: BaseEngine
    engine_type: EngineType
    matched_by: MatchedBy
    confidence: float
    reason: str

    @property
    def engine_name(self) -> str:
        return self.engine.name


class EngineSelector:
    """
    Engine selection, in order:

    1. A forced engine name always wins (unknown names raise)
    2. URL pattern of a site-specific engine
    3. HTML signature of a light static fetch (Elementor, Next.js)
    4. Generic engine

    A failed signature fetch never aborts selection; it falls through to
    the generic engine.
    """

    def __init__(
        self,
        fetch_provider: FetchProvider,
        heuristics: Optional[MediaHeuristics] = None,
        url_engines: Optional[List[Type[BaseEngine]]] = None,
    ):
        self.fetch_provider = fetch_provider
        self.heuristics = heuristics or MediaHeuristics()
        self.url_engines = url_engines if url_engines is not None else URL_ENGINES
        self.logger = LayerLogger("engine_selection")

    def build(self, name: str) -> BaseEngine:
        engine_class = ENGINES.get(name.lower())
        if engine_class is None:
            raise EngineNotFoundError(
                f"Unknown engine '{name}'. Available engines: {', '.join(sorted(ENGINES))}"
            )
        return engine_class(self.fetch_provider, self.heuristics)

    async def select(self, url: str, force_engine: Optional[str] = None) -> EngineSelectionResult:
        """
        Args:
            url: Listing page URL
            force_engine: Engine name that bypasses detection

        Returns:
            EngineSelectionResult

        Raises:
            EngineNotFoundError: force_engine is not a registered engine
        """
        self.logger.log_action("engine_selection", "started", url=url, force_engine=force_engine)

        if force_engine:
            engine = self.build(force_engine)
            return self._selected(url, engine, MatchedBy.FORCED, 1.0, "engine forced by caller")

        for engine_class in self.url_engines:
            if engine_class.matches_url(url):
                engine = engine_class(self.fetch_provider, self.heuristics)
                return self._selected(url, engine, MatchedBy.URL_PATTERN, 1.0, "URL pattern matched")

        html = await self._probe(url)
        if html:
            if is_elementor_site(html):
                return self._selected(
                    url, self.build("elementor"), MatchedBy.HTML_SIGNATURE, 0.8, "Elementor markers found"
                )
            if is_nextjs_site(html):
                return self._selected(
                    url, self.build("nextjs"), MatchedBy.HTML_SIGNATURE, 0.7, "Next.js markers found"
                )

        return self._selected(
            url, self.build("generic"), MatchedBy.FALLBACK, 0.3, "no site pattern or framework signature"
        )

    async def _probe(self, url: str) -> Optional[str]:
        try:
            response = await self.fetch_provider.fetch_html(url, FetchOptions(render_js=False))
        except FetchError as e:
            self.logger.log_fallback(
                from_source="html_signature",
                to_source="generic",
                reason=f"signature fetch failed: {e}",
                url=url,
                error_type=e.error_type,
            )
            return None
        return response.html

    def _selected(
        self,
        url: str,
        engine: BaseEngine,
        matched_by: MatchedBy,
        confidence: float,
        reason: str,
    ) -> EngineSelectionResult:
        result = EngineSelectionResult(
            engine=engine,
            engine_type=ENGINE_TYPES.get(engine.name, EngineType.GENERIC),
            matched_by=matched_by,
            confidence=confidence,
            reason=reason,
        )
        self.logger.log_decision(
            decision=engine.name,
            reason=reason,
            url=url,
            matched_by=matched_by.value,
            confidence=confidence,
        )
        return result
