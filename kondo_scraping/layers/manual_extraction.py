"""
Manual Extraction Layer.
Finds structured data embedded in static HTML so a page can be scraped
without paying for a rendered fetch.
"""
import json
import re
from typing import Any, Iterator, List, Optional, Tuple

from bs4 import BeautifulSoup

from kondo_scraping.config import config
from kondo_scraping.layers.structure_detection import KNOWN_DATA_VARIABLES
from kondo_scraping.models.scraping import ManualExtractionResult
from kondo_scraping.utils.logger import LayerLogger


ASSIGNMENT = re.compile(
    r"(?:window\.(?P<dotted>[\w$]+)"
    r"|window\[\s*['\"](?P<indexed>[\w$]+)['\"]\s*\]"
    r"|\b(?:var|let|const)\s+(?P<declared>[\w$]+))"
    r"\s*=\s*(?=[{\[])"
)
GENERIC_DATA_NAME = re.compile(r"[Dd]ata")

# Short global some site builders use for the whole page model
EXTRA_DATA_VARIABLES = ["V"]

DATA_ATTRIBUTES = ["data-props", "data-state", "data-config"]

JSON_SCRIPT_MIN_CONFIDENCE = 0.3
MAX_DEPTH_SCAN = 50


def json_depth(value: Any) -> int:
    """Nesting depth of a decoded JSON value (scalars are depth 0)."""
    depth = 0
    stack: List[Tuple[Any, int]] = [(value, 0)]
    while stack:
        node, level = stack.pop()
        if level >= MAX_DEPTH_SCAN:
            return MAX_DEPTH_SCAN
        if isinstance(node, dict):
            depth = max(depth, level + 1)
            stack.extend((child, level + 1) for child in node.values())
        elif isinstance(node, list):
            depth = max(depth, level + 1)
            stack.extend((child, level + 1) for child in node)
    return depth


def is_empty_payload(value: Any) -> bool:
    return value is None or (isinstance(value, (dict, list)) and not value)


class ManualExtractor:
    """
    Embedded-data extractor.

    Strategies, first non-empty result wins:
    1. window / var assignments of JSON objects (window-object)
    2. <script type="application/json"> blobs (json-blob)
    3. <script type="application/ld+json"> (script-tag)
    4. data-props / data-state / data-config attributes (server-rendered)
    """

    def __init__(
        self,
        weight_size: Optional[float] = None,
        weight_depth: Optional[float] = None,
        weight_keywords: Optional[float] = None,
        keywords: Optional[List[str]] = None,
    ):
        self.weight_size = weight_size if weight_size is not None else config.EXTRACTION_WEIGHT_SIZE
        self.weight_depth = weight_depth if weight_depth is not None else config.EXTRACTION_WEIGHT_DEPTH
        self.weight_keywords = (
            weight_keywords if weight_keywords is not None else config.EXTRACTION_WEIGHT_KEYWORDS
        )
        self.keywords = [k.lower() for k in (keywords if keywords is not None else config.EXTRACTION_KEYWORDS)]
        self.logger = LayerLogger("manual_extraction")

    def extract(self, html: str, url: Optional[str] = None) -> ManualExtractionResult:
        """
        Run the strategies in order.

        Args:
            html: Static page HTML
            url: Page URL, for logging only

        Returns:
            ManualExtractionResult; success is False when nothing was found
        """
        soup = BeautifulSoup(html, "lxml")

        strategies = [
            ("window-object", lambda: self._from_window_objects(html)),
            ("json-blob", lambda: self._from_json_scripts(soup)),
            ("script-tag", lambda: self._from_jsonld(soup)),
            ("server-rendered", lambda: self._from_data_attributes(soup)),
        ]

        for method, strategy in strategies:
            found = strategy()
            if found is None:
                self.logger.log_decision(decision="strategy_empty", reason=method, url=url)
                continue

            data, source, confidence = found
            self.logger.log_decision(
                decision="embedded_data_found",
                reason=method,
                url=url,
                source=source,
                confidence=confidence,
            )
            return ManualExtractionResult(
                success=True,
                data=data,
                source=source,
                confidence=confidence,
                method=method,
            )

        self.logger.log_decision(decision="no_embedded_data", reason="all_strategies_empty", url=url)
        return ManualExtractionResult(success=False)

    def calculate_confidence(self, data: Any) -> float:
        """
        Score a candidate payload.

        size: len(json) / 10000, capped at the size weight
        depth: depth / 10, capped at the depth weight
        keywords: fraction of keywords present, capped at the keyword weight
        """
        try:
            serialized = json.dumps(data, ensure_ascii=False)
        except (TypeError, ValueError):
            return 0.0

        size_score = min(len(serialized) / 10000, self.weight_size)
        depth_score = min(json_depth(data) / 10, self.weight_depth)

        keyword_score = 0.0
        if self.keywords:
            lowered = serialized.lower()
            matched = sum(1 for keyword in self.keywords if keyword in lowered)
            keyword_score = min(matched / len(self.keywords), self.weight_keywords)

        return min(size_score + depth_score + keyword_score, 1.0)

    # ========================================================================
    # Strategies
    # ========================================================================

    def _from_window_objects(self, html: str) -> Optional[Tuple[Any, str, float]]:
        for name, data in self._iter_assignments(html):
            if is_empty_payload(data):
                continue
            return data, name, self.calculate_confidence(data)
        return None

    def _iter_assignments(self, html: str) -> Iterator[Tuple[str, Any]]:
        decoder = json.JSONDecoder()
        known = set(KNOWN_DATA_VARIABLES) | set(EXTRA_DATA_VARIABLES)
        for match in ASSIGNMENT.finditer(html):
            name = match.group("dotted") or match.group("indexed") or match.group("declared")
            if name not in known and not GENERIC_DATA_NAME.search(name):
                continue
            try:
                data, _ = decoder.raw_decode(html, match.end())
            except json.JSONDecodeError:
                self.logger.log_decision(
                    decision="assignment_not_json",
                    reason="json_decode_error",
                    variable=name,
                )
                continue
            yield name, data

    def _from_json_scripts(self, soup: BeautifulSoup) -> Optional[Tuple[Any, str, float]]:
        for index, script in enumerate(soup.find_all("script", attrs={"type": "application/json"})):
            data = _loads(script.string or script.get_text())
            if is_empty_payload(data):
                continue
            confidence = self.calculate_confidence(data)
            if confidence <= JSON_SCRIPT_MIN_CONFIDENCE:
                continue
            source = script.get("id") or f"json-script-{index}"
            return data, source, confidence
        return None

    def _from_jsonld(self, soup: BeautifulSoup) -> Optional[Tuple[Any, str, float]]:
        for script in soup.find_all("script", attrs={"type": "application/ld+json"}):
            data = _loads(script.string or script.get_text())
            if is_empty_payload(data):
                continue
            return data, "ld+json", self.calculate_confidence(data)
        return None

    def _from_data_attributes(self, soup: BeautifulSoup) -> Optional[Tuple[Any, str, float]]:
        collected = {}
        for attribute in DATA_ATTRIBUTES:
            for index, element in enumerate(soup.find_all(attrs={attribute: True})):
                data = _loads(element.get(attribute))
                if is_empty_payload(data):
                    continue
                key = attribute if attribute not in collected else f"{attribute}-{index}"
                collected[key] = data
        if not collected:
            return None
        return collected, "data-attributes", self.calculate_confidence(collected)


def _loads(text: Optional[str]) -> Any:
    if not text:
        return None
    try:
        return json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
