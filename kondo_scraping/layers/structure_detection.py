"""
Structure Detection Layer.
Classifies raw HTML before extraction: is this a client-rendered app, and
is static parsing likely to find the real content?
"""
import re
from typing import Dict, List, Optional

from bs4 import BeautifulSoup

from kondo_scraping.config import config
from kondo_scraping.models.scraping import StructureDetectionResult
from kondo_scraping.utils.logger import LayerLogger


# Markers per client framework (root ids, globals, asset paths)
FRAMEWORK_SIGNATURES: Dict[str, List[str]] = {
    "nextjs": ["__NEXT_DATA__", 'id="__next"', "_next/static"],
    "nuxt": ["__NUXT__", 'id="__nuxt"'],
    "react": ['id="root"', "__REACT_DEVTOOLS_GLOBAL_HOOK__", "react-root", "data-reactroot"],
    "vue": ['id="app"', "__VUE__", "v-app"],
    "angular": ["<app-root", "ng-version"],
}

# Global variables known to carry page data
KNOWN_DATA_VARIABLES = [
    "aldeaData",
    "__NEXT_DATA__",
    "__INITIAL_STATE__",
    "__NUXT__",
    "__APOLLO_STATE__",
    "APP_DATA",
    "appData",
    "propertyData",
    "siteData",
    "pageData",
    "SITE_CONFIG",
]

GENERIC_DATA_VARIABLE = re.compile(r"window\.(\w*[Dd]ata\w*)\s*=")
API_ENDPOINT = re.compile(r"https?://[^\"'\s]+/api/[^\"'\s]+")
EMPTY_ROOT = re.compile(r"<div\s+id=[\"'](root|app|__next)[\"'][^>]*>\s*</div>", re.IGNORECASE)

SCORE_LOW_CONTENT = 0.4
SCORE_FRAMEWORK = 0.3
SCORE_DATA_VARIABLE = 0.2
SCORE_API_ENDPOINT = 0.1
SCORE_EMPTY_ROOT = 0.3


class StructureDetector:
    """
    Static page classifier.

    Signals are additive (capped at 1.0):
    - low visible-text density
    - a known framework signature
    - embedded global data variables
    - API-endpoint-shaped URLs in the markup
    - an empty framework root container
    """

    def __init__(self, min_text_content_length: Optional[int] = None):
        self.min_text_content_length = (
            min_text_content_length if min_text_content_length is not None
            else config.SPA_MIN_TEXT_CONTENT_LENGTH
        )
        self.logger = LayerLogger("structure_detection")

    def detect(self, html: str, url: Optional[str] = None) -> StructureDetectionResult:
        indicators: List[str] = []
        confidence = 0.0

        text_length = self.measure_text_content(html)
        low_content = text_length < self.min_text_content_length
        if low_content:
            indicators.append(f"low_text_content:{text_length}")
            confidence += SCORE_LOW_CONTENT

        framework = self.detect_framework(html)
        if framework:
            indicators.append(f"framework:{framework}")
            confidence += SCORE_FRAMEWORK

        data_vars = self.find_data_variables(html)
        if data_vars:
            indicators.append(f"window_data:{','.join(data_vars)}")
            confidence += SCORE_DATA_VARIABLE

        api_endpoints = sorted(set(API_ENDPOINT.findall(html)))
        if api_endpoints:
            indicators.append(f"api_endpoints:{len(api_endpoints)}")
            confidence += SCORE_API_ENDPOINT

        empty_root = bool(EMPTY_ROOT.search(html))
        if empty_root:
            indicators.append("empty_root_container")
            confidence += SCORE_EMPTY_ROOT

        is_spa = low_content or framework is not None or empty_root
        needs_js_rendering = is_spa and (low_content or empty_root or not data_vars)

        result = StructureDetectionResult(
            is_spa=is_spa,
            confidence=min(confidence, 1.0),
            needs_js_rendering=needs_js_rendering,
            framework=framework,
            indicators=indicators,
            text_content_length=text_length,
            window_data_vars=data_vars,
            api_endpoints=api_endpoints,
        )

        self.logger.log_decision(
            decision="spa" if is_spa else "static",
            reason=";".join(indicators) or "no_spa_signals",
            url=url,
            confidence=result.confidence,
            needs_js_rendering=needs_js_rendering,
        )
        return result

    def measure_text_content(self, html: str) -> int:
        """Length of visible body text once scripts, styles and svg are removed."""
        soup = BeautifulSoup(html, "lxml")
        for tag in soup(["script", "style", "noscript", "svg"]):
            tag.decompose()
        root = soup.body or soup
        text = " ".join(root.get_text(" ").split())
        return len(text)

    def detect_framework(self, html: str) -> Optional[str]:
        for framework, markers in FRAMEWORK_SIGNATURES.items():
            if any(marker in html for marker in markers):
                return framework
        return None

    def find_data_variables(self, html: str) -> List[str]:
        found = [name for name in KNOWN_DATA_VARIABLES if name in html]
        for match in GENERIC_DATA_VARIABLE.finditer(html):
            if match.group(1) not in found:
                found.append(match.group(1))
        return found
