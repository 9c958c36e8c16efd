"""Engines package: the closed registry of extraction engines."""
from typing import Dict, List, Type

from kondo_scraping.engines.base import BaseEngine, EngineConfig
from kondo_scraping.engines.canopus import CanopusEngine
from kondo_scraping.engines.conartes import ConartesEngine
from kondo_scraping.engines.elementor import ElementorEngine, is_elementor_site
from kondo_scraping.engines.generic import GenericEngine
from kondo_scraping.engines.nextjs import NextJsEngine, is_nextjs_site
from kondo_scraping.engines.somattos import SomattosEngine

ENGINES: Dict[str, Type[BaseEngine]] = {
    engine.engine_config.name: engine
    for engine in (
        SomattosEngine,
        ConartesEngine,
        CanopusEngine,
        ElementorEngine,
        NextJsEngine,
        GenericEngine,
    )
}

# Engines matched by URL pattern, checked in this order
URL_ENGINES: List[Type[BaseEngine]] = [SomattosEngine, ConartesEngine, CanopusEngine]

__all__ = [
    "BaseEngine",
    "EngineConfig",
    "CanopusEngine",
    "ConartesEngine",
    "ElementorEngine",
    "GenericEngine",
    "NextJsEngine",
    "SomattosEngine",
    "ENGINES",
    "URL_ENGINES",
    "is_elementor_site",
    "is_nextjs_site",
]
