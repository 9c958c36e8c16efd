"""Layers package initialization."""
from kondo_scraping.layers.structure_detection import StructureDetector
from kondo_scraping.layers.manual_extraction import ManualExtractor
from kondo_scraping.layers.structured_media import StructuredMediaExtractor
from kondo_scraping.layers.html_media import HtmlMediaConfig, HtmlMediaExtractor
from kondo_scraping.layers.media_scoring import MediaRelevanceScorer
from kondo_scraping.layers.media_heuristics import MediaHeuristics, MediaHeuristicsResult
from kondo_scraping.layers.media_dimensions import MediaDimensionValidator, parse_image_dimensions
from kondo_scraping.layers.data_quality import DataQualityValidator
from kondo_scraping.layers.data_merge import DataMergeService

__all__ = [
    "StructureDetector",
    "ManualExtractor",
    "StructuredMediaExtractor",
    "HtmlMediaConfig",
    "HtmlMediaExtractor",
    "MediaRelevanceScorer",
    "MediaHeuristics",
    "MediaHeuristicsResult",
    "MediaDimensionValidator",
    "parse_image_dimensions",
    "DataQualityValidator",
    "DataMergeService",
]
