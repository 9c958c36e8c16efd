"""
Pipeline result types and the request/response payloads of a scrape run.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from pydantic import BaseModel, Field

from kondo_scraping.models.listing import ScrapedFields


class ExtractionPhase(str, Enum):
    """States of the two-phase extraction."""
    START = "start"
    MANUAL_ATTEMPTED = "manual_attempted"
    SUCCESS = "success"
    ESCALATED = "escalated"
    RENDERED_ATTEMPTED = "rendered_attempted"
    DONE = "done"


class ExtractionMethod(str, Enum):
    MANUAL = "manual"
    JS_RENDERED = "js-rendered"


class ProtectionMode(str, Enum):
    NEVER = "never"
    IF_EMPTY = "if-empty"
    QUALITY_CHECK = "quality-check"


@dataclass
class StructureDetectionResult:
    """Static-HTML classification of a page."""
    is_spa: bool
    confidence: float
    needs_js_rendering: bool
    framework: Optional[str] = None
    indicators: List[str] = field(default_factory=list)
    text_content_length: int = 0
    window_data_vars: List[str] = field(default_factory=list)
    api_endpoints: List[str] = field(default_factory=list)


@dataclass
class ManualExtractionResult:
    success: bool
    confidence: float = 0.0
    data: Optional[Any] = None
    source: Optional[str] = None
    method: Optional[str] = None


@dataclass(frozen=True)
class ExtractionAttempt:
    """
    State threaded through the extraction phases.

    Phase functions never mutate an attempt; they return a new one
    (dataclasses.replace) carrying the next state.
    """
    url: str
    phase: ExtractionPhase = ExtractionPhase.START
    method: ExtractionMethod = ExtractionMethod.MANUAL
    source: Optional[str] = None
    confidence_score: float = 0.0
    raw_structured_data: Optional[Any] = None
    html_size_bytes: int = 0
    needs_js_rendering: bool = False
    structure: Optional[StructureDetectionResult] = None
    fields: ScrapedFields = field(default_factory=ScrapedFields)
    html: str = field(default="", repr=False)
    response_headers: Dict[str, str] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.phase in (ExtractionPhase.SUCCESS, ExtractionPhase.DONE)


@dataclass
class ImageDimensions:
    width: int
    height: int
    format: str


@dataclass
class MediaCandidate:
    """One media URL as seen by the heuristics pipeline."""
    url: str
    relevance_score: float = 0.0
    dimensions: Optional[ImageDimensions] = None
    is_duplicate: bool = False
    is_placeholder: bool = False
    alt_text: Optional[str] = None


@dataclass
class PaginationInfo:
    has_pagination: bool = False
    next_url: Optional[str] = None
    pagination_type: str = "none"  # link, query-param or none


@dataclass
class QualityDecision:
    should_overwrite: bool
    reason: str


class ProtectedFieldConfig(BaseModel):
    field: str
    mode: ProtectionMode = ProtectionMode.NEVER


class FieldRejection(BaseModel):
    field: str
    reason: str
    existing_value: Any = None
    attempted_value: Any = None


class FieldChange(BaseModel):
    """Accepted change, reported in verbose mode."""
    field: str
    reason: str
    old_value: Any = None
    new_value: Any = None


@dataclass
class MergeResult:
    updates: Dict[str, Any] = field(default_factory=dict)
    accepted: List[FieldChange] = field(default_factory=list)
    rejected: List[FieldRejection] = field(default_factory=list)

    @property
    def protected_skipped(self) -> int:
        return sum(1 for r in self.rejected if r.reason.startswith("Protected"))

    @property
    def quality_rejected(self) -> int:
        return len(self.rejected) - self.protected_skipped


class ScrapedDataValidation(BaseModel):
    valid: bool
    issues: List[str] = Field(default_factory=list)
    warnings: List[str] = Field(default_factory=list)


# ============================================================================
# Request / response payloads
# ============================================================================

class ScrapeOptions(BaseModel):
    """Options of a single-listing scrape."""
    dry_run: bool = False
    force_engine: Optional[str] = None
    verbose: bool = False
    skip_delay: bool = False
    skip_unchanged: bool = False


class BatchScrapeOptions(BaseModel):
    """Options of a run over every pending listing."""
    platform: Optional[str] = None
    kondo_id: Optional[int] = None
    dry_run: bool = False
    verbose: bool = False
    skip_delay: bool = False
    force_engine: Optional[str] = None


class MediaStats(BaseModel):
    total_discovered: int = 0
    images_discovered: int = 0
    videos_discovered: int = 0
    images_uploaded: int = 0
    videos_downloaded: int = 0
    videos_embedded: int = 0
    total_saved: int = 0


class ScrapeStats(BaseModel):
    fields_updated: int = 0
    protected_skipped: int = 0
    quality_rejected: int = 0
    media_uploaded: int = 0
    media: MediaStats = Field(default_factory=MediaStats)


class ScrapeKondoResponse(BaseModel):
    success: bool
    kondo_id: int
    platform: Optional[str] = None
    engine: Optional[str] = None
    error: Optional[str] = None
    skipped: bool = False
    extraction_method: Optional[str] = None
    extraction_confidence: Optional[float] = None
    stats: ScrapeStats = Field(default_factory=ScrapeStats)
    updated_fields: List[str] = Field(default_factory=list)
    changes: Optional[List[FieldChange]] = None
    rejections: List[FieldRejection] = Field(default_factory=list)
    validation_issues: List[str] = Field(default_factory=list)
    validation_warnings: List[str] = Field(default_factory=list)
    featured_image: Optional[str] = None
    dry_run: bool = False


class BatchError(BaseModel):
    kondo_id: int
    error: str
    url: Optional[str] = None


class BatchScrapeResult(BaseModel):
    total: int = 0
    success: int = 0
    failed: int = 0
    skipped: int = 0
    errors: List[BatchError] = Field(default_factory=list)
    results: List[ScrapeKondoResponse] = Field(default_factory=list)
