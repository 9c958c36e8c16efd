"""
Configuration management for the Kondo scraping pipeline.
Handles environment variables and scraping settings.
"""
import json
import os
from typing import Any, Dict, List, Optional, Union
from dotenv import load_dotenv

load_dotenv()


def _split_list(value: str) -> List[str]:
    return [item.strip() for item in value.split(",") if item.strip()]


DEFAULT_EXTRACTION_KEYWORDS = (
    "empreendimento,condominio,imovel,endereco,address,bairro,cidade,"
    "preco,price,valor,descricao,description,galeria,gallery,fotos,images,"
    "lazer,amenities,quartos,area,lotes,planta"
)

DEFAULT_PROTECTED_FIELDS = json.dumps([
    "slug",
    {"field": "name", "mode": "if-empty"},
    {"field": "type", "mode": "if-empty"},
    {"field": "featured_image", "mode": "if-empty"},
])


class Config:
    """Application configuration loaded from environment variables."""

    # Server settings
    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))
    DEBUG: bool = os.getenv("DEBUG", "false").lower() == "true"

    # Logging
    LOG_LEVEL: str = os.getenv("LOG_LEVEL", "INFO")
    LOG_FORMAT: str = os.getenv("LOG_FORMAT", "json")  # json or console

    # Request settings
    REQUEST_TIMEOUT: int = int(os.getenv("REQUEST_TIMEOUT", "30"))

    # Fetch platform ("scrapingdog", "scrapfly" or "direct")
    # API keys are loaded from environment variables, NEVER hardcoded
    SCRAPING_PLATFORM: str = os.getenv("SCRAPING_PLATFORM", "scrapingdog").lower()
    SCRAPINGDOG_API_KEY: Optional[str] = os.getenv("SCRAPINGDOG_API_KEY")
    SCRAPFLY_API_KEY: Optional[str] = os.getenv("SCRAPFLY_API_KEY")
    SCRAPING_COUNTRY: str = os.getenv("SCRAPING_COUNTRY", "br")

    # Rate limiting between listings of a batch run
    SCRAPING_DELAY_BETWEEN_REQUESTS_MS: int = int(
        os.getenv("SCRAPING_DELAY_BETWEEN_REQUESTS_MS", "4000")
    )

    # Retry policy
    SCRAPING_RETRY_MAX_ATTEMPTS: int = int(os.getenv("SCRAPING_RETRY_MAX_ATTEMPTS", "3"))
    SCRAPING_RETRY_DELAY_MS: int = int(os.getenv("SCRAPING_RETRY_DELAY_MS", "1000"))
    SCRAPING_RETRY_BACKOFF_MULTIPLIER: float = float(
        os.getenv("SCRAPING_RETRY_BACKOFF_MULTIPLIER", "2")
    )

    # Manual extraction confidence (threshold-compare-then-escalate)
    MANUAL_EXTRACTION_THRESHOLD: float = float(os.getenv("MANUAL_EXTRACTION_THRESHOLD", "0.6"))
    EXTRACTION_WEIGHT_SIZE: float = float(os.getenv("EXTRACTION_WEIGHT_SIZE", "0.3"))
    EXTRACTION_WEIGHT_DEPTH: float = float(os.getenv("EXTRACTION_WEIGHT_DEPTH", "0.3"))
    EXTRACTION_WEIGHT_KEYWORDS: float = float(os.getenv("EXTRACTION_WEIGHT_KEYWORDS", "0.4"))
    EXTRACTION_KEYWORDS: List[str] = _split_list(
        os.getenv("EXTRACTION_KEYWORDS", DEFAULT_EXTRACTION_KEYWORDS)
    )

    # SPA detection
    SPA_MIN_TEXT_CONTENT_LENGTH: int = int(os.getenv("SPA_MIN_TEXT_CONTENT_LENGTH", "500"))
    SPA_RENDER_WAIT_MS: int = int(os.getenv("SPA_RENDER_WAIT_MS", "3000"))

    # Media filtering
    MEDIA_MIN_RELEVANCE_SCORE: float = float(os.getenv("MEDIA_MIN_RELEVANCE_SCORE", "0.5"))
    MEDIA_MIN_WIDTH: int = int(os.getenv("MEDIA_MIN_WIDTH", "400"))
    MEDIA_MIN_HEIGHT: int = int(os.getenv("MEDIA_MIN_HEIGHT", "300"))
    MEDIA_MIN_FILE_SIZE_KB: int = int(os.getenv("MEDIA_MIN_FILE_SIZE_KB", "10"))
    MEDIA_SUPPORTED_FORMATS: List[str] = _split_list(
        os.getenv("MEDIA_SUPPORTED_FORMATS", "jpg,jpeg,png,webp,avif,gif,mp4,webm,mov")
    )
    MEDIA_BATCH_SIZE: int = int(os.getenv("MEDIA_BATCH_SIZE", "4"))
    MEDIA_MAX_URLS_PER_PAGE: int = int(os.getenv("MEDIA_MAX_URLS_PER_PAGE", "100"))
    MEDIA_PROBE_TIMEOUT: float = float(os.getenv("MEDIA_PROBE_TIMEOUT", "5"))

    # Merge policy
    SCRAPING_PROTECTED_FIELDS: str = os.getenv("SCRAPING_PROTECTED_FIELDS", DEFAULT_PROTECTED_FIELDS)

    # Per-domain cache used by the "skip unchanged site" heuristic
    SCRAPING_CACHE_DIR: str = os.getenv("SCRAPING_CACHE_DIR", "references/scraping/cache")
    SCRAPING_CACHE_TTL_SECONDS: int = int(os.getenv("SCRAPING_CACHE_TTL_SECONDS", str(86400 * 7)))

    @classmethod
    def is_scrapingdog_configured(cls) -> bool:
        """Check if ScrapingDog credentials are configured."""
        return bool(cls.SCRAPINGDOG_API_KEY)

    @classmethod
    def is_scrapfly_configured(cls) -> bool:
        """Check if Scrapfly credentials are configured."""
        return bool(cls.SCRAPFLY_API_KEY)

    @classmethod
    def get_protected_fields(cls) -> List[Union[str, Dict[str, Any]]]:
        """
        Parse the protected-fields list.

        Accepts either a JSON array (strings or {"field", "mode"} objects)
        or a plain comma-separated list of field names.
        """
        raw = (cls.SCRAPING_PROTECTED_FIELDS or "").strip()
        if not raw:
            return []
        if raw.startswith("["):
            return json.loads(raw)
        return _split_list(raw)


config = Config()
