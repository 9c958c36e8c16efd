"""
Kondo Scraping Service - FastAPI Application
HTTP surface over the scraping orchestrator.
"""
from typing import Optional

from fastapi import Depends, FastAPI, HTTPException, Query
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel

from kondo_scraping import __version__
from kondo_scraping.adapters.platform import create_fetch_provider
from kondo_scraping.adapters.site_cache import FileSiteCache
from kondo_scraping.adapters.stores import InMemoryKondoStore, InMemoryMediaStore, InMemoryObjectStorage
from kondo_scraping.config import config
from kondo_scraping.errors import EngineNotFoundError, InvalidKondoError, KondoNotFoundError
from kondo_scraping.layers.engine_selection import EngineSelector
from kondo_scraping.layers.media_heuristics import MediaHeuristics
from kondo_scraping.layers.orchestration import ScrapingOrchestrator
from kondo_scraping.models.scraping import (
    BatchScrapeOptions,
    BatchScrapeResult,
    ScrapeKondoResponse,
    ScrapeOptions,
)
from kondo_scraping.utils.logger import get_logger, set_trace_id


# Initialize FastAPI app
app = FastAPI(
    title="Kondo Scraping Service",
    description="Scrapes property listing pages and merges the result into Kondo records",
    version=__version__,
)

# CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

logger = get_logger("main")

_orchestrator: Optional[ScrapingOrchestrator] = None


def get_orchestrator() -> ScrapingOrchestrator:
    """
    Lazily built orchestrator. Deployments swap the in-memory stores for
    real collaborators by overriding this dependency.
    """
    global _orchestrator
    if _orchestrator is None:
        fetch_provider = create_fetch_provider()
        heuristics = MediaHeuristics(site_cache=FileSiteCache())
        _orchestrator = ScrapingOrchestrator(
            kondo_store=InMemoryKondoStore(),
            media_store=InMemoryMediaStore(),
            storage=InMemoryObjectStorage(),
            fetch_provider=fetch_provider,
            heuristics=heuristics,
        )
    return _orchestrator


class EngineDetectionResponse(BaseModel):
    """Response model for engine detection."""
    url: str
    engine: str
    engine_type: str
    matched_by: str
    confidence: float
    reason: str
    trace_id: str


# API Routes
@app.get("/api/health")
async def health_check():
    """Health check endpoint."""
    return {
        "status": "healthy",
        "version": __version__,
        "platform": config.SCRAPING_PLATFORM,
        "scrapingdog_configured": config.is_scrapingdog_configured(),
        "scrapfly_configured": config.is_scrapfly_configured(),
    }


@app.get("/api/detect-engine", response_model=EngineDetectionResponse)
async def detect_engine(
    url: str = Query(..., description="Listing URL to pick an engine for"),
    force_engine: Optional[str] = Query(None, description="Engine name that bypasses detection"),
    orchestrator: ScrapingOrchestrator = Depends(get_orchestrator),
):
    """Report which engine would scrape the URL, without scraping it."""
    trace_id = set_trace_id()
    logger.info("engine_detection_request", url=url, force_engine=force_engine, trace_id=trace_id)

    selector: EngineSelector = orchestrator.engine_selector
    try:
        result = await selector.select(url, force_engine)
    except EngineNotFoundError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return EngineDetectionResponse(
        url=url,
        engine=result.engine_name,
        engine_type=result.engine_type.value,
        matched_by=result.matched_by.value,
        confidence=result.confidence,
        reason=result.reason,
        trace_id=trace_id,
    )


@app.post("/api/scraping/{kondo_id}/scrape", response_model=ScrapeKondoResponse)
async def scrape_kondo(
    kondo_id: int,
    options: Optional[ScrapeOptions] = None,
    orchestrator: ScrapingOrchestrator = Depends(get_orchestrator),
):
    """Scrape one listing and merge the result into it."""
    options = options or ScrapeOptions()
    logger.info(
        "scrape_request",
        kondo_id=kondo_id,
        dry_run=options.dry_run,
        force_engine=options.force_engine,
    )

    try:
        return await orchestrator.scrape_kondo_by_id(kondo_id, options)
    except KondoNotFoundError as e:
        raise HTTPException(status_code=404, detail=str(e))
    except (InvalidKondoError, EngineNotFoundError) as e:
        raise HTTPException(status_code=400, detail=str(e))
    except Exception as e:
        logger.error("scrape_request_error", error=str(e), kondo_id=kondo_id)
        raise HTTPException(status_code=500, detail=str(e))


@app.post("/api/scraping/run", response_model=BatchScrapeResult)
async def scrape_pending(
    options: Optional[BatchScrapeOptions] = None,
    orchestrator: ScrapingOrchestrator = Depends(get_orchestrator),
):
    """Scrape every listing waiting in status "scraping"."""
    options = options or BatchScrapeOptions()
    trace_id = set_trace_id()
    logger.info(
        "batch_scrape_request",
        kondo_id=options.kondo_id,
        platform=options.platform,
        dry_run=options.dry_run,
        trace_id=trace_id,
    )

    try:
        return await orchestrator.scrape_all_pending(options)
    except Exception as e:
        logger.error("batch_scrape_error", error=str(e))
        raise HTTPException(status_code=500, detail=str(e))


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host=config.HOST, port=config.PORT)
