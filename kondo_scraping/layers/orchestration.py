"""
Scraping Orchestration Layer.
Composition root of the pipeline: engine selection, retrying scrape,
sanity checks, merge, media gating/download and persistence.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Sequence, Tuple

from kondo_scraping.adapters.media_downloader import MediaDownloader, MediaFilters
from kondo_scraping.adapters.platform import FetchProvider, create_fetch_provider
from kondo_scraping.adapters.stores import InMemoryObjectStorage, KondoStore, MediaStore, ObjectStorage
from kondo_scraping.config import config
from kondo_scraping.errors import InvalidKondoError, KondoNotFoundError
from kondo_scraping.layers.data_merge import DataMergeService
from kondo_scraping.layers.data_quality import DataQualityValidator
from kondo_scraping.layers.engine_selection import EngineSelector
from kondo_scraping.layers.media_dimensions import MediaDimensionValidator
from kondo_scraping.layers.media_heuristics import MediaHeuristics
from kondo_scraping.layers.media_scoring import MediaRelevanceScorer
from kondo_scraping.models.listing import KondoStatus, MediaRecord, MediaType
from kondo_scraping.models.scraping import (
    BatchError,
    BatchScrapeOptions,
    BatchScrapeResult,
    ExtractionAttempt,
    MediaStats,
    ScrapeKondoResponse,
    ScrapeOptions,
    ScrapeStats,
)
from kondo_scraping.utils.logger import LayerLogger, set_trace_id
from kondo_scraping.utils.retry import RetryPolicy
from kondo_scraping.utils.urls import get_domain, is_external_video, is_video_url


class MediaOutcome(str, Enum):
    UPLOADED = "uploaded"
    DOWNLOADED = "downloaded"
    EMBEDDED = "embedded"
    ACCEPTED = "accepted"  # dry run: would have been downloaded
    REJECTED = "rejected"


@dataclass
class MediaResult:
    url: str
    media_type: MediaType
    outcome: MediaOutcome
    relevance_score: float
    record: Optional[MediaRecord] = None
    reason: str = ""


class ScrapingOrchestrator:
    """
    Runs one listing (or every pending listing) through the pipeline.

    All persistence goes through the KondoStore / MediaStore / ObjectStorage
    collaborators; one store update per listing, after everything else
    succeeded.
    """

    def __init__(
        self,
        kondo_store: KondoStore,
        media_store: MediaStore,
        storage: Optional[ObjectStorage] = None,
        fetch_provider: Optional[FetchProvider] = None,
        heuristics: Optional[MediaHeuristics] = None,
        engine_selector: Optional[EngineSelector] = None,
        retry_policy: Optional[RetryPolicy] = None,
        validator: Optional[DataQualityValidator] = None,
        merge_service: Optional[DataMergeService] = None,
        dimension_validator: Optional[MediaDimensionValidator] = None,
        downloader: Optional[MediaDownloader] = None,
        scorer: Optional[MediaRelevanceScorer] = None,
        protected_fields: Optional[Sequence[Any]] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.kondo_store = kondo_store
        self.media_store = media_store
        self.fetch_provider = fetch_provider or create_fetch_provider()
        self.heuristics = heuristics or MediaHeuristics()
        self.engine_selector = engine_selector or EngineSelector(self.fetch_provider, self.heuristics)
        self.retry = retry_policy or RetryPolicy()
        self.validator = validator or DataQualityValidator()
        self.merge_service = merge_service or DataMergeService(self.validator)
        self.dimension_validator = dimension_validator or MediaDimensionValidator()
        self.downloader = downloader or MediaDownloader(storage or InMemoryObjectStorage())
        self.scorer = scorer or MediaRelevanceScorer()
        self.protected_fields = (
            list(protected_fields) if protected_fields is not None else config.get_protected_fields()
        )
        # Raises on a malformed protection policy
        self.merge_service.build_protection_map(self.protected_fields)
        self._sleep = sleep
        self.logger = LayerLogger("orchestration")

    # ========================================================================
    # Single listing
    # ========================================================================

    async def scrape_kondo_by_id(
        self,
        kondo_id: int,
        options: Optional[ScrapeOptions] = None,
    ) -> ScrapeKondoResponse:
        """
        Scrape one listing and merge the result into it.

        Args:
            kondo_id: Listing id
            options: Dry run, forced engine, verbose, skip-unchanged

        Returns:
            ScrapeKondoResponse; fetch, parse, merge and persistence
            failures come back as success=False instead of raising

        Raises:
            KondoNotFoundError: No listing with that id
            InvalidKondoError: The listing has no source URL
            EngineNotFoundError: options.force_engine is not registered
        """
        options = options or ScrapeOptions()
        set_trace_id()

        kondo = await self.kondo_store.find_by_id(kondo_id)
        if kondo is None:
            raise KondoNotFoundError(kondo_id)
        url = kondo.get("url")
        if not url:
            raise InvalidKondoError(f"Kondo {kondo_id} has no URL to scrape")

        self.logger.log_action(
            "scrape_kondo",
            "started",
            kondo_id=kondo_id,
            url=url,
            dry_run=options.dry_run,
            force_engine=options.force_engine,
        )

        selection = await self.engine_selector.select(url, options.force_engine)
        engine = selection.engine
        response = ScrapeKondoResponse(
            success=False,
            kondo_id=kondo_id,
            platform=self.fetch_provider.name,
            engine=engine.name,
            dry_run=options.dry_run,
        )

        try:
            attempt = await self.retry.with_retry(lambda: engine.scrape(url), operation="scrape")
        except Exception as e:
            self.logger.log_error(
                str(e),
                error_type=getattr(e, "error_type", type(e).__name__),
                kondo_id=kondo_id,
                url=url,
                engine=engine.name,
            )
            response.error = str(e)
            return response

        if options.skip_unchanged and self.heuristics.should_skip_unchanged_site(
            url, attempt.response_headers, attempt.html
        ):
            response.success = True
            response.skipped = True
            return response

        try:
            return await self._apply(kondo, attempt, response, options)
        except Exception as e:
            self.logger.log_error(
                str(e),
                error_type=type(e).__name__,
                kondo_id=kondo_id,
                url=url,
                stage="merge_and_persist",
            )
            response.success = False
            response.error = str(e)
            return response

    async def _apply(
        self,
        kondo: Dict[str, Any],
        attempt: ExtractionAttempt,
        response: ScrapeKondoResponse,
        options: ScrapeOptions,
    ) -> ScrapeKondoResponse:
        kondo_id = kondo["id"]
        fields = attempt.fields

        validation = self.validator.validate_scraped_data(fields.field_values())
        merge = self.merge_service.merge_data(kondo, fields, self.protected_fields)

        media_results, media_stats = await self.process_media(
            kondo_id, fields.medias, attempt.url, dry_run=options.dry_run
        )
        records = [result.record for result in media_results if result.record is not None]

        updates = dict(merge.updates)
        featured_image = self.select_featured_image(kondo, media_results)
        if featured_image:
            updates["featured_image"] = featured_image

        updates.update(
            scraped_raw_data=attempt.raw_structured_data,
            scraped_data_source=attempt.source,
            scraped_extraction_method=attempt.method.value,
            scraped_extraction_confidence=attempt.confidence_score,
            scraped_at=fields.scraped_at,
            status=KondoStatus.DONE.value,
        )

        if options.dry_run:
            self.logger.log_decision(
                decision="dry_run",
                reason="persistence_skipped",
                url=attempt.url,
                kondo_id=kondo_id,
                would_update=sorted(updates),
            )
        else:
            await self.kondo_store.update(kondo_id, updates)
            if records:
                await self.media_store.bulk_create(records)
            self.heuristics.update_cache(attempt.url, attempt.response_headers, attempt.html, fields.medias)

        response.success = True
        response.extraction_method = attempt.method.value
        response.extraction_confidence = attempt.confidence_score
        response.updated_fields = sorted(merge.updates)
        response.rejections = merge.rejected
        response.changes = merge.accepted if options.verbose else None
        response.validation_issues = validation.issues
        response.validation_warnings = validation.warnings
        response.featured_image = featured_image
        response.stats = ScrapeStats(
            fields_updated=len(merge.updates),
            protected_skipped=merge.protected_skipped,
            quality_rejected=merge.quality_rejected,
            media_uploaded=media_stats.images_uploaded + media_stats.videos_downloaded,
            media=media_stats,
        )

        self.logger.log_action(
            "scrape_kondo",
            "completed",
            kondo_id=kondo_id,
            engine=response.engine,
            method=response.extraction_method,
            confidence=response.extraction_confidence,
            fields_updated=response.stats.fields_updated,
            media_saved=media_stats.total_saved,
        )
        return response

    # ========================================================================
    # Media
    # ========================================================================

    async def process_media(
        self,
        kondo_id: int,
        urls: List[str],
        page_url: str,
        dry_run: bool = False,
    ) -> Tuple[List[MediaResult], MediaStats]:
        """
        Gate and store media in batches of MEDIA_BATCH_SIZE.

        External videos become embedded records without download; other
        videos are downloaded; images need acceptable pixel dimensions, or,
        when the dimensions cannot be read, a relevance score at or above
        MEDIA_MIN_RELEVANCE_SCORE.
        """
        property_domain = get_domain(page_url)
        batch_size = max(1, config.MEDIA_BATCH_SIZE)
        results: List[MediaResult] = []

        for start in range(0, len(urls), batch_size):
            batch = urls[start:start + batch_size]
            results.extend(
                await asyncio.gather(
                    *[self._gate_media(kondo_id, url, property_domain, dry_run) for url in batch]
                )
            )

        stats = MediaStats(
            total_discovered=len(urls),
            images_discovered=sum(1 for r in results if r.media_type == MediaType.IMAGE),
            videos_discovered=sum(1 for r in results if r.media_type == MediaType.VIDEO),
            images_uploaded=sum(1 for r in results if r.outcome == MediaOutcome.UPLOADED),
            videos_downloaded=sum(1 for r in results if r.outcome == MediaOutcome.DOWNLOADED),
            videos_embedded=sum(1 for r in results if r.outcome == MediaOutcome.EMBEDDED),
            total_saved=0 if dry_run else sum(1 for r in results if r.record is not None),
        )
        self.logger.log_action("process_media", "completed", kondo_id=kondo_id, **stats.model_dump())
        return results, stats

    async def _gate_media(
        self,
        kondo_id: int,
        url: str,
        property_domain: str,
        dry_run: bool,
    ) -> MediaResult:
        """Errors from one item become a rejection of that item only."""
        try:
            result = await self._process_one(kondo_id, url, property_domain, dry_run)
        except Exception as e:
            self.logger.log_error(str(e), error_type=type(e).__name__, kondo_id=kondo_id, url=url)
            media_type = MediaType.VIDEO if is_external_video(url) or is_video_url(url) else MediaType.IMAGE
            result = MediaResult(url, media_type, MediaOutcome.REJECTED, 0.0, reason=str(e))

        self.logger.log_media_gate(
            url,
            media_type=result.media_type.value,
            outcome=result.outcome.value,
            score=result.relevance_score,
            reason=result.reason or None,
            kondo_id=kondo_id,
        )
        return result

    async def _process_one(
        self,
        kondo_id: int,
        url: str,
        property_domain: str,
        dry_run: bool,
    ) -> MediaResult:
        score = self.scorer.score(url, property_domain)

        if is_external_video(url):
            record = MediaRecord(
                kondo_id=kondo_id,
                filename=url.rstrip("/").rsplit("/", 1)[-1] or "video",
                storage_url=url,
                type=MediaType.VIDEO,
                source_url=url,
            )
            return MediaResult(url, MediaType.VIDEO, MediaOutcome.EMBEDDED, score, record=record)

        if is_video_url(url):
            return await self._download(kondo_id, url, MediaType.VIDEO, score, dry_run, filters=MediaFilters())

        validation = await self.dimension_validator.validate(url)
        if not validation.valid:
            if validation.dimensions is not None:
                return MediaResult(url, MediaType.IMAGE, MediaOutcome.REJECTED, score, reason=validation.reason)
            if score < config.MEDIA_MIN_RELEVANCE_SCORE:
                reason = f"relevance {score:.2f} below {config.MEDIA_MIN_RELEVANCE_SCORE}"
                return MediaResult(url, MediaType.IMAGE, MediaOutcome.REJECTED, score, reason=reason)

        filters = MediaFilters(min_resolution=(config.MEDIA_MIN_WIDTH, config.MEDIA_MIN_HEIGHT))
        return await self._download(kondo_id, url, MediaType.IMAGE, score, dry_run, filters=filters)

    async def _download(
        self,
        kondo_id: int,
        url: str,
        media_type: MediaType,
        score: float,
        dry_run: bool,
        filters: MediaFilters,
    ) -> MediaResult:
        if dry_run:
            return MediaResult(url, media_type, MediaOutcome.ACCEPTED, score)

        downloaded = await self.downloader.download_and_upload(url, kondo_id, filters)
        if downloaded is None:
            return MediaResult(url, media_type, MediaOutcome.REJECTED, score, reason="download skipped")

        record = MediaRecord(
            kondo_id=kondo_id,
            filename=downloaded.filename,
            storage_url=downloaded.cdn_url,
            type=media_type,
            relevance_score=score,
            source_url=url,
        )
        outcome = MediaOutcome.UPLOADED if media_type == MediaType.IMAGE else MediaOutcome.DOWNLOADED
        return MediaResult(url, media_type, outcome, score, record=record)

    def select_featured_image(self, kondo: Dict[str, Any], results: List[MediaResult]) -> Optional[str]:
        """Highest-relevance accepted image, only when the listing has none."""
        if kondo.get("featured_image"):
            return None
        images = [
            r for r in results
            if r.media_type == MediaType.IMAGE
            and r.outcome in (MediaOutcome.UPLOADED, MediaOutcome.ACCEPTED)
        ]
        if not images:
            return None
        # max() keeps the first of equal scores, i.e. discovery order
        best = max(images, key=lambda r: r.relevance_score)
        return best.record.storage_url if best.record else best.url

    # ========================================================================
    # Batch
    # ========================================================================

    async def scrape_all_pending(self, options: Optional[BatchScrapeOptions] = None) -> BatchScrapeResult:
        """
        Scrape every pending listing, one at a time, waiting
        SCRAPING_DELAY_BETWEEN_REQUESTS_MS between listings. A failing
        listing is recorded and the run continues.
        """
        options = options or BatchScrapeOptions()
        pending = await self.kondo_store.find_pending(options.kondo_id)
        result = BatchScrapeResult(total=len(pending))

        self.logger.log_action(
            "scrape_all_pending",
            "started",
            total=len(pending),
            kondo_id=options.kondo_id,
            dry_run=options.dry_run,
        )

        scrape_options = ScrapeOptions(
            dry_run=options.dry_run,
            force_engine=options.force_engine or options.platform,
            verbose=options.verbose,
            skip_delay=options.skip_delay,
        )

        for index, kondo in enumerate(pending):
            if not kondo.get("url"):
                self.logger.log_decision(decision="skip", reason="no_url", kondo_id=kondo["id"])
                result.skipped += 1
                continue

            if index > 0 and not options.skip_delay:
                await self._sleep(config.SCRAPING_DELAY_BETWEEN_REQUESTS_MS / 1000)

            try:
                response = await self.scrape_kondo_by_id(kondo["id"], scrape_options)
            except Exception as e:
                self.logger.log_error(str(e), error_type=type(e).__name__, kondo_id=kondo["id"])
                result.failed += 1
                result.errors.append(BatchError(kondo_id=kondo["id"], error=str(e), url=kondo.get("url")))
                continue

            result.results.append(response)
            if response.skipped:
                result.skipped += 1
            elif response.success:
                result.success += 1
            else:
                result.failed += 1
                result.errors.append(
                    BatchError(kondo_id=kondo["id"], error=response.error or "unknown error", url=kondo.get("url"))
                )

        self.logger.log_action(
            "scrape_all_pending",
            "completed",
            total=result.total,
            success=result.success,
            failed=result.failed,
            skipped=result.skipped,
        )
        return result
