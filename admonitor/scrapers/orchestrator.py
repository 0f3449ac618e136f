import asyncio
import random
import weakref
from typing import Callable, Optional, Protocol

from sqlalchemy import select
from sqlalchemy.orm import Session

from admonitor.config import MAX_BRAND_DELAY, MAX_RETRIES, MIN_BRAND_DELAY, TOP_ADS_LIMIT
from admonitor.errors import BrandError, ScraperError
from admonitor.models import Ad, Brand, ScrapeJob, SessionLocal
from admonitor.pipeline.dedup import deduplicate
from admonitor.pipeline.reconciler import Reconciler
from admonitor.pipeline.types import ProcessingResult
from admonitor.scrapers.apify_client import ScrapeResult
from admonitor.services.analysis import tag_untagged_ads
from admonitor.utils.logger import bind_brand, clear_brand, get_logger
from admonitor.utils.media_downloader import MediaDownloader

logger = get_logger("orchestrator")

# Brand locks per event loop, shared by every orchestrator running on that loop
_BRAND_LOCKS: "weakref.WeakKeyDictionary[asyncio.AbstractEventLoop, dict[int, asyncio.Lock]]" = (
    weakref.WeakKeyDictionary()
)


class AdScraper(Protocol):
    async def scrape(self, page_id: str) -> ScrapeResult: ...


class IngestionOrchestrator:
    """Runs scrape → dedup → reconcile cycles, one brand at a time."""

    def __init__(
        self,
        scraper: AdScraper,
        session_factory: Callable[[], Session] = SessionLocal,
        downloader: Optional[MediaDownloader] = None,
        tagger=None,
        auto_analyze: bool = False,
        min_delay: float = MIN_BRAND_DELAY,
        max_delay: float = MAX_BRAND_DELAY,
        max_retries: int = MAX_RETRIES,
        retry_delay: float = 5,
        limit: int = TOP_ADS_LIMIT,
    ):
        self.scraper = scraper
        self.session_factory = session_factory
        self.downloader = downloader
        self.tagger = tagger
        self.auto_analyze = auto_analyze
        self.min_delay = min_delay
        self.max_delay = max_delay
        self.max_retries = max(max_retries, 1)
        self.retry_delay = retry_delay
        self.limit = limit

    def _lock_for(self, brand_id: int) -> asyncio.Lock:
        locks = _BRAND_LOCKS.setdefault(asyncio.get_running_loop(), {})
        return locks.setdefault(brand_id, asyncio.Lock())

    async def run(self, brand_id: int = None) -> dict:
        """Ingest one brand or every active brand. Returns run totals."""
        with self.session_factory() as db:
            brands = self._get_brands(db, brand_id)

        summary = {
            "brands_total": len(brands),
            "brands_processed": 0,
            "brands_failed": 0,
            "inserted": 0,
            "updated": 0,
            "deleted": 0,
            "errors": 0,
        }
        logger.info("ingestion_run_started", brands=len(brands))

        if self.downloader:
            await self.downloader.start()
        try:
            for i, brand in enumerate(brands):
                try:
                    result = await self.ingest_brand(brand)
                    summary["brands_processed"] += 1
                    summary["inserted"] += result.inserted_count
                    summary["updated"] += result.updated_count
                    summary["deleted"] += result.deleted_count
                    summary["errors"] += result.failed
                except Exception as e:
                    summary["brands_failed"] += 1
                    logger.error("brand_failed", brand_id=brand.id, brand_name=brand.brand_name, error=str(e))
                    if brand_id is not None:
                        raise

                # Delay between brands (except after the last one)
                if i < len(brands) - 1:
                    delay = random.uniform(self.min_delay, self.max_delay)
                    logger.info("waiting_between_brands", delay=round(delay, 2))
                    await asyncio.sleep(delay)
        finally:
            if self.downloader:
                await self.downloader.stop()

        if self.auto_analyze and self.tagger is not None:
            summary["analysis"] = await self.analyze_untagged()

        logger.info("ingestion_run_completed", **summary)
        return summary

    def _get_brands(self, db: Session, brand_id: int = None) -> list[Brand]:
        if brand_id is not None:
            brand = db.get(Brand, brand_id)
            if brand is None:
                raise BrandError(f"Brand {brand_id} not found")
            if not brand.page_id:
                raise BrandError(f"Brand {brand.brand_name} has no page id")
            return [brand]

        return db.execute(
            select(Brand)
            .where(Brand.status == "active", Brand.page_id.isnot(None), Brand.page_id != "")
            .order_by(Brand.id)
        ).scalars().all()

    async def ingest_brand(self, brand: Brand) -> ProcessingResult:
        """Scrape and reconcile one brand under its lock, tracked by a ScrapeJob."""
        async with self._lock_for(brand.id):
            bind_brand(brand.id, brand.brand_name)
            db = self.session_factory()
            try:
                job = ScrapeJob(job_type="ad_scrape", brand_id=brand.id, input_params={"page_id": brand.page_id})
                job.mark_running()
                db.add(job)
                db.commit()
                logger.info("brand_ingestion_started", job_id=job.id, page_id=brand.page_id)

                try:
                    scrape = await self._scrape_with_retries(brand)
                    job.apify_run_id = scrape.run_id
                    job.input_params = scrape.input_params or job.input_params
                    result = self.ingest_items(db, brand.id, scrape.items)
                    db.commit()
                except Exception as e:
                    db.rollback()
                    if isinstance(e, ScraperError) and e.run_id:
                        job.apify_run_id = e.run_id
                    job.mark_failed(str(e))
                    db.commit()
                    raise

                if self.downloader and result.inserted_ids:
                    await self._store_media(db, result)

                job.mark_completed(result)
                db.commit()
                logger.info(
                    "brand_ingestion_completed",
                    job_id=job.id,
                    inserted=result.inserted_count,
                    updated=result.updated_count,
                    deleted=result.deleted_count,
                    errors=result.failed,
                )
                return result
            finally:
                db.close()
                clear_brand()

    def ingest_items(self, db: Session, brand_id: int, items: list) -> ProcessingResult:
        """Deduplicate and reconcile an already fetched batch. The caller commits."""
        ads = deduplicate(items, brand_id, limit=self.limit)
        return Reconciler(db).reconcile(brand_id, ads)

    async def _scrape_with_retries(self, brand: Brand) -> ScrapeResult:
        for attempt in range(self.max_retries):
            try:
                return await self.scraper.scrape(brand.page_id)
            except ScraperError as e:
                logger.warning(
                    "scrape_attempt_failed",
                    page_id=brand.page_id,
                    attempt=attempt + 1,
                    max_retries=self.max_retries,
                    error=str(e),
                )
                if attempt == self.max_retries - 1:
                    raise
                await asyncio.sleep(self.retry_delay)

    async def _store_media(self, db: Session, result: ProcessingResult):
        """Download creatives of newly inserted ads and record the local paths."""
        inserted = set(result.inserted_ids)
        new_ads = [ad for ad in result.processed if ad.ad_id in inserted]
        downloads = await self.downloader.download_batch(new_ads)

        for ad_id, path in downloads["paths"].items():
            stored = db.execute(select(Ad).where(Ad.ad_id == ad_id)).scalar_one_or_none()
            if stored is not None:
                stored.stored_creative_url = path
        db.commit()

    async def analyze_untagged(self) -> dict:
        with self.session_factory() as db:
            return await tag_untagged_ads(db, self.tagger)
