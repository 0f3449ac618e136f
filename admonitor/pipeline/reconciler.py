from datetime import date
from typing import Optional, Sequence

from sqlalchemy import delete, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from admonitor.models import Ad, Brand
from admonitor.pipeline.snapshots import SnapshotRecorder
from admonitor.pipeline.types import AdError, CanonicalAd, ProcessingResult
from admonitor.utils.dates import today as current_date, utcnow, week_start
from admonitor.utils.logger import get_logger

logger = get_logger("reconciler")

MEDIA_FIELDS = ("creative_url", "creative_type", "video_url")


class Reconciler:
    """Merge a brand's canonical ad set into the ad vault.

    Runs inside the caller's transaction. Each ad is merged in its own
    savepoint so a failing row is rolled back alone; the caller commits once
    the whole brand has been reconciled.
    """

    def __init__(self, session: Session, snapshots: SnapshotRecorder = None):
        self.session = session
        self.snapshots = snapshots or SnapshotRecorder(session)

    def reconcile(self, brand_id: int, ads: Sequence[CanonicalAd], today: Optional[date] = None) -> ProcessingResult:
        today = today or current_date()
        current_week = week_start(today)
        result = ProcessingResult(brand_id=brand_id)

        if ads:
            result.deleted_count = self._remove_stale(brand_id, {ad.ad_id for ad in ads})
        else:
            # An empty scrape is far more likely an upstream hiccup than a brand with no ads
            logger.warning("empty_batch_deletion_skipped", brand_id=brand_id)

        for ad in ads:
            try:
                with self.session.begin_nested():
                    inserted = self._merge(ad, today, current_week)
                    self.snapshots.record(brand_id, ad.ad_id, ad.rank, current_week)
            except SQLAlchemyError as e:
                logger.error("ad_merge_failed", brand_id=brand_id, ad_id=ad.ad_id, error=str(e))
                result.errors.append(AdError(ad_id=ad.ad_id, message=str(e)))
                continue

            result.processed.append(ad)
            if inserted:
                result.inserted_count += 1
                result.inserted_ids.append(ad.ad_id)
            else:
                result.updated_count += 1

        brand = self.session.get(Brand, brand_id)
        if brand is not None:
            brand.last_scraped = utcnow()
        self.session.flush()

        logger.info(
            "brand_reconciled",
            brand_id=brand_id,
            inserted=result.inserted_count,
            updated=result.updated_count,
            deleted=result.deleted_count,
            errors=result.failed,
        )
        return result

    def _remove_stale(self, brand_id: int, keep_ids: set[str]) -> int:
        """Delete stored ads of the brand that dropped out of the top set, unless bookmarked."""
        stale_ids = self.session.execute(
            select(Ad.ad_id).where(
                Ad.brand_id == brand_id,
                Ad.ad_id.notin_(keep_ids),
                Ad.bookmarked.is_(False),
            )
        ).scalars().all()
        if not stale_ids:
            return 0

        self.snapshots.purge(stale_ids)
        # Bookmark flag is checked again here, at deletion time
        deleted = self.session.execute(
            delete(Ad)
            .where(Ad.ad_id.in_(stale_ids), Ad.bookmarked.is_(False))
            .execution_options(synchronize_session="fetch")
        ).rowcount or 0

        logger.info("stale_ads_deleted", brand_id=brand_id, count=deleted)
        return deleted

    def _merge(self, ad: CanonicalAd, today: date, current_week: date) -> bool:
        """Insert or update one ad. Returns True when the ad is new."""
        stored = self.session.execute(select(Ad).where(Ad.ad_id == ad.ad_id)).scalar_one_or_none()

        if stored is None:
            self.session.add(
                Ad(
                    ad_id=ad.ad_id,
                    brand_id=ad.brand_id,
                    date_scraped=today,
                    rank=ad.rank,
                    creative_type=ad.creative_type,
                    creative_url=ad.creative_url,
                    video_url=ad.video_url,
                    ad_copy=ad.ad_copy,
                    headline=ad.headline,
                    cta_type=ad.cta_type,
                    start_date=ad.start_date,
                    ad_library_link=ad.ad_library_link,
                    first_seen=today,
                    last_seen=today,
                    weeks_in_top10=1,
                )
            )
            self.session.flush()
            return True

        if stored.last_seen is not None and week_start(stored.last_seen) != current_week:
            stored.weeks_in_top10 = (stored.weeks_in_top10 or 0) + 1
        stored.last_seen = today
        stored.rank = ad.rank
        # A scrape that resolved no media leaves the stored creative alone
        if ad.creative_url or ad.video_url:
            for field in MEDIA_FIELDS:
                value = getattr(ad, field)
                if value is not None:
                    setattr(stored, field, value)
            if ad.creative_type != "video":
                stored.video_url = None

        self.session.flush()
        return False
