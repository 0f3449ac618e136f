from datetime import date, timedelta
from typing import Iterable, Optional

from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from admonitor.models import Ad, Brand, WeeklySnapshot
from admonitor.utils.dates import today as current_date, week_start as monday_of
from admonitor.utils.logger import get_logger

logger = get_logger("snapshots")


class SnapshotRecorder:
    """Weekly rank observations, one row per (brand, ad, week)."""

    def __init__(self, session: Session):
        self.session = session

    def record(self, brand_id: int, ad_id: str, rank: int, week_start: date) -> WeeklySnapshot:
        """Upsert the rank of an ad for a week. Re-ingesting within a week replaces the rank."""
        snapshot = self.session.execute(
            select(WeeklySnapshot).where(
                WeeklySnapshot.brand_id == brand_id,
                WeeklySnapshot.ad_id == ad_id,
                WeeklySnapshot.week_start == week_start,
            )
        ).scalar_one_or_none()

        if snapshot is None:
            snapshot = WeeklySnapshot(brand_id=brand_id, ad_id=ad_id, week_start=week_start, rank=rank)
            self.session.add(snapshot)
        else:
            snapshot.rank = rank

        self.session.flush()
        return snapshot

    def purge(self, ad_ids: Iterable[str]) -> int:
        """Drop every snapshot of the given ads (they are about to be removed)."""
        ad_ids = list(ad_ids)
        if not ad_ids:
            return 0
        result = self.session.execute(
            delete(WeeklySnapshot).where(WeeklySnapshot.ad_id.in_(ad_ids)).execution_options(synchronize_session=False)
        )
        return result.rowcount or 0

    def history(self, brand_id: int = None, weeks: int = 4, today: Optional[date] = None) -> list[dict]:
        """Snapshots of the last ``weeks`` weeks, newest week first and best rank first."""
        since = monday_of(today or current_date()) - timedelta(weeks=max(weeks, 1) - 1)

        query = (
            select(WeeklySnapshot, Ad.headline, Brand.brand_name)
            .join(Ad, Ad.ad_id == WeeklySnapshot.ad_id)
            .join(Brand, Brand.id == WeeklySnapshot.brand_id)
            .where(WeeklySnapshot.week_start >= since)
            .order_by(WeeklySnapshot.week_start.desc(), WeeklySnapshot.rank.asc())
        )
        if brand_id is not None:
            query = query.where(WeeklySnapshot.brand_id == brand_id)

        return [
            {
                "week_start": snapshot.week_start,
                "brand_id": snapshot.brand_id,
                "brand_name": brand_name,
                "ad_id": snapshot.ad_id,
                "rank": snapshot.rank,
                "headline": headline,
            }
            for snapshot, headline, brand_name in self.session.execute(query)
        ]
