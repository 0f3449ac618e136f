from datetime import date
from pathlib import Path
from typing import Optional, Sequence, Union

import pandas as pd
from sqlalchemy import func, select
from sqlalchemy.orm import Session

from admonitor.config import EVERGREEN_WEEKS
from admonitor.models import Ad, Brand
from admonitor.models.ad import TAG_FIELDS
from admonitor.pipeline.snapshots import SnapshotRecorder

EXPORT_COLUMNS = [
    "ad_id",
    "brand_name",
    "vertical",
    "rank",
    "creative_type",
    "ad_copy",
    "headline",
    "cta_type",
    *[f"ai_{field}" for field in TAG_FIELDS],
    "first_seen",
    "last_seen",
    "weeks_in_top10",
    "bookmarked",
    "ad_library_link",
]


def evergreen_ads(db: Session, min_weeks: int = EVERGREEN_WEEKS) -> list[tuple[Ad, Brand]]:
    """Ads that stayed in their brand's top set for at least ``min_weeks`` weeks."""
    return db.execute(
        select(Ad, Brand)
        .join(Brand, Ad.brand_id == Brand.id)
        .where(Ad.weeks_in_top10 >= min_weeks)
        .order_by(Ad.weeks_in_top10.desc(), Ad.rank.asc())
    ).all()


def bookmarked_ads(db: Session) -> list[tuple[Ad, Brand]]:
    return db.execute(
        select(Ad, Brand).join(Brand, Ad.brand_id == Brand.id).where(Ad.bookmarked.is_(True)).order_by(Ad.updated_at.desc())
    ).all()


def search_ads(
    db: Session,
    brand_ids: Sequence[int] = None,
    min_weeks: int = None,
    media_type: str = None,
    date_from: date = None,
    date_to: date = None,
    tags: Optional[dict] = None,
    sort: str = "newest",
    limit: int = 50,
    offset: int = 0,
) -> list[tuple[Ad, Brand]]:
    """Filter the ad vault. ``tags`` maps a tag field to one value or a list of accepted values."""
    query = select(Ad, Brand).join(Brand, Ad.brand_id == Brand.id)

    if brand_ids:
        query = query.where(Ad.brand_id.in_(brand_ids))
    if date_from:
        query = query.where(Ad.start_date >= date_from)
    if date_to:
        query = query.where(Ad.start_date <= date_to)
    if media_type:
        query = query.where(Ad.creative_type == media_type)
    if min_weeks:
        query = query.where(Ad.weeks_in_top10 >= min_weeks)
    for field, values in (tags or {}).items():
        if field not in TAG_FIELDS or not values:
            continue
        values = [values] if isinstance(values, str) else list(values)
        query = query.where(getattr(Ad, f"ai_{field}").in_(values))

    if sort == "rank":
        query = query.order_by(Ad.rank.asc(), Ad.start_date.desc())
    elif sort == "oldest":
        query = query.order_by(Ad.start_date.asc(), Ad.rank.asc())
    else:
        query = query.order_by(Ad.start_date.desc(), Ad.rank.asc())

    return db.execute(query.limit(limit).offset(offset)).all()


def stats_by_vertical(db: Session) -> list[dict]:
    """Brand and ad counts per vertical for active brands, busiest vertical first."""
    ad_count = func.count(Ad.id)
    rows = db.execute(
        select(
            Brand.vertical,
            func.count(func.distinct(Brand.id)),
            ad_count,
            func.avg(Ad.weeks_in_top10),
        )
        .outerjoin(Ad, Ad.brand_id == Brand.id)
        .where(Brand.status == "active")
        .group_by(Brand.vertical)
        .order_by(ad_count.desc())
    ).all()
    return [
        {
            "vertical": vertical or "Other",
            "brand_count": brands,
            "ad_count": ads,
            "avg_weeks_in_top10": round(float(avg_weeks), 2) if avg_weeks is not None else None,
        }
        for vertical, brands, ads, avg_weeks in rows
    ]


def snapshot_history(db: Session, brand_id: int = None, weeks: int = 4, today: date = None) -> list[dict]:
    return SnapshotRecorder(db).history(brand_id=brand_id, weeks=weeks, today=today)


def ads_frame(db: Session) -> pd.DataFrame:
    """The whole ad vault joined to brands, ordered by brand then rank."""
    rows = db.execute(
        select(Ad, Brand).join(Brand, Ad.brand_id == Brand.id).order_by(Brand.brand_name, Ad.rank)
    ).all()
    records = []
    for ad, brand in rows:
        record = {column: getattr(ad, column, None) for column in EXPORT_COLUMNS}
        record["brand_name"] = brand.brand_name
        record["vertical"] = brand.vertical
        records.append(record)
    return pd.DataFrame.from_records(records, columns=EXPORT_COLUMNS)


def export_ads(db: Session, path: Union[str, Path]) -> int:
    """Write the ad vault to CSV and return the number of rows written."""
    frame = ads_frame(db)
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    frame.to_csv(path, index=False)
    return len(frame)
