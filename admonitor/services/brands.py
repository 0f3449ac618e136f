import asyncio
import re
from pathlib import Path
from typing import Awaitable, Callable, Optional, Union

import httpx
import pandas as pd
from sqlalchemy import case, delete, func, select
from sqlalchemy.orm import Session

from admonitor.config import AD_LIBRARY_SEARCH_URL, EVERGREEN_WEEKS
from admonitor.errors import BrandError
from admonitor.models import Ad, Brand, ScrapeJob, WeeklySnapshot
from admonitor.utils.logger import get_logger

logger = get_logger("brands")

PAGE_ID_RE = re.compile(r"view_all_page_id=(\d+)")
PAGE_HTML_PATTERNS = (
    re.compile(r'"pageID":"(\d+)"'),
    re.compile(r"page_id=(\d+)"),
    re.compile(r'"page_id":"(\d+)"'),
    re.compile(r"fb://page/(\d+)"),
    re.compile(r'"entity_id":"(\d+)"'),
)

REQUIRED_CSV_COLUMNS = ("Brand Name", "Category", "Facebook Page URL")
CATEGORY_VERTICALS = {
    "Health/Supplements": "Health",
    "Health": "Health",
    "Apparel": "Apparel",
    "Beauty": "Beauty",
    "Home Goods": "Home",
    "Home": "Home",
    "Food/Bev": "Food",
    "Food & Beverage": "Food",
    "Food": "Food",
    "Tech": "Tech",
    "Accessories": "Accessories",
    "Footwear": "Footwear",
}

PageIdResolver = Callable[[str], Awaitable[Optional[str]]]


def parse_page_id(url: str) -> Optional[str]:
    """Page id from an Ad Library URL (``view_all_page_id=...``)."""
    match = PAGE_ID_RE.search(url or "")
    return match.group(1) if match else None


def build_brand_ad_library_url(page_id: str) -> str:
    return AD_LIBRARY_SEARCH_URL.format(page_id=page_id)


def vertical_for_category(category: str) -> str:
    return CATEGORY_VERTICALS.get((category or "").strip(), "Other")


async def resolve_page_id(fb_page_url: str, client: httpx.AsyncClient = None) -> Optional[str]:
    """Find the numeric page id in a Facebook page's HTML. None when it cannot be found."""
    owns_client = client is None
    client = client or httpx.AsyncClient(
        timeout=30.0,
        follow_redirects=True,
        headers={"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"},
    )
    try:
        response = await client.get(fb_page_url)
        html = response.text
    except httpx.HTTPError as e:
        logger.warning("page_id_resolution_failed", url=fb_page_url, error=str(e))
        return None
    finally:
        if owns_client:
            await client.aclose()

    for pattern in PAGE_HTML_PATTERNS:
        match = pattern.search(html)
        if match:
            return match.group(1)
    return None


def get_brand(db: Session, brand_id: int) -> Brand:
    brand = db.get(Brand, brand_id)
    if brand is None:
        raise BrandError(f"Brand {brand_id} not found")
    return brand


def add_brand(
    db: Session,
    brand_name: str,
    ad_library_url: str,
    website_url: str = None,
    vertical: str = None,
) -> Brand:
    """Register a brand from its Ad Library URL."""
    if not brand_name or not ad_library_url:
        raise BrandError("Brand name and Ad Library URL are required")

    page_id = parse_page_id(ad_library_url)
    if not page_id:
        raise BrandError("Could not extract Page ID from Ad Library URL (expected view_all_page_id=...)")

    brand = Brand(
        brand_name=brand_name,
        website_url=website_url,
        fb_page_url=ad_library_url,
        page_id=page_id,
        vertical=vertical,
        status="active",
    )
    db.add(brand)
    db.flush()
    logger.info("brand_added", brand_id=brand.id, brand_name=brand_name, page_id=page_id)
    return brand


def list_brands(db: Session, min_weeks: int = EVERGREEN_WEEKS) -> list[dict]:
    """Brands with their ad and evergreen-ad counts, by name."""
    ad_count = func.count(Ad.id)
    evergreen_count = func.coalesce(func.sum(case((Ad.weeks_in_top10 >= min_weeks, 1), else_=0)), 0)
    rows = db.execute(
        select(Brand, ad_count, evergreen_count)
        .outerjoin(Ad, Ad.brand_id == Brand.id)
        .group_by(Brand.id)
        .order_by(Brand.brand_name)
    ).all()
    return [{"brand": brand, "ad_count": ads, "evergreen_count": evergreen} for brand, ads, evergreen in rows]


def set_brand_status(db: Session, brand_id: int, active: bool) -> Brand:
    brand = get_brand(db, brand_id)
    brand.status = "active" if active else "inactive"
    db.flush()
    logger.info("brand_status_changed", brand_id=brand_id, status=brand.status)
    return brand


def delete_brand(db: Session, brand_id: int) -> dict:
    """Delete a brand with its snapshots, ads and scrape jobs."""
    brand = get_brand(db, brand_id)
    counts = {
        "snapshots": db.execute(delete(WeeklySnapshot).where(WeeklySnapshot.brand_id == brand_id)).rowcount,
        "ads": db.execute(delete(Ad).where(Ad.brand_id == brand_id)).rowcount,
        "jobs": db.execute(delete(ScrapeJob).where(ScrapeJob.brand_id == brand_id)).rowcount,
    }
    db.delete(brand)
    db.flush()
    logger.info("brand_deleted", brand_id=brand_id, **counts)
    return counts


def toggle_bookmark(db: Session, ad_pk: int) -> bool:
    """Flip an ad's bookmark and return the new value."""
    ad = db.get(Ad, ad_pk)
    if ad is None:
        raise BrandError(f"Ad {ad_pk} not found")
    ad.bookmarked = not ad.bookmarked
    db.flush()
    return ad.bookmarked


def cleanup_orphaned_data(db: Session) -> dict:
    """Remove ads, snapshots and jobs whose brand no longer exists."""
    brand_ids = select(Brand.id)
    counts = {
        "snapshots": db.execute(
            delete(WeeklySnapshot).where(WeeklySnapshot.brand_id.notin_(brand_ids))
        ).rowcount,
        "ads": db.execute(delete(Ad).where(Ad.brand_id.notin_(brand_ids))).rowcount,
        "jobs": db.execute(delete(ScrapeJob).where(ScrapeJob.brand_id.notin_(brand_ids))).rowcount,
    }
    if any(counts.values()):
        logger.info("orphaned_data_cleaned", **counts)
    return counts


async def import_brands_csv(
    db: Session,
    path: Union[str, Path],
    resolver: PageIdResolver = resolve_page_id,
    delay: float = 0.5,
) -> dict:
    """Import brands from a CSV with Brand Name, Category and Facebook Page URL columns.

    Existing brand names are skipped. The page id is taken from an optional
    ``Page ID`` column, then from an Ad Library URL, and finally resolved from
    the Facebook page itself; rows where all three fail are reported as errors.
    """
    frame = pd.read_csv(path, dtype=str, keep_default_na=False)
    frame.columns = [c.strip() for c in frame.columns]

    missing = [c for c in REQUIRED_CSV_COLUMNS if c not in frame.columns]
    if missing:
        raise BrandError(f"Missing columns: {', '.join(missing)}")

    existing = set(db.execute(select(Brand.brand_name)).scalars())
    inserted, skipped, errors = [], [], []

    for row_number, row in enumerate(frame.to_dict("records"), start=1):
        brand_name = row["Brand Name"].strip()
        fb_page_url = row["Facebook Page URL"].strip()
        if not brand_name or not fb_page_url:
            errors.append({"brand_name": brand_name or f"Row {row_number}", "error": "Missing brand name or Facebook URL"})
            continue
        if brand_name in existing:
            skipped.append({"brand_name": brand_name, "reason": "Already exists"})
            continue

        page_id = row.get("Page ID", "").strip() or parse_page_id(fb_page_url)
        if not page_id:
            logger.info("resolving_page_id", brand_name=brand_name)
            page_id = await resolver(fb_page_url)
            if delay:
                await asyncio.sleep(delay)
        if not page_id:
            errors.append({"brand_name": brand_name, "error": "Could not resolve Facebook page ID"})
            continue

        domain = row.get("Website Domain", "").strip()
        brand = Brand(
            brand_name=brand_name,
            website_url=f"https://{domain}" if domain else None,
            fb_page_url=build_brand_ad_library_url(page_id),
            page_id=page_id,
            vertical=vertical_for_category(row["Category"]),
            status="active",
        )
        db.add(brand)
        db.flush()
        existing.add(brand_name)
        inserted.append({"id": brand.id, "brand_name": brand_name, "page_id": page_id, "vertical": brand.vertical})
        logger.info("brand_imported", brand_name=brand_name, page_id=page_id)

    summary = {"total": len(frame), "inserted": len(inserted), "skipped": len(skipped), "errors": len(errors)}
    logger.info("brand_import_completed", **summary)
    return {"inserted": inserted, "skipped": skipped, "errors": errors, "summary": summary}
