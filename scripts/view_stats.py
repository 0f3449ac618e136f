#!/usr/bin/env python3
"""
View scrape job statistics, evergreen ads and weekly rank history.

Usage:
    python scripts/view_stats.py
    python scripts/view_stats.py --jobs 10
    python scripts/view_stats.py --ads --brand {brand_id}
    python scripts/view_stats.py --evergreen --min-weeks 6
    python scripts/view_stats.py --verticals
    python scripts/view_stats.py --history --weeks 4 --brand {brand_id}
    python scripts/view_stats.py --export ads.csv
"""

import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

import click
from sqlalchemy import func

from admonitor.config import EVERGREEN_WEEKS
from admonitor.models import SessionLocal, Ad, Brand, ScrapeJob
from admonitor.services import analytics
from admonitor.services.analysis import count_untagged


@click.command()
@click.option("--jobs", type=int, default=5, help="Number of recent scrape jobs to show")
@click.option("--ads", is_flag=True, help="Show ad statistics")
@click.option("--brand", "brand_id", type=int, help="Filter by brand id")
@click.option("--evergreen", is_flag=True, help="Show evergreen ads")
@click.option("--min-weeks", type=int, default=EVERGREEN_WEEKS, help="Weeks in top 10 to count as evergreen")
@click.option("--verticals", is_flag=True, help="Show per-vertical statistics")
@click.option("--history", is_flag=True, help="Show weekly rank snapshots")
@click.option("--weeks", type=int, default=4, help="Weeks of history to show")
@click.option("--export", "export_path", type=click.Path(dir_okay=False), help="Export the ad vault to CSV")
def main(
    jobs: int,
    ads: bool,
    brand_id: int,
    evergreen: bool,
    min_weeks: int,
    verticals: bool,
    history: bool,
    weeks: int,
    export_path: str,
):
    """View monitor statistics."""

    db = SessionLocal()

    try:
        if export_path:
            count = analytics.export_ads(db, export_path)
            click.echo(f"Exported {count} ads to {export_path}")
        elif evergreen:
            show_evergreen(db, min_weeks)
        elif verticals:
            show_verticals(db)
        elif history:
            show_history(db, brand_id, weeks)
        elif ads:
            show_ad_stats(db, brand_id)
        else:
            show_job_stats(db, jobs)
    finally:
        db.close()


def show_job_stats(db, limit: int):
    """Show recent scrape job statistics."""
    click.echo("\n=== Recent Scrape Jobs ===\n")

    rows = (
        db.query(ScrapeJob, Brand.brand_name)
        .outerjoin(Brand, ScrapeJob.brand_id == Brand.id)
        .order_by(ScrapeJob.created_at.desc())
        .limit(limit)
        .all()
    )

    if not rows:
        click.echo("No scrape jobs found.")
        return

    for job, brand_name in rows:
        duration = ""
        if job.completed_at and job.created_at:
            delta = job.completed_at - job.created_at
            duration = f" ({delta.seconds}s)"

        click.echo(f"Job #{job.id} [{brand_name or job.brand_id}] - {job.status}{duration}")
        click.echo(f"  Started: {job.created_at.strftime('%Y-%m-%d %H:%M:%S')}")
        if job.apify_run_id:
            click.echo(f"  Apify run: {job.apify_run_id}")
        click.echo(
            f"  Ads: kept={job.result_count}, new={job.inserted_count}, "
            f"updated={job.updated_count}, removed={job.deleted_count}"
        )
        if job.error_message:
            click.echo(f"  Errors ({job.errors_count}): {job.error_message[:100]}")
        click.echo("")


def show_ad_stats(db, brand_id: int = None):
    """Show ad statistics."""
    click.echo("\n=== Ad Statistics ===\n")

    query = db.query(Ad)
    if brand_id:
        query = query.filter(Ad.brand_id == brand_id)

    click.echo(f"Total ads: {query.count()}")
    click.echo(f"Bookmarked: {query.filter(Ad.bookmarked.is_(True)).count()}")
    click.echo(f"Evergreen (>= {EVERGREEN_WEEKS} weeks): {query.filter(Ad.weeks_in_top10 >= EVERGREEN_WEEKS).count()}")
    click.echo(f"Untagged (all brands): {count_untagged(db)}")

    click.echo("\nBy creative type:")
    type_query = db.query(Ad.creative_type, func.count(Ad.id))
    if brand_id:
        type_query = type_query.filter(Ad.brand_id == brand_id)
    for creative_type, count in type_query.group_by(Ad.creative_type).all():
        click.echo(f"  {creative_type or 'Unknown'}: {count}")

    if not brand_id:
        click.echo("\nAds by brand:")
        brand_counts = (
            db.query(Brand.brand_name, func.count(Ad.id))
            .join(Ad, Ad.brand_id == Brand.id)
            .group_by(Brand.id, Brand.brand_name)
            .order_by(func.count(Ad.id).desc())
            .limit(10)
            .all()
        )
        for name, count in brand_counts:
            click.echo(f"  {name}: {count} ads")

    click.echo("\nMost recent ads:")
    for ad in query.order_by(Ad.first_seen.desc()).limit(5).all():
        click.echo(f"  [{ad.ad_id}] #{ad.rank} {(ad.headline or '')[:50]} - {ad.first_seen}")


def show_evergreen(db, min_weeks: int):
    click.echo(f"\n=== Evergreen Ads (>= {min_weeks} weeks in top 10) ===\n")

    rows = analytics.evergreen_ads(db, min_weeks)
    if not rows:
        click.echo("No evergreen ads yet.")
        return

    for ad, brand in rows:
        tags = ad.tags
        label = f" [{tags.asset_type} / {tags.messaging_angle}]" if tags else ""
        click.echo(f"  {brand.brand_name}: {ad.weeks_in_top10} weeks, rank #{ad.rank}{label}")
        click.echo(f"    {(ad.headline or ad.ad_copy or '')[:80]}")
        click.echo(f"    {ad.ad_library_link}")


def show_verticals(db):
    click.echo("\n=== Verticals ===\n")
    click.echo(f"{'Vertical':<15} {'Brands':<8} {'Ads':<6} {'Avg weeks':<10}")
    click.echo("-" * 42)
    for row in analytics.stats_by_vertical(db):
        avg = row["avg_weeks_in_top10"] if row["avg_weeks_in_top10"] is not None else "-"
        click.echo(f"{row['vertical']:<15} {row['brand_count']:<8} {row['ad_count']:<6} {avg:<10}")


def show_history(db, brand_id: int, weeks: int):
    click.echo(f"\n=== Weekly Snapshots (last {weeks} weeks) ===\n")

    rows = analytics.snapshot_history(db, brand_id=brand_id, weeks=weeks)
    if not rows:
        click.echo("No snapshots found.")
        return

    current_week = None
    for row in rows:
        if row["week_start"] != current_week:
            current_week = row["week_start"]
            click.echo(f"Week of {current_week}:")
        click.echo(f"  #{row['rank']:<3} {row['brand_name']}: {(row['headline'] or row['ad_id'])[:60]}")


if __name__ == "__main__":
    main()
