#!/usr/bin/env python3
"""
Add or manage monitored brands, bookmarks and the weekly schedule.

Usage:
    python scripts/manage_brands.py --add {name} --url {ad_library_url} [--vertical Health]
    python scripts/manage_brands.py --list
    python scripts/manage_brands.py --import-csv brands.csv
    python scripts/manage_brands.py --deactivate {brand_id}
    python scripts/manage_brands.py --activate {brand_id}
    python scripts/manage_brands.py --delete {brand_id}
    python scripts/manage_brands.py --bookmark {ad_pk}
    python scripts/manage_brands.py --schedule --day 1 --hour 6 [--auto-analyze]
"""

import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

import click

from admonitor.errors import BrandError
from admonitor.models import SessionLocal, init_db
from admonitor.services import brands as brand_service
from admonitor.services.settings import ScheduleSettings, load_schedule_settings, save_schedule_settings


@click.command()
@click.option("--add", "brand_name", type=str, help="Name of the brand to add")
@click.option("--url", "ad_library_url", type=str, help="Ad Library URL containing view_all_page_id")
@click.option("--website", type=str, help="Brand website URL")
@click.option("--vertical", type=str, help="Brand vertical (Health, Apparel, ...)")
@click.option("--list", "list_all", is_flag=True, help="List all brands")
@click.option("--import-csv", "csv_path", type=click.Path(exists=True, dir_okay=False), help="Import brands from CSV")
@click.option("--resolve", "fb_page_url", type=str, help="Resolve the page id of a Facebook page URL")
@click.option("--deactivate", type=int, help="Deactivate a brand by id")
@click.option("--activate", type=int, help="Activate a brand by id")
@click.option("--delete", type=int, help="Delete a brand and all its ads by id")
@click.option("--bookmark", type=int, help="Toggle the bookmark of an ad by row id")
@click.option("--cleanup", is_flag=True, help="Remove ads, snapshots and jobs of deleted brands")
@click.option("--schedule", "show_schedule", is_flag=True, help="Show or update the weekly schedule")
@click.option("--day", type=click.IntRange(0, 6), help="Schedule day, 0=Sunday")
@click.option("--hour", type=click.IntRange(0, 23), help="Schedule hour")
@click.option("--enable/--disable", "enabled", default=None, help="Enable or disable scheduled scraping")
@click.option("--auto-analyze/--no-auto-analyze", "auto_analyze", default=None, help="Tag new ads after scheduled runs")
@click.option("--init-db", "initialize_db", is_flag=True, help="Initialize database tables")
def main(
    brand_name: str,
    ad_library_url: str,
    website: str,
    vertical: str,
    list_all: bool,
    csv_path: str,
    fb_page_url: str,
    deactivate: int,
    activate: int,
    delete: int,
    bookmark: int,
    cleanup: bool,
    show_schedule: bool,
    day: int,
    hour: int,
    enabled: bool,
    auto_analyze: bool,
    initialize_db: bool,
):
    """Manage brands in the Meta Ad Library monitor."""

    if initialize_db:
        click.echo("Initializing database tables...")
        init_db()
        click.echo("Database initialized successfully!")
        return

    if fb_page_url:
        page_id = asyncio.run(brand_service.resolve_page_id(fb_page_url))
        if not page_id:
            click.echo(f"Error: could not resolve a page id from {fb_page_url}")
            sys.exit(1)
        click.echo(f"Page ID: {page_id}")
        click.echo(f"Ad Library URL: {brand_service.build_brand_ad_library_url(page_id)}")
        return

    db = SessionLocal()

    try:
        if list_all:
            list_brands(db)
        elif csv_path:
            import_csv(db, csv_path)
        elif deactivate:
            set_active(db, deactivate, False)
        elif activate:
            set_active(db, activate, True)
        elif delete:
            delete_brand(db, delete)
        elif bookmark:
            toggle_bookmark(db, bookmark)
        elif cleanup:
            counts = brand_service.cleanup_orphaned_data(db)
            db.commit()
            click.echo(f"Removed {counts['ads']} ads, {counts['snapshots']} snapshots, {counts['jobs']} jobs")
        elif show_schedule:
            update_schedule(db, day, hour, enabled, auto_analyze)
        elif brand_name and ad_library_url:
            add_brand(db, brand_name, ad_library_url, website, vertical)
        elif brand_name:
            click.echo("Error: --url is required when adding a brand")
            sys.exit(1)
        else:
            click.echo("Use --help for usage information")
            sys.exit(1)
    except BrandError as e:
        db.rollback()
        click.echo(f"Error: {e}")
        sys.exit(1)
    finally:
        db.close()


def add_brand(db, brand_name: str, ad_library_url: str, website: str, vertical: str):
    brand = brand_service.add_brand(db, brand_name, ad_library_url, website_url=website, vertical=vertical)
    db.commit()
    click.echo(f"Added brand: {brand.brand_name} (id: {brand.id}, page_id: {brand.page_id})")


def list_brands(db):
    rows = brand_service.list_brands(db)

    if not rows:
        click.echo("No brands found. Add one with --add and --url")
        return

    click.echo(f"\n{'ID':<6} {'Name':<30} {'Page ID':<20} {'Vertical':<12} {'Active':<8} {'Ads':<5} {'Evergreen':<9}")
    click.echo("-" * 94)

    for row in rows:
        b = row["brand"]
        status = "Yes" if b.is_active else "No"
        click.echo(
            f"{b.id:<6} {b.brand_name[:30]:<30} {b.page_id or '-':<20} {b.vertical or '-':<12} "
            f"{status:<8} {row['ad_count']:<5} {row['evergreen_count']:<9}"
        )

    click.echo(f"\nTotal: {len(rows)} brands")


def import_csv(db, path: str):
    click.echo(f"Importing brands from {path}...")
    report = asyncio.run(brand_service.import_brands_csv(db, path))
    db.commit()

    for item in report["inserted"]:
        click.echo(f"  + {item['brand_name']} (page_id: {item['page_id']}, vertical: {item['vertical']})")
    for item in report["skipped"]:
        click.echo(f"  = {item['brand_name']}: {item['reason']}")
    for item in report["errors"]:
        click.echo(f"  ! {item['brand_name']}: {item['error']}")

    s = report["summary"]
    click.echo(f"\nInserted {s['inserted']}, skipped {s['skipped']}, errors {s['errors']} (of {s['total']} rows)")


def set_active(db, brand_id: int, active: bool):
    brand = brand_service.set_brand_status(db, brand_id, active)
    db.commit()
    status = "activated" if active else "deactivated"
    click.echo(f"Brand {brand.brand_name} ({brand_id}) has been {status}")


def delete_brand(db, brand_id: int):
    name = brand_service.get_brand(db, brand_id).brand_name
    counts = brand_service.delete_brand(db, brand_id)
    db.commit()
    click.echo(f"Deleted brand: {name} ({counts['ads']} ads, {counts['snapshots']} snapshots, {counts['jobs']} jobs)")


def toggle_bookmark(db, ad_pk: int):
    bookmarked = brand_service.toggle_bookmark(db, ad_pk)
    db.commit()
    click.echo(f"Ad {ad_pk} {'bookmarked' if bookmarked else 'unbookmarked'}")


def update_schedule(db, day: int, hour: int, enabled: bool, auto_analyze: bool):
    current = load_schedule_settings(db)
    if any(v is not None for v in (day, hour, enabled, auto_analyze)):
        current = save_schedule_settings(
            db,
            ScheduleSettings(
                enabled=current.enabled if enabled is None else enabled,
                day=current.day if day is None else day,
                hour=current.hour if hour is None else hour,
                auto_analyze=current.auto_analyze if auto_analyze is None else auto_analyze,
            ),
        )
        db.commit()
        click.echo("Schedule updated (a running `python main.py --schedule` picks it up within a minute)")

    state = "enabled" if current.enabled else "disabled"
    click.echo(f"Scheduled scraping {state}: {current.label}, auto-analyze {'on' if current.auto_analyze else 'off'}")


if __name__ == "__main__":
    main()
