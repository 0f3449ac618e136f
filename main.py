#!/usr/bin/env python3
"""
Meta Ad Library Monitor - Main CLI Entry Point

Usage:
    python main.py                      # Ingest every active brand
    python main.py --brand {brand_id}   # Ingest a single brand
    python main.py --analyze            # Tag every untagged ad with Gemini
    python main.py --schedule           # Run the weekly scheduler in the foreground
"""

import asyncio
import sys
import click

from admonitor.config import GEMINI_API_KEY
from admonitor.models import SessionLocal, init_db, session_scope
from admonitor.scheduler import ScrapeScheduler, watch_settings
from admonitor.scrapers.apify_client import ApifyAdLibraryClient
from admonitor.scrapers.orchestrator import IngestionOrchestrator
from admonitor.services.analysis import tag_untagged_ads
from admonitor.services.brands import cleanup_orphaned_data
from admonitor.services.settings import load_schedule_settings
from admonitor.services.tagger import GeminiTagger
from admonitor.utils.media_downloader import MediaDownloader
from admonitor.utils.logger import get_logger

logger = get_logger("main")


def build_tagger():
    return GeminiTagger() if GEMINI_API_KEY else None


async def run_ingestion(brand_id: int = None, auto_analyze: bool = False) -> dict:
    async with ApifyAdLibraryClient() as scraper:
        orchestrator = IngestionOrchestrator(
            scraper,
            downloader=MediaDownloader(),
            tagger=build_tagger() if auto_analyze else None,
            auto_analyze=auto_analyze,
        )
        try:
            return await orchestrator.run(brand_id=brand_id)
        finally:
            if orchestrator.tagger:
                await orchestrator.tagger.stop()


async def run_analysis() -> dict:
    tagger = build_tagger()
    if tagger is None:
        raise click.ClickException("GEMINI_API_KEY is not configured")
    async with tagger:
        with SessionLocal() as db:
            return await tag_untagged_ads(db, tagger)


def load_settings():
    with session_scope() as db:
        return load_schedule_settings(db)


async def run_scheduler():
    scheduler = ScrapeScheduler(lambda s: run_ingestion(auto_analyze=s.auto_analyze))
    await scheduler.reconfigure(load_settings())
    if scheduler.is_running:
        click.echo(f"Scheduled scraping enabled: {scheduler.settings.label}, next run {scheduler.next_run:%Y-%m-%d %H:%M}")
    else:
        click.echo("Scheduled scraping is disabled, waiting for it to be enabled (scripts/manage_brands.py --schedule --enable)")

    try:
        await watch_settings(scheduler, load_settings)
    finally:
        await scheduler.stop()


@click.command()
@click.option("--brand", "brand_id", type=int, help="Ingest a single brand by id")
@click.option("--analyze", is_flag=True, help="Tag all untagged ads")
@click.option("--auto-analyze", is_flag=True, help="Tag untagged ads after ingesting")
@click.option("--schedule", is_flag=True, help="Run the weekly scheduler")
@click.option("--init-db", "initialize_db", is_flag=True, help="Initialize database tables")
def main(brand_id: int, analyze: bool, auto_analyze: bool, schedule: bool, initialize_db: bool):
    """Meta Ad Library Monitor CLI."""

    if initialize_db:
        click.echo("Initializing database tables...")
        init_db()
        with session_scope() as db:
            cleaned = cleanup_orphaned_data(db)
        click.echo(f"Database initialized successfully! (orphans removed: {sum(cleaned.values())})")
        return

    try:
        if schedule:
            asyncio.run(run_scheduler())
        elif analyze:
            click.echo("Tagging untagged ads...")
            summary = asyncio.run(run_analysis())
            click.echo(f"Analysis completed: {summary['analyzed']}/{summary['total']} tagged, {summary['errors']} errors")
        else:
            click.echo(f"Starting ingestion for brand {brand_id}..." if brand_id else "Starting full ingestion...")
            summary = asyncio.run(run_ingestion(brand_id=brand_id, auto_analyze=auto_analyze))
            click.echo(
                f"Ingestion completed: {summary['brands_processed']}/{summary['brands_total']} brands, "
                f"{summary['inserted']} new, {summary['updated']} updated, {summary['deleted']} removed"
            )
            if summary["brands_failed"]:
                click.echo(f"{summary['brands_failed']} brand(s) failed, see logs")
                sys.exit(1)
        sys.exit(0)
    except KeyboardInterrupt:
        click.echo("\nInterrupted by user")
        sys.exit(1)
    except click.ClickException:
        raise
    except Exception as e:
        logger.error("command_failed", error=str(e))
        click.echo(f"Failed: {e}")
        sys.exit(1)


if __name__ == "__main__":
    main()
