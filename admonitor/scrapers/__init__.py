from admonitor.scrapers.apify_client import ApifyAdLibraryClient, ScrapeResult, build_ad_library_url
from admonitor.scrapers.orchestrator import IngestionOrchestrator

__all__ = ["ApifyAdLibraryClient", "ScrapeResult", "build_ad_library_url", "IngestionOrchestrator"]
