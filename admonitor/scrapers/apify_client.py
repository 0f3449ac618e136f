import asyncio
import time
from dataclasses import dataclass, field

import httpx

from admonitor.config import (
    AD_LIBRARY_SEARCH_URL,
    APIFY_ACTOR_ID,
    APIFY_BASE_URL,
    APIFY_TOKEN,
    POLL_INTERVAL,
    RESULTS_LIMIT,
    SCRAPE_TIMEOUT,
)
from admonitor.errors import ScraperError
from admonitor.utils.logger import get_logger

logger = get_logger("apify_client")

PENDING_STATUSES = {"READY", "RUNNING"}


@dataclass
class ScrapeResult:
    run_id: str
    items: list[dict] = field(default_factory=list)
    input_params: dict = field(default_factory=dict)


def build_ad_library_url(page_id: str) -> str:
    """Ad Library view of a page's active US ads, highest impressions first."""
    return AD_LIBRARY_SEARCH_URL.format(page_id=page_id)


class ApifyAdLibraryClient:
    """Run the Meta Ad Library actor on Apify and collect its dataset."""

    def __init__(
        self,
        token: str = APIFY_TOKEN,
        actor_id: str = APIFY_ACTOR_ID,
        client: httpx.AsyncClient = None,
        base_url: str = APIFY_BASE_URL,
        results_limit: int = RESULTS_LIMIT,
        poll_interval: float = POLL_INTERVAL,
        timeout: float = SCRAPE_TIMEOUT,
    ):
        if not token:
            raise ScraperError("APIFY_TOKEN is not configured")
        self.token = token
        self.actor_id = actor_id
        self.base_url = base_url.rstrip("/")
        self.results_limit = results_limit
        self.poll_interval = poll_interval
        self.timeout = timeout
        self.client = client
        self._owns_client = client is None

    async def start(self):
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=30.0)

    async def stop(self):
        if self.client and self._owns_client:
            await self.client.aclose()
            self.client = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        await self.start()
        url = f"{self.base_url}{path}"
        try:
            response = await self.client.request(method, url, params={"token": self.token}, **kwargs)
        except httpx.HTTPError as e:
            raise ScraperError(f"Apify request failed: {e}") from e

        if response.is_error:
            raise ScraperError(f"Apify API error: {response.status_code} - {response.text[:500]}")
        return response

    def build_input(self, page_id: str, results_limit: int = None) -> dict:
        return {
            "startUrls": [{"url": build_ad_library_url(page_id)}],
            "resultsLimit": results_limit or self.results_limit,
            "activeStatus": "active",
        }

    async def start_run(self, page_id: str, results_limit: int = None) -> str:
        """Start an actor run for the page and return its run id."""
        payload = self.build_input(page_id, results_limit)
        response = await self._request("POST", f"/acts/{self.actor_id}/runs", json=payload)
        run_id = response.json().get("data", {}).get("id")
        if not run_id:
            raise ScraperError("Apify did not return a run id")

        logger.info("apify_run_started", page_id=page_id, run_id=run_id)
        return run_id

    async def poll_run(self, run_id: str) -> str:
        response = await self._request("GET", f"/actor-runs/{run_id}")
        return response.json().get("data", {}).get("status", "UNKNOWN")

    async def fetch_items(self, run_id: str) -> list[dict]:
        response = await self._request("GET", f"/actor-runs/{run_id}/dataset/items")
        items = response.json()
        if not isinstance(items, list):
            raise ScraperError("Apify dataset response is not a list", run_id=run_id)
        return items

    async def wait_for_run(self, run_id: str, poll_interval: float = None, timeout: float = None) -> str:
        """Poll until the run leaves READY/RUNNING. Raises unless it SUCCEEDED."""
        poll_interval = self.poll_interval if poll_interval is None else poll_interval
        deadline = time.monotonic() + (timeout or self.timeout)

        while True:
            status = await self.poll_run(run_id)
            if status not in PENDING_STATUSES:
                break
            if time.monotonic() >= deadline:
                raise ScraperError(f"Apify run still {status} after timeout", run_id=run_id, status=status)
            await asyncio.sleep(poll_interval)

        if status != "SUCCEEDED":
            logger.error("apify_run_failed", run_id=run_id, status=status)
            raise ScraperError(f"Apify run {status}", run_id=run_id, status=status)
        return status

    async def scrape(self, page_id: str, poll_interval: float = None, timeout: float = None) -> ScrapeResult:
        """Full scrape of one page: start, wait, fetch."""
        run_id = await self.start_run(page_id)
        await self.wait_for_run(run_id, poll_interval=poll_interval, timeout=timeout)
        items = await self.fetch_items(run_id)

        logger.info("apify_items_fetched", page_id=page_id, run_id=run_id, count=len(items))
        return ScrapeResult(run_id=run_id, items=items, input_params=self.build_input(page_id))
