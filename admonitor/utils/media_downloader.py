import asyncio
import aiofiles
import httpx
from pathlib import Path
from urllib.parse import urlparse

from admonitor.config import MEDIA_BASE_PATH
from admonitor.utils.logger import get_logger

logger = get_logger("media_downloader")

EXTENSIONS = (".mp4", ".webm", ".jpg", ".jpeg", ".png", ".gif", ".webp")


class MediaDownloader:
    """Keep local copies of ad creatives; provider CDN links expire."""

    def __init__(self, base_path: Path = None, client: httpx.AsyncClient = None):
        self.base_path = Path(base_path or MEDIA_BASE_PATH)
        self.base_path.mkdir(parents=True, exist_ok=True)
        self.client = client
        self._owns_client = client is None
        # media_url -> local file path, so shared creatives are fetched once
        self._url_cache: dict[str, str] = {}

    async def start(self):
        if self.client is None:
            self.client = httpx.AsyncClient(
                timeout=60.0,
                follow_redirects=True,
                headers={"User-Agent": "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36"},
            )

    async def stop(self):
        if self.client and self._owns_client:
            await self.client.aclose()
            self.client = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()

    def get_media_dir(self, brand_id: int, ad_id: str) -> Path:
        media_dir = self.base_path / str(brand_id) / ad_id
        media_dir.mkdir(parents=True, exist_ok=True)
        return media_dir

    async def download_ad(self, ad) -> dict:
        """Download the creative of one canonical ad (video file when there is one)."""
        media_url = ad.video_url or ad.creative_url
        result = {"ad_id": ad.ad_id, "success": False, "path": None, "deduplicated": False}

        if not media_url:
            result["skipped"] = True
            return result

        if media_url in self._url_cache:
            result.update(success=True, path=self._url_cache[media_url], deduplicated=True)
            logger.info("media_deduplicated", ad_id=ad.ad_id, cached_path=result["path"])
            return result

        media_type = "video" if ad.video_url else "image"
        media_dir = self.get_media_dir(ad.brand_id, ad.ad_id)
        path = await self._download_file(media_url, media_dir, "media" + self._get_extension(media_url, media_type))
        if path:
            result.update(success=True, path=str(path))
            self._url_cache[media_url] = str(path)
        return result

    async def _download_file(self, url: str, directory: Path, filename: str):
        if not url.startswith("http"):
            return None

        file_path = directory / filename
        try:
            logger.debug("downloading_file", url=url[:100], path=str(file_path))
            response = await self.client.get(url)
            response.raise_for_status()

            async with aiofiles.open(file_path, "wb") as f:
                await f.write(response.content)

            logger.info("file_downloaded", path=str(file_path), size=len(response.content))
            return file_path

        except httpx.HTTPStatusError as e:
            logger.warning("download_http_error", url=url[:100], status=e.response.status_code)
        except httpx.HTTPError as e:
            logger.warning("download_error", url=url[:100], error=str(e))
        return None

    def _get_extension(self, url: str, media_type: str) -> str:
        path = urlparse(url).path.lower()
        for ext in EXTENSIONS:
            if path.endswith(ext) or f"{ext}?" in url.lower():
                return ".jpg" if ext == ".jpeg" else ext
        return ".mp4" if media_type == "video" else ".jpg"

    async def download_batch(self, ads: list, concurrency: int = 3) -> dict:
        """Download creatives for several ads; ``paths`` maps ad_id to the stored file."""
        results = {"total": len(ads), "success": 0, "failed": 0, "skipped": 0, "deduplicated": 0, "paths": {}}
        semaphore = asyncio.Semaphore(concurrency)

        async def download_with_semaphore(ad):
            async with semaphore:
                return await self.download_ad(ad)

        outcomes = await asyncio.gather(*[download_with_semaphore(ad) for ad in ads], return_exceptions=True)

        for outcome in outcomes:
            if isinstance(outcome, Exception):
                logger.error("media_download_failed", error=str(outcome))
                results["failed"] += 1
            elif outcome.get("skipped"):
                results["skipped"] += 1
            elif outcome["success"]:
                results["success"] += 1
                results["paths"][outcome["ad_id"]] = outcome["path"]
                if outcome["deduplicated"]:
                    results["deduplicated"] += 1
            else:
                results["failed"] += 1

        logger.info(
            "batch_download_complete",
            total=results["total"],
            success=results["success"],
            failed=results["failed"],
            skipped=results["skipped"],
            deduplicated=results["deduplicated"],
        )
        return results
