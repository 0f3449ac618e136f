"""AI tagging of ad creatives with Google Gemini."""

import base64
import json
import re
from dataclasses import dataclass
from typing import Optional

import httpx

from admonitor.config import GEMINI_API_KEY, GEMINI_MODEL
from admonitor.errors import TaggingError
from admonitor.models.ad import AdTags
from admonitor.utils.logger import get_logger

logger = get_logger("tagger")

GEMINI_URL = "https://generativelanguage.googleapis.com/v1beta/models/{model}:generateContent"
MAX_INLINE_BYTES = 20 * 1024 * 1024
JSON_OBJECT_RE = re.compile(r"\{[\s\S]*\}")

CATEGORIES = {
    "asset_type": (
        "Choose ONE from",
        ["UGC", "High Production", "Static Image", "Animation", "Screen Recording", "Stock Footage"],
    ),
    "visual_format": (
        "Choose ONE that best describes the visual format",
        [
            "Talking Head", "Product Demo", "Unboxing", "Before/After", "Split Screen", "Text Overlay",
            "Lifestyle", "Testimonial Compilation", "Tutorial", "Behind the Scenes", "Product on White",
            "User Review", "Skit", "ASMR", "Green Screen",
        ],
    ),
    "messaging_angle": (
        "Choose ONE primary messaging angle",
        [
            "Problem/Solution", "Social Proof", "FOMO", "Aspiration", "Value Proposition", "Fear/Pain Point",
            "Curiosity", "Authority/Expert", "Comparison", "Transformation", "Humor", "Urgency",
            "Exclusivity", "Community",
        ],
    ),
    "hook_tactic": (
        "Choose ONE hook tactic used in the first 3 seconds",
        [
            "Pattern Interrupt", "Question", "Bold Claim", "Curiosity Gap", "Controversy", "Relatable Scenario",
            "Shocking Stat", "Direct Address", "Visual Surprise", "Sound Effect", "Text Hook",
            "Celebrity/Influencer", "Unboxing Reveal",
        ],
    ),
    "offer_type": (
        "Choose ONE",
        [
            "Percentage Off", "Dollar Amount Off", "Free Shipping", "BOGO", "Free Trial", "Free Gift",
            "Bundle Deal", "Subscribe & Save", "Limited Time", "No Offer",
        ],
    ),
}


@dataclass
class TaggingResult:
    tags: AdTags
    raw: Optional[str] = None
    cached: bool = False


def build_prompt(ad) -> str:
    kind = "video" if _is_video(ad) else "image"
    lines = [f"Analyze this DTC {kind} ad creative. Return a JSON object with these 5 categories:", ""]
    for number, (key, (instruction, values)) in enumerate(CATEGORIES.items(), start=1):
        choices = ", ".join(f'"{v}"' for v in values)
        lines += [f'{number}. "{key}": {instruction}: {choices}', ""]
    lines += [
        "Additional context from the ad:",
        f"- Ad copy: {ad.ad_copy or 'N/A'}",
        f"- Headline: {ad.headline or 'N/A'}",
        f"- CTA button: {ad.cta_type or 'N/A'}",
        "",
        "Return ONLY valid JSON with these 5 keys, no other text.",
    ]
    return "\n".join(lines)


def parse_tags(text: str) -> AdTags:
    """Pull the JSON object out of a model reply and require all five tags."""
    match = JSON_OBJECT_RE.search(text or "")
    if not match:
        raise TaggingError("No JSON object in model response")
    try:
        data = json.loads(match.group(0))
    except json.JSONDecodeError as e:
        raise TaggingError(f"Invalid JSON in model response: {e}") from e

    tags = AdTags.from_mapping(data)
    if tags is None:
        raise TaggingError("Model response is missing one or more tags")
    return tags


def _is_video(ad) -> bool:
    return ad.creative_type == "video" and bool(ad.video_url)


class GeminiTagger:
    """Classify a creative into the five tag categories."""

    def __init__(self, api_key: str = GEMINI_API_KEY, model: str = GEMINI_MODEL, client: httpx.AsyncClient = None):
        if not api_key:
            raise TaggingError("GEMINI_API_KEY is not configured")
        self.api_key = api_key
        self.model = model
        self.client = client
        self._owns_client = client is None

    async def start(self):
        if self.client is None:
            self.client = httpx.AsyncClient(timeout=120.0, follow_redirects=True)

    async def stop(self):
        if self.client and self._owns_client:
            await self.client.aclose()
            self.client = None

    async def __aenter__(self):
        await self.start()
        return self

    async def __aexit__(self, *exc):
        await self.stop()

    async def _inline(self, url: str, default_type: str, max_bytes: int = None) -> Optional[dict]:
        """Fetch media as an inline data part; None when unavailable or too large."""
        try:
            response = await self.client.get(url)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning("media_fetch_failed", url=url[:100], error=str(e))
            return None

        if max_bytes is not None and len(response.content) >= max_bytes:
            logger.info("media_too_large_for_inline", url=url[:100], size=len(response.content))
            return None

        return {
            "inlineData": {
                "mimeType": response.headers.get("content-type", default_type),
                "data": base64.b64encode(response.content).decode("ascii"),
            }
        }

    async def _media_parts(self, ad) -> list[dict]:
        part = None
        if _is_video(ad):
            part = await self._inline(ad.video_url, "video/mp4", max_bytes=MAX_INLINE_BYTES)
        if part is None and ad.creative_url:
            # Video too big or unreachable: the still image is the next best thing
            part = await self._inline(ad.creative_url, "image/jpeg")
        return [part] if part else []

    async def analyze(self, ad) -> TaggingResult:
        """Tag one ad. Ads that already carry a complete tag set are returned as-is."""
        if ad.is_tagged:
            return TaggingResult(tags=ad.tags, raw=ad.ai_raw_response, cached=True)

        await self.start()
        parts = await self._media_parts(ad)
        parts.append({"text": build_prompt(ad)})

        try:
            response = await self.client.post(
                GEMINI_URL.format(model=self.model),
                params={"key": self.api_key},
                json={"contents": [{"parts": parts}]},
            )
        except httpx.HTTPError as e:
            raise TaggingError(f"Gemini request failed: {e}") from e

        if response.is_error:
            raise TaggingError(f"Gemini API error: {response.status_code} - {response.text[:500]}")

        data = response.json()
        try:
            text = data["candidates"][0]["content"]["parts"][0]["text"]
        except (KeyError, IndexError, TypeError):
            text = ""

        tags = parse_tags(text)
        logger.info("ad_tagged", ad_id=ad.ad_id, media_parts=len(parts) - 1, **tags.to_dict())
        return TaggingResult(tags=tags, raw=text)
