"""Identity signals and normalized fields extracted from raw Ad Library items.

Scraped items are semi-structured: the same field can be a string, a nested
object or missing, and the provider emits both camelCase and snake_case keys.
Every field is therefore resolved by an ordered chain of small strategies,
each returning a value or None, and the first non-empty result wins.
"""

import math
import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Callable, Mapping, Optional, Sequence

from admonitor.utils.dates import iso_to_timestamp, parse_iso_date, timestamp_to_date
from admonitor.utils.logger import get_logger

logger = get_logger("fingerprint")

# Provider file ids look like /123456789012_98765..., up to the next path or query boundary
MEDIA_FILE_ID_RE = re.compile(r"/(\d{10,}_\d+[^/?]*)")
FINGERPRINT_TAIL = 150

AD_ID_KEYS = ("adArchiveID", "adArchiveId", "adid", "ad_archive_id")
VIDEO_KEYS = ("videoHdUrl", "videoSdUrl")
STILL_KEYS = ("videoPreviewImageUrl", "resizedImageUrl", "originalImageUrl")
IMAGE_KEYS = ("resizedImageUrl", "originalImageUrl", "url")
LOOSE_MEDIA_KEYS = ("imageUrl", "thumbnailUrl", "mediaUrl", "previewUrl")

Strategy = Callable[[Mapping], Any]


@dataclass(frozen=True)
class Creative:
    creative_type: str = "image"
    creative_url: Optional[str] = None
    video_url: Optional[str] = None

    @property
    def has_media(self) -> bool:
        return bool(self.creative_url or self.video_url)


NO_MEDIA = Creative()


# --- shape helpers ---------------------------------------------------------

def _snake(name: str) -> str:
    return re.sub(r"(?<!^)(?=[A-Z])", "_", name).lower()


def _mapping(value: Any) -> Mapping:
    return value if isinstance(value, Mapping) else {}


def _pick(mapping: Any, name: str) -> Any:
    """Look a field up under its camelCase name, then its snake_case name."""
    mapping = _mapping(mapping)
    value = mapping.get(name)
    if value in (None, ""):
        value = mapping.get(_snake(name))
    return value


def _first(value: Any) -> Any:
    if isinstance(value, (list, tuple)) and value:
        return value[0]
    return None


def _str(value: Any) -> str:
    return value if isinstance(value, str) else ""


def _text(value: Any) -> str:
    """Body fields arrive as plain strings or as ``{"text": ...}`` objects."""
    if isinstance(value, str):
        return value
    return _str(_mapping(value).get("text"))


def _url(value: Any, keys: Sequence[str] = ()) -> Optional[str]:
    """Resolve a media URL from a string or from the first matching object key."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, Mapping):
        for key in keys:
            found = _pick(value, key)
            if isinstance(found, str) and found:
                return found
        return None
    if value is not None:
        logger.debug("invalid_media_url", value_type=type(value).__name__)
    return None


def snapshot_of(record: Any) -> Mapping:
    return _mapping(_mapping(record).get("snapshot"))


def primary_card(record: Any) -> Mapping:
    return _mapping(_first(snapshot_of(record).get("cards")))


def first_present(record: Any, strategies: Sequence[Strategy]) -> Any:
    """Run strategies in order and return the first non-empty result."""
    for strategy in strategies:
        value = strategy(record)
        if value:
            return value
    return None


# --- identifiers -----------------------------------------------------------

def extract_ad_id(record: Any) -> Optional[str]:
    mapping = _mapping(record)
    for key in AD_ID_KEYS:
        value = mapping.get(key)
        if isinstance(value, bool) or value in (None, ""):
            continue
        if isinstance(value, (str, int)):
            return str(value)
    return None


# --- media -----------------------------------------------------------------

def _card_video(record) -> Optional[Creative]:
    card = primary_card(record)
    video_url = first_present(card, [lambda c, k=k: _url(_pick(c, k), VIDEO_KEYS) for k in VIDEO_KEYS])
    if not video_url:
        return None
    still = first_present(card, [lambda c, k=k: _url(_pick(c, k), IMAGE_KEYS) for k in STILL_KEYS])
    return Creative("video", still, video_url)


def _card_image(record) -> Optional[Creative]:
    card = primary_card(record)
    image = first_present(card, [lambda c, k=k: _url(_pick(c, k), IMAGE_KEYS) for k in IMAGE_KEYS[:2]])
    return Creative("image", image, None) if image else None


def _snapshot_video(record) -> Optional[Creative]:
    snapshot = snapshot_of(record)
    video = _first(snapshot.get("videos"))
    video_url = _url(video, VIDEO_KEYS)
    if not video_url:
        return None
    still = _url(_pick(video, "videoPreviewImageUrl")) or _url(_first(snapshot.get("images")), IMAGE_KEYS)
    return Creative("video", still, video_url)


def _snapshot_image(record) -> Optional[Creative]:
    image = _url(_first(snapshot_of(record).get("images")), IMAGE_KEYS)
    return Creative("image", image, None) if image else None


def _loose_media_url(record) -> Optional[Creative]:
    """Last resort: any top-level, snapshot or card field holding an http URL."""
    for source in (_mapping(record), snapshot_of(record), primary_card(record)):
        for key in LOOSE_MEDIA_KEYS:
            value = _pick(source, key)
            if isinstance(value, str) and value.startswith("http"):
                return Creative("image", value, None)
    return None


CREATIVE_STRATEGIES: tuple[Strategy, ...] = (
    _card_video,
    _card_image,
    _snapshot_video,
    _snapshot_image,
    _loose_media_url,
)


def resolve_creative(record: Any) -> Creative:
    """Creative type and URLs, or NO_MEDIA when nothing resolves."""
    return first_present(record, CREATIVE_STRATEGIES) or NO_MEDIA


def extract_creative(record: Any, ad_id: str = None) -> Creative:
    """Resolve the creative, logging which fields were available when none is found."""
    creative = resolve_creative(record)
    if not creative.has_media:
        logger.info(
            "no_media_found",
            ad_id=ad_id or extract_ad_id(record),
            snapshot_fields=sorted(snapshot_of(record).keys()),
            card_fields=sorted(primary_card(record).keys()),
        )
    return creative


def extract_media_fingerprint(video_url: Optional[str], image_url: Optional[str]) -> str:
    """Stable identifier of the underlying asset; empty string means no media."""
    url = video_url or image_url or ""
    if not url:
        return ""
    match = MEDIA_FILE_ID_RE.search(url)
    if match:
        return match.group(1)
    return url[-FINGERPRINT_TAIL:]


def media_fingerprint(record: Any) -> str:
    creative = resolve_creative(record)
    return extract_media_fingerprint(creative.video_url, creative.creative_url)


# --- text ------------------------------------------------------------------

HEADLINE_STRATEGIES: tuple[Strategy, ...] = (
    lambda r: _str(primary_card(r).get("title")),
    lambda r: _str(snapshot_of(r).get("title")),
    lambda r: _str(_pick(snapshot_of(r), "linkDescription")),
)

BODY_STRATEGIES: tuple[Strategy, ...] = (
    lambda r: _text(primary_card(r).get("body")),
    lambda r: _text(snapshot_of(r).get("body")),
)

CTA_STRATEGIES: tuple[Strategy, ...] = (
    lambda r: _str(_pick(primary_card(r), "ctaText")),
    lambda r: _str(_pick(primary_card(r), "ctaType")),
    lambda r: _str(_pick(snapshot_of(r), "ctaText")),
    lambda r: _str(_pick(snapshot_of(r), "ctaType")),
)


def extract_headline(record: Any) -> str:
    """Normalized headline used as a dedup key ("" means no headline)."""
    return (first_present(record, HEADLINE_STRATEGIES) or "").strip().lower()


def extract_display_headline(record: Any) -> str:
    return first_present(record, HEADLINE_STRATEGIES[:2]) or ""


def extract_body_text(record: Any) -> str:
    return first_present(record, BODY_STRATEGIES) or ""


def extract_cta(record: Any) -> str:
    return first_present(record, CTA_STRATEGIES) or ""


# --- start date ------------------------------------------------------------

def _numeric_start(record) -> Optional[float]:
    value = _mapping(record).get("startDate")
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if math.isfinite(value) and value > 0 else None


def extract_start_timestamp(record: Any) -> int:
    """Unix seconds the creative started running; 0 when unknown."""
    formatted = _str(_mapping(record).get("startDateFormatted"))
    if formatted:
        seconds = iso_to_timestamp(formatted)
        if seconds > 0:
            return seconds
    numeric = _numeric_start(record)
    return int(numeric) if numeric else 0


def extract_start_date(record: Any) -> Optional[date]:
    mapping = _mapping(record)
    formatted = _str(mapping.get("startDateFormatted"))
    if formatted:
        parsed = parse_iso_date(formatted)
        if parsed:
            return parsed
    numeric = _numeric_start(record)
    if numeric:
        return timestamp_to_date(numeric)
    raw = _str(mapping.get("startDate"))
    return parse_iso_date(raw) if raw else None
