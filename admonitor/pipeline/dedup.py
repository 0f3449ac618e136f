"""Collapse a raw scraped batch into a ranked set of unique creatives.

The provider returns the same creative many times: once per placement,
variant or copy tweak. Three collapse passes run in sequence, each keeping a
single representative per group:

1. same archive id
2. same media fingerprint (the underlying video or image file)
3. same normalized headline

The representative of a group is the item that started running earliest.
Groups keep the position of their first member, so the provider's ordering
(total impressions, descending) becomes the rank.
"""

import time
import uuid
from dataclasses import dataclass
from typing import Any, Callable, Iterable, Optional

from admonitor.config import AD_LIBRARY_AD_URL, TOP_ADS_LIMIT
from admonitor.pipeline import fingerprint as fp
from admonitor.pipeline.types import CanonicalAd
from admonitor.utils.logger import get_logger

logger = get_logger("dedup")


@dataclass
class _Candidate:
    record: Any
    ad_id: Optional[str]
    media_key: str
    headline: str
    started: int

    @classmethod
    def from_record(cls, record: Any) -> "_Candidate":
        return cls(
            record=record,
            ad_id=fp.extract_ad_id(record),
            media_key=fp.media_fingerprint(record),
            headline=fp.extract_headline(record),
            started=fp.extract_start_timestamp(record),
        )

    def started_before(self, other: "_Candidate") -> bool:
        """Smallest known start wins; an unknown start (0) never displaces anything."""
        if not self.started:
            return False
        if not other.started:
            return True
        return self.started < other.started


def _collapse(candidates: list[_Candidate], key_of: Callable[[_Candidate], str], stage: str) -> list[_Candidate]:
    groups: dict[tuple, _Candidate] = {}
    for candidate in candidates:
        key = key_of(candidate)
        if not key:
            # No signal for this pass: the item stands alone
            groups[("solo", candidate.ad_id or uuid.uuid4().hex)] = candidate
            continue
        incumbent = groups.get(("key", key))
        if incumbent is None or candidate.started_before(incumbent):
            # Reassigning an existing key keeps its original position
            groups[("key", key)] = candidate

    survivors = list(groups.values())
    logger.info("dedup_pass", stage=stage, before=len(candidates), after=len(survivors))
    return survivors


def _to_canonical(candidate: _Candidate, brand_id: int, index: int, stamp: int) -> CanonicalAd:
    record = candidate.record
    ad_id = candidate.ad_id or f"apify_{stamp}_{index}"
    creative = fp.extract_creative(record, ad_id)
    return CanonicalAd(
        ad_id=ad_id,
        brand_id=brand_id,
        rank=index + 1,
        creative_type=creative.creative_type,
        creative_url=creative.creative_url,
        video_url=creative.video_url,
        ad_copy=fp.extract_body_text(record),
        headline=fp.extract_display_headline(record),
        cta_type=fp.extract_cta(record),
        start_date=fp.extract_start_date(record),
        ad_library_link=AD_LIBRARY_AD_URL.format(ad_id=ad_id),
    )


def deduplicate(raw_items: Iterable[Any], brand_id: int, limit: int = TOP_ADS_LIMIT) -> list[CanonicalAd]:
    """Reduce a raw batch to at most ``limit`` unique creatives ranked 1..n."""
    candidates = [_Candidate.from_record(item) for item in raw_items or []]
    logger.info("dedup_started", brand_id=brand_id, raw_count=len(candidates))

    unique = _collapse(candidates, lambda c: c.ad_id, "ad_id")
    unique = _collapse(unique, lambda c: c.media_key, "media")
    unique = _collapse(unique, lambda c: c.headline, "headline")

    stamp = int(time.time() * 1000)
    ads = [_to_canonical(c, brand_id, i, stamp) for i, c in enumerate(unique[:limit])]
    logger.info("dedup_completed", brand_id=brand_id, unique_count=len(unique), kept=len(ads))
    return ads
