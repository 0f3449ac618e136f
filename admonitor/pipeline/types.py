"""Value types passed between pipeline stages."""

from dataclasses import dataclass, field
from datetime import date
from typing import Optional


@dataclass
class CanonicalAd:
    """One distinct creative for one brand in one scrape cycle."""

    ad_id: str
    brand_id: int
    rank: int
    creative_type: str = "image"
    creative_url: Optional[str] = None
    video_url: Optional[str] = None
    ad_copy: str = ""
    headline: str = ""
    cta_type: str = ""
    start_date: Optional[date] = None
    ad_library_link: str = ""

    def to_dict(self) -> dict:
        return {
            "ad_id": self.ad_id,
            "brand_id": self.brand_id,
            "rank": self.rank,
            "creative_type": self.creative_type,
            "creative_url": self.creative_url,
            "video_url": self.video_url,
            "ad_copy": self.ad_copy,
            "headline": self.headline,
            "cta_type": self.cta_type,
            "start_date": self.start_date.isoformat() if self.start_date else None,
            "ad_library_link": self.ad_library_link,
        }


@dataclass
class AdError:
    ad_id: str
    message: str

    def to_dict(self) -> dict:
        return {"ad_id": self.ad_id, "message": self.message}


@dataclass
class ProcessingResult:
    """Outcome of one brand's reconciliation cycle."""

    brand_id: int
    processed: list[CanonicalAd] = field(default_factory=list)
    inserted_count: int = 0
    updated_count: int = 0
    deleted_count: int = 0
    errors: list[AdError] = field(default_factory=list)
    inserted_ids: list[str] = field(default_factory=list)

    @property
    def succeeded(self) -> int:
        return self.inserted_count + self.updated_count

    @property
    def failed(self) -> int:
        return len(self.errors)

    @property
    def ok(self) -> bool:
        return not self.errors

    def to_dict(self) -> dict:
        return {
            "brand_id": self.brand_id,
            "processed": [ad.to_dict() for ad in self.processed],
            "inserted_count": self.inserted_count,
            "updated_count": self.updated_count,
            "deleted_count": self.deleted_count,
            "errors": [e.to_dict() for e in self.errors],
        }
