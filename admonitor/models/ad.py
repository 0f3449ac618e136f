from dataclasses import asdict, dataclass
from datetime import datetime
from typing import Mapping, Optional

from sqlalchemy import Column, String, Boolean, DateTime, Date, Integer, Text, ForeignKey, or_
from sqlalchemy.orm import relationship
from admonitor.models.database import Base

TAG_FIELDS = ("asset_type", "visual_format", "messaging_angle", "hook_tactic", "offer_type")


@dataclass(frozen=True)
class AdTags:
    """The five AI tags of a creative. Only ever exists as a complete set."""

    asset_type: str
    visual_format: str
    messaging_angle: str
    hook_tactic: str
    offer_type: str

    @classmethod
    def from_mapping(cls, data: Mapping) -> Optional["AdTags"]:
        """Build tags from a provider reply; None unless all five are present."""
        if not isinstance(data, Mapping):
            return None
        values = {}
        for field in TAG_FIELDS:
            value = data.get(field)
            if not isinstance(value, str) or not value.strip():
                return None
            values[field] = value.strip()
        return cls(**values)

    def to_dict(self) -> dict:
        return asdict(self)


class Ad(Base):
    """Top ads collected for each brand (the ad vault)."""

    __tablename__ = "ad_vault"

    id = Column(Integer, primary_key=True, autoincrement=True)
    ad_id = Column(String(100), unique=True, nullable=False, index=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=False, index=True)
    date_scraped = Column(Date, nullable=False)
    rank = Column(Integer)
    creative_type = Column(String(20))  # image, video
    creative_url = Column(Text)
    stored_creative_url = Column(Text)  # local copy, CDN links expire
    video_url = Column(Text)
    ad_copy = Column(Text)
    headline = Column(Text)
    cta_type = Column(String(100))
    start_date = Column(Date)
    ad_library_link = Column(Text)

    # AI tags, read and written together through Ad.tags
    ai_asset_type = Column(String(100))
    ai_visual_format = Column(String(100))
    ai_messaging_angle = Column(String(100))
    ai_hook_tactic = Column(String(100))
    ai_offer_type = Column(String(100))
    ai_raw_response = Column(Text)

    bookmarked = Column(Boolean, default=False, nullable=False)

    # Longevity tracking
    first_seen = Column(Date)
    last_seen = Column(Date, index=True)
    weeks_in_top10 = Column(Integer, default=1, nullable=False)

    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    brand = relationship("Brand", backref="ads")

    def __repr__(self):
        return f"<Ad(ad_id={self.ad_id}, brand_id={self.brand_id}, rank={self.rank})>"

    @property
    def tags(self) -> Optional[AdTags]:
        """Complete tag set, or None when any of the five is missing."""
        return AdTags.from_mapping({field: getattr(self, f"ai_{field}") for field in TAG_FIELDS})

    @tags.setter
    def tags(self, value: Optional[AdTags]):
        for field in TAG_FIELDS:
            setattr(self, f"ai_{field}", getattr(value, field) if value is not None else None)

    @property
    def is_tagged(self) -> bool:
        return self.tags is not None

    @classmethod
    def untagged_clause(cls):
        """SQL condition matching ads without a complete tag set."""
        columns = [getattr(cls, f"ai_{field}") for field in TAG_FIELDS]
        return or_(*[c.is_(None) for c in columns], *[c == "" for c in columns])
