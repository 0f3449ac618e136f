from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text
from admonitor.models.database import Base


class Brand(Base):
    """DTC brands whose Ad Library top ads we monitor."""

    __tablename__ = "brands"

    id = Column(Integer, primary_key=True, autoincrement=True)
    brand_name = Column(String(255), nullable=False)
    website_url = Column(Text)
    fb_page_url = Column(Text, nullable=False)  # Ad Library URL the page id was taken from
    page_id = Column(String(50), index=True)
    vertical = Column(String(100))
    status = Column(String(20), default="active", nullable=False, index=True)
    last_scraped = Column(DateTime)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Brand(id={self.id}, brand_name={self.brand_name}, page_id={self.page_id})>"

    @property
    def is_active(self) -> bool:
        return self.status == "active"

    @property
    def is_scrapable(self) -> bool:
        return self.is_active and bool(self.page_id)
