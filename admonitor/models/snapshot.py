from datetime import datetime
from sqlalchemy import Column, String, DateTime, Date, Integer, ForeignKey, UniqueConstraint
from admonitor.models.database import Base


class WeeklySnapshot(Base):
    """Rank of an ad in its brand's top set for one Monday-anchored week."""

    __tablename__ = "weekly_snapshots"
    __table_args__ = (UniqueConstraint("brand_id", "ad_id", "week_start", name="uq_snapshot_week"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    brand_id = Column(Integer, ForeignKey("brands.id"), nullable=False, index=True)
    ad_id = Column(String(100), ForeignKey("ad_vault.ad_id"), nullable=False, index=True)
    week_start = Column(Date, nullable=False, index=True)
    rank = Column(Integer)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<WeeklySnapshot(ad_id={self.ad_id}, week={self.week_start}, rank={self.rank})>"
