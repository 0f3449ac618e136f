from datetime import datetime
from sqlalchemy import Column, String, DateTime, Text
from admonitor.models.database import Base


class Setting(Base):
    """Key/value application settings (schedule configuration)."""

    __tablename__ = "settings"

    key = Column(String(100), primary_key=True)
    value = Column(Text)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)

    def __repr__(self):
        return f"<Setting(key={self.key}, value={self.value})>"
