from datetime import datetime
from sqlalchemy import Column, String, DateTime, Integer, Text, JSON, ForeignKey
from admonitor.models.database import Base


class ScrapeJob(Base):
    """Status and counters for one brand's ingestion cycle."""

    __tablename__ = "scrape_jobs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    job_type = Column(String(20), nullable=False, default="ad_scrape")
    brand_id = Column(Integer, ForeignKey("brands.id"), index=True)
    status = Column(String(20), default="pending", index=True)  # pending, running, complete, error
    apify_run_id = Column(String(100))
    input_params = Column(JSON)
    results = Column(JSON)  # processed ad summaries
    result_count = Column(Integer, default=0)
    inserted_count = Column(Integer, default=0)
    updated_count = Column(Integer, default=0)
    deleted_count = Column(Integer, default=0)
    errors_count = Column(Integer, default=0)
    error_message = Column(Text)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    completed_at = Column(DateTime)

    def __repr__(self):
        return f"<ScrapeJob(id={self.id}, brand_id={self.brand_id}, status={self.status})>"

    def mark_running(self, apify_run_id: str = None):
        self.status = "running"
        if apify_run_id:
            self.apify_run_id = apify_run_id

    def mark_completed(self, result):
        """Copy a ProcessingResult onto the job and mark it complete."""
        self.status = "complete"
        self.results = [ad.to_dict() for ad in result.processed]
        self.result_count = len(result.processed)
        self.inserted_count = result.inserted_count
        self.updated_count = result.updated_count
        self.deleted_count = result.deleted_count
        self.errors_count = len(result.errors)
        if result.errors:
            self.error_message = "; ".join(f"{e.ad_id}: {e.message}" for e in result.errors)[:2000]
        self.completed_at = datetime.utcnow()

    def mark_failed(self, message: str):
        self.status = "error"
        self.error_message = message
        self.completed_at = datetime.utcnow()
