from admonitor.models.database import Base, engine, SessionLocal, init_db, session_scope
from admonitor.models.brand import Brand
from admonitor.models.ad import Ad, AdTags, TAG_FIELDS
from admonitor.models.snapshot import WeeklySnapshot
from admonitor.models.scrape_job import ScrapeJob
from admonitor.models.setting import Setting

__all__ = [
    "Base",
    "engine",
    "SessionLocal",
    "init_db",
    "session_scope",
    "Brand",
    "Ad",
    "AdTags",
    "TAG_FIELDS",
    "WeeklySnapshot",
    "ScrapeJob",
    "Setting",
]
