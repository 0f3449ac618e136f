from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from admonitor.models import Setting
from admonitor.utils.dates import utcnow

DAY_NAMES = ["Sunday", "Monday", "Tuesday", "Wednesday", "Thursday", "Friday", "Saturday"]


@dataclass
class ScheduleSettings:
    """Weekly scrape slot. ``day`` counts from Sunday (0) to Saturday (6)."""

    enabled: bool = False
    day: int = 1
    hour: int = 6
    auto_analyze: bool = False

    def __post_init__(self):
        if not 0 <= self.day <= 6:
            raise ValueError(f"schedule day must be 0-6, got {self.day}")
        if not 0 <= self.hour <= 23:
            raise ValueError(f"schedule hour must be 0-23, got {self.hour}")

    @property
    def label(self) -> str:
        return f"{DAY_NAMES[self.day]} at {self.hour:02d}:00"


def get_setting(db: Session, key: str, default: str = None) -> str:
    value = db.execute(select(Setting.value).where(Setting.key == key)).scalar_one_or_none()
    return default if value is None else value


def set_setting(db: Session, key: str, value: str):
    setting = db.get(Setting, key)
    if setting is None:
        db.add(Setting(key=key, value=value))
    else:
        setting.value = value
        setting.updated_at = utcnow()
    db.flush()


def load_schedule_settings(db: Session) -> ScheduleSettings:
    return ScheduleSettings(
        enabled=get_setting(db, "schedule_enabled", "false") == "true",
        day=int(get_setting(db, "schedule_day", "1")),
        hour=int(get_setting(db, "schedule_hour", "6")),
        auto_analyze=get_setting(db, "auto_analyze", "false") == "true",
    )


def save_schedule_settings(db: Session, settings: ScheduleSettings) -> ScheduleSettings:
    set_setting(db, "schedule_enabled", "true" if settings.enabled else "false")
    set_setting(db, "schedule_day", str(settings.day))
    set_setting(db, "schedule_hour", str(settings.hour))
    set_setting(db, "auto_analyze", "true" if settings.auto_analyze else "false")
    return settings
