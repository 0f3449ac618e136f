from admonitor.services.tagger import GeminiTagger, TaggingResult
from admonitor.services.settings import ScheduleSettings, load_schedule_settings, save_schedule_settings

__all__ = [
    "GeminiTagger",
    "TaggingResult",
    "ScheduleSettings",
    "load_schedule_settings",
    "save_schedule_settings",
]
