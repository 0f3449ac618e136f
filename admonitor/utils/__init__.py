from admonitor.utils.logger import logger, get_logger, setup_logging
from admonitor.utils.media_downloader import MediaDownloader

__all__ = ["logger", "get_logger", "setup_logging", "MediaDownloader"]
