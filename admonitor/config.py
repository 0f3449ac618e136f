import os
from pathlib import Path
from dotenv import load_dotenv

load_dotenv()

# Base paths
BASE_DIR = Path(__file__).parent.parent
DATA_DIR = BASE_DIR / "data"
LOGS_DIR = BASE_DIR / "logs"

# Database
DATABASE_URL = os.getenv("DATABASE_URL", f"sqlite:///{DATA_DIR / 'admonitor.db'}")

# Apify (Meta Ad Library actor)
APIFY_TOKEN = os.getenv("APIFY_TOKEN")
APIFY_ACTOR_ID = os.getenv("APIFY_ACTOR_ID", "JJghSZmShuco4j9gJ")
APIFY_BASE_URL = "https://api.apify.com/v2"
POLL_INTERVAL = float(os.getenv("POLL_INTERVAL", 5))
SCRAPE_TIMEOUT = int(os.getenv("SCRAPE_TIMEOUT", 600))

# Gemini
GEMINI_API_KEY = os.getenv("GEMINI_API_KEY")
GEMINI_MODEL = os.getenv("GEMINI_MODEL", "gemini-2.5-pro")
ANALYSIS_DELAY = float(os.getenv("ANALYSIS_DELAY", 0.5))

# Ingestion
RESULTS_LIMIT = int(os.getenv("RESULTS_LIMIT", 50))  # oversampled to survive dedup
TOP_ADS_LIMIT = int(os.getenv("TOP_ADS_LIMIT", 20))
EVERGREEN_WEEKS = int(os.getenv("EVERGREEN_WEEKS", 4))
MIN_BRAND_DELAY = float(os.getenv("MIN_BRAND_DELAY", 2))
MAX_BRAND_DELAY = float(os.getenv("MAX_BRAND_DELAY", 5))
MAX_RETRIES = int(os.getenv("MAX_RETRIES", 3))
SETTINGS_POLL_INTERVAL = float(os.getenv("SETTINGS_POLL_INTERVAL", 60))  # running scheduler picks up schedule edits

# Media storage
MEDIA_BASE_PATH = Path(os.getenv("MEDIA_BASE_PATH", str(DATA_DIR / "media")))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
LOG_FILE = Path(os.getenv("LOG_FILE", str(LOGS_DIR / "admonitor.log")))

# Facebook Ad Library URLs
AD_LIBRARY_BASE_URL = "https://www.facebook.com/ads/library/"
AD_LIBRARY_AD_URL = "https://www.facebook.com/ads/library/?id={ad_id}"
AD_LIBRARY_SEARCH_URL = (
    "https://www.facebook.com/ads/library/?active_status=active&ad_type=all&country=US"
    "&media_type=all&search_type=page&sort_data[direction]=desc"
    "&sort_data[mode]=total_impressions&view_all_page_id={page_id}"
)
