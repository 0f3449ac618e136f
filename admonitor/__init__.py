"""Meta Ad Library monitor: top-ad ingestion, deduplication and longevity tracking."""

__version__ = "0.1.0"
