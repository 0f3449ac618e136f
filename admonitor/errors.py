class AdMonitorError(Exception):
    """Base class for errors raised by admonitor."""


class ScraperError(AdMonitorError):
    """The scraping provider was unreachable or the run did not succeed."""

    def __init__(self, message: str, run_id: str = None, status: str = None):
        super().__init__(message)
        self.run_id = run_id
        self.status = status


class TaggingError(AdMonitorError):
    """The AI tagging provider failed or returned an incomplete tag set."""


class BrandError(AdMonitorError):
    """A brand could not be created, found or resolved."""
