# src/scrapers/exceptions.py

"""Exception hierarchy for the scraping pipeline."""


class ScraperError(Exception):
    """Base class for every pipeline error."""


class AccessDeniedError(ScraperError):
    """Raised when a URL is not on the vendor's whitelist."""

    def __init__(self, url: str, vendor_name: str = "") -> None:
        self.url = url
        self.vendor_name = vendor_name
        label = f" for {vendor_name}" if vendor_name else ""
        super().__init__(f"URL not whitelisted{label}: {url}")


class FetchError(ScraperError):
    """Raised when a whitelisted URL could not be retrieved."""


class WhitelistConfigError(ScraperError):
    """Raised for missing, empty or malformed vendor whitelists."""


class LowConfidenceError(ScraperError):
    """Raised when selector discovery cannot reach the minimum confidence."""

    def __init__(self, confidence: float) -> None:
        self.confidence = confidence
        super().__init__(
            f"Low confidence ({confidence:.2f}) - "
            "selectors may need manual review"
        )


class JobNotFoundError(ScraperError):
    """Raised when a job id has no document."""


class JobStateError(ScraperError):
    """Raised when a job is not in the state an operation requires."""


class DocumentNotFoundError(ScraperError):
    """Raised when updating a document that does not exist."""
