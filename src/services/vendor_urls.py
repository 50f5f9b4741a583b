# src/services/vendor_urls.py

"""Administrative read/write of vendor URL whitelists."""

import logging
from urllib.parse import urlparse

from src.models.scrape_result import utc_now
from src.models.vendor_config import VendorUrlWhitelist
from src.scrapers.exceptions import WhitelistConfigError
from src.scrapers.vendor_scraper import WHITELIST_COLLECTION
from src.storage.document_store import DocumentStore

logger = logging.getLogger("offer_scraper.vendor_urls")


def _is_valid_url(url: str) -> bool:
    parsed = urlparse(url)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def save_vendor_urls(
    store: DocumentStore,
    vendor_id: str,
    vendor_name: str,
    urls: list[str],
) -> VendorUrlWhitelist:
    """Validate *urls* and overwrite the vendor's whitelist.

    Blank entries are dropped and duplicates collapsed, keeping the
    first occurrence so the probe URL stays first.

    Raises:
        WhitelistConfigError: no URLs, or any URL is not absolute http(s).
    """
    cleaned: list[str] = []
    for raw in urls:
        url = raw.strip()
        if not url:
            continue
        if not _is_valid_url(url):
            raise WhitelistConfigError(f"Invalid URL: {url}")
        if url not in cleaned:
            cleaned.append(url)

    if not cleaned:
        raise WhitelistConfigError("At least one URL is required")

    whitelist = VendorUrlWhitelist(
        vendor_id=vendor_id,
        vendor_name=vendor_name,
        allowed_urls=cleaned,
        last_updated=utc_now().isoformat(),
    )
    store.set(f"{WHITELIST_COLLECTION}/{vendor_id}", whitelist.to_document())
    logger.info(
        "Saved %d whitelisted URLs for %s", len(cleaned), vendor_name
    )
    return whitelist


def get_vendor_urls(
    store: DocumentStore, vendor_id: str,
) -> VendorUrlWhitelist | None:
    """Return the vendor's whitelist, or ``None`` if none is configured."""
    doc = store.get(f"{WHITELIST_COLLECTION}/{vendor_id}")
    if doc is None:
        return None
    return VendorUrlWhitelist.from_document(doc)
