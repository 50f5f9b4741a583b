# src/storage/selector_cache.py

"""Per-vendor cache of discovered selector sets with a TTL."""

import logging
from datetime import datetime, timezone

from src.models.scrape_result import utc_now
from src.models.vendor_config import DiscoveredSelectorSet
from src.storage.document_store import DocumentStore

logger = logging.getLogger("offer_scraper.selector_cache")

COLLECTION = "vendor_selectors"


def _is_expired(expires_at: str) -> bool:
    if not expires_at:
        return True
    try:
        expiry = datetime.fromisoformat(expires_at)
    except ValueError:
        logger.warning("Unparseable selector expiry %r", expires_at)
        return True
    if expiry.tzinfo is None:
        expiry = expiry.replace(tzinfo=timezone.utc)
    return utc_now() >= expiry


def load_cached_selectors(
    store: DocumentStore, vendor_id: str,
) -> DiscoveredSelectorSet | None:
    """Return the vendor's cached set, or ``None`` if absent or expired."""
    doc = store.get(f"{COLLECTION}/{vendor_id}")
    if doc is None:
        logger.debug("No cached selectors for vendor %s", vendor_id)
        return None
    if _is_expired(str(doc.get("expires_at", ""))):
        logger.info("Cached selectors for vendor %s expired", vendor_id)
        return None
    return DiscoveredSelectorSet.from_document(doc)


def update_selector_cache(
    store: DocumentStore, selector_set: DiscoveredSelectorSet,
) -> None:
    """Overwrite the vendor's cache document with *selector_set*."""
    store.set(
        f"{COLLECTION}/{selector_set.vendor_id}",
        selector_set.to_document(),
    )
    logger.info(
        "Cached selectors for vendor %s (confidence %.2f)",
        selector_set.vendor_id,
        selector_set.confidence,
    )
