# src/scrapers/vendor_scraper.py

"""Per-vendor scraper: whitelist, platform probe, selector policy."""

import logging
from typing import Any

from src.config.settings import Settings
from src.models.scrape_result import RawScrapeResult
from src.models.vendor_config import DiscoveredSelectorSet, VendorUrlWhitelist
from src.scrapers.exceptions import LowConfidenceError, WhitelistConfigError
from src.scrapers.platform_detector import detect_platform, select_strategy
from src.scrapers.selector_discovery import SelectorDiscovery
from src.scrapers.whitelist_enforcer import WhitelistEnforcer
from src.storage.document_store import DocumentStore
from src.storage.selector_cache import (
    load_cached_selectors,
    update_selector_cache,
)

logger = logging.getLogger("offer_scraper.vendor")

VENDORS_COLLECTION = "vendors"
WHITELIST_COLLECTION = "vendor_urls"
RESEARCH_VENDOR_TYPE = "research"


class VendorScraper:
    """Scrapes one vendor's whitelisted pages into raw results.

    The first whitelisted page is always fetched as a platform probe;
    a failure there aborts the vendor.  WooCommerce shops take the
    templated path.  Everything else runs on a selector set that is
    reused from the cache when confident enough, or rediscovered.
    """

    def __init__(
        self,
        vendor_id: str,
        vendor_name: str,
        store: DocumentStore,
        session: Any | None = None,
    ) -> None:
        self.vendor_id = vendor_id
        self.vendor_name = vendor_name
        self.store = store
        self.session = session
        self.settings = Settings()
        self.platform: str = ""
        self.pages_visited: int = 0
        self.products_found: int = 0

    def load_whitelist(self) -> VendorUrlWhitelist:
        """Read ``vendor_urls/{vendor_id}``; missing or empty is an error."""
        doc = self.store.get(f"{WHITELIST_COLLECTION}/{self.vendor_id}")
        if doc is None:
            raise WhitelistConfigError(
                f"No URL whitelist configured for {self.vendor_name}"
            )
        whitelist = VendorUrlWhitelist.from_document(doc)
        whitelist.vendor_id = whitelist.vendor_id or self.vendor_id
        whitelist.vendor_name = whitelist.vendor_name or self.vendor_name
        if not whitelist.allowed_urls:
            raise WhitelistConfigError(
                f"URL whitelist for {self.vendor_name} is empty"
            )
        return whitelist

    def scrape(self) -> list[RawScrapeResult]:
        """Run the vendor end to end and return unvalidated results.

        Raises:
            WhitelistConfigError: no usable whitelist.
            AccessDeniedError, FetchError: the platform probe failed.
            LowConfidenceError: rediscovered selectors are unusable.
        """
        whitelist = self.load_whitelist()
        enforcer = WhitelistEnforcer(whitelist, session=self.session)
        try:
            probe_url = whitelist.allowed_urls[0]
            probe_html = enforcer.fetch(probe_url)
            self.platform = detect_platform(probe_html)
            logger.info(
                "[%s] Detected platform: %s",
                self.vendor_name,
                self.platform,
            )

            prefetched = {probe_url: probe_html}
            selector_set: DiscoveredSelectorSet | None = None
            strategy_cls = select_strategy(self.platform)
            if strategy_cls.needs_selectors:
                selector_set, prefetched = self._resolve_selectors(
                    whitelist, enforcer, prefetched
                )

            strategy = strategy_cls(
                whitelist,
                enforcer,
                prefetched=prefetched,
                selector_set=selector_set,
            )
            results = strategy.scrape()
            self.products_found = strategy.products_found
        finally:
            self.pages_visited = enforcer.pages_visited

        logger.info(
            "[%s] Scraped %d results from %d pages",
            self.vendor_name,
            len(results),
            self.pages_visited,
        )
        return results

    def _resolve_selectors(
        self,
        whitelist: VendorUrlWhitelist,
        enforcer: WhitelistEnforcer,
        prefetched: dict[str, str],
    ) -> tuple[DiscoveredSelectorSet, dict[str, str]]:
        """Apply the reuse / rediscover / fail confidence policy."""
        cached = load_cached_selectors(self.store, self.vendor_id)
        if (
            cached is not None
            and cached.confidence >= self.settings.SELECTOR_REUSE_CONFIDENCE
        ):
            logger.info(
                "[%s] Reusing cached selectors (confidence %.2f)",
                self.vendor_name,
                cached.confidence,
            )
            return cached, prefetched

        discovery = SelectorDiscovery()
        selector_set = discovery.discover(whitelist, enforcer, prefetched)
        update_selector_cache(self.store, selector_set)
        if selector_set.confidence < self.settings.SELECTOR_MIN_CONFIDENCE:
            raise LowConfidenceError(selector_set.confidence)
        return selector_set, discovery.fetched_pages


def load_vendor_scrapers(
    store: DocumentStore, session: Any | None = None,
) -> list[VendorScraper]:
    """One scraper per research vendor that has a URL whitelist."""
    scrapers: list[VendorScraper] = []
    vendors = store.query(VENDORS_COLLECTION, type=RESEARCH_VENDOR_TYPE)
    for vendor_id, doc in vendors:
        if store.get(f"{WHITELIST_COLLECTION}/{vendor_id}") is None:
            logger.debug(
                "Vendor %s has no URL whitelist, skipping", vendor_id
            )
            continue
        scrapers.append(
            VendorScraper(
                vendor_id,
                str(doc.get("name") or vendor_id),
                store,
                session=session,
            )
        )
    logger.info("Loaded %d vendor scrapers", len(scrapers))
    return scrapers


def get_vendor_scraper(
    store: DocumentStore,
    vendor_id: str,
    session: Any | None = None,
) -> VendorScraper | None:
    """Scraper for a single vendor, or ``None`` if it is not registered."""
    doc = store.get(f"{VENDORS_COLLECTION}/{vendor_id}")
    if doc is None:
        return None
    return VendorScraper(
        vendor_id,
        str(doc.get("name") or vendor_id),
        store,
        session=session,
    )
