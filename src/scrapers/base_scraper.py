# src/scrapers/base_scraper.py

"""Abstract base class for all vendor scraping strategies."""

import logging
from abc import ABC, abstractmethod

from bs4 import BeautifulSoup

from src.models.scrape_result import RawScrapeResult
from src.models.vendor_config import DiscoveredSelectorSet, VendorUrlWhitelist
from src.scrapers.exceptions import AccessDeniedError, FetchError
from src.scrapers.parser_utils import (
    clean_peptide_name,
    extract_mg,
    extract_price,
    normalize_url,
)
from src.scrapers.whitelist_enforcer import WhitelistEnforcer


class ScrapeStrategy(ABC):
    """Common plumbing for strategies that turn pages into results.

    Every page goes through the vendor's ``WhitelistEnforcer``.  Pages
    already fetched by the caller (the platform probe, discovery) can
    be handed in through *prefetched* so they are not requested twice.
    Strategies with ``needs_selectors`` set expect a discovered
    *selector_set*.
    """

    platform: str = ""
    needs_selectors: bool = False

    def __init__(
        self,
        whitelist: VendorUrlWhitelist,
        enforcer: WhitelistEnforcer,
        prefetched: dict[str, str] | None = None,
        selector_set: DiscoveredSelectorSet | None = None,
    ) -> None:
        self.whitelist = whitelist
        self.enforcer = enforcer
        self.selector_set = selector_set
        self.vendor_name = whitelist.vendor_name
        self.logger = logging.getLogger(
            f"offer_scraper.{self.platform or 'strategy'}"
        )
        self._prefetched: dict[str, str] = dict(prefetched or {})
        self._seen_urls: set[str] = set()
        self.products_found: int = 0

    def _get_page(self, url: str) -> BeautifulSoup | None:
        """Fetch and parse *url*; log and return ``None`` on failure."""
        html = self._prefetched.pop(url, None)
        if html is None:
            try:
                html = self.enforcer.fetch(url)
            except AccessDeniedError as exc:
                self.logger.warning("[%s] %s", self.vendor_name, exc)
                return None
            except FetchError as exc:
                self.logger.warning(
                    "[%s] Skipping page %s: %s",
                    self.vendor_name,
                    url,
                    exc,
                )
                return None
        return BeautifulSoup(html, "lxml")

    def _claim(self, product_url: str) -> bool:
        """Return False if *product_url* was already scraped this run."""
        key = normalize_url(product_url)
        if key in self._seen_urls:
            return False
        self._seen_urls.add(key)
        return True

    def _build_result(
        self,
        title: str,
        product_url: str,
        price_text: str,
        size_text: str,
    ) -> RawScrapeResult:
        """Assemble an unvalidated result from extracted text.

        ``vendor_url`` is always the first whitelisted URL, whichever
        page the product was read from.
        """
        return RawScrapeResult(
            vendor_name=self.vendor_name,
            peptide_name=clean_peptide_name(title),
            vendor_url=self.whitelist.allowed_urls[0],
            product_url=normalize_url(product_url),
            size_mg=extract_mg(size_text),
            price_usd=extract_price(price_text),
            raw_price_text=price_text,
            raw_size_text=size_text,
        )

    @abstractmethod
    def scrape(self) -> list[RawScrapeResult]:
        """Walk the vendor's pages and return raw, unvalidated results."""
        ...
