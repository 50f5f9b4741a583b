# src/scrapers/generic_scraper.py

"""Selector-driven strategy for vendors on unrecognised platforms."""

from bs4 import BeautifulSoup
from soupsieve import SelectorSyntaxError

from src.models.scrape_result import RawScrapeResult
from src.models.vendor_config import (
    CategoryPageSelectors,
    DiscoveredSelectorSet,
    ProductPageSelectors,
)
from src.scrapers.base_scraper import ScrapeStrategy
from src.scrapers.parser_utils import (
    extract_mg,
    extract_price,
    extract_text,
    find_size_text,
    to_absolute_url,
)

FALLBACK_PRICE_SELECTORS: list[str] = [".price", "[class*=price]"]


class HeuristicScraper(ScrapeStrategy):
    """Walks category pages, then direct product pages, of a selector set.

    Discovered selectors are tried first; when one misses, generic
    fallbacks take over (first ``h1`` or ``<title>``, any element whose
    class mentions "price", an "N mg" scan of the page text).
    """

    platform = "generic"
    needs_selectors = True

    def scrape(self) -> list[RawScrapeResult]:
        results: list[RawScrapeResult] = []
        selector_set = self.selector_set or DiscoveredSelectorSet(
            vendor_id=self.whitelist.vendor_id,
            vendor_name=self.vendor_name,
        )

        for category in selector_set.category_pages:
            results.extend(self._scrape_category(category))

        for page in selector_set.product_pages:
            if not self._claim(page.url):
                continue
            self.products_found += 1
            soup = self._get_page(page.url)
            if soup is None:
                continue
            results.append(self.extract_product(soup, page.url, page))

        self.logger.info(
            "[%s] Heuristic scrape produced %d results",
            self.vendor_name,
            len(results),
        )
        return results

    def _scrape_category(
        self, category: CategoryPageSelectors,
    ) -> list[RawScrapeResult]:
        soup = self._get_page(category.url)
        if soup is None:
            return []

        results: list[RawScrapeResult] = []
        for link in self.product_links(soup, category):
            self.products_found += 1
            if not self.enforcer.is_same_domain(link):
                self.logger.warning(
                    "[%s] Skipping off-domain product link %s",
                    self.vendor_name,
                    link,
                )
                continue
            if not self.enforcer.is_allowed(link):
                self.logger.warning(
                    "[%s] Skipping non-whitelisted product %s",
                    self.vendor_name,
                    link,
                )
                continue
            if not self._claim(link):
                continue
            page = self._get_page(link)
            if page is None:
                continue
            results.append(
                self.extract_product(
                    page,
                    link,
                    self._selectors_for(link),
                )
            )
        return results

    def _selectors_for(self, url: str) -> ProductPageSelectors | None:
        if self.selector_set is None:
            return None
        return self.selector_set.product_selectors_for(url)

    @staticmethod
    def product_links(
        soup: BeautifulSoup, category: CategoryPageSelectors,
    ) -> list[str]:
        """Absolute, de-duplicated product links in discovery order."""
        try:
            anchors = soup.select(category.product_link_selector)
        except SelectorSyntaxError:
            return []
        links: list[str] = []
        for anchor in anchors:
            href = str(anchor.get("href") or "").strip()
            if not href or href.startswith("#"):
                continue
            absolute = to_absolute_url(href, category.url)
            if absolute not in links:
                links.append(absolute)
        return links

    def extract_product(
        self,
        soup: BeautifulSoup,
        url: str,
        selectors: ProductPageSelectors | None,
    ) -> RawScrapeResult:
        """Read title, price and size with selector-then-fallback lookups."""
        sel = selectors or ProductPageSelectors(url=url)

        title = extract_text(soup, sel.title_selector)
        if not title:
            title = extract_text(soup, "h1") or extract_text(soup, "title")

        price_text = extract_text(soup, sel.price_selector)
        if extract_price(price_text) is None:
            price_text = ""
            for selector in FALLBACK_PRICE_SELECTORS:
                candidate = extract_text(soup, selector)
                if extract_price(candidate) is not None:
                    price_text = candidate
                    break

        size_text = extract_text(soup, sel.size_selector)
        if extract_mg(size_text) is None:
            size_text = find_size_text(title)
        if not size_text:
            body = soup.body if soup.body is not None else soup
            size_text = find_size_text(body.get_text(" ", strip=True))

        return self._build_result(
            title=title,
            product_url=url,
            price_text=price_text,
            size_text=size_text,
        )
