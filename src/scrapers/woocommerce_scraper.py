# src/scrapers/woocommerce_scraper.py

"""Templated fast path for WooCommerce storefronts.

WooCommerce renders shop and category archives as ``li.product`` cards
and single products with ``h1.product_title`` / ``p.price``, so no
selector discovery is needed.  Each whitelisted URL is tried first as
a listing page and, if that yields no cards, as a product page.
"""

import json

from bs4 import BeautifulSoup, Tag

from src.models.scrape_result import RawScrapeResult
from src.scrapers.base_scraper import ScrapeStrategy
from src.scrapers.parser_utils import (
    extract_text,
    find_size_text,
    to_absolute_url,
)

CARD_SELECTOR = "li.product"
CARD_LINK_SELECTORS: list[str] = [
    "a.woocommerce-LoopProduct-link",
    "a.woocommerce-loop-product__link",
]
CARD_TITLE_SELECTORS: list[str] = [
    ".woocommerce-loop-product__title",
    "h2",
    "h3",
]
# Sale prices wrap the current amount in <ins>
PRICE_SELECTORS: list[str] = [
    ".price ins .amount",
    ".price .amount",
    ".price",
]
PRODUCT_TITLE_SELECTORS: list[str] = ["h1.product_title", "h1"]
PRODUCT_PRICE_SELECTORS: list[str] = [
    "p.price ins .amount",
    "p.price .amount",
    ".summary .price .amount",
    "p.price",
]
SHORT_DESCRIPTION_SELECTOR = ".woocommerce-product-details__short-description"


def _first_text(node: BeautifulSoup | Tag, selectors: list[str]) -> str:
    for selector in selectors:
        text = extract_text(node, selector)
        if text:
            return text
    return ""


def _variation_size_and_price(soup: BeautifulSoup) -> tuple[str, str]:
    """Pick the first sized variation from a variable product form."""
    form = soup.select_one("form.variations_form")
    if form is None:
        return "", ""
    raw = str(form.get("data-product_variations") or "")
    try:
        variations = json.loads(raw)
    except json.JSONDecodeError:
        return "", ""
    if not isinstance(variations, list):
        return "", ""
    for variation in variations:
        if not isinstance(variation, dict):
            continue
        attributes = variation.get("attributes") or {}
        for value in attributes.values():
            size_text = find_size_text(str(value))
            if size_text:
                price = variation.get("display_price")
                return size_text, "" if price is None else str(price)
    return "", ""


class WooCommerceScraper(ScrapeStrategy):
    """Scraper for WooCommerce shops using the platform's stock markup."""

    platform = "woocommerce"

    def scrape(self) -> list[RawScrapeResult]:
        results: list[RawScrapeResult] = []
        for url in self.whitelist.allowed_urls:
            soup = self._get_page(url)
            if soup is None:
                continue

            listed = self.parse_category(soup, url)
            if listed:
                self.logger.info(
                    "[%s] %d products listed on %s",
                    self.vendor_name,
                    len(listed),
                    url,
                )
                results.extend(listed)
                continue

            product = self.parse_product(soup, url)
            if product is not None:
                results.append(product)
            else:
                self.logger.warning(
                    "[%s] No WooCommerce products found on %s",
                    self.vendor_name,
                    url,
                )
        return results

    def parse_category(
        self, soup: BeautifulSoup, page_url: str,
    ) -> list[RawScrapeResult]:
        """Read every product card on a shop/category archive."""
        results: list[RawScrapeResult] = []
        for card in soup.select(CARD_SELECTOR):
            link = None
            for selector in CARD_LINK_SELECTORS:
                link = card.select_one(selector)
                if link is not None:
                    break
            if link is None:
                link = card.find("a", href=True)
            if not isinstance(link, Tag) or not link.get("href"):
                continue

            product_url = to_absolute_url(str(link["href"]), page_url)
            self.products_found += 1
            if not self._claim(product_url):
                continue

            title = _first_text(card, CARD_TITLE_SELECTORS)
            price_text = _first_text(card, PRICE_SELECTORS)
            results.append(
                self._build_result(
                    title=title,
                    product_url=product_url,
                    price_text=price_text,
                    size_text=find_size_text(title),
                )
            )
        return results

    def parse_product(
        self, soup: BeautifulSoup, page_url: str,
    ) -> RawScrapeResult | None:
        """Read a single product page; ``None`` when it has no title."""
        title = _first_text(soup, PRODUCT_TITLE_SELECTORS)
        if not title:
            return None
        self.products_found += 1
        if not self._claim(page_url):
            return None

        price_text = _first_text(soup, PRODUCT_PRICE_SELECTORS)
        size_text = find_size_text(title)
        if not size_text:
            size_text, variation_price = _variation_size_and_price(soup)
            if variation_price and not price_text:
                price_text = variation_price
        if not size_text:
            size_text = find_size_text(
                extract_text(soup, SHORT_DESCRIPTION_SELECTOR)
            )

        return self._build_result(
            title=title,
            product_url=page_url,
            price_text=price_text,
            size_text=size_text,
        )
