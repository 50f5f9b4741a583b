# src/scrapers/selector_discovery.py

"""Heuristic selector discovery for vendors without a known platform.

Each whitelisted page is classified as a category (listing) page or a
single product page.  Listing pages yield the link selector that most
consistently recurs across price-bearing product cards; product pages
yield title/price/size selectors from ranked candidate lists.  Every
page gets a confidence in [0, 1] and the set's confidence combines
them, penalising pages that could not be classified and category pages
that disagree on the link selector.
"""

import json
import logging
import re
from collections import Counter
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import timedelta

from bs4 import BeautifulSoup, Tag

from src.config.settings import Settings
from src.models.scrape_result import utc_now
from src.models.vendor_config import (
    CategoryPageSelectors,
    DiscoveredSelectorSet,
    ProductPageSelectors,
    VendorUrlWhitelist,
)
from src.scrapers.exceptions import ScraperError
from src.scrapers.parser_utils import (
    extract_mg,
    extract_price,
    extract_text,
    to_absolute_url,
)
from src.scrapers.whitelist_enforcer import WhitelistEnforcer

logger = logging.getLogger("offer_scraper.discovery")

CATEGORY = "category"
PRODUCT = "product"
UNKNOWN = "unknown"

TITLE_CANDIDATES: list[str] = [
    "h1.product_title",
    "h1.product-title",
    "[itemprop=name]",
    "h1",
]
PRICE_CANDIDATES: list[str] = [
    "[itemprop=price]",
    ".product-price",
    ".price",
    "[class*=price]",
]
SIZE_CANDIDATES: list[str] = [
    ".product-size",
    "[class*=size]",
    "[class*=variant]",
    "select option",
    "h1",
]

_CLASS_RE = re.compile(r"^[A-Za-z_][\w-]*$")
_MONEY_RE = re.compile(r"[$€£]\s?\d|\d[\d,]*\.\d{2}")
_ADD_TO_CART_RE = re.compile(r"add[\s_-]?to[\s_-]?cart", re.IGNORECASE)


@dataclass
class PageAnalysis:
    """Classification of one whitelisted page."""

    url: str
    page_type: str
    confidence: float = 0.0
    link_selector: str = ""
    link_count: int = 0
    title_selector: str = ""
    price_selector: str = ""
    size_selector: str = ""


@dataclass
class _LinkCandidate:
    selector: str
    hrefs: list[str] = field(default_factory=lambda: list[str]())
    cards: int = 0
    priced_cards: int = 0


def _class_token(node: Tag) -> str:
    classes = node.get("class") or []
    for cls in classes:
        if _CLASS_RE.match(cls):
            return str(cls)
    return ""


def _card_for(anchor: Tag) -> Tag | None:
    """Nearest classed ancestor (up to 4 levels) acting as a product card."""
    node = anchor.parent
    depth = 0
    while isinstance(node, Tag) and depth < 4:
        if node.name not in ("body", "html") and _class_token(node):
            return node
        node = node.parent
        depth += 1
    return None


def _has_product_markers(soup: BeautifulSoup) -> bool:
    """Strong single-product signals: og:type, JSON-LD, add-to-cart."""
    og_type = soup.find("meta", attrs={"property": "og:type"})
    if isinstance(og_type, Tag) and "product" in str(
        og_type.get("content", "")
    ).lower():
        return True
    for script in soup.find_all("script", type="application/ld+json"):
        try:
            data = json.loads(script.get_text() or "null")
        except json.JSONDecodeError:
            continue
        items = data if isinstance(data, list) else [data]
        for item in items:
            if isinstance(item, dict) and item.get("@type") == "Product":
                return True
    for form in soup.find_all("form"):
        if form.find(attrs={"name": "add-to-cart"}):
            return True
    for button in soup.find_all("button"):
        if _ADD_TO_CART_RE.search(button.get_text(" ", strip=True)):
            return True
    return False


def _first_matching(
    soup: BeautifulSoup,
    candidates: list[str],
    parse: Callable[[str], float | None] | None = None,
) -> str:
    """First candidate selector whose text is non-empty (and parses)."""
    for selector in candidates:
        text = extract_text(soup, selector)
        if not text:
            continue
        if parse is not None and parse(text) is None:
            continue
        return selector
    return ""


def find_link_candidates(
    soup: BeautifulSoup,
    page_url: str,
) -> list[_LinkCandidate]:
    """Group anchors by the card selector that wraps them."""
    by_selector: dict[str, _LinkCandidate] = {}
    seen_cards: set[int] = set()
    page_abs = to_absolute_url(page_url, page_url)

    for anchor in soup.find_all("a", href=True):
        href = str(anchor["href"]).strip()
        if not href or href.startswith(("#", "mailto:", "tel:", "javascript:")):
            continue
        absolute = to_absolute_url(href, page_url)
        if absolute == page_abs:
            continue
        card = _card_for(anchor)
        if card is None:
            continue
        selector = f"{card.name}.{_class_token(card)} a[href]"
        candidate = by_selector.setdefault(
            selector, _LinkCandidate(selector=selector)
        )
        if absolute not in candidate.hrefs:
            candidate.hrefs.append(absolute)
        if id(card) not in seen_cards:
            seen_cards.add(id(card))
            candidate.cards += 1
            if _MONEY_RE.search(card.get_text(" ", strip=True)):
                candidate.priced_cards += 1

    return sorted(
        by_selector.values(),
        key=lambda c: (c.priced_cards, len(c.hrefs)),
        reverse=True,
    )


def analyze_page(url: str, html: str) -> PageAnalysis:
    """Classify *html* and infer selectors for it."""
    soup = BeautifulSoup(html, "lxml")
    strong_product = _has_product_markers(soup)

    if not strong_product:
        candidates = find_link_candidates(soup, url)
        best = candidates[0] if candidates else None
        if (
            best is not None
            and best.priced_cards >= Settings.MIN_LISTING_LINKS
            and len(best.hrefs) >= Settings.MIN_LISTING_LINKS
        ):
            agreement = best.priced_cards / max(best.cards, 1)
            return PageAnalysis(
                url=url,
                page_type=CATEGORY,
                confidence=round(0.5 + 0.5 * agreement, 3),
                link_selector=best.selector,
                link_count=len(best.hrefs),
            )

    title_sel = _first_matching(soup, TITLE_CANDIDATES)
    price_sel = _first_matching(soup, PRICE_CANDIDATES, extract_price)
    size_sel = _first_matching(soup, SIZE_CANDIDATES, extract_mg)

    if title_sel and (price_sel or strong_product):
        found = sum(1 for s in (title_sel, price_sel, size_sel) if s)
        return PageAnalysis(
            url=url,
            page_type=PRODUCT,
            confidence=round(found / 3, 3),
            title_selector=title_sel,
            price_selector=price_sel,
            size_selector=size_sel,
        )

    return PageAnalysis(url=url, page_type=UNKNOWN)


def score_selector_set(analyses: list[PageAnalysis]) -> float:
    """Combine per-page confidences into one set confidence.

    Mean confidence over classified pages, scaled by the share of pages
    that could be classified and by how many category pages agree on
    the most common link selector.
    """
    if not analyses:
        return 0.0
    classified = [a for a in analyses if a.page_type != UNKNOWN]
    if not classified:
        return 0.0
    mean = sum(a.confidence for a in classified) / len(classified)
    coverage = len(classified) / len(analyses)

    link_selectors = [
        a.link_selector for a in classified if a.page_type == CATEGORY
    ]
    agreement = 1.0
    if len(link_selectors) > 1:
        most_common = Counter(link_selectors).most_common(1)[0][1]
        agreement = most_common / len(link_selectors)

    return round(mean * coverage * agreement, 3)


class SelectorDiscovery:
    """Infer a ``DiscoveredSelectorSet`` from a vendor's whitelist."""

    def __init__(self) -> None:
        self.settings = Settings()
        self.fetched_pages: dict[str, str] = {}

    def discover(
        self,
        whitelist: VendorUrlWhitelist,
        enforcer: WhitelistEnforcer,
        prefetched: dict[str, str] | None = None,
    ) -> DiscoveredSelectorSet:
        """Fetch every whitelisted URL once and build a fresh set.

        Pages in *prefetched* are analysed without another request.
        Every page seen is kept in ``fetched_pages`` for the scrape
        that follows.
        """
        known = dict(prefetched or {})
        analyses: list[PageAnalysis] = []
        for url in whitelist.allowed_urls:
            try:
                html = known[url] if url in known else enforcer.fetch(url)
            except ScraperError as exc:
                logger.warning(
                    "[%s] Discovery could not fetch %s: %s",
                    whitelist.vendor_name,
                    url,
                    exc,
                )
                analyses.append(PageAnalysis(url=url, page_type=UNKNOWN))
                continue
            self.fetched_pages[url] = html
            analysis = analyze_page(url, html)
            logger.debug(
                "[%s] %s classified as %s (confidence %.2f)",
                whitelist.vendor_name,
                url,
                analysis.page_type,
                analysis.confidence,
            )
            analyses.append(analysis)

        now = utc_now()
        selector_set = DiscoveredSelectorSet(
            vendor_id=whitelist.vendor_id,
            vendor_name=whitelist.vendor_name,
            category_pages=[
                CategoryPageSelectors(
                    url=a.url,
                    product_link_selector=a.link_selector,
                    confidence=a.confidence,
                )
                for a in analyses
                if a.page_type == CATEGORY
            ],
            product_pages=[
                ProductPageSelectors(
                    url=a.url,
                    title_selector=a.title_selector,
                    price_selector=a.price_selector,
                    size_selector=a.size_selector,
                    confidence=a.confidence,
                )
                for a in analyses
                if a.page_type == PRODUCT
            ],
            confidence=score_selector_set(analyses),
            discovered_at=now.isoformat(),
            expires_at=(
                now + timedelta(days=self.settings.SELECTOR_CACHE_TTL_DAYS)
            ).isoformat(),
        )
        logger.info(
            "[%s] Discovered %d category and %d product pages "
            "(confidence %.2f)",
            whitelist.vendor_name,
            len(selector_set.category_pages),
            len(selector_set.product_pages),
            selector_set.confidence,
        )
        return selector_set
