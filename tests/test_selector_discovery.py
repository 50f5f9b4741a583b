# tests/test_selector_discovery.py

"""Tests for page classification and selector-set discovery."""

import unittest
from datetime import datetime, timedelta

from site_fixtures import (
    GENERIC_BPC_URL,
    GENERIC_CATEGORY_URL,
    GENERIC_GHOST_URL,
    GENERIC_TB_URL,
    FakeSession,
    generic_category_page,
    generic_product_page,
)

from src.models.vendor_config import VendorUrlWhitelist
from src.scrapers.selector_discovery import (
    CATEGORY,
    PRODUCT,
    UNKNOWN,
    PageAnalysis,
    SelectorDiscovery,
    analyze_page,
    score_selector_set,
)
from src.scrapers.whitelist_enforcer import WhitelistEnforcer

CATEGORY_HTML = generic_category_page(
    (GENERIC_BPC_URL, "BPC-157 5mg", "$45.00"),
    (GENERIC_TB_URL, "TB-500 2mg", "$30.00"),
    (GENERIC_GHOST_URL, "Ghost 10mg", "$99.00"),
)
BPC_HTML = generic_product_page("BPC-157 5mg", "$45.00")
TB_HTML = generic_product_page("TB-500 2mg", "$30.00")


class TestAnalyzePage(unittest.TestCase):
    """Single-page classification."""

    def test_listing_page_is_category(self) -> None:
        analysis = analyze_page(GENERIC_CATEGORY_URL, CATEGORY_HTML)
        self.assertEqual(analysis.page_type, CATEGORY)
        self.assertEqual(analysis.link_selector, "div.card a[href]")
        self.assertEqual(analysis.link_count, 3)
        self.assertEqual(analysis.confidence, 1.0)

    def test_product_page(self) -> None:
        analysis = analyze_page(GENERIC_BPC_URL, BPC_HTML)
        self.assertEqual(analysis.page_type, PRODUCT)
        self.assertEqual(analysis.title_selector, "h1.product-title")
        self.assertEqual(analysis.price_selector, ".product-price")
        self.assertEqual(analysis.size_selector, "h1")
        self.assertEqual(analysis.confidence, 1.0)

    def test_product_without_size_scores_lower(self) -> None:
        analysis = analyze_page(
            GENERIC_TB_URL, generic_product_page("TB-500", "$30.00")
        )
        self.assertEqual(analysis.page_type, PRODUCT)
        self.assertEqual(analysis.size_selector, "")
        self.assertEqual(analysis.confidence, 0.667)

    def test_single_link_is_not_a_listing(self) -> None:
        html = generic_category_page((GENERIC_BPC_URL, "BPC-157", "$45.00"))
        analysis = analyze_page(GENERIC_CATEGORY_URL, html)
        self.assertNotEqual(analysis.page_type, CATEGORY)

    def test_unclassifiable_page(self) -> None:
        html = "<html><body><h1>About us</h1><p>We ship fast.</p></body></html>"
        analysis = analyze_page("https://labs.test/about", html)
        self.assertEqual(analysis.page_type, UNKNOWN)
        self.assertEqual(analysis.confidence, 0.0)

    def test_json_ld_marks_product(self) -> None:
        """A JSON-LD Product is enough even without a price element."""
        html = (
            '<html><head><script type="application/ld+json">'
            '{"@type": "Product", "name": "GHK-Cu"}</script></head>'
            "<body><h1>GHK-Cu 50mg</h1></body></html>"
        )
        analysis = analyze_page("https://labs.test/p/ghk", html)
        self.assertEqual(analysis.page_type, PRODUCT)
        self.assertEqual(analysis.price_selector, "")


class TestScoreSelectorSet(unittest.TestCase):
    """Set confidence penalises unknown pages and disagreement."""

    def test_empty(self) -> None:
        self.assertEqual(score_selector_set([]), 0.0)

    def test_unknown_pages_reduce_coverage(self) -> None:
        analyses = [
            PageAnalysis("a", CATEGORY, 1.0, link_selector="div.card a[href]"),
            PageAnalysis("b", UNKNOWN),
        ]
        self.assertEqual(score_selector_set(analyses), 0.5)

    def test_disagreeing_category_selectors(self) -> None:
        analyses = [
            PageAnalysis("a", CATEGORY, 1.0, link_selector="div.card a[href]"),
            PageAnalysis("b", CATEGORY, 1.0, link_selector="li.tile a[href]"),
        ]
        self.assertEqual(score_selector_set(analyses), 0.5)

    def test_all_unknown(self) -> None:
        self.assertEqual(
            score_selector_set([PageAnalysis("a", UNKNOWN)]), 0.0
        )


class TestSelectorDiscovery(unittest.TestCase):
    """discover() walks the whitelist through the enforcer."""

    def _whitelist(self, *urls: str) -> VendorUrlWhitelist:
        return VendorUrlWhitelist(
            vendor_id="labs", vendor_name="Labs", allowed_urls=list(urls)
        )

    def test_discovers_category_and_products(self) -> None:
        session = FakeSession({
            GENERIC_CATEGORY_URL: CATEGORY_HTML,
            GENERIC_BPC_URL: BPC_HTML,
            GENERIC_TB_URL: TB_HTML,
        })
        whitelist = self._whitelist(
            GENERIC_CATEGORY_URL, GENERIC_BPC_URL, GENERIC_TB_URL
        )
        discovery = SelectorDiscovery()
        selector_set = discovery.discover(
            whitelist, WhitelistEnforcer(whitelist, session=session)
        )

        self.assertEqual(selector_set.vendor_id, "labs")
        self.assertEqual(len(selector_set.category_pages), 1)
        self.assertEqual(
            [p.url for p in selector_set.product_pages],
            [GENERIC_BPC_URL, GENERIC_TB_URL],
        )
        self.assertEqual(selector_set.confidence, 1.0)
        self.assertEqual(len(discovery.fetched_pages), 3)

        discovered = datetime.fromisoformat(selector_set.discovered_at)
        expires = datetime.fromisoformat(selector_set.expires_at)
        self.assertEqual(expires - discovered, timedelta(days=7))

    def test_prefetched_pages_not_requested_again(self) -> None:
        session = FakeSession({GENERIC_BPC_URL: BPC_HTML})
        whitelist = self._whitelist(GENERIC_CATEGORY_URL, GENERIC_BPC_URL)
        discovery = SelectorDiscovery()
        discovery.discover(
            whitelist,
            WhitelistEnforcer(whitelist, session=session),
            prefetched={GENERIC_CATEGORY_URL: CATEGORY_HTML},
        )
        self.assertEqual(session.requested, [GENERIC_BPC_URL])
        self.assertIn(GENERIC_CATEGORY_URL, discovery.fetched_pages)

    def test_unreachable_page_counts_as_unknown(self) -> None:
        session = FakeSession({
            GENERIC_CATEGORY_URL: CATEGORY_HTML,
            GENERIC_BPC_URL: BPC_HTML,
        })
        whitelist = self._whitelist(
            GENERIC_CATEGORY_URL, GENERIC_BPC_URL, GENERIC_GHOST_URL
        )
        discovery = SelectorDiscovery()
        selector_set = discovery.discover(
            whitelist, WhitelistEnforcer(whitelist, session=session)
        )
        self.assertEqual(selector_set.confidence, 0.667)
        self.assertNotIn(GENERIC_GHOST_URL, discovery.fetched_pages)


if __name__ == "__main__":
    unittest.main()
