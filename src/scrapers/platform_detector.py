# src/scrapers/platform_detector.py

"""Pure e-commerce platform fingerprinting and strategy lookup."""

import re

from src.scrapers.base_scraper import ScrapeStrategy
from src.scrapers.generic_scraper import HeuristicScraper
from src.scrapers.woocommerce_scraper import WooCommerceScraper

WOOCOMMERCE = "woocommerce"
GENERIC = "generic"

_WOOCOMMERCE_MARKERS: list[re.Pattern[str]] = [
    re.compile(r"wp-content/plugins/woocommerce", re.IGNORECASE),
    re.compile(
        r"<meta[^>]+name=[\"']generator[\"'][^>]+content=[\"']woocommerce",
        re.IGNORECASE,
    ),
    re.compile(r"class=[\"'][^\"']*\bwoocommerce(?:-page)?\b", re.IGNORECASE),
    re.compile(r"\bwc-block-grid\b|\bwoocommerce-loopproduct-link\b", re.IGNORECASE),
]

_STRATEGIES: dict[str, type[ScrapeStrategy]] = {
    WOOCOMMERCE: WooCommerceScraper,
    GENERIC: HeuristicScraper,
}


def detect_platform(html: str) -> str:
    """Return ``"woocommerce"`` when *html* carries its fingerprints."""
    if not html:
        return GENERIC
    for marker in _WOOCOMMERCE_MARKERS:
        if marker.search(html):
            return WOOCOMMERCE
    return GENERIC


def select_strategy(platform: str) -> type[ScrapeStrategy]:
    """Map a platform tag to its strategy class (generic by default)."""
    return _STRATEGIES.get(platform, HeuristicScraper)
