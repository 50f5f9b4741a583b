# src/models/vendor_config.py

"""Vendor whitelist and discovered-selector models."""

from dataclasses import asdict, dataclass, field
from typing import Any


@dataclass
class VendorUrlWhitelist:
    """Admin-authored list of URLs the pipeline may fetch for a vendor."""

    vendor_id: str
    vendor_name: str
    allowed_urls: list[str]
    last_updated: str | None = None

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "VendorUrlWhitelist":
        urls = doc.get("allowed_urls") or []
        return cls(
            vendor_id=str(doc.get("vendor_id", "")),
            vendor_name=str(doc.get("vendor_name", "")),
            allowed_urls=[str(u) for u in urls],
            last_updated=doc.get("last_updated"),
        )

    def to_document(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CategoryPageSelectors:
    """How to find product links on one listing page."""

    url: str
    product_link_selector: str
    confidence: float


@dataclass
class ProductPageSelectors:
    """How to read title, price and size on one product page."""

    url: str
    title_selector: str = ""
    price_selector: str = ""
    size_selector: str = ""
    confidence: float = 0.0


@dataclass
class DiscoveredSelectorSet:
    """Cached scraping strategy for one vendor."""

    vendor_id: str
    vendor_name: str
    category_pages: list[CategoryPageSelectors] = field(
        default_factory=lambda: list[CategoryPageSelectors]()
    )
    product_pages: list[ProductPageSelectors] = field(
        default_factory=lambda: list[ProductPageSelectors]()
    )
    confidence: float = 0.0
    discovered_at: str = ""
    expires_at: str = ""

    def product_selectors_for(
        self, url: str,
    ) -> ProductPageSelectors | None:
        """Return the product-page entry recorded for *url*, if any."""
        for page in self.product_pages:
            if page.url == url:
                return page
        return None

    def to_document(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_document(cls, doc: dict[str, Any]) -> "DiscoveredSelectorSet":
        return cls(
            vendor_id=str(doc.get("vendor_id", "")),
            vendor_name=str(doc.get("vendor_name", "")),
            category_pages=[
                CategoryPageSelectors(**page)
                for page in doc.get("category_pages", [])
            ],
            product_pages=[
                ProductPageSelectors(**page)
                for page in doc.get("product_pages", [])
            ],
            confidence=float(doc.get("confidence", 0.0)),
            discovered_at=str(doc.get("discovered_at", "")),
            expires_at=str(doc.get("expires_at", "")),
        )
