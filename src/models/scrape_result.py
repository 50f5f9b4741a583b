# src/models/scrape_result.py

"""Transient scrape result model passed from strategies to the validator."""

from dataclasses import dataclass, field
from datetime import datetime, timezone


def utc_now() -> datetime:
    """Timezone-aware current time used for every pipeline timestamp."""
    return datetime.now(timezone.utc)


@dataclass
class RawScrapeResult:
    """One product as read off a vendor page, before persistence.

    ``valid`` and ``validation_error`` are owned by the pricing
    validator; strategies always emit ``valid=False``.
    """

    vendor_name: str
    peptide_name: str
    vendor_url: str = ""
    product_url: str = ""
    size_mg: float | None = None
    price_usd: float | None = None
    shipping_usd: float = 0.0
    raw_price_text: str = ""
    raw_size_text: str = ""
    scraped_at: datetime = field(default_factory=utc_now)
    price_source_type: str = "automated_scrape"
    valid: bool = False
    validation_error: str = ""
