# src/services/manual_offers.py

"""Manually entered offers for any tier.

A payload is checked by the validator of its own tier only, turned into
that tier's pricing block and reconciled through the same upsert engine
as scraped offers, so manual prices get change history too.
"""

import logging
from typing import Any

from src.filters.pricing_validator import (
    ValidationReport,
    build_pricing_by_tier,
    validate_offer_by_tier,
)
from src.models.offer import UpsertResult, VendorOffer
from src.models.scrape_result import utc_now
from src.services.offer_upsert import OfferUpsertEngine
from src.storage.document_store import DocumentStore

logger = logging.getLogger("offer_scraper.manual_offers")

MANUAL_SOURCE = "manual_entry"


def submit_offer(
    store: DocumentStore,
    vendor_id: str,
    tier: str,
    data: dict[str, Any],
    submitted_by: str,
) -> tuple[ValidationReport, UpsertResult | None]:
    """Validate *data* for *tier* and upsert it as one offer.

    Returns the validation report and, when it passed, the upsert
    outcome.  Nothing is written for an invalid payload.
    """
    report = validate_offer_by_tier(tier, data)
    if not report.is_valid:
        logger.warning(
            "Rejected %s offer for %s: %s",
            tier,
            vendor_id,
            "; ".join(report.errors),
        )
        return report, None

    pricing = build_pricing_by_tier(tier, data)
    if pricing is None:
        report.is_valid = False
        report.errors.append("size_mg and price_usd must both be positive")
        return report, None

    offer = VendorOffer(
        vendor_id=vendor_id,
        peptide_name=str(data["peptide_name"]).strip(),
        pricing=pricing,
        tier=tier,
        vendor_url=str(data.get("vendor_url") or ""),
        product_url=str(data.get("product_url") or ""),
        price_source_type=MANUAL_SOURCE,
    )
    batch_id = f"manual-{utc_now().strftime('%Y%m%d%H%M%S')}"
    result = OfferUpsertEngine(store).upsert(
        [offer], batch_id, user_id=submitted_by
    )
    logger.info(
        "Manual %s offer for %s (%s): %s",
        tier,
        vendor_id,
        offer.peptide_name,
        result.actions[0],
    )
    return report, result
