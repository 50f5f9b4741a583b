# src/models/offer.py

"""Vendor offer, tier pricing blocks and price-history models."""

from dataclasses import asdict, dataclass, field
from typing import Any

RESEARCH_TIER = "research"
TELEHEALTH_TIER = "telehealth"
BRAND_TIER = "brand"
VENDOR_TIERS: tuple[str, ...] = (RESEARCH_TIER, TELEHEALTH_TIER, BRAND_TIER)

# Document field holding each tier's pricing block
PRICING_FIELDS: dict[str, str] = {
    RESEARCH_TIER: "research_pricing",
    TELEHEALTH_TIER: "telehealth_pricing",
    BRAND_TIER: "brand_pricing",
}


def _drop_none(data: dict[str, Any]) -> dict[str, Any]:
    """Remove ``None`` values so documents only carry known fields."""
    return {k: v for k, v in data.items() if v is not None}


@dataclass
class ResearchPricing:
    """Tier-1 pricing: a vial of ``size_mg`` sold for ``price_usd``."""

    size_mg: float
    price_usd: float
    shipping_usd: float
    price_per_mg: float

    def to_document(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TelehealthPricing:
    """Tier-2 pricing: monthly subscription for a GLP programme."""

    subscription_price_monthly: float
    glp_type: str  # "glp1" or "glp1_glp2"
    medication_cost_usd: float | None = None
    dose_mg_per_injection: float | None = None

    def to_document(self) -> dict[str, Any]:
        return _drop_none(asdict(self))


@dataclass
class BrandPricing:
    """Tier-3 pricing: branded pens priced per dose."""

    dose_strength: str
    doses_per_package: int
    price_per_dose: float
    total_package_price: float | None = None

    def to_document(self) -> dict[str, Any]:
        return _drop_none(asdict(self))


PricingBlock = ResearchPricing | TelehealthPricing | BrandPricing


@dataclass
class VendorOffer:
    """Candidate offer handed to the upsert engine.

    Bookkeeping fields (batch ids, created/updated timestamps,
    ``submitted_by``) are stamped by the engine, not by callers.
    """

    vendor_id: str
    peptide_name: str
    pricing: PricingBlock
    tier: str = RESEARCH_TIER
    vendor_url: str = ""
    product_url: str = ""
    price_source_type: str = "automated_scrape"
    verification_status: str = "unverified"
    last_scraped_at: str | None = None

    def to_document(self) -> dict[str, Any]:
        """Serialise to the ``vendor_offers`` document shape."""
        doc: dict[str, Any] = {
            "vendor_id": self.vendor_id,
            "tier": self.tier,
            "peptide_name": self.peptide_name,
            PRICING_FIELDS[self.tier]: self.pricing.to_document(),
            "price_source_type": self.price_source_type,
            "verification_status": self.verification_status,
            "last_scraped_at": self.last_scraped_at,
        }
        if self.vendor_url:
            doc["vendor_url"] = self.vendor_url
        if self.product_url:
            doc["product_url"] = self.product_url
        return _drop_none(doc)


@dataclass
class OfferMatchKey:
    """Domain identity of an offer (see ``get_offer_match_key``)."""

    vendor_id: str
    tier: str
    peptide_name: str
    glp_type: str | None = None
    dose_mg_per_injection: float | None = None
    dose_strength: str | None = None


@dataclass
class OfferPriceHistoryEntry:
    """Append-only record of one detected pricing change."""

    offer_id: str
    vendor_id: str
    tier: str
    peptide_name: str
    old_pricing: dict[str, dict[str, Any] | None]
    new_pricing: dict[str, dict[str, Any] | None]
    changed_fields: list[str]
    changed_at: str
    price_change_pct: float | None = None
    upload_batch_id: str | None = None
    scraper_job_id: str | None = None
    changed_by: str | None = None

    def to_document(self) -> dict[str, Any]:
        doc: dict[str, Any] = {
            "offer_id": self.offer_id,
            "vendor_id": self.vendor_id,
            "tier": self.tier,
            "peptide_name": self.peptide_name,
            "changed_fields": list(self.changed_fields),
            "changed_at": self.changed_at,
        }
        for tier in VENDOR_TIERS:
            field_name = PRICING_FIELDS[tier]
            doc[f"old_{field_name}"] = self.old_pricing.get(tier)
            doc[f"new_{field_name}"] = self.new_pricing.get(tier)
        optional = {
            "price_change_pct": self.price_change_pct,
            "upload_batch_id": self.upload_batch_id,
            "scraper_job_id": self.scraper_job_id,
            "changed_by": self.changed_by,
        }
        doc.update(_drop_none(optional))
        return doc


@dataclass
class UpsertResult:
    """Counts reported by one upsert call.

    ``actions`` is aligned with the input offers and holds
    ``"created"``, ``"updated"`` or ``"unchanged"`` per offer.
    """

    created: int = 0
    updated: int = 0
    unchanged: int = 0
    history_created: int = 0
    actions: list[str] = field(
        default_factory=lambda: list[str]()
    )
