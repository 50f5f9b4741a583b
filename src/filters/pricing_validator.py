# src/filters/pricing_validator.py

"""Tier-isolated pricing validation.

Research-tier results are validated strictly on size, price and
price-per-mg.  No rule here ever reads another tier's pricing data,
and nothing is inferred: a result missing a size or a price is
invalid, never completed from elsewhere.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, cast

from src.models.offer import (
    BRAND_TIER,
    RESEARCH_TIER,
    TELEHEALTH_TIER,
    BrandPricing,
    PricingBlock,
    ResearchPricing,
    TelehealthPricing,
)
from src.models.scrape_result import RawScrapeResult

logger = logging.getLogger("offer_scraper.validator")

MISSING_NAME = "missing peptide name"
MISSING_SIZE = "missing size"
MISSING_PRICE = "missing price"


@dataclass
class ValidationReport:
    """Structural validation outcome for a manually supplied offer."""

    is_valid: bool
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    warnings: list[str] = field(
        default_factory=lambda: list[str]()
    )


def _is_positive(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value > 0
    )


def _is_non_negative(value: Any) -> bool:
    return (
        isinstance(value, (int, float))
        and not isinstance(value, bool)
        and value >= 0
    )


def calculate_price_per_mg(
    price_usd: float,
    size_mg: float,
    shipping_usd: float = 0.0,
) -> float:
    """Total price divided by vial size, rounded to cents."""
    return round((price_usd + (shipping_usd or 0.0)) / size_mg, 2)


class PricingValidator:
    """Accept or reject scrape results and build research pricing."""

    @staticmethod
    def build_pricing(
        size_mg: float | None,
        price_usd: float | None,
        shipping_usd: float | None = 0.0,
    ) -> ResearchPricing | None:
        """Return a pricing block iff both size and price are positive."""
        if not _is_positive(size_mg):
            logger.debug("Rejecting pricing with size_mg=%s", size_mg)
            return None
        if not _is_positive(price_usd):
            logger.debug("Rejecting pricing with price_usd=%s", price_usd)
            return None
        size = float(cast(float, size_mg))
        price = float(cast(float, price_usd))
        shipping = (
            float(cast(float, shipping_usd))
            if _is_non_negative(shipping_usd)
            else 0.0
        )
        return ResearchPricing(
            size_mg=size,
            price_usd=price,
            shipping_usd=shipping,
            price_per_mg=calculate_price_per_mg(price, size, shipping),
        )

    @staticmethod
    def validate(result: RawScrapeResult) -> RawScrapeResult:
        """Set ``valid`` and ``validation_error`` on *result* in place."""
        reason = ""
        if not result.peptide_name.strip():
            reason = MISSING_NAME
        elif not _is_positive(result.size_mg):
            reason = MISSING_SIZE
        elif not _is_positive(result.price_usd):
            reason = MISSING_PRICE

        result.valid = not reason
        result.validation_error = reason
        if reason:
            logger.debug(
                "Invalid result (%s) for %s: %s",
                reason,
                result.vendor_name,
                result.product_url,
            )
        return result


# ── Structural validators per tier ───────────────────────


def validate_research_offer(data: dict[str, Any]) -> ValidationReport:
    """Validate a tier-1 (research) offer payload."""
    errors: list[str] = []
    warnings: list[str] = []

    if not data.get("vendor_name"):
        errors.append("vendor_name is required")
    if not data.get("peptide_name"):
        errors.append("peptide_name is required")

    size = data.get("size_mg")
    if size is None:
        errors.append("size_mg is required")
    elif not _is_positive(size):
        errors.append("size_mg must be a positive number")

    price = data.get("price_usd")
    if price is None:
        errors.append("price_usd is required")
    elif not _is_non_negative(price):
        errors.append("price_usd must be a non-negative number")

    shipping = data.get("shipping_usd")
    if shipping is not None and not _is_non_negative(shipping):
        errors.append("shipping_usd must be a non-negative number")

    if not data.get("product_url"):
        warnings.append("product_url is missing (recommended)")
    if not data.get("vendor_url"):
        warnings.append("vendor_url is missing (recommended)")

    return ValidationReport(not errors, errors, warnings)


def validate_telehealth_offer(data: dict[str, Any]) -> ValidationReport:
    """Validate a tier-2 (telehealth) offer payload."""
    errors: list[str] = []
    warnings: list[str] = []

    if not data.get("vendor_name"):
        errors.append("vendor_name is required")
    if not data.get("peptide_name"):
        errors.append("peptide_name is required")

    monthly = data.get("subscription_price_monthly")
    if monthly is None:
        errors.append("subscription_price_monthly is required")
    elif not _is_non_negative(monthly):
        errors.append(
            "subscription_price_monthly must be a non-negative number"
        )

    glp_type = data.get("glp_type")
    if not glp_type:
        errors.append("glp_type is required")
    elif glp_type not in ("glp1", "glp1_glp2"):
        errors.append('glp_type must be "glp1" or "glp1_glp2"')

    medication = data.get("medication_cost_usd")
    if medication is not None and not _is_non_negative(medication):
        errors.append("medication_cost_usd must be a non-negative number")

    dose = data.get("dose_mg_per_injection")
    if dose is not None and not _is_positive(dose):
        errors.append("dose_mg_per_injection must be a positive number")

    if not data.get("product_url"):
        warnings.append("product_url is missing (recommended)")

    return ValidationReport(not errors, errors, warnings)


def validate_brand_offer(data: dict[str, Any]) -> ValidationReport:
    """Validate a tier-3 (brand) offer payload."""
    errors: list[str] = []
    warnings: list[str] = []

    if not data.get("vendor_name"):
        errors.append("vendor_name is required")
    if not data.get("peptide_name"):
        errors.append("peptide_name is required")
    if not data.get("dose_strength"):
        errors.append("dose_strength is required")

    doses = data.get("doses_per_package")
    if doses is None:
        errors.append("doses_per_package is required")
    elif not _is_positive(doses) or doses < 1:
        errors.append("doses_per_package must be at least 1")

    per_dose = data.get("price_per_dose")
    if per_dose is None:
        errors.append("price_per_dose is required")
    elif not _is_non_negative(per_dose):
        errors.append("price_per_dose must be a non-negative number")

    total = data.get("total_package_price")
    if total is not None and not _is_non_negative(total):
        errors.append("total_package_price must be a non-negative number")

    if not data.get("product_url"):
        warnings.append("product_url is missing (recommended)")

    return ValidationReport(not errors, errors, warnings)


_TIER_VALIDATORS = {
    RESEARCH_TIER: validate_research_offer,
    TELEHEALTH_TIER: validate_telehealth_offer,
    BRAND_TIER: validate_brand_offer,
}


def validate_offer_by_tier(
    tier: str, data: dict[str, Any],
) -> ValidationReport:
    """Dispatch to the validator for *tier* only."""
    validator = _TIER_VALIDATORS.get(tier)
    if validator is None:
        return ValidationReport(False, [f"Unknown tier: {tier}"])
    return validator(data)


def build_pricing_by_tier(
    tier: str, data: dict[str, Any],
) -> PricingBlock | None:
    """Build the pricing block for *tier* from a flat payload."""
    if tier == RESEARCH_TIER:
        return PricingValidator.build_pricing(
            data.get("size_mg"),
            data.get("price_usd"),
            data.get("shipping_usd", 0.0),
        )
    if tier == TELEHEALTH_TIER:
        return TelehealthPricing(
            subscription_price_monthly=data["subscription_price_monthly"],
            glp_type=data["glp_type"],
            medication_cost_usd=data.get("medication_cost_usd") or None,
            dose_mg_per_injection=data.get("dose_mg_per_injection") or None,
        )
    if tier == BRAND_TIER:
        return BrandPricing(
            dose_strength=data["dose_strength"],
            doses_per_package=data["doses_per_package"],
            price_per_dose=data["price_per_dose"],
            total_package_price=data.get("total_package_price") or None,
        )
    raise ValueError(f"Unknown tier: {tier}")
