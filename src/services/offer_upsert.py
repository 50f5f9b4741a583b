# src/services/offer_upsert.py

"""Reconcile candidate offers with the offer store and record history.

Offers are identified by their match key, never by document id.  A
pricing change writes one append-only history entry and updates the
offer in place; an unchanged offer only gets its bookkeeping refreshed.
Each match key reaches the store at most once per batch; later
candidates with the same key are skipped and share the first one's
action.
Write errors propagate and abort the rest of the batch.
"""

import logging
import math
from dataclasses import astuple
from typing import Any

from src.models.offer import (
    BRAND_TIER,
    PRICING_FIELDS,
    RESEARCH_TIER,
    TELEHEALTH_TIER,
    VENDOR_TIERS,
    OfferMatchKey,
    OfferPriceHistoryEntry,
    UpsertResult,
    VendorOffer,
)
from src.models.scrape_result import utc_now
from src.storage.document_store import Document, DocumentStore

logger = logging.getLogger("offer_scraper.upsert")

OFFERS_COLLECTION = "vendor_offers"
HISTORY_COLLECTION = "vendor_offer_price_history"

ACTION_CREATED = "created"
ACTION_UPDATED = "updated"
ACTION_UNCHANGED = "unchanged"

# Pricing fields whose change counts as a price change, per tier
CHANGE_FIELDS: dict[str, tuple[str, ...]] = {
    RESEARCH_TIER: ("price_usd", "shipping_usd", "size_mg"),
    TELEHEALTH_TIER: ("subscription_price_monthly", "medication_cost_usd"),
    BRAND_TIER: ("price_per_dose", "total_package_price"),
}

# Derived fields reported alongside a change but never triggering one
DERIVED_FIELDS: dict[str, tuple[str, ...]] = {
    RESEARCH_TIER: ("price_per_mg",),
    TELEHEALTH_TIER: (),
    BRAND_TIER: (),
}

# Field the percentage change is computed on
PCT_FIELDS: dict[str, str] = {
    RESEARCH_TIER: "price_per_mg",
    TELEHEALTH_TIER: "subscription_price_monthly",
    BRAND_TIER: "price_per_dose",
}

# Missing research shipping means free shipping
_DEFAULT_ZERO: frozenset[str] = frozenset({"shipping_usd"})


def get_offer_match_key(offer: VendorOffer) -> OfferMatchKey:
    """Domain identity of *offer*; size is not part of a research key."""
    key = OfferMatchKey(
        vendor_id=offer.vendor_id,
        tier=offer.tier,
        peptide_name=offer.peptide_name,
    )
    pricing = offer.pricing.to_document()
    if offer.tier == TELEHEALTH_TIER:
        key.glp_type = pricing.get("glp_type")
        key.dose_mg_per_injection = pricing.get("dose_mg_per_injection")
    elif offer.tier == BRAND_TIER:
        key.dose_strength = pricing.get("dose_strength")
    return key


def _field_value(block: dict[str, Any], name: str) -> Any:
    value = block.get(name)
    if value is None and name in _DEFAULT_ZERO:
        return 0.0
    return value


def _differs(old: Any, new: Any) -> bool:
    if old is None or new is None:
        return old is not new
    if isinstance(old, (int, float)) and isinstance(new, (int, float)):
        return not math.isclose(old, new, rel_tol=0.0, abs_tol=1e-9)
    return bool(old != new)


def detect_pricing_changes(
    tier: str,
    old_block: dict[str, Any] | None,
    new_block: dict[str, Any],
) -> list[str]:
    """Names of the pricing fields that differ; empty when unchanged."""
    old = old_block or {}
    changed = [
        name
        for name in CHANGE_FIELDS[tier]
        if _differs(_field_value(old, name), _field_value(new_block, name))
    ]
    if not changed:
        return []
    changed.extend(
        name
        for name in DERIVED_FIELDS[tier]
        if _differs(old.get(name), new_block.get(name))
    )
    return changed


def calculate_change_pct(
    tier: str,
    old_block: dict[str, Any] | None,
    new_block: dict[str, Any],
) -> float | None:
    """Percent change of the tier's headline price; ``None`` from zero."""
    field_name = PCT_FIELDS[tier]
    old_value = (old_block or {}).get(field_name)
    new_value = new_block.get(field_name)
    if not isinstance(old_value, (int, float)) or not old_value:
        return None
    if not isinstance(new_value, (int, float)):
        return None
    return round((new_value - old_value) / old_value * 100, 2)


class OfferUpsertEngine:
    """Create, update or touch ``vendor_offers`` documents by match key."""

    def __init__(self, store: DocumentStore) -> None:
        self.store = store

    def find_offer(
        self, key: OfferMatchKey,
    ) -> tuple[str, Document] | None:
        """Return the existing offer for *key*, if any."""
        candidates = self.store.query(
            OFFERS_COLLECTION,
            vendor_id=key.vendor_id,
            tier=key.tier,
            peptide_name=key.peptide_name,
        )
        pricing_field = PRICING_FIELDS[key.tier]
        matches: list[tuple[str, Document]] = []
        for offer_id, doc in candidates:
            block = doc.get(pricing_field) or {}
            if key.tier == TELEHEALTH_TIER and (
                block.get("glp_type") != key.glp_type
                or block.get("dose_mg_per_injection")
                != key.dose_mg_per_injection
            ):
                continue
            if (
                key.tier == BRAND_TIER
                and block.get("dose_strength") != key.dose_strength
            ):
                continue
            matches.append((offer_id, doc))

        if not matches:
            return None
        if len(matches) > 1:
            logger.warning(
                "%d offers share match key %s, using %s",
                len(matches),
                key,
                matches[0][0],
            )
        return matches[0]

    def upsert(
        self,
        offers: list[VendorOffer],
        batch_id: str,
        user_id: str | None = None,
        job_id: str | None = None,
    ) -> UpsertResult:
        """Reconcile *offers* in order and report what happened to each."""
        result = UpsertResult()
        submitted_by = user_id or "system"
        # match key -> index of the action taken for it in this batch
        seen: dict[tuple[Any, ...], int] = {}

        for offer in offers:
            key = get_offer_match_key(offer)
            identity = astuple(key)
            if identity in seen:
                logger.warning(
                    "Skipping duplicate candidate for %s (%s, %s)",
                    key.peptide_name,
                    offer.vendor_id,
                    offer.product_url or "no url",
                )
                result.actions.append(result.actions[seen[identity]])
                continue
            seen[identity] = len(result.actions)

            existing = self.find_offer(key)
            if existing is None:
                self._create(offer, batch_id, submitted_by, job_id)
                result.created += 1
                result.actions.append(ACTION_CREATED)
                continue

            offer_id, doc = existing
            pricing_field = PRICING_FIELDS[offer.tier]
            old_block = doc.get(pricing_field)
            new_block = offer.pricing.to_document()
            changed = detect_pricing_changes(offer.tier, old_block, new_block)

            if changed:
                self._record_history(
                    offer_id, doc, offer, changed,
                    batch_id, submitted_by, job_id,
                )
                self._update(
                    offer_id, offer, batch_id, submitted_by, job_id,
                )
                result.updated += 1
                result.history_created += 1
                result.actions.append(ACTION_UPDATED)
            else:
                self._touch(offer_id, offer, batch_id)
                result.unchanged += 1
                result.actions.append(ACTION_UNCHANGED)

        logger.info(
            "Upsert batch %s: %d created, %d updated, %d unchanged",
            batch_id,
            result.created,
            result.updated,
            result.unchanged,
        )
        return result

    def get_offer_history(self, offer_id: str) -> list[Document]:
        """Price-history entries for *offer_id*, oldest first."""
        entries = self.store.query(HISTORY_COLLECTION, offer_id=offer_id)
        docs = [doc for _, doc in entries]
        return sorted(docs, key=lambda d: str(d.get("changed_at", "")))

    # ── Writes ───────────────────────────────────────────

    def _create(
        self,
        offer: VendorOffer,
        batch_id: str,
        submitted_by: str,
        job_id: str | None,
    ) -> str:
        now = utc_now().isoformat()
        doc = offer.to_document()
        doc.update({
            "verification_status": "unverified",
            "upload_batch_id": batch_id,
            "last_upload_batch_id": batch_id,
            "submitted_by": submitted_by,
            "created_at": now,
            "updated_at": now,
            "last_checked": now,
            "last_price_check": now,
        })
        if job_id:
            doc["scraper_job_id"] = job_id
        offer_id = self.store.add(OFFERS_COLLECTION, doc)
        logger.debug(
            "Created offer %s for %s / %s",
            offer_id,
            offer.vendor_id,
            offer.peptide_name,
        )
        return offer_id

    def _record_history(
        self,
        offer_id: str,
        existing: Document,
        offer: VendorOffer,
        changed: list[str],
        batch_id: str,
        submitted_by: str,
        job_id: str | None,
    ) -> None:
        pricing_field = PRICING_FIELDS[offer.tier]
        old_pricing = {
            tier: existing.get(PRICING_FIELDS[tier]) for tier in VENDOR_TIERS
        }
        new_pricing = dict(old_pricing)
        new_pricing[offer.tier] = offer.pricing.to_document()

        entry = OfferPriceHistoryEntry(
            offer_id=offer_id,
            vendor_id=offer.vendor_id,
            tier=offer.tier,
            peptide_name=offer.peptide_name,
            old_pricing=old_pricing,
            new_pricing=new_pricing,
            changed_fields=changed,
            changed_at=utc_now().isoformat(),
            price_change_pct=calculate_change_pct(
                offer.tier,
                existing.get(pricing_field),
                new_pricing[offer.tier] or {},
            ),
            upload_batch_id=batch_id,
            scraper_job_id=job_id,
            changed_by=submitted_by,
        )
        self.store.add(HISTORY_COLLECTION, entry.to_document())
        logger.info(
            "Price change for offer %s (%s): %s",
            offer_id,
            offer.peptide_name,
            ", ".join(changed),
        )

    def _update(
        self,
        offer_id: str,
        offer: VendorOffer,
        batch_id: str,
        submitted_by: str,
        job_id: str | None,
    ) -> None:
        now = utc_now().isoformat()
        data = offer.to_document()
        # verification_status is never overwritten on update
        data.pop("verification_status", None)
        data.update({
            "upload_batch_id": batch_id,
            "last_upload_batch_id": batch_id,
            "submitted_by": submitted_by,
            "updated_at": now,
            "last_checked": now,
            "last_price_check": now,
        })
        if job_id:
            data["scraper_job_id"] = job_id
        self.store.update(f"{OFFERS_COLLECTION}/{offer_id}", data)

    def _touch(
        self, offer_id: str, offer: VendorOffer, batch_id: str,
    ) -> None:
        now = utc_now().isoformat()
        data: Document = {
            "last_upload_batch_id": batch_id,
            "updated_at": now,
            "last_checked": now,
            "last_price_check": now,
        }
        if offer.last_scraped_at:
            data["last_scraped_at"] = offer.last_scraped_at
        self.store.update(f"{OFFERS_COLLECTION}/{offer_id}", data)
