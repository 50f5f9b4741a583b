# tests/test_offer_upsert.py

"""Tests for offer reconciliation and price history."""

import unittest
from unittest.mock import patch

from src.models.offer import (
    BrandPricing,
    ResearchPricing,
    TelehealthPricing,
    VendorOffer,
)
from src.services.offer_upsert import (
    HISTORY_COLLECTION,
    OFFERS_COLLECTION,
    OfferUpsertEngine,
    calculate_change_pct,
    detect_pricing_changes,
    get_offer_match_key,
)
from src.storage.document_store import InMemoryDocumentStore


def _research(
    name: str = "BPC-157 5mg",
    size: float = 5.0,
    price: float = 45.0,
    shipping: float = 0.0,
) -> VendorOffer:
    return VendorOffer(
        vendor_id="labs",
        peptide_name=name,
        pricing=ResearchPricing(
            size_mg=size,
            price_usd=price,
            shipping_usd=shipping,
            price_per_mg=round((price + shipping) / size, 2),
        ),
        product_url="https://labs.test/p/bpc-157",
        last_scraped_at="2026-01-01T00:00:00+00:00",
    )


def _telehealth(dose: float | None) -> VendorOffer:
    return VendorOffer(
        vendor_id="clinic",
        peptide_name="Semaglutide",
        tier="telehealth",
        pricing=TelehealthPricing(
            subscription_price_monthly=199.0,
            glp_type="glp1",
            dose_mg_per_injection=dose,
        ),
    )


class TestMatchKey(unittest.TestCase):
    """Offer identity per tier."""

    def test_research_key_ignores_size(self) -> None:
        self.assertEqual(
            get_offer_match_key(_research(size=5.0)),
            get_offer_match_key(_research(size=10.0)),
        )

    def test_telehealth_key_includes_glp_and_dose(self) -> None:
        key = get_offer_match_key(_telehealth(0.25))
        self.assertEqual(key.glp_type, "glp1")
        self.assertEqual(key.dose_mg_per_injection, 0.25)

    def test_brand_key_includes_dose_strength(self) -> None:
        offer = VendorOffer(
            vendor_id="pharmacy",
            peptide_name="Ozempic",
            tier="brand",
            pricing=BrandPricing("0.5mg", 4, 250.0),
        )
        self.assertEqual(get_offer_match_key(offer).dose_strength, "0.5mg")


class TestChangeDetection(unittest.TestCase):
    """Field-level change detection and percent change."""

    def test_price_change_reports_derived_field(self) -> None:
        changed = detect_pricing_changes(
            "research",
            {"size_mg": 5, "price_usd": 45, "shipping_usd": 0, "price_per_mg": 9},
            {"size_mg": 5, "price_usd": 40, "shipping_usd": 0, "price_per_mg": 8},
        )
        self.assertEqual(changed, ["price_usd", "price_per_mg"])

    def test_missing_shipping_equals_zero(self) -> None:
        changed = detect_pricing_changes(
            "research",
            {"size_mg": 5, "price_usd": 45, "price_per_mg": 9},
            {"size_mg": 5, "price_usd": 45, "shipping_usd": 0.0, "price_per_mg": 9},
        )
        self.assertEqual(changed, [])

    def test_float_noise_ignored(self) -> None:
        changed = detect_pricing_changes(
            "research",
            {"size_mg": 5, "price_usd": 0.1 + 0.2, "shipping_usd": 0},
            {"size_mg": 5, "price_usd": 0.3, "shipping_usd": 0},
        )
        self.assertEqual(changed, [])

    def test_derived_only_difference_is_not_a_change(self) -> None:
        changed = detect_pricing_changes(
            "research",
            {"size_mg": 5, "price_usd": 45, "shipping_usd": 0, "price_per_mg": 9.5},
            {"size_mg": 5, "price_usd": 45, "shipping_usd": 0, "price_per_mg": 9},
        )
        self.assertEqual(changed, [])

    def test_change_pct(self) -> None:
        self.assertEqual(
            calculate_change_pct(
                "research", {"price_per_mg": 9.0}, {"price_per_mg": 8.0}
            ),
            -11.11,
        )

    def test_change_pct_from_zero_is_none(self) -> None:
        self.assertIsNone(
            calculate_change_pct(
                "research", {"price_per_mg": 0}, {"price_per_mg": 8.0}
            )
        )
        self.assertIsNone(
            calculate_change_pct("telehealth", None, {"subscription_price_monthly": 1})
        )


class TestUpsertEngine(unittest.TestCase):
    """Create, update and touch by match key."""

    def setUp(self) -> None:
        self.store = InMemoryDocumentStore()
        self.engine = OfferUpsertEngine(self.store)

    def _offers(self) -> list[tuple[str, dict]]:
        return self.store.list_documents(OFFERS_COLLECTION)

    def _history(self) -> list[tuple[str, dict]]:
        return self.store.list_documents(HISTORY_COLLECTION)

    def test_create_stamps_bookkeeping(self) -> None:
        result = self.engine.upsert([_research()], "batch-1", job_id="job-1")
        self.assertEqual((result.created, result.updated), (1, 0))
        self.assertEqual(result.actions, ["created"])

        (_, doc), = self._offers()
        self.assertEqual(doc["verification_status"], "unverified")
        self.assertEqual(doc["upload_batch_id"], "batch-1")
        self.assertEqual(doc["submitted_by"], "system")
        self.assertEqual(doc["scraper_job_id"], "job-1")
        self.assertEqual(doc["research_pricing"]["price_per_mg"], 9.0)

    def test_rerun_is_idempotent(self) -> None:
        self.engine.upsert([_research()], "batch-1")
        result = self.engine.upsert([_research()], "batch-2")

        self.assertEqual(result.unchanged, 1)
        self.assertEqual(result.actions, ["unchanged"])
        self.assertEqual(len(self._offers()), 1)
        self.assertEqual(self._history(), [])
        (_, doc), = self._offers()
        self.assertEqual(doc["upload_batch_id"], "batch-1")
        self.assertEqual(doc["last_upload_batch_id"], "batch-2")

    def test_price_change_updates_and_records_history(self) -> None:
        self.engine.upsert([_research()], "batch-1")
        result = self.engine.upsert(
            [_research(price=40.0)], "batch-2", user_id="admin", job_id="job-2"
        )
        self.assertEqual((result.updated, result.history_created), (1, 1))

        (offer_id, doc), = self._offers()
        self.assertEqual(doc["research_pricing"]["price_usd"], 40.0)
        history = self.engine.get_offer_history(offer_id)
        self.assertEqual(len(history), 1)
        entry = history[0]
        self.assertEqual(entry["changed_fields"], ["price_usd", "price_per_mg"])
        self.assertEqual(entry["old_research_pricing"]["price_usd"], 45.0)
        self.assertEqual(entry["new_research_pricing"]["price_usd"], 40.0)
        self.assertIsNone(entry["old_telehealth_pricing"])
        self.assertEqual(entry["price_change_pct"], -11.11)
        self.assertEqual(entry["changed_by"], "admin")
        self.assertEqual(entry["scraper_job_id"], "job-2")

    def test_verification_status_preserved(self) -> None:
        self.engine.upsert([_research()], "batch-1")
        (offer_id, _), = self._offers()
        self.store.update(
            f"{OFFERS_COLLECTION}/{offer_id}", {"verification_status": "verified"}
        )
        self.engine.upsert([_research(price=50.0)], "batch-2")
        doc = self.store.get(f"{OFFERS_COLLECTION}/{offer_id}")
        assert doc is not None
        self.assertEqual(doc["verification_status"], "verified")

    def test_size_change_updates_same_offer(self) -> None:
        self.engine.upsert([_research()], "batch-1")
        result = self.engine.upsert([_research(size=10.0, price=80.0)], "batch-2")
        self.assertEqual(result.actions, ["updated"])
        self.assertEqual(len(self._offers()), 1)
        (offer_id, _), = self._offers()
        entry = self.engine.get_offer_history(offer_id)[0]
        self.assertIn("size_mg", entry["changed_fields"])

    def test_telehealth_doses_are_distinct_offers(self) -> None:
        result = self.engine.upsert(
            [_telehealth(0.25), _telehealth(0.5), _telehealth(0.25)], "batch-1"
        )
        self.assertEqual(result.actions, ["created", "created", "created"])
        self.assertEqual(result.created, 2)
        self.assertEqual(len(self._offers()), 2)

    def test_same_key_twice_in_batch_is_idempotent(self) -> None:
        batch = [
            _research(name="BPC-157", size=5.0, price=30.0),
            _research(name="BPC-157", size=10.0, price=55.0),
        ]
        first = self.engine.upsert(batch, "batch-1")
        self.assertEqual(first.actions, ["created", "created"])
        self.assertEqual((first.created, first.history_created), (1, 0))

        second = self.engine.upsert(batch, "batch-2")
        self.assertEqual(second.actions, ["unchanged", "unchanged"])
        self.assertEqual((second.updated, second.history_created), (0, 0))
        self.assertEqual(self._history(), [])

        (_, doc), = self._offers()
        self.assertEqual(doc["research_pricing"]["size_mg"], 5.0)

    def test_write_error_aborts_rest_of_batch(self) -> None:
        batch = [
            _research(name="BPC-157"),
            _research(name="TB-500"),
            _research(name="GHK-Cu"),
        ]
        original_add = self.store.add
        calls: list[str] = []

        def flaky_add(collection: str, data: dict) -> str:
            calls.append(data["peptide_name"])
            if data["peptide_name"] == "TB-500":
                raise RuntimeError("offer store unavailable")
            return original_add(collection, data)

        with patch.object(self.store, "add", side_effect=flaky_add):
            with self.assertRaises(RuntimeError):
                self.engine.upsert(batch, "batch-1")

        self.assertEqual(calls, ["BPC-157", "TB-500"])
        self.assertEqual(
            [doc["peptide_name"] for _, doc in self._offers()], ["BPC-157"]
        )

    def test_zero_old_price_has_no_pct(self) -> None:
        self.store.add(OFFERS_COLLECTION, {
            "vendor_id": "labs",
            "tier": "research",
            "peptide_name": "BPC-157 5mg",
            "research_pricing": {
                "size_mg": 5.0,
                "price_usd": 0.0,
                "shipping_usd": 0.0,
                "price_per_mg": 0.0,
            },
        })
        self.engine.upsert([_research()], "batch-1")
        (_, entry), = self._history()
        self.assertNotIn("price_change_pct", entry)

    def test_history_sorted_oldest_first(self) -> None:
        self.store.add(HISTORY_COLLECTION, {"offer_id": "o1", "changed_at": "2026-02-01"})
        self.store.add(HISTORY_COLLECTION, {"offer_id": "o1", "changed_at": "2026-01-01"})
        self.store.add(HISTORY_COLLECTION, {"offer_id": "o2", "changed_at": "2026-01-15"})
        history = self.engine.get_offer_history("o1")
        self.assertEqual(
            [h["changed_at"] for h in history], ["2026-01-01", "2026-02-01"]
        )


if __name__ == "__main__":
    unittest.main()
