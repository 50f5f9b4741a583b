# tests/test_item_logger.py

"""Tests for sampled item logging."""

import unittest
from unittest.mock import patch

from src.models.scrape_result import RawScrapeResult
from src.services.item_logger import ItemLogger, items_path
from src.storage.document_store import InMemoryDocumentStore


def _valid(name: str) -> RawScrapeResult:
    return RawScrapeResult(
        vendor_name="Labs",
        peptide_name=name,
        product_url=f"https://labs.test/p/{name.lower()}",
        size_mg=5.0,
        price_usd=45.0,
        raw_price_text="$45.00",
        raw_size_text="5mg",
        valid=True,
    )


def _invalid(name: str) -> RawScrapeResult:
    return RawScrapeResult(
        vendor_name="Labs",
        peptide_name=name,
        price_usd=45.0,
        raw_price_text="$45.00",
        validation_error="missing size",
    )


class TestSelectItems(unittest.TestCase):
    """All failures plus the first N successes are kept."""

    def setUp(self) -> None:
        self.logger = ItemLogger(InMemoryDocumentStore())

    def test_failures_plus_capped_sample(self) -> None:
        results = [_valid(f"P{i}") for i in range(15)]
        results[3:3] = [_invalid("Bad1"), _invalid("Bad2")]
        items = self.logger.select_items("j1", "labs", results)

        self.assertEqual(len(items), 2 + 10)
        failed = [i for i in items if i.status == "validation_failed"]
        self.assertEqual(
            [i.validation_error for i in failed], ["missing size"] * 2
        )
        self.assertEqual(
            {i.storage_reason for i in failed}, {"validation_failed"}
        )
        sampled = [i.peptide_name for i in items if i.status == "success"]
        self.assertEqual(sampled, [f"P{i}" for i in range(10)])

    def test_small_runs_keep_everything(self) -> None:
        items = self.logger.select_items(
            "j1", "labs", [_valid("A"), _invalid("B")]
        )
        self.assertEqual(len(items), 2)

    def test_offer_actions_follow_valid_order(self) -> None:
        results = [_valid("A"), _invalid("B"), _valid("C")]
        items = self.logger.select_items(
            "j1", "labs", results, ["created", "unchanged"]
        )
        actions = {i.peptide_name: i.offer_action for i in items}
        self.assertEqual(
            actions, {"A": "created", "B": None, "C": "unchanged"}
        )

    def test_sample_carries_price_per_mg(self) -> None:
        (item,) = self.logger.select_items("j1", "labs", [_valid("A")])
        self.assertEqual(item.price_per_mg, 9.0)
        self.assertEqual(item.storage_reason, "sample")


class TestLogItems(unittest.TestCase):
    """Persistence is one atomic batch under the vendor record."""

    def setUp(self) -> None:
        self.store = InMemoryDocumentStore()
        self.logger = ItemLogger(self.store)

    def test_single_batch_commit(self) -> None:
        results = [_valid("A"), _invalid("B")]
        with patch.object(
            self.store, "commit_batch", wraps=self.store.commit_batch
        ) as mock_commit:
            count = self.logger.log_items("j1", "labs", results, ["created"])
        self.assertEqual(count, 2)
        mock_commit.assert_called_once()

        docs = [d for _, d in self.store.list_documents(items_path("j1", "labs"))]
        self.assertEqual(len(docs), 2)
        by_name = {d["peptide_name"]: d for d in docs}
        self.assertEqual(by_name["A"]["offer_action"], {"action": "created"})
        self.assertNotIn("offer_action", by_name["B"])
        self.assertEqual(by_name["B"]["status"], "validation_failed")

    def test_nothing_to_log(self) -> None:
        with patch.object(self.store, "commit_batch") as mock_commit:
            self.assertEqual(self.logger.log_items("j1", "labs", []), 0)
        mock_commit.assert_not_called()


if __name__ == "__main__":
    unittest.main()
