# tests/test_vendor_urls.py

"""Tests for whitelist administration."""

import unittest

from src.scrapers.exceptions import WhitelistConfigError
from src.services.vendor_urls import get_vendor_urls, save_vendor_urls
from src.storage.document_store import InMemoryDocumentStore


class TestSaveVendorUrls(unittest.TestCase):
    """URLs are validated, cleaned and stored in order."""

    def setUp(self) -> None:
        self.store = InMemoryDocumentStore()

    def test_saves_clean_list(self) -> None:
        whitelist = save_vendor_urls(
            self.store,
            "labs",
            "Labs",
            [
                " https://labs.test/peptides ",
                "",
                "https://labs.test/p/bpc-157",
                "https://labs.test/peptides",
            ],
        )
        self.assertEqual(
            whitelist.allowed_urls,
            ["https://labs.test/peptides", "https://labs.test/p/bpc-157"],
        )
        self.assertIsNotNone(whitelist.last_updated)

        stored = get_vendor_urls(self.store, "labs")
        assert stored is not None
        self.assertEqual(stored.allowed_urls, whitelist.allowed_urls)
        self.assertEqual(stored.vendor_name, "Labs")

    def test_relative_url_rejected(self) -> None:
        with self.assertRaises(WhitelistConfigError) as ctx:
            save_vendor_urls(self.store, "labs", "Labs", ["/peptides"])
        self.assertEqual(str(ctx.exception), "Invalid URL: /peptides")
        self.assertIsNone(get_vendor_urls(self.store, "labs"))

    def test_non_http_scheme_rejected(self) -> None:
        with self.assertRaises(WhitelistConfigError):
            save_vendor_urls(self.store, "labs", "Labs", ["ftp://labs.test/x"])

    def test_empty_list_rejected(self) -> None:
        with self.assertRaises(WhitelistConfigError) as ctx:
            save_vendor_urls(self.store, "labs", "Labs", ["  ", ""])
        self.assertEqual(str(ctx.exception), "At least one URL is required")

    def test_overwrites_previous_whitelist(self) -> None:
        save_vendor_urls(self.store, "labs", "Labs", ["https://labs.test/a"])
        save_vendor_urls(self.store, "labs", "Labs", ["https://labs.test/b"])
        stored = get_vendor_urls(self.store, "labs")
        assert stored is not None
        self.assertEqual(stored.allowed_urls, ["https://labs.test/b"])


if __name__ == "__main__":
    unittest.main()
