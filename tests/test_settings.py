# tests/test_settings.py

"""Tests for the Settings configuration class."""

import unittest
from pathlib import Path

from src.config.settings import Settings


class TestSettings(unittest.TestCase):
    """Verify Settings constants."""

    def test_request_delay_is_positive_float(self) -> None:
        """REQUEST_DELAY must be a positive number."""
        self.assertIsInstance(Settings.REQUEST_DELAY, float)
        self.assertGreater(Settings.REQUEST_DELAY, 0)

    def test_request_timeout_is_positive_int(self) -> None:
        """REQUEST_TIMEOUT must be a positive integer."""
        self.assertIsInstance(Settings.REQUEST_TIMEOUT, int)
        self.assertGreater(Settings.REQUEST_TIMEOUT, 0)

    def test_max_retries_is_positive(self) -> None:
        """MAX_RETRIES must be >= 1."""
        self.assertGreaterEqual(Settings.MAX_RETRIES, 1)

    def test_circuit_breaker_threshold_positive(self) -> None:
        """CIRCUIT_BREAKER_THRESHOLD must be >= 1."""
        self.assertGreaterEqual(
            Settings.CIRCUIT_BREAKER_THRESHOLD, 1
        )

    def test_selector_thresholds(self) -> None:
        """Reuse threshold sits above the hard minimum."""
        self.assertEqual(Settings.SELECTOR_REUSE_CONFIDENCE, 0.6)
        self.assertEqual(Settings.SELECTOR_MIN_CONFIDENCE, 0.5)
        self.assertGreater(
            Settings.SELECTOR_REUSE_CONFIDENCE,
            Settings.SELECTOR_MIN_CONFIDENCE,
        )

    def test_selector_cache_ttl_is_a_week(self) -> None:
        """Cached selector sets live for seven days."""
        self.assertEqual(Settings.SELECTOR_CACHE_TTL_DAYS, 7)

    def test_sampling_limits(self) -> None:
        """Ten valid items per vendor, five dry-run samples."""
        self.assertEqual(Settings.ITEM_SAMPLE_LIMIT, 10)
        self.assertEqual(Settings.PREVIEW_SAMPLE_SIZE, 5)

    def test_path_constants_are_paths(self) -> None:
        """Path-typed settings are Path instances."""
        self.assertIsInstance(Settings.BASE_DIR, Path)
        self.assertIsInstance(Settings.DATA_DIR, Path)
        self.assertIsInstance(Settings.DB_PATH, Path)
        self.assertIsInstance(Settings.LOGS_DIR, Path)

    def test_impersonate_browser_is_string(self) -> None:
        """IMPERSONATE_BROWSER must be a non-empty string."""
        self.assertIsInstance(
            Settings.IMPERSONATE_BROWSER, str
        )
        self.assertTrue(len(Settings.IMPERSONATE_BROWSER) > 0)

    def test_default_headers_has_accept_language(self) -> None:
        """DEFAULT_HEADERS must include Accept-Language."""
        self.assertIn(
            "Accept-Language", Settings.DEFAULT_HEADERS
        )


if __name__ == "__main__":
    unittest.main()
