# src/config/settings.py

"""Central configuration for the offer_scraper pipeline."""

import os
from pathlib import Path

from curl_cffi.requests import BrowserTypeLiteral
from dotenv import load_dotenv

load_dotenv()


class Settings:
    """Central configuration for the offer_scraper pipeline."""

    # --- Fetching ---
    REQUEST_DELAY: float = float(
        os.getenv("OFFER_SCRAPER_REQUEST_DELAY", "1.5")
    )                                   # Seconds between requests
    REQUEST_TIMEOUT: int = 20           # Seconds before a request times out
    MAX_RETRIES: int = 3                # Retry count on transient failures

    # --- Resilience ---
    CIRCUIT_BREAKER_THRESHOLD: int = 3  # Consecutive failures to trip
    CIRCUIT_BREAKER_COOLDOWN: float = 60.0
    MAX_DELAY_MULTIPLIER: int = 8       # Cap for adaptive backoff
    CAPTCHA_KEYWORDS: list[str] = [
        "captcha",
        "verify you are human",
        "unusual traffic",
        "automated requests",
    ]

    # --- Selector discovery ---
    SELECTOR_REUSE_CONFIDENCE: float = 0.6   # Cached set reused as-is
    SELECTOR_MIN_CONFIDENCE: float = 0.5     # Below this the vendor fails
    SELECTOR_CACHE_TTL_DAYS: int = 7
    MIN_LISTING_LINKS: int = 2               # Repeated cards for a category

    # --- Audit trail ---
    ITEM_SAMPLE_LIMIT: int = 10         # Valid items persisted per vendor
    PREVIEW_SAMPLE_SIZE: int = 5        # Samples returned by a dry run

    # --- Browser Impersonation ---
    IMPERSONATE_BROWSER: BrowserTypeLiteral = "chrome131"
    DEFAULT_HEADERS: dict[str, str] = {
        "Accept": (
            "text/html,application/xhtml+xml,"
            "application/xml;q=0.9,image/avif,"
            "image/webp,image/apng,*/*;q=0.8"
        ),
        "Accept-Language": "en-US,en;q=0.9",
        "sec-ch-ua": (
            '"Google Chrome";v="131", '
            '"Chromium";v="131", '
            '"Not_A Brand";v="24"'
        ),
        "sec-ch-ua-mobile": "?0",
        "sec-ch-ua-platform": '"Windows"',
        "sec-fetch-dest": "document",
        "sec-fetch-mode": "navigate",
        "sec-fetch-site": "none",
        "sec-fetch-user": "?1",
        "Upgrade-Insecure-Requests": "1",
    }

    # --- Paths ---
    BASE_DIR: Path = Path(__file__).resolve().parent.parent.parent
    DATA_DIR: Path = BASE_DIR / "data"
    DB_PATH: Path = Path(
        os.getenv(
            "OFFER_SCRAPER_DB_PATH",
            str(DATA_DIR / "offer_store.db"),
        )
    )
    LOGS_DIR: Path = Path(
        os.getenv("OFFER_SCRAPER_LOGS_DIR", str(BASE_DIR / "logs"))
    )
    CONSOLE_LOG_LEVEL: str = os.getenv("OFFER_SCRAPER_LOG_LEVEL", "WARNING")
