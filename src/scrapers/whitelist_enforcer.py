# src/scrapers/whitelist_enforcer.py

"""Gatekeeper for all outbound fetches: the pipeline's only egress path."""

import logging
import time
from typing import Any
from urllib.parse import urlparse

import cloudscraper  # type: ignore[import-untyped]
from curl_cffi import requests as curl_requests

from src.config.settings import Settings
from src.models.vendor_config import VendorUrlWhitelist
from src.scrapers.exceptions import AccessDeniedError, FetchError


def _canonical(url: str) -> str:
    """Comparable form of a URL for whitelist membership checks."""
    parsed = urlparse(url.strip())
    path = parsed.path.rstrip("/") or "/"
    query = f"?{parsed.query}" if parsed.query else ""
    return f"{parsed.scheme.lower()}://{parsed.netloc.lower()}{path}{query}"


def _bare_host(url: str) -> str:
    """Lower-cased hostname without a leading ``www.``."""
    host = (urlparse(url.strip()).hostname or "").lower()
    return host[4:] if host.startswith("www.") else host


class WhitelistEnforcer:
    """Validates URLs against a vendor allow-list before fetching them.

    Fetching goes through a browser-impersonating ``curl_cffi`` session
    with retries, challenge detection, adaptive delay and a circuit
    breaker.  A ``cloudscraper`` fallback is tried only when the
    primary client was blocked.
    """

    # Cloudflare challenge page markers (checked before keyword scan)
    _CF_CHALLENGE_MARKERS: list[str] = [
        "challenges.cloudflare.com",
        "cdn-cgi/challenge-platform",
        "just a moment",
        "cf-turnstile",
        "cf_chl_opt",
    ]

    def __init__(
        self,
        whitelist: VendorUrlWhitelist,
        session: Any | None = None,
    ) -> None:
        self.whitelist = whitelist
        self.vendor_name = whitelist.vendor_name
        self.logger = logging.getLogger("offer_scraper.enforcer")
        self.settings = Settings()
        self.session = (
            session
            if session is not None
            else curl_requests.Session(
                impersonate=self.settings.IMPERSONATE_BROWSER
            )
        )
        self._allowed: frozenset[str] = frozenset(
            _canonical(u) for u in whitelist.allowed_urls
        )
        self._hosts: frozenset[str] = frozenset(
            h for h in (_bare_host(u) for u in whitelist.allowed_urls) if h
        )
        self._current_delay: float = self.settings.REQUEST_DELAY
        self._consecutive_failures: int = 0
        self._circuit_open: bool = False
        self._circuit_opened_at: float = 0.0
        self._blocked: bool = False
        self.pages_visited: int = 0

    # ── Predicates ───────────────────────────────────────

    def is_allowed(self, url: str) -> bool:
        """True when *url* is explicitly on the whitelist."""
        if not url:
            return False
        return _canonical(url) in self._allowed

    def is_same_domain(self, url: str) -> bool:
        """True when *url* is http(s) on a whitelisted host or subdomain."""
        if not url:
            return False
        if urlparse(url).scheme.lower() not in ("http", "https"):
            return False
        host = _bare_host(url)
        if not host:
            return False
        return any(
            host == allowed or host.endswith(f".{allowed}")
            for allowed in self._hosts
        )

    # ── Fetching ─────────────────────────────────────────

    def fetch(self, url: str) -> str:
        """Return the HTML at *url*.

        Raises:
            AccessDeniedError: *url* is not whitelisted; no request is made.
            FetchError: every retry and the fallback failed.
        """
        if not self.is_allowed(url):
            self.logger.warning(
                "[%s] Blocked non-whitelisted URL: %s",
                self.vendor_name,
                url,
            )
            raise AccessDeniedError(url, self.vendor_name)

        if self._check_circuit():
            raise FetchError(
                f"Circuit breaker open, skipping {url}"
            )

        headers: dict[str, str] = {
            **self.settings.DEFAULT_HEADERS,
            "Referer": self.whitelist.allowed_urls[0],
        }
        self._wait()
        self._blocked = False

        # Primary: curl_cffi (browser-impersonating TLS)
        text = self._fetch_get(url, headers)
        if text is not None:
            self.pages_visited += 1
            return text

        if self._blocked:
            text = self._fetch_fallback(url, headers)
            if text is not None:
                self.pages_visited += 1
                return text

        raise FetchError(f"Failed to fetch {url}")

    def _wait(self) -> None:
        """Sleep using the current (possibly escalated) delay."""
        time.sleep(self._current_delay)

    def _validate_response(self, text: str) -> bool:
        """Check for Cloudflare challenge pages and CAPTCHA indicators."""
        lower = text.lower()

        for marker in self._CF_CHALLENGE_MARKERS:
            if marker in lower:
                self.logger.warning(
                    "[%s] Cloudflare challenge detected "
                    "(marker: '%s')",
                    self.vendor_name,
                    marker,
                )
                return False

        # Skip keyword scan on real pages to avoid false positives
        has_body_content = (
            "<body" in lower and len(text) > 5000
        )
        if not has_body_content:
            for keyword in self.settings.CAPTCHA_KEYWORDS:
                if keyword in lower:
                    self.logger.warning(
                        "[%s] CAPTCHA keyword '%s' detected",
                        self.vendor_name,
                        keyword,
                    )
                    return False
        return True

    def _check_circuit(self) -> bool:
        """Return True if the circuit breaker blocks this request.

        After CIRCUIT_BREAKER_COOLDOWN seconds the breaker enters
        a half-open state, allowing a single probe request through.
        """
        if not self._circuit_open:
            return False
        elapsed = time.time() - self._circuit_opened_at
        if elapsed >= self.settings.CIRCUIT_BREAKER_COOLDOWN:
            self.logger.info(
                "[%s] Circuit breaker half-open after %.0fs",
                self.vendor_name,
                elapsed,
            )
            self._circuit_open = False
            return False
        return True

    def _record_success(self) -> None:
        """Reset failure counters after a successful fetch."""
        self._consecutive_failures = 0
        self._circuit_open = False
        self._circuit_opened_at = 0.0
        self._current_delay = self.settings.REQUEST_DELAY

    def _record_failure(self) -> None:
        """Track failure and open circuit breaker if needed."""
        self._consecutive_failures += 1
        if (
            self._consecutive_failures
            >= self.settings.CIRCUIT_BREAKER_THRESHOLD
        ):
            self._circuit_open = True
            self._circuit_opened_at = time.time()
            self.logger.error(
                "[%s] Circuit breaker opened after %d "
                "consecutive failures",
                self.vendor_name,
                self._consecutive_failures,
            )

    def _escalate_delay(self) -> None:
        """Double the current delay up to the configured max."""
        max_delay = (
            self.settings.REQUEST_DELAY
            * self.settings.MAX_DELAY_MULTIPLIER
        )
        self._current_delay = min(
            self._current_delay * 2, max_delay
        )
        self.logger.warning(
            "[%s] Rate-limited, delay escalated to %.1fs",
            self.vendor_name,
            self._current_delay,
        )

    def _fetch_get(
        self,
        url: str,
        headers: dict[str, str],
    ) -> str | None:
        """GET with retries, adaptive delay, and circuit breaker."""
        for attempt in range(self.settings.MAX_RETRIES):
            try:
                resp = self.session.get(
                    url,
                    headers=headers,
                    timeout=self.settings.REQUEST_TIMEOUT,
                )
                if resp.status_code == 200:
                    text = str(resp.text)
                    if not self._validate_response(text):
                        self._blocked = True
                        self._escalate_delay()
                        time.sleep(self._current_delay)
                        continue
                    self._record_success()
                    return text
                self.logger.warning(
                    "[%s] HTTP %d on attempt %d for %s",
                    self.vendor_name,
                    resp.status_code,
                    attempt + 1,
                    url,
                )
                if resp.status_code in (429, 403):
                    self._blocked = True
                    self._escalate_delay()
                    time.sleep(self._current_delay)
                elif resp.status_code == 404:
                    break
            except Exception as exc:
                self.logger.warning(
                    "[%s] Request error on attempt %d: %s",
                    self.vendor_name,
                    attempt + 1,
                    exc,
                    exc_info=True,
                )
                time.sleep(
                    self._current_delay * (attempt + 1)
                )
        self._record_failure()
        return None

    def _fetch_fallback(
        self,
        url: str,
        headers: dict[str, str],
    ) -> str | None:
        """Retry a blocked URL through cloudscraper's challenge solver."""
        self.logger.info(
            "[%s] curl_cffi blocked, falling back to cloudscraper",
            self.vendor_name,
        )
        try:
            _cs: Any = cloudscraper
            scraper: Any = _cs.create_scraper()
            resp: Any = scraper.get(
                url,
                headers=headers,
                timeout=self.settings.REQUEST_TIMEOUT,
            )
            if resp.status_code == 200:
                self._record_success()
                return str(resp.text)
        except Exception as exc:
            self.logger.error(
                "[%s] cloudscraper fallback also failed: %s",
                self.vendor_name,
                exc,
                exc_info=True,
            )
        return None
