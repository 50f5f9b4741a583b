# src/services/scrape_job_runner.py

"""Job orchestration across vendors, plus cancel and dry-run operations.

Vendors run strictly one after another.  Each vendor's scrape,
validate, upsert and item-logging sequence is isolated: a failure is
recorded against that vendor and the loop moves on.  Cancellation is
observed only between vendors by re-reading the job's status.
"""

import logging
import uuid
from collections import Counter
from collections.abc import Callable
from typing import Any

from src.config.settings import Settings
from src.filters.pricing_validator import PricingValidator
from src.models.offer import RESEARCH_TIER, UpsertResult, VendorOffer
from src.models.scrape_job import (
    JOB_CANCELLED,
    JOB_COMPLETED,
    JOB_FAILED,
    JOB_RUNNING,
    VENDOR_FAILED,
    VENDOR_PARTIAL,
    ScrapeJob,
    VendorJobRecord,
)
from src.models.scrape_result import RawScrapeResult, utc_now
from src.scrapers.exceptions import JobNotFoundError, JobStateError
from src.scrapers.vendor_scraper import (
    VendorScraper,
    get_vendor_scraper,
    load_vendor_scrapers,
)
from src.services.item_logger import ItemLogger
from src.services.offer_upsert import OfferUpsertEngine
from src.storage.document_store import DocumentStore

logger = logging.getLogger("offer_scraper.runner")

JOBS_COLLECTION = "scraper_jobs"
NO_VENDORS_MESSAGE = "No vendors configured for scraping"
NO_VALID_PRODUCTS_MESSAGE = "No valid products scraped"


def job_path(job_id: str) -> str:
    return f"{JOBS_COLLECTION}/{job_id}"


def vendor_record_path(job_id: str, vendor_id: str) -> str:
    return f"{JOBS_COLLECTION}/{job_id}/vendors/{vendor_id}"


def build_vendor_offer(
    vendor_id: str, result: RawScrapeResult,
) -> VendorOffer:
    """Turn a validated result into a research-tier candidate offer.

    Raises:
        ValueError: *result* has no positive size and price.
    """
    pricing = PricingValidator.build_pricing(
        result.size_mg, result.price_usd, result.shipping_usd
    )
    if pricing is None:
        raise ValueError(
            f"Cannot build pricing for {result.peptide_name!r}"
        )
    return VendorOffer(
        vendor_id=vendor_id,
        peptide_name=result.peptide_name,
        pricing=pricing,
        tier=RESEARCH_TIER,
        vendor_url=result.vendor_url,
        product_url=result.product_url,
        price_source_type=result.price_source_type,
        last_scraped_at=result.scraped_at.isoformat(),
    )


class ScrapeJobRunner:
    """Runs every configured vendor under one ``ScrapeJob``."""

    def __init__(
        self,
        store: DocumentStore,
        scraper_loader: Callable[
            [DocumentStore], list[VendorScraper]
        ] = load_vendor_scrapers,
    ) -> None:
        self.store = store
        self.scraper_loader = scraper_loader
        self.validator = PricingValidator()
        self.upsert_engine = OfferUpsertEngine(store)
        self.item_logger = ItemLogger(store)

    def run_all(
        self,
        trigger_type: str = "manual",
        triggered_by: str | None = None,
    ) -> str:
        """Run a full job and return its id."""
        job = ScrapeJob(
            job_id=str(uuid.uuid4()),
            trigger_type=trigger_type,
            started_at=utc_now().isoformat(),
            triggered_by=triggered_by,
        )
        self.store.set(job_path(job.job_id), job.to_document())
        logger.info(
            "Job %s started (%s)", job.job_id, trigger_type
        )

        scrapers = self.scraper_loader(self.store)
        if not scrapers:
            job.status = JOB_FAILED
            job.completed_at = utc_now().isoformat()
            job.error_messages.append(NO_VENDORS_MESSAGE)
            self.store.update(job_path(job.job_id), {
                "status": job.status,
                "completed_at": job.completed_at,
                "error_messages": job.error_messages,
            })
            logger.error("Job %s: %s", job.job_id, NO_VENDORS_MESSAGE)
            return job.job_id

        cancelled = False
        for scraper in scrapers:
            if self._is_cancelled(job.job_id):
                logger.info(
                    "Job %s cancelled, stopping before %s",
                    job.job_id,
                    scraper.vendor_name,
                )
                cancelled = True
                break

            try:
                record = self._run_vendor(job.job_id, scraper)
            except Exception as exc:
                job.vendors_failed += 1
                job.error_messages.append(
                    f"{scraper.vendor_name}: {exc}"
                )
                logger.error(
                    "[%s] Vendor failed: %s",
                    scraper.vendor_name,
                    exc,
                    exc_info=True,
                )
                continue

            job.vendors_succeeded += 1
            job.total_products_scraped += record.products_scraped
            job.total_products_valid += record.products_valid
            job.total_created += record.offers_created
            job.total_updated += record.offers_updated
            job.total_unchanged += record.offers_unchanged

        final: dict[str, Any] = job.totals()
        # A cancel that lands after the last vendor still wins
        cancelled = cancelled or self._is_cancelled(job.job_id)
        if not cancelled:
            all_failed = job.vendors_succeeded == 0
            job.status = JOB_FAILED if all_failed else JOB_COMPLETED
            job.completed_at = utc_now().isoformat()
            final["status"] = job.status
            final["completed_at"] = job.completed_at
        self.store.update(job_path(job.job_id), final)

        logger.info(
            "Job %s finished: %d vendors ok, %d failed%s",
            job.job_id,
            job.vendors_succeeded,
            job.vendors_failed,
            " (cancelled)" if cancelled else "",
        )
        return job.job_id

    def _is_cancelled(self, job_id: str) -> bool:
        doc = self.store.get(job_path(job_id))
        return doc is not None and doc.get("status") == JOB_CANCELLED

    def _run_vendor(
        self, job_id: str, scraper: VendorScraper,
    ) -> VendorJobRecord:
        """Scrape, validate, upsert and log one vendor.

        The vendor record is written whatever happens; exceptions are
        re-raised for the job loop to count.
        """
        record = VendorJobRecord(
            job_id=job_id,
            vendor_id=scraper.vendor_id,
            vendor_name=scraper.vendor_name,
            started_at=utc_now().isoformat(),
        )
        try:
            results = scraper.scrape()
            for result in results:
                self.validator.validate(result)
            valid = [r for r in results if r.valid]
            invalid = [r for r in results if not r.valid]

            record.products_found = max(scraper.products_found, len(results))
            record.products_scraped = len(results)
            record.products_valid = len(valid)
            record.products_failed = len(invalid)
            record.validation_failures = dict(
                Counter(r.validation_error for r in invalid)
            )

            outcome = UpsertResult()
            if valid:
                offers = [
                    build_vendor_offer(scraper.vendor_id, r) for r in valid
                ]
                outcome = self.upsert_engine.upsert(
                    offers, batch_id=job_id, job_id=job_id
                )
            record.offers_created = outcome.created
            record.offers_updated = outcome.updated
            record.offers_unchanged = outcome.unchanged

            self.item_logger.log_items(
                job_id, scraper.vendor_id, results, outcome.actions
            )

            if not valid:
                record.status = VENDOR_FAILED
                record.errors.append(NO_VALID_PRODUCTS_MESSAGE)
            elif invalid:
                record.status = VENDOR_PARTIAL
                record.warnings.append(
                    f"{len(invalid)} products failed validation"
                )
        except Exception as exc:
            record.status = VENDOR_FAILED
            record.errors.append(str(exc))
            raise
        finally:
            record.pages_visited = scraper.pages_visited
            record.completed_at = utc_now().isoformat()
            self.store.set(
                vendor_record_path(job_id, scraper.vendor_id),
                record.to_document(),
            )
        return record


def cancel_job(
    store: DocumentStore, job_id: str, cancelled_by: str,
) -> None:
    """Mark a running job cancelled; the runner stops before its next vendor.

    Raises:
        JobNotFoundError: no job with *job_id*.
        JobStateError: the job is not running.
    """
    doc = store.get(job_path(job_id))
    if doc is None:
        raise JobNotFoundError(f"Job {job_id} not found")
    status = doc.get("status")
    if status != JOB_RUNNING:
        raise JobStateError(
            f"Job {job_id} is not running (status: {status})"
        )
    now = utc_now().isoformat()
    store.update(job_path(job_id), {
        "status": JOB_CANCELLED,
        "cancelled_at": now,
        "cancelled_by": cancelled_by,
        "completed_at": now,
    })
    logger.info("Job %s cancelled by %s", job_id, cancelled_by)


def _preview(result: RawScrapeResult) -> dict[str, Any]:
    pricing = PricingValidator.build_pricing(
        result.size_mg, result.price_usd, result.shipping_usd
    )
    return {
        "peptide_name": result.peptide_name,
        "product_url": result.product_url,
        "size_mg": result.size_mg,
        "price_usd": result.price_usd,
        "shipping_usd": result.shipping_usd,
        "price_per_mg": pricing.price_per_mg if pricing else None,
    }


def dry_run_vendor(
    store: DocumentStore,
    vendor_id: str,
    session: Any | None = None,
) -> dict[str, Any]:
    """Scrape and validate one vendor without persisting any offer.

    Failures are reported in the returned payload, never raised.
    """
    scraper = get_vendor_scraper(store, vendor_id, session=session)
    if scraper is None:
        return {
            "success": False,
            "vendor_id": vendor_id,
            "error": f"Vendor {vendor_id} not found",
        }

    try:
        results = scraper.scrape()
    except Exception as exc:
        logger.warning(
            "[%s] Dry run failed: %s",
            scraper.vendor_name,
            exc,
            exc_info=True,
        )
        return {
            "success": False,
            "vendor_id": vendor_id,
            "vendor_name": scraper.vendor_name,
            "pages_visited": scraper.pages_visited,
            "error": str(exc),
        }

    for result in results:
        PricingValidator.validate(result)
    valid = [r for r in results if r.valid]
    invalid = [r for r in results if not r.valid]
    limit = Settings.PREVIEW_SAMPLE_SIZE

    return {
        "success": True,
        "vendor_id": vendor_id,
        "vendor_name": scraper.vendor_name,
        "platform": scraper.platform,
        "pages_visited": scraper.pages_visited,
        "products_found": len(results),
        "products_valid": len(valid),
        "products_invalid": len(invalid),
        "samples": [_preview(r) for r in valid[:limit]],
        "validation_errors": [
            {
                "peptide_name": r.peptide_name,
                "product_url": r.product_url,
                "error": r.validation_error,
            }
            for r in invalid[:limit]
        ],
    }
