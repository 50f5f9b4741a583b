# src/services/item_logger.py

"""Sampled audit trail of raw scrape results.

Every invalid result is stored; of the valid ones only the first
``ITEM_SAMPLE_LIMIT`` are kept as a representative sample.
"""

import logging

from src.config.settings import Settings
from src.filters.pricing_validator import calculate_price_per_mg
from src.models.scrape_job import ScrapedItem
from src.models.scrape_result import RawScrapeResult
from src.storage.document_store import DocumentStore

logger = logging.getLogger("offer_scraper.item_logger")

STATUS_SUCCESS = "success"
STATUS_VALIDATION_FAILED = "validation_failed"
REASON_SAMPLE = "sample"


def items_path(job_id: str, vendor_id: str) -> str:
    return f"scraper_jobs/{job_id}/vendors/{vendor_id}/items"


class ItemLogger:
    """Select which results become ``ScrapedItem`` documents and write them."""

    def __init__(
        self,
        store: DocumentStore,
        sample_limit: int = Settings.ITEM_SAMPLE_LIMIT,
    ) -> None:
        self.store = store
        self.sample_limit = sample_limit

    def select_items(
        self,
        job_id: str,
        vendor_id: str,
        results: list[RawScrapeResult],
        actions: list[str] | None = None,
    ) -> list[ScrapedItem]:
        """Pick the items to persist, in scrape order.

        *actions* holds the upsert outcome of each valid result, in the
        order the valid results appear in *results*.
        """
        outcomes = actions or []
        items: list[ScrapedItem] = []
        valid_index = 0

        for result in results:
            scraped_at = result.scraped_at.isoformat()
            if not result.valid:
                items.append(
                    ScrapedItem(
                        job_id=job_id,
                        vendor_id=vendor_id,
                        vendor_name=result.vendor_name,
                        peptide_name=result.peptide_name,
                        status=STATUS_VALIDATION_FAILED,
                        storage_reason=STATUS_VALIDATION_FAILED,
                        scraped_at=scraped_at,
                        product_url=result.product_url,
                        raw_price_text=result.raw_price_text,
                        raw_size_text=result.raw_size_text,
                        size_mg=result.size_mg,
                        price_usd=result.price_usd,
                        validation_error=result.validation_error,
                    )
                )
                continue

            position = valid_index
            valid_index += 1
            if position >= self.sample_limit:
                continue

            price_per_mg = None
            if result.size_mg and result.price_usd:
                price_per_mg = calculate_price_per_mg(
                    result.price_usd, result.size_mg, result.shipping_usd
                )
            items.append(
                ScrapedItem(
                    job_id=job_id,
                    vendor_id=vendor_id,
                    vendor_name=result.vendor_name,
                    peptide_name=result.peptide_name,
                    status=STATUS_SUCCESS,
                    storage_reason=REASON_SAMPLE,
                    scraped_at=scraped_at,
                    product_url=result.product_url,
                    raw_price_text=result.raw_price_text,
                    raw_size_text=result.raw_size_text,
                    size_mg=result.size_mg,
                    price_usd=result.price_usd,
                    shipping_usd=result.shipping_usd,
                    price_per_mg=price_per_mg,
                    offer_action=(
                        outcomes[position]
                        if position < len(outcomes)
                        else None
                    ),
                )
            )
        return items

    def log_items(
        self,
        job_id: str,
        vendor_id: str,
        results: list[RawScrapeResult],
        actions: list[str] | None = None,
    ) -> int:
        """Persist the selected items in one atomic batch; return the count."""
        items = self.select_items(job_id, vendor_id, results, actions)
        if not items:
            return 0
        collection = items_path(job_id, vendor_id)
        writes = [
            (f"{collection}/{self.store.new_id()}", item.to_document())
            for item in items
        ]
        self.store.commit_batch(writes)
        logger.debug(
            "Stored %d of %d items for vendor %s",
            len(items),
            len(results),
            vendor_id,
        )
        return len(items)
