# src/models/scrape_job.py

"""Job, per-vendor record and sampled item models for run auditing."""

from dataclasses import asdict, dataclass, field
from typing import Any

# ScrapeJob.status
JOB_RUNNING = "running"
JOB_COMPLETED = "completed"
JOB_FAILED = "failed"
JOB_CANCELLED = "cancelled"

# VendorJobRecord.status
VENDOR_SUCCESS = "success"
VENDOR_PARTIAL = "partial"
VENDOR_FAILED = "failed"


@dataclass
class ScrapeJob:
    """One orchestration run across every configured vendor."""

    job_id: str
    trigger_type: str  # "scheduled" or "manual"
    started_at: str
    triggered_by: str | None = None
    completed_at: str | None = None
    status: str = JOB_RUNNING
    vendors_succeeded: int = 0
    vendors_failed: int = 0
    total_products_scraped: int = 0
    total_products_valid: int = 0
    total_created: int = 0
    total_updated: int = 0
    total_unchanged: int = 0
    error_messages: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def totals(self) -> dict[str, Any]:
        """Aggregate counters written back when a run ends."""
        return {
            "vendors_succeeded": self.vendors_succeeded,
            "vendors_failed": self.vendors_failed,
            "total_products_scraped": self.total_products_scraped,
            "total_products_valid": self.total_products_valid,
            "total_created": self.total_created,
            "total_updated": self.total_updated,
            "total_unchanged": self.total_unchanged,
            "error_messages": list(self.error_messages),
        }

    def to_document(self) -> dict[str, Any]:
        doc = asdict(self)
        return {k: v for k, v in doc.items() if v is not None}


@dataclass
class VendorJobRecord:
    """Outcome of one vendor inside one job; written once."""

    job_id: str
    vendor_id: str
    vendor_name: str
    started_at: str
    status: str = VENDOR_SUCCESS
    completed_at: str | None = None
    pages_visited: int = 0
    products_found: int = 0
    products_scraped: int = 0
    products_valid: int = 0
    products_failed: int = 0
    offers_created: int = 0
    offers_updated: int = 0
    offers_unchanged: int = 0
    validation_failures: dict[str, int] = field(
        default_factory=lambda: dict[str, int]()
    )
    errors: list[str] = field(
        default_factory=lambda: list[str]()
    )
    warnings: list[str] = field(
        default_factory=lambda: list[str]()
    )

    def to_document(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ScrapedItem:
    """Sampled audit record of one raw scrape attempt."""

    job_id: str
    vendor_id: str
    vendor_name: str
    peptide_name: str
    status: str  # "success" or "validation_failed"
    storage_reason: str  # "validation_failed" or "sample"
    scraped_at: str
    product_url: str = ""
    raw_price_text: str = ""
    raw_size_text: str = ""
    size_mg: float | None = None
    price_usd: float | None = None
    shipping_usd: float | None = None
    price_per_mg: float | None = None
    validation_error: str = ""
    offer_action: str | None = None

    def to_document(self) -> dict[str, Any]:
        """Serialise, keeping only fields that carry a value."""
        doc: dict[str, Any] = {}
        for key, value in asdict(self).items():
            if value is None or value == "":
                continue
            if key == "offer_action":
                doc[key] = {"action": value}
            else:
                doc[key] = value
        return doc
