# src/cli/runner.py

"""Headless command handlers: run jobs, cancel, dry-run and admin writes."""

import json
import logging
import sys
from typing import Any

from rich.console import Console
from rich.table import Table

from src.scrapers.exceptions import ScraperError
from src.services.manual_offers import submit_offer
from src.services.offer_upsert import OfferUpsertEngine
from src.services.scrape_job_runner import (
    ScrapeJobRunner,
    cancel_job,
    dry_run_vendor,
    job_path,
)
from src.services.vendor_urls import get_vendor_urls, save_vendor_urls
from src.storage.document_store import DocumentStore

logger = logging.getLogger("offer_scraper.cli")

# Stderr console for status messages so stdout stays clean for JSON
_err = Console(stderr=True)


def _print_job_table(
    store: DocumentStore, job_id: str,
) -> dict[str, Any] | None:
    """Render the job summary and its vendor records; return the job doc."""
    job = store.get(job_path(job_id))
    if job is None:
        return None

    summary = Table(
        title=f"Job {job_id}",
        show_header=False,
        title_style="bold cyan",
    )
    summary.add_column("Field", style="dim")
    summary.add_column("Value")
    for field_name in (
        "status",
        "trigger_type",
        "triggered_by",
        "started_at",
        "completed_at",
        "vendors_succeeded",
        "vendors_failed",
        "total_products_scraped",
        "total_products_valid",
        "total_created",
        "total_updated",
        "total_unchanged",
    ):
        value = job.get(field_name)
        if value is not None:
            summary.add_row(field_name, str(value))
    Console().print(summary)

    vendors = store.list_documents(f"{job_path(job_id)}/vendors")
    if vendors:
        table = Table(
            title="Vendors",
            show_lines=True,
            title_style="bold cyan",
        )
        table.add_column("Vendor", style="magenta")
        table.add_column("Status")
        table.add_column("Pages", justify="right")
        table.add_column("Valid", justify="right", style="green")
        table.add_column("Failed", justify="right", style="red")
        table.add_column("New/Upd/Same", justify="center")
        table.add_column("Errors", overflow="fold", style="dim")
        for _, record in vendors:
            table.add_row(
                str(record.get("vendor_name", "")),
                str(record.get("status", "")),
                str(record.get("pages_visited", 0)),
                str(record.get("products_valid", 0)),
                str(record.get("products_failed", 0)),
                (
                    f"{record.get('offers_created', 0)}/"
                    f"{record.get('offers_updated', 0)}/"
                    f"{record.get('offers_unchanged', 0)}"
                ),
                "; ".join(record.get("errors", [])) or "-",
            )
        Console().print(table)

    for message in job.get("error_messages", []):
        _err.print(f"[red]Error: {message}[/red]")
    return job


def cli_run(
    store: DocumentStore,
    trigger_type: str,
    triggered_by: str | None,
) -> int:
    """Run every configured vendor; 0 unless the job failed."""
    _err.print(
        f"[bold]Starting {trigger_type} scrape job[/bold]"
    )
    runner = ScrapeJobRunner(store)
    job_id = runner.run_all(trigger_type, triggered_by)
    job = _print_job_table(store, job_id)
    if job is None or job.get("status") == "failed":
        _err.print("[red]Job failed.[/red]")
        return 1
    _err.print(f"[green]✓ Job {job_id} {job.get('status')}[/green]")
    return 0


def cli_cancel(
    store: DocumentStore, job_id: str, cancelled_by: str,
) -> int:
    """Request cooperative cancellation of a running job."""
    try:
        cancel_job(store, job_id, cancelled_by)
    except ScraperError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    _err.print(f"[green]✓ Job {job_id} cancelled[/green]")
    return 0


def cli_test_vendor(store: DocumentStore, vendor_id: str) -> int:
    """Dry-run one vendor and print the preview payload as JSON."""
    _err.print(f"[bold]Testing vendor:[/bold] {vendor_id}")
    report = dry_run_vendor(store, vendor_id)
    json.dump(report, sys.stdout, ensure_ascii=False, indent=2)
    sys.stdout.write("\n")
    if not report.get("success"):
        _err.print(f"[red]Error: {report.get('error')}[/red]")
        return 1
    _err.print(
        f"[green]✓ {report['products_valid']} valid, "
        f"{report['products_invalid']} invalid "
        f"({report['pages_visited']} pages)[/green]"
    )
    return 0


def cli_set_urls(
    store: DocumentStore,
    vendor_id: str,
    vendor_name: str | None,
    urls: list[str],
) -> int:
    """Replace a vendor's URL whitelist."""
    vendor = store.get(f"vendors/{vendor_id}") or {}
    name = vendor_name or str(vendor.get("name") or vendor_id)
    try:
        whitelist = save_vendor_urls(store, vendor_id, name, urls)
    except ScraperError as exc:
        _err.print(f"[red]{exc}[/red]")
        return 1
    _err.print(
        f"[green]✓ {len(whitelist.allowed_urls)} URLs saved "
        f"for {name}[/green]"
    )
    return 0


def cli_add_vendor(
    store: DocumentStore,
    vendor_id: str,
    vendor_name: str,
    vendor_type: str,
) -> int:
    """Register or rename a vendor in the ``vendors`` registry."""
    store.set(
        f"vendors/{vendor_id}",
        {"name": vendor_name, "type": vendor_type},
    )
    _err.print(
        f"[green]✓ Vendor {vendor_name} ({vendor_type}) saved[/green]"
    )
    return 0


def cli_show_job(store: DocumentStore, job_id: str) -> int:
    """Print a stored job and its vendor records."""
    if _print_job_table(store, job_id) is None:
        _err.print(f"[red]Job {job_id} not found[/red]")
        return 1
    return 0


def cli_show_urls(store: DocumentStore, vendor_id: str) -> int:
    """Print a vendor's URL whitelist; the first URL is fetched first."""
    whitelist = get_vendor_urls(store, vendor_id)
    if whitelist is None:
        _err.print(f"[red]No URL whitelist for vendor {vendor_id}[/red]")
        return 1

    table = Table(
        title=f"{whitelist.vendor_name} whitelist",
        title_style="bold cyan",
    )
    table.add_column("#", justify="right", style="dim")
    table.add_column("URL", overflow="fold")
    for position, url in enumerate(whitelist.allowed_urls, start=1):
        table.add_row(str(position), url)
    Console().print(table)
    if whitelist.last_updated:
        _err.print(f"[dim]Last updated {whitelist.last_updated}[/dim]")
    return 0


def cli_add_offer(
    store: DocumentStore,
    vendor_id: str,
    tier: str,
    payload: str,
    submitted_by: str,
) -> int:
    """Validate and upsert one manually entered offer from JSON."""
    try:
        data = json.loads(payload)
    except json.JSONDecodeError as exc:
        _err.print(f"[red]Invalid JSON payload: {exc}[/red]")
        return 1
    if not isinstance(data, dict):
        _err.print("[red]Payload must be a JSON object[/red]")
        return 1

    report, result = submit_offer(store, vendor_id, tier, data, submitted_by)
    for warning in report.warnings:
        _err.print(f"[yellow]Warning: {warning}[/yellow]")
    if result is None:
        for error in report.errors:
            _err.print(f"[red]Error: {error}[/red]")
        return 1
    _err.print(f"[green]✓ Offer {result.actions[0]}[/green]")
    return 0


def cli_history(store: DocumentStore, offer_id: str) -> int:
    """Print the price history of one offer, oldest first."""
    entries = OfferUpsertEngine(store).get_offer_history(offer_id)
    if not entries:
        _err.print(f"[yellow]No price history for offer {offer_id}[/yellow]")
        return 1

    table = Table(
        title=f"Price history for {offer_id}",
        show_lines=True,
        title_style="bold cyan",
    )
    table.add_column("Changed at", style="dim")
    table.add_column("Fields")
    table.add_column("Change %", justify="right")
    table.add_column("By", style="magenta")
    for entry in entries:
        pct = entry.get("price_change_pct")
        table.add_row(
            str(entry.get("changed_at", "")),
            ", ".join(entry.get("changed_fields", [])),
            f"{pct:+.2f}%" if pct is not None else "-",
            str(entry.get("changed_by", "")),
        )
    Console().print(table)
    return 0
