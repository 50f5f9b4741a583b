# main.py

"""Entry point for the offer_scraper pipeline CLI."""

import argparse
import logging
import sys
from pathlib import Path

from src.config.logging_config import setup_logging
from src.config.settings import Settings
from src.models.offer import VENDOR_TIERS

logger = logging.getLogger("offer_scraper.main")


def _build_parser() -> argparse.ArgumentParser:
    """Build the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="offer_scraper",
        description="Whitelisted vendor price scraping pipeline.",
    )
    parser.add_argument(
        "--db",
        default=None,
        dest="db_path",
        help=f"SQLite document store (default: {Settings.DB_PATH}).",
    )
    sub = parser.add_subparsers(dest="command", required=True)

    run = sub.add_parser("run", help="Scrape every configured vendor.")
    run.add_argument(
        "--trigger",
        choices=["scheduled", "manual"],
        default="manual",
        dest="trigger_type",
        help="Trigger kind recorded on the job (default: manual).",
    )
    run.add_argument(
        "--by",
        default=None,
        dest="triggered_by",
        help="Initiator recorded on manual jobs.",
    )

    cancel = sub.add_parser("cancel", help="Cancel a running job.")
    cancel.add_argument("job_id")
    cancel.add_argument(
        "--by",
        default="admin",
        dest="cancelled_by",
        help="Who requested the cancellation (default: admin).",
    )

    test_vendor = sub.add_parser(
        "test-vendor",
        help="Dry-run one vendor without writing offers.",
    )
    test_vendor.add_argument("vendor_id")

    set_urls = sub.add_parser(
        "set-urls", help="Replace a vendor's URL whitelist.",
    )
    set_urls.add_argument("vendor_id")
    set_urls.add_argument("urls", nargs="+")
    set_urls.add_argument(
        "--name",
        default=None,
        dest="vendor_name",
        help="Vendor display name (default: registry name).",
    )

    add_vendor = sub.add_parser(
        "add-vendor", help="Register a vendor.",
    )
    add_vendor.add_argument("vendor_id")
    add_vendor.add_argument("--name", required=True, dest="vendor_name")
    add_vendor.add_argument(
        "--type",
        default="research",
        dest="vendor_type",
        help="Vendor tier (default: research).",
    )

    show_job = sub.add_parser("show-job", help="Show a stored job.")
    show_job.add_argument("job_id")

    show_urls = sub.add_parser(
        "show-urls", help="Show a vendor's URL whitelist.",
    )
    show_urls.add_argument("vendor_id")

    add_offer = sub.add_parser(
        "add-offer", help="Validate and upsert a manually entered offer.",
    )
    add_offer.add_argument("vendor_id")
    add_offer.add_argument(
        "payload", help="Offer fields as a JSON object.",
    )
    add_offer.add_argument(
        "--tier",
        choices=list(VENDOR_TIERS),
        default="research",
        help="Pricing tier of the offer (default: research).",
    )
    add_offer.add_argument(
        "--by",
        default="admin",
        dest="submitted_by",
        help="Who entered the offer (default: admin).",
    )

    history = sub.add_parser(
        "history", help="Show the price history of an offer.",
    )
    history.add_argument("offer_id")
    return parser


def _dispatch(args: argparse.Namespace) -> int:
    """Open the store and route to the matching command handler."""
    from src.cli import runner
    from src.storage.document_store import SQLiteDocumentStore

    store = SQLiteDocumentStore(
        Path(args.db_path) if args.db_path else None
    )
    try:
        if args.command == "run":
            return runner.cli_run(
                store, args.trigger_type, args.triggered_by
            )
        if args.command == "cancel":
            return runner.cli_cancel(store, args.job_id, args.cancelled_by)
        if args.command == "test-vendor":
            return runner.cli_test_vendor(store, args.vendor_id)
        if args.command == "set-urls":
            return runner.cli_set_urls(
                store, args.vendor_id, args.vendor_name, args.urls
            )
        if args.command == "add-vendor":
            return runner.cli_add_vendor(
                store, args.vendor_id, args.vendor_name, args.vendor_type
            )
        if args.command == "show-urls":
            return runner.cli_show_urls(store, args.vendor_id)
        if args.command == "add-offer":
            return runner.cli_add_offer(
                store,
                args.vendor_id,
                args.tier,
                args.payload,
                args.submitted_by,
            )
        if args.command == "history":
            return runner.cli_history(store, args.offer_id)
        return runner.cli_show_job(store, args.job_id)
    finally:
        store.close()


def main() -> None:
    """Parse arguments and run one command."""
    log_file = setup_logging()
    logger.info("offer_scraper starting, log file: %s", log_file)

    parser = _build_parser()
    args = parser.parse_args()

    try:
        exit_code = _dispatch(args)
    except Exception:
        logger.critical("Fatal error during %s", args.command, exc_info=True)
        raise
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
