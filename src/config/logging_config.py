# src/config/logging_config.py

"""Per-run log files for offer_scraper.

Every CLI invocation writes ``logs/run_YYYYMMDD_HHMMSS.log`` at DEBUG
through the ``offer_scraper`` logger, so the enforcer, strategies,
upsert engine and job runner of one run share a single file.  The
console only shows records at ``Settings.CONSOLE_LOG_LEVEL`` and above
(WARNING unless ``OFFER_SCRAPER_LOG_LEVEL`` says otherwise).

Job and vendor documents keep the short messages; tracebacks live in
the log file.
"""

import logging
import sys
from datetime import datetime
from pathlib import Path

from src.config.settings import Settings

PROJECT_LOGGER = "offer_scraper"

_FILE_FORMAT = (
    "%(asctime)s | %(levelname)-8s | %(name)s | "
    "%(module)s:%(funcName)s:%(lineno)d | %(message)s"
)
_CONSOLE_FORMAT = "%(levelname)-8s | %(name)s | %(message)s"
_DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

# Chatty dependencies capped at WARNING
_QUIET_LOGGERS: tuple[str, ...] = ("charset_normalizer", "urllib3")


def _console_level() -> int:
    level = logging.getLevelName(Settings.CONSOLE_LOG_LEVEL.upper())
    return level if isinstance(level, int) else logging.WARNING


def setup_logging(logs_dir: Path | None = None) -> Path:
    """Attach the per-run file and console handlers.

    Repeated calls keep the handlers installed by the first one and
    return that run's log file.
    """
    project = logging.getLogger(PROJECT_LOGGER)
    project.setLevel(logging.DEBUG)

    for handler in project.handlers:
        if isinstance(handler, logging.FileHandler):
            return Path(handler.baseFilename)

    target_dir = logs_dir or Settings.LOGS_DIR
    target_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_file = target_dir / f"run_{stamp}.log"

    file_handler = logging.FileHandler(log_file, encoding="utf-8")
    file_handler.setLevel(logging.DEBUG)
    file_handler.setFormatter(
        logging.Formatter(_FILE_FORMAT, datefmt=_DATE_FORMAT)
    )
    console = logging.StreamHandler(sys.stderr)
    console.setLevel(_console_level())
    console.setFormatter(logging.Formatter(_CONSOLE_FORMAT))

    project.addHandler(file_handler)
    project.addHandler(console)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(logging.WARNING)

    project.debug("Logging to %s", log_file)
    return log_file
