# src/scrapers/parser_utils.py

"""Stateless text, price, size and URL helpers shared by every strategy."""

import re
from urllib.parse import parse_qs, urldefrag, urlencode, urljoin, urlparse, urlunparse

from bs4 import BeautifulSoup, Tag
from soupsieve import SelectorSyntaxError

# Marketing / session params that vary between visits
_TRACKING_PARAMS: frozenset[str] = frozenset({
    "utm_source", "utm_medium", "utm_campaign", "utm_term",
    "utm_content", "gclid", "fbclid", "msclkid", "ref",
    "srsltid", "_pos", "_sid", "_ss", "mc_cid", "mc_eid",
})

_PRICE_RE = re.compile(r"\d+(?:\.\d+)?")

# Unit multipliers to milligrams
_UNIT_TO_MG: dict[str, float] = {
    "mg": 1.0,
    "mcg": 0.001,
    "µg": 0.001,
    "ug": 0.001,
    "g": 1000.0,
}

_SIZE_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(mg|mcg|µg|ug|g)(?![a-z])",
    re.IGNORECASE,
)

# Body-text scan only trusts milligram-scale units
SIZE_TEXT_RE = re.compile(
    r"(\d+(?:\.\d+)?)\s*(mg|mcg)(?![a-z])",
    re.IGNORECASE,
)

_TITLE_SUFFIX_RE = re.compile(r"\s+[|–—]\s+.*$")


def collapse_whitespace(text: str) -> str:
    """Collapse runs of whitespace into single spaces."""
    return " ".join(text.split())


def extract_text(
    soup: BeautifulSoup | Tag, selector: str,
) -> str:
    """Return the whitespace-collapsed text of the first match, or ''."""
    if not selector:
        return ""
    try:
        node = soup.select_one(selector)
    except SelectorSyntaxError:
        # Malformed selectors stored in the cache
        return ""
    if node is None:
        return ""
    return collapse_whitespace(node.get_text(" ", strip=True))


def extract_price(text: str | None) -> float | None:
    """Extract a numeric price from a string like '$1,299.00'.

    Returns ``None`` when no number is present.
    """
    if not text:
        return None
    cleaned = text.replace(",", "")
    match = _PRICE_RE.search(cleaned)
    return float(match.group(0)) if match else None


def extract_mg(text: str | None) -> float | None:
    """Extract a vial size in milligrams from text like 'BPC-157 5mg'.

    ``mcg`` values are divided by 1000 and ``g`` values multiplied by
    1000.  The first size token wins.
    """
    if not text:
        return None
    match = _SIZE_RE.search(text)
    if not match:
        return None
    amount = float(match.group(1))
    unit = match.group(2).lower()
    size = amount * _UNIT_TO_MG[unit]
    return round(size, 4) if size > 0 else None


def find_size_text(text: str) -> str:
    """Return the first 'N mg' / 'N mcg' token found in free text."""
    match = SIZE_TEXT_RE.search(text)
    return match.group(0) if match else ""


def to_absolute_url(href: str, base_url: str) -> str:
    """Resolve *href* against *base_url* and drop any fragment."""
    absolute = urljoin(base_url, href.strip())
    return urldefrag(absolute)[0]


def normalize_url(raw_url: str) -> str:
    """Strip tracking params and fragments to get a stable product URL."""
    if not raw_url:
        return ""
    parsed = urlparse(raw_url.strip())
    params = parse_qs(parsed.query, keep_blank_values=True)
    cleaned = {
        k: v for k, v in params.items()
        if k.lower() not in _TRACKING_PARAMS
    }
    new_query = urlencode(cleaned, doseq=True) if cleaned else ""
    return urlunparse((
        parsed.scheme.lower(),
        parsed.netloc.lower(),
        parsed.path,
        parsed.params,
        new_query,
        "",  # drop fragment
    ))


def clean_peptide_name(text: str) -> str:
    """Tidy a scraped product title into a peptide name.

    Collapses whitespace and drops site-title suffixes such as
    ``' | Vendor Labs'`` that leak in from ``<title>`` fallbacks.
    """
    name = collapse_whitespace(text)
    return _TITLE_SUFFIX_RE.sub("", name).strip()
