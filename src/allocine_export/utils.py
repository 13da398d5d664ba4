"""Normalization, fingerprinting and URL helpers shared by the crawlers."""

import re
import logging
import unicodedata
from typing import Sequence

from selectolax.lexbor import LexborHTMLParser, LexborNode

from .config import BASE_URL

logger = logging.getLogger(__name__)

_WHITESPACE_RE = re.compile(r"\s+")
_RATING_CLASS_RE = re.compile(r"n(\d)(\d)")
_FILMS_SUFFIX_RE = re.compile(r"/films/?$")


def normalize_whitespace(text: str) -> str:
    """Drop newlines, collapse whitespace runs to a single space and trim."""
    return _WHITESPACE_RE.sub(" ", text.replace("\n", "")).strip()


def normalize_title(title: str) -> str:
    """
    Build the join key for a film title.

    Case-folds, decomposes to NFD and strips combining marks, so
    "Amélie", "AMELIE" and "amelie" all map to "amelie". Idempotent.
    """
    decomposed = unicodedata.normalize("NFD", title.casefold())
    return "".join(ch for ch in decomposed if not unicodedata.combining(ch))


def absolute_url(url: str, base_url: str = BASE_URL) -> str:
    """Prefix scheme and host onto a site-relative URL; absolute URLs pass through."""
    if not url:
        return ""
    if url.startswith("http"):
        return url
    if not url.startswith("/"):
        url = "/" + url
    return f"{base_url}{url}"


def parse_rating_class(class_attr: str | None) -> str:
    """
    Decode a rating from a class list containing a code like 'n34' (3.4 stars).

    Returns the rating as a display string, or "" when no code is present.
    """
    if not class_attr:
        return ""

    for cls in class_attr.split():
        match = _RATING_CLASS_RE.fullmatch(cls)
        if not match:
            continue
        rating = f"{match.group(1)}.{match.group(2)}"
        if float(rating) > 5.0:
            logger.warning(f"Rating value outside range [0-5]: {rating} from class '{cls}'")
            return ""
        return rating

    logger.debug(f"No rating code found in classes: {class_attr}")
    return ""


def try_extract(node: LexborNode | LexborHTMLParser | None, selector: str, fallback: str = "", attr: str | None = None) -> str:
    """
    Read text (or an attribute) from the first match of `selector` under `node`.

    Any miss - no node, no match, missing attribute, empty text - yields
    `fallback` instead of raising.
    """
    if node is None:
        return fallback

    target = node.css_first(selector)
    if target is None:
        return fallback

    if attr is not None:
        value = target.attributes.get(attr)
        return value.strip() if value else fallback

    return target.text().strip() or fallback


def page_fingerprint(review_texts: Sequence[str]) -> str:
    """First review's text on a page; "" for an empty page."""
    return review_texts[0] if review_texts else ""


def is_valid_profile_url(url: str, base_url: str = BASE_URL) -> bool:
    """Accept only member film-listing URLs, with or without the trailing slash."""
    pattern = rf"^{re.escape(base_url)}/membre-\w+/films/?$"
    return re.match(pattern, url.strip(), re.IGNORECASE) is not None


def listing_page_url(profile_url: str, page: int) -> str:
    return f"{profile_url}?page={page}"


def review_tab_url(profile_url: str) -> str:
    """Rewrite '/films/' to the reviews tab '/critiques/films/'."""
    return _FILMS_SUFFIX_RE.sub("/critiques/films/", profile_url)


def wishlist_url(profile_url: str) -> str:
    return _FILMS_SUFFIX_RE.sub("/wishlist/films/", profile_url)
