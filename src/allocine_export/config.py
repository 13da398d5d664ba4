"""
Configuration constants for the AlloCiné profile exporter.

This module centralizes timeouts, limits, output names and the DOM selectors
used by the crawlers. Numeric values can be overridden via environment variables.
"""
import os
import logging
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger(__name__)


def _get_int_env(key: str, default: int, min_val: int = 1) -> int:
    """
    Read an integer setting (a page count or a wait in milliseconds) from the environment.

    Args:
        key: Environment variable name
        default: Value used when the variable is unset or not an integer
        min_val: Values below this are clamped up to it

    Returns:
        The validated integer
    """
    try:
        val = int(os.environ.get(key, default))
        if val < min_val:
            logger.warning(f"{key}={val} is below minimum {min_val}, using {min_val}")
            return min_val
        return val
    except ValueError:
        logger.warning(f"Invalid {key}='{os.environ.get(key)}', using default {default}")
        return default


def _get_bool_env(key: str, default: bool) -> bool:
    raw = os.environ.get(key)
    if raw is None:
        return default
    return raw.strip().lower() not in ("0", "false", "no", "off", "")


# Target site
BASE_URL = os.environ.get("ALLOCINE_BASE_URL", "https://www.allocine.fr").rstrip("/")

# Listing pagination
MAX_LISTING_PAGES = _get_int_env("ALLOCINE_MAX_PAGES", 17, min_val=1)  # Safety ceiling, not the expected stop

# Browser waits (milliseconds)
COOKIE_SETTLE_MS = _get_int_env("ALLOCINE_COOKIE_SETTLE_MS", 600, min_val=0)
NAVIGATION_TIMEOUT_MS = _get_int_env("ALLOCINE_NAVIGATION_TIMEOUT_MS", 30_000)
DETAIL_TIMEOUT_MS = _get_int_env("ALLOCINE_DETAIL_TIMEOUT_MS", 15_000)
REVIEW_TAB_TIMEOUT_MS = _get_int_env("ALLOCINE_REVIEW_TAB_TIMEOUT_MS", 8_000)
REVIEW_PAGE_TIMEOUT_MS = _get_int_env("ALLOCINE_REVIEW_PAGE_TIMEOUT_MS", 4_000)
NEXT_PAGE_TIMEOUT_MS = _get_int_env("ALLOCINE_NEXT_PAGE_TIMEOUT_MS", 7_000)
FULL_TEXT_TIMEOUT_MS = _get_int_env("ALLOCINE_FULL_TEXT_TIMEOUT_MS", 2_500)

# Browser launch
HEADLESS = _get_bool_env("ALLOCINE_HEADLESS", True)
BROWSER_ARGS = ["--no-sandbox", "--disable-setuid-sandbox"]

# Output
OUTPUT_DIR = Path(os.environ.get("ALLOCINE_OUTPUT_DIR", "."))
DETAILS_FILENAME = "allocine-films-details.csv"
URL_INFO_FILENAME = "allocine-url-info.csv"
WISHLIST_FILENAME = "allocine-wishlist.csv"

DETAILS_COLUMNS = ["Title", "Rating", "Duration", "Directors", "Url"]
URL_INFO_COLUMNS = ["Title", "Rating", "Review", "Url"]
WISHLIST_COLUMNS = ["Title", "Url"]


@dataclass(frozen=True)
class Selectors:
    """Named DOM queries; the crawlers never hard-code markup strings."""
    film_item: str = ".card.entity-card-simple.userprofile-entity-card-simple"
    film_title: str = ".meta-title.meta-title-link"
    film_rating: str = ".rating-mdl"
    review_block: str = ".review-card"
    review_text: str = ".content-txt.review-card-content"
    review_more_link: str = ".blue-link.link-more"
    review_film_title: str = ".review-card-title a.xXx"
    next_page: str = ".button.button-md.button-primary-full.button-right"
    accept_cookies: str = ".jad_cmp_paywall_button"
    detail_meta: str = ".meta-body-info"
    detail_director: str = 'a.xXx.dark-grey-link[href*="/personne/fichepersonne_gen_cpersonne="]'


DEFAULT_SELECTORS = Selectors()
