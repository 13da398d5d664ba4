import argparse
import logging
import sys
from pathlib import Path

from .browser import BrowserPageClient, PageClient
from .config import (
    BASE_URL,
    DETAILS_COLUMNS,
    DETAILS_FILENAME,
    HEADLESS,
    MAX_LISTING_PAGES,
    OUTPUT_DIR,
    URL_INFO_COLUMNS,
    URL_INFO_FILENAME,
    WISHLIST_COLUMNS,
    WISHLIST_FILENAME,
)
from .export import write_csv
from .merge import RecordMerger, enrich_with_details, wishlist_rows
from .scraper import DetailFetcher, FilmRecord, LinkPaginator, ListingPaginator, ReviewCrawler
from .utils import is_valid_profile_url

logger = logging.getLogger(__name__)


def _prompt_profile_url() -> str:
    return input(
        f"\nPaste the link to your AlloCiné profile (format: {BASE_URL}/membre-.../films/):\n> "
    ).strip()


def _resolve_profile_url(args: argparse.Namespace) -> str:
    """Take the URL from the command line or ask for it; exit 1 if it is not a profile link."""
    url = (args.url or _prompt_profile_url()).strip()
    if not is_valid_profile_url(url):
        logger.error(f"Invalid AlloCiné profile link: '{url}'")
        sys.exit(1)
    return url


def export_details(client: PageClient, films: list[FilmRecord], output_dir: Path) -> Path | None:
    """Enrich every film with duration/directors and write the details table."""
    if not films:
        return None
    enriched = enrich_with_details(films, DetailFetcher(client))
    return write_csv(output_dir / DETAILS_FILENAME, DETAILS_COLUMNS, [f.as_row() for f in enriched])


def export_url_info(client: PageClient, profile_url: str, films: list[FilmRecord], output_dir: Path) -> list[Path]:
    """Crawl reviews and wishlist, then write the merged and wishlist tables."""
    written = []

    reviews = ReviewCrawler(client).crawl(profile_url)
    wishlist = LinkPaginator(client).crawl(profile_url)

    if wishlist:
        written.append(write_csv(output_dir / WISHLIST_FILENAME, WISHLIST_COLUMNS, wishlist_rows(wishlist)))

    if films:
        merged = RecordMerger().merge(films, reviews)
        written.append(write_csv(output_dir / URL_INFO_FILENAME, URL_INFO_COLUMNS, [m.as_row() for m in merged]))

    return written


def _run(args: argparse.Namespace, details: bool, url_info: bool) -> None:
    profile_url = _resolve_profile_url(args)
    output_dir = Path(args.output_dir)

    logger.info("Scraping in progress...")
    try:
        with BrowserPageClient(headless=not args.headful) as client:
            films = ListingPaginator(client, max_pages=args.max_pages).crawl(profile_url)
            if details:
                export_details(client, films, output_dir)
            if url_info:
                export_url_info(client, profile_url, films, output_dir)
    except Exception:
        logger.exception("Scraping failed")
        sys.exit(1)

    logger.info("Done!")


def cmd_details(args: argparse.Namespace) -> None:
    """Rated films enriched with duration and directors."""
    _run(args, details=True, url_info=False)


def cmd_url_info(args: argparse.Namespace) -> None:
    """Rated films joined with reviews, plus the wishlist."""
    _run(args, details=False, url_info=True)


def cmd_all(args: argparse.Namespace) -> None:
    _run(args, details=True, url_info=True)


def main():
    parser = argparse.ArgumentParser(description="Export an AlloCiné member profile to CSV")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("url", nargs="?", help=f"Profile URL ({BASE_URL}/membre-.../films/); prompted for if omitted")
    common.add_argument("--max-pages", type=int, default=MAX_LISTING_PAGES,
                        help=f"Upper bound on listing pages to visit (default: {MAX_LISTING_PAGES})")
    common.add_argument("--output-dir", default=str(OUTPUT_DIR),
                        help="Directory for the CSV files (default: current directory)")
    common.add_argument("--headful", action="store_true", default=not HEADLESS,
                        help="Show the browser window")

    details_parser = subparsers.add_parser("details", parents=[common],
                                           help=f"Films with duration and directors ({DETAILS_FILENAME})")
    details_parser.set_defaults(func=cmd_details)

    url_info_parser = subparsers.add_parser("url-info", parents=[common],
                                            help=f"Films with reviews ({URL_INFO_FILENAME}) and wishlist ({WISHLIST_FILENAME})")
    url_info_parser.set_defaults(func=cmd_url_info)

    all_parser = subparsers.add_parser("all", parents=[common], help="Produce all three CSV files")
    all_parser.set_defaults(func=cmd_all)

    args = parser.parse_args()

    # Configure logging based on verbosity
    log_level = logging.DEBUG if args.verbose else logging.INFO
    logging.basicConfig(
        level=log_level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )

    args.func(args)


if __name__ == "__main__":
    main()
