import re
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Iterator

from selectolax.lexbor import LexborHTMLParser, LexborNode

from .browser import PageClient, PageLoadError
from .config import (
    DEFAULT_SELECTORS,
    DETAIL_TIMEOUT_MS,
    FULL_TEXT_TIMEOUT_MS,
    MAX_LISTING_PAGES,
    NEXT_PAGE_TIMEOUT_MS,
    REVIEW_PAGE_TIMEOUT_MS,
    REVIEW_TAB_TIMEOUT_MS,
    Selectors,
)
from .utils import (
    absolute_url,
    listing_page_url,
    normalize_whitespace,
    page_fingerprint,
    parse_rating_class,
    review_tab_url,
    try_extract,
    wishlist_url,
)

logger = logging.getLogger(__name__)

_DURATION_RE = re.compile(r"^\d+h")


class CrawlState(Enum):
    LOADING = "loading"
    EXTRACTING = "extracting"
    DONE = "done"


@dataclass(frozen=True)
class FilmRecord:
    title: str
    rating: str  # "3.4", or "" when the film has no rating code
    url: str  # as found in the listing, possibly site-relative


@dataclass(frozen=True)
class FilmDetail:
    duration: str = ""
    directors: str = ""


@dataclass(frozen=True)
class ReviewBlock:
    """A review card as rendered on the review tab, before any expansion."""
    film_title: str
    review_text: str
    has_more: bool
    more_url: str


@dataclass(frozen=True)
class ReviewRecord:
    film_title: str
    review_text: str


@dataclass(frozen=True)
class WishlistRecord:
    title: str
    url: str


def parse_film_card(card: LexborNode, selectors: Selectors = DEFAULT_SELECTORS) -> FilmRecord:
    """Title, rating code and link of one listing card. Missing pieces become ""."""
    title = try_extract(card, selectors.film_title, attr="title")
    href = try_extract(card, selectors.film_title, attr="href")
    rating_el = card.css_first(selectors.film_rating)
    rating = parse_rating_class(rating_el.attributes.get("class")) if rating_el else ""
    return FilmRecord(title=title, rating=rating, url=href)


def parse_film_cards(tree: LexborHTMLParser, selectors: Selectors = DEFAULT_SELECTORS) -> list[FilmRecord]:
    return [parse_film_card(card, selectors) for card in tree.css(selectors.film_item)]


def parse_wishlist_card(card: LexborNode, selectors: Selectors = DEFAULT_SELECTORS) -> WishlistRecord:
    return WishlistRecord(
        title=try_extract(card, selectors.film_title, attr="title"),
        url=try_extract(card, selectors.film_title, attr="href"),
    )


def parse_review_block(block: LexborNode, selectors: Selectors = DEFAULT_SELECTORS) -> ReviewBlock:
    more_href = try_extract(block, selectors.review_more_link, attr="href")
    return ReviewBlock(
        film_title=try_extract(block, selectors.review_film_title),
        review_text=try_extract(block, selectors.review_text),
        has_more=block.css_first(selectors.review_more_link) is not None,
        more_url=absolute_url(more_href),
    )


def parse_review_blocks(tree: LexborHTMLParser, selectors: Selectors = DEFAULT_SELECTORS) -> list[ReviewBlock]:
    return [parse_review_block(block, selectors) for block in tree.css(selectors.review_block)]


def parse_film_detail(tree: LexborHTMLParser, selectors: Selectors = DEFAULT_SELECTORS) -> FilmDetail:
    """
    Duration and directors from a film page.

    Duration is the first direct text node of the metadata block that looks
    like "1h 45min"; directors are every linked person, in page order.
    """
    duration = ""
    meta = tree.css_first(selectors.detail_meta)
    if meta:
        for child in meta.iter(include_text=True):
            if not child.is_text_node:
                continue
            text = (child.text_content or "").strip()
            if _DURATION_RE.match(text):
                duration = text
                break

    directors = ", ".join(a.text(strip=True) for a in tree.css(selectors.detail_director))

    return FilmDetail(duration=duration, directors=directors)


class _Crawler:
    """Shared plumbing: one page client, one selector set, a visible crawl state."""

    def __init__(self, client: PageClient, selectors: Selectors | None = None):
        self.client = client
        self.selectors = selectors or client.selectors
        self.state = CrawlState.DONE

    def _load(self, url: str, wait_until: str = "domcontentloaded") -> None:
        self.state = CrawlState.LOADING
        self.client.goto(url, wait_until=wait_until)
        self.client.dismiss_cookie_banner()


class ListingPaginator(_Crawler):
    """
    Walks '?page=N' listing pages until one comes back empty, fails to load
    or max_pages is hit.

    A page whose cards are exactly those of the previous page also ends the
    walk; the site answers out-of-range page numbers with the last page.
    """

    def __init__(self, client: PageClient, selectors: Selectors | None = None, max_pages: int = MAX_LISTING_PAGES):
        super().__init__(client, selectors)
        self.max_pages = max_pages

    def iter_pages(self, profile_url: str, max_pages: int | None = None) -> Iterator[list[FilmRecord]]:
        limit = max_pages or self.max_pages
        previous: list[FilmRecord] = []
        try:
            for page in range(1, limit + 1):
                url = listing_page_url(profile_url, page)
                logger.info(f"Scraping page: {url}")
                try:
                    self._load(url)
                except PageLoadError as exc:
                    logger.warning(f"Could not load listing page {page}, stopping: {exc}")
                    return

                self.state = CrawlState.EXTRACTING
                films = self.client.extract(self.selectors.film_item, lambda card: parse_film_card(card, self.selectors))
                if not films:
                    logger.debug(f"  Page {page} is empty, end of listing")
                    return
                if films == previous:
                    logger.info(f"Listing page {page} repeats page {page - 1}, stopping")
                    return
                previous = films
                logger.debug(f"  Page {page}: {len(films)} films")
                yield films
        finally:
            self.state = CrawlState.DONE

    def crawl(self, profile_url: str, max_pages: int | None = None) -> list[FilmRecord]:
        films: list[FilmRecord] = []
        for batch in self.iter_pages(profile_url, max_pages):
            films.extend(batch)
        logger.info(f"{len(films)} films extracted")
        return films


class LinkPaginator(_Crawler):
    """Walks the wishlist by following its 'next' anchor, refusing to revisit a URL."""

    def __init__(self, client: PageClient, selectors: Selectors | None = None):
        super().__init__(client, selectors)
        self.visited_urls: list[str] = []

    def iter_pages(self, profile_url: str) -> Iterator[list[WishlistRecord]]:
        self.visited_urls = []
        visited: set[str] = set()
        url = wishlist_url(profile_url)

        try:
            while url not in visited:
                visited.add(url)
                self.visited_urls.append(url)
                logger.info(f"Scraping wishlist page: {url}")
                try:
                    self._load(url)
                except PageLoadError as exc:
                    logger.warning(f"Could not load wishlist page, stopping: {exc}")
                    return

                self.state = CrawlState.EXTRACTING
                yield self.client.extract(self.selectors.film_item, lambda card: parse_wishlist_card(card, self.selectors))

                next_href = self.client.attribute(self.selectors.next_page, "href")
                if not next_href:
                    logger.debug("  No next link, end of wishlist")
                    return
                if not next_href.startswith("http"):
                    logger.debug(f"  Next link is not absolute ('{next_href}'), stopping")
                    return
                if next_href in visited:
                    logger.warning(f"Wishlist pagination loops back to {next_href}, stopping")
                    return
                url = next_href
        finally:
            self.state = CrawlState.DONE

    def crawl(self, profile_url: str) -> list[WishlistRecord]:
        records: list[WishlistRecord] = []
        for batch in self.iter_pages(profile_url):
            records.extend(batch)
        logger.info(f"{len(records)} wishlist films extracted")
        return records


class ReviewCrawler(_Crawler):
    """
    Walks the review tab page by page.

    Pagination only moves forward through "next" clicks, so expanding a
    truncated review (a detour to its permalink) is followed by reopening the
    tab and replaying `page_number - 1` clicks. A page whose first review was
    already seen on an earlier page ends the crawl: the "next" button is known
    to silently re-render the same page.
    """

    def __init__(self, client: PageClient, selectors: Selectors | None = None):
        super().__init__(client, selectors)
        self.page_number = 1

    def _open_review_tab(self, profile_url: str) -> bool:
        self._load(review_tab_url(profile_url), wait_until="load")
        return self.client.wait_for(self.selectors.review_block, REVIEW_TAB_TIMEOUT_MS)

    def _restore_position(self, profile_url: str, page_number: int) -> None:
        self._open_review_tab(profile_url)
        for _ in range(page_number - 1):
            if not self.client.click(self.selectors.next_page):
                logger.warning(f"Could not replay pagination back to review page {page_number}")
                return
            self.client.wait_for(self.selectors.review_block, REVIEW_PAGE_TIMEOUT_MS)

    def _expand(self, block: ReviewBlock, profile_url: str, page_number: int) -> str:
        """Fetch the full text behind a 'read more' link, then come back to the current page."""
        text = block.review_text
        logger.debug(f"  Expanding review of '{block.film_title}' from {block.more_url}")
        try:
            self._load(block.more_url)
            self.client.wait_for(self.selectors.review_text, FULL_TEXT_TIMEOUT_MS)
            text = try_extract(self.client.tree(), self.selectors.review_text, fallback=text)
        except PageLoadError as exc:
            logger.warning(f"Could not expand review of '{block.film_title}', keeping truncated text: {exc}")

        try:
            self._restore_position(profile_url, page_number)
        except PageLoadError as exc:
            logger.warning(f"Could not return to review page {page_number}: {exc}")
        return text

    def iter_pages(self, profile_url: str) -> Iterator[list[ReviewRecord]]:
        seen_fingerprints: set[str] = set()
        self.page_number = 1

        try:
            try:
                opened = self._open_review_tab(profile_url)
            except PageLoadError as exc:
                logger.warning(f"Could not open the review tab, treating it as empty: {exc}")
                return
            if not opened:
                logger.info("No reviews found on the review tab")
                return

            while True:
                self.state = CrawlState.EXTRACTING
                self.client.wait_for(self.selectors.review_block, REVIEW_PAGE_TIMEOUT_MS)
                blocks = self.client.extract(self.selectors.review_block, lambda b: parse_review_block(b, self.selectors))
                if not blocks:
                    return

                fingerprint = page_fingerprint([b.review_text for b in blocks])
                if fingerprint and fingerprint in seen_fingerprints:
                    logger.info(f"Review page {self.page_number} repeats an earlier page, stopping")
                    return
                if fingerprint:
                    seen_fingerprints.add(fingerprint)

                records = []
                for block in blocks:
                    text = block.review_text
                    if block.has_more and block.more_url:
                        text = self._expand(block, profile_url, self.page_number)
                        self.state = CrawlState.EXTRACTING
                    records.append(ReviewRecord(film_title=block.film_title, review_text=normalize_whitespace(text)))
                logger.debug(f"  Review page {self.page_number}: {len(records)} reviews")
                yield records

                self.state = CrawlState.LOADING
                if not self.client.click(self.selectors.next_page):
                    return
                if not self.client.wait_for(self.selectors.review_block, NEXT_PAGE_TIMEOUT_MS):
                    logger.debug("  Next review page never rendered, stopping")
                    return
                self.page_number += 1
        finally:
            self.state = CrawlState.DONE

    def crawl(self, profile_url: str) -> list[ReviewRecord]:
        reviews: list[ReviewRecord] = []
        for batch in self.iter_pages(profile_url):
            reviews.extend(batch)
        if reviews:
            logger.info(f"{len(reviews)} reviews extracted")
        return reviews


class DetailFetcher(_Crawler):
    """Per-film duration/directors lookup; a failed page yields empty fields."""

    def __init__(self, client: PageClient, selectors: Selectors | None = None, timeout: int = DETAIL_TIMEOUT_MS):
        super().__init__(client, selectors)
        self.timeout = timeout

    def fetch(self, film_url: str) -> FilmDetail:
        try:
            self.state = CrawlState.LOADING
            self.client.goto(film_url, wait_until="domcontentloaded", timeout=self.timeout)
            self.state = CrawlState.EXTRACTING
            return parse_film_detail(self.client.tree(), self.selectors)
        except PageLoadError as exc:
            logger.error(f"Error scraping {film_url}: {exc}")
            return FilmDetail()
        finally:
            self.state = CrawlState.DONE
