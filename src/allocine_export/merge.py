"""Join crawled collections into the flat rows that get exported."""

import logging
from dataclasses import dataclass
from typing import Iterable, Sequence

from tqdm import tqdm

from .config import BASE_URL
from .scraper import DetailFetcher, FilmRecord, ReviewRecord, WishlistRecord
from .utils import absolute_url, normalize_title

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class MergedRecord:
    title: str
    rating: str
    review: str
    url: str

    def as_row(self) -> dict[str, str]:
        return {"Title": self.title, "Rating": self.rating, "Review": self.review, "Url": self.url}


@dataclass(frozen=True)
class DetailedFilm:
    title: str
    rating: str
    duration: str
    directors: str
    url: str

    def as_row(self) -> dict[str, str]:
        return {
            "Title": self.title,
            "Rating": self.rating,
            "Duration": self.duration,
            "Directors": self.directors,
            "Url": self.url,
        }


class RecordMerger:
    """
    Left-outer join of rated films against reviews on the normalized title.

    Films without a review get an empty review; reviews without a film are
    dropped. Output order follows the film sequence. When two reviews share a
    key, the later one wins.
    """

    def __init__(self, base_url: str = BASE_URL):
        self.base_url = base_url

    def merge(self, films: Sequence[FilmRecord], reviews: Iterable[ReviewRecord]) -> list[MergedRecord]:
        review_by_title = {normalize_title(r.film_title): r.review_text for r in reviews}

        merged = [
            MergedRecord(
                title=film.title,
                rating=film.rating,
                review=review_by_title.get(normalize_title(film.title), ""),
                url=absolute_url(film.url, self.base_url),
            )
            for film in films
        ]

        matched = sum(1 for m in merged if m.review)
        logger.debug(f"Merged {len(merged)} films, {matched} with a review")
        return merged


def enrich_with_details(
    films: Sequence[FilmRecord],
    fetcher: DetailFetcher,
    base_url: str = BASE_URL,
) -> list[DetailedFilm]:
    """Fetch duration/directors for every film, one page at a time."""
    enriched = []
    total = len(films)
    for i, film in enumerate(tqdm(films, desc="Details"), start=1):
        url = absolute_url(film.url, base_url)
        detail = fetcher.fetch(url)
        enriched.append(DetailedFilm(
            title=film.title,
            rating=film.rating,
            duration=detail.duration,
            directors=detail.directors,
            url=url,
        ))
        logger.debug(f"[{i}/{total}] {film.title} | {detail.duration} | {detail.directors}")
    return enriched


def wishlist_rows(records: Iterable[WishlistRecord], base_url: str = BASE_URL) -> list[dict[str, str]]:
    return [{"Title": r.title, "Url": absolute_url(r.url, base_url)} for r in records]
