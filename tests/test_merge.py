from allocine_export import merge
from allocine_export.scraper import DetailFetcher, FilmDetail, FilmRecord, ReviewRecord, WishlistRecord

from conftest import BASE, FakePageClient, page


def test_merge_joins_on_normalized_title():
    merged = merge.RecordMerger(base_url=BASE).merge(
        [FilmRecord(title="Amélie", rating="4.5", url="/a")],
        [ReviewRecord(film_title="amelie", review_text="Great")],
    )

    assert [m.as_row() for m in merged] == [
        {"Title": "Amélie", "Rating": "4.5", "Review": "Great", "Url": f"{BASE}/a"},
    ]


def test_merge_is_left_outer_and_follows_film_order():
    films = [
        FilmRecord("Zodiac", "4.0", "/z"),
        FilmRecord("Brazil", "", "https://www.allocine.fr/b"),
        FilmRecord("Ça", "2.0", "/c"),
    ]
    reviews = [
        ReviewRecord("CA", "Scary"),
        ReviewRecord("Orphan review", "Dropped"),
        ReviewRecord("zodiac", "Slow burn"),
    ]

    merged = merge.RecordMerger(base_url=BASE).merge(films, reviews)

    assert [(m.title, m.review) for m in merged] == [
        ("Zodiac", "Slow burn"),
        ("Brazil", ""),
        ("Ça", "Scary"),
    ]
    assert [m.url for m in merged] == [f"{BASE}/z", f"{BASE}/b", f"{BASE}/c"]


def test_merge_later_review_wins_on_duplicate_key():
    merged = merge.RecordMerger(base_url=BASE).merge(
        [FilmRecord("Heat", "5.0", "/h")],
        [ReviewRecord("Heat", "First"), ReviewRecord("HEAT", "Second")],
    )

    assert merged[0].review == "Second"


def test_merge_without_reviews():
    merged = merge.RecordMerger(base_url=BASE).merge([FilmRecord("Heat", "5.0", "/h")], [])
    assert merged[0].review == ""


def test_enrich_with_details_keeps_going_after_failures():
    ok_url = f"{BASE}/film/ok.html"
    bad_url = f"{BASE}/film/bad.html"
    client = FakePageClient(
        {ok_url: page('<div class="meta-body-info">1h 10min</div>')},
        failing={bad_url},
    )
    films = [FilmRecord("Bad", "1.0", "/film/bad.html"), FilmRecord("Ok", "3.5", "/film/ok.html")]

    enriched = merge.enrich_with_details(films, DetailFetcher(client), base_url=BASE)

    assert [e.as_row() for e in enriched] == [
        {"Title": "Bad", "Rating": "1.0", "Duration": "", "Directors": "", "Url": bad_url},
        {"Title": "Ok", "Rating": "3.5", "Duration": "1h 10min", "Directors": "", "Url": ok_url},
    ]


def test_enrich_with_details_passes_absolute_urls():
    seen = []

    class RecordingFetcher:
        def fetch(self, url):
            seen.append(url)
            return FilmDetail()

    merge.enrich_with_details([FilmRecord("A", "", "/a"), FilmRecord("B", "", f"{BASE}/b")], RecordingFetcher(), base_url=BASE)

    assert seen == [f"{BASE}/a", f"{BASE}/b"]


def test_wishlist_rows_make_urls_absolute():
    rows = merge.wishlist_rows([WishlistRecord("W", "/w"), WishlistRecord("X", "https://elsewhere.test/x")], base_url=BASE)
    assert rows == [
        {"Title": "W", "Url": f"{BASE}/w"},
        {"Title": "X", "Url": "https://elsewhere.test/x"},
    ]
