import sys
from pathlib import Path

import pytest
from selectolax.lexbor import LexborHTMLParser

# Ensure the package under test is importable without installation
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from allocine_export.browser import PageLoadError  # noqa: E402
from allocine_export.config import DEFAULT_SELECTORS  # noqa: E402

BASE = "https://www.allocine.fr"
PROFILE_URL = f"{BASE}/membre-foo/films/"
REVIEW_TAB_URL = f"{BASE}/membre-foo/critiques/films/"
WISHLIST_URL = f"{BASE}/membre-foo/wishlist/films/"

NEXT_CLASS = "button button-md button-primary-full button-right"


class FakePageClient:
    """
    In-memory PageClient serving canned HTML per URL.

    Clicking an element with an href navigates to it, which is how the
    "next" button behaves on the review tab. URLs in `failing` raise
    PageLoadError on goto.
    """

    def __init__(self, pages: dict[str, str], failing=(), selectors=DEFAULT_SELECTORS):
        self.pages = pages
        self.failing = set(failing)
        self.selectors = selectors
        self.current_url: str | None = None
        self.history: list[str] = []
        self.cookie_clicks = 0
        self.entered = False
        self.closed = False

    def __enter__(self):
        self.entered = True
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.closed = True
        return False

    def goto(self, url, wait_until="domcontentloaded", timeout=None):
        self.history.append(url)
        if url in self.failing:
            raise PageLoadError(url, "timed out")
        self.current_url = url

    def tree(self):
        return LexborHTMLParser(self.pages.get(self.current_url, "<html><body></body></html>"))

    def exists(self, selector):
        return self.tree().css_first(selector) is not None

    def dismiss_cookie_banner(self):
        if not self.exists(self.selectors.accept_cookies):
            return False
        self.cookie_clicks += 1
        return True

    def click(self, selector):
        node = self.tree().css_first(selector)
        if node is None:
            return False
        href = node.attributes.get("href")
        if href:
            self.history.append(href)
            self.current_url = href
        return True

    def wait_for(self, selector, timeout):
        return self.exists(selector)

    def attribute(self, selector, name):
        node = self.tree().css_first(selector)
        return node.attributes.get(name) if node else None

    def extract(self, selector, extractor):
        return [extractor(node) for node in self.tree().css(selector)]


def film_card(title: str, href: str, rating_code: str | None = None) -> str:
    rating = f'<div class="rating-mdl {rating_code} stareval-stars"></div>' if rating_code else ""
    return (
        '<div class="card entity-card-simple userprofile-entity-card-simple">'
        f'<a class="meta-title meta-title-link" title="{title}" href="{href}">{title}</a>'
        f"{rating}</div>"
    )


def review_card(title: str, text: str, more_url: str | None = None) -> str:
    more = f'<a class="blue-link link-more" href="{more_url}">Lire plus</a>' if more_url else ""
    return (
        '<div class="review-card">'
        f'<div class="review-card-title"><a class="xXx" href="#">{title}</a></div>'
        f'<div class="content-txt review-card-content">{text}</div>'
        f"{more}</div>"
    )


def next_link(href: str) -> str:
    return f'<a class="{NEXT_CLASS}" href="{href}">Suivante</a>'


def page(*parts: str) -> str:
    return "<html><body>" + "".join(parts) + "</body></html>"


@pytest.fixture
def fake_client_factory():
    def _make(pages, failing=()):
        return FakePageClient(pages, failing=failing)
    return _make
