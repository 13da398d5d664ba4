"""
Single-tab browser client for the AlloCiné crawlers.

Every navigation, click and selector wait goes through one Playwright page;
DOM extraction parses a snapshot of that page with selectolax so the crawlers
share their parsing code with the tests.
"""
import logging
from typing import Callable, Protocol, TypeVar

from playwright.sync_api import (
    Browser,
    Error as PlaywrightError,
    Page,
    Playwright,
    TimeoutError as PlaywrightTimeoutError,
    sync_playwright,
)
from selectolax.lexbor import LexborHTMLParser, LexborNode

from .config import (
    BROWSER_ARGS,
    COOKIE_SETTLE_MS,
    DEFAULT_SELECTORS,
    HEADLESS,
    NAVIGATION_TIMEOUT_MS,
    Selectors,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class PageLoadError(RuntimeError):
    """A navigation (or a DOM snapshot) failed or timed out."""

    def __init__(self, url: str, reason: str):
        super().__init__(f"{url}: {reason}")
        self.url = url
        self.reason = reason


class PageClient(Protocol):
    """What the crawlers need from a browser tab."""

    selectors: Selectors

    def goto(self, url: str, wait_until: str = "domcontentloaded", timeout: int | None = None) -> None: ...

    def dismiss_cookie_banner(self) -> bool: ...

    def exists(self, selector: str) -> bool: ...

    def click(self, selector: str) -> bool: ...

    def wait_for(self, selector: str, timeout: int) -> bool: ...

    def attribute(self, selector: str, name: str) -> str | None: ...

    def tree(self) -> LexborHTMLParser: ...

    def extract(self, selector: str, extractor: Callable[[LexborNode], T]) -> list[T]: ...


class BrowserPageClient:
    """Playwright-backed PageClient. Use as a context manager or call start()/close()."""

    def __init__(
        self,
        headless: bool = HEADLESS,
        selectors: Selectors = DEFAULT_SELECTORS,
        navigation_timeout: int = NAVIGATION_TIMEOUT_MS,
        cookie_settle_ms: int = COOKIE_SETTLE_MS,
        page: Page | None = None,
    ):
        self.selectors = selectors
        self._headless = headless
        self._navigation_timeout = navigation_timeout
        self._cookie_settle_ms = cookie_settle_ms
        self._playwright: Playwright | None = None
        self._browser: Browser | None = None
        self._page = page
        self._external_page = page is not None

    def __enter__(self) -> "BrowserPageClient":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False

    def start(self) -> Page:
        if self._page is not None:
            return self._page

        self._playwright = sync_playwright().start()
        self._browser = self._playwright.chromium.launch(headless=self._headless, args=BROWSER_ARGS)
        self._page = self._browser.new_page()
        self._page.set_default_timeout(self._navigation_timeout)
        logger.debug(f"Browser started (headless={self._headless})")
        return self._page

    def close(self) -> None:
        if not self._external_page:
            if self._browser is not None:
                self._browser.close()
            if self._playwright is not None:
                self._playwright.stop()

        self._browser = None
        self._playwright = None
        self._page = None
        self._external_page = False

    @property
    def page(self) -> Page:
        if self._page is None:
            raise RuntimeError("Browser page is not started. Call start() or use the client as a context manager.")
        return self._page

    def goto(self, url: str, wait_until: str = "domcontentloaded", timeout: int | None = None) -> None:
        try:
            self.page.goto(url, wait_until=wait_until, timeout=timeout or self._navigation_timeout)
        except PlaywrightTimeoutError as exc:
            raise PageLoadError(url, f"timed out ({exc.message})") from exc
        except PlaywrightError as exc:
            raise PageLoadError(url, exc.message) from exc

    def dismiss_cookie_banner(self) -> bool:
        """Click the consent button if shown, then let the page settle."""
        if not self.click(self.selectors.accept_cookies):
            return False
        self.page.wait_for_timeout(self._cookie_settle_ms)
        logger.debug("Cookie banner dismissed")
        return True

    def exists(self, selector: str) -> bool:
        try:
            return self.page.query_selector(selector) is not None
        except PlaywrightError as exc:
            logger.debug(f"Selector check failed for '{selector}': {exc.message}")
            return False

    def click(self, selector: str) -> bool:
        """Click the first match; False when there is nothing clickable."""
        try:
            handle = self.page.query_selector(selector)
            if handle is None:
                return False
            handle.click()
            return True
        except PlaywrightError as exc:
            logger.debug(f"Click on '{selector}' failed: {exc.message}")
            return False

    def wait_for(self, selector: str, timeout: int) -> bool:
        """Bounded wait; a timeout is reported as False, never raised."""
        try:
            self.page.wait_for_selector(selector, timeout=timeout)
            return True
        except PlaywrightTimeoutError:
            return False
        except PlaywrightError as exc:
            logger.debug(f"Waiting for '{selector}' failed: {exc.message}")
            return False

    def tree(self) -> LexborHTMLParser:
        try:
            return LexborHTMLParser(self.page.content())
        except PlaywrightError as exc:
            raise PageLoadError(self.page.url, f"could not read page content ({exc.message})") from exc

    def attribute(self, selector: str, name: str) -> str | None:
        node = self.tree().css_first(selector)
        if node is None:
            return None
        return node.attributes.get(name)

    def extract(self, selector: str, extractor: Callable[[LexborNode], T]) -> list[T]:
        return [extractor(node) for node in self.tree().css(selector)]
