"""Facebook page scraper driving a CDP browser (e.g. Lightpanda) through Playwright.

The session is an explicit context manager: ``open()`` connects, ``login()``
authenticates, ``scrape()`` yields raw blocks per page and ``close()`` always
releases the browser and the Playwright driver.
"""

from __future__ import annotations

import random
import time
from typing import Any, Callable, Dict, Iterator, List, Optional

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

from opportunities.models.domain import FACEBOOK_BASE_URL, RawBlock, SourceDescriptor
from opportunities.settings import Settings
from opportunities.utils.logging import get_logger

from .base import AuthError, BaseScraper, ScrapeError

LOGIN_URL = f"{FACEBOOK_BASE_URL}/login"
VIEWPORT = {"width": 1280, "height": 800}
USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
FIELD_PAUSE_SECONDS = 0.5

SCROLL_SCRIPT = "() => window.scrollBy(0, window.innerHeight * 2)"

# Runs in the page. Tries known post containers first, then falls back to
# text-heavy divs; returns at most maxPosts {text, link} objects.
EXTRACT_POSTS_SCRIPT = """
(maxPosts) => {
  const selectors = [
    '[data-ad-preview="message"]',
    '[data-ad-comet-preview="message"]',
    'div[class*="x1iorvi4"]',
    'div[role="article"]',
  ];
  let elements = [];
  for (const selector of selectors) {
    const found = document.querySelectorAll(selector);
    if (found.length > 0) {
      elements = Array.from(found);
      break;
    }
  }
  if (elements.length === 0) {
    elements = Array.from(document.querySelectorAll('div')).filter((div) => {
      const text = (div.innerText || '').trim();
      return text.length > 100 && text.length < 5000;
    });
  }
  const results = [];
  for (const element of elements.slice(0, maxPosts)) {
    const text = (element.innerText || '').trim();
    const anchor = element.closest('a') || element.querySelector('a[href*="/posts/"]');
    results.push({ text, link: anchor ? anchor.href : '' });
  }
  return results;
}
"""

SleepFn = Callable[[float], None]


class FacebookSession(BaseScraper):
    """Authenticated browser session used for one run."""

    def __init__(
        self,
        settings: Settings,
        *,
        playwright_factory: Callable[[], Any] = sync_playwright,
        sleep: SleepFn = time.sleep,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._settings = settings
        self._playwright_factory = playwright_factory
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._logger = get_logger(__name__)
        self._playwright: Any = None
        self._browser: Any = None
        self._page: Any = None

    # ------------------------------------------------------------------
    # lifecycle
    # ------------------------------------------------------------------
    def __enter__(self) -> "FacebookSession":
        self.open()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:  # noqa: ANN001
        self.close()

    @property
    def is_open(self) -> bool:
        return self._page is not None

    def open(self) -> None:
        if self.is_open:
            return
        endpoint = self._settings.cdp_endpoint
        self._logger.info("browser.connect", extra={"cdp_endpoint": endpoint})
        self._playwright = self._playwright_factory().start()
        try:
            self._browser = self._playwright.chromium.connect_over_cdp(
                endpoint, timeout=self._settings.scrape_timeout_ms
            )
            contexts = self._browser.contexts
            context = contexts[0] if contexts else self._browser.new_context(
                viewport=VIEWPORT, user_agent=USER_AGENT
            )
            pages = context.pages
            self._page = pages[0] if pages else context.new_page()
        except PlaywrightError as exc:
            self.close()
            raise ScrapeError(f"เชื่อมต่อเบราว์เซอร์ไม่สำเร็จ ({endpoint}): {exc}") from exc
        self._logger.info("browser.connected", extra={"cdp_endpoint": endpoint})

    def close(self) -> None:
        browser, playwright = self._browser, self._playwright
        self._browser = self._playwright = self._page = None
        try:
            if browser is not None:
                browser.close()
        finally:
            if playwright is not None:
                playwright.stop()
                self._logger.info("browser.disconnected")

    # ------------------------------------------------------------------
    # operations
    # ------------------------------------------------------------------
    def login(self) -> None:
        email = self._settings.fb_email
        password = self._settings.fb_password.get_secret_value()
        if not email or not password:
            raise AuthError("ไม่ได้ระบุ Facebook credentials")

        page = self._require_page()
        timeout = self._settings.scrape_timeout_ms
        self._logger.info("facebook.login.start")
        try:
            page.goto(LOGIN_URL, wait_until="domcontentloaded", timeout=timeout)
            self._pause()
            page.fill('input[name="email"]', email)
            self._sleep(FIELD_PAUSE_SECONDS)
            page.fill('input[name="pass"]', password)
            self._sleep(FIELD_PAUSE_SECONDS)
            try:
                with page.expect_navigation(wait_until="domcontentloaded", timeout=timeout):
                    page.click('button[name="login"]')
            except PlaywrightTimeoutError:
                # navigation does not always fire; the URL check below decides
                self._logger.info("facebook.login.no_navigation")
            self._pause()
        except PlaywrightError as exc:
            raise AuthError(f"Facebook login ล้มเหลว: {exc}") from exc

        current_url = page.url
        if "login" in current_url or "checkpoint" in current_url:
            raise AuthError("Login failed - may need verification or incorrect credentials")
        self._logger.info("facebook.login.ok")

    def scrape(self, source: SourceDescriptor) -> Iterator[RawBlock]:
        page = self._require_page()
        url = source.page_url
        extra = {"source_id": source.source_id, "url": url}
        self._logger.info("facebook.scrape.start", extra=extra)
        try:
            page.goto(url, wait_until="domcontentloaded", timeout=self._settings.scrape_timeout_ms)
            self._pause()
            for _ in range(self._settings.scrape_scroll_count):
                page.evaluate(SCROLL_SCRIPT)
                self._pause()
            posts: List[Dict[str, Any]] = page.evaluate(EXTRACT_POSTS_SCRIPT, self._settings.scrape_max_posts) or []
        except PlaywrightTimeoutError as exc:
            raise ScrapeError(f"หมดเวลาโหลดเพจ {url}") from exc
        except PlaywrightError as exc:
            raise ScrapeError(f"scrape {url} ไม่สำเร็จ: {exc}") from exc

        self._logger.info("facebook.scrape.found", extra={**extra, "posts": len(posts)})
        for post in posts:
            yield RawBlock(text=str(post.get("text") or ""), link=str(post.get("link") or "") or None)

    # ------------------------------------------------------------------
    # helpers
    # ------------------------------------------------------------------
    def _require_page(self) -> Any:
        if self._page is None:
            raise ScrapeError("browser session is not open")
        return self._page

    def _pause(self) -> None:
        low, high = self._settings.scrape_delay_min_ms, self._settings.scrape_delay_max_ms
        self._sleep(self._rng.randint(low, high) / 1000)
