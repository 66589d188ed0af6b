import os

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import sync_playwright

from ..log import get_logger
from .base import AutomationSurface

logger = get_logger('sources.browser')

VIEWPORT = {'width': 1024, 'height': 768}
DEFAULT_TIMEOUT_SECONDS = 30.0


def _ms(seconds) -> float:
    return max(1.0, float(seconds if seconds is not None else DEFAULT_TIMEOUT_SECONDS) * 1000)


class PlaywrightSurface(AutomationSurface):
    """One Chromium browser, context and page, owned by a single acquisition."""

    def __init__(self, headless: bool = True):
        self._playwright = sync_playwright().start()
        try:
            self._browser = self._playwright.chromium.launch(headless=headless)
            self._context = self._browser.new_context(accept_downloads=True, viewport=VIEWPORT)
            self._page = self._context.new_page()
        except Exception:
            self._playwright.stop()
            raise
        self._closed = False

    def goto(self, url: str, timeout: float = None) -> None:
        self._page.goto(url, timeout=_ms(timeout), wait_until='domcontentloaded')

    def evaluate(self, script: str, arg=None):
        if arg is None:
            return self._page.evaluate(script)
        return self._page.evaluate(script, arg)

    def fill(self, selector: str, value: str) -> None:
        self._page.fill(selector, value)

    def click(self, selector: str) -> None:
        self._page.click(selector)

    def add_cookies(self, cookies: list) -> None:
        entries = []
        for cookie in cookies:
            entry = {
                'name': cookie.name,
                'value': cookie.value,
                'domain': cookie.domain,
                'path': cookie.path,
                'secure': cookie.secure,
                'httpOnly': cookie.http_only,
            }
            if cookie.expiry is not None:
                entry['expires'] = cookie.expiry
            entries.append(entry)
        if entries:
            self._context.add_cookies(entries)

    def expect_download(self, action, dest_dir: str, timeout: float = None):
        with self._page.expect_download(timeout=_ms(timeout)) as download_info:
            action()
        download = download_info.value
        filename = download.suggested_filename
        failure = download.failure()
        if failure:
            raise PlaywrightError(f'Download failed: {failure}')
        os.makedirs(dest_dir, exist_ok=True)
        path = os.path.join(dest_dir, filename)
        download.save_as(path)
        return path, filename

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        for closer in (self._context.close, self._browser.close, self._playwright.stop):
            try:
                closer()
            except Exception as exc:
                logger.debug('Ignoring error during browser cleanup: %s', exc)


def playwright_surface_factory(headless: bool = True) -> PlaywrightSurface:
    return PlaywrightSurface(headless=headless)
