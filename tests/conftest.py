import io
import json
import os
import zipfile
from pathlib import Path

import pytest

from manifest_unlock.config import Settings
from manifest_unlock.installer import Installer
from manifest_unlock.ledger import Ledger
from manifest_unlock.sources.base import AcquisitionResult, AutomationSurface, Source
from manifest_unlock.sources.polling import PAGE_TEXT_JS, READY_JS, SET_INPUT_JS
from manifest_unlock.sources.uploads import (
    ALL_LINKS_JS,
    CLICK_ARCHIVE_JS,
    FIND_ARCHIVE_JS,
    REPAIR_FOLDER_JS,
    UPLOAD_LINK_JS,
)


def build_zip(files: dict) -> bytes:
    """files: archive name -> str/bytes content."""
    buf = io.BytesIO()
    with zipfile.ZipFile(buf, 'w') as zf:
        for name, content in files.items():
            zf.writestr(name, content)
    return buf.getvalue()


# ── Directory fixtures ────────────────────────────────────────────────────────

@pytest.fixture
def steam_root(tmp_path):
    root = tmp_path / 'Steam'
    (root / 'config').mkdir(parents=True)
    (root / 'steamapps').mkdir()
    return root


@pytest.fixture
def data_dir(tmp_path):
    path = tmp_path / 'data'
    path.mkdir()
    return path


@pytest.fixture
def settings(steam_root, data_dir):
    return Settings({'steam_path': str(steam_root), 'data_dir': str(data_dir)})


@pytest.fixture
def ledger(settings):
    return Ledger(settings.ledger_path)


@pytest.fixture
def installer(settings, ledger):
    return Installer(settings.plugin_dir, settings.depotcache_dir, ledger)


@pytest.fixture
def cache_dir(settings):
    os.makedirs(settings.cache_dir, exist_ok=True)
    return settings.cache_dir


# ── Automation fakes ──────────────────────────────────────────────────────────

class FakeSurface(AutomationSurface):
    """
    Scripted page. ``pages`` maps URL -> dict with optional keys
    upload_link, links (list or callable(surface)), repair, archive.
    """

    def __init__(self, pages=None, ready_after=None, not_found_after=None, download=None,
                 input_ok=True, goto_error=None):
        self.pages = pages or {}
        self.ready_after = ready_after
        self.not_found_after = not_found_after
        self.download = download
        self.input_ok = input_ok
        self.goto_error = goto_error
        self.current = None
        self.visited = []
        self.clicks = []
        self.cookies = []
        self.filled = None
        self.polls = 0
        self.archive_clicks = 0
        self.closed = 0
        self.headless = None

    def goto(self, url, timeout=None):
        self.visited.append(url)
        if self.goto_error is not None:
            raise self.goto_error
        self.current = url

    def _page(self):
        return self.pages.get(self.current, {})

    def evaluate(self, script, arg=None):
        if script == SET_INPUT_JS:
            self.filled = arg
            return self.input_ok
        if script == READY_JS:
            self.polls += 1
            return self.ready_after is not None and self.polls > self.ready_after
        if script == PAGE_TEXT_JS:
            return self.not_found_after is not None and self.polls >= self.not_found_after
        page = self._page()
        if script == UPLOAD_LINK_JS:
            return page.get('upload_link')
        if script == ALL_LINKS_JS:
            links = page.get('links', [])
            return links(self) if callable(links) else links
        if script == REPAIR_FOLDER_JS:
            return page.get('repair')
        if script == FIND_ARCHIVE_JS:
            return page.get('archive')
        if script == CLICK_ARCHIVE_JS:
            self.archive_clicks += 1
            return bool(page.get('archive'))
        raise AssertionError(f'unexpected script: {script!r}')

    def fill(self, selector, value):
        self.filled = [selector, value]

    def click(self, selector):
        self.clicks.append(selector)

    def add_cookies(self, cookies):
        self.cookies.extend(cookies)

    def expect_download(self, action, dest_dir, timeout=None):
        action()
        if self.download is None:
            raise RuntimeError('no download was triggered')
        data, filename = self.download
        os.makedirs(dest_dir, exist_ok=True)
        path = os.path.join(dest_dir, filename)
        with open(path, 'wb') as f:
            f.write(data)
        return path, filename

    def close(self):
        self.closed += 1


def factory_for(surface):
    def factory(headless=True):
        surface.headless = headless
        return surface
    return factory


class StubSource(Source):
    """Source that returns a canned result and counts calls."""

    def __init__(self, cache_dir, result=None, payload=None, name='stub', error=None):
        self.name = name
        self.label = name.title()
        super().__init__(cache_dir)
        self.result = result
        self.payload = payload
        self.error = error
        self.calls = []

    def _acquire(self, appid, deadline):
        self.calls.append(appid)
        if self.error is not None:
            raise self.error
        if self.payload is not None:
            data, filename = self.payload
            path = Path(self.cache_dir) / filename
            path.write_bytes(data)
            return AcquisitionResult.success(path, filename)
        return self.result


@pytest.fixture
def zip_bytes():
    return build_zip


@pytest.fixture
def write_json():
    def _write(path, data):
        Path(path).parent.mkdir(parents=True, exist_ok=True)
        Path(path).write_text(json.dumps(data), encoding='utf-8')
        return path
    return _write
