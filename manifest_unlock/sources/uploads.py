from ..credentials import MAIN_DOMAIN, UPLOAD_DOMAIN, UPLOAD_DOMAIN_RETRY
from ..errors import DefinitiveNotFound, TransientError
from .base import AcquisitionResult, AutomationSource, Deadline

PAGE_URL_TEMPLATE = 'https://online-fix.me/games/{appid}/'
UPLOAD_HOST = 'uploads.online-fix.me'
ARCHIVE_EXTENSIONS = ('.zip',)

UPLOAD_LINK_JS = """
([selector, host]) => {
    for (const link of document.querySelectorAll(selector)) {
        if (link.href && link.href.includes(host)) return link.href;
    }
    return null;
}
"""

ALL_LINKS_JS = """
() => Array.from(document.querySelectorAll('a')).map(a => a.href).filter(Boolean)
"""

REPAIR_FOLDER_JS = """
() => {
    for (const link of document.querySelectorAll('a')) {
        const href = link.href || '';
        const text = link.textContent || '';
        if ((href.includes('Fix') && href.includes('Repair')) ||
            (text.includes('Fix') && text.includes('Repair'))) {
            return link.href;
        }
    }
    return null;
}
"""

FIND_ARCHIVE_JS = """
(extensions) => {
    for (const link of document.querySelectorAll('a')) {
        const href = (link.href || '').toLowerCase();
        if (extensions.some(ext => href.endsWith(ext))) return link.href;
    }
    return null;
}
"""

CLICK_ARCHIVE_JS = """
(extensions) => {
    for (const link of document.querySelectorAll('a')) {
        const href = (link.href || '').toLowerCase();
        if (extensions.some(ext => href.endsWith(ext))) {
            link.click();
            return true;
        }
    }
    return false;
}
"""


class CredentialedUploadSource(AutomationSource):
    """
    Follows a styled link from a members-only page to its upload subdomain,
    descends into the repair folder if there is one, and clicks the first
    archive it can find. Needs cookies for both domains.
    """

    name = 'uploads'
    label = 'Uploads'
    default_timeout = 300.0

    def __init__(self, cache_dir, surface_factory, credentials, page_url_template: str = PAGE_URL_TEMPLATE,
                 upload_host: str = UPLOAD_HOST, link_selector: str = 'a.btn-success',
                 archive_extensions=ARCHIVE_EXTENSIONS, **kwargs):
        super().__init__(cache_dir, surface_factory, **kwargs)
        self.credentials = credentials
        self.page_url_template = page_url_template
        self.upload_host = upload_host
        self.link_selector = link_selector
        self.archive_extensions = [ext.lower() for ext in archive_extensions]

    def _load_credentials(self, surface, purpose: str) -> int:
        cookies = self.credentials.fetch_credential_set(purpose) if self.credentials else []
        if cookies:
            surface.add_cookies(cookies)
        self.log('Loaded %d %s cookie(s)', len(cookies), purpose)
        return len(cookies)

    def _open(self, surface, url: str, deadline: Deadline, delay: float) -> None:
        try:
            surface.goto(url, timeout=deadline.remaining())
        except Exception as exc:
            raise TransientError(f'Failed to load page {url}: {exc}') from exc
        self.settle.wait(delay, deadline)

    def _links(self, surface) -> list:
        return list(surface.evaluate(ALL_LINKS_JS) or [])

    def _drive(self, surface, appid: str, deadline: Deadline) -> AcquisitionResult:
        self._load_credentials(surface, MAIN_DOMAIN)
        self._load_credentials(surface, UPLOAD_DOMAIN)

        page_url = self.page_url_template.format(appid=appid)
        self._open(surface, page_url, deadline, self.settle.page_delay * 1.5)
        self.log('Page loaded, searching for upload link...')

        uploads_link = surface.evaluate(UPLOAD_LINK_JS, [self.link_selector, self.upload_host])
        if not uploads_link:
            raise DefinitiveNotFound('Fix download link not found')
        self.log('Found uploads link: %s', uploads_link)

        self._open(surface, uploads_link, deadline, self.settle.page_delay)
        links = self._links(surface)
        if not links:
            if self.failure_policy.empty_listing != 'retry_credentials':
                raise DefinitiveNotFound('Upload page shows no links')
            self.log('Upload page shows no links, retrying with upload credentials')
            self._load_credentials(surface, UPLOAD_DOMAIN_RETRY)
            self._open(surface, uploads_link, deadline, self.settle.page_delay)
            links = self._links(surface)
            if not links:
                raise DefinitiveNotFound('Upload page shows no links after credential retry')
        self.log('Links on page: %d', len(links))

        archive_link = None
        repair_link = surface.evaluate(REPAIR_FOLDER_JS)
        if repair_link:
            self.log('Found Fix Repair folder, navigating...')
            self._open(surface, repair_link, deadline, self.settle.page_delay)
            archive_link = surface.evaluate(FIND_ARCHIVE_JS, self.archive_extensions)

        if not archive_link:
            if repair_link:
                self._open(surface, uploads_link, deadline, self.settle.page_delay / 2)
            archive_link = surface.evaluate(FIND_ARCHIVE_JS, self.archive_extensions)

        if not archive_link:
            raise DefinitiveNotFound('Archive file not found. Check the website manually.')
        self.log('Found archive: %s', archive_link)

        def click_archive():
            if not surface.evaluate(CLICK_ARCHIVE_JS, self.archive_extensions):
                raise TransientError('Archive link disappeared before it could be clicked')

        return self._download(surface, click_archive, deadline)
