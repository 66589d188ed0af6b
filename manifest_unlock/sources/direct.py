import os
from urllib.parse import urljoin

import httpx

from ..errors import DefinitiveNotFound, TransientError
from .base import AcquisitionResult, Deadline, Source

MANIFESTHUB_URL = 'https://codeload.github.com/SteamAutoCracks/ManifestHub/zip/refs/heads/{appid}'
USER_AGENT = 'ManifestUnlock'
REDIRECT_CODES = (301, 302, 303, 307, 308)
MAX_REDIRECTS = 5


class DirectDownloadSource(Source):
    """Downloads ``<appid>.zip`` from a URL built by naming convention."""

    name = 'manifesthub'
    label = 'ManifestHub'
    default_timeout = 60.0

    def __init__(self, cache_dir, client: httpx.Client = None, url_template: str = MANIFESTHUB_URL,
                 timeout: float = None, failure_policy=None):
        super().__init__(cache_dir, timeout=timeout, failure_policy=failure_policy)
        self.url_template = url_template
        self._client = client

    def _get_client(self) -> httpx.Client:
        if self._client is None:
            self._client = httpx.Client(follow_redirects=False, headers={'User-Agent': USER_AGENT})
        return self._client

    def close(self) -> None:
        if self._client is not None:
            try:
                self._client.close()
            except Exception:
                pass
            self._client = None

    def _acquire(self, appid: str, deadline: Deadline) -> AcquisitionResult:
        url = self.url_template.format(appid=appid)
        dest_zip = os.path.join(self.cache_dir, f'{appid}.zip')
        client = self._get_client()
        self.log('URL: %s', url)

        for _hop in range(MAX_REDIRECTS + 1):
            deadline.check()
            try:
                with client.stream('GET', url, follow_redirects=False,
                                   timeout=max(1.0, deadline.remaining())) as resp:
                    status = resp.status_code
                    if status in REDIRECT_CODES:
                        location = resp.headers.get('Location')
                        if not location:
                            raise TransientError(f'Redirect {status} without Location header')
                        url = urljoin(url, location)
                        self.log('Redirected (%s) to %s', status, url)
                        continue
                    if status == 404:
                        raise DefinitiveNotFound(f'No manifest found for App ID: {appid}')
                    if not 200 <= status < 300:
                        raise TransientError(f'HTTP {status} from {url}')

                    bytes_read = 0
                    try:
                        with open(dest_zip, 'wb') as out_file:
                            for chunk in resp.iter_bytes():
                                if not chunk:
                                    continue
                                out_file.write(chunk)
                                bytes_read += len(chunk)
                                deadline.check()
                    except BaseException:
                        _remove_quietly(dest_zip)
                        raise
                    self.log('Saved %d bytes to %s', bytes_read, dest_zip)
                    return AcquisitionResult.success(dest_zip, f'{appid}.zip')
            except httpx.HTTPError as exc:
                _remove_quietly(dest_zip)
                raise TransientError(f'HTTP error: {exc}') from exc

        raise TransientError(f'Too many redirects for App ID: {appid}')


def _remove_quietly(path: str) -> None:
    try:
        if os.path.exists(path):
            os.remove(path)
    except OSError:
        pass
