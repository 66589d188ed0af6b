"""
Cookie sets handed to automation surfaces before they navigate.

How the cookies get onto disk is somebody else's job; a provider only maps a
purpose string (``main-domain``, ``upload-domain``, ``upload-domain-retry``)
to a list of cookies.
"""
import json
import os

from .log import get_logger

logger = get_logger('credentials')

MAIN_DOMAIN = 'main-domain'
UPLOAD_DOMAIN = 'upload-domain'
UPLOAD_DOMAIN_RETRY = 'upload-domain-retry'

DEFAULT_COOKIE_FILES = {
    MAIN_DOMAIN: 'online-fix.me_cookies.json',
    UPLOAD_DOMAIN: 'up_cookies.json',
    UPLOAD_DOMAIN_RETRY: 'up_retry_cookies.json',
}


class Cookie:
    def __init__(self, name, value, domain='', path='/', secure=True, http_only=False, expiry=None):
        self.name = name
        self.value = value
        self.domain = domain
        self.path = path or '/'
        self.secure = secure
        self.http_only = http_only
        self.expiry = expiry

    @classmethod
    def from_dict(cls, entry, default_domain: str = ''):
        if not isinstance(entry, dict):
            return None
        name = entry.get('name')
        if not isinstance(name, str) or not name:
            return None
        value = entry.get('value')
        expiry = None
        for key in ('expiry', 'expires', 'expirationDate'):
            raw = entry.get(key)
            if raw in (None, '', -1):
                continue
            try:
                expiry = float(raw)
                break
            except (TypeError, ValueError):
                continue
        return cls(
            name=name,
            value='' if value is None else str(value),
            domain=str(entry.get('domain') or default_domain),
            path=str(entry.get('path') or '/'),
            secure=bool(entry.get('secure', True)),
            http_only=bool(entry.get('httpOnly', False)),
            expiry=expiry,
        )

    def to_dict(self) -> dict:
        data = {
            'name': self.name,
            'value': self.value,
            'domain': self.domain,
            'path': self.path,
            'secure': self.secure,
            'httpOnly': self.http_only,
        }
        if self.expiry is not None:
            data['expiry'] = self.expiry
        return data

    def __repr__(self):
        return f'Cookie({self.name!r}, domain={self.domain!r})'


class CredentialProvider:
    def fetch_credential_set(self, purpose: str) -> list:
        raise NotImplementedError


class StaticCredentialProvider(CredentialProvider):
    def __init__(self, sets: dict = None):
        self.sets = dict(sets or {})
        self.requests = []

    def fetch_credential_set(self, purpose: str) -> list:
        self.requests.append(purpose)
        return list(self.sets.get(purpose) or [])


class JsonCookieProvider(CredentialProvider):
    """Reads one exported cookie JSON file per purpose from a directory."""

    def __init__(self, directory, files: dict = None, default_domains: dict = None):
        self.directory = os.fspath(directory)
        self.files = dict(DEFAULT_COOKIE_FILES)
        self.files.update(files or {})
        self.default_domains = default_domains or {}

    def fetch_credential_set(self, purpose: str) -> list:
        filename = self.files.get(purpose)
        if not filename:
            logger.warning('No cookie file configured for %s', purpose)
            return []
        path = os.path.join(self.directory, filename)
        if not os.path.exists(path):
            logger.info('Cookie file for %s not found at %s', purpose, path)
            return []
        try:
            with open(path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning('Failed to load cookies for %s from %s: %s', purpose, path, exc)
            return []
        if isinstance(raw, dict):
            raw = raw.get('cookies') or []
        if not isinstance(raw, list):
            return []
        default_domain = self.default_domains.get(purpose, '')
        cookies = [c for c in (Cookie.from_dict(e, default_domain) for e in raw) if c is not None]
        logger.info('Loaded %d cookie(s) for %s from %s', len(cookies), purpose, path)
        return cookies
