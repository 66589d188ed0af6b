"""
Fallback chain that fetches a manifest bundle for an appid and installs it
into the Steam plugin and depot cache directories.

Sources run one after another in priority order. The first source to return
a payload decides the outcome: its bundle is installed (or fails to install)
and later sources are not consulted.
"""
import os
import shutil
import threading

import httpx

from . import hooks
from .archive import extract_all
from .credentials import JsonCookieProvider
from .errors import CorruptPayload, DefinitiveNotFound, LedgerIOError, NoRecognizedFiles, UnrecognizedFileType
from .installer import DIRECT_FILE_EXTENSIONS, Installer
from .ledger import Ledger, normalize_appid
from .log import get_logger, log_appid_event
from .metadata import fetch_app_name
from .sources import (
    NOT_FOUND,
    CredentialedUploadSource,
    DirectDownloadSource,
    FailurePolicy,
    SettlePolicy,
    kernelos_source,
    manifestor_source,
)

logger = get_logger('service')


class ManifestService:
    def __init__(self, sources, installer: Installer, ledger: Ledger, cache_dir, steamapps_dir,
                 data_dir=None, name_lookup=None):
        self.sources = list(sources)
        self.installer = installer
        self.ledger = ledger
        self.cache_dir = os.fspath(cache_dir)
        self.steamapps_dir = os.fspath(steamapps_dir)
        self.data_dir = os.fspath(data_dir) if data_dir else self.cache_dir
        self.name_lookup = name_lookup
        self._state = {}
        self._state_lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings, surface_factory=None, credentials=None, http_client=None):
        if surface_factory is None:
            from .sources.browser import playwright_surface_factory
            surface_factory = playwright_surface_factory
        if credentials is None:
            credentials = JsonCookieProvider(settings.cookie_dir)

        cache_dir = settings.cache_dir
        settle_cfg = settings.get('settle') or {}
        policy_cfg = settings.get('failure_policy') or {}
        headless = bool(settings.get('headless', True))

        builders = {
            'manifesthub': lambda: DirectDownloadSource(
                cache_dir, client=http_client,
                timeout=settings.source_timeout('manifesthub'),
            ),
            'kernelos': lambda: kernelos_source(
                cache_dir, surface_factory,
                settle=SettlePolicy.from_dict(settle_cfg),
                timeout=settings.source_timeout('kernelos'),
                failure_policy=FailurePolicy.from_dict(policy_cfg),
                headless=headless,
            ),
            # Turnstile needs a visible window and more time.
            'manifestor': lambda: manifestor_source(
                cache_dir, surface_factory,
                settle=SettlePolicy.from_dict(settle_cfg, max_attempts=max(240, int(settle_cfg.get('max_attempts', 0)))),
                timeout=settings.source_timeout('manifestor'),
                failure_policy=FailurePolicy.from_dict(policy_cfg, timeout=NOT_FOUND),
            ),
            'uploads': lambda: CredentialedUploadSource(
                cache_dir, surface_factory, credentials,
                settle=SettlePolicy.from_dict(settle_cfg),
                timeout=settings.source_timeout('uploads'),
                failure_policy=FailurePolicy.from_dict(policy_cfg),
                headless=headless,
            ),
        }
        sources = []
        for name in settings.sources:
            builder = builders.get(name)
            if builder is None:
                logger.warning('Unknown source %r in settings, skipping', name)
                continue
            sources.append(builder())

        ledger = Ledger(settings.ledger_path)
        installer = Installer(settings.plugin_dir, settings.depotcache_dir, ledger)

        name_lookup = None
        if settings.get('lookup_names'):
            lookup_client = http_client or httpx.Client(timeout=settings.http_timeout)
            region = settings.get('region') or 'us'
            name_lookup = lambda appid: fetch_app_name(lookup_client, appid, region)

        return cls(sources, installer, ledger, cache_dir, settings.steamapps_dir,
                   data_dir=settings.data_dir, name_lookup=name_lookup)

    def _set_state(self, appid: str, update: dict) -> None:
        with self._state_lock:
            state = self._state.get(appid) or {}
            state.update(update)
            self._state[appid] = state

    def get_download_state(self, appid) -> dict:
        with self._state_lock:
            return dict(self._state.get(str(appid), {}))

    def mark_queued(self, appid) -> None:
        """Start a fresh state for appid, dropping whatever the last run left behind."""
        with self._state_lock:
            self._state[str(appid)] = {'status': 'queued', 'currentSource': None, 'error': None}

    def download_manifest(self, appid) -> dict:
        try:
            appid = normalize_appid(appid)
        except ValueError as e:
            return {'success': False, 'error': str(e)}
        self.mark_queued(appid)
        self._set_state(appid, {'status': 'checking'})
        os.makedirs(self.cache_dir, exist_ok=True)
        logger.info('Downloading manifest for App ID: %s', appid)

        for index, source in enumerate(self.sources):
            self._set_state(appid, {'status': 'downloading', 'currentSource': source.label})
            logger.info('Trying source #%d (%s) for App ID %s', index + 1, source.label, appid)
            acquired = source.acquire(appid)
            if not acquired.ok:
                logger.info('%s failed for %s (%s): %s', source.label, appid, acquired.kind, acquired.reason)
                continue

            self._set_state(appid, {'status': 'installing', 'currentSource': source.label})
            result = self._install_payload(appid, acquired.payload_path, acquired.payload_filename)
            if result.get('success'):
                result['source'] = source.label
                self._set_state(appid, {'status': 'done', 'success': True, 'name': result.get('name')})
            else:
                self._set_state(appid, {'status': 'failed', 'success': False, 'error': result.get('error')})
            return result

        error = f'No manifest found for App ID: {appid}'
        self._set_state(appid, {'status': 'failed', 'success': False, 'error': error})
        return {'success': False, 'error': error}

    def _install_payload(self, appid: str, payload_path: str, filename: str) -> dict:
        filename = filename or os.path.basename(payload_path)
        extract_path = self._extract_path(appid)
        try:
            if os.path.splitext(filename)[1].lower() in DIRECT_FILE_EXTENSIONS:
                result = self.installer.install_single_file(
                    payload_path, appid, filename, name_hint=lambda: self._lookup_name(appid))
            else:
                # Leftovers from an earlier bundle must not be reinstalled.
                shutil.rmtree(extract_path, ignore_errors=True)
                extract_all(payload_path, extract_path)
                result = self.installer.install_from_directory(
                    extract_path, appid, name_hint=lambda: self._lookup_name(appid))
        except CorruptPayload as exc:
            logger.error('Corrupt payload for %s: %s', appid, exc)
            return {'success': False, 'error': f'No manifest found for App ID: {appid}'}
        except (NoRecognizedFiles, UnrecognizedFileType) as exc:
            return {'success': False, 'error': str(exc)}
        except LedgerIOError as exc:
            logger.error('Could not record install for %s: %s', appid, exc)
            return {'success': False, 'error': str(exc)}
        except OSError as exc:
            logger.error('Install error for %s: %s', appid, exc)
            return {'success': False, 'error': f'Failed to install: {exc}'}
        finally:
            _remove_quietly(payload_path)

        hooks.disable_auto_update(self.steamapps_dir, appid)
        log_appid_event(self.data_dir, 'ADDED', appid, result['name'])
        return result

    def _lookup_name(self, appid: str) -> str:
        if self.name_lookup is None:
            return ''
        try:
            return self.name_lookup(appid) or ''
        except Exception as exc:
            logger.warning('Name lookup failed for %s: %s', appid, exc)
            return ''

    def _extract_path(self, appid: str) -> str:
        root = os.path.realpath(self.cache_dir)
        path = os.path.realpath(os.path.join(root, appid))
        if os.path.dirname(path) != root:
            raise ValueError(f'Extraction path for {appid!r} escapes {root}')
        return path

    def get_installed_games(self) -> list:
        return [record.to_dict() for record in self.ledger.list()]

    def remove_game(self, appid) -> dict:
        try:
            appid = normalize_appid(appid)
        except ValueError as e:
            return {'success': False, 'error': str(e)}
        record = self.ledger.get(appid)
        try:
            deleted = self.ledger.remove(appid)
        except DefinitiveNotFound as exc:
            return {'success': False, 'error': str(exc)}
        except LedgerIOError as exc:
            return {'success': False, 'error': str(exc)}

        extract_path = self._extract_path(appid)
        if os.path.isdir(extract_path):
            shutil.rmtree(extract_path, ignore_errors=True)
        log_appid_event(self.data_dir, 'REMOVED', appid, record.name if record else appid)
        return {'success': True, 'deleted': deleted, 'count': len(deleted)}

    def close(self) -> None:
        for source in self.sources:
            closer = getattr(source, 'close', None)
            if closer is not None:
                closer()


def _remove_quietly(path: str) -> None:
    try:
        if path and os.path.isfile(path):
            os.remove(path)
    except OSError as exc:
        logger.debug('Could not remove %s: %s', path, exc)
