import copy
import json
import os
import sys
from pathlib import Path

from .log import get_logger

if sys.platform.startswith('win'):
    try:
        import winreg
    except ImportError:
        winreg = None
else:
    winreg = None

logger = get_logger('config')

SETTINGS_FILE = 'settings.json'
CONFIG_ENV_VAR = 'MANIFEST_UNLOCK_CONFIG'
DATA_ENV_VAR = 'MANIFEST_UNLOCK_DATA'
STEAM_ENV_VARS = ('STEAM_PATH', 'SteamPath', 'STEAM_INSTALL_PATH')

DEFAULT_SETTINGS = {
    'steam_path': '',
    'data_dir': '',
    'sources': ['manifesthub', 'kernelos', 'manifestor'],
    'http_timeout': 30,
    'source_timeouts': {
        'manifesthub': 60,
        'kernelos': 60,
        'manifestor': 120,
        'uploads': 300,
    },
    'settle': {
        'page_delay': 2.0,
        'step_delay': 0.5,
        'poll_interval': 0.5,
        'max_attempts': 60,
    },
    'headless': True,
    'cookie_dir': '',
    'lookup_names': False,
    'region': 'us',
    'failure_policy': {
        'empty_listing': 'retry_credentials',
        'poll_exhausted': 'not_found',
        'timeout': 'transient',
    },
}


def _read_json(path: str) -> dict:
    """Read and parse a JSON file, returns empty dict on failure."""
    if not path or not os.path.exists(path):
        return {}
    try:
        with open(path, 'r', encoding='utf-8') as f:
            data = json.load(f)
        return data if isinstance(data, dict) else {}
    except (OSError, ValueError) as exc:
        logger.warning('Ignoring unreadable settings file %s: %s', path, exc)
        return {}


def _merge(base: dict, override: dict) -> dict:
    merged = copy.deepcopy(base)
    for key, value in (override or {}).items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def default_data_dir() -> str:
    env_dir = os.environ.get(DATA_ENV_VAR)
    if env_dir:
        return os.path.abspath(os.path.expanduser(env_dir))
    if sys.platform.startswith('win'):
        root = os.environ.get('APPDATA') or os.path.expanduser('~')
        return os.path.join(root, 'ManifestUnlock')
    if sys.platform == 'darwin':
        return os.path.join(os.path.expanduser('~'), 'Library', 'Application Support', 'ManifestUnlock')
    root = os.environ.get('XDG_DATA_HOME') or os.path.join(os.path.expanduser('~'), '.local', 'share')
    return os.path.join(root, 'manifest-unlock')


def _registry_steam_path() -> str:
    if winreg is None:
        return ''
    for hive, subkey, value_name in (
        (winreg.HKEY_CURRENT_USER, r'Software\Valve\Steam', 'SteamPath'),
        (winreg.HKEY_LOCAL_MACHINE, r'Software\Valve\Steam', 'InstallPath'),
        (winreg.HKEY_LOCAL_MACHINE, r'SOFTWARE\Wow6432Node\Valve\Steam', 'InstallPath'),
    ):
        try:
            with winreg.OpenKey(hive, subkey) as key:
                steam_path = winreg.QueryValueEx(key, value_name)[0]
            if steam_path and os.path.exists(steam_path):
                return steam_path
        except OSError:
            continue
    return ''


def _platform_default_steam_path() -> str:
    if os.name == 'nt':
        return r'C:\Program Files (x86)\Steam'
    if sys.platform == 'darwin':
        return str(Path.home() / 'Library/Application Support/Steam')
    return str(Path.home() / '.steam/steam')


def detect_steam_install_path(explicit: str = '') -> str:
    candidates = []
    if explicit:
        candidates.append(explicit)

    path = _registry_steam_path()
    if path:
        candidates.append(path)

    for env_var in STEAM_ENV_VARS:
        env_path = os.environ.get(env_var)
        if env_path:
            candidates.append(env_path)

    for root_var in ('ProgramFiles(x86)', 'ProgramFiles'):
        root = os.environ.get(root_var)
        if root:
            candidates.append(os.path.join(root, 'Steam'))

    seen = set()
    for candidate in candidates:
        normalized = os.path.normpath(
            os.path.abspath(
                os.path.expanduser(os.path.expandvars(candidate))
            )
        )
        key = os.path.normcase(normalized)
        if key in seen:
            continue
        seen.add(key)
        if os.path.exists(normalized):
            logger.info('Steam path resolved to %s', normalized)
            return normalized

    # An explicit path wins even if it does not exist yet.
    if explicit:
        return os.path.normpath(os.path.abspath(os.path.expanduser(explicit)))
    fallback = _platform_default_steam_path()
    logger.info('Steam path not found, defaulting to %s', fallback)
    return fallback


class Settings:
    def __init__(self, data: dict = None, source_path: str = ''):
        self.data = _merge(DEFAULT_SETTINGS, data or {})
        self.source_path = source_path
        self._steam_path = None

    @classmethod
    def load(cls, path: str = None) -> 'Settings':
        path = path or os.environ.get(CONFIG_ENV_VAR) or os.path.join(default_data_dir(), SETTINGS_FILE)
        data = _read_json(path)
        if data:
            logger.info('Loaded settings from %s', path)
        return cls(data, source_path=path)

    def get(self, key: str, default=None):
        return self.data.get(key, default)

    @property
    def steam_path(self) -> str:
        if self._steam_path is None:
            self._steam_path = detect_steam_install_path(self.data.get('steam_path') or '')
        return self._steam_path

    @property
    def data_dir(self) -> str:
        explicit = self.data.get('data_dir')
        if explicit:
            return os.path.abspath(os.path.expanduser(explicit))
        return default_data_dir()

    @property
    def plugin_dir(self) -> str:
        return os.path.join(self.steam_path, 'config', 'stplug-in')

    @property
    def depotcache_dir(self) -> str:
        return os.path.join(self.steam_path, 'config', 'depotcache')

    @property
    def steamapps_dir(self) -> str:
        return os.path.join(self.steam_path, 'steamapps')

    @property
    def cache_dir(self) -> str:
        return os.path.join(self.data_dir, 'manifests')

    @property
    def ledger_path(self) -> str:
        return os.path.join(self.cache_dir, 'installed.json')

    @property
    def cookie_dir(self) -> str:
        explicit = self.data.get('cookie_dir')
        if explicit:
            return os.path.abspath(os.path.expanduser(explicit))
        return os.path.join(self.data_dir, 'cookie')

    @property
    def sources(self) -> list:
        return [str(name).strip().lower() for name in self.data.get('sources') or [] if str(name).strip()]

    def source_timeout(self, name: str) -> float:
        timeouts = self.data.get('source_timeouts') or {}
        try:
            return float(timeouts.get(name, DEFAULT_SETTINGS['source_timeouts'].get(name, 60)))
        except (TypeError, ValueError):
            return 60.0

    @property
    def http_timeout(self) -> float:
        try:
            return float(self.data.get('http_timeout', 30))
        except (TypeError, ValueError):
            return 30.0
