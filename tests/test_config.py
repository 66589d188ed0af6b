import json
import os

from manifest_unlock import config
from manifest_unlock.config import Settings


def test_defaults_without_file(tmp_path):
    settings = Settings.load(str(tmp_path / 'missing.json'))
    assert settings.sources == ['manifesthub', 'kernelos', 'manifestor']
    assert settings.source_timeout('kernelos') == 60
    assert settings.get('headless') is True


def test_file_values_merge_over_defaults(tmp_path, write_json):
    path = write_json(tmp_path / 'settings.json', {
        'sources': ['Kernelos', ' manifesthub '],
        'settle': {'poll_interval': 1},
        'source_timeouts': {'kernelos': 15},
    })
    settings = Settings.load(str(path))
    assert settings.sources == ['kernelos', 'manifesthub']
    assert settings.get('settle') == {'page_delay': 2.0, 'step_delay': 0.5, 'poll_interval': 1, 'max_attempts': 60}
    assert settings.source_timeout('kernelos') == 15
    assert settings.source_timeout('manifestor') == 120


def test_unreadable_file_falls_back_to_defaults(tmp_path):
    path = tmp_path / 'settings.json'
    path.write_text('{oops')
    assert Settings.load(str(path)).sources == ['manifesthub', 'kernelos', 'manifestor']


def test_config_path_from_environment(tmp_path, monkeypatch, write_json):
    path = write_json(tmp_path / 'custom.json', {'region': 'de'})
    monkeypatch.setenv(config.CONFIG_ENV_VAR, str(path))
    assert Settings.load().get('region') == 'de'


def test_derived_paths(steam_root, data_dir):
    settings = Settings({'steam_path': str(steam_root), 'data_dir': str(data_dir)})
    assert settings.plugin_dir == os.path.join(str(steam_root), 'config', 'stplug-in')
    assert settings.depotcache_dir == os.path.join(str(steam_root), 'config', 'depotcache')
    assert settings.steamapps_dir == os.path.join(str(steam_root), 'steamapps')
    assert settings.ledger_path == os.path.join(str(data_dir), 'manifests', 'installed.json')
    assert settings.cookie_dir == os.path.join(str(data_dir), 'cookie')


def test_steam_path_from_environment(tmp_path, monkeypatch):
    steam = tmp_path / 'EnvSteam'
    steam.mkdir()
    monkeypatch.setattr(config, 'winreg', None)
    monkeypatch.setenv('STEAM_PATH', str(steam))
    assert config.detect_steam_install_path() == os.path.normpath(str(steam))


def test_explicit_missing_steam_path_is_kept(tmp_path, monkeypatch):
    monkeypatch.setattr(config, 'winreg', None)
    for var in config.STEAM_ENV_VARS + ('ProgramFiles(x86)', 'ProgramFiles'):
        monkeypatch.delenv(var, raising=False)
    target = tmp_path / 'not-yet'
    assert config.detect_steam_install_path(str(target)) == os.path.normpath(str(target))


def test_data_dir_from_environment(tmp_path, monkeypatch):
    monkeypatch.setenv(config.DATA_ENV_VAR, str(tmp_path / 'd'))
    assert Settings().data_dir == str(tmp_path / 'd')


def test_settings_roundtrip_json_is_plain(tmp_path):
    settings = Settings({'lookup_names': True})
    json.dumps(settings.data)
    assert settings.get('lookup_names') is True
