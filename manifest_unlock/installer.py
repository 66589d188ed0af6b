import json
import os
import shutil

from .errors import NoRecognizedFiles, UnrecognizedFileType
from .ledger import InstalledFile, InstalledRecord
from .log import get_logger

logger = get_logger('installer')

PLUGIN_DIR = 'plugin'
DEPOTCACHE_DIR = 'depotcache'

# extension -> (destination, kind)
DESTINATION_RULES = {
    '.lua': (PLUGIN_DIR, 'lua'),
    '.vdf': (PLUGIN_DIR, 'vdf'),
    '.manifest': (DEPOTCACHE_DIR, 'manifest'),
}
DIRECT_FILE_EXTENSIONS = tuple(DESTINATION_RULES)


def classify(filename: str):
    ext = os.path.splitext(filename)[1].lower()
    return DESTINATION_RULES.get(ext)


def _read_sidecar_name(path: str) -> str:
    try:
        with open(path, 'r', encoding='utf-8') as f:
            info = json.load(f)
    except (OSError, ValueError):
        return ''
    if isinstance(info, dict):
        name = info.get('name')
        if isinstance(name, str) and name.strip():
            return name.strip()
    return ''


def _resolve(name_hint) -> str:
    if callable(name_hint):
        name_hint = name_hint()
    return name_hint or ''


class Installer:
    def __init__(self, plugin_dir, depotcache_dir, ledger):
        self.directories = {
            PLUGIN_DIR: os.fspath(plugin_dir),
            DEPOTCACHE_DIR: os.fspath(depotcache_dir),
        }
        self.ledger = ledger

    def _copy(self, src: str, filename: str, destination: str) -> str:
        target_dir = self.directories[destination]
        os.makedirs(target_dir, exist_ok=True)
        dest_path = os.path.join(target_dir, filename)
        shutil.copyfile(src, dest_path)
        logger.info('Copied: %s -> %s', filename, dest_path)
        return dest_path

    def _record(self, appid: str, name: str, files: list) -> dict:
        record = InstalledRecord(appid, name, files)
        previous = self.ledger.upsert(record)
        if previous is not None:
            kept = {f.path for f in files}
            orphans = [f.path for f in previous.files if f.path not in kept]
            if orphans:
                # Replacing a record only touches the ledger; stale files stay on disk.
                logger.warning('Re-install of %s left %d untracked file(s): %s',
                               appid, len(orphans), ', '.join(orphans))
        return {
            'success': True,
            'appId': record.appid,
            'name': record.name,
            'files': [f.to_dict() for f in record.files],
        }

    def install_from_directory(self, root, appid, name_hint=None) -> dict:
        """
        Copy every recognized file under root to its destination and record them.

        name_hint is a name or a callable returning one; it is only consulted
        when no ``.json`` sidecar names the game.
        """
        root = os.fspath(root)
        appid = str(appid)
        installed = []
        seen = set()
        game_name = ''

        for dirpath, dirnames, filenames in os.walk(root):
            dirnames.sort()
            for filename in sorted(filenames):
                src = os.path.join(dirpath, filename)
                if not os.path.isfile(src):
                    continue
                if filename.lower().endswith('.json'):
                    if not game_name:
                        game_name = _read_sidecar_name(src)
                    continue
                rule = classify(filename)
                if rule is None:
                    continue
                destination, kind = rule
                target = os.path.normcase(os.path.join(self.directories[destination], filename))
                if target in seen:
                    logger.warning('Skipping %s: %s already installed from another folder',
                                   os.path.relpath(src, root), filename)
                    continue
                seen.add(target)
                try:
                    dest_path = self._copy(src, filename, destination)
                except OSError as exc:
                    logger.error('Failed to copy %s: %s', filename, exc)
                    continue
                installed.append(InstalledFile(dest_path, kind))

        if not installed:
            raise NoRecognizedFiles('No valid manifest files found in download')

        return self._record(appid, game_name or _resolve(name_hint) or appid, installed)

    def install_single_file(self, file_path, appid, filename: str = None, name_hint=None) -> dict:
        file_path = os.fspath(file_path)
        appid = str(appid)
        filename = filename or os.path.basename(file_path)
        rule = classify(filename)
        if rule is None:
            raise UnrecognizedFileType(f'Unknown file type: {filename}')
        destination, kind = rule
        logger.info('Installing direct file: %s', filename)
        dest_path = self._copy(file_path, filename, destination)
        return self._record(appid, _resolve(name_hint) or appid, [InstalledFile(dest_path, kind)])
