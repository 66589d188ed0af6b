"""
Persisted record of installed appids and the files placed for each one.

The ledger is one JSON document, a list of
``{"id", "name", "files": [{"path", "type"}], "installedAt"}`` objects.
Every write replaces the whole file. There is no locking: a single process
owns the ledger, concurrent installs are not supported.
"""
import json
import os
import tempfile
from datetime import datetime, timezone

from .errors import DefinitiveNotFound, LedgerIOError
from .log import get_logger

logger = get_logger('ledger')

FILE_KINDS = ('lua', 'vdf', 'manifest')


def normalize_appid(appid) -> str:
    """Steam app ids are plain digits; anything else is rejected before it touches a path."""
    text = str(appid if appid is not None else '').strip()
    if not text.isdigit() or not text.isascii():
        raise ValueError('Invalid appid')
    return text


def _utc_now() -> str:
    return datetime.now(timezone.utc).strftime('%Y-%m-%dT%H:%M:%S.%f')[:-3] + 'Z'


class InstalledFile:
    def __init__(self, path: str, kind: str):
        self.path = str(path)
        self.kind = kind

    def to_dict(self) -> dict:
        return {'path': self.path, 'type': self.kind}

    @classmethod
    def from_dict(cls, entry):
        if not isinstance(entry, dict):
            return None
        path = str(entry.get('path') or '').strip()
        if not path:
            return None
        kind = str(entry.get('type') or '').strip().lower()
        if kind not in FILE_KINDS:
            ext = os.path.splitext(path)[1].lower().lstrip('.')
            kind = ext if ext in FILE_KINDS else 'unknown'
        return cls(path, kind)

    def __eq__(self, other):
        return isinstance(other, InstalledFile) and (self.path, self.kind) == (other.path, other.kind)

    def __repr__(self):
        return f'InstalledFile({self.path!r}, {self.kind!r})'


class InstalledRecord:
    def __init__(self, appid: str, name: str = None, files=None, installed_at: str = None):
        self.appid = str(appid)
        self.name = name or self.appid
        self.files = list(files or [])
        self.installed_at = installed_at or _utc_now()

    def to_dict(self) -> dict:
        return {
            'id': self.appid,
            'name': self.name,
            'files': [f.to_dict() for f in self.files],
            'installedAt': self.installed_at,
        }

    @classmethod
    def from_dict(cls, entry):
        if not isinstance(entry, dict):
            return None
        appid = str(entry.get('id') or entry.get('appId') or '').strip()
        if not appid:
            return None
        files = []
        raw_files = entry.get('files')
        if isinstance(raw_files, list):
            for raw in raw_files:
                parsed = InstalledFile.from_dict(raw)
                if parsed is not None:
                    files.append(parsed)
        name = entry.get('name')
        name = name.strip() if isinstance(name, str) and name.strip() else appid
        installed_at = entry.get('installedAt')
        return cls(appid, name, files, installed_at if isinstance(installed_at, str) else None)

    def __eq__(self, other):
        if not isinstance(other, InstalledRecord):
            return NotImplemented
        return (self.appid, self.name, self.files) == (other.appid, other.name, other.files)

    def __repr__(self):
        return f'InstalledRecord({self.appid!r}, {self.name!r}, files={len(self.files)})'


class Ledger:
    def __init__(self, path):
        self.path = os.fspath(path)

    def list(self) -> list:
        """Current records in install order; missing or corrupt storage reads as empty."""
        if not os.path.exists(self.path):
            return []
        try:
            with open(self.path, 'r', encoding='utf-8') as f:
                raw = json.load(f)
        except (OSError, ValueError) as exc:
            logger.warning('Ledger %s unreadable, treating as empty: %s', self.path, exc)
            return []
        if not isinstance(raw, list):
            logger.warning('Ledger %s has unexpected shape, treating as empty', self.path)
            return []
        records = []
        seen = set()
        for entry in raw:
            record = InstalledRecord.from_dict(entry)
            if record is None or record.appid in seen:
                continue
            seen.add(record.appid)
            records.append(record)
        return records

    def get(self, appid):
        appid = str(appid)
        for record in self.list():
            if record.appid == appid:
                return record
        return None

    def _save(self, records) -> None:
        directory = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(directory, exist_ok=True)
            fd, tmp_path = tempfile.mkstemp(prefix='.installed-', suffix='.json', dir=directory)
            with os.fdopen(fd, 'w', encoding='utf-8') as f:
                json.dump([r.to_dict() for r in records], f, indent=2)
            os.replace(tmp_path, self.path)
            tmp_path = None
        except OSError as exc:
            raise LedgerIOError(f'Failed to write ledger {self.path}: {exc}') from exc
        finally:
            if tmp_path and os.path.exists(tmp_path):
                try:
                    os.remove(tmp_path)
                except OSError:
                    pass

    def upsert(self, record: InstalledRecord):
        """Replace any record with the same appid and append this one. Returns the replaced record."""
        records = self.list()
        previous = next((r for r in records if r.appid == record.appid), None)
        records = [r for r in records if r.appid != record.appid]
        records.append(record)
        self._save(records)
        logger.info('Recorded %s (%s) with %d file(s)', record.name, record.appid, len(record.files))
        return previous

    def remove(self, appid) -> list:
        """Delete the files listed for appid and drop its record. Returns the deleted paths."""
        appid = str(appid)
        records = self.list()
        record = next((r for r in records if r.appid == appid), None)
        if record is None:
            raise DefinitiveNotFound('Game not found in installed list')

        deleted = []
        for installed in record.files:
            try:
                os.remove(installed.path)
                deleted.append(installed.path)
                logger.info('Deleted: %s', installed.path)
            except FileNotFoundError:
                logger.info('Already gone: %s', installed.path)
            except OSError as exc:
                logger.error('Failed to delete %s: %s', installed.path, exc)

        self._save([r for r in records if r.appid != appid])
        logger.info('Removed %s (%s) from ledger', record.name, appid)
        return deleted
