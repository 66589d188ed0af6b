import os
import zipfile

from .errors import CorruptPayload
from .log import get_logger

logger = get_logger('archive')

ZIP_SIGNATURES = (b'PK\x03\x04', b'PK\x05\x06', b'PK\x07\x08')


def is_valid_zip_file(path) -> bool:
    try:
        with open(path, 'rb') as fh:
            magic = fh.read(4)
        return magic in ZIP_SIGNATURES
    except OSError:
        return False


def _safe_target(dest_dir: str, member: str) -> str:
    target = os.path.realpath(os.path.join(dest_dir, member))
    root = os.path.realpath(dest_dir)
    if target != root and not target.startswith(root + os.sep):
        raise CorruptPayload(f'Archive member escapes extraction directory: {member}')
    return target


def extract_all(archive_path, dest_dir) -> set:
    """
    Extract every member of a zip archive into dest_dir, overwriting existing
    files. Returns the set of extracted file paths.
    """
    archive_path = os.fspath(archive_path)
    dest_dir = os.fspath(dest_dir)
    if not os.path.exists(archive_path):
        raise CorruptPayload(f'Archive not found: {archive_path}')
    if not is_valid_zip_file(archive_path):
        try:
            with open(archive_path, 'rb') as f:
                preview = f.read(80)
            logger.warning('Payload is not a zip archive, preview: %r', preview)
        except OSError:
            pass
        raise CorruptPayload(f'Invalid ZIP file: {os.path.basename(archive_path)}')

    os.makedirs(dest_dir, exist_ok=True)
    extracted = set()
    try:
        with zipfile.ZipFile(archive_path, 'r') as zf:
            for info in zf.infolist():
                target = _safe_target(dest_dir, info.filename)
                if info.is_dir():
                    os.makedirs(target, exist_ok=True)
                    continue
                os.makedirs(os.path.dirname(target), exist_ok=True)
                with zf.open(info) as src, open(target, 'wb') as out:
                    while True:
                        chunk = src.read(64 * 1024)
                        if not chunk:
                            break
                        out.write(chunk)
                extracted.add(target)
    except (zipfile.BadZipFile, zipfile.LargeZipFile, OSError, EOFError) as exc:
        raise CorruptPayload(f'Failed to extract: {exc}') from exc

    logger.info('Extracted %d file(s) from %s into %s', len(extracted), archive_path, dest_dir)
    return extracted
