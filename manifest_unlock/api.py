"""
Entry points for the frontend. Every call returns a JSON string with a
``success`` flag, failures carry an ``error`` message.
"""
import json
import threading

from .config import Settings
from .ledger import normalize_appid
from .log import get_logger
from .service import ManifestService

logger = get_logger('api')

SERVICE = None
SERVICE_LOCK = threading.Lock()
ACTIVE_DOWNLOAD = None
ACTIVE_DOWNLOAD_LOCK = threading.Lock()


def configure(service: ManifestService = None, settings: Settings = None) -> ManifestService:
    global SERVICE
    with SERVICE_LOCK:
        if SERVICE is not None and SERVICE is not service:
            SERVICE.close()
        SERVICE = service or ManifestService.from_settings(settings or Settings.load())
        return SERVICE


def _service() -> ManifestService:
    with SERVICE_LOCK:
        if SERVICE is not None:
            return SERVICE
    return configure()


def DownloadManifest(appid, contentScriptQuery: str = '') -> str:
    try:
        appid = normalize_appid(appid)
    except ValueError as e:
        return json.dumps({'success': False, 'error': str(e)})
    return json.dumps(_service().download_manifest(appid))


def _run_download(appid: str) -> None:
    global ACTIVE_DOWNLOAD
    try:
        _service().download_manifest(appid)
    except Exception:
        logger.exception('Background download crashed for %s', appid)
    finally:
        with ACTIVE_DOWNLOAD_LOCK:
            ACTIVE_DOWNLOAD = None


def StartDownloadManifest(appid, contentScriptQuery: str = '') -> str:
    global ACTIVE_DOWNLOAD
    try:
        appid = normalize_appid(appid)
    except ValueError as e:
        return json.dumps({'success': False, 'error': str(e)})
    with ACTIVE_DOWNLOAD_LOCK:
        if ACTIVE_DOWNLOAD is not None:
            return json.dumps({'success': False, 'error': f'Download already running for {ACTIVE_DOWNLOAD}'})
        ACTIVE_DOWNLOAD = appid
    logger.info('StartDownloadManifest appid=%s', appid)
    _service().mark_queued(appid)
    t = threading.Thread(target=_run_download, args=(appid,), name=f'ManifestDownload-{appid}', daemon=True)
    t.start()
    return json.dumps({'success': True})


def GetDownloadStatus(appid, contentScriptQuery: str = '') -> str:
    try:
        appid = normalize_appid(appid)
    except ValueError as e:
        return json.dumps({'success': False, 'error': str(e)})
    return json.dumps({'success': True, 'state': _service().get_download_state(appid)})


def GetInstalledGames(contentScriptQuery: str = '') -> str:
    return json.dumps({'success': True, 'games': _service().get_installed_games()})


def RemoveGame(appid, contentScriptQuery: str = '') -> str:
    try:
        appid = normalize_appid(appid)
    except ValueError as e:
        return json.dumps({'success': False, 'error': str(e)})
    return json.dumps(_service().remove_game(appid))
