import httpx

from .log import get_logger

logger = get_logger('metadata')

APP_DETAILS_URL = 'https://store.steampowered.com/api/appdetails'


def _first(values, default='Unknown'):
    if isinstance(values, list) and values and isinstance(values[0], str) and values[0].strip():
        return values[0].strip()
    return default


def fetch_app_details(client: httpx.Client, appid, region: str = 'us', timeout: float = 10) -> dict:
    """Store API lookup; raises on transport errors, returns {} when the app is unknown."""
    params = {'appids': str(appid), 'cc': region, 'l': 'english'}
    resp = client.get(APP_DETAILS_URL, params=params, follow_redirects=True, timeout=timeout)
    resp.raise_for_status()
    data = resp.json()
    entry = data.get(str(appid)) if isinstance(data, dict) else None
    if not isinstance(entry, dict) or not entry.get('success'):
        return {}
    inner = entry.get('data') or {}
    if not isinstance(inner, dict):
        return {}
    name = inner.get('name')
    return {
        'id': str(appid),
        'name': name.strip() if isinstance(name, str) and name.strip() else '',
        'type': inner.get('type') or 'Game',
        'developer': _first(inner.get('developers')),
        'publisher': _first(inner.get('publishers')),
    }


def fetch_app_name(client: httpx.Client, appid, region: str = 'us') -> str:
    try:
        return fetch_app_details(client, appid, region).get('name', '')
    except (httpx.HTTPError, ValueError) as e:
        logger.warning('fetch_app_name failed for %s: %s', appid, e)
    return ''
