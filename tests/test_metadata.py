import httpx

from manifest_unlock.metadata import fetch_app_details, fetch_app_name


def _client(handler):
    return httpx.Client(transport=httpx.MockTransport(handler))


def test_details_are_normalised():
    seen = {}

    def handler(request):
        seen.update(request.url.params)
        return httpx.Response(200, json={'570': {'success': True, 'data': {
            'name': ' Dota 2 ', 'type': 'game', 'developers': ['Valve'], 'publishers': [],
        }}})

    details = fetch_app_details(_client(handler), 570, region='de')

    assert details == {'id': '570', 'name': 'Dota 2', 'type': 'game', 'developer': 'Valve', 'publisher': 'Unknown'}
    assert seen['appids'] == '570'
    assert seen['cc'] == 'de'


def test_unknown_app_is_empty():
    client = _client(lambda request: httpx.Response(200, json={'1': {'success': False}}))
    assert fetch_app_details(client, 1) == {}
    assert fetch_app_name(client, 1) == ''


def test_name_lookup_swallows_http_errors():
    assert fetch_app_name(_client(lambda request: httpx.Response(503)), 570) == ''
    assert fetch_app_name(_client(lambda request: httpx.Response(200, text='<html>')), 570) == ''
