from manifest_unlock.credentials import (
    MAIN_DOMAIN,
    UPLOAD_DOMAIN,
    UPLOAD_DOMAIN_RETRY,
    Cookie,
    JsonCookieProvider,
)


def test_cookie_defaults_for_missing_fields():
    cookie = Cookie.from_dict({'name': 'sid', 'value': 42}, default_domain='.online-fix.me')
    assert cookie.to_dict() == {
        'name': 'sid',
        'value': '42',
        'domain': '.online-fix.me',
        'path': '/',
        'secure': True,
        'httpOnly': False,
    }


def test_cookie_expiry_from_browser_export():
    cookie = Cookie.from_dict({'name': 'a', 'value': 'b', 'expirationDate': 1700000000.5, 'httpOnly': True})
    assert cookie.expiry == 1700000000.5
    assert cookie.http_only is True


def test_invalid_cookie_entries_are_dropped():
    assert Cookie.from_dict({'value': 'no name'}) is None
    assert Cookie.from_dict('nope') is None


def test_provider_reads_one_file_per_purpose(tmp_path, write_json):
    write_json(tmp_path / 'online-fix.me_cookies.json', [
        {'name': 'dle_user_id', 'value': '1', 'domain': '.online-fix.me'},
        {'bogus': True},
    ])
    write_json(tmp_path / 'up_cookies.json', {'cookies': [{'name': 'up', 'value': '2'}]})
    provider = JsonCookieProvider(tmp_path, default_domains={UPLOAD_DOMAIN: 'uploads.online-fix.me'})

    main = provider.fetch_credential_set(MAIN_DOMAIN)
    upload = provider.fetch_credential_set(UPLOAD_DOMAIN)

    assert [c.name for c in main] == ['dle_user_id']
    assert upload[0].domain == 'uploads.online-fix.me'
    assert provider.fetch_credential_set(UPLOAD_DOMAIN_RETRY) == []
    assert provider.fetch_credential_set('unknown-purpose') == []


def test_corrupt_cookie_file_is_empty(tmp_path):
    (tmp_path / 'up_cookies.json').write_text('[{broken')
    assert JsonCookieProvider(tmp_path).fetch_credential_set(UPLOAD_DOMAIN) == []
