import re
import threading
from unittest.mock import patch

import identity
from identity import (
    BrowserFingerprint,
    SessionManager,
    UserAgentGenerator,
    build_headers,
    random_delay,
    random_proxy,
)


class FakeClock:
    def __init__(self, now=1000.0):
        self.now = now

    def __call__(self):
        return self.now


def test_fingerprint_fields_come_from_known_pools():
    fp = BrowserFingerprint().generate()
    assert f"{fp['screen_width']}x{fp['screen_height']}" in BrowserFingerprint.screen_resolutions
    assert fp['color_depth'] in (24, 32)
    assert fp['timezone'] in BrowserFingerprint.timezones
    assert fp['language'] in BrowserFingerprint.languages
    assert fp['platform'] in ('Win32', 'MacIntel')
    assert fp['hardware_concurrency'] in (4, 8)
    assert fp['device_memory'] in (4, 8)


def test_user_agents_cover_each_family():
    gen = UserAgentGenerator()
    assert 'Chrome/' in gen.generate_chrome()
    assert 'Firefox/' in gen.generate_firefox()
    assert 'Version/' in gen.generate_safari() and 'Safari/' in gen.generate_safari()
    assert gen.generate().startswith('Mozilla/5.0 (')


def test_create_session_registers_fresh_identity():
    manager = SessionManager(clock=FakeClock())
    session = manager.create_session()
    assert re.fullmatch(r'[0-9a-f]{32}', session.id)
    assert manager.sessions[session.id] is session
    assert session.cookies == {}
    assert session.request_count == 0
    assert manager.create_session().id != session.id


def test_get_session_touches_live_session():
    clock = FakeClock()
    manager = SessionManager(timeout=60, clock=clock)
    session = manager.create_session()
    clock.now += 30
    assert manager.get_session(session.id) is session
    assert session.last_used == clock.now
    assert session.request_count == 1


def test_get_session_expires_idle_session():
    clock = FakeClock()
    manager = SessionManager(timeout=60, clock=clock)
    session = manager.create_session()
    clock.now += 60
    assert manager.get_session(session.id) is None
    assert session.id not in manager.sessions
    assert manager.get_session('unknown') is None


def test_cookies_are_merged_by_name():
    manager = SessionManager()
    session = manager.create_session()
    manager.update_cookies(session.id, {'csrftoken': 'a', 'mid': 'm'})
    manager.update_cookies(session.id, {'csrftoken': 'b'})
    assert manager.get_cookie_string(session.id) == 'csrftoken=b; mid=m'
    assert manager.get_cookie_string('missing') == ''
    manager.update_cookies('missing', {'x': '1'})


def test_purge_expired_drops_only_idle_sessions():
    clock = FakeClock()
    manager = SessionManager(timeout=10, clock=clock)
    old = manager.create_session()
    clock.now += 20
    fresh = manager.create_session()
    assert manager.purge_expired() == 1
    assert list(manager.sessions) == [fresh.id]
    assert old.id not in manager.sessions


def test_headers_follow_fingerprint():
    manager = SessionManager()
    session = manager.create_session()
    session.fingerprint.update(platform='MacIntel', language='de-DE,de;q=0.9', screen_width=1440)
    session.cookies['csrftoken'] = 'tok'
    session.cookies['mid'] = 'm1'
    headers = build_headers(session, referer='https://example.com/')

    assert headers['User-Agent'] == session.user_agent
    assert headers['Accept-Language'] == 'de-DE,de;q=0.9'
    assert headers['sec-ch-ua-platform'] == '"macOS"'
    assert headers['Viewport-Width'] == '1440'
    assert headers['X-IG-App-ID'] == identity.INSTAGRAM_APP_ID
    assert headers['X-CSRFToken'] == 'tok'
    assert headers['Cookie'] == 'csrftoken=tok; mid=m1'
    assert headers['sec-ch-ua-full-version-list'] == (
        '"Not_A Brand";v="8.0.0.0", "Chromium";v="120.0.6099.109", "Google Chrome";v="120.0.6099.109"'
    )
    assert headers['Referer'] == 'https://example.com/'


def test_headers_omit_empty_cookie():
    session = SessionManager().create_session()
    headers = build_headers(session)
    assert 'Cookie' not in headers
    assert headers['X-CSRFToken'] == 'missing'


def test_random_delay_within_bounds():
    with patch.object(identity.settings, 'MIN_DELAY', 2.0), patch.object(identity.settings, 'MAX_DELAY', 3.0):
        for _ in range(20):
            assert 2.0 <= random_delay() <= 3.0


def test_random_proxy_disabled_or_empty():
    with patch.object(identity.settings, 'USE_PROXIES', False):
        assert random_proxy() is None
    with patch.object(identity.settings, 'USE_PROXIES', True), patch.object(identity.settings, 'PROXY_LIST', []):
        assert random_proxy() is None


def test_random_proxy_returns_requests_mapping():
    with patch.object(identity.settings, 'USE_PROXIES', True), \
            patch.object(identity.settings, 'PROXY_LIST', ['http://p1:8080']):
        assert random_proxy() == {'http': 'http://p1:8080', 'https': 'http://p1:8080'}


def test_purge_while_sessions_are_created_concurrently():
    manager = SessionManager(timeout=0)
    errors = []

    def create():
        try:
            for _ in range(500):
                manager.create_session()
        except RuntimeError as e:
            errors.append(e)

    def purge():
        try:
            for _ in range(500):
                manager.purge_expired()
        except RuntimeError as e:
            errors.append(e)

    threads = [threading.Thread(target=create) for _ in range(4)] + [threading.Thread(target=purge)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
