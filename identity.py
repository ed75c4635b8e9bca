import logging
import random
import secrets
import threading
import time
from dataclasses import dataclass, field

import settings

logger = logging.getLogger(__name__)

INSTAGRAM_APP_ID = '936619743392459'
DEFAULT_LANGUAGE = 'en-US,en;q=0.9'


class BrowserFingerprint:
    """Randomized screen/locale/hardware profile for one identity"""

    screen_resolutions = [
        '1920x1080', '1366x768', '1536x864', '1440x900', '1280x720',
        '2560x1440', '1600x900', '1024x768', '1280x800', '1920x1200',
    ]
    color_depths = [24, 32]
    timezones = [
        'America/New_York', 'America/Los_Angeles', 'Europe/London',
        'Europe/Paris', 'Asia/Tokyo', 'Australia/Sydney',
    ]
    languages = [
        'en-US,en;q=0.9', 'en-GB,en;q=0.9', 'en-CA,en;q=0.9',
        'fr-FR,fr;q=0.9', 'de-DE,de;q=0.9', 'es-ES,es;q=0.9',
    ]

    def generate(self):
        width, height = random.choice(self.screen_resolutions).split('x')
        return {
            'screen_width': int(width),
            'screen_height': int(height),
            'color_depth': random.choice(self.color_depths),
            'timezone': random.choice(self.timezones),
            'language': random.choice(self.languages),
            'platform': 'Win32' if random.random() > 0.5 else 'MacIntel',
            'hardware_concurrency': random.choice([4, 8]),
            'device_memory': random.choice([4, 8]),
        }


class UserAgentGenerator:
    chrome_versions = ['120.0.0.0', '119.0.0.0', '118.0.0.0', '117.0.0.0']
    firefox_versions = ['121.0', '120.0', '119.0', '118.0']
    safari_versions = ['17.1', '17.0', '16.6', '16.5']

    def generate_chrome(self):
        version = random.choice(self.chrome_versions)
        platform = random.choice(['Windows NT 10.0; Win64; x64', 'Macintosh; Intel Mac OS X 10_15_7'])
        return f'Mozilla/5.0 ({platform}) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/{version} Safari/537.36'

    def generate_firefox(self):
        version = random.choice(self.firefox_versions)
        platform = random.choice(['Windows NT 10.0; Win64; x64; rv:109.0', 'Macintosh; Intel Mac OS X 10.15; rv:109.0'])
        return f'Mozilla/5.0 ({platform}) Gecko/20100101 Firefox/{version}'

    def generate_safari(self):
        version = random.choice(self.safari_versions)
        return (
            'Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/605.1.15 '
            f'(KHTML, like Gecko) Version/{version} Safari/605.1.15'
        )

    def generate(self):
        """Pick a browser family at random and build its user agent"""
        return random.choice([self.generate_chrome, self.generate_firefox, self.generate_safari])()


@dataclass
class Session:
    id: str
    fingerprint: dict
    user_agent: str
    cookies: dict = field(default_factory=dict)
    created_at: float = field(default_factory=time.time)
    last_used: float = field(default_factory=time.time)
    request_count: int = 0


class SessionManager:
    """In-memory registry of short-lived scraping identities"""

    def __init__(self, timeout=None, clock=time.time):
        self.sessions = {}
        self.timeout = settings.SESSION_TIMEOUT if timeout is None else timeout
        self.clock = clock
        self.fingerprint = BrowserFingerprint()
        self.user_agent_gen = UserAgentGenerator()
        self.lock = threading.Lock()

    def create_session(self):
        now = self.clock()
        session = Session(
            id=secrets.token_hex(16),
            fingerprint=self.fingerprint.generate(),
            user_agent=self.user_agent_gen.generate(),
            created_at=now,
            last_used=now,
        )
        with self.lock:
            self.sessions[session.id] = session
        logger.debug("Created session %s (%s)", session.id, session.user_agent)
        return session

    def get_session(self, session_id):
        """Return a live session and mark it used, or None if missing/expired"""
        with self.lock:
            session = self.sessions.get(session_id)
            if session is None:
                return None
            now = self.clock()
            if now - session.last_used >= self.timeout:
                del self.sessions[session_id]
                return None
            session.last_used = now
            session.request_count += 1
            return session

    def update_cookies(self, session_id, cookies):
        """Merge response cookies (a name -> value mapping) into the session jar"""
        session = self.sessions.get(session_id)
        if session is None or not cookies:
            return
        for name, value in cookies.items():
            session.cookies[name] = value

    def get_cookie_string(self, session_id):
        session = self.sessions.get(session_id)
        if session is None:
            return ''
        return cookie_header(session.cookies)

    def purge_expired(self):
        with self.lock:
            now = self.clock()
            expired = [sid for sid, s in self.sessions.items() if now - s.last_used >= self.timeout]
            for sid in expired:
                del self.sessions[sid]
        return len(expired)


def cookie_header(cookies):
    return '; '.join(f'{name}={value}' for name, value in cookies.items())


def random_delay():
    return random.uniform(settings.MIN_DELAY, settings.MAX_DELAY)


def random_proxy():
    """Pick a proxy as a requests ``proxies`` mapping, or None"""
    if not settings.USE_PROXIES or not settings.PROXY_LIST:
        return None
    proxy = random.choice(settings.PROXY_LIST)
    return {'http': proxy, 'https': proxy}


def build_headers(session, referer='https://www.instagram.com/'):
    """Browser-like request headers consistent with the session fingerprint"""
    fingerprint = session.fingerprint
    windows = fingerprint['platform'] == 'Win32'
    headers = {
        'User-Agent': session.user_agent,
        'Accept': 'text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,image/apng,*/*;q=0.8,application/signed-exchange;v=b3;q=0.7',
        'Accept-Language': fingerprint['language'],
        'Accept-Encoding': 'gzip, deflate, br',
        'Connection': 'keep-alive',
        'Upgrade-Insecure-Requests': '1',
        'Sec-Fetch-Dest': 'document',
        'Sec-Fetch-Mode': 'navigate',
        'Sec-Fetch-Site': 'same-origin',
        'Sec-Fetch-User': '?1',
        'Cache-Control': 'max-age=0',
        'Referer': referer,
        'DNT': '1',
        'X-IG-App-ID': INSTAGRAM_APP_ID,
        'X-IG-WWW-Claim': '0',
        'X-ASBD-ID': '129477',
        'X-Requested-With': 'XMLHttpRequest',
        'X-Instagram-AJAX': '1006632969',
        'X-CSRFToken': session.cookies.get('csrftoken', 'missing'),
        'sec-ch-ua': '"Not_A Brand";v="8", "Chromium";v="120", "Google Chrome";v="120"',
        'sec-ch-ua-mobile': '?0',
        'sec-ch-ua-platform': '"Windows"' if windows else '"macOS"',
        'sec-ch-ua-platform-version': '10.0.0' if windows else '10_15_7',
        'sec-ch-ua-arch': 'x86',
        'sec-ch-ua-bitness': '64',
        'sec-ch-ua-full-version': '120.0.6099.109',
        'sec-ch-ua-full-version-list': '"Not_A Brand";v="8.0.0.0", "Chromium";v="120.0.6099.109", "Google Chrome";v="120.0.6099.109"',
        'sec-ch-ua-model': '',
        'sec-ch-ua-wow64': '?0',
        'Viewport-Width': str(fingerprint['screen_width']),
        'Device-Memory': str(fingerprint['device_memory']),
        'Downlink': '10',
        'ECT': '4g',
        'RTT': '50',
    }
    if session.cookies:
        headers['Cookie'] = cookie_header(session.cookies)
    return headers
