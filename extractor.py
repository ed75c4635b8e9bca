import json
import logging
import random
import re
import time

import requests
from bs4 import BeautifulSoup

import settings
from errors import ExtractionError, InvalidUrlError, RateLimitExceeded, RehostError
from identity import SessionManager, build_headers, random_delay, random_proxy
from models import Extraction
from rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

GRAPHQL_URL = 'https://www.instagram.com/graphql/query/'
GRAPHQL_QUERY_HASH = '9f8827793ef34641b2fb195d4d41151c'
MEDIA_INFO_URL = 'https://www.instagram.com/api/v1/media/{shortcode}/info/'
EMBED_URL = 'https://www.instagram.com/p/{shortcode}/embed/'
REFERER = 'https://www.instagram.com/'

SHORTCODE_PATTERN = re.compile(r'instagram\.com/(?:[^/]+/)?(?:reels?|p|tv)/([A-Za-z0-9_-]+)')

# Ordered: earlier patterns are more specific to the post's own video
VIDEO_PATTERNS = [
    re.compile(r'"video_url":"([^"]+)"'),
    re.compile(r'"contentUrl":"([^"]*\.mp4[^"]*)"'),
    re.compile(r'"contentUrl":"([^"]*video[^"]*)"'),
    re.compile(r'"url":"([^"]*\.mp4[^"]*)"'),
    re.compile(r'"url":"([^"]*video[^"]*)"'),
    re.compile(r'"video_versions":\[[^\]]*"url":"([^"]+)"'),
]
EMBED_SRC_PATTERN = re.compile(r'src="([^"]*\.mp4[^"]*)"')
MP4_LITERAL_PATTERN = re.compile(r'https://[^"\'\s<>]*\.mp4[^"\'\s<>]*')


def extract_shortcode(url):
    """Extract shortcode from Instagram URL"""
    clean_url = (url or '').split('?')[0]
    match = SHORTCODE_PATTERN.search(clean_url)
    if not match:
        raise InvalidUrlError('Could not extract shortcode from Instagram URL')
    return match.group(1)


def unescape_url(url):
    return url.replace('\\u0026', '&').replace('\\u002F', '/').replace('\\/', '/')


def _ld_json_nodes(data):
    if isinstance(data, list):
        for item in data:
            yield from _ld_json_nodes(item)
    elif isinstance(data, dict):
        yield data
        yield from _ld_json_nodes(data.get('@graph'))


def find_ld_json_video_url(data):
    """First mp4 contentUrl in a JSON-LD document, on the node itself or its video objects"""
    for node in _ld_json_nodes(data):
        videos = node.get('video')
        if not isinstance(videos, list):
            videos = [videos]
        candidates = [node] + [video for video in videos if isinstance(video, dict)]
        for candidate in candidates:
            content_url = candidate.get('contentUrl')
            if isinstance(content_url, str) and '.mp4' in content_url:
                return content_url
    return None


def find_video_url_in_html(html):
    """Scan page source for a video URL: JSON patterns, then DOM, then any mp4 literal"""
    if not html:
        return None

    for pattern in VIDEO_PATTERNS:
        match = pattern.search(html)
        if match:
            return unescape_url(match.group(1))

    soup = BeautifulSoup(html, 'html.parser')

    source = soup.select_one('video source[src]') or soup.select_one('video[src]')
    if source:
        return source['src']

    og_video = soup.find('meta', attrs={'property': 'og:video'})
    if og_video and og_video.get('content'):
        return og_video['content']

    for script in soup.find_all('script'):
        content = script.string or ''
        if script.get('type') == 'application/ld+json':
            try:
                data = json.loads(content)
            except ValueError:
                continue
            content_url = find_ld_json_video_url(data)
            if content_url:
                return content_url
        elif 'video_url' in content:
            match = VIDEO_PATTERNS[0].search(content)
            if match:
                return unescape_url(match.group(1))

    match = MP4_LITERAL_PATTERN.search(html)
    if match:
        return unescape_url(match.group(0))
    return None


class VideoExtractor:
    """Runs the extraction cascade against Instagram with a rotating identity"""

    def __init__(self, sessions=None, rate_limiter=None, browser=None,
                 http_factory=requests.Session, use_browser=None, sleep=time.sleep):
        self.sessions = sessions or SessionManager()
        self.rate_limiter = rate_limiter or RateLimiter()
        self.use_browser = settings.BROWSER_FALLBACK if use_browser is None else use_browser
        if browser is None and self.use_browser:
            from browser import BrowserExtractor
            browser = BrowserExtractor()
        self.browser = browser
        self.http_factory = http_factory
        # one HTTP client per running cascade, keyed by identity
        self.clients = {}
        self.sleep = sleep

    def _get(self, url, session, timeout, **kwargs):
        headers = kwargs.pop('headers', None) or build_headers(session, REFERER)
        response = self.clients[session.id].get(
            url,
            headers=headers,
            timeout=timeout,
            proxies=random_proxy(),
            allow_redirects=True,
            **kwargs
        )
        self.sessions.update_cookies(session.id, response.cookies)
        response.raise_for_status()
        return response

    def from_graphql(self, shortcode, session):
        """Query the public GraphQL endpoint for the post"""
        variables = {
            'shortcode': shortcode,
            'child_comment_count': 3,
            'fetch_comment_count': 40,
            'parent_comment_count': 24,
            'has_threaded_comments': True,
        }
        params = {'query_hash': GRAPHQL_QUERY_HASH, 'variables': json.dumps(variables)}
        try:
            data = self._get(GRAPHQL_URL, session, 15, params=params).json()
            media = ((data or {}).get('data') or {}).get('shortcode_media') or {}
            return media.get('video_url')
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.debug("GraphQL lookup failed for %s: %s", shortcode, e)
            return None

    def from_media_api(self, shortcode, session):
        """Ask the private media info endpoint and take the widest rendition"""
        try:
            data = self._get(MEDIA_INFO_URL.format(shortcode=shortcode), session, 10).json()
            items = (data or {}).get('items') or []
            if not items:
                return None
            versions = items[0].get('video_versions') or []
            if not versions:
                return None
            best = max(versions, key=lambda v: v.get('width') or 0)
            return best.get('url')
        except (requests.RequestException, ValueError, AttributeError) as e:
            logger.debug("Media API lookup failed for %s: %s", shortcode, e)
            return None

    def from_embed_page(self, shortcode, session):
        headers = build_headers(session, REFERER)
        headers['Accept'] = 'text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8'
        try:
            html = self._get(EMBED_URL.format(shortcode=shortcode), session, 10, headers=headers).text
        except requests.RequestException as e:
            logger.debug("Embed page fetch failed for %s: %s", shortcode, e)
            return None
        match = EMBED_SRC_PATTERN.search(html or '')
        return unescape_url(match.group(1)) if match else None

    def from_page_html(self, clean_url, session):
        try:
            html = self._get(clean_url, session, 15).text
        except requests.RequestException as e:
            logger.debug("Page fetch failed for %s: %s", clean_url, e)
            return None
        return find_video_url_in_html(html)

    def _new_session(self):
        self.sessions.purge_expired()
        return self.sessions.create_session()

    def _check_rate(self, identifier):
        if not self.rate_limiter.is_allowed(identifier):
            raise RateLimitExceeded()

    def _pause(self):
        self.sleep(random.uniform(settings.STRATEGY_DELAY_MIN, settings.STRATEGY_DELAY_MAX))

    def _run_cascade(self, url, shortcode, session, browser_first=False):
        clean_url = url.split('?')[0]
        http_strategies = [
            ('graphql', lambda: self.from_graphql(shortcode, session)),
            ('media-api', lambda: self.from_media_api(shortcode, session)),
            ('embed', lambda: self.from_embed_page(shortcode, session)),
            ('html', lambda: self.from_page_html(clean_url, session)),
        ]

        self.clients[session.id] = self.http_factory()
        self.sleep(random_delay())
        try:
            if browser_first and self.browser is not None:
                result = self.browser.extract(clean_url, session)
                if result:
                    return result

            for index, (method, strategy) in enumerate(http_strategies):
                # the page scrape follows the embed fetch without a pause
                if 0 < index < len(http_strategies) - 1:
                    self._pause()
                logger.info("Trying %s extraction for %s", method, shortcode)
                video_url = strategy()
                if video_url:
                    logger.info("Video URL found via %s", method)
                    return Extraction(video_url=video_url, method=method)

            if self.use_browser and not browser_first and self.browser is not None:
                logger.info("HTTP strategies exhausted, falling back to headless browser")
                return self.browser.extract(clean_url, session)
        except RehostError:
            raise
        except Exception as e:
            raise ExtractionError(f'Failed to extract video URL from Instagram: {e}') from e
        finally:
            self.clients.pop(session.id).close()
        return None

    def extract(self, url, identifier=None, browser_first=False):
        """Single cascade pass with a fresh identity"""
        shortcode = extract_shortcode(url)
        session = self._new_session()
        self._check_rate(identifier or session.id)
        return self._run_cascade(url, shortcode, session, browser_first)

    def extract_with_retries(self, url, identifier=None, browser_first=False, max_retries=None):
        """Repeat the cascade with backoff, rotating identity on each attempt"""
        max_retries = settings.MAX_RETRIES if max_retries is None else max_retries
        shortcode = extract_shortcode(url)
        if identifier is not None:
            self._check_rate(identifier)

        last_error = None
        for attempt in range(1, max_retries + 1):
            logger.info("Attempt %d/%d for %s", attempt, max_retries, shortcode)
            if attempt > 1:
                retry_delay = settings.RETRY_DELAY * attempt
                logger.info("Waiting %.1fs before retry", retry_delay)
                self.sleep(retry_delay)

            try:
                session = self._new_session()
                if identifier is None:
                    self._check_rate(session.id)
                result = self._run_cascade(url, shortcode, session, browser_first)
            except (InvalidUrlError, RateLimitExceeded):
                raise
            except RehostError as e:
                last_error = e
                logger.warning("Attempt %d failed: %s", attempt, e)
                continue

            if result:
                return result
            logger.warning("Attempt %d found no video", attempt)

        raise ExtractionError(
            f'Failed to extract video URL after {max_retries} attempts. '
            f'Last error: {last_error or "Unknown error"}'
        )
