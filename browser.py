import logging

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import TimeoutError as PlaywrightTimeoutError
from playwright.sync_api import sync_playwright

import settings
from extractor import find_video_url_in_html
from models import Extraction

logger = logging.getLogger(__name__)

DEFAULT_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'

LAUNCH_ARGS = [
    '--disable-blink-features=AutomationControlled',
    '--no-sandbox',
    '--disable-setuid-sandbox',
    '--disable-dev-shm-usage',
    '--disable-accelerated-2d-canvas',
    '--no-first-run',
    '--no-zygote',
    '--disable-gpu',
]

LOGIN_DIALOG_CLOSE = 'div[role="dialog"] button[aria-label="Close"]'

REMOVE_OVERLAYS_JS = """() => {
    const modal = document.querySelector('div[role="dialog"]');
    if (modal) modal.remove();
    document.querySelectorAll('div[style*="background-color: rgba"]').forEach(el => el.remove());
    window.scrollBy(0, 200);
}"""

FIND_VIDEO_JS = """() => {
    const video = document.querySelector('video');
    if (video && video.src && video.src.startsWith('http')) return video.src;
    const source = document.querySelector('video source');
    if (source && source.src) return source.src;
    const og = document.querySelector('meta[property="og:video"]');
    if (og && og.content) return og.content;
    for (const script of document.querySelectorAll('script[type="application/ld+json"]')) {
        try {
            const data = JSON.parse(script.textContent);
            if (data.contentUrl && data.contentUrl.includes('.mp4')) return data.contentUrl;
        } catch (e) {}
    }
    return null;
}"""

VIDEO_ELEMENT_SRC_JS = """() => {
    const video = document.querySelector('video');
    return video && video.src ? video.src : null;
}"""

# Runs inside the page so the request carries the browser's own session
FETCH_BYTES_JS = """async ([url, headers]) => {
    try {
        const response = await fetch(url.replace(/\\\\/g, ''), {
            method: 'GET', headers: headers, mode: 'cors', credentials: 'omit'
        });
        if (!response.ok) return null;
        const buffer = await response.arrayBuffer();
        return Array.from(new Uint8Array(buffer));
    } catch (e) {
        return null;
    }
}"""

CDN_FETCH_HEADERS = {
    'Accept': 'video/webm,video/ogg,video/*;q=0.9,application/ogg;q=0.7,audio/*;q=0.6,*/*;q=0.5',
    'Referer': 'https://www.instagram.com/',
}

ELEMENT_FETCH_HEADERS = {
    'Accept': '*/*',
    'Cache-Control': 'no-cache',
    'Pragma': 'no-cache',
}


class BrowserExtractor:
    """Renders the post in headless Chromium and captures the video it plays"""

    def __init__(self, timeout=None, settle_ms=5000):
        self.timeout_ms = (settings.BROWSER_TIMEOUT if timeout is None else timeout) * 1000
        self.settle_ms = settle_ms

    def _context_options(self, session):
        if session is None:
            return {
                'user_agent': DEFAULT_USER_AGENT,
                'viewport': {'width': 1920, 'height': 1080},
                'locale': 'en-US',
            }
        fingerprint = session.fingerprint
        return {
            'user_agent': session.user_agent,
            'viewport': {'width': fingerprint['screen_width'], 'height': fingerprint['screen_height']},
            'locale': fingerprint['language'].split(',')[0],
            'timezone_id': fingerprint['timezone'],
            'extra_http_headers': {'Accept-Language': fingerprint['language']},
        }

    def _dismiss_login(self, page):
        try:
            page.wait_for_selector(LOGIN_DIALOG_CLOSE, timeout=7000)
            page.click(LOGIN_DIALOG_CLOSE)
            logger.info("Closed Instagram login modal")
        except PlaywrightTimeoutError:
            logger.debug("No login modal appeared")
        page.evaluate(REMOVE_OVERLAYS_JS)

    def _fetch_in_page(self, page, url, headers):
        data = page.evaluate(FETCH_BYTES_JS, [url, headers])
        return bytes(data) if data else None

    def _scan_page_source(self, page):
        try:
            return find_video_url_in_html(page.content())
        except PlaywrightError:
            raise
        except Exception:
            logger.exception("Could not parse rendered page source")
            return None

    def _locate_and_fetch(self, page):
        video_url = page.evaluate(FIND_VIDEO_JS) or self._scan_page_source(page)
        if not video_url:
            return None

        logger.info("Video URL found in page: %s", video_url)
        video_bytes = self._fetch_in_page(page, video_url, CDN_FETCH_HEADERS)
        if video_bytes:
            return Extraction(video_url=video_url, video_bytes=video_bytes, method='browser')

        logger.info("In-page fetch failed, trying the video element source")
        element_src = page.evaluate(VIDEO_ELEMENT_SRC_JS)
        if element_src:
            video_bytes = self._fetch_in_page(page, element_src, ELEMENT_FETCH_HEADERS)
            if video_bytes:
                return Extraction(video_url=element_src, video_bytes=video_bytes, method='browser-element')
        return None

    def extract(self, url, session=None):
        """Return an Extraction with bytes, or None when the page yields nothing"""
        captured = {}

        def on_response(response):
            if captured or '.mp4' not in response.url or response.status != 200:
                return
            try:
                captured['url'] = response.url
                captured['body'] = response.body()
                logger.info("Captured video response: %s", response.url)
            except PlaywrightError as e:
                captured.clear()
                logger.debug("Failed to capture video body: %s", e)

        try:
            with sync_playwright() as p:
                browser = p.chromium.launch(headless=True, args=LAUNCH_ARGS)
                try:
                    context = browser.new_context(**self._context_options(session))
                    context.add_init_script("Object.defineProperty(navigator, 'webdriver', {get: () => undefined});")
                    page = context.new_page()
                    page.on('response', on_response)

                    logger.info("Navigating to %s", url)
                    page.goto(url, wait_until='networkidle', timeout=self.timeout_ms)
                    self._dismiss_login(page)
                    page.wait_for_timeout(self.settle_ms)
                    try:
                        page.wait_for_selector('video', timeout=10000)
                    except PlaywrightTimeoutError:
                        logger.info("No video element found, continuing with URL extraction")

                    result = self._locate_and_fetch(page)
                    if result:
                        return result

                    if captured.get('body'):
                        logger.info("Video captured via network interception")
                        return Extraction(
                            video_url=captured['url'],
                            video_bytes=captured['body'],
                            method='browser-interception',
                        )
                    logger.info("No video URL found via browser")
                    return None
                finally:
                    browser.close()
        except PlaywrightError as e:
            logger.error("Browser extraction failed: %s", e)
            return None
