import logging

import requests

from errors import CdnAccessDenied, DownloadError
from identity import DEFAULT_LANGUAGE, random_proxy

logger = logging.getLogger(__name__)

FALLBACK_USER_AGENT = 'Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 (KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36'


def cdn_headers(session=None):
    """Headers a browser sends when a <video> element pulls from the CDN"""
    return {
        'User-Agent': session.user_agent if session else FALLBACK_USER_AGENT,
        'Accept': 'video/webm,video/ogg,video/*;q=0.9,application/ogg;q=0.7,audio/*;q=0.6,*/*;q=0.5',
        'Accept-Language': session.fingerprint['language'] if session else DEFAULT_LANGUAGE,
        'Accept-Encoding': 'gzip, deflate, br',
        'Connection': 'keep-alive',
        'Sec-Fetch-Dest': 'video',
        'Sec-Fetch-Mode': 'no-cors',
        'Sec-Fetch-Site': 'cross-site',
        'Referer': 'https://www.instagram.com/',
        'Origin': 'https://www.instagram.com',
    }


def download_video(video_url, session=None, http=requests):
    """Fetch the video bytes from the CDN"""
    clean_url = video_url.replace('\\', '')
    try:
        response = http.get(
            clean_url,
            headers=cdn_headers(session),
            timeout=60,
            proxies=random_proxy(),
            allow_redirects=True,
        )
    except requests.RequestException as e:
        raise DownloadError(f'Failed to download video: {e}') from e

    if response.status_code == 403:
        logger.warning("CDN returned 403 for %s", clean_url)
        raise CdnAccessDenied()
    try:
        response.raise_for_status()
    except requests.HTTPError as e:
        raise DownloadError(f'Failed to download video: {e}') from e

    content = response.content
    logger.info("Video downloaded: %.2f MB", len(content) / 1024 / 1024)
    return content
