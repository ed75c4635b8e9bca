import logging
from datetime import datetime, timezone

from flask import Flask, jsonify, request
from flask_cors import CORS
from werkzeug.middleware.proxy_fix import ProxyFix

import settings
from errors import RehostError
from extractor import VideoExtractor
from pipeline import RehostPipeline
from uploader import CloudinaryUploader

logging.basicConfig(
    level=settings.LOG_LEVEL,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)
logger = logging.getLogger(__name__)

app = Flask(__name__)
CORS(app)
if settings.PROXY_FIX_HOPS:
    app.wsgi_app = ProxyFix(app.wsgi_app, x_for=settings.PROXY_FIX_HOPS)

uploader = CloudinaryUploader()
pipeline = RehostPipeline(VideoExtractor(), uploader)


def client_identifier():
    """Peer address; forwarded hops only count when ProxyFix is enabled"""
    return request.remote_addr or 'unknown'


def handle_download(browser_first):
    data = request.get_json(silent=True) or {}
    url = data.get('url')
    if not isinstance(url, str) or 'instagram.com' not in url:
        logger.warning("Invalid URL provided: %r", url)
        return jsonify({'error': 'Please provide a valid Instagram URL'}), 400

    try:
        result = pipeline.rehost(url, identifier=client_identifier(), browser_first=browser_first)
        return jsonify(result)
    except RehostError as e:
        logger.warning("Request for %s failed: %s", url, e)
        return jsonify({'error': str(e)}), e.status_code
    except Exception as e:
        logger.exception("API error for %s", url)
        return jsonify({'error': str(e)}), 500


@app.route('/api/download', methods=['POST'])
def api_download():
    """Extract with the HTTP cascade first, browser last"""
    return handle_download(browser_first=False)


@app.route('/api/download-browser', methods=['POST'])
@app.route('/api/download-puppeteer', methods=['POST'])
def api_download_browser():
    """Render in the headless browser first, then fall back to the HTTP cascade"""
    return handle_download(browser_first=True)


@app.route('/api/health', methods=['GET'])
def health():
    return jsonify({
        'status': 'OK',
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'cloudinary': uploader.status(),
    })


if __name__ == '__main__':
    logger.info("Instagram video re-host server starting on port %s", settings.PORT)
    app.run(host='0.0.0.0', port=settings.PORT, debug=False, threaded=False)
