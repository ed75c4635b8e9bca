import logging

from downloader import download_video

logger = logging.getLogger(__name__)


class RehostPipeline:
    """Extract a reel's video and re-host it on the media host"""

    def __init__(self, extractor, uploader, download=download_video):
        self.extractor = extractor
        self.uploader = uploader
        self.download = download

    def rehost(self, url, identifier=None, browser_first=False):
        logger.info("Starting video extraction for %s", url)
        extraction = self.extractor.extract_with_retries(url, identifier=identifier, browser_first=browser_first)
        logger.info("Video URL (%s): %s", extraction.method, extraction.video_url)

        video_bytes = extraction.video_bytes
        if video_bytes is None:
            video_bytes = self.download(extraction.video_url)

        upload = self.uploader.upload(video_bytes)
        return {
            'success': True,
            'originalVideoUrl': extraction.video_url,
            'extractionMethod': extraction.method,
            'cloudinaryUrl': upload.url,
            'cloudinaryId': upload.public_id,
            'format': upload.format,
            'duration': upload.duration,
            'size': upload.bytes,
            'dimensions': {
                'width': upload.width,
                'height': upload.height,
            },
            'createdAt': upload.created_at,
            'message': 'Video extracted and uploaded to Cloudinary successfully!',
        }
