import base64
import logging
import time

import cloudinary
import cloudinary.uploader
from cloudinary.exceptions import Error as CloudinaryError

import settings
from errors import UploadError
from models import UploadResult

logger = logging.getLogger(__name__)


class CloudinaryUploader:
    """Stores video bytes on Cloudinary and hands back the hosted URL"""

    def __init__(self, cloud_name=None, api_key=None, api_secret=None, folder=None):
        self.cloud_name = cloud_name or settings.CLOUDINARY_CLOUD_NAME
        self.folder = folder or settings.CLOUDINARY_FOLDER
        cloudinary.config(
            cloud_name=self.cloud_name,
            api_key=api_key or settings.CLOUDINARY_API_KEY,
            api_secret=api_secret or settings.CLOUDINARY_API_SECRET,
            secure=True,
        )

    @property
    def configured(self):
        config = cloudinary.config()
        return bool(config.cloud_name and config.api_key and config.api_secret)

    def status(self):
        return {
            'cloud_name': self.cloud_name,
            'status': 'Configured' if self.configured else 'Not configured',
        }

    def upload(self, video_bytes):
        if not video_bytes:
            raise UploadError('No video data to upload')

        data_uri = 'data:video/mp4;base64,' + base64.b64encode(video_bytes).decode('ascii')
        public_id = f'instagram_video_{int(time.time() * 1000)}'
        logger.info("Uploading %.2f MB to Cloudinary as %s", len(video_bytes) / 1024 / 1024, public_id)
        try:
            result = cloudinary.uploader.upload(
                data_uri,
                resource_type='video',
                folder=self.folder,
                public_id=public_id,
                overwrite=True,
                invalidate=True,
            )
        except CloudinaryError as e:
            raise UploadError(f'Cloudinary upload failed: {e}') from e

        logger.info("Cloudinary upload successful: %s", result.get('secure_url'))
        return UploadResult(
            url=result['secure_url'],
            public_id=result['public_id'],
            format=result.get('format'),
            duration=result.get('duration'),
            bytes=result.get('bytes'),
            width=result.get('width'),
            height=result.get('height'),
            created_at=result.get('created_at'),
        )
