from unittest.mock import MagicMock

import pytest

from errors import ExtractionError
from models import Extraction, UploadResult
from pipeline import RehostPipeline

UPLOAD = UploadResult(
    url='https://res.cloudinary.com/demo/video/upload/x.mp4',
    public_id='instagram-videos/x',
    format='mp4',
    duration=9.0,
    bytes=4,
    width=720,
    height=1280,
    created_at='2024-01-01T00:00:00Z',
)


def make_pipeline(extraction):
    extractor = MagicMock()
    extractor.extract_with_retries.return_value = extraction
    uploader = MagicMock()
    uploader.upload.return_value = UPLOAD
    download = MagicMock(return_value=b'downloaded')
    return RehostPipeline(extractor, uploader, download=download), extractor, uploader, download


def test_downloads_when_extraction_has_no_bytes():
    pipeline, extractor, uploader, download = make_pipeline(Extraction('https://cdn.example/v.mp4', 'graphql'))

    result = pipeline.rehost('https://www.instagram.com/reel/C1/', identifier='ip')

    extractor.extract_with_retries.assert_called_once_with(
        'https://www.instagram.com/reel/C1/', identifier='ip', browser_first=False
    )
    download.assert_called_once_with('https://cdn.example/v.mp4')
    uploader.upload.assert_called_once_with(b'downloaded')
    assert result['success'] is True
    assert result['originalVideoUrl'] == 'https://cdn.example/v.mp4'
    assert result['extractionMethod'] == 'graphql'
    assert result['cloudinaryUrl'] == UPLOAD.url
    assert result['cloudinaryId'] == UPLOAD.public_id
    assert result['size'] == 4
    assert result['dimensions'] == {'width': 720, 'height': 1280}


def test_browser_bytes_skip_download():
    pipeline, extractor, uploader, download = make_pipeline(
        Extraction('https://cdn.example/v.mp4', 'browser', video_bytes=b'rendered')
    )

    pipeline.rehost('https://www.instagram.com/reel/C1/', browser_first=True)

    download.assert_not_called()
    uploader.upload.assert_called_once_with(b'rendered')


def test_extraction_failure_propagates():
    pipeline, extractor, uploader, download = make_pipeline(None)
    extractor.extract_with_retries.side_effect = ExtractionError('nope')
    with pytest.raises(ExtractionError):
        pipeline.rehost('https://www.instagram.com/reel/C1/')
    uploader.upload.assert_not_called()
