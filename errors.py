class RehostError(Exception):
    """Base error for the re-host service"""
    status_code = 500


class InvalidUrlError(RehostError):
    status_code = 400


class RateLimitExceeded(RehostError):
    status_code = 429

    def __init__(self, message='Rate limit exceeded. Please wait before trying again.'):
        super().__init__(message)


class ExtractionError(RehostError):
    status_code = 404


class DownloadError(RehostError):
    pass


class CdnAccessDenied(DownloadError):
    """The CDN refused a session-bound URL (HTTP 403)"""

    def __init__(self, message=None):
        super().__init__(message or (
            'Instagram CDN access denied. This URL requires session authentication '
            'and cannot be accessed directly. Try the browser endpoint instead.'
        ))


class UploadError(RehostError):
    pass
