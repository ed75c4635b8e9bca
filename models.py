from dataclasses import dataclass
from typing import Optional


@dataclass
class Extraction:
    """A located video, optionally with its bytes already fetched"""
    video_url: str
    method: str
    video_bytes: Optional[bytes] = None


@dataclass
class UploadResult:
    url: str
    public_id: str
    format: Optional[str] = None
    duration: Optional[float] = None
    bytes: Optional[int] = None
    width: Optional[int] = None
    height: Optional[int] = None
    created_at: Optional[str] = None
