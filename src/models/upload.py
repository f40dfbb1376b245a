"""Data models for publishing to YouTube."""

from dataclasses import dataclass, field
from enum import Enum

WATCH_URL = "https://www.youtube.com/watch?v={video_id}"


class PrivacyStatus(str, Enum):
    """YouTube privacy status."""

    PUBLIC = "public"
    UNLISTED = "unlisted"
    PRIVATE = "private"


@dataclass(frozen=True)
class UploadMetadata:
    """Metadata applied verbatim to the uploaded video."""

    title: str
    description: str
    tags: list[str] = field(default_factory=list)
    keywords: list[str] = field(default_factory=list)
    privacy_status: PrivacyStatus = PrivacyStatus.UNLISTED
    language_code: str = "en"

    def __post_init__(self):
        object.__setattr__(self, "privacy_status", PrivacyStatus(self.privacy_status))


@dataclass(frozen=True)
class UploadResult:
    """A published video."""

    video_id: str
    url: str

    @classmethod
    def for_video(cls, video_id: str) -> "UploadResult":
        return cls(video_id=video_id, url=WATCH_URL.format(video_id=video_id))


@dataclass(frozen=True)
class ProcessResult:
    """Outcome of a full generate-then-publish run."""

    video_id: str
    url: str
    duration: float
    segments: list[str]

    def to_dict(self) -> dict:
        """Convert to the API success body."""
        return {
            "success": True,
            "videoId": self.video_id,
            "youtubeUrl": self.url,
            "duration": self.duration,
            "segments": self.segments,
        }
