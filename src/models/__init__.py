# Data models for slidecast
from .workspace import Workspace
from .video import (
    AudioClip,
    ComposedVideo,
    CompositionResult,
    MediaInfo,
    Scene,
    StreamInfo,
    VideoRequest,
    VisualAsset,
    hex_to_rgb,
    normalize_color,
)
from .upload import PrivacyStatus, ProcessResult, UploadMetadata, UploadResult

__all__ = [
    "Workspace",
    "VideoRequest",
    "Scene",
    "AudioClip",
    "VisualAsset",
    "StreamInfo",
    "MediaInfo",
    "CompositionResult",
    "ComposedVideo",
    "hex_to_rgb",
    "normalize_color",
    # Publishing
    "PrivacyStatus",
    "UploadMetadata",
    "UploadResult",
    "ProcessResult",
]
