"""Data models for video generation."""

import re
from dataclasses import dataclass, field
from pathlib import Path

from models.workspace import Workspace

_HEX_COLOR_RE = re.compile(r"^#?([0-9A-Fa-f]{6})$")


def normalize_color(value: str) -> str:
    """Normalize ``1f2937`` / ``#1F2937`` to ``#1f2937``."""
    match = _HEX_COLOR_RE.match(value.strip())
    if not match:
        raise ValueError(f"Background color must be 6 hex digits, got {value!r}")
    return f"#{match.group(1).lower()}"


def hex_to_rgb(value: str) -> tuple[int, int, int]:
    """Convert a hex color to an (r, g, b) tuple."""
    digits = normalize_color(value)[1:]
    return int(digits[0:2], 16), int(digits[2:4], 16), int(digits[4:6], 16)


@dataclass(frozen=True)
class VideoRequest:
    """Immutable input to the generation pipeline.

    Lengths are validated by the request layer; only the color is
    normalized here because every renderer call depends on it.
    """

    title: str
    script: str
    language_code: str = "en"
    background_color: str = "#000000"

    def __post_init__(self):
        object.__setattr__(self, "background_color", normalize_color(self.background_color))


@dataclass(frozen=True)
class AudioClip:
    """Synthesized narration for one scene."""

    path: Path
    duration: float
    scene_index: int

    def __post_init__(self):
        if self.duration <= 0:
            raise ValueError(f"Audio clip duration must be positive, got {self.duration}")


@dataclass(frozen=True)
class VisualAsset:
    """Rendered slide for one scene, shown for the clip's duration."""

    path: Path
    background_color: str
    duration: float


@dataclass
class Scene:
    """One narrated unit of the video.

    Created once by segmentation; derived assets are attached exactly once.
    """

    index: int
    text: str
    audio: AudioClip | None = None
    visual: VisualAsset | None = None

    def __post_init__(self):
        if not self.text or not self.text.strip():
            raise ValueError(f"Scene {self.index} has empty text")

    @property
    def duration(self) -> float:
        return self.audio.duration if self.audio else 0.0

    @property
    def is_ready(self) -> bool:
        return self.audio is not None and self.visual is not None

    def attach_audio(self, clip: AudioClip) -> None:
        if self.audio is not None:
            raise ValueError(f"Scene {self.index} already has audio")
        if clip.scene_index != self.index:
            raise ValueError(
                f"Audio clip for scene {clip.scene_index} attached to scene {self.index}"
            )
        self.audio = clip

    def attach_visual(self, asset: VisualAsset) -> None:
        if self.visual is not None:
            raise ValueError(f"Scene {self.index} already has a visual")
        self.visual = asset


@dataclass(frozen=True)
class StreamInfo:
    """One stream reported by ffprobe."""

    index: int
    codec_type: str
    codec_name: str = ""
    duration: float | None = None
    width: int | None = None
    height: int | None = None
    sample_rate: int | None = None
    channels: int | None = None


@dataclass(frozen=True)
class MediaInfo:
    """Container-level probe result."""

    path: Path
    duration: float
    format_name: str = ""
    size: int | None = None
    bit_rate: int | None = None
    streams: tuple[StreamInfo, ...] = ()

    @property
    def has_audio(self) -> bool:
        return any(s.codec_type == "audio" for s in self.streams)

    @property
    def has_video(self) -> bool:
        return any(s.codec_type == "video" for s in self.streams)


@dataclass(frozen=True)
class CompositionResult:
    """Files produced by the composer."""

    video_path: Path
    thumbnail_path: Path
    duration: float


@dataclass
class ComposedVideo:
    """Final generation output.

    Ownership of ``workspace`` (and every file in it) passes to the caller,
    who must call ``workspace.cleanup()`` once done with the files.
    """

    video_path: Path
    thumbnail_path: Path
    duration: float
    segments: list[str] = field(default_factory=list)
    workspace: Workspace | None = None
