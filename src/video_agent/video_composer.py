"""FFmpeg-based video assembly for slide videos.

Takes ordered (slide, narration) pairs and produces the final video using
FFmpeg subprocess calls:

1. mux: each slide is looped for its clip's duration and muxed with the clip
2. concat: scene clips are joined in order with the concat demuxer
3. thumbnail: one representative frame is extracted as JPEG

Outputs are written under ``*.partial.*`` names and renamed to their final
names only after every step succeeded, so a final path either holds a
complete file or does not exist.
"""

import asyncio
import logging
import os
import shutil
import subprocess
from pathlib import Path

from models.video import AudioClip, CompositionResult, VisualAsset
from services.media_probe import MediaProbe
from utils.errors import CompositionError, ProbeError

logger = logging.getLogger(__name__)

DEFAULT_FPS = 30
DEFAULT_PRESET = "veryfast"
AUDIO_BITRATE = "192k"
AUDIO_SAMPLE_RATE = 44100
DEFAULT_TIMEOUT = 600

VIDEO_NAME = "video.mp4"
THUMBNAIL_NAME = "thumbnail.jpg"
CONCAT_LIST_NAME = "concat.txt"

# Seconds into the video for the thumbnail frame (clamped to half the duration)
THUMBNAIL_OFFSET = 1.0


class VideoComposer:
    """Assembles the final video from rendered scenes using FFmpeg.

    All rendering runs through subprocesses; blocking calls are pushed to a
    worker thread so the event loop stays responsive.
    """

    def __init__(
        self,
        ffmpeg_path: str = "ffmpeg",
        probe: MediaProbe | None = None,
        fps: int = DEFAULT_FPS,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        self.ffmpeg_path = ffmpeg_path
        self.probe = probe or MediaProbe()
        self.fps = fps
        self.timeout = timeout

    async def compose(
        self,
        scenes: list[tuple[VisualAsset, AudioClip]],
        output_dir: Path,
    ) -> CompositionResult:
        """Compose the full video from ordered scene assets.

        Args:
            scenes: (visual, audio) pairs in script order
            output_dir: Workspace directory receiving every file

        Returns:
            CompositionResult with final video, thumbnail and measured duration

        Raises:
            CompositionError: If any step fails; ``stage`` names the step
        """
        if not scenes:
            raise CompositionError("No scenes to compose", stage="mux")

        output_dir = Path(output_dir)
        video_path = output_dir / VIDEO_NAME
        thumbnail_path = output_dir / THUMBNAIL_NAME
        partial_video = output_dir / "video.partial.mp4"
        partial_thumbnail = output_dir / "thumbnail.partial.jpg"

        logger.info(f"Composing video: {len(scenes)} scenes at {self.fps}fps")

        try:
            # Step 1: Mux each slide with its narration
            scene_clips: list[Path] = []
            for position, (visual, audio) in enumerate(scenes):
                logger.info(f"Muxing scene {position + 1}/{len(scenes)}")
                clip_path = output_dir / f"scene_{audio.scene_index:03d}.mp4"
                await asyncio.to_thread(self._mux_scene, visual, audio, clip_path)
                scene_clips.append(clip_path)

            # Step 2: Concatenate in script order
            await asyncio.to_thread(self._concatenate_scenes, scene_clips, partial_video)

            # Step 3: Measure what was actually encoded
            try:
                duration = (await self.probe.probe_async(partial_video)).duration
            except ProbeError as e:
                raise CompositionError(
                    f"Could not probe composed video: {e}", stage="probe", detail=e.detail
                ) from e

            # Step 4: Thumbnail
            offset = min(THUMBNAIL_OFFSET, duration / 2)
            await asyncio.to_thread(
                self._extract_thumbnail, partial_video, partial_thumbnail, offset
            )

            # Promote partial outputs only after every step succeeded
            os.replace(partial_thumbnail, thumbnail_path)
            os.replace(partial_video, video_path)

        except BaseException:
            for path in (partial_video, partial_thumbnail):
                path.unlink(missing_ok=True)
            raise

        logger.info(f"Composition complete: {video_path} ({duration:.2f}s)")
        return CompositionResult(
            video_path=video_path, thumbnail_path=thumbnail_path, duration=duration
        )

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _mux_scene(self, visual: VisualAsset, audio: AudioClip, output_path: Path) -> None:
        """Loop a still slide for the clip's duration and mux it with the narration."""
        cmd = [
            self.ffmpeg_path, "-y",
            "-loop", "1",
            "-framerate", str(self.fps),
            "-i", str(visual.path),
            "-i", str(audio.path),
            "-map", "0:v:0",
            "-map", "1:a:0",
            "-c:v", "libx264",
            "-preset", DEFAULT_PRESET,
            "-tune", "stillimage",
            "-pix_fmt", "yuv420p",
            "-r", str(self.fps),
            "-c:a", "aac",
            "-b:a", AUDIO_BITRATE,
            "-ar", str(AUDIO_SAMPLE_RATE),
            "-ac", "2",
            "-t", f"{audio.duration:.3f}",
            "-movflags", "+faststart",
            str(output_path),
        ]

        self._run_ffmpeg(cmd, "mux", f"mux scene {audio.scene_index} ({audio.duration:.2f}s)")

        if not output_path.exists():
            raise CompositionError(
                f"Scene muxing failed: {output_path.name} not created", stage="mux"
            )

    def _concatenate_scenes(self, scene_clips: list[Path], output_path: Path) -> None:
        """Concatenate scene clips using the FFmpeg concat demuxer (stream copy).

        All inputs share codecs, resolution and frame rate, which is
        enforced by _mux_scene.
        """
        if not scene_clips:
            raise CompositionError("No scene clips to concatenate", stage="concat")

        if len(scene_clips) == 1:
            shutil.copy2(str(scene_clips[0]), str(output_path))
            return

        concat_file = output_path.parent / CONCAT_LIST_NAME
        lines = [f"file '{self._escape_concat_path(clip)}'" for clip in scene_clips]
        concat_file.write_text("\n".join(lines) + "\n")

        cmd = [
            self.ffmpeg_path, "-y",
            "-f", "concat",
            "-safe", "0",
            "-i", str(concat_file),
            "-c", "copy",
            "-movflags", "+faststart",
            str(output_path),
        ]

        self._run_ffmpeg(cmd, "concat", f"concatenate {len(scene_clips)} scenes")

    def _extract_thumbnail(self, video_path: Path, output_path: Path, offset: float) -> None:
        """Grab a single frame at ``offset`` seconds as JPEG."""
        cmd = [
            self.ffmpeg_path, "-y",
            "-ss", f"{offset:.3f}",
            "-i", str(video_path),
            "-frames:v", "1",
            "-q:v", "2",
            str(output_path),
        ]

        self._run_ffmpeg(cmd, "thumbnail", f"thumbnail at {offset:.2f}s")

        if not output_path.exists():
            raise CompositionError("Thumbnail frame was not written", stage="thumbnail")

    # ------------------------------------------------------------------
    # Utilities
    # ------------------------------------------------------------------

    def _run_ffmpeg(self, cmd: list[str], stage: str, description: str = "") -> None:
        """Run FFmpeg command with error handling.

        Args:
            cmd: FFmpeg command as list of arguments
            stage: Composition stage reported on failure
            description: Human-readable description for logging

        Raises:
            CompositionError: If FFmpeg is missing, times out or exits non-zero
        """
        logger.info(f"FFmpeg: {description}")
        logger.debug(f"Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout
            )
        except FileNotFoundError as e:
            raise CompositionError(
                f"FFmpeg not found: {self.ffmpeg_path}", stage=stage
            ) from e
        except subprocess.TimeoutExpired as e:
            raise CompositionError(
                f"FFmpeg timed out after {self.timeout}s ({description})", stage=stage
            ) from e

        if result.returncode != 0:
            stderr = result.stderr or ""
            logger.error(f"FFmpeg stderr: {stderr[-1000:]}")
            last_line = stderr.strip().splitlines()[-1] if stderr.strip() else "no output"
            raise CompositionError(
                f"FFmpeg failed ({description}): {last_line}",
                stage=stage,
                detail=stderr[-2000:],
            )

    @staticmethod
    def _escape_concat_path(path: Path) -> str:
        """Escape a path for a single-quoted concat demuxer entry."""
        return str(Path(path).resolve()).replace("'", "'\\''")
