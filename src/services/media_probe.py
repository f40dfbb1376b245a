"""Media probing via ffprobe.

Runs ffprobe as a subprocess and parses its JSON output into MediaInfo.
Used to measure synthesized narration and the final composed video.
"""

import asyncio
import json
import logging
import subprocess
from pathlib import Path

from models.video import MediaInfo, StreamInfo
from utils.errors import ProbeError

logger = logging.getLogger(__name__)

DEFAULT_PROBE_TIMEOUT = 30


def _to_float(value) -> float | None:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def _to_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


class MediaProbe:
    """Typed wrapper around the ffprobe binary."""

    def __init__(self, ffprobe_path: str = "ffprobe", timeout: float = DEFAULT_PROBE_TIMEOUT):
        self.ffprobe_path = ffprobe_path
        self.timeout = timeout

    def probe(self, media_path: Path) -> MediaInfo:
        """Inspect a media file.

        Args:
            media_path: File to inspect

        Returns:
            MediaInfo with a positive duration

        Raises:
            ProbeError: If ffprobe fails or its output is unusable
        """
        media_path = Path(media_path)
        cmd = [
            self.ffprobe_path,
            "-v", "error",
            "-print_format", "json",
            "-show_format",
            "-show_streams",
            str(media_path),
        ]
        logger.debug(f"Command: {' '.join(cmd)}")

        try:
            result = subprocess.run(
                cmd, capture_output=True, text=True, timeout=self.timeout
            )
        except FileNotFoundError as e:
            raise ProbeError(f"ffprobe not found: {self.ffprobe_path}") from e
        except subprocess.TimeoutExpired as e:
            raise ProbeError(
                f"ffprobe timed out after {self.timeout}s on {media_path.name}"
            ) from e

        if result.returncode != 0:
            raise ProbeError(
                f"ffprobe failed on {media_path.name} (exit {result.returncode})",
                detail=(result.stderr or "")[-1000:],
            )

        return self.parse_output(media_path, result.stdout)

    async def probe_async(self, media_path: Path) -> MediaInfo:
        """Run ``probe`` in a worker thread."""
        return await asyncio.to_thread(self.probe, media_path)

    @staticmethod
    def parse_output(media_path: Path, output: str) -> MediaInfo:
        """Parse ffprobe ``-print_format json`` output.

        Container duration wins; when it is absent (some raw streams) the
        longest stream duration is used instead.
        """
        try:
            data = json.loads(output)
        except json.JSONDecodeError as e:
            raise ProbeError(
                f"Unparsable ffprobe output for {Path(media_path).name}",
                detail=output[:500],
            ) from e

        if not isinstance(data, dict):
            raise ProbeError(f"Unexpected ffprobe output for {Path(media_path).name}")

        fmt = data.get("format") or {}
        streams = tuple(
            StreamInfo(
                index=_to_int(s.get("index")) or 0,
                codec_type=s.get("codec_type", ""),
                codec_name=s.get("codec_name", ""),
                duration=_to_float(s.get("duration")),
                width=_to_int(s.get("width")),
                height=_to_int(s.get("height")),
                sample_rate=_to_int(s.get("sample_rate")),
                channels=_to_int(s.get("channels")),
            )
            for s in data.get("streams") or []
        )

        duration = _to_float(fmt.get("duration"))
        if duration is None:
            stream_durations = [s.duration for s in streams if s.duration]
            duration = max(stream_durations) if stream_durations else None

        if duration is None or duration <= 0:
            raise ProbeError(f"No positive duration reported for {Path(media_path).name}")

        return MediaInfo(
            path=Path(media_path),
            duration=duration,
            format_name=fmt.get("format_name", ""),
            size=_to_int(fmt.get("size")),
            bit_rate=_to_int(fmt.get("bit_rate")),
            streams=streams,
        )
