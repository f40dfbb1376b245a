"""Shared pytest fixtures for slidecast tests."""

import sys
import tempfile
from pathlib import Path
from typing import Generator

import pytest

# Add src directory to path for imports
src_path = Path(__file__).parent.parent / "src"
if str(src_path) not in sys.path:
    sys.path.insert(0, str(src_path))

# Minimal MPEG audio frame header; enough for format sniffing.
FAKE_MP3 = b"\xff\xfb\x90\x64" + b"\x00" * 413


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def fake_mp3() -> bytes:
    return FAKE_MP3


@pytest.fixture
def sample_config(temp_dir) -> dict:
    """Sample configuration for testing."""
    return {
        "google_client_id": "test-client-id",
        "google_client_secret": "test-client-secret",
        "google_refresh_token": "test-refresh-token",
        "google_token_uri": "https://oauth2.googleapis.com/token",
        "tts_host": "https://tts.test",
        "tts_timeout": 5.0,
        "tts_max_attempts": 3,
        "tts_retry_base_delay": 0.01,
        "max_concurrent_synthesis": 4,
        "max_concurrent_renders": 2,
        "max_scene_chars": 1000,
        "ffmpeg_path": "ffmpeg",
        "ffprobe_path": "ffprobe",
        "subprocess_timeout": 60,
        "video_width": 320,
        "video_height": 180,
        "video_fps": 30,
        "duration_tolerance": 0.5,
        "workspace_root": str(temp_dir / "workspaces"),
        "upload_chunk_size": 256 * 1024,
        "upload_max_retries": 5,
        "quota_max_attempts": 3,
        "upload_chunk_timeout": 10.0,
        "processing_timeout": 30.0,
        "processing_poll_interval": 1.0,
        "log_level": "INFO",
        "log_json": False,
    }


@pytest.fixture
def sample_script() -> str:
    """Three-paragraph narration script."""
    return (
        "Octopuses have three hearts and blue blood.\n"
        "\n"
        "Two hearts pump blood to the gills, while the third pumps it to the rest of the body.\n"
        "\n"
        "Each of their eight arms can taste what it touches."
    )
