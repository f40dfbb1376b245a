"""Configuration loading and validation for slidecast."""

import os
from pathlib import Path

from dotenv import load_dotenv

# Get the project root directory (parent of src)
PROJECT_ROOT = Path(__file__).parent.parent.parent

# Load environment variables from .env file in project root
load_dotenv(PROJECT_ROOT / ".env")


def _env_bool(name: str, default: str = "false") -> bool:
    return os.getenv(name, default).lower() in ("1", "true", "yes")


def load_config() -> dict:
    """Load configuration from environment variables."""

    # Helper function to resolve paths relative to project root
    def resolve_path(path: str | None) -> str | None:
        if not path:
            return None
        if Path(path).is_absolute():
            return path
        return str(PROJECT_ROOT / path)

    config = {
        # YouTube OAuth (refresh token flow)
        "google_client_id": os.getenv("GOOGLE_CLIENT_ID"),
        "google_client_secret": os.getenv("GOOGLE_CLIENT_SECRET"),
        "google_refresh_token": os.getenv("GOOGLE_REFRESH_TOKEN"),
        "google_token_uri": os.getenv("GOOGLE_TOKEN_URI", "https://oauth2.googleapis.com/token"),
        "youtube_category_id": os.getenv("YOUTUBE_CATEGORY_ID", "22"),
        # Speech synthesis
        "tts_host": os.getenv("TTS_HOST", "https://translate.google.com"),
        "tts_timeout": float(os.getenv("TTS_TIMEOUT", "15")),
        "tts_max_attempts": int(os.getenv("TTS_MAX_ATTEMPTS", "3")),
        "tts_retry_base_delay": float(os.getenv("TTS_RETRY_BASE_DELAY", "1.0")),
        "tts_slow": _env_bool("TTS_SLOW"),
        # Fan-out limits
        "max_concurrent_synthesis": int(os.getenv("MAX_CONCURRENT_SYNTHESIS", "4")),
        "max_concurrent_renders": int(os.getenv("MAX_CONCURRENT_RENDERS", "2")),
        "max_scene_chars": int(os.getenv("MAX_SCENE_CHARS", "1000")),
        # FFmpeg
        "ffmpeg_path": os.getenv("FFMPEG_PATH", "ffmpeg"),
        "ffprobe_path": os.getenv("FFPROBE_PATH", "ffprobe"),
        "subprocess_timeout": float(os.getenv("SUBPROCESS_TIMEOUT", "600")),
        "probe_timeout": float(os.getenv("PROBE_TIMEOUT", "30")),
        # Output format
        "video_width": int(os.getenv("VIDEO_WIDTH", "1280")),
        "video_height": int(os.getenv("VIDEO_HEIGHT", "720")),
        "video_fps": int(os.getenv("VIDEO_FPS", "30")),
        "duration_tolerance": float(os.getenv("DURATION_TOLERANCE", "0.5")),
        # Temporary files (system temp dir when unset)
        "workspace_root": resolve_path(os.getenv("WORKSPACE_ROOT")),
        # Upload
        "upload_chunk_size": int(os.getenv("UPLOAD_CHUNK_SIZE", str(8 * 1024 * 1024))),
        "upload_max_retries": int(os.getenv("UPLOAD_MAX_RETRIES", "5")),
        "quota_max_attempts": int(os.getenv("QUOTA_MAX_ATTEMPTS", "3")),
        "upload_chunk_timeout": float(os.getenv("UPLOAD_CHUNK_TIMEOUT", "120")),
        "processing_timeout": float(os.getenv("PROCESSING_TIMEOUT", "300")),
        "processing_poll_interval": float(os.getenv("PROCESSING_POLL_INTERVAL", "5")),
        # Server
        "api_host": os.getenv("API_HOST", "0.0.0.0"),
        "api_port": int(os.getenv("API_PORT", "8000")),
        # Logging
        "log_level": os.getenv("LOG_LEVEL", "INFO"),
        "log_json": _env_bool("LOG_JSON"),
    }

    return config


def validate_config(config: dict, require_upload: bool = True) -> list[str]:
    """Validate configuration and return list of errors."""
    errors = []

    if require_upload:
        for key in ("google_client_id", "google_client_secret", "google_refresh_token"):
            if not config.get(key):
                errors.append(f"{key.upper()} is required for YouTube publishing")

    for key in (
        "max_concurrent_synthesis",
        "max_concurrent_renders",
        "max_scene_chars",
        "tts_max_attempts",
        "quota_max_attempts",
        "video_fps",
    ):
        if config.get(key, 1) < 1:
            errors.append(f"{key.upper()} must be at least 1")

    chunk_size = config.get("upload_chunk_size", 0)
    if chunk_size < 256 * 1024 or chunk_size % (256 * 1024):
        errors.append("UPLOAD_CHUNK_SIZE must be a positive multiple of 262144 bytes")

    for key in ("video_width", "video_height"):
        value = config.get(key, 0)
        if value < 2 or value % 2:
            errors.append(f"{key.upper()} must be a positive even number")

    if config.get("duration_tolerance", 0) < 0:
        errors.append("DURATION_TOLERANCE must not be negative")

    workspace_root = config.get("workspace_root")
    if workspace_root:
        try:
            Path(workspace_root).mkdir(parents=True, exist_ok=True)
        except OSError as e:
            errors.append(f"Cannot create workspace root: {e}")

    return errors
