"""Unit tests for data models and the error taxonomy."""

from pathlib import Path

import pytest

from models.upload import PrivacyStatus, ProcessResult, UploadMetadata, UploadResult
from models.video import AudioClip, Scene, VideoRequest, VisualAsset, hex_to_rgb, normalize_color
from utils.errors import (
    AuthError,
    CompositionError,
    PipelineError,
    PublishError,
    QuotaError,
    SynthesisError,
)


@pytest.mark.unit
@pytest.mark.parametrize(
    "value,expected",
    [("#1E3A8A", "#1e3a8a"), ("1e3a8a", "#1e3a8a"), (" #FFFFFF ", "#ffffff")],
)
def test_normalize_color(value, expected):
    assert normalize_color(value) == expected


@pytest.mark.unit
@pytest.mark.parametrize("value", ["#fff", "red", "#12345g", ""])
def test_normalize_color_rejects_invalid(value):
    with pytest.raises(ValueError):
        normalize_color(value)


@pytest.mark.unit
def test_hex_to_rgb():
    assert hex_to_rgb("#ff8000") == (255, 128, 0)


@pytest.mark.unit
def test_video_request_normalizes_color():
    request = VideoRequest(title="T", script="S", background_color="ABCDEF")

    assert request.background_color == "#abcdef"
    assert request.language_code == "en"


@pytest.mark.unit
def test_audio_clip_requires_positive_duration():
    with pytest.raises(ValueError):
        AudioClip(path=Path("a.mp3"), duration=0, scene_index=0)


@pytest.mark.unit
def test_scene_attaches_assets_once():
    scene = Scene(index=1, text="Hello")
    clip = AudioClip(path=Path("audio_001.mp3"), duration=2.0, scene_index=1)
    visual = VisualAsset(path=Path("slide_001.png"), background_color="#000000", duration=2.0)

    scene.attach_audio(clip)
    scene.attach_visual(visual)

    assert scene.duration == 2.0
    assert scene.is_ready
    with pytest.raises(ValueError):
        scene.attach_audio(clip)
    with pytest.raises(ValueError):
        scene.attach_visual(visual)


@pytest.mark.unit
def test_scene_rejects_mismatched_clip_and_empty_text():
    scene = Scene(index=0, text="Hello")
    with pytest.raises(ValueError):
        scene.attach_audio(AudioClip(path=Path("a.mp3"), duration=1.0, scene_index=3))
    with pytest.raises(ValueError):
        Scene(index=0, text="   ")


@pytest.mark.unit
def test_upload_metadata_coerces_privacy():
    metadata = UploadMetadata(title="T", description="D", privacy_status="private")

    assert metadata.privacy_status is PrivacyStatus.PRIVATE


@pytest.mark.unit
def test_process_result_body():
    upload = UploadResult.for_video("abc123")
    result = ProcessResult(video_id=upload.video_id, url=upload.url, duration=4.2, segments=["a", "b"])

    assert result.to_dict() == {
        "success": True,
        "videoId": "abc123",
        "youtubeUrl": "https://www.youtube.com/watch?v=abc123",
        "duration": 4.2,
        "segments": ["a", "b"],
    }


@pytest.mark.unit
def test_error_taxonomy_carries_stage_and_kind():
    assert SynthesisError("x", kind="transient").retryable
    assert not SynthesisError("x").retryable
    assert QuotaError("quota").retryable
    assert isinstance(AuthError("auth"), PublishError)
    assert AuthError("auth").stage == "publishing"
    assert CompositionError("x", stage="concat").stage == "concat"

    body = SynthesisError("bad language", status_code=400).to_dict()
    assert body == {
        "error": "bad language",
        "stage": "synthesizing",
        "kind": "permanent",
        "type": "SynthesisError",
    }


@pytest.mark.unit
def test_synthesis_error_rejects_unknown_kind():
    with pytest.raises(ValueError):
        SynthesisError("x", kind="sometimes")
    assert issubclass(SynthesisError, PipelineError)
