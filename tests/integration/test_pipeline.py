"""Integration tests for the generate and generate-then-publish pipeline.

Slides are really rendered with Pillow; narration, ffmpeg and the YouTube
API are replaced with fakes so the tests run without network or binaries.
"""

from pathlib import Path
from unittest.mock import AsyncMock, Mock, patch

import httpx
import pytest

from models.upload import PrivacyStatus, UploadMetadata, UploadResult
from models.video import AudioClip, MediaInfo, VideoRequest
from services.tts_service import TTSService
from utils.errors import AuthError, CompositionError, SynthesisError, UploadError
from video_agent.agent import PipelineStage, VideoProductionAgent
from video_agent.video_composer import VideoComposer


class FakeTTS:
    """Writes a placeholder clip whose duration depends on the scene index."""

    def __init__(self):
        self.calls: list[tuple[str, str, int]] = []

    @staticmethod
    def duration_for(index: int) -> float:
        return 1.0 + 0.5 * index

    async def synthesize(self, text, language_code, output_path, scene_index):
        self.calls.append((text, language_code, scene_index))
        Path(output_path).write_bytes(b"\xff\xfb\x90\x64")
        return AudioClip(path=Path(output_path), duration=self.duration_for(scene_index), scene_index=scene_index)

    async def close(self):
        pass


class FakePublisher:
    def __init__(self, error: Exception | None = None):
        self.error = error
        self.uploads: list[tuple] = []

    async def upload(self, video, metadata):
        # Files must still exist while uploading
        assert Path(video.video_path).exists()
        assert Path(video.thumbnail_path).exists()
        self.uploads.append((video, metadata))
        if self.error:
            raise self.error
        return UploadResult.for_video("vid123")

    async def close(self):
        pass


def _fake_ffmpeg(cmd, **kwargs):
    Path(cmd[-1]).write_bytes(b"output")
    return Mock(returncode=0, stdout="", stderr="")


def _composer(measured_duration: float) -> VideoComposer:
    probe = Mock()
    probe.probe_async = AsyncMock(
        side_effect=lambda path: MediaInfo(path=Path(path), duration=measured_duration)
    )
    return VideoComposer(probe=probe)


@pytest.fixture
def request_3(sample_script) -> VideoRequest:
    return VideoRequest(
        title="Octopus facts", script=sample_script, language_code="en", background_color="#1e3a8a"
    )


@pytest.fixture
def metadata() -> UploadMetadata:
    return UploadMetadata(
        title="Octopus facts",
        description="Three facts about octopuses.",
        tags=["octopus"],
        privacy_status=PrivacyStatus.PUBLIC,
    )


def _workspace_root(config) -> Path:
    return Path(config["workspace_root"])


@pytest.mark.integration
@pytest.mark.asyncio
async def test_three_paragraphs_produce_three_scenes(sample_config, request_3):
    tts = FakeTTS()
    stages: list[PipelineStage] = []
    agent = VideoProductionAgent(sample_config, tts=tts, composer=_composer(4.5), publisher=FakePublisher())

    with patch("video_agent.video_composer.subprocess.run", side_effect=_fake_ffmpeg):
        video = await agent.generate_video(request_3, on_stage=stages.append)

    try:
        workspace = video.workspace.path
        assert len(video.segments) == 3
        assert video.segments[0] == "Octopuses have three hearts and blue blood."
        assert sorted(p.name for p in workspace.glob("audio_*.mp3")) == [
            "audio_000.mp3",
            "audio_001.mp3",
            "audio_002.mp3",
        ]
        assert len(list(workspace.glob("slide_*.png"))) == 3
        assert video.video_path == workspace / "video.mp4"
        assert video.video_path.exists()
        assert video.thumbnail_path.exists()
        assert video.duration == 4.5
        assert [call[2] for call in sorted(tts.calls, key=lambda c: c[2])] == [0, 1, 2]
        assert stages == [
            PipelineStage.SEGMENTING,
            PipelineStage.SYNTHESIZING,
            PipelineStage.RENDERING,
            PipelineStage.COMPOSING,
            PipelineStage.DONE,
        ]
    finally:
        video.workspace.cleanup()

    assert not workspace.exists()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_permanent_synthesis_failure_removes_workspace(sample_config, request_3):
    calls = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal calls
        calls += 1
        return httpx.Response(400, text="bad language")

    tts = TTSService(
        host="https://tts.test",
        client=httpx.AsyncClient(transport=httpx.MockTransport(handler)),
    )
    stages: list[PipelineStage] = []
    agent = VideoProductionAgent(sample_config, tts=tts, composer=_composer(4.5), publisher=FakePublisher())

    try:
        with pytest.raises(SynthesisError) as exc_info:
            await agent.generate_video(request_3, on_stage=stages.append)
    finally:
        await agent.close()

    assert exc_info.value.permanent
    assert stages[-1] == PipelineStage.FAILED
    # Not retried: one request per started scene at most
    assert calls <= 3
    assert list(_workspace_root(sample_config).iterdir()) == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_duration_drift_is_rejected(sample_config, request_3, caplog):
    agent = VideoProductionAgent(sample_config, tts=FakeTTS(), composer=_composer(9.0), publisher=FakePublisher())

    with patch("video_agent.video_composer.subprocess.run", side_effect=_fake_ffmpeg):
        with pytest.raises(CompositionError) as exc_info:
            await agent.generate_video(request_3)

    assert exc_info.value.stage == "verify"
    assert "stages: created -> segmenting -> synthesizing -> rendering -> composing -> failed" in caplog.text
    assert list(_workspace_root(sample_config).iterdir()) == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_process_publishes_and_releases_workspace(sample_config, request_3, metadata):
    publisher = FakePublisher()
    agent = VideoProductionAgent(sample_config, tts=FakeTTS(), composer=_composer(4.5), publisher=publisher)

    with patch("video_agent.video_composer.subprocess.run", side_effect=_fake_ffmpeg):
        result = await agent.process(request_3, metadata)

    assert result.to_dict() == {
        "success": True,
        "videoId": "vid123",
        "youtubeUrl": "https://www.youtube.com/watch?v=vid123",
        "duration": 4.5,
        "segments": [
            "Octopuses have three hearts and blue blood.",
            "Two hearts pump blood to the gills, while the third pumps it to the rest of the body.",
            "Each of their eight arms can taste what it touches.",
        ],
    }
    assert publisher.uploads[0][1] is metadata
    assert list(_workspace_root(sample_config).iterdir()) == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_publish_failure_still_releases_workspace(sample_config, request_3, metadata):
    publisher = FakePublisher(error=UploadError("Upload chunk failed (HTTP 400)"))
    agent = VideoProductionAgent(sample_config, tts=FakeTTS(), composer=_composer(4.5), publisher=publisher)

    with patch("video_agent.video_composer.subprocess.run", side_effect=_fake_ffmpeg):
        with pytest.raises(UploadError):
            await agent.process(request_3, metadata)

    assert len(publisher.uploads) == 1
    assert list(_workspace_root(sample_config).iterdir()) == []


@pytest.mark.integration
@pytest.mark.asyncio
async def test_process_requires_publisher(sample_config, request_3, metadata):
    config = {**sample_config, "google_refresh_token": None}
    agent = VideoProductionAgent(config, tts=FakeTTS(), composer=_composer(4.5))

    with pytest.raises(AuthError):
        await agent.process(request_3, metadata)


@pytest.mark.integration
@pytest.mark.asyncio
@pytest.mark.parametrize("measured", [4.8, 4.0])
async def test_duration_within_tolerance_is_accepted(sample_config, request_3, measured):
    # Narration totals 1.0 + 1.5 + 2.0 = 4.5s; the default tolerance is 0.5s
    agent = VideoProductionAgent(
        {**sample_config, "duration_tolerance": 0.5},
        tts=FakeTTS(),
        composer=_composer(measured),
        publisher=FakePublisher(),
    )

    with patch("video_agent.video_composer.subprocess.run", side_effect=_fake_ffmpeg):
        video = await agent.generate_video(request_3)

    try:
        assert video.duration == measured
    finally:
        video.workspace.cleanup()


@pytest.mark.integration
@pytest.mark.asyncio
async def test_duration_just_outside_tolerance_is_rejected(sample_config, request_3):
    agent = VideoProductionAgent(
        {**sample_config, "duration_tolerance": 0.5},
        tts=FakeTTS(),
        composer=_composer(5.1),
        publisher=FakePublisher(),
    )

    with patch("video_agent.video_composer.subprocess.run", side_effect=_fake_ffmpeg):
        with pytest.raises(CompositionError):
            await agent.generate_video(request_3)
