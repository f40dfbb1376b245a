"""Video Production Agent - script to published slide video.

Takes a narration script and produces a narrated slide video:
script -> scenes -> narration -> slides -> composition -> upload

Generation runs inside a Workspace. ``generate_video`` hands the workspace
to its caller on success and deletes it on failure; ``process`` wraps
generate-then-publish so the workspace is released on every exit path.
"""

import asyncio
import logging
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from enum import Enum
from typing import TypeVar

from models.upload import ProcessResult, UploadMetadata
from models.video import AudioClip, ComposedVideo, Scene, VideoRequest, VisualAsset
from models.workspace import Workspace
from services.media_probe import MediaProbe
from services.tts_service import TTSService
from services.youtube_upload_service import YouTubeUploadService
from utils.config import load_config
from utils.errors import AuthError, CompositionError, PipelineError, PublishError
from utils.logging import clear_job_context, set_job_context
from video_agent.scene_renderer import SceneRenderer
from video_agent.segmenter import MAX_SCENE_CHARS, segment_script
from video_agent.video_composer import VideoComposer

logger = logging.getLogger(__name__)

T = TypeVar("T")
R = TypeVar("R")

DEFAULT_DURATION_TOLERANCE = 0.5


class PipelineStage(str, Enum):
    """Stages of one generation run."""

    CREATED = "created"
    SEGMENTING = "segmenting"
    SYNTHESIZING = "synthesizing"
    RENDERING = "rendering"
    COMPOSING = "composing"
    DONE = "done"
    FAILED = "failed"


_ALLOWED_TRANSITIONS: dict[PipelineStage, set[PipelineStage]] = {
    PipelineStage.CREATED: {PipelineStage.SEGMENTING, PipelineStage.FAILED},
    PipelineStage.SEGMENTING: {PipelineStage.SYNTHESIZING, PipelineStage.FAILED},
    PipelineStage.SYNTHESIZING: {PipelineStage.RENDERING, PipelineStage.FAILED},
    PipelineStage.RENDERING: {PipelineStage.COMPOSING, PipelineStage.FAILED},
    PipelineStage.COMPOSING: {PipelineStage.DONE, PipelineStage.FAILED},
    PipelineStage.DONE: set(),
    PipelineStage.FAILED: set(),
}


@dataclass
class PipelineRun:
    """State of a single generation run."""

    request: VideoRequest
    workspace: Workspace
    on_stage: Callable[[PipelineStage], None] | None = None
    stage: PipelineStage = PipelineStage.CREATED
    history: list[PipelineStage] = field(default_factory=lambda: [PipelineStage.CREATED])
    scenes: list[Scene] = field(default_factory=list)
    error: PipelineError | None = None

    def transition(self, stage: PipelineStage) -> None:
        if stage not in _ALLOWED_TRANSITIONS[self.stage]:
            raise ValueError(f"Illegal pipeline transition {self.stage.value} -> {stage.value}")
        logger.info(f"Pipeline stage: {self.stage.value} -> {stage.value}")
        self.stage = stage
        self.history.append(stage)
        if self.on_stage:
            self.on_stage(stage)

    def fail(self, error: PipelineError) -> None:
        self.error = error
        if self.stage not in (PipelineStage.DONE, PipelineStage.FAILED):
            self.transition(PipelineStage.FAILED)


async def fan_out(
    items: Sequence[T],
    worker: Callable[[T], Awaitable[R]],
    limit: int,
) -> list[R]:
    """Run ``worker`` over ``items`` with at most ``limit`` in flight.

    Results are returned in the order of ``items`` regardless of completion
    order. After the first failure, queued items are skipped, in-flight
    workers finish and their results are discarded, and the first failure
    (in completion order) is raised.
    """
    if limit < 1:
        raise ValueError("Concurrency limit must be at least 1")

    semaphore = asyncio.Semaphore(limit)
    results: list[R | None] = [None] * len(items)
    failures: list[Exception] = []

    async def run_one(position: int, item: T) -> None:
        async with semaphore:
            if failures:
                return
            try:
                results[position] = await worker(item)
            except Exception as e:
                failures.append(e)

    await asyncio.gather(*(run_one(i, item) for i, item in enumerate(items)))

    if failures:
        raise failures[0]
    return results  # type: ignore[return-value]


class VideoProductionAgent:
    """Slide video production pipeline.

    Orchestrates segmentation, synthesis, rendering, composition and
    publishing. Services are injectable for tests; by default they are
    built from ``load_config()``.
    """

    def __init__(
        self,
        config: dict | None = None,
        tts: TTSService | None = None,
        renderer: SceneRenderer | None = None,
        composer: VideoComposer | None = None,
        publisher: YouTubeUploadService | None = None,
        probe: MediaProbe | None = None,
    ):
        if config is None:
            config = load_config()

        self.config = config
        self.max_scene_chars = config.get("max_scene_chars", MAX_SCENE_CHARS)
        self.max_concurrent_synthesis = config.get("max_concurrent_synthesis", 4)
        self.max_concurrent_renders = config.get("max_concurrent_renders", 2)
        self.duration_tolerance = config.get("duration_tolerance", DEFAULT_DURATION_TOLERANCE)
        self.workspace_root = config.get("workspace_root") or None

        self.probe = probe or MediaProbe(
            ffprobe_path=config.get("ffprobe_path", "ffprobe"),
            timeout=config.get("probe_timeout", 30),
        )
        self.tts = tts or TTSService(
            host=config.get("tts_host", "https://translate.google.com"),
            timeout=config.get("tts_timeout", 15.0),
            max_attempts=config.get("tts_max_attempts", 3),
            retry_base_delay=config.get("tts_retry_base_delay", 1.0),
            slow=config.get("tts_slow", False),
            probe=self.probe,
        )
        self.renderer = renderer or SceneRenderer(
            width=config.get("video_width", 1280),
            height=config.get("video_height", 720),
        )
        self.composer = composer or VideoComposer(
            ffmpeg_path=config.get("ffmpeg_path", "ffmpeg"),
            probe=self.probe,
            fps=config.get("video_fps", 30),
            timeout=config.get("subprocess_timeout", 600),
        )

        if publisher is None and YouTubeUploadService.is_configured(config):
            publisher = YouTubeUploadService.from_config(config)
        self.publisher = publisher

    # ------------------------------------------------------------------
    # Generation
    # ------------------------------------------------------------------

    async def generate_video(
        self,
        request: VideoRequest,
        workspace: Workspace | None = None,
        on_stage: Callable[[PipelineStage], None] | None = None,
    ) -> ComposedVideo:
        """Generate the narrated slide video for a request.

        Args:
            request: Validated video request
            workspace: Workspace to fill; a new one is created if omitted
            on_stage: Optional callback invoked on every stage transition

        Returns:
            ComposedVideo. The caller owns ``result.workspace`` and must
            clean it up.

        Raises:
            PipelineError: On any stage failure, after the workspace was deleted
        """
        if workspace is None:
            workspace = Workspace(root=self.workspace_root)
        run = PipelineRun(request=request, workspace=workspace, on_stage=on_stage)

        logger.info(f"=== VIDEO GENERATION START: '{request.title}' ===")
        logger.info(f"Workspace: {workspace.path}")

        try:
            # -- Segmenting --
            run.transition(PipelineStage.SEGMENTING)
            texts = segment_script(request.script, self.max_scene_chars)
            run.scenes = [Scene(index=i, text=text) for i, text in enumerate(texts)]
            logger.info(f"Script segmented into {len(run.scenes)} scenes")

            # -- Synthesizing --
            run.transition(PipelineStage.SYNTHESIZING)
            clips = await fan_out(
                run.scenes,
                lambda scene: self._synthesize_scene(scene, request.language_code, workspace),
                self.max_concurrent_synthesis,
            )
            for scene, clip in zip(run.scenes, clips):
                scene.attach_audio(clip)

            # -- Rendering --
            run.transition(PipelineStage.RENDERING)
            visuals = await fan_out(
                run.scenes,
                lambda scene: self._render_scene(scene, request.background_color, workspace),
                self.max_concurrent_renders,
            )
            for scene, visual in zip(run.scenes, visuals):
                scene.attach_visual(visual)

            # -- Composing --
            run.transition(PipelineStage.COMPOSING)
            result = await self.composer.compose(
                [(scene.visual, scene.audio) for scene in run.scenes],
                workspace.path,
            )
            self._verify_duration(result.duration, run.scenes)

            run.transition(PipelineStage.DONE)

        except asyncio.CancelledError:
            workspace.cleanup()
            raise
        except Exception as e:
            error = self._as_pipeline_error(e, run.stage)
            run.fail(error)
            workspace.cleanup()
            trail = " -> ".join(stage.value for stage in run.history)
            logger.error(f"Video generation failed at {error.stage}: {error} (stages: {trail})")
            if error is e:
                raise
            raise error from e

        logger.info(f"=== VIDEO COMPLETE: {result.video_path} ({result.duration:.2f}s) ===")
        return ComposedVideo(
            video_path=result.video_path,
            thumbnail_path=result.thumbnail_path,
            duration=result.duration,
            segments=[scene.text for scene in run.scenes],
            workspace=workspace,
        )

    async def _synthesize_scene(
        self, scene: Scene, language_code: str, workspace: Workspace
    ) -> AudioClip:
        output_path = workspace.scene_file("audio", scene.index, ".mp3")
        logger.info(f"TTS [scene_{scene.index:03d}]: {len(scene.text)} chars")
        return await self.tts.synthesize(scene.text, language_code, output_path, scene.index)

    async def _render_scene(
        self, scene: Scene, background_color: str, workspace: Workspace
    ) -> VisualAsset:
        output_path = workspace.scene_file("slide", scene.index, ".png")
        return await asyncio.to_thread(
            self.renderer.render,
            scene.text,
            background_color,
            scene.duration,
            output_path,
            scene.index,
        )

    def _verify_duration(self, composed_duration: float, scenes: list[Scene]) -> None:
        """The encoded video must match the narration within tolerance."""
        expected = sum(scene.duration for scene in scenes)
        drift = abs(composed_duration - expected)
        if drift > self.duration_tolerance:
            raise CompositionError(
                f"Composed video is {composed_duration:.2f}s but narration totals "
                f"{expected:.2f}s (tolerance {self.duration_tolerance}s)",
                stage="verify",
            )
        logger.debug(f"Duration check: composed {composed_duration:.2f}s, narration {expected:.2f}s")

    @staticmethod
    def _as_pipeline_error(error: Exception, stage: PipelineStage) -> PipelineError:
        if isinstance(error, PipelineError):
            return error
        return PipelineError(f"{type(error).__name__}: {error}", stage=stage.value)

    # ------------------------------------------------------------------
    # Generate + publish
    # ------------------------------------------------------------------

    async def process(
        self,
        request: VideoRequest,
        metadata: UploadMetadata,
        on_stage: Callable[[PipelineStage], None] | None = None,
    ) -> ProcessResult:
        """Generate the video, publish it, and always release the workspace.

        Raises:
            PipelineError: From whichever stage failed; the workspace is
                already removed when it propagates
        """
        if self.publisher is None:
            raise AuthError("YouTube credentials are not configured")

        workspace = Workspace(root=self.workspace_root)
        set_job_context(workspace.run_id)
        try:
            with workspace:
                video = await self.generate_video(request, workspace=workspace, on_stage=on_stage)
                logger.info(f"Publishing '{metadata.title}' ({metadata.privacy_status.value})")
                try:
                    upload = await self.publisher.upload(video, metadata)
                except PipelineError:
                    raise
                except Exception as e:
                    raise PublishError(f"{type(e).__name__}: {e}") from e
        finally:
            clear_job_context()

        logger.info(f"Published video {upload.video_id}: {upload.url}")
        return ProcessResult(
            video_id=upload.video_id,
            url=upload.url,
            duration=video.duration,
            segments=video.segments,
        )

    async def close(self) -> None:
        """Clean up HTTP clients."""
        await self.tts.close()
        if self.publisher:
            await self.publisher.close()
