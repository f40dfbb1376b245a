"""Typed failures for the video generation and publishing pipeline.

Every error carries the pipeline stage it belongs to and the underlying
diagnostic text, so the HTTP layer and CLI can report one readable message
plus the stage/kind without inspecting the exception chain.
"""


class PipelineError(Exception):
    """Base error for anything that aborts a pipeline run."""

    stage = "pipeline"
    kind = "permanent"

    def __init__(self, message: str, stage: str | None = None, detail: str = ""):
        super().__init__(message)
        self.message = message
        if stage is not None:
            self.stage = stage
        self.detail = detail

    @property
    def retryable(self) -> bool:
        return self.kind == "transient"

    def to_dict(self) -> dict:
        """Convert to dictionary for API responses and structured logs."""
        return {
            "error": self.message,
            "stage": self.stage,
            "kind": self.kind,
            "type": type(self).__name__,
        }


class EmptyScriptError(PipelineError):
    """The script produced no non-empty scene."""

    stage = "segmenting"


class SynthesisError(PipelineError):
    """Speech synthesis failed for a scene."""

    stage = "synthesizing"

    def __init__(
        self,
        message: str,
        kind: str = "permanent",
        status_code: int | None = None,
        detail: str = "",
    ):
        if kind not in ("transient", "permanent"):
            raise ValueError(f"Unknown synthesis error kind: {kind}")
        super().__init__(message, detail=detail)
        self.kind = kind
        self.status_code = status_code

    @property
    def permanent(self) -> bool:
        return self.kind == "permanent"


class ProbeError(PipelineError):
    """ffprobe could not inspect a media file."""

    stage = "probing"


class RenderError(PipelineError):
    """A scene visual could not be drawn."""

    stage = "rendering"


class CompositionError(PipelineError):
    """An ffmpeg composition step failed.

    ``stage`` names the failing step: ``mux``, ``concat``, ``thumbnail``,
    ``probe`` or ``verify``.
    """

    stage = "composing"

    def __init__(self, message: str, stage: str = "composing", detail: str = ""):
        super().__init__(message, stage=stage, detail=detail)


class PublishError(PipelineError):
    """Base for failures talking to the publishing platform."""

    stage = "publishing"


class AuthError(PublishError):
    """OAuth2 credentials were rejected or could not be refreshed."""


class QuotaError(PublishError):
    """The platform refused the request because of rate or quota limits."""

    kind = "transient"


class UploadError(PublishError):
    """Any other transport or validation failure while publishing."""


class CleanupError(PipelineError):
    """The workspace could not be removed. Logged, never raised to callers."""

    stage = "cleanup"
