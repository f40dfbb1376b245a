"""Pydantic request/response models for the slidecast API."""

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from models.upload import PrivacyStatus, UploadMetadata
from models.video import VideoRequest

# =============================================================================
# Response Models
# =============================================================================


class RootResponse(BaseModel):
    """Root endpoint response."""

    message: str
    version: str

    model_config = {"json_schema_extra": {"examples": [{"message": "Slidecast API", "version": "1.0.0"}]}}


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    youtube_configured: bool = Field(alias="youtubeConfigured")

    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={"examples": [{"status": "healthy", "youtubeConfigured": True}]},
    )


class ProcessSuccessResponse(BaseModel):
    """Body returned when a video was generated and published."""

    success: bool = True
    video_id: str
    youtube_url: str
    duration: float
    segments: list[str]

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "success": True,
                    "videoId": "dQw4w9WgXcQ",
                    "youtubeUrl": "https://www.youtube.com/watch?v=dQw4w9WgXcQ",
                    "duration": 42.7,
                    "segments": ["First paragraph.", "Second paragraph."],
                }
            ]
        },
    )


class ProcessFailureResponse(BaseModel):
    """Body returned when any stage failed."""

    success: bool = False
    error: str
    stage: str | None = None
    kind: str | None = None
    type: str | None = None

    model_config = {
        "json_schema_extra": {
            "examples": [
                {
                    "success": False,
                    "error": "TTS service rejected the request (HTTP 400, language 'xx')",
                    "stage": "synthesizing",
                    "kind": "permanent",
                    "type": "SynthesisError",
                }
            ]
        }
    }


# =============================================================================
# Request Models
# =============================================================================


class ProcessRequest(BaseModel):
    """Request body for generating and publishing one video."""

    title: str = Field(..., min_length=3, max_length=120)
    description: str = Field(..., min_length=20, max_length=5000)
    script: str = Field(..., min_length=50, max_length=8000)
    tags: list[str] = Field(default_factory=list, max_length=30)
    keywords: list[str] = Field(default_factory=list, max_length=30)
    privacy_status: PrivacyStatus
    language_code: str = Field(default="en", min_length=2, max_length=8)
    background_color: str = Field(..., pattern=r"^#[0-9A-Fa-f]{6}$")

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "examples": [
                {
                    "title": "Three facts about octopuses",
                    "description": "A short narrated explainer about octopus biology.",
                    "script": "Octopuses have three hearts.\n\nTheir blood is blue because of copper.\n\nEach arm can taste what it touches.",
                    "tags": ["octopus", "biology"],
                    "keywords": ["cephalopods"],
                    "privacyStatus": "unlisted",
                    "languageCode": "en",
                    "backgroundColor": "#1e3a8a",
                }
            ]
        },
    )

    @field_validator("tags", "keywords")
    @classmethod
    def strip_entries(cls, values: list[str]) -> list[str]:
        return [value.strip() for value in values]

    def to_video_request(self) -> VideoRequest:
        return VideoRequest(
            title=self.title,
            script=self.script,
            language_code=self.language_code,
            background_color=self.background_color,
        )

    def to_upload_metadata(self) -> UploadMetadata:
        return UploadMetadata(
            title=self.title,
            description=self.description,
            tags=list(self.tags),
            keywords=list(self.keywords),
            privacy_status=self.privacy_status,
            language_code=self.language_code,
        )
