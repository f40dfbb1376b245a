"""Core routes for the slidecast API (root and health check)."""

from fastapi import APIRouter, Depends

from api.dependencies import get_video_agent
from api.schemas import HealthResponse, RootResponse
from video_agent.agent import VideoProductionAgent

router = APIRouter(tags=["Core"])


@router.get(
    "/",
    response_model=RootResponse,
    summary="API root",
    description="Returns API name and version.",
)
async def root() -> dict[str, str]:
    """Root endpoint."""
    return {"message": "Slidecast API", "version": "1.0.0"}


@router.get(
    "/api/health",
    response_model=HealthResponse,
    summary="Health check",
    description="Returns server health status and whether publishing is configured.",
)
async def health(agent: VideoProductionAgent = Depends(get_video_agent)) -> dict:
    """Health check endpoint."""
    return {"status": "healthy", "youtubeConfigured": agent.publisher is not None}
