"""Generate-and-publish route."""

import logging

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from api.dependencies import get_video_agent
from api.schemas import ProcessFailureResponse, ProcessRequest, ProcessSuccessResponse
from utils.errors import PipelineError
from video_agent.agent import VideoProductionAgent

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Process"])


@router.post(
    "/api/process",
    response_model=ProcessSuccessResponse,
    summary="Generate and publish a video",
    description=(
        "Segments the script, narrates each scene, renders slides, composes the "
        "video and uploads it to YouTube. Blocks until the video is processed."
    ),
    responses={500: {"model": ProcessFailureResponse, "description": "A pipeline stage failed"}},
)
async def process_video(
    body: ProcessRequest,
    agent: VideoProductionAgent = Depends(get_video_agent),
):
    """Run the full pipeline for one request."""
    logger.info(
        f"Process request: '{body.title}' ({len(body.script)} chars, "
        f"lang={body.language_code}, privacy={body.privacy_status.value})"
    )
    try:
        result = await agent.process(body.to_video_request(), body.to_upload_metadata())
    except PipelineError as e:
        logger.error(f"Processing failed at {e.stage}: {e}")
        return JSONResponse(status_code=500, content={"success": False, **e.to_dict()})

    return result.to_dict()
