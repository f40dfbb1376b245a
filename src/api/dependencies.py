"""Service singletons and dependency injection for the slidecast API."""

from utils.config import load_config
from video_agent.agent import VideoProductionAgent

# Service singletons
_video_agent: VideoProductionAgent | None = None


def get_video_agent() -> VideoProductionAgent:
    """Get or create the video production agent instance."""
    global _video_agent
    if _video_agent is None:
        _video_agent = VideoProductionAgent(load_config())
    return _video_agent


async def close_video_agent() -> None:
    """Release HTTP clients held by the agent singleton."""
    global _video_agent
    if _video_agent is not None:
        await _video_agent.close()
        _video_agent = None
