"""Video Agent - narration script to published slide video."""

from .segmenter import segment_script
from .scene_renderer import SceneRenderer
from .video_composer import VideoComposer
from .agent import PipelineStage, VideoProductionAgent, fan_out

__all__ = [
    "segment_script",
    "SceneRenderer",
    "VideoComposer",
    "PipelineStage",
    "VideoProductionAgent",
    "fan_out",
]
