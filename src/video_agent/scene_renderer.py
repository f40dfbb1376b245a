"""Slide rendering for scenes.

Draws a scene's narration text centered on a solid background color. The
slide is a still image; the composer holds it on screen for the duration
of the paired narration clip.
"""

import logging
from pathlib import Path

from PIL import Image, ImageDraw, ImageFont

from models.video import VisualAsset, hex_to_rgb, normalize_color
from utils.errors import RenderError

logger = logging.getLogger(__name__)

DEFAULT_WIDTH = 1280
DEFAULT_HEIGHT = 720

# Fraction of the frame kept clear around the text block
SAFE_MARGIN = 0.08
MAX_FONT_SIZE = 72
MIN_FONT_SIZE = 20
LINE_SPACING = 1.3

LIGHT_TEXT = (255, 255, 255)
DARK_TEXT = (17, 24, 39)

FONT_CANDIDATES = (
    "DejaVuSans-Bold.ttf",
    "DejaVuSans.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans-Bold.ttf",
    "/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf",
    "Arial.ttf",
)


def text_color_for(background_color: str) -> tuple[int, int, int]:
    """Pick light or dark text by the background's relative luminance."""
    r, g, b = hex_to_rgb(background_color)
    luminance = 0.2126 * r + 0.7152 * g + 0.0722 * b
    return DARK_TEXT if luminance > 140 else LIGHT_TEXT


def load_font(size: int) -> ImageFont.ImageFont:
    for candidate in FONT_CANDIDATES:
        try:
            return ImageFont.truetype(candidate, size)
        except OSError:
            continue
    return ImageFont.load_default(size=size)


class SceneRenderer:
    """Renders one slide image per scene. Stateless and thread-safe."""

    def __init__(self, width: int = DEFAULT_WIDTH, height: int = DEFAULT_HEIGHT):
        if width % 2 or height % 2:
            raise ValueError("Slide dimensions must be even for yuv420p encoding")
        self.width = width
        self.height = height

    def render(
        self,
        text: str,
        background_color: str,
        duration: float,
        output_path: Path,
        scene_index: int = 0,
    ) -> VisualAsset:
        """Draw the slide and persist it as PNG.

        Args:
            text: Scene narration text
            background_color: Hex background color
            duration: Target on-screen duration (the paired clip's duration)
            output_path: PNG path inside the workspace
            scene_index: Scene index, for logging

        Returns:
            VisualAsset for the written image

        Raises:
            RenderError: If drawing or saving fails
        """
        if duration <= 0:
            raise RenderError(f"Scene {scene_index} has non-positive duration {duration}")

        output_path = Path(output_path)
        try:
            color = normalize_color(background_color)
            image = Image.new("RGB", (self.width, self.height), hex_to_rgb(color))
            draw = ImageDraw.Draw(image)

            font, lines, line_height = self._fit_text(draw, text)
            block_height = line_height * len(lines)
            y = (self.height - block_height) / 2
            fill = text_color_for(color)

            for line in lines:
                line_width = draw.textlength(line, font=font)
                x = (self.width - line_width) / 2
                draw.text((x, y), line, font=font, fill=fill)
                y += line_height

            image.save(output_path, format="PNG")
        except (OSError, ValueError) as e:
            raise RenderError(f"Failed to render scene {scene_index}: {e}") from e

        logger.debug(
            f"Rendered scene {scene_index}: {len(lines)} lines, line height {line_height}px"
        )
        return VisualAsset(path=output_path, background_color=color, duration=duration)

    def _fit_text(self, draw: ImageDraw.ImageDraw, text: str):
        """Find the largest font size whose wrapped block fits the safe area."""
        max_width = self.width * (1 - 2 * SAFE_MARGIN)
        max_height = self.height * (1 - 2 * SAFE_MARGIN)

        size = MAX_FONT_SIZE
        while True:
            font = load_font(size)
            lines = self._wrap(draw, text, font, max_width)
            line_height = int(size * LINE_SPACING)
            if line_height * len(lines) <= max_height or size <= MIN_FONT_SIZE:
                return font, lines, line_height
            size -= 4

    @staticmethod
    def _wrap(draw: ImageDraw.ImageDraw, text: str, font, max_width: float) -> list[str]:
        lines: list[str] = []
        for paragraph in text.splitlines() or [text]:
            current = ""
            for word in paragraph.split():
                candidate = f"{current} {word}" if current else word
                if current and draw.textlength(candidate, font=font) > max_width:
                    lines.append(current)
                    current = word
                else:
                    current = candidate
            if current:
                lines.append(current)
        return lines or [""]
