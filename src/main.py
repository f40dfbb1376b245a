"""Main application entry point for slidecast."""

import argparse
import asyncio
import logging
import shutil
import sys
from pathlib import Path

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from models.upload import PrivacyStatus, ProcessResult, UploadMetadata
from models.video import VideoRequest
from utils.config import load_config, validate_config
from utils.errors import PipelineError
from utils.logging import setup_logging
from video_agent.agent import PipelineStage, VideoProductionAgent

logger = logging.getLogger(__name__)

STAGE_LABELS = {
    PipelineStage.SEGMENTING: "Splitting script into scenes",
    PipelineStage.SYNTHESIZING: "Synthesizing narration",
    PipelineStage.RENDERING: "Rendering slides",
    PipelineStage.COMPOSING: "Composing video",
    PipelineStage.DONE: "Video ready",
    PipelineStage.FAILED: "Failed",
}


class SlidecastApp:
    """Command line front end for one generation run."""

    def __init__(self, args: argparse.Namespace):
        self.args = args
        self.console = Console()
        self.config = load_config()

    def _on_stage(self, stage: PipelineStage) -> None:
        label = STAGE_LABELS.get(stage, stage.value)
        style = "red" if stage is PipelineStage.FAILED else "cyan"
        self.console.print(f"[{style}]>[/{style}] {label}")

    def _read_script(self) -> str:
        if self.args.script == "-":
            return sys.stdin.read()
        return Path(self.args.script).read_text(encoding="utf-8")

    def _build_request(self, script: str) -> VideoRequest:
        return VideoRequest(
            title=self.args.title,
            script=script,
            language_code=self.args.language,
            background_color=self.args.background_color,
        )

    def _build_metadata(self) -> UploadMetadata:
        return UploadMetadata(
            title=self.args.title,
            description=self.args.description or self.args.title,
            tags=self.args.tags,
            keywords=self.args.keywords,
            privacy_status=PrivacyStatus(self.args.privacy),
            language_code=self.args.language,
        )

    async def run(self) -> int:
        errors = validate_config(self.config, require_upload=not self.args.no_upload)
        if errors:
            for error in errors:
                self.console.print(f"[red]Config error:[/red] {error}")
            return 2

        try:
            request = self._build_request(self._read_script())
        except (OSError, ValueError) as e:
            self.console.print(f"[red]Invalid input:[/red] {e}")
            return 2

        agent = VideoProductionAgent(self.config)
        try:
            if self.args.no_upload:
                return await self._generate_only(agent, request)
            result = await agent.process(request, self._build_metadata(), on_stage=self._on_stage)
            self._display_result(result)
            return 0
        except PipelineError as e:
            self.console.print(
                Panel(f"{e}\n\n[dim]stage: {e.stage}, kind: {e.kind}[/dim]", title="Failed", border_style="red")
            )
            return 1
        finally:
            await agent.close()

    async def _generate_only(self, agent: VideoProductionAgent, request: VideoRequest) -> int:
        """Generate the video and copy it out of the workspace."""
        output = Path(self.args.output) if self.args.output else default_output_path(self.args.script)
        video = await agent.generate_video(request, on_stage=self._on_stage)
        try:
            output.parent.mkdir(parents=True, exist_ok=True)
            shutil.copy2(video.video_path, output)
            shutil.copy2(video.thumbnail_path, output.with_suffix(".jpg"))
        finally:
            video.workspace.cleanup()

        self._display_summary(
            {"Video": str(output), "Duration": f"{video.duration:.2f}s", "Scenes": str(len(video.segments))}
        )
        return 0

    def _display_result(self, result: ProcessResult) -> None:
        self._display_summary(
            {
                "Video ID": result.video_id,
                "URL": result.url,
                "Duration": f"{result.duration:.2f}s",
                "Scenes": str(len(result.segments)),
            }
        )

    def _display_summary(self, rows: dict[str, str]) -> None:
        table = Table(show_header=False, box=None, padding=(0, 2))
        table.add_column("Field", style="bold")
        table.add_column("Value")
        for key, value in rows.items():
            table.add_row(key, value)
        self.console.print(Panel(table, title="Done", border_style="green"))


def default_output_path(script_arg: str) -> Path:
    """Output file for --no-upload when -o is not given."""
    stem = "" if script_arg == "-" else Path(script_arg).stem
    return Path(f"{stem or 'video'}.mp4")


def _csv(value: str) -> list[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Turn a narration script into a narrated slide video and publish it to YouTube",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  slidecast script.txt --title "Octopus facts" --description "Three facts about octopuses"
  slidecast script.txt --title "Draft" --no-upload -o out/draft.mp4
  cat script.txt | slidecast - --title "From stdin" --privacy private
        """,
    )
    parser.add_argument("script", help="Path to the script file ('-' reads stdin)")
    parser.add_argument("--title", required=True, help="Video title")
    parser.add_argument("--description", default="", help="Video description")
    parser.add_argument("--tags", type=_csv, default=[], help="Comma-separated tags")
    parser.add_argument("--keywords", type=_csv, default=[], help="Comma-separated keywords")
    parser.add_argument(
        "--privacy",
        choices=[status.value for status in PrivacyStatus],
        default=PrivacyStatus.UNLISTED.value,
        help="YouTube privacy status (default: unlisted)",
    )
    parser.add_argument("--language", default="en", help="Narration language code (default: en)")
    parser.add_argument(
        "--background-color", default="#000000", help="Slide background color (default: #000000)"
    )
    parser.add_argument(
        "--no-upload", action="store_true", help="Only generate the video, do not publish it"
    )
    parser.add_argument(
        "-o", "--output", help="Output path for --no-upload (default: <script>.mp4, or video.mp4 for stdin)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    return parser


def main():
    """Main entry point."""
    args = build_parser().parse_args()

    config = load_config()
    setup_logging("DEBUG" if args.verbose else config["log_level"], json_output=config["log_json"])

    app = SlidecastApp(args)
    try:
        sys.exit(asyncio.run(app.run()))
    except KeyboardInterrupt:
        logger.info("Interrupted by user")
        sys.exit(130)


if __name__ == "__main__":
    main()
