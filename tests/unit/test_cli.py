"""Unit tests for the command-line entry point."""

from pathlib import Path

import pytest

from main import build_parser, default_output_path


@pytest.mark.unit
@pytest.mark.parametrize(
    "script_arg,expected",
    [
        ("scripts/octopus.txt", "octopus.mp4"),
        ("-", "video.mp4"),
        ("notes", "notes.mp4"),
    ],
)
def test_default_output_path(script_arg, expected):
    assert default_output_path(script_arg) == Path(expected)


@pytest.mark.unit
def test_parser_splits_tag_lists():
    args = build_parser().parse_args(
        ["-", "--title", "Octopus facts", "--tags", "octopus, biology,", "--no-upload"]
    )

    assert args.script == "-"
    assert args.tags == ["octopus", "biology"]
    assert args.no_upload is True
    assert args.output is None
