"""Script segmentation: narration script -> ordered scene texts.

Paragraphs (blank-line separated blocks) become scenes. Paragraphs longer
than the ceiling are split on sentence boundaries so each narration clip
stays short enough to render quickly. Every returned text is a stripped
slice of the original script.
"""

import re

from utils.errors import EmptyScriptError

MAX_SCENE_CHARS = 1000

# Any of CRLF, CR or LF, then optional blanks, then another line break
_LINE_BREAK = r"(?:\r\n|\r(?!\n)|\n)"
_PARAGRAPH_BREAK_RE = re.compile(_LINE_BREAK + r"[ \t]*" + _LINE_BREAK)
_SENTENCE_RE = re.compile(r"\S.*?(?:[.!?]+(?=\s|$)|$)", re.DOTALL)
_WORD_RE = re.compile(r"\S+")


def segment_script(script: str, max_chars: int = MAX_SCENE_CHARS) -> list[str]:
    """Split a script into ordered scene texts.

    Args:
        script: Raw narration script
        max_chars: Length ceiling for a single scene

    Returns:
        Non-empty, trimmed scene texts in script order

    Raises:
        EmptyScriptError: If the script has no non-empty paragraph
    """
    if max_chars < 1:
        raise ValueError("max_chars must be positive")

    scenes: list[str] = []

    for block in _PARAGRAPH_BREAK_RE.split(script):
        block = block.strip()
        if not block:
            continue
        if len(block) <= max_chars:
            scenes.append(block)
        else:
            scenes.extend(_split_long_block(block, max_chars))

    if not scenes:
        raise EmptyScriptError("Script contains no narration text")

    return scenes


def _split_long_block(block: str, max_chars: int) -> list[str]:
    """Pack sentences greedily into chunks no longer than ``max_chars``."""
    spans: list[tuple[int, int]] = []
    for match in _SENTENCE_RE.finditer(block):
        start, end = match.span()
        if end - start <= max_chars:
            spans.append((start, end))
            continue
        # Hard wrap overlong sentences by word boundaries.
        spans.extend(_word_spans(block, start, end, max_chars))

    chunks: list[str] = []
    chunk_start: int | None = None
    chunk_end = 0

    for start, end in spans:
        if chunk_start is None:
            chunk_start, chunk_end = start, end
        elif end - chunk_start <= max_chars:
            chunk_end = end
        else:
            chunks.append(block[chunk_start:chunk_end].strip())
            chunk_start, chunk_end = start, end

    if chunk_start is not None:
        chunks.append(block[chunk_start:chunk_end].strip())

    return [c for c in chunks if c]


def _word_spans(block: str, start: int, end: int, max_chars: int) -> list[tuple[int, int]]:
    spans: list[tuple[int, int]] = []
    span_start: int | None = None
    span_end = start

    for word in _WORD_RE.finditer(block, start, end):
        w_start, w_end = word.span()
        if w_end - w_start > max_chars:
            # A single "word" longer than the ceiling: cut it.
            if span_start is not None:
                spans.append((span_start, span_end))
                span_start = None
            for cut in range(w_start, w_end, max_chars):
                spans.append((cut, min(cut + max_chars, w_end)))
            continue
        if span_start is None:
            span_start, span_end = w_start, w_end
        elif w_end - span_start <= max_chars:
            span_end = w_end
        else:
            spans.append((span_start, span_end))
            span_start, span_end = w_start, w_end

    if span_start is not None:
        spans.append((span_start, span_end))
    return spans
