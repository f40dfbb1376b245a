"""TTS Service - HTTP client for narration synthesis via the Google speech endpoint."""

import asyncio
import logging
import re
from collections.abc import Awaitable, Callable
from pathlib import Path

import httpx

from models.video import AudioClip
from services.media_probe import MediaProbe
from utils.errors import SynthesisError
from utils.retry import async_retrying

logger = logging.getLogger(__name__)

DEFAULT_TTS_HOST = "https://translate.google.com"
# The endpoint rejects requests longer than this.
TTS_CHUNK_MAX_CHARS = 200
DEFAULT_TTS_TIMEOUT = 15.0
DEFAULT_MAX_ATTEMPTS = 3
DEFAULT_RETRY_BASE_DELAY = 1.0

_REQUEST_HEADERS = {
    "User-Agent": "Mozilla/5.0 (X11; Linux x86_64) AppleWebKit/537.36",
    "Accept": "audio/mpeg,audio/*;q=0.9,*/*;q=0.5",
}


class TTSService:
    """HTTP client turning scene text into narrated MP3 clips.

    Transient failures (timeouts, connection errors, 429, 5xx) are retried
    with exponential backoff; any other 4xx fails immediately.
    """

    def __init__(
        self,
        host: str = DEFAULT_TTS_HOST,
        timeout: float = DEFAULT_TTS_TIMEOUT,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        retry_base_delay: float = DEFAULT_RETRY_BASE_DELAY,
        slow: bool = False,
        probe: MediaProbe | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """Initialize TTS service.

        Args:
            host: Base URL of the speech endpoint
            timeout: Per-request timeout in seconds
            max_attempts: Attempts per request chunk, first call included
            retry_base_delay: First backoff delay; doubles on each retry
            slow: Request the slow speaking rate
            probe: MediaProbe used to measure the written clip
            client: Optional preconfigured httpx client (tests inject a mock transport)
            sleep: Optional coroutine used for backoff delays
        """
        self.host = host.rstrip("/")
        self.timeout = timeout
        self.max_attempts = max_attempts
        self.retry_base_delay = retry_base_delay
        self.slow = slow
        self.probe = probe or MediaProbe()
        self.client = client or httpx.AsyncClient(timeout=timeout, follow_redirects=True)
        self._sleep = sleep or asyncio.sleep

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    @staticmethod
    def detect_audio_format(audio_bytes: bytes) -> str:
        """Detect audio format from magic bytes."""
        if len(audio_bytes) >= 12 and audio_bytes[:4] == b"RIFF" and audio_bytes[8:12] == b"WAVE":
            return "wav"
        if audio_bytes[:3] == b"ID3" or (
            len(audio_bytes) >= 2
            and audio_bytes[0] == 0xFF
            and (audio_bytes[1] & 0xE0) == 0xE0
        ):
            return "mp3"
        if audio_bytes[:4] == b"OggS":
            return "ogg"
        return "bin"

    def _split_text_chunks(self, text: str, max_chars: int = TTS_CHUNK_MAX_CHARS) -> list[str]:
        """Split long text into sentence-aware chunks."""
        normalized = " ".join(text.strip().split())
        if not normalized:
            return []

        if len(normalized) <= max_chars:
            return [normalized]

        sentence_parts = re.split(r"(?<=[.!?,;:])\s+", normalized)

        chunks: list[str] = []
        current = ""

        def append_part(part: str) -> None:
            nonlocal current
            if not current:
                current = part
                return
            candidate = f"{current} {part}"
            if len(candidate) <= max_chars:
                current = candidate
                return
            chunks.append(current)
            current = part

        for sentence in sentence_parts:
            sentence = sentence.strip()
            if not sentence:
                continue
            if len(sentence) <= max_chars:
                append_part(sentence)
                continue

            # Hard wrap overlong sentences by word boundaries.
            current_word_chunk = ""
            for word in sentence.split():
                while len(word) > max_chars:
                    if current_word_chunk:
                        append_part(current_word_chunk)
                        current_word_chunk = ""
                    append_part(word[:max_chars])
                    word = word[max_chars:]
                if not current_word_chunk:
                    current_word_chunk = word
                    continue
                candidate = f"{current_word_chunk} {word}"
                if len(candidate) <= max_chars:
                    current_word_chunk = candidate
                else:
                    append_part(current_word_chunk)
                    current_word_chunk = word

            if current_word_chunk:
                append_part(current_word_chunk)

        if current:
            chunks.append(current)

        return chunks

    def _merge_audio_chunks(self, audio_chunks: list[bytes]) -> bytes:
        """Merge chunked TTS audio into a single file."""
        if not audio_chunks:
            raise SynthesisError("No audio chunks returned from TTS generation")
        if len(audio_chunks) == 1:
            return audio_chunks[0]

        formats = {self.detect_audio_format(chunk) for chunk in audio_chunks}
        if formats != {"mp3"}:
            raise SynthesisError(f"TTS chunks returned unsupported formats: {sorted(formats)}")

        # MP3 frame streams can be concatenated for sequential playback.
        return b"".join(audio_chunks)

    def _build_params(self, text: str, language_code: str, index: int, total: int) -> dict:
        return {
            "ie": "UTF-8",
            "q": text,
            "tl": language_code,
            "total": total,
            "idx": index,
            "textlen": len(text),
            "client": "tw-ob",
            "prev": "input",
            "ttsspeed": 0.24 if self.slow else 1,
        }

    async def _request_chunk(self, text: str, language_code: str, index: int, total: int) -> bytes:
        """Issue one speech request and classify failures."""
        try:
            response = await self.client.get(
                f"{self.host}/translate_tts",
                params=self._build_params(text, language_code, index, total),
                headers=_REQUEST_HEADERS,
                timeout=self.timeout,
            )
        except httpx.TimeoutException as e:
            raise SynthesisError(
                f"TTS request timed out after {self.timeout}s", kind="transient"
            ) from e
        except httpx.TransportError as e:
            raise SynthesisError(f"TTS request failed: {e}", kind="transient") from e

        status = response.status_code
        if status == 429 or status >= 500:
            raise SynthesisError(
                f"TTS service returned HTTP {status}",
                kind="transient",
                status_code=status,
            )
        if status >= 400:
            raise SynthesisError(
                f"TTS service rejected the request (HTTP {status}, language '{language_code}')",
                kind="permanent",
                status_code=status,
                detail=response.text[:500],
            )

        audio_bytes = response.content
        if not audio_bytes or self.detect_audio_format(audio_bytes) != "mp3":
            raise SynthesisError(
                "TTS service returned no MP3 audio "
                f"({response.headers.get('content-type', 'unknown content type')})",
                kind="permanent",
            )
        return audio_bytes

    async def _fetch_chunk(self, text: str, language_code: str, index: int, total: int) -> bytes:
        """Fetch one chunk, retrying transient failures."""
        async for attempt in async_retrying(
            max_attempts=self.max_attempts,
            base_delay=self.retry_base_delay,
            sleep=self._sleep,
        ):
            with attempt:
                return await self._request_chunk(text, language_code, index, total)

    async def generate(self, text: str, language_code: str = "en") -> bytes:
        """Generate MP3 audio for arbitrary-length text.

        Args:
            text: Text to convert to speech
            language_code: Speech language (e.g. "en", "es", "pt-BR")

        Returns:
            MP3 bytes

        Raises:
            SynthesisError: If generation fails
        """
        chunks = self._split_text_chunks(text)
        if not chunks:
            raise SynthesisError("Text is empty after normalization")

        logger.info(
            f"Generating TTS for {len(text)} characters across {len(chunks)} chunk(s) "
            f"(lang={language_code})"
        )

        audio_chunks: list[bytes] = []
        for index, chunk in enumerate(chunks):
            audio_chunks.append(
                await self._fetch_chunk(chunk, language_code, index, len(chunks))
            )

        return self._merge_audio_chunks(audio_chunks)

    async def synthesize(
        self,
        text: str,
        language_code: str,
        output_path: Path,
        scene_index: int,
    ) -> AudioClip:
        """Synthesize a scene's narration into ``output_path``.

        The duration is measured from the written file, never estimated.
        """
        audio_bytes = await self.generate(text, language_code)
        output_path = Path(output_path)
        await asyncio.to_thread(output_path.write_bytes, audio_bytes)

        info = await self.probe.probe_async(output_path)
        logger.info(
            f"TTS scene {scene_index}: {len(audio_bytes)} bytes, {info.duration:.2f}s"
        )
        return AudioClip(path=output_path, duration=info.duration, scene_index=scene_index)
