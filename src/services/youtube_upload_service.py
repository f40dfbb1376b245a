"""YouTube publishing via the resumable upload protocol.

Quota Budget (10,000 units/day free):
- videos.insert: 1600 units
- thumbnails.set: 50 units
- videos.list: 1 unit
- videos.update: 50 units

Flow:
1. Exchange the stored refresh token for a short-lived access token
2. Open a resumable session (POST ...?uploadType=resumable) with metadata
3. PUT the file in chunks with Content-Range headers; 308 responses
   acknowledge a byte range, 200/201 return the video resource
4. Attach the thumbnail
5. Poll the video until it is processed with the requested privacy

The acknowledged byte offset is kept on a ResumableUploadSession so an
interrupted transfer resumes from the server's last confirmed byte.
"""

import asyncio
import logging
import math
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from pathlib import Path

import httpx
from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request as GoogleAuthRequest
from google.oauth2.credentials import Credentials

from models.upload import PrivacyStatus, UploadMetadata, UploadResult
from models.video import ComposedVideo
from utils.errors import AuthError, QuotaError, UploadError
from utils.retry import async_retrying

logger = logging.getLogger(__name__)

TOKEN_URI = "https://oauth2.googleapis.com/token"
UPLOAD_URL = "https://www.googleapis.com/upload/youtube/v3/videos"
VIDEOS_URL = "https://www.googleapis.com/youtube/v3/videos"
THUMBNAIL_URL = "https://www.googleapis.com/upload/youtube/v3/thumbnails/set"

# Chunk sizes must be multiples of 256 KiB (except the last chunk).
CHUNK_GRANULARITY = 256 * 1024
DEFAULT_CHUNK_SIZE = 32 * CHUNK_GRANULARITY

DEFAULT_CATEGORY_ID = "22"  # People & Blogs
TOKEN_EXPIRY_MARGIN = timedelta(seconds=60)

QUOTA_REASONS = {"quotaExceeded", "rateLimitExceeded", "userRateLimitExceeded"}
FAILED_UPLOAD_STATES = {"failed", "rejected", "deleted"}


class _UploadInterrupted(Exception):
    """A chunk transfer failed in a way that can be resumed."""


@dataclass
class ResumableUploadSession:
    """State of one resumable upload, carried across retry attempts."""

    upload_url: str
    file_path: Path
    total_size: int
    content_type: str = "video/mp4"
    offset: int = 0  # bytes acknowledged by the server
    failures: int = 0  # consecutive interrupted attempts
    needs_sync: bool = False  # offset must be re-queried before the next chunk
    video_resource: dict | None = None

    @property
    def complete(self) -> bool:
        return self.video_resource is not None

    @property
    def progress(self) -> float:
        if self.total_size == 0:
            return 0.0
        return self.offset / self.total_size


class YouTubeUploadService:
    """Publishes composed videos to a YouTube channel.

    Features:
    - Transparent access token refresh from a long-lived refresh token
    - Chunked resumable upload that resumes from the last acknowledged byte
    - Bounded backoff on quota/rate limit responses
    - Thumbnail attachment and processing-state confirmation
    """

    def __init__(
        self,
        client_id: str,
        client_secret: str,
        refresh_token: str,
        token_uri: str = TOKEN_URI,
        chunk_size: int = DEFAULT_CHUNK_SIZE,
        upload_max_retries: int = 5,
        quota_max_attempts: int = 3,
        retry_base_delay: float = 2.0,
        max_retry_delay: float = 60.0,
        chunk_timeout: float = 120.0,
        processing_timeout: float = 300.0,
        processing_poll_interval: float = 5.0,
        category_id: str = DEFAULT_CATEGORY_ID,
        credentials: Credentials | None = None,
        client: httpx.AsyncClient | None = None,
        sleep: Callable[[float], Awaitable[None]] | None = None,
    ):
        """Initialize the upload service.

        Args:
            client_id: OAuth2 client ID
            client_secret: OAuth2 client secret
            refresh_token: Long-lived refresh token with YouTube scopes
            token_uri: OAuth2 token endpoint
            chunk_size: Bytes per upload chunk
            upload_max_retries: Consecutive interrupted chunk attempts tolerated
            quota_max_attempts: Attempts for requests hitting quota limits
            retry_base_delay: First backoff delay; doubles on each retry
            max_retry_delay: Upper bound for a single backoff delay
            chunk_timeout: Timeout per HTTP request (each chunk included)
            processing_timeout: How long to wait for YouTube processing
            processing_poll_interval: Delay between status polls
            category_id: YouTube category for new videos
            credentials: Preconfigured credentials (tests inject a stub)
            client: Preconfigured httpx client (tests inject a mock transport)
            sleep: Optional coroutine used for every delay
        """
        if chunk_size < 1:
            raise ValueError("chunk_size must be positive")

        self.credentials = credentials or Credentials(
            token=None,
            refresh_token=refresh_token,
            token_uri=token_uri,
            client_id=client_id,
            client_secret=client_secret,
        )
        self.chunk_size = chunk_size
        self.upload_max_retries = upload_max_retries
        self.quota_max_attempts = quota_max_attempts
        self.retry_base_delay = retry_base_delay
        self.max_retry_delay = max_retry_delay
        self.chunk_timeout = chunk_timeout
        self.processing_timeout = processing_timeout
        self.processing_poll_interval = processing_poll_interval
        self.category_id = category_id
        self.client = client or httpx.AsyncClient(timeout=chunk_timeout)
        self._sleep = sleep or asyncio.sleep
        self._token_lock = asyncio.Lock()

    @staticmethod
    def is_configured(config: dict) -> bool:
        return all(
            config.get(key)
            for key in ("google_client_id", "google_client_secret", "google_refresh_token")
        )

    @classmethod
    def from_config(cls, config: dict) -> "YouTubeUploadService":
        return cls(
            client_id=config["google_client_id"],
            client_secret=config["google_client_secret"],
            refresh_token=config["google_refresh_token"],
            token_uri=config.get("google_token_uri") or TOKEN_URI,
            chunk_size=config.get("upload_chunk_size", DEFAULT_CHUNK_SIZE),
            upload_max_retries=config.get("upload_max_retries", 5),
            quota_max_attempts=config.get("quota_max_attempts", 3),
            chunk_timeout=config.get("upload_chunk_timeout", 120.0),
            processing_timeout=config.get("processing_timeout", 300.0),
            processing_poll_interval=config.get("processing_poll_interval", 5.0),
            category_id=config.get("youtube_category_id", DEFAULT_CATEGORY_ID),
        )

    async def close(self) -> None:
        """Close the HTTP client."""
        await self.client.aclose()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    async def upload(self, video: ComposedVideo, metadata: UploadMetadata) -> UploadResult:
        """Upload a composed video with its metadata and thumbnail.

        Returns only after YouTube reports the video processed with the
        requested privacy status.

        Raises:
            AuthError: Credentials rejected or refresh failed
            QuotaError: Quota/rate limit persisted through every retry
            UploadError: Any other transport or validation failure
        """
        video_path = Path(video.video_path)
        if not video_path.exists():
            raise UploadError(f"Video file not found: {video_path}")

        body = self.build_video_resource(metadata, self.category_id)
        logger.info(
            f"Uploading {video_path.name} ({video_path.stat().st_size / (1024 * 1024):.1f} MB), "
            f"privacy={metadata.privacy_status.value}, tags={len(body['snippet']['tags'])}"
        )

        session = await self._with_quota_retry(self._create_session, video_path, body)
        resource = await self._upload_chunks(session)

        video_id = resource.get("id")
        if not video_id:
            raise UploadError("Upload finished without a video ID", detail=str(resource)[:500])
        logger.info(f"Upload complete: video ID {video_id}")

        await self._set_thumbnail(video_id, video.thumbnail_path)
        await self._wait_until_available(video_id, metadata.privacy_status)

        return UploadResult.for_video(video_id)

    @staticmethod
    def build_video_resource(metadata: UploadMetadata, category_id: str = DEFAULT_CATEGORY_ID) -> dict:
        """Build the videos.insert body. Values are taken verbatim.

        YouTube has no per-video keywords field, so keywords follow the
        tags in ``snippet.tags``.
        """
        return {
            "snippet": {
                "title": metadata.title,
                "description": metadata.description,
                "tags": [*metadata.tags, *metadata.keywords],
                "categoryId": category_id,
                "defaultLanguage": metadata.language_code,
                "defaultAudioLanguage": metadata.language_code,
            },
            "status": {
                "privacyStatus": metadata.privacy_status.value,
                "selfDeclaredMadeForKids": False,
            },
        }

    # ------------------------------------------------------------------
    # Auth
    # ------------------------------------------------------------------

    def _expires_soon(self) -> bool:
        expiry = self.credentials.expiry
        if expiry is None:
            return False
        # google-auth stores naive UTC datetimes
        now = datetime.now(timezone.utc).replace(tzinfo=None)
        return expiry - TOKEN_EXPIRY_MARGIN <= now

    async def _access_token(self, force_refresh: bool = False) -> str:
        """Return a valid access token, refreshing it when missing or near expiry."""
        async with self._token_lock:
            if force_refresh or not self.credentials.token or self._expires_soon():
                logger.info("Refreshing YouTube access token")
                try:
                    await asyncio.to_thread(self.credentials.refresh, GoogleAuthRequest())
                except (RefreshError, TransportError) as e:
                    raise AuthError(f"Failed to refresh YouTube access token: {e}") from e
                if not self.credentials.token:
                    raise AuthError("Token refresh returned no access token")
            return self.credentials.token

    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        """Send an authorized request; a 401 forces one token refresh and retry."""
        headers = dict(kwargs.pop("headers", None) or {})
        kwargs.setdefault("timeout", self.chunk_timeout)

        headers["Authorization"] = f"Bearer {await self._access_token()}"
        response = await self.client.request(method, url, headers=headers, **kwargs)

        if response.status_code == 401:
            logger.warning("YouTube rejected the access token; refreshing")
            headers["Authorization"] = f"Bearer {await self._access_token(force_refresh=True)}"
            response = await self.client.request(method, url, headers=headers, **kwargs)
            if response.status_code == 401:
                raise AuthError(
                    "YouTube rejected the refreshed access token",
                    detail=response.text[:500],
                )
        return response

    # ------------------------------------------------------------------
    # Error classification
    # ------------------------------------------------------------------

    @staticmethod
    def _error_reason(response: httpx.Response) -> str:
        try:
            error = response.json().get("error", {})
        except ValueError:
            return ""
        if not isinstance(error, dict):
            return ""
        errors = error.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("reason", "")
        return error.get("status", "")

    def _raise_for_status(self, response: httpx.Response, action: str) -> None:
        if response.is_success:
            return
        status = response.status_code
        reason = self._error_reason(response)
        detail = response.text[:1000]

        if status == 429 or (status == 403 and reason in QUOTA_REASONS):
            raise QuotaError(f"{action}: YouTube quota/rate limit ({reason or status})", detail=detail)
        if status == 401:
            raise AuthError(f"{action}: unauthorized", detail=detail)
        suffix = f": {reason}" if reason else ""
        raise UploadError(f"{action} failed (HTTP {status}{suffix})", detail=detail)

    async def _with_quota_retry(self, func, *args):
        """Run ``func`` retrying QuotaError with exponential backoff."""
        async for attempt in async_retrying(
            max_attempts=self.quota_max_attempts,
            base_delay=self.retry_base_delay,
            max_delay=self.max_retry_delay,
            retry_on=(QuotaError,),
            sleep=self._sleep,
        ):
            with attempt:
                return await func(*args)

    # ------------------------------------------------------------------
    # Resumable upload
    # ------------------------------------------------------------------

    async def _create_session(self, video_path: Path, body: dict) -> ResumableUploadSession:
        """Open a resumable upload session and return its state."""
        total_size = video_path.stat().st_size
        if total_size == 0:
            raise UploadError(f"Video file is empty: {video_path}")

        headers = {
            "Content-Type": "application/json; charset=UTF-8",
            "X-Upload-Content-Type": "video/mp4",
            "X-Upload-Content-Length": str(total_size),
        }
        params = {"uploadType": "resumable", "part": "snippet,status"}

        try:
            response = await self._send(
                "POST", UPLOAD_URL, params=params, headers=headers, json=body
            )
        except httpx.HTTPError as e:
            raise UploadError(f"Upload session request failed: {e}") from e

        self._raise_for_status(response, "Upload session")

        upload_url = response.headers.get("Location")
        if not upload_url:
            raise UploadError("YouTube did not return a resumable upload URL")

        logger.debug(f"Resumable session opened for {total_size} bytes")
        return ResumableUploadSession(
            upload_url=upload_url, file_path=video_path, total_size=total_size
        )

    async def _upload_chunks(self, session: ResumableUploadSession) -> dict:
        """Send chunks until the server returns the video resource."""
        while not session.complete:
            try:
                if session.needs_sync:
                    await self._sync_offset(session)
                    session.needs_sync = False
                    if session.complete:
                        break
                await self._send_next_chunk(session)
                session.failures = 0
            except (httpx.TransportError, _UploadInterrupted, QuotaError) as e:
                session.failures += 1
                session.needs_sync = True
                if session.failures > self.upload_max_retries:
                    raise UploadError(
                        f"Upload interrupted at byte {session.offset}/{session.total_size} "
                        f"after {self.upload_max_retries} retries: {e}"
                    ) from e
                delay = min(
                    self.retry_base_delay * 2 ** (session.failures - 1), self.max_retry_delay
                )
                logger.warning(
                    f"Upload interrupted at {session.progress:.0%} ({e}); "
                    f"resuming in {delay:.1f}s (retry {session.failures}/{self.upload_max_retries})"
                )
                await self._sleep(delay)

        return session.video_resource

    async def _send_next_chunk(self, session: ResumableUploadSession) -> None:
        start = session.offset
        end = min(start + self.chunk_size, session.total_size) - 1
        data = await asyncio.to_thread(self._read_range, session.file_path, start, end - start + 1)

        headers = {
            "Content-Type": session.content_type,
            "Content-Range": f"bytes {start}-{end}/{session.total_size}",
        }
        response = await self._send("PUT", session.upload_url, headers=headers, content=data)
        self._apply_upload_response(session, response)

        if not session.complete:
            logger.info(
                f"Uploaded {session.offset}/{session.total_size} bytes ({session.progress:.0%})"
            )

    async def _sync_offset(self, session: ResumableUploadSession) -> None:
        """Ask the server how many bytes it has and adopt that offset."""
        headers = {"Content-Range": f"bytes */{session.total_size}"}
        response = await self._send("PUT", session.upload_url, headers=headers, content=b"")
        self._apply_upload_response(session, response)
        logger.info(f"Resuming upload from byte {session.offset}/{session.total_size}")

    def _apply_upload_response(self, session: ResumableUploadSession, response: httpx.Response) -> None:
        status = response.status_code
        if status in (200, 201):
            session.video_resource = response.json()
            session.offset = session.total_size
        elif status == 308:
            session.offset = self._parse_range(response.headers.get("Range"))
        elif status >= 500:
            raise _UploadInterrupted(f"HTTP {status}")
        elif status in (404, 410):
            raise UploadError(
                f"Upload session expired (HTTP {status})", detail=response.text[:500]
            )
        else:
            self._raise_for_status(response, "Upload chunk")

    @staticmethod
    def _parse_range(range_header: str | None) -> int:
        """Translate ``Range: bytes=0-N`` into the next offset (N + 1)."""
        if not range_header:
            return 0
        try:
            _, last = range_header.split("=", 1)[1].split("-", 1)
            return int(last) + 1
        except (IndexError, ValueError) as e:
            raise UploadError(f"Malformed Range header from upload server: {range_header}") from e

    @staticmethod
    def _read_range(path: Path, start: int, length: int) -> bytes:
        with open(path, "rb") as f:
            f.seek(start)
            return f.read(length)

    # ------------------------------------------------------------------
    # Post-upload
    # ------------------------------------------------------------------

    async def _set_thumbnail(self, video_id: str, thumbnail_path: Path | None) -> None:
        """Attach the thumbnail. Channels without custom thumbnails are skipped."""
        if not thumbnail_path or not Path(thumbnail_path).exists():
            logger.warning(f"No thumbnail to attach for video {video_id}")
            return

        data = await asyncio.to_thread(Path(thumbnail_path).read_bytes)

        async def attempt() -> None:
            try:
                response = await self._send(
                    "POST",
                    THUMBNAIL_URL,
                    params={"videoId": video_id, "uploadType": "media"},
                    headers={"Content-Type": "image/jpeg"},
                    content=data,
                )
            except httpx.HTTPError as e:
                raise UploadError(f"Thumbnail upload failed: {e}") from e

            if response.status_code == 403 and self._error_reason(response) not in QUOTA_REASONS:
                logger.warning(
                    f"Thumbnail not set for {video_id}: channel may not allow custom thumbnails"
                )
                return
            self._raise_for_status(response, "Thumbnail upload")
            logger.info(f"Thumbnail set for {video_id}")

        await self._with_quota_retry(attempt)

    async def _fetch_status(self, video_id: str) -> dict | None:
        async def attempt() -> dict | None:
            try:
                response = await self._send(
                    "GET", VIDEOS_URL, params={"part": "status", "id": video_id}
                )
            except httpx.HTTPError as e:
                raise UploadError(f"Video status request failed: {e}") from e
            self._raise_for_status(response, "Video status")
            items = response.json().get("items") or []
            return items[0].get("status", {}) if items else None

        return await self._with_quota_retry(attempt)

    async def _update_privacy(self, video_id: str, privacy: PrivacyStatus) -> None:
        async def attempt() -> None:
            body = {
                "id": video_id,
                "status": {"privacyStatus": privacy.value, "selfDeclaredMadeForKids": False},
            }
            try:
                response = await self._send(
                    "PUT", VIDEOS_URL, params={"part": "status"}, json=body
                )
            except httpx.HTTPError as e:
                raise UploadError(f"Video status update failed: {e}") from e
            self._raise_for_status(response, "Video status update")

        await self._with_quota_retry(attempt)

    async def _wait_until_available(self, video_id: str, privacy: PrivacyStatus) -> dict:
        """Poll until the video is processed with the requested privacy."""
        max_polls = max(1, math.ceil(self.processing_timeout / self.processing_poll_interval))
        privacy_updated = False
        last_state = "missing"

        for poll in range(max_polls + 1):
            status = await self._fetch_status(video_id)

            if status is not None:
                upload_status = status.get("uploadStatus", "")
                actual_privacy = status.get("privacyStatus")
                last_state = upload_status or "unknown"

                if upload_status in FAILED_UPLOAD_STATES:
                    reason = status.get("failureReason") or status.get("rejectionReason") or ""
                    raise UploadError(f"YouTube reports upload {upload_status} {reason}".strip())

                if actual_privacy and actual_privacy != privacy.value:
                    if privacy_updated:
                        raise UploadError(
                            f"Video {video_id} is {actual_privacy} instead of {privacy.value}"
                        )
                    logger.warning(
                        f"Video {video_id} is {actual_privacy}; setting {privacy.value}"
                    )
                    await self._update_privacy(video_id, privacy)
                    privacy_updated = True
                elif upload_status == "processed":
                    logger.info(f"Video {video_id} processed ({privacy.value})")
                    return status

            if poll < max_polls:
                logger.debug(f"Video {video_id} is {last_state}; polling again")
                await self._sleep(self.processing_poll_interval)

        raise UploadError(
            f"Video {video_id} not available after {self.processing_timeout:.0f}s "
            f"(last state: {last_state})"
        )
