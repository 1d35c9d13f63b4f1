"""
Two-tier media cache: staged copies of origin media in temp storage
(storage TTL, recorded on the owning Video/Clip) plus short-lived signed
URLs issued on every read and never persisted.
"""
import asyncio
import logging
import time
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, List, Optional, Tuple

from core.config import CLIP_CACHE_TTL_HOURS, SIGNED_URL_TTL_MINUTES, VIDEO_CACHE_TTL_DAYS
from core.errors import NotFoundError
from core.gateways import (
    ClipRepository,
    OriginStorageGateway,
    TempStorageGateway,
    VideoRepository,
)
from models.clip_models import Clip
from models.transcript_models import utc_now
from models.video_models import CacheEntry, Video
from services.processing.utils import format_bytes

logger = logging.getLogger(__name__)


@dataclass
class MediaUrl:
    """Browser-usable link to a staged media object"""
    url: str
    expires_at: datetime
    storage_uri: str
    cached: bool  # True when served from an existing staged copy
    duration_seconds: Optional[float] = None


class ProgressThrottler:
    """Lets an update through every `interval` seconds or every `step` percent."""

    def __init__(self, interval_seconds: float = 5.0, step_percent: int = 10,
                 monotonic: Callable[[], float] = time.monotonic):
        self.interval_seconds = interval_seconds
        self.step_percent = step_percent
        self.monotonic = monotonic
        self._last_update: Optional[float] = None
        self._last_percent = 0

    def should_update(self, percent: int) -> bool:
        now = self.monotonic()
        elapsed = self._last_update is None or now - self._last_update >= self.interval_seconds
        if elapsed or percent - self._last_percent >= self.step_percent:
            self._last_update = now
            self._last_percent = percent
            return True
        return False


def download_progress_message(transferred: int, total: int) -> str:
    if total > 0:
        percent = int(transferred * 100 / total)
        return f"ダウンロード中... {format_bytes(transferred)} / {format_bytes(total)} ({percent}%)"
    return f"ダウンロード中... {format_bytes(transferred)}"


class TempMediaCache:
    """Cache-aside staging of origin media in temp storage."""

    def __init__(
        self,
        video_repository: VideoRepository,
        clip_repository: ClipRepository,
        origin: OriginStorageGateway,
        temp_storage: TempStorageGateway,
        clock: Callable[[], datetime] = utc_now,
        video_ttl: timedelta = timedelta(days=VIDEO_CACHE_TTL_DAYS),
        clip_ttl: timedelta = timedelta(hours=CLIP_CACHE_TTL_HOURS),
        url_ttl_minutes: int = SIGNED_URL_TTL_MINUTES,
        monotonic: Callable[[], float] = time.monotonic,
    ):
        self.video_repository = video_repository
        self.clip_repository = clip_repository
        self.origin = origin
        self.temp_storage = temp_storage
        self.clock = clock
        self.video_ttl = video_ttl
        self.clip_ttl = clip_ttl
        self.url_ttl_minutes = url_ttl_minutes
        self.monotonic = monotonic

    async def lookup(self, entry: Optional[CacheEntry]) -> Optional[CacheEntry]:
        """
        Return the entry if it is still usable, else None.

        A hit needs both an unexpired entry and the object still present in
        temp storage; it may have been removed externally.
        """
        if entry is None or not entry.is_fresh(self.clock()):
            return None
        if not await self.temp_storage.exists(entry.storage_uri):
            logger.warning(f"Cache entry {entry.storage_uri} is unexpired but the object is gone")
            return None
        return entry

    async def ensure_video_cached(self, video_id: str) -> Tuple[Video, CacheEntry, bool]:
        """
        Stage the source video in temp storage if it is not already there.

        Returns the updated video, its cache entry and whether it was a hit.
        """
        video = await self.video_repository.find_by_id(video_id)
        if video is None:
            raise NotFoundError("Video", video_id)

        entry = await self.lookup(video.cache)
        if entry is not None:
            logger.info(f"Video {video.id} already staged at {entry.storage_uri}")
            return video, entry, True

        logger.info(f"Staging video {video.id} from origin file {video.origin_file_id}")
        video = video.with_progress_message("ダウンロード中...")
        await self.video_repository.save(video)

        total = video.file_size_bytes or 0
        throttler = ProgressThrottler(monotonic=self.monotonic)
        progress_saves: List[asyncio.Task] = []
        staging_video = video

        def on_progress(transferred: int) -> None:
            percent = int(transferred * 100 / total) if total > 0 else 0
            if throttler.should_update(percent):
                updated = staging_video.with_progress_message(download_progress_message(transferred, total))
                progress_saves.append(asyncio.create_task(self.video_repository.save(updated)))

        try:
            uri = await self.temp_storage.upload_from_stream(
                f"videos/{video.id}/original.mp4",
                self.origin.download_as_stream(video.origin_file_id),
                content_type="video/mp4",
                on_progress=on_progress,
            )
        finally:
            # Progress writes must land before any later save (success or failure) so they cannot overwrite it
            for outcome in await asyncio.gather(*progress_saves, return_exceptions=True):
                if isinstance(outcome, Exception):
                    logger.warning(f"Failed to update progress for video {video.id}: {outcome}")

        entry = CacheEntry(storage_uri=uri, expires_at=self.clock() + self.video_ttl)
        video = video.with_cache(entry).with_progress_message(None)
        await self.video_repository.save(video)
        logger.info(f"Video {video.id} staged at {uri} until {entry.expires_at.isoformat()}")
        return video, entry, False

    async def get_video_url(self, video_id: str) -> MediaUrl:
        """Signed URL for the staged source video, staging it first on a miss."""
        video, entry, cached = await self.ensure_video_cached(video_id)
        return await self._sign(entry, cached, video.duration_seconds)

    async def get_clip_url(self, clip_id: str) -> MediaUrl:
        """Signed URL for a rendered clip, re-staged from the origin store on a miss."""
        clip = await self.clip_repository.find_by_id(clip_id)
        if clip is None:
            raise NotFoundError("Clip", clip_id)
        if not clip.origin_file_id:
            raise NotFoundError("Clip video", clip_id)

        entry = await self.lookup(clip.cache)
        cached = entry is not None
        if entry is None:
            clip, entry = await self._stage_clip(clip)
        else:
            logger.info(f"Using staged clip video {entry.storage_uri}")

        return await self._sign(entry, cached, clip.duration_seconds)

    async def _stage_clip(self, clip: Clip) -> Tuple[Clip, CacheEntry]:
        logger.info(f"Staging clip {clip.id} from origin file {clip.origin_file_id}")
        uri = await self.temp_storage.upload_from_stream(
            f"clips/{clip.id}/video.mp4",
            self.origin.download_as_stream(clip.origin_file_id),
            content_type="video/mp4",
        )
        entry = CacheEntry(storage_uri=uri, expires_at=self.clock() + self.clip_ttl)
        clip = clip.with_cache(entry)
        await self.clip_repository.save(clip)
        return clip, entry

    async def _sign(self, entry: CacheEntry, cached: bool, duration_seconds: Optional[float]) -> MediaUrl:
        url = await self.temp_storage.get_signed_url(entry.storage_uri, self.url_ttl_minutes)
        return MediaUrl(
            url=url,
            expires_at=self.clock() + timedelta(minutes=self.url_ttl_minutes),
            storage_uri=entry.storage_uri,
            cached=cached,
            duration_seconds=duration_seconds,
        )
