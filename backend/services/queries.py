"""
Read-side queries assembling composite views of videos, clips and jobs.
"""
import asyncio
import math
from dataclasses import dataclass
from typing import List, Optional

from core.errors import NotFoundError, ValidationError
from core.gateways import ClipRepository, ProcessingJobRepository, VideoRepository
from models.clip_models import Clip
from models.video_models import ProcessingJob, Video, VideoStatus

MAX_PAGE_LIMIT = 100


@dataclass
class Page:
    items: List[Video]
    page: int
    limit: int
    total: int

    @property
    def total_pages(self) -> int:
        return math.ceil(self.total / self.limit) if self.total else 0


@dataclass
class VideoDetail:
    video: Video
    clips: List[Clip]
    jobs: List[ProcessingJob]


class VideoQueries:
    def __init__(
        self,
        video_repository: VideoRepository,
        clip_repository: ClipRepository,
        job_repository: ProcessingJobRepository,
    ):
        self.video_repository = video_repository
        self.clip_repository = clip_repository
        self.job_repository = job_repository

    async def list_videos(self, page: int = 1, limit: int = 20, status: Optional[str] = None) -> Page:
        """Paginated video list; limit is clamped to [1, 100]."""
        page = max(page, 1)
        limit = min(max(limit, 1), MAX_PAGE_LIMIT)

        status_filter = None
        if status:
            try:
                status_filter = VideoStatus(status)
            except ValueError:
                raise ValidationError(f"Unknown video status: {status}")

        videos, total = await self.video_repository.find_many(page, limit, status_filter)
        return Page(items=videos, page=page, limit=limit, total=total)

    async def get_video(self, video_id: str) -> VideoDetail:
        video = await self.video_repository.find_by_id(video_id)
        if video is None:
            raise NotFoundError("Video", video_id)

        clips, jobs = await asyncio.gather(
            self.clip_repository.find_by_video_id(video_id),
            self.job_repository.find_by_video_id(video_id),
        )
        return VideoDetail(video=video, clips=clips, jobs=jobs)

    async def get_clips(self, video_id: str) -> List[Clip]:
        video = await self.video_repository.find_by_id(video_id)
        if video is None:
            raise NotFoundError("Video", video_id)
        return await self.clip_repository.find_by_video_id(video_id)
