"""
Pydantic response models for API endpoints.
"""
from datetime import datetime
from pydantic import Field
from typing import List, Optional

from api.models.requests import ApiModel, SubtitleSegmentModel
from models.clip_models import Clip, ClipSubtitle
from models.video_models import ProcessingJob, Video
from services.ingestion.media_cache import MediaUrl


class VideoModel(ApiModel):
    id: str
    origin_url: str
    origin_file_id: str
    status: str
    title: Optional[str] = None
    duration_seconds: Optional[float] = None
    file_size_bytes: Optional[int] = None
    error_message: Optional[str] = None
    progress_message: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_domain(cls, video: Video) -> "VideoModel":
        return cls(
            id=video.id,
            origin_url=video.origin_url,
            origin_file_id=video.origin_file_id,
            status=video.status.value,
            title=video.title,
            duration_seconds=video.duration_seconds,
            file_size_bytes=video.file_size_bytes,
            error_message=video.error_message,
            progress_message=video.progress_message,
            created_at=video.created_at,
            updated_at=video.updated_at,
        )


class ProcessingJobModel(ApiModel):
    id: str
    video_id: str
    clip_instructions: str
    multiple_clips: bool
    status: str
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, job: ProcessingJob) -> "ProcessingJobModel":
        return cls(
            id=job.id,
            video_id=job.video_id,
            clip_instructions=job.clip_instructions,
            multiple_clips=job.multiple_clips,
            status=job.status.value,
            error_message=job.error_message,
            started_at=job.started_at,
            completed_at=job.completed_at,
            created_at=job.created_at,
        )


class ClipModel(ApiModel):
    id: str
    video_id: str
    title: Optional[str] = None
    start_time_seconds: float
    end_time_seconds: float
    duration_seconds: float
    transcript: Optional[str] = None
    status: str
    error_message: Optional[str] = None
    origin_file_id: Optional[str] = None
    origin_url: Optional[str] = None
    created_at: datetime

    @classmethod
    def from_domain(cls, clip: Clip) -> "ClipModel":
        return cls(
            id=clip.id,
            video_id=clip.video_id,
            title=clip.title,
            start_time_seconds=clip.start_time_seconds,
            end_time_seconds=clip.end_time_seconds,
            duration_seconds=clip.duration_seconds,
            transcript=clip.transcript,
            status=clip.status.value,
            error_message=clip.error_message,
            origin_file_id=clip.origin_file_id,
            origin_url=clip.origin_url,
            created_at=clip.created_at,
        )


class SubmitVideoResponse(ApiModel):
    """Response model for video submission."""
    video: VideoModel
    processing_job: ProcessingJobModel


class Pagination(ApiModel):
    page: int
    limit: int
    total: int
    total_pages: int


class VideoListResponse(ApiModel):
    data: List[VideoModel]
    pagination: Pagination


class VideoDetailResponse(VideoModel):
    """Video with its clips and processing jobs."""
    clips: List[ClipModel] = Field(default_factory=list)
    processing_jobs: List[ProcessingJobModel] = Field(default_factory=list)


class ClipListResponse(ApiModel):
    data: List[ClipModel]


class MediaUrlResponse(ApiModel):
    video_url: str
    expires_at: datetime
    duration_seconds: Optional[float] = None

    @classmethod
    def from_domain(cls, media: MediaUrl) -> "MediaUrlResponse":
        return cls(video_url=media.url, expires_at=media.expires_at, duration_seconds=media.duration_seconds)


class SubtitleResponse(ApiModel):
    id: str
    clip_id: str
    status: str
    segments: List[SubtitleSegmentModel]
    updated_at: datetime

    @classmethod
    def from_domain(cls, subtitle: ClipSubtitle) -> "SubtitleResponse":
        return cls(
            id=subtitle.id,
            clip_id=subtitle.clip_id,
            status=subtitle.status.value,
            segments=[
                SubtitleSegmentModel(
                    index=s.index,
                    lines=list(s.lines),
                    start_time_seconds=s.start_time_seconds,
                    end_time_seconds=s.end_time_seconds,
                )
                for s in subtitle.segments
            ],
            updated_at=subtitle.updated_at,
        )
