"""
Data models for submitted videos and their processing jobs.
"""
import math
import re
from dataclasses import dataclass, asdict, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, Optional

from models.result import Err, Ok, Result
from models.transcript_models import utc_now


class VideoStatus(str, Enum):
    """Lifecycle of a video through the pipeline."""
    PENDING = "pending"
    TRANSCRIBING = "transcribing"
    TRANSCRIBED = "transcribed"
    EXTRACTING = "extracting"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class JobStatus(str, Enum):
    """Lifecycle of one instruction-driven processing run."""
    PENDING = "pending"
    ANALYZING = "analyzing"
    EXTRACTING = "extracting"
    UPLOADING = "uploading"
    COMPLETED = "completed"
    FAILED = "failed"


JOB_TRANSITIONS = {
    JobStatus.PENDING: {JobStatus.ANALYZING, JobStatus.FAILED},
    JobStatus.ANALYZING: {JobStatus.EXTRACTING, JobStatus.FAILED},
    JobStatus.EXTRACTING: {JobStatus.UPLOADING, JobStatus.FAILED},
    JobStatus.UPLOADING: {JobStatus.COMPLETED, JobStatus.FAILED},
    JobStatus.COMPLETED: set(),
    JobStatus.FAILED: {JobStatus.PENDING},  # retry
}

DRIVE_URL_PATTERN = re.compile(r"^https://drive\.google\.com/file/d/([a-zA-Z0-9_-]+)")


def extract_drive_file_id(url: str) -> Optional[str]:
    """Extract the file ID from a Google Drive sharing URL."""
    match = DRIVE_URL_PATTERN.match(url or "")
    return match.group(1) if match else None


@dataclass(frozen=True)
class CacheEntry:
    """Staged copy of a media object. Valid iff now < expires_at."""
    storage_uri: str
    expires_at: datetime

    def is_fresh(self, now: datetime) -> bool:
        return now < self.expires_at


@dataclass(frozen=True)
class Video:
    """Source video submitted from the origin store"""
    id: str
    origin_url: str
    origin_file_id: str
    status: VideoStatus = VideoStatus.PENDING
    title: Optional[str] = None
    duration_seconds: Optional[float] = None
    file_size_bytes: Optional[int] = None
    error_message: Optional[str] = None
    progress_message: Optional[str] = None
    cache: Optional[CacheEntry] = None
    created_at: datetime = None
    updated_at: datetime = None

    @classmethod
    def create(cls, origin_url: str, generate_id: Callable[[], str]) -> Result:
        """Create a pending video from an origin URL."""
        if not DRIVE_URL_PATTERN.match(origin_url or ""):
            return Err("INVALID_URL", "Invalid Google Drive URL format")
        file_id = extract_drive_file_id(origin_url)
        if not file_id:
            return Err("INVALID_FILE_ID", "Could not extract file ID from URL")

        now = utc_now()
        return Ok(cls(
            id=generate_id(),
            origin_url=origin_url,
            origin_file_id=file_id,
            created_at=now,
            updated_at=now,
        ))

    @classmethod
    def from_props(cls, props: Dict[str, Any]) -> "Video":
        cache = props.get("cache")
        if isinstance(cache, dict):
            cache = CacheEntry(**cache)
        return cls(**{**props, "status": VideoStatus(props["status"]), "cache": cache})

    def to_props(self) -> Dict[str, Any]:
        return asdict(self)

    def with_metadata(
        self,
        title: Optional[str] = None,
        duration_seconds: Optional[float] = None,
        file_size_bytes: Optional[int] = None,
    ) -> Result:
        if duration_seconds is not None and not (math.isfinite(duration_seconds) and duration_seconds >= 0):
            return Err("INVALID_DURATION", "Duration must be a finite non-negative number")
        return Ok(replace(
            self,
            title=title if title is not None else self.title,
            duration_seconds=duration_seconds if duration_seconds is not None else self.duration_seconds,
            file_size_bytes=file_size_bytes if file_size_bytes is not None else self.file_size_bytes,
            updated_at=utc_now(),
        ))

    def with_status(self, status: VideoStatus, error_message: Optional[str] = None) -> "Video":
        return replace(
            self,
            status=status,
            error_message=error_message if error_message is not None else self.error_message,
            updated_at=utc_now(),
        )

    def with_progress_message(self, message: Optional[str]) -> "Video":
        return replace(self, progress_message=message, updated_at=utc_now())

    def with_cache(self, cache: CacheEntry) -> "Video":
        return replace(self, cache=cache, updated_at=utc_now())

    def reset(self) -> "Video":
        """Return to pending, clearing processing state and the cache entry."""
        return replace(
            self,
            status=VideoStatus.PENDING,
            error_message=None,
            progress_message=None,
            cache=None,
            updated_at=utc_now(),
        )


@dataclass(frozen=True)
class ProcessingJob:
    """One instruction-driven run against a video"""
    id: str
    video_id: str
    clip_instructions: str
    multiple_clips: bool = False
    status: JobStatus = JobStatus.PENDING
    ai_response: Optional[str] = None
    error_message: Optional[str] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    created_at: datetime = None
    updated_at: datetime = None

    @classmethod
    def create(
        cls,
        video_id: str,
        clip_instructions: str,
        generate_id: Callable[[], str],
        multiple_clips: bool = False,
    ) -> Result:
        if not clip_instructions or not clip_instructions.strip():
            return Err("EMPTY_INSTRUCTIONS", "Clip instructions cannot be empty")
        now = utc_now()
        return Ok(cls(
            id=generate_id(),
            video_id=video_id,
            clip_instructions=clip_instructions,
            multiple_clips=multiple_clips,
            created_at=now,
            updated_at=now,
        ))

    @classmethod
    def from_props(cls, props: Dict[str, Any]) -> "ProcessingJob":
        return cls(**{**props, "status": JobStatus(props["status"])})

    def to_props(self) -> Dict[str, Any]:
        return asdict(self)

    def can_transition_to(self, status: JobStatus) -> bool:
        return status in JOB_TRANSITIONS[self.status]

    def with_status(self, status: JobStatus, error_message: Optional[str] = None) -> Result:
        if not self.can_transition_to(status):
            return Err(
                "INVALID_STATUS_TRANSITION",
                f"Cannot transition from {self.status.value} to {status.value}",
            )

        now = utc_now()
        started_at = self.started_at
        completed_at = self.completed_at
        if self.status == JobStatus.PENDING and status != JobStatus.PENDING:
            started_at = now
        if status in (JobStatus.COMPLETED, JobStatus.FAILED):
            completed_at = now

        return Ok(replace(
            self,
            status=status,
            error_message=error_message if error_message is not None else self.error_message,
            started_at=started_at,
            completed_at=completed_at,
            updated_at=now,
        ))

    def with_ai_response(self, ai_response: str) -> "ProcessingJob":
        return replace(self, ai_response=ai_response, updated_at=utc_now())
