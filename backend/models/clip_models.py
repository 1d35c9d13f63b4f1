"""
Data models for clips and their subtitles.
"""
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime
from enum import Enum
from typing import Any, Callable, Dict, List, Optional

from models.result import Err, Ok, Result
from models.transcript_models import utc_now
from models.video_models import CacheEntry
from services.processing import clip_policy
from services.processing.clip_policy import ClipMode


class ClipStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class SubtitleStatus(str, Enum):
    DRAFT = "draft"
    CONFIRMED = "confirmed"


@dataclass(frozen=True)
class Clip:
    """Validated time span of a source video"""
    id: str
    video_id: str
    start_time_seconds: float
    end_time_seconds: float
    duration_seconds: float
    title: Optional[str] = None
    transcript: Optional[str] = None
    status: ClipStatus = ClipStatus.PENDING
    error_message: Optional[str] = None
    origin_file_id: Optional[str] = None
    origin_url: Optional[str] = None
    cache: Optional[CacheEntry] = None
    created_at: datetime = None
    updated_at: datetime = None

    @classmethod
    def create(
        cls,
        video_id: str,
        start_time_seconds: float,
        end_time_seconds: float,
        generate_id: Callable[[], str],
        title: Optional[str] = None,
        transcript: Optional[str] = None,
        mode: ClipMode = ClipMode.STRICT,
    ) -> Result:
        """Create a pending clip; strict mode enforces the duration window."""
        range_result = clip_policy.validate_time_range(start_time_seconds, end_time_seconds)
        if not range_result.ok:
            return range_result

        duration = end_time_seconds - start_time_seconds
        duration_result = clip_policy.validate_duration(duration, mode)
        if not duration_result.ok:
            return duration_result

        now = utc_now()
        return Ok(cls(
            id=generate_id(),
            video_id=video_id,
            start_time_seconds=start_time_seconds,
            end_time_seconds=end_time_seconds,
            duration_seconds=duration,
            title=title,
            transcript=transcript,
            created_at=now,
            updated_at=now,
        ))

    @classmethod
    def create_flexible(cls, video_id: str, start_time_seconds: float, end_time_seconds: float,
                        generate_id: Callable[[], str], title: Optional[str] = None,
                        transcript: Optional[str] = None) -> Result:
        return cls.create(video_id, start_time_seconds, end_time_seconds, generate_id,
                          title=title, transcript=transcript, mode=ClipMode.FLEXIBLE)

    @classmethod
    def from_props(cls, props: Dict[str, Any]) -> "Clip":
        cache = props.get("cache")
        if isinstance(cache, dict):
            cache = CacheEntry(**cache)
        return cls(**{**props, "status": ClipStatus(props["status"]), "cache": cache})

    def to_props(self) -> Dict[str, Any]:
        return asdict(self)

    def with_status(self, status: ClipStatus, error_message: Optional[str] = None) -> "Clip":
        return replace(
            self,
            status=status,
            error_message=error_message if error_message is not None else self.error_message,
            updated_at=utc_now(),
        )

    def with_origin_file(self, file_id: str, url: Optional[str]) -> "Clip":
        return replace(self, origin_file_id=file_id, origin_url=url, updated_at=utc_now())

    def with_cache(self, cache: CacheEntry) -> "Clip":
        return replace(self, cache=cache, updated_at=utc_now())


@dataclass(frozen=True)
class SubtitleSegment:
    """One on-screen subtitle unit"""
    index: int
    lines: List[str]
    start_time_seconds: float
    end_time_seconds: float


@dataclass(frozen=True)
class ClipSubtitle:
    """Subtitle track of a clip; confirmed tracks reject edits until un-confirmed"""
    id: str
    clip_id: str
    segments: List[SubtitleSegment] = field(default_factory=list)
    status: SubtitleStatus = SubtitleStatus.DRAFT
    created_at: datetime = None
    updated_at: datetime = None

    @classmethod
    def create(cls, clip_id: str, segments: List[SubtitleSegment],
               generate_id: Callable[[], str]) -> Result:
        validation = clip_policy.validate_subtitle_segments(segments)
        if not validation.ok:
            return validation
        now = utc_now()
        return Ok(cls(
            id=generate_id(),
            clip_id=clip_id,
            segments=list(segments),
            created_at=now,
            updated_at=now,
        ))

    @classmethod
    def from_props(cls, props: Dict[str, Any]) -> "ClipSubtitle":
        segments = [
            s if isinstance(s, SubtitleSegment) else SubtitleSegment(**s)
            for s in props.get("segments", [])
        ]
        return cls(**{**props, "segments": segments, "status": SubtitleStatus(props["status"])})

    def to_props(self) -> Dict[str, Any]:
        return asdict(self)

    @property
    def is_confirmed(self) -> bool:
        return self.status == SubtitleStatus.CONFIRMED

    def with_segments(self, segments: List[SubtitleSegment]) -> Result:
        if self.is_confirmed:
            return Err("ALREADY_CONFIRMED", "Confirmed subtitles cannot be edited")
        validation = clip_policy.validate_subtitle_segments(segments)
        if not validation.ok:
            return validation
        return Ok(replace(self, segments=list(segments), updated_at=utc_now()))

    def confirm(self) -> Result:
        if self.is_confirmed:
            return Err("ALREADY_CONFIRMED", "Subtitle is already confirmed")
        return Ok(replace(self, status=SubtitleStatus.CONFIRMED, updated_at=utc_now()))

    def unconfirm(self) -> Result:
        if not self.is_confirmed:
            return Err("NOT_CONFIRMED", "Subtitle is not confirmed")
        return Ok(replace(self, status=SubtitleStatus.DRAFT, updated_at=utc_now()))
