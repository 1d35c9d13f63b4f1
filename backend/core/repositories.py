"""
SQLite-backed repositories.

Queries are short local reads and writes, so they run inline on the event loop.
"""
import json
import sqlite3
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, List, Optional, Tuple

from core.database import Database
from models.clip_models import Clip, ClipSubtitle
from models.transcript_models import RefinedTranscription, Transcription
from models.video_models import CacheEntry, JobStatus, ProcessingJob, Video, VideoStatus


def to_iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


def cache_columns(entry: Optional[CacheEntry]) -> Tuple[Optional[str], Optional[str]]:
    if entry is None:
        return None, None
    return entry.storage_uri, to_iso(entry.expires_at)


def cache_from_row(row: sqlite3.Row) -> Optional[CacheEntry]:
    if not row["cache_uri"] or not row["cache_expires_at"]:
        return None
    return CacheEntry(storage_uri=row["cache_uri"], expires_at=from_iso(row["cache_expires_at"]))


def upsert_sql(table: str, columns: Tuple[str, ...]) -> str:
    """INSERT ... ON CONFLICT(id) DO UPDATE; REPLACE would cascade-delete child rows."""
    updates = ", ".join(f"{c} = excluded.{c}" for c in columns if c != "id")
    return (
        f"INSERT INTO {table} ({', '.join(columns)}) "
        f"VALUES ({', '.join('?' for _ in columns)}) "
        f"ON CONFLICT(id) DO UPDATE SET {updates}"
    )


class SqliteVideoRepository:
    SAVE = upsert_sql("videos", (
        "id", "origin_url", "origin_file_id", "status", "title", "duration_seconds",
        "file_size_bytes", "error_message", "progress_message", "cache_uri", "cache_expires_at",
        "created_at", "updated_at",
    ))

    def __init__(self, db: Database):
        self.db = db

    async def save(self, video: Video) -> None:
        cache_uri, cache_expires_at = cache_columns(video.cache)
        self.db.execute_write(
            self.SAVE,
            (
                video.id, video.origin_url, video.origin_file_id, video.status.value,
                video.title, video.duration_seconds, video.file_size_bytes,
                video.error_message, video.progress_message, cache_uri, cache_expires_at,
                to_iso(video.created_at), to_iso(video.updated_at),
            ),
        )

    async def find_by_id(self, video_id: str) -> Optional[Video]:
        row = self.db.execute_one("SELECT * FROM videos WHERE id = ?", (video_id,))
        return self._to_video(row) if row else None

    async def find_by_origin_file_id(self, file_id: str) -> Optional[Video]:
        row = self.db.execute_one("SELECT * FROM videos WHERE origin_file_id = ?", (file_id,))
        return self._to_video(row) if row else None

    async def find_many(self, page: int, limit: int,
                        status: Optional[VideoStatus] = None) -> Tuple[List[Video], int]:
        where, params = "", ()
        if status is not None:
            where, params = "WHERE status = ?", (status.value,)

        total = self.db.execute_one(f"SELECT COUNT(*) AS total FROM videos {where}", params)["total"]
        rows = self.db.execute(
            f"SELECT * FROM videos {where} ORDER BY created_at DESC LIMIT ? OFFSET ?",
            params + (limit, (page - 1) * limit),
        )
        return [self._to_video(row) for row in rows], total

    async def delete(self, video_id: str) -> None:
        self.db.execute_write("DELETE FROM videos WHERE id = ?", (video_id,))

    @staticmethod
    def _to_video(row: sqlite3.Row) -> Video:
        return Video(
            id=row["id"],
            origin_url=row["origin_url"],
            origin_file_id=row["origin_file_id"],
            status=VideoStatus(row["status"]),
            title=row["title"],
            duration_seconds=row["duration_seconds"],
            file_size_bytes=row["file_size_bytes"],
            error_message=row["error_message"],
            progress_message=row["progress_message"],
            cache=cache_from_row(row),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )


class SqliteProcessingJobRepository:
    SAVE = upsert_sql("processing_jobs", (
        "id", "video_id", "clip_instructions", "multiple_clips", "status", "ai_response",
        "error_message", "started_at", "completed_at", "created_at", "updated_at",
    ))

    def __init__(self, db: Database):
        self.db = db

    async def save(self, job: ProcessingJob) -> None:
        self.db.execute_write(
            self.SAVE,
            (
                job.id, job.video_id, job.clip_instructions, int(job.multiple_clips),
                job.status.value, job.ai_response, job.error_message,
                to_iso(job.started_at), to_iso(job.completed_at),
                to_iso(job.created_at), to_iso(job.updated_at),
            ),
        )

    async def find_by_id(self, job_id: str) -> Optional[ProcessingJob]:
        row = self.db.execute_one("SELECT * FROM processing_jobs WHERE id = ?", (job_id,))
        return self._to_job(row) if row else None

    async def find_by_video_id(self, video_id: str) -> List[ProcessingJob]:
        rows = self.db.execute(
            "SELECT * FROM processing_jobs WHERE video_id = ? ORDER BY created_at DESC",
            (video_id,),
        )
        return [self._to_job(row) for row in rows]

    async def find_oldest_pending(self) -> Optional[ProcessingJob]:
        row = self.db.execute_one(
            "SELECT * FROM processing_jobs WHERE status = ? ORDER BY created_at ASC LIMIT 1",
            (JobStatus.PENDING.value,),
        )
        return self._to_job(row) if row else None

    async def delete(self, job_id: str) -> None:
        self.db.execute_write("DELETE FROM processing_jobs WHERE id = ?", (job_id,))

    @staticmethod
    def _to_job(row: sqlite3.Row) -> ProcessingJob:
        return ProcessingJob(
            id=row["id"],
            video_id=row["video_id"],
            clip_instructions=row["clip_instructions"],
            multiple_clips=bool(row["multiple_clips"]),
            status=JobStatus(row["status"]),
            ai_response=row["ai_response"],
            error_message=row["error_message"],
            started_at=from_iso(row["started_at"]),
            completed_at=from_iso(row["completed_at"]),
            created_at=from_iso(row["created_at"]),
            updated_at=from_iso(row["updated_at"]),
        )


class SqliteClipRepository:
    INSERT = upsert_sql("clips", (
        "id", "video_id", "start_time_seconds", "end_time_seconds", "duration_seconds", "title",
        "transcript", "status", "error_message", "origin_file_id", "origin_url", "cache_uri",
        "cache_expires_at", "created_at", "updated_at",
    ))

    def __init__(self, db: Database):
        self.db = db

    async def save(self, clip: Clip) -> None:
        self.db.execute_write(self.INSERT, self._to_row(clip))

    async def save_many(self, clips: List[Clip]) -> None:
        self.db.execute_write_many(self.INSERT, [self._to_row(clip) for clip in clips])

    async def find_by_id(self, clip_id: str) -> Optional[Clip]:
        row = self.db.execute_one("SELECT * FROM clips WHERE id = ?", (clip_id,))
        return self._to_clip(row) if row else None

    async def find_by_video_id(self, video_id: str) -> List[Clip]:
        rows = self.db.execute(
            "SELECT * FROM clips WHERE video_id = ? ORDER BY start_time_seconds ASC",
            (video_id,),
        )
        return [self._to_clip(row) for row in rows]

    async def delete(self, clip_id: str) -> None:
        self.db.execute_write("DELETE FROM clips WHERE id = ?", (clip_id,))

    @staticmethod
    def _to_row(clip: Clip) -> tuple:
        cache_uri, cache_expires_at = cache_columns(clip.cache)
        return (
            clip.id, clip.video_id, clip.start_time_seconds, clip.end_time_seconds,
            clip.duration_seconds, clip.title, clip.transcript, clip.status.value,
            clip.error_message, clip.origin_file_id, clip.origin_url,
            cache_uri, cache_expires_at, to_iso(clip.created_at), to_iso(clip.updated_at),
        )

    @staticmethod
    def _to_clip(row: sqlite3.Row) -> Clip:
        props: Dict[str, Any] = {key: row[key] for key in (
            "id", "video_id", "start_time_seconds", "end_time_seconds", "duration_seconds",
            "title", "transcript", "status", "error_message", "origin_file_id", "origin_url",
        )}
        props["cache"] = cache_from_row(row)
        props["created_at"] = from_iso(row["created_at"])
        props["updated_at"] = from_iso(row["updated_at"])
        return Clip.from_props(props)


class SqliteTranscriptionRepository:
    SAVE = upsert_sql("transcriptions", (
        "id", "video_id", "full_text", "segments", "language_code", "duration_seconds", "created_at",
    ))

    def __init__(self, db: Database):
        self.db = db

    async def save(self, transcription: Transcription) -> None:
        self.db.execute_write(
            self.SAVE,
            (
                transcription.id, transcription.video_id, transcription.full_text,
                json.dumps([asdict(s) for s in transcription.segments], ensure_ascii=False),
                transcription.language_code, transcription.duration_seconds,
                to_iso(transcription.created_at),
            ),
        )

    async def find_by_id(self, transcription_id: str) -> Optional[Transcription]:
        row = self.db.execute_one("SELECT * FROM transcriptions WHERE id = ?", (transcription_id,))
        return self._to_transcription(row) if row else None

    async def find_by_video_id(self, video_id: str) -> Optional[Transcription]:
        row = self.db.execute_one("SELECT * FROM transcriptions WHERE video_id = ?", (video_id,))
        return self._to_transcription(row) if row else None

    async def delete(self, transcription_id: str) -> None:
        self.db.execute_write("DELETE FROM transcriptions WHERE id = ?", (transcription_id,))

    @staticmethod
    def _to_transcription(row: sqlite3.Row) -> Transcription:
        return Transcription.from_props({
            "id": row["id"],
            "video_id": row["video_id"],
            "full_text": row["full_text"],
            "segments": json.loads(row["segments"]),
            "language_code": row["language_code"],
            "duration_seconds": row["duration_seconds"],
            "created_at": from_iso(row["created_at"]),
        })


class SqliteRefinedTranscriptionRepository:
    SAVE = upsert_sql("refined_transcriptions", (
        "id", "transcription_id", "full_text", "sentences", "dictionary_version",
        "created_at", "updated_at",
    ))

    def __init__(self, db: Database):
        self.db = db

    async def save(self, refined: RefinedTranscription) -> None:
        self.db.execute_write(
            self.SAVE,
            (
                refined.id, refined.transcription_id, refined.full_text,
                json.dumps([asdict(s) for s in refined.sentences], ensure_ascii=False),
                refined.dictionary_version, to_iso(refined.created_at), to_iso(refined.updated_at),
            ),
        )

    async def find_by_id(self, refined_id: str) -> Optional[RefinedTranscription]:
        row = self.db.execute_one("SELECT * FROM refined_transcriptions WHERE id = ?", (refined_id,))
        return self._to_refined(row) if row else None

    async def find_by_transcription_id(self, transcription_id: str) -> Optional[RefinedTranscription]:
        row = self.db.execute_one(
            "SELECT * FROM refined_transcriptions WHERE transcription_id = ?",
            (transcription_id,),
        )
        return self._to_refined(row) if row else None

    async def delete(self, refined_id: str) -> None:
        self.db.execute_write("DELETE FROM refined_transcriptions WHERE id = ?", (refined_id,))

    @staticmethod
    def _to_refined(row: sqlite3.Row) -> RefinedTranscription:
        return RefinedTranscription.from_props({
            "id": row["id"],
            "transcription_id": row["transcription_id"],
            "full_text": row["full_text"],
            "sentences": json.loads(row["sentences"]),
            "dictionary_version": row["dictionary_version"],
            "created_at": from_iso(row["created_at"]),
            "updated_at": from_iso(row["updated_at"]),
        })


class SqliteClipSubtitleRepository:
    SAVE = upsert_sql("clip_subtitles", (
        "id", "clip_id", "segments", "status", "created_at", "updated_at",
    ))

    def __init__(self, db: Database):
        self.db = db

    async def save(self, subtitle: ClipSubtitle) -> None:
        self.db.execute_write(
            self.SAVE,
            (
                subtitle.id, subtitle.clip_id,
                json.dumps([asdict(s) for s in subtitle.segments], ensure_ascii=False),
                subtitle.status.value, to_iso(subtitle.created_at), to_iso(subtitle.updated_at),
            ),
        )

    async def find_by_id(self, subtitle_id: str) -> Optional[ClipSubtitle]:
        row = self.db.execute_one("SELECT * FROM clip_subtitles WHERE id = ?", (subtitle_id,))
        return self._to_subtitle(row) if row else None

    async def find_by_clip_id(self, clip_id: str) -> Optional[ClipSubtitle]:
        row = self.db.execute_one("SELECT * FROM clip_subtitles WHERE clip_id = ?", (clip_id,))
        return self._to_subtitle(row) if row else None

    async def delete(self, subtitle_id: str) -> None:
        self.db.execute_write("DELETE FROM clip_subtitles WHERE id = ?", (subtitle_id,))

    @staticmethod
    def _to_subtitle(row: sqlite3.Row) -> ClipSubtitle:
        return ClipSubtitle.from_props({
            "id": row["id"],
            "clip_id": row["clip_id"],
            "segments": json.loads(row["segments"]),
            "status": row["status"],
            "created_at": from_iso(row["created_at"]),
            "updated_at": from_iso(row["updated_at"]),
        })
