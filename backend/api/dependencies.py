"""
Application container: concrete repositories, gateways and services bound
once at process start.
"""
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, List, Optional

from fastapi import Request

from core import config
from core.database import Database
from core.drive_client import DriveClient
from core.ffmpeg_client import FFmpegClient
from core.gcs_client import GcsClient
from core.ollama_client import OllamaClient
from core.pipeline import PipelineOrchestrator
from core.poller import JobPoller
from core.repositories import (
    SqliteClipRepository,
    SqliteClipSubtitleRepository,
    SqliteProcessingJobRepository,
    SqliteRefinedTranscriptionRepository,
    SqliteTranscriptionRepository,
    SqliteVideoRepository,
)
from core.speech_client import SpeechClient
from services.ingestion.media_cache import TempMediaCache
from services.ingestion.video_submitter import VideoSubmitter
from services.processing.dictionary import load_dictionary
from services.queries import VideoQueries
from services.subtitles import SubtitleService

logger = logging.getLogger(__name__)


@dataclass
class Container:
    submitter: VideoSubmitter
    queries: VideoQueries
    subtitles: SubtitleService
    media_cache: TempMediaCache
    orchestrator: Optional[PipelineOrchestrator] = None
    poller: Optional[JobPoller] = None
    closeables: List[Any] = field(default_factory=list)

    async def close(self) -> None:
        if self.poller is not None:
            await self.poller.stop()
        for resource in self.closeables:
            await resource.close()


def build_container(db_path: Optional[Path] = None) -> Container:
    """Wire SQLite repositories, Google/Ollama/FFmpeg gateways and the pipeline."""
    db = Database(db_path or config.DB_PATH)
    videos = SqliteVideoRepository(db)
    jobs = SqliteProcessingJobRepository(db)
    clips = SqliteClipRepository(db)
    transcriptions = SqliteTranscriptionRepository(db)
    refined = SqliteRefinedTranscriptionRepository(db)
    subtitles = SqliteClipSubtitleRepository(db)

    ai = OllamaClient()
    drive = DriveClient()
    speech = SpeechClient()
    gcs = GcsClient()
    ffmpeg = FFmpegClient()

    media_cache = TempMediaCache(videos, clips, drive, gcs)
    dictionary = load_dictionary(config.DICTIONARY_PATH)
    config.WORK_DIR.mkdir(parents=True, exist_ok=True)

    orchestrator = PipelineOrchestrator(
        video_repository=videos,
        job_repository=jobs,
        clip_repository=clips,
        transcription_repository=transcriptions,
        refined_repository=refined,
        origin=drive,
        transcription_gateway=speech,
        ai_gateway=ai,
        temp_storage=gcs,
        video_processing=ffmpeg,
        media_cache=media_cache,
        dictionary=dictionary,
        work_dir=str(config.WORK_DIR),
        output_folder_id=config.GOOGLE_DRIVE_OUTPUT_FOLDER_ID,
    )

    logger.info(f"Container built (db={db.db_path}, dictionary={dictionary.version})")
    return Container(
        submitter=VideoSubmitter(videos, jobs, transcriptions, refined),
        queries=VideoQueries(videos, clips, jobs),
        subtitles=SubtitleService(clips, subtitles),
        media_cache=media_cache,
        orchestrator=orchestrator,
        poller=JobPoller(orchestrator, jobs, interval_seconds=config.POLL_INTERVAL_SECONDS),
        closeables=[ai, drive, speech],
    )


def get_container(request: Request) -> Container:
    return request.app.state.container
