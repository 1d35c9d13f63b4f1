"""
Video submission and reset use cases.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Callable, Optional

from core.errors import ConflictError, NotFoundError, ValidationError
from core.gateways import (
    ProcessingJobRepository,
    RefinedTranscriptionRepository,
    TranscriptionRepository,
    VideoRepository,
)
from models.video_models import ProcessingJob, Video, VideoStatus

logger = logging.getLogger(__name__)

RESETTABLE_STATUSES = {VideoStatus.FAILED, VideoStatus.COMPLETED}


@dataclass
class Submission:
    video: Video
    job: ProcessingJob


class VideoSubmitter:
    """Registers new videos and queues processing jobs for the poller."""

    def __init__(
        self,
        video_repository: VideoRepository,
        job_repository: ProcessingJobRepository,
        transcription_repository: TranscriptionRepository,
        refined_repository: RefinedTranscriptionRepository,
        generate_id: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.video_repository = video_repository
        self.job_repository = job_repository
        self.transcription_repository = transcription_repository
        self.refined_repository = refined_repository
        self.generate_id = generate_id

    async def submit(self, origin_url: str, instructions: str, multiple_clips: bool = False) -> Submission:
        """
        Create a pending video and its first pending job.

        Raises:
            ValidationError: malformed URL or empty instructions
            ConflictError: the origin file was already submitted
        """
        video_result = Video.create(origin_url, self.generate_id)
        if not video_result.ok:
            raise ValidationError(video_result.message)
        video = video_result.value

        existing = await self.video_repository.find_by_origin_file_id(video.origin_file_id)
        if existing is not None:
            raise ConflictError(f"Video with origin file ID {video.origin_file_id} already exists")

        job_result = ProcessingJob.create(video.id, instructions, self.generate_id, multiple_clips)
        if not job_result.ok:
            raise ValidationError(job_result.message)
        job = job_result.value

        await self.video_repository.save(video)
        await self.job_repository.save(job)
        logger.info(f"Submitted video {video.id} (origin {video.origin_file_id}) with job {job.id}")
        return Submission(video=video, job=job)

    async def reset(self, video_id: str, instructions: Optional[str] = None) -> Submission:
        """
        Return a finished or failed video to pending and queue a new job.

        Transcripts are discarded so the next run starts from the origin file.
        Without explicit instructions the latest job's instructions are reused.
        """
        video = await self.video_repository.find_by_id(video_id)
        if video is None:
            raise NotFoundError("Video", video_id)
        if video.status not in RESETTABLE_STATUSES:
            raise ConflictError(f"Video {video_id} is {video.status.value} and cannot be reset")

        jobs = await self.job_repository.find_by_video_id(video_id)
        latest = max(jobs, key=lambda j: j.created_at) if jobs else None
        if instructions is None and latest is None:
            raise ValidationError(f"Video {video_id} has no previous instructions")

        job_result = ProcessingJob.create(
            video.id,
            instructions if instructions is not None else latest.clip_instructions,
            self.generate_id,
            latest.multiple_clips if latest else False,
        )
        if not job_result.ok:
            raise ValidationError(job_result.message)

        transcription = await self.transcription_repository.find_by_video_id(video_id)
        if transcription is not None:
            refined = await self.refined_repository.find_by_transcription_id(transcription.id)
            if refined is not None:
                await self.refined_repository.delete(refined.id)
            await self.transcription_repository.delete(transcription.id)

        video = video.reset()
        await self.video_repository.save(video)
        await self.job_repository.save(job_result.value)
        logger.info(f"Reset video {video.id}; queued job {job_result.value.id}")
        return Submission(video=video, job=job_result.value)
