"""
Pipeline orchestration for instruction-driven clip extraction.

Runs one ProcessingJob end to end: metadata, transcription, refinement,
clip selection, clip records, rendering/upload and finalization. Status is
persisted before each stage; on failure both the job and the video are
marked failed and the error is re-raised.
"""
import logging
import re
import tempfile
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, List, Optional

from core.errors import ClipSelectionError, ConflictError, NotFoundError, PipelineError
from core.gateways import (
    AiGateway,
    ClipRepository,
    OriginStorageGateway,
    ProcessingJobRepository,
    RefinedTranscriptionRepository,
    TempStorageGateway,
    TranscriptionGateway,
    TranscriptionRepository,
    VideoProcessingGateway,
    VideoRepository,
    iter_file,
    write_stream,
)
from models.clip_models import Clip, ClipStatus
from models.transcript_models import (
    ProperNounDictionary,
    RefinedTranscription,
    Transcription,
)
from models.video_models import JobStatus, ProcessingJob, Video, VideoStatus
from services.extraction.clip_selector import ClipCandidate, ClipSelector
from services.ingestion.media_cache import TempMediaCache
from services.processing.clip_policy import ClipMode
from services.processing.transcript_refiner import TranscriptRefiner

logger = logging.getLogger(__name__)

UNSAFE_FILENAME_CHARS = re.compile(r'[\\/:*?"<>|\s]+')


@dataclass
class PipelineRun:
    """Latest persisted state of the job being processed."""
    job: ProcessingJob
    video: Optional[Video]
    workdir: Optional[Path] = None
    source_path: Optional[Path] = None


def clip_filename(clip: Clip) -> str:
    title = UNSAFE_FILENAME_CHARS.sub("_", clip.title or "").strip("_")[:50]
    return f"{title or 'clip'}_{clip.id[:8]}.mp4"


class PipelineOrchestrator:
    """Sequences the pipeline stages against the video/job state machine."""

    def __init__(
        self,
        video_repository: VideoRepository,
        job_repository: ProcessingJobRepository,
        clip_repository: ClipRepository,
        transcription_repository: TranscriptionRepository,
        refined_repository: RefinedTranscriptionRepository,
        origin: OriginStorageGateway,
        transcription_gateway: TranscriptionGateway,
        ai_gateway: AiGateway,
        temp_storage: TempStorageGateway,
        video_processing: VideoProcessingGateway,
        media_cache: TempMediaCache,
        dictionary: ProperNounDictionary,
        refiner: Optional[TranscriptRefiner] = None,
        selector: Optional[ClipSelector] = None,
        generate_id: Callable[[], str] = lambda: str(uuid.uuid4()),
        work_dir: Optional[str] = None,
        output_folder_id: Optional[str] = None,
    ):
        self.videos = video_repository
        self.jobs = job_repository
        self.clips = clip_repository
        self.transcriptions = transcription_repository
        self.refined = refined_repository
        self.origin = origin
        self.transcription_gateway = transcription_gateway
        self.ai_gateway = ai_gateway
        self.temp_storage = temp_storage
        self.video_processing = video_processing
        self.media_cache = media_cache
        self.dictionary = dictionary
        self.refiner = refiner or TranscriptRefiner(ai_gateway, generate_id=generate_id)
        self.selector = selector or ClipSelector()
        self.generate_id = generate_id
        self.work_dir = work_dir
        self.output_folder_id = output_folder_id

    async def run(self, job_id: str) -> ProcessingJob:
        """
        Run a pending job to completion.

        Returns:
            The completed job

        Raises:
            NotFoundError: unknown job or video
            ConflictError: job is not pending
            Exception: whatever stage failed, after failure is persisted
        """
        job = await self.jobs.find_by_id(job_id)
        if job is None:
            raise NotFoundError("ProcessingJob", job_id)
        if job.status != JobStatus.PENDING:
            raise ConflictError(f"Job {job_id} is {job.status.value}, expected pending")
        run = PipelineRun(job=job, video=await self.videos.find_by_id(job.video_id))
        try:
            if run.video is None:
                raise NotFoundError("Video", job.video_id)
            logger.info(f"Starting job {job.id} for video {run.video.id}")

            with tempfile.TemporaryDirectory(prefix=f"job-{job.id[:8]}-", dir=self.work_dir) as workdir:
                run.workdir = Path(workdir)
                await self._advance_job(run, JobStatus.ANALYZING)
                await self._fetch_metadata(run)
                transcription = await self._transcribe(run)
                refined = await self._refine(run, transcription)
                candidates = await self._select_clips(run, refined, transcription)
                clips = await self._create_clips(run, candidates)
                await self._render_clips(run, clips)
                await self._finalize(run)
        except Exception as e:
            await self._mark_failed(run, e)
            raise

        logger.info(f"Job {run.job.id} completed")
        return run.job

    # Stages

    async def _fetch_metadata(self, run: PipelineRun) -> None:
        metadata = await self.origin.get_metadata(run.video.origin_file_id)
        result = run.video.with_metadata(
            title=metadata.name,
            duration_seconds=metadata.duration_seconds,
            file_size_bytes=metadata.size,
        )
        if not result.ok:
            raise PipelineError(result.kind, result.message)
        run.video = result.value
        await self.videos.save(run.video)
        logger.info(f"Video {run.video.id}: {metadata.name} ({metadata.size} bytes)")

    async def _transcribe(self, run: PipelineRun) -> Transcription:
        existing = await self.transcriptions.find_by_video_id(run.video.id)
        if existing is not None:
            logger.info(f"Video {run.video.id} already transcribed ({len(existing.segments)} segments)")
            return existing

        await self._set_video_status(run, VideoStatus.TRANSCRIBING)

        source = await self._local_source(run)
        audio_path = run.workdir / "audio.flac"
        await self.video_processing.extract_audio(str(source), str(audio_path))
        audio_uri = await self.temp_storage.upload_from_stream(
            f"videos/{run.video.id}/audio.flac",
            iter_file(str(audio_path)),
            content_type="audio/flac",
        )

        result = await self.transcription_gateway.transcribe_long_audio_from_gcs_uri(
            audio_uri,
            on_progress=lambda message: logger.info(f"Video {run.video.id} transcription: {message}"),
        )
        transcription = Transcription(
            id=self.generate_id(),
            video_id=run.video.id,
            full_text=result.full_text,
            segments=list(result.segments),
            language_code=result.language_code,
            duration_seconds=result.duration_seconds,
        )
        await self.transcriptions.save(transcription)
        logger.info(f"Saved transcription {transcription.id} with {len(transcription.segments)} segments")

        if run.video.duration_seconds is None:
            updated = run.video.with_metadata(duration_seconds=result.duration_seconds)
            if updated.ok:
                run.video = updated.value
        await self._set_video_status(run, VideoStatus.TRANSCRIBED)
        return transcription

    async def _refine(self, run: PipelineRun, transcription: Transcription) -> RefinedTranscription:
        existing = await self.refined.find_by_transcription_id(transcription.id)
        if existing is not None:
            logger.info(f"Transcription {transcription.id} already refined ({existing.dictionary_version})")
            return existing

        refined = await self.refiner.refine(transcription, self.dictionary)
        await self.refined.save(refined)
        return refined

    async def _select_clips(
        self,
        run: PipelineRun,
        refined: RefinedTranscription,
        transcription: Transcription,
    ) -> List[ClipCandidate]:
        await self._set_video_status(run, VideoStatus.EXTRACTING)

        duration = run.video.duration_seconds or transcription.duration_seconds
        prompt = self.selector.build_prompt(
            refined.sentences,
            run.video.title,
            run.job.clip_instructions,
            run.job.multiple_clips,
            duration,
        )
        response = await self.ai_gateway.generate(prompt)
        run.job = run.job.with_ai_response(response)
        await self.jobs.save(run.job)

        candidates = self.selector.parse_response(response)
        accepted, rejected = self.selector.validate_candidates(candidates, duration)
        logger.info(f"Job {run.job.id}: {len(accepted)} clip candidates accepted, {len(rejected)} rejected")
        if not accepted:
            raise ClipSelectionError("NO_VALID_CLIPS", "AI response contained no usable clip")
        return accepted

    async def _create_clips(self, run: PipelineRun, candidates: List[ClipCandidate]) -> List[Clip]:
        await self._advance_job(run, JobStatus.EXTRACTING)

        # A single-clip job spans the whole instructed range, so it is not bound by the window
        mode = ClipMode.STRICT if run.job.multiple_clips else ClipMode.FLEXIBLE
        clips = []
        for candidate in candidates:
            result = Clip.create(
                run.video.id,
                candidate.start_time_seconds,
                candidate.end_time_seconds,
                self.generate_id,
                title=candidate.title,
                transcript=candidate.transcript,
                mode=mode,
            )
            if result.ok:
                clips.append(result.value)
            else:
                logger.warning(f"Skipping clip {candidate.title!r}: {result.kind} {result.message}")

        if not clips:
            raise ClipSelectionError("NO_VALID_CLIPS", "No clip candidate satisfied the clip policy")

        await self.clips.save_many(clips)
        return clips

    async def _render_clips(self, run: PipelineRun, clips: List[Clip]) -> None:
        await self._set_video_status(run, VideoStatus.PROCESSING)
        await self._advance_job(run, JobStatus.UPLOADING)

        source = await self._local_source(run)
        failed = 0
        for clip in clips:
            clip = clip.with_status(ClipStatus.PROCESSING)
            await self.clips.save(clip)
            try:
                clip = await self._render_clip(run, clip, source)
            except Exception as e:
                logger.exception(f"Clip {clip.id} failed")
                clip = clip.with_status(ClipStatus.FAILED, str(e))
                failed += 1
            await self.clips.save(clip)

        if failed == len(clips):
            raise PipelineError("CLIP_PROCESSING_FAILED", f"All {failed} clips failed to render")

    async def _render_clip(self, run: PipelineRun, clip: Clip, source: Path) -> Clip:
        output = run.workdir / f"clip-{clip.id}.mp4"
        await self.video_processing.extract_clip(
            str(source), str(output), clip.start_time_seconds, clip.end_time_seconds
        )
        uploaded = await self.origin.upload_file(
            clip_filename(clip),
            iter_file(str(output)),
            mime_type="video/mp4",
            parent_folder_id=self.output_folder_id,
        )
        logger.info(f"Clip {clip.id} uploaded as {uploaded.id}")
        return clip.with_origin_file(uploaded.id, uploaded.web_view_link).with_status(ClipStatus.COMPLETED)

    async def _finalize(self, run: PipelineRun) -> None:
        await self._advance_job(run, JobStatus.COMPLETED)
        run.video = run.video.with_progress_message(None)
        await self._set_video_status(run, VideoStatus.COMPLETED)

    # Helpers

    async def _local_source(self, run: PipelineRun) -> Path:
        """Stage the source in temp storage if needed, then download it once per run."""
        if run.source_path is not None:
            return run.source_path

        await self.videos.save(run.video)
        run.video, entry, _ = await self.media_cache.ensure_video_cached(run.video.id)

        path = run.workdir / "source.mp4"
        written = await write_stream(self.temp_storage.download_as_stream(entry.storage_uri), str(path))
        logger.info(f"Downloaded staged source of video {run.video.id} ({written} bytes)")
        run.source_path = path
        return path

    async def _advance_job(self, run: PipelineRun, status: JobStatus) -> None:
        result = run.job.with_status(status)
        if not result.ok:
            raise PipelineError(result.kind, result.message)
        run.job = result.value
        await self.jobs.save(run.job)

    async def _set_video_status(self, run: PipelineRun, status: VideoStatus) -> None:
        run.video = run.video.with_status(status)
        await self.videos.save(run.video)
        logger.info(f"Video {run.video.id} -> {status.value}")

    async def _mark_failed(self, run: PipelineRun, error: Exception) -> None:
        message = str(error) or type(error).__name__
        logger.error(f"Job {run.job.id} failed: {message}")
        try:
            result = run.job.with_status(JobStatus.FAILED, message)
            if result.ok:
                run.job = result.value
                await self.jobs.save(run.job)
            if run.video is not None:
                run.video = run.video.with_status(VideoStatus.FAILED, message)
                await self.videos.save(run.video)
        except Exception:
            logger.exception(f"Could not record failure of job {run.job.id}")
