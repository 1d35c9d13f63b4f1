"""
End-to-end tests for the pipeline orchestrator against in-memory fakes.
"""
import asyncio

import pytest

from conftest import clips_response, make_segments, sentences_response
from core.errors import ClipSelectionError, ConflictError, NotFoundError, PipelineError
from models.clip_models import ClipStatus
from models.transcript_models import Transcription
from models.video_models import JobStatus, ProcessingJob, Video, VideoStatus

DRIVE_URL = "https://drive.google.com/file/d/file-1/view"
REFINED = sentences_response([
    ("前半の話です。", 0.0, 20.0, list(range(20))),
    ("後半の話です。", 20.0, 40.0, list(range(20, 40))),
])


def seed(env, status=VideoStatus.PENDING, transcribed=False, multiple_clips=False, duration_seconds=None):
    """Store a video (optionally already transcribed) and a pending job; return the job."""
    env.origin.add_file("file-1", duration_seconds=duration_seconds)
    video = Video.create(DRIVE_URL, lambda: "video-1").value.with_status(status)
    job = ProcessingJob.create("video-1", "自己紹介の部分", lambda: "job-1", multiple_clips).value
    asyncio.run(env.repos.videos.save(video))
    asyncio.run(env.repos.jobs.save(job))
    if transcribed:
        segments = make_segments(40)
        asyncio.run(env.repos.transcriptions.save(Transcription(
            id="tr-1",
            video_id="video-1",
            full_text="".join(s.text for s in segments),
            segments=segments,
            language_code="ja-JP",
            duration_seconds=40.0,
        )))
    return job


def statuses(history):
    """Distinct consecutive statuses from a save history."""
    seen = []
    for item in history:
        if not seen or seen[-1] != item.status:
            seen.append(item.status)
    return seen


class TestPipelineSuccess:
    """Test complete runs."""

    def test_transcribed_video_completes(self, pipeline_env):
        """Test that a transcribed video with instructions ends completed with completed clips."""
        env = pipeline_env
        seed(env, status=VideoStatus.TRANSCRIBED, transcribed=True, duration_seconds=120.0)
        env.ai.responses = [REFINED, clips_response([("自己紹介", 0.0, 35.0)])]

        job = asyncio.run(env.orchestrator.run("job-1"))

        assert job.status == JobStatus.COMPLETED
        assert job.ai_response is not None
        assert env.repos.jobs.items["job-1"].status == JobStatus.COMPLETED

        video = env.repos.videos.items["video-1"]
        assert video.status == VideoStatus.COMPLETED
        assert video.title == "source.mp4"
        assert video.duration_seconds == 120.0

        clips = list(env.repos.clips.items.values())
        assert len(clips) == 1
        assert clips[0].status == ClipStatus.COMPLETED
        assert clips[0].origin_file_id == "uploaded-1"
        assert clips[0].title == "自己紹介"
        assert env.origin.uploads[0][1] == "folder-out"
        assert env.video_processing.clips == [(0.0, 35.0)]
        assert env.speech.uris == []
        assert len(env.repos.refined.items) == 1

    def test_single_clip_job_ignores_duration_window(self, pipeline_env):
        """Test that a single-clip job keeps a span longer than the strict window."""
        env = pipeline_env
        seed(env, status=VideoStatus.TRANSCRIBED, transcribed=True, duration_seconds=120.0)
        env.ai.responses = [REFINED, clips_response([("全体", 0.0, 100.0)])]

        asyncio.run(env.orchestrator.run("job-1"))

        assert [c.duration_seconds for c in env.repos.clips.items.values()] == [100.0]

    def test_pending_video_runs_every_stage(self, pipeline_env):
        """Test that an untranscribed video is transcribed, refined, clipped and completed."""
        env = pipeline_env
        seed(env, multiple_clips=True)
        env.ai.responses = [
            REFINED,
            clips_response([("前半", 0.0, 25.0), ("短すぎ", 10.0, 15.0), ("範囲外", 30.0, 45.0)]),
        ]

        asyncio.run(env.orchestrator.run("job-1"))

        assert env.speech.uris == ["gs://temp/videos/video-1/audio.flac"]
        assert env.temp_storage.objects["gs://temp/videos/video-1/audio.flac"] == b"audio"
        assert env.origin.downloads == 1
        assert len(env.repos.transcriptions.items) == 1

        video = env.repos.videos.items["video-1"]
        assert video.duration_seconds == 40.0
        assert video.cache.storage_uri == "gs://temp/videos/video-1/original.mp4"
        assert statuses(env.repos.videos.history) == [
            VideoStatus.PENDING,
            VideoStatus.TRANSCRIBING,
            VideoStatus.TRANSCRIBED,
            VideoStatus.EXTRACTING,
            VideoStatus.PROCESSING,
            VideoStatus.COMPLETED,
        ]
        assert statuses(env.repos.jobs.history) == [
            JobStatus.PENDING,
            JobStatus.ANALYZING,
            JobStatus.EXTRACTING,
            JobStatus.UPLOADING,
            JobStatus.COMPLETED,
        ]
        assert [c.title for c in env.repos.clips.items.values()] == ["前半"]

    def test_one_clip_failure_does_not_fail_job(self, pipeline_env):
        """Test that a single failed render marks only that clip failed."""
        env = pipeline_env
        seed(env, status=VideoStatus.TRANSCRIBED, transcribed=True, multiple_clips=True)
        env.ai.responses = [REFINED, clips_response([("前半", 0.0, 25.0), ("後半", 20.0, 40.0)])]
        env.video_processing.fail_starts = {0.0}

        job = asyncio.run(env.orchestrator.run("job-1"))

        assert job.status == JobStatus.COMPLETED
        by_title = {c.title: c for c in env.repos.clips.items.values()}
        assert by_title["前半"].status == ClipStatus.FAILED
        assert "ffmpeg failed" in by_title["前半"].error_message
        assert by_title["後半"].status == ClipStatus.COMPLETED


class TestPipelineFailure:
    """Test failure handling."""

    def test_metadata_failure_marks_video_failed(self, pipeline_env):
        """Test that an origin metadata error fails the job and the video with its message."""
        env = pipeline_env
        seed(env, status=VideoStatus.TRANSCRIBED, transcribed=True)
        env.origin.metadata_error = RuntimeError("Drive unavailable")

        with pytest.raises(RuntimeError, match="Drive unavailable"):
            asyncio.run(env.orchestrator.run("job-1"))

        video = env.repos.videos.items["video-1"]
        assert video.status == VideoStatus.FAILED
        assert video.error_message == "Drive unavailable"
        job = env.repos.jobs.items["job-1"]
        assert job.status == JobStatus.FAILED
        assert job.error_message == "Drive unavailable"
        assert job.completed_at is not None
        assert "tr-1" in env.repos.transcriptions.items

    def test_refinement_failure_keeps_transcription(self, pipeline_env):
        """Test that a refinement error after transcription leaves the transcription stored."""
        env = pipeline_env
        seed(env)
        env.ai.responses = [RuntimeError("model down")]

        with pytest.raises(PipelineError) as exc_info:
            asyncio.run(env.orchestrator.run("job-1"))

        assert exc_info.value.kind == "REFINEMENT_FAILED"
        assert len(env.repos.transcriptions.items) == 1
        assert env.repos.refined.items == {}
        assert env.repos.videos.items["video-1"].status == VideoStatus.FAILED
        assert "model down" in env.repos.jobs.items["job-1"].error_message

    def test_no_valid_clips(self, pipeline_env):
        """Test that all-rejected candidates fail with NO_VALID_CLIPS after storing the AI answer."""
        env = pipeline_env
        seed(env, status=VideoStatus.TRANSCRIBED, transcribed=True)
        env.ai.responses = [REFINED, clips_response([("範囲外", 50.0, 80.0)])]

        with pytest.raises(ClipSelectionError) as exc_info:
            asyncio.run(env.orchestrator.run("job-1"))

        assert exc_info.value.kind == "NO_VALID_CLIPS"
        job = env.repos.jobs.items["job-1"]
        assert job.status == JobStatus.FAILED
        assert "範囲外" in job.ai_response
        assert env.repos.clips.items == {}

    def test_all_clips_failing_fails_job(self, pipeline_env):
        """Test that the job fails when no clip could be rendered."""
        env = pipeline_env
        seed(env, status=VideoStatus.TRANSCRIBED, transcribed=True)
        env.ai.responses = [REFINED, clips_response([("前半", 0.0, 25.0)])]
        env.video_processing.fail_starts = {0.0}

        with pytest.raises(PipelineError) as exc_info:
            asyncio.run(env.orchestrator.run("job-1"))

        assert exc_info.value.kind == "CLIP_PROCESSING_FAILED"
        assert env.repos.jobs.items["job-1"].status == JobStatus.FAILED
        assert env.repos.videos.items["video-1"].status == VideoStatus.FAILED

    def test_non_pending_job_rejected(self, pipeline_env):
        """Test that a job already started is refused without being touched."""
        env = pipeline_env
        job = seed(env)
        asyncio.run(env.repos.jobs.save(job.with_status(JobStatus.ANALYZING).value))

        with pytest.raises(ConflictError):
            asyncio.run(env.orchestrator.run("job-1"))

        assert env.repos.jobs.items["job-1"].status == JobStatus.ANALYZING
        assert env.repos.videos.items["video-1"].status == VideoStatus.PENDING

    def test_unusable_work_dir_fails_job(self, pipeline_env, tmp_path):
        """Test that a work directory that cannot be created fails the job instead of leaving it pending."""
        env = pipeline_env
        seed(env)
        env.orchestrator.work_dir = str(tmp_path / "missing" / "dir")

        with pytest.raises(FileNotFoundError):
            asyncio.run(env.orchestrator.run("job-1"))

        assert env.repos.jobs.items["job-1"].status == JobStatus.FAILED
        assert env.repos.jobs.items["job-1"].error_message
        assert env.repos.videos.items["video-1"].status == VideoStatus.FAILED
        assert asyncio.run(env.repos.jobs.find_oldest_pending()) is None

    def test_missing_video_fails_job(self, pipeline_env):
        """Test that a job whose video is gone is marked failed before NotFoundError propagates."""
        env = pipeline_env
        seed(env)
        asyncio.run(env.repos.videos.delete("video-1"))

        with pytest.raises(NotFoundError):
            asyncio.run(env.orchestrator.run("job-1"))

        assert env.repos.jobs.items["job-1"].status == JobStatus.FAILED
        assert asyncio.run(env.repos.jobs.find_oldest_pending()) is None

    def test_non_finite_clip_times_fail_job(self, pipeline_env):
        """Test that a NaN timestamp from the AI fails selection and stores no clip."""
        env = pipeline_env
        seed(env, status=VideoStatus.TRANSCRIBED, transcribed=True)
        env.ai.responses = [
            REFINED,
            '{"clips": [{"title": "t", "startTimeSeconds": NaN, "endTimeSeconds": 30}]}',
        ]

        with pytest.raises(ClipSelectionError) as exc_info:
            asyncio.run(env.orchestrator.run("job-1"))

        assert exc_info.value.kind == "PARSE_FAILED"
        assert env.repos.jobs.items["job-1"].status == JobStatus.FAILED
        assert env.repos.clips.items == {}

    def test_unknown_job(self, pipeline_env):
        """Test that an unknown job id raises NotFoundError."""
        with pytest.raises(NotFoundError):
            asyncio.run(pipeline_env.orchestrator.run("missing"))
