"""
Shared fixtures: in-memory repositories and fake gateways.
"""
import itertools
import json
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace

import pytest

from core.database import Database
from core.gateways import FileMetadata, UploadedFile
from core.pipeline import PipelineOrchestrator
from models.transcript_models import (
    DictionaryEntry,
    ProperNounDictionary,
    TranscriptionResult,
    TranscriptSegment,
)
from models.video_models import JobStatus
from services.ingestion.media_cache import TempMediaCache


class MutableClock:
    def __init__(self, now=None):
        self.now = now or datetime(2024, 1, 1, 12, 0, tzinfo=timezone.utc)

    def __call__(self):
        return self.now

    def advance(self, **kwargs):
        self.now += timedelta(**kwargs)


class InMemoryRepository:
    def __init__(self):
        self.items = {}
        self.history = []

    async def save(self, item):
        self.items[item.id] = item
        self.history.append(item)

    async def find_by_id(self, item_id):
        return self.items.get(item_id)

    async def delete(self, item_id):
        self.items.pop(item_id, None)


class InMemoryVideoRepository(InMemoryRepository):
    async def find_by_origin_file_id(self, file_id):
        return next((v for v in self.items.values() if v.origin_file_id == file_id), None)

    async def find_many(self, page, limit, status=None):
        videos = [v for v in self.items.values() if status is None or v.status == status]
        videos.sort(key=lambda v: v.created_at, reverse=True)
        start = (page - 1) * limit
        return videos[start:start + limit], len(videos)


class InMemoryJobRepository(InMemoryRepository):
    async def find_by_video_id(self, video_id):
        return [j for j in self.items.values() if j.video_id == video_id]

    async def find_oldest_pending(self):
        pending = [j for j in self.items.values() if j.status == JobStatus.PENDING]
        return min(pending, key=lambda j: j.created_at) if pending else None


class InMemoryClipRepository(InMemoryRepository):
    async def save_many(self, clips):
        for clip in clips:
            await self.save(clip)

    async def find_by_video_id(self, video_id):
        return sorted(
            (c for c in self.items.values() if c.video_id == video_id),
            key=lambda c: c.start_time_seconds,
        )


class InMemoryTranscriptionRepository(InMemoryRepository):
    async def find_by_video_id(self, video_id):
        return next((t for t in self.items.values() if t.video_id == video_id), None)


class InMemoryRefinedRepository(InMemoryRepository):
    async def find_by_transcription_id(self, transcription_id):
        return next((r for r in self.items.values() if r.transcription_id == transcription_id), None)


class InMemorySubtitleRepository(InMemoryRepository):
    async def find_by_clip_id(self, clip_id):
        return next((s for s in self.items.values() if s.clip_id == clip_id), None)


class FakeOrigin:
    """Drive-like store holding files in memory."""

    def __init__(self):
        self.files = {}
        self.uploads = []
        self.downloads = 0
        self.metadata_error = None

    def add_file(self, file_id, content=b"v" * 4096, name="source.mp4", duration_seconds=None):
        self.files[file_id] = (
            FileMetadata(name=name, size=len(content), mime_type="video/mp4",
                         duration_seconds=duration_seconds),
            content,
        )

    async def get_metadata(self, file_id):
        if self.metadata_error is not None:
            raise self.metadata_error
        return self.files[file_id][0]

    async def download_as_stream(self, file_id):
        self.downloads += 1
        content = self.files[file_id][1]
        for i in range(0, len(content), 1024):
            yield content[i:i + 1024]

    async def upload_file(self, name, content, mime_type="video/mp4", parent_folder_id=None):
        if isinstance(content, bytes):
            data = content
        else:
            data = b"".join([chunk async for chunk in content])
        file_id = f"uploaded-{len(self.uploads) + 1}"
        self.files[file_id] = (FileMetadata(name=name, size=len(data), mime_type=mime_type), data)
        self.uploads.append((name, parent_folder_id))
        return UploadedFile(id=file_id, name=name,
                            web_view_link=f"https://drive.google.com/file/d/{file_id}/view")


class FakeTempStorage:
    """gs://-style object store in memory."""

    def __init__(self):
        self.objects = {}
        self.signed = []

    async def upload(self, key, content, content_type="application/octet-stream"):
        uri = f"gs://temp/{key}"
        self.objects[uri] = content
        return uri

    async def upload_from_stream(self, key, stream, content_type="video/mp4", on_progress=None):
        data = b""
        async for chunk in stream:
            data += chunk
            if on_progress:
                on_progress(len(data))
        uri = f"gs://temp/{key}"
        self.objects[uri] = data
        return uri

    async def download(self, uri):
        return self.objects[uri]

    async def download_as_stream(self, uri):
        yield self.objects[uri]

    async def exists(self, uri):
        return uri in self.objects

    async def get_signed_url(self, uri, expires_in_minutes=60):
        self.signed.append((uri, expires_in_minutes))
        return f"https://signed.example/{uri[len('gs://'):]}?ttl={expires_in_minutes}"


class ScriptedAi:
    """Returns queued responses in order; exceptions in the queue are raised."""

    def __init__(self, responses=None):
        self.responses = list(responses or [])
        self.prompts = []

    async def generate(self, prompt):
        self.prompts.append(prompt)
        if not self.responses:
            raise RuntimeError("No scripted AI response left")
        response = self.responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return response(prompt) if callable(response) else response


class FakeSpeech:
    def __init__(self, result=None):
        self.result = result
        self.uris = []

    async def transcribe_long_audio_from_gcs_uri(self, gcs_uri, on_progress=None):
        self.uris.append(gcs_uri)
        if on_progress:
            on_progress("100%")
        return self.result


class FakeVideoProcessing:
    def __init__(self):
        self.clips = []
        self.fail_starts = set()

    async def extract_clip(self, source_path, output_path, start_seconds, end_seconds):
        if start_seconds in self.fail_starts:
            raise RuntimeError(f"ffmpeg failed at {start_seconds}")
        self.clips.append((start_seconds, end_seconds))
        with open(output_path, "wb") as f:
            f.write(b"clip")

    async def extract_audio(self, source_path, output_path):
        with open(output_path, "wb") as f:
            f.write(b"audio")


def make_segments(count, seconds_each=1.0):
    return [
        TranscriptSegment(
            text=f"w{i}",
            start_time_seconds=i * seconds_each,
            end_time_seconds=(i + 1) * seconds_each,
            confidence=0.9,
        )
        for i in range(count)
    ]


def sentences_response(sentences):
    """Refinement response body for (text, start, end, indices) tuples."""
    return json.dumps({"sentences": [
        {"text": text, "startTimeSeconds": start, "endTimeSeconds": end, "originalSegmentIndices": indices}
        for text, start, end, indices in sentences
    ]}, ensure_ascii=False)


def clips_response(clips):
    """Clip selection response for (title, start, end) tuples, fenced like a chat model."""
    body = json.dumps({"clips": [
        {"title": title, "startTimeSeconds": start, "endTimeSeconds": end,
         "transcript": "...", "reason": "..."}
        for title, start, end in clips
    ]}, ensure_ascii=False)
    return f"以下が結果です。\n```json\n{body}\n```"


@pytest.fixture
def ids():
    counter = itertools.count(1)
    return lambda: f"id-{next(counter):04d}"


@pytest.fixture
def clock():
    return MutableClock()


@pytest.fixture
def dictionary():
    return ProperNounDictionary(
        version="test-1",
        description="test table",
        entries=[DictionaryEntry("チームみらい", "organization", "政党名", ["チーム未来"])],
    )


@pytest.fixture
def repos():
    return SimpleNamespace(
        videos=InMemoryVideoRepository(),
        jobs=InMemoryJobRepository(),
        clips=InMemoryClipRepository(),
        transcriptions=InMemoryTranscriptionRepository(),
        refined=InMemoryRefinedRepository(),
        subtitles=InMemorySubtitleRepository(),
    )


@pytest.fixture
def origin():
    return FakeOrigin()


@pytest.fixture
def temp_storage():
    return FakeTempStorage()


@pytest.fixture
def media_cache(repos, origin, temp_storage, clock):
    return TempMediaCache(repos.videos, repos.clips, origin, temp_storage, clock=clock)


@pytest.fixture
def pipeline_env(repos, origin, temp_storage, media_cache, dictionary, ids, tmp_path):
    """Orchestrator wired to fakes; tests script `env.ai` and `env.speech`."""
    env = SimpleNamespace(
        repos=repos,
        origin=origin,
        temp_storage=temp_storage,
        ai=ScriptedAi(),
        speech=FakeSpeech(TranscriptionResult(
            full_text="".join(s.text for s in make_segments(40)),
            segments=make_segments(40),
            language_code="ja-JP",
            duration_seconds=40.0,
        )),
        video_processing=FakeVideoProcessing(),
    )
    env.orchestrator = PipelineOrchestrator(
        video_repository=repos.videos,
        job_repository=repos.jobs,
        clip_repository=repos.clips,
        transcription_repository=repos.transcriptions,
        refined_repository=repos.refined,
        origin=origin,
        transcription_gateway=env.speech,
        ai_gateway=env.ai,
        temp_storage=temp_storage,
        video_processing=env.video_processing,
        media_cache=media_cache,
        dictionary=dictionary,
        generate_id=ids,
        work_dir=str(tmp_path),
        output_folder_id="folder-out",
    )
    return env


@pytest.fixture
def db(tmp_path):
    return Database(tmp_path / "test.db")
