"""
Gateway and repository interfaces consumed by the pipeline.

Concrete implementations are bound at process start (see api/dependencies.py);
tests substitute in-memory fakes.
"""
from dataclasses import dataclass, field
from typing import AsyncIterator, Callable, List, Optional, Protocol, Tuple, Union

from models.clip_models import Clip, ClipSubtitle
from models.transcript_models import RefinedTranscription, Transcription, TranscriptionResult
from models.video_models import ProcessingJob, Video, VideoStatus

ByteStream = AsyncIterator[bytes]
ProgressCallback = Callable[[int], None]


@dataclass
class FileMetadata:
    """Origin file metadata"""
    name: str
    size: Optional[int] = None
    mime_type: Optional[str] = None
    duration_seconds: Optional[float] = None
    parents: List[str] = field(default_factory=list)


@dataclass
class UploadedFile:
    """Reference to a file written to the origin store"""
    id: str
    name: str
    web_view_link: Optional[str] = None


class OriginStorageGateway(Protocol):
    async def get_metadata(self, file_id: str) -> FileMetadata: ...

    def download_as_stream(self, file_id: str) -> ByteStream: ...

    async def upload_file(
        self,
        name: str,
        content: Union[bytes, ByteStream],
        mime_type: str = "video/mp4",
        parent_folder_id: Optional[str] = None,
    ) -> UploadedFile: ...


class TranscriptionGateway(Protocol):
    async def transcribe_long_audio_from_gcs_uri(
        self,
        gcs_uri: str,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> TranscriptionResult: ...


class AiGateway(Protocol):
    async def generate(self, prompt: str) -> str: ...


class TempStorageGateway(Protocol):
    async def upload(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str: ...

    async def upload_from_stream(
        self,
        key: str,
        stream: ByteStream,
        content_type: str = "video/mp4",
        on_progress: Optional[ProgressCallback] = None,
    ) -> str: ...

    async def download(self, uri: str) -> bytes: ...

    def download_as_stream(self, uri: str) -> ByteStream: ...

    async def exists(self, uri: str) -> bool: ...

    async def get_signed_url(self, uri: str, expires_in_minutes: int = 60) -> str: ...


class VideoProcessingGateway(Protocol):
    async def extract_audio(self, source_path: str, output_path: str) -> None: ...

    async def extract_clip(self, source_path: str, output_path: str,
                           start_seconds: float, end_seconds: float) -> None: ...


class VideoRepository(Protocol):
    async def save(self, video: Video) -> None: ...

    async def find_by_id(self, video_id: str) -> Optional[Video]: ...

    async def find_by_origin_file_id(self, file_id: str) -> Optional[Video]: ...

    async def find_many(self, page: int, limit: int,
                        status: Optional[VideoStatus] = None) -> Tuple[List[Video], int]: ...

    async def delete(self, video_id: str) -> None: ...


class ProcessingJobRepository(Protocol):
    async def save(self, job: ProcessingJob) -> None: ...

    async def find_by_id(self, job_id: str) -> Optional[ProcessingJob]: ...

    async def find_by_video_id(self, video_id: str) -> List[ProcessingJob]: ...

    async def find_oldest_pending(self) -> Optional[ProcessingJob]: ...

    async def delete(self, job_id: str) -> None: ...


class ClipRepository(Protocol):
    async def save(self, clip: Clip) -> None: ...

    async def save_many(self, clips: List[Clip]) -> None: ...

    async def find_by_id(self, clip_id: str) -> Optional[Clip]: ...

    async def find_by_video_id(self, video_id: str) -> List[Clip]: ...

    async def delete(self, clip_id: str) -> None: ...


class TranscriptionRepository(Protocol):
    async def save(self, transcription: Transcription) -> None: ...

    async def find_by_id(self, transcription_id: str) -> Optional[Transcription]: ...

    async def find_by_video_id(self, video_id: str) -> Optional[Transcription]: ...

    async def delete(self, transcription_id: str) -> None: ...


class RefinedTranscriptionRepository(Protocol):
    async def save(self, refined: RefinedTranscription) -> None: ...

    async def find_by_id(self, refined_id: str) -> Optional[RefinedTranscription]: ...

    async def find_by_transcription_id(self, transcription_id: str) -> Optional[RefinedTranscription]: ...

    async def delete(self, refined_id: str) -> None: ...


class ClipSubtitleRepository(Protocol):
    async def save(self, subtitle: ClipSubtitle) -> None: ...

    async def find_by_id(self, subtitle_id: str) -> Optional[ClipSubtitle]: ...

    async def find_by_clip_id(self, clip_id: str) -> Optional[ClipSubtitle]: ...

    async def delete(self, subtitle_id: str) -> None: ...


async def iter_file(path: str, chunk_size: int = 1024 * 1024) -> ByteStream:
    """Stream a local file in chunks."""
    with open(path, "rb") as f:
        while True:
            chunk = f.read(chunk_size)
            if not chunk:
                break
            yield chunk


async def write_stream(stream: ByteStream, path: str) -> int:
    """Drain a byte stream into a local file; returns bytes written."""
    written = 0
    with open(path, "wb") as f:
        async for chunk in stream:
            f.write(chunk)
            written += len(chunk)
    return written
