"""
FFmpeg wrapper (video processing gateway).
"""
import asyncio
import logging
import shutil
from typing import List

from core.config import FFMPEG_BIN

logger = logging.getLogger(__name__)


class FFmpegError(Exception):
    """Raised when ffmpeg is missing or exits non-zero."""
    pass


def build_clip_command(ffmpeg: str, source_path: str, output_path: str,
                       start_seconds: float, end_seconds: float) -> List[str]:
    # -ss before -i seeks on keyframes; re-encoding keeps the cut frame-accurate
    return [
        ffmpeg, "-y", "-v", "error",
        "-ss", f"{start_seconds:.3f}",
        "-i", source_path,
        "-t", f"{end_seconds - start_seconds:.3f}",
        "-c:v", "libx264", "-preset", "veryfast", "-crf", "20",
        "-c:a", "aac", "-b:a", "128k",
        "-movflags", "+faststart",
        output_path,
    ]


def build_audio_command(ffmpeg: str, source_path: str, output_path: str) -> List[str]:
    return [
        ffmpeg, "-y", "-v", "error",
        "-i", source_path,
        "-vn", "-ac", "1", "-ar", "16000",
        "-c:a", "flac",
        output_path,
    ]


class FFmpegClient:
    def __init__(self, ffmpeg_bin: str = FFMPEG_BIN):
        self.ffmpeg_bin = ffmpeg_bin

    def _require_cmd(self) -> str:
        path = shutil.which(self.ffmpeg_bin)
        if not path:
            raise FFmpegError(
                f"Required executable '{self.ffmpeg_bin}' not found in PATH. "
                "Install ffmpeg and ensure it is available on PATH."
            )
        return path

    async def extract_clip(self, source_path: str, output_path: str,
                           start_seconds: float, end_seconds: float) -> None:
        await self._run(build_clip_command(
            self._require_cmd(), source_path, output_path, start_seconds, end_seconds
        ))

    async def extract_audio(self, source_path: str, output_path: str) -> None:
        """Mono 16 kHz FLAC, the format speech recognition expects."""
        await self._run(build_audio_command(self._require_cmd(), source_path, output_path))

    async def _run(self, cmd: List[str]) -> None:
        logger.debug(f"Running {' '.join(cmd)}")
        process = await asyncio.create_subprocess_exec(
            *cmd,
            stdout=asyncio.subprocess.DEVNULL,
            stderr=asyncio.subprocess.PIPE,
        )
        _, stderr = await process.communicate()
        if process.returncode != 0:
            message = stderr.decode(errors="replace").strip()[-500:]
            raise FFmpegError(f"ffmpeg exited with {process.returncode}: {message}")
