"""
Speech-to-Text v2 REST client (transcription gateway).

Long audio goes through batchRecognize on a gs:// URI and the returned
operation is polled until done.
"""
import asyncio
import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

import httpx

from core.config import (
    GOOGLE_CLOUD_PROJECT,
    SPEECH_ACCESS_TOKEN,
    SPEECH_LANGUAGE_CODE,
    SPEECH_LOCATION,
    SPEECH_MODEL,
    SPEECH_POLL_SECONDS,
)
from models.transcript_models import TranscriptionResult, TranscriptSegment

logger = logging.getLogger(__name__)


class SpeechError(Exception):
    """Raised when recognition fails or the operation reports an error."""
    pass


def duration_to_seconds(value: Optional[str]) -> float:
    """Convert a protobuf JSON duration ("1.300s") to seconds."""
    if not value:
        return 0.0
    return float(value.rstrip("s"))


def parse_recognition_results(results: List[Dict[str, Any]], default_language: str) -> TranscriptionResult:
    """Flatten recognition results into word-level segments."""
    segments = []
    texts = []
    language = default_language
    max_end = 0.0

    for result in results:
        alternatives = result.get("alternatives") or []
        if not alternatives:
            continue
        alternative = alternatives[0]
        language = result.get("languageCode") or language

        for word in alternative.get("words", []):
            start = duration_to_seconds(word.get("startOffset"))
            end = duration_to_seconds(word.get("endOffset"))
            segments.append(TranscriptSegment(
                text=word.get("word", ""),
                start_time_seconds=start,
                end_time_seconds=end,
                confidence=word.get("confidence", 0.0),
            ))
            max_end = max(max_end, end)

        texts.append(alternative.get("transcript", ""))

    return TranscriptionResult(
        full_text="".join(texts).strip(),
        segments=segments,
        language_code=language,
        duration_seconds=max_end,
    )


class SpeechClient:
    """Transcribes staged audio with the Chirp model."""

    def __init__(
        self,
        project: str = GOOGLE_CLOUD_PROJECT,
        location: str = SPEECH_LOCATION,
        model: str = SPEECH_MODEL,
        language_code: str = SPEECH_LANGUAGE_CODE,
        access_token: Optional[str] = SPEECH_ACCESS_TOKEN,
        poll_seconds: float = SPEECH_POLL_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.project = project
        self.location = location
        self.model = model
        self.language_code = language_code
        self.access_token = access_token
        self.poll_seconds = poll_seconds
        self.client = client or httpx.AsyncClient(timeout=60.0)
        self.sleep = sleep
        self.base_url = f"https://{location}-speech.googleapis.com/v2"

    def _headers(self) -> dict:
        if not self.access_token:
            raise SpeechError("Speech-to-Text access token is not configured")
        return {"Authorization": f"Bearer {self.access_token}"}

    async def transcribe_long_audio_from_gcs_uri(
        self,
        gcs_uri: str,
        on_progress: Optional[Callable[[str], None]] = None,
    ) -> TranscriptionResult:
        recognizer = f"projects/{self.project}/locations/{self.location}/recognizers/_"
        request = {
            "config": {
                "autoDecodingConfig": {},
                "languageCodes": [self.language_code],
                "model": self.model,
                "features": {"enableWordTimeOffsets": True},
            },
            "files": [{"uri": gcs_uri}],
            "recognitionOutputConfig": {"inlineResponseConfig": {}},
        }

        try:
            response = await self.client.post(
                f"{self.base_url}/{recognizer}:batchRecognize",
                json=request,
                headers=self._headers(),
            )
            response.raise_for_status()
        except httpx.HTTPError as e:
            raise SpeechError(f"batchRecognize failed for {gcs_uri}: {e}") from e

        operation = response.json()
        logger.info(f"Started recognition {operation.get('name')} for {gcs_uri}")
        operation = await self._wait(operation, on_progress)

        file_result = (operation.get("response", {}).get("results") or {}).get(gcs_uri, {})
        if file_result.get("error"):
            raise SpeechError(f"Recognition failed for {gcs_uri}: {file_result['error'].get('message')}")

        results = (file_result.get("transcript") or {}).get("results", [])
        return parse_recognition_results(results, self.language_code)

    async def _wait(self, operation: Dict[str, Any],
                    on_progress: Optional[Callable[[str], None]]) -> Dict[str, Any]:
        name = operation["name"]
        while not operation.get("done"):
            await self.sleep(self.poll_seconds)
            try:
                response = await self.client.get(f"{self.base_url}/{name}", headers=self._headers())
                response.raise_for_status()
            except httpx.HTTPError as e:
                raise SpeechError(f"Polling {name} failed: {e}") from e
            operation = response.json()

            percent = operation.get("metadata", {}).get("progressPercent")
            if on_progress and percent is not None:
                on_progress(f"{percent}%")

        if operation.get("error"):
            raise SpeechError(f"Recognition {name} failed: {operation['error'].get('message')}")
        return operation

    async def close(self) -> None:
        await self.client.aclose()
