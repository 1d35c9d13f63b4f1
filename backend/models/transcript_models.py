"""
Data models for transcripts, refined transcripts and refinement chunks.
"""
from dataclasses import dataclass, field, asdict, replace
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List

from models.result import Err, Ok, Result


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class TranscriptSegment:
    """Word-level unit returned by speech recognition"""
    text: str
    start_time_seconds: float
    end_time_seconds: float
    confidence: float = 0.0


@dataclass(frozen=True)
class Transcription:
    """Raw transcript of a video (one per video)"""
    id: str
    video_id: str
    full_text: str
    segments: List[TranscriptSegment]
    language_code: str
    duration_seconds: float
    created_at: datetime = field(default_factory=utc_now)

    @classmethod
    def from_props(cls, props: Dict[str, Any]) -> "Transcription":
        segments = [
            seg if isinstance(seg, TranscriptSegment) else TranscriptSegment(**seg)
            for seg in props.get("segments", [])
        ]
        return cls(**{**props, "segments": segments})

    def to_props(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class RefinedSentence:
    """Corrected sentence merged from one or more word-level segments"""
    text: str
    start_time_seconds: float
    end_time_seconds: float
    original_segment_indices: List[int] = field(default_factory=list)


@dataclass(frozen=True)
class RefinedTranscription:
    """Sentence-level transcript produced by chunked AI refinement"""
    id: str
    transcription_id: str
    full_text: str
    sentences: List[RefinedSentence]
    dictionary_version: str
    created_at: datetime = field(default_factory=utc_now)
    updated_at: datetime = field(default_factory=utc_now)

    @classmethod
    def create(
        cls,
        transcription_id: str,
        full_text: str,
        sentences: List[RefinedSentence],
        dictionary_version: str,
        generate_id: Callable[[], str],
    ) -> Result:
        """Validate and build a new refined transcription."""
        if not full_text or not full_text.strip():
            return Err("EMPTY_TEXT", "Refined transcription text cannot be empty")
        if not sentences:
            return Err("EMPTY_SENTENCES", "Refined transcription must have at least one sentence")
        if not dictionary_version or not dictionary_version.strip():
            return Err("INVALID_DICTIONARY_VERSION", "Dictionary version cannot be empty")

        now = utc_now()
        return Ok(cls(
            id=generate_id(),
            transcription_id=transcription_id,
            full_text=full_text,
            sentences=list(sentences),
            dictionary_version=dictionary_version,
            created_at=now,
            updated_at=now,
        ))

    @classmethod
    def from_props(cls, props: Dict[str, Any]) -> "RefinedTranscription":
        sentences = [
            s if isinstance(s, RefinedSentence) else RefinedSentence(**s)
            for s in props.get("sentences", [])
        ]
        return cls(**{**props, "sentences": sentences})

    def to_props(self) -> Dict[str, Any]:
        return asdict(self)

    def with_sentences(self, full_text: str, sentences: List[RefinedSentence]) -> "RefinedTranscription":
        return replace(self, full_text=full_text, sentences=list(sentences), updated_at=utc_now())


@dataclass(frozen=True)
class TranscriptChunk:
    """Bounded, overlapping slice of the segment sequence (inclusive indices)"""
    start_index: int
    end_index: int
    chunk_index: int
    total_chunks: int

    @property
    def size(self) -> int:
        return self.end_index - self.start_index + 1

    def covers(self, segment_index: int) -> bool:
        return self.start_index <= segment_index <= self.end_index


@dataclass(frozen=True)
class DictionaryEntry:
    """Proper noun with the mis-transcriptions that should map to it"""
    correct: str
    category: str
    description: str
    wrong_patterns: List[str] = field(default_factory=list)


@dataclass(frozen=True)
class ProperNounDictionary:
    """Versioned proper-noun correction table"""
    version: str
    description: str
    entries: List[DictionaryEntry] = field(default_factory=list)

    def by_category(self) -> Dict[str, List[DictionaryEntry]]:
        grouped: Dict[str, List[DictionaryEntry]] = {}
        for entry in self.entries:
            grouped.setdefault(entry.category, []).append(entry)
        return grouped


@dataclass
class TranscriptionResult:
    """Output of a transcription gateway call"""
    full_text: str
    segments: List[TranscriptSegment]
    language_code: str
    duration_seconds: float
