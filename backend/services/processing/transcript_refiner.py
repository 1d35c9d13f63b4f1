"""
Chunk-wise AI refinement of raw transcripts into corrected sentences.
"""
import logging
import uuid
from typing import Callable, List, Optional

from core.config import REFINE_CONTEXT_SENTENCES
from core.errors import RefinementError
from core.gateways import AiGateway
from models.transcript_models import (
    ProperNounDictionary,
    RefinedSentence,
    RefinedTranscription,
    TranscriptChunk,
    Transcription,
)
from services.processing.chunker import TranscriptChunker
from services.processing.utils import is_number, parse_json_object

logger = logging.getLogger(__name__)


class TranscriptRefiner:
    """Drives one AI call per chunk and merges the outputs into one transcript."""

    def __init__(
        self,
        ai_gateway: AiGateway,
        chunker: Optional[TranscriptChunker] = None,
        context_sentences: int = REFINE_CONTEXT_SENTENCES,
        generate_id: Callable[[], str] = lambda: str(uuid.uuid4()),
    ):
        self.ai_gateway = ai_gateway
        self.chunker = chunker or TranscriptChunker()
        self.context_sentences = context_sentences
        self.generate_id = generate_id

    async def refine(
        self,
        transcription: Transcription,
        dictionary: ProperNounDictionary,
    ) -> RefinedTranscription:
        """
        Refine a transcription chunk by chunk.

        Chunk calls run strictly in order because each prompt carries the tail
        of the already merged output. Any failure raises RefinementError and
        nothing partial is returned.
        """
        chunks = self.chunker.split_into_chunks(transcription.segments)
        if not chunks:
            raise RefinementError(f"Transcription {transcription.id} has no segments to refine")

        logger.info(
            f"Refining transcription {transcription.id}: "
            f"{len(transcription.segments)} segments in {len(chunks)} chunk(s)"
        )

        merged: List[RefinedSentence] = []
        previous_chunk: Optional[TranscriptChunk] = None

        for chunk in chunks:
            prompt = self.chunker.build_chunk_prompt(
                chunk,
                transcription.segments,
                dictionary,
                previous_context=self._previous_context(merged),
            )

            try:
                response = await self.ai_gateway.generate(prompt)
            except Exception as e:
                raise RefinementError(
                    f"Chunk {chunk.chunk_index + 1}/{chunk.total_chunks} failed: {e}"
                ) from e

            sentences = self.parse_sentences(response, chunk)
            kept = merge_chunk_sentences(sentences, chunk, previous_chunk)
            logger.debug(
                f"Chunk {chunk.chunk_index + 1}/{chunk.total_chunks}: "
                f"{len(sentences)} sentences parsed, {len(kept)} kept"
            )
            merged.extend(kept)
            previous_chunk = chunk

        result = RefinedTranscription.create(
            transcription_id=transcription.id,
            full_text="".join(s.text for s in merged),
            sentences=merged,
            dictionary_version=dictionary.version,
            generate_id=self.generate_id,
        )
        if not result.ok:
            raise RefinementError(result.message)

        logger.info(f"Refined transcription {transcription.id} into {len(merged)} sentences")
        return result.value

    def _previous_context(self, merged: List[RefinedSentence]) -> Optional[str]:
        if not merged or self.context_sentences <= 0:
            return None
        return "".join(s.text for s in merged[-self.context_sentences:])

    def parse_sentences(self, response: str, chunk: TranscriptChunk) -> List[RefinedSentence]:
        """
        Parse one chunk response into sentences.

        Indices outside the chunk are discarded; a sentence left with no index
        cannot be traced back and fails the refinement.
        """
        label = f"Chunk {chunk.chunk_index + 1}/{chunk.total_chunks}"
        data = parse_json_object(response)
        if data is None:
            raise RefinementError(f"{label}: no valid JSON found in AI response")

        raw_sentences = data.get("sentences")
        if not isinstance(raw_sentences, list):
            raise RefinementError(f"{label}: missing sentences array")

        sentences = []
        for raw in raw_sentences:
            if not isinstance(raw, dict) or not isinstance(raw.get("text"), str):
                raise RefinementError(f"{label}: sentence missing text")
            if not is_number(raw.get("startTimeSeconds")) or not is_number(raw.get("endTimeSeconds")):
                raise RefinementError(f"{label}: sentence missing timestamps")
            indices = raw.get("originalSegmentIndices")
            if not isinstance(indices, list):
                raise RefinementError(f"{label}: sentence missing originalSegmentIndices")

            distinct = {i for i in indices if isinstance(i, int) and not isinstance(i, bool)}
            covered = sorted(i for i in distinct if chunk.covers(i))
            if len(covered) < len(distinct):
                logger.warning(f"{label}: dropped {len(distinct) - len(covered)} out-of-chunk segment indices")
            if not covered:
                raise RefinementError(f"{label}: sentence {raw['text'][:20]!r} maps to no segment in the chunk")

            sentences.append(RefinedSentence(
                text=raw["text"],
                start_time_seconds=float(raw["startTimeSeconds"]),
                end_time_seconds=float(raw["endTimeSeconds"]),
                original_segment_indices=covered,
            ))
        return sentences


def merge_chunk_sentences(
    sentences: List[RefinedSentence],
    chunk: TranscriptChunk,
    previous_chunk: Optional[TranscriptChunk],
) -> List[RefinedSentence]:
    """
    Drop sentences that only restate the overlap already emitted by the
    previous chunk; return the rest ordered by segment index.
    """
    ordered = sorted(sentences, key=lambda s: s.original_segment_indices[0])
    if previous_chunk is None:
        return ordered
    return [
        s for s in ordered
        if not all(i <= previous_chunk.end_index for i in s.original_segment_indices)
    ]
