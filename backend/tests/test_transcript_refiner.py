"""
Unit tests for chunked transcript refinement.
"""
import asyncio
import json
import logging

import pytest

from conftest import ScriptedAi, make_segments, sentences_response
from core.errors import RefinementError
from models.transcript_models import RefinedSentence, TranscriptChunk, Transcription
from services.processing.chunker import TranscriptChunker
from services.processing.transcript_refiner import TranscriptRefiner, merge_chunk_sentences


def make_transcription(count):
    segments = make_segments(count)
    return Transcription(
        id="tr-1",
        video_id="video-1",
        full_text="".join(s.text for s in segments),
        segments=segments,
        language_code="ja-JP",
        duration_seconds=float(count),
    )


def sentence(indices, text="文。"):
    return RefinedSentence(text=text, start_time_seconds=indices[0], end_time_seconds=indices[-1] + 1,
                           original_segment_indices=list(indices))


class TestMergeChunkSentences:
    """Test de-duplication across the overlap."""

    def test_first_chunk_kept_sorted(self):
        """Test that the first chunk keeps everything, ordered by first index."""
        chunk = TranscriptChunk(0, 9, 0, 2)
        kept = merge_chunk_sentences([sentence([5, 6]), sentence([0, 1])], chunk, None)
        assert [s.original_segment_indices[0] for s in kept] == [0, 5]

    def test_overlap_only_sentences_dropped(self):
        """Test that sentences fully inside the previous chunk are dropped, straddlers kept."""
        previous = TranscriptChunk(0, 9, 0, 2)
        chunk = TranscriptChunk(8, 15, 1, 2)
        kept = merge_chunk_sentences(
            [sentence([8, 9], "重複。"), sentence([9, 10], "またがり。"), sentence([11, 12], "新規。")],
            chunk,
            previous,
        )
        assert [s.text for s in kept] == ["またがり。", "新規。"]


class TestRefine:
    """Test the chunk loop."""

    def test_multi_chunk_merge(self, dictionary):
        """Test that two chunks merge without duplicating the overlap."""
        ai = ScriptedAi([
            sentences_response([("一つ目。", 0, 5, [0, 1, 2, 3, 4]), ("二つ目。", 5, 10, [5, 6, 7, 8, 9])]),
            sentences_response([("二つ目。", 5, 10, [8, 9]), ("三つ目。", 10, 15, [10, 11, 12, 13, 14])]),
        ])
        refiner = TranscriptRefiner(ai, chunker=TranscriptChunker(10, 2), generate_id=lambda: "ref-1")

        refined = asyncio.run(refiner.refine(make_transcription(15), dictionary))

        assert [s.text for s in refined.sentences] == ["一つ目。", "二つ目。", "三つ目。"]
        assert refined.full_text == "一つ目。二つ目。三つ目。"
        assert refined.dictionary_version == "test-1"
        assert refined.transcription_id == "tr-1"
        assert len(ai.prompts) == 2
        assert "二つ目。" in ai.prompts[1]

    def test_out_of_chunk_indices_discarded(self, dictionary):
        """Test that indices the chunk does not cover are filtered out."""
        ai = ScriptedAi([sentences_response([("文。", 0, 3, [0, 1, 2, 99])])])
        refiner = TranscriptRefiner(ai)

        refined = asyncio.run(refiner.refine(make_transcription(3), dictionary))

        assert refined.sentences[0].original_segment_indices == [0, 1, 2]

    def test_duplicate_indices_not_reported_as_dropped(self, dictionary, caplog):
        """Test that repeated in-chunk indices are collapsed without an out-of-chunk warning."""
        ai = ScriptedAi([sentences_response([("文。", 0, 3, [0, 1, 1, 2, 2])])])
        refiner = TranscriptRefiner(ai)

        with caplog.at_level(logging.WARNING):
            refined = asyncio.run(refiner.refine(make_transcription(3), dictionary))

        assert refined.sentences[0].original_segment_indices == [0, 1, 2]
        assert "out-of-chunk" not in caplog.text

    def test_nan_timestamp_raises(self, dictionary):
        """Test that a NaN sentence timestamp makes the chunk response unusable."""
        response = '{"sentences": [{"text": "文。", "startTimeSeconds": NaN, "endTimeSeconds": 1, "originalSegmentIndices": [0]}]}'
        refiner = TranscriptRefiner(ScriptedAi([response]))
        with pytest.raises(RefinementError, match="no valid JSON"):
            asyncio.run(refiner.refine(make_transcription(3), dictionary))

    def test_ai_failure_raises(self, dictionary):
        """Test that an AI error in a later chunk aborts the whole refinement."""
        ai = ScriptedAi([
            sentences_response([("文。", 0, 10, list(range(10)))]),
            RuntimeError("model unavailable"),
        ])
        refiner = TranscriptRefiner(ai, chunker=TranscriptChunker(10, 2))

        with pytest.raises(RefinementError, match="Chunk 2/2"):
            asyncio.run(refiner.refine(make_transcription(15), dictionary))

    @pytest.mark.parametrize("response", [
        "申し訳ありません",
        json.dumps({"result": []}),
        json.dumps({"sentences": [{"text": "文。", "startTimeSeconds": 0, "endTimeSeconds": 1}]}),
        json.dumps({"sentences": [{"text": "文。", "startTimeSeconds": "0", "endTimeSeconds": 1,
                                   "originalSegmentIndices": [0]}]}),
    ])
    def test_malformed_response_raises(self, dictionary, response):
        """Test that unusable responses raise RefinementError."""
        refiner = TranscriptRefiner(ScriptedAi([response]))
        with pytest.raises(RefinementError):
            asyncio.run(refiner.refine(make_transcription(3), dictionary))

    def test_sentence_without_segments_raises(self, dictionary):
        """Test that a sentence mapping to no in-chunk segment fails."""
        refiner = TranscriptRefiner(ScriptedAi([sentences_response([("文。", 0, 1, [42])])]))
        with pytest.raises(RefinementError, match="maps to no segment"):
            asyncio.run(refiner.refine(make_transcription(3), dictionary))

    def test_fenced_response_accepted(self, dictionary):
        """Test that a fenced JSON answer is parsed."""
        body = sentences_response([("文。", 0, 3, [0, 1, 2])])
        refiner = TranscriptRefiner(ScriptedAi([f"```json\n{body}\n```"]))
        refined = asyncio.run(refiner.refine(make_transcription(3), dictionary))
        assert refined.full_text == "文。"

    def test_empty_transcription_raises(self, dictionary):
        """Test that a transcription without segments cannot be refined."""
        refiner = TranscriptRefiner(ScriptedAi())
        with pytest.raises(RefinementError):
            asyncio.run(refiner.refine(make_transcription(0), dictionary))
