"""
AI-driven clip span selection: prompt building, response parsing and
bounds validation of the proposed candidates.
"""
import json
import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

from core.errors import ClipSelectionError
from models.result import Err, Ok, Result
from models.transcript_models import RefinedSentence
from services.processing import clip_policy
from services.processing.utils import FENCED_JSON, is_number, reject_constant

logger = logging.getLogger(__name__)

SINGLE_CLIP_INSTRUCTION = (
    "- 必ず1つのクリップのみを抽出してください。"
    "ユーザーの指示全体をもれなく含むような範囲を1つのクリップとして抽出してください"
)
MULTIPLE_CLIPS_INSTRUCTION = "- ユーザーの指示に基づいて、必要に応じて複数のクリップを抽出してください"


@dataclass(frozen=True)
class ClipCandidate:
    """A clip span proposed by the AI, not yet a persisted Clip"""
    title: str
    start_time_seconds: float
    end_time_seconds: float
    transcript: str = ""
    reason: str = ""

    @property
    def duration_seconds(self) -> float:
        return self.end_time_seconds - self.start_time_seconds


def format_seconds(value: float) -> str:
    """Compact decimal seconds: 3.0 -> "3", 3.120 -> "3.12"."""
    return f"{value:.2f}".rstrip("0").rstrip(".")


class ClipSelector:
    """Builds the clip selection prompt and turns the AI answer into candidates."""

    def build_prompt(
        self,
        sentences: Sequence[RefinedSentence],
        video_title: Optional[str],
        instructions: str,
        multiple_clips: bool,
        duration_seconds: float,
    ) -> str:
        transcript = "\n".join(
            f"[{format_seconds(s.start_time_seconds)}秒 - {format_seconds(s.end_time_seconds)}秒] {s.text}"
            for s in sentences
        )
        duration = format_seconds(duration_seconds)
        clip_count_instruction = MULTIPLE_CLIPS_INSTRUCTION if multiple_clips else SINGLE_CLIP_INSTRUCTION

        return f"""あなたは動画編集アシスタントです。
以下の文字起こしデータを分析し、ユーザーの指示に基づいて切り抜くべき箇所を特定してください。

## 動画情報
- タイトル: {video_title or '不明'}
- 総時間: {duration}秒

## 文字起こし（タイムスタンプ付き、単位: 秒）
{transcript}

## ユーザーの切り抜き指示
{instructions}

## 出力形式
以下のJSON形式で、切り抜くべき箇所を出力してください。
startTimeSeconds/endTimeSecondsは上記の文字起こしのタイムスタンプ（秒）を参照して正確に指定してください。

```json
{{
  "clips": [
    {{
      "title": "クリップの簡潔なタイトル",
      "startTimeSeconds": 0.08,
      "endTimeSeconds": 3.12,
      "transcript": "このクリップ内での発言内容",
      "reason": "この箇所を選んだ理由"
    }}
  ]
}}
```

## 注意事項
- 動画の総時間は{duration}秒です。startTimeSeconds/endTimeSecondsは必ずこの範囲内（0〜{duration}）で指定してください
- 発言の途中で切れないよう、タイムスタンプを参照して自然な区切りを選んでください
- transcriptは文字起こしデータからそのまま抜粋してください
- 必ずJSON形式で出力してください
{clip_count_instruction}"""

    def parse_response(self, response: str) -> List[ClipCandidate]:
        """
        Parse the AI answer into clip candidates.

        The JSON may be wrapped in a fenced code block; otherwise the whole
        trimmed response must be JSON.

        Raises:
            ClipSelectionError: PARSE_FAILED or INVALID_CLIP_DATA
        """
        fenced = FENCED_JSON.search(response or "")
        body = fenced.group(1).strip() if fenced else (response or "").strip()
        if not body:
            raise ClipSelectionError("PARSE_FAILED", "Failed to extract JSON from AI response")

        try:
            parsed = json.loads(body, parse_constant=reject_constant)
        except ValueError as e:
            raise ClipSelectionError("PARSE_FAILED", f"Failed to parse AI response as JSON: {e}") from e

        if not isinstance(parsed, dict) or not isinstance(parsed.get("clips"), list):
            raise ClipSelectionError("PARSE_FAILED", "Invalid response structure: missing clips array")

        candidates = []
        for raw in parsed["clips"]:
            if (
                not isinstance(raw, dict)
                or not isinstance(raw.get("title"), str)
                or not raw["title"].strip()
                or not is_number(raw.get("startTimeSeconds"))
                or not is_number(raw.get("endTimeSeconds"))
            ):
                raise ClipSelectionError("INVALID_CLIP_DATA", "Invalid clip data: missing required fields")

            candidates.append(ClipCandidate(
                title=raw["title"],
                start_time_seconds=float(raw["startTimeSeconds"]),
                end_time_seconds=float(raw["endTimeSeconds"]),
                transcript=str(raw.get("transcript") or ""),
                reason=str(raw.get("reason") or ""),
            ))
        return candidates

    def validate_candidate(self, candidate: ClipCandidate, video_duration_seconds: float) -> Result:
        """Time range must be ordered and lie within [0, video duration]; never clamped."""
        range_result = clip_policy.validate_time_range(
            candidate.start_time_seconds, candidate.end_time_seconds
        )
        if not range_result.ok:
            return range_result

        if not (0 <= candidate.start_time_seconds and candidate.end_time_seconds <= video_duration_seconds):
            return Err(
                "TIMESTAMP_OUT_OF_BOUNDS",
                f"Clip {candidate.title!r} [{candidate.start_time_seconds}-{candidate.end_time_seconds}] "
                f"is outside the video duration ({video_duration_seconds}s)",
            )
        return Ok(candidate)

    def validate_candidates(
        self,
        candidates: Sequence[ClipCandidate],
        video_duration_seconds: float,
    ) -> Tuple[List[ClipCandidate], List[Tuple[ClipCandidate, Err]]]:
        """Split candidates into (accepted, rejected-with-reason)."""
        accepted = []
        rejected = []
        for candidate in candidates:
            result = self.validate_candidate(candidate, video_duration_seconds)
            if result.ok:
                accepted.append(candidate)
            else:
                logger.warning(f"Rejected clip candidate {candidate.title!r}: {result.kind} {result.message}")
                rejected.append((candidate, result))

        for first, second in find_overlaps(accepted):
            logger.info(f"Clip candidates overlap: {first.title!r} and {second.title!r}")

        return accepted, rejected


def find_overlaps(candidates: Sequence[ClipCandidate]) -> List[Tuple[ClipCandidate, ClipCandidate]]:
    """Pairs of candidates whose spans intersect. Informational only."""
    ordered = sorted(candidates, key=lambda c: c.start_time_seconds)
    pairs = []
    for i, first in enumerate(ordered):
        for second in ordered[i + 1:]:
            if second.start_time_seconds >= first.end_time_seconds:
                break
            pairs.append((first, second))
    return pairs
