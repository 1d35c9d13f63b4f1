"""
Overlap-based chunking of word-level transcript segments for AI refinement.
"""
from typing import List, Optional, Sequence

from models.transcript_models import ProperNounDictionary, TranscriptChunk, TranscriptSegment
from core.config import REFINE_CHUNK_OVERLAP, REFINE_CHUNK_SIZE

CATEGORY_LABELS = {
    "person": "人名",
    "organization": "組織名",
    "service": "サービス名",
    "political_term": "政治用語",
}


class TranscriptChunker:
    """Splits segment sequences into bounded chunks that overlap their predecessor."""

    def __init__(
        self,
        chunk_size: int = REFINE_CHUNK_SIZE,
        overlap: int = REFINE_CHUNK_OVERLAP,
    ):
        """Initialize chunker with parameters."""
        if chunk_size <= 0:
            raise ValueError(f"chunk_size must be positive, got {chunk_size}")
        if not 0 <= overlap < chunk_size:
            raise ValueError(f"overlap ({overlap}) must be in [0, chunk_size={chunk_size})")
        self.chunk_size = chunk_size
        self.overlap = overlap

    def split_into_chunks(self, segments: Sequence[TranscriptSegment]) -> List[TranscriptChunk]:
        """
        Split segments into overlapping chunks.

        Chunk 0 covers [0, chunk_size - 1]; each following chunk starts
        `overlap` segments before the previous end and covers up to
        `chunk_size` segments, the last one clamped to N - 1.
        """
        total = len(segments)
        if total == 0:
            return []

        if total <= self.chunk_size:
            return [TranscriptChunk(start_index=0, end_index=total - 1, chunk_index=0, total_chunks=1)]

        bounds = []
        start = 0
        while True:
            end = min(start + self.chunk_size - 1, total - 1)
            bounds.append((start, end))
            if end >= total - 1:
                break
            start = end + 1 - self.overlap

        return [
            TranscriptChunk(start_index=s, end_index=e, chunk_index=i, total_chunks=len(bounds))
            for i, (s, e) in enumerate(bounds)
        ]

    def build_chunk_prompt(
        self,
        chunk: TranscriptChunk,
        all_segments: Sequence[TranscriptSegment],
        dictionary: ProperNounDictionary,
        previous_context: Optional[str] = None,
    ) -> str:
        """Render the refinement prompt for one chunk using absolute segment indices."""
        sections = [
            "あなたは日本語の音声認識結果を校正するアシスタントです。",
            "## 固有名詞辞書\n以下の固有名詞は必ず正しい表記に修正してください:\n"
            + format_dictionary(dictionary),
        ]

        if chunk.total_chunks > 1:
            sections.append(
                "## チャンク情報\n"
                f"これは全 {chunk.total_chunks} 個のチャンクのうち {chunk.chunk_index + 1} 番目です。\n"
                f"入力はセグメントindex {chunk.start_index} から {chunk.end_index} までです。"
            )

        if previous_context:
            sections.append(
                "## 前のチャンクの末尾\n"
                "以下は直前のチャンクで既に校正済みの文です。文脈の判断にのみ使用し、"
                "出力には含めないでください。\n"
                f"{previous_context}"
            )

        sections.append(
            "## タスク\n"
            "1. 単語レベルのセグメントを日本語の自然な文単位にマージ\n"
            "2. 固有名詞を辞書に基づいて修正\n"
            "3. 文脈を考慮して同音異義語を補正\n"
            "4. 各文のタイムスタンプ（開始/終了）を保持\n"
            "5. マージ元のセグメントindexを記録（入力に表示されたindexをそのまま使用）\n\n"
            "## 重要な注意事項\n"
            "- すべてのセグメントを処理すること（途中で省略しない）\n"
            "- 句点（。）で文を区切ってください\n"
            "- 長すぎる文は適切な位置で分割してください"
        )

        sections.append(
            "## 入力フォーマット\n[index] [startTime-endTime] text\n\n"
            "## 入力データ\n" + format_segments(all_segments, chunk.start_index, chunk.end_index)
        )

        sections.append(
            "## 出力フォーマット（JSON）\n"
            "必ず以下の形式のJSONのみを出力してください。説明文や前置きは不要です。\n"
            "{\n"
            '  "sentences": [\n'
            "    {\n"
            '      "text": "文章テキスト。",\n'
            '      "startTimeSeconds": 0.08,\n'
            '      "endTimeSeconds": 0.80,\n'
            '      "originalSegmentIndices": [0, 1, 2, 3]\n'
            "    }\n"
            "  ]\n"
            "}"
        )

        return "\n\n".join(sections)


def format_dictionary(dictionary: ProperNounDictionary) -> str:
    """Render dictionary entries grouped by category as "wrong → correct（description）"."""
    lines = []
    for category, entries in dictionary.by_category().items():
        lines.append(f"### {CATEGORY_LABELS.get(category, category)}")
        for entry in entries:
            wrong = "、".join(entry.wrong_patterns)
            lines.append(f"- {wrong} → {entry.correct}（{entry.description}）")
    return "\n".join(lines)


def format_segments(segments: Sequence[TranscriptSegment], start_index: int, end_index: int) -> str:
    lines = []
    for index in range(start_index, end_index + 1):
        segment = segments[index]
        lines.append(
            f"[{index}] [{segment.start_time_seconds:.2f}-{segment.end_time_seconds:.2f}] {segment.text}"
        )
    return "\n".join(lines)
