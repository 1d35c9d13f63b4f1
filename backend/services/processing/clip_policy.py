"""
Clip validation policy: time ranges, duration bounds, subtitle line constraints.

Pure functions returning Ok/Err results; nothing here raises or performs I/O.
"""
import math
from enum import Enum
from typing import Sequence

from core.config import CLIP_MAX_DURATION_SECONDS, CLIP_MIN_DURATION_SECONDS
from models.result import Err, Ok, Result

SUBTITLE_MAX_CHARS_PER_LINE = 16
SUBTITLE_MAX_LINES = 2


class ClipMode(str, Enum):
    """How a clip's duration is constrained at creation."""
    STRICT = "strict"  # duration must fall in the policy window
    FLEXIBLE = "flexible"  # any positive duration (single full-instruction span)


def validate_time_range(start_seconds: float, end_seconds: float) -> Result:
    """Reject non-finite bounds and ranges where start is not strictly before end."""
    if not (math.isfinite(start_seconds) and math.isfinite(end_seconds)):
        return Err("INVALID_TIME_RANGE", "Start and end times must be finite numbers")
    if not (start_seconds < end_seconds):
        return Err("INVALID_TIME_RANGE", "Start time must be before end time")
    return Ok()


def validate_duration(
    duration_seconds: float,
    mode: ClipMode,
    min_seconds: float = CLIP_MIN_DURATION_SECONDS,
    max_seconds: float = CLIP_MAX_DURATION_SECONDS,
) -> Result:
    """Check duration against the [min, max] window in strict mode."""
    if mode == ClipMode.FLEXIBLE:
        return Ok()
    if not (min_seconds <= duration_seconds <= max_seconds):
        return Err(
            "DURATION_OUT_OF_RANGE",
            f"Clip duration must be between {min_seconds:g} and {max_seconds:g} seconds",
        )
    return Ok()


def validate_subtitle_lines(lines: Sequence[str], segment_index: int) -> Result:
    """A segment needs 1-2 lines of at most 16 characters each."""
    if not lines:
        return Err("EMPTY_LINES", f"Segment {segment_index}: lines cannot be empty")

    if len(lines) > SUBTITLE_MAX_LINES:
        return Err(
            "TOO_MANY_LINES",
            f"Segment {segment_index}: maximum {SUBTITLE_MAX_LINES} lines allowed, got {len(lines)}",
        )

    for line_number, line in enumerate(lines, 1):
        if len(line) > SUBTITLE_MAX_CHARS_PER_LINE:
            return Err(
                "LINE_TOO_LONG",
                f"Segment {segment_index}, line {line_number}: maximum "
                f"{SUBTITLE_MAX_CHARS_PER_LINE} characters allowed, got {len(line)}",
            )
    return Ok()


def validate_subtitle_segments(segments: Sequence) -> Result:
    """
    Validate an ordered subtitle segment list.

    Each segment must expose `index`, `lines`, `start_time_seconds` and
    `end_time_seconds`. Overlap between neighbouring segments is allowed.
    """
    if not segments:
        return Err("EMPTY_SEGMENTS", "Subtitle must have at least one segment")

    for position, segment in enumerate(segments):
        range_result = validate_time_range(segment.start_time_seconds, segment.end_time_seconds)
        if not range_result.ok:
            return Err("INVALID_TIME_RANGE", f"Segment {position}: {range_result.message}")

        if segment.index != position:
            return Err(
                "INVALID_SEGMENT_ORDER",
                f"Segment index mismatch at position {position}",
            )

        lines_result = validate_subtitle_lines(segment.lines, position)
        if not lines_result.ok:
            return lines_result

    return Ok()
