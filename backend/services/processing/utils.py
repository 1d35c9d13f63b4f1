"""
Shared utilities for processing pipeline.
"""
import json
import math
import re
from typing import Any, Dict, Optional

FENCED_JSON = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
BARE_OBJECT = re.compile(r"\{[\s\S]*\}")


def extract_json_text(response: str) -> Optional[str]:
    """
    Pull the JSON body out of an LLM response.

    Prefers a fenced ```json block; otherwise takes the outermost {...} span.
    Returns None when nothing object-like is present.
    """
    if not response:
        return None

    fenced = FENCED_JSON.search(response)
    if fenced:
        body = fenced.group(1).strip()
        return body or None

    bare = BARE_OBJECT.search(response)
    if bare:
        return bare.group(0)
    return None


def parse_json_object(response: str) -> Optional[Dict[str, Any]]:
    """Parse the JSON object in an LLM response, or None if absent/invalid."""
    body = extract_json_text(response)
    if body is None:
        return None
    try:
        parsed = json.loads(body, parse_constant=reject_constant)
    except ValueError:
        return None
    return parsed if isinstance(parsed, dict) else None


def reject_constant(token: str) -> Any:
    """`parse_constant` hook: NaN and Infinity are not valid JSON."""
    raise ValueError(f"Non-finite number {token} in JSON")


def is_number(value: Any) -> bool:
    """True for finite int/float but not bool."""
    if isinstance(value, bool):
        return False
    return isinstance(value, int) or (isinstance(value, float) and math.isfinite(value))


def format_bytes(num_bytes: int) -> str:
    """Human readable size (e.g. "256MB", "1.2GB")."""
    if num_bytes < 1024:
        return f"{num_bytes}B"
    if num_bytes < 1024 ** 2:
        return f"{num_bytes / 1024:.0f}KB"
    if num_bytes < 1024 ** 3:
        return f"{num_bytes / 1024 ** 2:.0f}MB"
    return f"{num_bytes / 1024 ** 3:.1f}GB"
