"""
Proper-noun correction dictionary used by transcript refinement.
"""
import json
import logging
from pathlib import Path
from typing import Any, Dict, Optional

from models.transcript_models import DictionaryEntry, ProperNounDictionary

logger = logging.getLogger(__name__)

BUILTIN_VERSION = "builtin-1"

BUILTIN_ENTRIES = [
    DictionaryEntry("チームみらい", "organization", "政党名",
                    ["チーム未来", "チーム見来", "チームミライ"]),
    DictionaryEntry("安野たかひろ", "person", "チームみらい党首",
                    ["安野高広", "あんの高広", "安野孝広", "安野隆広"]),
    DictionaryEntry("党首", "political_term", "政党の代表者（政治の文脈で）",
                    ["投手", "闘手"]),
    DictionaryEntry("マニフェスト", "political_term", "選挙公約",
                    ["マニュフェスト", "マニフェスト―"]),
    DictionaryEntry("ブロードリスニング", "service", "市民の声を広く集めて分析する手法",
                    ["ブロードリスニンク", "ブロード・リスニング"]),
]


def builtin_dictionary() -> ProperNounDictionary:
    return ProperNounDictionary(
        version=BUILTIN_VERSION,
        description="Built-in proper noun table",
        entries=list(BUILTIN_ENTRIES),
    )


def dictionary_from_dict(data: Dict[str, Any]) -> ProperNounDictionary:
    """Build a dictionary from its JSON form (camelCase `wrongPatterns` accepted)."""
    entries = []
    for raw in data.get("entries", []):
        entries.append(DictionaryEntry(
            correct=raw["correct"],
            category=raw.get("category", "other"),
            description=raw.get("description", ""),
            wrong_patterns=list(raw.get("wrongPatterns", raw.get("wrong_patterns", []))),
        ))
    return ProperNounDictionary(
        version=str(data.get("version", "")),
        description=data.get("description", ""),
        entries=entries,
    )


def load_dictionary(path: Optional[str] = None) -> ProperNounDictionary:
    """Load the dictionary from a JSON file, or fall back to the built-in table."""
    if not path:
        return builtin_dictionary()

    dictionary_file = Path(path)
    with open(dictionary_file, "r", encoding="utf-8") as f:
        dictionary = dictionary_from_dict(json.load(f))

    if not dictionary.version:
        raise ValueError(f"Dictionary file has no version: {dictionary_file}")

    logger.info(f"Loaded dictionary {dictionary.version} ({len(dictionary.entries)} entries) from {dictionary_file}")
    return dictionary
