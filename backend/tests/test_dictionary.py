"""
Unit tests for proper-noun dictionary loading.
"""
import json

import pytest

from services.processing.dictionary import BUILTIN_VERSION, load_dictionary


class TestLoadDictionary:
    """Test dictionary sources."""

    def test_builtin_when_unset(self):
        """Test that no path falls back to the built-in table."""
        dictionary = load_dictionary(None)
        assert dictionary.version == BUILTIN_VERSION
        assert "organization" in dictionary.by_category()

    def test_load_json_file(self, tmp_path):
        """Test that camelCase wrongPatterns are read from JSON."""
        path = tmp_path / "dictionary.json"
        path.write_text(json.dumps({
            "version": "2024-06",
            "description": "custom",
            "entries": [{"correct": "東京", "category": "place", "description": "都市", "wrongPatterns": ["東今日"]}],
        }, ensure_ascii=False), encoding="utf-8")

        dictionary = load_dictionary(str(path))

        assert dictionary.version == "2024-06"
        assert dictionary.entries[0].wrong_patterns == ["東今日"]

    def test_missing_version_rejected(self, tmp_path):
        """Test that a file without a version is refused."""
        path = tmp_path / "dictionary.json"
        path.write_text(json.dumps({"entries": []}), encoding="utf-8")
        with pytest.raises(ValueError):
            load_dictionary(str(path))
