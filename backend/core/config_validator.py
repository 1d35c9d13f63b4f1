"""
Configuration validation for the clip pipeline backend.
Validates settings, the Ollama service, the database and credentials on startup.
"""
import requests
from pathlib import Path
from typing import List, Dict, Any

from core import config


class ConfigurationError(Exception):
    """Raised when configuration is invalid."""
    pass


class ConfigValidator:
    """Validates system configuration before the pipeline starts."""

    def __init__(self):
        self.errors: List[str] = []
        self.warnings: List[str] = []

    def validate_all(self, check_services: bool = True) -> Dict[str, Any]:
        """
        Run all validation checks.

        Args:
            check_services: also probe the Ollama service over the network

        Returns:
            {
                "valid": bool,
                "errors": List[str],
                "warnings": List[str]
            }
        """
        self.errors = []
        self.warnings = []

        self._validate_config_values()
        self._validate_dictionary()
        self._validate_credentials()
        self._validate_database()
        if check_services:
            self._validate_ollama()

        return {
            "valid": len(self.errors) == 0,
            "errors": self.errors,
            "warnings": self.warnings
        }

    def _validate_config_values(self):
        """Validate configuration value ranges and types."""
        if config.REFINE_CHUNK_SIZE <= 0:
            self.errors.append(f"REFINE_CHUNK_SIZE ({config.REFINE_CHUNK_SIZE}) must be positive")

        if not 0 <= config.REFINE_CHUNK_OVERLAP < config.REFINE_CHUNK_SIZE:
            self.errors.append(
                f"REFINE_CHUNK_OVERLAP ({config.REFINE_CHUNK_OVERLAP}) must be >= 0 and "
                f"< REFINE_CHUNK_SIZE ({config.REFINE_CHUNK_SIZE})"
            )

        if config.CLIP_MIN_DURATION_SECONDS >= config.CLIP_MAX_DURATION_SECONDS:
            self.errors.append(
                f"CLIP_MIN_DURATION_SECONDS ({config.CLIP_MIN_DURATION_SECONDS}) must be < "
                f"CLIP_MAX_DURATION_SECONDS ({config.CLIP_MAX_DURATION_SECONDS})"
            )

        for name in ("VIDEO_CACHE_TTL_DAYS", "CLIP_CACHE_TTL_HOURS", "SIGNED_URL_TTL_MINUTES"):
            if getattr(config, name) <= 0:
                self.errors.append(f"{name} ({getattr(config, name)}) must be positive")

        if config.POLL_INTERVAL_SECONDS <= 0:
            self.errors.append(f"POLL_INTERVAL_SECONDS ({config.POLL_INTERVAL_SECONDS}) must be positive")

        # Temperature validation
        if not (0.0 <= config.LLM_TEMPERATURE <= 1.0):
            self.warnings.append(
                f"LLM_TEMPERATURE ({config.LLM_TEMPERATURE}) outside normal range [0.0, 1.0]"
            )

    def _validate_dictionary(self):
        if config.DICTIONARY_PATH and not Path(config.DICTIONARY_PATH).exists():
            self.errors.append(f"Dictionary file not found: {config.DICTIONARY_PATH}")

    def _validate_credentials(self):
        """Missing credentials only break the stages that need them."""
        if not config.GOOGLE_DRIVE_ACCESS_TOKEN:
            self.warnings.append("GOOGLE_DRIVE_ACCESS_TOKEN not set; origin downloads and uploads will fail")
        if not config.GOOGLE_DRIVE_OUTPUT_FOLDER_ID:
            self.warnings.append("GOOGLE_DRIVE_OUTPUT_FOLDER_ID not set; clips upload to the Drive root")
        if not config.GOOGLE_CLOUD_PROJECT:
            self.warnings.append("GOOGLE_CLOUD_PROJECT not set; temp bucket name may be wrong")
        if not config.SPEECH_ACCESS_TOKEN:
            self.warnings.append("SPEECH_ACCESS_TOKEN not set; transcription will fail")

    def _validate_database(self):
        """Check that the schema file exists."""
        if not config.SCHEMA_PATH.exists():
            self.errors.append(f"Database schema not found at {config.SCHEMA_PATH}")

        if not config.DB_PATH.exists():
            self.warnings.append(
                f"Database file not found at {config.DB_PATH}. "
                "Will be created on first run."
            )

    def _validate_ollama(self):
        """Check that Ollama is reachable and the model is pulled."""
        try:
            response = requests.get(f"{config.OLLAMA_BASE_URL}/api/tags", timeout=5)
            response.raise_for_status()
        except requests.exceptions.ConnectionError:
            self.errors.append(
                f"Cannot connect to Ollama at {config.OLLAMA_BASE_URL}. "
                "Ensure Ollama is running: `ollama serve`"
            )
            return
        except requests.exceptions.Timeout:
            self.errors.append(
                f"Ollama connection timeout at {config.OLLAMA_BASE_URL}. "
                "Check network or Ollama performance."
            )
            return
        except Exception as e:
            self.errors.append(f"Ollama connection error: {e}")
            return

        available_models = [model["name"] for model in response.json().get("models", [])]
        if config.OLLAMA_MODEL not in available_models:
            self.errors.append(
                f"Required model not found: {config.OLLAMA_MODEL}. "
                f"Pull it with: `ollama pull {config.OLLAMA_MODEL}`"
            )
