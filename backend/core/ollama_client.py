"""
Ollama API client wrapper (AI gateway).
"""
import logging

import httpx
from typing import Optional

from core.config import (
    OLLAMA_BASE_URL,
    OLLAMA_MODEL,
    LLM_TEMPERATURE,
    LLM_MAX_TOKENS,
    LLM_TIMEOUT_SECONDS,
)

logger = logging.getLogger(__name__)


class OllamaError(Exception):
    """Raised when the Ollama API call fails."""
    pass


class OllamaClient:
    """Client for text generation with an Ollama model."""

    def __init__(
        self,
        base_url: str = OLLAMA_BASE_URL,
        model: str = OLLAMA_MODEL,
        temperature: float = LLM_TEMPERATURE,
        max_tokens: int = LLM_MAX_TOKENS,
        timeout: float = LLM_TIMEOUT_SECONDS,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = base_url
        self.model = model
        self.temperature = temperature
        self.max_tokens = max_tokens
        # Long timeout: refinement chunks can take minutes on local models
        self.client = client or httpx.AsyncClient(timeout=timeout)

    async def generate(self, prompt: str) -> str:
        """Generate a completion for the prompt; returns the raw response text."""
        url = f"{self.base_url}/api/generate"
        payload = {
            "model": self.model,
            "prompt": prompt,
            "options": {
                "temperature": self.temperature,
                "num_predict": self.max_tokens,
            },
            "stream": False,
        }

        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
            result = response.json()
        except httpx.HTTPError as e:
            raise OllamaError(f"Ollama API error: {e}") from e

        text = result.get("response", "")
        logger.debug(f"Ollama {self.model}: {len(prompt)} prompt chars -> {len(text)} response chars")
        return text

    async def close(self) -> None:
        await self.client.aclose()
