"""
Token counters used by the historian to keep retrieved history inside the
downstream model's context window.
"""

from abc import ABC, abstractmethod
from typing import Optional

import requests
import tiktoken

from .embeddings import GEMINI_API_BASE
from ..core.errors import TokenCountError


class ITokenCounter(ABC):
    """Abstract interface for token counting."""

    @abstractmethod
    def count_tokens(self, text: str) -> int:
        """Number of model tokens in ``text``."""
        pass


class TiktokenCounter(ITokenCounter):
    """Local token counting with a tiktoken encoding."""

    def __init__(self, encoding_name: str = "cl100k_base"):
        self.encoding_name = encoding_name
        self._encoding = None

    @property
    def encoding(self):
        if self._encoding is None:
            self._encoding = tiktoken.get_encoding(self.encoding_name)
        return self._encoding

    def count_tokens(self, text: str) -> int:
        return len(self.encoding.encode(text, disallowed_special=()))


class GeminiTokenCounter(ITokenCounter):
    """Token counting with the Gemini ``countTokens`` endpoint."""

    def __init__(self, api_key: str, model: str = "gemini-1.5-pro", timeout: float = 30.0,
                 session: Optional[requests.Session] = None, api_base: str = GEMINI_API_BASE):
        self.api_key = api_key
        self.model = model if model.startswith("models/") else f"models/{model}"
        self.timeout = timeout
        self.api_base = api_base.rstrip("/")
        self.session = session or requests.Session()

    def count_tokens(self, text: str) -> int:
        url = f"{self.api_base}/{self.model}:countTokens"
        try:
            response = self.session.post(
                url,
                json={"contents": [{"parts": [{"text": text}]}]},
                headers={"x-goog-api-key": self.api_key},
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise TokenCountError(f"Gemini countTokens request failed: {e}", stage="countTokens") from e

        if response.status_code != 200:
            raise TokenCountError(
                f"Gemini countTokens returned HTTP {response.status_code}",
                stage="countTokens"
            )

        try:
            return int(response.json()["totalTokens"])
        except (ValueError, KeyError, TypeError) as e:
            raise TokenCountError("Gemini countTokens response has no totalTokens", stage="countTokens") from e
