"""Token counting for usage accounting."""

from typing import Protocol

import tiktoken


class ITokenizer(Protocol):
    """Counts tokens the way the backend's accounting does."""

    def count(self, text: str) -> int:
        ...


class TiktokenTokenizer:
    """tiktoken encoding for a fixed model; loaded on first use."""

    def __init__(self, model: str = "gpt-3.5-turbo"):
        self._model = model
        self._encoding: tiktoken.Encoding | None = None

    def count(self, text: str) -> int:
        if self._encoding is None:
            self._encoding = tiktoken.encoding_for_model(self._model)
        return len(self._encoding.encode(text, allowed_special="all"))
