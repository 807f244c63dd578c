"""Shared fixtures and fake providers for the Insight Distiller tests."""

from typing import Iterator, List, Optional

import pytest

from insight_distil.core.config import get_client, load_config
from insight_distil.core.llm_handler import ProviderError

VALID_RESPONSE = '{"summary": "You feel stuck at work.", "questions": ["What would progress look like?", "When did work feel different?"]}'


class FakeProvider:
    """
    In-memory generation provider that records prompts and stream lifecycle.

    Args:
        chunks: Deltas delivered by generate_stream
        response: Text returned by generate (defaults to the joined chunks)
        error: Exception raised when opening the stream (or mid-stream with fail_after)
        fail_after: Number of chunks delivered before raising error
    """

    def __init__(self, chunks: Optional[List[str]] = None, response: Optional[str] = None, error: Optional[Exception] = None, fail_after: Optional[int] = None):
        self.chunks = list(chunks or [])
        self.response = response
        self.error = error
        self.fail_after = fail_after
        self.prompts: List[str] = []
        self.delivered = 0
        self.closed = False
        self.exhausted = False

    def generate(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        return self.response if self.response is not None else "".join(self.chunks)

    def generate_stream(self, prompt: str) -> Iterator[str]:
        self.prompts.append(prompt)
        if self.error is not None and self.fail_after is None:
            raise self.error
        return self._stream()

    def _stream(self) -> Iterator[str]:
        try:
            for index, chunk in enumerate(self.chunks):
                if self.fail_after is not None and index >= self.fail_after:
                    raise self.error or ProviderError("stream broke")
                self.delivered += 1
                yield chunk
            self.exhausted = True
        finally:
            self.closed = True


def split_into_chunks(text: str, size: int) -> List[str]:
    """Split text into fixed-size deltas."""
    return [text[i : i + size] for i in range(0, len(text), size)]


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch: pytest.MonkeyPatch):
    """Keep debug traces off and cached clients/env loads out of each test."""
    monkeypatch.delenv("ID_DEBUG", raising=False)
    get_client.cache_clear()
    load_config.cache_clear()
    yield
    get_client.cache_clear()
    load_config.cache_clear()


@pytest.fixture
def valid_provider() -> FakeProvider:
    """Provider that streams a valid insight in small chunks."""
    return FakeProvider(chunks=split_into_chunks(VALID_RESPONSE, 16))
