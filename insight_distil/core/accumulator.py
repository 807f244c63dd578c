"""
Chunk accumulation for streamed generation output.

A ChunkAccumulator belongs to exactly one request. It forwards every text
delta as soon as it arrives and keeps the full concatenation for extraction.
"""

from typing import Iterable, Iterator, List

from .types import StreamingChunkEvent


class ChunkAccumulator:
    """
    Forward text deltas as stage events while buffering the full text.

    Usage:
        accumulator = ChunkAccumulator()
        for event in accumulator.consume(provider.generate_stream(prompt)):
            yield event
        full_text = accumulator.text
    """

    def __init__(self):
        self._parts: List[str] = []
        self._finished = False

    @property
    def text(self) -> str:
        """Full concatenation of the deltas seen so far."""
        return "".join(self._parts)

    @property
    def chunk_count(self) -> int:
        return len(self._parts)

    @property
    def finished(self) -> bool:
        """True once the upstream sequence ended normally."""
        return self._finished

    def consume(self, deltas: Iterable[str]) -> Iterator[StreamingChunkEvent]:
        """
        Forward deltas in arrival order, then emit one completion marker.

        If the consumer closes this generator early, the upstream iterator is
        closed as well and the buffer is released.

        Args:
            deltas: Text fragments from the generation provider

        Yields:
            StreamingChunkEvent per delta, then a final empty chunk with is_complete=True
        """
        upstream = iter(deltas)
        try:
            for delta in upstream:
                self._parts.append(delta)
                yield StreamingChunkEvent(chunk=delta, is_complete=False)
        except GeneratorExit:
            self._parts.clear()
            raise
        finally:
            close = getattr(upstream, "close", None)
            if close is not None:
                close()

        self._finished = True
        yield StreamingChunkEvent(chunk="", is_complete=True)
