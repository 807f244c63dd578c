"""
Staged streaming insight pipeline.

The stage sequencer is the only component callers talk to. For one request
it yields, in order: an analyzing event, a generating event, the streamed
chunks, and exactly one terminal complete or error event. Failures never
escape the sequence; they become the terminal error event. Closing the
sequence early (cancellation) closes the upstream provider stream and
produces no further events.
"""

import logging
import time
from typing import Iterator, Optional

from .accumulator import ChunkAccumulator
from .budget import assemble, estimate_tokens, track_token_usage
from .debug_log import get_debug_logger
from .extract import ExtractionError, extract_insight
from .frameworks import resolve_framework_id
from .llm_handler import GenerationProvider, ProviderError
from .types import (
    AnalyzingEvent,
    CompleteEvent,
    ErrorEvent,
    GeneratingEvent,
    InputValidationError,
    InsightRequest,
    StageEvent,
    StructuredInsight,
)

logger = logging.getLogger(__name__)

ANALYZING_PROGRESS = 60
GENERATING_PROGRESS = 85
COMPLETE_PROGRESS = 100

ANALYZING_MESSAGE = "Analyzing your message..."
GENERATING_MESSAGE = "Generating thoughtful response..."
EMPTY_RESPONSE_MESSAGE = "No response text received from generation provider"


def _validate_request(request: InsightRequest) -> None:
    if not request.text or not request.text.strip():
        raise InputValidationError("Input text must not be empty")


class StageRun:
    """
    One cancellable run of the pipeline.

    Iterating yields the stage events. cancel() (or leaving a ``with`` block)
    stops the run and aborts the provider stream if no terminal event was
    reached yet.
    """

    def __init__(self, events: Iterator[StageEvent]):
        self._events = events
        self._cancelled = False
        self.terminal: Optional[StageEvent] = None

    def __iter__(self) -> "StageRun":
        return self

    def __next__(self) -> StageEvent:
        event = next(self._events)
        if event.is_terminal:
            self.terminal = event
        return event

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        """Stop the run. A run that already reached its terminal event is left as is."""
        if self.terminal is None and not self._cancelled:
            self._cancelled = True
        self._events.close()

    def __enter__(self) -> "StageRun":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.cancel()


class InsightPipeline:
    """
    Orchestrates prompt assembly, streaming generation, accumulation and extraction.

    The pipeline object holds no per-request state; every call to stream()
    creates its own accumulator, so one instance can serve concurrent requests.
    """

    def __init__(self, provider: GenerationProvider, project_root: str = "."):
        """
        Initialize the pipeline.

        Args:
            provider: Generation provider used for every request
            project_root: Project root for debug traces
        """
        self.provider = provider
        self.project_root = project_root

    def stream(self, request: InsightRequest) -> Iterator[StageEvent]:
        """
        Run one request as a lazy sequence of stage events.

        Args:
            request: The insight request

        Yields:
            Stage events ending with exactly one CompleteEvent or ErrorEvent
        """
        chunks: Optional[Iterator] = None
        terminal_sent = False
        started = time.perf_counter()

        try:
            debug_logger = get_debug_logger(self.project_root)
            _validate_request(request)
            yield AnalyzingEvent(progress=ANALYZING_PROGRESS, message=ANALYZING_MESSAGE)

            framework_id = resolve_framework_id(request.framework)
            prompt = assemble(framework_id, request.text, request.history, request.budget)
            prompt_tokens = estimate_tokens(prompt)
            logger.info(f"Prompt token count (estimated): {prompt_tokens} for framework '{framework_id}'")
            debug_logger.log_llm_request(prompt, framework_id, prompt_tokens)

            yield GeneratingEvent(progress=GENERATING_PROGRESS, message=GENERATING_MESSAGE)

            accumulator = ChunkAccumulator()
            chunks = accumulator.consume(self.provider.generate_stream(prompt))
            for event in chunks:
                yield event

            full_text = accumulator.text
            debug_logger.log_llm_response(full_text, accumulator.chunk_count)
            if not full_text.strip():
                raise ProviderError(EMPTY_RESPONSE_MESSAGE)

            usage = track_token_usage(prompt, full_text)
            latency_ms = (time.perf_counter() - started) * 1000
            logger.info(f"Generation finished in {latency_ms:.0f}ms, total token usage (estimated): {usage.total_tokens}")

            try:
                insight = extract_insight(full_text)
            except ExtractionError as e:
                debug_logger.log_extraction_error(e, full_text)
                raise

            terminal_sent = True
            yield CompleteEvent(progress=COMPLETE_PROGRESS, result=insight)

        except GeneratorExit:
            if not terminal_sent:
                logger.info("Insight pipeline cancelled by consumer")
            raise
        except Exception as e:
            logger.error(f"Error in insight pipeline: {e}")
            yield ErrorEvent(error=str(e) or type(e).__name__)
        finally:
            if chunks is not None:
                chunks.close()

    def run(self, request: InsightRequest) -> StageRun:
        """Start a cancellable run for a request."""
        return StageRun(self.stream(request))

    def run_to_completion(self, request: InsightRequest) -> StageEvent:
        """Drain a run and return its terminal event."""
        terminal: Optional[StageEvent] = None
        for event in self.stream(request):
            if event.is_terminal:
                terminal = event
        if terminal is None:
            raise RuntimeError("Stage sequence ended without a terminal event")
        return terminal

    def generate_insight(self, request: InsightRequest) -> StructuredInsight:
        """
        Produce an insight with a single non-streaming provider call.

        Unlike stream(), failures are raised to the caller.

        Raises:
            InputValidationError: If the request text is blank
            ProviderError: If generation fails or returns nothing
            ExtractionError: If the response has no well-formed insight
        """
        _validate_request(request)
        framework_id = resolve_framework_id(request.framework)
        prompt = assemble(framework_id, request.text, request.history, request.budget)
        started = time.perf_counter()
        response = self.provider.generate(prompt)
        latency_ms = (time.perf_counter() - started) * 1000

        if not response or not response.strip():
            raise ProviderError(EMPTY_RESPONSE_MESSAGE)

        usage = track_token_usage(prompt, response)
        logger.info(f"API call latency: {latency_ms:.0f}ms, total token usage (estimated): {usage.total_tokens}")
        return extract_insight(response)


def stream_insight(request: InsightRequest, provider: GenerationProvider, project_root: str = ".") -> Iterator[StageEvent]:
    """Convenience function: run one request through a fresh pipeline."""
    return InsightPipeline(provider, project_root).stream(request)
