"""
Type definitions for the Insight Distiller.

This module defines the data structures that flow through the staged pipeline:
the request, the token budget, the prompt sections, the structured insight,
and the stage events streamed back to the caller.
"""

from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, field_validator


class InputValidationError(Exception):
    """Raised when request or audio input is malformed before any provider call."""

    pass


class Message(BaseModel):
    """One turn of prior conversation history."""

    role: Literal["user", "assistant"] = Field(..., description="Speaker of the message")
    content: str = Field(..., description="Message text")


class TokenBudget(BaseModel):
    """
    Token budget configuration for prompt assembly.

    Attributes:
        max_tokens: Approximate upper bound on the prompt size
        preserve_instructions: Keep the instructions section verbatim when trimming
        preserve_context: Keep the context section verbatim when it fits
        min_context_tokens: Remaining budget required before any context is included
    """

    max_tokens: int = Field(default=7000, ge=1, description="Maximum estimated prompt tokens")
    preserve_instructions: bool = Field(default=True, description="Keep instructions verbatim")
    preserve_context: bool = Field(default=True, description="Keep context verbatim when it fits")
    min_context_tokens: int = Field(default=200, ge=0, description="Minimal room needed to include context")


class PromptSections(BaseModel):
    """Decomposition of a full prompt for budgeting purposes."""

    instructions: str = ""
    context: str = ""
    user_input: str = ""

    def render(self) -> str:
        """Concatenate the sections back into a single prompt."""
        return join_sections([self.instructions, self.context, self.user_input])


def join_sections(parts: List[str]) -> str:
    """Join prompt parts, inserting a newline only where a part does not already end with one."""
    result = ""
    for part in parts:
        if not part:
            continue
        if result and not result.endswith("\n"):
            result += "\n"
        result += part
    return result


class Framework(BaseModel):
    """
    A conversational framework used to frame the prompt.

    Attributes:
        id: Symbolic identifier (e.g. "socratic")
        name: Human-readable name used inline in prompts
        description: Descriptive text fragment inserted into prompts
    """

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    description: str


class StructuredInsight(BaseModel):
    """
    Final parsed result of a pipeline run.

    Validation is strict: the summary must be a non-blank string and the
    questions must be a list of strings, never a scalar.
    """

    model_config = ConfigDict(strict=True)

    summary: str = Field(..., description="Narrative summary")
    questions: List[str] = Field(default=..., description="Reflective follow-up questions")

    @field_validator("summary")
    @classmethod
    def _summary_not_blank(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("summary must not be empty")
        return value


class TokenUsage(BaseModel):
    """Estimated token usage of a single generation call."""

    prompt_tokens: int
    response_tokens: int
    total_tokens: int


class InsightRequest(BaseModel):
    """
    A single staged insight request.

    Attributes:
        text: Raw user text or transcript
        framework: Framework identifier, unknown ids fall back to the default framing
        history: Prior conversation turns, oldest first
        budget: Token budget applied to the assembled prompt
    """

    text: str = Field(..., description="Raw text or transcript")
    framework: str = Field(default="default", description="Framework identifier")
    history: List[Message] = Field(default_factory=list, description="Prior conversation history")
    budget: TokenBudget = Field(default_factory=TokenBudget, description="Prompt token budget")


# --- Stage events ---


class StageEvent(BaseModel):
    """Base class for every event emitted by the stage sequencer."""

    model_config = ConfigDict(populate_by_name=True)

    type: str

    @property
    def is_terminal(self) -> bool:
        return self.type in ("complete", "error")

    def to_wire(self) -> Dict[str, Any]:
        """Return the JSON-ready dict observed by downstream callers."""
        return self.model_dump(mode="json", by_alias=True)


class AnalyzingEvent(StageEvent):
    type: Literal["analyzing"] = "analyzing"
    progress: Optional[int] = None
    message: str


class GeneratingEvent(StageEvent):
    type: Literal["generating"] = "generating"
    progress: int
    message: str


class StreamingChunkEvent(StageEvent):
    type: Literal["streaming_summary"] = "streaming_summary"
    chunk: str
    is_complete: bool = Field(default=False, alias="isComplete")


class CompleteEvent(StageEvent):
    type: Literal["complete"] = "complete"
    progress: int
    result: StructuredInsight


class ErrorEvent(StageEvent):
    type: Literal["error"] = "error"
    error: str


AnyStageEvent = Annotated[
    Union[AnalyzingEvent, GeneratingEvent, StreamingChunkEvent, CompleteEvent, ErrorEvent],
    Field(discriminator="type"),
]

_stage_event_adapter: TypeAdapter = TypeAdapter(AnyStageEvent)

# Older clients used these names for the same variants
_LEGACY_EVENT_TYPES = {"thinking": "analyzing", "streaming": "streaming_summary"}


def parse_stage_event(data: Dict[str, Any]) -> StageEvent:
    """
    Validate a wire dict back into the matching stage event.

    Args:
        data: Dict with a ``type`` discriminator

    Returns:
        The concrete StageEvent instance

    Raises:
        pydantic.ValidationError: If the dict does not match any variant
    """
    payload = dict(data)
    event_type = payload.get("type")
    if event_type in _LEGACY_EVENT_TYPES:
        payload["type"] = _LEGACY_EVENT_TYPES[event_type]
        if payload["type"] == "streaming_summary":
            payload.setdefault("isComplete", False)
    return _stage_event_adapter.validate_python(payload)
