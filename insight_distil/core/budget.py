"""
Prompt assembly and token budgeting.

This module renders the framework prompt templates into tagged sections
(instructions, context, user input) and trims a prompt to fit a token budget.
Token counts are estimated with a fixed four-characters-per-token heuristic
that is used consistently wherever a limit is checked.

The budget policy, applied only when the full prompt does not fit:

1. instructions are kept verbatim, or summarized when not preserved;
2. context is included when the remaining budget exceeds a minimal
   threshold, verbatim when preserved and fitting, summarized otherwise;
3. the user input is appended verbatim or summarized, whichever fits first.

Summarization is mechanical: sections longer than eight lines keep their
first and last three lines around a marker line.
"""

import logging
import math
from typing import List, Optional, Sequence

from .debug_log import timer
from .frameworks import get_framework
from .types import Message, PromptSections, TokenBudget, TokenUsage, join_sections

logger = logging.getLogger(__name__)

CHARS_PER_TOKEN = 4
SUMMARY_MARKER = "[Content summarized to reduce token usage]"
SUMMARY_MAX_LINES = 8
SUMMARY_KEEP_LINES = 3

TRANSCRIPT_MARKER = "Transcribed text:"
HISTORY_MARKER = "Here is the conversation history:"
LATEST_RESPONSE_MARKER = "The user's latest response:"
CONTEXT_MARKERS = (TRANSCRIPT_MARKER, HISTORY_MARKER)

RESPONSE_FORMAT = """Format your response as valid JSON with the following structure:
{
  "summary": "the summary text",
  "questions": ["question 1", "question 2", "question 3"]
}
Respond only with the JSON object."""

INITIAL_INSTRUCTIONS = """You are a skilled thought partner and insight facilitator. Your role is to help people organize their thoughts and uncover deeper insights about what they're experiencing.

Analyze the text below and provide:
1. A concise summary of the main points, using the person's own language where possible
2. 2-3 open-ended, reflective questions based on the summary

{framework_description}

{response_format}

"""

CONTINUATION_INSTRUCTIONS = """You are having a conversation with a content creator using the {framework_name} approach.

Based on the conversation history and the user's latest response, please:
1. Acknowledge and synthesize the user's response
2. Generate 2-3 new reflective questions based on the ongoing conversation, following the principles of {framework_name}

{framework_description}

{response_format}

"""


def estimate_tokens(text: Optional[str]) -> int:
    """Estimate the token count of a text as ceil(characters / 4)."""
    if not text:
        return 0
    return math.ceil(len(text) / CHARS_PER_TOKEN)


def track_token_usage(prompt: str, response: str) -> TokenUsage:
    """
    Estimate token usage for one generation call.

    Args:
        prompt: Prompt sent to the provider
        response: Full response text

    Returns:
        TokenUsage with prompt, response and total estimates
    """
    prompt_tokens = estimate_tokens(prompt)
    response_tokens = estimate_tokens(response)
    return TokenUsage(prompt_tokens=prompt_tokens, response_tokens=response_tokens, total_tokens=prompt_tokens + response_tokens)


def format_history(history: Sequence[Message]) -> str:
    """Format conversation history as 'User: ...' / 'Assistant: ...' blocks."""
    blocks = []
    for message in history:
        role = "User" if message.role == "user" else "Assistant"
        blocks.append(f"{role}: {message.content}")
    return "\n\n".join(blocks)


def build_sections(framework: Optional[str], user_input: str, history: Optional[Sequence[Message]] = None) -> PromptSections:
    """
    Render the prompt template for a framework into tagged sections.

    Without history the user text is the context of a first analysis. With
    history, the formatted history is the context and the user text is the
    latest response.

    Args:
        framework: Framework identifier, unknown ids use the default framing
        user_input: Raw user text or transcript
        history: Optional prior conversation turns

    Returns:
        PromptSections whose render() is the full prompt
    """
    selected = get_framework(framework)

    if not history:
        instructions = INITIAL_INSTRUCTIONS.format(framework_description=selected.description, response_format=RESPONSE_FORMAT)
        context = f"{TRANSCRIPT_MARKER}\n{user_input}\n"
        return PromptSections(instructions=instructions, context=context, user_input="")

    instructions = CONTINUATION_INSTRUCTIONS.format(
        framework_name=selected.name,
        framework_description=selected.description,
        response_format=RESPONSE_FORMAT,
    )
    context = f"{HISTORY_MARKER}\n{format_history(history)}\n\n"
    latest = f"{LATEST_RESPONSE_MARKER}\n{user_input}\n"
    return PromptSections(instructions=instructions, context=context, user_input=latest)


def summarize_section(section: str) -> str:
    """
    Shorten a section by keeping its first and last three lines.

    Sections of eight lines or fewer are returned unchanged.
    """
    lines = section.split("\n")
    if len(lines) <= SUMMARY_MAX_LINES:
        return section

    first_lines = "\n".join(lines[:SUMMARY_KEEP_LINES])
    last_lines = "\n".join(lines[-SUMMARY_KEEP_LINES:])
    return f"{first_lines}\n\n{SUMMARY_MARKER}\n\n{last_lines}"


def split_sections(prompt: str) -> PromptSections:
    """
    Decompose a rendered prompt into sections.

    The context starts at the first context marker and the user input at the
    latest-response marker. When neither marker is present the prompt is cut
    into three equal line-count thirds, the remainder going to the user input.
    """
    context_positions = [pos for pos in (prompt.find(marker) for marker in CONTEXT_MARKERS) if pos != -1]
    context_start = min(context_positions) if context_positions else -1
    user_start = prompt.find(LATEST_RESPONSE_MARKER, max(context_start, 0))

    if context_start == -1 and user_start == -1:
        lines = prompt.split("\n")
        third = len(lines) // 3
        return PromptSections(
            instructions="\n".join(lines[:third]),
            context="\n".join(lines[third : third * 2]),
            user_input="\n".join(lines[third * 2 :]),
        )

    if context_start == -1:
        return PromptSections(instructions=prompt[:user_start], context="", user_input=prompt[user_start:])

    if user_start == -1:
        return PromptSections(instructions=prompt[:context_start], context=prompt[context_start:], user_input="")

    return PromptSections(
        instructions=prompt[:context_start],
        context=prompt[context_start:user_start],
        user_input=prompt[user_start:],
    )


def apply_budget(sections: PromptSections, budget: TokenBudget) -> str:
    """
    Apply the budget policy to prompt sections.

    Args:
        sections: Sections of a prompt that does not fit the budget
        budget: Token budget configuration

    Returns:
        The trimmed prompt text
    """
    instructions = sections.instructions if budget.preserve_instructions else summarize_section(sections.instructions)
    parts: List[str] = [instructions]
    remaining = budget.max_tokens - estimate_tokens(instructions)

    threshold = min(budget.min_context_tokens, budget.max_tokens // 4)
    if remaining > threshold:
        if budget.preserve_context and estimate_tokens(sections.context) <= remaining:
            context = sections.context
        else:
            context = summarize_section(sections.context)
        parts.append(context)
        remaining -= estimate_tokens(context)
    elif sections.context:
        logger.warning(f"Dropping prompt context: {remaining} tokens left, {threshold} required")

    if sections.user_input:
        if estimate_tokens(sections.user_input) <= remaining:
            parts.append(sections.user_input)
        else:
            shortened = summarize_section(sections.user_input)
            if estimate_tokens(shortened) <= remaining:
                parts.append(shortened)
            else:
                logger.warning(f"Dropping user input section: {estimate_tokens(shortened)} tokens, {remaining} left")

    result = join_sections(parts)
    result_tokens = estimate_tokens(result)
    if result_tokens > budget.max_tokens:
        logger.warning(f"Trimmed prompt still exceeds budget: {result_tokens} > {budget.max_tokens} tokens")
    return result


def fit_prompt(prompt: str, budget: Optional[TokenBudget] = None) -> str:
    """
    Trim an already rendered prompt to fit a token budget.

    A prompt that already fits is returned unchanged.

    Args:
        prompt: Full prompt text
        budget: Token budget, defaults to TokenBudget()

    Returns:
        The prompt, trimmed if necessary
    """
    budget = budget or TokenBudget()
    prompt = prompt or ""
    original_tokens = estimate_tokens(prompt)
    if original_tokens <= budget.max_tokens:
        return prompt

    result = apply_budget(split_sections(prompt), budget)
    logger.info(f"Optimized prompt from {original_tokens} to {estimate_tokens(result)} estimated tokens")
    return result


@timer
def assemble(
    framework: Optional[str],
    user_input: str,
    history: Optional[Sequence[Message]] = None,
    budget: Optional[TokenBudget] = None,
) -> str:
    """
    Build the final prompt for a request and fit it to the budget.

    Sections are tagged while the template is rendered, so trimming does not
    depend on rediscovering markers in the text.

    Args:
        framework: Framework identifier
        user_input: Raw user text or transcript
        history: Optional prior conversation turns
        budget: Token budget, defaults to TokenBudget()

    Returns:
        Prompt text ready for the generation provider
    """
    budget = budget or TokenBudget()
    sections = build_sections(framework, user_input or "", history)
    prompt = sections.render()
    original_tokens = estimate_tokens(prompt)
    if original_tokens <= budget.max_tokens:
        return prompt

    result = apply_budget(sections, budget)
    logger.info(f"Optimized prompt from {original_tokens} to {estimate_tokens(result)} estimated tokens")
    return result
