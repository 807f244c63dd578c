"""
Main CLI interface for the Insight Distiller.

This module provides the Typer-based command-line interface with commands for:
- Text-based reflection with live streamed output
- Audio file processing with Whisper
- Listing conversational frameworks
- Previewing the budgeted prompt
"""

import json
import logging
import os
import sys
from pathlib import Path
from typing import List, Optional

import pyperclip
import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markdown import Markdown
from rich.panel import Panel
from rich.syntax import Syntax
from rich.table import Table

from .core.budget import assemble, estimate_tokens
from .core.config import ConfigError, config, validate_config
from .core.extract import ExtractionError
from .core.frameworks import get_framework, list_frameworks, resolve_framework_id
from .core.llm_handler import ProviderError, get_generation_provider
from .core.pipeline import InsightPipeline
from .core.progress import reporter
from .core.speech import SpeechProcessor
from .core.types import CompleteEvent, ErrorEvent, InputValidationError, InsightRequest, Message, StageEvent, StructuredInsight, TokenBudget

app = typer.Typer(
    name="insight-distil",
    help="Insight Distiller CLI - Turn free-form thoughts into a summary and reflective questions",
    no_args_is_help=True,
)

console = Console()
logger = logging.getLogger(__name__)


def _set_debug(debug: bool) -> None:
    """CLI flag always overrides .env."""
    if debug:
        os.environ["ID_DEBUG"] = "1"
        logging.basicConfig(level=logging.INFO)
    elif os.environ.get("ID_DEBUG") != "1":
        os.environ["ID_DEBUG"] = "0"


def _read_text_input(text: Optional[str], file: Optional[str]) -> str:
    if text and file:
        raise InputValidationError("Cannot specify both --text and --file options")
    if not text and not file:
        raise InputValidationError("Must specify either --text or --file option")
    if file:
        file_path = Path(file)
        if not file_path.exists():
            raise InputValidationError(f"File not found: {file}")
        try:
            return file_path.read_text(encoding="utf-8")
        except UnicodeDecodeError as e:
            raise InputValidationError(f"Input file is not valid UTF-8 text: {file} ({e})")
    assert text is not None
    return text


def _load_history(history_file: Optional[str]) -> List[Message]:
    """Load conversation history from a JSON list of {role, content} objects."""
    if not history_file:
        return []
    path = Path(history_file)
    if not path.exists():
        raise InputValidationError(f"History file not found: {history_file}")
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        if not isinstance(data, list):
            raise InputValidationError("History file must contain a JSON list of messages")
        return [Message.model_validate(item) for item in data]
    except (json.JSONDecodeError, UnicodeDecodeError, ValidationError) as e:
        raise InputValidationError(f"Invalid history file '{history_file}': {e}")


def _build_request(
    text: str, framework: str, history_file: Optional[str], max_tokens: Optional[int], preserve_instructions: bool, preserve_context: bool
) -> InsightRequest:
    budget = TokenBudget(
        max_tokens=max_tokens or config.max_prompt_tokens,
        preserve_instructions=preserve_instructions,
        preserve_context=preserve_context,
    )
    return InsightRequest(text=text, framework=framework, history=_load_history(history_file), budget=budget)


def _copy_to_clipboard(insight: StructuredInsight) -> None:
    lines = [insight.summary, ""]
    lines.extend(f"- {question}" for question in insight.questions)
    try:
        pyperclip.copy("\n".join(lines))
    except pyperclip.PyperclipException as e:
        logger.warning(f"Clipboard copy failed: {e}")


def _display_insight(insight: StructuredInsight, framework: str, copy: bool) -> None:
    """Display the final insight with rich formatting."""
    console.print(f"\n[bold green]Insight ({get_framework(framework).name}):[/bold green]")
    console.print(Panel(Markdown(insight.summary), border_style="green"))

    if insight.questions:
        console.print("\n[bold blue]Questions to consider:[/bold blue]")
        for i, question in enumerate(insight.questions, 1):
            console.print(f"  {i}. {question}")
    else:
        console.print("\n[dim]No follow-up questions were generated.[/dim]")

    if copy:
        _copy_to_clipboard(insight)


def _print_json(payload: dict) -> None:
    console.print(json.dumps(payload, ensure_ascii=False), markup=False, highlight=False, soft_wrap=True)


def _run_request(request: InsightRequest, output_format: str, stream: bool, copy: bool, project_root: str) -> None:
    """Run a request through the pipeline and render the outcome. Exits with 1 on failure."""
    validate_config()
    pipeline = InsightPipeline(get_generation_provider(), project_root)

    if not stream:
        with reporter.initialize(console, "Generating insight…"):
            try:
                insight = pipeline.generate_insight(request)
            except (InputValidationError, ProviderError, ExtractionError) as e:
                reporter.stop()
                if output_format == "json":
                    _print_json(ErrorEvent(error=str(e)).to_wire())
                else:
                    console.print(f"[bold red]Error:[/bold red] {e}")
                sys.exit(1)
            reporter.complete_step("Generated insight")
        if output_format == "json":
            _print_json(insight.model_dump())
        else:
            _display_insight(insight, request.framework, copy)
        return

    terminal: Optional[StageEvent] = None
    if output_format == "json":
        for event in pipeline.stream(request):
            _print_json(event.to_wire())
            if event.is_terminal:
                terminal = event
    else:
        with reporter.initialize(console, "Validating input…"):
            for event in pipeline.stream(request):
                if event.is_terminal:
                    terminal = event
                else:
                    reporter.report(event)
            reporter.stop()

        if isinstance(terminal, CompleteEvent):
            _display_insight(terminal.result, request.framework, copy)
        elif isinstance(terminal, ErrorEvent):
            console.print(f"[bold red]Error:[/bold red] {terminal.error}")

    if not isinstance(terminal, CompleteEvent):
        sys.exit(1)


@app.command()
def reflect(
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Text to reflect on"),
    file: Optional[str] = typer.Option(None, "--file", help="Path to file containing the text"),
    framework: str = typer.Option("default", "--framework", "-F", help="Conversational framework (see 'frameworks')"),
    history: Optional[str] = typer.Option(None, "--history", help="JSON file with prior conversation [{role, content}, ...]"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", min=1, help="Prompt token budget (default: MAX_PROMPT_TOKENS)"),
    preserve_instructions: bool = typer.Option(True, "--preserve-instructions/--summarize-instructions", help="Keep instructions verbatim when trimming"),
    preserve_context: bool = typer.Option(True, "--preserve-context/--summarize-context", help="Keep context verbatim when it fits"),
    output_format: str = typer.Option("rich", "--format", "-f", help="Output format (rich, json)"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream the response as it is generated"),
    copy: bool = typer.Option(False, "--copy/--no-copy", help="Copy the insight to the clipboard"),
    project_root: str = typer.Option(".", "--project-root", help="Project root for .insight_distil env and debug logs"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug traces under .insight_distil/debug"),
):
    """
    Reflect on a piece of text: stream a summary and reflective questions.

    Examples:
        insight-distil reflect --text "I feel stuck at work" --framework cognitive
        insight-distil reflect --file journal.txt --framework socratic --format json
        insight-distil reflect --text "I tried that" --history conversation.json --max-tokens 2000
    """
    try:
        _set_debug(debug)
        user_text = _read_text_input(text, file)
        request = _build_request(user_text, framework, history, max_tokens, preserve_instructions, preserve_context)
        _run_request(request, output_format, stream, copy, project_root)
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)
    except InputValidationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)


@app.command("from-audio")
def from_audio(
    path: str = typer.Argument(..., help="Path to audio file"),
    framework: str = typer.Option("cognitive", "--framework", "-F", help="Conversational framework (see 'frameworks')"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", min=1, help="Prompt token budget (default: MAX_PROMPT_TOKENS)"),
    output_format: str = typer.Option("rich", "--format", "-f", help="Output format (rich, json)"),
    stream: bool = typer.Option(True, "--stream/--no-stream", help="Stream the response as it is generated"),
    copy: bool = typer.Option(False, "--copy/--no-copy", help="Copy the insight to the clipboard"),
    project_root: str = typer.Option(".", "--project-root", help="Project root for .insight_distil env and debug logs"),
    debug: bool = typer.Option(False, "--debug", help="Enable debug traces under .insight_distil/debug"),
):
    """
    Transcribe an audio file with Whisper, then reflect on the transcript.

    Examples:
        insight-distil from-audio voice-note.m4a
        insight-distil from-audio voice-note.wav --framework narrative --format json
    """
    try:
        _set_debug(debug)
        validate_config()

        speech_processor = SpeechProcessor()
        audio_info = speech_processor.get_audio_info(path)
        if output_format != "json":
            console.print(f"[dim]Processing: {audio_info['name']} ({audio_info['size_mb']} MB)[/dim]")

        with reporter.initialize(console, "Transcribing audio with Whisper…"):
            transcript = speech_processor.transcribe(path)
            reporter.complete_step("Transcribed audio")

        if output_format != "json":
            console.print(f"[dim]Transcript ({len(transcript.split())} words):[/dim]")
            console.print(Panel(transcript[:200] + "..." if len(transcript) > 200 else transcript))

        request = _build_request(transcript, framework, None, max_tokens, True, True)
        _run_request(request, output_format, stream, copy, project_root)
    except ConfigError as e:
        console.print(f"[bold red]Configuration Error:[/bold red] {e}")
        sys.exit(1)
    except (InputValidationError, ProviderError) as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)


@app.command()
def frameworks():
    """List the available conversational frameworks."""
    table = Table(title="Frameworks")
    table.add_column("Id", style="cyan")
    table.add_column("Name", style="white")
    table.add_column("Approach", style="dim")

    for item in list_frameworks():
        first_line = item.description.splitlines()[0]
        table.add_row(item.id, item.name, first_line)

    console.print(table)
    console.print("[dim]Unknown ids fall back to reflective questioning.[/dim]")


@app.command()
def budget(
    text: Optional[str] = typer.Option(None, "--text", "-t", help="Text to build the prompt for"),
    file: Optional[str] = typer.Option(None, "--file", help="Path to file containing the text"),
    framework: str = typer.Option("default", "--framework", "-F", help="Conversational framework"),
    history: Optional[str] = typer.Option(None, "--history", help="JSON file with prior conversation"),
    max_tokens: Optional[int] = typer.Option(None, "--max-tokens", min=1, help="Prompt token budget (default: MAX_PROMPT_TOKENS)"),
    preserve_instructions: bool = typer.Option(True, "--preserve-instructions/--summarize-instructions"),
    preserve_context: bool = typer.Option(True, "--preserve-context/--summarize-context"),
):
    """
    Show the budgeted prompt for a text without calling any provider.

    Examples:
        insight-distil budget --text "I feel stuck at work" --max-tokens 150
    """
    try:
        user_text = _read_text_input(text, file)
        request = _build_request(user_text, framework, history, max_tokens, preserve_instructions, preserve_context)
    except InputValidationError as e:
        console.print(f"[bold red]Error:[/bold red] {e}")
        sys.exit(1)

    prompt = assemble(request.framework, request.text, request.history, request.budget)

    stats_table = Table(show_header=False, box=None)
    stats_table.add_column("Key", style="cyan")
    stats_table.add_column("Value", style="white")
    stats_table.add_row("Framework", resolve_framework_id(request.framework))
    stats_table.add_row("Estimated tokens", str(estimate_tokens(prompt)))
    stats_table.add_row("Budget", str(request.budget.max_tokens))

    console.print(Panel(Syntax(prompt, "markdown", theme="monokai", line_numbers=False), border_style="blue"))
    console.print(stats_table)


if __name__ == "__main__":
    app()
