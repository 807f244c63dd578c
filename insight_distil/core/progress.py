"""
Progress reporting for the Insight Distiller CLI.

This module turns stage events into terminal output: a rich status spinner
for the analyzing and generating stages with checkmarks for completed steps,
then the streamed chunks printed as they arrive.
"""

from typing import List, Optional

from rich.console import Console
from rich.status import Status

from .types import AnalyzingEvent, GeneratingEvent, StageEvent, StreamingChunkEvent


class ProgressReporter:
    """
    Progress reporter for status updates with step completion tracking.

    Tracks completed steps and shows checkmarks; switches from the spinner to
    raw streamed text once the first chunk arrives.
    """

    def __init__(self):
        self._status: Optional[Status] = None
        self._console: Optional[Console] = None
        self._completed_steps: List[str] = []
        self._current_step: Optional[str] = None
        self._streaming = False
        self.show_stream = True

    @property
    def completed_steps(self) -> List[str]:
        return list(self._completed_steps)

    def initialize(self, console: Console, initial_message: str = "Starting...", show_stream: bool = True) -> Status:
        """
        Initialize the reporter with a console and create a status object.

        Args:
            console: Rich console instance
            initial_message: Initial status message
            show_stream: Print streamed chunks as they arrive

        Returns:
            Status object that should be used in a context manager
        """
        self._console = console
        self._status = console.status(f"[dim]{initial_message}[/dim]")
        self._completed_steps = []
        self._current_step = initial_message
        self._streaming = False
        self.show_stream = show_stream
        return self._status

    def step(self, message: str) -> None:
        """
        Update the current progress step and mark previous step as completed.

        Args:
            message: Progress step message to display
        """
        if self._status is not None:
            if self._current_step is not None:
                self._completed_steps.append(self._current_step)
                if self._console is not None:
                    self._console.print(f"[green]✓[/green] [dim]{self._current_step}[/dim]")

            self._current_step = message
            self._status.update(f"[dim]{message}[/dim]")

    def complete_step(self, message: Optional[str] = None) -> None:
        """
        Mark the current step as completed without starting a new one.

        Args:
            message: Optional custom completion message
        """
        if self._current_step is not None:
            completion_msg = message or self._current_step
            self._completed_steps.append(completion_msg)
            if self._console is not None:
                self._console.print(f"[green]✓[/green] [dim]{completion_msg}[/dim]")
            self._current_step = None

    def stop(self) -> None:
        """Stop the spinner so plain text can be written."""
        if self._status is not None:
            self._status.stop()

    def report(self, event: StageEvent) -> None:
        """
        Render one non-terminal stage event.

        Terminal events are left to the caller.
        """
        if isinstance(event, (AnalyzingEvent, GeneratingEvent)):
            self.step(event.message)
        elif isinstance(event, StreamingChunkEvent):
            if not self._streaming:
                self._streaming = True
                self.complete_step()
                self.stop()
            if self._console is None or not self.show_stream:
                return
            if event.is_complete:
                self._console.print()
            else:
                self._console.print(event.chunk, end="", markup=False, highlight=False)


# Global reporter instance
reporter = ProgressReporter()
