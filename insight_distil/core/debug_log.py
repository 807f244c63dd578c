"""
Debug logging module for detailed pipeline tracing.

This module writes the prompts sent to the generation provider, the raw
accumulated responses, and extraction failures as JSON files. Logs are
stored in a dedicated subfolder of the .insight_distil metadata directory.
The timer decorator prints the latency of decorated stages.
"""

import functools
import json
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, Optional, ParamSpec, TypeVar

from .config import METADATA_DIRNAME


def is_debug_enabled() -> bool:
    """
    Check if debug logging is enabled via environment variable.

    Returns:
        True if ID_DEBUG=1 is set
    """
    return os.getenv("ID_DEBUG", "0") == "1"


P = ParamSpec("P")
R = TypeVar("R")


def timer(func: Callable[P, R]) -> Callable[P, R]:
    """
    Decorator that prints execution time when ID_DEBUG=1.

    The flag is read on every call, so enabling debug after import (the
    CLI --debug option) still takes effect.
    """

    @functools.wraps(func)
    def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        if not is_debug_enabled():
            return func(*args, **kwargs)
        start_time = time.perf_counter()
        result = func(*args, **kwargs)
        elapsed_ms = (time.perf_counter() - start_time) * 1000
        print(f"[ID_DEBUG] {func.__name__}: {elapsed_ms:.2f}ms")
        return result

    return wrapper


class DebugLogger:
    """
    Handles detailed debug logging for pipeline runs.

    Logs are stored in {project_root}/.insight_distil/debug/ directory with
    timestamps and session identifiers for easy tracking.
    """

    def __init__(self, project_root: str = ".", enabled: Optional[bool] = None):
        """
        Initialize debug logger.

        Args:
            project_root: Project root directory for log storage
            enabled: Override debug enable flag, uses ID_DEBUG env var if None
        """
        self.project_root = project_root
        self.enabled = enabled if enabled is not None else is_debug_enabled()
        self.session_id = datetime.now().strftime("%Y%m%d_%H%M%S")

        if self.enabled:
            self._setup_log_directory()

    def _setup_log_directory(self) -> None:
        """Create debug log directory structure."""
        self.log_dir = Path(self.project_root) / METADATA_DIRNAME / "debug"
        self.log_dir.mkdir(parents=True, exist_ok=True)

        self.session_dir = self.log_dir / f"session_{self.session_id}"
        self.session_dir.mkdir(exist_ok=True)

    def is_enabled(self) -> bool:
        """Check if debug logging is enabled."""
        return self.enabled

    def _write(self, step: str, payload: Dict[str, Any]) -> Optional[Path]:
        if not self.enabled:
            return None

        timestamp = datetime.now().isoformat()
        log_data = {"timestamp": timestamp, "session_id": self.session_id, "step": step}
        log_data.update(payload)

        filename = f"{step}_{timestamp.replace(':', '-').replace('.', '_')}.json"
        log_file = self.session_dir / filename

        with open(log_file, "w", encoding="utf-8") as f:
            json.dump(log_data, f, indent=2, ensure_ascii=False, default=str)
        return log_file

    def log_llm_request(self, prompt: str, framework: str, estimated_tokens: int) -> Optional[Path]:
        """
        Log the assembled prompt sent to the generation provider.

        Args:
            prompt: Full prompt text
            framework: Resolved framework identifier
            estimated_tokens: Estimated prompt token count
        """
        return self._write(
            "llm_request",
            {"type": "request", "prompt": prompt, "framework": framework, "estimated_tokens": estimated_tokens},
        )

    def log_llm_response(self, response_content: str, chunk_count: int) -> Optional[Path]:
        """
        Log the full accumulated response.

        Args:
            response_content: Concatenated streamed text
            chunk_count: Number of deltas received
        """
        return self._write(
            "llm_response",
            {
                "type": "response",
                "response_content": response_content,
                "response_length": len(response_content),
                "chunk_count": chunk_count,
            },
        )

    def log_extraction_error(self, error: Exception, raw_text: str) -> Optional[Path]:
        """
        Log detailed information about an extraction failure.

        Args:
            error: The exception that occurred
            raw_text: The accumulated text that failed extraction
        """
        return self._write(
            "extraction_error",
            {
                "type": "extraction_error",
                "error": str(error),
                "error_type": type(error).__name__,
                "raw_text": raw_text,
            },
        )


# Global debug logger instance
_debug_logger: Optional[DebugLogger] = None


def get_debug_logger(project_root: str = ".") -> DebugLogger:
    """
    Get or create global debug logger instance.

    Args:
        project_root: Project root directory

    Returns:
        DebugLogger instance
    """
    global _debug_logger
    if _debug_logger is None or _debug_logger.project_root != project_root or _debug_logger.enabled != is_debug_enabled():
        _debug_logger = DebugLogger(project_root)
    return _debug_logger
