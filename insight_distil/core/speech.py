"""
Speech-to-text functionality using OpenAI Whisper.

This module provides the transcription provider used by the audio path. Audio
format and size are validated before any API call; the resulting transcript
is fed to the insight pipeline as plain text.
"""

from pathlib import Path
from typing import Any, Optional, Protocol

from .config import config, get_client
from .llm_handler import ProviderError
from .types import InputValidationError

SUPPORTED_AUDIO_FORMATS = (".mp3", ".mp4", ".mpeg", ".mpga", ".m4a", ".wav", ".webm", ".flac", ".ogg")

# Whisper upload limit
MAX_AUDIO_BYTES = 25 * 1024 * 1024


class SpeechError(ProviderError):
    """Raised when speech processing fails."""

    pass


class TranscriptionProvider(Protocol):
    """Capability interface for audio transcription."""

    def transcribe(self, path: str) -> str: ...


def validate_audio_file(path: str) -> Path:
    """
    Validate an audio file before transcription.

    Args:
        path: Path to the audio file

    Returns:
        The resolved Path

    Raises:
        InputValidationError: If the file is missing, not a file, unsupported, or too large
    """
    audio_path = Path(path)

    if not audio_path.exists():
        raise InputValidationError(f"Audio file not found: {path}")

    if not audio_path.is_file():
        raise InputValidationError(f"Path is not a file: {path}")

    if audio_path.suffix.lower() not in SUPPORTED_AUDIO_FORMATS:
        supported = ", ".join(ext.lstrip(".") for ext in SUPPORTED_AUDIO_FORMATS)
        raise InputValidationError(f"Unsupported audio format. Supported formats: {supported}")

    file_size = audio_path.stat().st_size
    if file_size > MAX_AUDIO_BYTES:
        raise InputValidationError(f"Audio file too large: {file_size / 1024 / 1024:.1f}MB (max: 25MB)")

    return audio_path


class SpeechProcessor:
    """
    Handles speech-to-text conversion using OpenAI Whisper.

    Uses deterministic transcription (temperature 0) with auto language detection.
    """

    def __init__(self, client: Optional[Any] = None):
        self.client = client if client is not None else get_client()
        self.model = config.asr_model

    def transcribe(self, path: str) -> str:
        """
        Transcribe an audio file to text.

        Args:
            path: Path to the audio file

        Returns:
            Transcript text, stripped

        Raises:
            InputValidationError: If the audio file fails validation
            SpeechError: If transcription fails or detects no speech
        """
        audio_path = validate_audio_file(path)

        try:
            with open(audio_path, "rb") as audio_file:
                response = self.client.audio.transcriptions.create(
                    model=self.model,
                    file=audio_file,
                    response_format="verbose_json",
                    temperature=0.0,
                )
        except Exception as e:
            raise SpeechError(f"Transcription failed: {e}") from e

        text = getattr(response, "text", None)
        if text is None:
            text = str(response)
        text = text.strip()

        if not text:
            raise SpeechError("No speech detected in audio file")
        return text

    def get_audio_info(self, path: str) -> dict:
        """
        Get basic information about the audio file.

        Args:
            path: Path to the audio file

        Returns:
            Dictionary with file information
        """
        audio_path = Path(path)

        if not audio_path.exists():
            raise InputValidationError(f"Audio file not found: {path}")

        stat = audio_path.stat()

        return {
            "path": str(audio_path.absolute()),
            "name": audio_path.name,
            "size_bytes": stat.st_size,
            "size_mb": round(stat.st_size / 1024 / 1024, 2),
            "extension": audio_path.suffix.lower(),
            "supported": audio_path.suffix.lower() in SUPPORTED_AUDIO_FORMATS,
        }
