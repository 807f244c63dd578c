"""
Configuration management for the Insight Distiller.

This module handles environment variables, API keys, and model configurations
using python-dotenv for explicit, project-scoped .env loading. No implicit loading occurs at import time.
"""

import logging
import os
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv
from openai import OpenAI

logger = logging.getLogger(__name__)


class ConfigError(Exception):
    """Raised when configuration is invalid or missing."""

    pass


@lru_cache(maxsize=32)
def load_config(env_path: Optional[str] = None, override: bool = False) -> None:
    """Explicitly load environment variables from the given .env file path.

    Does nothing when env_path is None.
    """
    if env_path:
        load_dotenv(dotenv_path=env_path, override=override)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid {name} value: {raw}. Using {default} as default.")
        return default


class Config:
    """Configuration settings for the Insight Distiller."""

    @property
    def openai_api_key(self) -> str:
        """Get OpenAI API key from environment."""
        key = os.getenv("OPENAI_API_KEY")
        if not key:
            raise ConfigError("OPENAI_API_KEY not found in environment. Please set it in your environment or .env file.")
        return key

    @property
    def llm_model(self) -> str:
        """Get the generation model name (default: gpt-4o-mini)."""
        return os.getenv("LLM_MODEL", "gpt-4o-mini")

    @property
    def is_reasoning_model(self) -> bool:
        """Check if the configured model is a reasoning model (default: False)."""
        value = os.getenv("IS_REASONING_MODEL", "false").lower()
        return value in ("true", "1", "yes", "on")

    @property
    def asr_model(self) -> str:
        """Get the model name for ASR (default: whisper-1)."""
        return os.getenv("ASR_MODEL", "whisper-1")

    @property
    def openai_timeout(self) -> int:
        """Get OpenAI API timeout in seconds (default: 60)."""
        return _env_int("OPENAI_TIMEOUT", 60)

    @property
    def max_retries(self) -> int:
        """Get the OpenAI SDK retry count (default: 0, the pipeline does not retry)."""
        return _env_int("MAX_RETRIES", 0)

    @property
    def model_temperature(self) -> float:
        """Get the sampling temperature for standard models (default: 0.7)."""
        try:
            temp = float(os.getenv("MODEL_TEMPERATURE", "0.7"))
        except (ValueError, TypeError):
            logger.warning("Invalid MODEL_TEMPERATURE format. Using 0.7 as default.")
            return 0.7
        if not (0.0 <= temp <= 2.0):
            logger.warning(f"Invalid MODEL_TEMPERATURE value: {temp}. Using 0.7 as default.")
            return 0.7
        return temp

    @property
    def max_prompt_tokens(self) -> int:
        """Get the default prompt token budget (default: 7000)."""
        return _env_int("MAX_PROMPT_TOKENS", 7000)


# Global config instance
config = Config()

# --- Project-scoped environment helpers ---

DEFAULT_ENV_FILENAME = os.getenv("ID_ENV_FILENAME", ".env")
ENV_FILE_ENV_VARS = ("ID_ENV_FILE", "INSIGHT_DISTIL_ENV_FILE")
PROJECT_ROOT_ENV_VARS = ("ID_PROJECT_ROOT", "INSIGHT_DISTIL_PROJECT_ROOT")
METADATA_DIRNAME = ".insight_distil"


def detect_project_root(start_dir: Optional[str] = None) -> Optional[Path]:
    """Detect project root by looking for a .insight_distil directory upwards from start_dir (or CWD)."""
    start = Path(start_dir) if start_dir else Path.cwd()
    for current in [start] + list(start.parents):
        if (current / METADATA_DIRNAME).exists():
            return current
    return None


def get_project_metadata_dir(project_root: Optional[str] = None) -> Path:
    """Return the .insight_distil directory for a given or detected project root."""
    root = Path(project_root) if project_root else (detect_project_root() or Path.cwd())
    return root / METADATA_DIRNAME


def get_project_env_path(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME) -> Path:
    """Compute the path to the project-scoped environment file inside .insight_distil."""
    return get_project_metadata_dir(project_root) / filename


def load_project_env(project_root: Optional[str] = None, filename: str = DEFAULT_ENV_FILENAME, override: bool = False) -> Optional[str]:
    """
    Load a project-scoped environment file, if available.

    Load order (first match wins):
    1) Explicit env file path via ID_ENV_FILE or INSIGHT_DISTIL_ENV_FILE
    2) <project_root>/.insight_distil/<filename> (default: .env)

    Returns the path loaded, or None if nothing was loaded.
    """
    for var in ENV_FILE_ENV_VARS:
        explicit = os.getenv(var)
        if explicit and Path(explicit).is_file():
            load_config(explicit, override=override)
            return explicit

    if project_root is None:
        for var in PROJECT_ROOT_ENV_VARS:
            if os.getenv(var):
                project_root = os.getenv(var)
                break
    if project_root is None:
        detected = detect_project_root()
        project_root = str(detected) if detected else None

    if project_root:
        env_path = get_project_env_path(project_root, filename)
        if env_path.exists():
            load_config(str(env_path), override=override)
            return str(env_path)

    return None


@lru_cache(maxsize=1)
def get_client() -> OpenAI:
    """
    Get configured OpenAI client with timeout and retry settings.

    If OPENAI_API_KEY is missing, attempts to load a project-scoped env first:
    ID_ENV_FILE → <project>/.insight_distil/.env

    Returns:
        OpenAI client instance

    Raises:
        ConfigError: If API key is not configured after project env lookup
    """
    if not os.getenv("OPENAI_API_KEY"):
        loaded_path = load_project_env()
        if not os.getenv("OPENAI_API_KEY"):
            where = loaded_path or f"{METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}"
            raise ConfigError(
                f"OPENAI_API_KEY not found in environment. Looked for project env at {where}. "
                f"Set it via environment, ID_ENV_FILE, or place it under {METADATA_DIRNAME}/{DEFAULT_ENV_FILENAME}."
            )
    try:
        return OpenAI(
            api_key=config.openai_api_key,
            timeout=config.openai_timeout,
            max_retries=config.max_retries,
        )
    except Exception as e:
        raise ConfigError(f"Failed to create OpenAI client: {e}")


def validate_config() -> None:
    """
    Validate that all required configuration is present.

    Raises:
        ConfigError: If required configuration is missing
    """
    _ = get_client()
