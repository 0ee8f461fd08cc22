"""
Runtime configuration for autoflow.

Collects backend selection, storage location, cache and timeout settings
into one object that the CLI and web server build once and pass to the
services they construct.

Precedence, lowest to highest: dataclass defaults, AUTOFLOW_* environment
variables, explicit arguments to get_runtime_config.
"""

from __future__ import annotations

import os
from dataclasses import dataclass


DEFAULT_DB_PATH = "data/autoflow.db"
DEFAULT_STEP_TIMEOUT = 30.0
DEFAULT_CACHE_TTL = 86400
MAX_REQUEST_LENGTH = 2000


@dataclass
class RuntimeConfig:
    """
    Runtime configuration for plan generation and execution.

    Attributes:
        model: Model identifier for the reasoning backend (None = backend default)
        llm_base_url: OpenAI-compatible endpoint; used together with llm_api_key
        llm_api_key: Key for the OpenAI-compatible endpoint
        gemini_api_key: Key for Google Gemini
        ollama_host: Ollama server address (None = library default)
        db_path: SQLite file for executions, workflows and the plan cache
        step_timeout: Seconds to wait for each step handler
        cache_enabled: Whether generated plans are cached by default
        cache_ttl: Lifetime of cached plans in seconds
        verbose: Print debug information
    """

    model: str | None = None

    # Backend selection
    llm_base_url: str | None = None
    llm_api_key: str | None = None
    gemini_api_key: str | None = None
    ollama_host: str | None = None

    # Storage
    db_path: str = DEFAULT_DB_PATH

    # Execution
    step_timeout: float = DEFAULT_STEP_TIMEOUT

    # Plan cache
    cache_enabled: bool = True
    cache_ttl: int = DEFAULT_CACHE_TTL

    # Debug
    verbose: bool = False

    def __post_init__(self):
        if self.step_timeout <= 0:
            raise ValueError(f"step_timeout must be positive, got {self.step_timeout}")
        if self.cache_ttl <= 0:
            raise ValueError(f"cache_ttl must be positive, got {self.cache_ttl}")

    @property
    def provider(self) -> str:
        if self.llm_base_url and self.llm_api_key:
            return "openai-compatible"
        if self.gemini_api_key:
            return "gemini"
        return "ollama"


def _env_flag(value: str) -> bool:
    return value.strip().lower() in ("1", "true", "yes", "on")


def _from_environment() -> dict:
    env = os.environ
    values: dict = {}

    if env.get("AUTOFLOW_MODEL"):
        values["model"] = env["AUTOFLOW_MODEL"]
    if env.get("AUTOFLOW_LLM_BASE_URL"):
        values["llm_base_url"] = env["AUTOFLOW_LLM_BASE_URL"]
    if env.get("AUTOFLOW_LLM_API_KEY"):
        values["llm_api_key"] = env["AUTOFLOW_LLM_API_KEY"]
    if env.get("GEMINI_API_KEY"):
        values["gemini_api_key"] = env["GEMINI_API_KEY"]
    if env.get("OLLAMA_HOST"):
        values["ollama_host"] = env["OLLAMA_HOST"]
    if env.get("AUTOFLOW_DB_PATH"):
        values["db_path"] = env["AUTOFLOW_DB_PATH"]
    if env.get("AUTOFLOW_STEP_TIMEOUT"):
        values["step_timeout"] = float(env["AUTOFLOW_STEP_TIMEOUT"])
    if env.get("AUTOFLOW_CACHE_TTL"):
        values["cache_ttl"] = int(env["AUTOFLOW_CACHE_TTL"])
    if env.get("AUTOFLOW_CACHE"):
        values["cache_enabled"] = _env_flag(env["AUTOFLOW_CACHE"])

    return values


def get_runtime_config(
    model: str | None = None,
    db_path: str | None = None,
    step_timeout: float | None = None,
    cache_enabled: bool | None = None,
    cache_ttl: int | None = None,
    verbose: bool = False,
) -> RuntimeConfig:
    """
    Create a runtime configuration from defaults, environment and overrides.

    Args:
        model: Override the model identifier
        db_path: Override the database path
        step_timeout: Override the per-step timeout (seconds)
        cache_enabled: Override whether plans are cached
        cache_ttl: Override the cache lifetime (seconds)
        verbose: Enable verbose output

    Returns:
        Configured RuntimeConfig instance

    Raises:
        ValueError: If an environment variable holds an unparseable number
    """
    values = _from_environment()

    overrides = {
        "model": model,
        "db_path": db_path,
        "step_timeout": step_timeout,
        "cache_enabled": cache_enabled,
        "cache_ttl": cache_ttl,
    }
    values.update({k: v for k, v in overrides.items() if v is not None})
    values["verbose"] = verbose

    return RuntimeConfig(**values)
