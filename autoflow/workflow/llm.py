"""
LLM integration for autoflow plan generation.

Three backends share one async call shape, ``complete(prompt, model=...)``:
a local Ollama server, any OpenAI-compatible API, and Google Gemini over
REST. Every transport failure surfaces as an LLMError whose ``kind`` says
whether it was an auth problem, an exhausted quota, a temporarily
unavailable backend, or something else.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Any, Protocol

import httpx

if TYPE_CHECKING:
    from autoflow.runtime import RuntimeConfig


DEFAULT_MODEL = "qwen3:4b"
DEFAULT_GEMINI_MODEL = "gemini-2.5-flash"
GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"

ERROR_KINDS = ("auth", "quota", "unavailable", "other")

_UNAVAILABLE_STATUS = {502, 503, 504, 529}
_UNAVAILABLE_MARKERS = ("overloaded", "503", "unavailable", "try again later")


@dataclass
class LLMResponse:
    """Response from an LLM call."""

    content: str
    model: str
    raw_response: Any = None


class LLMError(Exception):
    """Error from LLM call."""

    def __init__(self, message: str, *, kind: str = "other", status_code: int | None = None):
        super().__init__(message)
        self.kind = kind if kind in ERROR_KINDS else "other"
        self.status_code = status_code


class ReasoningBackend(Protocol):
    provider: str
    model: str

    async def complete(self, prompt: str, *, model: str | None = None) -> LLMResponse: ...


def classify_error(status_code: int | None, message: str) -> str:
    """Map an HTTP status and/or error text onto an LLMError kind."""
    text = message.lower()

    if status_code in (401, 403) or "api key" in text or "unauthorized" in text:
        return "auth"
    if "quota" in text or "resource_exhausted" in text:
        return "quota"
    if status_code in _UNAVAILABLE_STATUS or any(m in text for m in _UNAVAILABLE_MARKERS):
        return "unavailable"
    if status_code == 429:
        return "quota"
    return "other"


def _raise_for_status(response: httpx.Response, provider: str) -> None:
    if response.status_code < 400:
        return
    body = response.text[:500]
    raise LLMError(
        f"{provider} API error {response.status_code}: {body}",
        kind=classify_error(response.status_code, body),
        status_code=response.status_code,
    )


def _transport_error(provider: str, e: Exception) -> LLMError:
    if isinstance(e, (httpx.ConnectError, httpx.TimeoutException)):
        return LLMError(f"{provider} unavailable: {e}", kind="unavailable")
    return LLMError(f"{provider} error: {e}", kind=classify_error(None, str(e)))


class OllamaClient:
    """Client for local Ollama LLM."""

    provider = "ollama"

    def __init__(self, model: str = DEFAULT_MODEL, host: str | None = None):
        self.model = model
        self.host = host

    async def complete(self, prompt: str, *, model: str | None = None) -> LLMResponse:
        """Send a single-turn prompt to Ollama."""
        try:
            from ollama import AsyncClient, ResponseError
        except ImportError:
            raise LLMError(
                "Ollama package not installed. Install with: pip install ollama\n"
                "Also ensure Ollama is running: ollama serve"
            )

        model = model or self.model

        try:
            client = AsyncClient(host=self.host)
            response = await client.chat(
                model=model,
                messages=[{"role": "user", "content": prompt}],
                format="json",
                think=False,
            )
        except ResponseError as e:
            raise LLMError(
                f"Ollama error: {e.error}",
                kind=classify_error(e.status_code, e.error),
                status_code=e.status_code,
            ) from e
        except (ConnectionError, httpx.HTTPError) as e:
            # The ollama client raises ConnectionError when the server is down
            raise LLMError(f"Ollama unavailable: {e}", kind="unavailable") from e

        return LLMResponse(
            content=response.message.content or "",
            model=model,
            raw_response=response,
        )


class OpenAICompatibleClient:
    """Client for OpenAI-compatible APIs."""

    provider = "openai-compatible"

    def __init__(self, base_url: str, api_key: str, model: str = "gpt-4o-mini", timeout: float = 120.0):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.model = model
        self.timeout = timeout

    async def complete(self, prompt: str, *, model: str | None = None) -> LLMResponse:
        """Send a chat completion request with JSON output mode."""
        model = model or self.model

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/v1/chat/completions",
                    headers={
                        "Authorization": f"Bearer {self.api_key}",
                        "Content-Type": "application/json",
                    },
                    json={
                        "model": model,
                        "messages": [{"role": "user", "content": prompt}],
                        "response_format": {"type": "json_object"},
                    },
                )
        except httpx.HTTPError as e:
            raise _transport_error("API", e) from e

        _raise_for_status(response, "API")
        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"API returned a non-JSON body: {e}") from e
        try:
            content = data["choices"][0]["message"]["content"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected API response shape: {e}") from e

        return LLMResponse(content=content or "", model=model, raw_response=data)


class GeminiClient:
    """Client for the Gemini generateContent REST endpoint."""

    provider = "gemini"

    def __init__(
        self,
        api_key: str,
        model: str = DEFAULT_GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        timeout: float = 120.0,
    ):
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    async def complete(self, prompt: str, *, model: str | None = None) -> LLMResponse:
        """Generate content for a single text prompt."""
        model = model or self.model

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(
                    f"{self.base_url}/v1beta/models/{model}:generateContent",
                    headers={"x-goog-api-key": self.api_key},
                    json={"contents": [{"parts": [{"text": prompt}]}]},
                )
        except httpx.HTTPError as e:
            raise _transport_error("Gemini", e) from e

        _raise_for_status(response, "Gemini")
        try:
            data = response.json()
        except ValueError as e:
            raise LLMError(f"Gemini returned a non-JSON body: {e}") from e
        try:
            parts = data["candidates"][0]["content"]["parts"]
        except (KeyError, IndexError, TypeError) as e:
            raise LLMError(f"Unexpected Gemini response shape: {e}") from e

        content = "".join(p.get("text", "") for p in parts)
        return LLMResponse(content=content, model=model, raw_response=data)


def get_llm_client(config: RuntimeConfig) -> ReasoningBackend:
    """Get the appropriate LLM client based on configuration."""
    # Custom API endpoint (OpenAI-compatible) wins when fully configured
    if config.llm_base_url and config.llm_api_key:
        return OpenAICompatibleClient(
            config.llm_base_url,
            config.llm_api_key,
            model=config.model or "gpt-4o-mini",
        )

    if config.gemini_api_key:
        return GeminiClient(config.gemini_api_key, model=config.model or DEFAULT_GEMINI_MODEL)

    # Default to Ollama
    return OllamaClient(model=config.model or DEFAULT_MODEL, host=config.ollama_host)
