"""LLM clients for the generative backend."""

import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, ClassVar

import httpx

try:
    import anthropic
except ImportError:
    anthropic = None

try:
    import openai
except ImportError:
    openai = None

logger = logging.getLogger(__name__)


@dataclass
class LLMResponse:
    """Response from LLM."""

    content: str
    model: str
    tokens_used: int


class BackendError(Exception):
    """Base exception for generative backend failures."""

    retryable: bool = False


class BackendHTTPError(BackendError):
    """Backend answered with a non-success status."""

    def __init__(self, status_code: int, message: str = "", retry_after: float | None = None):
        self.status_code = status_code
        self.retry_after = retry_after
        super().__init__(f"Backend returned {status_code}: {message}" if message else f"Backend returned {status_code}")

    @property
    def retryable(self) -> bool:  # type: ignore[override]
        return self.status_code == 429 or self.status_code >= 500


class BackendConnectionError(BackendError):
    """Backend could not be reached."""

    retryable = True


def estimate_tokens(text: str) -> int:
    """Rough token estimate (1 token ~ 4 characters)."""
    return (len(text) + 3) // 4


def parse_retry_after(value: str | None) -> float | None:
    """Parse a Retry-After header given in seconds."""
    if not value:
        return None
    try:
        seconds = float(value)
    except ValueError:
        return None
    return seconds if seconds >= 0 else None


class LLMClient(ABC):
    """Abstract client for the generative backend."""

    @abstractmethod
    async def complete(
        self,
        prompt: str,
        model: str,
        system: str | None = None,
        history: list[dict[str, str]] | None = None,
        images: list[str] | None = None,
        mode: str = "builder",
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Send prompt to the backend and get the generated text."""
        pass


class HTTPGenerateClient(LLMClient):
    """Client for a JSON ``/generate`` endpoint.

    The endpoint receives ``{prompt, history, mode, provider, images, systemPrompt}``
    and answers ``{content}``. The model id is sent as ``provider``.
    """

    def __init__(
        self,
        base_url: str,
        endpoint: str = "/generate",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.endpoint = endpoint
        self.timeout = timeout
        self._transport = transport

    @property
    def url(self) -> str:
        return f"{self.base_url}{self.endpoint}"

    async def complete(
        self,
        prompt: str,
        model: str,
        system: str | None = None,
        history: list[dict[str, str]] | None = None,
        images: list[str] | None = None,
        mode: str = "builder",
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """POST the request to the generate endpoint."""
        payload = {
            "prompt": prompt,
            "history": history or [],
            "mode": mode,
            "provider": model,
            "images": images or [],
            "systemPrompt": system or "",
        }

        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.post(self.url, json=payload)
        except httpx.TransportError as e:
            raise BackendConnectionError(f"Could not reach backend at {self.url}: {e}") from e

        if resp.status_code >= 400:
            raise BackendHTTPError(
                resp.status_code,
                self._error_message(resp),
                retry_after=parse_retry_after(resp.headers.get("retry-after")),
            )

        content = self._extract_content(resp)
        tokens = resp.headers.get("x-tokens-used")
        return LLMResponse(
            content=content,
            model=model,
            tokens_used=int(tokens) if tokens and tokens.isdigit() else estimate_tokens(prompt + content),
        )

    def _extract_content(self, resp: httpx.Response) -> str:
        try:
            data: Any = resp.json()
        except ValueError:
            return resp.text
        if isinstance(data, str):
            return data
        if isinstance(data, dict):
            content = data.get("content", "")
            return content if isinstance(content, str) else str(content)
        return resp.text

    def _error_message(self, resp: httpx.Response) -> str:
        try:
            data = resp.json()
        except ValueError:
            return resp.text[:200]
        if isinstance(data, dict):
            return str(data.get("error") or data.get("message") or "")[:200]
        return str(data)[:200]


def _to_chat_messages(history: list[dict[str, str]] | None, prompt: str) -> list[dict[str, str]]:
    """Map conversation history to chat API messages."""
    messages = []
    for msg in history or []:
        role = "assistant" if msg.get("role") == "ai" else "user"
        messages.append({"role": role, "content": msg.get("content", "")})
    messages.append({"role": "user", "content": prompt})
    return messages


class AnthropicLLMClient(LLMClient):
    """Anthropic API client."""

    def __init__(self, api_key: str):
        if anthropic is None:
            raise ImportError("anthropic package is required for AnthropicLLMClient")
        self.api_key = api_key
        self.client = anthropic.AsyncAnthropic(api_key=api_key)

    async def complete(
        self,
        prompt: str,
        model: str,
        system: str | None = None,
        history: list[dict[str, str]] | None = None,
        images: list[str] | None = None,
        mode: str = "builder",
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Call Anthropic API."""
        if images:
            logger.debug(f"Anthropic client ignores {len(images)} image reference(s)")
        kwargs = {
            "model": model,
            "max_tokens": max_tokens,
            "messages": _to_chat_messages(history, prompt),
        }
        if system:
            kwargs["system"] = system

        try:
            response = await self.client.messages.create(**kwargs)
        except anthropic.APIStatusError as e:
            raise BackendHTTPError(
                e.status_code,
                str(e),
                retry_after=parse_retry_after(e.response.headers.get("retry-after")),
            ) from e
        except anthropic.APIConnectionError as e:
            raise BackendConnectionError(str(e)) from e

        return LLMResponse(
            content=response.content[0].text,
            model=model,
            tokens_used=response.usage.input_tokens + response.usage.output_tokens,
        )


class OpenAILLMClient(LLMClient):
    """OpenAI API client."""

    def __init__(self, api_key: str):
        if openai is None:
            raise ImportError("openai package is required for OpenAILLMClient")
        self.api_key = api_key
        self.client = openai.AsyncOpenAI(api_key=api_key)

    async def complete(
        self,
        prompt: str,
        model: str,
        system: str | None = None,
        history: list[dict[str, str]] | None = None,
        images: list[str] | None = None,
        mode: str = "builder",
        max_tokens: int = 4096,
    ) -> LLMResponse:
        """Call OpenAI API."""
        messages = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.extend(_to_chat_messages(history, prompt))

        try:
            response = await self.client.chat.completions.create(
                model=model, max_tokens=max_tokens, messages=messages
            )
        except openai.APIStatusError as e:
            raise BackendHTTPError(
                e.status_code,
                str(e),
                retry_after=parse_retry_after(e.response.headers.get("retry-after")),
            ) from e
        except openai.APIConnectionError as e:
            raise BackendConnectionError(str(e)) from e

        return LLMResponse(
            content=response.choices[0].message.content or "",
            model=model,
            tokens_used=response.usage.total_tokens if response.usage else 0,
        )


class LLMClientFactory:
    """
    Factory for creating LLM clients based on configuration.

    ``http`` talks to a generate endpoint; ``anthropic`` and ``openai`` call the
    vendor SDKs directly and need an API key in the environment.
    """

    # Provider -> (env var, client class)
    SDK_PROVIDERS: ClassVar[dict[str, tuple[str, type]]] = {
        "anthropic": ("ANTHROPIC_API_KEY", AnthropicLLMClient),
        "openai": ("OPENAI_API_KEY", OpenAILLMClient),
    }

    @classmethod
    def create(cls, config) -> LLMClient | None:
        """
        Create an LLM client for ``config.backend``.

        Returns None when an SDK provider is selected but no API key is set.
        """
        backend = config.backend
        provider = backend.provider

        if provider == "http":
            logger.info(f"Using generate endpoint at {backend.base_url}{backend.endpoint}")
            return HTTPGenerateClient(
                backend.base_url,
                endpoint=backend.endpoint,
                timeout=backend.request_timeout,
            )

        if provider not in cls.SDK_PROVIDERS:
            raise ValueError(f"Unknown backend provider: {provider}")

        env_var, client_class = cls.SDK_PROVIDERS[provider]
        env_var = backend.api_key_env or env_var
        api_key = os.getenv(env_var)

        if not api_key:
            logger.warning(f"No API key found for {provider} (set {env_var})")
            return None

        logger.info(f"Using {provider} LLM client")
        return client_class(api_key)

    @classmethod
    def is_available(cls, provider: str) -> bool:
        """Check if a provider can be constructed from the environment."""
        if provider == "http":
            return True
        entry = cls.SDK_PROVIDERS.get(provider)
        return entry is not None and bool(os.getenv(entry[0]))
