"""LLM client module."""
from forge.llm.client import (
    AnthropicLLMClient,
    BackendConnectionError,
    BackendError,
    BackendHTTPError,
    HTTPGenerateClient,
    LLMClient,
    LLMClientFactory,
    LLMResponse,
    OpenAILLMClient,
)
from forge.llm.retry import ResilientLLM, RetryPolicy

__all__ = [
    "AnthropicLLMClient",
    "BackendConnectionError",
    "BackendError",
    "BackendHTTPError",
    "HTTPGenerateClient",
    "LLMClient",
    "LLMClientFactory",
    "LLMResponse",
    "OpenAILLMClient",
    "ResilientLLM",
    "RetryPolicy",
]
