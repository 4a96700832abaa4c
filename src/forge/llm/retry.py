"""Retry wrapper for transient backend failures."""

import asyncio
import logging
import random
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from forge.llm.client import BackendError, LLMClient, LLMResponse

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff settings."""

    max_attempts: int = 5
    base_delay: float = 3.0  # seconds
    max_delay: float = 60.0
    jitter: float = 2.0

    def __post_init__(self):
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be at least 1, got {self.max_attempts}")

    @classmethod
    def from_config(cls, backend) -> "RetryPolicy":
        return cls(
            max_attempts=backend.max_attempts,
            base_delay=backend.backoff_base,
            max_delay=backend.backoff_max,
            jitter=backend.backoff_jitter,
        )

    def delay_for(self, attempt: int, retry_after: float | None = None, rand: float = 0.0) -> float:
        """Delay before retrying after the given zero-based attempt."""
        if retry_after is not None:
            return min(retry_after, self.max_delay)
        return min(self.base_delay * (2 ** attempt), self.max_delay) + rand * self.jitter


class ResilientLLM:
    """Wraps an LLMClient and retries rate limits, 5xx and connection errors.

    Non-retryable errors propagate on the first attempt. When attempts run out
    the last error is re-raised.
    """

    def __init__(
        self,
        client: LLMClient,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
        rand: Callable[[], float] = random.random,
    ):
        self.client = client
        self.policy = policy or RetryPolicy()
        self._sleep = sleep
        self._rand = rand

    async def complete(self, prompt: str, model: str, **kwargs) -> LLMResponse:
        attempt = 0
        while True:
            try:
                return await self.client.complete(prompt, model, **kwargs)
            except BackendError as e:
                if not e.retryable:
                    raise
                if attempt + 1 >= self.policy.max_attempts:
                    logger.error(f"Backend call to {model} failed after {self.policy.max_attempts} attempts")
                    raise

                delay = self.policy.delay_for(
                    attempt, getattr(e, "retry_after", None), self._rand()
                )
                logger.warning(
                    f"Backend call to {model} failed ({e}); retry {attempt + 1}/"
                    f"{self.policy.max_attempts - 1} in {delay:.1f}s"
                )
                await self._sleep(delay)
            attempt += 1
