from __future__ import annotations

import asyncio
import logging
import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass

from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .embedder import EmbeddingProvider, ModelInfo, build_provider
from .errors import (
    ConfigurationError,
    DeadlineExceededError,
    TerminalServiceError,
    TransientServiceError,
    ValidationError,
    VectDbError,
)
from .settings import VectDbSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RetryPolicy:
    """Exponential backoff for transient failures.

    max_attempts counts every call, the first one included. The wait after
    attempt n is base_delay * 2**(n-1), capped at max_delay.
    """

    max_attempts: int = 4
    base_delay: float = 0.1
    max_delay: float = 10.0


def _check_deadline(deadline: float | None) -> None:
    if deadline is not None and time.monotonic() >= deadline:
        raise DeadlineExceededError("Deadline expired before the embedding request")


def _check_model(model: str) -> None:
    if not model or not model.strip():
        raise ValidationError("Embedding model name must not be empty")


class EmbeddingAdapter:
    """Retry/backoff wrapper around an EmbeddingProvider."""

    def __init__(
        self,
        provider: EmbeddingProvider,
        *,
        policy: RetryPolicy | None = None,
        sleep: Callable[[float], Awaitable[None]] = asyncio.sleep,
    ):
        self.provider = provider
        self.policy = policy or RetryPolicy()
        self._sleep = sleep

    async def aclose(self) -> None:
        await self.provider.aclose()

    # --- single attempt ---

    async def generate_batch(self, texts: list[str], model: str) -> list[list[float]]:
        _check_model(model)
        if not texts:
            return []
        vectors = await self.provider.embed(list(texts), model)
        if len(vectors) != len(texts):
            raise TerminalServiceError(
                f"Expected {len(texts)} embeddings but got {len(vectors)}"
            )
        return vectors

    async def generate_one(self, text: str, model: str) -> list[float]:
        return (await self.generate_batch([text], model))[0]

    # --- with retry ---

    def _retrying(self, max_attempts: int | None) -> AsyncRetrying:
        attempts = self.policy.max_attempts if max_attempts is None else max_attempts
        if attempts < 1:
            raise ConfigurationError(f"max_attempts must be >= 1 (got {attempts})")
        return AsyncRetrying(
            stop=stop_after_attempt(attempts),
            wait=wait_exponential(multiplier=self.policy.base_delay, max=self.policy.max_delay),
            retry=retry_if_exception_type(TransientServiceError),
            before_sleep=before_sleep_log(logger, logging.WARNING),
            sleep=self._sleep,
            reraise=True,
        )

    async def generate_batch_with_retry(
        self,
        texts: list[str],
        model: str,
        max_attempts: int | None = None,
        *,
        deadline: float | None = None,
    ) -> list[list[float]]:
        """generate_batch, retrying transient failures.

        Terminal failures (model not found, malformed responses) surface on
        the first occurrence. `deadline` is a time.monotonic() value checked
        before every attempt.
        """
        _check_model(model)
        vectors: list[list[float]] = []
        async for attempt in self._retrying(max_attempts):
            with attempt:
                _check_deadline(deadline)
                vectors = await self.generate_batch(texts, model)
        return vectors

    async def generate_with_retry(
        self,
        text: str,
        model: str,
        max_attempts: int | None = None,
        *,
        deadline: float | None = None,
    ) -> list[float]:
        vectors = await self.generate_batch_with_retry(
            [text], model, max_attempts, deadline=deadline
        )
        return vectors[0]

    # --- service discovery ---

    async def health_check(self) -> bool:
        """True when the service answers; unreachability is False, never an error."""
        try:
            await self.provider.list_models()
        except (VectDbError, OSError) as e:
            logger.warning("Embedding service health check failed: %s", e)
            return False
        return True

    async def list_model_info(self) -> list[ModelInfo]:
        return await self.provider.list_models()

    async def list_models(self) -> set[str]:
        return {m.name for m in await self.provider.list_models()}

    async def has_model(self, model_name: str) -> bool:
        """Accepts "name" or "name:tag"; a bare name matches any tag."""
        models = await self.list_models()
        if model_name in models:
            return True
        if ":" not in model_name and f"{model_name}:latest" in models:
            return True
        base = model_name.split(":", 1)[0]
        return any(m.split(":", 1)[0] == base for m in models)


def build_adapter(cfg: VectDbSettings) -> EmbeddingAdapter:
    provider = build_provider(cfg.ollama, kind=cfg.embedding_provider)
    policy = RetryPolicy(
        max_attempts=cfg.ollama.max_attempts,
        base_delay=cfg.ollama.base_delay,
        max_delay=cfg.ollama.max_delay,
    )
    return EmbeddingAdapter(provider, policy=policy)
