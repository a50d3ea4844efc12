from __future__ import annotations

import hashlib
import logging
from dataclasses import dataclass

import httpx

from .errors import TerminalServiceError, TransientServiceError
from .http import HttpClientFactory, TransientHttpError
from .settings import OllamaSettings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ModelInfo:
    name: str
    size: int = 0
    modified_at: str = ""


class EmbeddingProvider:
    """Transport to an embedding-generation service.

    Implementations raise TransientServiceError for retryable failures and
    TerminalServiceError for everything that must not be retried.
    """

    async def embed(self, texts: list[str], model: str) -> list[list[float]]:
        raise NotImplementedError

    async def list_models(self) -> list[ModelInfo]:
        raise NotImplementedError

    async def aclose(self) -> None:
        return None


@dataclass
class StubEmbeddingProvider(EmbeddingProvider):
    """Deterministic offline embedder; any model name is accepted."""

    dim: int = 384

    async def embed(self, texts: list[str], model: str) -> list[list[float]]:
        out: list[list[float]] = []
        for t in texts:
            v = [0.0] * self.dim
            for tok in t.lower().split():
                h = int.from_bytes(hashlib.md5(tok.encode("utf-8")).digest()[:8], "big")
                v[h % self.dim] += 1.0
            # normalize
            norm = sum(x * x for x in v) ** 0.5
            if norm:
                v = [x / norm for x in v]
            out.append(v)
        return out

    async def list_models(self) -> list[ModelInfo]:
        return [ModelInfo(name="stub")]


def _raise_for_status(response: httpx.Response, model: str | None = None) -> None:
    status = response.status_code
    if response.is_success:
        return
    detail = response.text.strip() or response.reason_phrase
    if status == 404:
        what = f"Model '{model}' not found" if model else "Endpoint not found"
        raise TerminalServiceError(f"{what}: {detail}")
    if status >= 500 or status == 429:
        raise TransientServiceError(f"Ollama returned {status}: {detail}")
    raise TerminalServiceError(f"Ollama returned {status}: {detail}")


class OllamaEmbeddingProvider(EmbeddingProvider):
    """Ollama HTTP API client (POST /api/embed, GET /api/tags)."""

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        *,
        timeout_seconds: float = 30.0,
        client: httpx.AsyncClient | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds
        self._client = client or HttpClientFactory.client(
            base_url=self.base_url, timeout_seconds=timeout_seconds
        )
        logger.info("Created Ollama client with base URL %s", self.base_url)

    async def aclose(self) -> None:
        await self._client.aclose()

    async def embed(self, texts: list[str], model: str) -> list[list[float]]:
        try:
            r = await self._client.post("/api/embed", json={"model": model, "input": texts})
        except TransientHttpError as e:
            raise TransientServiceError(f"Cannot reach Ollama at {self.base_url}: {e}") from e
        except httpx.HTTPError as e:
            raise TerminalServiceError(f"Ollama request failed: {e}") from e
        _raise_for_status(r, model)

        try:
            vectors = r.json()["embeddings"]
            return [[float(x) for x in v] for v in vectors]
        except (ValueError, KeyError, TypeError) as e:
            raise TerminalServiceError(f"Malformed embedding response: {e}") from e

    async def list_models(self) -> list[ModelInfo]:
        try:
            r = await self._client.get("/api/tags")
        except TransientHttpError as e:
            raise TransientServiceError(f"Cannot reach Ollama at {self.base_url}: {e}") from e
        except httpx.HTTPError as e:
            raise TerminalServiceError(f"Ollama request failed: {e}") from e
        _raise_for_status(r)

        try:
            items = r.json().get("models") or []
            return [
                ModelInfo(
                    name=m["name"],
                    size=int(m.get("size") or 0),
                    modified_at=str(m.get("modified_at") or ""),
                )
                for m in items
            ]
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise TerminalServiceError(f"Malformed model list response: {e}") from e


def build_provider(cfg: OllamaSettings, *, kind: str = "ollama") -> EmbeddingProvider:
    """kind: "ollama" for the HTTP service, "stub" for the offline embedder."""
    if kind == "stub":
        return StubEmbeddingProvider()
    return OllamaEmbeddingProvider(cfg.base_url, timeout_seconds=cfg.timeout_seconds)
