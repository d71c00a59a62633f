"""
RagChat - Embedding Provider Gateway
=====================================
Turns text into a fixed-length vector through an ordered chain of
interchangeable providers, and **never raises**.

Architecture
------------
``EmbeddingProvider``
    Structural type shared by every backend: ``is_configured()`` plus
    ``async embed(text)`` which raises ``EmbeddingProviderError`` on any
    failure.

``OpenAIEmbeddingProvider`` / ``CohereEmbeddingProvider``
    Remote backends called through a shared ``httpx.AsyncClient`` with a
    bounded timeout.  A backend without its API key is skipped.

``MockEmbeddingProvider``
    Keyword-weighted local embedding for development and tests.

``EmbeddingGateway``
    Tries each configured provider once, in order, and returns the first
    vector of the expected dimensionality.  When every provider fails
    it returns ``local_fallback_embedding`` so identical input always
    yields an identical vector.

Usage:
    async with httpx.AsyncClient() as client:
        gateway = build_embedding_gateway(client)
        vector = await gateway.embed("How do I install?")
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Sequence
from typing import Protocol, runtime_checkable

import httpx
from pydantic import SecretStr

from ragchat.config.settings import EmbeddingProviderName, Settings, settings
from ragchat.src.core.exceptions import EmbeddingProviderError
from ragchat.src.utils.logger import get_logger
from ragchat.src.utils.vector_math import Vector, l2_normalize

logger = get_logger(__name__)

# ── Native dimensionality per provider ────────────────────────────────
PROVIDER_DIMENSIONS: dict[str, int] = {
    "openai": 1536,
    "cohere": 1024,
    "mock": 384,
}

# ── Mock keyword weights ──────────────────────────────────────────────
# Each keyword lights up slot ``ord(keyword[0]) % dims``.
_MOCK_KEYWORDS: dict[str, float] = {
    "install": 0.95,
    "installation": 0.94,
    "setup": 0.90,
    "steps": 0.88,
    "guide": 0.85,
    "download": 0.80,
    "run": 0.75,
    "faq": 0.75,
    "error": 0.70,
    "support": 0.70,
    "fix": 0.68,
    "product": 0.65,
    "app": 0.60,
}
_MOCK_BASELINE = 0.1


# ══════════════════════════════════════════════════════════════════════
#  PROVIDER PROTOCOL
# ══════════════════════════════════════════════════════════════════════


@runtime_checkable
class EmbeddingProvider(Protocol):
    """Anything that can embed one text or signal that it cannot."""

    name: str

    def is_configured(self) -> bool: ...

    async def embed(self, text: str) -> Vector: ...


# ══════════════════════════════════════════════════════════════════════
#  LOCAL STRATEGIES
# ══════════════════════════════════════════════════════════════════════


def local_fallback_embedding(text: str, dimensions: int) -> Vector:
    """
    Deterministic last-resort embedding.

    Every character's code point is written to slot ``i % dimensions``
    as ``(code_point % 100) / 100`` (so values lie in ``[0, 1)``), later
    characters overwriting earlier ones, and the result is L2-normalised.
    """
    vec = [0.0] * dimensions
    for i, char in enumerate(text):
        vec[i % dimensions] = (ord(char) % 100) / 100
    return l2_normalize(vec)


class MockEmbeddingProvider:
    """Keyword-weighted embedding that needs no network access."""

    name = "mock"

    def __init__(self, dimensions: int = PROVIDER_DIMENSIONS["mock"]) -> None:
        self.dimensions = dimensions


    def is_configured(self) -> bool:
        return True


    async def embed(self, text: str) -> Vector:
        vec = [_MOCK_BASELINE] * self.dimensions
        lower = text.lower()
        for keyword, weight in _MOCK_KEYWORDS.items():
            if keyword in lower:
                idx = ord(keyword[0]) % self.dimensions
                vec[idx] = max(vec[idx], weight)
        return l2_normalize(vec)


# ══════════════════════════════════════════════════════════════════════
#  REMOTE STRATEGIES
# ══════════════════════════════════════════════════════════════════════


class _RemoteEmbeddingProvider:
    """Shared HTTP plumbing for JSON embedding APIs."""

    name = "remote"
    url = ""

    def __init__(self, client: httpx.AsyncClient, api_key: SecretStr | None, model: str, dimensions: int, timeout: float) -> None:
        self._client = client
        self._api_key = api_key
        self.model = model
        self.dimensions = dimensions
        self._timeout = timeout


    def is_configured(self) -> bool:
        return self._api_key is not None and bool(self._api_key.get_secret_value())


    async def embed(self, text: str) -> Vector:
        if not self.is_configured():
            raise EmbeddingProviderError("API key not configured.", provider=self.name)

        body = await self._post(self._payload(text))
        try:
            raw = self._extract(body)
            vector = [float(v) for v in raw]
        except (KeyError, IndexError, TypeError, ValueError) as exc:
            raise EmbeddingProviderError(f"Malformed response body: {exc!r}", provider=self.name) from exc

        if len(vector) != self.dimensions:
            raise EmbeddingProviderError(f"Expected {self.dimensions} dimensions, got {len(vector)}.", provider=self.name)
        return vector


    async def _post(self, payload: dict) -> dict:
        headers = {
            "Authorization": f"Bearer {self._api_key.get_secret_value()}",  # type: ignore[union-attr]
            "Content-Type": "application/json",
        }
        try:
            response = await self._client.post(self.url, json=payload, headers=headers, timeout=self._timeout)
            response.raise_for_status()
            return response.json()
        except httpx.TimeoutException as exc:
            raise EmbeddingProviderError(f"Timed out after {self._timeout:.1f}s.", provider=self.name) from exc
        except httpx.HTTPStatusError as exc:
            status = exc.response.status_code
            raise EmbeddingProviderError(f"HTTP {status}.", provider=self.name, status_code=status) from exc
        except httpx.HTTPError as exc:
            raise EmbeddingProviderError(f"Transport error: {exc!r}", provider=self.name) from exc
        except ValueError as exc:
            raise EmbeddingProviderError("Response is not valid JSON.", provider=self.name) from exc


    def _payload(self, text: str) -> dict:
        raise NotImplementedError


    def _extract(self, body: dict) -> list:
        raise NotImplementedError


class OpenAIEmbeddingProvider(_RemoteEmbeddingProvider):
    """OpenAI ``/v1/embeddings``; the dimensionality is requested explicitly."""

    name = "openai"
    url = "https://api.openai.com/v1/embeddings"

    def _payload(self, text: str) -> dict:
        return {"model": self.model, "input": text, "dimensions": self.dimensions}


    def _extract(self, body: dict) -> list:
        return body["data"][0]["embedding"]


class CohereEmbeddingProvider(_RemoteEmbeddingProvider):
    """Cohere ``/v1/embed`` (v3 models return 1024 dimensions)."""

    name = "cohere"
    url = "https://api.cohere.com/v1/embed"

    def _payload(self, text: str) -> dict:
        return {"texts": [text], "model": self.model, "input_type": "search_query"}


    def _extract(self, body: dict) -> list:
        return body["embeddings"][0]


# ══════════════════════════════════════════════════════════════════════
#  GATEWAY
# ══════════════════════════════════════════════════════════════════════


class EmbeddingGateway:
    """
    Ordered provider chain with a guaranteed local fallback.

    Parameters
    ----------
    providers
        Strategies tried in order; each is attempted at most once per call.
    dimensions
        Expected vector length.  Provider output of any other length is
        discarded and the local fallback is produced at this size.
    max_concurrency
        Upper bound on in-flight calls in ``embed_many``.
    """

    __slots__ = ("_providers", "_dimensions", "_max_concurrency")

    def __init__(self, providers: Sequence[EmbeddingProvider], dimensions: int, max_concurrency: int = 4) -> None:
        if dimensions <= 0:
            raise ValueError(f"dimensions must be > 0, got {dimensions}")
        self._providers = list(providers)
        self._dimensions = dimensions
        self._max_concurrency = max(1, max_concurrency)


    @property
    def dimensions(self) -> int:
        return self._dimensions


    @property
    def provider_names(self) -> list[str]:
        return [p.name for p in self._providers]


    async def embed(self, text: str) -> Vector:
        """Return a vector for *text*; never raises."""
        for provider in self._providers:
            if not provider.is_configured():
                logger.debug("[EMBED] Provider '%s' not configured — skipping.", provider.name)
                continue

            t_start = time.perf_counter()
            try:
                vector = await provider.embed(text)
            except EmbeddingProviderError as exc:
                elapsed_ms = (time.perf_counter() - t_start) * 1000
                logger.warning("[EMBED] Provider '%s' failed after %.1fms: %s", provider.name, elapsed_ms, exc)
                continue
            except Exception:
                logger.exception("[EMBED] Provider '%s' raised unexpectedly.", provider.name)
                continue

            elapsed_ms = (time.perf_counter() - t_start) * 1000
            if len(vector) != self._dimensions:
                logger.warning("[EMBED] Provider '%s' returned %d dims (expected %d) — discarding.", provider.name, len(vector), self._dimensions)
                continue

            logger.debug("[EMBED] Provider '%s' succeeded in %.1fms.", provider.name, elapsed_ms)
            return vector

        logger.warning("[EMBED] No embedding provider available — using local fallback (%d dims).", self._dimensions)
        return local_fallback_embedding(text, self._dimensions)


    async def embed_many(self, texts: Sequence[str]) -> list[Vector]:
        """Embed *texts* concurrently, preserving order."""
        semaphore = asyncio.Semaphore(self._max_concurrency)

        async def _bounded(text: str) -> Vector:
            async with semaphore:
                return await self.embed(text)

        return list(await asyncio.gather(*(_bounded(t) for t in texts)))


    def __repr__(self) -> str:
        return f"EmbeddingGateway(providers={self.provider_names}, dims={self._dimensions})"


# ══════════════════════════════════════════════════════════════════════
#  FACTORY
# ══════════════════════════════════════════════════════════════════════


def _make_provider(name: EmbeddingProviderName, dimensions: int, client: httpx.AsyncClient, config: Settings) -> EmbeddingProvider:
    timeout = config.EMBEDDING_TIMEOUT_SECONDS
    if name == "openai":
        return OpenAIEmbeddingProvider(client, config.OPENAI_API_KEY, config.OPENAI_EMBEDDING_MODEL, dimensions, timeout)
    if name == "cohere":
        return CohereEmbeddingProvider(client, config.COHERE_API_KEY, config.COHERE_EMBEDDING_MODEL, dimensions, timeout)
    return MockEmbeddingProvider(dimensions)


def build_embedding_gateway(client: httpx.AsyncClient, config: Settings = settings) -> EmbeddingGateway:
    """
    Assemble the provider chain from configuration.

    The primary provider fixes the dimensionality for the whole process;
    a secondary provider is only useful if it can produce the same size.
    """
    primary = config.EMBEDDING_PROVIDER
    dimensions = PROVIDER_DIMENSIONS[primary]

    names: list[EmbeddingProviderName] = [primary]
    secondary = config.EMBEDDING_FALLBACK_PROVIDER
    if secondary is not None and secondary != primary:
        names.append(secondary)
        if secondary == "cohere" and dimensions != PROVIDER_DIMENSIONS["cohere"]:
            logger.warning("[EMBED] Secondary provider 'cohere' cannot produce %d dims; it will always fall through.", dimensions)

    providers = [_make_provider(name, dimensions, client, config) for name in names]
    gateway = EmbeddingGateway(providers, dimensions, max_concurrency=config.MAX_WORKERS)
    logger.info("[EMBED] Gateway ready: %s", gateway)
    return gateway
