"""
RagChat - KnowledgeIndex
=========================
In-memory vector index over the knowledge corpus:
  • One-time ``load`` that embeds every chunk and appends it
  • Exact top-k retrieval by cosine similarity (linear scan)

Design decisions:
  • **Explicit object, not a module global** — the index is created at
    startup and handed to the orchestrator by reference.
  • **Dependency Injection** — the embedder is passed to ``load``, so
    tests can use the mock provider or a stub.
  • **Append-only** — chunks are immutable and appended one at a time,
    fully built, so a concurrent reader sees either the chunk or nothing.
  • **Stable ranking** — ``sorted`` is stable, so equal scores keep
    insertion order.

Usage:
    index = KnowledgeIndex()
    await index.load(chunks, gateway)
    hits = index.top_k(query_vector, k=3)
"""

from __future__ import annotations

import time
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

from ragchat.src.utils.logger import get_logger
from ragchat.src.utils.vector_math import Vector, cosine_similarity

logger = get_logger(__name__)


# ── Embedder Protocol ─────────────────────────────────────────────────

@runtime_checkable
class BatchEmbedder(Protocol):
    """Anything that can embed many texts at once without failing."""

    async def embed_many(self, texts: Sequence[str]) -> list[Vector]: ...


# ── Records ───────────────────────────────────────────────────────────

@dataclass(frozen=True, slots=True)
class KnowledgeChunk:
    text: str
    embedding: tuple[float, ...]


@dataclass(frozen=True, slots=True)
class RetrievedChunk:
    text: str
    score: float


class KnowledgeIndex:
    """
    Read-mostly collection of ``KnowledgeChunk`` records.

    ``load`` may be called exactly once; afterwards the index only
    serves ``top_k`` queries.
    """

    __slots__ = ("_chunks", "_loaded", "_loading")

    def __init__(self) -> None:
        self._chunks: list[KnowledgeChunk] = []
        self._loaded = False
        self._loading = False


    @property
    def is_loaded(self) -> bool:
        return self._loaded


    async def load(self, chunks: Sequence[str], embedder: BatchEmbedder) -> int:
        """
        Embed *chunks* and append them to the index.

        The embedder is expected to always return a vector (the gateway
        falls back locally), so loading never aborts because a provider
        is down.

        Returns
        -------
        int
            Number of chunks stored.

        Raises
        ------
        RuntimeError
            If the index has already been loaded (no incremental updates).
        """
        if self._loaded or self._loading:
            raise RuntimeError("KnowledgeIndex is already loaded; incremental updates are not supported.")
        self._loading = True

        try:
            texts = [c for c in chunks if c.strip()]
            t_start = time.perf_counter()
            logger.info("[INDEX] Embedding %d chunk(s) …", len(texts))

            vectors = await embedder.embed_many(texts)
            if len(vectors) != len(texts):
                raise RuntimeError(f"Embedder returned {len(vectors)} vectors for {len(texts)} chunks.")

            for text, vector in zip(texts, vectors):
                self._chunks.append(KnowledgeChunk(text=text, embedding=tuple(vector)))

            elapsed_ms = (time.perf_counter() - t_start) * 1000
            logger.info("[INDEX] Loaded %d chunk(s) in %.1fms.", len(self._chunks), elapsed_ms)
        finally:
            self._loading = False

        self._loaded = True
        return len(self._chunks)


    def mark_loaded(self) -> None:
        """Flag an intentionally empty index (e.g. missing corpus) as ready."""
        self._loaded = True


    def top_k(self, query: Sequence[float], k: int) -> list[RetrievedChunk]:
        """
        Return the *k* chunks most similar to *query*, best first.

        *k* larger than the corpus returns everything; ``k <= 0`` returns
        nothing.

        Raises
        ------
        VectorDimensionError
            If *query* does not match the stored dimensionality.
        """
        if k <= 0:
            return []

        snapshot = list(self._chunks)
        scored = [RetrievedChunk(text=chunk.text, score=cosine_similarity(query, chunk.embedding)) for chunk in snapshot]
        scored = sorted(scored, key=lambda hit: hit.score, reverse=True)

        results = scored[:k]
        logger.debug("[INDEX] top_k(k=%d) scanned %d chunk(s), returning %d.", k, len(snapshot), len(results))
        return results


    def __len__(self) -> int:
        return len(self._chunks)


    def __repr__(self) -> str:
        return f"KnowledgeIndex(chunks={len(self._chunks)}, loaded={self._loaded})"
