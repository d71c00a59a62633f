"""
RagChat - RAG Engine
=====================
Orchestrates one chat request through the retrieval-augmented pipeline.

Architecture
------------
``ChatOrchestrator``
    Request-scoped state lives only in local variables, so one instance
    serves any number of concurrent requests.  Flow::

        START → EMBED → CACHE_LOOKUP ┬─ CACHE_HIT ─────────────────┐
                                     └─ RETRIEVE → GENERATE ───────┤
                                                                   ▼
                                                          PERSIST → DONE

    1.  EMBED        — gateway embedding (cannot fail).
    2.  CACHE_LOOKUP — per-conversation semantic cache lookup.
    3.  CACHE_HIT    — reuse the stored answer; skip retrieval + LLM.
    4.  RETRIEVE     — top-k knowledge chunks + last N turns of history.
    5.  GENERATE     — single LLM call; failure raises ``GenerationError``.
    6.  PERSIST      — save the turn and write the cache, best-effort.

Failure semantics
-----------------
- Embedding and cache failures degrade silently inside their components.
- History read/write failures are logged; the answer is still returned.
- Generation failures propagate; nothing is persisted or cached for
  that attempt.

Usage:
    from ragchat.src.core.rag_engine import ChatOrchestrator
    rag = ChatOrchestrator(gateway, index, cache, store, llm)
    result = await rag.process_chat("How do I install?", "u1", "s1")
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Protocol, runtime_checkable

from ragchat.config.prompt_templates import CONTEXT_SEPARATOR, HISTORY_TURN_TEMPLATE, IDK_RESPONSE, RAG_PROMPT_TEMPLATE, SYSTEM_INSTRUCTION
from ragchat.config.settings import settings
from ragchat.src.core.exceptions import GenerationError, PersistenceError
from ragchat.src.core.llm_client import LLMClient
from ragchat.src.database.conversation_store import ConversationTurn, TurnRepository
from ragchat.src.database.semantic_cache import SemanticCache
from ragchat.src.database.vector_index import KnowledgeIndex, RetrievedChunk
from ragchat.src.utils.logger import get_logger
from ragchat.src.utils.vector_math import Vector

logger = get_logger(__name__)


@runtime_checkable
class Embedder(Protocol):
    """Anything that can produce a query vector without failing."""

    async def embed(self, text: str) -> Vector: ...


class ChatStage(str, Enum):
    START = "START"
    EMBED = "EMBED"
    CACHE_LOOKUP = "CACHE_LOOKUP"
    CACHE_HIT = "CACHE_HIT"
    RETRIEVE = "RETRIEVE"
    GENERATE = "GENERATE"
    PERSIST = "PERSIST"
    DONE = "DONE"


@dataclass(frozen=True, slots=True)
class ChatResult:
    response: str
    cached: bool
    timestamp: str
    duration_ms: float

    def to_dict(self) -> dict[str, str | bool | float]:
        return {"response": self.response, "cached": self.cached, "timestamp": self.timestamp, "duration": round(self.duration_ms, 1)}


# ══════════════════════════════════════════════════════════════════════
#  ORCHESTRATOR
# ══════════════════════════════════════════════════════════════════════


class ChatOrchestrator:
    """
    Runs the cache → retrieve → generate → persist pipeline.

    Parameters
    ----------
    embedder
        Usually the ``EmbeddingGateway``.
    index
        The shared, loaded-once ``KnowledgeIndex``.
    cache
        Per-conversation ``SemanticCache``.
    store
        Conversation history repository.
    llm
        Completion client.
    top_k
        Chunks retrieved per question.  Defaults to ``settings.RETRIEVAL_TOP_K``.
    history_window
        Prior turns included in the prompt.  Defaults to ``settings.HISTORY_WINDOW``.
    """

    __slots__ = ("_embedder", "_index", "_cache", "_store", "_llm", "_top_k", "_history_window")

    def __init__(self, embedder: Embedder, index: KnowledgeIndex, cache: SemanticCache, store: TurnRepository, llm: LLMClient, top_k: int | None = None, history_window: int | None = None) -> None:
        self._embedder = embedder
        self._index = index
        self._cache = cache
        self._store = store
        self._llm = llm
        self._top_k = top_k if top_k is not None else settings.RETRIEVAL_TOP_K
        self._history_window = history_window if history_window is not None else settings.HISTORY_WINDOW


    async def process_chat(self, message: str, user_id: str, session_id: str) -> ChatResult:
        """
        Answer *message* within the ``(user_id, session_id)`` conversation.

        Raises
        ------
        GenerationError
            If the language model call fails or times out.
        """
        t_start = time.perf_counter()
        tag = f"user='{user_id}' session='{session_id}'"
        logger.info("[RAG] %s %s: %.60s", ChatStage.START.value, tag, message)

        # ── 1. Embed ──────────────────────────────────────────────────
        query_embedding = await self._embedder.embed(message)
        logger.debug("[RAG] %s done (%d dims).", ChatStage.EMBED.value, len(query_embedding))

        # ── 2. Cache lookup ───────────────────────────────────────────
        cached_response = await self._cache.get(user_id, session_id, query_embedding)
        if cached_response is not None:
            logger.info("[RAG] %s %s", ChatStage.CACHE_HIT.value, tag)
            await self._best_effort("persist turn", self._store.insert(ConversationTurn(user_id, session_id, message, cached_response, cached=True)))
            return self._finish(cached_response, True, t_start, tag)

        logger.info("[RAG] Cache MISS %s", tag)

        # ── 3. Retrieve context ───────────────────────────────────────
        if not self._index.is_loaded:
            logger.warning("[RAG] Knowledge index not loaded yet (%d chunk(s) available) — answering with partial context.", len(self._index))
        hits = self._index.top_k(query_embedding, self._top_k)
        logger.debug("[RAG] %s → %d chunk(s), scores=%s", ChatStage.RETRIEVE.value, len(hits), [round(h.score, 3) for h in hits])

        history = await self._load_history(user_id, session_id)
        prompt = self.build_prompt(self._format_context(hits), self._format_history(history), message)

        # ── 4. Generate ───────────────────────────────────────────────
        t_llm = time.perf_counter()
        try:
            completion = await self._llm.complete(prompt)
        except GenerationError:
            logger.error("[RAG] %s failed for %s — nothing persisted.", ChatStage.GENERATE.value, tag)
            raise
        except Exception as exc:
            logger.exception("[RAG] %s raised unexpectedly for %s.", ChatStage.GENERATE.value, tag)
            raise GenerationError("LLM call failed") from exc
        llm_ms = (time.perf_counter() - t_llm) * 1000

        response = (completion or "").strip() or IDK_RESPONSE
        logger.debug("[RAG] %s done in %.1fms (%d chars).", ChatStage.GENERATE.value, llm_ms, len(response))

        # ── 5. Persist + cache write-through ──────────────────────────
        await self._best_effort("persist turn", self._store.insert(ConversationTurn(user_id, session_id, message, response, cached=False)))
        await self._best_effort("cache write", self._cache.put(user_id, session_id, query_embedding, response))

        return self._finish(response, False, t_start, tag)

    # ══════════════════════════════════════════════════════════════════
    #  HISTORY
    # ══════════════════════════════════════════════════════════════════

    async def _load_history(self, user_id: str, session_id: str) -> list[ConversationTurn]:
        t_history = time.perf_counter()
        try:
            turns = await self._store.recent_turns(user_id, session_id, self._history_window)
        except PersistenceError:
            logger.warning("[RAG] History unavailable for user='%s' session='%s' — continuing without it.", user_id, session_id)
            return []
        logger.debug("[RAG] History fetched: %d turn(s) in %.1fms", len(turns), (time.perf_counter() - t_history) * 1000)
        return turns

    # ══════════════════════════════════════════════════════════════════
    #  PROMPT FORMATTING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def build_prompt(context: str, history: str, question: str) -> str:
        return RAG_PROMPT_TEMPLATE.format(system=SYSTEM_INSTRUCTION, context=context, history=history, question=question)


    @staticmethod
    def _format_context(hits: Sequence[RetrievedChunk]) -> str:
        return CONTEXT_SEPARATOR.join(hit.text for hit in hits)


    @staticmethod
    def _format_history(turns: Sequence[ConversationTurn]) -> str:
        """Render turns oldest-first as alternating User/Assistant lines."""
        return "\n".join(HISTORY_TURN_TEMPLATE.format(message=t.message, response=t.response) for t in turns)

    # ══════════════════════════════════════════════════════════════════
    #  SIDE EFFECTS
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    async def _best_effort(label: str, operation: Awaitable[object]) -> None:
        """Await a side effect whose failure must never reach the caller."""
        try:
            await operation
        except PersistenceError as exc:
            logger.error("[RAG] %s failed — continuing: %s", label, exc)
        except Exception:
            logger.exception("[RAG] %s raised unexpectedly — continuing.", label)


    @staticmethod
    def _finish(response: str, cached: bool, t_start: float, tag: str) -> ChatResult:
        duration_ms = (time.perf_counter() - t_start) * 1000
        logger.info("[RAG] %s %s cached=%s in %.1fms (%d chars).", ChatStage.DONE.value, tag, cached, duration_ms, len(response))
        return ChatResult(response=response, cached=cached, timestamp=datetime.now(timezone.utc).isoformat(), duration_ms=duration_ms)
