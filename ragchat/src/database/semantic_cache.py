"""
RagChat - SemanticCache
========================
Per-conversation answer cache keyed by ``(user_id, session_id)`` and
matched by embedding similarity instead of exact text.

Each conversation holds at most one entry: the embedding and response of
its last answered question.  A new question "hits" when its embedding is
at least ``CACHE_SIMILARITY_THRESHOLD`` cosine-similar to the stored one.

Availability
------------
The cache is strictly optional.  Every store call is wrapped so that a
refused connection, a timeout or a corrupt payload becomes a logged
no-op (``put``) or a miss (``get``).  A cache outage therefore degrades
to full recomputation, never to a failed request.

Expiry
------
``put`` sets the store-side TTL *and* records ``expires_at`` in the
payload; ``get`` lazily re-checks it, so an entry is treated as absent
once its TTL has elapsed even if the store has not evicted it yet.

Usage:
    cache = SemanticCache(redis.asyncio.Redis.from_url(settings.REDIS_URL))
    await cache.put("u1", "s1", embedding, "answer")
    hit = await cache.get("u1", "s1", query_embedding)
"""

from __future__ import annotations

import asyncio
import json
import time
from collections.abc import Callable, Sequence
from typing import Protocol, runtime_checkable

import redis.asyncio as aioredis
from redis.exceptions import RedisError

from ragchat.config.settings import settings
from ragchat.src.core.exceptions import VectorDimensionError
from ragchat.src.utils.logger import get_logger
from ragchat.src.utils.vector_math import cosine_similarity

logger = get_logger(__name__)

CACHE_PREFIX = "cache:"

# Errors that mean "the store is unavailable", never "the caller is wrong".
_STORE_ERRORS: tuple[type[BaseException], ...] = (RedisError, OSError, asyncio.TimeoutError)

# Absorbs float rounding so an identical embedding always meets a threshold of 1.0.
_SIMILARITY_EPSILON = 1e-9


# ── Store Protocol ────────────────────────────────────────────────────

@runtime_checkable
class CacheStore(Protocol):
    """The two key-value operations the cache needs (``redis.asyncio`` compatible)."""

    async def get(self, name: str) -> str | bytes | None: ...

    async def set(self, name: str, value: str, ex: int | None = None) -> object: ...


def create_redis_store(url: str | None = None) -> aioredis.Redis:
    """
    Build a lazily-connecting async redis client with bounded timeouts.

    No connection is attempted here; the first command connects, and a
    failure there is absorbed by ``SemanticCache``.
    """
    timeout = settings.REDIS_TIMEOUT_SECONDS
    return aioredis.Redis.from_url(
        url or settings.REDIS_URL,
        decode_responses=True,
        socket_connect_timeout=timeout,
        socket_timeout=timeout,
    )


class SemanticCache:
    """
    Similarity-matched response cache.

    Parameters
    ----------
    store
        Any ``CacheStore`` (normally ``redis.asyncio.Redis``).
    ttl_seconds
        Entry lifetime.  Defaults to ``settings.CACHE_TTL_SECONDS``.
    threshold
        Default similarity threshold.  Defaults to
        ``settings.CACHE_SIMILARITY_THRESHOLD``.
    clock
        Wall-clock source (seconds since epoch), injectable for tests.
    """

    __slots__ = ("_store", "_ttl", "_threshold", "_clock")

    def __init__(self, store: CacheStore, ttl_seconds: int | None = None, threshold: float | None = None, clock: Callable[[], float] = time.time) -> None:
        self._store = store
        self._ttl = ttl_seconds if ttl_seconds is not None else settings.CACHE_TTL_SECONDS
        self._threshold = threshold if threshold is not None else settings.CACHE_SIMILARITY_THRESHOLD
        self._clock = clock


    @staticmethod
    def make_key(user_id: str, session_id: str) -> str:
        """
        Build the store key for one conversation.

        Ids may contain ``:``, so the user id is length-prefixed; the key
        then decodes to exactly one ``(user_id, session_id)`` pair.
        ``("alice:s", "1")`` → ``cache:7:alice:s:1`` and
        ``("alice", "s:1")`` → ``cache:5:alice:s:1``.
        """
        return f"{CACHE_PREFIX}{len(user_id)}:{user_id}:{session_id}"


    async def put(self, user_id: str, session_id: str, embedding: Sequence[float], response: str) -> None:
        """Store (overwrite) the entry for this conversation.  Never raises on store failure."""
        key = self.make_key(user_id, session_id)
        payload = json.dumps({
            "embedding": list(embedding),
            "response": response,
            "expires_at": self._clock() + self._ttl,
        })

        try:
            await self._store.set(key, payload, ex=self._ttl)
        except _STORE_ERRORS as exc:
            logger.warning("[CACHE] put failed for '%s' — cache unavailable: %s", key, exc)
            return

        logger.debug("[CACHE] Stored entry '%s' (ttl=%ds).", key, self._ttl)


    async def get(self, user_id: str, session_id: str, query_embedding: Sequence[float], threshold: float | None = None) -> str | None:
        """
        Return the cached response if it is similar enough, else ``None``.

        "No entry", "expired", "not similar enough", "corrupt" and "store
        down" are all reported the same way: ``None``.
        """
        key = self.make_key(user_id, session_id)
        threshold = self._threshold if threshold is None else threshold

        try:
            raw = await self._store.get(key)
        except _STORE_ERRORS as exc:
            logger.warning("[CACHE] get failed for '%s' — treating as miss: %s", key, exc)
            return None

        if raw is None:
            return None

        try:
            entry = json.loads(raw)
            embedding = [float(v) for v in entry["embedding"]]
            response = str(entry["response"])
            expires_at = float(entry.get("expires_at", float("inf")))
        except (ValueError, KeyError, TypeError) as exc:
            logger.warning("[CACHE] Corrupt entry '%s' — treating as miss: %s", key, exc)
            return None

        if self._clock() >= expires_at:
            logger.debug("[CACHE] Entry '%s' expired.", key)
            return None

        try:
            similarity = cosine_similarity(query_embedding, embedding)
        except VectorDimensionError as exc:
            logger.warning("[CACHE] Entry '%s' has incompatible embedding — treating as miss: %s", key, exc)
            return None

        if similarity + _SIMILARITY_EPSILON >= threshold:
            logger.info("[CACHE] Hit for '%s' (similarity=%.3f ≥ %.2f).", key, similarity, threshold)
            return response

        logger.debug("[CACHE] Miss for '%s' (similarity=%.3f < %.2f).", key, similarity, threshold)
        return None
