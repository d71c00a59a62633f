"""
RagChat - ConversationStore
============================
Append-only conversation history backed by MongoDB via ``motor``.

Collection schema (``chats``)::

    {
        "user_id": str,
        "session_id": str,
        "message": str,
        "response": str,
        "cached": bool,
        "timestamp": datetime
    }

Every read filters by ``user_id`` (and ``session_id`` for prompt
history), so one conversation never sees another's turns.  All driver
errors are logged and re-raised as ``PersistenceError``; deciding whether
that failure matters is the caller's job.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

import motor.motor_asyncio
from pymongo import ASCENDING, DESCENDING
from pymongo.errors import PyMongoError

from ragchat.config.settings import settings
from ragchat.src.core.exceptions import PersistenceError
from ragchat.src.utils.logger import get_logger

logger = get_logger(__name__)

MAX_PAGE_SIZE = 50

# ── Type aliases ───────────────────────────────────────────────────────
HistoryPage = dict[str, list[dict[str, object]] | dict[str, int]]


@dataclass(frozen=True, slots=True)
class ConversationTurn:
    user_id: str
    session_id: str
    message: str
    response: str
    cached: bool = False
    timestamp: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def to_document(self) -> dict[str, object]:
        return {
            "user_id": self.user_id,
            "session_id": self.session_id,
            "message": self.message,
            "response": self.response,
            "cached": self.cached,
            "timestamp": self.timestamp,
        }


@runtime_checkable
class TurnRepository(Protocol):
    """Persistence operations the orchestrator and API depend on."""

    async def insert(self, turn: ConversationTurn) -> None: ...

    async def recent_turns(self, user_id: str, session_id: str, limit: int) -> list[ConversationTurn]: ...

    async def list_history(self, user_id: str, page: int = 1, limit: int = 10) -> HistoryPage: ...


def paginate(page: int, limit: int) -> tuple[int, int, int]:
    """Clamp paging input; returns ``(page, limit, skip)``."""
    page = max(page, 1)
    limit = min(max(limit, 1), MAX_PAGE_SIZE)
    return page, limit, (page - 1) * limit


def _turn_from_document(doc: dict[str, object]) -> ConversationTurn:
    """Rebuild a turn from its stored fields; unknown fields are ignored."""
    return ConversationTurn(
        user_id=str(doc["user_id"]),
        session_id=str(doc["session_id"]),
        message=str(doc["message"]),
        response=str(doc["response"]),
        cached=bool(doc.get("cached", False)),
        timestamp=doc["timestamp"],  # type: ignore[arg-type]
    )


def _history_item(doc: dict[str, object]) -> dict[str, object]:
    """Public shape of one history entry (camelCase, like the chat request)."""
    return {
        "message": doc.get("message"),
        "response": doc.get("response"),
        "timestamp": doc.get("timestamp"),
        "cached": bool(doc.get("cached", False)),
        "sessionId": doc.get("session_id"),
    }


def history_page(items: list[dict[str, object]], page: int, limit: int, total: int) -> HistoryPage:
    return {
        "data": items,
        "pagination": {"page": page, "limit": limit, "total": total, "pages": math.ceil(total / limit) if total else 0},
    }


# ══════════════════════════════════════════════════════════════════════
#  MONGODB SINGLETON CLIENT
# ══════════════════════════════════════════════════════════════════════

_mongo_client: motor.motor_asyncio.AsyncIOMotorClient | None = None


def get_mongo_client() -> motor.motor_asyncio.AsyncIOMotorClient:
    """Return (or create) the module-level async MongoDB client."""
    global _mongo_client
    if _mongo_client is None:
        _mongo_client = motor.motor_asyncio.AsyncIOMotorClient(settings.MONGO_URI.get_secret_value(), serverSelectionTimeoutMS=settings.MONGO_TIMEOUT_MS, tz_aware=True)
        logger.info("[STORE] MongoDB async client created (singleton).")
    return _mongo_client


def close_mongo_client() -> None:
    global _mongo_client
    if _mongo_client is not None:
        _mongo_client.close()
        _mongo_client = None
        logger.info("[STORE] MongoDB client closed.")


class ConversationStore:
    """MongoDB implementation of ``TurnRepository``."""

    __slots__ = ("_collection",)

    def __init__(self, collection: motor.motor_asyncio.AsyncIOMotorCollection | None = None, collection_name: str = "chats") -> None:
        if collection is None:
            collection = get_mongo_client()[settings.MONGO_DB_NAME][collection_name]
        self._collection = collection


    async def ensure_indexes(self) -> None:
        """Create the lookup indexes (idempotent)."""
        try:
            await self._collection.create_index([("user_id", ASCENDING), ("session_id", ASCENDING), ("timestamp", DESCENDING)])
            await self._collection.create_index([("user_id", ASCENDING), ("timestamp", DESCENDING)])
        except PyMongoError as exc:
            logger.error("[STORE] Index creation failed: %s", exc)
            raise PersistenceError("Could not create conversation indexes.") from exc


    async def insert(self, turn: ConversationTurn) -> None:
        """Append one turn."""
        try:
            await self._collection.insert_one(turn.to_document())
        except PyMongoError as exc:
            logger.error("[STORE] Insert failed for user='%s' session='%s': %s", turn.user_id, turn.session_id, exc)
            raise PersistenceError("Could not save conversation turn.") from exc


    async def recent_turns(self, user_id: str, session_id: str, limit: int) -> list[ConversationTurn]:
        """Return the last *limit* turns of a conversation, oldest first."""
        if limit <= 0:
            return []
        try:
            cursor = self._collection.find({"user_id": user_id, "session_id": session_id}, {"_id": 0}).sort("timestamp", DESCENDING).limit(limit)
            docs = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            logger.error("[STORE] History read failed for user='%s' session='%s': %s", user_id, session_id, exc)
            raise PersistenceError("Could not read conversation history.") from exc

        docs.reverse()
        try:
            return [_turn_from_document(doc) for doc in docs]
        except (KeyError, TypeError, ValueError) as exc:
            logger.error("[STORE] Malformed history document for user='%s' session='%s': %r", user_id, session_id, exc)
            raise PersistenceError("Stored conversation history is malformed.") from exc


    async def list_history(self, user_id: str, page: int = 1, limit: int = 10) -> HistoryPage:
        """Paginated turns for a user across all sessions, newest first."""
        page, limit, skip = paginate(page, limit)
        projection = {"_id": 0, "message": 1, "response": 1, "timestamp": 1, "cached": 1, "session_id": 1}
        try:
            total = await self._collection.count_documents({"user_id": user_id})
            cursor = self._collection.find({"user_id": user_id}, projection).sort("timestamp", DESCENDING).skip(skip).limit(limit)
            items = await cursor.to_list(length=limit)
        except PyMongoError as exc:
            logger.error("[STORE] History listing failed for user='%s': %s", user_id, exc)
            raise PersistenceError("Could not list conversation history.") from exc

        return history_page([_history_item(doc) for doc in items], page, limit, total)
