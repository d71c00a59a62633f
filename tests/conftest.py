"""
Shared test fixtures and configuration for pytest.

Required settings are seeded into the environment *before* any
``ragchat`` module is imported, and the embedding provider is forced to
``mock`` so no test ever touches the network.
"""

import asyncio
import os
import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

os.environ.setdefault("GOOGLE_API_KEY", "test-google-key")
os.environ.setdefault("MONGO_URI", "mongodb://127.0.0.1:27017")
os.environ["EMBEDDING_PROVIDER"] = "mock"
os.environ.pop("EMBEDDING_FALLBACK_PROVIDER", None)

from redis.exceptions import ConnectionError as RedisConnectionError  # noqa: E402

from ragchat.src.core.embeddings import EmbeddingGateway, MockEmbeddingProvider  # noqa: E402
from ragchat.src.core.exceptions import GenerationError, PersistenceError  # noqa: E402
from ragchat.src.core.rag_engine import ChatOrchestrator  # noqa: E402
from ragchat.src.database.conversation_store import ConversationTurn, history_page, paginate  # noqa: E402
from ragchat.src.database.semantic_cache import SemanticCache  # noqa: E402
from ragchat.src.database.vector_index import KnowledgeIndex  # noqa: E402


SAMPLE_CORPUS = ["Install by running setup.exe", "Contact support for help"]


# ============================================================================
# Fakes
# ============================================================================

class FakeClock:
    """Manually advanced wall clock."""

    def __init__(self, start: float = 1_700_000_000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class InMemoryCacheStore:
    """Dict-backed stand-in for ``redis.asyncio.Redis`` (no store-side expiry)."""

    def __init__(self):
        self.data: dict[str, str] = {}
        self.set_calls: list[tuple[str, int | None]] = []

    async def get(self, name):
        return self.data.get(name)

    async def set(self, name, value, ex=None):
        self.data[name] = value
        self.set_calls.append((name, ex))
        return True


class UnavailableCacheStore:
    """Every call fails as if redis refused the connection."""

    def __init__(self):
        self.attempts = 0

    async def get(self, name):
        self.attempts += 1
        raise RedisConnectionError("Error 111 connecting to 127.0.0.1:6379. Connection refused.")

    async def set(self, name, value, ex=None):
        self.attempts += 1
        raise RedisConnectionError("Error 111 connecting to 127.0.0.1:6379. Connection refused.")


class InMemoryTurnRepository:
    """List-backed ``TurnRepository`` with switchable failures."""

    def __init__(self, fail_inserts: bool = False, fail_reads: bool = False):
        self.turns: list[ConversationTurn] = []
        self.fail_inserts = fail_inserts
        self.fail_reads = fail_reads
        self.recent_calls: list[tuple[str, str, int]] = []
        self._tick = datetime(2024, 1, 1, tzinfo=timezone.utc)

    async def insert(self, turn):
        if self.fail_inserts:
            raise PersistenceError("Could not save conversation turn.")
        # Strictly increasing timestamps keep ordering deterministic.
        self._tick += timedelta(seconds=1)
        self.turns.append(ConversationTurn(turn.user_id, turn.session_id, turn.message, turn.response, turn.cached, self._tick))

    async def recent_turns(self, user_id, session_id, limit):
        self.recent_calls.append((user_id, session_id, limit))
        if self.fail_reads:
            raise PersistenceError("Could not read conversation history.")
        matching = [t for t in self.turns if t.user_id == user_id and t.session_id == session_id]
        return matching[-limit:] if limit > 0 else []

    async def list_history(self, user_id, page=1, limit=10):
        if self.fail_reads:
            raise PersistenceError("Could not list conversation history.")
        page, limit, skip = paginate(page, limit)
        matching = sorted((t for t in self.turns if t.user_id == user_id), key=lambda t: t.timestamp, reverse=True)
        items = [
            {"message": t.message, "response": t.response, "timestamp": t.timestamp, "cached": t.cached, "sessionId": t.session_id}
            for t in matching[skip : skip + limit]
        ]
        return history_page(items, page, limit, len(matching))


class FakeLLM:
    """Scripted ``LLMClient`` that records every prompt."""

    def __init__(self, responses=None, error: BaseException | None = None):
        self.responses = list(responses or ["Run setup.exe to install."])
        self.error = error
        self.prompts: list[str] = []

    @property
    def calls(self) -> int:
        return len(self.prompts)

    async def complete(self, prompt):
        self.prompts.append(prompt)
        if self.error is not None:
            raise self.error
        if len(self.responses) > 1:
            return self.responses.pop(0)
        return self.responses[0]


class TimeoutLLM(FakeLLM):
    def __init__(self):
        super().__init__(error=GenerationError("LLM call timed out after 20.0s"))


# ============================================================================
# Fixtures
# ============================================================================

@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def cache_store() -> InMemoryCacheStore:
    return InMemoryCacheStore()


@pytest.fixture
def cache(cache_store, clock) -> SemanticCache:
    return SemanticCache(cache_store, ttl_seconds=3600, threshold=0.85, clock=clock)


@pytest.fixture
def turn_store() -> InMemoryTurnRepository:
    return InMemoryTurnRepository()


@pytest.fixture
def llm() -> FakeLLM:
    return FakeLLM()


@pytest.fixture
def gateway() -> EmbeddingGateway:
    return EmbeddingGateway([MockEmbeddingProvider()], dimensions=384)


@pytest.fixture
def loaded_index(gateway) -> KnowledgeIndex:
    index = KnowledgeIndex()
    asyncio.run(index.load(SAMPLE_CORPUS, gateway))
    return index


@pytest.fixture
def orchestrator(gateway, loaded_index, cache, turn_store, llm) -> ChatOrchestrator:
    return ChatOrchestrator(gateway, loaded_index, cache, turn_store, llm, top_k=3, history_window=8)
