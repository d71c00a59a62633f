"""
RagChat - Application Entry Point
==================================
FastAPI application factory.

Lifespan
--------
On startup the shared collaborators are built exactly once — HTTP client,
embedding gateway, knowledge index, semantic cache (redis), conversation
store (MongoDB), LLM client and orchestrator — and attached to
``app.state.services``.  The knowledge corpus is then loaded in a
background task, so the server is ready immediately and early requests
may see a partially loaded index.

On shutdown the background task is cancelled and the redis, MongoDB and
HTTP clients are closed.

Usage:
    uvicorn ragchat.src.main:app --port 3000
    ragchat-server
"""

from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

import httpx
import uvicorn
from fastapi import FastAPI, Request
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from ragchat.config.settings import settings
from ragchat.src.api.routes import ChatServices, router
from ragchat.src.core.embeddings import build_embedding_gateway
from ragchat.src.core.exceptions import PersistenceError
from ragchat.src.core.ingestor import KnowledgeLoader
from ragchat.src.core.llm_client import GeminiCompletionClient
from ragchat.src.core.rag_engine import ChatOrchestrator
from ragchat.src.database.conversation_store import ConversationStore, close_mongo_client
from ragchat.src.database.semantic_cache import SemanticCache, create_redis_store
from ragchat.src.database.vector_index import KnowledgeIndex
from ragchat.src.utils.logger import get_logger

logger = get_logger(__name__)


async def _load_knowledge(loader: KnowledgeLoader) -> None:
    try:
        await loader.run()
    except Exception:
        logger.exception("[API] Failed to load knowledge base.")


async def _prepare_store(store: ConversationStore) -> None:
    try:
        await store.ensure_indexes()
    except PersistenceError:
        logger.warning("[API] MongoDB indexes not created; history queries may be slow.")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    if getattr(app.state, "services", None) is not None:
        # Collaborators were injected (tests / embedding in another app).
        yield
        return

    http_client = httpx.AsyncClient()
    redis_store = create_redis_store()

    gateway = build_embedding_gateway(http_client)
    index = KnowledgeIndex()
    store = ConversationStore()
    orchestrator = ChatOrchestrator(gateway, index, SemanticCache(redis_store), store, GeminiCompletionClient())
    app.state.services = ChatServices(orchestrator=orchestrator, store=store, index=index)

    background = [
        asyncio.create_task(_load_knowledge(KnowledgeLoader(index, gateway))),
        asyncio.create_task(_prepare_store(store)),
    ]
    logger.info("[API] Server ready; knowledge base loading in background.")

    try:
        yield
    finally:
        logger.info("[API] Shutting down …")
        for task in background:
            task.cancel()
        await asyncio.gather(*background, return_exceptions=True)
        await redis_store.aclose()
        await http_client.aclose()
        close_mongo_client()


async def _validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    logger.warning("[API] Validation error on %s: %s", request.url.path, exc.errors())
    return JSONResponse(status_code=400, content={"error": "Invalid input", "details": jsonable_encoder(exc.errors())})


def create_app(services: ChatServices | None = None) -> FastAPI:
    """Build the FastAPI app; pass *services* to skip building real collaborators."""
    app = FastAPI(title="RagChat", description="Retrieval-augmented chat with a semantic response cache.", lifespan=lifespan)
    app.state.services = services
    app.add_exception_handler(RequestValidationError, _validation_error_handler)  # type: ignore[arg-type]
    app.include_router(router)
    return app


app = create_app()


def run() -> None:
    """Console entry point."""
    uvicorn.run("ragchat.src.main:app", host=settings.API_HOST, port=settings.API_PORT)


if __name__ == "__main__":
    run()
