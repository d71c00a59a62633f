"""
RagChat - API Routes
=====================
Thin controllers: validate the request, delegate to the core, shape the
response.  No business logic lives here.

Endpoints:
  - POST /chat                 → answer a message within a conversation
  - GET  /history/{user_id}    → paginated conversation history
  - GET  /health               → liveness + knowledge-load status

Error mapping:
  - Invalid input            → 400 (handler registered in ``main.py``)
  - ``GenerationError``      → 500, generic body
  - ``PersistenceError``     → 500 on the history listing only
Internal causes are logged, never returned.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated

from fastapi import APIRouter, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse
from pydantic import BaseModel, StringConstraints

from ragchat.src.core.exceptions import GenerationError, PersistenceError
from ragchat.src.core.rag_engine import ChatOrchestrator
from ragchat.src.database.conversation_store import TurnRepository
from ragchat.src.database.vector_index import KnowledgeIndex
from ragchat.src.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

Message = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=2000)]
Identifier = Annotated[str, StringConstraints(strip_whitespace=True, min_length=1, max_length=100)]


@dataclass
class ChatServices:
    """Shared, process-lifetime collaborators attached to ``app.state.services``."""

    orchestrator: ChatOrchestrator
    store: TurnRepository
    index: KnowledgeIndex


class ChatRequest(BaseModel):
    message: Message
    userId: Identifier
    sessionId: Identifier


def _services(request: Request) -> ChatServices:
    return request.app.state.services


@router.post("/chat", response_model=None)
async def chat(body: ChatRequest, request: Request):
    try:
        result = await _services(request).orchestrator.process_chat(body.message, body.userId, body.sessionId)
    except GenerationError as exc:
        logger.error("[API] /chat generation failed for user='%s' session='%s': %s", body.userId, body.sessionId, exc)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    except Exception:
        logger.exception("[API] /chat failed for user='%s' session='%s'.", body.userId, body.sessionId)
        return JSONResponse(status_code=500, content={"error": "Internal server error"})
    return result.to_dict()


@router.get("/history/{user_id}", response_model=None)
async def history(user_id: str, request: Request, page: Annotated[int, Query()] = 1, limit: Annotated[int, Query()] = 10):
    try:
        result = await _services(request).store.list_history(user_id, page=page, limit=limit)
    except PersistenceError:
        return JSONResponse(status_code=500, content={"error": "Failed to fetch history"})
    except Exception:
        logger.exception("[API] /history failed for user='%s'.", user_id)
        return JSONResponse(status_code=500, content={"error": "Failed to fetch history"})
    return JSONResponse(content=jsonable_encoder(result))


@router.get("/health")
async def health(request: Request):
    index = _services(request).index
    return {"status": "OK", "timestamp": datetime.now(timezone.utc).isoformat(), "knowledge_loaded": index.is_loaded, "chunks": len(index)}

