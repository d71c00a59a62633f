"""
RagChat - LLM Completion Client
================================
Single-shot completion over Gemini via LangChain, with a hard timeout.

Any failure (timeout, transport, provider error) is logged with full
detail and re-raised as ``GenerationError`` so the orchestrator can
surface a generic failure without leaking the cause.
"""

from __future__ import annotations

import asyncio
import time
from typing import Protocol, runtime_checkable

from ragchat.config.settings import settings
from ragchat.src.core.exceptions import GenerationError
from ragchat.src.utils.logger import get_logger

logger = get_logger(__name__)


@runtime_checkable
class LLMClient(Protocol):
    """Anything that turns a prompt into a completion string."""

    async def complete(self, prompt: str) -> str: ...


class GeminiCompletionClient:
    """
    ``ChatGoogleGenerativeAI`` wrapper.

    Parameters
    ----------
    timeout
        Seconds before the call is abandoned.  Defaults to
        ``settings.LLM_TIMEOUT_SECONDS``.
    llm
        Optional pre-built LangChain chat model (tests inject a fake).
    """

    __slots__ = ("_llm", "_timeout")

    def __init__(self, timeout: float | None = None, llm: object | None = None) -> None:
        self._timeout = timeout if timeout is not None else settings.LLM_TIMEOUT_SECONDS
        self._llm = llm if llm is not None else self._init_llm()


    @staticmethod
    def _init_llm() -> object:
        """Initialise the Gemini LLM via LangChain."""
        from langchain_google_genai import ChatGoogleGenerativeAI

        llm = ChatGoogleGenerativeAI(model=settings.LLM_MODEL, temperature=settings.LLM_TEMPERATURE, google_api_key=settings.GOOGLE_API_KEY.get_secret_value())
        logger.info("[LLM] Initialised: %s (temperature=%.1f)", settings.LLM_MODEL, settings.LLM_TEMPERATURE)
        return llm


    async def complete(self, prompt: str) -> str:
        from langchain_core.messages import HumanMessage

        t_start = time.perf_counter()
        try:
            response = await asyncio.wait_for(self._llm.ainvoke([HumanMessage(content=prompt)]), timeout=self._timeout)  # type: ignore[union-attr]
        except asyncio.TimeoutError as exc:
            logger.error("[LLM] Call timed out after %.1fs.", self._timeout)
            raise GenerationError(f"LLM call timed out after {self._timeout:.1f}s") from exc
        except Exception as exc:
            logger.exception("[LLM] Call failed.")
            raise GenerationError("LLM call failed") from exc

        content = response.content if hasattr(response, "content") else response
        text = content if isinstance(content, str) else _flatten_content(content)
        logger.info("[LLM] Response in %.1fms (%d chars).", (time.perf_counter() - t_start) * 1000, len(text))
        return text


def _flatten_content(content: object) -> str:
    """Join multi-part message content (list of strings / text blocks)."""
    if isinstance(content, list):
        parts: list[str] = []
        for part in content:
            if isinstance(part, str):
                parts.append(part)
            elif isinstance(part, dict) and isinstance(part.get("text"), str):
                parts.append(part["text"])
        return "".join(parts)
    return str(content)
