"""
RagChat - KnowledgeLoader
==========================
Startup-only pipeline that reads the knowledge corpus, cleans and chunks
it, and loads the chunks into the in-memory ``KnowledgeIndex``.

Key design decisions:
    • **Dependency Injection** – receives the index and the embedder.
    • **Non-blocking startup** – the API schedules ``run()`` as a
      background task; requests may be served before it finishes and
      then see an empty or partially populated index (logged by the
      orchestrator).
    • **Never fatal** – a missing or empty corpus leaves the index empty
      but marked loaded; embedding failures are absorbed by the gateway.

Usage:
    from ragchat.src.core.ingestor import KnowledgeLoader
    loader = KnowledgeLoader(index, gateway)
    summary = await loader.run()
"""

from __future__ import annotations

import asyncio
import time
from pathlib import Path

from ragchat.config.settings import settings
from ragchat.src.database.vector_index import BatchEmbedder, KnowledgeIndex
from ragchat.src.utils.logger import get_logger
from ragchat.src.utils.text_utils import chunk_text, clean_text

logger = get_logger(__name__)


class KnowledgeLoader:
    """
    End-to-end corpus loading: read → clean → chunk → embed → index.

    Parameters
    ----------
    index
        The ``KnowledgeIndex`` to populate (injected, loaded once).
    embedder
        Batch embedder, normally the ``EmbeddingGateway``.
    source_file
        Override the corpus path.  Defaults to ``settings.KNOWLEDGE_FILE``.
    chunk_size
        Override the chunk size.  Defaults to ``settings.CHUNK_SIZE``.
    """

    __slots__ = ("_index", "_embedder", "_source_file", "_chunk_size")

    def __init__(self, index: KnowledgeIndex, embedder: BatchEmbedder, source_file: Path | None = None, chunk_size: int | None = None) -> None:
        self._index = index
        self._embedder = embedder
        self._source_file = Path(source_file or settings.KNOWLEDGE_FILE)
        self._chunk_size = chunk_size or settings.CHUNK_SIZE

    # ══════════════════════════════════════════════════════════════════
    #  PUBLIC ENTRY POINT
    # ══════════════════════════════════════════════════════════════════

    async def run(self) -> dict[str, int | float | str]:
        """
        Load the corpus into the index.

        Returns
        -------
        dict
            ``source_file``, ``total_chunks``, ``elapsed_seconds``.
        """
        t_start = time.perf_counter()

        if not self._source_file.exists():
            logger.warning("[INDEX] Knowledge file does not exist: %s — index stays empty.", self._source_file)
            self._index.mark_loaded()
            return self._summary(0, time.perf_counter() - t_start)

        raw_text = await asyncio.to_thread(self._read_file, self._source_file)
        chunks = chunk_text(clean_text(raw_text), self._chunk_size)

        if not chunks:
            logger.warning("[INDEX] Knowledge file is empty: %s", self._source_file)
            self._index.mark_loaded()
            return self._summary(0, time.perf_counter() - t_start)

        logger.info("[INDEX] '%s' → %d chunk(s) (chunk_size=%d).", self._source_file.name, len(chunks), self._chunk_size)
        stored = await self._index.load(chunks, self._embedder)

        elapsed = time.perf_counter() - t_start
        logger.info("[INDEX] Knowledge base loaded — %d chunk(s) in %.2fs.", stored, elapsed)
        return self._summary(stored, elapsed)

    # ══════════════════════════════════════════════════════════════════
    #  FILE READING
    # ══════════════════════════════════════════════════════════════════

    @staticmethod
    def _read_file(filepath: Path) -> str:
        """Read UTF-8 text, falling back to latin-1 for legacy files."""
        try:
            return filepath.read_text(encoding="utf-8")
        except UnicodeDecodeError:
            logger.warning("[INDEX] '%s' is not UTF-8 — decoding as latin-1.", filepath.name)
            return filepath.read_text(encoding="latin-1")


    def _summary(self, chunks: int, elapsed: float) -> dict[str, int | float | str]:
        return {
            "source_file": str(self._source_file),
            "total_chunks": chunks,
            "elapsed_seconds": round(elapsed, 2),
        }
