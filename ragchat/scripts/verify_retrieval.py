"""
RagChat - Retrieval Verification Script
========================================
CLI entry point that:
    1. Loads settings (fail-fast on configuration errors).
    2. Builds the embedding gateway from configuration.
    3. Loads the knowledge corpus into a fresh in-memory index.
    4. Embeds the question and prints the top-k chunks with scores.

Useful for checking chunking and ranking without starting the server,
MongoDB or redis.

Usage:
    python -m ragchat.scripts.verify_retrieval "How do I install?"
    python -m ragchat.scripts.verify_retrieval "How do I install?" --top-k 5
    python -m ragchat.scripts.verify_retrieval "refund policy" --knowledge-file docs/faq.txt
"""

from __future__ import annotations

import argparse
import asyncio
import sys
import time
from collections.abc import Sequence
from pathlib import Path


# ── CLI Argument Parsing ───────────────────────────────────────────────

def _parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(prog="verify_retrieval", description="RagChat — Rank knowledge chunks for a question.")
    parser.add_argument("question", help="Question to retrieve context for.")
    parser.add_argument("--top-k", type=int, default=None, help="Number of chunks to show (default: RETRIEVAL_TOP_K).")
    parser.add_argument("--knowledge-file", type=Path, default=None, help="Corpus file (default: KNOWLEDGE_FILE).")
    return parser.parse_args(argv)


# ── Main Orchestration ─────────────────────────────────────────────────

async def _run(args: argparse.Namespace) -> int:
    import httpx

    from ragchat.config.settings import settings
    from ragchat.src.core.embeddings import build_embedding_gateway
    from ragchat.src.core.ingestor import KnowledgeLoader
    from ragchat.src.database.vector_index import KnowledgeIndex

    top_k = args.top_k if args.top_k is not None else settings.RETRIEVAL_TOP_K

    async with httpx.AsyncClient() as client:
        gateway = build_embedding_gateway(client)
        index = KnowledgeIndex()

        t_load = time.perf_counter()
        summary = await KnowledgeLoader(index, gateway, source_file=args.knowledge_file).run()
        load_ms = (time.perf_counter() - t_load) * 1000

        if not len(index):
            print(f"\nNo chunks loaded from {summary['source_file']}.")
            return 1

        query_vector = await gateway.embed(args.question)
        hits = index.top_k(query_vector, top_k)

    print(f"\nCorpus: {summary['source_file']} ({len(index)} chunks, {load_ms:.1f}ms)")
    print(f"Embedding: {gateway}")
    print(f"Query: {args.question}")
    print("=" * 60)
    for rank, hit in enumerate(hits, 1):
        print(f"\n--- #{rank}  score={hit.score:.4f} ---")
        print(f"  {hit.text}")
    print()
    return 0


def main(argv: Sequence[str] | None = None) -> int:
    args = _parse_args(argv)
    try:
        from ragchat.config.settings import settings  # noqa: F401
    except Exception as exc:
        print("\n[FATAL] Configuration error — check your .env file:\n")
        print(f"  {exc}")
        print()
        return 1
    return asyncio.run(_run(args))


if __name__ == "__main__":
    sys.exit(main())
