"""
RagChat - Text Utilities
=========================
Cleaning and chunking helpers for the knowledge corpus.

These utilities are consumed by the ``KnowledgeLoader`` and the
retrieval CLI and must remain stateless and side-effect-free.
"""

from __future__ import annotations

import re
import unicodedata

DEFAULT_CHUNK_SIZE = 250

# ── Characters that never reach the index ─────────────────────────────
# Control codes other than TAB/LF/CR, the byte-order mark, zero-width
# joiners, direction marks, soft hyphens and word joiners.  Copy/paste
# from help-desk pages and word processors leaves these in FAQ text.
_INVISIBLE_RE = re.compile(r"[\x00-\x08\x0b\x0c\x0e-\x1f\x7f-\x9f\ufeff\u200b\u200c\u200d\u200e\u200f\u00ad\u2060\ufffe]")

# Any whitespace except LF (spaces, tabs, NBSP, ideographic space).
_INLINE_SPACE_RE = re.compile(r"[^\S\n]+")

_PARAGRAPH_GAP_RE = re.compile(r"\n{3,}")

# ── Split hierarchy: (pattern, joiner) from coarsest to finest ────────
# Paragraph → line → sentence → word.  A chunk is only cut inside a word
# when that word alone is longer than the chunk size.
_SEPARATORS: tuple[tuple[re.Pattern[str], str], ...] = (
    (re.compile(r"\n\s*\n"), "\n\n"),
    (re.compile(r"\n"), "\n"),
    (re.compile(r"(?<=[.!?。])\s+"), " "),
    (re.compile(r"\s+"), " "),
)


# ── Public API ─────────────────────────────────────────────────────────

def clean_text(text: str) -> str:
    """
    Normalise a plain-text knowledge file into the form the chunker expects.

    The corpus is a hand-maintained support FAQ, so it arrives with
    Windows line endings, pasted NBSPs and tab-aligned answers.  Afterwards
    every line is trimmed with single spaces, and Q&A blocks stay
    separated by exactly one blank line, which ``chunk_text`` treats as
    its strongest split point.

    >>> clean_text("Q: Reset?\\r\\n\\r\\n\\r\\nA:\\tUse  the\\u00a0portal.")
    'Q: Reset?\\n\\nA: Use the portal.'
    """
    text = _INVISIBLE_RE.sub("", unicodedata.normalize("NFC", text))
    lines = (_INLINE_SPACE_RE.sub(" ", line).strip() for line in text.splitlines())
    return _PARAGRAPH_GAP_RE.sub("\n\n", "\n".join(lines)).strip()


def chunk_text(text: str, max_chars: int = DEFAULT_CHUNK_SIZE) -> list[str]:
    """
    Split *text* into chunks of at most *max_chars* characters.

    Pieces are packed greedily at the coarsest boundary that fits
    (blank line, newline, sentence end, then word).  Chunks are stripped
    and never empty.

    Examples::

        chunk_text("one two three", max_chars=8)  →  ["one two", "three"]
        chunk_text("", max_chars=250)             →  []

    Raises:
        ValueError: If *max_chars* is not positive.
    """
    if max_chars <= 0:
        raise ValueError(f"max_chars must be > 0, got {max_chars}")

    text = text.strip()
    if not text:
        return []
    return _recursive_split(text, _SEPARATORS, max_chars)


# ── Internals ──────────────────────────────────────────────────────────

def _recursive_split(text: str, separators: tuple[tuple[re.Pattern[str], str], ...], max_chars: int) -> list[str]:
    """Recursively split *text* using the first separator that applies."""
    if len(text) <= max_chars:
        return [text]

    if not separators:
        return _hard_split(text, max_chars)

    (pattern, joiner), remaining = separators[0], separators[1:]
    parts = [p.strip() for p in pattern.split(text) if p.strip()]

    if len(parts) <= 1:
        return _recursive_split(text, remaining, max_chars)

    chunks: list[str] = []
    current = ""

    for part in parts:
        candidate = f"{current}{joiner}{part}" if current else part
        if len(candidate) <= max_chars:
            current = candidate
            continue

        if current:
            chunks.append(current)
        if len(part) > max_chars:
            chunks.extend(_recursive_split(part, remaining, max_chars))
            current = ""
        else:
            current = part

    if current:
        chunks.append(current)
    return chunks


def _hard_split(text: str, max_chars: int) -> list[str]:
    """Cut a single oversized token into fixed-width pieces."""
    return [text[i : i + max_chars] for i in range(0, len(text), max_chars)]
