"""
Unit tests for text cleaning and chunking.
"""

import pytest

from ragchat.src.utils.text_utils import chunk_text, clean_text


class TestCleanText:
    """Tests for clean_text."""

    def test_collapses_horizontal_whitespace(self):
        assert clean_text("a   b\t\tc") == "a b c"

    def test_preserves_paragraphs(self):
        assert clean_text("first\n\n\n\nsecond") == "first\n\nsecond"

    def test_strips_zero_width_and_bom(self):
        assert clean_text("\ufeffhel\u200blo") == "hello"

    def test_normalises_line_endings(self):
        assert clean_text("one\r\ntwo\rthree") == "one\ntwo\nthree"

    def test_windows_faq_block(self):
        """Test a CRLF Q&A block with NBSP and tab padding."""
        raw = "Q: Reset password?\r\n\r\n\r\nA:\tUse  the\u00a0portal.  \r\n"
        assert clean_text(raw) == "Q: Reset password?\n\nA: Use the portal."

    def test_soft_hyphen_and_word_joiner(self):
        assert clean_text("re\u00adinstall the\u2060app") == "reinstall theapp"


class TestChunkText:
    """Tests for chunk_text."""

    def test_empty_text(self):
        assert chunk_text("") == []
        assert chunk_text("   \n  ") == []

    def test_short_text_single_chunk(self):
        assert chunk_text("Install by running setup.exe", max_chars=250) == ["Install by running setup.exe"]

    def test_respects_max_size(self):
        text = " ".join(f"word{i}" for i in range(300))
        chunks = chunk_text(text, max_chars=60)
        assert len(chunks) > 1
        assert all(0 < len(c) <= 60 for c in chunks)

    def test_never_splits_mid_word(self):
        """Test all words survive intact and in order."""
        text = "The quick brown fox jumps over the lazy dog. " * 20
        chunks = chunk_text(text, max_chars=50)
        assert " ".join(chunks).split() == text.split()

    def test_example_from_docstring(self):
        assert chunk_text("one two three", max_chars=8) == ["one two", "three"]

    def test_prefers_paragraph_boundaries(self):
        para_a = "Alpha paragraph sentence."
        para_b = "Beta paragraph sentence."
        chunks = chunk_text(f"{para_a}\n\n{para_b}", max_chars=30)
        assert chunks == [para_a, para_b]

    def test_prefers_sentence_boundaries(self):
        text = "First sentence is here. Second sentence is here."
        chunks = chunk_text(text, max_chars=30)
        assert chunks == ["First sentence is here.", "Second sentence is here."]

    def test_long_single_word_is_hard_split(self):
        """Test a token longer than the limit is the only thing cut mid-word."""
        word = "x" * 130
        chunks = chunk_text(f"short {word} tail", max_chars=50)
        assert chunks[0] == "short"
        assert "".join(chunks[1:-1]) == word
        assert chunks[-1] == "tail"
        assert all(len(c) <= 50 for c in chunks)

    def test_invalid_size(self):
        with pytest.raises(ValueError):
            chunk_text("text", max_chars=0)
