"""Tests for fixed-size and semantic chunking."""

import pytest

from vectdb.chunking import (
    chunk_fixed_size,
    chunk_semantic,
    chunk_text,
    split_into_sentences,
    validate_strategy,
)
from vectdb.errors import ConfigurationError
from vectdb.types import FixedSize, Semantic
from vectdb.util_text import grapheme_len, graphemes, truncate

ALPHABET_25 = "abcdefghijklmnopqrstuvwxy"


def test_fixed_size_windows_overlap():
    """25 graphemes with size 10 / overlap 2 give three overlapping chunks."""
    chunks = chunk_fixed_size(ALPHABET_25, 10, 2)
    assert len(chunks) == 3
    assert all(len(c) <= 10 for c in chunks)
    for prev, nxt in zip(chunks, chunks[1:]):
        assert nxt[:2] == prev[-2:]


def test_fixed_size_reconstructs_input():
    chunks = chunk_fixed_size(ALPHABET_25, 10, 2)
    assert chunks[0] + "".join(c[2:] for c in chunks[1:]) == ALPHABET_25


def test_whitespace_runs_survive_chunking():
    """Whitespace-only windows inside a document are kept, so the text rebuilds."""
    text = "ab" + " " * 12 + "cd"
    chunks = chunk_fixed_size(text, 4, 1)
    assert chunks[0] + "".join(c[1:] for c in chunks[1:]) == text
    assert "    " in chunks

    semantic = chunk_semantic("Short." + " " * 30 + "End.", 8)
    assert "".join(semantic) == "Short." + " " * 30 + "End."
    assert all(grapheme_len(c) <= 8 for c in semantic)


def test_fixed_size_short_tail():
    assert chunk_fixed_size("0123456789", 5, 2) == ["01234", "34567", "6789"]


def test_fixed_size_text_shorter_than_window():
    assert chunk_fixed_size("hello", 512, 50) == ["hello"]


def test_empty_and_whitespace_input():
    assert chunk_fixed_size("", 10, 2) == []
    assert chunk_fixed_size("     ", 3, 1) == []
    assert chunk_semantic("", 10) == []
    assert chunk_semantic("   \n\n  ", 10) == []


@pytest.mark.parametrize("size,overlap", [(10, 10), (10, 12), (10, 0), (0, 0), (5, -1)])
def test_fixed_size_rejects_invalid_parameters(size, overlap):
    with pytest.raises(ConfigurationError):
        chunk_fixed_size("some text", size, overlap)


def test_semantic_rejects_non_positive_max():
    with pytest.raises(ConfigurationError):
        chunk_semantic("Some text.", 0)


def test_fixed_size_never_splits_graphemes():
    """Combining marks and ZWJ emoji sequences count as one grapheme."""
    family = "\U0001F468\u200d\U0001F469\u200d\U0001F467"
    accented = "e\u0301"
    assert grapheme_len(family) == 1
    assert grapheme_len(accented) == 1

    text = (accented + family) * 5
    chunks = chunk_fixed_size(text, 4, 1)
    assert all(grapheme_len(c) <= 4 for c in chunks)
    for c in chunks:
        assert not c.startswith("\u0301")
        assert not c.startswith("\u200d")
    assert chunks[0] + "".join("".join(graphemes(c)[1:]) for c in chunks[1:]) == text


def test_split_into_sentences_tiles_text():
    text = "First one. Second one! Third?"
    spans = split_into_sentences(graphemes(text))
    assert [text[s:e] for s, e in spans] == ["First one. ", "Second one! ", "Third?"]


def test_split_on_paragraph_break_only():
    """A single newline stays inside a sentence; a blank line ends one."""
    assert split_into_sentences(graphemes("line one\nline two.")) == [(0, 18)]
    assert split_into_sentences(graphemes("Heading\n\nBody.")) == [(0, 9), (9, 14)]


def test_decimal_point_does_not_end_sentence():
    text = "Pi is 3.14 roughly. Done."
    spans = split_into_sentences(graphemes(text))
    assert [text[s:e] for s, e in spans] == ["Pi is 3.14 roughly. ", "Done."]


def test_semantic_packs_whole_sentences():
    text = "First sentence. Second sentence! Third one?"
    assert chunk_semantic(text, 1000) == [text]

    chunks = chunk_semantic(text, 20)
    assert chunks == ["First sentence. ", "Second sentence! ", "Third one?"]
    assert "".join(chunks) == text
    assert all(grapheme_len(c) <= 20 for c in chunks)


def test_semantic_splits_oversized_sentence():
    assert chunk_semantic("a" * 25, 10) == ["a" * 10, "a" * 10, "a" * 5]


def test_chunk_text_dispatches_on_strategy():
    assert chunk_text("0123456789", FixedSize(size=5, overlap=2)) == ["01234", "34567", "6789"]
    assert chunk_text("One. Two.", Semantic(max_size=100)) == ["One. Two."]


def test_validate_strategy():
    validate_strategy(FixedSize())
    validate_strategy(Semantic())
    with pytest.raises(ConfigurationError):
        validate_strategy(FixedSize(size=50, overlap=50))
    with pytest.raises(ConfigurationError):
        validate_strategy(Semantic(max_size=-1))


def test_truncate_appends_ellipsis():
    assert truncate("abc", 5) == "abc"
    assert truncate("abcdef", 3) == "abc..."
