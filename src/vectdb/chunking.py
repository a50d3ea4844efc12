from __future__ import annotations

from collections.abc import Sequence

from .errors import ConfigurationError
from .types import ChunkStrategy, FixedSize, Semantic
from .util_text import graphemes

_TERMINALS = frozenset(".!?")


def _windows(gs: Sequence[str], *, size: int, step: int) -> list[str]:
    # blank text yields no chunks; inside real text whitespace runs are kept
    if all(g.isspace() for g in gs):
        return []
    out: list[str] = []
    n = len(gs)
    start = 0
    while start < n:
        end = min(n, start + size)
        out.append("".join(gs[start:end]))
        if end == n:
            break
        start += step
    return out


def chunk_fixed_size(text: str, size: int, overlap: int) -> list[str]:
    """Windows of `size` graphemes, each starting `size - overlap` after the previous.

    The last window may be shorter. Requires size > overlap > 0.
    """
    if not (size > overlap > 0):
        raise ConfigurationError(
            f"Fixed-size chunking requires size > overlap > 0 (got size={size}, overlap={overlap})"
        )
    return _windows(graphemes(text), size=size, step=size - overlap)


def _is_paragraph_break(gs: Sequence[str], start: int, end: int) -> bool:
    return sum(g.count("\n") for g in gs[start:end]) >= 2


def split_into_sentences(gs: Sequence[str]) -> list[tuple[int, int]]:
    """Split a grapheme sequence into (start, end) spans.

    A span ends after terminal punctuation followed by whitespace (or the end
    of text), or at a paragraph break (a whitespace run holding two or more
    newlines). Trailing whitespace belongs to the span it follows, so the
    spans tile the whole text.
    """
    spans: list[tuple[int, int]] = []
    n = len(gs)
    start = 0
    i = 0
    while i < n:
        g = gs[i]
        if g in _TERMINALS and (i + 1 == n or gs[i + 1].isspace()):
            end = i + 1
        elif g.isspace():
            j = i
            while j < n and gs[j].isspace():
                j += 1
            if i > start and _is_paragraph_break(gs, i, j):
                end = i
            else:
                i = j
                continue
        else:
            i += 1
            continue

        while end < n and gs[end].isspace():
            end += 1
        spans.append((start, end))
        start = i = end

    if start < n:
        spans.append((start, n))
    return spans


def chunk_semantic(text: str, max_size: int) -> list[str]:
    """Pack whole sentences into chunks of at most `max_size` graphemes.

    Sentences are split within paragraphs and accumulated until the next one
    would overflow. A single sentence longer than `max_size` is cut into
    zero-overlap fixed windows.
    """
    if max_size <= 0:
        raise ConfigurationError(f"Semantic chunking requires max_size > 0 (got {max_size})")

    gs = graphemes(text)
    if all(g.isspace() for g in gs):
        return []
    out: list[str] = []
    cur_start: int | None = None
    cur_end = 0

    def flush() -> None:
        nonlocal cur_start
        if cur_start is not None:
            out.append("".join(gs[cur_start:cur_end]))
        cur_start = None

    for s, e in split_into_sentences(gs):
        if e - s > max_size:
            flush()
            out.extend(_windows(gs[s:e], size=max_size, step=max_size))
            continue
        if cur_start is not None and e - cur_start > max_size:
            flush()
        if cur_start is None:
            cur_start = s
        cur_end = e

    flush()
    return out


def chunk_text(text: str, strategy: ChunkStrategy) -> list[str]:
    if isinstance(strategy, FixedSize):
        return chunk_fixed_size(text, strategy.size, strategy.overlap)
    if isinstance(strategy, Semantic):
        return chunk_semantic(text, strategy.max_size)
    raise ConfigurationError(f"Unknown chunking strategy: {strategy!r}")


def validate_strategy(strategy: ChunkStrategy) -> None:
    """Raise ConfigurationError for parameters chunk_text would reject."""
    chunk_text("", strategy)
