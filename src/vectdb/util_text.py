from __future__ import annotations

import regex

# extended grapheme cluster: never splits a multi-codepoint character
_GRAPHEME_RE = regex.compile(r"\X")
_WHITESPACE_RE = regex.compile(r"\s+")


def graphemes(text: str) -> list[str]:
    if not text:
        return []
    return _GRAPHEME_RE.findall(text)


def grapheme_len(text: str) -> int:
    return len(graphemes(text))


def estimate_tokens(text: str) -> int:
    """Rough token count: ~4 bytes of UTF-8 per token."""
    return len(text.encode("utf-8")) // 4


def truncate(text: str, limit: int = 500) -> str:
    """Shorten text for display without cutting inside a grapheme."""
    gs = graphemes(text)
    if len(gs) <= limit:
        return text
    return "".join(gs[:limit]) + "..."


def single_line(text: str) -> str:
    return _WHITESPACE_RE.sub(" ", text).strip()
