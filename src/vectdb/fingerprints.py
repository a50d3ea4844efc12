from __future__ import annotations

import hashlib


def content_hash(text: str) -> str:
    """SHA-256 of the raw UTF-8 text; the document dedup key.

    No normalization: only byte-identical content is a duplicate.
    """
    return hashlib.sha256(text.encode("utf-8")).hexdigest()
