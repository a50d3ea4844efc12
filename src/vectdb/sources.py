from __future__ import annotations

import os
from pathlib import Path

from .errors import ValidationError

SUPPORTED_EXTENSIONS = frozenset({".txt", ".md", ".markdown"})


def is_supported_file(path: Path) -> bool:
    return path.suffix.lower() in SUPPORTED_EXTENSIONS


def load_file(path: str | os.PathLike) -> str:
    """Read a text or markdown file; extensionless files are read as text."""
    p = Path(path)
    if not p.exists():
        raise ValidationError(f"File does not exist: {p}")
    if not p.is_file():
        raise ValidationError(f"Path is not a file: {p}")
    if p.suffix and not is_supported_file(p):
        raise ValidationError(
            f"Unsupported file type: {p.suffix}. Currently supported: txt, md"
        )
    try:
        with open(p, encoding="utf-8", errors="replace") as f:
            return f.read()
    except OSError as e:
        raise ValidationError(f"Cannot read {p}: {e}") from e


def collect_files(source: str | os.PathLike, *, recursive: bool = False) -> list[Path]:
    """Supported files under `source` (or `source` itself), sorted."""
    p = Path(source)
    if p.is_file():
        return [p]
    if not p.is_dir():
        raise ValidationError(f"Source is not a file or directory: {p}")

    candidates = p.rglob("*") if recursive else p.iterdir()
    return sorted(c for c in candidates if c.is_file() and is_supported_file(c))
