from __future__ import annotations

from collections.abc import Sequence

import numpy as np

from .errors import ValidationError

# fixed-width little-endian float32
_DTYPE = np.dtype("<f4")


def encode_vector(vector: Sequence[float]) -> bytes:
    return np.asarray(vector, dtype=_DTYPE).tobytes()


def decode_vector(blob: bytes, dimension: int) -> list[float]:
    """Decode a stored block, checking it against the stored dimension."""
    expected = dimension * _DTYPE.itemsize
    if len(blob) != expected:
        raise ValidationError(
            f"Vector block is {len(blob)} bytes, expected {expected} for dimension {dimension}"
        )
    return np.frombuffer(blob, dtype=_DTYPE).astype(np.float64).tolist()


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine similarity in [-1, 1].

    Returns exactly 0.0 when either vector has zero norm. Vectors of
    different dimensions are not comparable and raise ValidationError.
    """
    va = np.asarray(a, dtype=np.float64)
    vb = np.asarray(b, dtype=np.float64)
    if va.shape != vb.shape:
        raise ValidationError(f"Cannot compare vectors of dimension {va.size} and {vb.size}")
    if va.size == 0:
        return 0.0

    norm_a = float(np.linalg.norm(va))
    norm_b = float(np.linalg.norm(vb))
    if norm_a == 0.0 or norm_b == 0.0:
        return 0.0

    sim = float(np.dot(va, vb)) / (norm_a * norm_b)
    return max(-1.0, min(1.0, sim))
