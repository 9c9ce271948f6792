"""
clxor/validation.py

Host-side correctness checks for the XOR run.

Inputs and outputs are one byte per element; any non-zero byte is true.
`verify_xor` compares the device output against `A XOR B` and raises
`ResultMismatch` at the first differing index.
"""

from __future__ import annotations

from typing import Any, Optional

import numpy as np

from .errors import ResultMismatch


def xor_reference(a: Any, b: Any) -> np.ndarray:
    """Host reference: boolean XOR of two byte-encoded arrays."""
    return np.logical_xor(np.asarray(a) != 0, np.asarray(b) != 0)


def first_mismatch(a: Any, b: Any, c: Any) -> Optional[int]:
    a = np.asarray(a).reshape(-1)
    b = np.asarray(b).reshape(-1)
    c = np.asarray(c).reshape(-1)
    if not (a.size == b.size == c.size):
        raise ValueError(f"length mismatch: A={a.size} B={b.size} C={c.size}")
    bad = np.flatnonzero((c != 0) != xor_reference(a, b))
    if bad.size == 0:
        return None
    return int(bad[0])


def verify_xor(a: Any, b: Any, c: Any) -> None:
    index = first_mismatch(a, b, c)
    if index is not None:
        raise ResultMismatch(index)


def generate_inputs(n: int, seed: Optional[int] = None):
    """Two random 0/1 byte arrays of length n (fresh entropy when seed is None)."""
    rng = np.random.default_rng(seed)
    a = (rng.integers(0, 2, size=n, dtype=np.uint8) == 0).astype(np.uint8)
    b = (rng.integers(0, 2, size=n, dtype=np.uint8) == 0).astype(np.uint8)
    return a, b


__all__ = ["xor_reference", "first_mismatch", "verify_xor", "generate_inputs"]
