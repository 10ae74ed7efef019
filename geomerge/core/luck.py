from __future__ import annotations

import hashlib

# 53 bits fit a float mantissa exactly, so the result can never round up to 1.0.
_BITS = 53


def luck(key: str) -> float:
    """Map a string key to a float in [0, 1).

    Uses SHA-256 rather than the builtin `hash()` so results are identical across
    processes, machines and interpreter versions.
    """

    digest = hashlib.sha256(key.encode("utf-8")).digest()
    return (int.from_bytes(digest[:8], "big") >> (64 - _BITS)) / float(2**_BITS)
