"""Stable hashes: simhash fingerprints, hashed fallback embeddings, signatures."""

import hashlib
from typing import Iterable

import numpy as np


def stable_hash(value: str, digest_size: int = 8) -> int:
    """Process-independent integer hash (Python's hash() is salted per run)."""
    digest = hashlib.blake2b(value.encode("utf-8"), digest_size=digest_size).digest()
    return int.from_bytes(digest, "big")


def compute_hash(content: str) -> str:
    """SHA256 hash of content."""
    return hashlib.sha256(content.encode("utf-8")).hexdigest()


def simhash(tokens: Iterable[str], bits: int = 32) -> int | None:
    """Bit-weighted majority vote over token hashes.

    Returns None for an empty token set so that it never matches anything.
    """
    weights = [0] * bits
    seen = False
    digest_size = max(1, (bits + 7) // 8)
    for token in sorted(set(tokens)):
        seen = True
        h = stable_hash(token, digest_size=digest_size)
        for bit in range(bits):
            weights[bit] += 1 if (h >> bit) & 1 else -1
    if not seen:
        return None
    fingerprint = 0
    for bit in range(bits):
        if weights[bit] >= 0:
            fingerprint |= 1 << bit
    return fingerprint


def simhash_similarity(a: int | None, b: int | None, bits: int = 32) -> float:
    if a is None or b is None:
        return 0.0
    return 1.0 - (a ^ b).bit_count() / bits


def l2_normalize(vector: Iterable[float]) -> np.ndarray | None:
    """L2-normalize, or None when the vector is empty, zero or not finite."""
    array = np.asarray(list(vector), dtype=float)
    if array.size == 0 or not np.all(np.isfinite(array)):
        return None
    norm = float(np.linalg.norm(array))
    if norm == 0.0:
        return None
    return array / norm


def hashed_embedding(tokens: list[str], dim: int = 64, max_tokens: int = 48) -> np.ndarray:
    """Deterministic bag-of-hashes embedding used when no embedding oracle answers."""
    vector = np.zeros(dim, dtype=float)
    for position, token in enumerate(tokens[:max_tokens]):
        if not token:
            continue
        vector[stable_hash(f"{token}:{position}") % dim] += 1.0
    normalized = l2_normalize(vector)
    return normalized if normalized is not None else vector
