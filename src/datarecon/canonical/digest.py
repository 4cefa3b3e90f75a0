"""
Digests of canonical forms.

All supported algorithms produce at least 256 bits. Inputs are fed to the
hash object in fixed-size chunks, so arbitrarily large canonical forms hash
without a second full copy in memory.
"""

import hashlib
from collections.abc import Mapping
from typing import Any, Iterable

from .canonicalizer import canonicalize

DEFAULT_ALGORITHM = "sha256"
SUPPORTED_ALGORITHMS = ("sha256", "sha512", "sha3_256", "blake2b")

CHUNK_SIZE = 1024 * 1024

# Sentinel digests for records that failed canonicalization. They never equal
# a hex digest, and the two sides never equal each other.
UNHASHABLE_PREFIX = "!unhashable:"


def validate_algorithm(algorithm: str) -> str:
    """Return algorithm unchanged, or raise ValueError if unsupported."""
    if algorithm not in SUPPORTED_ALGORITHMS:
        raise ValueError(
            f"Unsupported hash algorithm {algorithm!r}; "
            f"choose one of {', '.join(SUPPORTED_ALGORITHMS)}"
        )
    return algorithm


def digest_chunks(chunks: Iterable[bytes], algorithm: str = DEFAULT_ALGORITHM) -> str:
    """Hash a stream of byte chunks into a hex digest."""
    hasher = hashlib.new(validate_algorithm(algorithm))
    for chunk in chunks:
        hasher.update(chunk)
    return hasher.hexdigest()


def digest(data: bytes, algorithm: str = DEFAULT_ALGORITHM) -> str:
    """
    Hash canonical bytes into a hex digest

    Args:
        data: Canonical form
        algorithm: One of SUPPORTED_ALGORITHMS

    Returns:
        Lowercase hex digest
    """
    view = memoryview(data)
    return digest_chunks(
        (view[offset:offset + CHUNK_SIZE] for offset in range(0, len(view), CHUNK_SIZE)),
        algorithm,
    )


def record_digest(
    record: Mapping[str, Any],
    excluded_fields: Iterable[str] = (),
    algorithm: str = DEFAULT_ALGORITHM,
    record_id: Any = None,
) -> str:
    """canonicalize() then digest(); raises CanonicalizationError on bad records."""
    return digest(canonicalize(record, excluded_fields, record_id=record_id), algorithm)


def unhashable_digest(side: str) -> str:
    """Sentinel digest stored for a record of `side` that could not be canonicalized."""
    return f"{UNHASHABLE_PREFIX}{side}"


def is_unhashable(value: str | None) -> bool:
    return value is not None and value.startswith(UNHASHABLE_PREFIX)
