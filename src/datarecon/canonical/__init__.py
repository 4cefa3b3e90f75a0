"""
Canonical forms and digests of records.

- canonicalize: order-independent bytes with volatile fields removed
- digest / record_digest: fixed-size hex digest of the canonical form
"""

from .canonicalizer import canonicalize, project
from .digest import (
    DEFAULT_ALGORITHM,
    SUPPORTED_ALGORITHMS,
    digest,
    digest_chunks,
    is_unhashable,
    record_digest,
    unhashable_digest,
    validate_algorithm,
)

__all__ = [
    "canonicalize",
    "project",
    "digest",
    "digest_chunks",
    "record_digest",
    "unhashable_digest",
    "is_unhashable",
    "validate_algorithm",
    "DEFAULT_ALGORITHM",
    "SUPPORTED_ALGORITHMS",
]
