"""
Canonical, field-order-independent serialization of records.

The canonical form is compact UTF-8 JSON with keys sorted at every mapping
depth, after dropping the configured volatile fields from the top level. Two
records with the same remaining content always produce the same bytes.
"""

import json
from collections.abc import Mapping, Set
from datetime import date, datetime, time
from decimal import Decimal
from typing import Any, Iterable
from uuid import UUID

from datarecon.errors import CanonicalizationError

_SEPARATORS = (",", ":")


def _encode_value(value: Any) -> Any:
    """
    json.dumps ``default`` hook: encode by value what JSON cannot express.

    Raises TypeError for anything unknown, which canonicalize() reports as a
    CanonicalizationError.
    """
    if isinstance(value, Mapping):
        return dict(value)
    if isinstance(value, (datetime, date, time)):
        return value.isoformat()
    if isinstance(value, (Decimal, UUID)):
        return str(value)
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, Set):
        # Sets have no order of their own; order members by their own encoding
        return sorted(value, key=_dumps)
    raise TypeError(f"Object of type {type(value).__name__} is not canonicalizable")


def _check_keys(value: Any) -> None:
    """
    Reject non-str mapping keys at any depth.

    JSON would turn 1, True and "1" into the same key string, so two records
    with different keys could share a canonical form.
    """
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise TypeError(f"Mapping key {key!r} is a {type(key).__name__}, not a str")
            _check_keys(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_keys(item)


def _dumps(value: Any) -> str:
    return json.dumps(
        value,
        sort_keys=True,
        separators=_SEPARATORS,
        ensure_ascii=False,
        default=_encode_value,
    )


def project(record: Mapping[str, Any], excluded_fields: Iterable[str] = ()) -> dict[str, Any]:
    """Return a copy of record without the excluded top-level fields."""
    excluded = excluded_fields if isinstance(excluded_fields, (set, frozenset)) else set(excluded_fields)
    return {key: value for key, value in record.items() if key not in excluded}


def canonicalize(
    record: Mapping[str, Any],
    excluded_fields: Iterable[str] = (),
    record_id: Any = None,
) -> bytes:
    """
    Serialize a record to its canonical byte form.

    Args:
        record: Field name to value mapping; nested mappings and sequences allowed
        excluded_fields: Top-level field names to drop (volatile fields)
        record_id: Identifier used only to annotate errors

    Returns:
        Canonical UTF-8 bytes

    Raises:
        CanonicalizationError: A value cannot be encoded, a key is not a
            str, or the structure is circular
    """
    if not isinstance(record, Mapping):
        raise CanonicalizationError(
            f"Record must be a mapping, got {type(record).__name__}", record_id=record_id
        )

    try:
        projected = project(record, excluded_fields)
        _check_keys(projected)
        return _dumps(projected).encode("utf-8")
    except (TypeError, ValueError, RecursionError) as e:
        raise CanonicalizationError(
            f"Cannot canonicalize record {record_id!r}: {e}", record_id=record_id
        ) from e
