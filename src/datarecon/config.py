"""
Run configuration.

Values come from defaults, then DATARECON_* environment variables, then
explicit overrides (CLI flags). Everything is validated up front so a bad
setting fails before any page is read.
"""

import dataclasses
import os
from dataclasses import dataclass, field
from typing import Any, Mapping

from datarecon.canonical import DEFAULT_ALGORITHM, validate_algorithm

ENV_PREFIX = "DATARECON_"

HANDLE_KINDS = ("jsonl", "postgres", "sqlserver")


def parse_field_list(value: str | None) -> frozenset[str]:
    """'updatedAt, syncedAt' -> frozenset({'updatedAt', 'syncedAt'})"""
    if not value:
        return frozenset()
    return frozenset(name.strip() for name in value.split(",") if name.strip())


def parse_handle(handle: str) -> tuple[str, str]:
    """
    Split a dataset handle into (kind, location)

    Examples:
        'jsonl:/data/users.jsonl' -> ('jsonl', '/data/users.jsonl')
        'postgres:public.users'   -> ('postgres', 'public.users')
        'sqlserver:dbo.Users'     -> ('sqlserver', 'dbo.Users')
    """
    kind, sep, location = handle.partition(":")
    if not sep or kind not in HANDLE_KINDS or not location:
        raise ValueError(
            f"Invalid dataset handle {handle!r}; expected one of "
            f"{', '.join(k + ':<location>' for k in HANDLE_KINDS)}"
        )
    return kind, location


@dataclass(frozen=True)
class ReconcileConfig:
    """
    Settings for one reconciliation run

    Attributes:
        batch_size: Records per page (B)
        excluded_fields: Top-level volatile fields left out of the digest
        sample_cap: Differing entries listed in the report
        hash_algorithm: Digest algorithm
        workers: Threads hashing and staging batches within a pass
        page_retries: Retries of a page read on transient errors
        staging: 'memory' or 'sqlite:<path>'
        source, target: Dataset handles (see parse_handle)
        id_field: Name of the identifier field on both sides
    """

    batch_size: int = 50_000
    excluded_fields: frozenset[str] = field(default_factory=frozenset)
    sample_cap: int = 10
    hash_algorithm: str = DEFAULT_ALGORITHM
    workers: int = 1
    page_retries: int = 2
    staging: str = "memory"
    source: str | None = None
    target: str | None = None
    id_field: str = "id"

    def __post_init__(self):
        if not isinstance(self.excluded_fields, frozenset):
            object.__setattr__(self, "excluded_fields", frozenset(self.excluded_fields))
        if self.batch_size < 1:
            raise ValueError(f"batch_size must be positive, got {self.batch_size}")
        if self.sample_cap < 0:
            raise ValueError(f"sample_cap cannot be negative, got {self.sample_cap}")
        if self.workers < 1:
            raise ValueError(f"workers must be at least 1, got {self.workers}")
        if self.page_retries < 0:
            raise ValueError(f"page_retries cannot be negative, got {self.page_retries}")
        if not self.id_field:
            raise ValueError("id_field cannot be empty")
        validate_algorithm(self.hash_algorithm)
        for handle in (self.source, self.target):
            if handle is not None:
                parse_handle(handle)

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> "ReconcileConfig":
        """
        Build a config from DATARECON_* variables

        Variables: BATCH_SIZE, EXCLUDE (comma-separated), SAMPLE_CAP,
        HASH_ALGORITHM, WORKERS, PAGE_RETRIES, STAGING, SOURCE, TARGET, ID_FIELD
        """
        env = os.environ if environ is None else environ

        def get(name: str) -> str | None:
            value = env.get(ENV_PREFIX + name)
            return value if value not in (None, "") else None

        values: dict[str, Any] = {}
        for name in ("batch_size", "sample_cap", "workers", "page_retries"):
            raw = get(name.upper())
            if raw is not None:
                try:
                    values[name] = int(raw)
                except ValueError:
                    raise ValueError(f"{ENV_PREFIX}{name.upper()} must be an integer, got {raw!r}")
        for name in ("hash_algorithm", "staging", "source", "target", "id_field"):
            raw = get(name.upper())
            if raw is not None:
                values[name] = raw
        if get("EXCLUDE") is not None:
            values["excluded_fields"] = parse_field_list(get("EXCLUDE"))

        return cls(**values)

    def with_overrides(self, **overrides: Any) -> "ReconcileConfig":
        """Copy with every non-None override applied."""
        changes = {key: value for key, value in overrides.items() if value is not None}
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["excluded_fields"] = sorted(self.excluded_fields)
        return data
