"""
Property-based tests for canonical forms and reconciliation counts using Hypothesis.

Tests invariants that should hold for all inputs:
- Canonical form ignores field order
- Digests ignore excluded fields
- total == |source ids | target ids|
- match + source_only + target_only + differing == total
- Batch size and worker count never change the answer
"""

import random

from hypothesis import HealthCheck, given, settings, strategies as st

from datarecon.canonical import canonicalize, record_digest
from datarecon.config import ReconcileConfig
from datarecon.engine import DatasetReconciler
from datarecon.scanner import BatchScanner, InMemoryRecordSource
from datarecon.staging import InMemoryStagingStore

field_names = st.text(alphabet="abcdefgh", min_size=1, max_size=4)
scalars = st.one_of(
    st.none(),
    st.booleans(),
    st.integers(min_value=-10**6, max_value=10**6),
    st.text(max_size=8),
)
values = st.recursive(
    scalars,
    lambda children: st.one_of(
        st.lists(children, max_size=3),
        st.dictionaries(field_names, children, max_size=3),
    ),
    max_leaves=8,
)
records = st.dictionaries(field_names, values, max_size=6)

# id -> small payload; payloads collide often so matches are common
datasets = st.dictionaries(
    st.integers(min_value=0, max_value=60),
    st.fixed_dictionaries({"v": st.integers(min_value=0, max_value=2)}),
    max_size=40,
)


def _shuffled(record: dict, seed: int) -> dict:
    items = list(record.items())
    random.Random(seed).shuffle(items)
    return {key: (_shuffled(value, seed) if isinstance(value, dict) else value) for key, value in items}


def _source(data: dict) -> InMemoryRecordSource:
    return InMemoryRecordSource([{"id": record_id, **fields} for record_id, fields in data.items()])


def _run(source_data: dict, target_data: dict, **config):
    reconciler = DatasetReconciler(
        _source(source_data), _source(target_data), InMemoryStagingStore(),
        ReconcileConfig(page_retries=0, **config),
    )
    return reconciler.run()


# Property: canonical form is invariant under field order permutation
@given(record=records, seed=st.integers())
def test_canonical_form_ignores_field_order(record: dict, seed: int):
    """Permuting fields at any depth never changes the canonical bytes."""
    assert canonicalize(record) == canonicalize(_shuffled(record, seed))


# Property: excluded fields never influence the digest
@given(record=records, volatile_a=values, volatile_b=values)
def test_digest_ignores_excluded_fields(record: dict, volatile_a, volatile_b):
    """Records differing only in an excluded field share a digest."""
    left = {**record, "updatedAt": volatile_a}
    right = {**record, "updatedAt": volatile_b}
    assert record_digest(left, {"updatedAt"}) == record_digest(right, {"updatedAt"})


# Property: distinct canonical forms give distinct digests
@given(left=records, right=records)
def test_digest_equality_follows_canonical_equality(left: dict, right: dict):
    """digest(a) == digest(b) exactly when canonical(a) == canonical(b)."""
    assert (record_digest(left) == record_digest(right)) == (canonicalize(left) == canonicalize(right))


# Property: counting invariants of a full reconciliation
@settings(max_examples=60, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(source_data=datasets, target_data=datasets, batch_size=st.integers(min_value=1, max_value=12))
def test_counts_partition_the_id_union(source_data: dict, target_data: dict, batch_size: int):
    """Every id in either dataset is counted exactly once."""
    result = _run(source_data, target_data, batch_size=batch_size)

    source_ids, target_ids = set(source_data), set(target_data)

    # Property 1: total is the size of the id union
    assert result.total == len(source_ids | target_ids)

    # Property 2: the four classes partition the total
    assert result.match + result.source_only + result.target_only + result.differing == result.total

    # Property 3: one-sided counts are set differences
    assert result.source_only == len(source_ids - target_ids)
    assert result.target_only == len(target_ids - source_ids)

    # Property 4: match and differing split the intersection by content
    common = source_ids & target_ids
    assert result.match == sum(1 for i in common if source_data[i] == target_data[i])
    assert result.differing == len(common) - result.match


# Property: batch size and worker count do not change the result
@settings(max_examples=25, deadline=None, suppress_health_check=[HealthCheck.too_slow])
@given(
    source_data=datasets,
    target_data=datasets,
    batch_size=st.integers(min_value=1, max_value=10),
    workers=st.integers(min_value=2, max_value=4),
)
def test_result_independent_of_batching(source_data, target_data, batch_size, workers):
    """Paging and parallelism are implementation details."""
    baseline = _run(source_data, target_data, batch_size=50)
    varied = _run(source_data, target_data, batch_size=batch_size, workers=workers)
    assert varied.counts() == baseline.counts()


# Property: the scanner covers every record exactly once
@given(size=st.integers(min_value=0, max_value=50), batch_size=st.integers(min_value=1, max_value=20))
def test_scanner_covers_source_exactly_once(size: int, batch_size: int):
    """Batches are bounded, contiguous and cover the source without overlap."""
    source = InMemoryRecordSource([{"id": i} for i in range(size)])
    scanner = BatchScanner(source, batch_size=batch_size)
    batches = list(scanner)

    assert all(0 < len(batch) <= batch_size for batch in batches)
    assert [record_id for batch in batches for record_id in scanner.ids_of(batch)] == list(range(size))
    # full pages, then at most one short page, then the terminating empty page
    assert scanner.pages_read == len(batches) + 1
