"""
Period-migration impact analyzer.

Computes, without mutating anything, what a change of reporting period would
do to a contract year's progress records:

- **merge** (new period coarser): every new bucket that would absorb one or
  more non-trivial old buckets becomes a ``MergeCandidate``;
- **split** (new period finer): every non-trivial old bucket whose range
  holds more than one new bucket becomes a ``SplitCandidate``;
- **half-month expansion** (new period is half-month): every non-trivial old
  bucket is listed with its two sub-period targets.

A record is non-trivial when it has a percentage above zero or notes.

Design notes
------------
- Direction compares bucket granularity, so half-month → N months is a merge
  whose sources are the individual sub-periods.
- Period pairs that do not nest (e.g. 4 → 6 or 3 → 4) leave some old
  buckets outside every new bucket. Those are reported in
  ``unmapped_buckets`` instead of being stretched over a neighbour.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from bapp.schemas.migration import (
    MergeCandidate,
    MigrationAnalysis,
    MigrationDirection,
    SourceBucket,
    SplitCandidate,
)
from bapp.schemas.period import Bucket, Period
from bapp.schemas.progress import ProgressRecord
from bapp.services.partition_service import bucket_label, bucket_span, contains, partition
from bapp.services.progress_service import index_records

logger = logging.getLogger(__name__)


def migration_direction(old_period: Period, new_period: Period) -> MigrationDirection:
    if old_period is new_period:
        return MigrationDirection.UNCHANGED
    if new_period.is_half_month:
        return MigrationDirection.HALF_MONTH_EXPANSION
    if new_period.is_coarser_than(old_period):
        return MigrationDirection.MERGE
    return MigrationDirection.SPLIT


def _source(bucket: Bucket, period: Period, record: ProgressRecord) -> SourceBucket:
    start, _ = bucket_span(bucket, period)
    return SourceBucket(
        bucket=bucket,
        start_month=start,
        label=bucket_label(bucket, period),
        percentage=record.percentage,
        notes=record.notes if record.has_notes else None,
    )


def contained_targets(
    source: Bucket,
    old_period: Period,
    new_period: Period,
) -> list[Bucket]:
    """New buckets lying entirely within ``source``, chronological."""
    return [
        target
        for target in partition(new_period)
        if contains(source, old_period, target, new_period)
    ]


def non_trivial_records(
    old_period: Period,
    records: Sequence[ProgressRecord],
) -> dict[Bucket, ProgressRecord]:
    """Non-trivial records keyed by bucket, in partition order."""
    indexed = index_records(old_period, records)
    return {
        bucket: indexed[bucket]
        for bucket in partition(old_period)
        if bucket in indexed and not indexed[bucket].is_trivial
    }


# ---------------------------------------------------------------------------
# Plans
# ---------------------------------------------------------------------------


def _merge_plan(
    old_period: Period,
    new_period: Period,
    data: dict[Bucket, ProgressRecord],
) -> tuple[list[MergeCandidate], list[Bucket]]:
    plan: list[MergeCandidate] = []
    absorbed: set[Bucket] = set()
    for target in partition(new_period):
        sources = [
            _source(bucket, old_period, record)
            for bucket, record in data.items()
            if contains(target, new_period, bucket, old_period)
        ]
        if not sources:
            continue
        absorbed.update(s.bucket for s in sources)
        # Sub-period 2 is the last source ending in the target month
        ending_here = [s for s in sources if s.bucket.end_month == target.end_month]
        start, _ = bucket_span(target, new_period)
        plan.append(
            MergeCandidate(
                target_bucket=target,
                target_start_month=start,
                label=bucket_label(target, new_period),
                sources=sources,
                highest_percentage=max(s.percentage for s in sources),
                last_percentage=ending_here[-1].percentage if ending_here else None,
            )
        )
    unmapped = [bucket for bucket in data if bucket not in absorbed]
    return plan, unmapped


def _split_plan(
    old_period: Period,
    new_period: Period,
    data: dict[Bucket, ProgressRecord],
) -> tuple[list[SplitCandidate], list[Bucket]]:
    plan: list[SplitCandidate] = []
    unmapped: list[Bucket] = []
    for bucket, record in data.items():
        targets = contained_targets(bucket, old_period, new_period)
        if not targets:
            unmapped.append(bucket)
        elif len(targets) > 1:
            plan.append(_split_candidate(bucket, old_period, record, targets))
    return plan, unmapped


def _expansion_plan(
    old_period: Period,
    data: dict[Bucket, ProgressRecord],
) -> list[SplitCandidate]:
    return [
        _split_candidate(
            bucket,
            old_period,
            record,
            [Bucket.half(bucket.end_month, 1), Bucket.half(bucket.end_month, 2)],
        )
        for bucket, record in data.items()
    ]


def _split_candidate(
    bucket: Bucket,
    period: Period,
    record: ProgressRecord,
    targets: list[Bucket],
) -> SplitCandidate:
    start, _ = bucket_span(bucket, period)
    return SplitCandidate(
        source_bucket=bucket,
        source_start_month=start,
        label=bucket_label(bucket, period),
        source_percentage=record.percentage,
        source_notes=record.notes if record.has_notes else None,
        target_buckets=targets,
    )


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def analyze_migration(
    old_period: Period | float | str,
    new_period: Period | float | str,
    records: Sequence[ProgressRecord],
) -> MigrationAnalysis:
    """Dry-run the impact of moving ``records`` from ``old_period`` to ``new_period``.

    Args:
        old_period: Current period of the contract.
        new_period: Proposed period.
        records: Current progress records of the contract year. Missing
            buckets count as empty.

    Returns:
        A ``MigrationAnalysis``. When both ``merge_plan`` and ``split_plan``
        are empty the migration can run with default choices.

    Raises:
        InvalidPeriodError: If either period is outside the supported domain.
        InvalidRecordSetError: If a record's bucket is foreign to ``old_period``
            or appears twice.
    """
    old = Period.parse(old_period)
    new = Period.parse(new_period)
    direction = migration_direction(old, new)
    data = non_trivial_records(old, records)

    merge_plan: list[MergeCandidate] = []
    split_plan: list[SplitCandidate] = []
    expansion_plan: list[SplitCandidate] = []
    unmapped: list[Bucket] = []

    if direction is MigrationDirection.MERGE:
        merge_plan, unmapped = _merge_plan(old, new, data)
    elif direction is MigrationDirection.SPLIT:
        split_plan, unmapped = _split_plan(old, new, data)
    elif direction is MigrationDirection.HALF_MONTH_EXPANSION:
        expansion_plan = _expansion_plan(old, data)

    logger.debug(
        "Analyzed %s -> %s (%s): %d merge, %d split, %d expansion, %d unmapped",
        old.label,
        new.label,
        direction.value,
        len(merge_plan),
        len(split_plan),
        len(expansion_plan),
        len(unmapped),
    )
    return MigrationAnalysis(
        old_period=old,
        new_period=new,
        direction=direction,
        merge_plan=merge_plan,
        split_plan=split_plan,
        expansion_plan=expansion_plan,
        unmapped_buckets=unmapped,
    )
