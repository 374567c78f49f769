"""
Period-migration executor.

Builds the complete record set of the new partition from the old records, the
impact analysis and the caller's strategy. The function is pure: it either
returns one record per bucket of ``partition(new_period)`` or raises, and it
never returns a mixture of old and new buckets.

Design notes
------------
- **Carried records.** When a target's data comes from exactly one old record
  (single-target inheritance, split ``duplicate``, the target ending with the
  source under split ``last``, half-month copies, and the chosen source of
  merge ``highest`` / ``last``), the target is a copy of that record: its
  signature statuses, upload flag and link come along. A derived percentage
  is recomputed against the current signatures; an overridden one is kept.
- **Assigned records.** When the executor assigns a percentage that no single
  record carries (manual values, the ``0`` of ``last`` modes), the target
  starts from a default record (every signature and the upload incomplete)
  and the assigned percentage is stored as an override. The next signature
  or upload edit recomputes it from the flags.
- Merge notes keep only the sources listed in ``keep_notes_from`` and are
  rendered ``"[Mon] text"`` (``"[Mon (1/2)] text"`` for half-month sources)
  in chronological order.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

from bapp.config import get_settings
from bapp.schemas.migration import (
    DuplicateSplit,
    HalfMonthMode,
    HighestMerge,
    LastMerge,
    LastSplit,
    ManualMerge,
    ManualSplit,
    MergeCandidate,
    MigrationAnalysis,
    MigrationDirection,
    MigrationStrategy,
    SplitCandidate,
)
from bapp.schemas.period import Bucket, Period
from bapp.schemas.progress import ProgressRecord, Signature
from bapp.services.migration_analyzer import analyze_migration, contained_targets
from bapp.services.partition_service import bucket_label, partition
from bapp.services.progress_service import (
    align_statuses,
    check_signatures,
    index_records,
    new_record,
    ordered_signatures,
)
from bapp.utils.constants import MONTH_LABELS, SUB_PERIOD_LABELS
from bapp.utils.exceptions import (
    IncompleteStrategyError,
    InvalidRecordSetError,
    NoOpMigrationError,
    StrategyMismatchError,
)

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Record builders
# ---------------------------------------------------------------------------


def _carry(
    source: ProgressRecord,
    target: Bucket,
    signature_ids: Sequence[str],
) -> ProgressRecord:
    """Copy ``source`` onto ``target``, keeping its signature/upload state.

    A derived percentage is recomputed against ``signature_ids``; an
    overridden one is kept as stored.
    """
    carried = align_statuses(source, signature_ids).model_copy(update={"bucket": target})
    if source.percentage_overridden:
        return carried
    return carried.model_copy(update={"percentage": carried.derived_percentage})


def _assign(
    target: Bucket,
    signature_ids: Sequence[str],
    percentage: int,
    notes: str | None,
) -> ProgressRecord:
    """A default record for ``target`` with an assigned percentage and notes."""
    return new_record(target, signature_ids).model_copy(
        update={"percentage": percentage, "notes": notes}
    )


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def _note_tag(bucket: Bucket) -> str:
    tag = MONTH_LABELS[bucket.end_month]
    if bucket.sub_period is not None:
        return f"{tag} ({SUB_PERIOD_LABELS[bucket.sub_period]})"
    return tag


def merged_notes(
    candidate: MergeCandidate,
    keep_notes_from: set[Bucket],
    separator: str | None = None,
) -> str | None:
    """Join the kept source notes of ``candidate`` as ``"[Mon] text"`` entries.

    Half-month sources are tagged with their sub-period, e.g. ``"[Mei (2/2)]"``.
    """
    joiner = separator if separator is not None else get_settings().NOTES_SEPARATOR
    entries = [
        f"[{_note_tag(source.bucket)}] {source.notes.strip()}"
        for source in candidate.sources
        if source.bucket in keep_notes_from and source.notes
    ]
    return joiner.join(entries) if entries else None


def _merge_target(
    candidate: MergeCandidate,
    mode: HighestMerge | LastMerge | ManualMerge,
    existing: dict[Bucket, ProgressRecord],
    signature_ids: Sequence[str],
    notes: str | None,
) -> ProgressRecord:
    target = candidate.target_bucket
    if isinstance(mode, HighestMerge):
        # First source reaching the maximum wins ties
        chosen = next(
            s for s in candidate.sources if s.percentage == candidate.highest_percentage
        )
        carried = _carry(existing[chosen.bucket], target, signature_ids)
        return carried.model_copy(update={"notes": notes})
    if isinstance(mode, LastMerge):
        ending_here = [s for s in candidate.sources if s.bucket.end_month == target.end_month]
        if not ending_here:
            return _assign(target, signature_ids, 0, notes)
        carried = _carry(existing[ending_here[-1].bucket], target, signature_ids)
        return carried.model_copy(update={"notes": notes})
    return _assign(target, signature_ids, mode.value_for(target), notes)


# ---------------------------------------------------------------------------
# Split
# ---------------------------------------------------------------------------


def _split_targets(
    candidate: SplitCandidate,
    mode: DuplicateSplit | LastSplit | ManualSplit,
    source: ProgressRecord,
    signature_ids: Sequence[str],
) -> list[ProgressRecord]:
    records: list[ProgressRecord] = []
    for target in candidate.target_buckets:
        if isinstance(mode, DuplicateSplit):
            percentage = candidate.source_percentage
        elif isinstance(mode, LastSplit):
            is_last = target.end_month == candidate.source_bucket.end_month
            percentage = candidate.source_percentage if is_last else 0
        else:
            percentage = mode.percentages.get(target.end_month, candidate.source_percentage)

        if percentage == candidate.source_percentage:
            records.append(_carry(source, target, signature_ids))
        else:
            records.append(_assign(target, signature_ids, percentage, candidate.source_notes))
    return records


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def _check_strategy(analysis: MigrationAnalysis, strategy: MigrationStrategy) -> None:
    if analysis.merge_plan and strategy.merge is None:
        raise IncompleteStrategyError(
            f"{len(analysis.merge_plan)} merge target(s) need a merge mode "
            "(highest, last or manual)."
        )
    if analysis.split_plan and strategy.split is None:
        raise IncompleteStrategyError(
            f"{len(analysis.split_plan)} split source(s) need a split mode "
            "(duplicate, last or manual)."
        )

    note_sources = {
        source.bucket
        for candidate in analysis.merge_plan
        for source in candidate.sources
        if source.notes
    }
    foreign = [b for b in strategy.keep_notes_from if b not in note_sources]
    if foreign:
        labels = ", ".join(bucket_label(b, analysis.old_period) for b in foreign)
        raise StrategyMismatchError(f"Notes selected from buckets that are not merge sources: {labels}.")

    if isinstance(strategy.merge, ManualMerge):
        targets = {c.target_bucket.end_month for c in analysis.merge_plan}
        extra = sorted(set(strategy.merge.per_target) - targets)
        if extra:
            raise StrategyMismatchError(f"Manual merge values for months that are not merge targets: {extra}.")
    if isinstance(strategy.split, ManualSplit):
        targets = {
            t.end_month for c in analysis.split_plan for t in c.target_buckets
        }
        extra = sorted(set(strategy.split.percentages) - targets)
        if extra:
            raise StrategyMismatchError(f"Manual split values for months that are not split targets: {extra}.")


def _resolve_signature_ids(
    period: Period,
    signatures: Sequence[Signature | str] | None,
    records: Sequence[ProgressRecord],
) -> list[str]:
    carried = check_signatures(period, records)
    if signatures is None:
        return carried
    if all(isinstance(s, Signature) for s in signatures):
        resolved = [s.id for s in ordered_signatures(signatures)]
    else:
        resolved = [s if isinstance(s, str) else s.id for s in signatures]
    unknown = [sid for sid in carried if sid not in resolved]
    if unknown:
        raise InvalidRecordSetError(
            f"Records carry signatures that are not on the contract: {unknown}. "
            "Sync signatures before migrating."
        )
    return resolved


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------


def execute_migration(
    old_period: Period | float | str,
    new_period: Period | float | str,
    records: Sequence[ProgressRecord],
    strategy: MigrationStrategy | None = None,
    analysis: MigrationAnalysis | None = None,
    signatures: Sequence[Signature | str] | None = None,
) -> list[ProgressRecord]:
    """Transform ``records`` into the complete record set of ``new_period``.

    Args:
        old_period: Current period of the contract.
        new_period: Target period.
        records: Current progress records of the contract year.
        strategy: Caller choices. Defaults to no merge/split mode and
            half-month ``duplicate``.
        analysis: The analysis the caller configured ``strategy`` from. It is
            recomputed when omitted and must match when supplied.
        signatures: Current contract signatures (or their ids). Defaults to
            the statuses carried by ``records``.

    Returns:
        One record per bucket of ``partition(new_period)``, in partition order.

    Raises:
        InvalidPeriodError: If either period is outside the supported domain.
        NoOpMigrationError: If both periods are the same.
        IncompleteStrategyError: If a plan exists without a matching mode.
        StrategyMismatchError: If ``analysis`` is stale or ``strategy`` names
            buckets outside the plans.
        InvalidRecordSetError: If ``records`` do not belong to ``old_period``,
            disagree on their signatures, or carry a signature missing from
            ``signatures``.
    """
    old = Period.parse(old_period)
    new = Period.parse(new_period)
    if old is new:
        raise NoOpMigrationError(old)

    strategy = strategy or MigrationStrategy()
    computed = analyze_migration(old, new, records)
    if analysis is not None and analysis != computed:
        raise StrategyMismatchError(
            "The supplied analysis does not match the current records; analyze again."
        )
    _check_strategy(computed, strategy)

    signature_ids = _resolve_signature_ids(old, signatures, records)
    existing = index_records(old, records)
    result: dict[Bucket, ProgressRecord] = {
        bucket: new_record(bucket, signature_ids) for bucket in partition(new)
    }

    if computed.direction is MigrationDirection.MERGE:
        keep = set(strategy.keep_notes_from)
        for candidate in computed.merge_plan:
            result[candidate.target_bucket] = _merge_target(
                candidate,
                strategy.merge,
                existing,
                signature_ids,
                merged_notes(candidate, keep),
            )

    elif computed.direction is MigrationDirection.SPLIT:
        planned = {c.source_bucket: c for c in computed.split_plan}
        for bucket, record in existing.items():
            if record.is_trivial:
                continue
            if bucket in planned:
                for carried in _split_targets(planned[bucket], strategy.split, record, signature_ids):
                    result[carried.bucket] = carried
                continue
            targets = contained_targets(bucket, old, new)
            if len(targets) == 1:
                result[targets[0]] = _carry(record, targets[0], signature_ids)

    elif computed.direction is MigrationDirection.HALF_MONTH_EXPANSION:
        for candidate in computed.expansion_plan:
            source = existing[candidate.source_bucket]
            first, second = candidate.target_buckets
            result[first] = _carry(source, first, signature_ids)
            if strategy.half_month is HalfMonthMode.DUPLICATE:
                result[second] = _carry(source, second, signature_ids)

    for bucket in computed.unmapped_buckets:
        logger.warning(
            "Bucket %s has data that no %s bucket can absorb; it is not carried over",
            bucket_label(bucket, old),
            new.label,
        )

    migrated = [result[bucket] for bucket in partition(new)]
    logger.info(
        "Migrated %d records from %s to %s (%s)",
        len(existing),
        old.label,
        new.label,
        computed.direction.value,
    )
    return migrated
