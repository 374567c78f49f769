"""
Progress model service.

Creates and edits ``ProgressRecord`` instances while keeping the record-set
invariants of a contract year:

- the buckets of the records are exactly ``partition(period)``;
- every record carries one ``SignatureStatus`` per contract signature, in
  signature order;
- any record produced by a signature or upload edit stores
  ``percentage = round(100 × done / (signatures + 1))`` where ``done`` counts
  completed signatures plus the upload.

Records are immutable; every function returns new instances.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping, Sequence
from dataclasses import dataclass
from datetime import datetime, timezone

from bapp.schemas.period import Bucket, Period
from bapp.schemas.progress import (
    BatchOperation,
    ProgressOption,
    ProgressRecord,
    Signature,
    SignatureStatus,
    YearlyStatus,
    round_half_up,
)
from bapp.services.partition_service import bucket_label, check_bucket, partition
from bapp.utils.constants import PERCENTAGE_COMPLETE
from bapp.utils.exceptions import InvalidRecordSetError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProgressBreakdown:
    """Result of the percentage derivation.

    Attributes:
        percentage: Rounded completion percentage (0–100).
        total_items: Signatures + 1 (upload).
        completed_items: Completed signatures + 1 if the upload is done.
    """

    percentage: int
    total_items: int
    completed_items: int


def _now() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Derivation
# ---------------------------------------------------------------------------


def calculate_progress(
    completed_signatures: int,
    total_signatures: int,
    upload_completed: bool,
) -> ProgressBreakdown:
    """Derive the completion percentage from signature and upload state."""
    if completed_signatures < 0 or completed_signatures > total_signatures:
        raise ValueError(
            f"completed_signatures must be between 0 and {total_signatures}, "
            f"got {completed_signatures}."
        )
    total_items = total_signatures + 1
    completed_items = completed_signatures + (1 if upload_completed else 0)
    percentage = round_half_up(100 * completed_items / total_items)
    return ProgressBreakdown(
        percentage=percentage,
        total_items=total_items,
        completed_items=completed_items,
    )


def derived_percentage(record: ProgressRecord) -> int:
    return record.derived_percentage


def progress_options(total_signatures: int) -> list[ProgressOption]:
    """Every percentage reachable with ``total_signatures`` signatures plus the upload."""
    total_items = total_signatures + 1
    options: list[ProgressOption] = []
    for done in range(total_items + 1):
        value = round_half_up(100 * done / total_items)
        options.append(
            ProgressOption(
                value=value,
                completed_items=done,
                total_items=total_items,
                label=f"{value}% ({done}/{total_items} done)",
            )
        )
    return options


# ---------------------------------------------------------------------------
# Construction
# ---------------------------------------------------------------------------


def _signature_ids(signatures: Iterable[Signature | str]) -> list[str]:
    ids = [s if isinstance(s, str) else s.id for s in signatures]
    if len(set(ids)) != len(ids):
        raise InvalidRecordSetError(f"Duplicated signature ids: {ids}.")
    return ids


def ordered_signatures(signatures: Iterable[Signature]) -> list[Signature]:
    """Signatures sorted by ``order``; ties keep their input order."""
    return sorted(signatures, key=lambda s: s.order)


def new_record(bucket: Bucket, signatures: Iterable[Signature | str] = ()) -> ProgressRecord:
    """A default record: 0 %, no notes, upload and every signature incomplete."""
    return ProgressRecord(
        bucket=bucket,
        signature_statuses=[
            SignatureStatus(signature_id=sid) for sid in _signature_ids(signatures)
        ],
    )


def initial_records(
    period: Period | float | str,
    signatures: Sequence[Signature],
) -> list[ProgressRecord]:
    """Default records for every bucket of ``period``, used when a contract is created."""
    ids = [s.id for s in ordered_signatures(signatures)]
    return [new_record(bucket, ids) for bucket in partition(period)]


# ---------------------------------------------------------------------------
# Edits
# ---------------------------------------------------------------------------


def update_progress(
    record: ProgressRecord,
    *,
    signature_updates: Mapping[str, bool] | None = None,
    upload_completed: bool | None = None,
    upload_link: str | None = None,
    at: datetime | None = None,
) -> ProgressRecord:
    """Apply signature and upload edits and recompute the percentage.

    Args:
        record: Record to edit.
        signature_updates: Signature id → completed flag. Unknown ids raise.
        upload_completed: New upload flag; ``None`` keeps the current one.
        upload_link: New upload link; ``None`` keeps the current one.
        at: Completion timestamp for newly completed signatures.

    Returns:
        The edited record with a derived percentage.

    Raises:
        InvalidRecordSetError: If an update names a signature the record lacks.
    """
    stamp = at or _now()
    updates = dict(signature_updates or {})
    unknown = set(updates) - set(record.signature_ids)
    if unknown:
        raise InvalidRecordSetError(f"Unknown signature ids: {sorted(unknown)}.")

    statuses: list[SignatureStatus] = []
    for status in record.signature_statuses:
        if status.signature_id not in updates:
            statuses.append(status)
            continue
        completed = updates[status.signature_id]
        if completed == status.completed:
            statuses.append(status)
        else:
            statuses.append(
                SignatureStatus(
                    signature_id=status.signature_id,
                    completed=completed,
                    completed_at=stamp if completed else None,
                )
            )

    edited = record.model_copy(
        update={
            "signature_statuses": statuses,
            "upload_completed": (
                record.upload_completed if upload_completed is None else upload_completed
            ),
            "upload_link": record.upload_link if upload_link is None else upload_link,
        }
    )
    return _recompute(edited)


def set_notes(record: ProgressRecord, notes: str | None) -> ProgressRecord:
    """Replace the notes; the percentage is left untouched."""
    cleaned = notes.strip() if notes else None
    return record.model_copy(update={"notes": cleaned or None})


def _recompute(record: ProgressRecord) -> ProgressRecord:
    return record.model_copy(update={"percentage": record.derived_percentage})


def align_statuses(
    record: ProgressRecord,
    signature_ids: Sequence[str],
) -> ProgressRecord:
    """Reorder, extend and prune the statuses of ``record`` to ``signature_ids``.

    Existing completion state is kept; new signatures start incomplete. The
    stored percentage is not touched.
    """
    current = {status.signature_id: status for status in record.signature_statuses}
    statuses = [
        current.get(sid) or SignatureStatus(signature_id=sid) for sid in signature_ids
    ]
    return record.model_copy(update={"signature_statuses": statuses})


def sync_signatures(
    records: Sequence[ProgressRecord],
    signatures: Sequence[Signature],
) -> list[ProgressRecord]:
    """Bring every record in line with the contract's current signature list.

    Added signatures are appended as incomplete entries, removed ones are
    dropped, and order follows ``Signature.order``. Records whose percentage
    was derived before the change are recomputed; migration overrides keep
    their stored value.
    """
    ids = _signature_ids(ordered_signatures(signatures))
    synced: list[ProgressRecord] = []
    for record in records:
        aligned = align_statuses(record, ids)
        if not record.percentage_overridden:
            aligned = _recompute(aligned)
        synced.append(aligned)
    return synced


def apply_batch_operation(
    records: Sequence[ProgressRecord],
    operation: BatchOperation,
    buckets: Iterable[Bucket],
    *,
    at: datetime | None = None,
) -> list[ProgressRecord]:
    """Complete signatures (and optionally the upload) on the selected buckets.

    Buckets without a record are skipped; the other records are returned
    unchanged.
    """
    selected = set(buckets)
    stamp = at or _now()
    result: list[ProgressRecord] = []
    touched = 0
    for record in records:
        if record.bucket not in selected:
            result.append(record)
            continue
        touched += 1
        result.append(
            update_progress(
                record,
                signature_updates={sid: True for sid in record.signature_ids},
                upload_completed=True if operation is BatchOperation.COMPLETE_ALL else None,
                at=stamp,
            )
        )
    logger.info("Batch %s applied to %d of %d records", operation.value, touched, len(records))
    return result


# ---------------------------------------------------------------------------
# Record-set invariants
# ---------------------------------------------------------------------------


def index_records(
    period: Period,
    records: Iterable[ProgressRecord],
) -> dict[Bucket, ProgressRecord]:
    """Index records by bucket, rejecting foreign or duplicated buckets.

    Missing buckets are allowed; callers treat them as default records.
    """
    indexed: dict[Bucket, ProgressRecord] = {}
    for record in records:
        check_bucket(record.bucket, period)
        if record.bucket in indexed:
            raise InvalidRecordSetError(
                f"Duplicated record for bucket {bucket_label(record.bucket, period)!r}."
            )
        indexed[record.bucket] = record
    return indexed


def validate_record_set(
    period: Period | float | str,
    records: Sequence[ProgressRecord],
    signature_ids: Sequence[str] | None = None,
) -> None:
    """Check the full invariant set of a contract year.

    Raises:
        InvalidRecordSetError: If buckets differ from ``partition(period)`` or a
            record's statuses differ from ``signature_ids`` (defaults to the
            first record's statuses).
    """
    resolved = Period.parse(period)
    indexed = index_records(resolved, records)
    missing = [b for b in partition(resolved) if b not in indexed]
    if missing:
        labels = ", ".join(bucket_label(b, resolved) for b in missing)
        raise InvalidRecordSetError(f"Missing records for buckets: {labels}.")
    check_signatures(resolved, records, signature_ids)


def check_signatures(
    period: Period,
    records: Sequence[ProgressRecord],
    signature_ids: Sequence[str] | None = None,
) -> list[str]:
    """Return the signature ids shared by every record.

    Raises:
        InvalidRecordSetError: If a record's statuses differ from
            ``signature_ids`` (defaults to the first record's statuses).
    """
    expected = list(signature_ids) if signature_ids is not None else signature_ids_of(records)
    for record in records:
        if record.signature_ids != expected:
            raise InvalidRecordSetError(
                f"Signature statuses of {bucket_label(record.bucket, period)!r} "
                f"do not match the contract signatures."
            )
    return expected


def signature_ids_of(records: Sequence[ProgressRecord]) -> list[str]:
    """Signature ids carried by a record set (taken from the first record)."""
    return records[0].signature_ids if records else []


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------


def yearly_status(records: Sequence[ProgressRecord]) -> YearlyStatus:
    if records and all(r.percentage == PERCENTAGE_COMPLETE for r in records):
        return YearlyStatus.COMPLETED
    if any(r.percentage > 0 for r in records):
        return YearlyStatus.IN_PROGRESS
    return YearlyStatus.NOT_STARTED
