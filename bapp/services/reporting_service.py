"""
Reporting helpers for chart and export collaborators.

Every aggregate here walks ``partition(period)`` so that a contract reported
every three months is averaged over its four buckets, not over twelve months
of which eight never carry a record.

Design notes
------------
- Missing buckets count as 0 % (they exist as default records by invariant).
- ``bucket_frame`` and ``contract_frame`` return plain ``pandas.DataFrame``
  objects; formatting them into spreadsheets or charts is the caller's job.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence

import pandas as pd

from bapp.schemas.period import Period
from bapp.schemas.progress import ProgressRecord
from bapp.schemas.report import ContractProgressResponse, ContractSnapshot, ContractStatsResponse
from bapp.services.partition_service import bucket_label, bucket_span, partition, relevant_months
from bapp.services.progress_service import index_records, yearly_status

logger = logging.getLogger(__name__)

_BUCKET_COLUMNS: list[str] = [
    "start_month",
    "end_month",
    "sub_period",
    "label",
    "percentage",
    "upload_completed",
    "signatures_completed",
    "signatures_total",
    "notes",
]


def bucket_frame(period: Period | float | str, records: Sequence[ProgressRecord]) -> pd.DataFrame:
    """One row per bucket of ``partition(period)`` in chronological order."""
    resolved = Period.parse(period)
    indexed = index_records(resolved, records)
    rows: list[dict] = []
    for bucket in partition(resolved):
        record = indexed.get(bucket)
        start, end = bucket_span(bucket, resolved)
        rows.append(
            {
                "start_month": start,
                "end_month": end,
                "sub_period": bucket.sub_period,
                "label": bucket_label(bucket, resolved),
                "percentage": record.percentage if record else 0,
                "upload_completed": record.upload_completed if record else False,
                "signatures_completed": record.completed_signatures if record else 0,
                "signatures_total": len(record.signature_statuses) if record else 0,
                "notes": record.notes if record else None,
            }
        )
    return pd.DataFrame(rows, columns=_BUCKET_COLUMNS)


def contract_progress(period: Period | float | str, records: Sequence[ProgressRecord]) -> float:
    """Mean percentage over the buckets of ``period`` (0.0–100.0)."""
    frame = bucket_frame(period, records)
    if frame.empty:
        return 0.0
    return round(float(frame["percentage"].mean()), 2)


def describe_contract(snapshot: ContractSnapshot) -> ContractProgressResponse:
    period = Period.parse(snapshot.period)
    return ContractProgressResponse(
        contract_id=snapshot.contract_id,
        name=snapshot.name,
        period=period,
        label=period.label,
        relevant_months=relevant_months(period),
        progress=contract_progress(period, snapshot.records),
        yearly_status=yearly_status(snapshot.records),
    )


def contract_frame(contracts: Sequence[ContractSnapshot]) -> pd.DataFrame:
    """One row per contract: id, name, period label, progress and yearly status."""
    rows = [
        {
            "contract_id": item.contract_id,
            "name": item.name,
            "period": item.label,
            "progress": item.progress,
            "yearly_status": item.yearly_status.value,
        }
        for item in (describe_contract(c) for c in contracts)
    ]
    return pd.DataFrame(
        rows,
        columns=["contract_id", "name", "period", "progress", "yearly_status"],
    )


def contract_stats(contracts: Sequence[ContractSnapshot]) -> ContractStatsResponse:
    """Counts per yearly status and the mean progress across contracts."""
    frame = contract_frame(contracts)
    if frame.empty:
        return ContractStatsResponse(
            total=0, completed=0, in_progress=0, not_started=0, progress=0.0
        )
    counts = frame["yearly_status"].value_counts()
    stats = ContractStatsResponse(
        total=len(frame),
        completed=int(counts.get("completed", 0)),
        in_progress=int(counts.get("in_progress", 0)),
        not_started=int(counts.get("not_started", 0)),
        progress=round(float(frame["progress"].mean()), 2),
    )
    logger.debug("Computed stats for %d contracts", stats.total)
    return stats
