"""Shared fixtures and record builders for the period engine test suite."""

from __future__ import annotations

import pytest

from bapp.config import get_settings
from bapp.schemas.period import Bucket, Period
from bapp.schemas.progress import ProgressRecord, Signature
from bapp.services.partition_service import partition
from bapp.services.progress_service import new_record


def make_records(
    period: Period,
    values: dict[int, int] | None = None,
    notes: dict[int, str] | None = None,
    signature_ids: list[str] | None = None,
) -> list[ProgressRecord]:
    """Full record set for ``period`` with stored percentages keyed by end month.

    Percentages are stored as given, the way a previous migration leaves
    them; signature state stays incomplete.
    """
    values = values or {}
    notes = notes or {}
    records = []
    for bucket in partition(period):
        record = new_record(bucket, signature_ids or [])
        records.append(
            record.model_copy(
                update={
                    "percentage": values.get(bucket.end_month, 0),
                    "notes": notes.get(bucket.end_month),
                }
            )
        )
    return records


def by_month(records: list[ProgressRecord]) -> dict[int, int]:
    return {r.bucket.end_month: r.percentage for r in records}


def by_bucket(records: list[ProgressRecord]) -> dict[Bucket, ProgressRecord]:
    return {r.bucket: r for r in records}


@pytest.fixture
def signatures() -> list[Signature]:
    return [
        Signature(id="sig-pm", name="Budi", role="Project Manager", order=0),
        Signature(id="sig-fin", name="Sari", role="Finance", order=1),
        Signature(id="sig-dir", name="Agus", role="Director", order=2),
    ]


@pytest.fixture(autouse=True)
def _fresh_settings():
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()
