"""
Period partition service.

Maps a reporting period to the ordered list of buckets that cover a year and
answers the small calendar questions every consumer asks about a bucket
(which months it spans, how to label it, whether one bucket lies inside
another). Table rendering, chart aggregation and spreadsheet export must call
these functions instead of re-deriving bucket boundaries.

Design notes
------------
- ``partition`` depends on the period alone and is memoised; it returns a
  fresh list on each call so callers may mutate their copy.
- ``relevant_months`` is derived from ``partition``; there is no second
  month table to keep in sync.
"""

from __future__ import annotations

from functools import lru_cache

from bapp.schemas.period import Bucket, BucketSpan, PartitionResponse, Period, PeriodOption
from bapp.utils.constants import MONTH_LABELS, MONTHS_PER_YEAR, SUB_PERIOD_LABELS, SUB_PERIODS
from bapp.utils.exceptions import InvalidRecordSetError


# ---------------------------------------------------------------------------
# Partition
# ---------------------------------------------------------------------------


@lru_cache(maxsize=None)
def _partition(period: Period) -> tuple[Bucket, ...]:
    if period.is_half_month:
        return tuple(
            Bucket.half(month, sub_period)
            for month in range(1, MONTHS_PER_YEAR + 1)
            for sub_period in SUB_PERIODS
        )
    step = period.months
    return tuple(Bucket.month(end) for end in range(step, MONTHS_PER_YEAR + 1, step))


def partition(period: Period | float | str) -> list[Bucket]:
    """Return the ordered, gap-free buckets covering a year for ``period``.

    Whole-month periods of N months produce buckets ending at N, 2N, ... 12.
    The half-month period produces two buckets per calendar month.

    Args:
        period: A ``Period`` or any value ``Period.parse`` accepts.

    Returns:
        Buckets in chronological order.

    Raises:
        InvalidPeriodError: If ``period`` is not a supported value.
    """
    return list(_partition(Period.parse(period)))


def relevant_months(period: Period | float | str) -> list[int]:
    """Months (1-based) that carry an independent record under ``period``.

    These are the distinct end months of ``partition(period)``: all twelve
    months for half-month and monthly contracts, ``[3, 6, 9, 12]`` for
    quarterly ones, and so on.
    """
    months: list[int] = []
    for bucket in partition(period):
        if not months or months[-1] != bucket.end_month:
            months.append(bucket.end_month)
    return months


def bucket_span(bucket: Bucket, period: Period) -> tuple[int, int]:
    """Return ``(start_month, end_month)`` covered by ``bucket`` under ``period``."""
    if bucket.is_half_month:
        return bucket.end_month, bucket.end_month
    return bucket.end_month - period.months + 1, bucket.end_month


def contains(outer: Bucket, outer_period: Period, inner: Bucket, inner_period: Period) -> bool:
    """True when ``inner`` lies entirely within ``outer``.

    A half-month bucket lies within any whole-month bucket covering its month.
    A whole-month bucket never lies within a half-month bucket.
    """
    if outer.is_half_month and not inner.is_half_month:
        return False
    if outer.is_half_month:
        return outer == inner
    outer_start, outer_end = bucket_span(outer, outer_period)
    inner_start, inner_end = bucket_span(inner, inner_period)
    return outer_start <= inner_start and inner_end <= outer_end


def is_partition_bucket(bucket: Bucket, period: Period) -> bool:
    return bucket in _partition(period)


def check_bucket(bucket: Bucket, period: Period) -> None:
    """Raise ``InvalidRecordSetError`` if ``bucket`` is not part of ``partition(period)``."""
    if not is_partition_bucket(bucket, period):
        suffix = f" ({SUB_PERIOD_LABELS[bucket.sub_period]})" if bucket.sub_period else ""
        raise InvalidRecordSetError(
            f"Bucket ending in {MONTH_LABELS[bucket.end_month]}{suffix} is not part of the "
            f"{period.label} partition."
        )


# ---------------------------------------------------------------------------
# Labels
# ---------------------------------------------------------------------------


def month_range_label(start_month: int, end_month: int) -> str:
    """``"Jan"`` for a single month, ``"Jan - Mar"`` for a range."""
    if start_month == end_month:
        return MONTH_LABELS[start_month]
    return f"{MONTH_LABELS[start_month]} - {MONTH_LABELS[end_month]}"


def bucket_label(bucket: Bucket, period: Period) -> str:
    if bucket.sub_period is not None:
        return f"{MONTH_LABELS[bucket.end_month]} ({SUB_PERIOD_LABELS[bucket.sub_period]})"
    return month_range_label(*bucket_span(bucket, period))


def describe_partition(period: Period | float | str) -> PartitionResponse:
    """Partition of ``period`` with spans and labels, for selector previews."""
    resolved = Period.parse(period)
    spans: list[BucketSpan] = []
    for bucket in _partition(resolved):
        start, end = bucket_span(bucket, resolved)
        spans.append(
            BucketSpan(
                bucket=bucket,
                start_month=start,
                end_month=end,
                label=bucket_label(bucket, resolved),
            )
        )
    return PartitionResponse(period=resolved, label=resolved.label, buckets=spans)


def period_options() -> list[PeriodOption]:
    """The selectable periods, finest first."""
    return [
        PeriodOption(
            value=float(period.value),
            label=period.label,
            buckets_per_year=len(_partition(period)),
        )
        for period in Period
    ]
