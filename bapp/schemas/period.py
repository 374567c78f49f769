"""
Pydantic v2 schemas for reporting periods and buckets.

``Period`` is the fixed domain of reporting granularities a contract may use.
``Bucket`` identifies one reporting slot of a year; the months it spans
depend on the period it belongs to and are computed by
``bapp.services.partition_service``.
"""

from __future__ import annotations

import re
from enum import Enum
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from bapp.utils.constants import (
    HALF_MONTH_LABEL,
    HALF_MONTH_VALUE,
    PERIOD_LABEL_TEMPLATE,
)
from bapp.utils.exceptions import InvalidPeriodError

_PERIOD_LABEL = re.compile(r"per\s+(1/2|\d+)\s+bulan", re.IGNORECASE)


# ---------------------------------------------------------------------------
# Period
# ---------------------------------------------------------------------------


class Period(Enum):
    """Reporting granularity of a contract.

    Either ``HALF_MONTH`` (two buckets per calendar month) or a whole-month
    period of N months, one bucket per N calendar months. Every member
    divides the twelve months of a year evenly.
    """

    HALF_MONTH = 0.5
    MONTHLY = 1
    BIMONTHLY = 2
    QUARTERLY = 3
    FOUR_MONTHLY = 4
    SEMIANNUAL = 6
    ANNUAL = 12

    @property
    def is_half_month(self) -> bool:
        return self is Period.HALF_MONTH

    @property
    def months(self) -> int:
        """Calendar months spanned by one bucket (a half-month bucket spans its month)."""
        return 1 if self.is_half_month else int(self.value)

    @property
    def label(self) -> str:
        if self.is_half_month:
            return HALF_MONTH_LABEL
        return PERIOD_LABEL_TEMPLATE.format(int(self.value))

    def is_coarser_than(self, other: Period) -> bool:
        return self.value > other.value

    def __str__(self) -> str:
        return self.label

    @classmethod
    def parse(cls, value: object) -> Period:
        """Resolve a period from a member, a numeric value, or a contract label.

        Accepted inputs: ``Period.QUARTERLY``, ``3``, ``3.0``, ``"3"``,
        ``"0.5"``, ``"Per 3 Bulan"`` and ``"Per 1/2 Bulan"``.

        Raises:
            InvalidPeriodError: If the value is not one of the supported periods.
        """
        if isinstance(value, cls):
            return value
        if isinstance(value, bool):
            raise InvalidPeriodError(value)
        if isinstance(value, (int, float)):
            return cls._from_number(value)
        if isinstance(value, str):
            text = value.strip()
            try:
                number = float(text)
            except ValueError:
                number = None
            if number is not None:
                return cls._from_number(number)
            match = _PERIOD_LABEL.fullmatch(text)
            if match is not None:
                if match.group(1) == "1/2":
                    return cls.HALF_MONTH
                return cls._from_number(int(match.group(1)))
        raise InvalidPeriodError(value)

    @classmethod
    def _from_number(cls, number: float) -> Period:
        if number == HALF_MONTH_VALUE:
            return cls.HALF_MONTH
        for member in cls:
            if member.value == number:
                return member
        raise InvalidPeriodError(number)


# ---------------------------------------------------------------------------
# Bucket
# ---------------------------------------------------------------------------


class Bucket(BaseModel):
    """One reporting slot within a year.

    Attributes:
        end_month: Last calendar month covered by the bucket (1–12).
        sub_period: ``1`` (days 1–20) or ``2`` (days 21–30) under
            ``Period.HALF_MONTH``; ``None`` for whole-month periods.
    """

    end_month: int = Field(..., ge=1, le=12, description="Last month of the bucket (1–12).")
    sub_period: Literal[1, 2] | None = Field(
        default=None,
        description="Half-month sub-period; only present under the half-month period.",
    )

    model_config = ConfigDict(frozen=True)

    @classmethod
    def month(cls, end_month: int) -> Bucket:
        return cls(end_month=end_month)

    @classmethod
    def half(cls, end_month: int, sub_period: Literal[1, 2]) -> Bucket:
        return cls(end_month=end_month, sub_period=sub_period)

    @property
    def is_half_month(self) -> bool:
        return self.sub_period is not None


# ---------------------------------------------------------------------------
# Response shapes
# ---------------------------------------------------------------------------


class PeriodOption(BaseModel):
    """One entry of the period selector.

    Attributes:
        value: Numeric period value (``0.5`` for half-month).
        label: Contract label, e.g. ``"Per 3 Bulan"``.
        buckets_per_year: Number of reporting buckets the period produces.
    """

    value: float = Field(..., description="Numeric period value.")
    label: str = Field(..., description="Contract label, e.g. 'Per 3 Bulan'.")
    buckets_per_year: int = Field(..., ge=1, le=24, description="Buckets per year.")


class BucketSpan(BaseModel):
    """A bucket with the calendar months it covers under a given period.

    Attributes:
        bucket: Bucket identity.
        start_month: First calendar month covered.
        end_month: Last calendar month covered.
        label: Display label, e.g. ``"Jan - Mar"`` or ``"Mei (1/2)"``.
    """

    bucket: Bucket
    start_month: int = Field(..., ge=1, le=12)
    end_month: int = Field(..., ge=1, le=12)
    label: str


class PartitionResponse(BaseModel):
    """Complete partition of a year for one period."""

    period: Period
    label: str
    buckets: list[BucketSpan] = Field(default_factory=list)
