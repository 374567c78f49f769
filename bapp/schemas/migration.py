"""
Pydantic v2 schemas for period migrations.

Two groups of models live here:

- The **impact analysis** (``MigrationAnalysis``) produced by
  ``migration_analyzer.analyze_migration``: merge candidates when the new
  period is coarser, split candidates when it is finer, and the half-month
  expansion plan.
- The **strategy** chosen by the caller (``MigrationStrategy``). Merge and
  split modes are discriminated unions keyed on ``mode`` so that a manual
  mode cannot exist without its values.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import BaseModel, ConfigDict, Field

from bapp.schemas.period import Bucket, Period
from bapp.schemas.progress import ProgressRecord, Signature


class MigrationDirection(str, Enum):
    UNCHANGED = "unchanged"
    MERGE = "merge"
    SPLIT = "split"
    HALF_MONTH_EXPANSION = "half_month_expansion"


# ---------------------------------------------------------------------------
# Impact analysis
# ---------------------------------------------------------------------------


class SourceBucket(BaseModel):
    """A non-trivial old bucket contributing to a merge target.

    Attributes:
        bucket: Old bucket identity.
        start_month: First month covered under the old period.
        label: Display label under the old period.
        percentage: Stored percentage of the old record.
        notes: Notes of the old record, if any.
    """

    bucket: Bucket
    start_month: int = Field(..., ge=1, le=12)
    label: str
    percentage: int = Field(..., ge=0, le=100)
    notes: str | None = None

    model_config = ConfigDict(frozen=True)


class MergeCandidate(BaseModel):
    """A new (coarser) bucket that absorbs one or more non-trivial old buckets.

    Attributes:
        target_bucket: Bucket of the new partition.
        target_start_month: First month covered by the target.
        label: Display label of the target, e.g. ``"Jan - Mar"``.
        sources: Non-trivial old buckets inside the target, chronological.
        highest_percentage: Maximum percentage among the sources.
        last_percentage: Percentage of the source ending at the target's end
            month, or ``None`` when no source ends there.
    """

    target_bucket: Bucket
    target_start_month: int = Field(..., ge=1, le=12)
    label: str
    sources: list[SourceBucket] = Field(..., min_length=1)
    highest_percentage: int = Field(..., ge=0, le=100)
    last_percentage: int | None = Field(default=None, ge=0, le=100)

    model_config = ConfigDict(frozen=True)


class SplitCandidate(BaseModel):
    """A non-trivial old bucket whose data is distributed over several new buckets.

    Attributes:
        source_bucket: Old bucket identity.
        source_start_month: First month covered by the old bucket.
        label: Display label of the old bucket.
        source_percentage: Stored percentage of the old record.
        source_notes: Notes of the old record, if any.
        target_buckets: New buckets contained in the old bucket, chronological.
    """

    source_bucket: Bucket
    source_start_month: int = Field(..., ge=1, le=12)
    label: str
    source_percentage: int = Field(..., ge=0, le=100)
    source_notes: str | None = None
    target_buckets: list[Bucket] = Field(..., min_length=1)

    model_config = ConfigDict(frozen=True)


class MigrationAnalysis(BaseModel):
    """Dry-run impact of changing a contract's period.

    Attributes:
        old_period: Current period.
        new_period: Proposed period.
        direction: Kind of transition.
        merge_plan: Targets that need a merge mode (coarser period).
        split_plan: Sources that need a split mode (finer period).
        expansion_plan: Old buckets expanded into two half-month sub-periods.
        unmapped_buckets: Non-trivial old buckets no new bucket can absorb.
    """

    old_period: Period
    new_period: Period
    direction: MigrationDirection
    merge_plan: list[MergeCandidate] = Field(default_factory=list)
    split_plan: list[SplitCandidate] = Field(default_factory=list)
    expansion_plan: list[SplitCandidate] = Field(default_factory=list)
    unmapped_buckets: list[Bucket] = Field(default_factory=list)

    model_config = ConfigDict(frozen=True)

    @property
    def requires_configuration(self) -> bool:
        return bool(self.merge_plan or self.split_plan)


# ---------------------------------------------------------------------------
# Strategy
# ---------------------------------------------------------------------------


class HighestMerge(BaseModel):
    """Each merge target takes the highest source percentage."""

    mode: Literal["highest"] = "highest"


class LastMerge(BaseModel):
    """Each merge target takes the percentage of the source ending at its end month."""

    mode: Literal["last"] = "last"


class ManualMerge(BaseModel):
    """Each merge target takes a caller-supplied percentage.

    Attributes:
        percentage: Value applied to every merge target.
        per_target: Overrides keyed by target end month.
    """

    mode: Literal["manual"] = "manual"
    percentage: int = Field(..., ge=0, le=100)
    per_target: dict[int, Annotated[int, Field(ge=0, le=100)]] = Field(default_factory=dict)

    def value_for(self, target: Bucket) -> int:
        return self.per_target.get(target.end_month, self.percentage)


class DuplicateSplit(BaseModel):
    """Every target bucket gets the source percentage and notes."""

    mode: Literal["duplicate"] = "duplicate"


class LastSplit(BaseModel):
    """Only the target ending at the source's end month keeps the source percentage."""

    mode: Literal["last"] = "last"


class ManualSplit(BaseModel):
    """Caller-supplied percentage per target end month; others keep the source value."""

    mode: Literal["manual"] = "manual"
    percentages: dict[int, Annotated[int, Field(ge=0, le=100)]] = Field(default_factory=dict)


MergeMode = Annotated[
    Union[HighestMerge, LastMerge, ManualMerge],
    Field(discriminator="mode"),
]
SplitMode = Annotated[
    Union[DuplicateSplit, LastSplit, ManualSplit],
    Field(discriminator="mode"),
]


class HalfMonthMode(str, Enum):
    """How an old whole-month bucket fills its two half-month sub-periods."""

    DUPLICATE = "duplicate"
    EMPTY = "empty"


class MigrationStrategy(BaseModel):
    """Caller choices for executing a migration.

    Attributes:
        merge: Merge mode; required when the merge plan is non-empty.
        split: Split mode; required when the split plan is non-empty.
        half_month: Half-month expansion mode.
        keep_notes_from: Merge sources whose notes are kept on their target.
    """

    merge: MergeMode | None = None
    split: SplitMode | None = None
    half_month: HalfMonthMode = HalfMonthMode.DUPLICATE
    keep_notes_from: list[Bucket] = Field(default_factory=list)


# ---------------------------------------------------------------------------
# Request / response envelopes
# ---------------------------------------------------------------------------


class AnalyzeMigrationRequest(BaseModel):
    old_period: Period
    new_period: Period
    records: list[ProgressRecord] = Field(default_factory=list)


class ExecuteMigrationRequest(BaseModel):
    """Body of ``POST /periods/migrations/execute``.

    ``analysis`` is optional; when sent it must match the analysis the
    server computes for the same inputs.
    """

    old_period: Period
    new_period: Period
    records: list[ProgressRecord] = Field(default_factory=list)
    strategy: MigrationStrategy = Field(default_factory=MigrationStrategy)
    analysis: MigrationAnalysis | None = None
    signatures: list[Signature] | None = None


class ExecuteMigrationResponse(BaseModel):
    period: Period
    label: str
    records: list[ProgressRecord] = Field(default_factory=list)
