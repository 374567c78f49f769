"""
Pydantic v2 schemas for the reporting endpoints.

A ``ContractSnapshot`` is the minimal view a chart or export collaborator
holds of one contract year: its period and its current progress records.
"""

from __future__ import annotations

from pydantic import BaseModel, Field

from bapp.schemas.period import Period
from bapp.schemas.progress import ProgressRecord, YearlyStatus


class ContractSnapshot(BaseModel):
    """One contract year as seen by reporting code.

    Attributes:
        contract_id: Contract identifier.
        name: Contract (package) name.
        period: Current reporting period.
        records: Current progress records of the year.
    """

    contract_id: str = Field(..., min_length=1)
    name: str = ""
    period: Period
    records: list[ProgressRecord] = Field(default_factory=list)


class ContractProgressResponse(BaseModel):
    """Progress of one contract over the buckets of its period.

    Attributes:
        contract_id: Contract identifier.
        name: Contract name.
        period: Reporting period.
        label: Period label, e.g. ``"Per 3 Bulan"``.
        relevant_months: End months of the period's buckets.
        progress: Mean bucket percentage, 0.0–100.0.
        yearly_status: Completion status of the year.
    """

    contract_id: str
    name: str
    period: Period
    label: str
    relevant_months: list[int] = Field(default_factory=list)
    progress: float = Field(..., ge=0, le=100)
    yearly_status: YearlyStatus


class ContractStatsResponse(BaseModel):
    """Aggregate over several contracts for dashboard summary cards."""

    total: int = Field(..., ge=0)
    completed: int = Field(..., ge=0)
    in_progress: int = Field(..., ge=0)
    not_started: int = Field(..., ge=0)
    progress: float = Field(..., ge=0, le=100, description="Mean contract progress.")


class ContractSummaryRequest(BaseModel):
    contracts: list[ContractSnapshot] = Field(default_factory=list)
