"""
Reporting periods router.

Mounts under ``/api/periods`` (prefix set in ``main.py``).

Every endpoint is a thin wrapper over a pure service function; nothing here
reads or writes persistent state. Domain errors raised by the services are
translated to HTTP responses by the handlers registered in ``main.py``.

Endpoints
---------
GET  /options                      — Selectable periods with bucket counts.
GET  /progress-options             — Achievable percentages for N signatures.
GET  /{period}/partition           — Buckets of a period with spans and labels.
GET  /{period}/relevant-months     — End months of a period's buckets.
POST /migrations/analyze           — Dry-run impact of a period change.
POST /migrations/execute           — New record set for the target period.
"""

from __future__ import annotations

import logging
from typing import Annotated

from fastapi import APIRouter, Query

from bapp.schemas.common import ErrorResponse
from bapp.schemas.migration import (
    AnalyzeMigrationRequest,
    ExecuteMigrationRequest,
    ExecuteMigrationResponse,
    MigrationAnalysis,
)
from bapp.schemas.period import PartitionResponse, Period, PeriodOption
from bapp.schemas.progress import ProgressOption
from bapp.services import migration_analyzer, migration_executor, partition_service, progress_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Periods"])

_ERRORS = {400: {"model": ErrorResponse, "description": "Invalid period, records or strategy."}}


# ---------------------------------------------------------------------------
# GET /options
# ---------------------------------------------------------------------------


@router.get(
    "/options",
    response_model=list[PeriodOption],
    summary="Selectable reporting periods",
)
def get_options() -> list[PeriodOption]:
    return partition_service.period_options()


# ---------------------------------------------------------------------------
# GET /progress-options
# ---------------------------------------------------------------------------


@router.get(
    "/progress-options",
    response_model=list[ProgressOption],
    summary="Achievable percentages for a signature count",
    description=(
        "Lists every percentage a bucket can reach with the given number of "
        "signatures plus the document upload. Used to offer manual merge and "
        "split values."
    ),
)
def get_progress_options(
    total_signatures: Annotated[
        int,
        Query(description="Number of signatures on the contract.", ge=0, le=50),
    ] = 0,
) -> list[ProgressOption]:
    return progress_service.progress_options(total_signatures)


# ---------------------------------------------------------------------------
# GET /{period}/partition and /{period}/relevant-months
# ---------------------------------------------------------------------------


@router.get(
    "/{period}/partition",
    response_model=PartitionResponse,
    summary="Buckets of a period",
    responses=_ERRORS,
)
def get_partition(period: str) -> PartitionResponse:
    """Return the buckets of ``period`` with their spans and labels.

    Args:
        period: Numeric value (``"0.5"``, ``"3"``) or label (``"Per 3 Bulan"``).

    Returns:
        The partition preview used by the period selector.
    """
    return partition_service.describe_partition(period)


@router.get(
    "/{period}/relevant-months",
    response_model=list[int],
    summary="Months carrying an independent record",
    responses=_ERRORS,
)
def get_relevant_months(period: str) -> list[int]:
    return partition_service.relevant_months(period)


# ---------------------------------------------------------------------------
# POST /migrations/analyze
# ---------------------------------------------------------------------------


@router.post(
    "/migrations/analyze",
    response_model=MigrationAnalysis,
    summary="Dry-run a period change",
    description=(
        "Returns the merge, split and half-month expansion plans for moving the "
        "given records from the old period to the new one. Nothing is changed. "
        "When both merge and split plans are empty the migration can be "
        "executed without a strategy."
    ),
    responses=_ERRORS,
)
def analyze(body: AnalyzeMigrationRequest) -> MigrationAnalysis:
    logger.debug("POST /periods/migrations/analyze %s -> %s", body.old_period, body.new_period)
    return migration_analyzer.analyze_migration(body.old_period, body.new_period, body.records)


# ---------------------------------------------------------------------------
# POST /migrations/execute
# ---------------------------------------------------------------------------


@router.post(
    "/migrations/execute",
    response_model=ExecuteMigrationResponse,
    summary="Compute the migrated record set",
    description=(
        "Applies the strategy and returns the complete record set of the new "
        "period. The caller persists it; this endpoint does not."
    ),
    responses=_ERRORS,
)
def execute(body: ExecuteMigrationRequest) -> ExecuteMigrationResponse:
    """Run the pure executor on the request body.

    Args:
        body: Periods, current records, strategy, and optionally the analysis
            the strategy was configured from.

    Returns:
        The new period and its records in partition order.
    """
    records = migration_executor.execute_migration(
        body.old_period,
        body.new_period,
        body.records,
        body.strategy,
        analysis=body.analysis,
        signatures=body.signatures,
    )
    period = Period.parse(body.new_period)
    return ExecuteMigrationResponse(period=period, label=period.label, records=records)
