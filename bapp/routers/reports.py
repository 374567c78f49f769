"""
Reports router.

Mounts under ``/api/reports`` (prefix set in ``main.py``).

Endpoints
---------
POST /contract-progress  — Progress, status and relevant months of one contract year.
POST /summary            — Status counts and mean progress over several contracts.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter

from bapp.schemas.common import ErrorResponse
from bapp.schemas.report import (
    ContractProgressResponse,
    ContractSnapshot,
    ContractStatsResponse,
    ContractSummaryRequest,
)
from bapp.services import reporting_service

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Reports"])


@router.post(
    "/contract-progress",
    response_model=ContractProgressResponse,
    summary="Progress of one contract year",
    description=(
        "Averages the bucket percentages over the buckets of the contract's "
        "period, so coarse periods are not diluted by months without a record."
    ),
    responses={400: {"model": ErrorResponse}},
)
def contract_progress(body: ContractSnapshot) -> ContractProgressResponse:
    return reporting_service.describe_contract(body)


@router.post(
    "/summary",
    response_model=ContractStatsResponse,
    summary="Summary over several contracts",
    responses={400: {"model": ErrorResponse}},
)
def summary(body: ContractSummaryRequest) -> ContractStatsResponse:
    logger.debug("POST /reports/summary contracts=%d", len(body.contracts))
    return reporting_service.contract_stats(body.contracts)
