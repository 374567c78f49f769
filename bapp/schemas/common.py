"""
Shared Pydantic v2 schemas reused across routers.
"""

from __future__ import annotations

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Error envelope returned for rejected requests.

    Mirrors the body FastAPI produces for ``HTTPException`` so clients parse
    domain errors and framework errors the same way.

    Attributes:
        detail: Human-readable description of the problem.
    """

    detail: str = Field(..., description="Description of the error.")


class HealthResponse(BaseModel):
    status: str = Field(..., description="Always 'ok' while the app is up.")
    app: str = Field(..., description="Application name.")
