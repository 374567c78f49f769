import logging

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from bapp.config import get_settings
from bapp.schemas.common import HealthResponse
from bapp.utils.exceptions import PeriodEngineError

settings = get_settings()
logging.basicConfig(level=settings.LOG_LEVEL.upper())
logger = logging.getLogger(__name__)


app = FastAPI(
    title=settings.APP_NAME,
    version="1.0.0",
    docs_url="/docs",
    redoc_url="/redoc",
    debug=settings.DEBUG,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Domain errors
# ---------------------------------------------------------------------------


@app.exception_handler(PeriodEngineError)
async def period_engine_error_handler(request: Request, exc: PeriodEngineError) -> JSONResponse:
    logger.info("Rejected %s %s: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": str(exc)},
    )


@app.get(f"{settings.API_PREFIX}/health", response_model=HealthResponse)
def health_check() -> HealthResponse:
    return HealthResponse(status="ok", app=settings.APP_NAME)


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------

from bapp.routers import periods  # noqa: E402

app.include_router(
    periods.router,
    prefix=f"{settings.API_PREFIX}/periods",
    tags=["Periods"],
)

from bapp.routers import reports  # noqa: E402

app.include_router(
    reports.router,
    prefix=f"{settings.API_PREFIX}/reports",
    tags=["Reports"],
)
