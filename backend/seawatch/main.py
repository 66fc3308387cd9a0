import logging
import traceback
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from seawatch.api.routes import router
from seawatch.config import settings
from seawatch.errors import AlertNotFound, InvalidReport, InvalidTransition, SeaWatchError
from seawatch.modules.engine import build_engine
from seawatch.schemas.error import ErrorResponse

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Build the monitoring engine and run the notification worker for the app's lifetime."""
    engine = build_engine(settings)
    app.state.engine = engine
    engine.dispatcher.start()
    try:
        yield
    finally:
        engine.dispatcher.stop()


app = FastAPI(
    title="SeaWatch",
    description=(
        "Real-time vessel tracking with collision, discharge, loitering and "
        "grounding alerts for maritime operators."
    ),
    version="0.1.0",
    license_info={"name": "Apache-2.0"},
    lifespan=lifespan,
)

# CORS origins from settings (supports comma-separated env var)
cors_origins = [o.strip() for o in settings.CORS_ORIGINS.split(",") if o.strip()]
app.add_middleware(
    CORSMiddleware,
    allow_origins=cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(router, prefix="/api/v1")


# ── Structured error handlers ─────────────────────────────────────────────────

def _error(status_code: int, exc: SeaWatchError) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content=ErrorResponse(detail=exc.message, code=exc.code).model_dump(),
    )


@app.exception_handler(InvalidReport)
async def invalid_report_handler(request: Request, exc: InvalidReport):
    return _error(422, exc)


@app.exception_handler(AlertNotFound)
async def not_found_handler(request: Request, exc: AlertNotFound):
    return _error(404, exc)


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return _error(409, exc)


@app.exception_handler(Exception)
async def general_error_handler(request: Request, exc: Exception):
    logger.error("Unhandled exception on %s %s:\n%s", request.method, request.url.path, traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content=ErrorResponse(detail="An unexpected error occurred.", code="internal_error").model_dump(),
    )


@app.get("/health")
def health() -> dict:
    return {"status": "ok", "version": "0.1.0"}
