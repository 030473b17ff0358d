from contextlib import asynccontextmanager
import logging
import os

from fastapi import APIRouter, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
import sentry_sdk
from slowapi.errors import RateLimitExceeded

from .config import API_PREFIX
from .exceptions import ConsolidationInterrupted, DomainException, ProblemDetail
from .routers import auth, leagues, matches
from .store import TransactionalStore
from .utils.sentry import init_sentry, report_consolidation_interrupted, sentry_configured

logger = logging.getLogger(__name__)

init_sentry()

# -----------------------------------------------------------------------------
# CORS configuration
# -----------------------------------------------------------------------------
allowed_origins_raw = os.getenv("ALLOWED_ORIGINS", "").strip()

if not allowed_origins_raw:
    raise ValueError(
        "ALLOWED_ORIGINS environment variable must be set to a comma-separated "
        "list of trusted origins."
    )

ALLOWED_ORIGINS = [o.strip() for o in allowed_origins_raw.split(",") if o.strip()]

if not ALLOWED_ORIGINS:
    raise ValueError("ALLOWED_ORIGINS must contain at least one non-empty origin.")
ALLOW_CREDENTIALS = os.getenv("ALLOW_CREDENTIALS", "true").lower() == "true"

# Fail fast if misconfigured: credentials + wildcard origins is unsafe
if "*" in ALLOWED_ORIGINS:
    raise ValueError(
        "ALLOWED_ORIGINS cannot include '*' (wildcard). Specify explicit, trusted origins."
    )


class ConsolidationProblem(ProblemDetail):
    appliedCount: int
    failedMatchId: int


def _problem_response(problem: ProblemDetail) -> JSONResponse:
    return JSONResponse(
        status_code=problem.status,
        content=problem.model_dump(),
        media_type="application/problem+json",
    )


async def consolidation_interrupted_handler(
    request: Request, exc: ConsolidationInterrupted
) -> JSONResponse:
    report_consolidation_interrupted(exc)
    return _problem_response(
        ConsolidationProblem(
            type=exc.type,
            title=exc.title,
            detail=exc.detail,
            status=exc.status_code,
            code=exc.code,
            appliedCount=exc.applied_count,
            failedMatchId=exc.failed_match_id,
        )
    )


async def domain_exception_handler(request: Request, exc: DomainException) -> JSONResponse:
    if exc.status_code >= 500:
        logger.error("Domain error %s: %s", exc.code, exc.detail, exc_info=exc)
    return _problem_response(
        ProblemDetail(
            type=exc.type,
            title=exc.title,
            detail=exc.detail,
            status=exc.status_code,
            code=exc.code,
        )
    )


async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    detail = exc.detail if isinstance(exc.detail, str) else str(exc.detail)
    code = getattr(exc, "code", f"http_{exc.status_code}")
    return _problem_response(
        ProblemDetail(
            title=detail,
            detail=detail,
            status=exc.status_code,
            code=code,
        )
    )


async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception", exc_info=(type(exc), exc, exc.__traceback__))
    return _problem_response(
        ProblemDetail(
            title="Internal Server Error",
            status=500,
            detail=str(exc),
            code="internal_server_error",
        )
    )


def create_app(store: TransactionalStore | None = None) -> FastAPI:
    """Build the API.

    Passing ``store`` hands the app an already initialised store that the
    caller owns; otherwise one is built from ``DATABASE_URL`` on startup and
    closed on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if store is not None:
            app.state.store = store
            yield
            return
        owned = await TransactionalStore.from_env().init()
        app.state.store = owned
        try:
            yield
        finally:
            await owned.close()

    app = FastAPI(
        title="League Rating API",
        version="0.1.0",
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )

    # Rate limiting
    app.state.limiter = auth.limiter
    app.add_exception_handler(RateLimitExceeded, auth.rate_limit_handler)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=ALLOWED_ORIGINS,
        allow_credentials=ALLOW_CREDENTIALS,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ConsolidationInterrupted, consolidation_interrupted_handler)
    app.add_exception_handler(DomainException, domain_exception_handler)
    app.add_exception_handler(HTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    @app.get("/healthz", tags=["health"])  # Unprefixed for reverse proxy / uptime checks
    def root_healthz():
        return {"status": "ok"}

    api_router = APIRouter(prefix=API_PREFIX, tags=["meta"])

    @api_router.get("/healthz", tags=["health"])
    def api_healthz():
        return {"status": "ok"}

    @api_router.get("")
    def api_root():
        return {"message": "League Rating API. See /docs."}

    @api_router.post("/sentry-test", tags=["health"])
    def sentry_test_check():
        if not sentry_configured():
            raise HTTPException(status_code=400, detail="Sentry is not configured (SENTRY_DSN missing)")

        event_id = sentry_sdk.capture_message("Sentry self-test trigger", level="info")
        return {"status": "sent", "eventId": str(event_id)}

    v0_router = APIRouter(prefix="/v0")
    v0_router.include_router(auth.router)
    v0_router.include_router(matches.router)
    v0_router.include_router(leagues.router)

    api_router.include_router(v0_router)
    app.include_router(api_router)

    logger.info("API_PREFIX=%r", API_PREFIX)
    return app


# Fail fast if JWT_SECRET is missing or weak
auth.get_jwt_secret()

app = create_app()
