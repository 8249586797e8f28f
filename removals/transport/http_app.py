# removals/transport/http_app.py
"""
HTTP API for the website quote calculator.

Public:
- /quote-sessions/...   one session per visitor, answered step by step
- /health

Protected:
- /metrics              METRICS_TOKEN bearer (when configured)
"""
from __future__ import annotations

from contextlib import asynccontextmanager

from fastapi import Depends, FastAPI, HTTPException, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from removals.config import settings
from removals.core.calculator.domain import CalculatorState, Tracking
from removals.core.calculator.errors import CalculatorError, InapplicableStepError
from removals.core.calculator.override import recommendation_diff_message
from removals.core.calculator.steps import applicable_steps, progress_percent
from removals.core.engine.use_cases import QuoteSessionService, SessionNotFoundError
from removals.infra.db_async import close_pool, init_pool
from removals.infra.geocoding import build_route_provider
from removals.infra.logging_config import get_logger, setup_logging
from removals.infra.metrics import get_metrics_collector
from removals.infra.notification_service import OperatorCallbackNotifier
from removals.infra.pg_state_store_async import AsyncPostgresStateStore, InMemoryStateStore
from removals.transport.middleware import (
    ErrorHandlingMiddleware,
    RequestIDMiddleware,
    RequestLoggingMiddleware,
)
from removals.transport.schemas import (
    AnswerIn,
    GoToIn,
    QuoteOut,
    SessionOut,
    StepResultOut,
    SubmitOut,
    TrackingIn,
)
from removals.transport.security import require_metrics_auth, sanitize_error_message

# Initialize logging first
setup_logging(
    level=settings.log_level,
    use_json=settings.is_production
)

logger = get_logger(__name__)


# ============================================================================
# DEPENDENCIES
# ============================================================================

def get_service(request: Request) -> QuoteSessionService:
    """Get session service from app state"""
    return request.app.state.service


# ============================================================================
# LIFESPAN
# ============================================================================

@asynccontextmanager
async def lifespan(fastapi_app: FastAPI):
    """Application lifecycle: startup and shutdown"""

    # STARTUP
    logger.info(f"Starting application: env={settings.app_env}")

    if settings.use_memory_store:
        logger.warning("Using in-memory session store (sessions are lost on restart)")
        sessions = InMemoryStateStore()
    else:
        await init_pool()
        logger.info("Database pool initialized")

        # Validate schema version (does NOT run migrations)
        # Migrations should be run separately: python -m removals.infra.migrate
        from removals.infra.migrations_async import current_schema_version
        version = await current_schema_version()
        if version != settings.expected_schema_version:
            logger.critical(
                "Schema version mismatch. Run migrations first: python -m removals.infra.migrate",
                extra={"current_version": version, "expected_version": settings.expected_schema_version},
            )
            if settings.is_production:
                raise RuntimeError(f"Schema version {version!r} != {settings.expected_schema_version!r}")
        sessions = AsyncPostgresStateStore()

    mileage = build_route_provider(settings)
    if mileage is None:
        logger.warning("Routing disabled: quotes will carry zero mileage")

    fastapi_app.state.service = QuoteSessionService(
        sessions=sessions,
        mileage=mileage,
        notifier=OperatorCallbackNotifier(),
        ttl_seconds=settings.state_ttl_seconds,
    )

    logger.info(
        f"Session settings: ttl={settings.state_ttl_seconds}s, "
        f"notifications={settings.operator_notification_channel if settings.operator_notifications_enabled else 'off'}"
    )
    logger.info("Application startup complete")

    yield

    # SHUTDOWN
    logger.info("Shutting down application")

    # Close all shared HTTP sessions
    from removals.infra.http_client import close_all_sessions
    await close_all_sessions()

    if not settings.use_memory_store:
        await close_pool()
    logger.info("Application shutdown complete")


# ============================================================================
# CREATE APP
# ============================================================================

app = FastAPI(
    title="Removal Quote Calculator",
    description="Step-by-step removal quote sessions",
    version="1.0.0",
    lifespan=lifespan,
    docs_url=None if settings.is_production else "/docs",
    redoc_url=None if settings.is_production else "/redoc",
    openapi_url=None if settings.is_production else "/openapi.json",
)

if settings.is_production:
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins if settings.allowed_origins != ["*"] else [],
        allow_credentials=False,
        allow_methods=["GET", "POST", "DELETE"],
        allow_headers=["Content-Type", "X-Request-ID"],
    )
else:
    # More permissive in dev
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

app.add_middleware(ErrorHandlingMiddleware)
app.add_middleware(RequestLoggingMiddleware, enabled=settings.enable_request_logging)
app.add_middleware(RequestIDMiddleware)


# ============================================================================
# EXCEPTION HANDLERS
# ============================================================================

@app.exception_handler(SessionNotFoundError)
async def session_not_found_handler(request: Request, exc: SessionNotFoundError):
    logger.info("session_not_found", extra={"session_id": exc.session_id})
    return JSONResponse(status_code=404, content={"error": "Session not found"})


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """Handle HTTP exceptions with appropriate logging"""
    if exc.status_code >= 500:
        logger.error(f"Server error: {exc.detail}", extra={"status_code": exc.status_code})

    return JSONResponse(
        status_code=exc.status_code,
        content={"error": exc.detail},
        headers=exc.headers,
    )


@app.exception_handler(Exception)
async def general_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions"""
    logger.error(f"Unhandled exception: {exc.__class__.__name__}", exc_info=True)

    return JSONResponse(
        status_code=500,
        content={"error": sanitize_error_message(exc, settings.is_production)},
    )


# ============================================================================
# RESPONSE HELPERS
# ============================================================================

def _session_view(session_id: str, state: CalculatorState) -> dict:
    recommendation = state.resource_recommendation
    note = None
    if recommendation and state.manual_override:
        note = recommendation_diff_message(recommendation, state.manual_override)
    return {
        "session_id": session_id,
        "current_step": state.current_step.value,
        "progress": progress_percent(state),
        "applicable_steps": [s.value for s in applicable_steps(state)],
        "estimated_cubes": state.estimated_cubes,
        "recommendation": (
            {"vans": recommendation.vans, "movers": recommendation.movers, "load_hours": recommendation.load_hours}
            if recommendation else None
        ),
        "recommendation_note": note,
        "callback_required": state.callback_required,
        "state": state.to_dict(),
    }


def _error_status(errors: list[CalculatorError]) -> int:
    """409 for sequencing mistakes, 422 for answers the user must fix."""
    if any(isinstance(e, InapplicableStepError) for e in errors):
        return 409
    return 422


def _errors_response(session_id: str, errors: list[CalculatorError], state: CalculatorState | None = None):
    status_code = _error_status(errors)
    if status_code == 409:
        logger.error(
            "inapplicable_step",
            extra={"session_id": session_id, "errors": [e.to_dict() for e in errors]},
        )
    content = {"error": "Invalid step" if status_code == 409 else "Validation failed",
               "errors": [e.to_dict() for e in errors]}
    if state is not None:
        content["session"] = _session_view(session_id, state)
    return JSONResponse(status_code=status_code, content=content)


# ============================================================================
# QUOTE SESSIONS
# ============================================================================

@app.post("/quote-sessions", status_code=201, response_model=SessionOut)
async def create_session(
    body: TrackingIn | None = None,
    service: QuoteSessionService = Depends(get_service),
):
    tracking = Tracking(**body.model_dump()) if body is not None else Tracking()
    session_id, state = await service.start(tracking)
    return _session_view(session_id, state)


@app.get("/quote-sessions/{session_id}", response_model=SessionOut)
async def get_session(session_id: str, service: QuoteSessionService = Depends(get_service)):
    state = await service.load(session_id)
    return _session_view(session_id, state)


@app.post(
    "/quote-sessions/{session_id}/answer",
    response_model=StepResultOut,
    responses={409: {"description": "Step does not apply"}, 422: {"description": "Invalid answer"}},
)
async def answer_step(
    session_id: str,
    body: AnswerIn,
    service: QuoteSessionService = Depends(get_service),
):
    outcome = await service.answer(session_id, body.answer)
    if not outcome.ok:
        return _errors_response(session_id, outcome.errors, outcome.state)
    return {**_session_view(session_id, outcome.state), "errors": []}


@app.post("/quote-sessions/{session_id}/back", response_model=SessionOut)
async def back_step(session_id: str, service: QuoteSessionService = Depends(get_service)):
    state = await service.back(session_id)
    return _session_view(session_id, state)


@app.post(
    "/quote-sessions/{session_id}/goto",
    response_model=SessionOut,
    responses={409: {"description": "Step does not apply"}},
)
async def goto_step(
    session_id: str,
    body: GoToIn,
    service: QuoteSessionService = Depends(get_service),
):
    outcome = await service.go_to(session_id, body.step)
    if not outcome.ok:
        return _errors_response(session_id, outcome.errors)
    return _session_view(session_id, outcome.state)


@app.get(
    "/quote-sessions/{session_id}/quote",
    response_model=QuoteOut,
    responses={409: {"description": "Not at the final step"}, 422: {"description": "Answers missing"}},
)
async def get_quote(session_id: str, service: QuoteSessionService = Depends(get_service)):
    result = await service.quote(session_id)
    if isinstance(result, list):
        return _errors_response(session_id, result)
    return {"session_id": session_id, **result.to_dict()}


@app.post(
    "/quote-sessions/{session_id}/submit",
    response_model=SubmitOut,
    responses={409: {"description": "Not at the final step"}, 422: {"description": "Answers missing"}},
)
async def submit_session(session_id: str, service: QuoteSessionService = Depends(get_service)):
    result = await service.submit(session_id)
    if not result.ok:
        return _errors_response(session_id, result.errors)
    return {
        "session_id": session_id,
        "callback_required": result.quote.callback_required,
        "notified": result.notified,
        "quote": result.payload.get("quote"),
    }


@app.delete("/quote-sessions/{session_id}", status_code=204)
async def discard_session(session_id: str, service: QuoteSessionService = Depends(get_service)):
    await service.discard(session_id)


# ============================================================================
# MONITORING
# ============================================================================

@app.get("/health")
def health():
    """Basic health check, used by load balancers."""
    return {"status": "healthy"}


@app.get("/metrics", dependencies=[Depends(require_metrics_auth)])
def metrics():
    collector = get_metrics_collector()
    return collector.get_metrics()


# ============================================================================
# CATCH-ALL (Return 404 for unknown routes)
# ============================================================================

@app.api_route("/{path:path}", methods=["GET", "POST", "PUT", "DELETE", "PATCH"], include_in_schema=False)
async def catch_all(path: str):
    logger.warning(f"404 - Unknown route accessed: {path}")
    raise HTTPException(status_code=404, detail="Not found")


def main() -> None:
    import uvicorn

    uvicorn.run(
        "removals.transport.http_app:app",
        host="0.0.0.0",
        port=8099,
        reload=not settings.is_production,
        log_level=settings.log_level.lower(),
        access_log=not settings.is_production,
        server_header=False,
        date_header=False,
    )


if __name__ == "__main__":
    main()
