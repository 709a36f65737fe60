from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse, Response
from contextlib import asynccontextmanager
from typing import Optional
import asyncio
import logging
import math

from schoolsout.config import Settings, load_settings
from schoolsout.models.entities import ErrorResponse, SearchResponse
from schoolsout.orchestrator import ActivitySearchOrchestrator, SearchOutcome, SearchStatus

logger = logging.getLogger(__name__)

APP_CHECK_HEADER = "X-Firebase-AppCheck"

CORS_PREFLIGHT_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": f"Content-Type, {APP_CHECK_HEADER}",
    "Access-Control-Max-Age": "3600",
}

STATUS_CODES = {
    SearchStatus.OK: 200,
    SearchStatus.RATE_LIMITED: 429,
    SearchStatus.UNAUTHORIZED: 401,
    SearchStatus.INVALID_JSON: 400,
    SearchStatus.INVALID_PARAMETERS: 400,
    SearchStatus.BLANK_QUERY: 400,
}


def configure_logging(level: str) -> None:
    """Root logging at the configured level (DEBUG also dumps prompts and raw model text)."""
    logging.basicConfig(level=level)
    logging.getLogger().setLevel(level)


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop (set by Cloud Functions / Cloud Run), else the peer address."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return ""


def _error(status_code: int, message: str, headers: Optional[dict] = None) -> JSONResponse:
    headers = {"Access-Control-Allow-Origin": "*", **(headers or {})}
    return JSONResponse(ErrorResponse(error=message).model_dump(), status_code=status_code, headers=headers)


def to_response(outcome: SearchOutcome) -> JSONResponse:
    if not outcome.ok:
        headers = {}
        if outcome.retry_after is not None:
            headers["Retry-After"] = str(math.ceil(outcome.retry_after))
        return _error(STATUS_CODES[outcome.status], outcome.error, headers)

    body = SearchResponse(success=True, activities=outcome.activities, message=outcome.message)
    return JSONResponse(body.to_payload(), status_code=200, headers={"Access-Control-Allow-Origin": "*"})


def create_app(orchestrator: Optional[ActivitySearchOrchestrator] = None, settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the FastAPI app.

    When no orchestrator is passed one is built from ``settings`` (or the
    environment) at startup; a missing Gemini credential then fails startup
    instead of every request. The rate limiter sweep runs for the lifetime
    of the app.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        resolved = settings or load_settings()
        configure_logging(resolved.log_level)
        if app.state.orchestrator is None:
            app.state.orchestrator = ActivitySearchOrchestrator.from_settings(resolved)
        app.state.orchestrator.start()
        try:
            yield
        finally:
            app.state.orchestrator.stop()

    app = FastAPI(
        title="SchoolsOut Activity Search API",
        description="Holiday activity search grounded in live Google Search results via Gemini",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.orchestrator = orchestrator

    @app.get("/health")
    def health():
        return {"status": "healthy", "service": "SchoolsOut Activity Search"}

    @app.options("/")
    def preflight():
        return Response(status_code=204, headers=CORS_PREFLIGHT_HEADERS)

    @app.api_route("/", methods=["GET", "PUT", "PATCH", "DELETE"])
    def method_not_allowed():
        return _error(405, "Method not allowed. Use POST.", {"Allow": "POST, OPTIONS"})

    @app.post("/")
    async def search_activities(request: Request):
        """
        Search for holiday activities.

        Body: {"query": str, "location"?: str, "ageRange"?: {"min", "max"},
        "dateRange"?: {"startDate", "endDate"}}. Requires an App Check token in
        the X-Firebase-AppCheck header unless the caller's IP is allowlisted.
        """
        client_ip = get_client_ip(request)
        token = request.headers.get(APP_CHECK_HEADER)
        body = await request.body()

        # generation calls block; keep them off the event loop
        outcome = await asyncio.to_thread(request.app.state.orchestrator.handle, client_ip, token, body)

        if outcome.pipeline_failed:
            logger.warning("Search pipeline failed for %s; returning empty result", client_ip)
        elif outcome.ok:
            logger.info("Returning %d activities to %s", len(outcome.activities), client_ip)
        return to_response(outcome)

    return app


app = create_app()
