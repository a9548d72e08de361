"""Main FastAPI application for the ShedAI scheduler."""
from fastapi import FastAPI, Request

from shedai.api.routes.inputs import router as inputs_router
from shedai.api.routes.jobs import router as jobs_router
from shedai.api.routes.schedule import router as schedule_router
from shedai.core.config import settings
from shedai.core.logging import configure_logging
from shedai.core.middleware import RequestIDMiddleware
from shedai.observability.client import init_opik
from shedai.observability.tracing import trace

configure_logging(log_level=settings.log_level, engine_log_level=settings.engine_log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(inputs_router)
app.include_router(schedule_router)
app.include_router(jobs_router)


@app.on_event("startup")
async def startup_observability() -> None:
    """Initialize observability backends after the event loop starts."""
    init_opik()


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
