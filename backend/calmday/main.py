"""Main FastAPI application for the CalmDay scheduling engine."""
from fastapi import FastAPI, Request

from calmday.api.routes.activities import router as activities_router
from calmday.api.routes.schedule import router as schedule_router
from calmday.core.config import settings
from calmday.core.logging import configure_logging
from calmday.core.middleware import RequestIDMiddleware
from calmday.observability.client import init_opik
from calmday.observability.tracing import trace
from calmday.worker.cache_pruner import build_scheduler

configure_logging(log_level=settings.log_level)

app = FastAPI(title=settings.app_name, version="0.1.0")
app.add_middleware(RequestIDMiddleware)
app.include_router(schedule_router)
app.include_router(activities_router)


@app.on_event("startup")
async def startup_services() -> None:
    """Initialize observability and, when enabled, the cache prune scheduler."""
    init_opik()
    if settings.scheduler_enabled:
        scheduler = build_scheduler()
        scheduler.start()
        app.state.scheduler = scheduler


@app.on_event("shutdown")
async def shutdown_services() -> None:
    scheduler = getattr(app.state, "scheduler", None)
    if scheduler is not None and scheduler.running:
        scheduler.shutdown(wait=False)
    app.state.scheduler = None


@app.get("/health", tags=["health"], summary="Readiness probe")
async def health_check(request: Request) -> dict[str, str]:
    """Return a simple status payload so automation can probe the API."""
    with trace("http.health_check", metadata={"route": "/health"}, request_id=request.state.request_id):
        return {"status": "ok"}
