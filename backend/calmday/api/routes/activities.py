"""Activity generation endpoints."""
from __future__ import annotations

import logging
from time import perf_counter

from fastapi import APIRouter, HTTPException, Request, status

from calmday.api.schemas.scheduling import (
    ActivityPayload,
    ClearActivitiesRequest,
    ClearActivitiesResponse,
    GenerateActivitiesRequest,
    GenerateActivitiesResponse,
    IntensityPayload,
)
from calmday.core.config import settings
from calmday.observability.metrics import log_metric
from calmday.observability.tracing import trace
from calmday.services.recommenders.factory import get_recommender
from calmday.services.scheduling_service import build_reasoning, clear_activities, get_or_generate_activities
from calmday.services.scheduling_types import SchedulingInputError

router = APIRouter()
logger = logging.getLogger(__name__)


@router.post("/activities/generate", response_model=GenerateActivitiesResponse, tags=["activities"])
def generate_day_activities(payload: GenerateActivitiesRequest, request: Request) -> GenerateActivitiesResponse:
    """Return the day's activities, generating them on the first call for (user, date)."""
    request_id = getattr(request.state, "request_id", None)
    metadata = {
        "route": "/activities/generate",
        "date": payload.date.isoformat(),
        "force_regenerate": payload.force_regenerate,
        "existing_events": len(payload.existing_events),
    }
    start = perf_counter()

    with trace("activities.generate_route", metadata=metadata, user_id=payload.user_id, request_id=request_id):
        try:
            context = payload.to_context(settings.default_timezone)
            result = get_or_generate_activities(
                payload.user_id,
                payload.date,
                context,
                recommender=get_recommender(),
                force_regenerate=payload.force_regenerate,
            )
        except SchedulingInputError as exc:
            logger.info("Rejected activity request for %s: %s", payload.user_id, exc)
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    log_metric("activities.generate_route.latency_ms", (perf_counter() - start) * 1000, metadata={"user_id": payload.user_id})
    return GenerateActivitiesResponse(
        user_id=payload.user_id,
        date=payload.date,
        activities=[ActivityPayload.from_activity(activity) for activity in result.activities],
        cached=result.cached,
        source=result.source.value,
        generated_at=result.generated_at,
        intensity=IntensityPayload.from_intensity(result.intensity) if result.intensity else None,
        reasoning=build_reasoning(context, result.intensity, result.activities),
        request_id=request_id or "",
    )


@router.post("/activities/clear", response_model=ClearActivitiesResponse, tags=["activities"])
def clear_day_activities(payload: ClearActivitiesRequest, request: Request) -> ClearActivitiesResponse:
    request_id = getattr(request.state, "request_id", None)
    with trace(
        "activities.clear",
        metadata={"date": payload.date.isoformat()},
        user_id=payload.user_id,
        request_id=request_id,
    ):
        cleared = clear_activities(payload.user_id, payload.date)

    return ClearActivitiesResponse(
        user_id=payload.user_id,
        date=payload.date,
        cleared=cleared,
        request_id=request_id or "",
    )
