"""Schedule analysis endpoints."""
from __future__ import annotations

from time import perf_counter
from typing import List, Tuple

from fastapi import APIRouter, HTTPException, Request, status

from calmday.api.schemas.scheduling import (
    DayRequest,
    GapPayload,
    GapsRequest,
    GapsResponse,
    IntensityPayload,
    ScheduleIntensityResponse,
)
from calmday.core.config import settings
from calmday.observability.metrics import log_metric
from calmday.observability.tracing import trace
from calmday.services.intervals import energy_window_instances, resolve_zone, waking_window
from calmday.services.scheduling_service import compute_intensity, find_gaps
from calmday.services.scheduling_types import BusyBlock, EnergyWindow, SchedulingInputError, TimeInterval

router = APIRouter()


@router.post("/schedule/intensity", response_model=ScheduleIntensityResponse, tags=["schedule"])
def schedule_intensity(payload: DayRequest, request: Request) -> ScheduleIntensityResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"date": payload.date.isoformat(), "busy_blocks": len(payload.busy_blocks)}
    start = perf_counter()

    with trace("schedule.intensity", metadata=metadata, request_id=request_id):
        try:
            window, blocks, _ = _day_inputs(payload)
            intensity = compute_intensity(blocks, window)
        except SchedulingInputError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    log_metric("schedule.intensity.ratio", intensity.ratio, metadata={"level": intensity.level.value})
    log_metric("schedule.intensity.latency_ms", (perf_counter() - start) * 1000)
    return ScheduleIntensityResponse(
        **IntensityPayload.from_intensity(intensity).model_dump(),
        date=payload.date,
        request_id=request_id or "",
    )


@router.post("/schedule/gaps", response_model=GapsResponse, tags=["schedule"])
def schedule_gaps(payload: GapsRequest, request: Request) -> GapsResponse:
    request_id = getattr(request.state, "request_id", None)
    metadata = {"date": payload.date.isoformat(), "busy_blocks": len(payload.busy_blocks)}
    start = perf_counter()

    with trace("schedule.gaps", metadata=metadata, request_id=request_id):
        try:
            window, blocks, energy = _day_inputs(payload)
            gaps = find_gaps(blocks, window, energy, payload.min_gap_minutes)
        except SchedulingInputError as exc:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc))

    log_metric("schedule.gaps.count", len(gaps))
    log_metric("schedule.gaps.latency_ms", (perf_counter() - start) * 1000)
    return GapsResponse(
        date=payload.date,
        gaps=[GapPayload.from_gap(gap) for gap in gaps],
        request_id=request_id or "",
    )


def _day_inputs(payload: DayRequest) -> Tuple[TimeInterval, List[BusyBlock], List[TimeInterval]]:
    zone = resolve_zone(payload.timezone or settings.default_timezone)
    window = waking_window(payload.date, payload.wake_time, payload.bed_time, zone)
    blocks = [block.to_interval() for block in payload.busy_blocks]
    energy = energy_window_instances(
        payload.date,
        [EnergyWindow(start=item.start, end=item.end) for item in payload.energy_windows],
        zone,
    )
    return window, blocks, energy
