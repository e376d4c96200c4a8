# =======================================================================================
# campus_access/api/routes/status.py - Occupancy and History Endpoints
# =======================================================================================
from datetime import date, datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query
from ...models.schemas import (
    AccessEventOut,
    DailyCountResponse,
    DirectionResponse,
    HistoryResponse,
    OccupancyResponse,
)
from ...services import AccessServices
from ..dependencies import get_services

router = APIRouter()


@router.get("/identities/{identity_id}/direction", response_model=DirectionResponse)
def get_direction(identity_id: int, services: AccessServices = Depends(get_services)):
    state = services.status.current_direction(identity_id)
    return DirectionResponse(identity_id=identity_id, state=state.value)


@router.get("/identities/{identity_id}/events", response_model=HistoryResponse)
def get_history(
    identity_id: int,
    limit: int = Query(50, ge=1, le=500),
    services: AccessServices = Depends(get_services),
):
    events = services.status.history(identity_id, limit)
    return HistoryResponse(
        identity_id=identity_id,
        events=[AccessEventOut.from_record(e) for e in events],
    )


@router.get("/occupancy", response_model=OccupancyResponse)
def get_occupancy(
    as_of: Optional[datetime] = Query(None, description="UTC, naive"),
    services: AccessServices = Depends(get_services),
):
    counts = services.status.occupancy_counts(as_of)
    return OccupancyResponse(as_of=counts.as_of, total=counts.total, by_category=counts.by_category)


@router.get("/events/daily-count", response_model=DailyCountResponse)
def get_daily_count(
    day: Optional[date] = Query(None, description="Site-local calendar day"),
    services: AccessServices = Depends(get_services),
):
    count = services.status.daily_event_count(day)
    return DailyCountResponse(
        day=count.day,
        window_start=count.window_start,
        window_end=count.window_end,
        entries=count.entries,
        exits=count.exits,
        total=count.total,
    )
