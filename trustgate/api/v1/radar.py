"""Radar endpoints: current axes, history, raw domain scores, domain events, event retry and decay."""

from typing import Annotated

from fastapi import APIRouter, Depends, Query

from trustgate.api.deps import get_event_bus, get_radar_engine
from trustgate.core.config import get_settings
from trustgate.core.events import DOMAIN_UPDATED, EventBus
from trustgate.schemas.radar import (
    DecayResponse,
    DomainScoresResponse,
    EventRetryResponse,
    RadarEventRequest,
    RadarEventResponse,
    RadarHistoryEntry,
    RadarSnapshot,
)
from trustgate.services.radar import RadarEngine, axes_or_zeros

router = APIRouter()


def _default_history_days() -> int:
    return get_settings().RADAR_HISTORY_DEFAULT_DAYS


@router.get("/{user_id}", response_model=RadarSnapshot)
def get_radar(
    user_id: str,
    engine: Annotated[RadarEngine, Depends(get_radar_engine)],
) -> RadarSnapshot:
    """Current five axes. A user never recalculated gets all zeros."""
    return RadarSnapshot(user_id=user_id, axes=axes_or_zeros(engine.get_user_radar(user_id)))


@router.get("/{user_id}/history", response_model=list[RadarHistoryEntry])
def get_radar_history(
    user_id: str,
    engine: Annotated[RadarEngine, Depends(get_radar_engine)],
    days: Annotated[int | None, Query(ge=1, le=3650)] = None,
) -> list[RadarHistoryEntry]:
    rows = engine.get_history(user_id, days=days or _default_history_days())
    return [RadarHistoryEntry.model_validate(r) for r in rows]


@router.get("/{user_id}/domains", response_model=DomainScoresResponse)
def get_radar_domains(
    user_id: str,
    engine: Annotated[RadarEngine, Depends(get_radar_engine)],
) -> DomainScoresResponse:
    return engine.get_domain_scores(user_id)


@router.post("/events", response_model=RadarEventResponse)
def post_domain_event(
    body: RadarEventRequest,
    bus: Annotated[EventBus, Depends(get_event_bus)],
) -> RadarEventResponse:
    """Signal that a user's domain scores changed. Recalculation happens asynchronously."""
    bus.publish(DOMAIN_UPDATED, {"user_id": body.user_id, "domain": body.domain, "source": "api"})
    return RadarEventResponse(message=f"Radar recalculation queued for user {body.user_id}")


@router.post("/events/retry", response_model=EventRetryResponse)
def post_retry_failed_events(bus: Annotated[EventBus, Depends(get_event_bus)]) -> EventRetryResponse:
    """Re-queue failed events that have not reached the attempt limit."""
    requeued = bus.retry_failed()
    return EventRetryResponse(requeued=requeued, **bus.get_status())


@router.post("/decay", response_model=DecayResponse)
def post_decay(engine: Annotated[RadarEngine, Depends(get_radar_engine)]) -> DecayResponse:
    """Run the decay sweep once. Normally scheduled through the radar_decay job."""
    return DecayResponse(decayed_count=engine.apply_decay())
