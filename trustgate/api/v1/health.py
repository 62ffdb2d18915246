"""Health check endpoint with database connectivity and event backlog."""

from typing import Annotated

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from trustgate.api.deps import get_event_bus
from trustgate.core.config import settings
from trustgate.core.database import check_db_connected, get_db
from trustgate.core.events import EventBus
from trustgate.schemas.health import EventBusStatus, HealthResponse

router = APIRouter()


@router.get("/", response_model=HealthResponse)
def get_health(
    db: Annotated[Session, Depends(get_db)],
    bus: Annotated[EventBus, Depends(get_event_bus)],
) -> HealthResponse:
    """
    Return service health status, database connectivity and event bus backlog.
    Used by load balancers and monitoring.
    """
    db_status = "connected" if check_db_connected(db) else "disconnected"

    return HealthResponse(
        status="ok",
        environment=settings.APP_ENV,
        database=db_status,
        event_bus=EventBusStatus(**bus.get_status()),
    )
