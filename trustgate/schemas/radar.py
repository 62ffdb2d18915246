"""Pydantic schemas for radar axes, history and raw domain scores."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

RadarAxis = Literal[
    "SECURE_ENGINEERING",
    "APPLIED_SECURITY",
    "PROFESSIONAL_RELIABILITY",
    "ENGINEERING_DEPTH",
    "SECURITY_LEADERSHIP",
]

# Fixed axis order used for upserts, history rows and responses.
RADAR_AXES: tuple[str, ...] = (
    "SECURE_ENGINEERING",
    "APPLIED_SECURITY",
    "PROFESSIONAL_RELIABILITY",
    "ENGINEERING_DEPTH",
    "SECURITY_LEADERSHIP",
)

DomainName = Literal["REPOSITORY", "MARKETPLACE", "OSS", "ALL"]


class RadarSnapshot(BaseModel):
    """Current five-axis radar state for one user."""

    user_id: str
    axes: dict[str, float]


class RadarHistoryEntry(BaseModel):
    """One append-only history row."""

    model_config = ConfigDict(from_attributes=True)

    axis_name: str
    score: float
    recorded_at: datetime


class RepositoryScores(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    secure_coding_score: float = 0.0
    fix_speed_score: float = 0.0
    risk_management_score: float = 0.0
    consistency_score: float = 0.0


class MarketplaceScores(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    professional_reliability_score: float = 0.0
    delivery_discipline_score: float = 0.0
    applied_security_score: float = 0.0


class OssScores(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    engineering_depth_score: float = 0.0
    security_leadership_score: float = 0.0
    oss_impact_score: float = 0.0


class DomainScoresResponse(BaseModel):
    """Raw pre-aggregation inputs. A domain is null when the user has no row for it."""

    user_id: str
    repository: RepositoryScores | None = None
    marketplace: MarketplaceScores | None = None
    oss: OssScores | None = None


class RadarEventRequest(BaseModel):
    """Request body for POST /api/v1/radar/events."""

    user_id: str = Field(..., min_length=1, max_length=255)
    domain: DomainName = "ALL"


class RadarEventResponse(BaseModel):
    success: bool = True
    message: str


class DecayResponse(BaseModel):
    success: bool = True
    decayed_count: int


class EventRetryResponse(BaseModel):
    """Result of re-queuing failed events. Counts are after the retry."""

    requeued: int
    pending: int
    failed: int
