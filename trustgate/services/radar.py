"""Radar aggregation: five weighted trust axes computed from raw domain scores.

Recalculation is driven by ``domain.updated`` events and ends by publishing
``radar.recalculated``. This module never references governance; consumers
subscribe to the event bus.
"""

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING

from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session

from trustgate.core.database import SessionFactory
from trustgate.core.events import DOMAIN_UPDATED, RADAR_RECALCULATED, Event, EventBus
from trustgate.models import (
    MarketplaceDomainScore,
    OssDomainScore,
    RadarHistory,
    RadarState,
    RepositoryDomainScore,
)
from trustgate.schemas.radar import (
    RADAR_AXES,
    DomainScoresResponse,
    MarketplaceScores,
    OssScores,
    RepositoryScores,
)

if TYPE_CHECKING:
    from trustgate.core.config import Settings

logger = logging.getLogger(__name__)

# axis -> ((domain input, weight), ...)
AXIS_WEIGHTS: dict[str, tuple[tuple[str, float], ...]] = {
    "SECURE_ENGINEERING": (
        ("secure_coding", 0.7),
        ("consistency", 0.2),
        ("security_leadership", 0.1),
    ),
    "APPLIED_SECURITY": (
        ("applied_security", 0.6),
        ("secure_coding", 0.4),
    ),
    "PROFESSIONAL_RELIABILITY": (
        ("professional_reliability", 0.7),
        ("delivery_discipline", 0.3),
    ),
    "ENGINEERING_DEPTH": (
        ("engineering_depth", 0.6),
        ("oss_impact", 0.4),
    ),
    "SECURITY_LEADERSHIP": (
        ("security_leadership", 0.5),
        ("applied_security", 0.3),
        ("risk_management", 0.2),
    ),
}


@dataclass(frozen=True)
class DomainInputs:
    """Flattened sub-scores from the three domain tables. Missing rows are zeros."""

    secure_coding: float = 0.0
    fix_speed: float = 0.0
    risk_management: float = 0.0
    consistency: float = 0.0
    professional_reliability: float = 0.0
    delivery_discipline: float = 0.0
    applied_security: float = 0.0
    engineering_depth: float = 0.0
    security_leadership: float = 0.0
    oss_impact: float = 0.0


def _clamp(value: float) -> float:
    return max(0.0, min(100.0, value))


def compute_axes(inputs: DomainInputs) -> dict[str, float]:
    """Weighted sums per axis, each clamped to [0, 100]."""
    return {
        axis: _clamp(sum(getattr(inputs, name) * weight for name, weight in AXIS_WEIGHTS[axis]))
        for axis in RADAR_AXES
    }


def _upsert_statement(db: Session):
    """Dialect insert supporting ON CONFLICT DO UPDATE for the bound engine."""
    if db.get_bind().dialect.name == "sqlite":
        return sqlite.insert(RadarState)
    return postgresql.insert(RadarState)


class RadarEngine:
    """Recalculates, decays and reads radar state for users."""

    def __init__(
        self,
        session_factory: SessionFactory,
        bus: EventBus,
        decay_rate: float = 0.98,
        inactivity_days: int = 30,
    ) -> None:
        self._session_factory = session_factory
        self.bus = bus
        self.decay_rate = decay_rate
        self.inactivity_days = inactivity_days

    @classmethod
    def from_settings(
        cls, settings: "Settings", session_factory: SessionFactory, bus: EventBus
    ) -> "RadarEngine":
        return cls(
            session_factory=session_factory,
            bus=bus,
            decay_rate=settings.RADAR_DECAY_RATE,
            inactivity_days=settings.RADAR_INACTIVITY_DAYS,
        )

    def register(self) -> None:
        self.bus.subscribe(DOMAIN_UPDATED, self.handle_domain_updated)

    async def handle_domain_updated(self, event: Event) -> None:
        user_id = event.payload.get("user_id")
        if not user_id:
            raise ValueError("domain.updated event is missing user_id")
        self.recalculate(str(user_id))

    def recalculate(self, user_id: str) -> dict[str, float]:
        """
        Recompute all five axes for a user, upsert RadarState, append RadarHistory
        and publish radar.recalculated. Returns the axis values.

        Idempotent on state: unchanged domain scores yield identical RadarState,
        while history grows by one row per axis per call.
        """
        now = datetime.now(UTC)
        with self._session_factory() as db:
            axes = compute_axes(self._load_inputs(db, user_id))
            stmt = _upsert_statement(db)
            for axis_name, score in axes.items():
                db.execute(
                    stmt.values(
                        user_id=user_id,
                        axis_name=axis_name,
                        axis_score=score,
                        last_updated=now,
                    ).on_conflict_do_update(
                        index_elements=["user_id", "axis_name"],
                        set_={"axis_score": score, "last_updated": now},
                    )
                )
                db.add(RadarHistory(user_id=user_id, axis_name=axis_name, score=score, recorded_at=now))
            db.commit()

        logger.info("Radar recalculated", extra={"user_id": user_id, "axes": axes})
        self.bus.publish(RADAR_RECALCULATED, {"user_id": user_id, "axes": axes})
        return axes

    def apply_decay(self, now: datetime | None = None) -> int:
        """
        Multiply stale axis scores by decay_rate, floored at 0. last_updated is
        left unchanged and no events are published. Returns the number of rows decayed.
        """
        now = now or datetime.now(UTC)
        cutoff = now - timedelta(days=self.inactivity_days)
        with self._session_factory() as db:
            stale = db.query(RadarState).filter(RadarState.last_updated < cutoff).all()
            for state in stale:
                state.axis_score = max(0.0, state.axis_score * self.decay_rate)
            db.commit()

        if stale:
            logger.info(
                "Radar decay applied",
                extra={"decayed_count": len(stale), "cutoff": cutoff.isoformat()},
            )
        return len(stale)

    def get_user_radar(self, user_id: str) -> dict[str, float] | None:
        """Current axis scores for a user, or None when never calculated."""
        with self._session_factory() as db:
            rows = db.query(RadarState).filter(RadarState.user_id == user_id).all()
        if not rows:
            return None
        return {row.axis_name: row.axis_score for row in rows}

    def get_history(self, user_id: str, days: int = 90) -> list[RadarHistory]:
        cutoff = datetime.now(UTC) - timedelta(days=days)
        with self._session_factory() as db:
            return (
                db.query(RadarHistory)
                .filter(RadarHistory.user_id == user_id, RadarHistory.recorded_at >= cutoff)
                .order_by(RadarHistory.recorded_at.asc(), RadarHistory.id.asc())
                .all()
            )

    def get_domain_scores(self, user_id: str) -> DomainScoresResponse:
        with self._session_factory() as db:
            repo, market, oss = self._load_rows(db, user_id)
            return DomainScoresResponse(
                user_id=user_id,
                repository=RepositoryScores.model_validate(repo) if repo else None,
                marketplace=MarketplaceScores.model_validate(market) if market else None,
                oss=OssScores.model_validate(oss) if oss else None,
            )

    @staticmethod
    def _load_rows(db: Session, user_id: str):
        repo = db.query(RepositoryDomainScore).filter(RepositoryDomainScore.user_id == user_id).first()
        market = db.query(MarketplaceDomainScore).filter(MarketplaceDomainScore.user_id == user_id).first()
        oss = db.query(OssDomainScore).filter(OssDomainScore.user_id == user_id).first()
        return repo, market, oss

    def _load_inputs(self, db: Session, user_id: str) -> DomainInputs:
        repo, market, oss = self._load_rows(db, user_id)
        values: dict[str, float] = {}
        if repo is not None:
            values.update(
                secure_coding=repo.secure_coding_score,
                fix_speed=repo.fix_speed_score,
                risk_management=repo.risk_management_score,
                consistency=repo.consistency_score,
            )
        if market is not None:
            values.update(
                professional_reliability=market.professional_reliability_score,
                delivery_discipline=market.delivery_discipline_score,
                applied_security=market.applied_security_score,
            )
        if oss is not None:
            values.update(
                engineering_depth=oss.engineering_depth_score,
                security_leadership=oss.security_leadership_score,
                oss_impact=oss.oss_impact_score,
            )
        return DomainInputs(**values)


def axes_or_zeros(axes: Mapping[str, float] | None) -> dict[str, float]:
    """Fill every axis, defaulting missing ones to 0."""
    axes = axes or {}
    return {axis: float(axes.get(axis, 0.0)) for axis in RADAR_AXES}
