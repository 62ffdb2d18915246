"""ORM models for domain scores (radar inputs), radar state and radar history."""

from sqlalchemy import Column, DateTime, Float, Integer, String, UniqueConstraint

from trustgate.models.base import Base, utcnow


class RepositoryDomainScore(Base):
    """Repository security sub-scores for one user. Written by upstream domain logic."""

    __tablename__ = "repository_domain_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    secure_coding_score = Column(Float, nullable=False, default=0.0)
    fix_speed_score = Column(Float, nullable=False, default=0.0)
    risk_management_score = Column(Float, nullable=False, default=0.0)
    consistency_score = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class MarketplaceDomainScore(Base):
    """Marketplace sub-scores for one user. Written by upstream domain logic."""

    __tablename__ = "marketplace_domain_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    professional_reliability_score = Column(Float, nullable=False, default=0.0)
    delivery_discipline_score = Column(Float, nullable=False, default=0.0)
    applied_security_score = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class OssDomainScore(Base):
    """Open-source contribution sub-scores for one user. Written by upstream domain logic."""

    __tablename__ = "oss_domain_scores"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, unique=True, index=True)
    engineering_depth_score = Column(Float, nullable=False, default=0.0)
    security_leadership_score = Column(Float, nullable=False, default=0.0)
    oss_impact_score = Column(Float, nullable=False, default=0.0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)


class RadarState(Base):
    """Current score of one axis for one user. Exactly one row per (user_id, axis_name)."""

    __tablename__ = "radar_states"
    __table_args__ = (
        UniqueConstraint("user_id", "axis_name", name="uq_radar_states_user_axis"),
    )

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    axis_name = Column(String(64), nullable=False)
    axis_score = Column(Float, nullable=False, default=0.0)
    last_updated = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)


class RadarHistory(Base):
    """Append-only snapshot of an axis score; one row per axis per recalculation."""

    __tablename__ = "radar_history"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(255), nullable=False, index=True)
    axis_name = Column(String(64), nullable=False)
    score = Column(Float, nullable=False)
    recorded_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)
