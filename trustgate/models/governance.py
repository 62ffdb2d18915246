"""ORM model for admin-configurable governance rules."""

from sqlalchemy import Boolean, Column, DateTime, Float, Integer, String, Text

from trustgate.models.base import Base, utcnow


class GovernanceRule(Base):
    """
    (axis, operator, threshold) -> action mapping.

    Values are stored as free strings; the governance engine validates them
    when rules are loaded and skips rows it does not recognize.
    """

    __tablename__ = "governance_rules"

    id = Column(Integer, primary_key=True, autoincrement=True)
    axis_name = Column(String(64), nullable=False, index=True)
    operator = Column(String(8), nullable=False)
    threshold = Column(Float, nullable=False)
    action = Column(String(32), nullable=False)
    active = Column(Boolean, nullable=False, default=True)
    description = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)
