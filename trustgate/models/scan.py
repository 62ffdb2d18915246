"""ORM models for scan executions and the vulnerabilities they confirm."""

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from trustgate.models.base import Base, utcnow


class Scan(Base):
    """
    One row per scan execution.

    status: QUEUED, IN_PROGRESS, COMPLETED or FAILED. Only the orchestrator that
    created the row writes to it.
    """

    __tablename__ = "scans"

    id = Column(Integer, primary_key=True, autoincrement=True)
    repository_id = Column(String(255), nullable=False, index=True)
    triggered_by = Column(String(255), nullable=False, default="system")
    scan_type = Column(String(32), nullable=False, default="FULL")
    commit_sha = Column(String(64), nullable=True)
    branch = Column(String(255), nullable=True)
    status = Column(String(32), nullable=False, default="QUEUED", index=True)

    total_findings = Column(Integer, nullable=False, default=0)
    critical_count = Column(Integer, nullable=False, default=0)
    high_count = Column(Integer, nullable=False, default=0)
    medium_count = Column(Integer, nullable=False, default=0)
    low_count = Column(Integer, nullable=False, default=0)
    secure_coding_score = Column(Float, nullable=True)
    risk_score = Column(Float, nullable=True)
    should_block_merge = Column(Boolean, nullable=False, default=False)

    exploit_validator_enabled = Column(Boolean, nullable=False, default=False)
    exploit_scan_id = Column(String(255), nullable=True)
    error_message = Column(Text, nullable=True)

    started_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    duration_ms = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow, index=True)

    vulnerabilities = relationship(
        "Vulnerability",
        back_populates="scan",
        order_by="Vulnerability.id",
        cascade="all, delete-orphan",
    )


class Vulnerability(Base):
    """
    A finding confirmed by at least one validator.

    validation_source: CSS (AI only), SHANNON (exploit validator only) or BOTH.
    status: OPEN, CONFIRMED or DISMISSED; dismissed rows are never re-opened.
    """

    __tablename__ = "vulnerabilities"

    id = Column(Integer, primary_key=True, autoincrement=True)
    scan_id = Column(Integer, ForeignKey("scans.id", ondelete="CASCADE"), nullable=False, index=True)
    repository_id = Column(String(255), nullable=False, index=True)

    file_path = Column(String(2048), nullable=False)
    line_number = Column(Integer, nullable=False)
    end_line = Column(Integer, nullable=True)
    code_snippet = Column(Text, nullable=False, default="")
    vulnerability_type = Column(String(128), nullable=False)
    severity = Column(String(16), nullable=False, index=True)
    confidence_score = Column(Float, nullable=False)

    source = Column(Text, nullable=False, default="")
    sink = Column(Text, nullable=False, default="")
    data_flow_path = Column(Text, nullable=False, default="")

    ai_exploitable = Column(Boolean, nullable=False, default=False)
    ai_severity = Column(String(16), nullable=False, default="INFO")
    ai_reasoning = Column(Text, nullable=False, default="")
    ai_patch = Column(Text, nullable=False, default="")
    ai_confidence = Column(Float, nullable=False, default=0.0)

    exploit_confirmed = Column(Boolean, nullable=True)
    exploit_details = Column(Text, nullable=True)

    validation_source = Column(String(16), nullable=False)
    status = Column(String(16), nullable=False, default="OPEN", index=True)
    dismissed_by = Column(String(255), nullable=True)
    dismissed_at = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, default=utcnow)

    scan = relationship("Scan", back_populates="vulnerabilities")
