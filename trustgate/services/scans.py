"""Read and dismissal queries over persisted scans and vulnerabilities."""

import logging
from datetime import UTC, datetime

from sqlalchemy import case
from sqlalchemy.orm import Session, selectinload

from trustgate.models import Scan, Vulnerability
from trustgate.schemas.scan import OPEN_VULNERABILITY_STATUSES, SEVERITY_RANK

logger = logging.getLogger(__name__)

MAX_SCAN_LIST_LIMIT = 100

# Severity rank as a SQL expression; unknown severities sort last.
_severity_order = case(SEVERITY_RANK, value=Vulnerability.severity, else_=len(SEVERITY_RANK))


def get_scan(db: Session, scan_id: int) -> Scan | None:
    """Scan with its vulnerabilities loaded, or None."""
    return (
        db.query(Scan)
        .options(selectinload(Scan.vulnerabilities))
        .filter(Scan.id == scan_id)
        .first()
    )


def list_scans_for_repository(db: Session, repository_id: str, limit: int = 20) -> list[Scan]:
    """Most recent scans for a repository, newest first."""
    limit = max(1, min(limit, MAX_SCAN_LIST_LIMIT))
    return (
        db.query(Scan)
        .filter(Scan.repository_id == repository_id)
        .order_by(Scan.created_at.desc(), Scan.id.desc())
        .limit(limit)
        .all()
    )


def get_open_vulnerabilities(
    db: Session,
    repository_id: str,
    scan_id: int | None = None,
    severities: tuple[str, ...] | None = None,
) -> list[Vulnerability]:
    """OPEN and CONFIRMED findings, most severe first, then highest confidence."""
    query = db.query(Vulnerability).filter(
        Vulnerability.repository_id == repository_id,
        Vulnerability.status.in_(OPEN_VULNERABILITY_STATUSES),
    )
    if scan_id is not None:
        query = query.filter(Vulnerability.scan_id == scan_id)
    if severities:
        query = query.filter(Vulnerability.severity.in_(severities))
    return query.order_by(
        _severity_order,
        Vulnerability.confidence_score.desc(),
        Vulnerability.id,
    ).all()


def dismiss_vulnerability(db: Session, vulnerability_id: int, user_id: str) -> Vulnerability | None:
    """
    Mark a vulnerability DISMISSED. Returns None when it does not exist.

    Dismissing an already dismissed row changes nothing and still succeeds.
    """
    vuln = db.query(Vulnerability).filter(Vulnerability.id == vulnerability_id).first()
    if vuln is None:
        return None
    if vuln.status == "DISMISSED":
        return vuln

    vuln.status = "DISMISSED"
    vuln.dismissed_by = user_id
    vuln.dismissed_at = datetime.now(UTC)
    db.commit()
    db.refresh(vuln)
    logger.info(
        "Vulnerability dismissed",
        extra={
            "vulnerability_id": vulnerability_id,
            "repository_id": vuln.repository_id,
            "dismissed_by": user_id,
        },
    )
    return vuln
