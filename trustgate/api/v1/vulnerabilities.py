"""Vulnerability endpoints."""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from trustgate.core.database import get_db
from trustgate.schemas.scan import DismissRequest, VulnerabilityRead
from trustgate.services.scans import dismiss_vulnerability

router = APIRouter()


@router.post("/{vulnerability_id}/dismiss", response_model=VulnerabilityRead)
def post_dismiss(
    vulnerability_id: int,
    body: DismissRequest,
    db: Annotated[Session, Depends(get_db)],
) -> VulnerabilityRead:
    """Dismiss a finding. Dismissing an already dismissed finding is a no-op."""
    vuln = dismiss_vulnerability(db, vulnerability_id, body.user_id)
    if vuln is None:
        raise HTTPException(status_code=404, detail="Vulnerability not found")
    return VulnerabilityRead.model_validate(vuln)
