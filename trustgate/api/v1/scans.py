"""Scan endpoints: submit scans, read results, list open findings and evaluate the merge gate."""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from trustgate.api.deps import (
    get_exploit_adapter,
    get_governance_engine,
    get_orchestrator,
    get_scan_queue,
)
from trustgate.core.database import get_db
from trustgate.schemas.governance import MergeGateRequest, MergeGateResult
from trustgate.schemas.scan import (
    ExploitValidatorHealth,
    QueueStatus,
    ScanDetail,
    ScanQueuedResponse,
    ScanRead,
    ScanResult,
    ScanSubmitRequest,
    VulnerabilityRead,
)
from trustgate.services.exploit_validator import ExploitValidatorAdapter
from trustgate.services.governance import GovernanceEngine
from trustgate.services.orchestrator import ScanCapacityError, ScanOrchestrator
from trustgate.services.scan_queue import ScanQueue
from trustgate.services.scans import get_open_vulnerabilities, get_scan, list_scans_for_repository

logger = logging.getLogger(__name__)

router = APIRouter()


def _log_background_failure(future) -> None:
    if future.cancelled():
        return
    exc = future.exception()
    if exc is not None:
        logger.error("Queued scan failed", extra={"error": str(exc)})


@router.post(
    "",
    response_model=ScanResult,
    responses={status.HTTP_202_ACCEPTED: {"model": ScanQueuedResponse}},
)
async def post_scan(
    body: ScanSubmitRequest,
    orchestrator: Annotated[ScanOrchestrator, Depends(get_orchestrator)],
    queue: Annotated[ScanQueue, Depends(get_scan_queue)],
):
    """
    Run a security scan over the submitted files.

    With ``async: true`` the scan is queued and 202 is returned with the queue
    status; otherwise the call waits for the ScanResult. A repository that
    already has the maximum number of active scans gets 429.
    """
    request = body.to_scan_request()

    if body.run_async:
        try:
            orchestrator.check_capacity(request.repository_id)
        except ScanCapacityError as e:
            raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=e.message) from e
        future = queue.submit(request)
        future.add_done_callback(_log_background_failure)
        payload = ScanQueuedResponse(queue_status=QueueStatus(**queue.get_status()))
        return JSONResponse(status_code=status.HTTP_202_ACCEPTED, content=payload.model_dump())

    try:
        return await orchestrator.scan(request)
    except ScanCapacityError as e:
        raise HTTPException(status_code=status.HTTP_429_TOO_MANY_REQUESTS, detail=e.message) from e
    except Exception as e:
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(e)) from e


@router.get("/queue/status", response_model=QueueStatus)
def get_queue_status(queue: Annotated[ScanQueue, Depends(get_scan_queue)]) -> QueueStatus:
    return QueueStatus(**queue.get_status())


@router.get("/exploit-validator/health", response_model=ExploitValidatorHealth)
async def get_exploit_validator_health(
    adapter: Annotated[ExploitValidatorAdapter, Depends(get_exploit_adapter)],
) -> ExploitValidatorHealth:
    """Configured flag plus a live health probe of the exploit validator."""
    return ExploitValidatorHealth(enabled=adapter.is_enabled(), healthy=await adapter.health_check())


@router.get("/repository/{repository_id}", response_model=list[ScanRead])
def get_repository_scans(
    repository_id: str,
    db: Annotated[Session, Depends(get_db)],
    limit: Annotated[int, Query(ge=1, le=100)] = 20,
) -> list[ScanRead]:
    """Recent scans for a repository, newest first."""
    scans = list_scans_for_repository(db, repository_id, limit=limit)
    return [ScanRead.model_validate(s) for s in scans]


@router.get("/repository/{repository_id}/vulnerabilities", response_model=list[VulnerabilityRead])
def get_repository_vulnerabilities(
    repository_id: str,
    db: Annotated[Session, Depends(get_db)],
) -> list[VulnerabilityRead]:
    """Open and confirmed vulnerabilities, most severe and most confident first."""
    vulns = get_open_vulnerabilities(db, repository_id)
    return [VulnerabilityRead.model_validate(v) for v in vulns]


@router.get("/{scan_id}", response_model=ScanDetail)
def get_scan_detail(
    scan_id: int,
    db: Annotated[Session, Depends(get_db)],
) -> ScanDetail:
    scan = get_scan(db, scan_id)
    if scan is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Scan not found")
    return ScanDetail.model_validate(scan)


@router.post("/{scan_id}/gate", response_model=MergeGateResult)
def post_merge_gate(
    scan_id: int,
    body: MergeGateRequest,
    governance: Annotated[GovernanceEngine, Depends(get_governance_engine)],
) -> MergeGateResult:
    """
    Evaluate the merge gate for a scan.

    When ``user_id`` is given the scan outcome is pushed to that user's radar.
    The repository owner is notified when critical findings block the merge.
    """
    result = governance.evaluate_merge_gate(body.repository_id, scan_id)
    if body.user_id:
        governance.push_to_radar(body.user_id, scan_id)
    if result.reason_code == "critical_findings":
        governance.notify_owner(body.repository_id, scan_id, "CRITICAL")
    return result
