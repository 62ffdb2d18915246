"""Pydantic schemas for scan requests, scan results and persisted vulnerabilities."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Reusable severity levels for validation and type safety across schemas.
SeverityLevel = Literal["CRITICAL", "HIGH", "MEDIUM", "LOW", "INFO"]

SEVERITY_VALUES: frozenset[str] = frozenset({"CRITICAL", "HIGH", "MEDIUM", "LOW", "INFO"})

# Lower rank sorts first (most severe first).
SEVERITY_RANK: dict[str, int] = {
    "CRITICAL": 0,
    "HIGH": 1,
    "MEDIUM": 2,
    "LOW": 3,
    "INFO": 4,
}

ScanType = Literal["FULL", "INCREMENTAL", "PR_CHECK"]
ScanStatus = Literal["QUEUED", "IN_PROGRESS", "COMPLETED", "FAILED"]
ValidationSource = Literal["CSS", "SHANNON", "BOTH"]
VulnerabilityStatus = Literal["OPEN", "CONFIRMED", "DISMISSED"]

# Statuses that still count against a repository (merge gate, open listing).
OPEN_VULNERABILITY_STATUSES: tuple[str, ...] = ("OPEN", "CONFIRMED")


class FileInput(BaseModel):
    """One source file submitted for scanning."""

    model_config = ConfigDict(frozen=True)

    path: str = Field(..., min_length=1, description="Path of the file within the repository.")
    content: str = Field(..., description="Full file content.")
    language: str = Field(default="", description="Language hint (e.g. python, typescript).")


class ScanRequest(BaseModel):
    """Immutable scan request handed to the queue or the orchestrator."""

    model_config = ConfigDict(frozen=True)

    repository_id: str = Field(..., min_length=1, max_length=255)
    triggered_by: str = Field(default="system", min_length=1, max_length=255)
    scan_type: ScanType = "FULL"
    commit_sha: str | None = Field(default=None, max_length=64)
    branch: str | None = Field(default=None, max_length=255)
    files: tuple[FileInput, ...] = Field(
        ...,
        min_length=1,
        description="Files to scan; an empty list is rejected.",
    )
    exploit_validator_enabled: bool | None = Field(
        default=None,
        description="Run the exploit validator for this scan. None uses the configured default.",
    )

    @field_validator("repository_id", "triggered_by")
    @classmethod
    def strip_identifier(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("must be non-empty")
        return v.strip()


class ScanSubmitRequest(ScanRequest):
    """Request body for POST /api/v1/scans."""

    run_async: bool = Field(
        default=False,
        alias="async",
        description="If true, enqueue the scan and return 202 immediately.",
    )

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    def to_scan_request(self) -> ScanRequest:
        return ScanRequest.model_validate(self.model_dump(exclude={"run_async"}))


class UnifiedVulnerability(BaseModel):
    """Confirmed finding as returned in a ScanResult."""

    id: int
    repository_id: str
    file_path: str
    line_number: int
    vulnerability_type: str
    severity: SeverityLevel
    confidence_score: float = Field(..., ge=0, le=1)
    exploit_reasoning: str
    fix_patch: str
    source: str
    sink: str
    validation_source: ValidationSource


class ScanResult(BaseModel):
    """Outcome of one completed scan."""

    scan_id: int
    status: ScanStatus
    total_findings: int
    critical_count: int
    high_count: int
    medium_count: int
    low_count: int
    secure_coding_score: float = Field(..., ge=0, le=100)
    risk_score: float = Field(..., ge=0, le=100)
    should_block_merge: bool
    vulnerabilities: list[UnifiedVulnerability] = Field(default_factory=list)


class VulnerabilityRead(BaseModel):
    """Persisted vulnerability row."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    scan_id: int
    repository_id: str
    file_path: str
    line_number: int
    end_line: int | None = None
    code_snippet: str
    vulnerability_type: str
    severity: str
    confidence_score: float
    source: str
    sink: str
    data_flow_path: str
    ai_exploitable: bool
    ai_severity: str
    ai_reasoning: str
    ai_patch: str
    ai_confidence: float
    exploit_confirmed: bool | None = None
    exploit_details: str | None = None
    validation_source: str
    status: str
    dismissed_by: str | None = None
    dismissed_at: datetime | None = None
    created_at: datetime | None = None


class ScanRead(BaseModel):
    """Persisted scan row without its vulnerabilities."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    repository_id: str
    triggered_by: str
    scan_type: str
    commit_sha: str | None = None
    branch: str | None = None
    status: str
    total_findings: int
    critical_count: int
    high_count: int
    medium_count: int
    low_count: int
    secure_coding_score: float | None = None
    risk_score: float | None = None
    should_block_merge: bool
    exploit_validator_enabled: bool
    exploit_scan_id: str | None = None
    error_message: str | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None
    duration_ms: int | None = None
    created_at: datetime | None = None


class ScanDetail(ScanRead):
    """Scan row including all of its vulnerabilities."""

    vulnerabilities: list[VulnerabilityRead] = Field(default_factory=list)


class QueueStatus(BaseModel):
    """Observability snapshot of the scan queue."""

    queued: int
    processing: int
    max_concurrent: int


class ScanQueuedResponse(BaseModel):
    """202 response for asynchronous scan submission."""

    message: str = "Scan queued"
    queue_status: QueueStatus


class DismissRequest(BaseModel):
    """Request body for dismissing a vulnerability."""

    user_id: str = Field(..., min_length=1, max_length=255)


class ExploitValidatorHealth(BaseModel):
    """Exploit validator configuration flag and live reachability."""

    enabled: bool
    healthy: bool
