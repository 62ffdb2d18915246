"""Pydantic request/response schemas."""

from trustgate.schemas.exploit import ExploitFinding, ExploitScanResult
from trustgate.schemas.governance import (
    GovernanceRuleRead,
    GovernanceRuleSpec,
    MergeGateResult,
    RuleEvaluation,
    UserPermissions,
)
from trustgate.schemas.health import HealthResponse
from trustgate.schemas.hypothesis import AIVerdict, VulnerabilityHypothesis
from trustgate.schemas.radar import RADAR_AXES, RadarSnapshot
from trustgate.schemas.scan import (
    FileInput,
    ScanDetail,
    ScanRequest,
    ScanResult,
    SeverityLevel,
    UnifiedVulnerability,
    VulnerabilityRead,
)

__all__ = [
    "AIVerdict",
    "ExploitFinding",
    "ExploitScanResult",
    "FileInput",
    "GovernanceRuleRead",
    "GovernanceRuleSpec",
    "HealthResponse",
    "MergeGateResult",
    "RADAR_AXES",
    "RadarSnapshot",
    "RuleEvaluation",
    "ScanDetail",
    "ScanRequest",
    "ScanResult",
    "SeverityLevel",
    "UnifiedVulnerability",
    "UserPermissions",
    "VulnerabilityHypothesis",
    "VulnerabilityRead",
]
