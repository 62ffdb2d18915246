"""Pydantic schemas for governance rules, permissions and the per-scan merge gate."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from trustgate.schemas.radar import RadarAxis
from trustgate.schemas.scan import VulnerabilityRead

RuleOperator = Literal["LT", "GT", "LTE", "GTE"]
GovernanceAction = Literal["BLOCK_MERGE", "REQUIRE_APPROVAL", "REDUCE_RANKING", "GRANT_PRIVILEGES"]

MergeGateReason = Literal[
    "no_scan",
    "scan_not_ready",
    "critical_findings",
    "score_below_threshold",
    "high_findings_review",
    "passed",
]


class GovernanceRuleSpec(BaseModel):
    """
    A rule row normalized to closed types. Building one from a stored row fails
    validation when the axis, operator or action is unknown.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: int
    axis_name: RadarAxis
    operator: RuleOperator
    threshold: float
    action: GovernanceAction
    description: str | None = None


class GovernanceRuleRead(BaseModel):
    """Stored rule as listed to administrators (values shown as stored)."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    axis_name: str
    operator: str
    threshold: float
    action: str
    active: bool
    description: str | None = None
    created_at: datetime | None = None


class RuleEvaluation(BaseModel):
    """Result of evaluating one rule against one axis score."""

    rule_id: int
    axis_name: str
    axis_score: float
    operator: RuleOperator
    threshold: float
    action: GovernanceAction
    triggered: bool
    description: str | None = None


class TriggeredRule(BaseModel):
    axis: str
    action: GovernanceAction
    description: str = ""


class UserPermissions(BaseModel):
    """Permissions folded from triggered governance rules. Defaults are all-permissive."""

    can_merge: bool = True
    requires_marketplace_approval: bool = False
    ranking_visible: bool = True
    has_advanced_review_privileges: bool = False
    triggered_rules: list[TriggeredRule] = Field(default_factory=list)


class MergeGateRequest(BaseModel):
    """Request body for POST /api/v1/scans/{scan_id}/gate."""

    repository_id: str = Field(..., min_length=1, max_length=255)
    user_id: str | None = Field(
        default=None,
        max_length=255,
        description="When set, the scan outcome is pushed to this user's radar.",
    )


class MergeGateResult(BaseModel):
    """Merge gate decision for one scan."""

    allowed: bool
    reason: str
    reason_code: MergeGateReason
    requires_review: bool = False
    findings: list[VulnerabilityRead] = Field(default_factory=list)


class SeedRulesResponse(BaseModel):
    success: bool = True
    inserted: int
    message: str
