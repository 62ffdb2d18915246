"""Governance engine: rule evaluation against radar axes, user permissions and the per-scan merge gate.

Rule rows are stored as free strings. They are normalized into
GovernanceRuleSpec when loaded; rows with an unknown axis, operator or action
are logged and skipped, so a bad row never breaks evaluation.
"""

import logging
from collections.abc import Mapping, Sequence
from typing import TYPE_CHECKING, Any

from pydantic import ValidationError

from trustgate.core.database import SessionFactory
from trustgate.core.events import DOMAIN_UPDATED, MERGE_BLOCKED, RADAR_RECALCULATED, Event, EventBus
from trustgate.models import GovernanceRule, RadarState
from trustgate.schemas.governance import (
    GovernanceRuleSpec,
    MergeGateResult,
    RuleEvaluation,
    TriggeredRule,
    UserPermissions,
)
from trustgate.schemas.scan import VulnerabilityRead
from trustgate.services.radar import axes_or_zeros
from trustgate.services.scans import get_open_vulnerabilities, get_scan

if TYPE_CHECKING:
    from trustgate.core.config import Settings

logger = logging.getLogger(__name__)

DEFAULT_RULES: tuple[dict[str, Any], ...] = (
    {
        "axis_name": "SECURE_ENGINEERING",
        "operator": "LT",
        "threshold": 60.0,
        "action": "BLOCK_MERGE",
        "description": "Block merges when secure engineering score drops below 60",
    },
    {
        "axis_name": "APPLIED_SECURITY",
        "operator": "LT",
        "threshold": 50.0,
        "action": "REQUIRE_APPROVAL",
        "description": "Require marketplace approval when applied security is below 50",
    },
    {
        "axis_name": "PROFESSIONAL_RELIABILITY",
        "operator": "LT",
        "threshold": 55.0,
        "action": "REDUCE_RANKING",
        "description": "Hide from rankings when professional reliability is below 55",
    },
    {
        "axis_name": "SECURITY_LEADERSHIP",
        "operator": "GT",
        "threshold": 85.0,
        "action": "GRANT_PRIVILEGES",
        "description": "Grant advanced review privileges above 85 security leadership",
    },
)


def evaluate_condition(score: float, operator: str, threshold: float) -> bool:
    if operator == "LT":
        return score < threshold
    if operator == "GT":
        return score > threshold
    if operator == "LTE":
        return score <= threshold
    if operator == "GTE":
        return score >= threshold
    raise ValueError(f"Unknown operator: {operator}")


def fold_permissions(evaluations: Sequence[RuleEvaluation]) -> UserPermissions:
    """Accumulate triggered actions. No precedence: every triggered rule applies."""
    permissions = UserPermissions()
    for ev in evaluations:
        if not ev.triggered:
            continue
        if ev.action == "BLOCK_MERGE":
            permissions.can_merge = False
        elif ev.action == "REQUIRE_APPROVAL":
            permissions.requires_marketplace_approval = True
        elif ev.action == "REDUCE_RANKING":
            permissions.ranking_visible = False
        elif ev.action == "GRANT_PRIVILEGES":
            permissions.has_advanced_review_privileges = True
        permissions.triggered_rules.append(
            TriggeredRule(axis=ev.axis_name, action=ev.action, description=ev.description or "")
        )
    return permissions


def _read_findings(rows) -> list[VulnerabilityRead]:
    return [VulnerabilityRead.model_validate(r) for r in rows]


class GovernanceEngine:
    """Consumes radar.recalculated events and answers permission and merge-gate queries."""

    def __init__(
        self,
        session_factory: SessionFactory,
        bus: EventBus,
        secure_coding_threshold: float = 70.0,
    ) -> None:
        self._session_factory = session_factory
        self.bus = bus
        self.secure_coding_threshold = secure_coding_threshold

    @classmethod
    def from_settings(
        cls, settings: "Settings", session_factory: SessionFactory, bus: EventBus
    ) -> "GovernanceEngine":
        return cls(
            session_factory=session_factory,
            bus=bus,
            secure_coding_threshold=settings.SECURE_CODING_THRESHOLD,
        )

    def register(self) -> None:
        self.bus.subscribe(RADAR_RECALCULATED, self.handle_radar_recalculated)

    async def handle_radar_recalculated(self, event: Event) -> list[RuleEvaluation]:
        user_id = event.payload.get("user_id")
        axes = event.payload.get("axes")
        if not user_id or not isinstance(axes, Mapping):
            raise ValueError("radar.recalculated event requires user_id and axes")
        return self.evaluate_rules(str(user_id), axes)

    def load_active_rules(self) -> list[GovernanceRuleSpec]:
        """Active rules normalized to closed types. Unrecognized rows are quarantined."""
        with self._session_factory() as db:
            rows = (
                db.query(GovernanceRule)
                .filter(GovernanceRule.active.is_(True))
                .order_by(GovernanceRule.id)
                .all()
            )
        rules: list[GovernanceRuleSpec] = []
        for row in rows:
            try:
                rules.append(GovernanceRuleSpec.model_validate(row))
            except ValidationError as e:
                logger.warning(
                    "Quarantined governance rule with unrecognized values",
                    extra={
                        "rule_id": row.id,
                        "axis_name": row.axis_name,
                        "operator": row.operator,
                        "action": row.action,
                        "error_count": e.error_count(),
                    },
                )
        return rules

    def evaluate_rules(self, user_id: str, axes: Mapping[str, float]) -> list[RuleEvaluation]:
        """Evaluate active rules against the given axes. Axes absent from the mapping are skipped."""
        evaluations: list[RuleEvaluation] = []
        for rule in self.load_active_rules():
            if rule.axis_name not in axes:
                continue
            score = float(axes[rule.axis_name])
            evaluations.append(
                RuleEvaluation(
                    rule_id=rule.id,
                    axis_name=rule.axis_name,
                    axis_score=score,
                    operator=rule.operator,
                    threshold=rule.threshold,
                    action=rule.action,
                    triggered=evaluate_condition(score, rule.operator, rule.threshold),
                    description=rule.description,
                )
            )

        for ev in evaluations:
            if ev.triggered:
                logger.info(
                    "Governance rule triggered",
                    extra={
                        "user_id": user_id,
                        "rule_id": ev.rule_id,
                        "axis_name": ev.axis_name,
                        "axis_score": ev.axis_score,
                        "action": ev.action,
                    },
                )
        return evaluations

    def get_permissions(self, user_id: str) -> UserPermissions:
        """Re-derive permissions from current radar state. Never cached."""
        with self._session_factory() as db:
            rows = db.query(RadarState).filter(RadarState.user_id == user_id).all()
        axes = axes_or_zeros({row.axis_name: row.axis_score for row in rows})
        return fold_permissions(self.evaluate_rules(user_id, axes))

    def evaluate_merge_gate(self, repository_id: str, scan_id: int) -> MergeGateResult:
        """Merge decision for one scan. First matching condition wins; no side effects."""
        with self._session_factory() as db:
            scan = get_scan(db, scan_id)
            if scan is None:
                return MergeGateResult(
                    allowed=True,
                    reason="No scan found; merge allowed",
                    reason_code="no_scan",
                )
            if scan.status != "COMPLETED":
                return MergeGateResult(
                    allowed=False,
                    reason=f"Scan is not complete (status: {scan.status})",
                    reason_code="scan_not_ready",
                )

            open_findings = get_open_vulnerabilities(db, repository_id, scan_id=scan_id)
            critical = [v for v in open_findings if v.severity == "CRITICAL"]
            if critical:
                return MergeGateResult(
                    allowed=False,
                    reason=f"{len(critical)} critical vulnerability(ies) must be resolved before merge",
                    reason_code="critical_findings",
                    requires_review=True,
                    findings=_read_findings(critical),
                )

            score = scan.secure_coding_score if scan.secure_coding_score is not None else 0.0
            if score < self.secure_coding_threshold:
                return MergeGateResult(
                    allowed=False,
                    reason=(
                        f"Secure coding score {score:.1f} is below threshold "
                        f"{self.secure_coding_threshold:.1f}"
                    ),
                    reason_code="score_below_threshold",
                    requires_review=True,
                    findings=_read_findings(open_findings),
                )

            high = [v for v in open_findings if v.severity == "HIGH"]
            if high:
                return MergeGateResult(
                    allowed=True,
                    reason=f"{len(high)} high severity vulnerability(ies) require review",
                    reason_code="high_findings_review",
                    requires_review=True,
                    findings=_read_findings(high),
                )

        return MergeGateResult(
            allowed=True,
            reason="All security checks passed",
            reason_code="passed",
        )

    def push_to_radar(self, user_id: str, scan_id: int) -> None:
        """Record a scan outcome against the user's radar by publishing domain.updated."""
        self.bus.publish(
            DOMAIN_UPDATED,
            {"user_id": user_id, "domain": "REPOSITORY", "source": "scan", "scan_id": scan_id},
        )
        logger.info("Pushed scan to radar", extra={"user_id": user_id, "scan_id": scan_id})

    def notify_owner(self, repository_id: str, scan_id: int, severity: str) -> None:
        logger.warning(
            "Merge blocked; notifying repository owner",
            extra={"repository_id": repository_id, "scan_id": scan_id, "severity": severity},
        )
        self.bus.publish(
            MERGE_BLOCKED,
            {"repository_id": repository_id, "scan_id": scan_id, "severity": severity},
        )

    def seed_default_rules(self) -> int:
        """Insert the reference rules whose (axis, action) pair is missing. Returns the number inserted."""
        inserted = 0
        with self._session_factory() as db:
            for rule in DEFAULT_RULES:
                exists = (
                    db.query(GovernanceRule.id)
                    .filter(
                        GovernanceRule.axis_name == rule["axis_name"],
                        GovernanceRule.action == rule["action"],
                    )
                    .first()
                )
                if exists is not None:
                    continue
                db.add(GovernanceRule(active=True, **rule))
                inserted += 1
            db.commit()
        logger.info("Seeded governance rules", extra={"inserted": inserted})
        return inserted

    def list_rules(self) -> list[GovernanceRule]:
        with self._session_factory() as db:
            return db.query(GovernanceRule).order_by(GovernanceRule.axis_name, GovernanceRule.id).all()
