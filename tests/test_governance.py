"""Governance engine: rule loading and quarantine, permissions, merge gate and seeding."""

import asyncio
import unittest

from trustgate.core.events import DOMAIN_UPDATED, MERGE_BLOCKED, RADAR_RECALCULATED, EventBus
from trustgate.models import GovernanceRule, RadarState, Scan, Vulnerability
from trustgate.services.governance import GovernanceEngine, evaluate_condition
from tests.support import make_session_factory


class GovernanceTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.bus = EventBus()
        self.engine = GovernanceEngine(self.session_factory, self.bus)

    def _rule(self, axis: str, operator: str, threshold: float, action: str, active: bool = True) -> None:
        with self.session_factory() as db:
            db.add(
                GovernanceRule(
                    axis_name=axis,
                    operator=operator,
                    threshold=threshold,
                    action=action,
                    active=active,
                    description=f"{axis} {operator} {threshold}",
                )
            )
            db.commit()

    def _axes(self, user_id: str, **scores: float) -> None:
        with self.session_factory() as db:
            for axis, score in scores.items():
                db.add(RadarState(user_id=user_id, axis_name=axis, axis_score=score))
            db.commit()

    def _scan(self, status: str = "COMPLETED", score: float = 100.0, findings=()) -> int:
        with self.session_factory() as db:
            scan = Scan(
                repository_id="repo-1",
                status=status,
                secure_coding_score=score if status == "COMPLETED" else None,
            )
            db.add(scan)
            db.flush()
            for severity, vuln_status, confidence in findings:
                db.add(
                    Vulnerability(
                        scan_id=scan.id,
                        repository_id="repo-1",
                        file_path="app.py",
                        line_number=1,
                        vulnerability_type="XSS",
                        severity=severity,
                        confidence_score=confidence,
                        validation_source="CSS",
                        status=vuln_status,
                    )
                )
            db.commit()
            return scan.id


class TestEvaluateCondition(unittest.TestCase):
    def test_operators(self) -> None:
        self.assertTrue(evaluate_condition(59.9, "LT", 60))
        self.assertFalse(evaluate_condition(60, "LT", 60))
        self.assertTrue(evaluate_condition(60, "LTE", 60))
        self.assertTrue(evaluate_condition(86, "GT", 85))
        self.assertTrue(evaluate_condition(85, "GTE", 85))

    def test_unknown_operator(self) -> None:
        with self.assertRaises(ValueError):
            evaluate_condition(1, "EQ", 1)


class TestRuleLoading(GovernanceTestCase):
    def test_quarantines_unrecognized_rows(self) -> None:
        self._rule("SECURE_ENGINEERING", "LT", 60, "BLOCK_MERGE")
        self._rule("CHARISMA", "LT", 60, "BLOCK_MERGE")
        self._rule("APPLIED_SECURITY", "EQ", 50, "REQUIRE_APPROVAL")
        self._rule("APPLIED_SECURITY", "LT", 50, "SEND_EMAIL")
        self._rule("ENGINEERING_DEPTH", "LT", 50, "REDUCE_RANKING", active=False)

        rules = self.engine.load_active_rules()

        self.assertEqual([(r.axis_name, r.action) for r in rules], [("SECURE_ENGINEERING", "BLOCK_MERGE")])

    def test_axes_missing_from_event_are_skipped(self) -> None:
        self._rule("SECURE_ENGINEERING", "LT", 60, "BLOCK_MERGE")
        self._rule("APPLIED_SECURITY", "LT", 50, "REQUIRE_APPROVAL")
        evaluations = self.engine.evaluate_rules("u1", {"SECURE_ENGINEERING": 40.0})
        self.assertEqual(len(evaluations), 1)
        self.assertTrue(evaluations[0].triggered)

    def test_radar_recalculated_handler(self) -> None:
        self._rule("SECURITY_LEADERSHIP", "GT", 85, "GRANT_PRIVILEGES")
        self.engine.register()
        self.bus.publish(RADAR_RECALCULATED, {"user_id": "u1", "axes": {"SECURITY_LEADERSHIP": 90.0}})
        self.assertEqual(asyncio.run(self.bus.drain()), 1)
        self.assertEqual(self.bus.failed, [])


class TestPermissions(GovernanceTestCase):
    def test_defaults_without_rules(self) -> None:
        permissions = self.engine.get_permissions("u1")
        self.assertTrue(permissions.can_merge)
        self.assertTrue(permissions.ranking_visible)
        self.assertFalse(permissions.requires_marketplace_approval)
        self.assertFalse(permissions.has_advanced_review_privileges)
        self.assertEqual(permissions.triggered_rules, [])

    def test_actions_accumulate(self) -> None:
        self.engine.seed_default_rules()
        self._axes(
            "u1",
            SECURE_ENGINEERING=40.0,
            APPLIED_SECURITY=45.0,
            PROFESSIONAL_RELIABILITY=80.0,
            SECURITY_LEADERSHIP=95.0,
        )

        permissions = self.engine.get_permissions("u1")

        self.assertFalse(permissions.can_merge)
        self.assertTrue(permissions.requires_marketplace_approval)
        self.assertTrue(permissions.ranking_visible)
        self.assertTrue(permissions.has_advanced_review_privileges)
        self.assertEqual(
            sorted(r.action for r in permissions.triggered_rules),
            ["BLOCK_MERGE", "GRANT_PRIVILEGES", "REQUIRE_APPROVAL"],
        )

    def test_missing_axes_count_as_zero(self) -> None:
        self.engine.seed_default_rules()
        permissions = self.engine.get_permissions("newcomer")
        self.assertFalse(permissions.can_merge)
        self.assertFalse(permissions.ranking_visible)
        self.assertFalse(permissions.has_advanced_review_privileges)


class TestMergeGate(GovernanceTestCase):
    def test_no_scan_allows(self) -> None:
        result = self.engine.evaluate_merge_gate("repo-1", 999)
        self.assertTrue(result.allowed)
        self.assertEqual(result.reason_code, "no_scan")

    def test_scan_not_ready_denies(self) -> None:
        result = self.engine.evaluate_merge_gate("repo-1", self._scan(status="IN_PROGRESS"))
        self.assertFalse(result.allowed)
        self.assertEqual(result.reason_code, "scan_not_ready")
        self.assertFalse(result.requires_review)

    def test_open_critical_denies(self) -> None:
        scan_id = self._scan(
            score=75.0,
            findings=[("CRITICAL", "CONFIRMED", 0.9), ("HIGH", "CONFIRMED", 0.5)],
        )
        result = self.engine.evaluate_merge_gate("repo-1", scan_id)
        self.assertFalse(result.allowed)
        self.assertEqual(result.reason_code, "critical_findings")
        self.assertEqual([f.severity for f in result.findings], ["CRITICAL"])

    def test_dismissed_critical_does_not_block(self) -> None:
        scan_id = self._scan(score=75.0, findings=[("CRITICAL", "DISMISSED", 0.9)])
        result = self.engine.evaluate_merge_gate("repo-1", scan_id)
        self.assertTrue(result.allowed)
        self.assertEqual(result.reason_code, "passed")

    def test_low_score_denies_with_all_open_findings(self) -> None:
        scan_id = self._scan(
            score=55.0,
            findings=[("HIGH", "CONFIRMED", 0.5), ("HIGH", "OPEN", 0.9), ("MEDIUM", "CONFIRMED", 0.7)],
        )
        result = self.engine.evaluate_merge_gate("repo-1", scan_id)
        self.assertFalse(result.allowed)
        self.assertEqual(result.reason_code, "score_below_threshold")
        self.assertEqual(
            [(f.severity, f.confidence_score) for f in result.findings],
            [("HIGH", 0.9), ("HIGH", 0.5), ("MEDIUM", 0.7)],
        )

    def test_high_requires_review(self) -> None:
        scan_id = self._scan(score=85.0, findings=[("HIGH", "CONFIRMED", 0.5), ("LOW", "CONFIRMED", 0.5)])
        result = self.engine.evaluate_merge_gate("repo-1", scan_id)
        self.assertTrue(result.allowed)
        self.assertTrue(result.requires_review)
        self.assertEqual(result.reason_code, "high_findings_review")
        self.assertEqual(len(result.findings), 1)

    def test_clean_scan_passes(self) -> None:
        result = self.engine.evaluate_merge_gate("repo-1", self._scan(findings=[("LOW", "CONFIRMED", 0.3)]))
        self.assertTrue(result.allowed)
        self.assertFalse(result.requires_review)

    def test_gate_has_no_side_effects(self) -> None:
        self.engine.evaluate_merge_gate("repo-1", self._scan(findings=[("CRITICAL", "CONFIRMED", 0.9)]))
        self.assertEqual(self.bus.get_status()["pending"], 0)


class TestCallerSideEffects(GovernanceTestCase):
    def test_push_to_radar_publishes_domain_updated(self) -> None:
        received = []

        async def handler(event) -> None:
            received.append(event.payload)

        self.bus.subscribe(DOMAIN_UPDATED, handler)
        self.engine.push_to_radar("u1", 7)
        asyncio.run(self.bus.drain())
        self.assertEqual(received[0]["user_id"], "u1")
        self.assertEqual(received[0]["scan_id"], 7)

    def test_notify_owner_publishes_merge_blocked(self) -> None:
        event = None

        async def handler(e) -> None:
            nonlocal event
            event = e

        self.bus.subscribe(MERGE_BLOCKED, handler)
        with self.assertLogs("trustgate.services.governance", level="WARNING"):
            self.engine.notify_owner("repo-1", 7, "CRITICAL")
        asyncio.run(self.bus.drain())
        self.assertEqual(event.payload, {"repository_id": "repo-1", "scan_id": 7, "severity": "CRITICAL"})


class TestSeedRules(GovernanceTestCase):
    def test_idempotent(self) -> None:
        self.assertEqual(self.engine.seed_default_rules(), 4)
        self.assertEqual(self.engine.seed_default_rules(), 0)
        self.assertEqual(len(self.engine.list_rules()), 4)

    def test_skips_existing_axis_action_pair(self) -> None:
        self._rule("SECURE_ENGINEERING", "LT", 40, "BLOCK_MERGE")
        self.assertEqual(self.engine.seed_default_rules(), 3)
        rules = [r for r in self.engine.list_rules() if r.axis_name == "SECURE_ENGINEERING"]
        self.assertEqual(len(rules), 1)
        self.assertEqual(rules[0].threshold, 40)


if __name__ == "__main__":
    unittest.main()
