"""HTTP routes with dependencies overridden to in-memory SQLite and fake collaborators."""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock

from fastapi.testclient import TestClient

from trustgate.api.deps import (
    get_event_bus,
    get_exploit_adapter,
    get_governance_engine,
    get_orchestrator,
    get_radar_engine,
    get_scan_queue,
)
from trustgate.core.database import get_db
from trustgate.core.events import DOMAIN_UPDATED, MERGE_BLOCKED, EventBus
from trustgate.main import app
from trustgate.models import Scan, Vulnerability
from trustgate.services.governance import GovernanceEngine
from trustgate.services.orchestrator import ScanCapacityError, ScanOrchestrator
from trustgate.services.radar import RadarEngine
from tests.support import StaticGenerator, hypothesis, make_session_factory, verdict

PREFIX = "/api/v1"

SCAN_BODY = {
    "repository_id": "repo-1",
    "files": [{"path": "app.py", "content": "print('hi')\n", "language": "python"}],
}


class ApiTestCase(unittest.TestCase):
    def setUp(self) -> None:
        self.session_factory = make_session_factory()
        self.bus = EventBus()
        self.radar = RadarEngine(self.session_factory, self.bus)
        self.governance = GovernanceEngine(self.session_factory, self.bus)
        self.exploit_adapter = MagicMock()
        self.exploit_adapter.is_enabled.return_value = False
        self.exploit_adapter.scan = AsyncMock(return_value=None)
        self.exploit_adapter.health_check = AsyncMock(return_value=False)
        self.ai_validator = MagicMock()
        self.ai_validator.validate = AsyncMock(return_value=verdict(severity="CRITICAL", confidence=0.9))
        self.orchestrator = ScanOrchestrator(
            session_factory=self.session_factory,
            generator=StaticGenerator([hypothesis()]),
            ai_validator=self.ai_validator,
            exploit_adapter=self.exploit_adapter,
        )
        self.queue = MagicMock()
        self.queue.get_status.return_value = {"queued": 1, "processing": 0, "max_concurrent": 5}

        def _get_db():
            db = self.session_factory()
            try:
                yield db
            finally:
                db.close()

        app.dependency_overrides = {
            get_db: _get_db,
            get_event_bus: lambda: self.bus,
            get_exploit_adapter: lambda: self.exploit_adapter,
            get_orchestrator: lambda: self.orchestrator,
            get_scan_queue: lambda: self.queue,
            get_radar_engine: lambda: self.radar,
            get_governance_engine: lambda: self.governance,
        }
        self.client = TestClient(app)

    def tearDown(self) -> None:
        app.dependency_overrides = {}


class TestScanRoutes(ApiTestCase):
    def test_sync_scan_returns_result(self) -> None:
        response = self.client.post(f"{PREFIX}/scans", json=SCAN_BODY)
        self.assertEqual(response.status_code, 200)
        body = response.json()
        self.assertEqual(body["status"], "COMPLETED")
        self.assertEqual(body["critical_count"], 1)
        self.assertTrue(body["should_block_merge"])
        self.assertEqual(body["vulnerabilities"][0]["validation_source"], "CSS")

    def test_async_scan_is_queued(self) -> None:
        response = self.client.post(f"{PREFIX}/scans", json={**SCAN_BODY, "async": True})
        self.assertEqual(response.status_code, 202)
        self.assertEqual(response.json()["queue_status"]["queued"], 1)
        self.queue.submit.assert_called_once()
        request = self.queue.submit.call_args.args[0]
        self.assertEqual(request.repository_id, "repo-1")

    def test_async_scan_over_capacity_is_429(self) -> None:
        self.orchestrator._active["repo-1"] = self.orchestrator.max_parallel_scans
        response = self.client.post(f"{PREFIX}/scans", json={**SCAN_BODY, "async": True})
        self.assertEqual(response.status_code, 429)
        self.queue.submit.assert_not_called()

    def test_sync_scan_over_capacity_is_429(self) -> None:
        orchestrator = MagicMock()
        orchestrator.scan = AsyncMock(side_effect=ScanCapacityError("repo-1", 5))
        app.dependency_overrides[get_orchestrator] = lambda: orchestrator
        response = self.client.post(f"{PREFIX}/scans", json=SCAN_BODY)
        self.assertEqual(response.status_code, 429)

    def test_empty_files_is_422(self) -> None:
        response = self.client.post(f"{PREFIX}/scans", json={**SCAN_BODY, "files": []})
        self.assertEqual(response.status_code, 422)

    def test_orchestration_failure_is_500(self) -> None:
        self.ai_validator.validate = AsyncMock(side_effect=RuntimeError("store offline"))
        response = self.client.post(f"{PREFIX}/scans", json=SCAN_BODY)
        self.assertEqual(response.status_code, 500)
        self.assertEqual(response.json()["detail"], "store offline")

    def test_get_scan_and_listing(self) -> None:
        scan_id = self.client.post(f"{PREFIX}/scans", json=SCAN_BODY).json()["scan_id"]

        detail = self.client.get(f"{PREFIX}/scans/{scan_id}")
        self.assertEqual(detail.status_code, 200)
        self.assertEqual(len(detail.json()["vulnerabilities"]), 1)

        listing = self.client.get(f"{PREFIX}/scans/repository/repo-1", params={"limit": 5})
        self.assertEqual([s["id"] for s in listing.json()], [scan_id])

        self.assertEqual(self.client.get(f"{PREFIX}/scans/9999").status_code, 404)
        self.assertEqual(
            self.client.get(f"{PREFIX}/scans/repository/repo-1", params={"limit": 0}).status_code,
            422,
        )

    def test_queue_status_and_validator_health(self) -> None:
        self.assertEqual(
            self.client.get(f"{PREFIX}/scans/queue/status").json(),
            {"queued": 1, "processing": 0, "max_concurrent": 5},
        )
        self.assertEqual(
            self.client.get(f"{PREFIX}/scans/exploit-validator/health").json(),
            {"enabled": False, "healthy": False},
        )


class TestVulnerabilityRoutes(ApiTestCase):
    def _vulnerability(self, severity: str, confidence: float) -> int:
        with self.session_factory() as db:
            scan = Scan(repository_id="repo-1", status="COMPLETED", secure_coding_score=80.0)
            db.add(scan)
            db.flush()
            vuln = Vulnerability(
                scan_id=scan.id,
                repository_id="repo-1",
                file_path="app.py",
                line_number=3,
                vulnerability_type="XSS",
                severity=severity,
                confidence_score=confidence,
                validation_source="CSS",
                status="CONFIRMED",
            )
            db.add(vuln)
            db.commit()
            return vuln.id

    def test_open_vulnerabilities_ordered(self) -> None:
        self._vulnerability("LOW", 0.9)
        self._vulnerability("CRITICAL", 0.4)
        self._vulnerability("CRITICAL", 0.8)
        body = self.client.get(f"{PREFIX}/scans/repository/repo-1/vulnerabilities").json()
        self.assertEqual(
            [(v["severity"], v["confidence_score"]) for v in body],
            [("CRITICAL", 0.8), ("CRITICAL", 0.4), ("LOW", 0.9)],
        )

    def test_dismiss_is_idempotent(self) -> None:
        vuln_id = self._vulnerability("HIGH", 0.7)
        first = self.client.post(f"{PREFIX}/vulnerabilities/{vuln_id}/dismiss", json={"user_id": "alice"})
        second = self.client.post(f"{PREFIX}/vulnerabilities/{vuln_id}/dismiss", json={"user_id": "bob"})

        self.assertEqual(first.status_code, 200)
        self.assertEqual(second.status_code, 200)
        self.assertEqual(second.json()["status"], "DISMISSED")
        self.assertEqual(second.json()["dismissed_by"], "alice")
        self.assertEqual(self.client.get(f"{PREFIX}/scans/repository/repo-1/vulnerabilities").json(), [])

    def test_dismiss_missing_is_404(self) -> None:
        response = self.client.post(f"{PREFIX}/vulnerabilities/404/dismiss", json={"user_id": "alice"})
        self.assertEqual(response.status_code, 404)


class TestMergeGateRoute(ApiTestCase):
    def test_blocked_gate_pushes_radar_and_notifies_owner(self) -> None:
        scan_id = self.client.post(f"{PREFIX}/scans", json=SCAN_BODY).json()["scan_id"]

        response = self.client.post(
            f"{PREFIX}/scans/{scan_id}/gate",
            json={"repository_id": "repo-1", "user_id": "u1"},
        )

        body = response.json()
        self.assertFalse(body["allowed"])
        self.assertEqual(body["reason_code"], "critical_findings")
        topics = [e.topic for e in self.bus._pending]
        self.assertEqual(topics, [DOMAIN_UPDATED, MERGE_BLOCKED])

    def test_missing_scan_allows_without_side_effects(self) -> None:
        body = self.client.post(f"{PREFIX}/scans/123/gate", json={"repository_id": "repo-1"}).json()
        self.assertTrue(body["allowed"])
        self.assertEqual(body["reason_code"], "no_scan")
        self.assertEqual(self.bus.get_status()["pending"], 0)


class TestRadarAndGovernanceRoutes(ApiTestCase):
    def test_radar_defaults_to_zeros(self) -> None:
        body = self.client.get(f"{PREFIX}/radar/u1").json()
        self.assertEqual(body["user_id"], "u1")
        self.assertEqual(set(body["axes"].values()), {0.0})
        self.assertEqual(len(body["axes"]), 5)

    def test_event_then_history(self) -> None:
        response = self.client.post(f"{PREFIX}/radar/events", json={"user_id": "u1"})
        self.assertEqual(response.status_code, 200)
        self.assertEqual(self.bus.get_status()["pending"], 1)

        self.radar.recalculate("u1")
        history = self.client.get(f"{PREFIX}/radar/u1/history", params={"days": 30}).json()
        self.assertEqual(len(history), 5)
        self.assertIsNone(self.client.get(f"{PREFIX}/radar/u1/domains").json()["repository"])

    def test_retry_failed_events(self) -> None:
        calls = {"count": 0}

        async def flaky(event) -> None:
            calls["count"] += 1
            if calls["count"] == 1:
                raise RuntimeError("governance store unavailable")

        self.bus.subscribe("t", flaky)
        self.bus.publish("t", {"user_id": "u1"})
        with self.assertLogs("trustgate.core.events", level="ERROR"):
            asyncio.run(self.bus.drain())

        body = self.client.post(f"{PREFIX}/radar/events/retry").json()
        self.assertEqual(body, {"requeued": 1, "pending": 1, "failed": 0})
        self.assertEqual(asyncio.run(self.bus.drain()), 1)
        self.assertEqual(self.client.post(f"{PREFIX}/radar/events/retry").json()["requeued"], 0)

    def test_decay_endpoint(self) -> None:
        self.assertEqual(self.client.post(f"{PREFIX}/radar/decay").json()["decayed_count"], 0)

    def test_seed_list_and_permissions(self) -> None:
        self.assertEqual(self.client.post(f"{PREFIX}/governance/rules/seed").json()["inserted"], 4)
        self.assertEqual(self.client.post(f"{PREFIX}/governance/rules/seed").json()["inserted"], 0)
        self.assertEqual(len(self.client.get(f"{PREFIX}/governance/rules").json()), 4)

        permissions = self.client.get(f"{PREFIX}/governance/permissions/u1").json()
        self.assertFalse(permissions["can_merge"])
        self.assertTrue(permissions["requires_marketplace_approval"])

    def test_health(self) -> None:
        body = self.client.get(f"{PREFIX}/health/").json()
        self.assertEqual(body["status"], "ok")
        self.assertEqual(body["database"], "connected")
        self.assertEqual(body["event_bus"], {"pending": 0, "failed": 0})


if __name__ == "__main__":
    unittest.main()
