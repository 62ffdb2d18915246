"""Scan orchestrator: per-repository admission, hypothesis validation, fusion, persistence, scoring.

Pipeline for one scan:
  1. reject if the repository already has max_parallel_scans active scans
  2. create the Scan row (IN_PROGRESS)
  3. generate static hypotheses
  4. run the exploit validator once (when enabled); failures mean "no result"
  5. validate each hypothesis with the AI validator, matched to an exploit finding
  6. fuse confidences; hypotheses confirmed by neither validator are discarded
  7-11. persist findings, compute scores and the merge block flag, complete the scan

Any exception after the Scan row exists marks it FAILED and is re-raised, so a
scan never stays IN_PROGRESS once scan() returns.
"""

import logging
import time
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from trustgate.core.database import SessionFactory
from trustgate.models import Scan, Vulnerability
from trustgate.schemas.exploit import DEFAULT_EXPLOIT_CATEGORIES, ExploitFinding
from trustgate.schemas.hypothesis import AIVerdict, VulnerabilityHypothesis
from trustgate.schemas.scan import ScanRequest, ScanResult, UnifiedVulnerability
from trustgate.services.exploit_validator import ExploitValidatorAdapter
from trustgate.services.hypothesis_validator import HypothesisValidator
from trustgate.services.scoring import (
    FusionPolicy,
    MergePolicy,
    ScorePolicy,
    calculate_risk_score,
    calculate_secure_coding_score,
    count_by_severity,
    fuse_confidence,
)
from trustgate.services.static_analysis import HypothesisGenerator

if TYPE_CHECKING:
    from trustgate.core.config import Settings

logger = logging.getLogger(__name__)


class ScanCapacityError(Exception):
    """Raised when a repository already has the maximum number of active scans."""

    def __init__(self, repository_id: str, limit: int) -> None:
        self.repository_id = repository_id
        self.limit = limit
        self.message = (
            f"Too many parallel scans for repository {repository_id} "
            f"(limit {limit}). Retry later."
        )
        super().__init__(self.message)


@dataclass(frozen=True)
class ValidatedFinding:
    """A hypothesis that survived fusion."""

    hypothesis: VulnerabilityHypothesis
    verdict: AIVerdict
    exploit_match: ExploitFinding | None
    confidence: float
    validation_source: str

    @property
    def severity(self) -> str:
        return self.verdict.severity


def match_exploit_finding(
    hypothesis: VulnerabilityHypothesis,
    findings: Sequence[ExploitFinding],
    tolerance: int = 5,
) -> ExploitFinding | None:
    """First exploit finding on the same file within +/- tolerance lines, or None."""
    for finding in findings:
        if (
            finding.file_path == hypothesis.file_path
            and abs(finding.line_number - hypothesis.line_number) <= tolerance
        ):
            return finding
    return None


def _elapsed_ms(start: float) -> int:
    return int((time.perf_counter() - start) * 1000)


class ScanOrchestrator:
    """Runs scans end to end. Holds the per-repository active scan counters."""

    def __init__(
        self,
        session_factory: SessionFactory,
        generator: HypothesisGenerator,
        ai_validator: HypothesisValidator,
        exploit_adapter: ExploitValidatorAdapter,
        max_parallel_scans: int = 5,
        line_match_tolerance: int = 5,
        fusion_policy: FusionPolicy = FusionPolicy(),
        merge_policy: MergePolicy = MergePolicy(),
        score_policy: ScorePolicy | None = None,
    ) -> None:
        self._session_factory = session_factory
        self.generator = generator
        self.ai_validator = ai_validator
        self.exploit_adapter = exploit_adapter
        self.max_parallel_scans = max_parallel_scans
        self.line_match_tolerance = line_match_tolerance
        self.fusion_policy = fusion_policy
        self.merge_policy = merge_policy
        self.score_policy = score_policy or ScorePolicy()
        self._active: dict[str, int] = {}

    @classmethod
    def from_settings(
        cls,
        settings: "Settings",
        session_factory: SessionFactory,
        generator: HypothesisGenerator,
        ai_validator: HypothesisValidator,
        exploit_adapter: ExploitValidatorAdapter,
    ) -> "ScanOrchestrator":
        return cls(
            session_factory=session_factory,
            generator=generator,
            ai_validator=ai_validator,
            exploit_adapter=exploit_adapter,
            max_parallel_scans=settings.SCAN_MAX_PARALLEL_PER_REPO,
            line_match_tolerance=settings.SCAN_LINE_MATCH_TOLERANCE,
            fusion_policy=FusionPolicy.from_settings(settings),
            merge_policy=MergePolicy.from_settings(settings),
            score_policy=ScorePolicy.from_settings(settings),
        )

    def active_scans(self, repository_id: str) -> int:
        return self._active.get(repository_id, 0)

    def check_capacity(self, repository_id: str) -> None:
        """Raise ScanCapacityError if the repository cannot start another scan now."""
        if self.active_scans(repository_id) >= self.max_parallel_scans:
            raise ScanCapacityError(repository_id, self.max_parallel_scans)

    async def scan(self, request: ScanRequest) -> ScanResult:
        """Execute one scan. Raises ScanCapacityError before doing any work when over the cap."""
        repository_id = request.repository_id
        # Check and increment happen with no await in between.
        self.check_capacity(repository_id)
        self._active[repository_id] = self.active_scans(repository_id) + 1
        try:
            return await self._run(request)
        finally:
            remaining = self.active_scans(repository_id) - 1
            if remaining > 0:
                self._active[repository_id] = remaining
            else:
                self._active.pop(repository_id, None)

    async def _run(self, request: ScanRequest) -> ScanResult:
        start = time.perf_counter()
        exploit_enabled = (
            request.exploit_validator_enabled
            if request.exploit_validator_enabled is not None
            else self.exploit_adapter.is_enabled()
        )
        scan_id = self._create_scan(request, exploit_enabled)
        logger.info(
            "Starting scan",
            extra={
                "scan_id": scan_id,
                "repository_id": request.repository_id,
                "file_count": len(request.files),
                "scan_type": request.scan_type,
                "exploit_validator_enabled": exploit_enabled,
            },
        )

        try:
            hypotheses = await self.generator.generate(request.files)
            if not hypotheses:
                return self._complete_scan(scan_id, request.repository_id, [], start)

            exploit_findings: list[ExploitFinding] = []
            if exploit_enabled:
                exploit_result = await self.exploit_adapter.scan(
                    request.repository_id,
                    request.files,
                    DEFAULT_EXPLOIT_CATEGORIES,
                )
                if exploit_result is not None:
                    self._record_exploit_scan_id(scan_id, exploit_result.scan_id)
                    exploit_findings = exploit_result.findings

            validated = await self._validate_hypotheses(hypotheses, exploit_findings)
            return self._complete_scan(scan_id, request.repository_id, validated, start)
        except Exception as e:
            logger.exception(
                "Scan failed",
                extra={"scan_id": scan_id, "repository_id": request.repository_id},
            )
            self._fail_scan(scan_id, str(e) or type(e).__name__, start)
            raise

    async def _validate_hypotheses(
        self,
        hypotheses: Sequence[VulnerabilityHypothesis],
        exploit_findings: Sequence[ExploitFinding],
    ) -> list[ValidatedFinding]:
        validated: list[ValidatedFinding] = []
        for hypothesis in hypotheses:
            match = match_exploit_finding(hypothesis, exploit_findings, self.line_match_tolerance)
            verdict = await self.ai_validator.validate(hypothesis, match)
            fused = fuse_confidence(
                ai_exploitable=verdict.is_exploitable,
                ai_confidence=verdict.confidence,
                exploit_confirmed=match.exploitable if match else False,
                exploit_confidence=match.confidence if match else 0.0,
                policy=self.fusion_policy,
            )
            if fused is None:
                logger.info(
                    "Discarding hypothesis: no validator confirmed it",
                    extra={
                        "file_path": hypothesis.file_path,
                        "line_number": hypothesis.line_number,
                        "vulnerability_type": hypothesis.vulnerability_type,
                    },
                )
                continue
            validated.append(
                ValidatedFinding(
                    hypothesis=hypothesis,
                    verdict=verdict,
                    exploit_match=match,
                    confidence=fused.confidence,
                    validation_source=fused.validation_source,
                )
            )
        return validated

    def _create_scan(self, request: ScanRequest, exploit_enabled: bool) -> int:
        with self._session_factory() as db:
            scan = Scan(
                repository_id=request.repository_id,
                triggered_by=request.triggered_by,
                scan_type=request.scan_type,
                commit_sha=request.commit_sha,
                branch=request.branch,
                status="IN_PROGRESS",
                exploit_validator_enabled=exploit_enabled,
                started_at=datetime.now(UTC),
            )
            db.add(scan)
            db.commit()
            return scan.id

    def _record_exploit_scan_id(self, scan_id: int, exploit_scan_id: str) -> None:
        with self._session_factory() as db:
            db.query(Scan).filter(Scan.id == scan_id).update(
                {Scan.exploit_scan_id: exploit_scan_id}, synchronize_session=False
            )
            db.commit()

    def _complete_scan(
        self,
        scan_id: int,
        repository_id: str,
        validated: Sequence[ValidatedFinding],
        start: float,
    ) -> ScanResult:
        with self._session_factory() as db:
            rows: list[tuple[Vulnerability, ValidatedFinding]] = []
            for v in validated:
                h = v.hypothesis
                row = Vulnerability(
                    scan_id=scan_id,
                    repository_id=repository_id,
                    file_path=h.file_path,
                    line_number=h.line_number,
                    end_line=h.end_line,
                    code_snippet=h.code_snippet,
                    vulnerability_type=h.vulnerability_type,
                    severity=v.severity,
                    confidence_score=v.confidence,
                    source=h.source,
                    sink=h.sink,
                    data_flow_path=h.data_flow_path,
                    ai_exploitable=v.verdict.is_exploitable,
                    ai_severity=v.verdict.severity,
                    ai_reasoning=v.verdict.reasoning,
                    ai_patch=v.verdict.secure_patch,
                    ai_confidence=v.verdict.confidence,
                    exploit_confirmed=v.exploit_match.exploitable if v.exploit_match else None,
                    exploit_details=v.exploit_match.details if v.exploit_match else None,
                    validation_source=v.validation_source,
                    status="CONFIRMED",
                )
                db.add(row)
                rows.append((row, v))
            db.flush()

            severities = [v.severity for v in validated]
            counts = count_by_severity(severities)
            secure_coding_score = calculate_secure_coding_score(severities, self.score_policy)
            risk_score = calculate_risk_score((row for row, _ in rows), self.score_policy)
            should_block = self.merge_policy.should_block(counts["CRITICAL"], secure_coding_score)
            duration_ms = _elapsed_ms(start)

            db.query(Scan).filter(Scan.id == scan_id).update(
                {
                    Scan.status: "COMPLETED",
                    Scan.total_findings: len(rows),
                    Scan.critical_count: counts["CRITICAL"],
                    Scan.high_count: counts["HIGH"],
                    Scan.medium_count: counts["MEDIUM"],
                    Scan.low_count: counts["LOW"],
                    Scan.secure_coding_score: secure_coding_score,
                    Scan.risk_score: risk_score,
                    Scan.should_block_merge: should_block,
                    Scan.completed_at: datetime.now(UTC),
                    Scan.duration_ms: duration_ms,
                },
                synchronize_session=False,
            )
            db.commit()

            vulnerabilities = [
                UnifiedVulnerability(
                    id=row.id,
                    repository_id=row.repository_id,
                    file_path=row.file_path,
                    line_number=row.line_number,
                    vulnerability_type=row.vulnerability_type,
                    severity=row.severity,
                    confidence_score=row.confidence_score,
                    exploit_reasoning=v.verdict.reasoning,
                    fix_patch=v.verdict.secure_patch,
                    source=row.source,
                    sink=row.sink,
                    validation_source=row.validation_source,
                )
                for row, v in rows
            ]

        logger.info(
            "Scan completed",
            extra={
                "scan_id": scan_id,
                "repository_id": repository_id,
                "duration_ms": duration_ms,
                "total_findings": len(vulnerabilities),
                "critical_count": counts["CRITICAL"],
                "high_count": counts["HIGH"],
                "medium_count": counts["MEDIUM"],
                "low_count": counts["LOW"],
                "secure_coding_score": secure_coding_score,
                "should_block_merge": should_block,
            },
        )
        return ScanResult(
            scan_id=scan_id,
            status="COMPLETED",
            total_findings=len(vulnerabilities),
            critical_count=counts["CRITICAL"],
            high_count=counts["HIGH"],
            medium_count=counts["MEDIUM"],
            low_count=counts["LOW"],
            secure_coding_score=secure_coding_score,
            risk_score=risk_score,
            should_block_merge=should_block,
            vulnerabilities=vulnerabilities,
        )

    def _fail_scan(self, scan_id: int, error_message: str, start: float) -> None:
        with self._session_factory() as db:
            db.query(Scan).filter(Scan.id == scan_id).update(
                {
                    Scan.status: "FAILED",
                    Scan.error_message: error_message[:4000],
                    Scan.completed_at: datetime.now(UTC),
                    Scan.duration_ms: _elapsed_ms(start),
                },
                synchronize_session=False,
            )
            db.commit()
