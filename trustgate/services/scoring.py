"""Confidence fusion and scan scoring: deterministic, no I/O.

Fusion combines the AI validator and the exploit validator into one confidence
and a validation source tag. Scores turn the surviving findings into a
secure-coding score (higher is better) and a risk score (higher is worse).
Constants are golden values; FusionPolicy, ScorePolicy and MergePolicy let
them be tuned through settings.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Protocol

from trustgate.schemas.scan import ValidationSource

if TYPE_CHECKING:
    from trustgate.core.config import Settings

# Secure coding score starts here and loses points per finding.
SECURE_CODING_BASELINE = 100.0
SECURE_CODING_DEDUCTIONS: dict[str, float] = {
    "CRITICAL": 25.0,
    "HIGH": 15.0,
    "MEDIUM": 8.0,
    "LOW": 3.0,
}

# Risk score: per-finding weight multiplied by fused confidence, capped at RISK_SCORE_CAP.
RISK_WEIGHTS: dict[str, float] = {
    "CRITICAL": 30.0,
    "HIGH": 20.0,
    "MEDIUM": 10.0,
    "LOW": 5.0,
}
RISK_SCORE_CAP = 100.0


class ScoredFinding(Protocol):
    severity: str
    confidence_score: float


@dataclass(frozen=True)
class FusionPolicy:
    """Constants for fusing two validator signals."""

    agreement_boost: float = 0.15
    ai_only_factor: float = 0.8
    exploit_only_factor: float = 0.7

    @classmethod
    def from_settings(cls, settings: "Settings") -> "FusionPolicy":
        return cls(
            agreement_boost=settings.FUSION_AGREEMENT_BOOST,
            ai_only_factor=settings.FUSION_AI_ONLY_FACTOR,
            exploit_only_factor=settings.FUSION_EXPLOIT_ONLY_FACTOR,
        )


@dataclass(frozen=True)
class FusionResult:
    confidence: float
    validation_source: ValidationSource


@dataclass(frozen=True)
class ScorePolicy:
    """Per-severity secure coding deductions and risk weights. INFO and unknown severities weigh 0."""

    deductions: Mapping[str, float] = field(default_factory=lambda: dict(SECURE_CODING_DEDUCTIONS))
    risk_weights: Mapping[str, float] = field(default_factory=lambda: dict(RISK_WEIGHTS))

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ScorePolicy":
        return cls(
            deductions={
                "CRITICAL": settings.SCORE_DEDUCTION_CRITICAL,
                "HIGH": settings.SCORE_DEDUCTION_HIGH,
                "MEDIUM": settings.SCORE_DEDUCTION_MEDIUM,
                "LOW": settings.SCORE_DEDUCTION_LOW,
            },
            risk_weights={
                "CRITICAL": settings.RISK_WEIGHT_CRITICAL,
                "HIGH": settings.RISK_WEIGHT_HIGH,
                "MEDIUM": settings.RISK_WEIGHT_MEDIUM,
                "LOW": settings.RISK_WEIGHT_LOW,
            },
        )


@dataclass(frozen=True)
class MergePolicy:
    """Thresholds for blocking a merge on scan results."""

    critical_block_threshold: int = 1
    secure_coding_threshold: float = 70.0

    @classmethod
    def from_settings(cls, settings: "Settings") -> "MergePolicy":
        return cls(
            critical_block_threshold=settings.CRITICAL_BLOCK_THRESHOLD,
            secure_coding_threshold=settings.SECURE_CODING_THRESHOLD,
        )

    def should_block(self, critical_count: int, secure_coding_score: float) -> bool:
        return (
            critical_count >= self.critical_block_threshold
            or secure_coding_score < self.secure_coding_threshold
        )


def fuse_confidence(
    ai_exploitable: bool,
    ai_confidence: float,
    exploit_confirmed: bool,
    exploit_confidence: float,
    policy: FusionPolicy = FusionPolicy(),
) -> FusionResult | None:
    """
    Fuse both validator verdicts. Returns None when neither validator confirms,
    meaning the hypothesis must be discarded.

    - both confirm: min(1, mean + agreement_boost), BOTH
    - AI only: min(1, ai * ai_only_factor), CSS
    - exploit validator only: min(1, exploit * exploit_only_factor), SHANNON
    """
    if ai_exploitable and exploit_confirmed:
        return FusionResult(
            confidence=min(1.0, (ai_confidence + exploit_confidence) / 2 + policy.agreement_boost),
            validation_source="BOTH",
        )
    if ai_exploitable:
        return FusionResult(
            confidence=min(1.0, ai_confidence * policy.ai_only_factor),
            validation_source="CSS",
        )
    if exploit_confirmed:
        return FusionResult(
            confidence=min(1.0, exploit_confidence * policy.exploit_only_factor),
            validation_source="SHANNON",
        )
    return None


def calculate_secure_coding_score(
    severities: Iterable[str], policy: ScorePolicy = ScorePolicy()
) -> float:
    """100 minus per-severity deductions, clamped to [0, 100]. INFO costs nothing."""
    score = SECURE_CODING_BASELINE
    for severity in severities:
        score -= policy.deductions.get(severity, 0.0)
    return max(0.0, min(SECURE_CODING_BASELINE, score))


def calculate_risk_score(
    findings: Iterable[ScoredFinding], policy: ScorePolicy = ScorePolicy()
) -> float:
    """Confidence-weighted severity sum, capped at 100 (never normalized)."""
    risk = 0.0
    for f in findings:
        risk += policy.risk_weights.get(f.severity, 0.0) * f.confidence_score
    return max(0.0, min(RISK_SCORE_CAP, risk))


def count_by_severity(severities: Iterable[str]) -> dict[str, int]:
    counts = {"CRITICAL": 0, "HIGH": 0, "MEDIUM": 0, "LOW": 0, "INFO": 0}
    for severity in severities:
        if severity in counts:
            counts[severity] += 1
    return counts
