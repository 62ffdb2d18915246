"""Pydantic schemas for static-analysis hypotheses and AI validator verdicts."""

from pydantic import BaseModel, ConfigDict, Field

from trustgate.schemas.scan import SeverityLevel


class VulnerabilityHypothesis(BaseModel):
    """Unconfirmed candidate vulnerability emitted by static analysis. Never persisted as-is."""

    model_config = ConfigDict(frozen=True)

    file_path: str = Field(..., min_length=1)
    line_number: int = Field(..., ge=1)
    end_line: int | None = Field(default=None, ge=1)
    code_snippet: str = ""
    vulnerability_type: str = Field(..., min_length=1, description="Tag such as SQL_INJECTION.")
    detected_pattern: str = ""
    source: str = Field(default="", description="Expression where untrusted input enters.")
    sink: str = Field(default="", description="Dangerous call the input reaches.")
    data_flow_path: str = Field(default="", description="Narrative of the source to sink flow.")


class AIVerdict(BaseModel):
    """Structured exploitability verdict from the AI hypothesis validator."""

    is_exploitable: bool = False
    severity: SeverityLevel = "INFO"
    reasoning: str = ""
    secure_patch: str = ""
    confidence: float = Field(default=0.0, ge=0, le=1)
