"""Pydantic schemas for the external exploit validator (Shannon) wire format."""

from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

ExploitCategory = Literal["WEB_ROUTE", "AUTH_BYPASS", "INJECTION"]

# Categories requested for every scan.
DEFAULT_EXPLOIT_CATEGORIES: tuple[ExploitCategory, ...] = ("WEB_ROUTE", "AUTH_BYPASS", "INJECTION")


class _CamelModel(BaseModel):
    """The exploit validator speaks camelCase JSON."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")


class ExploitFileInput(_CamelModel):
    path: str
    content: str
    language: str = ""


class ExploitScanRequest(_CamelModel):
    repository_id: str
    files: list[ExploitFileInput]
    scan_categories: list[ExploitCategory]


class ExploitFinding(_CamelModel):
    """One finding reported by the exploit validator."""

    id: str
    file_path: str
    line_number: int
    vulnerability: str = ""
    exploitable: bool = False
    confidence: float = 0.0
    details: str = ""

    @field_validator("confidence")
    @classmethod
    def clamp_confidence(cls, v: float) -> float:
        return max(0.0, min(1.0, v))


class ExploitScanResult(_CamelModel):
    """Scan report returned by the exploit validator."""

    scan_id: str
    status: Literal["PENDING", "COMPLETED", "FAILED"] = "COMPLETED"
    findings: list[ExploitFinding] = Field(default_factory=list)
