"""Shared test helpers: in-memory database, request builders and fake collaborators."""

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from trustgate.models import Base
from trustgate.schemas.exploit import ExploitFinding, ExploitScanResult
from trustgate.schemas.hypothesis import AIVerdict, VulnerabilityHypothesis
from trustgate.schemas.scan import FileInput, ScanRequest


def make_session_factory() -> sessionmaker:
    """Fresh in-memory SQLite database with all tables, shared across sessions."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)


def scan_request(repository_id: str = "repo-1", **kwargs: object) -> ScanRequest:
    defaults: dict[str, object] = {
        "files": (FileInput(path="app.py", content="print('hi')\n", language="python"),),
    }
    defaults.update(kwargs)
    return ScanRequest(repository_id=repository_id, **defaults)


def hypothesis(
    file_path: str = "app.py",
    line_number: int = 10,
    vulnerability_type: str = "SQL_INJECTION",
) -> VulnerabilityHypothesis:
    return VulnerabilityHypothesis(
        file_path=file_path,
        line_number=line_number,
        end_line=line_number,
        code_snippet='cursor.execute(f"SELECT * FROM users WHERE id={request.args[\'id\']}")',
        vulnerability_type=vulnerability_type,
        detected_pattern="string-built SQL passed to execute",
        source="request.args['id']",
        sink="execute",
        data_flow_path=f"request.args['id'] -> execute at {file_path}:{line_number}",
    )


def verdict(
    is_exploitable: bool = True,
    severity: str = "CRITICAL",
    confidence: float = 0.9,
) -> AIVerdict:
    return AIVerdict(
        is_exploitable=is_exploitable,
        severity=severity,
        reasoning="User input reaches the SQL query unescaped.",
        secure_patch='cursor.execute("SELECT * FROM users WHERE id=%s", (user_id,))',
        confidence=confidence,
    )


def exploit_result(*findings: ExploitFinding, scan_id: str = "shannon-1") -> ExploitScanResult:
    return ExploitScanResult(scan_id=scan_id, status="COMPLETED", findings=list(findings))


def exploit_finding(
    file_path: str = "app.py",
    line_number: int = 10,
    exploitable: bool = True,
    confidence: float = 0.8,
) -> ExploitFinding:
    return ExploitFinding(
        id=f"f-{file_path}-{line_number}",
        file_path=file_path,
        line_number=line_number,
        vulnerability="SQL_INJECTION",
        exploitable=exploitable,
        confidence=confidence,
        details="Payload ' OR 1=1 -- returned all rows",
    )


class StaticGenerator:
    """Hypothesis generator returning a fixed list."""

    def __init__(self, hypotheses: list[VulnerabilityHypothesis] | None = None) -> None:
        self.hypotheses = hypotheses or []

    async def generate(self, files) -> list[VulnerabilityHypothesis]:
        return list(self.hypotheses)
