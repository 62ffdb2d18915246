"""Static hypothesis generation.

The orchestrator only depends on HypothesisGenerator. PatternHypothesisGenerator
is a small line-based default so the service works without an external
analyzer; its rules are intentionally shallow and can be replaced wholesale.
"""

import re
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Protocol

from trustgate.schemas.hypothesis import VulnerabilityHypothesis
from trustgate.schemas.scan import FileInput

# Lines of context on each side of the matched line in code_snippet.
SNIPPET_CONTEXT_LINES = 2

MAX_HYPOTHESES_PER_FILE = 50


class HypothesisGenerator(Protocol):
    async def generate(self, files: Sequence[FileInput]) -> list[VulnerabilityHypothesis]: ...


@dataclass(frozen=True)
class PatternRule:
    vulnerability_type: str
    detected_pattern: str
    sink: str
    pattern: re.Pattern[str]


# Untrusted input sources recognized in the flagged line.
_SOURCE_PATTERN = re.compile(
    r"(request\.(?:args|form|json|values|params|query|body|GET|POST|cookies|headers)[\w.\[\]'\"]*"
    r"|req\.(?:body|query|params|headers|cookies)[\w.\[\]'\"]*"
    r"|input\(\)|sys\.argv|process\.argv|os\.environ)"
)

DEFAULT_RULES: tuple[PatternRule, ...] = (
    PatternRule(
        vulnerability_type="SQL_INJECTION",
        detected_pattern="string-built SQL passed to execute",
        sink="execute",
        pattern=re.compile(
            r"\.(?:execute|executemany|raw|query)\s*\(\s*(?:f[\"']|[\"'][^\"']*[\"']\s*(?:\+|%)|.*\.format\()",
            re.IGNORECASE,
        ),
    ),
    PatternRule(
        vulnerability_type="COMMAND_INJECTION",
        detected_pattern="shell command built from dynamic input",
        sink="shell execution",
        pattern=re.compile(
            r"(?:os\.system|os\.popen|child_process\.exec|\bexecSync)\s*\("
            r"|subprocess\.\w+\(.*shell\s*=\s*True"
        ),
    ),
    PatternRule(
        vulnerability_type="CODE_INJECTION",
        detected_pattern="dynamic code evaluation",
        sink="eval/exec",
        pattern=re.compile(r"(?<![\w.])(?:eval|exec|new\s+Function)\s*\("),
    ),
    PatternRule(
        vulnerability_type="PATH_TRAVERSAL",
        detected_pattern="file opened with request-controlled path",
        sink="file open",
        pattern=re.compile(
            r"(?:open|send_file|readFile(?:Sync)?|createReadStream)\s*\(.*(?:request\.|req\.)"
        ),
    ),
    PatternRule(
        vulnerability_type="XSS",
        detected_pattern="unescaped HTML sink",
        sink="HTML output",
        pattern=re.compile(
            r"(?:innerHTML\s*=|dangerouslySetInnerHTML|document\.write\s*\(|render_template_string\s*\(|Markup\s*\()"
        ),
    ),
    PatternRule(
        vulnerability_type="INSECURE_DESERIALIZATION",
        detected_pattern="deserialization of untrusted data",
        sink="deserializer",
        pattern=re.compile(r"pickle\.loads?\s*\(|marshal\.loads\s*\(|yaml\.load\s*\((?!.*SafeLoader)"),
    ),
)


def _snippet(lines: list[str], index: int) -> str:
    start = max(0, index - SNIPPET_CONTEXT_LINES)
    end = min(len(lines), index + SNIPPET_CONTEXT_LINES + 1)
    return "\n".join(lines[start:end])


class PatternHypothesisGenerator:
    """Line-based regex matcher producing one hypothesis per (rule, line)."""

    def __init__(self, rules: Sequence[PatternRule] = DEFAULT_RULES) -> None:
        self.rules = tuple(rules)

    async def generate(self, files: Sequence[FileInput]) -> list[VulnerabilityHypothesis]:
        hypotheses: list[VulnerabilityHypothesis] = []
        for f in files:
            hypotheses.extend(self.detect_file(f))
        return hypotheses

    def detect_file(self, f: FileInput) -> list[VulnerabilityHypothesis]:
        lines = f.content.splitlines()
        found: list[VulnerabilityHypothesis] = []
        for index, line in enumerate(lines):
            stripped = line.strip()
            if not stripped or stripped.startswith(("#", "//")):
                continue
            for rule in self.rules:
                if not rule.pattern.search(line):
                    continue
                source_match = _SOURCE_PATTERN.search(line)
                source = source_match.group(0) if source_match else "unknown"
                line_number = index + 1
                found.append(
                    VulnerabilityHypothesis(
                        file_path=f.path,
                        line_number=line_number,
                        end_line=line_number,
                        code_snippet=_snippet(lines, index),
                        vulnerability_type=rule.vulnerability_type,
                        detected_pattern=rule.detected_pattern,
                        source=source,
                        sink=rule.sink,
                        data_flow_path=f"{source} -> {rule.sink} at {f.path}:{line_number}",
                    )
                )
                if len(found) >= MAX_HYPOTHESES_PER_FILE:
                    return found
        return found
