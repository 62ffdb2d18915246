"""AI hypothesis validator: ask the local LLM (Ollama) whether a hypothesis is exploitable.

validate() never raises. Transport failures and unusable model output both
resolve to a conservative verdict (not exploitable, INFO, zero confidence)
whose reasoning says what went wrong.
"""

import json
import logging
import re
import time
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

import httpx

from trustgate.schemas.exploit import ExploitFinding
from trustgate.schemas.hypothesis import AIVerdict, VulnerabilityHypothesis
from trustgate.schemas.scan import SEVERITY_VALUES, SeverityLevel

if TYPE_CHECKING:
    from trustgate.core.config import Settings

logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are a security validation engine. You validate exploit hypotheses for code vulnerabilities.

Rules:
1. Respond with ONLY a single valid JSON object. No markdown, no text outside the JSON.
2. Decide whether the vulnerability is actually exploitable.
3. Provide a secure patch that fixes the vulnerable code.
4. Give a confidence between 0.0 and 1.0.

The JSON must have exactly this shape:
{
  "is_exploitable": true|false,
  "severity": "CRITICAL"|"HIGH"|"MEDIUM"|"LOW"|"INFO",
  "reasoning": "Brief technical explanation of why this is or is not exploitable.",
  "secure_patch": "The fixed version of the vulnerable code.",
  "confidence": 0.0-1.0
}"""

_FENCE_PATTERN = re.compile(r"^```[a-zA-Z0-9_-]*\s*\n?(.*?)\n?```$", re.DOTALL)

RAW_PREVIEW_CHARS = 200


class HypothesisValidatorError(Exception):
    """Raised internally when the model cannot be reached or returns an unusable envelope."""

    def __init__(self, message: str, cause: Exception | None = None) -> None:
        self.message = message
        self.cause = cause
        super().__init__(message)


# Parse outcomes for the model's text. Exactly one of these is produced per response.


@dataclass(frozen=True)
class CleanJson:
    data: dict[str, Any]


@dataclass(frozen=True)
class FencedJson:
    data: dict[str, Any]


@dataclass(frozen=True)
class EmbeddedJson:
    data: dict[str, Any]


@dataclass(frozen=True)
class Unparseable:
    raw: str


ParsedResponse = CleanJson | FencedJson | EmbeddedJson | Unparseable


def _load_object(text: str) -> dict[str, Any] | None:
    try:
        parsed = json.loads(text)
    except (json.JSONDecodeError, TypeError):
        return None
    return parsed if isinstance(parsed, dict) else None


def parse_model_output(raw: str) -> ParsedResponse:
    """
    Classify model text as clean JSON, fenced JSON, JSON embedded in prose
    (first '{' to last '}'), or unparseable.
    """
    text = raw.strip()

    data = _load_object(text)
    if data is not None:
        return CleanJson(data)

    fence = _FENCE_PATTERN.match(text)
    if fence:
        data = _load_object(fence.group(1).strip())
        if data is not None:
            return FencedJson(data)

    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start:
        data = _load_object(text[start : end + 1])
        if data is not None:
            return EmbeddedJson(data)

    return Unparseable(raw)


def normalize_severity(value: Any) -> SeverityLevel:
    """Map model severity onto the five-value enum; anything unrecognized becomes INFO."""
    if not isinstance(value, str):
        return "INFO"
    normalized = value.strip().upper()
    if normalized in SEVERITY_VALUES:
        return normalized  # type: ignore[return-value]
    return "INFO"


def _coerce_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        return value.strip().lower() in ("true", "yes", "1")
    if isinstance(value, (int, float)):
        return value != 0
    return False


def _coerce_confidence(value: Any) -> float:
    if isinstance(value, bool):
        return 0.0
    try:
        number = float(value)
    except (TypeError, ValueError):
        return 0.0
    if number != number:  # NaN
        return 0.0
    return max(0.0, min(1.0, number))


def safe_default_verdict(reason: str) -> AIVerdict:
    """Conservative verdict used whenever the model gives no usable answer."""
    return AIVerdict(
        is_exploitable=False,
        severity="INFO",
        reasoning=f"{reason} Manual review recommended.",
        secure_patch="",
        confidence=0.0,
    )


def verdict_from_parsed(parsed: ParsedResponse) -> AIVerdict:
    """Turn a parse outcome into a verdict; Unparseable maps to the safe default."""
    if isinstance(parsed, Unparseable):
        return safe_default_verdict("Failed to parse AI validator response as JSON.")
    data = parsed.data
    reasoning = data.get("reasoning")
    patch = data.get("secure_patch")
    return AIVerdict(
        is_exploitable=_coerce_bool(data.get("is_exploitable")),
        severity=normalize_severity(data.get("severity")),
        reasoning=str(reasoning) if reasoning else "No reasoning provided",
        secure_patch=str(patch) if patch else "",
        confidence=_coerce_confidence(data.get("confidence")),
    )


def build_prompt(
    hypothesis: VulnerabilityHypothesis,
    exploit_finding: ExploitFinding | None = None,
) -> str:
    """Deterministic prompt for one hypothesis, with the exploit validator's verdict when available."""
    prompt = f"""VULNERABILITY HYPOTHESIS VALIDATION REQUEST

## Code Under Analysis
File: {hypothesis.file_path} (line {hypothesis.line_number})
```
{hypothesis.code_snippet}
```

## Detected Vulnerability
- Type: {hypothesis.vulnerability_type}
- Pattern: {hypothesis.detected_pattern}
- Source (untrusted input entry): {hypothesis.source}
- Sink (dangerous function): {hypothesis.sink}

## Data Flow Path
{hypothesis.data_flow_path}"""

    if exploit_finding is not None:
        prompt += f"""

## Exploit Validator Result
- Exploitable: {str(exploit_finding.exploitable).lower()}
- Confidence: {exploit_finding.confidence}
- Details: {exploit_finding.details}"""

    prompt += """

Analyze the above and respond with ONLY the JSON validation result."""
    return prompt


class HypothesisValidator:
    """Validates hypotheses through Ollama's /api/generate endpoint."""

    def __init__(self, settings: "Settings") -> None:
        self.settings = settings

    async def validate(
        self,
        hypothesis: VulnerabilityHypothesis,
        exploit_finding: ExploitFinding | None = None,
    ) -> AIVerdict:
        prompt = build_prompt(hypothesis, exploit_finding)
        try:
            text = await self._generate(prompt)
        except HypothesisValidatorError as e:
            logger.warning(
                "AI validation failed",
                extra={
                    "vulnerability_type": hypothesis.vulnerability_type,
                    "file_path": hypothesis.file_path,
                    "reason": e.message,
                },
            )
            return safe_default_verdict(f"AI validation failed: {e.message}")

        parsed = parse_model_output(text)
        if isinstance(parsed, Unparseable):
            logger.warning(
                "AI validator response could not be parsed",
                extra={"raw_preview": parsed.raw[:RAW_PREVIEW_CHARS]},
            )
        verdict = verdict_from_parsed(parsed)
        logger.info(
            "AI validation complete",
            extra={
                "vulnerability_type": hypothesis.vulnerability_type,
                "parse_outcome": type(parsed).__name__,
                "is_exploitable": verdict.is_exploitable,
                "severity": verdict.severity,
                "confidence": verdict.confidence,
            },
        )
        return verdict

    async def _generate(self, prompt: str) -> str:
        """Call Ollama and return the generated text. Raises HypothesisValidatorError."""
        settings = self.settings
        url = f"{settings.OLLAMA_BASE_URL.rstrip('/')}/api/generate"
        payload = {
            "model": settings.OLLAMA_MODEL,
            "system": SYSTEM_PROMPT,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {
                "temperature": settings.OLLAMA_TEMPERATURE,
                "top_p": settings.OLLAMA_TOP_P,
                "repeat_penalty": settings.OLLAMA_REPEAT_PENALTY,
                "seed": settings.OLLAMA_SEED,
            },
        }
        timeout = httpx.Timeout(settings.OLLAMA_REQUEST_TIMEOUT_SEC)
        start = time.perf_counter()

        try:
            async with httpx.AsyncClient(timeout=timeout) as client:
                response = await client.post(url, json=payload)
        except httpx.ConnectError as e:
            raise HypothesisValidatorError("Ollama is unreachable.", cause=e) from e
        except httpx.TimeoutException as e:
            raise HypothesisValidatorError("Ollama request timed out.", cause=e) from e
        except httpx.HTTPError as e:
            raise HypothesisValidatorError("Ollama request failed.", cause=e) from e
        elapsed = time.perf_counter() - start

        if response.status_code != 200:
            raise HypothesisValidatorError(f"Ollama returned status {response.status_code}.")

        try:
            body = response.json()
        except ValueError as e:
            raise HypothesisValidatorError("Ollama response body is not valid JSON.", cause=e) from e

        logger.info(
            "LLM validation request completed",
            extra={"llm_latency_seconds": elapsed, "model": settings.OLLAMA_MODEL},
        )

        raw_response = body.get("response") if isinstance(body, dict) else None
        if raw_response is None:
            raise HypothesisValidatorError("Ollama response missing 'response' field.")
        if isinstance(raw_response, dict):
            return json.dumps(raw_response)
        return str(raw_response)
