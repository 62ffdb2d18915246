"""Adapter for the external exploit validator (Shannon).

Every interaction with the exploit validator goes through this adapter. Any
failure (disabled, unreachable, timeout, non-2xx, malformed body) yields None
so scans complete without it. No retries are attempted.
"""

import logging
import time
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

import httpx
from pydantic import ValidationError

from trustgate.schemas.exploit import (
    DEFAULT_EXPLOIT_CATEGORIES,
    ExploitCategory,
    ExploitFileInput,
    ExploitScanRequest,
    ExploitScanResult,
)
from trustgate.schemas.scan import FileInput

if TYPE_CHECKING:
    from trustgate.core.config import Settings

logger = logging.getLogger(__name__)

SCAN_PATH = "/internal/shannon/scan"
REPORT_PATH = "/internal/shannon/report/{scan_id}"
HEALTH_PATH = "/health"

_DEFAULT_HEADERS = {
    "Content-Type": "application/json",
    "X-Service": "trustgate-scan",
}


class ExploitValidatorAdapter:
    """Null-on-failure client for the exploit validation service."""

    def __init__(
        self,
        base_url: str,
        enabled: bool = True,
        timeout_sec: float = 30.0,
        health_timeout_sec: float = 5.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._enabled = enabled
        self.timeout_sec = timeout_sec
        self.health_timeout_sec = health_timeout_sec

    @classmethod
    def from_settings(cls, settings: "Settings") -> "ExploitValidatorAdapter":
        return cls(
            base_url=settings.SHANNON_BASE_URL,
            enabled=settings.SHANNON_ENABLED,
            timeout_sec=settings.SHANNON_TIMEOUT_SEC,
            health_timeout_sec=settings.SHANNON_HEALTH_TIMEOUT_SEC,
        )

    def is_enabled(self) -> bool:
        """Static configuration flag; says nothing about live health."""
        return self._enabled

    async def scan(
        self,
        repository_id: str,
        files: Sequence[FileInput],
        categories: Sequence[ExploitCategory] = DEFAULT_EXPLOIT_CATEGORIES,
    ) -> ExploitScanResult | None:
        """Submit files for exploit validation. Returns None on any failure."""
        if not self._enabled:
            logger.info("Exploit validator disabled; skipping scan")
            return None

        request = ExploitScanRequest(
            repository_id=repository_id,
            files=[ExploitFileInput(path=f.path, content=f.content, language=f.language) for f in files],
            scan_categories=list(categories),
        )
        body = await self._request(
            "POST",
            SCAN_PATH,
            timeout=self.timeout_sec,
            json=request.model_dump(by_alias=True),
            context={"repository_id": repository_id, "file_count": len(files)},
        )
        if body is None:
            return None
        result = self._parse_result(body)
        if result is not None:
            logger.info(
                "Exploit validator scan completed",
                extra={
                    "repository_id": repository_id,
                    "exploit_scan_id": result.scan_id,
                    "finding_count": len(result.findings),
                },
            )
        return result

    async def get_report(self, scan_id: str) -> ExploitScanResult | None:
        """Fetch a previously started exploit validator report. None on any failure."""
        if not self._enabled:
            return None
        body = await self._request(
            "GET",
            REPORT_PATH.format(scan_id=scan_id),
            timeout=self.timeout_sec,
            context={"exploit_scan_id": scan_id},
        )
        if body is None:
            return None
        return self._parse_result(body)

    async def health_check(self) -> bool:
        if not self._enabled:
            return False
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(self.health_timeout_sec),
                headers=_DEFAULT_HEADERS,
            ) as client:
                response = await client.get(HEALTH_PATH)
        except httpx.HTTPError:
            return False
        return response.status_code == 200

    async def _request(
        self,
        method: str,
        path: str,
        timeout: float,
        context: dict[str, Any],
        json: dict[str, Any] | None = None,
    ) -> Any | None:
        start = time.perf_counter()
        try:
            async with httpx.AsyncClient(
                base_url=self.base_url,
                timeout=httpx.Timeout(timeout),
                headers=_DEFAULT_HEADERS,
            ) as client:
                response = await client.request(method, path, json=json)
        except httpx.TimeoutException as e:
            logger.warning(
                "Exploit validator request timed out",
                extra={**context, "path": path, "latency_seconds": time.perf_counter() - start, "error": str(e)},
            )
            return None
        except httpx.HTTPError as e:
            logger.warning(
                "Exploit validator request failed",
                extra={**context, "path": path, "latency_seconds": time.perf_counter() - start, "error": str(e)},
            )
            return None

        if not 200 <= response.status_code < 300:
            logger.warning(
                "Exploit validator returned non-success status",
                extra={**context, "path": path, "status_code": response.status_code},
            )
            return None
        try:
            return response.json()
        except ValueError:
            logger.warning(
                "Exploit validator response body is not valid JSON",
                extra={**context, "path": path},
            )
            return None

    @staticmethod
    def _parse_result(body: Any) -> ExploitScanResult | None:
        if not isinstance(body, dict):
            logger.warning("Exploit validator response is not a JSON object")
            return None
        try:
            return ExploitScanResult.model_validate(body)
        except ValidationError as e:
            logger.warning(
                "Exploit validator response does not match expected schema",
                extra={"error_count": e.error_count()},
            )
            return None
