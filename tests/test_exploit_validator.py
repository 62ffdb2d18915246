"""Exploit validator adapter: every failure mode yields None (no network)."""

import asyncio
import unittest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from trustgate.schemas.scan import FileInput
from trustgate.services.exploit_validator import ExploitValidatorAdapter

FILES = (FileInput(path="app.py", content="x = 1\n", language="python"),)

SCAN_BODY = {
    "scanId": "shannon-42",
    "status": "COMPLETED",
    "findings": [
        {
            "id": "f1",
            "filePath": "app.py",
            "lineNumber": 12,
            "vulnerability": "SQL_INJECTION",
            "exploitable": True,
            "confidence": 0.8,
            "details": "Payload succeeded",
            "unknownField": "ignored",
        }
    ],
}


def _mock_client(mock_client_class: MagicMock, **methods: AsyncMock) -> MagicMock:
    mock_instance = MagicMock()
    for name, method in methods.items():
        setattr(mock_instance, name, method)
    mock_client_class.return_value.__aenter__ = AsyncMock(return_value=mock_instance)
    mock_client_class.return_value.__aexit__ = AsyncMock(return_value=None)
    return mock_instance


def _response(status_code: int = 200, body: object = None, json_error: bool = False) -> MagicMock:
    resp = MagicMock()
    resp.status_code = status_code
    if json_error:
        resp.json.side_effect = ValueError("not json")
    else:
        resp.json.return_value = body
    return resp


def _adapter(enabled: bool = True) -> ExploitValidatorAdapter:
    return ExploitValidatorAdapter(base_url="http://shannon.test", enabled=enabled)


class TestExploitValidatorScan(unittest.TestCase):
    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_parses_camel_case_result(self, mock_client_class: MagicMock) -> None:
        instance = _mock_client(mock_client_class, request=AsyncMock(return_value=_response(200, SCAN_BODY)))
        result = asyncio.run(_adapter().scan("repo-1", FILES))

        self.assertIsNotNone(result)
        self.assertEqual(result.scan_id, "shannon-42")
        self.assertEqual(len(result.findings), 1)
        finding = result.findings[0]
        self.assertEqual(finding.file_path, "app.py")
        self.assertEqual(finding.line_number, 12)
        self.assertTrue(finding.exploitable)

        method, path = instance.request.call_args.args
        payload = instance.request.call_args.kwargs["json"]
        self.assertEqual((method, path), ("POST", "/internal/shannon/scan"))
        self.assertEqual(payload["repositoryId"], "repo-1")
        self.assertEqual(payload["scanCategories"], ["WEB_ROUTE", "AUTH_BYPASS", "INJECTION"])

    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_disabled_makes_no_request(self, mock_client_class: MagicMock) -> None:
        self.assertIsNone(asyncio.run(_adapter(enabled=False).scan("repo-1", FILES)))
        mock_client_class.assert_not_called()

    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_timeout_returns_none(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, request=AsyncMock(side_effect=httpx.ReadTimeout("slow")))
        self.assertIsNone(asyncio.run(_adapter().scan("repo-1", FILES)))

    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_connection_error_returns_none(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, request=AsyncMock(side_effect=httpx.ConnectError("refused")))
        self.assertIsNone(asyncio.run(_adapter().scan("repo-1", FILES)))

    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_non_2xx_returns_none(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, request=AsyncMock(return_value=_response(503, {})))
        self.assertIsNone(asyncio.run(_adapter().scan("repo-1", FILES)))

    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_invalid_json_returns_none(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, request=AsyncMock(return_value=_response(200, json_error=True)))
        self.assertIsNone(asyncio.run(_adapter().scan("repo-1", FILES)))

    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_schema_mismatch_returns_none(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, request=AsyncMock(return_value=_response(200, {"findings": "nope"})))
        self.assertIsNone(asyncio.run(_adapter().scan("repo-1", FILES)))

    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_get_report(self, mock_client_class: MagicMock) -> None:
        instance = _mock_client(mock_client_class, request=AsyncMock(return_value=_response(200, SCAN_BODY)))
        result = asyncio.run(_adapter().get_report("shannon-42"))
        self.assertEqual(result.scan_id, "shannon-42")
        self.assertEqual(instance.request.call_args.args, ("GET", "/internal/shannon/report/shannon-42"))


class TestExploitValidatorHealth(unittest.TestCase):
    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_healthy(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, get=AsyncMock(return_value=_response(200, {})))
        self.assertTrue(asyncio.run(_adapter().health_check()))

    @patch("trustgate.services.exploit_validator.httpx.AsyncClient")
    def test_unreachable(self, mock_client_class: MagicMock) -> None:
        _mock_client(mock_client_class, get=AsyncMock(side_effect=httpx.ConnectError("refused")))
        self.assertFalse(asyncio.run(_adapter().health_check()))

    def test_disabled_is_unhealthy(self) -> None:
        adapter = _adapter(enabled=False)
        self.assertFalse(adapter.is_enabled())
        self.assertFalse(asyncio.run(adapter.health_check()))


if __name__ == "__main__":
    unittest.main()
