"""Tests for the /api/scan endpoint."""

import json
from unittest.mock import MagicMock, patch

import httpx
import pytest
from httpx import ASGITransport, AsyncClient

from aegis_gateway import main
from aegis_gateway.errors import UpstreamAuthFailure, UpstreamRateLimited, UpstreamTransportError
from aegis_gateway.gateway import ScanGateway
from aegis_gateway.llm import LLMProvider, MockLLMProvider, OpenAIProvider, ProviderRequest
from aegis_gateway.models import ScanRequest, ScanSettings, TargetType
from aegis_gateway.prompts import build_user_message

RATE_LIMIT_MESSAGE = "Rate limit reached. You can perform 10 scans per 15 minutes."
MALFORMED_MESSAGE = "AI engine returned malformed results."

SNIPPET = "\n".join(
    [
        "import sqlite3",
        "",
        "def get_user(conn, user_id):",
        "    cursor = conn.cursor()",
        '    query = "SELECT * FROM users WHERE id = " + user_id',
        "    cursor.execute(query)",
        "    return cursor.fetchone()",
        "",
        "def close(conn):",
        "    conn.close()",
    ]
)


class StubProvider(LLMProvider):
    """Provider double that returns canned text without any network I/O."""

    name = "stub"
    supplies_grounding = True

    def __init__(self, text='{"findings": []}', urls=None, error=None):
        self.text = text
        self.urls = urls or []
        self.error = error
        self.requests = []

    def build_request(self, scan):
        return ProviderRequest(model="stub", payload=build_user_message(scan))

    async def invoke(self, request):
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return self.text

    def extract_text(self, response):
        return response

    def extract_grounding_urls(self, response):
        return self.urls


class UngroundedStubProvider(StubProvider):
    """Stub for a provider that does not report search sources."""

    supplies_grounding = False


@pytest.fixture(autouse=True)
def reset_rate_limiter():
    main.rate_limiter.reset()
    yield
    main.rate_limiter.reset()


@pytest.fixture
def test_client():
    """Create async test client for FastAPI."""
    return AsyncClient(transport=ASGITransport(app=main.app), base_url="http://test")


def _body(**overrides):
    body = {"target": SNIPPET, "targetType": "CODE"}
    body.update(overrides)
    return body


def _assert_cors(response):
    assert response.headers["access-control-allow-origin"] == "*"
    assert response.headers["access-control-allow-methods"] == "POST, OPTIONS"
    assert response.headers["access-control-allow-headers"] == "Content-Type"


def _openai_returning(envelope):
    return OpenAIProvider(
        api_key="sk-test",
        transport=httpx.MockTransport(lambda request: httpx.Response(200, json=envelope)),
    )


class TestHealthEndpoint:
    """Test /health endpoint."""

    @pytest.mark.asyncio
    async def test_health_returns_ok(self, test_client):
        """Test that /health endpoint returns status ok."""
        async with test_client as client:
            response = await client.get("/health")

            assert response.status_code == 200
            assert response.json() == {"status": "ok"}


class TestMethods:
    """Test method handling and CORS headers."""

    @pytest.mark.asyncio
    async def test_preflight_is_empty_200(self, test_client):
        """Test that OPTIONS answers 200 with no body and the CORS headers."""
        async with test_client as client:
            response = await client.options("/api/scan")

            assert response.status_code == 200
            assert response.content == b""
            _assert_cors(response)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["GET", "PUT", "DELETE"])
    async def test_other_methods_rejected(self, test_client, method):
        """Test that methods other than POST and OPTIONS get 405."""
        async with test_client as client:
            response = await client.request(method, "/api/scan")

            assert response.status_code == 405
            assert response.json() == {"error": "Method not allowed"}
            _assert_cors(response)

    @pytest.mark.asyncio
    @pytest.mark.parametrize("method", ["TRACE", "PROPFIND"])
    async def test_unrouted_methods_use_error_shape(self, test_client, method):
        """Test that methods the router never sees still get the {"error"} body."""
        async with test_client as client:
            response = await client.request(method, "/api/scan")

            assert response.status_code == 405
            assert response.json() == {"error": "Method not allowed"}
            _assert_cors(response)

    @pytest.mark.asyncio
    async def test_unknown_path_uses_error_shape(self, test_client):
        """Test that a 404 is rendered as {"error": ...} with CORS headers."""
        async with test_client as client:
            response = await client.post("/api/nope", json=_body())

            assert response.status_code == 404
            assert response.json() == {"error": "Not Found"}
            _assert_cors(response)

    @pytest.mark.asyncio
    async def test_configured_origin(self, test_client):
        """Test that AEGIS_ALLOWED_ORIGIN replaces the wildcard origin."""
        with patch.dict("os.environ", {"AEGIS_ALLOWED_ORIGIN": "https://aegis.example"}):
            async with test_client as client:
                response = await client.options("/api/scan")

        assert response.headers["access-control-allow-origin"] == "https://aegis.example"


class TestScanEndpoint:
    """Test /api/scan end to end with a stubbed provider."""

    @pytest.mark.asyncio
    async def test_success_enriches_findings(self, test_client):
        """Test that findings get fallback ids and grounding references."""
        text = json.dumps(
            {
                "findings": [
                    {"title": "Outdated TLS", "severity": "MEDIUM", "references": []},
                    {"title": "Exposed admin", "severity": "HIGH", "references": ["https://b"]},
                    {"id": "CUSTOM-1", "title": "Server banner", "severity": "LOW"},
                ]
            }
        )
        stub = StubProvider(text=text, urls=["https://a", "https://b"])

        with patch("aegis_gateway.gateway.get_provider", return_value=stub):
            async with test_client as client:
                response = await client.post(
                    "/api/scan", json=_body(target="example.com", targetType="WEB_APP")
                )

        assert response.status_code == 200
        _assert_cors(response)
        findings = response.json()["findings"]
        assert [f["id"] for f in findings] == ["AEGIS-001", "AEGIS-002", "CUSTOM-1"]
        assert findings[0]["references"] == ["https://a"]
        assert findings[1]["references"] == ["https://b"]
        assert findings[2]["references"] == ["https://a"]
        assert findings[2]["cweId"] == "N/A"
        assert "Use web search" in stub.requests[0].payload

    @pytest.mark.asyncio
    async def test_no_code_fix_when_remediation_off(self, test_client):
        """Test that the mock provider omits codeFix when autoRemediation is off."""
        with patch("aegis_gateway.gateway.get_provider", return_value=MockLLMProvider()):
            async with test_client as client:
                response = await client.post(
                    "/api/scan",
                    json=_body(settings={"autoRemediation": False, "deepThinking": False}),
                )

        assert response.status_code == 200
        findings = response.json()["findings"]
        assert len(findings) == 1
        assert findings[0]["severity"] == "HIGH"
        assert findings[0]["location"] == "line 5"
        assert "codeFix" not in findings[0]

    @pytest.mark.asyncio
    async def test_code_fix_when_remediation_on(self, test_client):
        """Test that codeFix is returned when settings are left at defaults."""
        with patch("aegis_gateway.gateway.get_provider", return_value=MockLLMProvider()):
            async with test_client as client:
                response = await client.post("/api/scan", json=_body())

        assert response.status_code == 200
        assert "codeFix" in response.json()["findings"][0]

    @pytest.mark.asyncio
    async def test_eleventh_request_rate_limited(self, test_client):
        """Test that the 11th request in a window is rejected before the provider."""
        factory = MagicMock(return_value=StubProvider())

        with patch("aegis_gateway.gateway.get_provider", factory):
            async with test_client as client:
                statuses = []
                for _ in range(11):
                    response = await client.post(
                        "/api/scan", json=_body(), headers={"X-Forwarded-For": "203.0.113.9"}
                    )
                    statuses.append(response.status_code)

        assert statuses[:10] == [200] * 10
        assert statuses[10] == 429
        assert response.json() == {"error": RATE_LIMIT_MESSAGE}
        _assert_cors(response)
        assert factory.call_count == 10

    @pytest.mark.asyncio
    async def test_rate_limit_is_per_identity(self, test_client):
        """Test that a blocked caller does not block another address."""
        with patch("aegis_gateway.gateway.get_provider", return_value=StubProvider()):
            async with test_client as client:
                for _ in range(10):
                    await client.post(
                        "/api/scan", json=_body(), headers={"X-Forwarded-For": "198.51.100.1"}
                    )
                blocked = await client.post(
                    "/api/scan", json=_body(), headers={"X-Forwarded-For": "198.51.100.1"}
                )
                other = await client.post(
                    "/api/scan", json=_body(), headers={"X-Forwarded-For": "198.51.100.2, 10.0.0.1"}
                )

        assert blocked.status_code == 429
        assert other.status_code == 200

    @pytest.mark.asyncio
    async def test_rate_limit_checked_before_validation(self, test_client):
        """Test that invalid requests still consume quota."""
        async with test_client as client:
            for _ in range(10):
                response = await client.post("/api/scan", json={})
                assert response.status_code == 400
            response = await client.post("/api/scan", json={})

        assert response.status_code == 429

    @pytest.mark.asyncio
    async def test_validation_error(self, test_client):
        """Test that a bad targetType is a 400 with the fixed message."""
        async with test_client as client:
            response = await client.post("/api/scan", json=_body(targetType="API"))

        assert response.status_code == 400
        assert response.json() == {
            "error": "Invalid targetType. Must be one of: CODE, WEB_APP, NETWORK"
        }

    @pytest.mark.asyncio
    async def test_invalid_json_body(self, test_client):
        """Test that an unparseable body is reported as a missing target."""
        async with test_client as client:
            response = await client.post(
                "/api/scan", content=b"{not json", headers={"Content-Type": "application/json"}
            )

        assert response.status_code == 400
        assert response.json() == {"error": "Missing or invalid 'target'."}

    @pytest.mark.asyncio
    async def test_missing_api_key(self, test_client):
        """Test that a missing provider key is a 500 configuration error."""
        with patch.dict("os.environ", {}, clear=True):
            async with test_client as client:
                response = await client.post("/api/scan", json=_body())

        assert response.status_code == 500
        assert response.json() == {"error": "Server configuration error."}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "error,status,message",
        [
            (
                UpstreamAuthFailure("API key not valid: sk-secret", status=401),
                502,
                "AI engine returned an error. Please try again.",
            ),
            (
                UpstreamRateLimited("quota exhausted for project 1234", status=429),
                429,
                "AI engine is busy. Please try again in a few minutes.",
            ),
            (
                UpstreamTransportError("connect timeout to 10.1.2.3"),
                502,
                "AI engine returned an error. Please try again.",
            ),
        ],
    )
    async def test_upstream_failures_are_opaque(self, test_client, error, status, message):
        """Test that upstream details never reach the client."""
        with patch("aegis_gateway.gateway.get_provider", return_value=StubProvider(error=error)):
            async with test_client as client:
                response = await client.post("/api/scan", json=_body())

        assert response.status_code == status
        assert response.json() == {"error": message}

    @pytest.mark.asyncio
    async def test_malformed_upstream_json(self, test_client):
        """Test that truncated model JSON is a 502."""
        stub = StubProvider(text='```json\n{"findings": [{"title": "cut off"\n```')

        with patch("aegis_gateway.gateway.get_provider", return_value=stub):
            async with test_client as client:
                response = await client.post("/api/scan", json=_body())

        assert response.status_code == 502
        assert response.json() == {"error": MALFORMED_MESSAGE}

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "envelope",
        [
            [{"message": {"content": '{"findings": []}'}}],
            {"choices": ["oops"]},
            {"choices": [{"message": "oops"}]},
            {"choices": [{"message": {"content": 42}}]},
        ],
    )
    async def test_unexpected_chat_envelope(self, test_client, envelope):
        """Test that an odd chat completions envelope is a 502, not a 500."""
        provider = _openai_returning(envelope)

        with patch("aegis_gateway.gateway.get_provider", return_value=provider):
            async with test_client as client:
                response = await client.post("/api/scan", json=_body())

        assert response.status_code == 502
        assert response.json() == {"error": MALFORMED_MESSAGE}
        _assert_cors(response)

    @pytest.mark.asyncio
    async def test_unexpected_error(self, test_client):
        """Test that an unknown exception is a generic 500."""
        stub = StubProvider(error=RuntimeError("boom"))

        with patch("aegis_gateway.gateway.get_provider", return_value=stub):
            async with test_client as client:
                response = await client.post("/api/scan", json=_body())

        assert response.status_code == 500
        assert response.json() == {"error": "Internal server error during scan."}
        _assert_cors(response)


class TestScanGateway:
    """Test the gateway pipeline without the HTTP layer."""

    @pytest.mark.asyncio
    async def test_grounding_ignored_for_ungrounded_provider(self):
        """Test that URLs from a provider without search sources are not attached."""
        provider = UngroundedStubProvider(
            text=json.dumps({"findings": [{"title": "Open port", "severity": "LOW"}]}),
            urls=["https://should-not-appear.example"],
        )
        request = ScanRequest(
            target="10.0.0.1",
            target_type=TargetType.NETWORK,
            settings=ScanSettings(),
        )

        result = await ScanGateway().run(request, provider)

        assert result.findings[0].references == []
        assert result.findings[0].cwe_id == "N/A"

    @pytest.mark.asyncio
    async def test_grounding_attached_for_grounded_provider(self):
        """Test that URLs from a search-grounded provider become references."""
        provider = StubProvider(
            text=json.dumps({"findings": [{"title": "Open port", "severity": "LOW"}]}),
            urls=["https://source.example"],
        )
        request = ScanRequest(
            target="10.0.0.1",
            target_type=TargetType.NETWORK,
            settings=ScanSettings(),
        )

        result = await ScanGateway().run(request, provider)

        assert result.findings[0].references == ["https://source.example"]
