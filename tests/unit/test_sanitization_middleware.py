"""Tests for sanitization middleware."""

import json
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from teachshare.middleware.sanitization import ScanResult, ThreatDetection, ThreatLevel, ThreatType
from teachshare.middleware.sanitization_middleware import SanitizationMiddleware


class TestSanitizationMiddleware:
    """Tests for SanitizationMiddleware."""

    def _make_request(self, method: str = "POST", path: str = "/api/resources", body=None):
        """Create a mock request."""
        request = MagicMock()
        request.method = method
        request.url = MagicMock()
        request.url.path = path

        if body is None:
            request.body = AsyncMock(return_value=b"")
        elif isinstance(body, bytes):
            request.body = AsyncMock(return_value=body)
        else:
            request.body = AsyncMock(return_value=json.dumps(body).encode())

        return request

    @pytest.mark.asyncio
    async def test_get_requests_pass_through(self):
        """GET requests should not be scanned."""
        middleware = SanitizationMiddleware(app=MagicMock())
        request = self._make_request(method="GET")
        call_next = AsyncMock(return_value=MagicMock(headers={}))

        await middleware.dispatch(request, call_next)

        call_next.assert_called_once()
        request.body.assert_not_called()

    @pytest.mark.asyncio
    async def test_clean_payload_passes(self):
        middleware = SanitizationMiddleware(app=MagicMock())
        request = self._make_request(body={"title": "Photosynthesis worksheet", "subject": "science"})
        response = MagicMock(headers={})
        call_next = AsyncMock(return_value=response)

        result = await middleware.dispatch(request, call_next)

        assert result is response
        assert "X-Security-Flag" not in response.headers

    @pytest.mark.asyncio
    async def test_invalid_json_passes(self):
        middleware = SanitizationMiddleware(app=MagicMock())
        request = self._make_request(body=b"{not json")
        call_next = AsyncMock(return_value=MagicMock(headers={}))

        await middleware.dispatch(request, call_next)

        call_next.assert_called_once()

    @pytest.mark.asyncio
    async def test_script_blocked_on_content_path(self):
        """Critical threats on resource endpoints are rejected outright."""
        middleware = SanitizationMiddleware(app=MagicMock())
        request = self._make_request(
            path="/api/resources/123/comments",
            body={"content": "<script>steal()</script>"},
        )
        call_next = AsyncMock()

        result = await middleware.dispatch(request, call_next)

        assert result.status_code == 400
        body = json.loads(result.body)
        assert body["error"] == "payload_security_violation"
        assert body["threat_level"] == "critical"
        assert body["threats"][0]["type"] == "script_injection"
        call_next.assert_not_called()

    @pytest.mark.asyncio
    async def test_non_content_path_flags_but_allows(self):
        middleware = SanitizationMiddleware(app=MagicMock())
        request = self._make_request(path="/api/waitlist", body={"message": "<script>x</script>"})
        response = MagicMock(headers={})
        call_next = AsyncMock(return_value=response)

        result = await middleware.dispatch(request, call_next)

        assert result is response
        assert response.headers["X-Security-Flag"] == "critical"

    @pytest.mark.asyncio
    async def test_medium_threat_flags_content_path(self):
        """Medium findings never block, even on content paths."""
        middleware = SanitizationMiddleware(app=MagicMock())
        request = self._make_request(path="/api/collections", body={"title": "x"})
        mock_scan = ScanResult(
            threat_level=ThreatLevel.MEDIUM,
            threats=[
                ThreatDetection(
                    threat_type=ThreatType.SPAM,
                    threat_level=ThreatLevel.MEDIUM,
                    pattern_matched="buy essays",
                    context="buy essays",
                )
            ],
        )
        response = MagicMock(headers={})

        with patch("teachshare.middleware.sanitization_middleware.get_sanitizer") as mock_sanitizer:
            mock_sanitizer.return_value.scan.return_value = mock_scan
            result = await middleware.dispatch(request, AsyncMock(return_value=response))

        assert result is response
        assert response.headers["X-Security-Flag"] == "medium"
