"""
Tests for structured logging

Tests request ID propagation, client IP resolution and the JSON formatter.
"""

import json
import logging

from starlette.requests import Request

from sayings.middleware.logging import RequestIdFilter, StructuredFormatter, get_client_ip, request_id_var


def make_request(headers: dict, client=("127.0.0.1", 5000)) -> Request:
    scope = {
        "type": "http",
        "method": "GET",
        "path": "/",
        "headers": [(k.lower().encode(), v.encode()) for k, v in headers.items()],
        "client": client,
    }
    return Request(scope)


class TestClientIp:
    def test_first_forwarded_hop_wins(self):
        request = make_request({"X-Forwarded-For": "9.9.9.9, 10.0.0.1", "X-Real-IP": "8.8.8.8"})
        assert get_client_ip(request) == "9.9.9.9"

    def test_real_ip_header(self):
        assert get_client_ip(make_request({"X-Real-IP": " 8.8.8.8 "})) == "8.8.8.8"

    def test_socket_address(self):
        assert get_client_ip(make_request({})) == "127.0.0.1"
        assert get_client_ip(make_request({}, client=None)) is None


class TestStructuredFormatter:
    def test_formats_json_with_extras(self):
        record = logging.LogRecord("sayings.access", logging.INFO, __file__, 1, "GET /api/search", None, None)
        record.status_code = 200
        record.path = "/api/search"
        token = request_id_var.set("req-123")
        try:
            RequestIdFilter().filter(record)
        finally:
            request_id_var.reset(token)

        data = json.loads(StructuredFormatter().format(record))

        assert data["message"] == "GET /api/search"
        assert data["level"] == "INFO"
        assert data["request_id"] == "req-123"
        assert data["status_code"] == 200
        assert data["path"] == "/api/search"
        assert "user_id" not in data


class TestRequestIdHeader:
    async def test_supplied_request_id_is_echoed(self, client):
        response = await client.get("/health", headers={"X-Request-ID": "abc-123"})
        assert response.headers["X-Request-ID"] == "abc-123"

    async def test_request_id_is_generated(self, client):
        response = await client.get("/health")
        assert response.headers["X-Request-ID"]
