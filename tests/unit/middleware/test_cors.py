"""Tests for the Cors middleware."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock

from file_api.middleware.cors import Cors, CorsConfig


class TestCorsConfig:
    def test_wildcard_string(self) -> None:
        assert CorsConfig().allowed_origin("https://app.example.com") == "*"

    def test_listed_origin_is_echoed(self) -> None:
        config = CorsConfig(allow_origin=["https://a.example.com", "https://b.example.com"])
        assert config.allowed_origin("https://b.example.com") == "https://b.example.com"

    def test_unlisted_origin_falls_back_to_first(self) -> None:
        config = CorsConfig(allow_origin=["https://a.example.com", "https://b.example.com"])
        assert config.allowed_origin("https://evil.example.com") == "https://a.example.com"
        assert config.allowed_origin(None) == "https://a.example.com"

    def test_wildcard_in_list(self) -> None:
        assert CorsConfig(allow_origin=["https://a.example.com", "*"]).allowed_origin("x") == "*"

    def test_credentials_header_only_when_enabled(self, make_ctx: Any) -> None:
        assert "Access-Control-Allow-Credentials" not in CorsConfig().headers_for(make_ctx())
        headers = CorsConfig(allow_credentials=True).headers_for(make_ctx())
        assert headers["Access-Control-Allow-Credentials"] == "true"


class TestCors:
    async def test_preflight_short_circuits(
        self, make_ctx: Any, ok_handler: AsyncMock
    ) -> None:
        handler = Cors()(ok_handler)

        response = await handler(make_ctx("OPTIONS", "/files"))

        assert response.status_code == 200
        assert response.body == ""
        assert response.headers["Access-Control-Allow-Origin"] == "*"
        assert "POST" in response.headers["Access-Control-Allow-Methods"]
        assert "Authorization" in response.headers["Access-Control-Allow-Headers"]
        assert "X-File-Name" in response.headers["Access-Control-Allow-Headers"]
        assert response.headers["Access-Control-Max-Age"] == "86400"
        ok_handler.assert_not_awaited()

    async def test_headers_added_to_normal_response(
        self, make_ctx: Any, ok_handler: AsyncMock
    ) -> None:
        handler = Cors(CorsConfig(allow_origin=["https://app.example.com"]))(ok_handler)

        response = await handler(
            make_ctx("GET", "/files", headers={"Origin": "https://app.example.com"})
        )

        assert response.status_code == 200
        assert response.headers["Access-Control-Allow-Origin"] == "https://app.example.com"
        assert response.headers["Access-Control-Expose-Headers"] == "Content-Length, Content-Type"
        assert response.json() == {"success": True, "data": {"ok": True}}
