"""
Tests for auth headers, token substitution and the identity lookup.
"""

from __future__ import annotations

import logging

import httpx
import pytest

from stressbench.config import Settings
from stressbench.core.auth import auth_headers, fetch_user_info, substitute_tokens
from stressbench.models import AuthContext


class TestAuthHeaders:
    def test_all_tokens(self) -> None:
        headers = auth_headers(AuthContext(bearer_token="jwt", anti_forgery_token="x"))
        assert headers == {
            "Content-Type": "application/json",
            "Authorization": "Token jwt",
            "X-XSRF-TOKEN-WEBAPI": "x",
        }

    def test_no_tokens(self) -> None:
        assert auth_headers(AuthContext()) == {"Content-Type": "application/json"}

    def test_configurable_scheme(self) -> None:
        settings = Settings(AUTH_SCHEME="Bearer", ANTI_FORGERY_HEADER="X-CSRF")
        headers = auth_headers(
            AuthContext(bearer_token="jwt", anti_forgery_token="x"), settings
        )
        assert headers["Authorization"] == "Bearer jwt"
        assert headers["X-CSRF"] == "x"


class TestSubstituteTokens:
    def test_replaces_placeholders(self) -> None:
        auth = AuthContext(tenant_id="t-1", region_id="r-9")
        payload = {"tenant": "{{tenantId}}", "path": "/{{regionId}}/x", "n": 3}
        assert substitute_tokens(payload, auth) == {
            "tenant": "t-1",
            "path": "/r-9/x",
            "n": 3,
        }

    def test_values_are_json_escaped(self) -> None:
        auth = AuthContext(tenant_id='a"b\\c')
        assert substitute_tokens({"t": "{{tenantId}}"}, auth) == {"t": 'a"b\\c'}

    def test_missing_values_become_empty(self) -> None:
        assert substitute_tokens({"t": "{{tenantId}}"}, AuthContext()) == {"t": ""}

    def test_placeholders_in_keys_and_lists(self) -> None:
        auth = AuthContext(tenant_id="t")
        result = substitute_tokens({"{{tenantId}}": ["{{tenantId}}"]}, auth)
        assert result == {"t": ["t"]}

    def test_no_placeholders_returns_same_object(self) -> None:
        payload = {"a": 1}
        assert substitute_tokens(payload, AuthContext(tenant_id="t")) is payload

    def test_none_passthrough(self) -> None:
        assert substitute_tokens(None, AuthContext()) is None

    def test_unserializable_payload_falls_back(self, caplog) -> None:
        payload = {"when": object(), "t": "{{tenantId}}"}
        with caplog.at_level(logging.WARNING):
            assert substitute_tokens(payload, AuthContext(tenant_id="t")) is payload
        assert "not JSON serializable" in caplog.text


class TestFetchUserInfo:
    @pytest.mark.asyncio
    async def test_populates_context(self, http_client: httpx.AsyncClient, stub_app) -> None:
        auth = AuthContext(bearer_token="jwt", anti_forgery_token="x")
        assert await fetch_user_info(http_client, auth)
        assert auth.tenant_id == "tenant-1"
        assert auth.region_id == "eu-1"

        sent = stub_app.requests[-1]
        assert sent["path"] == "/api/users/userInfo"
        assert sent["headers"]["authorization"] == "Token jwt"
        assert sent["headers"]["x-xsrf-token-webapi"] == "x"

    @pytest.mark.asyncio
    async def test_http_error_leaves_context(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(401))
        async with httpx.AsyncClient(transport=transport, base_url="http://x") as client:
            auth = AuthContext()
            assert not await fetch_user_info(client, auth)
            assert auth.tenant_id is None

    @pytest.mark.asyncio
    async def test_transport_error_is_not_raised(self) -> None:
        def _fail(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("refused", request=request)

        transport = httpx.MockTransport(_fail)
        async with httpx.AsyncClient(transport=transport, base_url="http://x") as client:
            assert not await fetch_user_info(client, AuthContext())

    @pytest.mark.asyncio
    async def test_non_object_body(self) -> None:
        transport = httpx.MockTransport(lambda request: httpx.Response(200, json=[1]))
        async with httpx.AsyncClient(transport=transport, base_url="http://x") as client:
            assert not await fetch_user_info(client, AuthContext())
