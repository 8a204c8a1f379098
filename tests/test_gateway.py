# tests/test_gateway.py
"""Unit tests for the backend gateway's error normalization."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx
import pytest
from saffeh.schemas.catalog import Location
from saffeh.services.errors import (
    ApiError,
    AuthError,
    MalformedResponseError,
    NetworkError,
    PermissionDeniedError,
)
from saffeh.services.gateway import BackendGateway, parse_list, parse_payload


def make_gateway(handler):
    return BackendGateway(base_url="http://backend.test/api", transport=httpx.MockTransport(handler))


class TestGatewayRequest:
    @pytest.mark.asyncio
    async def test_returns_decoded_json(self):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"locations": []})

        data = await make_gateway(handler).request("/locations", token="tok123")

        assert data == {"locations": []}
        assert seen["url"] == "http://backend.test/api/locations"
        assert seen["auth"] == "Bearer tok123"

    @pytest.mark.asyncio
    async def test_no_auth_header_without_token(self):
        def handler(request):
            assert "authorization" not in request.headers
            return httpx.Response(200, json={})

        assert await make_gateway(handler).request("/locations") == {}

    @pytest.mark.asyncio
    async def test_body_not_sent_on_get(self):
        def handler(request):
            assert request.content == b""
            return httpx.Response(200, json={"ok": True})

        await make_gateway(handler).request("/locations", "GET", body={"ignored": 1})

    @pytest.mark.asyncio
    async def test_body_sent_on_post(self):
        def handler(request):
            assert b'"gateId"' in request.content
            return httpx.Response(201, json={"reservation": {"id": 1}})

        await make_gateway(handler).request("/reservations", "POST", body={"gateId": 7})

    @pytest.mark.asyncio
    async def test_empty_success_body_is_empty_dict(self):
        assert await make_gateway(lambda r: httpx.Response(204)).request("/x", "POST") == {}


class TestGatewayErrors:
    @pytest.mark.asyncio
    async def test_html_error_page_keeps_status(self):
        def handler(request):
            return httpx.Response(
                500, text="<!DOCTYPE html><html><body>Oops</body></html>",
                headers={"content-type": "text/html"},
            )

        with pytest.raises(ApiError) as exc:
            await make_gateway(handler).request("/reservations/mine")

        assert exc.value.status == 500
        assert "HTML" in exc.value.message

    @pytest.mark.asyncio
    async def test_html_detected_without_content_type(self):
        def handler(request):
            return httpx.Response(200, text="<html>login page</html>")

        with pytest.raises(ApiError) as exc:
            await make_gateway(handler).request("/locations")

        assert exc.value.status == 200
        assert "HTML" in exc.value.message

    @pytest.mark.asyncio
    async def test_network_failure_is_status_zero(self):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError) as exc:
            await make_gateway(handler).request("/locations")

        assert exc.value.status == 0
        assert exc.value.code == "NETWORK_ERROR"

    @pytest.mark.asyncio
    async def test_401_is_auth_error(self):
        gw = make_gateway(lambda r: httpx.Response(401, json={"message": "Token expired"}))

        with pytest.raises(AuthError) as exc:
            await gw.request("/user/me", token="old")

        assert exc.value.status == 401
        assert exc.value.message == "Token expired"

    @pytest.mark.asyncio
    async def test_403_is_permission_denied(self):
        gw = make_gateway(lambda r: httpx.Response(403, json={"error": "Forbidden"}))

        with pytest.raises(PermissionDeniedError) as exc:
            await gw.request("/user/me", token="t")

        assert exc.value.message == "Forbidden"
        assert exc.value.code == "FORBIDDEN"

    @pytest.mark.asyncio
    async def test_message_falls_back_to_status(self):
        gw = make_gateway(lambda r: httpx.Response(409, json={}))

        with pytest.raises(ApiError) as exc:
            await gw.request("/reservations", "POST", body={})

        assert exc.value.status == 409
        assert exc.value.message == "HTTP error! status: 409"

    @pytest.mark.asyncio
    async def test_unparseable_error_body_keeps_status(self):
        gw = make_gateway(lambda r: httpx.Response(502, text="Bad gateway", headers={"content-type": "text/plain"}))

        with pytest.raises(ApiError) as exc:
            await gw.request("/locations")

        assert exc.value.status == 502

    @pytest.mark.asyncio
    async def test_unparseable_success_body_is_malformed(self):
        gw = make_gateway(lambda r: httpx.Response(200, text="{not json", headers={"content-type": "application/json"}))

        with pytest.raises(MalformedResponseError) as exc:
            await gw.request("/locations")

        assert exc.value.status == 0


class TestEnvelopeParsing:
    def test_parse_payload(self):
        loc = parse_payload({"location": {"id": 1, "name": "Downtown"}}, "location", Location)
        assert loc.name == "Downtown"

    def test_parse_payload_missing_key(self):
        with pytest.raises(MalformedResponseError):
            parse_payload({"other": {}}, "location", Location)

    def test_parse_payload_bad_shape(self):
        with pytest.raises(MalformedResponseError):
            parse_payload({"location": {"id": 1}}, "location", Location)

    def test_parse_list_missing_is_empty(self):
        assert parse_list({}, "locations", Location) == []

    def test_parse_list_not_a_list(self):
        with pytest.raises(MalformedResponseError):
            parse_list({"locations": {"id": 1}}, "locations", Location)
