# tests/test_scanner_client.py
"""Unit tests for the companion gate scanner client and token helpers."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import requests
from unittest.mock import MagicMock, patch
from saffeh.scanner import ScannerClient, ScanThrottle, extract_qr_token, is_valid_qr_token

TOKEN = "a1" * 16


def make_response(status_code, payload=None):
    resp = MagicMock()
    resp.status_code = status_code
    resp.ok = 200 <= status_code < 300
    if payload is None:
        resp.json.side_effect = ValueError("no json")
    else:
        resp.json.return_value = payload
    return resp


def make_client():
    return ScannerClient(base_url="http://backend.test/", api_key="k3y", gate_id="gate_north", guard_id="g1")


class TestTokenHelpers:
    def test_raw_token(self):
        assert extract_qr_token(f"  {TOKEN}\n") == TOKEN

    def test_url_token_param(self):
        assert extract_qr_token(f"https://saffeh.app/r?token={TOKEN}") == TOKEN

    def test_url_qr_param(self):
        assert extract_qr_token(f"https://saffeh.app/r?qr={TOKEN}") == TOKEN

    def test_json_payload(self):
        assert extract_qr_token('{"qrToken": "%s"}' % TOKEN) == TOKEN

    def test_token_format(self):
        assert is_valid_qr_token(TOKEN)
        assert not is_valid_qr_token("abc")
        assert not is_valid_qr_token("z" * 32)

    def test_throttle_drops_quick_repeats(self):
        now = [0.0]
        throttle = ScanThrottle(interval=2, clock=lambda: now[0])

        assert throttle.accept(TOKEN)
        now[0] = 1.0
        assert not throttle.accept(TOKEN)
        assert throttle.accept("b2" * 16)
        now[0] = 4.0
        assert throttle.accept(TOKEN)


class TestScannerClient:
    @patch("saffeh.scanner.client.requests.post")
    def test_valid_scan(self, mock_post):
        mock_post.return_value = make_response(200, {
            "success": True,
            "message": "Access granted",
            "data": {"valid": True, "gateAccess": {"allowed": True, "gateId": "gate_north"}},
        })

        result = make_client().validate_qr(TOKEN)

        assert result.success
        assert result.data.gate_access.allowed
        url = mock_post.call_args.args[0]
        kwargs = mock_post.call_args.kwargs
        assert url == "http://backend.test/api/qr/validate"
        assert kwargs["headers"]["x-api-key"] == "k3y"
        assert kwargs["json"]["qrToken"] == TOKEN
        assert kwargs["json"]["gateId"] == "gate_north"

    @patch("saffeh.scanner.client.requests.post")
    def test_empty_scan_never_sent(self, mock_post):
        result = make_client().validate_qr("   ")

        assert result.error == "EMPTY_TOKEN"
        mock_post.assert_not_called()

    @patch("saffeh.scanner.client.requests.post")
    def test_bad_api_key(self, mock_post):
        mock_post.return_value = make_response(401, {"message": "nope"})

        result = make_client().validate_qr(TOKEN)

        assert not result.success
        assert result.error == "UNAUTHORIZED"

    @patch("saffeh.scanner.client.requests.post")
    def test_forbidden(self, mock_post):
        mock_post.return_value = make_response(403)

        assert make_client().validate_qr(TOKEN).error == "FORBIDDEN"

    @patch("saffeh.scanner.client.requests.post")
    def test_network_error(self, mock_post):
        mock_post.side_effect = requests.exceptions.ConnectionError("refused")

        result = make_client().validate_qr(TOKEN)

        assert result.error == "NETWORK_ERROR"

    @patch("saffeh.scanner.client.requests.post")
    def test_rejection_message_passed_through(self, mock_post):
        mock_post.return_value = make_response(
            409, {"success": False, "message": "QR code has already been used", "error": "QR_ALREADY_USED"}
        )

        result = make_client().validate_qr(TOKEN)

        assert result.message == "QR code has already been used"
        assert result.error == "QR_ALREADY_USED"

    @patch("saffeh.scanner.client.requests.post")
    def test_rejection_without_body(self, mock_post):
        mock_post.return_value = make_response(500)

        assert make_client().validate_qr(TOKEN).error == "HTTP Error: 500"

    @patch("saffeh.scanner.client.requests.get")
    def test_check_connection(self, mock_get):
        mock_get.return_value = make_response(200, {"status": "ok"})
        assert make_client().check_connection()

        mock_get.side_effect = requests.exceptions.Timeout()
        assert not make_client().check_connection()
