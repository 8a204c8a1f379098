# tests/test_end_to_end.py
"""
End-to-end runs of the client services and the gate scanner against the
in-memory sandbox backend (no sockets: httpx ASGI transport / TestClient).
"""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

from urllib.parse import urlparse

import httpx
import pytest
import requests
from unittest.mock import patch
from fastapi.testclient import TestClient
from saffeh.scanner import ScannerClient
from saffeh.schemas.reservation import ReservationStatus
from saffeh.services.account_service import AccountService
from saffeh.services.catalog_service import CatalogService
from saffeh.services.errors import AuthError, InvalidTransitionError, TerminalApiError
from saffeh.services.payment_poller import PaymentConfirmationPoller, PollOutcome
from saffeh.services.polling import PollingScope
from saffeh.services.qr_tracker import QRDisplayState, QRValidityTracker
from saffeh.services.reservation_service import ReservationStateMachine
from saffeh.services.reservation_watcher import ReservationWatcher
from saffeh.services.voucher_service import VoucherBook


LOCATION = "loc_downtown"
SANDBOX_API_KEY = "test-scanner-key"   # matches conftest


async def no_sleep(_):
    return None


async def sign_up(session):
    accounts = AccountService(session)
    return await accounts.signup("Lina Haddad", "lina@example.com", "secret1", True)


def make_machine(session):
    return ReservationStateMachine(session, VoucherBook(session))


async def reserve_and_pay(machine, gate_id="gate_north"):
    created = await machine.create(LOCATION, gate_id)
    poller = PaymentConfirmationPoller(machine, interval=3, sleep=no_sleep)
    return created, await poller.run(created.checkout)


async def scan(sandbox_app, qr_token, api_key=SANDBOX_API_KEY):
    async with httpx.AsyncClient(transport=httpx.ASGITransport(app=sandbox_app), base_url="http://sandbox.test") as c:
        return await c.post(
            "/api/qr/validate",
            json={"qrToken": qr_token, "gateId": "gate_north", "guardId": "guard-1"},
            headers={"x-api-key": api_key},
        )


class TestReservationLifecycle:
    @pytest.mark.asyncio
    async def test_reserve_pay_scan(self, sandbox_session, sandbox_app, store):
        user = await sign_up(sandbox_session)
        assert user.has_accepted_terms
        assert store.get_token() is not None

        catalog = CatalogService(sandbox_session)
        assert await catalog.gates_with_free_spots(LOCATION) == {"gate_north": True, "gate_south": False}
        gate = await catalog.first_available_gate(LOCATION)

        machine = make_machine(sandbox_session)
        created, result = await reserve_and_pay(machine, gate.id)

        assert created.reservation.status == ReservationStatus.PENDING
        assert created.pricing.final_price == 5.0
        assert result.outcome == PollOutcome.CONFIRMED
        assert result.attempts == 3
        assert result.reservation.status == ReservationStatus.ACTIVE

        async with PollingScope("reservation-screen") as screen:
            tracker = QRValidityTracker(scope=screen)
            assert tracker.update(machine.known(created.reservation.id)).state == QRDisplayState.ACTIVE

            again = await machine.confirm_payment(created.reservation.id, created.checkout.session_id)
            assert again.already_confirmed

            qr_token = machine.known(created.reservation.id).qr_token
            first = await scan(sandbox_app, qr_token)
            second = await scan(sandbox_app, qr_token)
            assert first.status_code == 200 and first.json()["data"]["valid"] is True
            assert second.status_code == 409

            watcher = ReservationWatcher(machine, tracker, sleep=no_sleep)
            last = await watcher.run(created.reservation.id)

            assert last.status == ReservationStatus.COMPLETED
            assert last.consumed_at is not None
            assert tracker.display().state == QRDisplayState.CONSUMED
            hide_timer = tracker._timer
            assert hide_timer is not None and not hide_timer.done()

        assert hide_timer.cancelled()

    @pytest.mark.asyncio
    async def test_cancel_issues_refund_voucher_used_next_time(self, sandbox_session, sandbox_state):
        sandbox_state.confirm_after_attempts = 1
        await sign_up(sandbox_session)
        machine = make_machine(sandbox_session)

        created, result = await reserve_and_pay(machine)
        assert result.outcome == PollOutcome.CONFIRMED
        assert await machine.voucher_book.best() is None

        cancelled = await machine.cancel(created.reservation.id)
        assert cancelled.status == ReservationStatus.CANCELLED
        assert machine.voucher_book.is_stale

        refund = await machine.voucher_book.best(machine.active_reservation_ids())
        assert refund.percentage == 100

        with pytest.raises(InvalidTransitionError):
            await machine.cancel(created.reservation.id)

        next_one = await machine.create(LOCATION, "gate_north")
        assert next_one.applied_voucher.id == refund.id
        assert next_one.pricing.final_price == 0
        assert await machine.voucher_book.best(machine.active_reservation_ids()) is None

    @pytest.mark.asyncio
    async def test_full_gate_is_rejected(self, sandbox_session):
        await sign_up(sandbox_session)

        with pytest.raises(TerminalApiError) as exc:
            await make_machine(sandbox_session).create(LOCATION, "gate_south")

        assert exc.value.status == 409

    @pytest.mark.asyncio
    async def test_revoked_token_signs_out(self, sandbox_session, sandbox_state, store):
        await sign_up(sandbox_session)
        machine = make_machine(sandbox_session)
        created = await machine.create(LOCATION, "gate_north")
        sandbox_state.tokens.clear()

        with pytest.raises(AuthError):
            await machine.get(created.reservation.id)

        assert store.get_token() is None
        assert not sandbox_session.is_signed_in

    @pytest.mark.asyncio
    async def test_password_reset(self, sandbox_session):
        await sign_up(sandbox_session)
        accounts = AccountService(sandbox_session)
        data = await sandbox_session.public_request("/auth/forgot-password", "POST", {"email": "lina@example.com"})

        await accounts.reset_password(data["resetToken"], "newsecret")
        accounts.sign_out()
        user = await accounts.login("lina@example.com", "newsecret")

        assert user.email == "lina@example.com"
        activities = await accounts.activities("oldest")
        assert activities[0].action == "SIGNUP"


def as_requests_response(resp) -> requests.Response:
    out = requests.Response()
    out.status_code = resp.status_code
    out._content = resp.content
    out.headers.update(resp.headers)
    out.encoding = "utf-8"
    return out


class TestGateScanner:
    def paid_qr_token(self, client, sandbox_state):
        sandbox_state.confirm_after_attempts = 1
        signup = client.post("/api/auth/signup", json={
            "fullName": "Omar", "email": "omar@example.com", "password": "secret1", "acceptedTerms": True,
        })
        headers = {"Authorization": f"Bearer {signup.json()['token']}"}
        created = client.post("/api/reservations", json={"locationId": LOCATION, "gateId": "gate_north"},
                              headers=headers).json()
        rid = created["reservation"]["id"]
        confirmed = client.post(
            f"/api/reservations/{rid}/confirm-payment",
            json={"reservationId": rid, "sessionId": created["stripe"]["checkoutSessionId"]},
            headers=headers,
        )
        return confirmed.json()["reservation"]["qrToken"]

    def test_scanner_admits_once(self, sandbox_app, sandbox_state):
        client = TestClient(sandbox_app)
        qr_token = self.paid_qr_token(client, sandbox_state)

        def forward(url, json=None, headers=None, timeout=None):
            return as_requests_response(client.post(urlparse(url).path, json=json, headers=headers))

        scanner = ScannerClient(base_url="http://sandbox.test", api_key=SANDBOX_API_KEY, gate_id="gate_north")
        with patch("saffeh.scanner.client.requests.post", side_effect=forward):
            first = scanner.validate_qr(f"https://saffeh.app/r?token={qr_token}")
            second = scanner.validate_qr(qr_token)
            wrong_key = ScannerClient(base_url="http://sandbox.test", api_key="nope").validate_qr(qr_token)

        assert first.success and first.data.valid
        assert not second.success and second.error == "QR_ALREADY_USED"
        assert wrong_key.error == "UNAUTHORIZED"

    def test_health(self, sandbox_app):
        client = TestClient(sandbox_app)

        def forward(url, headers=None, timeout=None):
            return as_requests_response(client.get(urlparse(url).path, headers=headers))

        with patch("saffeh.scanner.client.requests.get", side_effect=forward):
            assert ScannerClient(base_url="http://sandbox.test", api_key=SANDBOX_API_KEY).check_connection()
