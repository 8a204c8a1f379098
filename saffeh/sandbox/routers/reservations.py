# saffeh/sandbox/routers/reservations.py
"""
Reservations, simulated checkout and vouchers.

Checkout never leaves the sandbox: confirm-payment answers 400 until the
session has been polled `confirm_after_attempts` times, or until
POST /sandbox/checkout/{session_id}/pay marks it paid.
"""

import secrets

from fastapi import APIRouter, Depends, HTTPException

from saffeh.config import settings
from saffeh.sandbox.deps import current_account, get_state, owned_reservation_id
from saffeh.sandbox.schemas import ConfirmPaymentIn, ReservationCreate
from saffeh.sandbox.state import Account, SandboxState, reservation_json, utcnow
from saffeh.schemas.reservation import ReservationStatus
from saffeh.services.reservation_rules import CANCELLABLE, PAID
from saffeh.services.voucher_filter import best_voucher
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()

CHECKOUT_URL = "https://checkout.stripe.test/c/pay/{session_id}"


@router.post("/reservations", status_code=201, summary="Reserve a spot behind a gate")
def create_reservation(
    body: ReservationCreate,
    account: Account = Depends(current_account),
    state: SandboxState = Depends(get_state),
):
    location = state.locations.get(str(body.location_id))
    if location is None:
        raise HTTPException(status_code=404, detail="Location not found")
    gate = state.gates.get(str(body.gate_id))
    if gate is None:
        raise HTTPException(status_code=404, detail="Gate not found")
    if str(gate.location_id) != str(location.id):
        raise HTTPException(status_code=400, detail="Gate does not belong to this location")
    spot = state.free_spot(str(gate.id))
    if spot is None:
        raise HTTPException(status_code=409, detail="No free spots at this gate")

    user_id = str(account.user.id)
    voucher = best_voucher(state.user_vouchers(user_id), state.in_flight_ids(user_id))
    reservation = state.create_reservation(user_id, location, gate, spot)
    rid = str(reservation.id)

    base = settings.SANDBOX_RESERVATION_PRICE
    discount = round(base * voucher.percentage / 100, 2) if voucher else 0.0
    if voucher:
        state.vouchers[str(voucher.id)] = voucher.model_copy(update={"reservation_id": reservation.id})

    checkout = state.open_checkout(rid, user_id)
    state.log(user_id, "RESERVATION_CREATED", "reservation", rid, gateId=str(gate.id))
    logger.info(f"🅿️  [SANDBOX] {rid} created at {gate.name} (spot {spot.label})")

    return {
        "reservation": reservation_json(reservation),
        "stripe": {
            "checkoutSessionId": checkout.session_id,
            "checkoutUrl": CHECKOUT_URL.format(session_id=checkout.session_id),
        },
        "pricing": {
            "basePrice": base,
            "discount": discount,
            "finalPrice": round(base - discount, 2),
            "currency": settings.SANDBOX_CURRENCY,
        },
        "appliedVoucher": (
            {"id": voucher.id, "code": voucher.code, "percentage": voucher.percentage} if voucher else None
        ),
    }


@router.post("/reservations/{reservation_id}/confirm-payment", summary="Confirm checkout payment")
def confirm_payment(
    reservation_id: str,
    body: ConfirmPaymentIn,
    account: Account = Depends(current_account),
    state: SandboxState = Depends(get_state),
):
    rid = owned_reservation_id(reservation_id, account, state)
    record = state.checkouts.get(body.session_id)
    if record is None or record.reservation_id != rid:
        raise HTTPException(status_code=404, detail="Checkout session not found")

    reservation = state.lapse_if_expired(rid)
    if reservation.status in PAID:
        return {"reservation": reservation_json(reservation), "alreadyConfirmed": True}
    if reservation.status != ReservationStatus.PENDING:
        return {"reservation": reservation_json(reservation), "alreadyConfirmed": False}

    record.attempts += 1
    if not record.paid and record.attempts < state.confirm_after_attempts:
        raise HTTPException(status_code=400, detail="Payment not completed yet")

    record.paid = True
    reservation = state.move(rid, ReservationStatus.CONFIRMED, qr_token=secrets.token_hex(16))
    now = utcnow()
    for vid, voucher in list(state.vouchers.items()):
        if str(voucher.reservation_id) == rid and not voucher.used:
            state.vouchers[vid] = voucher.model_copy(update={"used": True, "used_at": now})
    state.log(record.user_id, "PAYMENT_CONFIRMED", "reservation", rid, sessionId=record.session_id)
    return {"reservation": reservation_json(reservation), "alreadyConfirmed": False}


@router.post("/reservations/{reservation_id}/cancel", summary="Cancel a reservation")
def cancel_reservation(
    reservation_id: str,
    account: Account = Depends(current_account),
    state: SandboxState = Depends(get_state),
):
    rid = owned_reservation_id(reservation_id, account, state)
    reservation = state.lapse_if_expired(rid)
    if reservation.status not in CANCELLABLE:
        raise HTTPException(status_code=400, detail="This reservation cannot be cancelled")

    was_paid = reservation.status in PAID
    reservation = state.move(rid, ReservationStatus.CANCELLED, cancelled_at=utcnow())
    state.set_spot_status(rid, "FREE")
    for vid, voucher in list(state.vouchers.items()):
        if str(voucher.reservation_id) == rid and not voucher.used:
            state.vouchers[vid] = voucher.model_copy(update={"reservation_id": None})

    user_id = str(account.user.id)
    response = {"reservation": reservation_json(reservation)}
    if was_paid:
        refund = state.issue_refund_voucher(user_id)
        response["voucher"] = refund.model_dump(by_alias=True, mode="json")
        logger.info(f"🎟  [SANDBOX] refund voucher {refund.code} issued for {rid}")
    state.log(user_id, "RESERVATION_CANCELLED", "reservation", rid)
    return response


@router.get("/reservations/mine", summary="The caller's reservations, newest first")
def my_reservations(account: Account = Depends(current_account), state: SandboxState = Depends(get_state)):
    user_id = str(account.user.id)
    mine = [state.lapse_if_expired(rid) for rid, owner in list(state.owners.items()) if owner == user_id]
    mine.sort(key=lambda r: r.created_at, reverse=True)
    return {"reservations": [reservation_json(r) for r in mine]}


@router.get("/reservations/{reservation_id}", summary="One reservation")
def get_reservation(
    reservation_id: str,
    account: Account = Depends(current_account),
    state: SandboxState = Depends(get_state),
):
    rid = owned_reservation_id(reservation_id, account, state)
    return {"reservation": reservation_json(state.lapse_if_expired(rid))}


@router.get("/vouchers", summary="The caller's vouchers")
def list_vouchers(account: Account = Depends(current_account), state: SandboxState = Depends(get_state)):
    vouchers = state.user_vouchers(str(account.user.id))
    return {"vouchers": [v.model_dump(by_alias=True, mode="json") for v in vouchers]}


@router.post("/sandbox/checkout/{session_id}/pay", summary="Sandbox only — complete a checkout session")
def pay_checkout(session_id: str, state: SandboxState = Depends(get_state)):
    record = state.checkouts.get(session_id)
    if record is None:
        raise HTTPException(status_code=404, detail="Checkout session not found")
    record.paid = True
    logger.info(f"💳 [SANDBOX] checkout {session_id} paid")
    return {"sessionId": session_id, "paid": True}
