# saffeh/sandbox/routers/qr.py
"""
Gate-side QR validation, called by the scanner with x-api-key.
A token admits once: the first valid scan sets consumedAt and completes the
reservation, every later scan is rejected.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from saffeh.sandbox.deps import get_state
from saffeh.sandbox.state import SandboxState, reservation_json, utcnow
from saffeh.schemas.qr import QRValidationRequest
from saffeh.schemas.reservation import ReservationStatus
from saffeh.services.reservation_rules import PAID
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _reject(status_code: int, message: str, error: str) -> JSONResponse:
    logger.warning(f"🚫 [SANDBOX] QR rejected: {error}")
    return JSONResponse(status_code=status_code, content={"success": False, "message": message, "error": error})


@router.post("/qr/validate", summary="Validate a scanned QR token at a gate")
def validate_qr(body: QRValidationRequest, state: SandboxState = Depends(get_state)):
    reservation = state.find_by_qr_token(body.qr_token)
    if reservation is None:
        return _reject(404, "Invalid QR code", "INVALID_TOKEN")

    rid = str(reservation.id)
    reservation = state.lapse_if_expired(rid)
    if reservation.consumed_at is not None:
        return _reject(409, "QR code has already been used", "QR_ALREADY_USED")
    if reservation.status == ReservationStatus.CANCELLED:
        return _reject(400, "Reservation has been cancelled", "RESERVATION_CANCELLED")
    if reservation.status == ReservationStatus.EXPIRED:
        return _reject(400, "QR code has expired", "QR_EXPIRED")
    if reservation.status not in PAID:
        return _reject(400, "Reservation is not paid", "NOT_PAID")
    if body.gate_id and str(reservation.gate_id) != body.gate_id:
        return _reject(400, "This reservation is for another gate", "WRONG_GATE")

    now = utcnow()
    reservation = state.move(rid, ReservationStatus.COMPLETED, consumed_at=now)
    state.log(state.owners[rid], "QR_SCANNED", "reservation", rid, gateId=body.gate_id, guardId=body.guard_id)
    logger.info(f"✅ [SANDBOX] {rid} admitted at gate {body.gate_id or reservation.gate_id}")
    return {
        "success": True,
        "message": "Access granted",
        "data": {
            "valid": True,
            "vehicleInfo": {"entryTime": now.isoformat()},
            "gateAccess": {"allowed": True, "gateId": str(reservation.gate_id), "timestamp": now.isoformat()},
            "reservation": reservation_json(reservation),
        },
    }
