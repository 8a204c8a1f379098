# saffeh/services/reservation_service.py
"""
Reservation state machine — the client's view of every reservation it has seen.

Local changes (cancel, payment confirmed) only move along the edges in
reservation_rules; server truth fetched by polling is reconciled into the
same view, and nothing ever leaves a terminal state.
"""

from typing import Optional, Union

from saffeh.schemas.reservation import (
    AppliedVoucher,
    CheckoutSession,
    CreatedReservation,
    PaymentConfirmation,
    Pricing,
    Reservation,
    ReservationStatus,
)
from saffeh.services.errors import (
    ApiError,
    AuthError,
    InvalidTransitionError,
    MalformedResponseError,
    NotReadyError,
    TerminalApiError,
    ValidationError,
    as_terminal,
)
from saffeh.services.gateway import parse_list, parse_payload
from saffeh.services.reservation_rules import (
    CANCELLABLE,
    IN_FLIGHT,
    PAID,
    can_transition,
    is_reachable,
    is_terminal,
)
from saffeh.services.session import AuthenticatedSession
from saffeh.services.voucher_service import VoucherBook
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

ReservationId = Union[str, int]


class ReservationStateMachine:
    def __init__(self, session: AuthenticatedSession, voucher_book: Optional[VoucherBook] = None):
        self.session = session
        self.voucher_book = voucher_book
        self._reservations: dict[str, Reservation] = {}
        self._confirmed: set[str] = set()

    # ── local view ───────────────────────────────────────────────────────
    def known(self, reservation_id: ReservationId) -> Optional[Reservation]:
        return self._reservations.get(str(reservation_id))

    def active_reservation_ids(self) -> set[str]:
        return {rid for rid, r in self._reservations.items() if r.status in IN_FLIGHT}

    def transition(self, reservation_id: ReservationId, target: ReservationStatus) -> Reservation:
        """Apply one local edge. Illegal edges raise and leave the state as it was."""
        current = self.known(reservation_id)
        if current is None:
            raise ValidationError(f"Reservation {reservation_id} is not loaded", 0)
        if is_terminal(current.status):
            raise InvalidTransitionError(
                f"Reservation {reservation_id} is {current.status.value} and can no longer change", 0
            )
        if current.status == target:
            return current
        if not can_transition(current.status, target):
            raise InvalidTransitionError(
                f"Reservation {reservation_id} cannot go from {current.status.value} to {target.value}", 0
            )
        updated = current.model_copy(update={"status": target})
        self._reservations[str(reservation_id)] = updated
        logger.info(f"[RES] {reservation_id}: {current.status.value} → {target.value}")
        return updated

    def reconcile(self, incoming: Reservation) -> Reservation:
        """Merge a server copy into the local view and return the merged reservation."""
        key = str(incoming.id)
        current = self._reservations.get(key)
        merged = incoming

        if current is not None and current.status != ReservationStatus.UNKNOWN:
            if incoming.status == ReservationStatus.UNKNOWN:
                merged = incoming.model_copy(update={"status": current.status})
            elif incoming.status != current.status:
                if is_reachable(current.status, incoming.status):
                    logger.info(f"[RES] {key}: {current.status.value} → {incoming.status.value} (server)")
                else:
                    logger.warning(
                        f"[RES] {key}: ignoring server status {incoming.status.value}, "
                        f"not reachable from {current.status.value}"
                    )
                    merged = incoming.model_copy(update={"status": current.status})

            # consumedAt is set once by the gate and never cleared
            if current.consumed_at is not None and merged.consumed_at is None:
                merged = merged.model_copy(update={"consumed_at": current.consumed_at})

        if is_terminal(merged.status):
            self._confirmed.discard(key)
        self._reservations[key] = merged
        return merged

    # ── operations ───────────────────────────────────────────────────────
    async def create(self, location_id, gate_id) -> CreatedReservation:
        missing = [name for name, value in (("location", location_id), ("gate", gate_id)) if not value]
        if missing:
            raise ValidationError(f"Missing required information: {', '.join(missing)}", 0)

        try:
            data = await self.session.request(
                "/reservations", "POST", {"locationId": location_id, "gateId": gate_id}
            )
        except ApiError as exc:
            logger.error(f"Error creating reservation: {exc!r}")
            err = as_terminal(exc, "Failed to create reservation. Please try again.")
            if err is exc:
                raise
            raise err from exc

        reservation = parse_payload(data, "reservation", Reservation)
        stripe = data.get("stripe") or {}
        if not stripe.get("checkoutSessionId") or not stripe.get("checkoutUrl"):
            raise MalformedResponseError("Reservation created without a checkout session", 0)
        if reservation.status != ReservationStatus.PENDING:
            logger.warning(f"[RES] new reservation {reservation.id} arrived as {reservation.status.value}")

        reservation = self.reconcile(reservation)
        created = CreatedReservation(
            reservation=reservation,
            checkout=CheckoutSession(
                reservation_id=reservation.id,
                session_id=stripe["checkoutSessionId"],
                checkout_url=stripe["checkoutUrl"],
            ),
            pricing=Pricing.model_validate(data["pricing"]) if data.get("pricing") else None,
            applied_voucher=(
                AppliedVoucher.model_validate(data["appliedVoucher"]) if data.get("appliedVoucher") else None
            ),
        )
        if created.applied_voucher and self.voucher_book:
            self.voucher_book.invalidate()
        logger.info(f"[RES] created {reservation.id} (PENDING) at gate {gate_id}")
        return created

    async def confirm_payment(self, reservation_id: ReservationId, session_id: str) -> PaymentConfirmation:
        """
        Ask the backend whether the checkout session has been paid.

        400 means "not paid yet" and raises NotReadyError. After the first
        confirmation the cached reservation is returned with
        already_confirmed=True and the backend is not called again.
        """
        if not reservation_id or not session_id:
            raise ValidationError("Reservation and checkout session are required", 0)

        key = str(reservation_id)
        cached = self._reservations.get(key)
        if key in self._confirmed and cached is not None and cached.status in PAID:
            return PaymentConfirmation(reservation=cached, already_confirmed=True)

        try:
            data = await self.session.request(
                f"/reservations/{reservation_id}/confirm-payment",
                "POST",
                {"reservationId": reservation_id, "sessionId": session_id},
            )
        except AuthError:
            raise
        except ApiError as exc:
            if exc.status == 400:
                raise NotReadyError(exc.message, 400) from exc
            raise

        reservation = self.reconcile(parse_payload(data, "reservation", Reservation))
        already = bool(data.get("alreadyConfirmed"))
        if not is_terminal(reservation.status) and (already or reservation.status in PAID):
            self._confirmed.add(key)
            logger.info(f"[PAY] {key} confirmed (alreadyConfirmed={already})")
        return PaymentConfirmation(reservation=reservation, already_confirmed=already)

    async def cancel(self, reservation_id: ReservationId) -> Reservation:
        current = self.known(reservation_id) or await self.get(reservation_id)
        if current.status not in CANCELLABLE:
            raise InvalidTransitionError("This reservation cannot be cancelled", 0)

        try:
            data = await self.session.request(f"/reservations/{reservation_id}/cancel", "POST")
        except ApiError as exc:
            logger.error(f"Error cancelling reservation {reservation_id}: {exc!r}")
            err = as_terminal(exc, "Failed to cancel reservation. Please try again.")
            if err is exc:
                raise
            raise err from exc

        reservation = self.reconcile(parse_payload(data, "reservation", Reservation))
        if reservation.status != ReservationStatus.CANCELLED:
            logger.warning(f"[RES] cancel of {reservation_id} returned {reservation.status.value}")
            raise TerminalApiError(
                f"Reservation could not be cancelled (status: {reservation.status.value})", 0
            )

        logger.info(f"[RES] {reservation_id} cancelled")
        if self.voucher_book:
            self.voucher_book.invalidate()
        return reservation

    async def get(self, reservation_id: ReservationId) -> Reservation:
        if not reservation_id:
            raise ValidationError("Reservation ID is missing", 0)
        data = await self.session.request(f"/reservations/{reservation_id}")
        return self.reconcile(parse_payload(data, "reservation", Reservation))

    async def list_mine(self) -> list[Reservation]:
        """All of the user's reservations, newest first."""
        data = await self.session.request("/reservations/mine")
        return [self.reconcile(r) for r in parse_list(data, "reservations", Reservation)]

    def is_settled(self, reservation_id: ReservationId) -> bool:
        current = self.known(reservation_id)
        return current is not None and is_terminal(current.status)
