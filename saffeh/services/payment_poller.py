# saffeh/services/payment_poller.py
"""
Payment confirmation poller.

The checkout page runs in an external browser and there is no push channel,
so after a checkout session is opened the client asks the backend to
confirm the payment every few seconds:

  confirmed / alreadyConfirmed → stop, reservation becomes ACTIVE
  400                          → not paid yet, keep polling silently
  401                          → stop, credentials cleared, re-authenticate
  any other failure            → log and keep polling
  server reports terminal      → stop (cancelled / expired checkout)
  PAYMENT_POLL_TIMEOUT_SECONDS → stop as STALLED so the UI can say so

Cancelling the task (scope exit) stops it immediately.
"""

import asyncio
import time
from dataclasses import dataclass
from enum import Enum
from typing import Awaitable, Callable, Optional

from saffeh.config import settings
from saffeh.schemas.reservation import CheckoutSession, Reservation, ReservationStatus
from saffeh.services.errors import (
    ApiError,
    AuthError,
    NotReadyError,
    TransientServerError,
    ValidationError,
)
from saffeh.services.reservation_rules import PAID, can_transition, is_terminal
from saffeh.services.reservation_service import ReservationStateMachine
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)


class PollOutcome(str, Enum):
    CONFIRMED = "CONFIRMED"
    REAUTH_REQUIRED = "REAUTH_REQUIRED"
    FAILED = "FAILED"
    STALLED = "STALLED"


@dataclass
class PollResult:
    outcome: PollOutcome
    attempts: int
    reservation: Optional[Reservation] = None
    error: Optional[ApiError] = None


class PaymentConfirmationPoller:
    def __init__(
        self,
        machine: ReservationStateMachine,
        interval: Optional[float] = None,
        timeout: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Awaitable]] = None,
    ):
        self.machine = machine
        self.interval = interval if interval is not None else settings.PAYMENT_POLL_INTERVAL_SECONDS
        self.timeout = timeout if timeout is not None else settings.PAYMENT_POLL_TIMEOUT_SECONDS
        self._clock = clock
        self._sleep = sleep or asyncio.sleep

    async def run(self, checkout: CheckoutSession) -> PollResult:
        rid = checkout.reservation_id
        started = self._clock()
        attempts = 0
        logger.info(f"💳 Waiting for payment of reservation {rid} (every {self.interval}s)")

        try:
            while True:
                attempts += 1
                try:
                    confirmation = await self.machine.confirm_payment(rid, checkout.session_id)
                except NotReadyError:
                    logger.debug(f"[PAY] {rid} not paid yet (attempt {attempts})")
                except AuthError as e:
                    logger.warning(f"[PAY] {rid} — session expired, re-authentication required")
                    return PollResult(PollOutcome.REAUTH_REQUIRED, attempts, error=e)
                except ValidationError as e:
                    logger.error(f"[PAY] cannot poll: {e.message}")
                    return PollResult(PollOutcome.FAILED, attempts, error=e)
                except ApiError as e:
                    transient = TransientServerError(e.message, e.status)
                    logger.warning(f"[PAY] {rid} — transient error on attempt {attempts}: {transient!r}")
                else:
                    reservation = confirmation.reservation
                    if is_terminal(reservation.status):
                        logger.warning(f"[PAY] {rid} ended as {reservation.status.value} before payment")
                        return PollResult(PollOutcome.FAILED, attempts, reservation)
                    if confirmation.already_confirmed or reservation.status in PAID:
                        if can_transition(reservation.status, ReservationStatus.ACTIVE):
                            reservation = self.machine.transition(rid, ReservationStatus.ACTIVE)
                        logger.info(f"✅ Payment confirmed for {rid} after {attempts} attempt(s)")
                        return PollResult(PollOutcome.CONFIRMED, attempts, reservation)

                if self._clock() - started >= self.timeout:
                    logger.warning(f"⏱  Payment for {rid} not confirmed after {self.timeout}s — giving up")
                    return PollResult(PollOutcome.STALLED, attempts, self.machine.known(rid))

                await self._sleep(self.interval)
        except asyncio.CancelledError:
            logger.info(f"[PAY] polling for {rid} cancelled after {attempts} attempt(s)")
            raise
