# saffeh/services/reservation_watcher.py
"""
Reservation watcher — notices gate scans by re-fetching the reservation.

The gate scanner sets consumedAt on the backend; the app only learns about
it by polling GET /reservations/:id while a screen showing the reservation
is focused. Each fresh copy is fed to the QR tracker. The loop ends when
the reservation is terminal or the session is no longer authorized.
Cancelling the watcher also drops the tracker's hide timer.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from saffeh.config import settings
from saffeh.schemas.reservation import Reservation
from saffeh.services.errors import ApiError, AuthError
from saffeh.services.polling import poll_every
from saffeh.services.qr_tracker import QRDisplay, QRValidityTracker
from saffeh.services.reservation_rules import is_terminal
from saffeh.services.reservation_service import ReservationStateMachine
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)


class ReservationWatcher:
    def __init__(
        self,
        machine: ReservationStateMachine,
        tracker: QRValidityTracker,
        interval: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable]] = None,
        on_update: Optional[Callable[[Reservation, QRDisplay], None]] = None,
    ):
        self.machine = machine
        self.tracker = tracker
        self.interval = interval if interval is not None else settings.RESERVATION_REFRESH_SECONDS
        self._sleep = sleep or asyncio.sleep
        self._on_update = on_update

    async def run(self, reservation_id) -> Optional[Reservation]:
        """Poll until terminal; returns the last reservation seen (None on 401)."""
        last: dict = {}

        async def tick() -> bool:
            before = self.machine.known(reservation_id)
            try:
                reservation = await self.machine.get(reservation_id)
            except AuthError:
                logger.warning(f"[QR] stop watching {reservation_id}: re-authentication required")
                last["reservation"] = None
                return True
            except ApiError as e:
                logger.warning(f"[QR] refresh of {reservation_id} failed: {e!r}")
                return False

            if before is not None and before.consumed_at is None and reservation.consumed_at is not None:
                logger.info(f"🚗 Reservation {reservation_id} scanned at the gate")

            display = self.tracker.update(reservation)
            last["reservation"] = reservation
            if self._on_update:
                self._on_update(reservation, display)
            return is_terminal(reservation.status)

        try:
            await poll_every(self.interval, tick, self._sleep)
        except asyncio.CancelledError:
            # screen gone: no hide callback may fire after this
            self.tracker.reset()
            raise
        return last.get("reservation")
