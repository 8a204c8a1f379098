# saffeh/services/qr_tracker.py
"""
QR validity tracker — what to show for a reservation's QR code right now.

Derived from timestamps only, in priority order:
  1. cancelled (status or cancelledAt)   → HIDDEN
  2. consumedAt set                      → CONSUMED, then HIDDEN once the
                                           grace window (120s) has passed
  3. validUntil in the past / EXPIRED    → EXPIRED (stays visible)
  4. otherwise                           → ACTIVE (scannable)
A reservation without a qrToken has nothing to show and is HIDDEN.

The grace window is measured from consumedAt, not from when the client
noticed the scan: a consumption discovered 130s late hides immediately.
No network I/O here; the reservation watcher feeds fresh copies in.
"""

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Awaitable, Callable, Optional

from saffeh.config import settings
from saffeh.schemas.reservation import Reservation, ReservationStatus
from saffeh.services.polling import PollingScope
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)


class QRDisplayState(str, Enum):
    ACTIVE = "ACTIVE"
    CONSUMED = "CONSUMED"
    EXPIRED = "EXPIRED"
    HIDDEN = "HIDDEN"


@dataclass(frozen=True)
class QRDisplay:
    state: QRDisplayState
    hide_in: Optional[float] = None     # seconds until a CONSUMED code is hidden

    @property
    def visible(self) -> bool:
        return self.state != QRDisplayState.HIDDEN

    @property
    def scannable(self) -> bool:
        return self.state == QRDisplayState.ACTIVE

    @property
    def overlay(self) -> bool:
        return self.state in (QRDisplayState.CONSUMED, QRDisplayState.EXPIRED)


HIDDEN = QRDisplay(QRDisplayState.HIDDEN)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def derive_qr_display(
    reservation: Optional[Reservation],
    now: Optional[datetime] = None,
    grace_seconds: Optional[float] = None,
) -> QRDisplay:
    if reservation is None:
        return HIDDEN
    now = now or _utcnow()
    grace = settings.QR_CONSUMED_GRACE_SECONDS if grace_seconds is None else grace_seconds

    if reservation.status == ReservationStatus.CANCELLED or reservation.cancelled_at is not None:
        return HIDDEN
    if not reservation.qr_token:
        return HIDDEN

    if reservation.consumed_at is not None:
        remaining = grace - (now - reservation.consumed_at).total_seconds()
        if remaining <= 0:
            return HIDDEN
        return QRDisplay(QRDisplayState.CONSUMED, hide_in=remaining)

    if reservation.status == ReservationStatus.EXPIRED or (
        reservation.valid_until is not None and reservation.valid_until < now
    ):
        return QRDisplay(QRDisplayState.EXPIRED)

    return QRDisplay(QRDisplayState.ACTIVE)


class QRValidityTracker:
    """
    Holds the currently displayed reservation and one suppression timer.

    Feeding the same reservation again keeps the running timer; feeding a
    different reservation id drops the old timer before anything else.
    `on_change` is called when the timer hides a consumed code. With a
    `scope`, the timer is one of the scope's tasks and is cancelled when the
    scope closes.
    """

    def __init__(
        self,
        grace_seconds: Optional[float] = None,
        clock: Callable[[], datetime] = _utcnow,
        sleep: Optional[Callable[[float], Awaitable]] = None,
        on_change: Optional[Callable[[QRDisplay], None]] = None,
        scope: Optional[PollingScope] = None,
    ):
        self.grace_seconds = settings.QR_CONSUMED_GRACE_SECONDS if grace_seconds is None else grace_seconds
        self._clock = clock
        self._sleep = sleep or asyncio.sleep
        self._on_change = on_change
        self._scope = scope
        self._armed = 0
        self._reservation: Optional[Reservation] = None
        self._timer: Optional[asyncio.Task] = None
        self._timer_key = None

    @property
    def reservation(self) -> Optional[Reservation]:
        return self._reservation

    def display(self) -> QRDisplay:
        return derive_qr_display(self._reservation, self._clock(), self.grace_seconds)

    def update(self, reservation: Reservation) -> QRDisplay:
        previous = self._reservation
        if previous is None or str(previous.id) != str(reservation.id):
            self.reset()
        elif previous.consumed_at is None and reservation.consumed_at is not None:
            logger.info(f"[QR] reservation {reservation.id} consumed at {reservation.consumed_at.isoformat()}")

        self._reservation = reservation
        display = self.display()
        self._arm(display)
        return display

    def reset(self):
        self._cancel_timer()
        self._reservation = None

    # ── timer ────────────────────────────────────────────────────────────
    def _arm(self, display: QRDisplay):
        if display.state != QRDisplayState.CONSUMED:
            self._cancel_timer()
            return
        key = (str(self._reservation.id), self._reservation.consumed_at)
        if self._timer is not None and not self._timer.done() and self._timer_key == key:
            return
        self._cancel_timer()
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop (synchronous caller): display() still hides on time when polled.
            return
        self._timer_key = key
        self._armed += 1
        coro = self._hide_after(display.hide_in, key[0])
        if self._scope is not None:
            self._timer = self._scope.start(f"qr-hide-{key[0]}-{self._armed}", coro)
        else:
            self._timer = asyncio.create_task(coro, name=f"qr-hide-{key[0]}")

    def _cancel_timer(self):
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None
        self._timer_key = None

    async def _hide_after(self, delay: float, reservation_id: str):
        while True:
            await self._sleep(delay)
            if self._reservation is None or str(self._reservation.id) != reservation_id:
                return
            display = self.display()
            if display.state == QRDisplayState.CONSUMED and display.hide_in:
                delay = display.hide_in
                continue
            logger.info(f"[QR] grace window over for {reservation_id} — hiding QR section")
            if self._on_change:
                self._on_change(display)
            return
