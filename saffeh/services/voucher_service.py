# saffeh/services/voucher_service.py
"""
Voucher book — cached `GET /vouchers` list.

Cancelling a reservation issues a refund voucher server-side, so the
reservation state machine calls `invalidate()` after every cancel; the next
read goes back to the network.
"""

from datetime import datetime
from typing import Iterable, Optional

from saffeh.schemas.voucher import Voucher
from saffeh.services.gateway import parse_list
from saffeh.services.session import AuthenticatedSession
from saffeh.services.voucher_filter import best_voucher, eligible_vouchers
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)


class VoucherBook:
    def __init__(self, session: AuthenticatedSession):
        self.session = session
        self._vouchers: Optional[list[Voucher]] = None

    @property
    def is_stale(self) -> bool:
        return self._vouchers is None

    def invalidate(self):
        if self._vouchers is not None:
            logger.info("🎟  Voucher list marked stale")
        self._vouchers = None

    async def refresh(self) -> list[Voucher]:
        data = await self.session.request("/vouchers")
        self._vouchers = parse_list(data, "vouchers", Voucher)
        logger.debug(f"Loaded {len(self._vouchers)} vouchers")
        return list(self._vouchers)

    async def all(self) -> list[Voucher]:
        if self._vouchers is None:
            return await self.refresh()
        return list(self._vouchers)

    async def eligible(self, active_reservation_ids: Iterable = (), now: Optional[datetime] = None) -> list[Voucher]:
        return eligible_vouchers(await self.all(), active_reservation_ids, now)

    async def best(self, active_reservation_ids: Iterable = (), now: Optional[datetime] = None) -> Optional[Voucher]:
        return best_voucher(await self.all(), active_reservation_ids, now)
