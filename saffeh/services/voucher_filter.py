# saffeh/services/voucher_filter.py
"""
Voucher eligibility — which vouchers can be offered as a discount right now.

A voucher is excluded when it is used (`used` or `usedAt`), expired
(`expiresAt` <= now), or already earmarked for a reservation that is still
in flight. The last rule keeps one voucher from showing up as redeemable
for two reservations before the backend flags it used.
"""

from datetime import datetime, timezone
from typing import Iterable, Optional

from saffeh.schemas.voucher import Voucher, VoucherStatus


def eligible_vouchers(
    vouchers: Iterable[Voucher],
    active_reservation_ids: Iterable = (),
    now: Optional[datetime] = None,
) -> list[Voucher]:
    now = now or datetime.now(timezone.utc)
    earmarked = {str(rid) for rid in active_reservation_ids}
    return [
        v for v in vouchers
        if v.status(now) == VoucherStatus.AVAILABLE
        and not (v.reservation_id is not None and str(v.reservation_id) in earmarked)
    ]


def best_voucher(
    vouchers: Iterable[Voucher],
    active_reservation_ids: Iterable = (),
    now: Optional[datetime] = None,
) -> Optional[Voucher]:
    """Highest percentage wins; on a tie the earliest in input order."""
    candidates = eligible_vouchers(vouchers, active_reservation_ids, now)
    if not candidates:
        return None
    return max(candidates, key=lambda v: v.percentage)
