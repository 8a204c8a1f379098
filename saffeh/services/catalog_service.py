# saffeh/services/catalog_service.py
"""
Parking catalog — locations, their entry gates, and per-gate spots.

A spot is offered only when both the reservation-side `status` and the
camera-derived `cvStatus` read FREE. A gate whose spot list cannot be
fetched counts as having no free spots.
"""

import asyncio
from typing import Awaitable, Callable, Optional

from saffeh.config import settings
from saffeh.schemas.catalog import Gate, Location, Spot
from saffeh.services.errors import ApiError, AuthError
from saffeh.services.gateway import parse_list, parse_payload
from saffeh.services.polling import poll_every
from saffeh.services.session import AuthenticatedSession
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

FREE = "FREE"


def is_spot_free(spot: Spot) -> bool:
    return (spot.cv_status or "").upper() == FREE and spot.status == FREE


def free_spot_count(spots: list[Spot]) -> int:
    return sum(1 for s in spots if is_spot_free(s))


class CatalogService:
    def __init__(self, session: AuthenticatedSession):
        self.session = session

    async def locations(self) -> list[Location]:
        data = await self.session.public_request("/locations")
        return parse_list(data, "locations", Location)

    async def location(self, location_id) -> Location:
        data = await self.session.public_request(f"/locations/{location_id}")
        return parse_payload(data, "location", Location)

    async def gates(self, location_id) -> list[Gate]:
        data = await self.session.public_request(f"/locations/{location_id}/gates")
        return parse_list(data, "gates", Gate)

    async def spots(self, gate_id) -> list[Spot]:
        data = await self.session.request(f"/gates/{gate_id}/spots")
        return parse_list(data, "spots", Spot)

    async def gates_with_free_spots(self, location_id) -> dict[str, bool]:
        """gate id → whether it currently has at least one free spot."""
        availability = {}
        for gate in await self.gates(location_id):
            try:
                spots = await self.spots(gate.id)
            except AuthError:
                raise
            except ApiError as e:
                logger.warning(f"[CATALOG] spots for gate {gate.id} unavailable: {e!r}")
                spots = []
            availability[str(gate.id)] = free_spot_count(spots) > 0
        return availability

    async def first_available_gate(self, location_id) -> Optional[Gate]:
        """First gate with a free spot, else the first gate, else None."""
        gates = await self.gates(location_id)
        if not gates:
            return None
        availability = await self.gates_with_free_spots(location_id)
        return next((g for g in gates if availability.get(str(g.id))), gates[0])

    async def watch_spots(
        self,
        gate_id,
        on_update: Callable[[list[Spot]], None],
        interval: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable]] = None,
    ):
        """Push fresh spot lists to `on_update` until cancelled or signed out."""
        interval = interval if interval is not None else settings.SPOT_POLL_INTERVAL_SECONDS

        async def tick() -> bool:
            try:
                on_update(await self.spots(gate_id))
            except AuthError:
                logger.warning(f"[CATALOG] stop watching gate {gate_id}: re-authentication required")
                return True
            except ApiError as e:
                # Background refresh: never surfaced to the user
                logger.warning(f"[CATALOG] polling spots for gate {gate_id} failed: {e!r}")
            return False

        await poll_every(interval, tick, sleep or asyncio.sleep)

    async def watch_gates(
        self,
        location_id,
        on_update: Callable[[dict[str, bool]], None],
        interval: Optional[float] = None,
        sleep: Optional[Callable[[float], Awaitable]] = None,
    ):
        interval = interval if interval is not None else settings.GATE_POLL_INTERVAL_SECONDS

        async def tick() -> bool:
            try:
                on_update(await self.gates_with_free_spots(location_id))
            except AuthError:
                return True
            except ApiError as e:
                logger.warning(f"[CATALOG] polling gates for {location_id} failed: {e!r}")
            return False

        await poll_every(interval, tick, sleep or asyncio.sleep)
