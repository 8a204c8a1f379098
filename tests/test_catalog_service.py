# tests/test_catalog_service.py
"""Unit tests for spot availability and the catalog service."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import AsyncMock, MagicMock
from saffeh.schemas.catalog import Spot
from saffeh.services.catalog_service import CatalogService, free_spot_count, is_spot_free
from saffeh.services.errors import ApiError, AuthError

GATES = {"gates": [{"id": 1, "name": "North"}, {"id": 2, "name": "South"}]}


def spot(status="FREE", cv="FREE"):
    return Spot(id=1, status=status, cv_status=cv)


def make_service(public=None, private=None):
    session = MagicMock()
    session.public_request = AsyncMock(side_effect=public)
    session.request = AsyncMock(side_effect=private)
    return CatalogService(session), session


class TestSpotAvailability:
    def test_both_free(self):
        assert is_spot_free(spot())

    def test_cv_status_case_insensitive(self):
        assert is_spot_free(spot(cv="free"))

    def test_reserved_spot_not_free(self):
        assert not is_spot_free(spot(status="RESERVED"))

    def test_camera_occupied_not_free(self):
        assert not is_spot_free(spot(cv="OCCUPIED"))

    def test_missing_cv_status_not_free(self):
        assert not is_spot_free(spot(cv=None))

    def test_count(self):
        assert free_spot_count([spot(), spot(cv="occupied"), spot()]) == 2


class TestCatalogService:
    @pytest.mark.asyncio
    async def test_locations_are_public(self):
        service, session = make_service(public=[{"locations": [{"id": 1, "name": "Downtown"}]}])

        locations = await service.locations()

        assert locations[0].name == "Downtown"
        session.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_gate_with_failing_spots_counts_unavailable(self):
        service, _ = make_service(
            public=[GATES],
            private=[{"spots": [{"id": 1, "status": "FREE", "cvStatus": "FREE"}]}, ApiError("boom", 500)],
        )

        assert await service.gates_with_free_spots("loc1") == {"1": True, "2": False}

    @pytest.mark.asyncio
    async def test_gate_availability_reraises_auth(self):
        service, _ = make_service(public=[GATES], private=AuthError("expired", 401))

        with pytest.raises(AuthError):
            await service.gates_with_free_spots("loc1")

    @pytest.mark.asyncio
    async def test_first_available_gate(self):
        service, _ = make_service(
            public=[GATES, GATES],
            private=[
                {"spots": [{"id": 1, "status": "FREE", "cvStatus": "OCCUPIED"}]},
                {"spots": [{"id": 2, "status": "FREE", "cvStatus": "FREE"}]},
            ],
        )

        gate = await service.first_available_gate("loc1")

        assert gate.id == 2

    @pytest.mark.asyncio
    async def test_first_available_gate_falls_back_to_first(self):
        service, _ = make_service(public=[GATES, GATES], private=[{"spots": []}, {"spots": []}])

        assert (await service.first_available_gate("loc1")).id == 1

    @pytest.mark.asyncio
    async def test_no_gates(self):
        service, _ = make_service(public=[{"gates": []}])

        assert await service.first_available_gate("loc1") is None

    @pytest.mark.asyncio
    async def test_watch_spots_survives_errors_and_stops_on_401(self):
        service, session = make_service(private=[
            {"spots": [{"id": 1, "status": "FREE", "cvStatus": "FREE"}]},
            ApiError("Bad gateway", 502),
            {"spots": []},
            AuthError("expired", 401),
        ])
        updates = []
        sleeps = []

        async def fake_sleep(seconds):
            sleeps.append(seconds)

        await service.watch_spots(1, updates.append, interval=2, sleep=fake_sleep)

        assert [len(u) for u in updates] == [1, 0]
        assert sleeps == [2, 2, 2]
        assert session.request.await_count == 4
