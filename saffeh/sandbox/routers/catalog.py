# saffeh/sandbox/routers/catalog.py
"""Locations, gates and per-gate spots."""

from fastapi import APIRouter, Depends, HTTPException

from saffeh.sandbox.deps import current_account, get_state
from saffeh.sandbox.state import SandboxState

router = APIRouter()


def _dump(model) -> dict:
    return model.model_dump(by_alias=True, mode="json")


def _location_or_404(state: SandboxState, location_id: str):
    location = state.locations.get(location_id)
    if location is None:
        raise HTTPException(status_code=404, detail="Location not found")
    return location


@router.get("/locations", summary="List parking locations")
def list_locations(state: SandboxState = Depends(get_state)):
    return {"locations": [_dump(loc) for loc in state.locations.values()]}


@router.get("/locations/{location_id}", summary="One parking location")
def get_location(location_id: str, state: SandboxState = Depends(get_state)):
    return {"location": _dump(_location_or_404(state, location_id))}


@router.get("/locations/{location_id}/gates", summary="Entry gates of a location")
def list_gates(location_id: str, state: SandboxState = Depends(get_state)):
    location = _location_or_404(state, location_id)
    gates = [g for g in state.gates.values() if str(g.location_id) == location_id]
    return {"location": _dump(location), "gates": [_dump(g) for g in gates]}


@router.get("/gates/{gate_id}/spots", summary="Spots behind a gate", dependencies=[Depends(current_account)])
def list_spots(gate_id: str, state: SandboxState = Depends(get_state)):
    if gate_id not in state.gates:
        raise HTTPException(status_code=404, detail="Gate not found")
    return {"spots": [_dump(s) for s in state.spots.get(gate_id, [])]}
