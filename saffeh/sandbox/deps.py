# saffeh/sandbox/deps.py
"""FastAPI dependencies shared by the sandbox routers."""

from typing import Optional

from fastapi import Depends, Header, HTTPException, Request

from saffeh.sandbox.state import Account, SandboxState


def get_state(request: Request) -> SandboxState:
    return request.app.state.sandbox


def current_account(
    authorization: Optional[str] = Header(None),
    state: SandboxState = Depends(get_state),
) -> Account:
    """Resolve `Authorization: Bearer <token>` to an account, else 401."""
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=401, detail="Authentication required")
    account = state.user_for_token(authorization[7:].strip())
    if account is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return account


def owned_reservation_id(reservation_id: str, account: Account, state: SandboxState) -> str:
    if state.owners.get(reservation_id) != str(account.user.id):
        raise HTTPException(status_code=404, detail="Reservation not found")
    return reservation_id
