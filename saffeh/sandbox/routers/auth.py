# saffeh/sandbox/routers/auth.py
"""Sign-up, sign-in, password recovery, profile and activity log."""

import secrets

from fastapi import APIRouter, Depends, HTTPException

from saffeh.sandbox.deps import current_account, get_state
from saffeh.sandbox.schemas import ForgotPasswordIn, LoginIn, ProfileUpdate, ResetPasswordIn, SignupIn
from saffeh.sandbox.state import Account, SandboxState, hash_password
from saffeh.services.account_service import EMAIL_RE, MIN_PASSWORD_LENGTH
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

router = APIRouter()


def user_json(account: Account) -> dict:
    return account.user.model_dump(by_alias=True, mode="json")


def _check_password(password: str):
    if len(password or "") < MIN_PASSWORD_LENGTH:
        raise HTTPException(status_code=400, detail=f"Password must be at least {MIN_PASSWORD_LENGTH} characters long")


@router.post("/auth/signup", status_code=201, summary="Create an account")
def signup(body: SignupIn, state: SandboxState = Depends(get_state)):
    if not body.accepted_terms:
        raise HTTPException(status_code=400, detail="You must accept the terms and conditions")
    if not EMAIL_RE.match(body.email):
        raise HTTPException(status_code=400, detail="Please enter a valid email address")
    _check_password(body.password)
    if state.find_account_by_email(body.email):
        raise HTTPException(status_code=409, detail="An account with this email already exists")

    account = state.create_account(body.full_name, body.email, body.password, body.accepted_terms)
    user_id = str(account.user.id)
    state.log(user_id, "SIGNUP", "user", user_id)
    logger.info(f"👤 [SANDBOX] signup {account.user.email}")
    return {"user": user_json(account), "token": state.issue_token(user_id)}


@router.post("/auth/login", summary="Sign in")
def login(body: LoginIn, state: SandboxState = Depends(get_state)):
    account = state.find_account_by_email(body.email)
    if account is None or account.password_hash != hash_password(body.password):
        raise HTTPException(status_code=401, detail="Invalid email or password")
    user_id = str(account.user.id)
    state.log(user_id, "LOGIN", "user", user_id)
    return {"user": user_json(account), "token": state.issue_token(user_id)}


@router.post("/auth/forgot-password", summary="Send password reset instructions")
def forgot_password(body: ForgotPasswordIn, state: SandboxState = Depends(get_state)):
    response = {"message": "If an account exists for this email, reset instructions have been sent"}
    account = state.find_account_by_email(body.email)
    if account is not None:
        token = secrets.token_hex(16)
        state.reset_tokens[token] = str(account.user.id)
        # No mail in the sandbox: the token is returned and logged instead
        logger.info(f"✉️  [SANDBOX] reset token for {account.user.email}: {token}")
        response["resetToken"] = token
    return response


@router.post("/auth/reset-password", summary="Set a new password with a reset token")
def reset_password(body: ResetPasswordIn, state: SandboxState = Depends(get_state)):
    user_id = state.reset_tokens.get(body.token)
    if user_id is None or user_id not in state.accounts:
        raise HTTPException(status_code=400, detail="Invalid or expired reset token")
    _check_password(body.new_password)
    state.accounts[user_id].password_hash = hash_password(body.new_password)
    del state.reset_tokens[body.token]
    state.log(user_id, "PASSWORD_RESET", "user", user_id)
    return {"message": "Password has been reset"}


@router.post("/auth/accept-terms", summary="Accept the terms and conditions")
def accept_terms(account: Account = Depends(current_account), state: SandboxState = Depends(get_state)):
    account.user = account.user.model_copy(update={"has_accepted_terms": True})
    state.log(str(account.user.id), "TERMS_ACCEPTED", "user", str(account.user.id))
    return {"user": user_json(account)}


@router.get("/user/me", summary="Current user")
def me(account: Account = Depends(current_account)):
    return {"user": user_json(account)}


@router.patch("/user/me", summary="Update profile")
def update_me(
    body: ProfileUpdate,
    account: Account = Depends(current_account),
    state: SandboxState = Depends(get_state),
):
    updates = {}
    if body.full_name is not None:
        if not body.full_name.strip():
            raise HTTPException(status_code=400, detail="Name is required")
        updates["full_name"] = body.full_name.strip()
    if body.email is not None:
        email = body.email.strip().lower()
        if not EMAIL_RE.match(email):
            raise HTTPException(status_code=400, detail="Please enter a valid email address")
        other = state.find_account_by_email(email)
        if other is not None and other is not account:
            raise HTTPException(status_code=409, detail="Email is already in use")
        updates["email"] = email
    if body.password:
        _check_password(body.password)
        account.password_hash = hash_password(body.password)

    account.user = account.user.model_copy(update=updates)
    state.log(str(account.user.id), "PROFILE_UPDATED", "user", str(account.user.id))
    return {"user": user_json(account)}


@router.get("/activities", summary="Activity log")
def activities(
    sort: str = "newest",
    account: Account = Depends(current_account),
    state: SandboxState = Depends(get_state),
):
    if sort not in ("newest", "oldest"):
        raise HTTPException(status_code=400, detail="sort must be 'newest' or 'oldest'")
    mine = [a for owner, a in state.activities if owner == str(account.user.id)]
    mine.sort(key=lambda a: a.created_at, reverse=(sort == "newest"))
    return {"activities": [a.model_dump(by_alias=True, mode="json") for a in mine]}
