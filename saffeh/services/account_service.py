# saffeh/services/account_service.py
"""
Account operations: sign-up, sign-in, password recovery, profile, activity.
Sign-in and sign-up persist token + user; sign-out clears both.
"""

import re
from typing import Optional

from saffeh.schemas.user import Activity, User
from saffeh.services.errors import ApiError, MalformedResponseError, ValidationError, as_terminal
from saffeh.services.gateway import parse_list, parse_payload
from saffeh.services.session import AuthenticatedSession
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
MIN_PASSWORD_LENGTH = 6
ACTIVITY_SORTS = ("newest", "oldest")


def _require_email(email: Optional[str]) -> str:
    email = (email or "").strip()
    if not email:
        raise ValidationError("Email is required", 0)
    if not EMAIL_RE.match(email):
        raise ValidationError("Please enter a valid email address", 0)
    return email.lower()


def _require_password(password: Optional[str]) -> str:
    password = (password or "").strip()
    if len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters long", 0)
    return password


class AccountService:
    def __init__(self, session: AuthenticatedSession):
        self.session = session

    async def signup(self, full_name: str, email: str, password: str, accepted_terms: bool) -> User:
        if not (full_name or "").strip():
            raise ValidationError("Name is required", 0)
        if not accepted_terms:
            raise ValidationError("You must accept the terms and conditions", 0)
        body = {
            "fullName": full_name.strip(),
            "email": _require_email(email),
            "password": _require_password(password),
            "acceptedTerms": True,
        }
        return await self._start_session("/auth/signup", body, "Sign up failed. Please try again.")

    async def login(self, email: str, password: str) -> User:
        if not (password or "").strip():
            raise ValidationError("Password is required", 0)
        body = {"email": _require_email(email), "password": password}
        return await self._start_session("/auth/login", body, "Login failed. Please try again.")

    async def forgot_password(self, email: str) -> str:
        data = await self._one_shot("/auth/forgot-password", "POST", {"email": _require_email(email)},
                                    "Could not send reset instructions.", public=True)
        return data.get("message", "")

    async def reset_password(self, token: str, new_password: str) -> str:
        if not (token or "").strip():
            raise ValidationError("Reset token is required", 0)
        body = {"token": token.strip(), "newPassword": _require_password(new_password)}
        data = await self._one_shot("/auth/reset-password", "POST", body,
                                    "Could not reset password.", public=True)
        return data.get("message", "")

    async def accept_terms(self) -> User:
        data = await self._one_shot("/auth/accept-terms", "POST", None, "Could not accept terms.")
        user = parse_payload(data, "user", User)
        self.session.store.save_user(data["user"])
        return user

    async def current_user(self) -> User:
        data = await self.session.request("/user/me")
        return parse_payload(data, "user", User)

    async def update_profile(self, full_name: str, email: str, password: Optional[str] = None) -> User:
        if not (full_name or "").strip():
            raise ValidationError("Name is required", 0)
        body = {"fullName": full_name.strip(), "email": _require_email(email)}
        if password and password.strip():
            body["password"] = _require_password(password)

        data = await self._one_shot("/user/me", "PATCH", body, "Failed to update profile. Please try again.")
        user = parse_payload(data, "user", User)
        self.session.store.save_user(data["user"])
        logger.info(f"👤 Profile updated for {user.email}")
        return user

    async def activities(self, sort: str = "newest") -> list[Activity]:
        if sort not in ACTIVITY_SORTS:
            raise ValidationError(f"sort must be one of {ACTIVITY_SORTS}", 0)
        data = await self.session.request(f"/activities?sort={sort}")
        return parse_list(data, "activities", Activity)

    def sign_out(self):
        self.session.store.clear()
        logger.info("👋 Signed out")

    # ── internals ────────────────────────────────────────────────────────
    async def _start_session(self, endpoint: str, body: dict, fallback: str) -> User:
        data = await self._one_shot(endpoint, "POST", body, fallback, public=True)
        user = parse_payload(data, "user", User)
        token = data.get("token")
        if not token:
            raise MalformedResponseError("Server did not return a session token", 0)
        self.session.store.save_session(token, data["user"])
        logger.info(f"🔑 Signed in as {user.email}")
        return user

    async def _one_shot(self, endpoint, method, body, fallback, public=False):
        try:
            if public:
                return await self.session.public_request(endpoint, method, body)
            return await self.session.request(endpoint, method, body)
        except ApiError as exc:
            err = as_terminal(exc, fallback)
            if err is exc:
                raise
            raise err from exc
