# saffeh/services/credential_store.py
"""
Credential store — persists the auth token and the signed-in user.

Single writer (login / logout / profile update / 401 clear), many readers.
Backed by the `credentials` key/value table; a fresh DB session per call.
"""

import json
from datetime import datetime, timezone
from typing import Optional

from saffeh.database import SessionLocal, create_tables
from saffeh.models.credential import StoredCredential
from saffeh.utils.logger import get_logger

logger = get_logger(__name__)

TOKEN_KEY = "auth_token"
USER_KEY = "user"


class CredentialStore:
    def __init__(self, session_factory=SessionLocal):
        self._session_factory = session_factory
        # the credentials table must exist before the first read
        create_tables(bind=session_factory.kw.get("bind"))

    # ── token ────────────────────────────────────────────────────────────
    def get_token(self) -> Optional[str]:
        return self._read(TOKEN_KEY)

    def save_token(self, token: str):
        self._write(TOKEN_KEY, token)

    # ── user ─────────────────────────────────────────────────────────────
    def get_user(self) -> Optional[dict]:
        raw = self._read(USER_KEY)
        if raw is None:
            return None
        try:
            return json.loads(raw)
        except json.JSONDecodeError:
            logger.error("Stored user record is corrupt — ignoring it")
            return None

    def save_user(self, user: dict):
        self._write(USER_KEY, json.dumps(user, default=str))

    def save_session(self, token: str, user: dict):
        """Store token and user together (login / signup)."""
        db = self._session_factory()
        try:
            now = datetime.now(timezone.utc)
            db.merge(StoredCredential(key=TOKEN_KEY, value=token, updated_at=now))
            db.merge(StoredCredential(key=USER_KEY, value=json.dumps(user, default=str), updated_at=now))
            db.commit()
        finally:
            db.close()

    def clear(self):
        """Remove token and user. Called on sign-out and on any 401."""
        db = self._session_factory()
        try:
            deleted = (
                db.query(StoredCredential)
                .filter(StoredCredential.key.in_([TOKEN_KEY, USER_KEY]))
                .delete(synchronize_session=False)
            )
            db.commit()
        finally:
            db.close()
        if deleted:
            logger.info("🔒 Local credentials cleared")

    # ── internals ────────────────────────────────────────────────────────
    def _read(self, key: str) -> Optional[str]:
        db = self._session_factory()
        try:
            row = db.query(StoredCredential).filter(StoredCredential.key == key).first()
            return row.value if row else None
        finally:
            db.close()

    def _write(self, key: str, value: str):
        db = self._session_factory()
        try:
            db.merge(StoredCredential(key=key, value=value, updated_at=datetime.now(timezone.utc)))
            db.commit()
        finally:
            db.close()
