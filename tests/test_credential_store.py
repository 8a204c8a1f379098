# tests/test_credential_store.py
"""Unit tests for the credential store and the authenticated session."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from unittest.mock import AsyncMock, MagicMock
from sqlalchemy import create_engine, inspect
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from saffeh.services.credential_store import USER_KEY, CredentialStore
from saffeh.services.errors import AuthError, NetworkError
from saffeh.services.session import AuthenticatedSession


class TestCredentialStore:
    def test_empty_store(self, store):
        assert store.get_token() is None
        assert store.get_user() is None

    def test_save_and_read_session(self, store):
        store.save_session("abc123", {"id": 7, "email": "lina@example.com"})

        assert store.get_token() == "abc123"
        assert store.get_user() == {"id": 7, "email": "lina@example.com"}

    def test_save_token_overwrites(self, store):
        store.save_token("first")
        store.save_token("second")

        assert store.get_token() == "second"

    def test_clear_removes_both(self, store):
        store.save_session("abc123", {"id": 7})
        store.clear()

        assert store.get_token() is None
        assert store.get_user() is None

    def test_corrupt_user_reads_as_none(self, store):
        store._write(USER_KEY, "{not json")

        assert store.get_user() is None

    def test_creates_its_table_on_a_fresh_database(self):
        engine = create_engine("sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool)
        store = CredentialStore(sessionmaker(bind=engine))

        assert "credentials" in inspect(engine).get_table_names()
        assert store.get_token() is None
        store.save_token("abc123")
        assert store.get_token() == "abc123"
        engine.dispose()


class TestAuthenticatedSession:
    @pytest.mark.asyncio
    async def test_not_signed_in_raises_without_network(self, store):
        gateway = MagicMock()
        gateway.request = AsyncMock()
        session = AuthenticatedSession(gateway, store)

        with pytest.raises(AuthError):
            await session.request("/user/me")

        gateway.request.assert_not_called()

    @pytest.mark.asyncio
    async def test_token_forwarded(self, store):
        store.save_token("tok")
        gateway = MagicMock()
        gateway.request = AsyncMock(return_value={"user": {}})
        session = AuthenticatedSession(gateway, store)

        await session.request("/user/me")

        gateway.request.assert_awaited_once_with("/user/me", "GET", None, token="tok")

    @pytest.mark.asyncio
    async def test_401_clears_credentials(self, store):
        store.save_session("tok", {"id": 1})
        gateway = MagicMock()
        gateway.request = AsyncMock(side_effect=AuthError("Token expired", 401))
        session = AuthenticatedSession(gateway, store)

        with pytest.raises(AuthError):
            await session.request("/reservations/mine")

        assert store.get_token() is None
        assert store.get_user() is None
        assert not session.is_signed_in

    @pytest.mark.asyncio
    async def test_other_errors_keep_credentials(self, store):
        store.save_session("tok", {"id": 1})
        gateway = MagicMock()
        gateway.request = AsyncMock(side_effect=NetworkError("offline", 0))
        session = AuthenticatedSession(gateway, store)

        with pytest.raises(NetworkError):
            await session.request("/reservations/mine")

        assert store.get_token() == "tok"
