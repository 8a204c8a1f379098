# tests/conftest.py
"""Shared fixtures: in-memory credential store and sandbox-backed services."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import httpx
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from saffeh.database import create_tables
from saffeh.sandbox.main import create_app
from saffeh.sandbox.state import SandboxState
from saffeh.services.credential_store import CredentialStore
from saffeh.services.gateway import BackendGateway
from saffeh.services.session import AuthenticatedSession

SANDBOX_API_KEY = "test-scanner-key"


@pytest.fixture
def store():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    create_tables(bind=engine)
    yield CredentialStore(sessionmaker(autocommit=False, autoflush=False, bind=engine))
    engine.dispose()


@pytest.fixture
def sandbox_state():
    state = SandboxState().seed()
    state.confirm_after_attempts = 3
    return state


@pytest.fixture
def sandbox_app(sandbox_state):
    return create_app(sandbox_state, api_key=SANDBOX_API_KEY)


@pytest.fixture
def sandbox_session(sandbox_app, store):
    gateway = BackendGateway(
        base_url="http://sandbox.test/api",
        transport=httpx.ASGITransport(app=sandbox_app),
    )
    return AuthenticatedSession(gateway, store)
