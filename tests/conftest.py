from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from app.main import app
from app.repos.credential_store import InMemoryCredentialStore
from app.services import token_service
from app.services.credential_registry import CredentialRegistry, credential_registry

ALICE = "did:example:alice"
BOB = "did:example:bob"
CAROL = "did:example:carol"


@pytest.fixture(autouse=True)
def fresh_credential_store(monkeypatch: pytest.MonkeyPatch) -> InMemoryCredentialStore:
    """Give the app's registry an empty in-memory store for every test."""
    store = InMemoryCredentialStore()
    monkeypatch.setattr(credential_registry, "_store", store)
    return store


@pytest.fixture
def registry() -> CredentialRegistry:
    """A registry of its own, independent of the app singleton."""
    return CredentialRegistry(InMemoryCredentialStore())


@pytest.fixture
def client() -> TestClient:
    return TestClient(app)


def mint_token(username: str = ALICE, ttl_minutes: int = 15) -> str:
    """Create a valid ES256 JWT for testing."""
    return token_service.create_access_token(sub=username, ttl_minutes=ttl_minutes)


def auth(username: str = ALICE) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(username)}"}
