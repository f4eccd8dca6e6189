"""Shared fixtures: an in-memory store and a helper that onboards users."""
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).parent.parent))

import identity
import profiles
from memory_store import MemoryStore

PASSWORD = "secret123"


@pytest.fixture(autouse=True)
def fast_password_hashing(monkeypatch):
    """Keep PBKDF2 cheap in tests."""
    monkeypatch.setattr(identity, "PBKDF2_ITERATIONS", 1000)


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def make_user(store):
    """Register an account and its profile, return the account."""
    def _make(email, name="Test User", credits=None):
        account = identity.sign_up(store.accounts, email, PASSWORD)
        profiles.create_profile(store.profiles, store.accounts, account.id, {"name": name}, starting_credits=credits)
        return account
    return _make
