"""
Tests for identity.py - sign-up, sign-in and bearer tokens.
"""
from datetime import timedelta

import pytest

import identity
from database import now_utc
from errors import AuthenticationError, StateError, ValidationError


class TestPasswordHashing:
    def test_hash_round_trip(self):
        hashed = identity.hash_password("hunter22")
        assert hashed.startswith("pbkdf2_sha256$")
        assert identity.verify_password("hunter22", hashed)
        assert not identity.verify_password("hunter23", hashed)

    def test_salted(self):
        assert identity.hash_password("same") != identity.hash_password("same")

    def test_malformed_hash_does_not_verify(self):
        assert not identity.verify_password("anything", "not-a-hash")


class TestSignUp:
    def test_creates_account_with_normalized_email(self, store):
        account = identity.sign_up(store.accounts, "  Ada@Example.COM ", "secret123")
        assert account.email == "ada@example.com"
        assert account.id
        assert store.accounts.get(account.id) == account

    def test_duplicate_email_rejected(self, store):
        identity.sign_up(store.accounts, "ada@example.com", "secret123")
        with pytest.raises(StateError):
            identity.sign_up(store.accounts, "ADA@example.com", "other-secret")

    @pytest.mark.parametrize("email,password", [
        ("", "secret123"),
        ("not-an-email", "secret123"),
        ("ada@example.com", "short"),
    ])
    def test_invalid_input_rejected(self, store, email, password):
        with pytest.raises(ValidationError):
            identity.sign_up(store.accounts, email, password)


class TestSignIn:
    def test_issues_token_that_resolves(self, store):
        account = identity.sign_up(store.accounts, "ada@example.com", "secret123")
        token, signed_in = identity.sign_in(store.accounts, "ada@example.com", "secret123")
        assert signed_in.id == account.id
        assert identity.resolve_token(store.accounts, token).id == account.id

    def test_wrong_password(self, store):
        identity.sign_up(store.accounts, "ada@example.com", "secret123")
        with pytest.raises(AuthenticationError):
            identity.sign_in(store.accounts, "ada@example.com", "wrong-password")

    def test_unknown_email(self, store):
        with pytest.raises(AuthenticationError):
            identity.sign_in(store.accounts, "nobody@example.com", "secret123")


class TestTokens:
    def test_missing_token(self, store):
        with pytest.raises(AuthenticationError):
            identity.resolve_token(store.accounts, None)

    def test_unknown_token(self, store):
        with pytest.raises(AuthenticationError):
            identity.resolve_token(store.accounts, "not-issued")

    def test_expired_token(self, store):
        account = identity.sign_up(store.accounts, "ada@example.com", "secret123")
        store.accounts.add_token("stale", account.id, now_utc() - timedelta(seconds=1))
        with pytest.raises(AuthenticationError):
            identity.resolve_token(store.accounts, "stale")

    def test_sign_out_revokes(self, store):
        identity.sign_up(store.accounts, "ada@example.com", "secret123")
        token, _ = identity.sign_in(store.accounts, "ada@example.com", "secret123")
        identity.sign_out(store.accounts, token)
        with pytest.raises(AuthenticationError):
            identity.resolve_token(store.accounts, token)

    def test_sign_out_unknown_token_is_ignored(self, store):
        identity.sign_out(store.accounts, "never-issued")
