"""
Email/password identity.

Issues the stable user id every profile, listing and session refers to, and
opaque bearer tokens that stand for the signed-in session.
"""
import hashlib
import hmac
import logging
import os
from datetime import timedelta
from typing import Optional, Tuple
from uuid import uuid4

from config import settings
from database import now_utc
from errors import AuthenticationError, StateError, ValidationError
from repositories import AccountRepository
from schemas import Account

logger = logging.getLogger(__name__)

PBKDF2_ITERATIONS = 200_000
MIN_PASSWORD_LENGTH = 6


def hash_password(password: str) -> str:
    salt = os.urandom(16)
    digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), salt, PBKDF2_ITERATIONS)
    return f"pbkdf2_sha256${PBKDF2_ITERATIONS}${salt.hex()}${digest.hex()}"


def verify_password(password: str, password_hash: str) -> bool:
    try:
        _, iterations, salt, expected = password_hash.split("$")
        digest = hashlib.pbkdf2_hmac("sha256", password.encode("utf-8"), bytes.fromhex(salt), int(iterations))
    except ValueError:
        return False
    return hmac.compare_digest(digest.hex(), expected)


def normalize_email(email: str) -> str:
    return (email or "").strip().lower()


def sign_up(accounts: AccountRepository, email: str, password: str) -> Account:
    email = normalize_email(email)
    if not email or "@" not in email:
        raise ValidationError("A valid email is required")
    if not password or len(password) < MIN_PASSWORD_LENGTH:
        raise ValidationError(f"Password must be at least {MIN_PASSWORD_LENGTH} characters")
    if accounts.find_by_email(email):
        raise StateError("Email already registered")

    account = accounts.create(email, hash_password(password))
    logger.info(f"New account registered: {account.email}")
    return account


def sign_in(accounts: AccountRepository, email: str, password: str,
            ttl_days: Optional[int] = None) -> Tuple[str, Account]:
    account = accounts.find_by_email(normalize_email(email))
    if not account or not verify_password(password or "", account.password_hash):
        raise AuthenticationError("Incorrect email or password")

    token = str(uuid4())
    ttl = settings.TOKEN_TTL_DAYS if ttl_days is None else ttl_days
    accounts.add_token(token, account.id, now_utc() + timedelta(days=ttl))
    logger.info(f"User signed in: {account.email}")
    return token, account


def sign_out(accounts: AccountRepository, token: str) -> None:
    accounts.delete_token(token)


def resolve_token(accounts: AccountRepository, token: Optional[str]) -> Account:
    """Return the account behind a bearer token, or raise AuthenticationError."""
    if not token:
        raise AuthenticationError("Not authenticated")
    issued = accounts.get_token(token)
    if issued is None or issued.expires_at <= now_utc():
        raise AuthenticationError("Could not validate credentials")
    account = accounts.get(issued.user_id)
    if account is None:
        raise AuthenticationError("Could not validate credentials")
    return account
