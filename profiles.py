"""Profile manager: create, read and edit user profiles."""
import logging
from typing import Any, Dict, Optional

from config import settings
from errors import NotFoundError, StateError, ValidationError
from repositories import AccountRepository, ProfileRepository
from schemas import PROFILE_FIELDS, Userprofile

logger = logging.getLogger(__name__)


def create_profile(
    profiles: ProfileRepository,
    accounts: AccountRepository,
    user_id: str,
    fields: Dict[str, Any],
    starting_credits: Optional[int] = None,
) -> Userprofile:
    account = accounts.get(user_id)
    if account is None:
        raise NotFoundError("Account not registered")
    name = fields.get("name")
    if not isinstance(name, str) or not name.strip():
        raise ValidationError("Please enter your name")
    if profiles.get(user_id) is not None:
        raise StateError("Profile already exists")

    profile = Userprofile(
        name=name.strip(),
        email=account.email,
        roll_number=fields.get("roll_number"),
        department=fields.get("department"),
        course=fields.get("course"),
        year=fields.get("year"),
        credits=settings.STARTING_CREDITS if starting_credits is None else starting_credits,
    )
    created = profiles.create(user_id, profile)
    logger.info(f"Profile created for {account.email} with {created.credits} credits")
    return created


def get_profile(profiles: ProfileRepository, user_id: str) -> Optional[Userprofile]:
    # Missing profile means onboarding is incomplete, not an error
    return profiles.get(user_id)


def update_profile(profiles: ProfileRepository, user_id: str, changes: Dict[str, Any]) -> Userprofile:
    if "credits" in changes:
        raise ValidationError("Credit balance cannot be edited")
    unknown = sorted(set(changes) - set(PROFILE_FIELDS))
    if unknown:
        raise ValidationError(f"Fields cannot be edited: {', '.join(unknown)}")
    for field, value in changes.items():
        if value is not None and not isinstance(value, str):
            raise ValidationError(f"{field} must be text")

    changes = dict(changes)
    if "name" in changes:
        changes["name"] = (changes["name"] or "").strip()
        if not changes["name"]:
            raise ValidationError("Please enter your name")

    if changes:
        updated = profiles.update(user_id, changes)
    else:
        updated = profiles.get(user_id)
    if updated is None:
        raise NotFoundError("Profile not found")
    logger.info(f"Profile updated for {user_id}: {', '.join(sorted(changes)) or 'no changes'}")
    return updated


def get_balance(profiles: ProfileRepository, user_id: str) -> int:
    profile = profiles.get(user_id)
    if profile is None:
        raise NotFoundError("Profile not found")
    return profile.credits
