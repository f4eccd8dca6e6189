"""
Session manager: learners request sessions against listings, providers
approve or reject them.

Approval of a credits session moves the snapshotted amount from the
requester to the provider. The move, the status change and the pending
check happen in one repository call so they persist together or not at all.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Union

from config import settings
from errors import (
    AuthorizationError,
    InsufficientFundsError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from repositories import ProfileRepository, SessionRepository
from schemas import Session, Skill, TimeSlot, Userprofile

logger = logging.getLogger(__name__)

MAX_PREFERRED_SLOTS = 3
ROLES = ("requester", "provider")
TERMINAL_STATUSES = ("approved", "rejected")


def _clean_slots(preferred_slots: Iterable[Union[TimeSlot, Dict[str, Any], None]]) -> List[TimeSlot]:
    raw = list(preferred_slots or [])
    if len(raw) > MAX_PREFERRED_SLOTS:
        raise ValidationError(f"At most {MAX_PREFERRED_SLOTS} preferred times are allowed")

    slots = []
    for position, slot in enumerate(raw, start=1):
        if isinstance(slot, TimeSlot):
            slot = slot.model_dump()
        slot = slot or {}
        date = (slot.get("date") or "").strip()
        time = (slot.get("time") or "").strip()
        if not date and not time:
            if position == 1:
                raise ValidationError("Please give at least one preferred date and time")
            continue
        if not date or not time:
            raise ValidationError(f"Preferred time {position} needs both a date and a time")
        slots.append(TimeSlot(date=date, time=time))

    if not slots:
        raise ValidationError("Please give at least one preferred date and time")
    return slots


def request_session(
    sessions: SessionRepository,
    profiles: ProfileRepository,
    requester_id: str,
    requester_email: str,
    listing: Skill,
    preferred_slots: Iterable[Union[TimeSlot, Dict[str, Any], None]],
) -> Session:
    slots = _clean_slots(preferred_slots)
    if listing.owner_id == requester_id:
        raise ValidationError("You cannot request a session on your own skill")

    if listing.payment_mode == "credits":
        requester = profiles.get(requester_id)
        if requester is None:
            raise NotFoundError("Profile not found")
        if requester.credits < listing.payment_amount:
            raise InsufficientFundsError(requester.credits, listing.payment_amount)

    session = sessions.create(Session(
        listing_id=listing.id,
        listing_name=listing.name,
        provider_id=listing.owner_id,
        provider_email=listing.owner_email,
        requester_id=requester_id,
        requester_email=requester_email,
        payment_mode=listing.payment_mode,
        payment_amount=listing.payment_amount if listing.payment_mode == "credits" else 0,
        status="pending",
        preferred_slots=slots,
    ))
    logger.info(f"Session {session.id} requested by {requester_email} for '{listing.name}'")
    return session


def list_for_role(sessions: SessionRepository, user_id: str, role: str) -> List[Session]:
    if role == "requester":
        return sessions.list_by_requester(user_id)
    if role == "provider":
        return sessions.list_by_provider(user_id)
    raise ValidationError(f"Unknown role '{role}', expected one of: {', '.join(ROLES)}")


def set_status(
    sessions: SessionRepository,
    session_id: str,
    new_status: str,
    acting_provider_id: str,
    require_funds: Optional[bool] = None,
) -> Session:
    session = sessions.get(session_id)
    if session is None:
        raise NotFoundError("Session not found")
    if session.provider_id != acting_provider_id:
        logger.warning(f"User {acting_provider_id} tried to resolve session {session_id} of {session.provider_id}")
        raise AuthorizationError("Only the teacher can approve or reject this session")
    if session.status != "pending" or new_status not in TERMINAL_STATUSES:
        logger.warning(f"Rejected transition {session.status} -> {new_status} on session {session_id}")
        raise InvalidTransitionError(session.status, new_status)

    if require_funds is None:
        require_funds = settings.REVALIDATE_BALANCE_ON_APPROVAL
    resolved = sessions.resolve(session_id, new_status, require_funds=require_funds)
    logger.info(f"Session {session_id} {new_status}")
    return resolved


def summarize(
    user_sessions: List[Session],
    profile: Optional[Userprofile],
    available_listings: List[Skill],
) -> Dict[str, int]:
    """Dashboard counters for one user."""
    pending = sum(1 for s in user_sessions if s.status == "pending")
    approved = sum(1 for s in user_sessions if s.status == "approved")
    return {
        "credits": profile.credits if profile else 0,
        "available_skills": len(available_listings),
        "pending_sessions": pending,
        "approved_sessions": approved,
        "active_sessions": pending + approved,
    }
