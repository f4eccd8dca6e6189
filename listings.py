"""
Listing manager: skills users offer, priced in credits or as a favor.

filter_listings and search_listings are pure; everything else goes through
a ListingRepository passed in by the caller.
"""
import logging
from typing import Any, Dict, List, Optional

from errors import AuthorizationError, NotFoundError, ValidationError
from repositories import ListingRepository
from schemas import PAYMENT_MODES, SESSION_MODES, Skill

logger = logging.getLogger(__name__)


def validate_listing(fields: Dict[str, Any]) -> Dict[str, Any]:
    """Check a listing draft and return the cleaned values to store."""
    name = (fields.get("name") or "").strip()
    description = (fields.get("description") or "").strip()
    payment_mode = fields.get("payment_mode")
    session_mode = fields.get("session_mode")
    amount = fields.get("payment_amount")

    if not name:
        raise ValidationError("Please enter a skill name")
    if not description:
        raise ValidationError("Please enter a skill description")
    if payment_mode not in PAYMENT_MODES:
        raise ValidationError("Please select a payment type")
    if session_mode not in SESSION_MODES:
        raise ValidationError("Please select a session type")

    if payment_mode == "credits":
        if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
            raise ValidationError("Please enter a valid payment amount")
    else:
        amount = 0

    return {
        "name": name,
        "description": description,
        "payment_mode": payment_mode,
        "payment_amount": amount,
        "session_mode": session_mode,
    }


def create_listing(listings: ListingRepository, owner_id: str, owner_email: str, fields: Dict[str, Any]) -> Skill:
    cleaned = validate_listing(fields)
    listing = listings.create(Skill(owner_id=owner_id, owner_email=owner_email, **cleaned))
    logger.info(f"Listing {listing.id} '{listing.name}' created by {owner_email}")
    return listing


def get_listing(listings: ListingRepository, listing_id: str) -> Skill:
    listing = listings.get(listing_id)
    if listing is None:
        raise NotFoundError("Skill not found")
    return listing


def list_by_owner(listings: ListingRepository, owner_id: str) -> List[Skill]:
    return listings.list_by_owner(owner_id)


def list_all(listings: ListingRepository, excluding_owner_id: Optional[str] = None) -> List[Skill]:
    # Full collection scan; owner exclusion happens here, not in the store
    everything = listings.list_all()
    logger.debug(f"Scanned {len(everything)} listings")
    if excluding_owner_id is None:
        return everything
    return [s for s in everything if s.owner_id != excluding_owner_id]


def delete_listing(listings: ListingRepository, listing_id: str, requester_id: str) -> None:
    listing = listings.get(listing_id)
    if listing is None:
        raise NotFoundError("Skill not found")
    if listing.owner_id != requester_id:
        logger.warning(f"User {requester_id} tried to delete listing {listing_id} owned by {listing.owner_id}")
        raise AuthorizationError("Only the owner can delete this skill")
    if not listings.delete(listing_id):
        raise NotFoundError("Skill not found")
    logger.info(f"Listing {listing_id} deleted by {requester_id}")


def filter_listings(
    listings: List[Skill],
    payment_mode: Optional[str] = None,
    session_mode: Optional[str] = None,
) -> List[Skill]:
    result = list(listings)
    if payment_mode:
        result = [s for s in result if s.payment_mode == payment_mode]
    if session_mode:
        result = [s for s in result if s.session_mode == session_mode]
    return result


def search_listings(listings: List[Skill], term: Optional[str]) -> List[Skill]:
    term = (term or "").strip().lower()
    if not term:
        return list(listings)
    return [
        s for s in listings
        if term in s.name.lower() or term in s.description.lower() or term in s.owner_email.lower()
    ]
