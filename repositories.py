"""
Typed repository interfaces, one per collection.

Managers depend on these abstractly; mongo_store and memory_store provide
the implementations. Repositories assign ids and timestamps and hide how
records are addressed in the store.
"""
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional

from schemas import Account, Authtoken, Userprofile, Skill, Session


class AccountRepository(ABC):
    @abstractmethod
    def create(self, email: str, password_hash: str) -> Account:
        ...

    @abstractmethod
    def get(self, user_id: str) -> Optional[Account]:
        ...

    @abstractmethod
    def find_by_email(self, email: str) -> Optional[Account]:
        """Case-insensitive lookup."""

    @abstractmethod
    def add_token(self, token: str, user_id: str, expires_at: datetime) -> Authtoken:
        ...

    @abstractmethod
    def get_token(self, token: str) -> Optional[Authtoken]:
        ...

    @abstractmethod
    def delete_token(self, token: str) -> None:
        ...


class ProfileRepository(ABC):
    @abstractmethod
    def create(self, user_id: str, profile: Userprofile) -> Userprofile:
        """Insert keyed by user_id. Raises StateError if one already exists."""

    @abstractmethod
    def get(self, user_id: str) -> Optional[Userprofile]:
        ...

    @abstractmethod
    def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[Userprofile]:
        """Merge `changes` and return the new record, or None if missing."""


class ListingRepository(ABC):
    @abstractmethod
    def create(self, listing: Skill) -> Skill:
        ...

    @abstractmethod
    def get(self, listing_id: str) -> Optional[Skill]:
        ...

    @abstractmethod
    def list_by_owner(self, owner_id: str) -> List[Skill]:
        ...

    @abstractmethod
    def list_all(self) -> List[Skill]:
        ...

    @abstractmethod
    def delete(self, listing_id: str) -> bool:
        ...


class SessionRepository(ABC):
    @abstractmethod
    def create(self, session: Session) -> Session:
        ...

    @abstractmethod
    def get(self, session_id: str) -> Optional[Session]:
        ...

    @abstractmethod
    def list_by_requester(self, user_id: str) -> List[Session]:
        ...

    @abstractmethod
    def list_by_provider(self, user_id: str) -> List[Session]:
        ...

    @abstractmethod
    def resolve(self, session_id: str, status: str, require_funds: bool = False) -> Session:
        """
        Move a pending session to `status` as one all-or-nothing operation.

        The session is re-read inside the operation and must still be
        pending (InvalidTransitionError otherwise). Approval stamps
        `scheduled_at` and, for credits sessions, moves the stored
        payment_amount from the requester's profile to the provider's.
        With `require_funds` the requester must hold at least that amount
        (InsufficientFundsError). A missing profile raises NotFoundError.
        On any error nothing is persisted.
        """


class Store:
    """The repositories a request works with, bundled per backend."""

    backend = "abstract"

    def __init__(
        self,
        accounts: AccountRepository,
        profiles: ProfileRepository,
        listings: ListingRepository,
        sessions: SessionRepository,
    ):
        self.accounts = accounts
        self.profiles = profiles
        self.listings = listings
        self.sessions = sessions

    def status(self) -> Dict[str, Any]:
        """Connectivity report for the /test endpoint."""
        return {"backend": self.backend}
