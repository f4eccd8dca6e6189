"""
In-process implementation of the repositories, for tests and local runs
(STORE_BACKEND=memory). Multi-record writes snapshot the collections under
a lock and restore them if anything raises.
"""
import copy
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from database import now_utc
from errors import InsufficientFundsError, InvalidTransitionError, NotFoundError, StateError
from repositories import (
    AccountRepository,
    ListingRepository,
    ProfileRepository,
    SessionRepository,
    Store,
)
from schemas import Account, Authtoken, Session, Skill, Userprofile

logger = logging.getLogger(__name__)


class MemoryDatabase:
    def __init__(self):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}

    def collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def collection_names(self) -> List[str]:
        return sorted(self._collections)

    @contextmanager
    def locked(self):
        with self._lock:
            yield self

    @contextmanager
    def transaction(self):
        with self._lock:
            snapshot = copy.deepcopy(self._collections)
            try:
                yield self
            except Exception:
                self._collections.clear()
                self._collections.update(snapshot)
                raise

    def insert(self, name: str, record_id: str, data: Dict[str, Any]) -> Dict[str, Any]:
        with self._lock:
            records = self.collection(name)
            if record_id in records:
                raise KeyError(record_id)
            doc = copy.deepcopy(data)
            doc["id"] = record_id
            doc["created_at"] = now_utc()
            records[record_id] = doc
            return copy.deepcopy(doc)

    def find(self, name: str, record_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            doc = self.collection(name).get(record_id)
            return copy.deepcopy(doc) if doc is not None else None

    def scan(self, name: str, **equals) -> List[Dict[str, Any]]:
        with self._lock:
            return [
                copy.deepcopy(doc)
                for doc in self.collection(name).values()
                if all(doc.get(k) == v for k, v in equals.items())
            ]


class MemoryAccountRepository(AccountRepository):
    def __init__(self, database: MemoryDatabase):
        self._db = database

    def create(self, email: str, password_hash: str) -> Account:
        with self._db.locked():
            if self.find_by_email(email):
                raise StateError("Email already registered")
            doc = self._db.insert("account", uuid4().hex, {"email": email, "password_hash": password_hash})
        return Account(**doc)

    def get(self, user_id: str) -> Optional[Account]:
        doc = self._db.find("account", user_id)
        return Account(**doc) if doc else None

    def find_by_email(self, email: str) -> Optional[Account]:
        docs = self._db.scan("account", email=email.strip().lower())
        return Account(**docs[0]) if docs else None

    def add_token(self, token: str, user_id: str, expires_at: datetime) -> Authtoken:
        doc = self._db.insert("authtoken", token, {"token": token, "user_id": user_id, "expires_at": expires_at})
        doc.pop("id")
        return Authtoken(**doc)

    def get_token(self, token: str) -> Optional[Authtoken]:
        doc = self._db.find("authtoken", token)
        if not doc:
            return None
        doc.pop("id")
        return Authtoken(**doc)

    def delete_token(self, token: str) -> None:
        with self._db.locked():
            self._db.collection("authtoken").pop(token, None)


class MemoryProfileRepository(ProfileRepository):
    def __init__(self, database: MemoryDatabase):
        self._db = database

    def create(self, user_id: str, profile: Userprofile) -> Userprofile:
        try:
            doc = self._db.insert("userprofile", user_id, profile.model_dump(exclude={"id", "created_at"}))
        except KeyError:
            raise StateError("Profile already exists")
        return Userprofile(**doc)

    def get(self, user_id: str) -> Optional[Userprofile]:
        doc = self._db.find("userprofile", user_id)
        return Userprofile(**doc) if doc else None

    def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[Userprofile]:
        with self._db.locked():
            doc = self._db.collection("userprofile").get(user_id)
            if doc is None:
                return None
            doc.update(copy.deepcopy(changes))
            return Userprofile(**copy.deepcopy(doc))


class MemoryListingRepository(ListingRepository):
    def __init__(self, database: MemoryDatabase):
        self._db = database

    def create(self, listing: Skill) -> Skill:
        doc = self._db.insert("skill", uuid4().hex, listing.model_dump(exclude={"id", "created_at"}))
        return Skill(**doc)

    def get(self, listing_id: str) -> Optional[Skill]:
        doc = self._db.find("skill", listing_id)
        return Skill(**doc) if doc else None

    def list_by_owner(self, owner_id: str) -> List[Skill]:
        return [Skill(**d) for d in self._db.scan("skill", owner_id=owner_id)]

    def list_all(self) -> List[Skill]:
        return [Skill(**d) for d in self._db.scan("skill")]

    def delete(self, listing_id: str) -> bool:
        with self._db.locked():
            return self._db.collection("skill").pop(listing_id, None) is not None


class MemorySessionRepository(SessionRepository):
    def __init__(self, database: MemoryDatabase):
        self._db = database

    def create(self, session: Session) -> Session:
        doc = self._db.insert("session", uuid4().hex, session.model_dump(exclude={"id", "created_at"}))
        return Session(**doc)

    def get(self, session_id: str) -> Optional[Session]:
        doc = self._db.find("session", session_id)
        return Session(**doc) if doc else None

    def list_by_requester(self, user_id: str) -> List[Session]:
        return [Session(**d) for d in self._db.scan("session", requester_id=user_id)]

    def list_by_provider(self, user_id: str) -> List[Session]:
        return [Session(**d) for d in self._db.scan("session", provider_id=user_id)]

    def resolve(self, session_id: str, status: str, require_funds: bool = False) -> Session:
        with self._db.transaction() as db:
            doc = db.collection("session").get(session_id)
            if doc is None:
                raise NotFoundError("Session not found")
            if doc["status"] != "pending":
                raise InvalidTransitionError(doc["status"], status)

            doc["status"] = status
            if status == "approved":
                doc["scheduled_at"] = now_utc()

            amount = int(doc.get("payment_amount") or 0)
            if status == "approved" and doc["payment_mode"] == "credits" and amount > 0:
                self._transfer(db, doc["requester_id"], doc["provider_id"], amount, require_funds)
            return Session(**copy.deepcopy(doc))

    def _transfer(self, db: MemoryDatabase, payer_id: str, payee_id: str, amount: int, require_funds: bool):
        profiles = db.collection("userprofile")
        payer = profiles.get(payer_id)
        if payer is None:
            raise NotFoundError("Requester profile not found")
        if require_funds and payer["credits"] < amount:
            raise InsufficientFundsError(payer["credits"], amount)
        payer["credits"] -= amount

        payee = profiles.get(payee_id)
        if payee is None:
            raise NotFoundError("Provider profile not found")
        payee["credits"] += amount
        logger.info(f"Transferred {amount} credits from {payer_id} to {payee_id}")


class MemoryStore(Store):
    backend = "memory"

    def __init__(self, database: Optional[MemoryDatabase] = None):
        self.database = database or MemoryDatabase()
        super().__init__(
            accounts=MemoryAccountRepository(self.database),
            profiles=MemoryProfileRepository(self.database),
            listings=MemoryListingRepository(self.database),
            sessions=MemorySessionRepository(self.database),
        )

    def status(self) -> Dict[str, Any]:
        return {"backend": self.backend, "collections": self.database.collection_names()}
