"""
MongoDB implementation of the repositories.

Profiles and accounts are keyed by the opaque user id; listings and sessions
get ObjectIds. Session approval runs in a multi-document transaction, which
requires MongoDB to run as a replica set.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional
from uuid import uuid4

from bson import ObjectId
from pymongo import ASCENDING, MongoClient, ReturnDocument
from pymongo.database import Database
from pymongo.errors import DuplicateKeyError

from database import create_document, get_documents, now_utc
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

# ---------- Utility ----------

def oid(id_str: str) -> Optional[ObjectId]:
    # ObjectId(None) mints a fresh id, so check validity first
    return ObjectId(id_str) if ObjectId.is_valid(id_str) else None


def serialize(doc: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    if doc is None:
        return doc
    d = dict(doc)
    if "_id" in d:
        d["id"] = str(d.pop("_id"))
    return d

# ---------- Repositories ----------

class MongoAccountRepository(AccountRepository):
    def __init__(self, database: Database):
        self._db = database

    def create(self, email: str, password_hash: str) -> Account:
        user_id = uuid4().hex
        try:
            create_document("account", {"_id": user_id, "email": email, "password_hash": password_hash},
                            database=self._db)
        except DuplicateKeyError:
            raise StateError("Email already registered")
        return self.get(user_id)

    def get(self, user_id: str) -> Optional[Account]:
        doc = self._db["account"].find_one({"_id": user_id})
        return Account(**serialize(doc)) if doc else None

    def find_by_email(self, email: str) -> Optional[Account]:
        doc = self._db["account"].find_one({"email": email.strip().lower()})
        return Account(**serialize(doc)) if doc else None

    def add_token(self, token: str, user_id: str, expires_at: datetime) -> Authtoken:
        doc = {"token": token, "user_id": user_id, "expires_at": expires_at}
        create_document("authtoken", doc, database=self._db)
        return self.get_token(token)

    def get_token(self, token: str) -> Optional[Authtoken]:
        doc = self._db["authtoken"].find_one({"token": token})
        if not doc:
            return None
        doc.pop("_id", None)
        return Authtoken(**doc)

    def delete_token(self, token: str) -> None:
        self._db["authtoken"].delete_one({"token": token})


class MongoProfileRepository(ProfileRepository):
    def __init__(self, database: Database):
        self._db = database

    def create(self, user_id: str, profile: Userprofile) -> Userprofile:
        doc = profile.model_dump(exclude={"id", "created_at"})
        doc["_id"] = user_id
        try:
            create_document("userprofile", doc, database=self._db)
        except DuplicateKeyError:
            raise StateError("Profile already exists")
        return self.get(user_id)

    def get(self, user_id: str) -> Optional[Userprofile]:
        doc = self._db["userprofile"].find_one({"_id": user_id})
        return Userprofile(**serialize(doc)) if doc else None

    def update(self, user_id: str, changes: Dict[str, Any]) -> Optional[Userprofile]:
        doc = self._db["userprofile"].find_one_and_update(
            {"_id": user_id},
            {"$set": changes},
            return_document=ReturnDocument.AFTER,
        )
        return Userprofile(**serialize(doc)) if doc else None


class MongoListingRepository(ListingRepository):
    def __init__(self, database: Database):
        self._db = database

    def create(self, listing: Skill) -> Skill:
        listing_id = create_document("skill", listing, database=self._db)
        return self.get(listing_id)

    def get(self, listing_id: str) -> Optional[Skill]:
        _id = oid(listing_id)
        if _id is None:
            return None
        doc = self._db["skill"].find_one({"_id": _id})
        return Skill(**serialize(doc)) if doc else None

    def list_by_owner(self, owner_id: str) -> List[Skill]:
        docs = get_documents("skill", {"owner_id": owner_id}, database=self._db)
        return [Skill(**serialize(d)) for d in docs]

    def list_all(self) -> List[Skill]:
        return [Skill(**serialize(d)) for d in get_documents("skill", database=self._db)]

    def delete(self, listing_id: str) -> bool:
        _id = oid(listing_id)
        if _id is None:
            return False
        return self._db["skill"].delete_one({"_id": _id}).deleted_count == 1


class MongoSessionRepository(SessionRepository):
    def __init__(self, client: MongoClient, database: Database):
        self._client = client
        self._db = database

    def create(self, session: Session) -> Session:
        session_id = create_document("session", session, database=self._db)
        return self.get(session_id)

    def get(self, session_id: str) -> Optional[Session]:
        _id = oid(session_id)
        if _id is None:
            return None
        doc = self._db["session"].find_one({"_id": _id})
        return Session(**serialize(doc)) if doc else None

    def list_by_requester(self, user_id: str) -> List[Session]:
        docs = get_documents("session", {"requester_id": user_id}, database=self._db)
        return [Session(**serialize(d)) for d in docs]

    def list_by_provider(self, user_id: str) -> List[Session]:
        docs = get_documents("session", {"provider_id": user_id}, database=self._db)
        return [Session(**serialize(d)) for d in docs]

    def resolve(self, session_id: str, status: str, require_funds: bool = False) -> Session:
        _id = oid(session_id)
        if _id is None:
            raise NotFoundError("Session not found")

        def apply(txn):
            doc = self._db["session"].find_one({"_id": _id}, session=txn)
            if not doc:
                raise NotFoundError("Session not found")
            if doc.get("status") != "pending":
                raise InvalidTransitionError(doc.get("status"), status)

            changes = {"status": status}
            if status == "approved":
                changes["scheduled_at"] = now_utc()
            result = self._db["session"].update_one(
                {"_id": _id, "status": "pending"}, {"$set": changes}, session=txn
            )
            if result.modified_count != 1:
                raise InvalidTransitionError(doc.get("status"), status)

            amount = int(doc.get("payment_amount") or 0)
            if status == "approved" and doc.get("payment_mode") == "credits" and amount > 0:
                self._transfer(txn, doc["requester_id"], doc["provider_id"], amount, require_funds)

        with self._client.start_session() as txn:
            txn.with_transaction(apply)
        return self.get(session_id)

    def _transfer(self, txn, payer_id: str, payee_id: str, amount: int, require_funds: bool):
        profiles = self._db["userprofile"]
        debit_filter: Dict[str, Any] = {"_id": payer_id}
        if require_funds:
            debit_filter["credits"] = {"$gte": amount}
        debited = profiles.update_one(debit_filter, {"$inc": {"credits": -amount}}, session=txn)
        if debited.matched_count == 0:
            payer = profiles.find_one({"_id": payer_id}, session=txn)
            if payer is None:
                raise NotFoundError("Requester profile not found")
            raise InsufficientFundsError(int(payer.get("credits", 0)), amount)

        credited = profiles.update_one({"_id": payee_id}, {"$inc": {"credits": amount}}, session=txn)
        if credited.matched_count == 0:
            raise NotFoundError("Provider profile not found")
        logger.info(f"Transferred {amount} credits from {payer_id} to {payee_id}")


class MongoStore(Store):
    backend = "mongo"

    def __init__(self, client: MongoClient, database: Database):
        super().__init__(
            accounts=MongoAccountRepository(database),
            profiles=MongoProfileRepository(database),
            listings=MongoListingRepository(database),
            sessions=MongoSessionRepository(client, database),
        )
        self._client = client
        self._db = database

    def ensure_indexes(self):
        self._db["account"].create_index([("email", ASCENDING)], unique=True)
        self._db["authtoken"].create_index([("token", ASCENDING)], unique=True)
        self._db["authtoken"].create_index([("expires_at", ASCENDING)], expireAfterSeconds=0)
        self._db["skill"].create_index([("owner_id", ASCENDING)])
        self._db["session"].create_index([("requester_id", ASCENDING)])
        self._db["session"].create_index([("provider_id", ASCENDING)])
        logger.info("MongoDB indexes ready")

    def status(self) -> Dict[str, Any]:
        self._client.admin.command("ping")
        return {
            "backend": self.backend,
            "database_name": self._db.name,
            "collections": self._db.list_collection_names(),
        }
