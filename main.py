import logging
import os
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator
from pymongo.errors import PyMongoError

import identity
import listings
import profiles
import sessions
from config import settings
from database import client, db
from errors import AuthenticationError, SkillShareError
from memory_store import MemoryStore
from mongo_store import MongoStore
from repositories import Store
from schemas import Account

logging.basicConfig(level=settings.LOG_LEVEL)
logger = logging.getLogger(__name__)

# ---------- Store ----------

_store: Optional[Store] = None


def build_store() -> Store:
    if settings.STORE_BACKEND == "memory":
        logger.info("Using in-memory store")
        return MemoryStore()
    if db is None:
        raise HTTPException(status_code=500, detail="Database not configured")
    return MongoStore(client, db)


def get_store() -> Store:
    global _store
    if _store is None:
        _store = build_store()
    return _store


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"Starting {settings.APP_NAME} ({settings.STORE_BACKEND} store)")
    if settings.STORE_BACKEND == "mongo" and db is None:
        logger.warning("DATABASE_URL / DATABASE_NAME not set, store endpoints will fail")
    elif settings.STORE_BACKEND == "mongo":
        try:
            get_store().ensure_indexes()
        except PyMongoError as e:
            logger.error(f"Failed to initialize database: {e}")
            raise RuntimeError("Database initialization failed") from e
    yield
    logger.info("Shutting down")
    if client is not None:
        client.close()


app = FastAPI(title=settings.APP_NAME, version=settings.APP_VERSION, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------- Errors ----------

@app.exception_handler(SkillShareError)
async def handle_skillshare_error(request: Request, exc: SkillShareError):
    headers = {"WWW-Authenticate": "Bearer"} if isinstance(exc, AuthenticationError) else None
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message}, headers=headers)


@app.exception_handler(PyMongoError)
async def handle_store_error(request: Request, exc: PyMongoError):
    logger.error(f"Store error on {request.method} {request.url.path}: {exc}")
    return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})

# ---------- Auth ----------

bearer = HTTPBearer(auto_error=False)


def current_account(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    store: Store = Depends(get_store),
) -> Account:
    return identity.resolve_token(store.accounts, credentials.credentials if credentials else None)

# ---------- Request Models ----------

class SignupPayload(BaseModel):
    name: str = Field(..., min_length=1)
    email: EmailStr
    password: str
    roll_number: Optional[str] = None
    department: Optional[str] = None
    course: Optional[str] = None
    year: Optional[str] = None

    @field_validator("name", mode="before")
    @classmethod
    def strip_name(cls, v):
        return v.strip() if isinstance(v, str) else v


class ProfileUpdate(BaseModel):
    # Extra keys pass through so the profile manager can refuse them (credits included)
    model_config = ConfigDict(extra="allow")

    name: Optional[str] = None
    roll_number: Optional[str] = None
    department: Optional[str] = None
    course: Optional[str] = None
    year: Optional[str] = None


class LoginPayload(BaseModel):
    email: str
    password: str


class SkillCreate(BaseModel):
    name: str = ""
    description: str = ""
    payment_mode: Optional[str] = None
    payment_amount: Optional[int] = None
    session_mode: Optional[str] = None


class SlotIn(BaseModel):
    date: Optional[str] = None
    time: Optional[str] = None


class SessionRequestPayload(BaseModel):
    preferred_slots: List[Optional[SlotIn]] = []


class StatusUpdate(BaseModel):
    status: str

# ---------- Core Endpoints ----------

@app.get("/")
def read_root():
    return {"message": f"{settings.APP_NAME} running", "version": settings.APP_VERSION}


@app.get("/test")
def test_database():
    response = {
        "backend": "✅ Running",
        "store_backend": settings.STORE_BACKEND,
        "database": "❌ Not Available",
        "database_url": "✅ Set" if os.getenv("DATABASE_URL") else "❌ Not Set",
        "database_name": "✅ Set" if os.getenv("DATABASE_NAME") else "❌ Not Set",
        "connection_status": "Not Connected",
        "collections": []
    }
    try:
        report = get_store().status()
        response["database"] = "✅ Connected & Working"
        response["connection_status"] = "Connected"
        response["collections"] = report.get("collections", [])
    except HTTPException as e:
        response["database"] = f"❌ {e.detail}"
    except Exception as e:
        response["database"] = f"❌ Error: {str(e)[:80]}"
    return response

# Auth
@app.post("/api/auth/signup", status_code=status.HTTP_201_CREATED)
def signup(payload: SignupPayload, store: Store = Depends(get_store)):
    account = identity.sign_up(store.accounts, payload.email, payload.password)
    profile = profiles.create_profile(
        store.profiles, store.accounts, account.id,
        payload.model_dump(exclude={"email", "password"}),
    )
    token, _ = identity.sign_in(store.accounts, payload.email, payload.password)
    return {"user_id": account.id, "access_token": token, "token_type": "bearer", "profile": profile}


@app.post("/api/auth/login")
def login(payload: LoginPayload, store: Store = Depends(get_store)):
    token, account = identity.sign_in(store.accounts, payload.email, payload.password)
    return {"user_id": account.id, "email": account.email, "access_token": token, "token_type": "bearer"}


@app.post("/api/auth/logout")
def logout(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer),
    store: Store = Depends(get_store),
):
    if credentials:
        identity.sign_out(store.accounts, credentials.credentials)
    return {"status": "signed out"}

# Profile
@app.get("/api/profile")
def read_profile(account: Account = Depends(current_account), store: Store = Depends(get_store)):
    profile = profiles.get_profile(store.profiles, account.id)
    if profile is None:
        raise HTTPException(404, "Profile not found")
    return profile


@app.patch("/api/profile")
def edit_profile(
    changes: ProfileUpdate,
    account: Account = Depends(current_account),
    store: Store = Depends(get_store),
):
    return profiles.update_profile(store.profiles, account.id, changes.model_dump(exclude_unset=True))


@app.get("/api/credits")
def read_credits(account: Account = Depends(current_account), store: Store = Depends(get_store)):
    return {"balance": profiles.get_balance(store.profiles, account.id)}

# Skills
@app.post("/api/skills", status_code=status.HTTP_201_CREATED)
def add_skill(payload: SkillCreate, account: Account = Depends(current_account), store: Store = Depends(get_store)):
    return listings.create_listing(store.listings, account.id, account.email, payload.model_dump())


@app.get("/api/skills")
def browse_skills(
    payment_mode: Optional[str] = None,
    session_mode: Optional[str] = None,
    q: Optional[str] = None,
    account: Account = Depends(current_account),
    store: Store = Depends(get_store),
):
    found = listings.list_all(store.listings, excluding_owner_id=account.id)
    found = listings.filter_listings(found, payment_mode, session_mode)
    return listings.search_listings(found, q)


@app.get("/api/skills/mine")
def my_skills(account: Account = Depends(current_account), store: Store = Depends(get_store)):
    return listings.list_by_owner(store.listings, account.id)


@app.delete("/api/skills/{skill_id}")
def remove_skill(skill_id: str, account: Account = Depends(current_account), store: Store = Depends(get_store)):
    listings.delete_listing(store.listings, skill_id, account.id)
    return {"success": True}

# Sessions
@app.post("/api/skills/{skill_id}/sessions", status_code=status.HTTP_201_CREATED)
def request_session(
    skill_id: str,
    payload: SessionRequestPayload,
    account: Account = Depends(current_account),
    store: Store = Depends(get_store),
):
    listing = listings.get_listing(store.listings, skill_id)
    slots = [s.model_dump() if s else None for s in payload.preferred_slots]
    return sessions.request_session(store.sessions, store.profiles, account.id, account.email, listing, slots)


@app.get("/api/sessions")
def my_sessions(role: str = "requester", account: Account = Depends(current_account), store: Store = Depends(get_store)):
    return sessions.list_for_role(store.sessions, account.id, role)


@app.post("/api/sessions/{session_id}/status")
def resolve_session(
    session_id: str,
    payload: StatusUpdate,
    account: Account = Depends(current_account),
    store: Store = Depends(get_store),
):
    return sessions.set_status(store.sessions, session_id, payload.status, account.id)

# Dashboard
@app.get("/api/dashboard")
def dashboard(account: Account = Depends(current_account), store: Store = Depends(get_store)):
    return sessions.summarize(
        sessions.list_for_role(store.sessions, account.id, "requester"),
        profiles.get_profile(store.profiles, account.id),
        listings.list_all(store.listings, excluding_owner_id=account.id),
    )


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=settings.PORT)
