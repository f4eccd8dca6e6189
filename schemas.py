"""
Database Schemas for SkillShare

Each Pydantic model corresponds to a MongoDB collection. The collection name
is the lowercase of the class name. `id` and the timestamps are assigned by
the store and are never written by callers.
"""
from datetime import datetime
from typing import List, Optional, Literal
from pydantic import BaseModel, Field

PaymentMode = Literal["credits", "favor"]
SessionMode = Literal["online", "in-person"]
SessionStatus = Literal["pending", "approved", "rejected"]

PAYMENT_MODES = ("credits", "favor")
SESSION_MODES = ("online", "in-person")
PROFILE_FIELDS = ("name", "roll_number", "department", "course", "year")


class Account(BaseModel):
    """
    Collection: account
    Email/password identity. `id` is the opaque user id every other record
    refers to.
    """
    id: str
    email: str
    password_hash: str
    created_at: Optional[datetime] = None


class Authtoken(BaseModel):
    """
    Collection: authtoken
    Bearer token issued on sign-in.
    """
    token: str
    user_id: str
    expires_at: datetime
    created_at: Optional[datetime] = None


class Userprofile(BaseModel):
    """
    Collection: userprofile
    Keyed by the account id. `credits` only moves on session approval.
    """
    id: Optional[str] = None
    name: str = Field(..., description="Display name")
    email: str = Field(..., description="Account email")
    roll_number: Optional[str] = Field(None, description="Roll/student number")
    department: Optional[str] = None
    course: Optional[str] = None
    year: Optional[str] = None
    credits: int = Field(0, description="Credit balance, may be negative")
    created_at: Optional[datetime] = None


class Skill(BaseModel):
    """
    Collection: skill
    A skill listing offered by its owner.
    """
    id: Optional[str] = None
    name: str
    description: str
    payment_mode: PaymentMode
    payment_amount: int = Field(0, ge=0, description="Zero for favor listings")
    session_mode: SessionMode
    owner_id: str
    owner_email: str
    created_at: Optional[datetime] = None


class TimeSlot(BaseModel):
    date: str
    time: str


class Session(BaseModel):
    """
    Collection: session
    A learner's request against a listing. Payment fields are a snapshot of
    the listing at request time.
    """
    id: Optional[str] = None
    listing_id: str
    listing_name: str
    provider_id: str
    provider_email: str
    requester_id: str
    requester_email: str
    payment_mode: PaymentMode
    payment_amount: int = 0
    status: SessionStatus = "pending"
    preferred_slots: List[TimeSlot] = Field(default_factory=list, max_length=3)
    scheduled_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
