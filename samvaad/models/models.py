# samvaad/models/models.py
from __future__ import annotations

import re
from datetime import datetime, timezone
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

EMAIL_PATTERN = re.compile(r"^\S+@\S+\.\S+$")


class WireModel(BaseModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    def to_wire(self) -> dict:
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


# ============================================================================
# CHAT
# ============================================================================

class Message(WireModel):
    room_id: str
    sender_id: str
    body: str
    timestamp: datetime
    id: Optional[str] = None
    # Echoed back to the sender so it can reconcile its optimistic copy
    client_id: Optional[str] = None

    @field_validator("timestamp")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value


class SendMessageRequest(WireModel):
    room_id: str
    sender_id: str = "anonymous"
    body: str
    timestamp: Optional[datetime] = None
    client_id: Optional[str] = None


class RoomPresence(WireModel):
    room_id: str
    member_count: int = 0
    members: List[str] = []


# ============================================================================
# USERS
# ============================================================================

class User(BaseModel):
    id: str
    username: str
    email: str
    password: Optional[str] = None
    created_at: str

    def public(self) -> dict:
        return self.model_dump(exclude={"password"})


class SignupRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(min_length=1)
    email: str
    password: str = Field(min_length=6)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value


class LoginRequest(BaseModel):
    email: str
    password: str

    @field_validator("email")
    @classmethod
    def _normalize(cls, value: str) -> str:
        return value.strip().lower()


# ============================================================================
# VOLUNTEERS
# ============================================================================

Gender = Literal["Male", "Female", "Non-binary", "Other", "Prefer not to say", ""]
ApplicationStatus = Literal["Pending", "Reviewed", "Accepted", "Rejected"]


class VolunteerApplicationRequest(WireModel):
    """Intake form. Accepts fullName or full_name; answers in camelCase."""

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: str = Field(min_length=1)
    email: str
    phone: str = Field(min_length=1)
    age: int = Field(ge=16)
    gender: Gender = ""
    city: str = Field(min_length=1)
    state: str = Field(min_length=1)
    education: str = ""
    interest: str = Field(min_length=1)
    availability: str = Field(min_length=1)
    motivation: str = Field(min_length=1)
    resume_path: str = ""

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        value = value.strip().lower()
        if not EMAIL_PATTERN.match(value):
            raise ValueError("Please enter a valid email address")
        return value


class VolunteerApplication(VolunteerApplicationRequest):
    id: str
    status: ApplicationStatus = "Pending"
    created_at: str


class Volunteer(WireModel):
    """Directory entry: what a user needs to open a chat with a volunteer."""

    id: str
    name: str
    interest: str
