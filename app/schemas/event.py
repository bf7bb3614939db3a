from pydantic import BaseModel, field_validator
from typing import List, Optional
from datetime import datetime


class EventBase(BaseModel):
    title: str
    description: str
    eventType: str
    thumbnail: str
    location: str
    eventDate: datetime


class EventCreate(BaseModel):
    """Creation payload. Presence is checked by EventService, not here."""

    title: Optional[str] = None
    description: Optional[str] = None
    eventType: Optional[str] = None
    thumbnail: Optional[str] = None
    location: Optional[str] = None
    eventDate: Optional[datetime] = None

    @field_validator("eventDate", mode="before")
    @classmethod
    def blank_date_is_missing(cls, value):
        if isinstance(value, str) and not value.strip():
            return None
        return value


class Participant(BaseModel):
    userId: str
    userEmail: str
    userName: str
    userPhoto: str = ""
    joinedAt: datetime


class EventOut(EventBase):
    id: str
    creatorId: str
    creatorEmail: str
    creatorName: str
    creatorPhoto: str = ""
    createdAt: datetime
    updatedAt: datetime
    participants: List[Participant] = []
    participantCount: int = 0


class EventResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: Optional[EventOut] = None


class EventListResponse(BaseModel):
    success: bool = True
    message: Optional[str] = None
    data: List[EventOut] = []
