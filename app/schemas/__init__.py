from .event import (
    EventBase,
    EventCreate,
    EventOut,
    EventResponse,
    EventListResponse,
    Participant,
)
from .identity import Identity

__all__ = [
    "EventBase",
    "EventCreate",
    "EventOut",
    "EventResponse",
    "EventListResponse",
    "Participant",
    "Identity",
]
