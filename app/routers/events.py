import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Body, Depends, HTTPException, Query, Request

from app.core.config import settings
from app.core.security import get_current_identity
from app.schemas.event import EventCreate, EventListResponse, EventResponse
from app.schemas.identity import Identity
from app.services.event_service import EventService
from app.services.exceptions import EventServiceError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["events"])


def get_event_service(request: Request):
    """Dependency to get EventService instance"""
    return EventService(
        request.app.state.db,
        require_future_event_date=settings.require_future_event_date,
    )


def _server_error(message: str) -> HTTPException:
    logger.exception(message)
    return HTTPException(status_code=500, detail=message)


# Declared before /{event_id} so "upcoming" is not taken for an id.
@router.get("/upcoming", response_model=EventListResponse, response_model_exclude_none=True)
def list_upcoming_events(
    eventType: Optional[str] = Query(None, description="Exact event type"),
    search: Optional[str] = Query(None, description="Case-insensitive title search"),
    event_service: EventService = Depends(get_event_service),
):
    """List events that have not happened yet, soonest first"""
    try:
        events = event_service.list_upcoming(event_type=eventType, search=search)
    except Exception:
        raise _server_error("Server error fetching events")
    return EventListResponse(data=events)


@router.get("/user/created", response_model=EventListResponse, response_model_exclude_none=True)
def list_created_events(
    identity: Identity = Depends(get_current_identity),
    event_service: EventService = Depends(get_event_service),
):
    """List events created by the caller, newest first"""
    try:
        events = event_service.list_created_by(identity.email)
    except Exception:
        raise _server_error("Server error fetching created events")
    return EventListResponse(data=events)


@router.get("/user/joined", response_model=EventListResponse, response_model_exclude_none=True)
def list_joined_events(
    identity: Identity = Depends(get_current_identity),
    event_service: EventService = Depends(get_event_service),
):
    """List events the caller has joined"""
    try:
        events = event_service.list_joined_by(identity.email)
    except Exception:
        raise _server_error("Server error fetching joined events")
    return EventListResponse(data=events)


@router.get("/{event_id}", response_model=EventResponse, response_model_exclude_none=True)
def get_event(event_id: str, event_service: EventService = Depends(get_event_service)):
    try:
        event = event_service.get_event(event_id)
    except EventServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        raise _server_error("Server error fetching event")
    return EventResponse(data=event)


@router.post(
    "", response_model=EventResponse, status_code=201, response_model_exclude_none=True
)
def create_event(
    event_data: EventCreate,
    identity: Identity = Depends(get_current_identity),
    event_service: EventService = Depends(get_event_service),
):
    """Create an event owned by the caller"""
    try:
        event = event_service.create_event(event_data, identity)
    except EventServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        raise _server_error("Server error creating event")
    return EventResponse(message="Event created successfully", data=event)


@router.post("/{event_id}/join", response_model=EventResponse, response_model_exclude_none=True)
def join_event(
    event_id: str,
    identity: Identity = Depends(get_current_identity),
    event_service: EventService = Depends(get_event_service),
):
    """Join an event as the caller"""
    try:
        event = event_service.join_event(event_id, identity)
    except EventServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        raise _server_error("Server error joining event")
    return EventResponse(message="Successfully joined the event", data=event)


@router.put("/{event_id}", response_model=EventResponse, response_model_exclude_none=True)
def update_event(
    event_id: str,
    patch: Dict[str, Any] = Body(...),
    identity: Identity = Depends(get_current_identity),
    event_service: EventService = Depends(get_event_service),
):
    """Update fields of an event the caller created"""
    try:
        event = event_service.update_event(event_id, patch, identity)
    except EventServiceError as e:
        raise HTTPException(status_code=e.status_code, detail=e.message)
    except Exception:
        raise _server_error("Server error updating event")
    return EventResponse(message="Event updated successfully", data=event)
