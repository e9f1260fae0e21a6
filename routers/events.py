import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, Response, status
from typing import NoReturn, Optional

from config import Settings
from database import EventNotFound, EventRepository, StorageError, resolve_page
from model import (
    DeletedEnvelope,
    DeletedEvent,
    Event,
    EventEnvelope,
    EventIn,
    PaginatedEvents,
    ValidationErrorResponse,
)
from validation import EventValidationError, validate_event

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/events", tags=["Events"])

NOT_FOUND_RESPONSE = {404: {"description": "Event not found"}}
INVALID_RESPONSE = {422: {"model": ValidationErrorResponse}}


# ----------------------
# Dependencies
# ----------------------
def get_repository(request: Request) -> EventRepository:
    return request.app.state.repository


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


# ----------------------
# Helpers
# ----------------------
def storage_failure(exc: StorageError, settings: Settings) -> NoReturn:
    logger.exception("Storage failure: %s", exc)
    detail = str(exc) if settings.expose_error_details else "Internal server error"
    raise HTTPException(status_code=500, detail=detail) from exc


def not_found(exc: EventNotFound) -> NoReturn:
    logger.info("Event %s not found", exc.event_id)
    raise HTTPException(status_code=404, detail="Event not found") from exc


def ensure_valid(event: EventIn) -> None:
    errors = validate_event(event)
    if errors:
        raise EventValidationError(errors)


# ----------------------
# CRUD Endpoints
# ----------------------
@router.get("", response_model=PaginatedEvents, response_model_exclude_none=True)
def list_events(
    page: Optional[str] = Query(None, description="Page number, starting at 1"),
    page_size: Optional[str] = Query(None, description="Number of events per page"),
    repo: EventRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    """
    List events, newest first.
    Missing or invalid paging values fall back to page 1 and the default page size.
    """
    page_number, size = resolve_page(page, page_size, settings.default_page_size, settings.max_page_size)
    try:
        return repo.list_events(page_number, size)
    except StorageError as exc:
        storage_failure(exc, settings)


@router.post(
    "",
    response_model=EventEnvelope,
    response_model_exclude_none=True,
    status_code=status.HTTP_201_CREATED,
    responses=INVALID_RESPONSE,
)
def create_event(
    event: EventIn,
    response: Response,
    repo: EventRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    """Create an event. Returns 201 Created with a Location header."""
    ensure_valid(event)
    try:
        created = repo.create_event(event)
    except StorageError as exc:
        storage_failure(exc, settings)

    logger.info("Created event %s", created.id)
    response.headers["Location"] = f"/events/{created.id}"
    return EventEnvelope(message="Event created", data=created)


@router.get("/{event_id}", response_model=Event, response_model_exclude_none=True, responses=NOT_FOUND_RESPONSE)
def get_event(
    event_id: int,
    repo: EventRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    try:
        return repo.get_event(event_id)
    except EventNotFound as exc:
        not_found(exc)
    except StorageError as exc:
        storage_failure(exc, settings)


@router.put(
    "/{event_id}",
    response_model=EventEnvelope,
    response_model_exclude_none=True,
    responses={**NOT_FOUND_RESPONSE, **INVALID_RESPONSE},
)
def update_event(
    event_id: int,
    event: EventIn,
    repo: EventRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    """
    Replace an event. Every mutable field is taken from the body;
    id and created_at are kept, updated_at is refreshed.
    """
    ensure_valid(event)
    try:
        updated = repo.update_event(event_id, event)
    except EventNotFound as exc:
        not_found(exc)
    except StorageError as exc:
        storage_failure(exc, settings)

    logger.info("Updated event %s", event_id)
    return EventEnvelope(message="Event updated", data=updated)


@router.delete("/{event_id}", response_model=DeletedEnvelope, responses=NOT_FOUND_RESPONSE)
def delete_event(
    event_id: int,
    repo: EventRepository = Depends(get_repository),
    settings: Settings = Depends(get_settings),
):
    try:
        repo.delete_event(event_id)
    except EventNotFound as exc:
        not_found(exc)
    except StorageError as exc:
        storage_failure(exc, settings)

    logger.info("Deleted event %s", event_id)
    return DeletedEnvelope(message="Event deleted", data=DeletedEvent(id=event_id))
