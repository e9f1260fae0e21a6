from pydantic import BaseModel, ConfigDict, field_validator
from datetime import datetime, timezone
from typing import Any, List, Mapping, Optional


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Naive timestamps are taken to be UTC; aware ones are converted."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


# --------------------------
# Event Schemas
# --------------------------
class EventIn(BaseModel):
    """Request body for create and update (replace semantics).

    Required fields default to empty values so that missing ones are reported
    by the validator as field errors instead of failing deserialization.
    Server-owned fields (id, created_at, updated_at) are ignored if sent.
    Strings are stored as validated, with surrounding whitespace removed.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    title: str = ""
    description: Optional[str] = None
    location: str = ""
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    created_by: str = ""

    @field_validator("start_time", "end_time")
    @classmethod
    def _normalize_tz(cls, value: Optional[datetime]) -> Optional[datetime]:
        return as_utc(value)

    @field_validator("description")
    @classmethod
    def _blank_description(cls, value: Optional[str]) -> Optional[str]:
        return value or None


class Event(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    title: str
    description: Optional[str] = None
    location: str
    start_time: datetime
    end_time: datetime
    created_by: str
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Event":
        return cls(
            id=int(row["id"]),
            title=row["title"],
            description=row.get("description") or None,
            location=row["location"],
            start_time=as_utc(row["start_time"]),
            end_time=as_utc(row["end_time"]),
            created_by=row["created_by"],
            created_at=as_utc(row["created_at"]),
            updated_at=as_utc(row["updated_at"]),
        )


# --------------------------
# Response envelopes
# --------------------------
class EventEnvelope(BaseModel):
    message: str
    data: Event


class DeletedEvent(BaseModel):
    id: int


class DeletedEnvelope(BaseModel):
    message: str
    data: DeletedEvent


class PaginatedEvents(BaseModel):
    page: int
    page_size: int
    total_items: int
    total_pages: int
    data: List[Event] = []


class FieldError(BaseModel):
    field: str
    message: str


class ValidationErrorResponse(BaseModel):
    message: str = "Validation failed"
    errors: List[FieldError]
