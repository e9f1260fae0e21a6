from datetime import datetime, timezone
from typing import List, Optional

from model import EventIn, FieldError


class EventValidationError(Exception):
    """Raised by handlers when an incoming event fails validation."""

    def __init__(self, errors: List[FieldError]):
        super().__init__(", ".join(f"{e.field}: {e.message}" for e in errors))
        self.errors = errors


def is_email_like(value: str) -> bool:
    """Minimal shape check: ``local@domain.tld`` with nothing empty around ``@`` or ``.``."""
    if value.count("@") != 1:
        return False
    at = value.find("@")
    if at <= 0 or at == len(value) - 1:
        return False
    domain = value[at + 1:]
    return any(ch == "." for ch in domain[1:-1])


def validate_event(event: EventIn, now: Optional[datetime] = None) -> List[FieldError]:
    """Check required fields and time ordering; returns every violation found."""
    if now is None:
        now = datetime.now(timezone.utc)
    errors: List[FieldError] = []

    if not event.title:
        errors.append(FieldError(field="title", message="title is required"))
    if not event.location:
        errors.append(FieldError(field="location", message="location is required"))

    creator = event.created_by
    if not creator:
        errors.append(FieldError(field="created_by", message="created_by is required"))
    elif not is_email_like(creator):
        errors.append(FieldError(field="created_by", message="created_by must be a valid email address"))

    if event.start_time is None:
        errors.append(FieldError(field="start_time", message="start_time is required"))
    elif event.start_time <= now:
        errors.append(FieldError(field="start_time", message="start_time must be in the future"))

    if event.end_time is None:
        errors.append(FieldError(field="end_time", message="end_time is required"))
    elif event.start_time is not None and event.end_time <= event.start_time:
        errors.append(FieldError(field="end_time", message="end_time must be after start_time"))

    return errors
