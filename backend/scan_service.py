"""Ticket resolution and attendance recording for event organizers.

A scan resolves to a ticket (by id, then exact code, then partial code).
Check-ins are unique per (ticket, day) and distributions per (attendee,
item type); both rely on the table's unique constraint rather than a prior
read, so two scanners racing on the same ticket leave exactly one row.
"""
import json
import logging
import re
import secrets
import string
from dataclasses import dataclass
from typing import Optional

from fastapi import HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

import models
from database import insert_unique

logger = logging.getLogger(__name__)

TICKET_CODE_PATTERN = re.compile(r"Ticket Code:\s*([A-Z0-9]+)", re.IGNORECASE)
ATTENDEE_CODE_ALPHABET = string.ascii_uppercase + string.digits


@dataclass
class ScanPayload:
    ticket_id: Optional[str] = None
    ticket_code: Optional[str] = None


@dataclass
class RecordOutcome:
    created: bool
    record: Optional[object] = None


def parse_scan_payload(raw: str) -> ScanPayload:
    payload = ScanPayload()
    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        parsed = None

    if isinstance(parsed, dict):
        ticket_code = parsed.get("ticket_code")
        ticket_id = parsed.get("ticket_id")
        payload.ticket_code = str(ticket_code).strip() if ticket_code else None
        payload.ticket_id = str(ticket_id).strip() if ticket_id else None
    else:
        match = TICKET_CODE_PATTERN.search(raw or "")
        if match:
            payload.ticket_code = match.group(1)
        else:
            payload.ticket_code = (raw or "").strip() or None

    if not payload.ticket_code and not payload.ticket_id:
        raise HTTPException(status_code=400, detail="Invalid QR code format")
    return payload


def escape_like(value: str) -> str:
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def lookup_ticket(db: Session, payload: ScanPayload, event_id: Optional[str] = None) -> models.Ticket:
    """Resolve a scan to a ticket, scoped to ``event_id`` for code lookups when given."""
    ticket = None
    if payload.ticket_id:
        ticket = db.query(models.Ticket).filter(models.Ticket.id == payload.ticket_id).first()

    by_code = db.query(models.Ticket)
    if event_id:
        by_code = by_code.filter(models.Ticket.event_id == event_id)

    if ticket is None and payload.ticket_code:
        ticket = by_code.filter(models.Ticket.ticket_code == payload.ticket_code).first()

    if ticket is None and payload.ticket_code:
        ticket = (
            by_code.filter(models.Ticket.ticket_code.ilike(f"%{escape_like(payload.ticket_code)}%", escape="\\"))
            .order_by(models.Ticket.created_at.asc())
            .first()
        )

    if ticket is None:
        raise HTTPException(status_code=404, detail="Ticket not found. Please check the QR code.")
    return ticket


def get_ticket(db: Session, ticket_id: str) -> models.Ticket:
    ticket = db.query(models.Ticket).filter(models.Ticket.id == ticket_id).first()
    if not ticket:
        raise HTTPException(status_code=404, detail="Ticket not found")
    return ticket


def organizer_display_name(profile: models.Profile) -> str:
    return f"{profile.first_name or ''} {profile.last_name or ''}".strip()


def is_event_organizer(event: models.Event, profile: models.Profile) -> bool:
    return event.organizer == organizer_display_name(profile)


def ensure_event_organizer(event: models.Event, profile: models.Profile) -> None:
    if not is_event_organizer(event, profile):
        logger.info(
            "Access denied for %s on event %s (organizer %r)",
            organizer_display_name(profile),
            event.id,
            event.organizer,
        )
        raise HTTPException(status_code=403, detail="Access denied: only the event organizer can manage this event")


def find_organizer_profile(db: Session, event: models.Event) -> Optional[models.Profile]:
    full_name = func.trim(
        func.coalesce(models.Profile.first_name, "") + " " + func.coalesce(models.Profile.last_name, "")
    )
    return db.query(models.Profile).filter(full_name == event.organizer).first()


def get_event(db: Session, event_id: str) -> models.Event:
    event = db.query(models.Event).filter(models.Event.id == event_id).first()
    if not event:
        raise HTTPException(status_code=404, detail="Event not found")
    return event


def resolve_ticket_event(
    db: Session,
    ticket: models.Ticket,
    actor: models.Profile,
    expected_event_id: Optional[str] = None,
) -> models.Event:
    if expected_event_id and ticket.event_id != expected_event_id:
        raise HTTPException(status_code=400, detail="Ticket does not belong to this event")
    event = get_event(db, ticket.event_id)
    ensure_event_organizer(event, actor)
    return event


def holder_profile(db: Session, ticket: models.Ticket) -> Optional[models.Profile]:
    if not ticket.user_id:
        return None
    return db.query(models.Profile).filter(models.Profile.id == ticket.user_id).first()


def holder_name(profile: Optional[models.Profile]) -> str:
    if profile is None:
        return "Attendee"
    return organizer_display_name(profile) or "Attendee"


def record_check_in(
    db: Session,
    ticket: models.Ticket,
    event_day: int = 1,
    checked_in_by: Optional[str] = None,
) -> RecordOutcome:
    check_in = models.CheckIn(
        ticket_id=ticket.id,
        event_id=ticket.event_id,
        event_day=event_day,
        checked_in_by=checked_in_by,
    )
    if not insert_unique(db, check_in, "check-in"):
        existing = (
            db.query(models.CheckIn)
            .filter(models.CheckIn.ticket_id == ticket.id, models.CheckIn.event_day == event_day)
            .first()
        )
        return RecordOutcome(created=False, record=existing)
    return RecordOutcome(created=True, record=check_in)


def generate_attendee_code(length: int = 8) -> str:
    return "".join(secrets.choice(ATTENDEE_CODE_ALPHABET) for _ in range(length))


def resolve_attendee(
    db: Session,
    ticket: models.Ticket,
    profile: Optional[models.Profile],
) -> models.Attendee:
    # Imported attendees are stored with lowercased emails.
    email = ((profile.email if profile else None) or f"ticket-{ticket.ticket_code}@example.com").strip().lower()
    attendee = db.query(models.Attendee).filter(func.lower(models.Attendee.email) == email).first()
    if attendee:
        return attendee

    code_taken = (
        db.query(models.Attendee.id).filter(models.Attendee.unique_code == ticket.ticket_code).first()
        if ticket.ticket_code
        else True
    )
    attendee = models.Attendee(
        name=holder_name(profile),
        email=email,
        unique_code=generate_attendee_code() if code_taken else ticket.ticket_code,
    )
    if insert_unique(db, attendee, "attendee"):
        return attendee

    # Another scanner created it between our read and insert.
    attendee = db.query(models.Attendee).filter(func.lower(models.Attendee.email) == email).first()
    if attendee is None:
        raise HTTPException(status_code=503, detail="Failed to get or create attendee record")
    return attendee


def record_distribution(
    db: Session,
    attendee: models.Attendee,
    item_type: str,
    event_id: Optional[str],
    event_day: int = 1,
    distributed_by: Optional[str] = None,
) -> RecordOutcome:
    distribution = models.Distribution(
        attendee_id=attendee.id,
        item_type=item_type,
        event_id=event_id,
        event_day=event_day,
        distributed_by=distributed_by,
    )
    if not insert_unique(db, distribution, "distribution"):
        existing = (
            db.query(models.Distribution)
            .filter(models.Distribution.attendee_id == attendee.id, models.Distribution.item_type == item_type)
            .first()
        )
        return RecordOutcome(created=False, record=existing)
    return RecordOutcome(created=True, record=distribution)
