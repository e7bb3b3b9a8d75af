from datetime import datetime, timedelta
import csv
import io
import logging
import secrets
from typing import List, Optional
from urllib.parse import quote

from fastapi import BackgroundTasks, Depends, FastAPI, HTTPException, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import StreamingResponse
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

import config
import functions_service
import models
import notification_service
import recommendation_service
import scan_service
import schemas
from auth import decode_user_id, get_current_profile, get_current_user_id
from database import engine, get_db, insert_unique

logging.basicConfig(level=config.LOG_LEVEL)
logger = logging.getLogger("eventro")

models.Base.metadata.create_all(bind=engine)

app = FastAPI(title="Eventro API")

app.add_middleware(
    CORSMiddleware,
    allow_origins=config.CORS_ORIGINS,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

TICKET_CODE_ALPHABET = "ABCDEFGHJKLMNPQRSTUVWXYZ23456789"  # no 0/O, 1/I lookalikes
TICKET_CODE_LENGTH = 8
TICKET_CODE_ATTEMPTS = 5


def generate_ticket_code() -> str:
    return "".join(secrets.choice(TICKET_CODE_ALPHABET) for _ in range(TICKET_CODE_LENGTH))


def build_event_days(event: models.Event) -> List[schemas.EventDay]:
    start = event.date
    end = event.end_date
    if not end or end.date() <= start.date():
        return [schemas.EventDay(event_id=event.id, day_number=1, day_date=start)]
    day_count = (end.date() - start.date()).days + 1
    return [
        schemas.EventDay(event_id=event.id, day_number=index + 1, day_date=start + timedelta(days=index))
        for index in range(day_count)
    ]


def track_interaction(db: Session, user_id: str, event_id: str, interaction_type: str) -> None:
    interaction = models.Interaction(user_id=user_id, event_id=event_id, interaction_type=interaction_type)
    # Already tracked interactions are rejected by the unique constraint.
    insert_unique(db, interaction, "interaction")


@app.get("/")
def read_root():
    return {"message": "Welcome to Eventro API"}


# ------------- Profiles -------------

@app.get("/profiles/me", response_model=schemas.Profile)
def get_my_profile(actor: models.Profile = Depends(get_current_profile)):
    return actor


@app.put("/profiles/me", response_model=schemas.Profile)
def update_my_profile(
    req: schemas.ProfileUpdate,
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_user_id),
):
    profile = db.query(models.Profile).filter(models.Profile.id == user_id).first()
    if not profile:
        profile = models.Profile(id=user_id)
        db.add(profile)

    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(profile, field, value)
    db.commit()
    db.refresh(profile)
    return profile


# ------------- Events -------------

@app.post("/events", response_model=schemas.Event)
def create_event(
    event: schemas.EventCreate,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    organizer = scan_service.organizer_display_name(actor)
    if not organizer:
        raise HTTPException(status_code=400, detail="Set your first and last name before creating events")

    db_event = models.Event(
        **event.model_dump(),
        organizer=organizer,
        attendees=0,
        keywords=recommendation_service.extract_keywords(event.description) or None,
    )
    db.add(db_event)
    db.commit()
    db.refresh(db_event)
    logger.info("Event %s created by %s", db_event.id, organizer)
    return db_event


@app.get("/events", response_model=List[schemas.Event])
def list_events(
    category: Optional[str] = None,
    q: Optional[str] = None,
    featured: Optional[bool] = None,
    db: Session = Depends(get_db),
):
    query = db.query(models.Event)
    if category:
        query = query.filter(models.Event.category == category)
    if featured is not None:
        query = query.filter(models.Event.is_featured == featured)
    if q:
        term = f"%{q}%"
        query = query.filter(
            models.Event.title.ilike(term)
            | func.coalesce(models.Event.description, "").ilike(term)
            | models.Event.location.ilike(term)
        )
    return query.order_by(models.Event.date.asc()).all()


@app.get("/events/mine", response_model=List[schemas.Event])
def list_my_events(db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    organizer = scan_service.organizer_display_name(actor)
    return db.query(models.Event).filter(models.Event.organizer == organizer).order_by(models.Event.date.asc()).all()


@app.get("/events/{event_id}", response_model=schemas.Event)
def get_event(event_id: str, db: Session = Depends(get_db)):
    return scan_service.get_event(db, event_id)


@app.put("/events/{event_id}", response_model=schemas.Event)
def update_event(
    event_id: str,
    req: schemas.EventUpdate,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    scan_service.ensure_event_organizer(event, actor)

    changes = req.model_dump(exclude_unset=True)
    for field, value in changes.items():
        setattr(event, field, value)
    if "description" in changes:
        event.keywords = recommendation_service.extract_keywords(event.description) or None

    db.commit()
    db.refresh(event)
    return event


@app.get("/events/{event_id}/days", response_model=List[schemas.EventDay])
def list_event_days(event_id: str, db: Session = Depends(get_db)):
    return build_event_days(scan_service.get_event(db, event_id))


# ------------- Tickets -------------

@app.post("/events/{event_id}/tickets", response_model=schemas.TicketPurchaseResponse)
def purchase_ticket(
    event_id: str,
    req: schemas.TicketPurchaseRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    if req.quantity > config.MAX_TICKETS_PER_ORDER:
        raise HTTPException(
            status_code=400,
            detail=f"You can buy at most {config.MAX_TICKETS_PER_ORDER} tickets per order",
        )

    history_count = db.query(models.Interaction).filter(models.Interaction.user_id == actor.id).count()
    pricing = recommendation_service.dynamic_pricing(recommendation_service.parse_price(event.price), history_count)

    ticket = None
    for _ in range(TICKET_CODE_ATTEMPTS):
        candidate = models.Ticket(
            event_id=event.id,
            user_id=actor.id,
            ticket_code=generate_ticket_code(),
            quantity=req.quantity,
        )
        if insert_unique(db, candidate, "ticket"):
            ticket = candidate
            break
    if ticket is None:
        raise HTTPException(status_code=503, detail="Could not allocate a ticket code, please retry")

    db.query(models.Event).filter(models.Event.id == event.id).update(
        {models.Event.attendees: func.coalesce(models.Event.attendees, 0) + req.quantity},
        synchronize_session=False,
    )
    db.commit()
    track_interaction(db, actor.id, event.id, "purchase")

    background_tasks.add_task(
        notification_service.send_registration_confirmation, actor.id, event.id, event.title
    )
    return schemas.TicketPurchaseResponse(
        ticket=ticket,
        unit_price=pricing["discounted_price"],
        discount_percentage=pricing["discount_percentage"],
        total_price=round(pricing["discounted_price"] * req.quantity, 2),
    )


@app.get("/tickets/mine", response_model=List[schemas.TicketWithEvent])
def list_my_tickets(db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    rows = (
        db.query(models.Ticket, models.Event)
        .join(models.Event, models.Event.id == models.Ticket.event_id)
        .filter(models.Ticket.user_id == actor.id)
        .order_by(models.Ticket.purchase_date.desc())
        .all()
    )
    return [schemas.TicketWithEvent(ticket=ticket, event=event) for ticket, event in rows]


@app.get("/tickets/{ticket_id}", response_model=schemas.TicketWithEvent)
def get_ticket(ticket_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    ticket = scan_service.get_ticket(db, ticket_id)
    event = scan_service.get_event(db, ticket.event_id)
    if ticket.user_id != actor.id:
        scan_service.ensure_event_organizer(event, actor)
    return schemas.TicketWithEvent(ticket=ticket, event=event)


# ------------- Attendees -------------

def parse_attendee_csv(csv_text: str) -> List[schemas.AttendeeImportItem]:
    reader = csv.DictReader(io.StringIO(csv_text.strip()))
    if not reader.fieldnames:
        raise HTTPException(status_code=400, detail="CSV file is empty")
    fieldnames = {name.strip().lower(): name for name in reader.fieldnames}
    if "name" not in fieldnames or "email" not in fieldnames:
        raise HTTPException(status_code=400, detail="CSV must have name and email columns")

    items = []
    for line_number, row in enumerate(reader, start=2):
        values = {key: (row.get(original) or "").strip() for key, original in fieldnames.items()}
        if not values.get("name") or not values.get("email"):
            continue
        try:
            items.append(
                schemas.AttendeeImportItem(
                    name=values["name"],
                    email=values["email"],
                    company=values.get("company") or None,
                    position=values.get("position") or None,
                )
            )
        except ValueError as exc:
            raise HTTPException(status_code=400, detail=f"Invalid attendee on line {line_number}") from exc
    return items


@app.post("/events/{event_id}/attendees/import", response_model=schemas.AttendeeImportResponse)
def import_attendees(
    event_id: str,
    req: schemas.AttendeeImportRequest,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    scan_service.ensure_event_organizer(event, actor)

    items = list(req.attendees)
    if req.csv_text:
        items.extend(parse_attendee_csv(req.csv_text))

    created = 0
    updated = 0
    for item in items:
        email = str(item.email).lower()
        attendee = db.query(models.Attendee).filter(func.lower(models.Attendee.email) == email).first()
        if attendee:
            attendee.name = item.name
            attendee.company = item.company
            attendee.position = item.position
            updated += 1
            continue
        db.add(
            models.Attendee(
                name=item.name,
                email=email,
                company=item.company,
                position=item.position,
                unique_code=scan_service.generate_attendee_code(),
            )
        )
        db.flush()
        created += 1

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(status_code=409, detail="Attendee import conflicted with a concurrent change") from exc
    return schemas.AttendeeImportResponse(created=created, updated=updated)


@app.get("/events/{event_id}/attendees/search", response_model=List[schemas.AttendeeSearchResult])
def search_attendees(
    event_id: str,
    q: str,
    day: Optional[int] = None,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    scan_service.ensure_event_organizer(event, actor)

    term = f"%{q}%"
    rows = (
        db.query(models.Ticket, models.Profile)
        .outerjoin(models.Profile, models.Profile.id == models.Ticket.user_id)
        .filter(models.Ticket.event_id == event_id)
        .filter(
            models.Ticket.ticket_code.ilike(term)
            | func.coalesce(models.Profile.email, "").ilike(term)
            | func.coalesce(models.Profile.first_name, "").ilike(term)
            | func.coalesce(models.Profile.last_name, "").ilike(term)
        )
        .limit(100)
        .all()
    )
    if not rows:
        return []

    check_in_query = db.query(models.CheckIn.ticket_id).filter(
        models.CheckIn.ticket_id.in_([ticket.id for ticket, _ in rows])
    )
    if day is not None:
        check_in_query = check_in_query.filter(models.CheckIn.event_day == day)
    checked_in = {row.ticket_id for row in check_in_query.all()}

    return [
        schemas.AttendeeSearchResult(
            ticket=ticket,
            attendee_name=scan_service.holder_name(profile),
            attendee_email=profile.email if profile else None,
            checked_in=ticket.id in checked_in,
        )
        for ticket, profile in rows
    ]


# ------------- Check-in -------------

def check_in_ticket(
    db: Session,
    ticket: models.Ticket,
    event_id: Optional[str],
    event_day: int,
    actor: models.Profile,
    background_tasks: BackgroundTasks,
) -> schemas.CheckInResponse:
    event = scan_service.resolve_ticket_event(db, ticket, actor, event_id)
    profile = scan_service.holder_profile(db, ticket)
    attendee_name = scan_service.holder_name(profile)

    outcome = scan_service.record_check_in(db, ticket, event_day, checked_in_by=actor.id)
    if not outcome.created:
        return schemas.CheckInResponse(
            status="already_checked_in",
            message=f"{attendee_name} is already checked in for day {event_day}",
            ticket=ticket,
            attendee_name=attendee_name,
            check_in=outcome.record,
        )

    logger.info("Ticket %s checked in for event %s day %s", ticket.id, event.id, event_day)
    if ticket.user_id:
        background_tasks.add_task(
            notification_service.send_check_in_confirmation, ticket.user_id, event.id, event.title, event_day
        )
    return schemas.CheckInResponse(
        status="checked_in",
        message=f"{attendee_name} checked in successfully",
        ticket=ticket,
        attendee_name=attendee_name,
        check_in=outcome.record,
    )


@app.post("/check-ins/scan", response_model=schemas.CheckInResponse)
def scan_check_in(
    req: schemas.ScanRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    ticket = scan_service.lookup_ticket(db, scan_service.parse_scan_payload(req.payload), req.event_id)
    return check_in_ticket(db, ticket, req.event_id, req.event_day, actor, background_tasks)


@app.post("/check-ins", response_model=schemas.CheckInResponse)
def manual_check_in(
    req: schemas.CheckInRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    ticket = scan_service.get_ticket(db, req.ticket_id)
    return check_in_ticket(db, ticket, req.event_id, req.event_day, actor, background_tasks)


def query_check_in_logs(db: Session, event_id: str, day: Optional[int], limit: Optional[int]):
    query = (
        db.query(models.CheckIn, models.Ticket, models.Profile)
        .join(models.Ticket, models.Ticket.id == models.CheckIn.ticket_id)
        .outerjoin(models.Profile, models.Profile.id == models.Ticket.user_id)
        .filter(models.CheckIn.event_id == event_id)
    )
    if day is not None:
        query = query.filter(models.CheckIn.event_day == day)
    query = query.order_by(models.CheckIn.checked_in_at.desc())
    if limit:
        query = query.limit(limit)
    return [
        schemas.CheckInLog(
            id=check_in.id,
            ticket_id=ticket.id,
            ticket_code=ticket.ticket_code,
            attendee_name=scan_service.holder_name(profile),
            attendee_email=profile.email if profile else None,
            event_day=check_in.event_day,
            checked_in_at=check_in.checked_in_at,
        )
        for check_in, ticket, profile in query.all()
    ]


@app.get("/events/{event_id}/check-ins", response_model=List[schemas.CheckInLog])
def list_check_ins(
    event_id: str,
    day: Optional[int] = None,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    scan_service.ensure_event_organizer(event, actor)
    return query_check_in_logs(db, event_id, day, limit=500)


@app.get("/events/{event_id}/check-ins/export")
def export_check_ins(
    event_id: str,
    day: Optional[int] = None,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    scan_service.ensure_event_organizer(event, actor)
    rows = query_check_in_logs(db, event_id, day, limit=None)

    output = io.StringIO()
    writer = csv.writer(output)
    writer.writerow(["id", "ticket_code", "attendee_name", "attendee_email", "event_day", "checked_in_at"])
    for row in rows:
        writer.writerow(
            [row.id, row.ticket_code, row.attendee_name, row.attendee_email, row.event_day, row.checked_in_at]
        )
    output.seek(0)
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename=check-ins-{event_id}.csv"},
    )


# ------------- Distribution -------------

def distribute_to_ticket(
    db: Session,
    ticket: models.Ticket,
    event_id: Optional[str],
    event_day: int,
    item_type: str,
    actor: models.Profile,
    background_tasks: BackgroundTasks,
) -> schemas.DistributionResponse:
    event = scan_service.resolve_ticket_event(db, ticket, actor, event_id)
    profile = scan_service.holder_profile(db, ticket)
    attendee_name = scan_service.holder_name(profile)

    attendee = scan_service.resolve_attendee(db, ticket, profile)
    outcome = scan_service.record_distribution(
        db, attendee, item_type, event.id, event_day, distributed_by=actor.id
    )
    if not outcome.created:
        return schemas.DistributionResponse(
            status="already_distributed",
            message=f"{item_type} already distributed to {attendee_name}",
            ticket=ticket,
            attendee_name=attendee_name,
            distribution=outcome.record,
        )

    logger.info("%s distributed to attendee %s for event %s", item_type, attendee.id, event.id)
    if ticket.user_id:
        background_tasks.add_task(
            notification_service.send_distribution_confirmation, ticket.user_id, event.id, event.title, item_type
        )
    return schemas.DistributionResponse(
        status="distributed",
        message=f"{item_type} distributed to {attendee_name}",
        ticket=ticket,
        attendee_name=attendee_name,
        distribution=outcome.record,
    )


@app.get("/distributions/item-types", response_model=List[str])
def list_item_types():
    return config.DEFAULT_ITEM_TYPES


@app.post("/distributions/scan", response_model=schemas.DistributionResponse)
def scan_distribution(
    req: schemas.DistributionScanRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    ticket = scan_service.lookup_ticket(db, scan_service.parse_scan_payload(req.payload), req.event_id)
    return distribute_to_ticket(db, ticket, req.event_id, req.event_day, req.item_type, actor, background_tasks)


@app.post("/distributions", response_model=schemas.DistributionResponse)
def manual_distribution(
    req: schemas.DistributionRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    ticket = scan_service.get_ticket(db, req.ticket_id)
    return distribute_to_ticket(db, ticket, req.event_id, req.event_day, req.item_type, actor, background_tasks)


@app.get("/events/{event_id}/distributions", response_model=List[schemas.DistributionLog])
def list_distributions(
    event_id: str,
    day: Optional[int] = None,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    scan_service.ensure_event_organizer(event, actor)

    query = (
        db.query(models.Distribution, models.Attendee)
        .join(models.Attendee, models.Attendee.id == models.Distribution.attendee_id)
        .filter(models.Distribution.event_id == event_id)
    )
    if day is not None:
        query = query.filter(models.Distribution.event_day == day)
    rows = query.order_by(models.Distribution.timestamp.desc()).limit(500).all()
    return [
        schemas.DistributionLog(
            id=distribution.id,
            attendee_name=attendee.name,
            item_type=distribution.item_type,
            event_day=distribution.event_day,
            timestamp=distribution.timestamp,
        )
        for distribution, attendee in rows
    ]


# ------------- Notifications -------------

@app.get("/notifications", response_model=List[schemas.Notification])
def list_notifications(db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    rows = (
        db.query(models.Notification, models.Event.title)
        .outerjoin(models.Event, models.Event.id == models.Notification.event_id)
        .filter(models.Notification.user_id == actor.id, models.Notification.is_read.is_(False))
        .order_by(models.Notification.created_at.desc())
        .all()
    )
    result = []
    for notification, event_title in rows:
        item = schemas.Notification.model_validate(notification)
        item.event_title = event_title or "Unknown Event"
        result.append(item)
    return result


@app.post("/notifications/{notification_id}/read", response_model=schemas.Notification)
def mark_notification_read(
    notification_id: str,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    notification = (
        db.query(models.Notification)
        .filter(models.Notification.id == notification_id, models.Notification.user_id == actor.id)
        .first()
    )
    if not notification:
        raise HTTPException(status_code=404, detail="Notification not found")
    notification.is_read = True
    db.commit()
    db.refresh(notification)
    return notification


@app.websocket("/ws/notifications/{user_id}")
async def websocket_notifications(websocket: WebSocket, user_id: str, token: str = ""):
    try:
        token_user_id = decode_user_id(token)
    except HTTPException:
        await websocket.close(code=1008)
        return
    if token_user_id != user_id:
        await websocket.close(code=1008)
        return

    await notification_service.manager.connect(websocket, user_id)
    try:
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        notification_service.manager.disconnect(websocket, user_id)


# ------------- Messages -------------

@app.post("/messages", response_model=schemas.Message)
def send_message(
    req: schemas.MessageCreate,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    scan_service.get_event(db, req.event_id)
    recipient = db.query(models.Profile).filter(models.Profile.id == req.recipient_id).first()
    if not recipient:
        raise HTTPException(status_code=404, detail="Recipient not found")
    if recipient.id == actor.id:
        raise HTTPException(status_code=400, detail="Cannot message yourself")

    message = models.Message(
        event_id=req.event_id,
        sender_id=actor.id,
        recipient_id=recipient.id,
        content=req.content,
        is_read=False,
    )
    db.add(message)
    db.commit()
    db.refresh(message)
    return message


@app.post("/events/{event_id}/contact-organizer", response_model=schemas.Message)
def contact_organizer(
    event_id: str,
    req: schemas.ContactOrganizerRequest,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    organizer = scan_service.find_organizer_profile(db, event)
    if not organizer:
        raise HTTPException(status_code=404, detail="Organizer profile not found")
    return send_message(
        schemas.MessageCreate(recipient_id=organizer.id, event_id=event_id, content=req.content), db, actor
    )


@app.get("/messages", response_model=List[schemas.Message])
def list_messages(
    event_id: Optional[str] = None,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    query = db.query(models.Message).filter(
        (models.Message.sender_id == actor.id) | (models.Message.recipient_id == actor.id)
    )
    if event_id:
        query = query.filter(models.Message.event_id == event_id)
    return query.order_by(models.Message.created_at.desc()).limit(500).all()


@app.post("/messages/{message_id}/read", response_model=schemas.Message)
def mark_message_read(
    message_id: str,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    message = db.query(models.Message).filter(models.Message.id == message_id).first()
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    if message.recipient_id != actor.id:
        raise HTTPException(status_code=403, detail="Only the recipient can mark a message as read")
    message.is_read = True
    db.commit()
    db.refresh(message)
    return message


# ------------- Feedback & favorites -------------

@app.put("/events/{event_id}/feedback", response_model=schemas.Feedback)
def submit_feedback(
    event_id: str,
    req: schemas.FeedbackRequest,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    feedback = (
        db.query(models.Feedback)
        .filter(models.Feedback.event_id == event_id, models.Feedback.user_id == actor.id)
        .first()
    )
    if feedback is None:
        feedback = models.Feedback(event_id=event_id, user_id=actor.id, rating=req.rating, comment=req.comment)
        if not insert_unique(db, feedback, "feedback"):
            feedback = (
                db.query(models.Feedback)
                .filter(models.Feedback.event_id == event_id, models.Feedback.user_id == actor.id)
                .first()
            )
    feedback.rating = req.rating
    feedback.comment = req.comment
    db.commit()
    db.refresh(feedback)

    organizer = scan_service.find_organizer_profile(db, event)
    if organizer and organizer.id != actor.id:
        background_tasks.add_task(
            notification_service.send_feedback_notice, organizer.id, event.id, event.title, req.rating
        )
    return feedback


@app.get("/events/{event_id}/feedback", response_model=schemas.FeedbackSummary)
def list_feedback(
    event_id: str,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = scan_service.get_event(db, event_id)
    scan_service.ensure_event_organizer(event, actor)
    entries = (
        db.query(models.Feedback)
        .filter(models.Feedback.event_id == event_id)
        .order_by(models.Feedback.created_at.desc())
        .all()
    )
    average = round(sum(entry.rating for entry in entries) / len(entries), 2) if entries else None
    return schemas.FeedbackSummary(event_id=event_id, count=len(entries), average_rating=average, entries=entries)


@app.post("/events/{event_id}/favorite")
def add_favorite(event_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    scan_service.get_event(db, event_id)
    insert_unique(db, models.Favorite(user_id=actor.id, event_id=event_id), "favorite")
    track_interaction(db, actor.id, event_id, "favorite")
    return {"status": "ok", "message": "Added to favorites"}


@app.delete("/events/{event_id}/favorite")
def remove_favorite(event_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    db.query(models.Favorite).filter(
        models.Favorite.user_id == actor.id, models.Favorite.event_id == event_id
    ).delete(synchronize_session=False)
    db.commit()
    return {"status": "ok", "message": "Removed from favorites"}


@app.get("/favorites", response_model=List[schemas.Event])
def list_favorites(db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    return (
        db.query(models.Event)
        .join(models.Favorite, models.Favorite.event_id == models.Event.id)
        .filter(models.Favorite.user_id == actor.id)
        .order_by(models.Event.date.asc())
        .all()
    )


# ------------- Financials -------------

def get_organizer_event(db: Session, event_id: str, actor: models.Profile) -> models.Event:
    event = scan_service.get_event(db, event_id)
    scan_service.ensure_event_organizer(event, actor)
    return event


def get_event_bill(db: Session, event_id: str, bill_id: str) -> models.Bill:
    bill = (
        db.query(models.Bill)
        .filter(models.Bill.id == bill_id, models.Bill.event_id == event_id)
        .first()
    )
    if not bill:
        raise HTTPException(status_code=404, detail="Bill not found")
    return bill


@app.post("/events/{event_id}/financials", response_model=schemas.Bill)
def create_bill(
    event_id: str,
    req: schemas.BillCreate,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    get_organizer_event(db, event_id, actor)
    values = req.model_dump()
    if values["bill_date"] is None:
        values["bill_date"] = datetime.utcnow()
    bill = models.Bill(event_id=event_id, created_by=actor.id, **values)
    db.add(bill)
    db.commit()
    db.refresh(bill)
    return bill


@app.get("/events/{event_id}/financials", response_model=List[schemas.Bill])
def list_bills(event_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    get_organizer_event(db, event_id, actor)
    return db.query(models.Bill).filter(models.Bill.event_id == event_id).order_by(models.Bill.bill_date.desc()).all()


@app.put("/events/{event_id}/financials/{bill_id}", response_model=schemas.Bill)
def update_bill(
    event_id: str,
    bill_id: str,
    req: schemas.BillUpdate,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    get_organizer_event(db, event_id, actor)
    bill = get_event_bill(db, event_id, bill_id)
    for field, value in req.model_dump(exclude_unset=True).items():
        setattr(bill, field, value)
    db.commit()
    db.refresh(bill)
    return bill


@app.delete("/events/{event_id}/financials/{bill_id}")
def delete_bill(
    event_id: str,
    bill_id: str,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    get_organizer_event(db, event_id, actor)
    bill = get_event_bill(db, event_id, bill_id)
    db.delete(bill)
    db.commit()
    return {"status": "ok", "message": "Bill deleted"}


def build_financial_summary(db: Session, event: models.Event) -> schemas.FinancialSummary:
    bills = db.query(models.Bill).filter(models.Bill.event_id == event.id).all()
    totals = {}
    for bill in bills:
        category = bill.bill_category or "Other"
        totals[category] = totals.get(category, 0.0) + float(bill.bill_amount or 0)

    breakdown = [
        schemas.CategoryTotal(category=category, amount=round(amount, 2))
        for category, amount in sorted(totals.items(), key=lambda item: item[1], reverse=True)
    ]
    largest = max(bills, key=lambda bill: float(bill.bill_amount or 0)) if bills else None
    return schemas.FinancialSummary(
        event_id=event.id,
        event_title=event.title,
        total_expenses=round(sum(float(bill.bill_amount or 0) for bill in bills), 2),
        number_of_bills=len(bills),
        category_breakdown=breakdown,
        largest_bill=largest,
    )


@app.get("/events/{event_id}/financials/summary", response_model=schemas.FinancialSummary)
def financial_summary(event_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    return build_financial_summary(db, get_organizer_event(db, event_id, actor))


@app.post("/events/{event_id}/financials/insights", response_model=schemas.InsightsResponse)
def financial_insights(event_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    summary = build_financial_summary(db, get_organizer_event(db, event_id, actor))
    financial_data = {
        "eventTitle": summary.event_title,
        "totalExpenses": summary.total_expenses,
        "numberOfBills": summary.number_of_bills,
        "categoryBreakdown": [item.model_dump() for item in summary.category_breakdown],
    }
    return schemas.InsightsResponse(insights=functions_service.get_financial_insights(financial_data))


@app.post("/receipts/analyze", response_model=schemas.ReceiptData)
def analyze_receipt(req: schemas.ReceiptAnalysisRequest, actor: models.Profile = Depends(get_current_profile)):
    return functions_service.analyze_receipt(req.image)


# ------------- Reminders -------------

@app.post("/events/{event_id}/reminder-email", response_model=schemas.ReminderEmail)
def reminder_email(event_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    event = get_organizer_event(db, event_id, actor)
    return functions_service.generate_event_reminder_email(
        {
            "title": event.title,
            "date": event.date,
            "location": event.location,
            "description": event.description,
        }
    )


@app.post("/events/{event_id}/reminders", response_model=schemas.Reminder)
def create_reminder(
    event_id: str,
    req: schemas.ReminderCreate,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    get_organizer_event(db, event_id, actor)
    reminder = models.Reminder(event_id=event_id, is_sent=False, **req.model_dump())
    db.add(reminder)
    db.commit()
    db.refresh(reminder)
    return reminder


@app.get("/events/{event_id}/reminders", response_model=List[schemas.Reminder])
def list_reminders(event_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    get_organizer_event(db, event_id, actor)
    return (
        db.query(models.Reminder)
        .filter(models.Reminder.event_id == event_id)
        .order_by(models.Reminder.reminder_date.asc())
        .all()
    )


@app.post("/events/{event_id}/reminders/{reminder_id}/send", response_model=schemas.ReminderSendResponse)
def send_reminder(
    event_id: str,
    reminder_id: str,
    req: schemas.ReminderSendRequest,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    event = get_organizer_event(db, event_id, actor)
    reminder = (
        db.query(models.Reminder)
        .filter(models.Reminder.id == reminder_id, models.Reminder.event_id == event_id)
        .first()
    )
    if not reminder:
        raise HTTPException(status_code=404, detail="Reminder not found")

    email = {"subject": req.subject, "content": req.content}
    if not email["subject"] or not email["content"]:
        email = functions_service.generate_event_reminder_email(
            {
                "title": event.title,
                "date": event.date,
                "location": event.location,
                "description": event.description,
            }
        )

    sent = functions_service.send_reminder_email(
        {
            "recipientEmail": str(req.recipient_email),
            "recipientName": req.recipient_name or "",
            "eventTitle": event.title,
            "eventDate": functions_service.format_event_date(event.date),
            "eventTime": event.date.strftime("%I:%M %p").lstrip("0") if event.date else "",
            "eventLocation": event.location or "",
            "eventDescription": event.description or "",
            "organizerName": "Event Team",
        }
    )
    if not sent:
        mailto_url = (
            f"mailto:{req.recipient_email}?subject={quote(email['subject'])}&body={quote(email['content'])}"
        )
        return schemas.ReminderSendResponse(
            status="not_sent",
            message="Failed to send reminder email. Copy the content or open your email client instead.",
            reminder=reminder,
            subject=email["subject"],
            content=email["content"],
            mailto_url=mailto_url,
        )

    reminder.is_sent = True
    db.commit()
    db.refresh(reminder)
    logger.info("Reminder %s for event %s sent to %s", reminder.id, event.id, req.recipient_email)
    return schemas.ReminderSendResponse(
        status="sent",
        message="Reminder email sent successfully",
        reminder=reminder,
        subject=email["subject"],
        content=email["content"],
    )


# ------------- Recommendations -------------

@app.get("/me/interests", response_model=List[schemas.InterestItem])
def get_interests(db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    return db.query(models.UserInterest).filter(models.UserInterest.user_id == actor.id).all()


@app.put("/me/interests", response_model=List[schemas.InterestItem])
def update_interests(
    req: List[schemas.InterestItem],
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    existing = {
        interest.category: interest
        for interest in db.query(models.UserInterest).filter(models.UserInterest.user_id == actor.id).all()
    }
    for item in req:
        interest = existing.get(item.category)
        if interest:
            interest.interest_level = item.interest_level
        else:
            interest = models.UserInterest(
                user_id=actor.id, category=item.category, interest_level=item.interest_level
            )
            db.add(interest)
            existing[item.category] = interest
    db.commit()
    return db.query(models.UserInterest).filter(models.UserInterest.user_id == actor.id).all()


@app.post("/events/{event_id}/interactions")
def record_interaction(
    event_id: str,
    req: schemas.InteractionRequest,
    db: Session = Depends(get_db),
    actor: models.Profile = Depends(get_current_profile),
):
    scan_service.get_event(db, event_id)
    track_interaction(db, actor.id, event_id, req.interaction_type)
    return {"status": "ok", "message": "Interaction recorded"}


@app.get("/recommendations", response_model=List[schemas.Recommendation])
def recommendations(db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    interests = [
        row.category
        for row in db.query(models.UserInterest.category).filter(models.UserInterest.user_id == actor.id).all()
    ]
    interacted = [
        row.event_id
        for row in db.query(models.Interaction.event_id).filter(models.Interaction.user_id == actor.id).all()
    ]
    events = db.query(models.Event).order_by(models.Event.date.asc()).all()
    return [
        schemas.Recommendation(event=event, score=score)
        for event, score in recommendation_service.recommend_events(events, interests, interacted)
    ]


@app.get("/recommendations/learning-path", response_model=schemas.LearningPath)
def learning_path(skill: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    events = db.query(models.Event).all()
    return recommendation_service.learning_path(skill, events)


@app.get("/events/{event_id}/pricing", response_model=schemas.PricingResponse)
def event_pricing(event_id: str, db: Session = Depends(get_db), actor: models.Profile = Depends(get_current_profile)):
    event = scan_service.get_event(db, event_id)
    base_price = recommendation_service.parse_price(event.price)
    history_count = db.query(models.Interaction).filter(models.Interaction.user_id == actor.id).count()
    pricing = recommendation_service.dynamic_pricing(base_price, history_count)
    return schemas.PricingResponse(event_id=event.id, base_price=base_price, **pricing)
