import uuid
from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from database import Base


def new_id() -> str:
    return str(uuid.uuid4())


class Profile(Base):
    __tablename__ = "profiles"

    id = Column(String, primary_key=True, default=new_id)  # same id as the auth user
    first_name = Column(String, nullable=True)
    last_name = Column(String, nullable=True)
    email = Column(String, nullable=True, index=True)
    bio = Column(String, nullable=True)
    avatar_url = Column(String, nullable=True)
    banner_url = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Event(Base):
    __tablename__ = "events"

    id = Column(String, primary_key=True, default=new_id)
    title = Column(String, index=True)
    description = Column(String, nullable=True)
    date = Column(DateTime(timezone=True))
    end_date = Column(DateTime(timezone=True), nullable=True)
    location = Column(String)
    organizer = Column(String, index=True)  # display name of the creating user, not a user id
    price = Column(String, default="0")
    category = Column(String, index=True)
    tags = Column(JSON, nullable=True)
    keywords = Column(JSON, nullable=True)
    image_url = Column(String, nullable=True)
    is_featured = Column(Boolean, default=False)
    attendees = Column(Integer, default=0)
    loyalty_discount = Column(Integer, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Ticket(Base):
    __tablename__ = "event_tickets"

    id = Column(String, primary_key=True, default=new_id)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    user_id = Column(String, ForeignKey("profiles.id"), index=True)
    ticket_code = Column(String, unique=True, index=True)
    quantity = Column(Integer, default=1)
    purchase_date = Column(DateTime(timezone=True), server_default=func.now())
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class CheckIn(Base):
    __tablename__ = "event_check_ins"
    __table_args__ = (UniqueConstraint("ticket_id", "event_day", name="uq_check_in_ticket_day"),)

    id = Column(String, primary_key=True, default=new_id)
    ticket_id = Column(String, ForeignKey("event_tickets.id"), index=True)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    event_day = Column(Integer, default=1)
    checked_in_at = Column(DateTime(timezone=True), server_default=func.now())
    checked_in_by = Column(String, nullable=True)


class Attendee(Base):
    __tablename__ = "attendees"

    id = Column(String, primary_key=True, default=new_id)
    name = Column(String)
    email = Column(String, unique=True, index=True)
    company = Column(String, nullable=True)
    position = Column(String, nullable=True)
    unique_code = Column(String, unique=True, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Distribution(Base):
    __tablename__ = "distributions"
    __table_args__ = (UniqueConstraint("attendee_id", "item_type", name="uq_distribution_attendee_item"),)

    id = Column(String, primary_key=True, default=new_id)
    attendee_id = Column(String, ForeignKey("attendees.id"), index=True)
    item_type = Column(String)  # T-shirt, Badge, Swag Bag, ...
    event_id = Column(String, ForeignKey("events.id"), nullable=True, index=True)
    event_day = Column(Integer, default=1)
    timestamp = Column(DateTime(timezone=True), server_default=func.now())
    distributed_by = Column(String, nullable=True)


class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), index=True)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    type = Column(String)  # registration, check_in, distribution, feedback
    message = Column(String)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Message(Base):
    __tablename__ = "messages"

    id = Column(String, primary_key=True, default=new_id)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    sender_id = Column(String, ForeignKey("profiles.id"), index=True)
    recipient_id = Column(String, ForeignKey("profiles.id"), index=True)
    content = Column(String)
    is_read = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Feedback(Base):
    __tablename__ = "feedback"
    __table_args__ = (UniqueConstraint("event_id", "user_id", name="uq_feedback_event_user"),)

    id = Column(String, primary_key=True, default=new_id)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    user_id = Column(String, ForeignKey("profiles.id"), index=True)
    rating = Column(Integer)
    comment = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Favorite(Base):
    __tablename__ = "user_favorites"
    __table_args__ = (UniqueConstraint("user_id", "event_id", name="uq_favorite_user_event"),)

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), index=True)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class Bill(Base):
    __tablename__ = "event_financials"

    id = Column(String, primary_key=True, default=new_id)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    bill_name = Column(String)
    bill_amount = Column(Float, default=0)
    bill_category = Column(String, default="Other")
    bill_date = Column(DateTime(timezone=True), server_default=func.now())
    bill_description = Column(String, nullable=True)
    receipt_url = Column(String, nullable=True)
    created_by = Column(String, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Reminder(Base):
    __tablename__ = "event_reminders"

    id = Column(String, primary_key=True, default=new_id)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    reminder_title = Column(String)
    reminder_description = Column(String)
    reminder_date = Column(DateTime(timezone=True))
    is_sent = Column(Boolean, default=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class UserInterest(Base):
    __tablename__ = "user_interests"
    __table_args__ = (UniqueConstraint("user_id", "category", name="uq_interest_user_category"),)

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), index=True)
    category = Column(String)
    interest_level = Column(Integer, default=1)
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())


class Interaction(Base):
    __tablename__ = "user_event_interactions"
    __table_args__ = (
        UniqueConstraint("user_id", "event_id", "interaction_type", name="uq_interaction_user_event_type"),
    )

    id = Column(String, primary_key=True, default=new_id)
    user_id = Column(String, ForeignKey("profiles.id"), index=True)
    event_id = Column(String, ForeignKey("events.id"), index=True)
    interaction_type = Column(String)  # view, favorite, purchase
    created_at = Column(DateTime(timezone=True), server_default=func.now())
