from pydantic import BaseModel, ConfigDict, EmailStr, Field
from typing import Optional, List
from datetime import datetime


class ProfileUpdate(BaseModel):
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    banner_url: Optional[str] = None


class Profile(ProfileUpdate):
    id: str

    model_config = ConfigDict(from_attributes=True)


class EventBase(BaseModel):
    title: str
    date: datetime
    location: str
    category: str
    end_date: Optional[datetime] = None
    description: Optional[str] = None
    price: str = "0"
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None
    is_featured: bool = False
    loyalty_discount: Optional[int] = None


class EventCreate(EventBase):
    pass


class EventUpdate(BaseModel):
    title: Optional[str] = None
    date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    location: Optional[str] = None
    category: Optional[str] = None
    description: Optional[str] = None
    price: Optional[str] = None
    tags: Optional[List[str]] = None
    image_url: Optional[str] = None
    is_featured: Optional[bool] = None
    loyalty_discount: Optional[int] = None


class Event(EventBase):
    id: str
    organizer: str
    keywords: Optional[List[str]] = None
    attendees: Optional[int] = 0

    model_config = ConfigDict(from_attributes=True)


class EventDay(BaseModel):
    event_id: str
    day_number: int
    day_date: datetime


class Ticket(BaseModel):
    id: str
    event_id: str
    user_id: str
    ticket_code: str
    quantity: int
    purchase_date: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class TicketWithEvent(BaseModel):
    ticket: Ticket
    event: Event


class TicketPurchaseRequest(BaseModel):
    quantity: int = Field(default=1, ge=1)


class TicketPurchaseResponse(BaseModel):
    ticket: Ticket
    unit_price: float
    discount_percentage: int
    total_price: float


class AttendeeSearchResult(BaseModel):
    ticket: Ticket
    attendee_name: str
    attendee_email: Optional[str] = None
    checked_in: bool


# Check-in / distribution

class ScanRequest(BaseModel):
    payload: str
    event_id: Optional[str] = None
    event_day: int = Field(default=1, ge=1)


class CheckInRequest(BaseModel):
    ticket_id: str
    event_id: Optional[str] = None
    event_day: int = Field(default=1, ge=1)


class CheckIn(BaseModel):
    id: str
    ticket_id: str
    event_id: str
    event_day: int
    checked_in_at: Optional[datetime] = None
    checked_in_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CheckInResponse(BaseModel):
    status: str  # checked_in, already_checked_in
    message: str
    ticket: Ticket
    attendee_name: str
    check_in: Optional[CheckIn] = None


class CheckInLog(BaseModel):
    id: str
    ticket_id: str
    ticket_code: Optional[str] = None
    attendee_name: str
    attendee_email: Optional[str] = None
    event_day: int
    checked_in_at: Optional[datetime] = None


class DistributionScanRequest(ScanRequest):
    item_type: str = Field(default="T-shirt", min_length=1)


class DistributionRequest(CheckInRequest):
    item_type: str = Field(default="T-shirt", min_length=1)


class Distribution(BaseModel):
    id: str
    attendee_id: str
    item_type: str
    event_id: Optional[str] = None
    event_day: int
    timestamp: Optional[datetime] = None
    distributed_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class DistributionResponse(BaseModel):
    status: str  # distributed, already_distributed
    message: str
    ticket: Ticket
    attendee_name: str
    distribution: Optional[Distribution] = None


class DistributionLog(BaseModel):
    id: str
    attendee_name: str
    item_type: str
    event_day: int
    timestamp: Optional[datetime] = None


class AttendeeImportItem(BaseModel):
    name: str
    email: EmailStr
    company: Optional[str] = None
    position: Optional[str] = None


class AttendeeImportRequest(BaseModel):
    attendees: List[AttendeeImportItem] = []
    csv_text: Optional[str] = None  # header row must include name and email


class AttendeeImportResponse(BaseModel):
    created: int
    updated: int


# Notifications, messages, feedback

class Notification(BaseModel):
    id: str
    user_id: str
    event_id: str
    type: str
    message: str
    is_read: bool
    created_at: Optional[datetime] = None
    event_title: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class MessageCreate(BaseModel):
    recipient_id: str
    event_id: str
    content: str = Field(min_length=1)


class ContactOrganizerRequest(BaseModel):
    content: str = Field(min_length=1)


class Message(BaseModel):
    id: str
    event_id: str
    sender_id: str
    recipient_id: str
    content: str
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FeedbackRequest(BaseModel):
    rating: int = Field(ge=1, le=5)
    comment: Optional[str] = None


class Feedback(BaseModel):
    id: str
    event_id: str
    user_id: str
    rating: int
    comment: Optional[str] = None
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class FeedbackSummary(BaseModel):
    event_id: str
    count: int
    average_rating: Optional[float] = None
    entries: List[Feedback]


# Financials and AI helpers

class BillCreate(BaseModel):
    bill_name: str
    bill_amount: float = Field(ge=0)
    bill_category: str = "Other"
    bill_date: Optional[datetime] = None
    bill_description: Optional[str] = None
    receipt_url: Optional[str] = None


class BillUpdate(BaseModel):
    bill_name: Optional[str] = None
    bill_amount: Optional[float] = Field(default=None, ge=0)
    bill_category: Optional[str] = None
    bill_date: Optional[datetime] = None
    bill_description: Optional[str] = None
    receipt_url: Optional[str] = None


class Bill(BillCreate):
    id: str
    event_id: str
    created_by: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class CategoryTotal(BaseModel):
    category: str
    amount: float


class FinancialSummary(BaseModel):
    event_id: str
    event_title: str
    total_expenses: float
    number_of_bills: int
    category_breakdown: List[CategoryTotal]
    largest_bill: Optional[Bill] = None


class InsightsResponse(BaseModel):
    insights: str


class ReceiptAnalysisRequest(BaseModel):
    image: str


class ReceiptData(BaseModel):
    name: str
    amount: str
    date: str
    category: str
    description: str = ""


class ReminderEmail(BaseModel):
    subject: str
    content: str


class ReminderCreate(BaseModel):
    reminder_title: str
    reminder_description: str
    reminder_date: datetime


class Reminder(ReminderCreate):
    id: str
    event_id: str
    is_sent: bool

    model_config = ConfigDict(from_attributes=True)


class ReminderSendRequest(BaseModel):
    recipient_email: EmailStr
    recipient_name: Optional[str] = None
    subject: Optional[str] = None
    content: Optional[str] = None


class ReminderSendResponse(BaseModel):
    status: str  # sent, not_sent
    message: str
    reminder: Reminder
    subject: str
    content: str
    mailto_url: Optional[str] = None  # only when not sent


# Recommendations

class InterestItem(BaseModel):
    category: str
    interest_level: int = Field(default=1, ge=1, le=5)

    model_config = ConfigDict(from_attributes=True)


class InteractionRequest(BaseModel):
    interaction_type: str = "view"


class Recommendation(BaseModel):
    event: Event
    score: int


class LearningPath(BaseModel):
    name: str
    description: str
    events: List[Event]


class PricingResponse(BaseModel):
    event_id: str
    base_price: float
    discounted_price: float
    discount_percentage: int
    reason: str
