"""Best-effort user notifications.

Notifications are written after the primary action has been committed and
the response produced (FastAPI background tasks). A failure here is logged
and dropped; it never rolls back a check-in, distribution or purchase.
"""
import logging
from typing import Dict, List

from fastapi import WebSocket
from fastapi.concurrency import run_in_threadpool

import database
import models

logger = logging.getLogger(__name__)

REGISTRATION = "registration"
CHECK_IN = "check_in"
DISTRIBUTION = "distribution"
FEEDBACK = "feedback"


class ConnectionManager:
    def __init__(self):
        self.active_connections: Dict[str, List[WebSocket]] = {}

    async def connect(self, websocket: WebSocket, user_id: str):
        await websocket.accept()
        self.active_connections.setdefault(user_id, []).append(websocket)

    def disconnect(self, websocket: WebSocket, user_id: str):
        connections = self.active_connections.get(user_id, [])
        if websocket in connections:
            connections.remove(websocket)
        if not connections:
            self.active_connections.pop(user_id, None)

    async def send_to_user(self, user_id: str, message: dict):
        for connection in list(self.active_connections.get(user_id, [])):
            try:
                await connection.send_json(message)
            except Exception:
                logger.warning("Dropping notification socket for user %s", user_id)
                self.disconnect(connection, user_id)


manager = ConnectionManager()


def registration_message(event_title: str) -> str:
    return f'Thank you for registering for "{event_title}". Your ticket has been confirmed.'


def check_in_message(event_title: str, event_day: int = 1) -> str:
    return f'You have been checked in for "{event_title}" (Day {event_day}).'


def distribution_message(event_title: str, item_type: str) -> str:
    return f'You have received a {item_type} for "{event_title}".'


def feedback_message(event_title: str, rating: int) -> str:
    return f'New feedback ({rating}/5) received for "{event_title}".'


def store_notification(user_id: str, event_id: str, notification_type: str, message: str) -> models.Notification:
    db = database.SessionLocal()
    try:
        notification = models.Notification(
            user_id=user_id,
            event_id=event_id,
            type=notification_type,
            message=message,
            is_read=False,
        )
        db.add(notification)
        db.commit()
        db.refresh(notification)
        db.expunge(notification)
        return notification
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


async def send_notification(user_id: str, event_id: str, notification_type: str, message: str) -> bool:
    try:
        notification = await run_in_threadpool(store_notification, user_id, event_id, notification_type, message)
    except Exception:
        logger.exception("Error sending %s notification to user %s", notification_type, user_id)
        return False

    await manager.send_to_user(
        user_id,
        {
            "type": "notification",
            "id": notification.id,
            "event_id": event_id,
            "notification_type": notification_type,
            "message": message,
        },
    )
    return True


async def send_registration_confirmation(user_id: str, event_id: str, event_title: str) -> bool:
    return await send_notification(user_id, event_id, REGISTRATION, registration_message(event_title))


async def send_check_in_confirmation(user_id: str, event_id: str, event_title: str, event_day: int = 1) -> bool:
    return await send_notification(user_id, event_id, CHECK_IN, check_in_message(event_title, event_day))


async def send_distribution_confirmation(user_id: str, event_id: str, event_title: str, item_type: str) -> bool:
    return await send_notification(user_id, event_id, DISTRIBUTION, distribution_message(event_title, item_type))


async def send_feedback_notice(user_id: str, event_id: str, event_title: str, rating: int) -> bool:
    return await send_notification(user_id, event_id, FEEDBACK, feedback_message(event_title, rating))
