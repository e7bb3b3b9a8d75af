import asyncio
import threading

import models
import notification_service


def test_notification_write_runs_off_the_event_loop(monkeypatch):
    threads = []

    def recording_store(user_id, event_id, notification_type, message):
        threads.append(threading.get_ident())
        raise RuntimeError("stop after recording")

    monkeypatch.setattr(notification_service, "store_notification", recording_store)

    assert asyncio.run(notification_service.send_check_in_confirmation("user-1", "event-1", "PyCon Local", 2)) is False
    assert len(threads) == 1
    assert threads[0] != threading.get_ident()


def test_send_notification_stores_row(db, attendee, event):
    sent = asyncio.run(notification_service.send_distribution_confirmation(attendee.id, event.id, "PyCon Local", "Badge"))

    assert sent is True
    stored = db.query(models.Notification).one()
    assert stored.type == notification_service.DISTRIBUTION
    assert stored.message == 'You have received a Badge for "PyCon Local".'
