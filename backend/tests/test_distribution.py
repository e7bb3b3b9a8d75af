import pytest
from fastapi import HTTPException
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session

import database
import models
from conftest import auth_headers


def distribute(client, profile, payload, item_type="T-shirt", event_id=None, event_day=1):
    body = {"payload": payload, "item_type": item_type, "event_day": event_day}
    if event_id:
        body["event_id"] = event_id
    return client.post("/distributions/scan", json=body, headers=auth_headers(profile))


def test_distribution_creates_attendee_record(client, db, organizer, event, ticket):
    response = distribute(client, organizer, "Ticket Code: ABCD2345", event_id=event.id)

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "distributed"
    assert data["distribution"]["item_type"] == "T-shirt"

    attendee = db.query(models.Attendee).one()
    assert attendee.email == "sam@example.com"
    assert attendee.name == "Sam Lee"
    assert attendee.unique_code == "ABCD2345"
    assert data["distribution"]["attendee_id"] == attendee.id


def test_same_item_twice_is_already_distributed(client, db, organizer, event, ticket):
    first = distribute(client, organizer, "ABCD2345", event_id=event.id)
    second = distribute(client, organizer, "ABCD2345", event_id=event.id, event_day=2)

    assert first.json()["status"] == "distributed"
    assert second.status_code == 200
    assert second.json()["status"] == "already_distributed"
    assert db.query(models.Distribution).count() == 1
    assert db.query(models.Attendee).count() == 1


def test_different_items_are_tracked_separately(client, db, organizer, event, ticket):
    assert distribute(client, organizer, "ABCD2345", "T-shirt").json()["status"] == "distributed"
    assert distribute(client, organizer, "ABCD2345", "Badge").json()["status"] == "distributed"
    assert db.query(models.Distribution).count() == 2


def test_existing_attendee_is_reused(client, db, organizer, event, ticket):
    db.add(models.Attendee(name="Samuel Lee", email="sam@example.com", unique_code="IMPORT01"))
    db.commit()

    response = client.post(
        "/distributions",
        json={"ticket_id": ticket.id, "item_type": "Badge"},
        headers=auth_headers(organizer),
    )
    assert response.json()["status"] == "distributed"
    assert db.query(models.Attendee).count() == 1


def test_non_organizer_cannot_distribute(client, db, outsider, event, ticket):
    response = distribute(client, outsider, "ABCD2345")
    assert response.status_code == 403
    assert db.query(models.Distribution).count() == 0
    assert db.query(models.Attendee).count() == 0


def test_distribution_notifies_holder(client, db, organizer, attendee, event, ticket):
    distribute(client, organizer, "ABCD2345", "Swag Bag")
    notification = db.query(models.Notification).one()
    assert notification.user_id == attendee.id
    assert notification.message == 'You have received a Swag Bag for "PyCon Local".'


def test_insert_unique_maps_storage_errors(db, monkeypatch):
    def broken_commit():
        raise OperationalError("INSERT", {}, Exception("disk I/O error"))

    monkeypatch.setattr(db, "commit", broken_commit)
    with pytest.raises(HTTPException) as exc:
        database.insert_unique(db, models.Attendee(name="X", email="x@example.com", unique_code="X1"), "attendee")
    assert exc.value.status_code == 503


def test_item_types_are_listed(client):
    response = client.get("/distributions/item-types")
    assert response.status_code == 200
    assert "T-shirt" in response.json()


def test_distribution_log(client, organizer, event, ticket):
    distribute(client, organizer, "ABCD2345", "Badge", event_id=event.id)
    response = client.get(f"/events/{event.id}/distributions", headers=auth_headers(organizer))
    assert response.status_code == 200
    assert response.json()[0]["item_type"] == "Badge"
    assert response.json()[0]["attendee_name"] == "Sam Lee"


def test_storage_error_returns_503_without_notification(client, db, organizer, event, ticket, monkeypatch):
    real_commit = Session.commit

    def commit(self):
        if any(isinstance(obj, models.Distribution) for obj in self.new):
            raise OperationalError("INSERT", {}, Exception("database is locked"))
        return real_commit(self)

    monkeypatch.setattr(Session, "commit", commit)

    response = distribute(client, organizer, "ABCD2345")
    assert response.status_code == 503
    assert db.query(models.Distribution).count() == 0
    assert db.query(models.Notification).count() == 0


def test_imported_attendee_matches_profile_email_case_insensitively(client, db, organizer, attendee, event, ticket):
    attendee.email = "Sam@Example.com"
    db.commit()

    imported = client.post(
        f"/events/{event.id}/attendees/import",
        json={"attendees": [{"name": "Sam Lee", "email": "Sam@Example.com"}]},
        headers=auth_headers(organizer),
    )
    assert imported.json() == {"created": 1, "updated": 0}

    response = distribute(client, organizer, "ABCD2345", event_id=event.id)
    assert response.json()["status"] == "distributed"
    assert [row.email for row in db.query(models.Attendee).all()] == ["sam@example.com"]


def test_legacy_mixed_case_attendee_is_reused(client, db, organizer, event, ticket):
    db.add(models.Attendee(name="Sam Lee", email="SAM@example.com", unique_code="LEGACY01"))
    db.commit()

    distribute(client, organizer, "ABCD2345", event_id=event.id)
    assert db.query(models.Attendee).count() == 1
