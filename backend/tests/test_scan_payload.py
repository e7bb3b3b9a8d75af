import json

import pytest
from fastapi import HTTPException

import models
import scan_service
from conftest import auth_headers


def test_parse_json_payload():
    payload = scan_service.parse_scan_payload(json.dumps({"ticket_id": "t-1", "ticket_code": "ABCD2345"}))
    assert payload.ticket_id == "t-1"
    assert payload.ticket_code == "ABCD2345"


def test_parse_labelled_text_payload():
    payload = scan_service.parse_scan_payload("Event: PyCon Local\nTicket Code: ABCD2345\nQty: 1")
    assert payload.ticket_id is None
    assert payload.ticket_code == "ABCD2345"


def test_parse_bare_code_payload():
    payload = scan_service.parse_scan_payload("  ABCD2345 \n")
    assert payload.ticket_code == "ABCD2345"


@pytest.mark.parametrize("raw", ["", "   ", "{}", json.dumps({"ticket_code": ""})])
def test_parse_rejects_empty_payload(raw):
    with pytest.raises(HTTPException) as exc:
        scan_service.parse_scan_payload(raw)
    assert exc.value.status_code == 400


@pytest.mark.parametrize(
    "raw",
    [
        "ABCD2345",
        "Ticket Code: ABCD2345",
        json.dumps({"ticket_code": "ABCD2345"}),
        "CD23",
    ],
)
def test_all_payload_shapes_find_the_same_ticket(db, ticket, raw):
    found = scan_service.lookup_ticket(db, scan_service.parse_scan_payload(raw))
    assert found.id == ticket.id


def test_lookup_prefers_ticket_id(db, ticket):
    payload = scan_service.ScanPayload(ticket_id=ticket.id, ticket_code="ZZZZZZZZ")
    assert scan_service.lookup_ticket(db, payload).id == ticket.id


def test_lookup_unknown_ticket_raises_not_found_and_creates_nothing(db, ticket):
    with pytest.raises(HTTPException) as exc:
        scan_service.lookup_ticket(db, scan_service.ScanPayload(ticket_code="NOPE9999"))
    assert exc.value.status_code == 404
    assert db.query(models.Ticket).count() == 1


def test_scan_unknown_code_returns_404(client, db, organizer, event):
    response = client.post(
        "/check-ins/scan",
        json={"payload": "Ticket Code: NOPE9999", "event_id": event.id},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 404
    assert db.query(models.Ticket).count() == 0
    assert db.query(models.CheckIn).count() == 0


def test_scan_garbage_payload_returns_400(client, organizer):
    response = client.post("/check-ins/scan", json={"payload": "   "}, headers=auth_headers(organizer))
    assert response.status_code == 400


@pytest.mark.parametrize("raw", ["%", "_", "AB%", "A_CD"])
def test_wildcard_characters_do_not_match_other_tickets(db, ticket, raw):
    with pytest.raises(HTTPException) as exc:
        scan_service.lookup_ticket(db, scan_service.parse_scan_payload(raw))
    assert exc.value.status_code == 404


def test_wildcard_scan_does_not_check_anyone_in(client, db, organizer, event, ticket):
    response = client.post(
        "/check-ins/scan",
        json={"payload": "%", "event_id": event.id},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 404
    assert db.query(models.CheckIn).count() == 0


def test_partial_code_lookup_is_scoped_to_the_scanned_event(client, db, organizer, attendee, event, ticket):
    other = models.Event(
        title="Evening Meetup",
        date=event.date,
        location="Room 2",
        organizer="Jane Doe",
        price="0",
        category="Technology",
    )
    db.add(other)
    db.commit()
    other_ticket = models.Ticket(event_id=other.id, user_id=attendee.id, ticket_code="XXCD23YY", quantity=1)
    db.add(other_ticket)
    db.commit()

    found = scan_service.lookup_ticket(db, scan_service.parse_scan_payload("CD23"), other.id)
    assert found.id == other_ticket.id

    response = client.post(
        "/check-ins/scan",
        json={"payload": "CD23", "event_id": other.id},
        headers=auth_headers(organizer),
    )
    assert response.status_code == 200
    assert response.json()["ticket"]["id"] == other_ticket.id
