import requests

import config
import functions_service
from conftest import auth_headers


def add_bill(client, organizer, event, name, amount, category):
    return client.post(
        f"/events/{event.id}/financials",
        json={"bill_name": name, "bill_amount": amount, "bill_category": category},
        headers=auth_headers(organizer),
    )


def test_bill_crud_and_summary(client, organizer, event):
    venue = add_bill(client, organizer, event, "Hall rental", 1200, "Venue")
    add_bill(client, organizer, event, "Coffee", 150.5, "Catering")
    add_bill(client, organizer, event, "Lunch", 300, "Catering")
    assert venue.status_code == 200
    assert venue.json()["bill_date"] is not None

    bills = client.get(f"/events/{event.id}/financials", headers=auth_headers(organizer)).json()
    assert len(bills) == 3

    summary = client.get(f"/events/{event.id}/financials/summary", headers=auth_headers(organizer)).json()
    assert summary["total_expenses"] == 1650.5
    assert summary["number_of_bills"] == 3
    assert summary["category_breakdown"][0] == {"category": "Venue", "amount": 1200.0}
    assert summary["category_breakdown"][1] == {"category": "Catering", "amount": 450.5}
    assert summary["largest_bill"]["bill_name"] == "Hall rental"

    bill_id = venue.json()["id"]
    updated = client.put(
        f"/events/{event.id}/financials/{bill_id}",
        json={"bill_amount": 1000},
        headers=auth_headers(organizer),
    )
    assert updated.json()["bill_amount"] == 1000.0

    assert client.delete(f"/events/{event.id}/financials/{bill_id}", headers=auth_headers(organizer)).status_code == 200
    assert client.delete(f"/events/{event.id}/financials/{bill_id}", headers=auth_headers(organizer)).status_code == 404


def test_financials_are_organizer_only(client, outsider, event):
    assert client.get(f"/events/{event.id}/financials", headers=auth_headers(outsider)).status_code == 403
    assert add_bill(client, outsider, event, "Sneaky", 1, "Other").status_code == 403


def test_negative_bill_is_rejected(client, organizer, event):
    assert add_bill(client, organizer, event, "Refund", -5, "Other").status_code == 422


def test_insights_fall_back_when_functions_are_not_configured(client, organizer, event):
    add_bill(client, organizer, event, "Hall rental", 1200, "Venue")

    response = client.post(f"/events/{event.id}/financials/insights", headers=auth_headers(organizer))
    assert response.status_code == 200
    insights = response.json()["insights"]
    assert "Financial Overview" in insights
    assert "$1200.00" in insights
    assert "Venue" in insights


def test_insights_use_remote_function(client, organizer, event, monkeypatch):
    calls = []

    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {"insights": "<p>Spend less on venues.</p>"}

    def fake_post(url, json, headers, timeout):
        calls.append((url, json))
        return FakeResponse()

    monkeypatch.setattr(config, "FUNCTIONS_BASE_URL", "https://functions.example.com")
    monkeypatch.setattr(functions_service.requests, "post", fake_post)

    response = client.post(f"/events/{event.id}/financials/insights", headers=auth_headers(organizer))
    assert response.json()["insights"] == "<p>Spend less on venues.</p>"
    assert calls[0][0] == "https://functions.example.com/financial-insights"
    assert calls[0][1]["financialData"]["eventTitle"] == "PyCon Local"


def test_reminder_email_falls_back_on_network_error(client, organizer, event, monkeypatch):
    def failing_post(*args, **kwargs):
        raise requests.ConnectionError("unreachable")

    monkeypatch.setattr(config, "FUNCTIONS_BASE_URL", "https://functions.example.com")
    monkeypatch.setattr(functions_service.requests, "post", failing_post)

    response = client.post(f"/events/{event.id}/reminder-email", headers=auth_headers(organizer))
    assert response.status_code == 200
    email = response.json()
    assert email["subject"] == "Reminder: PyCon Local"
    assert "PyCon Local" in email["content"]
    assert "Hall A" in email["content"]


def test_reminders(client, organizer, event):
    created = client.post(
        f"/events/{event.id}/reminders",
        json={
            "reminder_title": "Doors open",
            "reminder_description": "Registration desk opens at 8am",
            "reminder_date": "2026-04-30T08:00:00",
        },
        headers=auth_headers(organizer),
    )
    assert created.status_code == 200
    assert created.json()["is_sent"] is False

    reminders = client.get(f"/events/{event.id}/reminders", headers=auth_headers(organizer)).json()
    assert [r["reminder_title"] for r in reminders] == ["Doors open"]


def test_receipt_analysis_fallback(client, organizer):
    response = client.post("/receipts/analyze", json={"image": "aGVsbG8="}, headers=auth_headers(organizer))
    assert response.status_code == 200
    assert response.json()["name"] == "Receipt Item"
    assert response.json()["category"] == "Other"


def create_reminder(client, organizer, event):
    return client.post(
        f"/events/{event.id}/reminders",
        json={
            "reminder_title": "Doors open",
            "reminder_description": "Registration desk opens at 8am",
            "reminder_date": "2026-04-30T08:00:00",
        },
        headers=auth_headers(organizer),
    ).json()


def test_send_reminder_marks_it_sent(client, db, organizer, event, monkeypatch):
    reminder = create_reminder(client, organizer, event)
    calls = []

    class FakeResponse:
        def raise_for_status(self):
            pass

        def json(self):
            return {"success": True}

    def fake_post(url, json, headers, timeout):
        calls.append((url, json))
        return FakeResponse()

    monkeypatch.setattr(config, "FUNCTIONS_BASE_URL", "https://functions.example.com")
    monkeypatch.setattr(functions_service.requests, "post", fake_post)

    response = client.post(
        f"/events/{event.id}/reminders/{reminder['id']}/send",
        json={"recipient_email": "sam@example.com", "subject": "Tomorrow!", "content": "<p>See you</p>"},
        headers=auth_headers(organizer),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "sent"
    assert data["reminder"]["is_sent"] is True
    assert data["mailto_url"] is None

    url, body = calls[-1]
    assert url == "https://functions.example.com/send-reminder-email"
    assert body["recipientEmail"] == "sam@example.com"
    assert body["eventTitle"] == "PyCon Local"
    assert body["eventDate"] == "Friday, May 1, 2026"
    assert body["eventLocation"] == "Hall A"
    assert body["organizerName"] == "Event Team"


def test_send_reminder_falls_back_to_manual_content(client, db, organizer, event):
    reminder = create_reminder(client, organizer, event)

    response = client.post(
        f"/events/{event.id}/reminders/{reminder['id']}/send",
        json={"recipient_email": "sam@example.com"},
        headers=auth_headers(organizer),
    )

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "not_sent"
    assert data["reminder"]["is_sent"] is False
    assert data["subject"] == "Reminder: PyCon Local"
    assert "PyCon Local" in data["content"]
    assert data["mailto_url"].startswith("mailto:sam@example.com?subject=Reminder%3A%20PyCon%20Local")


def test_send_reminder_checks_access_and_existence(client, organizer, outsider, event):
    reminder = create_reminder(client, organizer, event)
    body = {"recipient_email": "sam@example.com"}

    denied = client.post(f"/events/{event.id}/reminders/{reminder['id']}/send", json=body, headers=auth_headers(outsider))
    assert denied.status_code == 403
    missing = client.post(f"/events/{event.id}/reminders/nope/send", json=body, headers=auth_headers(organizer))
    assert missing.status_code == 404
