"""Calls to the hosted serverless functions.

Each call has a deterministic local fallback so a function outage never
blocks the organizer.
"""
import logging
from datetime import date, datetime
from typing import Any, Dict, Optional

import requests

import config

logger = logging.getLogger(__name__)


class FunctionUnavailable(Exception):
    pass


def invoke_function(name: str, body: Dict[str, Any]) -> Dict[str, Any]:
    if not config.FUNCTIONS_BASE_URL:
        raise FunctionUnavailable(f"{name}: FUNCTIONS_BASE_URL is not configured")

    headers = {"Content-Type": "application/json"}
    if config.FUNCTIONS_API_KEY:
        headers["Authorization"] = f"Bearer {config.FUNCTIONS_API_KEY}"

    try:
        response = requests.post(
            f"{config.FUNCTIONS_BASE_URL}/{name}",
            json=body,
            headers=headers,
            timeout=config.FUNCTIONS_TIMEOUT_SECONDS,
        )
        response.raise_for_status()
        data = response.json()
    except (requests.RequestException, ValueError) as exc:
        raise FunctionUnavailable(f"{name}: {exc}") from exc

    if not data:
        raise FunctionUnavailable(f"{name}: no data returned")
    if isinstance(data, dict) and data.get("error"):
        raise FunctionUnavailable(f"{name}: {data['error']}")
    return data


def format_event_date(value: Any) -> str:
    if isinstance(value, (datetime, date)):
        return value.strftime("%A, %B %d, %Y").replace(" 0", " ")
    return str(value or "")


def fallback_reminder_email(event_details: Dict[str, Any]) -> Dict[str, str]:
    title = event_details.get("title") or "your event"
    event_date = format_event_date(event_details.get("date"))
    content = (
        "<p>Dear Attendee,</p>"
        f"<p>This is a reminder about the upcoming event: <strong>{title}</strong>"
        + (f" on {event_date}" if event_date else "")
        + ".</p>"
    )
    if event_details.get("location"):
        content += f"<p>Location: {event_details['location']}</p>"
    content += "<p>We look forward to seeing you there!</p><p>Best regards,<br>Event Team</p>"
    return {"subject": f"Reminder: {title}", "content": content}


def generate_event_reminder_email(event_details: Dict[str, Any]) -> Dict[str, str]:
    body = dict(event_details)
    if isinstance(body.get("date"), (datetime, date)):
        body["date"] = body["date"].isoformat()
    try:
        data = invoke_function("generate-email", body)
        if not data.get("subject") or not data.get("content"):
            raise FunctionUnavailable("generate-email: incomplete response")
        return {"subject": data["subject"], "content": data["content"]}
    except FunctionUnavailable as exc:
        logger.error("Error in generate_event_reminder_email, using fallback: %s", exc)
        return fallback_reminder_email(event_details)


def fallback_financial_insights(financial_data: Dict[str, Any]) -> str:
    breakdown = financial_data.get("categoryBreakdown") or []
    top_category = breakdown[0]["category"] if breakdown else "N/A"
    total = float(financial_data.get("totalExpenses") or 0)
    return (
        "<h3>Financial Overview</h3>"
        f"<p>You've spent a total of ${total:.2f} across {financial_data.get('numberOfBills', 0)} bills.</p>"
        f"<p>The largest category of expenses is {top_category}.</p>"
        "<p>Consider reviewing your expenses regularly to identify areas for potential savings.</p>"
    )


def get_financial_insights(financial_data: Dict[str, Any]) -> str:
    try:
        data = invoke_function("financial-insights", {"financialData": financial_data})
        insights = data.get("insights")
        if not insights:
            raise FunctionUnavailable("financial-insights: no insights returned")
        return insights
    except FunctionUnavailable as exc:
        logger.error("Error in get_financial_insights, using fallback: %s", exc)
        return fallback_financial_insights(financial_data)


def fallback_receipt(today: Optional[date] = None) -> Dict[str, str]:
    today = today or date.today()
    return {
        "name": "Receipt Item",
        "amount": "0.00",
        "date": today.isoformat(),
        "category": "Other",
        "description": "",
    }


def analyze_receipt(base64_image: str) -> Dict[str, str]:
    try:
        data = invoke_function("analyze-receipt", {"image": base64_image})
        receipt = data.get("data", data)
        return {
            "name": str(receipt.get("name") or "Receipt Item"),
            "amount": str(receipt.get("amount") or "0.00"),
            "date": str(receipt.get("date") or date.today().isoformat()),
            "category": str(receipt.get("category") or "Other"),
            "description": str(receipt.get("description") or ""),
        }
    except (FunctionUnavailable, AttributeError) as exc:
        logger.error("Error in analyze_receipt, using fallback: %s", exc)
        return fallback_receipt()


def send_reminder_email(reminder_data: Dict[str, Any]) -> bool:
    """Ask the ``send-reminder-email`` function to deliver a reminder.

    Returns False when the function cannot be reached or reports an error;
    the caller then offers the content for manual sending.
    """
    try:
        invoke_function("send-reminder-email", reminder_data)
    except FunctionUnavailable as exc:
        logger.error("Error in send_reminder_email: %s", exc)
        return False
    return True
