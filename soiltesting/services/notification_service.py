from __future__ import annotations

from dataclasses import dataclass
from datetime import date
import logging
import re

import httpx

from ..config import get_settings

logger = logging.getLogger(__name__)

_NON_DIGITS = re.compile(r"\D")


@dataclass(slots=True)
class SmsNotification:
    recipient: str
    message: str


def format_phone_number(phone: str) -> str:
    digits = _NON_DIGITS.sub("", phone or "")
    if len(digits) == 10 and digits.startswith("0"):
        return f"94{digits[1:]}"
    if len(digits) == 9 and digits.startswith("7"):
        return f"94{digits}"
    return digits


def build_confirmation_message(
    *, scheduled_date: date, verification_url: str, unique_id: str
) -> str:
    return (
        f"Your soil testing has been scheduled for {scheduled_date.isoformat()}. "
        f"Verify: {verification_url}. Unique ID: {unique_id}. "
        "Please show this to the field officer."
    )


def build_approval_message(*, approved_date: date, start_time: str, end_time: str) -> str:
    return (
        "Your soil testing request has been approved! "
        f"Scheduled for {approved_date.isoformat()} from {start_time} to {end_time}. "
        "Details will follow shortly."
    )


def build_rejection_message(*, reason: str) -> str:
    return (
        f"Your soil testing request has been rejected. Reason: {reason}. "
        "Please contact support for assistance."
    )


def build_completion_message(*, scheduled_date: date) -> str:
    return (
        f"Your soil sample collection on {scheduled_date.isoformat()} is complete. "
        "You will be notified when the report is ready."
    )


def build_reminder_message(
    *, scheduled_date: date, start_time: str | None, unique_id: str | None
) -> str:
    when = scheduled_date.isoformat()
    if start_time:
        when = f"{when} at {start_time}"
    message = f"Reminder: your soil testing visit is scheduled for {when}."
    if unique_id:
        message = f"{message} Unique ID: {unique_id}."
    return message


def send_sms(recipient: str, message: str) -> bool:
    settings = get_settings()
    if not settings.sms_enabled:
        logger.info("SMS delivery disabled; dropping message", extra={"recipient": recipient})
        return False
    if not (
        settings.notify_lk_user_id
        and settings.notify_lk_api_key
        and settings.notify_lk_sender_id
    ):
        logger.warning("SMS gateway is not configured; skipping SMS notification")
        return False

    params = {
        "user_id": settings.notify_lk_user_id,
        "api_key": settings.notify_lk_api_key,
        "sender_id": settings.notify_lk_sender_id,
        "to": format_phone_number(recipient),
        "message": message,
    }
    try:
        with httpx.Client(timeout=10) as client:
            response = client.get(settings.sms_api_url, params=params)
            response.raise_for_status()
            body = response.json()
    except (httpx.HTTPError, ValueError):
        logger.exception("Failed to send SMS notification", extra={"recipient": params["to"]})
        return False

    if not isinstance(body, dict) or body.get("status") != "success":
        logger.error(
            "SMS gateway rejected message: %s",
            body.get("message", body) if isinstance(body, dict) else body,
            extra={"recipient": params["to"]},
        )
        return False
    logger.info("SMS sent", extra={"recipient": params["to"]})
    return True


def send_bulk_sms(notifications: list[SmsNotification]) -> list[bool]:
    return [send_sms(item.recipient, item.message) for item in notifications]
