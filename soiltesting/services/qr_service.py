"""Soil-testing QR credentials.

A credential identifier looks like ``ST-{schedule}-{farmer}-{unix_ms}-{random}``.
It can be parsed offline, but the parsed ids are only a lookup key: anything
privileged must re-read the schedule from storage first.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date, datetime, timezone
import json
import logging
import secrets
import string
import time
from typing import Any
from urllib.parse import quote, urlencode

from ..config import get_settings
from ..core.constants import (
    CREDENTIAL_PREFIX,
    CREDENTIAL_RANDOM_LENGTH,
    CREDENTIAL_TOKEN_COUNT,
    QR_IMAGE_MARGIN,
    QR_IMAGE_SIZE,
)
from ..core.exceptions import InvalidCredentialError

logger = logging.getLogger(__name__)

_BASE36_ALPHABET = string.digits + string.ascii_lowercase


@dataclass(slots=True)
class QRCredential:
    unique_id: str
    verification_url: str
    image_url: str
    payload: dict[str, Any] = field(default_factory=dict)
    fallback: bool = False


@dataclass(slots=True, frozen=True)
class ParsedCredential:
    schedule_id: int
    farmer_id: int


def _random_base36(length: int = CREDENTIAL_RANDOM_LENGTH) -> str:
    return "".join(secrets.choice(_BASE36_ALPHABET) for _ in range(length))


def generate_unique_id(schedule_id: int, farmer_id: int) -> str:
    timestamp = int(time.time() * 1000)
    return (
        f"{CREDENTIAL_PREFIX}-{schedule_id}-{farmer_id}-{timestamp}-{_random_base36()}"
    ).upper()


def build_verification_url(unique_id: str) -> str:
    settings = get_settings()
    return f"{settings.frontend_url.rstrip('/')}/soil-verification/{unique_id}"


def build_image_url(data: str) -> str:
    settings = get_settings()
    query = urlencode(
        {"size": QR_IMAGE_SIZE, "data": data, "format": "png", "margin": QR_IMAGE_MARGIN},
        quote_via=quote,
        safe="",
    )
    return f"{settings.qr_render_url}?{query}"


def _build_payload(
    unique_id: str,
    verification_url: str,
    schedule_id: int,
    farmer_id: int,
    center_id: int,
    scheduled_date: date | str,
) -> dict[str, Any]:
    return {
        "schedule_id": schedule_id,
        "farmer_id": farmer_id,
        "center_id": center_id,
        "scheduled_date": str(scheduled_date),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "unique_id": unique_id,
        "verification_url": verification_url,
    }


def _issue_primary(
    schedule_id: int, farmer_id: int, center_id: int, scheduled_date: date | str
) -> QRCredential:
    unique_id = generate_unique_id(schedule_id, farmer_id)
    verification_url = build_verification_url(unique_id)
    return QRCredential(
        unique_id=unique_id,
        verification_url=verification_url,
        image_url=build_image_url(verification_url),
        payload=_build_payload(
            unique_id, verification_url, schedule_id, farmer_id, center_id, scheduled_date
        ),
    )


def _issue_text_fallback(
    schedule_id: int, farmer_id: int, center_id: int, scheduled_date: date | str
) -> QRCredential:
    unique_id = f"{CREDENTIAL_PREFIX}-{generate_unique_id(schedule_id, farmer_id)}"
    verification_url = build_verification_url(unique_id)
    return QRCredential(
        unique_id=unique_id,
        verification_url=verification_url,
        image_url=build_image_url(unique_id),
        payload=_build_payload(
            unique_id, verification_url, schedule_id, farmer_id, center_id, scheduled_date
        ),
        fallback=True,
    )


def issue(
    schedule_id: int, farmer_id: int, center_id: int, scheduled_date: date | str
) -> QRCredential:
    try:
        return _issue_primary(schedule_id, farmer_id, center_id, scheduled_date)
    except Exception:
        logger.exception(
            "Failed to issue QR credential, falling back to text credential",
            extra={"schedule_id": schedule_id},
        )
        return _issue_text_fallback(schedule_id, farmer_id, center_id, scheduled_date)


def parse(unique_id: str) -> ParsedCredential:
    tokens = (unique_id or "").strip().split("-")
    if len(tokens) != CREDENTIAL_TOKEN_COUNT or tokens[0].upper() != CREDENTIAL_PREFIX:
        raise InvalidCredentialError("Malformed soil testing credential")
    try:
        schedule_id = int(tokens[1])
        farmer_id = int(tokens[2])
    except ValueError as exc:
        raise InvalidCredentialError("Malformed soil testing credential") from exc
    return ParsedCredential(schedule_id=schedule_id, farmer_id=farmer_id)


def parse_payload(qr_code_data: str | None) -> dict[str, Any]:
    if not qr_code_data:
        raise InvalidCredentialError("Schedule has no QR credential")
    try:
        payload = json.loads(qr_code_data)
    except json.JSONDecodeError as exc:
        raise InvalidCredentialError("Stored QR payload is not valid JSON") from exc
    try:
        return {
            "schedule_id": int(payload["schedule_id"]),
            "farmer_id": int(payload["farmer_id"]),
            "center_id": int(payload["center_id"]),
            "scheduled_date": date.fromisoformat(payload["scheduled_date"]),
            "unique_id": payload.get("unique_id"),
            "verification_url": payload.get("verification_url"),
        }
    except (KeyError, TypeError, ValueError, AttributeError) as exc:
        raise InvalidCredentialError("Stored QR payload is incomplete") from exc
