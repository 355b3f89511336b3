"""
Subscription intake: validate a signup request and store it as pending.
"""

from __future__ import annotations

import json
import re
from typing import Any, Protocol

import structlog

from .errors import ValidationError

log = structlog.get_logger()

REQUIRED_FIELDS = ("location", "sms", "lang")

_UUID_RE = re.compile(
    r"^[0-9a-fA-F]{8}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{4}-[0-9a-fA-F]{12}$"
)
_NON_DIGIT_RE = re.compile(r"\D")


class SubscriptionWriter(Protocol):
    async def put(self, location_id: str, recipient: str, language: str) -> None: ...


def normalize_us_phone(raw: str) -> str:
    """Strip formatting and prefix +1. Raises ValidationError unless ten digits remain."""
    number = "+1" + _NON_DIGIT_RE.sub("", raw)
    if len(number) != 12:
        raise ValidationError("Invalid US phone number!")
    return number


def parse_body(body: str | bytes | None) -> dict[str, Any]:
    if body is None:
        raise ValidationError("Missing request body!")
    if isinstance(body, bytes):
        body = body.decode("utf-8", errors="replace")
    if not body.strip():
        raise ValidationError("Missing request body!")
    try:
        parsed = json.loads(body.strip())
    except json.JSONDecodeError as exc:
        raise ValidationError("Invalid request body: not JSON!") from exc
    if not isinstance(parsed, dict):
        raise ValidationError("Invalid request body: expected a JSON object!")
    return parsed


def validate_request(payload: dict[str, Any]) -> tuple[str, str, str]:
    """Return (location_id, recipient, language) from a signup payload."""
    for name in REQUIRED_FIELDS:
        value = payload.get(name)
        if not isinstance(value, str) or not value:
            raise ValidationError(f"Missing or incorrect type for required field `{name}` in body!")

    location = payload["location"].strip()
    if not _UUID_RE.match(location):
        raise ValidationError("Invalid location uuid!")

    recipient = normalize_us_phone(payload["sms"])

    lang = payload["lang"].strip().lower()
    if len(lang) != 2:
        raise ValidationError(
            'Invalid language id (must be a two char string without localization like "en" or "fr")!'
        )
    return location, recipient, lang


async def register_subscription(store: SubscriptionWriter, body: str | bytes | None) -> None:
    payload = parse_body(body)
    log.info("intake.request", fields=sorted(payload))
    location, recipient, lang = validate_request(payload)
    await store.put(location, recipient, lang)
    log.info("intake.stored", location=location, recipient=recipient, lang=lang)
