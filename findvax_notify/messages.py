"""Localized SMS templates and message rendering."""

from __future__ import annotations

import structlog

from .models import RecipientBatch

log = structlog.get_logger()

MESSAGE_TEMPLATES: dict[str, dict[str, str]] = {
    "en": {
        "start": "Findvax.us found available slots:\n\n",
        "end": "\n\nWe'll stop notifying you for these locations now. Re-subscribe on the site if needed.",
    },
}


def resolve_language(lang: str | None, default: str = "en") -> str:
    """Return lang if a template exists for it, otherwise the default."""
    candidate = (lang or "").strip().lower()
    if candidate in MESSAGE_TEMPLATES:
        return candidate
    if candidate:
        log.info("messages.unknown_language", lang=lang, fallback=default)
    return default if default in MESSAGE_TEMPLATES else "en"


def render_message(batch: RecipientBatch) -> str:
    template = MESSAGE_TEMPLATES[resolve_language(batch.language)]
    lines = "".join(f"{loc.name}: {loc.url}\n" for loc in batch.locations)
    return template["start"] + lines + template["end"]
