"""
Matching engine: decide which locations crossed their notification threshold.
"""

from __future__ import annotations

from typing import Iterable, Sequence

import structlog

from .models import EligibleLocation, Location, LocationAvailability

log = structlog.get_logger()

# Stand-in for a time slot whose count the scraper could not determine.
# Only used for the reported total; any unknown slot makes a location eligible.
UNKNOWN_SLOT_COUNT = 100


def count_slots(availability: LocationAvailability) -> tuple[int, bool]:
    """Sum slot counts across time entries. Returns (total, has_unknown)."""
    total = 0
    unknown = False
    for slot in availability.times:
        if slot.slots is None:
            total += UNKNOWN_SLOT_COUNT
            unknown = True
        else:
            total += slot.slots
    return total, unknown


def is_eligible(location: Location, availability: LocationAvailability | None) -> bool:
    """
    A location is eligible when it has at least one time entry and either has
    no threshold or its summed slots strictly exceed the threshold.
    """
    if availability is None or not availability.times:
        return False
    if location.notification_threshold is None:
        return True
    total, unknown = count_slots(availability)
    return unknown or total > location.notification_threshold


def match_locations(
    locations: Sequence[Location],
    availability: Iterable[LocationAvailability],
) -> list[EligibleLocation]:
    """Return eligible locations in input order. Empty input yields an empty list."""
    by_location: dict[str, LocationAvailability] = {}
    for entry in availability:
        if entry.location and entry.location not in by_location:
            by_location[entry.location] = entry

    if not locations or not by_location:
        return []

    eligible = [
        EligibleLocation(id=loc.id, name=loc.name, url=loc.url or "")
        for loc in locations
        if is_eligible(loc, by_location.get(loc.id))
    ]
    log.info("matching.done", locations=len(locations), eligible=len(eligible))
    return eligible
