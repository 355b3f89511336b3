"""
Aggregator: group pending subscriptions at eligible locations by recipient.
"""

from __future__ import annotations

import asyncio
from typing import Protocol, Sequence

import structlog

from .errors import AggregationError
from .messages import resolve_language
from .models import Aggregation, EligibleLocation, RecipientBatch, Subscription

log = structlog.get_logger()


class PendingSubscriptions(Protocol):
    async def query_pending(self, location_id: str) -> list[Subscription]: ...


async def _fetch(
    store: PendingSubscriptions, location: EligibleLocation
) -> list[Subscription]:
    try:
        return await store.query_pending(location.id)
    except Exception as exc:
        log.error("aggregator.query_failed", location=location.id, error=str(exc))
        raise AggregationError(location.id, str(exc)) from exc


def build_batches(
    results: Sequence[tuple[EligibleLocation, list[Subscription]]],
    default_language: str = "en",
) -> Aggregation:
    """
    Reduce per-location query results into one batch per recipient.

    A recipient seen at several locations gets one batch listing all of them.
    The language of the first record seen for a recipient wins.
    """
    aggregation = Aggregation()
    for location, subscriptions in results:
        for sub in subscriptions:
            batch = aggregation.batches.get(sub.recipient)
            if batch is None:
                batch = RecipientBatch(
                    recipient=sub.recipient,
                    language=resolve_language(sub.language, default_language),
                )
                aggregation.batches[sub.recipient] = batch
            batch.add_location(location)
    return aggregation


async def aggregate(
    store: PendingSubscriptions,
    eligible: Sequence[EligibleLocation],
    default_language: str = "en",
) -> Aggregation:
    """
    Query every eligible location concurrently and build recipient batches.

    Fails fast: one failed query raises AggregationError for the whole stage.
    """
    if not eligible:
        return Aggregation()

    fetched = await asyncio.gather(*(_fetch(store, loc) for loc in eligible))
    aggregation = build_batches(list(zip(eligible, fetched)), default_language)
    log.info(
        "aggregator.done",
        locations=len(eligible),
        subscriptions=sum(len(f) for f in fetched),
        recipients=len(aggregation),
    )
    return aggregation
