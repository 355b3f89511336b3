"""
Retirement: delete the subscriptions behind every successfully notified batch.

Each delete is guarded on the stored recipient. Between aggregation and
retirement a location's pending record may have been replaced by a different
subscriber; that record must survive, so a failed guard is a no-op.
"""

from __future__ import annotations

import asyncio
from typing import Protocol

import structlog

from .errors import RetirementInfraError, RetirementRaceNoOp
from .models import Aggregation, BatchStatus, RetirementReport

log = structlog.get_logger()


class RetirableSubscriptions(Protocol):
    async def conditional_delete(self, location_id: str, expected_recipient: str) -> int: ...


async def _retire_one(
    store: RetirableSubscriptions, location_id: str, recipient: str
) -> bool:
    """Returns True when a record was removed, False on a recipient race."""
    try:
        await store.conditional_delete(location_id, recipient)
    except RetirementRaceNoOp:
        log.info("retirement.race_noop", location=location_id, recipient=recipient)
        return False
    except Exception as exc:
        raise RetirementInfraError(location_id, recipient, str(exc)) from exc
    log.debug("retirement.deleted", location=location_id, recipient=recipient)
    return True


async def retire(store: RetirableSubscriptions, aggregation: Aggregation) -> RetirementReport:
    """
    Conditionally delete every contributing subscription of successful batches.

    All deletes run to completion; the first infrastructure failure is then
    raised as RetirementInfraError.
    """
    targets: list[tuple[str, str]] = []
    for batch in aggregation:
        if batch.status == BatchStatus.SUCCESS:
            targets.extend((loc.location_id, batch.recipient) for loc in batch.locations)
        else:
            log.warning(
                "retirement.skipped",
                recipient=batch.recipient,
                status=batch.status.value,
                locations=[loc.location_id for loc in batch.locations],
            )

    report = RetirementReport()
    if not targets:
        log.info("retirement.nothing_to_remove")
        return report

    outcomes = await asyncio.gather(
        *(_retire_one(store, loc, recipient) for loc, recipient in targets),
        return_exceptions=True,
    )

    first_error: BaseException | None = None
    for (location_id, recipient), outcome in zip(targets, outcomes):
        if outcome is True:
            report.retired += 1
        elif outcome is False:
            report.races += 1
        else:
            log.error(
                "retirement.delete_failed",
                location=location_id,
                recipient=recipient,
                error=str(outcome),
            )
            if first_error is None:
                first_error = outcome

    log.info("retirement.done", retired=report.retired, races=report.races)
    if first_error is not None:
        raise first_error
    return report
