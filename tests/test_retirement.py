"""Tests for guarded retirement of delivered subscriptions."""

import pytest

from findvax_notify.errors import RetirementInfraError
from findvax_notify.models import Aggregation, BatchLocation, BatchStatus, RecipientBatch
from findvax_notify.retirement import retire

from .fakes import ALICE, BOB, L1, L2, FlakyStore


def _batch(recipient: str, status: BatchStatus, *location_ids: str) -> RecipientBatch:
    return RecipientBatch(
        recipient=recipient,
        language="en",
        locations=[BatchLocation(loc, loc[:4], "https://book.example.com") for loc in location_ids],
        status=status,
    )


async def test_successful_batches_are_retired_failed_ones_kept(store):
    await store.put(L1, ALICE, "en")
    await store.put(L2, ALICE, "en")
    await store.put(L1, BOB, "en")
    agg = Aggregation(batches={
        ALICE: _batch(ALICE, BatchStatus.SUCCESS, L1, L2),
        BOB: _batch(BOB, BatchStatus.FAILED, L1),
    })

    report = await retire(store, agg)

    assert report.retired == 2
    assert report.races == 0
    assert [s.recipient for s in await store.query_pending(L1)] == [BOB]
    assert await store.query_pending(L2) == []


async def test_changed_recipient_is_not_deleted(store):
    await store.put(L1, ALICE, "en")
    agg = Aggregation(batches={ALICE: _batch(ALICE, BatchStatus.SUCCESS, L1)})

    async def resubscribe(location_id, _recipient):
        # the slot is taken over by a new subscriber after aggregation
        await store.conditional_delete(location_id, ALICE)
        await store.put(location_id, BOB, "en")

    report = await retire(FlakyStore(store, before_delete=resubscribe), agg)

    assert report.retired == 0
    assert report.races == 1
    assert [s.recipient for s in await store.query_pending(L1)] == [BOB]


async def test_nothing_successful_is_a_noop(store):
    await store.put(L1, ALICE, "en")
    flaky = FlakyStore(store)
    agg = Aggregation(batches={ALICE: _batch(ALICE, BatchStatus.FAILED, L1)})

    report = await retire(flaky, agg)

    assert (report.retired, report.races) == (0, 0)
    assert flaky.delete_calls == []
    assert await store.count_pending(L1) == 1


async def test_infra_failure_raises_after_other_deletes_finish(store):
    await store.put(L1, ALICE, "en")
    await store.put(L2, ALICE, "en")
    flaky = FlakyStore(store, failing_deletes={L2})
    agg = Aggregation(batches={ALICE: _batch(ALICE, BatchStatus.SUCCESS, L1, L2)})

    with pytest.raises(RetirementInfraError) as exc_info:
        await retire(flaky, agg)

    assert exc_info.value.location_id == L2
    assert await store.count_pending(L1) == 0
    assert await store.count_pending(L2) == 1
