"""
Error taxonomy for the notification pipeline.

Fatal errors (UpstreamFetchError, AggregationError, RetirementInfraError) abort
the remaining stages of a run. DispatchError is recorded per recipient and
never raised out of the dispatcher. RetirementRaceNoOp is an expected outcome
of a guarded delete, not a failure.
"""

from __future__ import annotations


class NotifyError(Exception):
    """Base class for all notifier errors."""


class ValidationError(NotifyError):
    """Bad input at the trigger boundary (subscription intake or signal)."""


class UpstreamFetchError(NotifyError):
    """Availability source could not be read."""

    def __init__(self, region: str, resource: str, reason: str):
        self.region = region
        self.resource = resource
        self.reason = reason
        super().__init__(f"can't load {region}/{resource}: {reason}")


class AggregationError(NotifyError):
    """Pending subscriptions for an eligible location could not be queried."""

    def __init__(self, location_id: str, reason: str):
        self.location_id = location_id
        self.reason = reason
        super().__init__(f"subscription query failed for location {location_id}: {reason}")


class DispatchError(NotifyError):
    """A single recipient's message was not confirmed delivered."""

    def __init__(self, recipient: str, reason: str):
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"message to {recipient} failed: {reason}")


class RetirementRaceNoOp(NotifyError):
    """The stored recipient no longer matches; the guarded delete did nothing."""

    def __init__(self, location_id: str, expected_recipient: str):
        self.location_id = location_id
        self.expected_recipient = expected_recipient
        super().__init__(
            f"conditional delete skipped for location {location_id}: "
            f"stored recipient is not {expected_recipient}"
        )


class RetirementInfraError(NotifyError):
    """A delete failed for a reason other than the recipient guard."""

    def __init__(self, location_id: str, recipient: str, reason: str):
        self.location_id = location_id
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"delete failed for location {location_id} / {recipient}: {reason}")
