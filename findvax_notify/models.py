"""
Records passed between pipeline stages.

Wire records (locations.json, availability.json, stored subscriptions) are
pydantic models so upstream data is validated on the way in. Transient
per-run records are plain dataclasses.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class BatchStatus(str, Enum):
    UNSENT = "unsent"
    PENDING = "pending"
    SUCCESS = "success"
    FAILED = "failed"


class Stage(str, Enum):
    START = "start"
    MATCH = "match"
    AGGREGATE = "aggregate"
    DISPATCH = "dispatch"
    RETIRE = "retire"
    DONE = "done"
    FAILED = "failed"


# ---------------------------------------------------------------------------
# Upstream data
# ---------------------------------------------------------------------------

class Location(BaseModel):
    """A monitored site as published in ``{region}/locations.json``."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = Field(alias="uuid")
    name: str
    url: Optional[str] = Field(default=None, alias="linkUrl")
    # None means no threshold configured; 0 is a real threshold.
    notification_threshold: Optional[int] = Field(default=None, alias="notificationThreshold")


class TimeSlot(BaseModel):
    model_config = ConfigDict(extra="ignore")

    # None is the "unknown count" sentinel
    slots: Optional[int] = None


class LocationAvailability(BaseModel):
    """One entry of ``{region}/availability.json``."""
    model_config = ConfigDict(extra="ignore")

    location: Optional[str] = None
    times: list[TimeSlot] = Field(default_factory=list)


class Subscription(BaseModel):
    """A pending notification request as held by the subscription store."""
    location_id: str
    recipient: str
    language: str = "en"
    sent_flag: int = 0


# ---------------------------------------------------------------------------
# Per-run records
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class EligibleLocation:
    id: str
    name: str
    url: str


@dataclass(frozen=True)
class BatchLocation:
    location_id: str
    name: str
    url: str


@dataclass
class RecipientBatch:
    """All eligible locations one recipient is subscribed to this cycle."""
    recipient: str
    language: str
    locations: list[BatchLocation] = field(default_factory=list)
    status: BatchStatus = BatchStatus.UNSENT

    def add_location(self, location: EligibleLocation) -> None:
        # duplicate subscriptions for the same location collapse here
        if any(loc.location_id == location.id for loc in self.locations):
            return
        self.locations.append(BatchLocation(location.id, location.name, location.url))


@dataclass
class Aggregation:
    """Result of the aggregate stage: recipient -> batch, in discovery order."""
    batches: dict[str, RecipientBatch] = field(default_factory=dict)

    def __len__(self) -> int:
        return len(self.batches)

    def __iter__(self):
        return iter(self.batches.values())


@dataclass
class RetirementReport:
    retired: int = 0
    races: int = 0


@dataclass
class PipelineResult:
    """Outcome of one pipeline run."""
    region: str
    stage: Stage = Stage.START
    error: str | None = None
    bypassed: bool = False
    eligible_locations: int = 0
    recipients: int = 0
    messages_sent: int = 0
    messages_failed: int = 0
    subscriptions_retired: int = 0
    retirement_races: int = 0

    @property
    def ok(self) -> bool:
        return self.stage == Stage.DONE
