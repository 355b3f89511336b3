"""
Pipeline controller: one match -> aggregate -> dispatch -> retire run per trigger.

START -> MATCH -> AGGREGATE -> DISPATCH -> RETIRE -> DONE, with any fatal
error short-circuiting to FAILED. Per-recipient send failures are not fatal;
their subscriptions simply stay pending for the next run.
"""

from __future__ import annotations

import time
from typing import Protocol

import structlog

from .aggregator import PendingSubscriptions, aggregate
from .dispatcher import MessageSender, dispatch
from .errors import NotifyError
from .matching import match_locations
from .metrics import MetricsCollector
from .models import Location, LocationAvailability, PipelineResult, Stage
from .retirement import RetirableSubscriptions, retire

log = structlog.get_logger()


class AvailabilitySource(Protocol):
    async def get_snapshot(
        self, region: str
    ) -> tuple[list[Location], list[LocationAvailability]]: ...


class SubscriptionBackend(PendingSubscriptions, RetirableSubscriptions, Protocol):
    pass


class NotificationPipeline:
    """Runs the notification cycle for a region."""

    def __init__(
        self,
        source: AvailabilitySource,
        store: SubscriptionBackend,
        sender: MessageSender,
        metrics: MetricsCollector | None = None,
        default_language: str = "en",
    ):
        self._source = source
        self._store = store
        self._sender = sender
        self._metrics = metrics or MetricsCollector()
        self._default_language = default_language

    def bypass(self, region: str) -> PipelineResult:
        """Bootstrap/no-op signal: finish without touching the store."""
        log.info("pipeline.bypass", region=region)
        return PipelineResult(region=region, stage=Stage.DONE, bypassed=True)

    async def run(self, region: str) -> PipelineResult:
        result = PipelineResult(region=region)
        self._metrics.inc("pipeline_runs_total", region=region)
        structlog.contextvars.bind_contextvars(region=region)
        try:
            await self._run_stages(result)
        except NotifyError as exc:
            self._fail(result, exc)
        except Exception as exc:
            # a component bug still ends the run as FAILED, not as a crash
            log.exception("pipeline.unexpected_error", stage=result.stage.value)
            self._fail(result, exc)
        finally:
            self._metrics.set_gauge("last_run_timestamp", time.time(), region=region)
            structlog.contextvars.unbind_contextvars("region")
        return result

    def _fail(self, result: PipelineResult, exc: Exception) -> None:
        failed_at = result.stage
        result.stage = Stage.FAILED
        result.error = str(exc) or type(exc).__name__
        self._metrics.inc("pipeline_failures_total", region=result.region)
        log.error(
            "pipeline.failed",
            stage=failed_at.value,
            error_type=type(exc).__name__,
            error=result.error,
        )

    async def _run_stages(self, result: PipelineResult) -> None:
        result.stage = Stage.MATCH
        log.info("pipeline.stage", stage=result.stage.value)
        locations, availability = await self._source.get_snapshot(result.region)
        eligible = match_locations(locations, availability)
        result.eligible_locations = len(eligible)
        self._metrics.inc("eligible_locations_total", len(eligible), region=result.region)

        result.stage = Stage.AGGREGATE
        log.info("pipeline.stage", stage=result.stage.value, eligible=len(eligible))
        aggregation = await aggregate(self._store, eligible, self._default_language)
        result.recipients = len(aggregation)

        result.stage = Stage.DISPATCH
        log.info("pipeline.stage", stage=result.stage.value, recipients=len(aggregation))
        failures = await dispatch(self._sender, aggregation)
        result.messages_failed = len(failures)
        result.messages_sent = result.recipients - len(failures)
        self._metrics.inc("messages_sent_total", result.messages_sent, region=result.region)
        self._metrics.inc("messages_failed_total", result.messages_failed, region=result.region)

        result.stage = Stage.RETIRE
        if result.messages_sent > 0:
            log.info("pipeline.stage", stage=result.stage.value, sent=result.messages_sent)
            report = await retire(self._store, aggregation)
            result.subscriptions_retired = report.retired
            result.retirement_races = report.races
            self._metrics.inc("subscriptions_retired_total", report.retired, region=result.region)
            self._metrics.inc("retirement_races_total", report.races, region=result.region)
        else:
            log.info("pipeline.nothing_to_remove")

        result.stage = Stage.DONE
        log.info(
            "pipeline.done",
            eligible=result.eligible_locations,
            recipients=result.recipients,
            sent=result.messages_sent,
            failed=result.messages_failed,
            retired=result.subscriptions_retired,
            races=result.retirement_races,
        )
