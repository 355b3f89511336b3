"""
Notifier service orchestrator.

Wires configuration into the availability source, subscription store, SMS
sender and pipeline, and owns their lifecycle: startup, one-shot runs, the
long-running HTTP server, and shutdown on SIGTERM/SIGINT.
"""

from __future__ import annotations

import asyncio
import signal

import structlog

from .availability import HttpAvailabilitySource
from .config import NotifyConfig
from .dispatcher import HttpMessageSender
from .metrics import MetricsCollector
from .models import PipelineResult
from .pipeline import NotificationPipeline
from .server import NotifyServer, create_app
from .store import SubscriptionStore

log = structlog.get_logger()

SHUTDOWN_TIMEOUT = 15.0


class NotifierService:
    """Owns every component of the notifier process."""

    def __init__(self, config: NotifyConfig):
        self._config = config
        self._metrics = MetricsCollector()
        self._store = SubscriptionStore(config.store.db_path)
        self._source = HttpAvailabilitySource(
            base_url=config.availability.base_url,
            request_timeout=config.availability.request_timeout_seconds,
        )
        messaging = config.messaging
        self._sender = HttpMessageSender(
            url=messaging.url,
            application_id=messaging.application_id,
            origination_number=messaging.origination_number,
            api_key=messaging.api_key,
            message_type=messaging.message_type,
            request_timeout=messaging.request_timeout_seconds,
        )
        self._pipeline = NotificationPipeline(
            source=self._source,
            store=self._store,
            sender=self._sender,
            metrics=self._metrics,
            default_language=config.notifications.default_language,
        )
        self._server = NotifyServer(
            create_app(
                self._store,
                self._pipeline,
                self._metrics,
                expose_metrics=config.metrics.enabled,
            ),
            host=config.server.host,
            port=config.server.port,
        )
        self._running = False
        self._shutdown_event = asyncio.Event()

    @property
    def pipeline(self) -> NotificationPipeline:
        return self._pipeline

    async def open(self) -> None:
        await self._store.open()
        await self._source.open()
        await self._sender.open()
        if not self._config.messaging.api_key:
            log.warning("service.missing_sms_key", env=self._config.messaging.api_key_env)

    async def close(self) -> None:
        await self._sender.close()
        await self._source.close()
        await self._store.close()

    async def run_once(self, region: str) -> PipelineResult:
        """Open components, run one pipeline cycle, and close again."""
        await self.open()
        try:
            return await self._pipeline.run(region)
        finally:
            await self.close()

    async def start(self) -> None:
        log.info("service.starting", db_path=self._config.store.db_path)
        await self.open()
        await self._server.start()
        self._running = True
        log.info(
            "service.started",
            host=self._config.server.host,
            port=self._config.server.port,
        )

    async def stop(self) -> None:
        if not self._running:
            return
        self._running = False
        log.info("service.stopping")
        await self._server.stop()
        await self.close()
        log.info("service.stopped")

    async def run_forever(self) -> None:
        """Serve until a shutdown signal arrives."""
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGTERM, signal.SIGINT):
            loop.add_signal_handler(sig, self._shutdown_event.set)

        await self.start()
        try:
            await self._shutdown_event.wait()
        finally:
            await asyncio.wait_for(self.stop(), timeout=SHUTDOWN_TIMEOUT)
