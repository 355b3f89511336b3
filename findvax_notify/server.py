"""
HTTP surface for the notifier.

Exposes:
- PUT /subscriptions — subscription intake
- OPTIONS /subscriptions — CORS preflight
- POST /trigger — upstream scraper signal (JSON body is the trigger event)
- GET /health — JSON health status
- GET /metrics — Prometheus-compatible metrics
"""

from __future__ import annotations

from typing import Any

from aiohttp import web

from .errors import ValidationError
from .metrics import MetricsCollector
from .pipeline import NotificationPipeline
from .store import SubscriptionStore
from .trigger import RESPONSE_HEADERS, error_response, handle_event

STORE_KEY = web.AppKey("store", SubscriptionStore)
PIPELINE_KEY = web.AppKey("pipeline", NotificationPipeline)
METRICS_KEY = web.AppKey("metrics", MetricsCollector)


def _to_web_response(result: dict[str, Any]) -> web.Response:
    return web.Response(
        status=result["statusCode"],
        text=result["body"],
        headers=result["headers"],
        content_type="application/json",
    )


async def _subscribe_handler(request: web.Request) -> web.Response:
    # intake decodes the raw bytes itself
    event = {"httpMethod": request.method, "body": await request.read()}
    result = await handle_event(event, request.app[STORE_KEY], request.app[PIPELINE_KEY])
    return _to_web_response(result)


async def _preflight_handler(request: web.Request) -> web.Response:
    return web.Response(status=200, headers=RESPONSE_HEADERS)


async def _trigger_handler(request: web.Request) -> web.Response:
    try:
        event = await request.json()
    except ValueError:
        # JSONDecodeError and UnicodeDecodeError
        return _to_web_response(error_response(ValidationError("Invalid trigger body: not JSON!")))
    if not isinstance(event, dict):
        return _to_web_response(error_response(ValidationError("Invalid trigger body!")))
    # an HTTP request on this route is always a signal, never intake
    event.pop("httpMethod", None)
    result = await handle_event(event, request.app[STORE_KEY], request.app[PIPELINE_KEY])
    return _to_web_response(result)


async def _health_handler(request: web.Request) -> web.Response:
    metrics = request.app[METRICS_KEY]
    try:
        pending = await request.app[STORE_KEY].count_pending()
        store_ok = True
    except Exception:
        pending = None
        store_ok = False
    body = {
        "status": "healthy" if store_ok else "degraded",
        "store_reachable": store_ok,
        "pending_subscriptions": pending,
        "metrics": metrics.to_dict(),
    }
    return web.json_response(body)


async def _metrics_handler(request: web.Request) -> web.Response:
    return web.Response(
        text=request.app[METRICS_KEY].to_prometheus(),
        content_type="text/plain",
    )


def create_app(
    store: SubscriptionStore,
    pipeline: NotificationPipeline,
    metrics: MetricsCollector,
    expose_metrics: bool = True,
) -> web.Application:
    app = web.Application()
    app[STORE_KEY] = store
    app[PIPELINE_KEY] = pipeline
    app[METRICS_KEY] = metrics

    app.router.add_put("/subscriptions", _subscribe_handler)
    app.router.add_route("OPTIONS", "/subscriptions", _preflight_handler)
    app.router.add_post("/trigger", _trigger_handler)
    app.router.add_get("/health", _health_handler)
    if expose_metrics:
        app.router.add_get("/metrics", _metrics_handler)
    return app


class NotifyServer:
    """Runs the notifier HTTP app on a TCP site."""

    def __init__(self, app: web.Application, host: str = "127.0.0.1", port: int = 8080):
        self._app = app
        self._host = host
        self._port = port
        self._runner: web.AppRunner | None = None

    async def start(self) -> None:
        self._runner = web.AppRunner(self._app)
        await self._runner.setup()
        site = web.TCPSite(self._runner, self._host, self._port)
        await site.start()

    async def stop(self) -> None:
        if self._runner:
            await self._runner.cleanup()
            self._runner = None
