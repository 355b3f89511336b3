"""
Trigger boundary: route an invocation and map its outcome to a response.

Two trigger shapes are accepted:
- an API request (``httpMethod`` + ``body``) carrying a new subscription
- an upstream scraper signal (``responsePayload.state``) naming the region
  whose availability was just refreshed; ``requestPayload.init`` or the state
  ``none`` marks a bootstrap signal that is acknowledged without a run
"""

from __future__ import annotations

import json
from typing import Any

import structlog

from .errors import ValidationError
from .intake import SubscriptionWriter, register_subscription
from .pipeline import NotificationPipeline

log = structlog.get_logger()

RESPONSE_HEADERS = {
    "Access-Control-Allow-Headers": "Content-Type,X-Amz-Date,Authorization,X-Api-Key,X-Amz-Security-Token",
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "OPTIONS,PUT",
}

NO_OP_STATE = "none"


def ok_response() -> dict[str, Any]:
    return {"statusCode": 200, "headers": dict(RESPONSE_HEADERS), "body": ""}


def error_response(error: BaseException) -> dict[str, Any]:
    if isinstance(error, ValidationError):
        status_code = 400
        message = str(error)
    else:
        status_code = 500
        message = f"Function execution error: {error}" if str(error) else (
            "Something went wrong! Unable to get error details."
        )
    return {
        "statusCode": status_code,
        "headers": dict(RESPONSE_HEADERS),
        "body": json.dumps({"message": message}),
    }


def read_signal(event: dict[str, Any]) -> tuple[str, bool]:
    """Return (region_state, is_bootstrap) from an upstream signal."""
    response_payload = event.get("responsePayload") or {}
    request_payload = event.get("requestPayload") or {}
    state = response_payload.get("state") if isinstance(response_payload, dict) else None
    if not state or not isinstance(state, str):
        raise ValidationError("Missing state param!")
    is_init = bool(request_payload.get("init")) if isinstance(request_payload, dict) else False
    return state, is_init or state == NO_OP_STATE


async def handle_event(
    event: dict[str, Any],
    store: SubscriptionWriter,
    pipeline: NotificationPipeline,
) -> dict[str, Any]:
    """Dispatch an invocation to intake or the pipeline and build the response."""
    try:
        if event.get("httpMethod"):
            await register_subscription(store, event.get("body"))
            return ok_response()

        if "responsePayload" in event:
            region, bootstrap = read_signal(event)
            if bootstrap:
                pipeline.bypass(region)
                return ok_response()
            log.info("trigger.run", region=region)
            result = await pipeline.run(region)
            if not result.ok:
                return error_response(RuntimeError(result.error or "pipeline failed"))
            return ok_response()

        raise ValidationError("Unknown trigger! I dunno how to handle this!")
    except ValidationError as exc:
        log.warning("trigger.rejected", error=str(exc))
        return error_response(exc)
    except Exception as exc:
        log.exception("trigger.failed", error=str(exc))
        return error_response(exc)
