"""
Dispatcher: one consolidated SMS per recipient.

Handles:
- Rendering each recipient batch into a single message body
- Sending through the SMS gateway with retry on 429 / 5xx / connection errors
- Per-recipient outcome tracking (pending -> success | failed)

Sends are isolated: a failure for one recipient never cancels or fails the
others. A failed batch keeps its subscriptions pending for the next cycle.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import parsedate_to_datetime
from typing import Protocol

import httpx
import structlog

from .errors import DispatchError
from .messages import render_message
from .models import Aggregation, BatchStatus, RecipientBatch

log = structlog.get_logger()

# Retry configuration
MAX_RETRIES = 3
RETRY_BASE_SECONDS = 1.0

DELIVERY_SUCCESSFUL = "SUCCESSFUL"


@dataclass(frozen=True)
class DeliveryResult:
    """Per-address outcome reported by the gateway."""
    address: str
    delivery_status: str
    status_code: int | None = None
    status_message: str = ""

    @property
    def delivered(self) -> bool:
        return self.delivery_status == DELIVERY_SUCCESSFUL


class MessageSender(Protocol):
    async def send(self, recipient: str, body: str) -> dict[str, DeliveryResult]: ...


class HttpMessageSender:
    """
    Sends SMS through a Pinpoint-style HTTP gateway.

    The gateway answers with a per-address result map; only an address whose
    DeliveryStatus is SUCCESSFUL counts as delivered.
    """

    def __init__(
        self,
        url: str,
        application_id: str,
        origination_number: str,
        api_key: str | None = None,
        message_type: str = "TRANSACTIONAL",
        request_timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
        retry_base_seconds: float = RETRY_BASE_SECONDS,
    ):
        self._url = url.format(application_id=application_id)
        self._application_id = application_id
        self._origination_number = origination_number
        self._api_key = api_key
        self._message_type = message_type
        self._request_timeout = request_timeout
        self._transport = transport
        self._retry_base_seconds = retry_base_seconds
        self._client: httpx.AsyncClient | None = None

    async def open(self) -> None:
        headers = {"Authorization": f"Bearer {self._api_key}"} if self._api_key else None
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._request_timeout),
            headers=headers,
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    def _message_request(self, recipient: str, body: str) -> dict:
        return {
            "ApplicationId": self._application_id,
            "MessageRequest": {
                "Addresses": {recipient: {"ChannelType": "SMS"}},
                "MessageConfiguration": {
                    "SMSMessage": {
                        "Body": body,
                        "MessageType": self._message_type,
                        "OriginationNumber": self._origination_number,
                    }
                },
            },
        }

    async def send(self, recipient: str, body: str) -> dict[str, DeliveryResult]:
        assert self._client
        payload = self._message_request(recipient, body)

        last_exc: Exception | None = None
        for attempt in range(MAX_RETRIES):
            final = attempt == MAX_RETRIES - 1
            try:
                resp = await self._client.post(self._url, json=payload)

                if resp.status_code == 429:
                    retry_after = _retry_after_seconds(
                        resp.headers.get("Retry-After"),
                        self._retry_base_seconds * (attempt + 1),
                    )
                    log.warning("dispatcher.rate_limited", retry_after=retry_after)
                    last_exc = DispatchError(recipient, "rate limited")
                    if not final:
                        await asyncio.sleep(retry_after)
                    continue

                resp.raise_for_status()
                return _parse_results(resp.json())

            except httpx.HTTPStatusError as exc:
                if 400 <= exc.response.status_code < 500:
                    log.error(
                        "dispatcher.gateway_client_error",
                        status=exc.response.status_code,
                        recipient=recipient,
                    )
                    raise DispatchError(recipient, f"HTTP {exc.response.status_code}") from exc
                last_exc = exc
            except (httpx.ConnectError, httpx.ReadError, httpx.TimeoutException) as exc:
                last_exc = exc

            if final:
                break
            backoff = self._retry_base_seconds * (2 ** attempt)
            log.warning(
                "dispatcher.retry",
                attempt=attempt + 1,
                backoff=backoff,
                error=str(last_exc),
            )
            await asyncio.sleep(backoff)

        raise DispatchError(recipient, str(last_exc) or "retries exhausted")


def _retry_after_seconds(header: str | None, default: float) -> float:
    """Retry-After is either delta-seconds or an HTTP-date; anything else falls back."""
    if not header:
        return default
    try:
        return max(float(header), 0.0)
    except ValueError:
        pass
    try:
        when = parsedate_to_datetime(header)
    except (TypeError, ValueError):
        return default
    if when.tzinfo is None:
        when = when.replace(tzinfo=timezone.utc)
    return max((when - datetime.now(timezone.utc)).total_seconds(), 0.0)


def _parse_results(data: dict) -> dict[str, DeliveryResult]:
    result = (data.get("MessageResponse") or {}).get("Result") or {}
    return {
        address: DeliveryResult(
            address=address,
            delivery_status=str(detail.get("DeliveryStatus", "")),
            status_code=detail.get("StatusCode"),
            status_message=str(detail.get("StatusMessage", "")),
        )
        for address, detail in result.items()
    }


async def _send_batch(sender: MessageSender, batch: RecipientBatch) -> None:
    body = render_message(batch)
    batch.status = BatchStatus.PENDING
    try:
        results = await sender.send(batch.recipient, body)
        outcome = results.get(batch.recipient)
        if outcome is None:
            raise DispatchError(batch.recipient, "no result for address")
        if not outcome.delivered:
            raise DispatchError(
                batch.recipient,
                outcome.status_message or outcome.delivery_status or "not delivered",
            )
    except Exception:
        batch.status = BatchStatus.FAILED
        raise
    batch.status = BatchStatus.SUCCESS
    log.info("dispatcher.sent", recipient=batch.recipient, locations=len(batch.locations))


async def dispatch(sender: MessageSender, aggregation: Aggregation) -> list[DispatchError]:
    """
    Send every batch concurrently. Returns the collected per-recipient failures;
    batch statuses carry the outcome for the retirement stage.
    """
    batches = list(aggregation)
    if not batches:
        return []

    log.info("dispatcher.sending", recipients=len(batches))
    outcomes = await asyncio.gather(
        *(_send_batch(sender, b) for b in batches),
        return_exceptions=True,
    )

    failures: list[DispatchError] = []
    for batch, outcome in zip(batches, outcomes):
        if outcome is None:
            continue
        if isinstance(outcome, DispatchError):
            error = outcome
        else:
            error = DispatchError(batch.recipient, str(outcome) or type(outcome).__name__)
        log.error(
            "dispatcher.send_failed",
            recipient=batch.recipient,
            locations=[loc.location_id for loc in batch.locations],
            error=error.reason,
        )
        failures.append(error)
    return failures
