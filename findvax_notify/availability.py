"""
Availability source: reads per-region location and availability snapshots.

The scraper publishes two JSON documents per region:
- {base_url}/{region}/locations.json
- {base_url}/{region}/availability.json
"""

from __future__ import annotations

import asyncio
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from .errors import UpstreamFetchError
from .models import Location, LocationAvailability

log = structlog.get_logger()

RecordT = TypeVar("RecordT", bound=BaseModel)


class HttpAvailabilitySource:
    """Fetches availability snapshots from the scraper's data bucket."""

    def __init__(
        self,
        base_url: str,
        request_timeout: int = 30,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._base_url = base_url.rstrip("/")
        self._request_timeout = request_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    async def open(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._request_timeout),
            transport=self._transport,
        )

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def get_locations(self, region: str) -> list[Location]:
        raw = await self._get_json(region, "locations.json")
        return _parse_records(Location, raw, region, "locations.json")

    async def get_availability(self, region: str) -> list[LocationAvailability]:
        raw = await self._get_json(region, "availability.json")
        return _parse_records(LocationAvailability, raw, region, "availability.json")

    async def get_snapshot(
        self, region: str
    ) -> tuple[list[Location], list[LocationAvailability]]:
        """Fetch both documents concurrently; either failure fails the snapshot."""
        locations, availability = await asyncio.gather(
            self.get_locations(region),
            self.get_availability(region),
        )
        return locations, availability

    async def _get_json(self, region: str, resource: str) -> Any:
        assert self._client
        url = f"{self._base_url}/{region}/{resource}"
        try:
            resp = await self._client.get(url)
            resp.raise_for_status()
            return resp.json()
        except httpx.HTTPStatusError as exc:
            log.error(
                "availability.fetch_failed",
                url=url,
                status=exc.response.status_code,
            )
            raise UpstreamFetchError(
                region, resource, f"HTTP {exc.response.status_code}"
            ) from exc
        except httpx.HTTPError as exc:
            log.error("availability.unreachable", url=url, error=str(exc))
            raise UpstreamFetchError(region, resource, str(exc) or type(exc).__name__) from exc
        except ValueError as exc:
            log.error("availability.bad_json", url=url, error=str(exc))
            raise UpstreamFetchError(region, resource, "invalid JSON") from exc


def _parse_records(
    model: type[RecordT], raw: Any, region: str, resource: str
) -> list[RecordT]:
    """
    Validate a published document record by record.

    The document itself must be a JSON list (``null`` reads as empty). A
    malformed record is logged and skipped so one bad entry cannot hold back
    notifications for the rest of the region. Null entries are dropped.
    """
    if raw is None:
        return []
    if not isinstance(raw, list):
        log.error(
            "availability.bad_document",
            region=region,
            resource=resource,
            got=type(raw).__name__,
        )
        raise UpstreamFetchError(region, resource, "expected a JSON list")

    records: list[RecordT] = []
    for index, item in enumerate(raw):
        if item is None:
            continue
        try:
            records.append(model.model_validate(item))
        except SchemaError as exc:
            first = exc.errors()[0]
            log.warning(
                "availability.record_skipped",
                region=region,
                resource=resource,
                index=index,
                field=".".join(str(p) for p in first["loc"]),
                error=first["msg"],
            )
    return records
