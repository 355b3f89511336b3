"""
Notifier metrics with Prometheus text exposition.

Every series the pipeline reports is registered up front, so a scrape taken
before the first run shows zeros rather than missing series. Counters and
gauges carry an optional ``region`` label; the unlabelled sample is the
process-wide value.
"""

from __future__ import annotations

import time
from typing import Any

PREFIX = "notify_"

COUNTERS: dict[str, str] = {
    "pipeline_runs_total": "Pipeline runs started.",
    "pipeline_failures_total": "Pipeline runs that ended in the failed stage.",
    "eligible_locations_total": "Locations whose availability crossed their threshold.",
    "messages_sent_total": "Consolidated messages delivered.",
    "messages_failed_total": "Consolidated messages that were not delivered.",
    "subscriptions_retired_total": "Pending subscriptions deleted after delivery.",
    "retirement_races_total": "Guarded deletes skipped because the recipient changed.",
}

GAUGES: dict[str, str] = {
    "last_run_timestamp": "Unix time the most recent pipeline run finished.",
}

# key of the unlabelled sample inside each series
_ALL = ""


class MetricsCollector:
    """Registered counters and gauges, optionally broken down by region."""

    def __init__(self) -> None:
        self._counters: dict[str, dict[str, float]] = {name: {_ALL: 0} for name in COUNTERS}
        self._gauges: dict[str, dict[str, float]] = {name: {_ALL: 0} for name in GAUGES}
        self._start_time = time.time()

    def inc(self, name: str, value: int = 1, region: str | None = None) -> None:
        series = _lookup(self._counters, name)
        series[_ALL] += value
        if region:
            series[region] = series.get(region, 0) + value

    def set_gauge(self, name: str, value: float, region: str | None = None) -> None:
        series = _lookup(self._gauges, name)
        series[_ALL] = value
        if region:
            series[region] = value

    def get(self, name: str, region: str | None = None) -> int | float:
        series = self._counters.get(name) or self._gauges.get(name)
        if series is None:
            raise KeyError(f"unregistered metric: {name}")
        return series.get(region or _ALL, 0)

    def regions(self) -> list[str]:
        seen = {r for series in self._counters.values() for r in series if r != _ALL}
        return sorted(seen)

    def to_prometheus(self) -> str:
        lines: list[str] = []
        for name, help_text in COUNTERS.items():
            lines.extend(_exposition(name, "counter", help_text, self._counters[name]))
        for name, help_text in GAUGES.items():
            lines.extend(_exposition(name, "gauge", help_text, self._gauges[name]))
        uptime = time.time() - self._start_time
        lines.append(f"# TYPE {PREFIX}uptime_seconds gauge")
        lines.append(f"{PREFIX}uptime_seconds {uptime:.1f}")
        return "\n".join(lines) + "\n"

    def to_dict(self) -> dict[str, Any]:
        return {
            "counters": {name: series[_ALL] for name, series in self._counters.items()},
            "gauges": {name: series[_ALL] for name, series in self._gauges.items()},
            "regions": {
                region: {
                    name: series.get(region, 0) for name, series in self._counters.items()
                }
                for region in self.regions()
            },
            "uptime_seconds": time.time() - self._start_time,
        }


def _lookup(registry: dict[str, dict[str, float]], name: str) -> dict[str, float]:
    try:
        return registry[name]
    except KeyError:
        raise KeyError(f"unregistered metric: {name}") from None


def _exposition(name: str, kind: str, help_text: str, series: dict[str, float]) -> list[str]:
    full = f"{PREFIX}{name}"
    lines = [f"# HELP {full} {help_text}", f"# TYPE {full} {kind}", f"{full} {series[_ALL]}"]
    for region in sorted(r for r in series if r != _ALL):
        lines.append(f'{full}{{region="{region}"}} {series[region]}')
    return lines
