"""Tests for metrics collection."""

import pytest

from findvax_notify.metrics import COUNTERS, MetricsCollector


def test_counter_increment():
    m = MetricsCollector()
    m.inc("messages_sent_total")
    m.inc("messages_sent_total", 2)
    assert m.get("messages_sent_total") == 3


def test_gauge_set():
    m = MetricsCollector()
    m.set_gauge("last_run_timestamp", 1700000000.0)
    assert m.get("last_run_timestamp") == 1700000000.0


def test_unknown_metric_is_zero():
    assert MetricsCollector().get("pipeline_runs_total") == 0


def test_prometheus_format():
    m = MetricsCollector()
    m.inc("subscriptions_retired_total", 5)
    m.set_gauge("last_run_timestamp", 2)
    text = m.to_prometheus()
    assert "# TYPE notify_subscriptions_retired_total counter" in text
    assert "notify_subscriptions_retired_total 5" in text
    assert "notify_last_run_timestamp 2" in text
    assert "notify_uptime_seconds" in text


def test_registered_series_exported_before_first_run():
    text = MetricsCollector().to_prometheus()
    for name in COUNTERS:
        assert f"# TYPE notify_{name} counter" in text
        assert f"notify_{name} 0" in text
    assert "notify_last_run_timestamp 0" in text


def test_region_label():
    m = MetricsCollector()
    m.inc("pipeline_runs_total", region="ma")
    m.inc("pipeline_runs_total", region="ct")
    m.inc("pipeline_runs_total", region="ma")

    assert m.get("pipeline_runs_total") == 3
    assert m.get("pipeline_runs_total", region="ma") == 2
    assert m.get("pipeline_runs_total", region="nh") == 0
    text = m.to_prometheus()
    assert "notify_pipeline_runs_total 3" in text
    assert 'notify_pipeline_runs_total{region="ma"} 2' in text
    assert 'notify_pipeline_runs_total{region="ct"} 1' in text
    assert m.to_dict()["regions"]["ct"]["pipeline_runs_total"] == 1


def test_unregistered_metric_is_rejected():
    m = MetricsCollector()
    with pytest.raises(KeyError):
        m.inc("messages_snet_total")
    with pytest.raises(KeyError):
        m.get("messages_snet_total")
