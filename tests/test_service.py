"""Tests for service wiring and lifecycle."""

from findvax_notify.config import NotifyConfig
from findvax_notify.models import Stage
from findvax_notify.service import NotifierService


def _config(tmp_path) -> NotifyConfig:
    return NotifyConfig.model_validate({
        "availability": {"base_url": "http://127.0.0.1:9", "request_timeout_seconds": 2},
        "store": {"db_path": str(tmp_path / "data" / "notify.db")},
        "server": {"host": "127.0.0.1", "port": 0},
    })


async def test_run_once_reports_unreachable_source(tmp_path):
    service = NotifierService(_config(tmp_path))

    result = await service.run_once("ma")

    assert result.stage == Stage.FAILED
    assert "locations.json" in result.error or "availability.json" in result.error
    assert (tmp_path / "data" / "notify.db").exists()


async def test_start_and_stop(tmp_path):
    service = NotifierService(_config(tmp_path))
    await service.start()
    await service.stop()
    # a second stop is a no-op
    await service.stop()
