"""
Shared fixtures for notifier tests.
"""

import pytest

from findvax_notify.metrics import MetricsCollector
from findvax_notify.store import SubscriptionStore


@pytest.fixture
async def store(tmp_path):
    s = SubscriptionStore(str(tmp_path / "notify.db"))
    await s.open()
    yield s
    await s.close()


@pytest.fixture
def metrics():
    return MetricsCollector()
