from datetime import datetime
from unittest.mock import MagicMock

import pytest
from factories import T0

from uptime_timeline.domain.models import ServiceSnapshot


@pytest.fixture
def now() -> datetime:
    return T0


@pytest.fixture
def service() -> ServiceSnapshot:
    return ServiceSnapshot(
        service_id="svc-1",
        name="api",
        service_type="http",
        status="up",
        interval_seconds=60,
    )


@pytest.fixture
def mock_clickhouse_client():
    """Mock clickhouse_connect client for unit tests"""
    client = MagicMock()
    client.query = MagicMock()
    client.ping = MagicMock(return_value=True)
    return client
