import time
from collections.abc import Callable, Iterator
from typing import Any

import pytest
from fastapi.testclient import TestClient

from wealth_manager.config import Settings
from wealth_manager.main import create_app


def make_settings(**overrides: Any) -> Settings:
    values: dict[str, Any] = {
        "default_data_source": "mock",
        "mock_seed": 7,
        "mock_history_years": 1,
        "download_batch_pause_seconds": 0,
        "manual_update_pause_seconds": 0,
        "scheduler_poll_seconds": 3600,
        "scheduler_autostart": False,
        "seed_demo_portfolio": False,
        "log_level": "WARNING",
    }
    values.update(overrides)
    return Settings(_env_file=None, **values)


def _wait_for(client: TestClient, path: str, predicate: Callable[[Any], bool], timeout: float = 5.0) -> Any:
    deadline = time.monotonic() + timeout
    body = client.get(path).json()
    while not predicate(body) and time.monotonic() < deadline:
        time.sleep(0.05)
        body = client.get(path).json()
    return body


@pytest.fixture
def settings_factory() -> Callable[..., Settings]:
    return make_settings


@pytest.fixture
def client() -> Iterator[TestClient]:
    with TestClient(create_app(make_settings())) as test_client:
        yield test_client


@pytest.fixture
def wait_for() -> Callable[..., Any]:
    """Poll a GET endpoint until ``predicate`` accepts its JSON body."""
    return _wait_for
